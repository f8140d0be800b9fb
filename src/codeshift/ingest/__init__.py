"""codeshift ingest pipeline — acquirer, chunkers, language detector, embedder, worker."""

from codeshift.ingest.acquirer import SourceAcquirer
from codeshift.ingest.base import BaseChunker
from codeshift.ingest.chunker import CodeChunker, is_code_file
from codeshift.ingest.detector import DetectionResult, LanguageDetector
from codeshift.ingest.embedder import Embedder, EmbeddedText, fallback_vector
from codeshift.ingest.fetcher import UrlFetcher

__all__ = [
    "BaseChunker",
    "CodeChunker",
    "DetectionResult",
    "EmbeddedText",
    "Embedder",
    "LanguageDetector",
    "SourceAcquirer",
    "UrlFetcher",
    "fallback_vector",
    "is_code_file",
]
