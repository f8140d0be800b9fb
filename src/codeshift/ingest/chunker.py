"""Chunker entry point: picks the AST, line or HTML path for one file."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path

from codeshift.db.models import Chunk
from codeshift.errors import ParseError
from codeshift.ingest.ast_chunker import AstChunker
from codeshift.ingest.base import BaseChunker
from codeshift.ingest.detector import LanguageDetector
from codeshift.ingest.html_chunker import HtmlChunker
from codeshift.ingest.languages import CODE_EXTENSIONS, is_markup, language_for
from codeshift.ingest.line_chunker import LineChunker
from codeshift.ingest.metadata import attach

logger = logging.getLogger(__name__)

DEFAULT_SMALL_FILE_LINES = 500


def is_code_file(path: str) -> bool:
    return posixpath.splitext(path.lower())[1] in CODE_EXTENSIONS


class CodeChunker(BaseChunker):
    """Split source files into semantic chunks.

    Policy, in order:

    1. Empty content yields no chunks.
    2. Files shorter than ``small_file_lines`` become one ``file`` chunk.
    3. Markup (.html/.htm/.vue/.svelte) is split into sections.
    4. Languages with a grammar go through the AST walk; a parse failure or
       an empty walk falls through to step 5.
    5. The line-based chunker.

    Every chunk gets static metadata (language, complexity, dependencies,
    exports) from the Language Detector run once per file.
    """

    def __init__(
        self,
        small_file_lines: int = DEFAULT_SMALL_FILE_LINES,
        detector: LanguageDetector | None = None,
    ) -> None:
        if small_file_lines < 1:
            raise ValueError("small_file_lines must be >= 1")
        self.small_file_lines = small_file_lines
        self.detector = detector or LanguageDetector()

    def chunk_file(self, file_path: Path | str, relative_path: str) -> list[Chunk]:
        """Read *file_path* and chunk it under the archive path *relative_path*."""
        content = Path(file_path).read_text(encoding="utf-8", errors="replace")
        return self.chunk(relative_path, content)

    def chunk(self, relative_path: str, content: str) -> list[Chunk]:
        relative_path = relative_path.replace("\\", "/")
        chunks = self._split(relative_path, content)
        if not chunks:
            return []
        language = self.detector.detect(posixpath.basename(relative_path), content).display_name
        return [attach(c, language) for c in chunks]

    def _split(self, relative_path: str, content: str) -> list[Chunk]:
        if not content.strip():
            return []

        lines = self.split_lines(content)
        file_name = posixpath.basename(relative_path)
        extension = posixpath.splitext(file_name)[1].lower()

        if len(lines) < self.small_file_lines:
            return [self._make_chunk(relative_path, lines, 1, len(lines), "file", file_name)]

        if is_markup(extension):
            return HtmlChunker().chunk(relative_path, content)

        spec = language_for(extension)
        if spec is None:
            return [self._make_chunk(relative_path, lines, 1, len(lines), "file", file_name)]

        if spec.grammar is not None:
            try:
                chunks = AstChunker(spec).chunk(relative_path, content)
            except ParseError as exc:
                logger.warning("%s; falling back to line chunking", exc)
            else:
                if chunks:
                    return chunks
                logger.debug("AST produced no chunks for %s; using line chunking", relative_path)

        chunks = LineChunker(spec).chunk(relative_path, content)
        if chunks:
            return chunks
        return [self._make_chunk(relative_path, lines, 1, len(lines), "file", file_name)]
