"""Base chunker interface shared by the AST, line and HTML chunkers."""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod

from codeshift.db.models import Chunk


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Subclasses implement ``chunk()`` and build their chunks through
    ``_make_chunk()``, which slices whole source lines so that every chunk's
    content is exactly ``lines[start - 1:end]`` joined with ``\\n``.
    """

    @abstractmethod
    def chunk(self, relative_path: str, content: str) -> list[Chunk]:
        """Split *content* into Chunk objects.

        Args:
            relative_path: POSIX path of the file inside the archive.
            content: Full decoded text of the file.

        Returns:
            Chunks in start-line order (may be empty).
        """

    @staticmethod
    def split_lines(content: str) -> list[str]:
        """Split on ``\\n`` only, the line break tree-sitter counts rows by.

        A trailing ``\\r`` (CRLF) is dropped; form feeds and other Unicode
        separators stay inside their line.
        """
        lines = content.split("\n")
        if lines[-1] == "":
            lines.pop()
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    @staticmethod
    def _make_chunk(
        relative_path: str,
        lines: list[str],
        start: int,
        end: int,
        kind: str,
        name: str,
        ast_node_type: str | None = None,
    ) -> Chunk:
        """Build a Chunk covering lines *start*..*end* (1-based, inclusive)."""
        file_name = posixpath.basename(relative_path)
        _, extension = posixpath.splitext(file_name)
        return Chunk(
            file_path=relative_path,
            file_name=file_name,
            file_extension=extension.lower(),
            kind=kind,
            name=name or "anonymous",
            content="\n".join(lines[start - 1 : end]),
            start_line=start,
            end_line=end,
            ast_node_type=ast_node_type,
        )

    @staticmethod
    def _is_blank(lines: list[str], start: int, end: int) -> bool:
        return not any(line.strip() for line in lines[start - 1 : end])
