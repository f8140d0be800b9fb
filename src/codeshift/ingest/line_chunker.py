"""Line-based chunker: regex openings plus brace depth (or indentation).

Used when a file has no grammar, the grammar fails to load or parse, or the
AST walk yields nothing. Only top-level constructs start chunks; nested
functions are absorbed into their enclosing class or function.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass

from codeshift.db.models import Chunk
from codeshift.ingest.base import BaseChunker
from codeshift.ingest.languages import LanguageSpec

_CONSTRUCT_NAME_RE = re.compile(
    r"(?:class|struct|interface|enum|trait|impl|protocol|object|type)\s+(\w+)"
)
_CONTINUATION_PREFIXES = (")", "]", "}")

REMAINDER = "remainder"


@dataclass
class _Open:
    start: int
    kind: str
    name: str
    braced: bool = False


class LineChunker(BaseChunker):
    """Chunk a file with the line-fallback regexes of one LanguageSpec."""

    def __init__(self, spec: LanguageSpec) -> None:
        self.spec = spec

    def chunk(self, relative_path: str, content: str) -> list[Chunk]:
        if not content.strip():
            return []
        lines = self.split_lines(content)
        file_name = posixpath.basename(relative_path)
        if self.spec.block == "indent":
            spans = self._indent_spans(lines, file_name)
        else:
            spans = self._brace_spans(lines, file_name)
        return [
            self._make_chunk(relative_path, lines, start, end, kind, name)
            for start, end, kind, name in spans
        ]

    # ------------------------------------------------------------------
    # Line classification
    # ------------------------------------------------------------------

    def classify(self, stripped: str) -> tuple[str, str] | None:
        """Return (kind, name) if *stripped* opens a construct, else None."""
        spec = self.spec
        for kind, pattern in (
            ("class", spec.class_re),
            ("interface", spec.interface_re),
            ("enum", spec.enum_re),
        ):
            if pattern is not None and pattern.search(stripped):
                match = _CONSTRUCT_NAME_RE.search(stripped)
                return kind, match.group(1) if match else "UnknownConstruct"
        if spec.function_re is not None and spec.function_re.search(stripped):
            match = spec.function_name_re.search(stripped) if spec.function_name_re else None
            return "function", match.group(1) if match else "anonymous"
        return None

    # ------------------------------------------------------------------
    # Brace languages
    # ------------------------------------------------------------------

    def _brace_spans(
        self, lines: list[str], file_name: str
    ) -> list[tuple[int, int, str, str]]:
        spans: list[tuple[int, int, str, str]] = []
        gap_start = 1
        current: _Open | None = None
        depth = 0

        def flush_gap(upto: int) -> None:
            nonlocal gap_start
            if gap_start <= upto and not self._is_blank(lines, gap_start, upto):
                spans.append((gap_start, upto, "other", file_name if not spans else REMAINDER))
            gap_start = upto + 1

        for number, line in enumerate(lines, start=1):
            stripped = line.strip()
            opens, closes = line.count("{"), line.count("}")

            if depth == 0:
                opening = self.classify(stripped)
                if opening and (current is None or not current.braced):
                    if current is not None:
                        # A brace-less construct (e.g. `const f = x => x`) ends here.
                        flush_gap(current.start - 1)
                        spans.append((current.start, number - 1, current.kind, current.name))
                        gap_start = number
                    current = _Open(number, *opening)

            depth = max(0, depth + opens - closes)
            if current is None:
                continue
            if opens:
                current.braced = True
            closed = (current.braced and depth == 0) or (
                not current.braced and depth == 0 and stripped.endswith(";")
            )
            if closed:
                flush_gap(current.start - 1)
                spans.append((current.start, number, current.kind, current.name))
                current = None
                gap_start = number + 1

        last = len(lines)
        if current is not None and current.braced:
            # Unbalanced: everything after the last closed construct.
            spans.append((gap_start, last, "other", REMAINDER))
        elif current is not None:
            flush_gap(current.start - 1)
            spans.append((current.start, last, current.kind, current.name))
        else:
            flush_gap(last)
        return spans

    # ------------------------------------------------------------------
    # Indentation languages
    # ------------------------------------------------------------------

    def _indent_spans(
        self, lines: list[str], file_name: str
    ) -> list[tuple[int, int, str, str]]:
        spans: list[tuple[int, int, str, str]] = []
        gap_start = 1
        current: _Open | None = None
        decorator_start: int | None = None
        last_nonblank = 0

        def flush_gap(upto: int) -> None:
            nonlocal gap_start
            if gap_start <= upto and not self._is_blank(lines, gap_start, upto):
                spans.append((gap_start, upto, "other", file_name if not spans else REMAINDER))
            gap_start = upto + 1

        def close(end: int) -> None:
            nonlocal current, gap_start
            assert current is not None
            spans.append((current.start, end, current.kind, current.name))
            current = None
            gap_start = end + 1

        for number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if not stripped:
                continue
            at_margin = not line[0].isspace()
            if at_margin and not stripped.startswith(_CONTINUATION_PREFIXES):
                if current is not None:
                    close(last_nonblank)
                if stripped.startswith("@"):
                    if decorator_start is None:
                        decorator_start = number
                    last_nonblank = number
                    continue
                opening = self.classify(stripped)
                if opening:
                    start = decorator_start or number
                    flush_gap(start - 1)
                    current = _Open(start, *opening)
                decorator_start = None
            last_nonblank = number

        if current is not None:
            close(last_nonblank)
        flush_gap(len(lines))
        return spans
