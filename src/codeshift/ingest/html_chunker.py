"""HTML / single-file-component chunker.

Partitions markup into script, template and style sections and, inside a
script section, into framework constructs (AngularJS registrations, Vue
component options).
"""

from __future__ import annotations

import re

from codeshift.db.models import Chunk
from codeshift.ingest.base import BaseChunker

_SCRIPT_OPEN_RE = re.compile(r"<script[\s>]", re.IGNORECASE)
_SCRIPT_CLOSE_RE = re.compile(r"</script\s*>", re.IGNORECASE)
_STYLE_OPEN_RE = re.compile(r"<style[\s>]", re.IGNORECASE)
_STYLE_CLOSE_RE = re.compile(r"</style\s*>", re.IGNORECASE)
_TEMPLATE_OPEN_RE = re.compile(r"<template[\s>]", re.IGNORECASE)

_ANGULAR_RE = re.compile(r"\.(controller|service|directive|factory|filter|component)\s*\(")
_ANGULAR_NAME_RE = re.compile(
    r"\.(controller|service|directive|factory|filter|component)\s*\(\s*['\"`]([^'\"`]+)['\"`]"
)
_VUE_RE = re.compile(r"export\s+default\b|\b(methods|computed|watch)\s*:")
_VUE_NAME_RE = re.compile(r"name\s*:\s*['\"`]([^'\"`]+)['\"`]")
_VUE_SECTION_RE = re.compile(
    r"(methods|computed|watch|data|created|mounted|updated|destroyed)\s*:"
)

_SECTION_NAMES = {
    "script": "script_section",
    "template": "template_section",
    "style": "style_section",
}


def construct_name(line: str) -> str:
    """Name of the framework construct opened on *line*."""
    match = _ANGULAR_NAME_RE.search(line)
    if match:
        return f"{match.group(1)}_{match.group(2)}"
    if _ANGULAR_RE.search(line):
        return "angularjs_component"
    match = _VUE_NAME_RE.search(line)
    if match:
        return f"vue_{match.group(1)}"
    match = _VUE_SECTION_RE.search(line)
    if match:
        return f"vue_{match.group(1)}"
    return "vue_component"


class HtmlChunker(BaseChunker):
    """Section chunker for .html/.htm/.vue/.svelte files."""

    def chunk(self, relative_path: str, content: str) -> list[Chunk]:
        if not content.strip():
            return []
        lines = self.split_lines(content)
        spans: list[tuple[int, int, str, str]] = []

        section = "template"  # markup outside script/style
        start, kind, name = 1, "template", _SECTION_NAMES["template"]

        def begin(number: int, new_kind: str, new_name: str) -> None:
            nonlocal start, kind, name
            if start <= number - 1 and not self._is_blank(lines, start, number - 1):
                spans.append((start, number - 1, kind, name))
            start, kind, name = number, new_kind, new_name

        for number, line in enumerate(lines, start=1):
            if section != "script" and _SCRIPT_OPEN_RE.search(line):
                section = "script"
                begin(number, "script", _SECTION_NAMES["script"])
            elif section == "template" and _STYLE_OPEN_RE.search(line):
                section = "style"
                begin(number, "style", _SECTION_NAMES["style"])
            elif section == "template" and kind != "template" and _TEMPLATE_OPEN_RE.search(line):
                begin(number, "template", _SECTION_NAMES["template"])
            elif section == "script" and (_ANGULAR_RE.search(line) or _VUE_RE.search(line)):
                begin(number, "framework-construct", construct_name(line))

            if section == "script" and _SCRIPT_CLOSE_RE.search(line):
                section = "template"
                begin(number + 1, "template", _SECTION_NAMES["template"])
            elif section == "style" and _STYLE_CLOSE_RE.search(line):
                section = "template"
                begin(number + 1, "template", _SECTION_NAMES["template"])

        last = len(lines)
        if start <= last and not self._is_blank(lines, start, last):
            spans.append((start, last, kind, name))

        return [
            self._make_chunk(relative_path, lines, s, e, k, n) for s, e, k, n in spans
        ]
