"""Response parser: turn arbitrary LLM output into migrated code.

All model output is treated as untrusted text. Parsing order:

  1. First fenced ```json block parsed as an object
  2. Double-encoded JSON: a JSON string whose value is itself a fenced block
  3. The whole (sanitized) response as JSON, then the first balanced ``{…}``
  4. The first fenced code block of any language, as raw code
  5. The whole response, as raw code

A parsed object is accepted when it carries ``migratedCode`` or ``files``.
If ``migratedCode`` itself holds a JSON object with a ``migratedCode`` key,
that inner object wins (one level only).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from codeshift.errors import GenerationFatal

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json|JSON)[ \t]*\r?\n(.*?)\r?\n?```", re.DOTALL)
_ANY_FENCE_RE = re.compile(r"```[\w+#.-]*[ \t]*\r?\n(.*?)\r?\n?```", re.DOTALL)
_ACCEPTED_KEYS = ("migratedCode", "files")


@dataclass
class ParsedResponse:
    """Normalised model answer.

    Attributes:
        code: Primary migrated code.
        method: Which parsing step succeeded ('json_fence', 'double_encoded',
            'json', 'code_fence' or 'raw').
    """

    code: str
    method: str
    summary: str = ""
    changes: list[str] = field(default_factory=list)
    files: list[dict[str, str]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def structured(self) -> bool:
        return self.method in ("json_fence", "double_encoded", "json")


# ------------------------------------------------------------------
# Sanitization helpers
# ------------------------------------------------------------------


def strip_reasoning(raw: str) -> str:
    """Remove ``<think>``/``<reasoning>``/``<thought>`` blocks, closed or not."""
    if not raw:
        return ""
    text = raw
    for tag in ("think", "reasoning", "thought"):
        text = re.sub(rf"<{tag}>.*?</{tag}>", "", text, flags=re.DOTALL | re.IGNORECASE)
    for tag in ("think", "reasoning", "thought"):
        text = re.sub(rf"<{tag}>.*$", "", text, flags=re.DOTALL | re.IGNORECASE)
    return text.strip()


def extract_json_object(text: str) -> str | None:
    """Extract the first balanced ``{…}`` substring using character scanning.

    Braces inside JSON string literals are ignored. Returns None when no
    balanced object exists.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        ch = text[i]

        if escape_next:
            escape_next = False
            continue
        if ch == "\\":
            if in_string:
                escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def decode_newlines(code: str) -> str:
    """Normalise line endings and undo one level of newline escaping.

    Escaped ``\\n`` / ``\\r\\n`` sequences are decoded only when the text has
    no real line breaks, so string literals such as ``"a\\nb"`` inside
    multi-line code survive untouched.
    """
    code = code.replace("\r\n", "\n")
    if "\n" not in code and "\\n" in code:
        code = code.replace("\\r\\n", "\n").replace("\\n", "\n")
    return code


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _accepted(data: dict[str, Any] | None) -> bool:
    return data is not None and any(key in data for key in _ACCEPTED_KEYS)


def _unwrap_inner(data: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """Replace *data* by the object nested in its ``migratedCode``, once."""
    code = data.get("migratedCode")
    if not isinstance(code, str):
        return data, False
    stripped = code.strip()
    fenced = _JSON_FENCE_RE.search(stripped)
    candidate = fenced.group(1) if fenced else stripped
    if not candidate.startswith("{"):
        return data, False
    inner = _loads_object(candidate)
    if inner is None or ("migratedCode" not in inner and "files" not in inner):
        return data, False
    merged = {**data, **inner}
    if "migratedCode" not in inner:
        merged.pop("migratedCode", None)
    return merged, True


# ------------------------------------------------------------------
# Public entry point
# ------------------------------------------------------------------


def parse_response(raw: str) -> ParsedResponse:
    """Parse one model answer.

    Raises:
        GenerationFatal: kind='empty' when no code can be recovered, or
            kind='invalid' when the model answered with an error object.
    """
    text = strip_reasoning(raw or "")
    if not text:
        raise GenerationFatal("LLM response is empty", kind="empty")

    data, method = _parse_structured(text)
    if data is not None:
        data, unwrapped = _unwrap_inner(data)
        if unwrapped:
            logger.debug("Unwrapped JSON nested in migratedCode")
        return _from_object(data, method)

    error = _loads_object(text)
    if error is not None and "error" in error:
        reason = error.get("reason") or error.get("error")
        raise GenerationFatal(f"Model declined the migration: {reason}", kind="invalid")

    fenced = _ANY_FENCE_RE.search(text)
    if fenced:
        return _from_code(fenced.group(1), "code_fence")
    return _from_code(text, "raw")


def _parse_structured(text: str) -> tuple[dict[str, Any] | None, str]:
    fenced = _JSON_FENCE_RE.search(text)
    if fenced:
        data = _loads_object(fenced.group(1))
        if _accepted(data):
            return data, "json_fence"

    try:
        decoded = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        decoded = None

    if isinstance(decoded, str):
        inner = _JSON_FENCE_RE.search(decoded.strip())
        data = _loads_object(inner.group(1) if inner else decoded.strip())
        if _accepted(data):
            return data, "double_encoded"
    elif isinstance(decoded, dict) and _accepted(decoded):
        return decoded, "json"

    extracted = extract_json_object(text)
    if extracted:
        data = _loads_object(extracted)
        if _accepted(data):
            return data, "json"
    return None, ""


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) if not isinstance(v, dict) else _describe(v) for v in value]
    return [str(value)]


def _describe(item: dict[str, Any]) -> str:
    # Models sometimes answer with {"message": ..., "recommendation": ...} objects.
    for key in ("message", "recommendation", "description", "text"):
        if isinstance(item.get(key), str):
            return item[key]
    return json.dumps(item, sort_keys=True)


def _from_object(data: dict[str, Any], method: str) -> ParsedResponse:
    files: list[dict[str, str]] = []
    for entry in data.get("files") or []:
        if not isinstance(entry, dict):
            continue
        content = entry.get("content")
        if not isinstance(content, str):
            continue
        files.append(
            {
                "filename": str(entry.get("filename") or ""),
                "migratedFilename": str(entry.get("migratedFilename") or ""),
                "content": decode_newlines(content),
            }
        )

    code = data.get("migratedCode")
    if not isinstance(code, str) or not code.strip():
        code = files[0]["content"] if files else ""
    code = decode_newlines(code)
    if not code.strip():
        raise GenerationFatal("LLM response contains no migrated code", kind="empty")

    return ParsedResponse(
        code=code,
        method=method,
        summary=str(data.get("summary") or ""),
        changes=_string_list(data.get("changes")),
        files=files,
        warnings=_string_list(data.get("warnings")),
        recommendations=_string_list(data.get("recommendations")),
    )


def _from_code(code: str, method: str) -> ParsedResponse:
    code = decode_newlines(code)
    if not code.strip():
        raise GenerationFatal("LLM response contains no code", kind="empty")
    return ParsedResponse(code=code, method=method)
