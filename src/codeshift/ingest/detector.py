"""Two-level language detection: framework (level 1) and syntax (level 2)."""

from __future__ import annotations

import posixpath
from dataclasses import asdict, dataclass

from codeshift.ingest.detector_rules import (
    EXTENSION_LANGUAGES,
    EXTENSION_SYNTAX,
    FRAMEWORK_DISPLAY_NAMES,
    FRAMEWORK_RULES,
    SUPPORTED_LANGUAGES,
    SYNTAX_DISPLAY_NAMES,
    SYNTAX_RULES,
    SYNTAX_TAGS,
    DetectionRule,
)

_THRESHOLD = 0.3
_FRAMEWORK_FALLBACK_CONFIDENCE = 0.8
_SYNTAX_FALLBACK_CONFIDENCE = 0.9
_DETECTED = 0.5


@dataclass(frozen=True)
class DetectionResult:
    framework: str | None
    framework_confidence: float
    syntax: str | None
    syntax_confidence: float
    extension: str
    display_name: str
    tag: str
    is_framework_detected: bool
    is_syntax_detected: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LanguageOption:
    value: str
    label: str
    tag: str


def file_extension(filename: str) -> str:
    """Lower-case extension of *filename* including the dot, or ``""``."""
    return posixpath.splitext(filename.lower())[1]


class LanguageDetector:
    """Score a file against the framework and syntax rule tables.

    Framework score per rule: ``0.3·ext + 0.7·fraction``; when at least one
    pattern matched, the score is weighted by ``priority / 100``. Syntax
    score: ``0.4·ext + 0.6·fraction``. Below 0.3 both levels fall back to
    the extension (0.8 and 0.9 confidence respectively).
    """

    def __init__(
        self,
        framework_rules: tuple[DetectionRule, ...] = FRAMEWORK_RULES,
        syntax_rules: tuple[DetectionRule, ...] = SYNTAX_RULES,
    ) -> None:
        self._framework_rules = framework_rules
        self._syntax_rules = syntax_rules

    def detect(self, filename: str, content: str) -> DetectionResult:
        extension = file_extension(filename)
        framework, framework_conf = self.detect_framework(content, extension)
        syntax, syntax_conf = self.detect_syntax(content, extension)
        return DetectionResult(
            framework=framework,
            framework_confidence=framework_conf,
            syntax=syntax,
            syntax_confidence=syntax_conf,
            extension=extension,
            display_name=display_name(framework, syntax),
            tag=syntax_tag(syntax, extension),
            is_framework_detected=framework_conf > _DETECTED,
            is_syntax_detected=syntax_conf > _DETECTED,
        )

    def detect_framework(self, content: str, extension: str) -> tuple[str | None, float]:
        best: tuple[str | None, float] = (None, 0.0)
        for rule in self._framework_rules:
            confidence = 0.3 if extension in rule.extensions else 0.0
            matched = _matched(rule, content)
            if matched:
                confidence += matched / len(rule.patterns) * 0.7
                confidence *= rule.priority / 100
            if confidence > best[1]:
                best = (rule.name, confidence)

        if best[1] < _THRESHOLD:
            base = EXTENSION_LANGUAGES.get(extension)
            if base:
                best = (base, _FRAMEWORK_FALLBACK_CONFIDENCE)
        return best

    def detect_syntax(self, content: str, extension: str) -> tuple[str | None, float]:
        best: tuple[str | None, float] = (None, 0.0)
        for rule in self._syntax_rules:
            confidence = 0.4 if extension in rule.extensions else 0.0
            matched = _matched(rule, content)
            if matched:
                confidence += matched / len(rule.patterns) * 0.6
            if confidence > best[1]:
                best = (rule.name, confidence)

        if best[1] < _THRESHOLD:
            fallback = EXTENSION_SYNTAX.get(extension)
            if fallback:
                best = (fallback, _SYNTAX_FALLBACK_CONFIDENCE)
        return best

    def validate_file_language_match(self, filename: str, content: str, expected: str) -> bool:
        """True when the detected framework or syntax is *expected*."""
        result = self.detect(filename, content)
        if expected in (result.framework, result.syntax):
            return True
        framework_name = framework_display_name(result.framework) or ""
        return framework_name.lower() == expected.lower()


def _matched(rule: DetectionRule, content: str) -> int:
    return sum(1 for pattern in rule.patterns if pattern.search(content))


def framework_display_name(framework: str | None) -> str | None:
    if framework is None:
        return None
    return FRAMEWORK_DISPLAY_NAMES.get(framework, framework)


def syntax_display_name(syntax: str | None) -> str | None:
    if syntax is None:
        return None
    return SYNTAX_DISPLAY_NAMES.get(syntax, syntax)


def display_name(framework: str | None, syntax: str | None) -> str:
    if not framework and not syntax:
        return "Unknown"
    if framework == "react":
        if syntax == "tsx":
            return "react-ts"
        if syntax == "jsx":
            return "react-js"
    if framework and framework != syntax:
        return framework_display_name(framework) or framework
    return syntax_display_name(syntax) or "Unknown"


def syntax_tag(syntax: str | None, extension: str) -> str:
    if syntax in SYNTAX_TAGS:
        return SYNTAX_TAGS[syntax]
    return extension[1:].upper()


def supported_languages() -> list[LanguageOption]:
    return [LanguageOption(*option) for option in SUPPORTED_LANGUAGES]
