"""Ecosystem mapping between language platforms.

Each (source, target) ecosystem has tables of framework, package and
pattern equivalents. The orchestrator turns the dependencies recorded in
chunk metadata into ``recommendations[]`` and the patterns it detects in
the source into ``warnings[]``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from codeshift.generate.recipes import normalise_language


@dataclass(frozen=True)
class Equivalent:
    equivalent: str
    description: str
    notes: str


@dataclass
class EcosystemMapping:
    frameworks: dict[str, Equivalent] = field(default_factory=dict)
    packages: dict[str, Equivalent] = field(default_factory=dict)
    patterns: dict[str, Equivalent] = field(default_factory=dict)
    summary: str | None = None  # general recommendation for the whole migration
    architecture_warning: str | None = None


# Languages that share an ecosystem table with another name.
_ECOSYSTEM_OF: dict[str, str] = {
    "javascript": "nodejs",
    "typescript": "nodejs",
    "express": "nodejs",
    "nestjs": "nodejs",
    "laravel": "php",
    "python3": "python",
}

MAPPINGS: dict[tuple[str, str], EcosystemMapping] = {
    ("nodejs", "php"): EcosystemMapping(
        frameworks={
            "express": Equivalent(
                "Laravel/Symfony",
                "Web application framework",
                "Refactor Express apps onto Laravel or Symfony routing and middleware",
            ),
            "koa": Equivalent(
                "Laravel/Symfony",
                "Web framework with async support",
                "Convert Koa middleware to Laravel middleware or Symfony event listeners",
            ),
            "fastify": Equivalent(
                "Laravel/Symfony",
                "Fast web framework",
                "Convert Fastify plugins to Laravel service providers or Symfony bundles",
            ),
        },
        packages={
            "axios": Equivalent("Guzzle HTTP", "HTTP client library", "Use the Guzzle HTTP client"),
            "lodash": Equivalent(
                "Laravel Collections / PHP array functions",
                "Utility library",
                "Use Laravel Collections or native PHP array functions",
            ),
            "moment": Equivalent("Carbon", "Date manipulation library", "Use Carbon for dates"),
            "bcrypt": Equivalent(
                "password_hash() / password_verify()",
                "Password hashing",
                "Use PHP's built-in password hashing functions",
            ),
            "jsonwebtoken": Equivalent(
                "firebase/php-jwt", "JWT token handling", "Use firebase/php-jwt for JWT operations"
            ),
            "multer": Equivalent(
                "Laravel file upload / Symfony form handling",
                "File upload handling",
                "Use Laravel file uploads or Symfony form handling",
            ),
            "cors": Equivalent(
                "Laravel CORS middleware / Symfony CORS",
                "Cross-origin resource sharing",
                "Configure CORS through the framework middleware",
            ),
            "helmet": Equivalent(
                "Laravel security headers / Symfony security",
                "Security headers",
                "Use framework security middleware for response headers",
            ),
            "mongoose": Equivalent(
                "Eloquent ORM / Doctrine",
                "Object-document mapper",
                "Model collections as Eloquent or Doctrine entities",
            ),
        },
        patterns={
            "middleware": Equivalent(
                "Laravel Middleware / Symfony Event Listeners",
                "Request/response processing",
                "Convert Express middleware to Laravel middleware or Symfony event listeners",
            ),
            "routing": Equivalent(
                "Laravel Routes / Symfony Routing",
                "URL routing",
                "Convert Express routes to Laravel routes or Symfony routing configuration",
            ),
            "async_await": Equivalent(
                "Fibers (PHP 8.1+) / ReactPHP",
                "Asynchronous programming",
                "Use Fibers or ReactPHP where asynchronous behaviour must be kept",
            ),
            "streams": Equivalent(
                "PHP streams / Laravel Storage",
                "Stream processing",
                "Use PHP streams or Laravel Storage for file operations",
            ),
            "clusters": Equivalent(
                "PHP-FPM / Symfony Process",
                "Process management",
                "Use PHP-FPM for process management or the Symfony Process component",
            ),
        },
        summary="Consider a framework such as Laravel or Symfony for the PHP side",
        architecture_warning=(
            "Node.js event-driven architecture needs significant refactoring "
            "for PHP's request-response model"
        ),
    ),
    ("php", "nodejs"): EcosystemMapping(
        frameworks={
            "laravel": Equivalent(
                "Express.js / NestJS",
                "Web application framework",
                "Refactor Laravel applications onto Express.js or NestJS",
            ),
            "symfony": Equivalent(
                "Express.js / NestJS",
                "Web application framework",
                "Refactor Symfony applications onto Express.js or NestJS",
            ),
        },
        packages={
            "guzzle": Equivalent("axios", "HTTP client library", "Use axios for HTTP requests"),
            "carbon": Equivalent(
                "date-fns / dayjs", "Date manipulation library", "Use date-fns or dayjs for dates"
            ),
            "doctrine": Equivalent(
                "TypeORM / Sequelize", "ORM library", "Use TypeORM or Sequelize for persistence"
            ),
        },
        summary="Consider NestJS when the PHP code relies on dependency injection",
    ),
    ("nodejs", "python"): EcosystemMapping(
        frameworks={
            "express": Equivalent(
                "FastAPI / Flask", "Web application framework", "Port routes to FastAPI or Flask"
            ),
        },
        packages={
            "axios": Equivalent("httpx / requests", "HTTP client library", "Use httpx or requests"),
            "lodash": Equivalent(
                "itertools / toolz", "Utility library", "Use the standard library or toolz"
            ),
            "moment": Equivalent("datetime / pendulum", "Dates", "Use datetime or pendulum"),
            "dotenv": Equivalent("python-dotenv", "Environment files", "Use python-dotenv"),
            "jsonwebtoken": Equivalent("PyJWT", "JWT token handling", "Use PyJWT"),
            "mongoose": Equivalent("pymongo / beanie", "MongoDB access", "Use pymongo or beanie"),
        },
        patterns={
            "async_await": Equivalent(
                "asyncio", "Asynchronous programming", "Map promises onto asyncio coroutines"
            ),
            "middleware": Equivalent(
                "ASGI middleware", "Request processing", "Port middleware to ASGI middleware"
            ),
        },
    ),
    ("python2", "python"): EcosystemMapping(
        packages={
            "urllib2": Equivalent(
                "urllib.request", "HTTP client", "urllib2 was merged into urllib.request"
            ),
            "urlparse": Equivalent("urllib.parse", "URL parsing", "Import from urllib.parse"),
            "ConfigParser": Equivalent("configparser", "INI files", "The module was renamed"),
            "Queue": Equivalent("queue", "Queues", "The module was renamed"),
            "cPickle": Equivalent("pickle", "Serialization", "The C accelerator is automatic"),
            "StringIO": Equivalent("io.StringIO", "In-memory text", "Import from io"),
        },
        patterns={
            "print_statement": Equivalent(
                "print()", "Output", "print is a function; every call needs parentheses"
            ),
            "integer_division": Equivalent(
                "//", "Arithmetic", "'/' is true division; use '//' for floor division"
            ),
        },
    ),
}

# Textual detectors for the pattern keys used in the tables above.
PATTERN_DETECTORS: dict[str, re.Pattern[str]] = {
    "middleware": re.compile(r"\b(?:app|router)\.use\s*\("),
    "routing": re.compile(r"\b(?:app|router)\.(?:get|post|put|delete|patch)\s*\("),
    "async_await": re.compile(r"\basync\s+(?:function\b|\(|\w+\s*=>)|\bawait\s"),
    "streams": re.compile(r"\bcreate(?:Read|Write)Stream\s*\(|\.pipe\s*\("),
    "clusters": re.compile(r"\brequire\(\s*['\"]cluster['\"]\s*\)|\bcluster\.fork\s*\("),
    "print_statement": re.compile(r"^\s*print\s+[^\s(=]", re.MULTILINE),
    "integer_division": re.compile(r"\b\d+\s*/\s*\d+\b"),
}


def _ecosystem(name: str) -> str:
    normalised = normalise_language(name)
    return _ECOSYSTEM_OF.get(normalised, normalised)


def ecosystem_mapping(source: str, target: str) -> EcosystemMapping | None:
    """Return the mapping for the pair, or None when the pair has no table."""
    return MAPPINGS.get((_ecosystem(source), _ecosystem(target)))


def detect_patterns(contents: Iterable[str]) -> list[str]:
    """Pattern keys found in *contents*, in PATTERN_DETECTORS order."""
    texts = list(contents)
    return [
        key
        for key, pattern in PATTERN_DETECTORS.items()
        if any(pattern.search(text) for text in texts)
    ]


def _package_name(dependency: str) -> str:
    # '@scope/pkg/sub' → '@scope/pkg'; 'pkg/sub' → 'pkg'; 'os.path' → 'os'
    if dependency.startswith("@"):
        return "/".join(dependency.split("/")[:2])
    return re.split(r"[/.]", dependency, maxsplit=1)[0]


def recommendations(source: str, target: str, dependencies: Iterable[str]) -> list[str]:
    """Package-level advice for the dependencies seen in the source."""
    mapping = ecosystem_mapping(source, target)
    if mapping is None:
        return []

    result: list[str] = []
    if mapping.summary:
        result.append(mapping.summary)
    seen: set[str] = set()
    for dependency in dependencies:
        name = _package_name(dependency)
        entry = mapping.packages.get(name) or mapping.frameworks.get(name)
        if entry is None or name in seen:
            continue
        seen.add(name)
        result.append(f"Use {entry.equivalent} instead of {name}: {entry.notes}")
    return result


def warnings(source: str, target: str, patterns: Iterable[str]) -> list[str]:
    """Architecture and pattern warnings for the pair."""
    mapping = ecosystem_mapping(source, target)
    if mapping is None:
        return []

    result: list[str] = []
    if mapping.architecture_warning:
        result.append(mapping.architecture_warning)
    for pattern in patterns:
        entry = mapping.patterns.get(pattern)
        if entry is not None:
            result.append(f"{pattern} pattern requires architectural changes: {entry.notes}")
    return result
