"""Per-language chunking records.

Each supported extension maps to one ``LanguageSpec``. The AST chunker reads
the grammar name and node table; the line chunker reads the regexes. Adding
a language means adding a record here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Scope markers for AST node rules.
ANY = "any"
TOP = "top"


@dataclass(frozen=True)
class NodeRule:
    kind: str
    scope: str = ANY


@dataclass(frozen=True)
class LanguageSpec:
    """Chunking capabilities of one language family.

    Attributes:
        name: Family name (``javascript``, ``python`` ...).
        extensions: Lower-case extensions, dot included.
        grammar: tree-sitter-language-pack grammar name, or None when the
            family has no AST path.
        nodes: AST node type → NodeRule.
        block: ``"brace"`` or ``"indent"``; how the line chunker finds the
            end of a construct.
        class_re / interface_re / enum_re / function_re: line-fallback
            openings, matched against the stripped line.
        function_name_re: first group is the function name.
    """

    name: str
    extensions: tuple[str, ...]
    grammar: str | None = None
    nodes: dict[str, NodeRule] = field(default_factory=dict)
    block: str = "brace"
    class_re: re.Pattern | None = None
    interface_re: re.Pattern | None = None
    enum_re: re.Pattern | None = None
    function_re: re.Pattern | None = None
    function_name_re: re.Pattern | None = None


_JS_NODES = {
    "function_declaration": NodeRule("function"),
    "generator_function_declaration": NodeRule("function"),
    "method_definition": NodeRule("function"),
    "class_declaration": NodeRule("class"),
    "abstract_class_declaration": NodeRule("class"),
    "interface_declaration": NodeRule("interface"),
    "enum_declaration": NodeRule("enum"),
    "import_statement": NodeRule("import", TOP),
    "export_statement": NodeRule("export", TOP),
    # Classified as function when bound to an arrow/function expression.
    "lexical_declaration": NodeRule("variable", TOP),
    "variable_declaration": NodeRule("variable", TOP),
}

_JS_FUNCTION_RE = re.compile(
    r"^(export\s+)?(default\s+)?(async\s+)?function\s*\*?\s*\w+"
    r"|^(export\s+)?(const|let|var)\s+\w+\s*=\s*(async\s+)?(\(|function\b|\w+\s*=>)"
    r"|^(export\s+)?\w+\s*:\s*(async\s+)?\("
)
_JS_NAME_RE = re.compile(r"(?:function\s*\*?|const|let|var)\s+(\w+)")

JAVASCRIPT = LanguageSpec(
    name="javascript",
    extensions=(".js", ".jsx", ".mjs", ".cjs"),
    grammar="javascript",
    nodes=_JS_NODES,
    class_re=re.compile(r"^(export\s+)?(default\s+)?class\s+\w+"),
    function_re=_JS_FUNCTION_RE,
    function_name_re=_JS_NAME_RE,
)

TYPESCRIPT = LanguageSpec(
    name="typescript",
    extensions=(".ts",),
    grammar="typescript",
    nodes=_JS_NODES,
    class_re=re.compile(r"^(export\s+)?(default\s+)?(abstract\s+)?class\s+\w+"),
    interface_re=re.compile(r"^(export\s+)?interface\s+\w+"),
    enum_re=re.compile(r"^(export\s+)?(const\s+)?enum\s+\w+"),
    function_re=_JS_FUNCTION_RE,
    function_name_re=_JS_NAME_RE,
)

TSX = LanguageSpec(
    name="tsx",
    extensions=(".tsx",),
    grammar="tsx",
    nodes=_JS_NODES,
    class_re=TYPESCRIPT.class_re,
    interface_re=TYPESCRIPT.interface_re,
    enum_re=TYPESCRIPT.enum_re,
    function_re=_JS_FUNCTION_RE,
    function_name_re=_JS_NAME_RE,
)

PYTHON = LanguageSpec(
    name="python",
    extensions=(".py",),
    grammar="python",
    nodes={
        "function_definition": NodeRule("function"),
        "class_definition": NodeRule("class"),
        "import_statement": NodeRule("import", TOP),
        "import_from_statement": NodeRule("import", TOP),
        # Only when it wraps an assignment.
        "expression_statement": NodeRule("variable", TOP),
    },
    block="indent",
    class_re=re.compile(r"^class\s+\w+"),
    function_re=re.compile(r"^(async\s+)?def\s+\w+\s*\("),
    function_name_re=re.compile(r"def\s+(\w+)"),
)

_JAVA_FUNCTION_NAME_RE = re.compile(r"\w+\s+(\w+)\s*\(")

JAVA = LanguageSpec(
    name="java",
    extensions=(".java",),
    grammar="java",
    nodes={
        "method_declaration": NodeRule("function"),
        "constructor_declaration": NodeRule("function"),
        "class_declaration": NodeRule("class"),
        "record_declaration": NodeRule("class"),
        "interface_declaration": NodeRule("interface"),
        "enum_declaration": NodeRule("enum"),
        "import_declaration": NodeRule("import", TOP),
        "field_declaration": NodeRule("variable"),
    },
    class_re=re.compile(
        r"^(public|private|protected)?\s*(abstract\s+|final\s+|static\s+)*class\s+\w+"
    ),
    interface_re=re.compile(r"^(public|private|protected)?\s*interface\s+\w+"),
    enum_re=re.compile(r"^(public|private|protected)?\s*enum\s+\w+"),
    function_re=re.compile(r"^(public|private|protected)\s+.*\s+\w+\s*\("),
    function_name_re=_JAVA_FUNCTION_NAME_RE,
)

CSHARP = LanguageSpec(
    name="csharp",
    extensions=(".cs",),
    grammar="csharp",
    nodes={
        "method_declaration": NodeRule("function"),
        "constructor_declaration": NodeRule("function"),
        "class_declaration": NodeRule("class"),
        "struct_declaration": NodeRule("class"),
        "record_declaration": NodeRule("class"),
        "interface_declaration": NodeRule("interface"),
        "enum_declaration": NodeRule("enum"),
        "using_directive": NodeRule("import", TOP),
        "field_declaration": NodeRule("variable"),
    },
    class_re=re.compile(
        r"^(public|private|protected|internal)?\s*(static\s+|abstract\s+|sealed\s+|partial\s+)*"
        r"(class|struct)\s+\w+"
    ),
    interface_re=re.compile(r"^(public|private|protected|internal)?\s*interface\s+\w+"),
    enum_re=re.compile(r"^(public|private|protected|internal)?\s*enum\s+\w+"),
    function_re=re.compile(
        r"^(public|private|protected|internal)?\s*(static|virtual|override|abstract)?\s*"
        r"\w+\s+\w+\s*\("
    ),
    function_name_re=_JAVA_FUNCTION_NAME_RE,
)

_C_NODES = {
    "function_definition": NodeRule("function"),
    "struct_specifier": NodeRule("class"),
    "class_specifier": NodeRule("class"),
    "enum_specifier": NodeRule("enum"),
}

C = LanguageSpec(
    name="c",
    extensions=(".c", ".h"),
    grammar="c",
    nodes=_C_NODES,
    class_re=re.compile(r"^(typedef\s+)?struct\s+\w+"),
    enum_re=re.compile(r"^(typedef\s+)?enum\s+\w+"),
    function_re=re.compile(r"^\w+[\s*]+\w+\s*\("),
    function_name_re=re.compile(r"(\w+)\s*\("),
)

CPP = LanguageSpec(
    name="cpp",
    extensions=(".cpp", ".cc", ".cxx", ".hpp"),
    grammar="cpp",
    nodes=_C_NODES,
    class_re=re.compile(r"^(template\s*<.*>\s*)?(class|struct)\s+\w+"),
    enum_re=re.compile(r"^enum\s+(class\s+)?\w+"),
    function_re=re.compile(r"^[\w:<>]+[\s*&]+[\w:~]+\s*\("),
    function_name_re=re.compile(r"([\w~]+)\s*\("),
)

GO = LanguageSpec(
    name="go",
    extensions=(".go",),
    class_re=re.compile(r"^type\s+\w+\s+struct\b"),
    interface_re=re.compile(r"^type\s+\w+\s+interface\b"),
    function_re=re.compile(r"^func\s+(\([^)]*\)\s*)?\w+\s*\("),
    function_name_re=re.compile(r"func\s+(?:\([^)]*\)\s*)?(\w+)"),
)

RUST = LanguageSpec(
    name="rust",
    extensions=(".rs",),
    class_re=re.compile(r"^(pub(\([^)]*\))?\s+)?(struct|impl)\b"),
    interface_re=re.compile(r"^(pub(\([^)]*\))?\s+)?trait\s+\w+"),
    enum_re=re.compile(r"^(pub(\([^)]*\))?\s+)?enum\s+\w+"),
    function_re=re.compile(r"^(pub(\([^)]*\))?\s+)?(async\s+)?fn\s+\w+"),
    function_name_re=re.compile(r"fn\s+(\w+)"),
)

PHP = LanguageSpec(
    name="php",
    extensions=(".php",),
    class_re=re.compile(r"^(abstract\s+|final\s+)?class\s+\w+"),
    interface_re=re.compile(r"^interface\s+\w+"),
    function_re=re.compile(r"^function\s+\w+\s*\("),
    function_name_re=re.compile(r"function\s+(\w+)"),
)

KOTLIN = LanguageSpec(
    name="kotlin",
    extensions=(".kt",),
    class_re=re.compile(r"^(data\s+|open\s+|abstract\s+|sealed\s+)*class\s+\w+"),
    interface_re=re.compile(r"^interface\s+\w+"),
    enum_re=re.compile(r"^enum\s+class\s+\w+"),
    function_re=re.compile(r"^(suspend\s+)?fun\s+"),
    function_name_re=re.compile(r"fun\s+(?:<[^>]*>\s*)?(?:\w+\.)?(\w+)"),
)

SWIFT = LanguageSpec(
    name="swift",
    extensions=(".swift",),
    class_re=re.compile(r"^(public\s+|final\s+|open\s+)*(class|struct)\s+\w+"),
    interface_re=re.compile(r"^(public\s+)?protocol\s+\w+"),
    enum_re=re.compile(r"^(public\s+)?enum\s+\w+"),
    function_re=re.compile(r"^(public\s+|private\s+)?func\s+\w+"),
    function_name_re=re.compile(r"func\s+(\w+)"),
)

SCALA = LanguageSpec(
    name="scala",
    extensions=(".scala",),
    class_re=re.compile(r"^(case\s+)?(class|object)\s+\w+"),
    interface_re=re.compile(r"^trait\s+\w+"),
    function_re=re.compile(r"^def\s+\w+"),
    function_name_re=re.compile(r"def\s+(\w+)"),
)

# Languages with neither grammar nor regexes: whole-file / single-chunk only.
PLAIN = LanguageSpec(
    name="plain",
    extensions=(".rb", ".r", ".m"),
)

# Markup handled by the HTML section chunker.
MARKUP = LanguageSpec(
    name="markup",
    extensions=(".html", ".htm", ".vue", ".svelte"),
)

REGISTRY: tuple[LanguageSpec, ...] = (
    JAVASCRIPT,
    TYPESCRIPT,
    TSX,
    PYTHON,
    JAVA,
    CSHARP,
    C,
    CPP,
    GO,
    RUST,
    PHP,
    KOTLIN,
    SWIFT,
    SCALA,
    PLAIN,
    MARKUP,
)

_BY_EXTENSION: dict[str, LanguageSpec] = {
    ext: spec for spec in REGISTRY for ext in spec.extensions
}

# Extensions the chunker accepts.
CODE_EXTENSIONS: frozenset[str] = frozenset(_BY_EXTENSION)


def language_for(extension: str) -> LanguageSpec | None:
    """Return the LanguageSpec registered for *extension* (case-insensitive)."""
    return _BY_EXTENSION.get(extension.lower())


def is_markup(extension: str) -> bool:
    return extension.lower() in MARKUP.extensions
