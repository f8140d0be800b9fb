"""AST chunker built on tree-sitter grammars from tree-sitter-language-pack.

The tree is walked depth-first with an explicit stack, so deep files never
hit the recursion limit and no parent references are kept after a visit.
"""

from __future__ import annotations

import functools
import logging

from tree_sitter_language_pack import get_parser

from codeshift.db.models import Chunk
from codeshift.errors import ParseError
from codeshift.ingest.base import BaseChunker
from codeshift.ingest.languages import TOP, LanguageSpec

logger = logging.getLogger(__name__)

_FUNCTION_VALUES = frozenset(
    ["arrow_function", "function_expression", "function", "generator_function"]
)
_DECLARATORS = frozenset(["variable_declarator"])
_IDENTIFIERS = frozenset(
    [
        "identifier",
        "type_identifier",
        "property_identifier",
        "field_identifier",
        "dotted_name",
        "scoped_identifier",
        "qualified_name",
        "destructor_name",
        "operator_name",
    ]
)
_CONSTRUCT_KINDS = frozenset(["class", "interface", "enum"])


@functools.lru_cache(maxsize=None)
def _parser(grammar: str):
    return get_parser(grammar)


def _text(node) -> str:
    raw = node.text
    return raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)


class AstChunker(BaseChunker):
    """Emit a chunk for every AST node listed in the language's node table.

    Raises:
        ParseError: From ``chunk()`` when the grammar cannot be loaded or the
            parser fails. Callers fall back to the line chunker.
    """

    def __init__(self, spec: LanguageSpec) -> None:
        if spec.grammar is None:
            raise ValueError(f"Language '{spec.name}' has no grammar.")
        self.spec = spec

    def chunk(self, relative_path: str, content: str) -> list[Chunk]:
        if not content.strip():
            return []
        try:
            parser = _parser(self.spec.grammar)
            tree = parser.parse(content.encode("utf-8"))
        except Exception as exc:  # grammar loading or native parser failure
            raise ParseError(
                f"Failed to parse {relative_path} with grammar '{self.spec.grammar}': {exc}"
            ) from exc

        root = tree.root_node
        if root.has_error:
            logger.debug("Syntax errors in %s; keeping recoverable nodes", relative_path)

        lines = self.split_lines(content)
        chunks: list[Chunk] = []
        seen: set[tuple[int, int, str, str]] = set()

        # Stack of (node, depth); depth 1 = direct child of the program root.
        stack = [(child, 1) for child in reversed(root.children)]
        while stack:
            node, depth = stack.pop()
            classified = self._classify(node, depth)
            if classified is not None:
                kind, name = classified
                start, end = _line_span(node, len(lines))
                key = (start, end, kind, name)
                if key not in seen:
                    seen.add(key)
                    chunks.append(
                        self._make_chunk(
                            relative_path, lines, start, end, kind, name, node.type
                        )
                    )
            stack.extend((child, depth + 1) for child in reversed(node.children))
        return chunks

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _classify(self, node, depth: int) -> tuple[str, str] | None:
        rule = self.spec.nodes.get(node.type)
        node_type = node.type

        # `const f = () => ...` is a function at any depth.
        if node_type in ("lexical_declaration", "variable_declaration") and rule is not None:
            declarator = _first_named(node, _DECLARATORS)
            value = declarator.child_by_field_name("value") if declarator else None
            if value is not None and value.type in _FUNCTION_VALUES:
                return "function", _declarator_name(declarator)
            if depth != 1:
                return None
            return "variable", _declarator_name(declarator) if declarator else "anonymous"

        if rule is None:
            return None
        if rule.scope == TOP and depth != 1:
            return None

        if node_type == "expression_statement":
            assignment = _first_named(node, frozenset(["assignment"]))
            if assignment is None:
                return None
            target = assignment.child_by_field_name("left")
            return rule.kind, _text(target) if target is not None else "anonymous"

        if node_type in ("struct_specifier", "class_specifier", "enum_specifier"):
            # Only definitions with a body; `struct foo *p;` is a reference.
            if node.child_by_field_name("body") is None:
                return None

        return rule.kind, self._name(node, rule.kind)

    def _name(self, node, kind: str) -> str:
        default = "UnknownConstruct" if kind in _CONSTRUCT_KINDS else "anonymous"
        node_type = node.type

        if node_type == "import_statement":
            source = node.child_by_field_name("source")
            if source is not None:
                return _text(source).strip("'\"`")
            name = node.child_by_field_name("name")
            return _text(name) if name is not None else default
        if node_type == "import_from_statement":
            module = node.child_by_field_name("module_name")
            return _text(module) if module is not None else default
        if node_type == "export_statement":
            declaration = node.child_by_field_name("declaration")
            if declaration is not None:
                declarator = _first_named(declaration, _DECLARATORS)
                if declarator is not None:
                    return _declarator_name(declarator)
                name = declaration.child_by_field_name("name")
                if name is not None:
                    return _text(name)
            return "default" if any(c.type == "default" for c in node.children) else default
        if node_type == "field_declaration":
            declarator = node.child_by_field_name("declarator") or _find(
                node, "variable_declarator"
            )
            if declarator is None:
                return default
            name = declarator.child_by_field_name("name")
            return _text(name) if name is not None else _first_identifier(declarator) or default

        name = node.child_by_field_name("name")
        if name is not None:
            return _text(name)
        declarator = node.child_by_field_name("declarator")
        if declarator is not None:
            # C/C++: function_definition → function_declarator → identifier
            found = _first_identifier(declarator)
            if found:
                return found
        return _first_identifier(node, max_depth=2) or default


# ------------------------------------------------------------------
# Node helpers
# ------------------------------------------------------------------


def _line_span(node, line_count: int) -> tuple[int, int]:
    start_row, end_row = node.start_point[0], node.end_point[0]
    # A node ending at column 0 of a line does not include that line.
    if node.end_point[1] == 0 and end_row > start_row:
        end_row -= 1
    start = min(start_row + 1, max(line_count, 1))
    end = max(start, min(end_row + 1, line_count))
    return start, end


def _first_named(node, types: frozenset[str]):
    for child in node.named_children:
        if child.type in types:
            return child
    return None


def _declarator_name(declarator) -> str:
    name = declarator.child_by_field_name("name")
    if name is None:
        name = declarator.child_by_field_name("id")
    return _text(name) if name is not None else "anonymous"


def _first_identifier(node, max_depth: int = 6) -> str | None:
    """Breadth-first search for the first identifier-like descendant."""
    queue = [(node, 0)]
    while queue:
        current, depth = queue.pop(0)
        if current.type in _IDENTIFIERS:
            return _text(current)
        if depth < max_depth:
            queue.extend((child, depth + 1) for child in current.named_children)
    return None


def _find(node, node_type: str, max_depth: int = 3):
    queue = [(node, 0)]
    while queue:
        current, depth = queue.pop(0)
        if current.type == node_type:
            return current
        if depth < max_depth:
            queue.extend((child, depth + 1) for child in current.named_children)
    return None
