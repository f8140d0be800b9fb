"""Migration recipes: pair-specific prompt rules selected by content pattern.

A recipe applies to a (source, target) language pair and carries a regex
that recognises the construct it knows how to migrate. Selection for a set
of chunks picks the first registered recipe for the pair whose pattern
matches the majority of the chunks, else the first registered for the pair.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from codeshift.db.models import Chunk

# ------------------------------------------------------------------
# Language names
# ------------------------------------------------------------------

LANGUAGE_ALIASES: dict[str, str] = {
    "js": "javascript",
    "es6": "javascript",
    "ts": "typescript",
    "py": "python",
    "py2": "python2",
    "python 2": "python2",
    "py3": "python3",
    "python 3": "python3",
    "node": "nodejs",
    "node.js": "nodejs",
    "es": "elasticsearch",
    "elastic": "elasticsearch",
    "postgres": "postgresql",
    "pg": "postgresql",
    "psql": "postgresql",
    "c#": "csharp",
    "cs": "csharp",
    "c++": "cpp",
    "golang": "go",
    "rb": "ruby",
    "rs": "rust",
    "kt": "kotlin",
    "vuejs": "vue",
    "vue.js": "vue",
    "reactjs": "react",
    "angularjs": "angularjs",
}


def normalise_language(name: str) -> str:
    """Lower-case *name* and resolve it through LANGUAGE_ALIASES."""
    key = name.strip().lower()
    return LANGUAGE_ALIASES.get(key, key)


# ------------------------------------------------------------------
# Recipe model
# ------------------------------------------------------------------


@dataclass(frozen=True)
class Recipe:
    """A pair-specific rule block for the Prompt Composer.

    Attributes:
        key: Unique registry key.
        name: Human-readable title.
        description: One-line summary shown by ``codeshift recipes``.
        sources: Normalised source language names the recipe applies to.
        targets: Normalised target language names the recipe applies to.
        pattern: Content regex recognising the construct.
        rules: Prompt fragment listing the migration rules.
        raw_code: The model answers with bare code instead of the JSON schema.
        analytics: Output must pass the analytics structural checklist.
        forbidden: Substrings the output must never contain.
    """

    key: str
    name: str
    description: str
    sources: tuple[str, ...]
    targets: tuple[str, ...]
    pattern: re.Pattern[str] | None
    rules: str
    raw_code: bool = False
    analytics: bool = False
    forbidden: tuple[str, ...] = ()

    def applies_to(self, source: str, target: str) -> bool:
        return (
            normalise_language(source) in self.sources
            and normalise_language(target) in self.targets
        )

    def matches(self, content: str) -> bool:
        return bool(self.pattern and self.pattern.search(content))


GENERIC_RULES = """\
- Preserve the original logic and functionality
- Use idiomatic {target} patterns and syntax
- Handle language-specific differences appropriately
- Add proper error handling for the target language
- Include necessary imports and dependencies
- Maintain the same input/output behavior"""


def generic_rules(target: str) -> str:
    """Rule block used when no recipe applies to the pair."""
    return GENERIC_RULES.format(target=target)


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------


def _text(chunk: Chunk | str) -> str:
    return chunk if isinstance(chunk, str) else chunk.content


class RecipeRegistry:
    """Ordered recipe collection. Registration order is selection order."""

    def __init__(self, recipes: Iterable[Recipe] = ()) -> None:
        self._recipes: dict[str, Recipe] = {}
        for recipe in recipes:
            self.register(recipe)

    def register(self, recipe: Recipe) -> None:
        """Add *recipe*; a recipe with the same key is replaced in place."""
        self._recipes[recipe.key] = recipe

    def get(self, key: str) -> Recipe | None:
        return self._recipes.get(key)

    def all(self) -> list[Recipe]:
        return list(self._recipes.values())

    def available(self, source: str, target: str) -> list[Recipe]:
        return [r for r in self._recipes.values() if r.applies_to(source, target)]

    def identify(
        self, chunks: Sequence[Chunk | str], source: str, target: str
    ) -> Recipe | None:
        """Pick the recipe for *chunks* migrating from *source* to *target*.

        Returns:
            The first applicable recipe whose pattern matches more than half
            of *chunks*; else the first applicable recipe; else None.
        """
        candidates = self.available(source, target)
        if not candidates:
            return None
        texts = [_text(c) for c in chunks]
        for recipe in candidates:
            hits = sum(1 for text in texts if recipe.matches(text))
            if texts and hits * 2 > len(texts):
                return recipe
        return candidates[0]


# ------------------------------------------------------------------
# Built-in recipes
# ------------------------------------------------------------------

_JS_FAMILY_SOURCES = ("javascript", "jsx", "nodejs")
_NO_CREATE_ELEMENT = ("React.createElement",)

_JSX_RE = re.compile(r"</[A-Za-z][\w.-]*>|<[A-Z][\w.]*[\s/>]|className=")

BUILTIN_RECIPES: tuple[Recipe, ...] = (
    # React → Angular
    Recipe(
        key="react-useeffect-to-angular",
        name="React useEffect to Angular Lifecycle",
        description="Convert React useEffect hooks to Angular lifecycle methods",
        sources=("react",),
        targets=("angular",),
        pattern=re.compile(r"useEffect\s*\("),
        rules="""\
- Convert useEffect hooks to appropriate Angular lifecycle methods
- useEffect(() => {}, []) becomes ngOnInit()
- useEffect(() => {}, [dependency]) becomes ngOnChanges() or ngOnInit() with dependency tracking
- useEffect(() => { return cleanup }, []) becomes ngOnDestroy() for cleanup
- Convert React state updates to Angular property binding
- Replace React refs with Angular ViewChild/ElementRef
- Convert React event handlers to Angular event binding""",
    ),
    Recipe(
        key="react-state-to-angular",
        name="React State to Angular Properties",
        description="Convert React useState to Angular component properties",
        sources=("react",),
        targets=("angular",),
        pattern=re.compile(r"useState\s*\("),
        rules="""\
- Convert useState hooks to Angular component properties
- Replace setState calls with direct property assignment
- Use Angular's change detection instead of React's re-rendering
- Handle async state updates with Angular's async pipe or observables
- Replace React's functional state updates with Angular's imperative updates""",
    ),
    # Node.js → PHP
    Recipe(
        key="express-route-to-php",
        name="Express Route to PHP Handler",
        description="Convert Express.js routes to PHP request handlers",
        sources=("nodejs", "express", "javascript"),
        targets=("php", "laravel"),
        pattern=re.compile(r"(?:app|router)\.(?:get|post|put|delete|patch)\s*\("),
        rules="""\
- Convert Express route handlers to PHP functions
- Replace req.params with route parameters or $_GET
- Replace req.body with $_POST or json_decode(file_get_contents('php://input'))
- Replace res.json() with echo json_encode() and proper headers
- Replace res.status() with http_response_code()
- Convert Express middleware to PHP functions
- Replace Express error handling with PHP try-catch blocks""",
    ),
    Recipe(
        key="mongoose-schema-to-php",
        name="Mongoose Schema to PHP Model",
        description="Convert Mongoose schemas to PHP database models",
        sources=("nodejs", "express", "javascript", "mongodb"),
        targets=("php", "laravel"),
        pattern=re.compile(r"mongoose\.Schema\s*\(|new\s+Schema\s*\("),
        rules="""\
- Convert Mongoose schemas to PHP classes
- Replace Mongoose validation with PHP validation
- Convert Mongoose methods to PHP class methods
- Replace Mongoose queries with PDO or Eloquent ORM queries
- Replace Mongoose virtuals with PHP getters/setters
- Handle Mongoose population with joins or separate queries""",
    ),
    # JavaScript → TypeScript
    Recipe(
        key="js-function-to-ts",
        name="JavaScript Function to TypeScript",
        description="Convert JavaScript functions to TypeScript with proper typing",
        sources=_JS_FAMILY_SOURCES,
        targets=("typescript", "tsx"),
        pattern=re.compile(r"function\s+\w+\s*\(|=>"),
        rules="""\
- Add type annotations to all function parameters
- Add return type annotations to all functions
- Prefer specific types over 'any'
- Add interface definitions for object parameters
- Use TypeScript optional syntax for optional parameters
- Keep JSX markup exactly as written""",
        forbidden=_NO_CREATE_ELEMENT,
    ),
    Recipe(
        key="js-class-to-ts",
        name="JavaScript Class to TypeScript",
        description="Convert JavaScript classes to TypeScript with proper typing",
        sources=_JS_FAMILY_SOURCES,
        targets=("typescript", "tsx"),
        pattern=re.compile(r"class\s+\w+"),
        rules="""\
- Declare and type every class property
- Add access modifiers (public, private, protected) where appropriate
- Add parameter and return type annotations to all methods
- Handle inheritance with TypeScript extends/implements syntax
- Keep JSX markup exactly as written""",
        forbidden=_NO_CREATE_ELEMENT,
    ),
    Recipe(
        key="jsx-component-to-tsx",
        name="JSX Component to TSX",
        description="Convert React JSX components to typed TSX components",
        sources=("jsx", "javascript", "react"),
        targets=("tsx", "typescript"),
        pattern=_JSX_RE,
        rules="""\
- Define a Props interface for every component and annotate the component with it
- Type hooks explicitly (useState<T>, useRef<T>) where inference is not enough
- Type event handlers with React event types (React.ChangeEvent, React.MouseEvent)
- Keep the JSX markup unchanged; never rewrite it with React.createElement""",
        forbidden=_NO_CREATE_ELEMENT,
    ),
    # TypeScript → JavaScript
    Recipe(
        key="ts-module-to-js",
        name="TypeScript Module to JavaScript",
        description="Strip TypeScript types while keeping runtime behaviour and JSX",
        sources=("typescript",),
        targets=("javascript", "jsx"),
        pattern=re.compile(
            r"\binterface\s+\w+|\btype\s+\w+\s*=|:\s*(?:string|number|boolean|any|void|unknown)\b"
        ),
        rules="""\
- Remove type annotations, interfaces, type aliases, generics and access modifiers
- Remove 'as' casts and non-null assertions (!) without changing runtime behaviour
- Convert enums to frozen plain objects
- Keep every statement, identifier and comment otherwise unchanged
- Keep JSX markup exactly as written; never use React.createElement""",
        raw_code=True,
        forbidden=_NO_CREATE_ELEMENT,
    ),
    Recipe(
        key="tsx-component-to-jsx",
        name="TSX Component to JSX",
        description="Strip types from TSX components while preserving JSX",
        sources=("tsx", "typescript"),
        targets=("jsx", "javascript"),
        pattern=_JSX_RE,
        rules="""\
- Remove Props interfaces, inline prop types and generic parameters
- Keep the destructured props and default values
- Keep the JSX markup character for character; never use React.createElement
- Keep hooks, effects and event handlers unchanged apart from type removal""",
        raw_code=True,
        forbidden=_NO_CREATE_ELEMENT,
    ),
    # Vue → React
    Recipe(
        key="vue-component-to-react",
        name="Vue Component to React",
        description="Convert Vue.js components to React components",
        sources=("vue",),
        targets=("react", "jsx", "tsx"),
        pattern=re.compile(r"export\s+default\s*\{"),
        rules="""\
- Convert Vue template syntax to JSX
- Convert Vue data() to React useState hooks
- Convert Vue methods to functions and computed properties to useMemo
- Convert Vue lifecycle hooks to useEffect
- Convert Vue props to a React props interface and Vue events to callbacks
- Replace Vue directives (v-if, v-for, v-model) with React patterns""",
        forbidden=_NO_CREATE_ELEMENT,
    ),
    # Python → Java
    Recipe(
        key="python-function-to-java",
        name="Python Function to Java Method",
        description="Convert Python functions to Java methods",
        sources=("python", "python3"),
        targets=("java",),
        pattern=re.compile(r"def\s+\w+\s*\("),
        rules="""\
- Convert Python functions to Java methods with proper access modifiers
- Declare types for all parameters and return values
- Replace Python exceptions with Java exceptions
- Convert list comprehensions to Java streams
- Replace dictionaries with Java Maps and None with null
- Convert Python string formatting to String.format()""",
    ),
    # Python 2 → Python 3
    Recipe(
        key="python2-print-to-python3",
        name="Python 2 Print to Python 3 Print Function",
        description="Convert Python 2 print statements to the print() function",
        sources=("python2",),
        targets=("python3", "python"),
        pattern=re.compile(r"\bprint\s+[^\s(=]"),
        rules="""\
- Convert every print statement to a print() call
- Translate 'print x,' (trailing comma) to print(x, end=" ")
- Translate 'print >>f, x' to print(x, file=f)
- Preserve the original output format exactly""",
    ),
    Recipe(
        key="python2-division-to-python3",
        name="Python 2 Division to Python 3 Division",
        description="Keep Python 2 integer-division semantics under Python 3",
        sources=("python2",),
        targets=("python3", "python"),
        pattern=re.compile(r"\w+\s*/\s*\w+"),
        rules="""\
- '/' between integers is true division in Python 3
- Use '//' wherever the Python 2 code relied on integer division
- Keep float divisions unchanged""",
    ),
    Recipe(
        key="python2-unicode-to-python3",
        name="Python 2 Unicode to Python 3 String Handling",
        description="Convert Python 2 unicode handling to Python 3 str/bytes",
        sources=("python2",),
        targets=("python3", "python"),
        pattern=re.compile(r"\bunicode\s*\(|\bu['\"]|\bbasestring\b"),
        rules="""\
- Python 3 strings are unicode by default: drop unicode() calls and u'' prefixes
- Replace basestring with str
- Make encode/decode calls explicit at bytes/str boundaries""",
    ),
    Recipe(
        key="python2-xrange-to-python3",
        name="Python 2 xrange/iterators to Python 3",
        description="Convert xrange and dict iterator methods to Python 3 builtins",
        sources=("python2",),
        targets=("python3", "python"),
        pattern=re.compile(r"\bxrange\s*\(|\.iter(?:items|keys|values)\s*\(|\.has_key\s*\("),
        rules="""\
- Replace xrange() with range()
- Replace dict.iteritems()/iterkeys()/itervalues() with items()/keys()/values()
- Replace dict.has_key(k) with 'k in dict'
- Wrap map()/filter()/zip() results in list() where a list is required""",
    ),
    # Search index → relational analytics
    Recipe(
        key="elasticsearch-to-relational-analytics",
        name="Elasticsearch to Relational Analytics Schema",
        description="Redesign search-index mappings and queries as a star-schema warehouse",
        sources=("elasticsearch", "opensearch"),
        targets=("postgresql", "mysql", "sqlite", "sql", "relational"),
        pattern=re.compile(r'"mappings"|"aggs"|"aggregations"|_search|"query"\s*:'),
        rules="""\
- Model every index as dimension tables plus fact tables (star schema)
- Translate aggregations into materialized views
- Translate scripted fields and ingest pipelines into SQL functions and triggers
- Create indexes for every filter and join column
- Partition large fact tables by time
- Never collapse the index into one denormalized table""",
        analytics=True,
    ),
)

REGISTRY = RecipeRegistry(BUILTIN_RECIPES)


def register_recipe(recipe: Recipe) -> None:
    """Register *recipe* in the default registry."""
    REGISTRY.register(recipe)


def all_recipes() -> list[Recipe]:
    return REGISTRY.all()


def available_recipes(source: str, target: str) -> list[Recipe]:
    """Recipes of the default registry applicable to the pair."""
    return REGISTRY.available(source, target)


def identify_recipe(
    chunks: Sequence[Chunk | str], source: str, target: str
) -> Recipe | None:
    """Select the recipe for *chunks* from the default registry."""
    return REGISTRY.identify(chunks, source, target)
