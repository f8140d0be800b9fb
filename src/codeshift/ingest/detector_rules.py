"""Framework and syntax detection rules for the Language Detector.

Order matters: on equal scores the earlier rule wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class DetectionRule:
    name: str
    extensions: tuple[str, ...]
    patterns: tuple[re.Pattern, ...]
    priority: int = 100


def _rule(name: str, extensions: list[str], patterns: list[str], priority: int = 100,
          flags: int = 0) -> DetectionRule:
    return DetectionRule(
        name=name,
        extensions=tuple(extensions),
        patterns=tuple(re.compile(p, flags) for p in patterns),
        priority=priority,
    )


_DB_EXTENSIONS = [".sql", ".js", ".py", ".java", ".php", ".rb", ".go", ".cs"]

FRAMEWORK_RULES: tuple[DetectionRule, ...] = (
    _rule("react", [".jsx", ".tsx"], [
        r"import\s+React\s+from\s+['\"]react['\"]",
        r"import\s+.*from\s+['\"]react['\"]",
        r"useState\s*\(",
        r"useEffect\s*\(",
        r"React\.Component",
        r"className=",
        r"onClick=",
        r"onChange=",
        r"<[A-Z]\w+[^>]*>",
    ], 90),
    _rule("vue", [".vue"], [
        r"<template>",
        r"<script>",
        r"<style\s+scoped>",
        r"import\s+.*from\s+['\"]vue['\"]",
        r"v-model=",
        r"v-if=",
        r"v-for=",
        r"@click=",
        r"setup\s*\(\s*\)\s*\{",
        r"ref\s*\(",
        r"computed\s*\(",
        r"onMounted\s*\(",
    ], 95),
    _rule("angular", [".ts"], [
        r"@Component\s*\(",
        r"@Injectable\s*\(",
        r"@Directive\s*\(",
        r"@NgModule\s*\(",
        r"import.*from\s+['\"]@angular/core['\"]",
        r"ngOnInit\s*\(",
        r"ngOnDestroy\s*\(",
        r"\*ngFor\s*=",
        r"\*ngIf\s*=",
        r"export\s+class\s+\w+Component",
    ], 85),
    _rule("angularjs", [".js", ".html"], [
        r"ng-app|ng-controller|ng-model|ng-repeat|ng-if|ng-show|ng-hide|ng-click",
        r"angular\.module\s*\(",
        r"\.controller\s*\(",
        r"\.service\s*\(",
        r"\.directive\s*\(",
        r"\$scope\s*[=:]",
        r"\$http\s*\.",
        r"(?i:angular\.js|angular\.min\.js)",
    ], 80),
    _rule("jquery", [".js"], [
        r"\$\(document\)\.ready",
        r"\$\(['\"][^'\"]*['\"]\)",
        r"\$\(this\)",
        r"\.ready\s*\(|\.ajax\s*\(|\.fadeIn\s*\(|\.slideUp\s*\(",
        r"(?i:jquery\.js|jquery\.min\.js|cdn\.jquery)",
    ], 70),
    _rule("wordpress", [".php"], [
        r"wp_",
        r"get_header\(\)|get_footer\(\)|get_sidebar\(\)",
        r"the_content\(\)|the_title\(\)|the_excerpt\(\)",
        r"add_action\s*\(|add_filter\s*\(",
        r"wp-config\.php|wp-content|wp-includes",
        r"WP_Query|wp_query",
        r"\$wpdb",
    ], 90),
    _rule("laravel", [".php"], [
        r"use\s+Illuminate\\",
        r"Artisan::|Route::|Schema::",
        r"class\s+\w+\s+extends\s+(Controller|Model|Middleware)",
        r"@extends\s*\(|@section\s*\(|@yield\s*\(",
        r"composer\.json|artisan",
        r"App\\|config/",
    ], 85),
    _rule("nodejs", [".js"], [
        r"require\s*\(['\"][\w\-/]+['\"]\)",
        r"module\.exports\s*=",
        r"process\.env",
        r"__dirname|__filename",
        r"npm\s+install|package\.json",
        r"const\s+\w+\s*=\s*require",
    ], 75),
    _rule("express", [".js"], [
        r"require\s*\(['\"]express['\"]\)",
        r"app\.get\s*\(|app\.post\s*\(|app\.put\s*\(|app\.delete\s*\(",
        r"res\.json\s*\(|res\.send\s*\(|res\.render\s*\(",
        r"app\.listen\s*\(",
        r"express\(\)",
        r"(?i:middleware)",
    ], 80),
    _rule("nestjs", [".ts"], [
        r"@Controller\s*\(|@Injectable\s*\(|@Module\s*\(",
        r"import\s*\{[^}]*\}\s*from\s*['\"]@nestjs",
        r"@Get\s*\(|@Post\s*\(|@Put\s*\(|@Delete\s*\(",
        r"NestFactory\.create",
        r"nest\s+new|nest\s+generate",
    ], 85),
    _rule("rails", [".rb"], [
        r"class\s+\w+\s*<\s*ApplicationController",
        r"class\s+\w+\s*<\s*ActiveRecord::Base",
        r"class\s+\w+\s*<\s*ApplicationRecord",
        r"Rails\.application",
        r"config/routes\.rb|config/application\.rb",
        r"ActiveRecord::|ActionController::|ActionView::",
        r"has_many|belongs_to|has_one",
        r"before_action|after_action",
        r"render\s+(json|xml|html)",
        r"redirect_to",
        r"params\[",
        r"flash\[",
    ], 90),
    _rule("django", [".py"], [
        r"from\s+django",
        r"import\s+django",
        r"django\.conf|django\.urls",
        r"class\s+\w+\(models\.Model\)",
        r"class\s+\w+\(forms\.Form\)",
        r"class\s+\w+\(View\)",
        r"HttpResponse|JsonResponse",
        r"render\s*\(",
        r"redirect\s*\(",
        r"settings\.py|urls\.py|models\.py",
        r"@login_required|@csrf_exempt",
    ], 85),
    _rule("flask", [".py"], [
        r"from\s+flask",
        r"import\s+flask",
        r"Flask\s*\(__name__\)",
        r"@app\.route",
        r"request\.form|request\.json",
        r"render_template\s*\(",
        r"jsonify\s*\(",
        r"redirect\s*\(",
        r"url_for\s*\(",
        r"session\[",
    ], 80),
    _rule("springboot", [".java"], [
        r"@SpringBootApplication",
        r"@RestController|@Controller",
        r"@Service|@Repository|@Component",
        r"@Autowired|@Inject",
        r"@RequestMapping|@GetMapping|@PostMapping|@PutMapping|@DeleteMapping",
        r"spring-boot-starter",
        r"SpringApplication\.run",
        r"@EnableAutoConfiguration",
        r"@ComponentScan",
        r"application\.properties|application\.yml",
    ], 90),
    _rule("spring", [".java"], [
        r"@Controller|@RestController",
        r"@Service|@Repository|@Component",
        r"@Autowired|@Qualifier",
        r"@RequestMapping|@ResponseBody",
        r"ApplicationContext|BeanFactory",
        r"org\.springframework",
        r"@Configuration|@Bean",
        r"@Transactional",
        r"DispatcherServlet",
    ], 85),
    _rule("gin", [".go"], [
        r"gin\.Default\(\)|gin\.New\(\)",
        r"router\.GET|router\.POST|router\.PUT|router\.DELETE",
        r"gin\.Context",
        r"c\.JSON\(|c\.String\(|c\.HTML\(",
        r"gin\.H\{",
        r"github\.com/gin-gonic/gin",
        r"router\.Use\(",
        r"gin\.Recovery\(\)|gin\.Logger\(\)",
    ], 85),
    _rule("echo", [".go"], [
        r"echo\.New\(\)",
        r"e\.GET|e\.POST|e\.PUT|e\.DELETE",
        r"echo\.Context",
        r"c\.JSON\(|c\.String\(|c\.HTML\(",
        r"github\.com/labstack/echo",
        r"e\.Use\(",
        r"middleware\.",
    ], 80),
    _rule("fiber", [".go"], [
        r"fiber\.New\(\)",
        r"app\.Get|app\.Post|app\.Put|app\.Delete",
        r"fiber\.Ctx",
        r"c\.JSON\(|c\.SendString\(",
        r"github\.com/gofiber/fiber",
        r"app\.Use\(",
        r"fiber\.Map\{",
    ], 80),
    _rule("rest", [".js", ".ts", ".py", ".java", ".cs", ".rb", ".go", ".php"], [
        r"app\.(get|post|put|delete|patch)\(",
        r"@RestController|@RequestMapping",
        r"@(Get|Post|Put|Delete|Patch)Mapping",
        r"from rest_framework",
        r"\[Http(Get|Post|Put|Delete)\]",
        r"/api/|/v1/|/v2/",
        r"ResponseEntity<",
        r"@api_view",
        r"router\.(get|post|put|delete|patch)\(",
        r"express\.Router\(\)",
    ], 80),
    _rule("graphql", [".js", ".ts", ".graphql", ".gql", ".py", ".java", ".cs", ".rb", ".go"], [
        r"type\s+\w+\s*\{",
        r"query\s+\w*\s*\{|mutation\s+\w*\s*\{",
        r"from ['\"]graphql['\"]",
        r"@Resolver|@Query|@Mutation|@Subscription",
        r"apollo-server|graphql-yoga",
        r"buildSchema|makeExecutableSchema",
        r"gql`|graphql`",
        r"useQuery|useMutation|useSubscription",
        r"GraphQLSchema|GraphQLObjectType",
        r"input\s+\w+\s*\{|interface\s+\w+\s*\{",
    ], 90),
    _rule("mysql", _DB_EXTENSIONS, [
        r"CREATE TABLE.*ENGINE\s*=\s*InnoDB",
        r"AUTO_INCREMENT",
        r"VARCHAR\(\d+\)",
        r"mysql://|jdbc:mysql",
        r"ENGINE=MyISAM|ENGINE=InnoDB",
        r"mysql\.createConnection",
        r"SHOW TABLES|DESCRIBE",
        r"CHARSET=utf8",
    ], 90, re.IGNORECASE),
    _rule("postgresql", _DB_EXTENSIONS, [
        r"CREATE TABLE.*SERIAL",
        r"SERIAL PRIMARY KEY",
        r"JSONB|JSON",
        r"ARRAY\[.*\]",
        r"postgresql://|jdbc:postgresql",
        r"RETURNING \*",
        r"ILIKE|SIMILAR TO",
        r"CREATE EXTENSION",
        r"SELECT.*FROM pg_",
    ], 90, re.IGNORECASE),
    _rule("mongodb", [".js", ".py", ".java", ".cs", ".rb", ".go", ".json"], [
        r"db\.\w+\.find\(",
        r"db\.\w+\.insert\(",
        r"db\.\w+\.update\(",
        r"db\.\w+\.aggregate\(",
        r"ObjectId\(",
        r"mongodb://|mongodb\+srv://",
        r"mongoose\.",
        r"MongoClient",
        r"\$set|\$push|\$pull",
        r"collection\.",
    ], 90, re.IGNORECASE),
    _rule("sqlite", [".sql", ".db", ".sqlite", ".js", ".py", ".java", ".cs"], [
        r"sqlite3\.",
        r"PRAGMA",
        r"sqlite://|jdbc:sqlite",
        r"AUTOINCREMENT",
        r"sqlite3\.connect",
        r"INTEGER PRIMARY KEY",
        r"\.execute\(.*CREATE TABLE",
    ], 85, re.IGNORECASE),
    _rule("redis", [".js", ".py", ".java", ".cs", ".rb", ".go"], [
        r"redis\.",
        r"SET\s+\w+|GET\s+\w+",
        r"HSET|HGET|HMSET",
        r"LPUSH|RPUSH|LPOP",
        r"SADD|SMEMBERS",
        r"redis://|redis\.createClient",
        r"EXPIRE|TTL",
        r"ZADD|ZRANGE",
    ], 85, re.IGNORECASE),
)

SYNTAX_RULES: tuple[DetectionRule, ...] = (
    _rule("typescript", [".ts", ".tsx"], [
        r"interface\s+\w+",
        r"type\s+\w+\s*=",
        r":\s*string|:\s*number|:\s*boolean",
        r"as\s+\w+",
        r"<[^>]*>",
        r"enum\s+\w+",
    ]),
    _rule("javascript", [".js", ".jsx"], [
        r"var\s+\w+|let\s+\w+|const\s+\w+",
        r"function\s+\w+",
        r"=>\s*\{",
        r"require\s*\(",
        r"module\.exports",
    ]),
    _rule("jsx", [".jsx"], [
        r"<[A-Z]\w+",
        r"className=",
        r"onClick=",
        r"return\s*\(",
    ]),
    _rule("tsx", [".tsx"], [
        r"<[A-Z]\w+",
        r"className=",
        r"onClick=",
        r"interface\s+\w+",
        r":\s*React\.",
    ]),
    _rule("php", [".php"], [
        r"<\?php",
        r"\$\w+\s*=",
        r"echo\s+|print\s+",
        r"function\s+\w+\s*\(",
        r"class\s+\w+",
        r"->",
        r"\$_GET|\$_POST|\$_SESSION",
    ]),
    _rule("ruby", [".rb"], [
        r"def\s+\w+",
        r"class\s+\w+",
        r"module\s+\w+",
        r"(?m:end$)",
        r"@\w+",
        r"puts\s+|print\s+",
        r"require\s+['\"][^'\"]+['\"]",
    ]),
    _rule("python", [".py"], [
        r"def\s+\w+\s*\(",
        r"class\s+\w+",
        r"import\s+\w+",
        r"from\s+\w+\s+import",
        r"print\s*\(",
        r"if\s+__name__\s*==\s*['\"]__main__['\"]",
    ]),
    _rule("java", [".java"], [
        r"public\s+class\s+\w+",
        r"public\s+static\s+void\s+main",
        r"import\s+java\.",
        r"System\.out\.println",
        r"public\s+\w+\s+\w+\s*\(",
        r"private\s+\w+\s+\w+",
        r"package\s+[\w.]+",
    ]),
    _rule("go", [".go"], [
        r"package\s+\w+",
        r"func\s+\w+\s*\(",
        r"import\s+\(",
        r"fmt\.Print",
        r"var\s+\w+\s+\w+",
        r"type\s+\w+\s+struct",
        r"go\s+\w+\(",
    ]),
)

# Base language by extension, used when no framework clears the threshold.
EXTENSION_LANGUAGES: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".php": "php",
    ".rb": "ruby",
    ".py": "python",
    ".java": "java",
    ".go": "go",
    ".cs": "csharp",
    ".swift": "swift",
    ".kt": "kotlin",
    ".m": "objc",
    ".vue": "vue",
    ".html": "html",
    ".htm": "html",
}

# Syntax used when no syntax rule clears the threshold.
EXTENSION_SYNTAX: dict[str, str] = {
    ".tsx": "tsx",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".js": "javascript",
    ".vue": "vue",
}

FRAMEWORK_DISPLAY_NAMES: dict[str, str] = {
    "react": "React",
    "vue": "Vue.js",
    "angular": "Angular",
    "angularjs": "AngularJS",
    "jquery": "jQuery",
    "javascript": "JavaScript",
    "typescript": "TypeScript",
}

SYNTAX_DISPLAY_NAMES: dict[str, str] = {
    "tsx": "React (TypeScript)",
    "jsx": "React (JavaScript)",
    "typescript": "TypeScript",
    "javascript": "JavaScript",
    "vue": "Vue.js",
}

SYNTAX_TAGS: dict[str, str] = {
    "tsx": "TypeScript/TSX",
    "jsx": "JavaScript/JSX",
    "typescript": "TypeScript",
    "javascript": "JavaScript",
    "vue": "Vue SFC",
}

# (value, label, tag) for every language a user may pick.
SUPPORTED_LANGUAGES: tuple[tuple[str, str, str], ...] = (
    ("javascript", "JavaScript", "JS"),
    ("typescript", "TypeScript", "TS"),
    ("react-js", "React with JavaScript", "JSX"),
    ("react-ts", "React with TypeScript", "TSX"),
    ("vue", "Vue.js", "SFC"),
    ("angular", "Angular", "TS"),
    ("angularjs", "AngularJS", "JS"),
    ("jquery", "jQuery", "JS"),
    ("php", "PHP", "PHP"),
    ("wordpress", "WordPress", "PHP"),
    ("laravel", "Laravel", "PHP"),
    ("nodejs", "Node.js", "JS"),
    ("express", "Express.js", "JS"),
    ("nestjs", "NestJS", "TS"),
    ("ruby", "Ruby", "RB"),
    ("rails", "Ruby on Rails", "RB"),
    ("django", "Django", "PY"),
    ("flask", "Flask", "PY"),
    ("java", "Java", "JAVA"),
    ("spring", "Spring Framework", "JAVA"),
    ("springboot", "Spring Boot", "JAVA"),
    ("go", "Go", "GO"),
    ("gin", "Gin", "GO"),
    ("echo", "Echo", "GO"),
    ("fiber", "Fiber", "GO"),
    ("rest", "REST API", "REST"),
    ("graphql", "GraphQL", "GQL"),
    ("mysql", "MySQL", "SQL"),
    ("postgresql", "PostgreSQL", "SQL"),
    ("mongodb", "MongoDB", "NoSQL"),
    ("sqlite", "SQLite", "SQL"),
    ("redis", "Redis", "KV"),
    ("cassandra", "Cassandra", "NoSQL"),
    ("dynamodb", "DynamoDB", "NoSQL"),
    ("elasticsearch", "Elasticsearch", "SEARCH"),
    ("python2", "Python 2", "PY2"),
    ("python3", "Python 3", "PY3"),
    ("kotlin", "Kotlin", "KT"),
    ("swift", "Swift", "SWIFT"),
    ("objc", "Objective-C", "OBJC"),
    ("csharp", "C#", "CS"),
)
