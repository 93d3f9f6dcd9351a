# patterns.py
"""
Shell command classification.

Every analyzer runs raw `run:`/`cmds:`/`RUN` strings through `classify()` to get
a category, the tools involved, a structural complexity score, a risk level
and a few static suggestions. Classification is a pure function of the
command text and the pattern table below.
"""
from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Tuple


@dataclass(frozen=True)
class CommandPattern:
    name: str
    regex: Pattern[str]
    category: str
    description: str
    tools: Tuple[str, ...]
    exact_case: bool = False   # matched against the command as written, not lowercased


def _p(name: str, regex: str, category: str, description: str, *tools: str, exact_case: bool = False) -> CommandPattern:
    return CommandPattern(name, re.compile(regex), category, description, tools or (name,), exact_case)


# ----------------------------------------------------------------------
# Pattern table
# ----------------------------------------------------------------------

PATTERNS: Dict[str, CommandPattern] = {p.name: p for p in [
    # containers / orchestration
    _p("docker", r"\bdocker\s+", "containerization", "Docker containerization commands"),
    _p("docker-compose", r"docker-compose", "containerization", "Docker Compose orchestration commands"),
    _p("kubectl", r"\bkubectl\s+", "deployment", "Kubernetes cluster management commands"),
    _p("helm", r"\bhelm\s+", "deployment", "Helm Kubernetes package manager commands"),
    _p("terraform", r"\bterraform\s+", "infrastructure", "Terraform infrastructure as code commands"),
    _p("ansible", r"\bansible(?:-playbook)?\s+", "infrastructure", "Ansible configuration management", "ansible"),
    _p("aws", r"\baws\s+", "deployment", "AWS command line interface", "aws-cli"),
    # build tools / language toolchains
    _p("go-test", r"\bgo\s+test\b", "testing", "Go test runner", "go"),
    _p("go", r"\bgo\s+", "build", "Go programming language commands"),
    _p("make", r"\bmake\b", "build", "GNU Make build commands"),
    _p("mvn", r"\bmvn\s+", "build", "Maven build tool commands", "maven"),
    _p("gradle", r"\bgradlew?\s+", "build", "Gradle build tool commands", "gradle"),
    _p("cargo", r"\bcargo\s+", "build", "Rust package manager and build tool commands"),
    # package managers
    _p("npm", r"\bnpm\s+", "package-management", "Node.js package manager commands"),
    _p("yarn", r"\byarn\b", "package-management", "Yarn package manager commands"),
    _p("pip", r"\bpip3?\s+", "package-management", "Python package installer commands", "pip"),
    _p("composer", r"\bcomposer\s+", "package-management", "PHP dependency manager commands"),
    # runtimes
    _p("python", r"\bpython3?\s+", "runtime", "Python interpreter commands", "python"),
    _p("php", r"\bphp\s+", "runtime", "PHP interpreter commands"),
    _p("php-server", r"\bphp\s+-S\s+", "development", "PHP built-in development server", "php", exact_case=True),
    # testing
    _p("pytest", r"\bpytest\b", "testing", "pytest test runner"),
    _p("jest", r"\bjest\b", "testing", "Jest JavaScript test runner"),
    _p("phpunit", r"\bphpunit\b", "testing", "PHPUnit testing framework commands"),
    _p("pest", r"\bpest\b", "testing", "Pest PHP testing framework commands"),
    _p("behat", r"\bbehat\b", "testing", "Behat BDD testing framework commands"),
    _p("codeception", r"\bcodecept\s+", "testing", "Codeception testing framework commands"),
    _p("infection", r"\binfection\b", "testing", "Infection mutation testing framework"),
    # code quality
    _p("ruff", r"\bruff\s+", "code-quality", "Ruff Python linter"),
    _p("eslint", r"\beslint\b", "code-quality", "ESLint JavaScript linter"),
    _p("phpcs", r"\bphpcs\b", "code-quality", "PHP Code Sniffer - coding standards checker"),
    _p("phpcbf", r"\bphpcbf\b", "code-quality", "PHP Code Beautifier and Fixer"),
    _p("phpstan", r"\bphpstan\b", "code-quality", "PHPStan static analysis tool"),
    _p("psalm", r"\bpsalm\b", "code-quality", "Psalm static analysis tool"),
    _p("phan", r"\bphan\b", "code-quality", "Phan static analyzer"),
    _p("php-cs-fixer", r"\bphp-cs-fixer\b", "code-quality", "PHP Coding Standards Fixer"),
    _p("phpmd", r"\bphpmd\b", "code-quality", "PHP Mess Detector"),
    _p("phpdoc", r"\bphpdoc\b", "documentation", "phpDocumentor documentation generator"),
    # frameworks
    _p("artisan", r"\bartisan\s+", "framework", "Laravel Artisan command runner", "laravel", "artisan"),
    _p("symfony", r"\bsymfony\s+", "framework", "Symfony CLI commands"),
    _p("drush", r"\bdrush\s+", "framework", "Drupal Drush commands", "drupal", "drush"),
    _p("wp", r"\bwp\s+", "framework", "WordPress CLI commands", "wordpress", "wp-cli"),
    # packaging / task runners / deployment
    _p("phar", r"\bphar\s+", "packaging", "PHP archive tool"),
    _p("box", r"\bbox\s+", "packaging", "Box PHAR builder"),
    _p("robo", r"\brobo\s+", "task-runner", "Robo PHP task runner"),
    _p("deployer", r"\bdep\s+", "deployment", "Deployer PHP deployment tool", "deployer"),
    # database
    _p("phinx", r"\bphinx\s+", "database", "Phinx database migrations"),
    _p("doctrine", r"\bdoctrine\s+", "database", "Doctrine ORM console"),
    # shell / network / vcs
    _p("git", r"\bgit\s+", "version-control", "Git version control commands"),
    _p("curl", r"\bcurl\s+", "network", "HTTP client commands"),
    _p("wget", r"\bwget\s+", "network", "HTTP download commands"),
    _p("ssh", r"\bssh\s+", "network", "Secure Shell remote access commands"),
    _p("rsync", r"\brsync\s+", "file-transfer", "Remote file synchronization commands"),
    _p("local-script", r"(?:^|\s)\./\S+", "script", "Local script execution", "shell"),
]}

# Most specific first: framework CLIs before the runtime that hosts them,
# test/lint tools before the interpreter or package manager that launches them.
PRIORITY: Tuple[str, ...] = (
    "artisan", "symfony", "drush", "wp",
    "phpunit", "pest", "behat", "codeception", "infection",
    "phpcs", "phpcbf", "phpstan", "psalm", "phan", "php-cs-fixer", "phpmd", "phpdoc",
    "php-server", "phar", "box", "robo", "deployer", "phinx", "doctrine", "composer",
    "pytest", "jest", "eslint", "ruff", "go-test",
    "docker-compose", "kubectl", "helm", "terraform", "ansible", "aws", "cargo", "gradle",
    "local-script", "docker", "go", "npm", "yarn", "make", "git", "curl", "wget", "ssh",
    "rsync", "python", "pip", "mvn", "php",
)

FALLBACK_CATEGORY = "utility"
FALLBACK_TOOLS: Tuple[str, ...] = ("shell",)

COMPLEXITY_WARNING_THRESHOLD = 3

_HIGH_RISK = [re.compile(p) for p in (
    r"\brm\s+(?:-\w+\s+)*-(?:\w*r\w*f|\w*f\w*r)\w*",
    r"\bdd\s+if=",
    r"\bmkfs(?:\.\w+)?\b",
    r"\bfdisk\b",
    r"\bformat\s+[a-z]:",
    r"\bdel\s+/f\b",
    r"\brmdir\s+/s\b",
    r"\bsudo\s+rm\b",
    r"\bchmod\s+(?:-r\s+)?0?777\b",
    r"\b(?:curl|wget)\b[^|\n]*\|\s*(?:sudo\s+)?(?:ba|z|k|da)?sh\b",
    r">\s*/dev/(?:sd|hd|nvme|disk|xvd)",
    r"\beval\b",
)]

_MEDIUM_RISK = [re.compile(p) for p in (
    r"\bsudo\b",
    r"\bsu\b",
    r"\bchmod\b",
    r"\bchown\b",
    r"\brm\s",
    r"\bmv\s+/",
    r"\bcp\s+/",
    r"\bcurl\b",
    r"\bwget\b",
    r"\bssh\b",
    r"\bscp\b",
    r"\brsync\b",
)]


@dataclass(frozen=True)
class CommandClassification:
    command: str
    pattern: Optional[str]
    category: str
    description: str
    tools: Tuple[str, ...]
    complexity: int
    risk_level: str
    suggestions: Tuple[str, ...]


# ----------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------

def match_pattern(command: str) -> Optional[CommandPattern]:
    """
    First matching pattern: priority list, then the rest of the table in order.
    Matching ignores case except for patterns marked exact_case.
    """
    lowered = command.lower()

    def hit(pattern: CommandPattern) -> bool:
        return pattern.regex.search(command if pattern.exact_case else lowered) is not None

    for name in PRIORITY:
        pattern = PATTERNS.get(name)
        if pattern is not None and hit(pattern):
            return pattern
    for name, pattern in PATTERNS.items():
        if name not in PRIORITY and hit(pattern):
            return pattern
    return None


def classify(command: str) -> CommandClassification:
    command = command.strip()
    pattern = match_pattern(command)
    if pattern is None:
        name, category, description, tools = None, FALLBACK_CATEGORY, "General shell command", FALLBACK_TOOLS
    else:
        name, category, description, tools = pattern.name, pattern.category, pattern.description, pattern.tools

    complexity = command_complexity(command)
    risk = command_risk(command)
    return CommandClassification(
        command=command,
        pattern=name,
        category=category,
        description=description,
        tools=tools,
        complexity=complexity,
        risk_level=risk,
        suggestions=tuple(_suggestions(command, category, complexity, risk)),
    )


def command_complexity(command: str) -> int:
    """Structural score: 1 + pipes + redirect + background + (&&,||) + substitution + (;)."""
    score = 1
    score += len(re.findall(r"(?<!\|)\|(?!\|)", command))
    if ">" in command:
        score += 1
    if re.search(r"(?<![&>])&(?![&>])", command):
        score += 1
    score += command.count("&&") + command.count("||")
    if "$(" in command or "`" in command:
        score += 1
    score += command.count(";")
    return score


def command_risk(command: str) -> str:
    lowered = command.lower()
    if any(r.search(lowered) for r in _HIGH_RISK):
        return "high"
    if any(r.search(lowered) for r in _MEDIUM_RISK):
        return "medium"
    return "low"


def _suggestions(command: str, category: str, complexity: int, risk: str) -> List[str]:
    out: List[str] = []

    if category == "containerization":
        if "docker run" in command and "--rm" not in command:
            out.append("Consider adding --rm flag to automatically remove containers")
        if re.search(r":latest\b", command):
            out.append("Avoid using 'latest' tag, specify explicit version")
    elif category == "build":
        if "go build" in command and "-ldflags" not in command:
            out.append("Consider using -ldflags to inject version information")
    elif category == "package-management":
        if re.search(r"\bnpm\s+(?:install|i)\b", command):
            out.append("Use 'npm ci' for faster, reliable builds in CI environments")
        if "composer install" in command and "--no-dev" not in command:
            out.append("Consider using --no-dev flag for production installs")
        if "composer install" in command and "--optimize-autoloader" not in command:
            out.append("Add --optimize-autoloader for better performance")
    elif category == "network":
        if "curl" in command and "--fail" not in command and not re.search(r"\s-\w*f", command):
            out.append("Consider using --fail flag to exit on HTTP errors")
    elif category == "testing":
        if "phpunit" in command and "--coverage" not in command:
            out.append("Consider adding code coverage reporting")
        if "pytest" in command and "--cov" not in command:
            out.append("Consider adding code coverage reporting")
        if "pest" in command and "--parallel" not in command:
            out.append("Use --parallel flag to run tests in parallel for faster execution")
    elif category == "code-quality":
        if "phpcs" in command and "--standard" not in command:
            out.append("Specify coding standard with --standard flag")
        if "phpstan" in command and "--level" not in command:
            out.append("Specify analysis level with --level flag (0-9)")
    elif category == "framework":
        if "artisan" in command and "migrate" in command and "--seed" not in command:
            out.append("Consider using --seed flag to run database seeders")

    if complexity > COMPLEXITY_WARNING_THRESHOLD:
        out.append("Complex command - consider breaking into multiple steps")
    if risk == "high":
        out.append("High-risk command detected - review security implications")
    return out


# ----------------------------------------------------------------------
# Helpers shared by the analyzers
# ----------------------------------------------------------------------

def patterns_by_category() -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for name, pattern in PATTERNS.items():
        out.setdefault(pattern.category, []).append(name)
    return out


ECOSYSTEMS: Dict[str, Tuple[str, ...]] = {
    "go": ("go", "gofmt", "golint", "golangci-lint"),
    "nodejs": ("npm", "yarn", "node", "pnpm", "npx"),
    "python": ("python", "python3", "pip", "pip3", "poetry", "conda", "pytest"),
    "java": ("mvn", "gradle", "java", "javac"),
    "rust": ("cargo", "rustc", "rustfmt"),
    "php": ("php", "composer", "phpunit", "artisan", "symfony", "pest", "behat", "phpcs", "phpstan", "psalm"),
    "docker": ("docker", "docker-compose"),
    "kubernetes": ("kubectl", "helm", "kustomize"),
}


def detect_tool_ecosystem(commands: Iterable[str]) -> str:
    """Ecosystem whose tool names appear most often; "shell" when none do."""
    scores: Dict[str, int] = {}
    for command in commands:
        lowered = command.lower()
        for ecosystem, tools in ECOSYSTEMS.items():
            for tool in tools:
                if re.search(rf"(?<![\w-]){re.escape(tool)}(?![\w-])", lowered):
                    scores[ecosystem] = scores.get(ecosystem, 0) + 1
    if not scores:
        return "shell"
    return sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))[0][0]


_DOCKER_VERBS = ("run", "pull", "push", "build", "create")
_DOCKER_VALUE_FLAGS = {
    "-p", "--publish", "-v", "--volume", "-e", "--env", "--env-file", "--name", "-w", "--workdir",
    "--network", "--net", "-u", "--user", "--platform", "--entrypoint", "--mount", "-l", "--label",
    "-f", "--file", "--build-arg", "--target", "--cpus", "-m", "--memory", "-h", "--hostname",
    "--add-host", "--restart", "--cache-from", "--secret", "--pull",
}
_SHELL_OPERATORS = {"&&", "||", "|", ";", "&"}


def split_words(command: str) -> List[str]:
    try:
        return shlex.split(command, comments=False, posix=True)
    except ValueError:
        # unbalanced quotes; plain whitespace split is good enough here
        return command.split()


def docker_images_in(command: str) -> List[str]:
    """
    Image references used by `docker run|pull|push|create` (first positional
    argument) and `docker build` (the -t/--tag value).
    """
    images: List[str] = []
    words = [w.rstrip(";") for w in split_words(command)]
    i = 0
    while i < len(words) - 1:
        if not words[i].endswith("docker") or words[i + 1] not in _DOCKER_VERBS:
            i += 1
            continue
        verb = words[i + 1]
        j = i + 2
        while j < len(words) and words[j] not in _SHELL_OPERATORS:
            word = words[j]
            if verb == "build" and word in ("-t", "--tag") and j + 1 < len(words):
                images.append(words[j + 1])
                j += 2
                continue
            if verb == "build" and word.startswith("--tag="):
                images.append(word.split("=", 1)[1])
            elif word.startswith("-"):
                if word in _DOCKER_VALUE_FLAGS:
                    j += 1
            elif verb != "build":
                images.append(word)
                break
            j += 1
        i = j
    return [img for img in images if img and not img.startswith("$")]
