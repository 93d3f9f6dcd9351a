# docker/analyzer.py
from __future__ import annotations

import fnmatch
import json
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

from ..errors import GraphAnomaly, ReferenceAnomaly
from ..graph import DependencyGraph, analyze_graph
from ..patterns import split_words
from ..usage import ranked
from .dockerfile import parse_duration
from .model import ComposeFile, ComposeService, DockerfileModel, HealthCheck, Instruction, Stage

# One fixed recommendation per Dockerfile flag.
RECOMMENDATIONS = {
    "run_as_root": "Create and use a non-root user with USER instruction",
    "unpinned_base": "Pin base images to specific versions instead of using 'latest' tag",
    "no_healthcheck": "Add HEALTHCHECK instruction for container health monitoring",
    "single_stage": "Consider using multi-stage builds to reduce final image size",
    "cache_inefficient": "Optimize layer caching by copying package files before source code",
}

BEST_PRACTICE_ISSUES = {
    "run_as_root": "Container runs as root user",
    "unpinned_base": "Uses 'latest' tag for base images",
    "no_healthcheck": "Missing health check configuration",
    "cache_inefficient": "Layer caching not optimized",
}

_SECURITY_UPDATES = ("apt-get upgrade", "apt-get dist-upgrade", "apk upgrade", "yum update", "yum upgrade", "dnf upgrade")

_PACKAGE_MANAGERS = {
    "apt-get", "apt", "apk", "yum", "dnf", "pip", "pip3", "npm", "yarn", "pnpm", "composer",
    "bundle", "gem", "poetry", "go", "cargo", "mvn", "gradle", "dotnet",
}
_INSTALL_VERBS = {"install", "ci", "add", "download", "sync", "restore", "fetch", "dependency:go-offline"}
_SEGMENT_SPLIT = re.compile(r"&&|\|\||;|\|")

_MANIFESTS = (
    "package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "npm-shrinkwrap.json",
    "requirements*.txt", "pyproject.toml", "poetry.lock", "Pipfile", "Pipfile.lock", "setup.py", "setup.cfg",
    "go.mod", "go.sum", "Gemfile", "Gemfile.lock", "composer.json", "composer.lock",
    "Cargo.toml", "Cargo.lock", "pom.xml", "build.gradle", "*.csproj", ".npmrc",
)


# ----------------------------------------------------------------------
# Dockerfile
# ----------------------------------------------------------------------

@dataclass
class SecurityScan:
    run_as_root: bool = False
    has_security_updates: bool = False
    uses_latest_tags: bool = False
    has_health_check: bool = False
    caching_optimized: bool = True
    multi_stage_optimized: bool = False
    unpinned_base_images: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    best_practice_issues: List[str] = field(default_factory=list)

    @property
    def security_issue_count(self) -> int:
        return sum((self.run_as_root, self.uses_latest_tags, not self.has_health_check))

    def clone(self) -> "SecurityScan":
        return SecurityScan(
            self.run_as_root,
            self.has_security_updates,
            self.uses_latest_tags,
            self.has_health_check,
            self.caching_optimized,
            self.multi_stage_optimized,
            list(self.unpinned_base_images),
            list(self.recommendations),
            list(self.best_practice_issues),
        )


@dataclass
class DockerfileAnalysis:
    path: str = ""
    stage_count: int = 0
    stage_names: List[str] = field(default_factory=list)
    multi_stage: bool = False
    base_images: List[str] = field(default_factory=list)
    exposed_ports: List[str] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)
    arguments: Dict[str, str] = field(default_factory=dict)
    environment: Dict[str, str] = field(default_factory=dict)
    working_dir: Optional[str] = None
    user: Optional[str] = None
    entrypoint: List[str] = field(default_factory=list)
    command: List[str] = field(default_factory=list)
    health_check: Optional[HealthCheck] = None
    volumes: List[str] = field(default_factory=list)
    instruction_counts: Dict[str, int] = field(default_factory=dict)
    security_scan: SecurityScan = field(default_factory=SecurityScan)

    def clone(self) -> "DockerfileAnalysis":
        return DockerfileAnalysis(
            path=self.path,
            stage_count=self.stage_count,
            stage_names=list(self.stage_names),
            multi_stage=self.multi_stage,
            base_images=list(self.base_images),
            exposed_ports=list(self.exposed_ports),
            labels=dict(self.labels),
            arguments=dict(self.arguments),
            environment=dict(self.environment),
            working_dir=self.working_dir,
            user=self.user,
            entrypoint=list(self.entrypoint),
            command=list(self.command),
            health_check=self.health_check.clone() if self.health_check else None,
            volumes=list(self.volumes),
            instruction_counts=dict(self.instruction_counts),
            security_scan=self.security_scan.clone(),
        )


def analyze_dockerfile(model: DockerfileModel) -> DockerfileAnalysis:
    """Pure: reads `model`, never mutates it."""
    instructions = model.instructions
    final = model.final_stage
    final_instructions = final.instructions if final else []

    analysis = DockerfileAnalysis(
        path=model.path,
        stage_count=len(model.stages),
        stage_names=[s.name for s in model.stages if s.name],
        multi_stage=len(model.stages) > 1,
        base_images=list(dict.fromkeys(s.base_image for s in model.stages if s.base_image)),
        exposed_ports=[p for i in _of(instructions, "EXPOSE") for p in i.arguments],
        labels=_pairs(_of(instructions, "LABEL")),
        arguments=_pairs(_of(instructions, "ARG")),
        environment=_env(_of(instructions, "ENV")),
        working_dir=_last_value(final_instructions, "WORKDIR"),
        user=_last_value(final_instructions, "USER"),
        entrypoint=_last_args(final_instructions, "ENTRYPOINT"),
        command=_last_args(final_instructions, "CMD"),
        health_check=_health_check(final_instructions),
        volumes=[v for i in _of(instructions, "VOLUME") for v in i.arguments],
    )
    for i in instructions:
        analysis.instruction_counts[i.instruction] = analysis.instruction_counts.get(i.instruction, 0) + 1
    analysis.security_scan = security_scan(model, analysis)
    return analysis


def _of(instructions: Sequence[Instruction], verb: str) -> List[Instruction]:
    return [i for i in instructions if i.instruction == verb]


def _pairs(instructions: Sequence[Instruction]) -> Dict[str, str]:
    """k=v tokens (quotes honoured); a bare ARG name maps to ''."""
    out: Dict[str, str] = {}
    for instruction in instructions:
        for word in split_words(instruction.value):
            key, _, value = word.partition("=")
            if key:
                out[key] = value
    return out


def _env(instructions: Sequence[Instruction]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for instruction in instructions:
        words = split_words(instruction.value)
        if words and "=" not in words[0]:
            # legacy `ENV KEY some value`
            key, _, value = instruction.value.partition(" ")
            out[key] = value.strip()
            continue
        for word in words:
            key, _, value = word.partition("=")
            out[key] = value
    return out


def _last_value(instructions: Sequence[Instruction], verb: str) -> Optional[str]:
    found = _of(instructions, verb)
    return found[-1].value if found else None


def _last_args(instructions: Sequence[Instruction], verb: str) -> List[str]:
    found = _of(instructions, verb)
    return list(found[-1].arguments) if found else []


def _health_check(instructions: Sequence[Instruction]) -> Optional[HealthCheck]:
    found = _of(instructions, "HEALTHCHECK")
    if not found:
        return None
    instruction = found[-1]
    args = instruction.arguments
    if args and args[0].upper() == "NONE":
        return None
    command = args[1:] if args and args[0].upper() == "CMD" else list(args)
    if command and command[0].startswith("["):
        try:
            parsed = json.loads(instruction.value.split(None, 1)[1])
        except (ValueError, IndexError):
            parsed = None
        if isinstance(parsed, list):
            command = [str(p) for p in parsed]
    flags = instruction.flags
    retries = flags.get("retries", "")
    return HealthCheck(
        command=command,
        interval=parse_duration(flags.get("interval", "")),
        timeout=parse_duration(flags.get("timeout", "")),
        start_period=parse_duration(flags.get("start-period", "")),
        retries=int(retries) if retries.isdigit() else None,
    )


# ----------------------------------------------------------------------
# Security / best practice scan
# ----------------------------------------------------------------------

def security_scan(model: DockerfileModel, analysis: DockerfileAnalysis) -> SecurityScan:
    scan = SecurityScan()
    user = (analysis.user or "").strip()
    scan.run_as_root = user == "" or user.split(":", 1)[0] in ("root", "0")
    scan.has_health_check = analysis.health_check is not None
    scan.unpinned_base_images = unpinned_base_images(model)
    scan.uses_latest_tags = bool(scan.unpinned_base_images)
    scan.has_security_updates = any(
        pattern in i.value.lower() for i in _of(model.instructions, "RUN") for pattern in _SECURITY_UPDATES
    )
    scan.caching_optimized = not any(copies_source_before_install(stage) for stage in model.stages)
    scan.multi_stage_optimized = analysis.multi_stage

    flags = [
        ("run_as_root", scan.run_as_root),
        ("unpinned_base", scan.uses_latest_tags),
        ("no_healthcheck", not scan.has_health_check),
        ("single_stage", len(model.stages) == 1),
        ("cache_inefficient", not scan.caching_optimized),
    ]
    for flag, raised in flags:
        if not raised:
            continue
        scan.recommendations.append(RECOMMENDATIONS[flag])
        if flag in BEST_PRACTICE_ISSUES:
            scan.best_practice_issues.append(BEST_PRACTICE_ISSUES[flag])
    return scan


def unpinned_base_images(model: DockerfileModel) -> List[str]:
    """
    Base images with no tag or the `latest` tag. `scratch`, earlier stage
    names and digest references are pinned by definition; `$VAR` images are
    resolved against global ARG defaults first.
    """
    defaults = _pairs(model.global_args)
    stage_names = set()
    out: List[str] = []
    for stage in model.stages:
        image = _substitute(stage.base_image, defaults)
        if image and image != "scratch" and image not in stage_names and "$" not in image and "@" not in image:
            last = image.rsplit("/", 1)[-1]
            if ":" not in last or last.endswith(":latest"):
                if stage.base_image not in out:
                    out.append(stage.base_image)
        if stage.name:
            stage_names.add(stage.name)
    return out


def _substitute(image: str, values: Dict[str, str]) -> str:
    def repl(m: "re.Match[str]") -> str:
        name = m.group(1) or m.group(2)
        return values.get(name) or m.group(0)
    return re.sub(r"\$\{(\w+)\}|\$(\w+)", repl, image)


def copies_source_before_install(stage: Stage) -> bool:
    """A COPY/ADD of non-manifest files followed by a dependency install RUN."""
    copied_source = False
    for instruction in stage.instructions:
        if instruction.instruction in ("COPY", "ADD") and "from" not in instruction.flags:
            if any(not _is_manifest(src) for src in _copy_sources(instruction)):
                copied_source = True
        elif instruction.instruction == "RUN" and copied_source and _installs_dependencies(instruction.value):
            return True
    return False


def _copy_sources(instruction: Instruction) -> List[str]:
    args = instruction.arguments
    return list(args[:-1]) if len(args) > 1 else []


def _is_manifest(source: str) -> bool:
    name = PurePosixPath(source).name
    if any(fnmatch.fnmatch(name, pattern) for pattern in _MANIFESTS):
        return True
    # `COPY package*.json ./` names manifests by glob
    return name not in ("", "*") and any(fnmatch.fnmatch(pattern, name) for pattern in _MANIFESTS)


def _installs_dependencies(command: str) -> bool:
    for segment in _SEGMENT_SPLIT.split(command):
        words = segment.split()
        managers = [i for i, w in enumerate(words) if w in _PACKAGE_MANAGERS]
        if managers and any(w in _INSTALL_VERBS for w in words[managers[0] + 1:]):
            return True
    return False


# ----------------------------------------------------------------------
# Compose
# ----------------------------------------------------------------------

_DATABASE_NAMES = ("db", "database")
_DATABASE_IMAGES = ("postgres", "mysql", "mariadb", "mongo", "redis")
_CACHE_NAMES = ("cache", "redis")
_CACHE_IMAGES = ("redis", "memcached")
_WEB_NAMES = ("web", "app", "api", "frontend", "backend")

_SENSITIVE_PORTS = {"22": "exposes SSH port (22)", "3306": "exposes MySQL port directly", "5432": "exposes PostgreSQL port directly"}


@dataclass(frozen=True)
class PortConflict:
    port: str
    services: Tuple[str, ...]

    def describe(self) -> str:
        return f"Port {self.port} is used by services: {', '.join(self.services)}"


@dataclass
class ComposeAnalysis:
    """
    Heuristic view of a compose file.

    Service categories are substring matches on name and image. They are
    independent tags, so "webdb-sync" is both a web and a database service.
    """
    path: str = ""
    service_count: int = 0
    database_services: List[str] = field(default_factory=list)
    cache_services: List[str] = field(default_factory=list)
    web_services: List[str] = field(default_factory=list)
    service_dependencies: Dict[str, List[str]] = field(default_factory=dict)
    port_conflicts: List[PortConflict] = field(default_factory=list)
    security_issues: List[str] = field(default_factory=list)
    performance_issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    complexity_score: int = 0
    dangling: List[ReferenceAnomaly] = field(default_factory=list)
    graph: DependencyGraph = field(default_factory=DependencyGraph)

    @property
    def cycles(self) -> Optional[GraphAnomaly]:
        return self.graph.anomaly

    def clone(self) -> "ComposeAnalysis":
        return ComposeAnalysis(
            path=self.path,
            service_count=self.service_count,
            database_services=list(self.database_services),
            cache_services=list(self.cache_services),
            web_services=list(self.web_services),
            service_dependencies={k: list(v) for k, v in self.service_dependencies.items()},
            port_conflicts=list(self.port_conflicts),
            security_issues=list(self.security_issues),
            performance_issues=list(self.performance_issues),
            recommendations=list(self.recommendations),
            complexity_score=self.complexity_score,
            dangling=list(self.dangling),
            graph=self.graph.clone(),
        )


def service_categories(service: ComposeService) -> List[str]:
    name = service.name.lower()
    image = (service.image or "").lower()
    categories: List[str] = []
    if any(n in name for n in _DATABASE_NAMES) or any(i in image for i in _DATABASE_IMAGES):
        categories.append("database")
    if any(n in name for n in _CACHE_NAMES) or any(i in image for i in _CACHE_IMAGES):
        categories.append("cache")
    if any(n in name for n in _WEB_NAMES) or service.ports:
        categories.append("web")
    return categories


def analyze_compose(compose: ComposeFile) -> ComposeAnalysis:
    """Pure: reads `compose`, never mutates it."""
    analysis = ComposeAnalysis(path=compose.path, service_count=len(compose.services))
    buckets = {
        "database": analysis.database_services,
        "cache": analysis.cache_services,
        "web": analysis.web_services,
    }

    for name in sorted(compose.services):
        service = compose.services[name]
        for category in service_categories(service):
            buckets[category].append(name)

        if service.depends_on:
            analysis.service_dependencies[name] = list(dict.fromkeys(service.depends_on))
        for dep in service.depends_on:
            if dep not in compose.services:
                analysis.dangling.append(ReferenceAnomaly(container=f"compose {compose.path}", source=name, missing=dep, relation="depends on"))

        analysis.security_issues.extend(_service_security(service))
        analysis.performance_issues.extend(_service_performance(service))

    analysis.port_conflicts = port_conflicts(compose)

    deps = {name: [] for name in compose.services}
    deps.update(analysis.service_dependencies)
    analysis.graph = analyze_graph(deps)

    analysis.recommendations = _compose_recommendations(compose, analysis)
    analysis.complexity_score = complexity_score(compose, analysis)
    return analysis


def _service_security(service: ComposeService) -> List[str]:
    issues: List[str] = []
    for port in service.ports:
        if port.published and port.host in _SENSITIVE_PORTS:
            issues.append(f"Service {service.name} {_SENSITIVE_PORTS[port.host]}")
    if service.privileged:
        issues.append(f"Service {service.name} runs in privileged mode")
    return issues


def _service_performance(service: ComposeService) -> List[str]:
    issues: List[str] = []
    if service.health_check is None and service.ports:
        issues.append(f"Service {service.name} is missing health check")
    if service.resources is None:
        issues.append(f"Service {service.name} has no resource limits")
    if not service.restart_policy:
        issues.append(f"Service {service.name} has no restart policy")
    return issues


def port_conflicts(compose: ComposeFile) -> List[PortConflict]:
    """Host ports published by two or more services (protocol and host IP ignored)."""
    by_port: Dict[str, List[str]] = {}
    for name in sorted(compose.services):
        for port in compose.services[name].ports:
            if port.published:
                owners = by_port.setdefault(port.host, [])
                if name not in owners:
                    owners.append(name)
    return [PortConflict(port, tuple(owners)) for port, owners in sorted(by_port.items()) if len(owners) > 1]


def _compose_recommendations(compose: ComposeFile, analysis: ComposeAnalysis) -> List[str]:
    out: List[str] = []
    if analysis.security_issues:
        out.append("Review and fix security issues identified in the analysis")
    if analysis.performance_issues:
        out.append("Add resource limits and health checks to improve performance monitoring")
    if analysis.port_conflicts:
        out.append("Resolve port conflicts between services")
    if analysis.graph.cycles:
        out.append("Break the circular depends_on chain between services")
    if not compose.networks and len(compose.services) > 1:
        out.append("Consider defining custom networks for service isolation")
    if not compose.volumes and any(s.volumes for s in compose.services.values()):
        out.append("Consider using named volumes for better data management")
    return out


def complexity_score(compose: ComposeFile, analysis: ComposeAnalysis) -> int:
    score = len(compose.services) * 10
    score += len(compose.networks) * 5 + len(compose.volumes) * 5
    score += len(analysis.service_dependencies) * 3
    score += len(analysis.security_issues) * 5
    score += len(analysis.performance_issues) * 2
    score += len(analysis.port_conflicts) * 3
    return min(score, 100)


# ----------------------------------------------------------------------
# Docker usage in the other tools' configs
# ----------------------------------------------------------------------

_DOCKER_BUILD = re.compile(r"\bdocker\s+(?:buildx\s+)?build\b[^\n]*")
_COMPOSE_COMMAND = re.compile(r"\bdocker[- ]compose\b[^\n]*")

# (tool type, config path, {location: command texts})
UsageSource = Tuple[str, str, Mapping[str, Sequence[str]]]


@dataclass(frozen=True)
class DockerUsageReference:
    tool: str       # circleci, github-actions, gotask
    file: str       # config file the reference was found in
    location: str   # "job build", "task image"
    command: str
    context: str


@dataclass
class DockerUsage:
    """Where Dockerfiles, `docker build` and docker-compose show up in CI/task configs."""
    dockerfile_references: List[DockerUsageReference] = field(default_factory=list)
    compose_references: List[DockerUsageReference] = field(default_factory=list)
    command_references: List[DockerUsageReference] = field(default_factory=list)

    @property
    def total_references(self) -> int:
        return len(self.dockerfile_references) + len(self.compose_references) + len(self.command_references)

    def referenced_dockerfiles(self) -> List[str]:
        out: List[str] = []
        for ref in self.dockerfile_references:
            if ref.command not in out:
                out.append(ref.command)
        return out


def _path_pattern(path: str) -> Pattern[str]:
    # whole path only: `Dockerfile` must not match inside `api/Dockerfile` or `Dockerfile.dev`
    return re.compile(r"(?<![\w/.-])(?:\./)?" + re.escape(path) + r"(?![\w.-])")


def docker_usage(sources: Sequence[UsageSource], dockerfile_paths: Sequence[str] = ()) -> DockerUsage:
    """
    Scan the commands of already parsed CircleCI, GitHub Actions and go-task
    configs for `docker build`, docker-compose and Dockerfile path references.

    Dockerfile references are recorded once per (file, location, path).
    """
    usage = DockerUsage()
    paths = [(p, _path_pattern(p)) for p in dockerfile_paths]
    for tool, file, texts in sources:
        for location, commands in texts.items():
            seen: List[str] = []
            for text in commands:
                for m in _DOCKER_BUILD.finditer(text):
                    usage.command_references.append(
                        DockerUsageReference(tool, file, location, m.group(0).strip(), "Docker build command")
                    )
                for m in _COMPOSE_COMMAND.finditer(text):
                    usage.compose_references.append(
                        DockerUsageReference(tool, file, location, m.group(0).strip(), "Docker Compose command")
                    )
                for path, pattern in paths:
                    if path not in seen and pattern.search(text):
                        seen.append(path)
                        usage.dockerfile_references.append(
                            DockerUsageReference(tool, file, location, path, "Dockerfile reference")
                        )
    return usage


# ----------------------------------------------------------------------
# Cross-file summary
# ----------------------------------------------------------------------

@dataclass
class DockerSummary:
    total_dockerfiles: int = 0
    multi_stage_builds: int = 0
    security_issues: int = 0
    optimization_issues: int = 0
    has_docker_compose: bool = False
    total_compose_files: int = 0
    service_count: int = 0
    unique_base_images: List[str] = field(default_factory=list)
    most_common_instructions: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    overall_score: int = 0
    usage: Optional[DockerUsage] = None


def summarize(
    dockerfiles: Sequence[DockerfileAnalysis],
    composes: Sequence[ComposeAnalysis] = (),
    usage: Optional[DockerUsage] = None,
) -> DockerSummary:
    summary = DockerSummary(
        usage=usage,
        total_dockerfiles=len(dockerfiles),
        has_docker_compose=bool(composes),
        total_compose_files=len(composes),
        service_count=sum(c.service_count for c in composes),
    )
    counts: Dict[str, int] = {}
    unpinned = False
    for dockerfile in dockerfiles:
        if dockerfile.multi_stage:
            summary.multi_stage_builds += 1
        for image in dockerfile.base_images:
            if image not in summary.unique_base_images:
                summary.unique_base_images.append(image)
        for verb, n in dockerfile.instruction_counts.items():
            counts[verb] = counts.get(verb, 0) + n
        scan = dockerfile.security_scan
        summary.security_issues += scan.security_issue_count
        summary.optimization_issues += len(scan.recommendations) - scan.security_issue_count
        unpinned = unpinned or scan.uses_latest_tags

    summary.most_common_instructions = [verb for verb, _ in ranked(counts, 5)]

    if summary.security_issues:
        summary.recommendations.append("Address security issues found in Dockerfiles")
    if summary.optimization_issues:
        summary.recommendations.append("Optimize Dockerfiles for better performance and caching")
    if summary.total_dockerfiles and not summary.multi_stage_builds:
        summary.recommendations.append("Consider using multi-stage builds to reduce image sizes")
    if not summary.has_docker_compose and summary.total_dockerfiles > 1:
        summary.recommendations.append("Consider adding docker-compose.yml for easier multi-container management")
    if unpinned:
        summary.recommendations.append("Pin base images to specific versions for better reproducibility")

    score = 100 - summary.security_issues * 10 - summary.optimization_issues * 5
    if summary.multi_stage_builds:
        score += 10
    if summary.has_docker_compose:
        score += 15
    summary.overall_score = max(0, min(100, score))
    return summary
