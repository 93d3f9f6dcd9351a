# gotask/analyzer.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import GraphAnomaly, PartialRecovery, ReferenceAnomaly
from ..graph import DependencyGraph, analyze_graph
from ..usage import PatternCount, add_unique, first_word_frequency, image_index, index_commands, ranked
from ..yamlvalue import plain_copy
from .model import Task, Taskfile

_TEMPLATE_VAR = re.compile(r"\{\{\s*\.(\w+)")
_SHELL_VAR = re.compile(r"\$\{?(\w+)")


@dataclass(frozen=True)
class OptimizationTip:
    type: str
    task: str
    message: str
    severity: str
    suggestion: str


@dataclass
class Variable:
    name: str
    value: Any
    type: str
    is_global: bool = False
    is_environment: bool = False
    used_in_tasks: List[str] = field(default_factory=list)

    def clone(self) -> "Variable":
        return Variable(self.name, plain_copy(self.value), self.type, self.is_global, self.is_environment, list(self.used_in_tasks))


@dataclass(frozen=True)
class PerformanceMetrics:
    tasks_with_sources: int = 0
    tasks_with_generates: int = 0
    tasks_with_caching: int = 0
    parallelizable_tasks: int = 0
    optimization_potential: float = 0.0   # percent of tasks without sources+generates


@dataclass
class TaskAnalysis:
    name: str
    description: str
    summary: str
    commands: List[str]
    task_calls: List[str]
    dependencies: List[str]
    sources: List[str]
    generates: List[str]
    usage_count: int
    is_internal: bool
    platforms: List[str]
    aliases: List[str]
    preconditions: List[str]
    task_type: str
    complexity: int
    patterns: Dict[str, int] = field(default_factory=dict)
    optimization_ops: List[str] = field(default_factory=list)


@dataclass
class TaskfileAnalysis:
    """
    Derived facts for one Taskfile.

    task_usage counts how often each task is named in some other task's
    `deps`; `task:` calls inside `cmds` are counted in call_usage.
    """
    task_usage: Dict[str, int] = field(default_factory=dict)
    call_usage: Dict[str, int] = field(default_factory=dict)
    task_dependencies: Dict[str, List[str]] = field(default_factory=dict)
    command_patterns: Dict[str, PatternCount] = field(default_factory=dict)
    category_counts: Dict[str, PatternCount] = field(default_factory=dict)
    variables: Dict[str, Variable] = field(default_factory=dict)
    includes: List[str] = field(default_factory=list)
    image_usage: Dict[str, List[str]] = field(default_factory=dict)
    graph: DependencyGraph = field(default_factory=DependencyGraph)
    optimization_tips: List[OptimizationTip] = field(default_factory=list)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    dangling: List[ReferenceAnomaly] = field(default_factory=list)
    recovery: Optional[PartialRecovery] = None
    total_tasks: int = 0
    total_commands: int = 0

    @property
    def circular_deps(self) -> List[List[str]]:
        return self.graph.cycles

    @property
    def cycles(self) -> Optional[GraphAnomaly]:
        return self.graph.anomaly

    @property
    def critical_path(self) -> List[str]:
        return self.graph.critical_path

    @property
    def dependency_levels(self) -> Dict[str, int]:
        return self.graph.levels

    def clone(self) -> "TaskfileAnalysis":
        return TaskfileAnalysis(
            task_usage=dict(self.task_usage),
            call_usage=dict(self.call_usage),
            task_dependencies={k: list(v) for k, v in self.task_dependencies.items()},
            command_patterns={k: v.clone() for k, v in self.command_patterns.items()},
            category_counts={k: v.clone() for k, v in self.category_counts.items()},
            variables={k: v.clone() for k, v in self.variables.items()},
            includes=list(self.includes),
            image_usage={k: list(v) for k, v in self.image_usage.items()},
            graph=self.graph.clone(),
            optimization_tips=list(self.optimization_tips),
            performance=self.performance,
            dangling=list(self.dangling),
            recovery=self.recovery,
            total_tasks=self.total_tasks,
            total_commands=self.total_commands,
        )


# ----------------------------------------------------------------------
# Whole-file analysis
# ----------------------------------------------------------------------

def analyze(taskfile: Taskfile) -> TaskfileAnalysis:
    """Pure: reads `taskfile`, never mutates it."""
    analysis = TaskfileAnalysis(
        task_usage={name: 0 for name in taskfile.tasks},
        includes=list(taskfile.includes),
        recovery=taskfile.recovery,
        total_tasks=len(taskfile.tasks),
    )
    aliases = {alias: name for name, task in taskfile.tasks.items() for alias in task.aliases}

    for name, task in taskfile.tasks.items():
        deps: List[str] = []
        for dep in task.dep_names:
            target = aliases.get(dep, dep)
            if target not in deps:
                deps.append(target)
            analysis.task_usage[target] = analysis.task_usage.get(target, 0) + 1
            if not _resolves(taskfile, target):
                analysis.dangling.append(ReferenceAnomaly(container=f"Taskfile {taskfile.path}", source=name, missing=dep, relation="depends on"))
        if deps:
            analysis.task_dependencies[name] = deps

        for call in task.task_calls:
            target = aliases.get(call, call)
            analysis.call_usage[target] = analysis.call_usage.get(target, 0) + 1
            if not _resolves(taskfile, target):
                analysis.dangling.append(ReferenceAnomaly(container=f"Taskfile {taskfile.path}", source=name, missing=call, relation="calls"))

    commands = {name: list(task.cmds) for name, task in taskfile.tasks.items()}
    index = index_commands(commands)
    analysis.command_patterns = index.by_pattern
    analysis.category_counts = index.by_category
    analysis.total_commands = index.total
    analysis.image_usage = image_index(commands)

    analysis.variables = extract_variables(taskfile)

    graph_input = {name: [] for name in taskfile.tasks}
    graph_input.update(analysis.task_dependencies)
    analysis.graph = analyze_graph(graph_input)

    analysis.performance = performance_metrics(taskfile)
    analysis.optimization_tips = _optimization_tips(taskfile, analysis)
    return analysis


def _resolves(taskfile: Taskfile, name: str) -> bool:
    if name in taskfile.tasks:
        return True
    # `ns:task` targets a task of an included Taskfile
    namespace = name.split(":", 1)[0] if ":" in name else None
    return namespace is not None and namespace in taskfile.includes


def variable_type(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "shell" if "sh" in value else "object"
    return type(value).__name__


def extract_variables(taskfile: Taskfile) -> Dict[str, Variable]:
    """Global vars/env plus task vars/env (keyed `task.NAME`), with the tasks that reference each."""
    variables: Dict[str, Variable] = {}
    for name, value in taskfile.vars.items():
        variables[name] = Variable(name, plain_copy(value), variable_type(value), is_global=True)
    for name, value in taskfile.env.items():
        variables[name] = Variable(name, plain_copy(value), variable_type(value), is_global=True, is_environment=True)

    for task_name, task in taskfile.tasks.items():
        for name, value in task.vars.items():
            variables[f"{task_name}.{name}"] = Variable(name, plain_copy(value), variable_type(value), used_in_tasks=[task_name])
        for name, value in task.env.items():
            variables[f"{task_name}.{name}"] = Variable(
                name, plain_copy(value), variable_type(value), is_environment=True, used_in_tasks=[task_name]
            )

    for task_name, task in taskfile.tasks.items():
        text = "\n".join(task.cmds)
        referenced = set(_TEMPLATE_VAR.findall(text)) | set(_SHELL_VAR.findall(text))
        for name in sorted(referenced):
            var = variables.get(name)
            if var is not None and var.is_global and task_name not in var.used_in_tasks:
                var.used_in_tasks.append(task_name)
    return variables


def performance_metrics(taskfile: Taskfile) -> PerformanceMetrics:
    tasks = list(taskfile.tasks.values())
    cached = sum(1 for t in tasks if t.cache_optimized)
    potential = (len(tasks) - cached) / len(tasks) * 100 if tasks else 0.0
    return PerformanceMetrics(
        tasks_with_sources=sum(1 for t in tasks if t.has_sources),
        tasks_with_generates=sum(1 for t in tasks if t.has_generates),
        tasks_with_caching=cached,
        parallelizable_tasks=sum(1 for t in tasks if not t.deps),
        optimization_potential=potential,
    )


def _optimization_tips(taskfile: Taskfile, analysis: TaskfileAnalysis) -> List[OptimizationTip]:
    tips: List[OptimizationTip] = []
    names = sorted(taskfile.tasks)

    for name in names:
        task = taskfile.tasks[name]
        if not task.cache_optimized and task.complexity() > 2:
            tips.append(OptimizationTip(
                "caching", name, "Task could benefit from caching optimization", "medium",
                "Add 'sources' and 'generates' fields to enable task result caching",
            ))

    for cycle in analysis.circular_deps:
        tips.append(OptimizationTip(
            "dependency", " -> ".join(cycle), "Circular dependency detected", "high",
            "Refactor tasks to break the circular dependency",
        ))

    for name in names:
        if analysis.task_usage.get(name, 0) == 0 and analysis.call_usage.get(name, 0) == 0:
            tips.append(OptimizationTip(
                "usage", name, "Task is not used as a dependency", "low",
                "Consider if this task is needed or should be marked as internal",
            ))

    for name in names:
        task = taskfile.tasks[name]
        if not task.desc and not task.internal:
            tips.append(OptimizationTip(
                "documentation", name, "Task missing description", "low",
                "Add a description to improve task documentation",
            ))
    return tips


# ----------------------------------------------------------------------
# Per task
# ----------------------------------------------------------------------

def detect_task_type(task: Task) -> str:
    name = task.name.lower()
    for needle, kind in (
        ("build", "build"), ("test", "test"), ("deploy", "deploy"), ("clean", "cleanup"),
        ("lint", "quality"), ("format", "quality"), ("install", "setup"), ("setup", "setup"),
    ):
        if needle in name:
            return kind

    commands = " ".join(task.cmds).lower()
    if "go build" in commands or "go run" in commands:
        return "build"
    if "go test" in commands or "npm test" in commands or "pytest" in commands:
        return "test"
    if "docker" in commands:
        return "containerization"
    if "kubectl" in commands or "helm" in commands:
        return "deployment"
    return "utility"


def analyze_task(taskfile: Taskfile, name: str, analysis: Optional[TaskfileAnalysis] = None) -> Optional[TaskAnalysis]:
    task = taskfile.tasks.get(name)
    if task is None:
        return None
    analysis = analysis if analysis is not None else analyze(taskfile)

    ops: List[str] = []
    if not task.cache_optimized and task.complexity() > 2:
        ops.append("Consider adding sources and generates for caching")
    if not task.desc:
        ops.append("Add description for better documentation")

    return TaskAnalysis(
        name=name,
        description=task.desc,
        summary=task.summary,
        commands=list(task.cmds),
        task_calls=list(task.task_calls),
        dependencies=task.dep_names,
        sources=list(task.sources),
        generates=list(task.generates),
        usage_count=analysis.task_usage.get(name, 0),
        is_internal=task.internal,
        platforms=list(task.platforms),
        aliases=list(task.aliases),
        preconditions=[p.sh for p in task.preconditions],
        task_type=detect_task_type(task),
        complexity=task.complexity(),
        patterns={p: 1 for p, pc in analysis.command_patterns.items() if name in pc.jobs},
        optimization_ops=ops,
    )


# ----------------------------------------------------------------------
# Rankings / summaries
# ----------------------------------------------------------------------

def most_used_tasks(analysis: TaskfileAnalysis, limit: Optional[int] = None) -> List[Tuple[str, int]]:
    """Descending by dependency references; equal counts ordered by name."""
    return ranked(analysis.task_usage, limit)


def most_used_patterns(analysis: TaskfileAnalysis, limit: Optional[int] = None) -> List[Tuple[str, int]]:
    return ranked({name: pc.count for name, pc in analysis.command_patterns.items()}, limit)


def command_frequency(taskfile: Taskfile) -> Dict[str, int]:
    commands: List[str] = []
    for task in taskfile.tasks.values():
        commands.extend(task.cmds)
    return first_word_frequency(commands)


def tasks_by_pattern(analysis: TaskfileAnalysis, pattern: str) -> List[str]:
    pc = analysis.command_patterns.get(pattern)
    return list(pc.jobs) if pc else []


def tasks_by_type(taskfile: Taskfile) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for name in sorted(taskfile.tasks):
        add_unique(out, detect_task_type(taskfile.tasks[name]), name)
    return out
