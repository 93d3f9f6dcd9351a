# report.py
"""
Markdown output.

  <output_dir>/README.md                          overview of every tool
  <output_dir>/<type>/<slug of config path>/README.md   one page per config file
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .circleci import analyzer as circleci_analyzer
from .circleci.analyzer import CircleAnalysis
from .circleci.model import CircleConfig
from .docker.analyzer import ComposeAnalysis, DockerfileAnalysis, DockerSummary, DockerUsage
from .githubactions.analyzer import WorkflowAnalysis, most_used_actions
from .gotask import analyzer as gotask_analyzer
from .gotask.analyzer import TaskfileAnalysis
from .gotask.model import Taskfile
from .graph import DependencyGraph
from .patterns import detect_tool_ecosystem, patterns_by_category
from .runner import RunReport, ToolResult
from .ui.console import Console
from .usage import PatternCount, first_word_frequency, ranked

_SLUG_SEPARATORS = re.compile(r"[/\\:\s_.]+")


def slugify(name: str) -> str:
    slug = _SLUG_SEPARATORS.sub("-", name.strip().lower())
    return slug.strip("-") or "config"


def tool_dir(output_dir: Path, result: ToolResult) -> Path:
    return output_dir / result.tool.type / slugify(result.tool.config_path)


def write_reports(report: RunReport, output_dir: str | Path, console: Console) -> List[Path]:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    for result in report.succeeded:
        path = tool_dir(output_dir, result) / "README.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_tool(result), encoding="utf-8")
        console.print_written(str(path))
        written.append(path)

    overview = output_dir / "README.md"
    overview.write_text(render_overview(report, output_dir), encoding="utf-8")
    console.print_written(str(overview))
    written.append(overview)
    return written


# ----------------------------------------------------------------------
# Building blocks
# ----------------------------------------------------------------------

def _table(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> List[str]:
    lines = ["| " + " | ".join(headers) + " |", "|" + "---|" * len(headers)]
    for row in rows:
        cells = [str(c).replace("|", "\\|").replace("\n", " ") for c in row]
        lines.append("| " + " | ".join(cells) + " |")
    return lines + [""]


def _bullets(items: Iterable[str], empty: Optional[str] = None) -> List[str]:
    lines = [f"- {item}" for item in items]
    if not lines and empty:
        lines = [f"_{empty}_"]
    return lines + [""]


def _patterns(title: str, ranking: Sequence[Tuple[str, int]], counts: Dict[str, PatternCount]) -> List[str]:
    if not ranking:
        return []
    # fallback entries are keyed by their category
    category = {name: cat for cat, names in patterns_by_category().items() for name in names}
    rows = ((name, category.get(name, name), n, ", ".join(counts[name].jobs)) for name, n in ranking)
    return [f"## {title}", ""] + _table(("Pattern", "Category", "Count", "Used by"), rows)


def _commands(commands: Sequence[str], frequency: Dict[str, int]) -> List[str]:
    """Ecosystem line plus the most frequent first words."""
    if not commands:
        return []
    lines = [f"Ecosystem: {detect_tool_ecosystem(commands)}", ""]
    return lines + ["## Top commands", ""] + _table(("Command", "Count"), ranked(frequency, 10))


def _graph(graph: DependencyGraph) -> List[str]:
    lines = ["## Dependency graph", ""]
    if graph.critical_path:
        note = " (approximate, graph has cycles)" if graph.critical_path_approximate else ""
        lines += [f"Critical path{note}: {' -> '.join(graph.critical_path)}", ""]
    if graph.parallel_groups:
        lines += ["Nodes on the same level have their dependencies satisfied together; "
                  "that alone does not mean they can run in parallel.", ""]
        lines += _table(("Level", "Nodes"), ((lvl, ", ".join(names)) for lvl, names in graph.parallel_groups.items()))
    anomaly = graph.anomaly
    if anomaly is not None:
        lines += ["### Cycles", ""] + _bullets(anomaly.describe())
    return lines


def _anomalies(result: ToolResult) -> List[str]:
    lines: List[str] = []
    recovery = getattr(result.model, "recovery", None)
    if recovery is not None:
        lines += ["## Partial result", "", recovery.describe(), ""]
    dangling = getattr(result.analysis, "dangling", [])
    if dangling:
        lines += ["## Dangling references", ""] + _bullets(ref.describe() for ref in dangling)
    return lines


# ----------------------------------------------------------------------
# Per-format pages
# ----------------------------------------------------------------------

def _circleci(result: ToolResult) -> List[str]:
    a: CircleAnalysis = result.analysis
    config: CircleConfig = result.model
    lines = [f"Jobs: {a.total_jobs}  Workflows: {a.total_workflows}  Commands: {a.total_commands}", ""]
    docker, other = circleci_analyzer.count_docker_usage(config)
    lines += [f"Jobs on docker or a named executor: {docker}  Other: {other}", ""]

    jobs = [circleci_analyzer.analyze_job(config, name, a) for name in config.jobs]
    rows = (
        (j.name, j.executor or ", ".join(j.images) or "-", ", ".join(j.dependencies), j.usage_count, j.description)
        for j in jobs if j is not None
    )
    lines += ["## Jobs", ""] + _table(("Job", "Executor / images", "Requires", "Required by", "Description"), rows)

    workflows = [circleci_analyzer.analyze_workflow(config, name) for name in config.workflows]
    rows = (
        (w.name, len(w.jobs), ", ".join(w.entry_jobs), ", ".join(w.approval_jobs) or "-", " -> ".join(w.graph.critical_path))
        for w in workflows if w is not None
    )
    lines += ["## Workflows", ""] + _table(("Workflow", "Jobs", "Entry jobs", "Approvals", "Critical path"), rows)

    lines += ["## Most referenced jobs", ""] + _table(("Job", "Workflow references"), circleci_analyzer.most_used_jobs(a, 15))
    if a.executor_usage:
        lines += ["## Executors", ""] + _table(("Executor", "Jobs"), ((k, ", ".join(v)) for k, v in sorted(a.executor_usage.items())))
    if a.reusable_commands:
        rows = ((c.name, c.usage_count, c.description) for c in a.reusable_commands.values())
        lines += ["## Reusable commands", ""] + _table(("Command", "Used", "Description"), rows)

    commands = [c for job in config.jobs.values() for c in job.commands()]
    lines += _commands(commands, circleci_analyzer.command_frequency(config))
    lines += _patterns("Command patterns", circleci_analyzer.most_used_patterns(a, 15), a.command_patterns)
    return lines + _graph(a.graph)


def _github_actions(result: ToolResult) -> List[str]:
    a: WorkflowAnalysis = result.analysis
    lines = [f"Workflow: {a.name or '(unnamed)'}  Jobs: {len(a.jobs)}  Steps: {a.total_steps}", ""]
    rows = ((j.name, j.runner, j.step_count, j.estimated_time, ", ".join(j.dependencies)) for j in a.jobs.values())
    lines += ["## Jobs", ""] + _table(("Job", "Runner", "Steps", "Estimate", "Needs"), rows)
    if a.action_usage:
        lines += ["## Actions", ""] + _table(("Action", "Uses"), most_used_actions(a))
    security = [f"{j.name}: {issue}" for j in a.jobs.values() for issue in j.security_issues]
    if security:
        lines += ["## Security", ""] + _bullets(security)

    commands = [c for j in a.jobs.values() for c in j.run_commands]
    lines += _commands(commands, first_word_frequency(commands))
    ranking = ranked({k: v.count for k, v in a.command_patterns.items()}, 15)
    lines += _patterns("Command patterns", ranking, a.command_patterns)
    lines += ["## Recommendations", ""] + _bullets(a.recommendations + a.issues, empty="none")
    return lines + _graph(a.graph)


def _gotask(result: ToolResult) -> List[str]:
    a: TaskfileAnalysis = result.analysis
    taskfile: Taskfile = result.model
    p = a.performance
    lines = [f"Tasks: {a.total_tasks}  Commands: {a.total_commands}  Includes: {', '.join(a.includes) or 'none'}", ""]
    lines += ["## Performance", ""] + _table(("Metric", "Value"), (
        ("Tasks with sources", p.tasks_with_sources),
        ("Tasks with generates", p.tasks_with_generates),
        ("Cache-optimized tasks", p.tasks_with_caching),
        ("Tasks without deps", p.parallelizable_tasks),
        ("Optimization potential", f"{p.optimization_potential:.0f}%"),
    ))

    tasks = [gotask_analyzer.analyze_task(taskfile, name, a) for name in taskfile.tasks]
    rows = (
        (t.name, t.task_type, ", ".join(t.dependencies), t.usage_count, t.complexity, t.description)
        for t in tasks if t is not None
    )
    lines += ["## Tasks", ""] + _table(("Task", "Type", "Deps", "Used as dependency", "Complexity", "Description"), rows)
    by_type = gotask_analyzer.tasks_by_type(taskfile)
    lines += ["## Task types", ""] + _table(("Type", "Tasks"), ((k, ", ".join(v)) for k, v in sorted(by_type.items())))

    lines += ["## Most depended-on tasks", ""] + _table(("Task", "Used as dependency"), gotask_analyzer.most_used_tasks(a, 15))
    if a.optimization_tips:
        rows = ((t.severity, t.type, t.task, t.message) for t in a.optimization_tips)
        lines += ["## Optimization tips", ""] + _table(("Severity", "Type", "Task", "Message"), rows)

    commands = [c for task in taskfile.tasks.values() for c in task.cmds]
    lines += _commands(commands, gotask_analyzer.command_frequency(taskfile))
    lines += _patterns("Command patterns", gotask_analyzer.most_used_patterns(a, 15), a.command_patterns)
    return lines + _graph(a.graph)


def _dockerfile(result: ToolResult) -> List[str]:
    a: DockerfileAnalysis = result.analysis
    scan = a.security_scan
    lines = [f"Stages: {a.stage_count}  Base images: {', '.join(a.base_images)}", ""]
    lines += _table(("Check", "Result"), (
        ("Runs as root", scan.run_as_root),
        ("Unpinned base images", ", ".join(scan.unpinned_base_images) or "none"),
        ("Health check", scan.has_health_check),
        ("Multi-stage", scan.multi_stage_optimized),
        ("Layer caching optimized", scan.caching_optimized),
        ("Security updates applied", scan.has_security_updates),
    ))
    if a.exposed_ports:
        lines += [f"Exposed ports: {', '.join(a.exposed_ports)}", ""]
    return lines + ["## Recommendations", ""] + _bullets(scan.recommendations, empty="none")


def _compose(result: ToolResult) -> List[str]:
    a: ComposeAnalysis = result.analysis
    lines = [f"Services: {a.service_count}  Complexity: {a.complexity_score}/100", ""]
    lines += _table(("Category", "Services"), (
        ("database", ", ".join(a.database_services)),
        ("cache", ", ".join(a.cache_services)),
        ("web", ", ".join(a.web_services)),
    ))
    lines += ["Categories are name/image heuristics and may overlap.", ""]
    if a.port_conflicts:
        lines += ["## Port conflicts", ""] + _bullets(c.describe() for c in a.port_conflicts)
    if a.security_issues:
        lines += ["## Security", ""] + _bullets(a.security_issues)
    if a.performance_issues:
        lines += ["## Performance", ""] + _bullets(a.performance_issues)
    lines += ["## Recommendations", ""] + _bullets(a.recommendations, empty="none")
    return lines + _graph(a.graph)


_RENDERERS: Dict[str, Callable[[ToolResult], List[str]]] = {
    "circleci": _circleci,
    "github-actions": _github_actions,
    "gotask": _gotask,
    "dockerfile": _dockerfile,
    "docker-compose": _compose,
}


def render_tool(result: ToolResult) -> str:
    lines = [f"# {result.tool.display_name}", "", f"Config: `{result.tool.config_path}`", ""]
    lines += _RENDERERS[result.tool.type](result)
    lines += _anomalies(result)
    return "\n".join(lines).rstrip() + "\n"


def render_overview(report: RunReport, output_dir: Path) -> str:
    lines = ["# Pipeline analysis", "", f"Repository: `{report.root}`", ""]
    lines += [f"Git repository: {'yes' if report.git_repository else 'no'}", ""]
    rows: List[Tuple[str, str, str]] = []
    for result in report.results:
        if result.success:
            link = tool_dir(output_dir, result).relative_to(output_dir).as_posix()
            rows.append((result.tool.display_name, "success", f"[report]({link}/README.md)"))
        else:
            rows.append((result.tool.display_name, "failed", result.error))
    lines += _table(("Tool", "Status", "Details"), rows)
    if report.docker_summary is not None:
        lines += _docker_summary(report.docker_summary)
    return "\n".join(lines).rstrip() + "\n"


def _docker_summary(summary: DockerSummary) -> List[str]:
    lines = ["## Docker summary", ""]
    lines += _table(("Metric", "Value"), (
        ("Dockerfiles", summary.total_dockerfiles),
        ("Multi-stage builds", summary.multi_stage_builds),
        ("Compose files", summary.total_compose_files),
        ("Services", summary.service_count),
        ("Security issues", summary.security_issues),
        ("Optimization issues", summary.optimization_issues),
        ("Most common instructions", ", ".join(summary.most_common_instructions)),
        ("Score", f"{summary.overall_score}/100"),
    ))
    lines += _bullets(summary.recommendations)
    if summary.usage is not None:
        lines += _docker_usage(summary.usage)
    return lines


def _docker_usage(usage: DockerUsage) -> List[str]:
    if not usage.total_references:
        return []
    lines = ["## Docker usage in other configs", ""]
    rows = (
        (ref.tool, ref.file, ref.location, ref.command, ref.context)
        for ref in usage.command_references + usage.compose_references + usage.dockerfile_references
    )
    lines += _table(("Tool", "File", "Location", "Command", "Context"), rows)
    referenced = usage.referenced_dockerfiles()
    if referenced:
        lines += [f"Referenced Dockerfiles: {', '.join(referenced)}", ""]
    return lines
