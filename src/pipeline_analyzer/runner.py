# runner.py
"""Analyze discovered tools one at a time; a failing tool never stops the run."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import circleci, githubactions, gotask
from .discovery import DiscoveredTool, is_git_repository
from .docker import analyzer as docker_analyzer
from .docker import compose, dockerfile
from .errors import AnalyzerError, DecodeError, GraphAnomaly, PartialRecovery, ReferenceAnomaly, first_line
from .ui.console import Console


@dataclass
class ToolResult:
    tool: DiscoveredTool
    success: bool
    error: str = ""
    model: Any = None
    analysis: Any = None


@dataclass
class RunReport:
    root: str
    git_repository: bool = False
    results: List[ToolResult] = field(default_factory=list)
    docker_summary: Optional[docker_analyzer.DockerSummary] = None

    @property
    def succeeded(self) -> List[ToolResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[ToolResult]:
        return [r for r in self.results if not r.success]

    def summary_rows(self) -> List[Tuple[str, bool, str]]:
        return [(r.tool.display_name, r.success, r.error) for r in self.results]


# ----------------------------------------------------------------------
# Per format: bytes -> (model, analysis). Parse, validate, analyze.
# ----------------------------------------------------------------------

def _circleci(data: bytes, path: str, console: Console) -> Tuple[Any, Any]:
    config = circleci.parse(data, path=path, console=console)
    circleci.is_valid(config)
    return config, circleci.analyze(config)


def _github_actions(data: bytes, path: str, console: Console) -> Tuple[Any, Any]:
    workflow = githubactions.parse(data, path=path, console=console)
    githubactions.is_valid(workflow)
    return workflow, githubactions.analyze(workflow)


def _gotask(data: bytes, path: str, console: Console) -> Tuple[Any, Any]:
    taskfile = gotask.parse(data, path=path, console=console)
    gotask.is_valid(taskfile)
    return taskfile, gotask.analyze(taskfile)


def _dockerfile(data: bytes, path: str, console: Console) -> Tuple[Any, Any]:
    model = dockerfile.parse(data, path=path, console=console)
    dockerfile.is_valid(model)
    return model, docker_analyzer.analyze_dockerfile(model)


def _compose(data: bytes, path: str, console: Console) -> Tuple[Any, Any]:
    model = compose.parse(data, path=path, console=console)
    compose.is_valid(model)
    return model, docker_analyzer.analyze_compose(model)


ANALYZERS: Dict[str, Callable[[bytes, str, Console], Tuple[Any, Any]]] = {
    "circleci": _circleci,
    "github-actions": _github_actions,
    "gotask": _gotask,
    "dockerfile": _dockerfile,
    "docker-compose": _compose,
}


def analyze_tool(root: str | Path, tool: DiscoveredTool, console: Console) -> ToolResult:
    """
    Read, parse, validate and analyze one config file.

    AnalyzerError and OSError become a failed ToolResult with a one-line
    reason; anything else is a bug and propagates.
    """
    handler = ANALYZERS.get(tool.type)
    if handler is None:
        return ToolResult(tool, False, error=f"unsupported tool type: {tool.type}")

    path = Path(root) / tool.config_path
    try:
        # read fully before parsing; the handle is closed here
        data = path.read_bytes()
        model, analysis = handler(data, tool.config_path, console)
    except DecodeError as e:
        console.print_parse_error(tool.config_path, str(e))
        return ToolResult(tool, False, error=first_line(e))
    except (AnalyzerError, OSError) as e:
        console.print_debug(str(e))
        return ToolResult(tool, False, error=first_line(e))

    _report_anomalies(tool, model, analysis, console)
    return ToolResult(tool, True, model=model, analysis=analysis)


def _report_anomalies(tool: DiscoveredTool, model: Any, analysis: Any, console: Console) -> None:
    recovery: Optional[PartialRecovery] = getattr(model, "recovery", None)
    if recovery is not None:
        console.print_warning(f"{tool.config_path}: partial result, {recovery.describe()}")
    cycles: Optional[GraphAnomaly] = getattr(analysis, "cycles", None)
    if isinstance(cycles, GraphAnomaly):
        for line in cycles.describe():
            console.print_warning(f"{tool.config_path}: dependency cycle {line}")
    dangling: Sequence[ReferenceAnomaly] = getattr(analysis, "dangling", ())
    for ref in dangling:
        console.print_warning(ref.describe())


def analyze_tools(root: str | Path, tools: Sequence[DiscoveredTool], console: Console) -> RunReport:
    """Sequentially analyze every tool; results keep the order of `tools`."""
    report = RunReport(root=str(root), git_repository=is_git_repository(root))
    console.print_run_started(repository=Path(root).resolve().name, tool_count=len(tools))

    for tool in tools:
        console.print_tool_start(tool.display_name)
        result = analyze_tool(root, tool, console)
        if result.success:
            console.print_info(f"{tool.display_name}: analyzed")
        report.results.append(result)

    dockerfiles = [r.analysis for r in report.succeeded if r.tool.type == "dockerfile"]
    composes = [r.analysis for r in report.succeeded if r.tool.type == "docker-compose"]
    if dockerfiles or composes:
        usage = docker_analyzer.docker_usage(
            usage_sources(report.succeeded),
            [t.config_path for t in tools if t.type == "dockerfile"],
        )
        report.docker_summary = docker_analyzer.summarize(dockerfiles, composes, usage)
    return report


def usage_sources(results: Sequence[ToolResult]) -> List[docker_analyzer.UsageSource]:
    """Command texts per job/task of every analyzed CircleCI, GitHub Actions and go-task config."""
    sources: List[docker_analyzer.UsageSource] = []
    for result in results:
        model = result.model
        texts: Dict[str, List[str]] = {}
        if result.tool.type == "circleci":
            for name, job in model.jobs.items():
                texts[f"job {name}"] = job.commands()
            for name, command in model.commands.items():
                texts[f"command {name}"] = command.commands()
        elif result.tool.type == "github-actions":
            for name, job in model.jobs.items():
                # action inputs name Dockerfiles too (`with: file: ...`)
                inputs = [v for step in job.steps for v in step.with_.values()]
                texts[f"job {name}"] = job.run_commands() + inputs
        elif result.tool.type == "gotask":
            for name, task in model.tasks.items():
                texts[f"task {name}"] = list(task.cmds)
        else:
            continue
        sources.append((result.tool.type, result.tool.config_path, texts))
    return sources
