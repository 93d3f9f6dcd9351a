# githubactions/analyzer.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import GraphAnomaly, ReferenceAnomaly
from ..graph import DependencyGraph, analyze_graph
from ..usage import PatternCount, add_unique, image_index, index_commands, ranked
from .model import Job, WorkflowFile

_CURL_TO_SHELL = re.compile(r"\b(?:curl|wget)\b[^|\n]*\|\s*(?:sudo\s+)?(?:ba|z)?sh\b", re.IGNORECASE)


@dataclass
class JobAnalysis:
    name: str
    runner: str
    step_count: int
    run_commands: List[str]
    actions_used: List[str]
    dependencies: List[str]
    estimated_time: str
    caching_enabled: bool
    recommendations: List[str] = field(default_factory=list)
    security_issues: List[str] = field(default_factory=list)

    def clone(self) -> "JobAnalysis":
        return JobAnalysis(
            self.name,
            self.runner,
            self.step_count,
            list(self.run_commands),
            list(self.actions_used),
            list(self.dependencies),
            self.estimated_time,
            self.caching_enabled,
            list(self.recommendations),
            list(self.security_issues),
        )


@dataclass
class WorkflowAnalysis:
    path: str = ""
    name: str = ""
    jobs: Dict[str, JobAnalysis] = field(default_factory=dict)
    job_usage: Dict[str, int] = field(default_factory=dict)
    job_dependencies: Dict[str, List[str]] = field(default_factory=dict)
    action_usage: Dict[str, int] = field(default_factory=dict)
    runner_usage: Dict[str, int] = field(default_factory=dict)
    service_usage: Dict[str, int] = field(default_factory=dict)
    command_patterns: Dict[str, PatternCount] = field(default_factory=dict)
    category_counts: Dict[str, PatternCount] = field(default_factory=dict)
    tool_counts: Dict[str, PatternCount] = field(default_factory=dict)
    image_usage: Dict[str, List[str]] = field(default_factory=dict)
    total_steps: int = 0
    recommendations: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    dangling: List[ReferenceAnomaly] = field(default_factory=list)
    graph: DependencyGraph = field(default_factory=DependencyGraph)

    @property
    def cycles(self) -> Optional[GraphAnomaly]:
        return self.graph.anomaly

    def clone(self) -> "WorkflowAnalysis":
        return WorkflowAnalysis(
            path=self.path,
            name=self.name,
            jobs={k: v.clone() for k, v in self.jobs.items()},
            job_usage=dict(self.job_usage),
            job_dependencies={k: list(v) for k, v in self.job_dependencies.items()},
            action_usage=dict(self.action_usage),
            runner_usage=dict(self.runner_usage),
            service_usage=dict(self.service_usage),
            command_patterns={k: v.clone() for k, v in self.command_patterns.items()},
            category_counts={k: v.clone() for k, v in self.category_counts.items()},
            tool_counts={k: v.clone() for k, v in self.tool_counts.items()},
            image_usage={k: list(v) for k, v in self.image_usage.items()},
            total_steps=self.total_steps,
            recommendations=list(self.recommendations),
            issues=list(self.issues),
            dangling=list(self.dangling),
            graph=self.graph.clone(),
        )


def analyze(workflow: WorkflowFile) -> WorkflowAnalysis:
    """Pure: reads `workflow`, never mutates it."""
    result = WorkflowAnalysis(
        path=workflow.path,
        name=workflow.name,
        job_usage={name: 0 for name in workflow.jobs},
    )

    commands: Dict[str, List[str]] = {}
    for name, job in workflow.jobs.items():
        job_analysis = analyze_job(job)
        result.jobs[name] = job_analysis
        result.total_steps += job_analysis.step_count
        result.runner_usage[job.runner] = result.runner_usage.get(job.runner, 0) + 1
        for action in job_analysis.actions_used:
            result.action_usage[action] = result.action_usage.get(action, 0) + 1
        for service in job.services:
            result.service_usage[service] = result.service_usage.get(service, 0) + 1
        commands[name] = job_analysis.run_commands

        if job.needs:
            result.job_dependencies[name] = list(dict.fromkeys(job.needs))
        for need in dict.fromkeys(job.needs):
            result.job_usage[need] = result.job_usage.get(need, 0) + 1
            if need not in workflow.jobs:
                result.dangling.append(ReferenceAnomaly(container=f"workflow {workflow.path}", source=name, missing=need, relation="needs"))

    index = index_commands(commands)
    result.command_patterns = index.by_pattern
    result.category_counts = index.by_category
    result.tool_counts = index.by_tool
    result.image_usage = _image_usage(workflow, commands)

    deps = {name: [] for name in workflow.jobs}
    deps.update(result.job_dependencies)
    result.graph = analyze_graph(deps)

    result.recommendations = _recommendations(result)
    result.issues = _issues(workflow, result)
    return result


def _image_usage(workflow: WorkflowFile, commands: Dict[str, List[str]]) -> Dict[str, List[str]]:
    usage = image_index(commands)
    for name, job in workflow.jobs.items():
        if job.container:
            add_unique(usage, job.container, name)
        for service in job.services.values():
            if service.image:
                add_unique(usage, service.image, name)
    return usage


# ----------------------------------------------------------------------
# Per job
# ----------------------------------------------------------------------

def analyze_job(job: Job) -> JobAnalysis:
    actions = job.actions()
    commands = job.run_commands()
    analysis = JobAnalysis(
        name=job.name,
        runner=job.runner,
        step_count=len(job.steps),
        run_commands=commands,
        actions_used=actions,
        dependencies=list(job.needs),
        estimated_time="",
        caching_enabled=any("cache" in a for a in actions),
    )
    analysis.estimated_time = estimate_job_time(analysis)
    analysis.recommendations = _job_recommendations(analysis)
    analysis.security_issues = _security_issues(analysis)
    return analysis


def estimate_job_time(job: JobAnalysis) -> str:
    """Rough bucket: 30s per step plus fixed costs for installs, image builds and tests."""
    seconds = job.step_count * 30
    for cmd in job.run_commands:
        if "npm install" in cmd or "npm ci" in cmd:
            seconds += 60
        if "docker build" in cmd:
            seconds += 180
        if "test" in cmd:
            seconds += 30
    if seconds < 60:
        return "< 1 min"
    if seconds < 300:
        return f"~{seconds // 60} min"
    return "> 5 min"


def _job_recommendations(job: JobAnalysis) -> List[str]:
    out: List[str] = []
    if not job.caching_enabled and len(job.run_commands) > 3:
        out.append("Consider adding caching to improve build times")
    scripted = sum(1 for c in job.run_commands if "npm run" in c or "make" in c or "scripts/" in c)
    if scripted > 2:
        out.append("Multiple script executions - good candidate for task runner consolidation")
    return out


def _security_issues(job: JobAnalysis) -> List[str]:
    issues: List[str] = []
    for action in job.actions_used:
        if action.startswith("./") or action.startswith("docker://"):
            continue
        if "@" not in action or action.endswith("@latest"):
            issues.append(f"Action '{action}' not pinned to specific version")
        elif re.search(r"@(main|master)$", action):
            issues.append(f"Action '{action}' tracks a branch, pin a tag or commit SHA")
    for cmd in job.run_commands:
        if _CURL_TO_SHELL.search(cmd):
            issues.append("Potential security risk: piping curl to shell")
    return issues


# ----------------------------------------------------------------------
# Workflow level
# ----------------------------------------------------------------------

def _recommendations(result: WorkflowAnalysis) -> List[str]:
    out: List[str] = []
    if result.tool_counts:
        out.append("Consider creating task runner equivalents for repeated command patterns")
    npm = result.tool_counts.get("npm")
    if npm and npm.count > 3:
        out.append("Multiple npm commands detected - consider consolidating them into tasks")
    docker = result.tool_counts.get("docker")
    if docker and docker.count > 2:
        out.append("Docker commands found - a task runner could simplify container management")
    if "testing" in result.category_counts:
        out.append("Test commands detected - shared tasks keep local and CI testing consistent")
    return out


def _issues(workflow: WorkflowFile, result: WorkflowAnalysis) -> List[str]:
    issues: List[str] = []
    if not workflow.name:
        issues.append("Workflow missing name field")
    independent = sum(1 for job in result.jobs.values() if not job.dependencies)
    if independent > 3:
        issues.append("Many independent jobs - consider if some should have dependencies")
    return issues


def most_used_actions(result: WorkflowAnalysis, limit: Optional[int] = None) -> List[Tuple[str, int]]:
    """Descending count; equal counts ordered by name."""
    return ranked(result.action_usage, limit)
