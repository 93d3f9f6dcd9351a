# circleci/analyzer.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import GraphAnomaly, ReferenceAnomaly
from ..graph import DependencyGraph, analyze_graph
from ..usage import PatternCount, add_unique, first_word_frequency, index_commands, ranked
from ..yamlvalue import plain_copy
from .model import CircleConfig, Job, WorkflowJob


@dataclass
class JobAnalysis:
    name: str
    description: str
    commands: List[str]
    images: List[str]
    executor: Optional[str]
    dependencies: List[str]
    usage_count: int
    workflow_usage: int
    patterns: Dict[str, int] = field(default_factory=dict)


@dataclass
class WorkflowAnalysis:
    name: str
    jobs: List[WorkflowJob]
    entry_jobs: List[str]
    approval_jobs: List[str]
    graph: DependencyGraph


@dataclass
class ReusableCommandAnalysis:
    name: str
    description: str
    commands: List[str]
    parameters: Dict[str, Any]
    usage_count: int = 0
    patterns: Dict[str, int] = field(default_factory=dict)

    def clone(self) -> "ReusableCommandAnalysis":
        return ReusableCommandAnalysis(
            self.name,
            self.description,
            list(self.commands),
            plain_copy(self.parameters),
            self.usage_count,
            dict(self.patterns),
        )


@dataclass
class CircleAnalysis:
    """
    Derived facts for one CircleCI config.

    job_usage       times a job is named in some `requires` list
    workflow_usage  times a job is referenced from a workflow
    """
    job_usage: Dict[str, int] = field(default_factory=dict)
    workflow_usage: Dict[str, int] = field(default_factory=dict)
    job_dependencies: Dict[str, List[str]] = field(default_factory=dict)
    command_patterns: Dict[str, PatternCount] = field(default_factory=dict)
    category_counts: Dict[str, PatternCount] = field(default_factory=dict)
    executor_usage: Dict[str, List[str]] = field(default_factory=dict)
    reusable_commands: Dict[str, ReusableCommandAnalysis] = field(default_factory=dict)
    dangling: List[ReferenceAnomaly] = field(default_factory=list)
    graph: DependencyGraph = field(default_factory=DependencyGraph)
    total_jobs: int = 0
    total_workflows: int = 0
    total_commands: int = 0

    @property
    def cycles(self) -> Optional[GraphAnomaly]:
        return self.graph.anomaly

    def clone(self) -> "CircleAnalysis":
        return CircleAnalysis(
            job_usage=dict(self.job_usage),
            workflow_usage=dict(self.workflow_usage),
            job_dependencies={k: list(v) for k, v in self.job_dependencies.items()},
            command_patterns={k: v.clone() for k, v in self.command_patterns.items()},
            category_counts={k: v.clone() for k, v in self.category_counts.items()},
            executor_usage={k: list(v) for k, v in self.executor_usage.items()},
            reusable_commands={k: v.clone() for k, v in self.reusable_commands.items()},
            dangling=list(self.dangling),
            graph=self.graph.clone(),
            total_jobs=self.total_jobs,
            total_workflows=self.total_workflows,
            total_commands=self.total_commands,
        )


# ----------------------------------------------------------------------
# Whole-config analysis
# ----------------------------------------------------------------------

def analyze(config: CircleConfig) -> CircleAnalysis:
    """Pure: reads `config`, never mutates it."""
    analysis = CircleAnalysis(
        job_usage={name: 0 for name in config.jobs},
        total_jobs=len(config.jobs),
        total_workflows=len(config.workflows),
    )

    _analyze_workflows(config, analysis)

    index = index_commands({name: job.commands() for name, job in config.jobs.items()})
    analysis.command_patterns = index.by_pattern
    analysis.category_counts = index.by_category
    analysis.total_commands = index.total

    analysis.executor_usage = _executor_usage(config)
    analysis.reusable_commands = _reusable_commands(config)

    deps = {name: [] for name in config.jobs}
    deps.update(analysis.job_dependencies)
    analysis.graph = analyze_graph(deps)
    return analysis


def _analyze_workflows(config: CircleConfig, analysis: CircleAnalysis) -> None:
    for wf_name, workflow in config.workflows.items():
        # `requires` may name a job by its alias within this workflow
        alias_to_job = {ref.display_name: ref.name for ref in workflow.jobs}

        for ref in workflow.jobs:
            analysis.workflow_usage[ref.name] = analysis.workflow_usage.get(ref.name, 0) + 1

            if ref.name not in config.jobs and not ref.approval and not _is_orb_job(ref.name):
                analysis.dangling.append(
                    ReferenceAnomaly(container=f"workflow {wf_name}", source=wf_name, missing=ref.name, relation="references")
                )

            for req in ref.requires:
                target = alias_to_job.get(req, req)
                analysis.job_usage[target] = analysis.job_usage.get(target, 0) + 1
                deps = analysis.job_dependencies.setdefault(ref.name, [])
                if target not in deps:
                    deps.append(target)
                if req not in alias_to_job and target not in config.jobs:
                    analysis.dangling.append(
                        ReferenceAnomaly(container=f"workflow {wf_name}", source=ref.display_name, missing=req)
                    )

    analysis.job_dependencies = {k: v for k, v in analysis.job_dependencies.items() if v}


def _is_orb_job(name: str) -> bool:
    return "/" in name


def job_images(config: CircleConfig, job: Job) -> List[str]:
    """Direct images plus those inherited from the job's executor."""
    return list(job.docker) + config.executor_images(job.executor)


def _executor_usage(config: CircleConfig) -> Dict[str, List[str]]:
    usage: Dict[str, List[str]] = {}
    for name, job in config.jobs.items():
        for image in job.docker:
            add_unique(usage, image, name)
        if job.machine:
            add_unique(usage, f"machine ({job.machine})", name)
        if job.macos:
            add_unique(usage, f"macos ({job.macos})", name)
        if job.executor:
            images = config.executor_images(job.executor)
            if not images:
                # orb executor or undefined: keep the label
                add_unique(usage, job.executor, name)
            for image in images:
                add_unique(usage, f"{job.executor} ({image})", name)
    return usage


def _reusable_commands(config: CircleConfig) -> Dict[str, ReusableCommandAnalysis]:
    out: Dict[str, ReusableCommandAnalysis] = {}
    for name, command in config.commands.items():
        commands = command.commands()
        index = index_commands({name: commands})
        out[name] = ReusableCommandAnalysis(
            name=name,
            description=command.description,
            commands=commands,
            parameters=plain_copy(command.parameters),
            patterns={p: c.count for p, c in index.by_pattern.items()},
        )

    step_lists = [job.steps for job in config.jobs.values()] + [c.steps for c in config.commands.values()]
    for steps in step_lists:
        for step in steps:
            if step.kind in out:
                out[step.kind].usage_count += 1
    return out


# ----------------------------------------------------------------------
# Per-job / per-workflow views
# ----------------------------------------------------------------------

def analyze_job(config: CircleConfig, name: str, analysis: Optional[CircleAnalysis] = None) -> Optional[JobAnalysis]:
    job = config.jobs.get(name)
    if job is None:
        return None
    analysis = analysis if analysis is not None else analyze(config)

    patterns = {p: 1 for p, pc in analysis.command_patterns.items() if name in pc.jobs}
    return JobAnalysis(
        name=name,
        description=job.description,
        commands=job.commands(),
        images=job_images(config, job),
        executor=job.executor,
        dependencies=list(analysis.job_dependencies.get(name, [])),
        usage_count=analysis.job_usage.get(name, 0),
        workflow_usage=analysis.workflow_usage.get(name, 0),
        patterns=patterns,
    )


def analyze_workflow(config: CircleConfig, name: str) -> Optional[WorkflowAnalysis]:
    workflow = config.workflows.get(name)
    if workflow is None:
        return None
    deps: Dict[str, List[str]] = {}
    for ref in workflow.jobs:
        deps.setdefault(ref.name, [])
        for req in ref.requires:
            if req not in deps[ref.name]:
                deps[ref.name].append(req)
    return WorkflowAnalysis(
        name=name,
        jobs=[ref.clone() for ref in workflow.jobs],
        entry_jobs=[ref.name for ref in workflow.jobs if not ref.requires],
        approval_jobs=[ref.name for ref in workflow.jobs if ref.approval],
        graph=analyze_graph(deps),
    )


# ----------------------------------------------------------------------
# Rankings / summaries
# ----------------------------------------------------------------------

def most_used_jobs(analysis: CircleAnalysis, limit: Optional[int] = None) -> List[Tuple[str, int]]:
    """Jobs by workflow references, descending; equal counts ordered by name."""
    return ranked(analysis.workflow_usage, limit)


def most_used_patterns(analysis: CircleAnalysis, limit: Optional[int] = None) -> List[Tuple[str, int]]:
    return ranked({name: pc.count for name, pc in analysis.command_patterns.items()}, limit)


def command_frequency(config: CircleConfig) -> Dict[str, int]:
    commands: List[str] = []
    for job in config.jobs.values():
        commands.extend(job.commands())
    return first_word_frequency(commands)


def count_docker_usage(config: CircleConfig) -> Tuple[int, int]:
    """(jobs running in docker or a named executor, everything else)."""
    docker = sum(1 for job in config.jobs.values() if job.docker or job.executor)
    return docker, len(config.jobs) - docker


def jobs_by_pattern(analysis: CircleAnalysis, pattern: str) -> List[str]:
    pc = analysis.command_patterns.get(pattern)
    return list(pc.jobs) if pc else []
