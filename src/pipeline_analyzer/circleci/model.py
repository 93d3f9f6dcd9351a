# circleci/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..yamlvalue import plain_copy


@dataclass
class Step:
    """
    One entry of a job's `steps`.

    `kind` is the directive name: "run", "checkout", "save_cache", or the name
    of a reusable command / orb command.
    """
    kind: str
    command: Optional[str] = None
    name: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_run(self) -> bool:
        return self.kind == "run" and bool(self.command)

    def clone(self) -> "Step":
        return Step(self.kind, self.command, self.name, plain_copy(self.params))


@dataclass
class Job:
    name: str
    description: str = ""
    steps: List[Step] = field(default_factory=list)
    docker: List[str] = field(default_factory=list)    # images, primary first
    machine: Optional[str] = None                      # "default" when `machine: true`
    macos: Optional[str] = None                        # xcode version
    executor: Optional[str] = None
    environment: Dict[str, str] = field(default_factory=dict)
    working_directory: Optional[str] = None
    parallelism: Optional[int] = None
    resource_class: Optional[str] = None

    def commands(self) -> List[str]:
        return [s.command for s in self.steps if s.is_run]

    def clone(self) -> "Job":
        return Job(
            name=self.name,
            description=self.description,
            steps=[s.clone() for s in self.steps],
            docker=list(self.docker),
            machine=self.machine,
            macos=self.macos,
            executor=self.executor,
            environment=dict(self.environment),
            working_directory=self.working_directory,
            parallelism=self.parallelism,
            resource_class=self.resource_class,
        )


@dataclass
class WorkflowJob:
    """A job reference inside a workflow. `alias` is the optional `name:` override."""
    name: str
    requires: List[str] = field(default_factory=list)
    context: List[str] = field(default_factory=list)
    filters: Dict[str, Any] = field(default_factory=dict)
    alias: Optional[str] = None
    approval: bool = False

    @property
    def display_name(self) -> str:
        return self.alias or self.name

    def clone(self) -> "WorkflowJob":
        return WorkflowJob(
            name=self.name,
            requires=list(self.requires),
            context=list(self.context),
            filters=plain_copy(self.filters),
            alias=self.alias,
            approval=self.approval,
        )


@dataclass
class Workflow:
    name: str
    jobs: List[WorkflowJob] = field(default_factory=list)
    has_triggers: bool = False

    def clone(self) -> "Workflow":
        return Workflow(self.name, [j.clone() for j in self.jobs], self.has_triggers)


@dataclass
class Executor:
    name: str
    docker: List[str] = field(default_factory=list)
    machine: Optional[str] = None
    macos: Optional[str] = None
    resource_class: Optional[str] = None
    working_directory: Optional[str] = None
    environment: Dict[str, str] = field(default_factory=dict)

    def images(self) -> List[str]:
        if self.docker:
            return list(self.docker)
        if self.machine:
            return [f"machine:{self.machine}"]
        if self.macos:
            return [f"macos:{self.macos}"]
        return []

    def clone(self) -> "Executor":
        return Executor(
            name=self.name,
            docker=list(self.docker),
            machine=self.machine,
            macos=self.macos,
            resource_class=self.resource_class,
            working_directory=self.working_directory,
            environment=dict(self.environment),
        )


@dataclass
class ReusableCommand:
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)
    steps: List[Step] = field(default_factory=list)

    def commands(self) -> List[str]:
        return [s.command for s in self.steps if s.is_run]

    def clone(self) -> "ReusableCommand":
        return ReusableCommand(
            self.name,
            self.description,
            plain_copy(self.parameters),
            [s.clone() for s in self.steps],
        )


@dataclass
class CircleConfig:
    path: str = ""
    version: str = ""
    jobs: Dict[str, Job] = field(default_factory=dict)
    workflows: Dict[str, Workflow] = field(default_factory=dict)
    executors: Dict[str, Executor] = field(default_factory=dict)
    commands: Dict[str, ReusableCommand] = field(default_factory=dict)
    orbs: Dict[str, str] = field(default_factory=dict)

    def executor_images(self, name: Optional[str]) -> List[str]:
        if not name or name not in self.executors:
            return []
        return self.executors[name].images()

    def clone(self) -> "CircleConfig":
        return CircleConfig(
            path=self.path,
            version=self.version,
            jobs={k: v.clone() for k, v in self.jobs.items()},
            workflows={k: v.clone() for k, v in self.workflows.items()},
            executors={k: v.clone() for k, v in self.executors.items()},
            commands={k: v.clone() for k, v in self.commands.items()},
            orbs=dict(self.orbs),
        )
