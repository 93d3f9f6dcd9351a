# githubactions/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..yamlvalue import plain_copy


@dataclass
class Step:
    name: str = ""
    id: Optional[str] = None
    uses: Optional[str] = None
    run: Optional[str] = None
    shell: Optional[str] = None
    if_: Optional[str] = None
    with_: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    working_directory: Optional[str] = None
    continue_on_error: bool = False

    def run_commands(self) -> List[str]:
        """Non-blank, non-comment lines of the `run` block."""
        if not self.run:
            return []
        out = []
        for line in self.run.splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                out.append(line)
        return out

    def clone(self) -> "Step":
        return Step(
            name=self.name,
            id=self.id,
            uses=self.uses,
            run=self.run,
            shell=self.shell,
            if_=self.if_,
            with_=dict(self.with_),
            env=dict(self.env),
            working_directory=self.working_directory,
            continue_on_error=self.continue_on_error,
        )


@dataclass
class Strategy:
    matrix: Dict[str, Any] = field(default_factory=dict)
    fail_fast: Optional[bool] = None
    max_parallel: Optional[int] = None

    def combinations(self) -> int:
        """Matrix size from list-valued axes (include/exclude ignored)."""
        total = 1
        axes = 0
        for key, values in self.matrix.items():
            if key in ("include", "exclude") or not isinstance(values, list):
                continue
            axes += 1
            total *= max(len(values), 1)
        return total if axes else 0

    def clone(self) -> "Strategy":
        return Strategy(plain_copy(self.matrix), self.fail_fast, self.max_parallel)


@dataclass
class Service:
    name: str
    image: Optional[str] = None
    ports: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)

    def clone(self) -> "Service":
        return Service(self.name, self.image, list(self.ports), dict(self.env))


@dataclass
class Job:
    name: str                        # map key
    display_name: str = ""
    runs_on: List[str] = field(default_factory=list)
    needs: List[str] = field(default_factory=list)
    if_: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    strategy: Optional[Strategy] = None
    container: Optional[str] = None
    services: Dict[str, Service] = field(default_factory=dict)
    steps: List[Step] = field(default_factory=list)
    timeout_minutes: Optional[int] = None
    permissions: Dict[str, str] = field(default_factory=dict)
    uses: Optional[str] = None       # reusable workflow call

    @property
    def runner(self) -> str:
        if self.uses:
            return "reusable-workflow"
        return ", ".join(self.runs_on) if self.runs_on else "unknown"

    def run_commands(self) -> List[str]:
        out: List[str] = []
        for step in self.steps:
            out.extend(step.run_commands())
        return out

    def actions(self) -> List[str]:
        return [s.uses for s in self.steps if s.uses]

    def clone(self) -> "Job":
        return Job(
            name=self.name,
            display_name=self.display_name,
            runs_on=list(self.runs_on),
            needs=list(self.needs),
            if_=self.if_,
            env=dict(self.env),
            strategy=self.strategy.clone() if self.strategy else None,
            container=self.container,
            services={k: v.clone() for k, v in self.services.items()},
            steps=[s.clone() for s in self.steps],
            timeout_minutes=self.timeout_minutes,
            permissions=dict(self.permissions),
            uses=self.uses,
        )


@dataclass
class WorkflowFile:
    path: str = ""
    name: str = ""
    triggers: List[str] = field(default_factory=list)
    has_on: bool = False
    env: Dict[str, str] = field(default_factory=dict)
    jobs: Dict[str, Job] = field(default_factory=dict)

    def clone(self) -> "WorkflowFile":
        return WorkflowFile(
            path=self.path,
            name=self.name,
            triggers=list(self.triggers),
            has_on=self.has_on,
            env=dict(self.env),
            jobs={k: v.clone() for k, v in self.jobs.items()},
        )
