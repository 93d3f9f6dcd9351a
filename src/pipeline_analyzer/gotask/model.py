# gotask/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import PartialRecovery
from ..yamlvalue import plain_copy


@dataclass
class Dependency:
    """One `deps` entry: "name" or {task: name, vars: {...}}."""
    task: str
    vars: Dict[str, Any] = field(default_factory=dict)

    def clone(self) -> "Dependency":
        return Dependency(self.task, plain_copy(self.vars))


@dataclass
class Precondition:
    sh: str
    msg: str = ""

    def clone(self) -> "Precondition":
        return Precondition(self.sh, self.msg)


@dataclass
class Task:
    name: str
    desc: str = ""
    summary: str = ""
    cmds: List[str] = field(default_factory=list)
    task_calls: List[str] = field(default_factory=list)   # `- task: other` entries in cmds
    deps: List[Dependency] = field(default_factory=list)
    aliases: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    generates: List[str] = field(default_factory=list)
    status: List[str] = field(default_factory=list)
    preconditions: List[Precondition] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    vars: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=dict)
    dir: Optional[str] = None
    run: Optional[str] = None
    internal: bool = False
    silent: bool = False
    ignore_error: bool = False
    watch: bool = False
    prompt: Optional[str] = None

    @property
    def dep_names(self) -> List[str]:
        return [d.task for d in self.deps]

    @property
    def has_sources(self) -> bool:
        return bool(self.sources)

    @property
    def has_generates(self) -> bool:
        return bool(self.generates)

    @property
    def cache_optimized(self) -> bool:
        return self.has_sources and self.has_generates

    def complexity(self) -> int:
        """Commands + deps + preconditions + status checks, +1 each for vars and env."""
        score = len(self.cmds) + len(self.task_calls)
        score += len(self.deps) + len(self.preconditions) + len(self.status)
        if self.vars:
            score += 1
        if self.env:
            score += 1
        return score

    def clone(self) -> "Task":
        return Task(
            name=self.name,
            desc=self.desc,
            summary=self.summary,
            cmds=list(self.cmds),
            task_calls=list(self.task_calls),
            deps=[d.clone() for d in self.deps],
            aliases=list(self.aliases),
            sources=list(self.sources),
            generates=list(self.generates),
            status=list(self.status),
            preconditions=[p.clone() for p in self.preconditions],
            platforms=list(self.platforms),
            vars=plain_copy(self.vars),
            env=plain_copy(self.env),
            dir=self.dir,
            run=self.run,
            internal=self.internal,
            silent=self.silent,
            ignore_error=self.ignore_error,
            watch=self.watch,
            prompt=self.prompt,
        )


@dataclass
class Include:
    namespace: str
    taskfile: str
    dir: Optional[str] = None
    optional: bool = False
    internal: bool = False

    def clone(self) -> "Include":
        return Include(self.namespace, self.taskfile, self.dir, self.optional, self.internal)


@dataclass
class Taskfile:
    path: str = ""
    version: str = ""
    includes: Dict[str, Include] = field(default_factory=dict)
    vars: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=dict)
    tasks: Dict[str, Task] = field(default_factory=dict)
    output: Optional[str] = None
    method: Optional[str] = None
    dotenv: List[str] = field(default_factory=list)
    silent: bool = False
    recovery: Optional[PartialRecovery] = None

    def clone(self) -> "Taskfile":
        return Taskfile(
            path=self.path,
            version=self.version,
            includes={k: v.clone() for k, v in self.includes.items()},
            vars=plain_copy(self.vars),
            env=plain_copy(self.env),
            tasks={k: v.clone() for k, v in self.tasks.items()},
            output=self.output,
            method=self.method,
            dotenv=list(self.dotenv),
            silent=self.silent,
            recovery=self.recovery,
        )
