# docker/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..yamlvalue import plain_copy


# ----------------------------------------------------------------------
# Dockerfile
# ----------------------------------------------------------------------

@dataclass
class Instruction:
    """
    One logical Dockerfile instruction (continuation lines already folded).

    `arguments` are the whitespace-separated tokens after the verb and its
    leading flags, or the elements of a JSON array for exec-form instructions.
    `value` keeps the same text unsplit.
    """
    instruction: str
    arguments: List[str] = field(default_factory=list)
    flags: Dict[str, str] = field(default_factory=dict)
    line: int = 0
    raw: str = ""
    value: str = ""
    exec_form: bool = False

    def clone(self) -> "Instruction":
        return Instruction(
            self.instruction, list(self.arguments), dict(self.flags), self.line, self.raw, self.value, self.exec_form
        )


@dataclass
class Stage:
    index: int
    base_image: str = ""
    name: Optional[str] = None
    instructions: List[Instruction] = field(default_factory=list)   # FROM first

    def clone(self) -> "Stage":
        return Stage(self.index, self.base_image, self.name, [i.clone() for i in self.instructions])


@dataclass
class DockerfileModel:
    path: str = ""
    global_args: List[Instruction] = field(default_factory=list)   # anything before the first FROM
    stages: List[Stage] = field(default_factory=list)

    @property
    def instructions(self) -> List[Instruction]:
        out = list(self.global_args)
        for stage in self.stages:
            out.extend(stage.instructions)
        return out

    @property
    def final_stage(self) -> Optional[Stage]:
        return self.stages[-1] if self.stages else None

    def clone(self) -> "DockerfileModel":
        return DockerfileModel(self.path, [i.clone() for i in self.global_args], [s.clone() for s in self.stages])


@dataclass
class HealthCheck:
    command: List[str] = field(default_factory=list)
    interval: Optional[float] = None        # seconds
    timeout: Optional[float] = None
    start_period: Optional[float] = None
    retries: Optional[int] = None

    def clone(self) -> "HealthCheck":
        return HealthCheck(list(self.command), self.interval, self.timeout, self.start_period, self.retries)


# ----------------------------------------------------------------------
# Compose
# ----------------------------------------------------------------------

@dataclass
class Port:
    container: str
    host: Optional[str] = None
    protocol: str = "tcp"
    host_ip: Optional[str] = None

    @property
    def published(self) -> bool:
        return bool(self.host)

    def __str__(self) -> str:
        text = f"{self.host}:{self.container}" if self.host else self.container
        if self.host_ip:
            text = f"{self.host_ip}:{text}"
        return text if self.protocol == "tcp" else f"{text}/{self.protocol}"

    def clone(self) -> "Port":
        return Port(self.container, self.host, self.protocol, self.host_ip)


@dataclass
class BuildConfig:
    context: str = "."
    dockerfile: Optional[str] = None
    args: Dict[str, str] = field(default_factory=dict)
    target: Optional[str] = None

    def clone(self) -> "BuildConfig":
        return BuildConfig(self.context, self.dockerfile, dict(self.args), self.target)


@dataclass
class ResourceLimits:
    cpu_limit: Optional[str] = None
    memory_limit: Optional[str] = None
    cpu_reserve: Optional[str] = None
    memory_reserve: Optional[str] = None

    def clone(self) -> "ResourceLimits":
        return ResourceLimits(self.cpu_limit, self.memory_limit, self.cpu_reserve, self.memory_reserve)


@dataclass
class ComposeService:
    name: str
    image: Optional[str] = None
    build: Optional[BuildConfig] = None
    ports: List[Port] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    volumes: List[str] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)
    networks: List[str] = field(default_factory=list)
    command: List[str] = field(default_factory=list)
    health_check: Optional[HealthCheck] = None
    restart_policy: Optional[str] = None
    resources: Optional[ResourceLimits] = None
    privileged: bool = False

    def clone(self) -> "ComposeService":
        return ComposeService(
            name=self.name,
            image=self.image,
            build=self.build.clone() if self.build else None,
            ports=[p.clone() for p in self.ports],
            environment=dict(self.environment),
            volumes=list(self.volumes),
            depends_on=list(self.depends_on),
            networks=list(self.networks),
            command=list(self.command),
            health_check=self.health_check.clone() if self.health_check else None,
            restart_policy=self.restart_policy,
            resources=self.resources.clone() if self.resources else None,
            privileged=self.privileged,
        )


@dataclass
class ComposeFile:
    path: str = ""
    version: str = ""
    services: Dict[str, ComposeService] = field(default_factory=dict)
    networks: Dict[str, Any] = field(default_factory=dict)
    volumes: Dict[str, Any] = field(default_factory=dict)
    secrets: Dict[str, Any] = field(default_factory=dict)

    def clone(self) -> "ComposeFile":
        return ComposeFile(
            path=self.path,
            version=self.version,
            services={k: v.clone() for k, v in self.services.items()},
            networks=plain_copy(self.networks),
            volumes=plain_copy(self.volumes),
            secrets=plain_copy(self.secrets),
        )
