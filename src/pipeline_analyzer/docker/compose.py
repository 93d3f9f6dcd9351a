# docker/compose.py
"""
docker-compose.yml -> ComposeFile.

Polymorphic fields:
  - ports:        8080 | "8080:80" | "127.0.0.1:8080:80/udp" | {target, published, protocol, host_ip}
  - environment:  ["KEY=value", "KEY"] | {KEY: value}
  - depends_on:   ["db"] | {db: {condition: service_healthy}}
  - build:        "./dir" | {context, dockerfile, args, target}
  - volumes:      ["src:dst"] | [{source, target}]
  - command:      "npm start" | ["npm", "start"]
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import SchemaViolation
from ..patterns import split_words
from ..ui.console import Console
from ..yamlvalue import YamlValue, decode_yaml, first_shape, name_list, str_map
from .dockerfile import parse_duration
from .model import BuildConfig, ComposeFile, ComposeService, HealthCheck, Port, ResourceLimits

_COMPOSE_NAME = re.compile(r"^(?:docker-)?compose(?:[.-][\w.-]+)?\.ya?ml$", re.IGNORECASE)


def is_compose_name(name: str) -> bool:
    return bool(_COMPOSE_NAME.match(name))


def load(path: Union[str, Path], console: Optional[Console] = None) -> ComposeFile:
    data = Path(path).read_bytes()
    return parse(data, path=str(path), console=console)


def parse(data: Union[bytes, str], path: str = "", console: Optional[Console] = None) -> ComposeFile:
    console = console if console is not None else Console(quiet=True)
    root = decode_yaml(data, path)
    compose = ComposeFile(path=path)
    if root.is_null:
        return compose
    if not root.is_mapping:
        raise SchemaViolation(
            path=path,
            message=f"top-level document is a {root.kind.value}, not a mapping",
            invariant="root-mapping",
        )

    compose.version = root.get("version").text_or("") or ""
    for name, node in first_shape(root.get("services"), lambda v: v.as_mapping(), default={}).items():
        if not node.is_mapping:
            console.print_debug(f"{path}: service '{name}' is not a mapping, skipped")
            continue
        compose.services[name] = _parse_service(name, node)

    compose.networks = _plain_mapping(root.get("networks"))
    compose.volumes = _plain_mapping(root.get("volumes"))
    compose.secrets = _plain_mapping(root.get("secrets"))

    console.print_debug(f"{path}: {len(compose.services)} services")
    return compose


def is_valid(compose: ComposeFile) -> None:
    if not compose.services:
        raise SchemaViolation(path=compose.path, message="no services defined", invariant="services-present")


# ----------------------------------------------------------------------
# Field readers
# ----------------------------------------------------------------------

def _plain_mapping(value: YamlValue) -> dict:
    return value.to_plain() if value.is_mapping else {}


def _parse_service(name: str, node: YamlValue) -> ComposeService:
    return ComposeService(
        name=name,
        image=node.get("image").text_or(None),
        build=_build(node.get("build")),
        ports=_ports(node.get("ports")),
        environment=_environment(node.get("environment")),
        volumes=_volumes(node.get("volumes")),
        depends_on=name_list(node.get("depends_on")),
        networks=name_list(node.get("networks")),
        command=_command(node.get("command")),
        health_check=_health_check(node.get("healthcheck")),
        restart_policy=node.get("restart").text_or(None),
        resources=_resources(node.get("deploy")),
        privileged=first_shape(node.get("privileged"), lambda v: v.as_bool(), default=False),
    )


def _build(value: YamlValue) -> Optional[BuildConfig]:
    if value.is_null:
        return None
    if value.is_scalar:
        return BuildConfig(context=value.scalar_text())
    if not value.is_mapping:
        return None
    return BuildConfig(
        context=value.get("context").text_or(".") or ".",
        dockerfile=value.get("dockerfile").text_or(None),
        args=_environment(value.get("args")),
        target=value.get("target").text_or(None),
    )


def parse_port(text: str) -> Port:
    """Short syntax: [[ip:]host:]container[/protocol]."""
    spec, _, protocol = text.partition("/")
    parts = spec.rsplit(":", 2)
    if len(parts) == 3:
        return Port(container=parts[2], host=parts[1] or None, protocol=protocol or "tcp", host_ip=parts[0] or None)
    if len(parts) == 2:
        return Port(container=parts[1], host=parts[0] or None, protocol=protocol or "tcp")
    return Port(container=parts[0], protocol=protocol or "tcp")


def _ports(value: YamlValue) -> List[Port]:
    ports: List[Port] = []
    for item in first_shape(value, lambda v: v.as_list(), default=[]):
        if item.is_scalar:
            ports.append(parse_port(item.scalar_text()))
        elif item.is_mapping:
            ports.append(Port(
                container=item.get("target").text_or("") or "",
                host=item.get("published").text_or(None),
                protocol=item.get("protocol").text_or("tcp") or "tcp",
                host_ip=item.get("host_ip").text_or(None),
            ))
    return ports


def _environment(value: YamlValue) -> Dict[str, str]:
    if value.is_sequence:
        env: Dict[str, str] = {}
        for item in value.as_list():
            if not item.is_scalar:
                continue
            key, _, val = item.scalar_text().partition("=")
            env[key] = val
        return env
    return first_shape(value, str_map, default={})


def _volumes(value: YamlValue) -> List[str]:
    volumes: List[str] = []
    for item in first_shape(value, lambda v: v.as_list(), default=[]):
        if item.is_scalar:
            volumes.append(item.scalar_text())
        elif item.is_mapping:
            source = item.get("source").text_or("") or ""
            target = item.get("target").text_or("") or ""
            volumes.append(f"{source}:{target}" if source else target)
    return volumes


def _command(value: YamlValue) -> List[str]:
    return first_shape(
        value,
        lambda v: split_words(v.as_str()),
        lambda v: v.string_list(),
        default=[],
    )


def _health_check(value: YamlValue) -> Optional[HealthCheck]:
    if not value.is_mapping:
        return None
    if first_shape(value.get("disable"), lambda v: v.as_bool(), default=False):
        return None
    test = first_shape(
        value.get("test"),
        lambda v: v.string_list(),
        default=[],
    )
    return HealthCheck(
        command=test,
        interval=_duration(value.get("interval")),
        timeout=_duration(value.get("timeout")),
        start_period=_duration(value.get("start_period")),
        retries=_retries(value.get("retries")),
    )


def _retries(value: YamlValue) -> Optional[int]:
    text = value.text_or("") or ""
    return int(float(text)) if re.fullmatch(r"\d+(?:\.0+)?", text) else None


def _duration(value: YamlValue) -> Optional[float]:
    text = value.text_or(None)
    return parse_duration(text) if text else None


def _resources(deploy: YamlValue) -> Optional[ResourceLimits]:
    if not deploy.is_mapping:
        return None
    resources = deploy.get("resources")
    if not resources.is_mapping:
        return None
    limits = resources.get("limits")
    reservations = resources.get("reservations")
    return ResourceLimits(
        cpu_limit=_resource(limits, "cpus"),
        memory_limit=_resource(limits, "memory"),
        cpu_reserve=_resource(reservations, "cpus"),
        memory_reserve=_resource(reservations, "memory"),
    )


def _resource(section: YamlValue, key: str) -> Optional[str]:
    return section.get(key).text_or(None) if section.is_mapping else None


__all__ = ["is_compose_name", "is_valid", "load", "parse", "parse_port"]
