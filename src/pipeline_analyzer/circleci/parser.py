# circleci/parser.py
"""
.circleci/config.yml -> CircleConfig.

Shapes accepted for the polymorphic fields:
  - step:           "checkout" | {run: "cmd"} | {run: {command: ..., name: ...}} | {<command>: {params}}
  - workflow job:   "build" | {build: {requires: ..., context: ..., filters: ..., name: ...}}
  - requires:       "a" | ["a", "b"] | [{a: success}]
  - context:        "org-global" | ["org-global", "aws"]
  - executor ref:   "node" | {name: node, ...}
  - machine:        true | "ubuntu-2204:current" | {image: ...}
Anything else is treated as absent.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import SchemaViolation
from ..ui.console import Console
from ..yamlvalue import (
    ShapeMismatch,
    YamlValue,
    decode_yaml,
    first_shape,
    name_list,
    str_map,
)
from .model import CircleConfig, Executor, Job, ReusableCommand, Step, Workflow, WorkflowJob


def load(path: Union[str, Path], console: Optional[Console] = None) -> CircleConfig:
    """Read the whole file, then parse it."""
    data = Path(path).read_bytes()
    return parse(data, path=str(path), console=console)


def parse(data: Union[bytes, str], path: str = "", console: Optional[Console] = None) -> CircleConfig:
    console = console if console is not None else Console(quiet=True)
    root = decode_yaml(data, path)
    config = CircleConfig(path=path)
    if root.is_null:
        return config
    if not root.is_mapping:
        raise SchemaViolation(
            path=path,
            message=f"top-level document is a {root.kind.value}, not a mapping",
            invariant="root-mapping",
        )

    config.version = root.get("version").text_or("") or ""

    for name, node in _mapping(root.get("jobs")).items():
        if not node.is_mapping:
            console.print_debug(f"{path}: job '{name}' is not a mapping, skipped")
            continue
        config.jobs[name] = _parse_job(name, node)

    for name, node in _mapping(root.get("workflows")).items():
        # CircleCI 2.0 keeps `version: 2` inside the workflows block
        if name == "version" or not node.is_mapping:
            continue
        config.workflows[name] = _parse_workflow(name, node)

    for name, node in _mapping(root.get("executors")).items():
        if node.is_mapping:
            config.executors[name] = _parse_executor(name, node)

    for name, node in _mapping(root.get("commands")).items():
        if node.is_mapping:
            config.commands[name] = ReusableCommand(
                name=name,
                description=node.get("description").text_or("") or "",
                parameters=first_shape(node.get("parameters"), _plain_mapping, default={}),
                steps=_parse_steps(node.get("steps")),
            )

    for name, node in _mapping(root.get("orbs")).items():
        config.orbs[name] = node.text_or("inline") or "inline"

    console.print_debug(
        f"{path}: {len(config.jobs)} jobs, {len(config.workflows)} workflows, "
        f"{len(config.executors)} executors, {len(config.commands)} commands"
    )
    return config


def is_valid(config: CircleConfig) -> None:
    """Raise SchemaViolation for the first broken invariant."""
    if not config.version:
        raise SchemaViolation(path=config.path, message="missing version field", invariant="version-present")
    if not config.jobs:
        raise SchemaViolation(path=config.path, message="no jobs defined", invariant="jobs-present")


# ----------------------------------------------------------------------
# Field readers
# ----------------------------------------------------------------------

def _mapping(value: YamlValue) -> Dict[str, YamlValue]:
    return first_shape(value, lambda v: v.as_mapping(), default={})


def _plain_mapping(value: YamlValue) -> dict:
    value.as_mapping()
    return value.to_plain()


def _parse_job(name: str, node: YamlValue) -> Job:
    return Job(
        name=name,
        description=node.get("description").text_or("") or "",
        steps=_parse_steps(node.get("steps")),
        docker=_docker_images(node.get("docker")),
        machine=_machine(node.get("machine")),
        macos=_macos(node.get("macos")),
        executor=_executor_ref(node.get("executor")),
        environment=first_shape(node.get("environment"), str_map, default={}),
        working_directory=node.get("working_directory").text_or(None),
        parallelism=first_shape(node.get("parallelism"), lambda v: int(v.as_number())),
        resource_class=node.get("resource_class").text_or(None),
    )


def _parse_executor(name: str, node: YamlValue) -> Executor:
    return Executor(
        name=name,
        docker=_docker_images(node.get("docker")),
        machine=_machine(node.get("machine")),
        macos=_macos(node.get("macos")),
        resource_class=node.get("resource_class").text_or(None),
        working_directory=node.get("working_directory").text_or(None),
        environment=first_shape(node.get("environment"), str_map, default={}),
    )


def _docker_images(value: YamlValue) -> List[str]:
    images: List[str] = []
    for item in first_shape(value, lambda v: v.as_list(), default=[]):
        image = first_shape(
            item,
            lambda v: v.scalar_text(),
            lambda v: v.get("image").scalar_text(),
        )
        if image:
            images.append(image)
    return images


def _machine(value: YamlValue) -> Optional[str]:
    return first_shape(
        value,
        lambda v: "default" if v.as_bool() else None,
        lambda v: v.as_str(),
        lambda v: v.get("image").text_or("default"),
    )


def _macos(value: YamlValue) -> Optional[str]:
    return first_shape(value, lambda v: v.get("xcode").scalar_text())


def _executor_ref(value: YamlValue) -> Optional[str]:
    return first_shape(
        value,
        lambda v: v.as_str(),
        lambda v: v.get("name").scalar_text(),
    )


def _parse_steps(value: YamlValue) -> List[Step]:
    steps: List[Step] = []
    for item in first_shape(value, lambda v: v.as_list(), default=[]):
        step = _parse_step(item)
        if step is not None:
            steps.append(step)
    return steps


def _parse_step(item: YamlValue) -> Optional[Step]:
    if item.is_scalar:
        return Step(kind=item.scalar_text())
    if not item.is_mapping or not item.keys():
        return None

    kind = item.keys()[0]
    body = item.get(kind)

    if kind == "run":
        command = first_shape(
            body,
            lambda v: v.scalar_text(),
            lambda v: v.get("command").scalar_text(),
        )
        name = body.get("name").text_or(None) if body.is_mapping else None
        params = {}
        if body.is_mapping:
            params = {k: v.to_plain() for k, v in body.as_mapping().items() if k not in ("command", "name")}
        return Step(kind="run", command=command, name=name, params=params)

    if body.is_mapping:
        return Step(kind=kind, name=body.get("name").text_or(None), params=body.to_plain())
    if body.is_null:
        return Step(kind=kind)
    return Step(kind=kind, params={"value": body.to_plain()})


def _parse_workflow(name: str, node: YamlValue) -> Workflow:
    jobs: List[WorkflowJob] = []
    for item in first_shape(node.get("jobs"), lambda v: v.as_list(), default=[]):
        ref = parse_workflow_job(item)
        if ref is not None:
            jobs.append(ref)
    return Workflow(name=name, jobs=jobs, has_triggers=not node.get("triggers").is_null)


def parse_workflow_job(item: YamlValue) -> Optional[WorkflowJob]:
    """A workflow `jobs:` entry: bare name or single-key mapping."""
    if item.is_scalar:
        return WorkflowJob(name=item.scalar_text())
    if not item.is_mapping or not item.keys():
        return None

    name = item.keys()[0]
    cfg = item.get(name)
    if not cfg.is_mapping:
        return WorkflowJob(name=name)

    return WorkflowJob(
        name=name,
        requires=name_list(cfg.get("requires")),
        context=_string_list(cfg.get("context")),
        filters=cfg.get("filters").to_plain() if cfg.get("filters").is_mapping else {},
        alias=cfg.get("name").text_or(None),
        approval=cfg.get("type").text_or("") == "approval",
    )


def _string_list(value: YamlValue) -> List[str]:
    try:
        return value.string_list()
    except ShapeMismatch:
        return []


__all__ = ["is_valid", "load", "parse", "parse_workflow_job"]
