# githubactions/parser.py
"""
.github/workflows/*.yml -> WorkflowFile.

Polymorphic fields:
  - on:          "push" | ["push", "pull_request"] | {push: {...}, ...}
  - runs-on:     "ubuntu-latest" | ["self-hosted", "linux"] | {group: ..., labels: [...]}
  - needs:       "build" | ["build", "lint"]
  - container:   "node:20" | {image: "node:20", ...}
  - permissions: "read-all" | {contents: read, ...}
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import SchemaViolation
from ..ui.console import Console
from ..yamlvalue import ShapeMismatch, YamlValue, decode_yaml, first_shape, str_map
from .model import Job, Service, Step, Strategy, WorkflowFile


def load(path: Union[str, Path], console: Optional[Console] = None) -> WorkflowFile:
    data = Path(path).read_bytes()
    return parse(data, path=str(path), console=console)


def parse(data: Union[bytes, str], path: str = "", console: Optional[Console] = None) -> WorkflowFile:
    console = console if console is not None else Console(quiet=True)
    root = decode_yaml(data, path)
    workflow = WorkflowFile(path=path)
    if root.is_null:
        return workflow
    if not root.is_mapping:
        raise SchemaViolation(
            path=path,
            message=f"top-level document is a {root.kind.value}, not a mapping",
            invariant="root-mapping",
        )

    workflow.name = root.get("name").text_or("") or ""
    trigger = _trigger_node(root)
    workflow.has_on = not trigger.is_null
    workflow.triggers = _triggers(trigger)
    workflow.env = _env(root.get("env"))

    for name, node in first_shape(root.get("jobs"), lambda v: v.as_mapping(), default={}).items():
        if not node.is_mapping:
            console.print_debug(f"{path}: job '{name}' is not a mapping, skipped")
            continue
        workflow.jobs[name] = _parse_job(name, node)

    console.print_debug(f"{path}: {len(workflow.jobs)} jobs, triggers={workflow.triggers}")
    return workflow


def is_valid(workflow: WorkflowFile) -> None:
    """Raise SchemaViolation for the first broken invariant."""
    if not workflow.has_on:
        raise SchemaViolation(path=workflow.path, message="missing on field", invariant="trigger-present")
    if not workflow.jobs:
        raise SchemaViolation(path=workflow.path, message="no jobs defined", invariant="jobs-present")


# ----------------------------------------------------------------------
# Field readers
# ----------------------------------------------------------------------

def _trigger_node(root: YamlValue) -> YamlValue:
    # YAML 1.1 reads a bare `on:` key as boolean true
    node = root.get("on")
    return node if not node.is_null else root.get("true")


def _triggers(value: YamlValue) -> List[str]:
    return first_shape(
        value,
        lambda v: v.keys(),
        lambda v: v.string_list(),
        default=[],
    )


def _env(value: YamlValue) -> Dict[str, str]:
    return first_shape(value, str_map, default={})


def _int(value: YamlValue) -> Optional[int]:
    return first_shape(value, lambda v: int(v.as_number()))


def _runs_on(value: YamlValue) -> List[str]:
    return first_shape(
        value,
        lambda v: v.string_list(),
        lambda v: v.get("labels").string_list() or v.get("group").string_list(),
        default=[],
    )


def _container(value: YamlValue) -> Optional[str]:
    return first_shape(
        value,
        lambda v: v.as_str(),
        lambda v: v.get("image").scalar_text(),
    )


def _permissions(value: YamlValue) -> Dict[str, str]:
    return first_shape(
        value,
        lambda v: {"*": v.as_str()},
        str_map,
        default={},
    )


def _services(value: YamlValue) -> Dict[str, Service]:
    services: Dict[str, Service] = {}
    for name, node in first_shape(value, lambda v: v.as_mapping(), default={}).items():
        if node.is_string:
            services[name] = Service(name=name, image=node.as_str())
            continue
        if not node.is_mapping:
            continue
        services[name] = Service(
            name=name,
            image=node.get("image").text_or(None),
            ports=first_shape(node.get("ports"), lambda v: v.string_list(), default=[]),
            env=_env(node.get("env")),
        )
    return services


def _strategy(value: YamlValue) -> Optional[Strategy]:
    if not value.is_mapping:
        return None
    matrix = value.get("matrix")
    return Strategy(
        matrix=matrix.to_plain() if matrix.is_mapping else {},
        fail_fast=first_shape(value.get("fail-fast"), lambda v: v.as_bool()),
        max_parallel=_int(value.get("max-parallel")),
    )


def _parse_step(node: YamlValue) -> Optional[Step]:
    if not node.is_mapping:
        return None
    return Step(
        name=node.get("name").text_or("") or "",
        id=node.get("id").text_or(None),
        uses=node.get("uses").text_or(None),
        run=node.get("run").text_or(None),
        shell=node.get("shell").text_or(None),
        if_=node.get("if").text_or(None),
        with_=_env(node.get("with")),
        env=_env(node.get("env")),
        working_directory=node.get("working-directory").text_or(None),
        continue_on_error=first_shape(node.get("continue-on-error"), lambda v: v.as_bool(), default=False),
    )


def _parse_job(name: str, node: YamlValue) -> Job:
    steps: List[Step] = []
    for item in first_shape(node.get("steps"), lambda v: v.as_list(), default=[]):
        step = _parse_step(item)
        if step is not None:
            steps.append(step)

    try:
        needs = node.get("needs").string_list()
    except ShapeMismatch:
        needs = []

    return Job(
        name=name,
        display_name=node.get("name").text_or("") or "",
        runs_on=_runs_on(node.get("runs-on")),
        needs=needs,
        if_=node.get("if").text_or(None),
        env=_env(node.get("env")),
        strategy=_strategy(node.get("strategy")),
        container=_container(node.get("container")),
        services=_services(node.get("services")),
        steps=steps,
        timeout_minutes=_int(node.get("timeout-minutes")),
        permissions=_permissions(node.get("permissions")),
        uses=node.get("uses").text_or(None),
    )


__all__ = ["is_valid", "load", "parse"]
