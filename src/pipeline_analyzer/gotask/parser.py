# gotask/parser.py
"""
Taskfile.yml -> Taskfile.

Two passes:

  strict    every field must have one of its documented shapes; the first
            field that does not raises ShapeMismatch.
  recovery  runs only when the strict pass failed. It walks the tree as an
            untyped map and keeps what it can type with confidence (version,
            includes, vars, env and, per task, desc/summary/cmds/deps/
            sources/generates). Everything else is dropped and listed in
            `Taskfile.recovery`, which marks the result as partial.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import PartialRecovery, SchemaViolation
from ..ui.console import Console
from ..yamlvalue import Kind, ShapeMismatch, YamlValue, decode_yaml, first_shape
from .model import Dependency, Include, Precondition, Task, Taskfile

SUPPORTED_VERSIONS = ("1", "2", "3", "2.1", "2.2", "2.6")

TASKFILE_NAMES = ("Taskfile.yml", "Taskfile.yaml", "taskfile.yml", "taskfile.yaml")


def find_taskfile(directory: Union[str, Path]) -> Optional[Path]:
    for name in TASKFILE_NAMES:
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    return None


def load(path: Union[str, Path], console: Optional[Console] = None) -> Taskfile:
    data = Path(path).read_bytes()
    return parse(data, path=str(path), console=console)


def parse(data: Union[bytes, str], path: str = "", console: Optional[Console] = None) -> Taskfile:
    console = console if console is not None else Console(quiet=True)
    root = decode_yaml(data, path)
    if root.is_null:
        return Taskfile(path=path)
    if not root.is_mapping:
        raise SchemaViolation(
            path=path,
            message=f"top-level document is a {root.kind.value}, not a mapping",
            invariant="root-mapping",
        )

    try:
        taskfile = parse_strict(root, path)
    except ShapeMismatch as e:
        console.print_warning(f"{path}: strict Taskfile decoding failed ({e}), attempting recovery")
        taskfile = parse_recovering(root, path, reason=str(e))
        console.print_recovery(path, "permissive-map", True)
        if taskfile.recovery and taskfile.recovery.dropped:
            console.print_debug(f"{path}: dropped {', '.join(taskfile.recovery.dropped)}")
        return taskfile

    console.print_debug(
        f"{path}: version={taskfile.version} tasks={len(taskfile.tasks)} "
        f"includes={len(taskfile.includes)} vars={len(taskfile.vars)}"
    )
    return taskfile


def is_valid(taskfile: Taskfile) -> None:
    """Raise SchemaViolation for the first broken invariant."""
    if not taskfile.version:
        raise SchemaViolation(path=taskfile.path, message="missing version field", invariant="version-present")
    if not taskfile.tasks:
        raise SchemaViolation(path=taskfile.path, message="no tasks defined", invariant="tasks-present")
    if taskfile.version not in SUPPORTED_VERSIONS:
        raise SchemaViolation(
            path=taskfile.path,
            message=f"unsupported version: {taskfile.version}",
            invariant="version-supported",
        )


# ----------------------------------------------------------------------
# Strict pass
# ----------------------------------------------------------------------

def _text(node: YamlValue, key: str, default: Optional[str] = "") -> Optional[str]:
    value = node.get(key)
    if value.is_null:
        return default
    return value.scalar_text(key)


def _flag(node: YamlValue, key: str) -> bool:
    value = node.get(key)
    if value.is_null:
        return False
    return value.as_bool(key)


def _plain_map(node: YamlValue, key: str) -> Dict[str, Any]:
    value = node.get(key)
    if value.is_null:
        return {}
    value.as_mapping(key)
    return value.to_plain()


def parse_strict(root: YamlValue, path: str = "") -> Taskfile:
    taskfile = Taskfile(
        path=path,
        version=_text(root, "version"),
        vars=_plain_map(root, "vars"),
        env=_plain_map(root, "env"),
        output=first_shape(root.get("output"), lambda v: v.scalar_text(), lambda v: ",".join(v.keys())),
        method=_text(root, "method", None),
        dotenv=root.get("dotenv").string_list("dotenv"),
        silent=_flag(root, "silent"),
    )

    includes = root.get("includes")
    if not includes.is_null:
        for namespace, node in includes.as_mapping("includes").items():
            taskfile.includes[namespace] = _strict_include(namespace, node)

    tasks = root.get("tasks")
    if not tasks.is_null:
        for name, node in tasks.as_mapping("tasks").items():
            taskfile.tasks[name] = _strict_task(name, node)

    return taskfile


def _strict_include(namespace: str, node: YamlValue) -> Include:
    if node.is_scalar:
        return Include(namespace=namespace, taskfile=node.scalar_text())
    where = f"includes.{namespace}"
    node.as_mapping(where)
    return Include(
        namespace=namespace,
        taskfile=node.get("taskfile").scalar_text(f"{where}.taskfile"),
        dir=_text(node, "dir", None),
        optional=_flag(node, "optional"),
        internal=_flag(node, "internal"),
    )


def _strict_task(name: str, node: YamlValue) -> Task:
    where = f"tasks.{name}"
    # shorthand forms: `build: go build ./...` and `build: [cmd, cmd]`
    if node.is_scalar:
        return Task(name=name, cmds=[node.scalar_text()])
    if node.is_sequence:
        cmds, calls = _strict_cmds(node, where)
        return Task(name=name, cmds=cmds, task_calls=calls)

    node.as_mapping(where)
    cmds, calls = _strict_cmds(node.get("cmds"), f"{where}.cmds")
    single = _text(node, "cmd", None)
    if single:
        cmds.append(single)

    return Task(
        name=name,
        desc=_text(node, "desc"),
        summary=_text(node, "summary"),
        cmds=cmds,
        task_calls=calls,
        deps=_strict_deps(node.get("deps"), f"{where}.deps"),
        aliases=node.get("aliases").string_list(f"{where}.aliases"),
        sources=node.get("sources").string_list(f"{where}.sources"),
        generates=node.get("generates").string_list(f"{where}.generates"),
        status=node.get("status").string_list(f"{where}.status"),
        preconditions=_strict_preconditions(node.get("preconditions"), f"{where}.preconditions"),
        platforms=node.get("platforms").string_list(f"{where}.platforms"),
        vars=_plain_map(node, "vars"),
        env=_plain_map(node, "env"),
        dir=_text(node, "dir", None),
        run=_text(node, "run", None),
        internal=_flag(node, "internal"),
        silent=_flag(node, "silent"),
        ignore_error=_flag(node, "ignore_error"),
        watch=_flag(node, "watch"),
        prompt=first_shape(node.get("prompt"), lambda v: v.scalar_text(), lambda v: " / ".join(v.string_list())),
    )


def _strict_cmds(value: YamlValue, where: str) -> Tuple[List[str], List[str]]:
    cmds: List[str] = []
    calls: List[str] = []
    if value.is_null:
        return cmds, calls
    if value.is_scalar:
        return [value.scalar_text()], calls

    for i, item in enumerate(value.as_list(where)):
        at = f"{where}[{i}]"
        if item.is_scalar:
            cmds.append(item.scalar_text())
            continue
        item.as_mapping(at)
        if not item.get("cmd").is_null:
            cmds.append(item.get("cmd").scalar_text(f"{at}.cmd"))
        elif not item.get("task").is_null:
            calls.append(item.get("task").scalar_text(f"{at}.task"))
        elif not item.get("defer").is_null:
            deferred = item.get("defer")
            if deferred.is_scalar:
                cmds.append(deferred.scalar_text())
            else:
                calls.append(deferred.get("task").scalar_text(f"{at}.defer.task"))
        else:
            raise ShapeMismatch(Kind.STRING, Kind.NULL, f"{at}.cmd")
    return cmds, calls


def _strict_deps(value: YamlValue, where: str) -> List[Dependency]:
    if value.is_null:
        return []
    if value.is_scalar:
        return [Dependency(task=value.scalar_text())]
    deps: List[Dependency] = []
    for i, item in enumerate(value.as_list(where)):
        if item.is_scalar:
            deps.append(Dependency(task=item.scalar_text()))
            continue
        at = f"{where}[{i}]"
        item.as_mapping(at)
        deps.append(Dependency(task=item.get("task").scalar_text(f"{at}.task"), vars=_plain_map(item, "vars")))
    return deps


def _strict_preconditions(value: YamlValue, where: str) -> List[Precondition]:
    if value.is_null:
        return []
    if value.is_scalar:
        return [Precondition(sh=value.scalar_text())]
    out: List[Precondition] = []
    for i, item in enumerate(value.as_list(where)):
        if item.is_scalar:
            out.append(Precondition(sh=item.scalar_text()))
            continue
        at = f"{where}[{i}]"
        item.as_mapping(at)
        out.append(Precondition(sh=item.get("sh").scalar_text(f"{at}.sh"), msg=_text(item, "msg")))
    return out


# ----------------------------------------------------------------------
# Recovery pass
# ----------------------------------------------------------------------

_RECOVERED_TASK_KEYS = ("desc", "summary", "cmds", "cmd", "deps", "sources", "generates", "internal")


def parse_recovering(root: YamlValue, path: str = "", reason: str = "") -> Taskfile:
    """Best-effort read. Never raises for shape problems."""
    dropped: List[str] = []
    taskfile = Taskfile(path=path)

    version = root.get("version")
    if version.is_scalar:
        taskfile.version = version.scalar_text()
    elif not version.is_null:
        dropped.append("version")

    includes = root.get("includes")
    if includes.is_mapping:
        for namespace, node in includes.as_mapping().items():
            target = first_shape(node, lambda v: v.scalar_text(), lambda v: v.get("taskfile").scalar_text())
            if target is None:
                dropped.append(f"includes.{namespace}")
            else:
                taskfile.includes[namespace] = Include(namespace=namespace, taskfile=target)
    elif not includes.is_null:
        dropped.append("includes")

    for key in ("vars", "env"):
        node = root.get(key)
        if node.is_mapping:
            setattr(taskfile, key, node.to_plain())
        elif not node.is_null:
            dropped.append(key)

    tasks = root.get("tasks")
    if tasks.is_mapping:
        for name, node in tasks.as_mapping().items():
            task = _recover_task(name, node, dropped)
            if task is not None:
                taskfile.tasks[name] = task
    elif not tasks.is_null:
        dropped.append("tasks")

    taskfile.recovery = PartialRecovery(path=path, reason=reason or "strict decoding failed", dropped=tuple(dropped))
    return taskfile


def _recover_task(name: str, node: YamlValue, dropped: List[str]) -> Optional[Task]:
    where = f"tasks.{name}"
    if node.is_scalar:
        return Task(name=name, cmds=[node.scalar_text()])
    if not node.is_mapping:
        if node.is_sequence:
            cmds, calls = _recover_cmds(node, where, dropped)
            return Task(name=name, cmds=cmds, task_calls=calls)
        dropped.append(where)
        return None

    task = Task(name=name)
    for key in ("desc", "summary"):
        value = node.get(key)
        if value.is_scalar:
            setattr(task, key, value.scalar_text())
        elif not value.is_null:
            dropped.append(f"{where}.{key}")

    task.cmds, task.task_calls = _recover_cmds(node.get("cmds"), f"{where}.cmds", dropped)
    single = node.get("cmd")
    if single.is_scalar:
        task.cmds.append(single.scalar_text())
    elif not single.is_null:
        dropped.append(f"{where}.cmd")

    task.deps = _recover_deps(node.get("deps"), f"{where}.deps", dropped)

    for key in ("sources", "generates"):
        value = node.get(key)
        items = first_shape(value, lambda v: v.string_list())
        if items is None:
            dropped.append(f"{where}.{key}")
        else:
            setattr(task, key, items)

    task.internal = first_shape(node.get("internal"), lambda v: v.as_bool(), default=False)

    for key in node.keys():
        if key not in _RECOVERED_TASK_KEYS:
            dropped.append(f"{where}.{key}")
    return task


def _recover_cmds(value: YamlValue, where: str, dropped: List[str]) -> Tuple[List[str], List[str]]:
    cmds: List[str] = []
    calls: List[str] = []
    if value.is_null:
        return cmds, calls
    if value.is_scalar:
        return [value.scalar_text()], calls
    if not value.is_sequence:
        dropped.append(where)
        return cmds, calls

    for i, item in enumerate(value.as_list()):
        if item.is_scalar:
            cmds.append(item.scalar_text())
            continue
        cmd = first_shape(item, lambda v: v.get("cmd").scalar_text())
        if cmd is not None:
            cmds.append(cmd)
            continue
        call = first_shape(item, lambda v: v.get("task").scalar_text())
        if call is not None:
            calls.append(call)
            continue
        dropped.append(f"{where}[{i}]")
    return cmds, calls


def _recover_deps(value: YamlValue, where: str, dropped: List[str]) -> List[Dependency]:
    if value.is_null:
        return []
    if value.is_scalar:
        return [Dependency(task=value.scalar_text())]
    if not value.is_sequence:
        dropped.append(where)
        return []
    deps: List[Dependency] = []
    for i, item in enumerate(value.as_list()):
        name = first_shape(item, lambda v: v.scalar_text(), lambda v: v.get("task").scalar_text())
        if name is None:
            dropped.append(f"{where}[{i}]")
        else:
            deps.append(Dependency(task=name))
    return deps
