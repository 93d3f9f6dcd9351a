# docker/dockerfile.py
"""
Dockerfile -> DockerfileModel.

Lines are folded before tokenizing: a trailing backslash joins the next
line, and blank or comment lines inside a continuation are dropped the way
the Docker builder drops them. Each FROM starts a new Stage; instructions
before the first FROM (only ARG is legal there) are kept as global args.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..errors import DecodeError, SchemaViolation
from ..ui.console import Console
from .model import DockerfileModel, Instruction, Stage

_FLAG = re.compile(r"--([A-Za-z][\w-]*)(?:=(\S*))?(?:\s+|$)")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {"ns": 1e-9, "us": 1e-6, "µs": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0}


def is_dockerfile_name(name: str) -> bool:
    lower = name.lower()
    return lower == "dockerfile" or lower.endswith(".dockerfile") or lower.startswith("dockerfile.")


def load(path: Union[str, Path], console: Optional[Console] = None) -> DockerfileModel:
    data = Path(path).read_bytes()
    return parse(data, path=str(path), console=console)


def parse(data: Union[bytes, str], path: str = "", console: Optional[Console] = None) -> DockerfileModel:
    console = console if console is not None else Console(quiet=True)
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(path=path, message="file is not valid UTF-8", details={"decoder": str(e)}) from e
    else:
        text = data
    text = text.lstrip("\ufeff")

    model = DockerfileModel(path=path)
    current: Optional[Stage] = None
    for line_no, logical in fold_lines(text):
        instruction = parse_instruction(logical, line_no)
        if instruction.instruction == "FROM":
            current = _start_stage(instruction, len(model.stages))
            model.stages.append(current)
        elif current is None:
            if instruction.instruction != "ARG":
                console.print_debug(f"{path}:{line_no}: {instruction.instruction} before the first FROM")
            model.global_args.append(instruction)
        else:
            current.instructions.append(instruction)

    console.print_debug(f"{path}: {len(model.stages)} stages, {len(model.instructions)} instructions")
    return model


def is_valid(model: DockerfileModel) -> None:
    if not model.stages:
        raise SchemaViolation(path=model.path, message="no FROM instruction", invariant="stage-present")


# ----------------------------------------------------------------------
# Tokenizing
# ----------------------------------------------------------------------

def fold_lines(text: str) -> List[Tuple[int, str]]:
    """Logical instructions as (first physical line number, folded text)."""
    logical: List[Tuple[int, str]] = []
    parts: List[str] = []
    start = 0
    for line_no, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if not any(parts):
            start = line_no
        if line.endswith("\\"):
            parts.append(line[:-1].strip())
            continue
        parts.append(line)
        _emit(logical, start, parts)
        parts = []
    # file ended inside a continuation
    _emit(logical, start, parts)
    return logical


def _emit(logical: List[Tuple[int, str]], start: int, parts: List[str]) -> None:
    # a lone `\` line folds to nothing
    text = " ".join(p for p in parts if p)
    if text:
        logical.append((start, text))


def parse_instruction(text: str, line: int = 0) -> Instruction:
    verb, *tail = text.split(None, 1)
    rest = tail[0].strip() if tail else ""

    flags: Dict[str, str] = {}
    while rest.startswith("--"):
        m = _FLAG.match(rest)
        if m is None:
            break
        flags[m.group(1)] = m.group(2) if m.group(2) is not None else "true"
        rest = rest[m.end():]

    arguments, exec_form = _arguments(rest)
    return Instruction(
        instruction=verb.upper(),
        arguments=arguments,
        flags=flags,
        line=line,
        raw=text,
        value=rest,
        exec_form=exec_form,
    )


def _arguments(value: str) -> Tuple[List[str], bool]:
    if value.startswith("["):
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = None
        # a malformed JSON array is shell form, same as the builder
        if isinstance(parsed, list) and all(isinstance(p, str) for p in parsed):
            return parsed, True
    return value.split(), False


def _start_stage(instruction: Instruction, index: int) -> Stage:
    stage = Stage(index=index, instructions=[instruction])
    args = instruction.arguments
    if args:
        stage.base_image = args[0]
    for i, arg in enumerate(args[:-1]):
        if arg.upper() == "AS":
            stage.name = args[i + 1]
            break
    return stage


def parse_duration(text: str) -> Optional[float]:
    """'1m30s' -> 90.0 seconds. Returns None for anything that is not a duration."""
    text = text.strip()
    if not text:
        return None
    total = 0.0
    pos = 0
    for m in _DURATION_PART.finditer(text):
        if m.start() != pos:
            return None
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    return total if pos == len(text) else None


__all__ = ["fold_lines", "is_dockerfile_name", "is_valid", "load", "parse", "parse_duration", "parse_instruction"]
