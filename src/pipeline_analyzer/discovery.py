# discovery.py
"""Find the pipeline configuration files of a repository."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .docker.compose import is_compose_name
from .docker.dockerfile import is_dockerfile_name
from .gotask.parser import find_taskfile
from .ui.console import Console

DEFAULT_EXCLUDE_DIRS = (".git", "node_modules", "vendor", ".discovery", ".venv")


@dataclass(frozen=True)
class DiscoveredTool:
    type: str
    display_name: str
    config_path: str   # relative to the repository root, "/" separated
    description: str


TOOL_TYPES = {
    "circleci": ("CircleCI", "CircleCI continuous integration"),
    "github-actions": ("GitHub Actions", "GitHub Actions workflow"),
    "gotask": ("Go Task", "Go Task runner"),
    "dockerfile": ("Dockerfile", "Docker image build"),
    "docker-compose": ("Docker Compose", "Docker Compose services"),
}


def _tool(kind: str, rel: str) -> DiscoveredTool:
    name, description = TOOL_TYPES[kind]
    return DiscoveredTool(type=kind, display_name=f"{name} ({rel})", config_path=rel, description=description)


def is_git_repository(root: str | Path) -> bool:
    return (Path(root) / ".git").exists()


def discover_tools(
    root: str | Path,
    exclude_dirs: Sequence[str] = DEFAULT_EXCLUDE_DIRS,
    only: Optional[Iterable[str]] = None,
    console: Optional[Console] = None,
) -> List[DiscoveredTool]:
    """
    Scan `root` for supported configuration files.

    CI configs and Taskfiles are looked up at their conventional locations;
    Dockerfiles and compose files anywhere below `root` outside `exclude_dirs`.
    Results are grouped by type, paths sorted within a type.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"directory does not exist: {root}")
    console = console if console is not None else Console(quiet=True)
    wanted = set(only) if only else set(TOOL_TYPES)

    tools: List[DiscoveredTool] = []
    if "circleci" in wanted:
        for name in ("config.yml", "config.yaml"):
            if (root / ".circleci" / name).is_file():
                tools.append(_tool("circleci", f".circleci/{name}"))
                break

    if "github-actions" in wanted:
        workflows = root / ".github" / "workflows"
        if workflows.is_dir():
            found = sorted(p.name for p in workflows.iterdir() if p.is_file() and p.suffix in (".yml", ".yaml"))
            tools.extend(_tool("github-actions", f".github/workflows/{name}") for name in found)

    if "gotask" in wanted:
        taskfile = find_taskfile(root)
        if taskfile is not None:
            tools.append(_tool("gotask", taskfile.name))

    if wanted & {"dockerfile", "docker-compose"}:
        dockerfiles: List[str] = []
        composes: List[str] = []
        for rel in _walk(root, exclude_dirs):
            name = rel.rsplit("/", 1)[-1]
            if is_dockerfile_name(name):
                dockerfiles.append(rel)
            elif is_compose_name(name):
                composes.append(rel)
        if "dockerfile" in wanted:
            tools.extend(_tool("dockerfile", rel) for rel in sorted(dockerfiles))
        if "docker-compose" in wanted:
            tools.extend(_tool("docker-compose", rel) for rel in sorted(composes))

    for tool in tools:
        console.print_debug(f"discovered {tool.type}: {tool.config_path}")
    return tools


def _walk(root: Path, exclude_dirs: Sequence[str]) -> List[str]:
    excluded = set(exclude_dirs)
    out: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        for filename in filenames:
            out.append(filename if rel_dir == "." else f"{rel_dir}/{filename}")
    return out
