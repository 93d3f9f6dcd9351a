# usage.py
"""Counting helpers shared by the per-format analyzers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .patterns import CommandClassification, classify, docker_images_in


@dataclass
class PatternCount:
    """How often a pattern was seen and by which jobs/tasks (deduplicated)."""
    count: int = 0
    jobs: List[str] = field(default_factory=list)

    def add(self, owner: str) -> None:
        self.count += 1
        if owner not in self.jobs:
            self.jobs.append(owner)

    def clone(self) -> "PatternCount":
        return PatternCount(count=self.count, jobs=list(self.jobs))


@dataclass
class CommandIndex:
    by_pattern: Dict[str, PatternCount] = field(default_factory=dict)
    by_category: Dict[str, PatternCount] = field(default_factory=dict)
    by_tool: Dict[str, PatternCount] = field(default_factory=dict)
    risky: List[Tuple[str, CommandClassification]] = field(default_factory=list)
    total: int = 0

    def clone(self) -> "CommandIndex":
        return CommandIndex(
            by_pattern={k: v.clone() for k, v in self.by_pattern.items()},
            by_category={k: v.clone() for k, v in self.by_category.items()},
            by_tool={k: v.clone() for k, v in self.by_tool.items()},
            risky=list(self.risky),
            total=self.total,
        )


def index_commands(commands: Mapping[str, Sequence[str]]) -> CommandIndex:
    """Classify every command of every owner (job/task/step) and accumulate counts."""
    index = CommandIndex()
    for owner in sorted(commands):
        for command in commands[owner]:
            c = classify(command)
            index.total += 1
            index.by_pattern.setdefault(c.pattern or c.category, PatternCount()).add(owner)
            index.by_category.setdefault(c.category, PatternCount()).add(owner)
            for tool in c.tools:
                index.by_tool.setdefault(tool, PatternCount()).add(owner)
            if c.risk_level != "low":
                index.risky.append((owner, c))
    return index


def image_index(commands: Mapping[str, Sequence[str]]) -> Dict[str, List[str]]:
    """Image -> owners, for images referenced by docker commands."""
    out: Dict[str, List[str]] = {}
    for owner in sorted(commands):
        for command in commands[owner]:
            for image in docker_images_in(command):
                add_unique(out, image, owner)
    return out


def add_unique(index: Dict[str, List[str]], key: str, owner: str) -> None:
    owners = index.setdefault(key, [])
    if owner not in owners:
        owners.append(owner)


def ranked(counts: Mapping[str, int], limit: Optional[int] = None) -> List[Tuple[str, int]]:
    """Descending by count; equal counts are ordered by name."""
    items = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return items[:limit] if limit is not None else items


def first_word_frequency(commands: Iterable[str]) -> Dict[str, int]:
    """Leading program name of each command (sudo stripped), lowercased."""
    frequency: Dict[str, int] = {}
    for command in commands:
        words = command.split()
        if words and words[0].lower() == "sudo":
            words = words[1:]
        if not words:
            continue
        first = words[0].lower()
        if first in ("&&", "||", "|", ";"):
            continue
        frequency[first] = frequency.get(first, 0) + 1
    return frequency
