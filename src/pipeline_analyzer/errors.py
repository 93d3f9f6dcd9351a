# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Tuple


# ----------------------------------------------------------------------
# File-level failures (abort analysis of one file, never the whole run)
# ----------------------------------------------------------------------

@dataclass
class AnalyzerError(Exception):
    """
    Structured analysis error with enough context for:
      - a one-line reason in the run summary
      - full detail in debug output
    """
    kind: ClassVar[str] = "AnalyzerError"

    path: str
    message: str
    details: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.path:
            lines.append(f"file={self.path}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)

    def one_line(self) -> str:
        where = f" ({self.path})" if self.path else ""
        return f"{self.kind}: {self.message}{where}"


@dataclass
class DecodeError(AnalyzerError):
    """The raw bytes are not well-formed YAML/Dockerfile text."""
    kind: ClassVar[str] = "DecodeError"


@dataclass
class SchemaViolation(AnalyzerError):
    """Decoded fine, but a minimal structural invariant does not hold."""
    kind: ClassVar[str] = "SchemaViolation"

    invariant: str = ""

    def __str__(self) -> str:
        text = super().__str__()
        if self.invariant:
            text += f"\ninvariant={self.invariant}"
        return text


# ----------------------------------------------------------------------
# Annotations (values attached to models / analyses, never raised)
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class PartialRecovery:
    """Strict decoding failed; a permissive pass kept what it could type."""
    path: str
    reason: str
    dropped: Tuple[str, ...] = ()

    def describe(self) -> str:
        if self.dropped:
            return f"{self.reason}; dropped: {', '.join(self.dropped)}"
        return self.reason


@dataclass(frozen=True)
class GraphAnomaly:
    """Cycles found in a dependency graph."""
    cycles: Tuple[Tuple[str, ...], ...]

    @property
    def cycle_count(self) -> int:
        return len(self.cycles)

    def describe(self) -> List[str]:
        out = []
        for cycle in self.cycles:
            out.append(" -> ".join(list(cycle) + [cycle[0]]))
        return out


@dataclass(frozen=True)
class ReferenceAnomaly:
    """A name is referenced that has no definition (a dangling reference)."""
    container: str
    source: str
    missing: str
    relation: str = "requires"

    def describe(self) -> str:
        return f"{self.container}: '{self.source}' {self.relation} undefined '{self.missing}'"


def first_line(exc: BaseException) -> str:
    """One-line reason for a failure, for run summaries."""
    if isinstance(exc, AnalyzerError):
        return exc.one_line()
    text = str(exc).strip()
    line: Optional[str] = text.split("\n")[0] if text else None
    return f"{type(exc).__name__}: {line}" if line else type(exc).__name__
