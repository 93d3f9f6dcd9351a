"""GitHub Actions (.github/workflows/*.yml) support."""

from .analyzer import WorkflowAnalysis, analyze, analyze_job
from .model import Job, Step, WorkflowFile
from .parser import is_valid, load, parse

__all__ = [
    "Job",
    "Step",
    "WorkflowAnalysis",
    "WorkflowFile",
    "analyze",
    "analyze_job",
    "is_valid",
    "load",
    "parse",
]
