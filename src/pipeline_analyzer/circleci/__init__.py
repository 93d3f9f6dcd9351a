"""CircleCI (.circleci/config.yml) support."""

from .analyzer import CircleAnalysis, analyze, analyze_job, analyze_workflow
from .model import CircleConfig, Job, Step, Workflow, WorkflowJob
from .parser import is_valid, load, parse

__all__ = [
    "CircleAnalysis",
    "CircleConfig",
    "Job",
    "Step",
    "Workflow",
    "WorkflowJob",
    "analyze",
    "analyze_job",
    "analyze_workflow",
    "is_valid",
    "load",
    "parse",
]
