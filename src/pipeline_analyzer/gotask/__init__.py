"""go-task (Taskfile.yml) support."""

from .analyzer import OptimizationTip, TaskfileAnalysis, analyze, analyze_task, detect_task_type
from .model import Dependency, Include, Task, Taskfile
from .parser import find_taskfile, is_valid, load, parse

__all__ = [
    "Dependency",
    "Include",
    "OptimizationTip",
    "Task",
    "Taskfile",
    "TaskfileAnalysis",
    "analyze",
    "analyze_task",
    "detect_task_type",
    "find_taskfile",
    "is_valid",
    "load",
    "parse",
]
