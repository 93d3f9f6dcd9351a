"""Dockerfile and docker-compose support."""

from .analyzer import (
    ComposeAnalysis,
    DockerfileAnalysis,
    DockerSummary,
    DockerUsage,
    DockerUsageReference,
    PortConflict,
    analyze_compose,
    analyze_dockerfile,
    docker_usage,
    summarize,
)
from .model import ComposeFile, ComposeService, DockerfileModel, Instruction, Port, Stage

__all__ = [
    "ComposeAnalysis",
    "ComposeFile",
    "ComposeService",
    "DockerSummary",
    "DockerUsage",
    "DockerUsageReference",
    "DockerfileAnalysis",
    "DockerfileModel",
    "Instruction",
    "Port",
    "PortConflict",
    "Stage",
    "analyze_compose",
    "analyze_dockerfile",
    "docker_usage",
    "summarize",
]
