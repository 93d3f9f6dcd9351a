"""pipeline-analyzer: read CI/CD pipeline configs and summarize them for a migration."""

from .patterns import CommandClassification, classify
from .yamlvalue import YamlValue, decode_yaml

__all__ = [
    "CommandClassification",
    "YamlValue",
    "classify",
    "decode_yaml",
]

__version__ = "0.3.0"
