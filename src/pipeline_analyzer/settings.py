"""Configuration with hierarchy: CLI args > project file > defaults."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .discovery import DEFAULT_EXCLUDE_DIRS
from .ui.console import Console

SETTINGS_FILE = ".pipeline-analyzer.yaml"
DEFAULT_OUTPUT_DIR = ".discovery/pipeline-analyzer"
# console options: the console exists before any settings file is read
CLI_ONLY = {"debug": "--debug", "log_file": "--log-file"}


@dataclass
class Settings:
    output_dir: str = DEFAULT_OUTPUT_DIR
    exclude_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    write_reports: bool = True
    tools: List[str] = field(default_factory=list)   # empty: every supported type

    @classmethod
    def load(
        cls,
        root: str | Path,
        cli_args: Optional[Dict[str, Any]] = None,
        console: Optional[Console] = None,
    ) -> "Settings":
        """
        Load settings for the repository at `root`.

        Args:
            root: Repository root; `.pipeline-analyzer.yaml` there is read if present
            cli_args: Values from the command line; None entries are ignored

        Returns:
            Settings instance with loaded values
        """
        settings = cls()
        path = Path(root) / SETTINGS_FILE
        if path.is_file():
            settings._apply(settings._read_file(path, console), source=str(path), console=console)
        if cli_args:
            settings._apply({k: v for k, v in cli_args.items() if v is not None}, source="command line", console=console)
        return settings

    @staticmethod
    def _read_file(path: Path, console: Optional[Console]) -> Dict[str, Any]:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            if console is not None:
                console.print_warning(f"ignoring {path}: {str(e).splitlines()[0]}")
            return {}
        if data is None:
            return {}
        if not isinstance(data, dict):
            if console is not None:
                console.print_warning(f"ignoring {path}: expected a mapping at the top level")
            return {}
        return data

    def _apply(self, values: Dict[str, Any], source: str, console: Optional[Console]) -> None:
        known = {f.name: f for f in fields(self)}
        for key, value in values.items():
            key = str(key).replace("-", "_")
            if key in CLI_ONLY:
                if console is not None:
                    console.print_warning(f"{source}: ignoring {key}, use {CLI_ONLY[key]} on the command line")
                continue
            if key not in known or value is None:
                continue
            current = getattr(self, key)
            if isinstance(current, bool):
                if not isinstance(value, bool):
                    self._reject(key, value, source, console)
                    continue
            elif isinstance(current, list):
                if isinstance(value, str):
                    value = [value]
                if not isinstance(value, (list, tuple)):
                    self._reject(key, value, source, console)
                    continue
                value = [str(v) for v in value]
            else:
                value = str(value)
            setattr(self, key, value)

    @staticmethod
    def _reject(key: str, value: Any, source: str, console: Optional[Console]) -> None:
        if console is not None:
            console.print_warning(f"{source}: ignoring {key}={value!r} (wrong type)")

    def output_path(self, root: str | Path) -> Path:
        path = Path(self.output_dir)
        return path if path.is_absolute() else Path(root) / path

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
