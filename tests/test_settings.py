"""Tests for settings loading (command line > project file > defaults)."""

from pathlib import Path

from pipeline_analyzer.settings import DEFAULT_OUTPUT_DIR, SETTINGS_FILE, Settings
from pipeline_analyzer.ui.console import Console


class TestSettings:
    """Test the settings hierarchy."""

    def test_defaults(self, tmp_path):
        """Test defaults with no file and no arguments."""
        settings = Settings.load(tmp_path)
        assert settings.output_dir == DEFAULT_OUTPUT_DIR
        assert "node_modules" in settings.exclude_dirs
        assert settings.write_reports is True
        assert settings.tools == []

    def test_project_file(self, tmp_path):
        """Test values from the project file, dashed keys included."""
        (tmp_path / SETTINGS_FILE).write_text(
            "output-dir: reports\nexclude_dirs: [build, dist]\nwrite_reports: false\ntools: gotask\nunknown: 1\n"
        )
        settings = Settings.load(tmp_path)
        assert settings.output_dir == "reports"
        assert settings.exclude_dirs == ["build", "dist"]
        assert settings.write_reports is False
        assert settings.tools == ["gotask"]

    def test_cli_overrides_file(self, tmp_path):
        """Test command line values win and None means unset."""
        (tmp_path / SETTINGS_FILE).write_text("output_dir: reports\ntools: [gotask]\n")
        settings = Settings.load(tmp_path, {"output_dir": "out", "tools": None})
        assert settings.output_dir == "out"
        assert settings.tools == ["gotask"]

    def test_wrong_type_rejected(self, tmp_path, capsys):
        """Test a mistyped value is ignored with a warning."""
        (tmp_path / SETTINGS_FILE).write_text("write_reports: maybe\nexclude_dirs: 3\n")
        settings = Settings.load(tmp_path, console=Console())
        assert settings.write_reports is True
        assert "node_modules" in settings.exclude_dirs
        err = capsys.readouterr().err
        assert "ignoring write_reports='maybe' (wrong type)" in err
        assert "ignoring exclude_dirs=3 (wrong type)" in err

    def test_bad_file_ignored(self, tmp_path, capsys):
        """Test invalid YAML or a non-mapping falls back to defaults."""
        (tmp_path / SETTINGS_FILE).write_text("output_dir: [unclosed\n")
        assert Settings.load(tmp_path, console=Console()).output_dir == DEFAULT_OUTPUT_DIR
        (tmp_path / SETTINGS_FILE).write_text("- a\n- b\n")
        assert Settings.load(tmp_path, console=Console()).output_dir == DEFAULT_OUTPUT_DIR
        err = capsys.readouterr().err
        assert err.count("WARNING: ignoring") == 2

    def test_output_path(self, tmp_path):
        """Test relative output dirs resolve under the repository."""
        assert Settings().output_path(tmp_path) == tmp_path / DEFAULT_OUTPUT_DIR
        absolute = tmp_path / "elsewhere"
        assert Settings(output_dir=str(absolute)).output_path(Path("/repo")) == absolute

    def test_to_dict(self):
        """Test the flat view used in debug output."""
        data = Settings().to_dict()
        assert set(data) == {"output_dir", "exclude_dirs", "write_reports", "tools"}

    def test_console_options_are_cli_only(self, tmp_path, capsys):
        """Test debug and log-file in the project file are ignored with a warning."""
        (tmp_path / SETTINGS_FILE).write_text("debug: true\nlog-file: run.log\noutput_dir: reports\n")
        settings = Settings.load(tmp_path, console=Console())
        assert settings.output_dir == "reports"
        assert not hasattr(settings, "debug")
        err = capsys.readouterr().err
        assert "ignoring debug, use --debug on the command line" in err
        assert "ignoring log_file, use --log-file on the command line" in err
