"""Tests for Markdown report output."""

from conftest import write
from pipeline_analyzer.discovery import discover_tools
from pipeline_analyzer.report import render_tool, slugify, write_reports
from pipeline_analyzer.runner import analyze_tools
from pipeline_analyzer.ui.console import Console


class TestSlugify:
    """Test report directory names."""

    def test_paths(self):
        """Test path separators and dots collapse to dashes."""
        assert slugify(".github/workflows/ci.yml") == "github-workflows-ci-yml"
        assert slugify("services/api/Dockerfile") == "services-api-dockerfile"

    def test_empty(self):
        """Test the fallback name."""
        assert slugify("...") == "config"


class TestWriteReports:
    """Test the report tree."""

    def test_tree(self, repo, tmp_path):
        """Test one page per config plus an overview."""
        report = analyze_tools(repo, discover_tools(repo), Console(quiet=True))
        out = tmp_path / "out"
        written = write_reports(report, out, Console(quiet=True))
        assert len(written) == 6
        assert (out / "README.md").is_file()
        assert (out / "gotask" / "taskfile-yml" / "README.md").is_file()
        assert (out / "dockerfile" / "services-api-dockerfile" / "README.md").is_file()

    def test_overview(self, repo, tmp_path):
        """Test failed tools are listed with their reason."""
        write(repo, "Taskfile.yml", "tasks:\n  a: echo\n")
        report = analyze_tools(repo, discover_tools(repo), Console(quiet=True))
        write_reports(report, tmp_path / "out", Console(quiet=True))
        overview = (tmp_path / "out" / "README.md").read_text()
        assert "| Go Task (Taskfile.yml) | failed | SchemaViolation: missing version field (Taskfile.yml) |" in overview
        assert "[report](circleci/circleci-config-yml/README.md)" in overview
        assert "## Docker summary" in overview

    def test_pages(self, repo):
        """Test per-format page content."""
        report = analyze_tools(repo, discover_tools(repo), Console(quiet=True))
        pages = {r.tool.type: render_tool(r) for r in report.results}
        assert "Critical path: build -> test" in pages["circleci"]
        assert "## Optimization tips" in pages["gotask"]
        assert "| Runs as root | False |" in pages["dockerfile"]
        assert "Categories are name/image heuristics and may overlap." in pages["docker-compose"]
        assert pages["github-actions"].startswith("# GitHub Actions (.github/workflows/ci.yml)\n")

    def test_circleci_sections(self, repo):
        """Test the jobs, workflows and pattern tables of a CircleCI page."""
        report = analyze_tools(repo, discover_tools(repo, only=["circleci"]), Console(quiet=True))
        page = render_tool(report.results[0])
        assert "## Jobs" in page
        assert "Jobs on docker or a named executor: 2  Other: 0" in page
        assert "| main | 2 | build | - | build -> test |" in page
        assert "Ecosystem: go" in page
        assert "| go-test | testing | 1 | test |" in page
        assert "| local-script | script | 1 | build |" in page

    def test_gotask_sections(self, repo):
        """Test the task and task type tables of a go-task page."""
        report = analyze_tools(repo, discover_tools(repo, only=["gotask"]), Console(quiet=True))
        page = render_tool(report.results[0])
        assert "## Tasks" in page
        assert "## Task types" in page
        assert "| test | test |" in page
        assert "| go | 2 |" in page

    def test_docker_usage_in_overview(self, repo, tmp_path):
        """Test docker commands from other configs are listed in the overview."""
        write(repo, ".github/workflows/ci.yml", (
            "on: push\njobs:\n  image:\n    runs-on: ubuntu-latest\n    steps:\n"
            "      - run: docker build -f services/api/Dockerfile -t api .\n"
        ))
        report = analyze_tools(repo, discover_tools(repo), Console(quiet=True))
        write_reports(report, tmp_path / "out", Console(quiet=True))
        overview = (tmp_path / "out" / "README.md").read_text()
        assert "Git repository: no" in overview
        assert "## Docker usage in other configs" in overview
        assert (
            "| github-actions | .github/workflows/ci.yml | job image | "
            "docker build -f services/api/Dockerfile -t api . | Docker build command |"
        ) in overview
        assert "Referenced Dockerfiles: services/api/Dockerfile" in overview
