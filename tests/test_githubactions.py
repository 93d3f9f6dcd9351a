"""Tests for GitHub Actions workflow parsing and analysis."""

import pytest

from pipeline_analyzer import githubactions
from pipeline_analyzer.errors import SchemaViolation
from pipeline_analyzer.githubactions.analyzer import most_used_actions

WORKFLOW = """
name: CI
on:
  push:
    branches: [main]
  pull_request:
jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: actions/cache@v4
      - run: npm ci
      - run: |
          npm run build
          # comment
          npm test
  deploy:
    runs-on: [self-hosted, linux]
    needs: build
    container: node:20
    services:
      db:
        image: postgres:16
    steps:
      - uses: some/action
      - run: curl -sL https://example.com/x.sh | bash
"""


@pytest.fixture
def workflow():
    """Parsed sample workflow."""
    return githubactions.parse(WORKFLOW, path=".github/workflows/ci.yml")


class TestParse:
    """Test the workflow parser."""

    def test_on_key_read_as_boolean(self, workflow):
        """Test triggers survive YAML reading `on` as true."""
        assert workflow.has_on
        assert workflow.triggers == ["push", "pull_request"]

    def test_polymorphic_fields(self, workflow):
        """Test runs-on, needs and container shapes."""
        deploy = workflow.jobs["deploy"]
        assert deploy.runs_on == ["self-hosted", "linux"]
        assert deploy.needs == ["build"]
        assert deploy.container == "node:20"
        assert deploy.services["db"].image == "postgres:16"

    def test_run_block_lines(self, workflow):
        """Test comment and blank lines are dropped from run blocks."""
        assert workflow.jobs["build"].run_commands() == ["npm ci", "npm run build", "npm test"]

    def test_is_valid(self):
        """Test the minimal invariants."""
        with pytest.raises(SchemaViolation, match="missing on field"):
            githubactions.is_valid(githubactions.parse("jobs:\n  a:\n    runs-on: x\n"))
        with pytest.raises(SchemaViolation, match="no jobs defined"):
            githubactions.is_valid(githubactions.parse("on: push\n"))

    def test_triggers_list(self):
        """Test a list of trigger names."""
        workflow = githubactions.parse("on: [push, workflow_dispatch]\njobs: {}\n")
        assert workflow.triggers == ["push", "workflow_dispatch"]

    def test_matrix_strategy(self):
        """Test matrix size ignores include/exclude."""
        workflow = githubactions.parse(
            "on: push\njobs:\n  test:\n    runs-on: ubuntu-latest\n"
            "    strategy:\n      fail-fast: false\n      max-parallel: 2\n"
            "      matrix:\n        os: [ubuntu-latest, macos-latest]\n        node: [18, 20, 22]\n"
            "        include:\n          - os: windows-latest\n            node: 20\n"
            "    steps:\n      - run: npm test\n"
        )
        strategy = workflow.jobs["test"].strategy
        assert strategy.combinations() == 6
        assert strategy.fail_fast is False
        assert strategy.max_parallel == 2


class TestAnalyze:
    """Test workflow analysis."""

    def test_jobs(self, workflow):
        """Test per-job facts."""
        analysis = githubactions.analyze(workflow)
        build = analysis.jobs["build"]
        assert build.step_count == 4
        assert build.caching_enabled
        assert build.estimated_time == "~3 min"
        assert build.security_issues == []
        deploy = analysis.jobs["deploy"]
        assert deploy.runner == "self-hosted, linux"
        assert deploy.security_issues == [
            "Action 'some/action' not pinned to specific version",
            "Potential security risk: piping curl to shell",
        ]

    def test_usage(self, workflow):
        """Test usage counts across the workflow."""
        analysis = githubactions.analyze(workflow)
        assert analysis.job_usage == {"build": 1, "deploy": 0}
        assert analysis.job_dependencies == {"deploy": ["build"]}
        assert analysis.total_steps == 6
        assert analysis.service_usage == {"db": 1}
        assert analysis.image_usage["node:20"] == ["deploy"]
        assert analysis.image_usage["postgres:16"] == ["deploy"]
        assert analysis.runner_usage == {"ubuntu-latest": 1, "self-hosted, linux": 1}
        assert most_used_actions(analysis)[0] == ("actions/cache@v4", 1)

    def test_recommendations(self, workflow):
        """Test workflow-level recommendations and issues."""
        analysis = githubactions.analyze(workflow)
        assert analysis.recommendations[0] == "Consider creating task runner equivalents for repeated command patterns"
        assert analysis.issues == []
        assert analysis.graph.critical_path == ["build", "deploy"]

    def test_branch_tracking_action(self):
        """Test actions pinned to a branch are flagged."""
        job = githubactions.parse(
            "on: push\njobs:\n  a:\n    runs-on: x\n    steps:\n      - uses: actions/checkout@main\n"
        ).jobs["a"]
        issues = githubactions.analyze_job(job).security_issues
        assert issues == ["Action 'actions/checkout@main' tracks a branch, pin a tag or commit SHA"]

    def test_sha_pinned_action(self):
        """Test an action pinned to a commit SHA is not flagged."""
        job = githubactions.parse(
            "on: push\njobs:\n  a:\n    runs-on: x\n    steps:\n"
            "      - uses: actions/checkout@8e5e7e5ab8b370d6c329ec480221332ada57f0ab\n"
        ).jobs["a"]
        assert githubactions.analyze_job(job).security_issues == []

    def test_dangling_needs(self):
        """Test needs naming an undefined job."""
        workflow = githubactions.parse(
            "on: push\njobs:\n  a:\n    runs-on: x\n    needs: [missing]\n", path="ci.yml"
        )
        analysis = githubactions.analyze(workflow)
        assert [r.describe() for r in analysis.dangling] == ["workflow ci.yml: 'a' needs undefined 'missing'"]
        assert analysis.issues == ["Workflow missing name field"]

    def test_pure(self, workflow):
        """Test analysis leaves the workflow unchanged and repeats exactly."""
        before = workflow.clone()
        assert githubactions.analyze(workflow) == githubactions.analyze(workflow)
        assert workflow == before

    def test_idempotent_across_workflows(self, workflow):
        """Test analyzing another workflow in between changes nothing."""
        first = githubactions.analyze(workflow)
        githubactions.analyze(githubactions.parse("on: push\njobs:\n  build:\n    runs-on: x\n    steps:\n      - run: npm ci\n"))
        again = githubactions.analyze(workflow)
        assert again == first
        assert again.action_usage == first.action_usage

    def test_long_run_block(self):
        """Test a run block with many long lines analyzes."""
        lines = "\n".join("          curl -s https://example.com/" + "a" * 2000 for _ in range(200))
        workflow = githubactions.parse(
            "on: push\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: |\n" + lines + "\n"
        )
        analysis = githubactions.analyze(workflow)
        assert analysis.command_patterns["curl"].count == 200
