"""Tests for CircleCI parsing and analysis."""

import pytest

from pipeline_analyzer import circleci
from pipeline_analyzer.circleci.analyzer import command_frequency, count_docker_usage, jobs_by_pattern, most_used_jobs
from pipeline_analyzer.circleci.parser import parse_workflow_job
from pipeline_analyzer.errors import SchemaViolation
from pipeline_analyzer.yamlvalue import YamlValue

CONFIG = """
version: 2.1
executors:
  node:
    docker:
      - image: cimg/node:20.1
commands:
  install:
    description: Install deps
    steps:
      - run: npm ci
jobs:
  build:
    executor: node
    steps:
      - checkout
      - install
      - run: npm run build
  test:
    docker:
      - image: cimg/node:20.1
    steps:
      - checkout
      - run:
          name: Unit tests
          command: npm test
  deploy:
    machine: true
    steps:
      - run: ./deploy.sh
workflows:
  version: 2
  main:
    jobs:
      - build
      - test:
          requires: [build]
      - deploy:
          requires:
            - test
          context: org-global
"""


@pytest.fixture
def config():
    """Parsed sample config."""
    return circleci.parse(CONFIG, path=".circleci/config.yml")


class TestParse:
    """Test the CircleCI parser."""

    def test_structure(self, config):
        """Test jobs, workflows, executors and commands are read."""
        assert config.version == "2.1"
        assert list(config.jobs) == ["build", "test", "deploy"]
        assert list(config.workflows) == ["main"]
        assert config.executors["node"].docker == ["cimg/node:20.1"]
        assert config.commands["install"].commands() == ["npm ci"]
        assert config.jobs["deploy"].machine == "default"

    def test_run_step_forms(self, config):
        """Test string and mapping run steps."""
        steps = config.jobs["test"].steps
        assert steps[0].kind == "checkout"
        assert steps[1].command == "npm test"
        assert steps[1].name == "Unit tests"
        assert config.jobs["build"].commands() == ["npm run build"]

    def test_job_reference_forms_equivalent(self):
        """Test a bare job name equals a mapping with empty requires."""
        bare = parse_workflow_job(YamlValue.wrap("build"))
        mapped = parse_workflow_job(YamlValue.wrap({"build": {"requires": []}}))
        assert bare == mapped

    def test_context_string_or_list(self, config):
        """Test a scalar context becomes a one-element list."""
        assert config.workflows["main"].jobs[2].context == ["org-global"]

    def test_non_mapping_job_skipped(self):
        """Test a scalar job body is ignored."""
        config = circleci.parse("version: 2.1\njobs:\n  build: nope\n  test:\n    steps: []\n")
        assert list(config.jobs) == ["test"]

    def test_root_must_be_mapping(self):
        """Test a list document is rejected."""
        with pytest.raises(SchemaViolation) as exc:
            circleci.parse("- a\n- b\n", path="config.yml")
        assert exc.value.invariant == "root-mapping"

    def test_is_valid(self):
        """Test the minimal invariants."""
        with pytest.raises(SchemaViolation, match="missing version field"):
            circleci.is_valid(circleci.parse("jobs:\n  a:\n    steps: []\n"))
        with pytest.raises(SchemaViolation, match="no jobs defined"):
            circleci.is_valid(circleci.parse("version: 2.1\n"))

    def test_clone_is_deep(self, config):
        """Test clones share nothing mutable."""
        copy = config.clone()
        copy.jobs["build"].steps.clear()
        copy.workflows["main"].jobs[1].requires.append("x")
        assert len(config.jobs["build"].steps) == 3
        assert config.workflows["main"].jobs[1].requires == ["build"]


class TestAnalyze:
    """Test CircleCI analysis."""

    def test_usage_and_dependencies(self, config):
        """Test requires counts and the dependency map."""
        analysis = circleci.analyze(config)
        assert analysis.job_usage == {"build": 1, "test": 1, "deploy": 0}
        assert analysis.workflow_usage == {"build": 1, "test": 1, "deploy": 1}
        assert analysis.job_dependencies == {"test": ["build"], "deploy": ["test"]}
        assert analysis.total_jobs == 3
        assert analysis.total_commands == 3

    def test_graph(self, config):
        """Test the critical path follows requires."""
        analysis = circleci.analyze(config)
        assert analysis.graph.critical_path == ["build", "test", "deploy"]
        assert analysis.cycles is None

    def test_executors_and_commands(self, config):
        """Test executor usage and reusable command counts."""
        analysis = circleci.analyze(config)
        assert analysis.executor_usage["node (cimg/node:20.1)"] == ["build"]
        assert analysis.executor_usage["cimg/node:20.1"] == ["test"]
        assert analysis.executor_usage["machine (default)"] == ["deploy"]
        assert analysis.reusable_commands["install"].usage_count == 1

    def test_idempotent_and_pure(self, config):
        """Test analysis is repeatable and leaves the config unchanged."""
        before = config.clone()
        first = circleci.analyze(config)
        second = circleci.analyze(config)
        assert first == second
        assert config == before

    def test_dangling_requires(self):
        """Test undefined jobs are reported, orb jobs are not."""
        config = circleci.parse(
            "version: 2.1\n"
            "jobs:\n  test:\n    steps: [checkout]\n"
            "workflows:\n  main:\n    jobs:\n"
            "      - node/install\n"
            "      - ghost\n"
            "      - test:\n          requires: [missing]\n"
        )
        analysis = circleci.analyze(config)
        described = [ref.describe() for ref in analysis.dangling]
        assert described == [
            "workflow main: 'main' references undefined 'ghost'",
            "workflow main: 'test' requires undefined 'missing'",
        ]

    def test_alias_requires(self):
        """Test requires may name a job by its workflow alias."""
        config = circleci.parse(
            "version: 2.1\n"
            "jobs:\n  build:\n    steps: [checkout]\n  test:\n    steps: [checkout]\n"
            "workflows:\n  main:\n    jobs:\n"
            "      - build:\n          name: build-linux\n"
            "      - test:\n          requires: [build-linux]\n"
        )
        analysis = circleci.analyze(config)
        assert analysis.job_dependencies == {"test": ["build"]}
        assert analysis.dangling == []

    def test_cycle(self):
        """Test a requires cycle is reported, not fatal."""
        config = circleci.parse(
            "version: 2.1\n"
            "jobs:\n  a:\n    steps: [checkout]\n  b:\n    steps: [checkout]\n"
            "workflows:\n  main:\n    jobs:\n"
            "      - a:\n          requires: [b]\n"
            "      - b:\n          requires: [a]\n"
        )
        analysis = circleci.analyze(config)
        assert analysis.cycles.describe() == ["a -> b -> a"]
        assert analysis.graph.critical_path_approximate

    def test_views(self, config):
        """Test per-job and per-workflow views and rankings."""
        job = circleci.analyze_job(config, "test")
        assert job.dependencies == ["build"]
        assert job.images == ["cimg/node:20.1"]
        assert circleci.analyze_job(config, "nope") is None
        workflow = circleci.analyze_workflow(config, "main")
        assert workflow.entry_jobs == ["build"]
        assert most_used_jobs(circleci.analyze(config)) == [("build", 1), ("deploy", 1), ("test", 1)]

    def test_long_run_line(self):
        """Test a very long run command analyzes."""
        command = "make " + "target " * 20000
        config = circleci.parse(f"version: 2.1\njobs:\n  a:\n    steps:\n      - run: {command}\n")
        assert circleci.analyze(config).command_patterns["make"].count == 1

    def test_pattern_and_executor_helpers(self, config):
        """Test jobs by command pattern and the docker/other split."""
        analysis = circleci.analyze(config)
        assert jobs_by_pattern(analysis, "npm") == ["build", "test"]
        assert jobs_by_pattern(analysis, "local-script") == ["deploy"]
        assert jobs_by_pattern(analysis, "terraform") == []
        assert count_docker_usage(config) == (2, 1)

    def test_workflow_view(self, config):
        """Test entry jobs, approval jobs and the per-workflow graph."""
        workflow = circleci.analyze_workflow(config, "main")
        assert [ref.name for ref in workflow.jobs] == ["build", "test", "deploy"]
        assert workflow.entry_jobs == ["build"]
        assert workflow.approval_jobs == []
        assert workflow.graph.critical_path == ["build", "test", "deploy"]
        assert circleci.analyze_workflow(config, "nightly") is None

        gated = circleci.parse(
            "version: 2.1\njobs:\n  ship:\n    steps: [checkout]\n"
            "workflows:\n  release:\n    jobs:\n"
            "      - hold:\n          type: approval\n"
            "      - ship:\n          requires: [hold]\n"
        )
        workflow = circleci.analyze_workflow(gated, "release")
        assert workflow.entry_jobs == ["hold"]
        assert workflow.approval_jobs == ["hold"]

    def test_command_frequency(self, config):
        """Test first words of run commands across jobs."""
        assert command_frequency(config) == {"npm": 2, "./deploy.sh": 1}
