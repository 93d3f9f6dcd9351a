"""Tests for Taskfile parsing, recovery and analysis."""

import pytest

from pipeline_analyzer import gotask
from pipeline_analyzer.errors import SchemaViolation
from pipeline_analyzer.gotask.analyzer import most_used_tasks, tasks_by_pattern, tasks_by_type, variable_type

TASKFILE = """
version: '3'
vars:
  APP: myapp
  GIT_SHA:
    sh: git rev-parse HEAD
env:
  CGO_ENABLED: 0
includes:
  docs: ./docs/Taskfile.yml
tasks:
  default:
    desc: Default
    cmds:
      - task: build
  build:
    desc: Build the binary
    aliases: [b]
    deps: [generate]
    sources: ["**/*.go"]
    generates: [bin/app]
    cmds:
      - go build -o bin/{{.APP}} .
  generate:
    cmds:
      - go generate ./...
  test:
    desc: Run tests
    deps: [b, docs:build]
    cmds:
      - go test ./...
      - echo $CGO_ENABLED
  lint: golangci-lint run
"""


@pytest.fixture
def taskfile():
    """Parsed sample Taskfile."""
    return gotask.parse(TASKFILE, path="Taskfile.yml")


class TestParse:
    """Test the strict Taskfile parser."""

    def test_structure(self, taskfile):
        """Test top-level fields."""
        assert taskfile.version == "3"
        assert list(taskfile.tasks) == ["default", "build", "generate", "test", "lint"]
        assert taskfile.includes["docs"].taskfile == "./docs/Taskfile.yml"
        assert taskfile.recovery is None

    def test_shorthand_tasks(self):
        """Test scalar and list task bodies."""
        taskfile = gotask.parse("version: 3\ntasks:\n  lint: golangci-lint run\n  all: [echo a, {task: lint}]\n")
        assert taskfile.tasks["lint"].cmds == ["golangci-lint run"]
        assert taskfile.tasks["all"].cmds == ["echo a"]
        assert taskfile.tasks["all"].task_calls == ["lint"]

    def test_task_calls_split_from_cmds(self, taskfile):
        """Test `task:` entries are calls, not commands."""
        assert taskfile.tasks["default"].cmds == []
        assert taskfile.tasks["default"].task_calls == ["build"]

    def test_dependency_forms(self):
        """Test scalar and mapping deps."""
        taskfile = gotask.parse("version: 3\ntasks:\n  a:\n    deps: [b, {task: c, vars: {X: 1}}]\n")
        deps = taskfile.tasks["a"].deps
        assert [d.task for d in deps] == ["b", "c"]
        assert deps[1].vars == {"X": 1}

    def test_is_valid(self):
        """Test the minimal invariants."""
        with pytest.raises(SchemaViolation, match="missing version field"):
            gotask.is_valid(gotask.parse("tasks:\n  a: echo\n"))
        with pytest.raises(SchemaViolation, match="no tasks defined"):
            gotask.is_valid(gotask.parse("version: 3\n"))
        with pytest.raises(SchemaViolation, match="unsupported version: 4"):
            gotask.is_valid(gotask.parse("version: 4\ntasks:\n  a: echo\n"))

    def test_find_taskfile(self, tmp_path):
        """Test lookup by conventional names."""
        assert gotask.find_taskfile(tmp_path) is None
        (tmp_path / "Taskfile.yaml").write_text("version: 3\n")
        assert gotask.find_taskfile(tmp_path) == tmp_path / "Taskfile.yaml"


class TestRecovery:
    """Test the permissive second pass."""

    def test_scalar_tasks(self):
        """Test `tasks:` as a scalar yields an empty, partial result."""
        taskfile = gotask.parse("version: 3\ntasks: nope\n", path="Taskfile.yml")
        assert taskfile.tasks == {}
        assert taskfile.recovery is not None
        assert taskfile.recovery.dropped == ("tasks",)
        with pytest.raises(SchemaViolation, match="no tasks defined"):
            gotask.is_valid(taskfile)

    def test_keeps_what_it_can(self):
        """Test a bad field drops only itself."""
        taskfile = gotask.parse(
            "version: 3\ntasks:\n  build:\n    desc: x\n    cmds: [go build]\n    deps: {a: 1}\n"
        )
        task = taskfile.tasks["build"]
        assert task.desc == "x"
        assert task.cmds == ["go build"]
        assert task.deps == []
        assert taskfile.recovery.dropped == ("tasks.build.deps",)
        assert taskfile.recovery.describe().endswith("; dropped: tasks.build.deps")

    def test_unknown_keys_listed(self):
        """Test keys the recovery pass does not type are listed as dropped."""
        taskfile = gotask.parse(
            "version: 3\ntasks:\n  a:\n    cmds: echo\n    status: {bad: shape}\n"
        )
        assert taskfile.tasks["a"].cmds == ["echo"]
        assert "tasks.a.status" in taskfile.recovery.dropped


class TestAnalyze:
    """Test Taskfile analysis."""

    def test_usage(self, taskfile):
        """Test deps and calls are counted separately, aliases resolved."""
        analysis = gotask.analyze(taskfile)
        assert analysis.task_usage["build"] == 1
        assert analysis.task_usage["generate"] == 1
        assert analysis.task_usage["default"] == 0
        assert analysis.call_usage == {"build": 1}
        assert analysis.task_dependencies == {"build": ["generate"], "test": ["build", "docs:build"]}
        assert analysis.dangling == []
        assert analysis.total_tasks == 5
        assert analysis.total_commands == 5
        assert analysis.includes == ["docs"]

    def test_graph(self, taskfile):
        """Test levels and the critical path."""
        analysis = gotask.analyze(taskfile)
        assert analysis.critical_path == ["generate", "build", "test"]
        assert analysis.dependency_levels["test"] == 3
        assert analysis.circular_deps == []

    def test_variables(self, taskfile):
        """Test variable types and where they are used."""
        variables = gotask.analyze(taskfile).variables
        assert variables["APP"].type == "string"
        assert variables["APP"].used_in_tasks == ["build"]
        assert variables["GIT_SHA"].type == "shell"
        assert variables["CGO_ENABLED"].is_environment
        assert variables["CGO_ENABLED"].used_in_tasks == ["test"]

    def test_performance(self, taskfile):
        """Test caching metrics."""
        p = gotask.analyze(taskfile).performance
        assert p.tasks_with_caching == 1
        assert p.parallelizable_tasks == 3
        assert p.optimization_potential == pytest.approx(80.0)

    def test_tips(self, taskfile):
        """Test optimization tips and their order."""
        tips = [(t.type, t.task) for t in gotask.analyze(taskfile).optimization_tips]
        assert tips == [
            ("caching", "test"),
            ("usage", "default"),
            ("usage", "lint"),
            ("usage", "test"),
            ("documentation", "generate"),
            ("documentation", "lint"),
        ]

    def test_cycle_tip(self):
        """Test circular deps become a high severity tip."""
        taskfile = gotask.parse("version: 3\ntasks:\n  a:\n    deps: [b]\n  b:\n    deps: [a]\n")
        analysis = gotask.analyze(taskfile)
        cycle_tips = [t for t in analysis.optimization_tips if t.type == "dependency"]
        assert len(cycle_tips) == 1
        assert cycle_tips[0].task == "a -> b"
        assert cycle_tips[0].severity == "high"
        assert cycle_tips[0].message == "Circular dependency detected"

    def test_dangling(self):
        """Test undefined deps and calls without a matching include."""
        taskfile = gotask.parse(
            "version: 3\ntasks:\n  a:\n    deps: [missing]\n    cmds:\n      - task: other:thing\n",
            path="Taskfile.yml",
        )
        described = [r.describe() for r in gotask.analyze(taskfile).dangling]
        assert described == [
            "Taskfile Taskfile.yml: 'a' depends on undefined 'missing'",
            "Taskfile Taskfile.yml: 'a' calls undefined 'other:thing'",
        ]

    def test_pure(self, taskfile):
        """Test analysis leaves the Taskfile unchanged and repeats exactly."""
        before = taskfile.clone()
        assert gotask.analyze(taskfile) == gotask.analyze(taskfile)
        assert taskfile == before

    def test_idempotent_across_configs(self, taskfile):
        """Test analyzing another Taskfile in between changes nothing."""
        first = gotask.analyze(taskfile)
        gotask.analyze(gotask.parse("version: 3\ntasks:\n  build:\n    deps: [x]\n  x: make\n"))
        again = gotask.analyze(taskfile)
        assert again == first
        assert again.task_usage == first.task_usage
        assert again.task_dependencies == first.task_dependencies


class TestTaskViews:
    """Test per-task helpers."""

    def test_analyze_task(self, taskfile):
        """Test the per-task view."""
        task = gotask.analyze_task(taskfile, "build")
        assert task.dependencies == ["generate"]
        assert task.usage_count == 1
        assert task.task_type == "build"
        assert task.optimization_ops == []
        assert gotask.analyze_task(taskfile, "nope") is None

    def test_types(self, taskfile):
        """Test task type detection by name then commands."""
        assert tasks_by_type(taskfile) == {
            "build": ["build"],
            "utility": ["default", "generate"],
            "quality": ["lint"],
            "test": ["test"],
        }

    def test_variable_type(self):
        """Test Taskfile variable kinds."""
        assert variable_type(None) == "nil"
        assert variable_type(True) == "bool"
        assert variable_type(1.5) == "float"
        assert variable_type([1]) == "array"
        assert variable_type({"a": 1}) == "object"

    def test_ranking(self, taskfile):
        """Test equal counts are ordered by name."""
        ranking = most_used_tasks(gotask.analyze(taskfile), limit=3)
        assert ranking == [("build", 1), ("docs:build", 1), ("generate", 1)]

    def test_long_command(self):
        """Test a very long command with many template variables analyzes."""
        command = "echo " + "{{.APP}} $HOME " * 10000
        taskfile = gotask.parse(f"version: 3\nvars:\n  APP: x\ntasks:\n  a:\n    cmds:\n      - '{command}'\n")
        analysis = gotask.analyze(taskfile)
        assert analysis.variables["APP"].used_in_tasks == ["a"]

    def test_tasks_by_pattern(self, taskfile):
        """Test tasks are listed under the pattern their commands match."""
        analysis = gotask.analyze(taskfile)
        assert tasks_by_pattern(analysis, "go") == ["build"]
        assert tasks_by_pattern(analysis, "local-script") == ["generate"]
        assert tasks_by_pattern(analysis, "go-test") == ["test"]
        assert tasks_by_pattern(analysis, "kubectl") == []
