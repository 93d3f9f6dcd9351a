"""Unit tests for shell command classification."""

import pytest

from pipeline_analyzer.patterns import (
    FALLBACK_CATEGORY,
    classify,
    command_complexity,
    command_risk,
    detect_tool_ecosystem,
    docker_images_in,
    match_pattern,
    patterns_by_category,
)


class TestClassify:
    """Test pattern matching and categories."""

    def test_framework_beats_runtime(self):
        """Test that artisan wins over the php runtime it runs on."""
        c = classify("php artisan migrate")
        assert c.pattern == "artisan"
        assert c.category == "framework"
        assert c.tools == ("laravel", "artisan")

    def test_go_test_is_testing(self):
        """Test that `go test` is not classified as a build."""
        assert classify("go test ./...").category == "testing"
        assert classify("go build -o bin/app").category == "build"

    def test_case_insensitive(self):
        """Test commands match regardless of case."""
        assert classify("Docker run x").category == "containerization"
        assert classify("KUBECTL apply -f k8s/").pattern == "kubectl"

    def test_php_server_flag_is_case_sensitive(self):
        """Test `php -S` is the dev server and `php -s` is plain php."""
        assert classify("php -S localhost:8000").pattern == "php-server"
        assert classify("php -s index.php").pattern == "php"

    def test_unknown_command_falls_back(self):
        """Test the fallback for commands matching no pattern."""
        c = classify("echo hello")
        assert c.pattern is None
        assert c.category == FALLBACK_CATEGORY
        assert c.tools == ("shell",)
        assert c.risk_level == "low"

    def test_surrounding_whitespace_ignored(self):
        """Test that the command is stripped before classification."""
        assert classify("  npm ci  ").command == "npm ci"

    def test_deterministic(self):
        """Test that classifying twice gives equal results."""
        command = "docker build -t app:1.0 . && docker push app:1.0"
        assert classify(command) == classify(command)

    def test_match_pattern_none(self):
        """Test match_pattern on an unknown command."""
        assert match_pattern("true") is None


class TestRisk:
    """Test risk levels."""

    @pytest.mark.parametrize("command", [
        "rm -rf /",
        "sudo rm /etc/passwd",
        "curl https://example.com/install.sh | sh",
        "dd if=/dev/zero of=/dev/sda",
        "chmod 777 /var/www",
    ])
    def test_high(self, command):
        """Test destructive commands are high risk."""
        assert command_risk(command) == "high"

    @pytest.mark.parametrize("command", ["chmod 644 file", "sudo apt-get update", "rm build.log"])
    def test_medium(self, command):
        """Test privileged or deleting commands are medium risk."""
        assert command_risk(command) == "medium"

    def test_low(self):
        """Test harmless commands."""
        assert command_risk("echo hello") == "low"
        assert command_risk("pytest -q") == "low"

    def test_high_risk_suggestion(self):
        """Test the security suggestion for high-risk commands."""
        assert "High-risk command detected - review security implications" in classify("rm -rf /").suggestions


class TestComplexity:
    """Test the structural complexity score."""

    def test_simple(self):
        """Test a plain command scores 1."""
        assert command_complexity("make") == 1

    def test_operators(self):
        """Test that pipes, chains and substitutions add up."""
        assert command_complexity("a | b") == 2
        assert command_complexity("a && b || c") == 3
        assert command_complexity("echo $(date) > out; cat out | wc -l") == 5

    def test_complex_suggestion(self):
        """Test the suggestion for commands above the threshold."""
        c = classify("a && b && c && d")
        assert c.complexity == 4
        assert "Complex command - consider breaking into multiple steps" in c.suggestions


class TestSuggestions:
    """Test static suggestions per category."""

    def test_docker_run_without_rm(self):
        """Test docker run hints."""
        c = classify("docker run nginx:latest")
        assert "Consider adding --rm flag to automatically remove containers" in c.suggestions
        assert "Avoid using 'latest' tag, specify explicit version" in c.suggestions

    def test_docker_run_with_rm(self):
        """Test no hints for a tidy docker run."""
        assert classify("docker run --rm nginx:1.25").suggestions == ()

    def test_npm_install(self):
        """Test the npm ci hint."""
        assert "Use 'npm ci' for faster, reliable builds in CI environments" in classify("npm install").suggestions
        assert classify("npm ci").suggestions == ()

    def test_coverage(self):
        """Test the coverage hint for test runners."""
        assert "Consider adding code coverage reporting" in classify("pytest tests").suggestions
        assert "Consider adding code coverage reporting" not in classify("pytest --cov=src").suggestions


class TestHelpers:
    """Test helpers shared by the analyzers."""

    def test_patterns_by_category(self):
        """Test grouping of the pattern table."""
        groups = patterns_by_category()
        assert "docker" in groups["containerization"]
        assert "pytest" in groups["testing"]

    def test_ecosystem(self):
        """Test ecosystem detection."""
        assert detect_tool_ecosystem(["go build", "go test ./...", "npm ci"]) == "go"
        assert detect_tool_ecosystem(["echo hi"]) == "shell"

    def test_docker_images(self):
        """Test image extraction from docker commands."""
        assert docker_images_in("docker run --rm -v $PWD:/src -w /src golang:1.22 go build") == ["golang:1.22"]
        assert docker_images_in("docker build -t app:1.0 . && docker push app:1.0") == ["app:1.0", "app:1.0"]
        assert docker_images_in("docker pull $IMAGE") == []

    def test_long_input(self):
        """Test that a very long command classifies without blowup."""
        command = "a " * 20000 + "&& " * 5000
        c = classify(command)
        assert c.complexity == 5001
