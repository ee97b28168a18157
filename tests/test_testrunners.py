"""Tests for the language test-runner helpers."""

import pytest

from pipeline_gate.errors import InputError
from pipeline_gate.testrunners import (
    go_test_command,
    node_install_command,
    node_test_command,
    parse_go_coverage,
    parse_pytest_coverage,
    parse_version,
    python_test_command,
    split_command,
    summarize_go_test,
    summarize_pytest,
    version_matches,
)


class TestVersions:
    def test_parse_go(self):
        assert parse_version("go", "go version go1.22.3 linux/amd64") == "1.22.3"

    def test_parse_node(self):
        assert parse_version("node", "v20.11.0\n") == "20.11.0"

    def test_parse_python(self):
        assert parse_version("python", "Python 3.12.1") == "3.12.1"

    def test_parse_garbage(self):
        assert parse_version("python", "command not found") is None

    @pytest.mark.parametrize("expected,actual,ok", [
        ("1.22", "1.22.3", True),
        ("1.22", "1.2.2", False),
        ("1.2", "1.22.0", False),
        ("20", "20.11.0", True),
        ("v20", "20.11.0", True),
        ("3.12.1", "3.12", False),
        ("", "anything", True),
        ("3.12", None, False),
    ])
    def test_version_matches(self, expected, actual, ok):
        assert version_matches(expected, actual) is ok


class TestSplitCommand:
    def test_quoted(self):
        assert split_command("pytest -k 'not slow'") == ["pytest", "-k", "not slow"]

    def test_unbalanced(self):
        with pytest.raises(InputError):
            split_command("pytest 'oops")

    def test_blank(self):
        with pytest.raises(InputError):
            split_command("   ")


class TestGo:
    def test_default(self):
        inputs = {"test_command": "", "race": True, "coverage": True}
        assert go_test_command(inputs) == ["go", "test", "-race", "-coverprofile=coverage.out", "./..."]

    def test_no_race_no_coverage(self):
        inputs = {"test_command": "", "race": False, "coverage": False}
        assert go_test_command(inputs) == ["go", "test", "./..."]

    def test_override(self):
        inputs = {"test_command": "make test", "race": True, "coverage": True}
        assert go_test_command(inputs) == ["make", "test"]

    def test_summary(self):
        out = "ok  \texample.com/a\t0.1s\nFAIL\texample.com/b\t0.2s\nok  \texample.com/c\t0.1s\n"
        assert summarize_go_test(out) == "2 package(s) ok, 1 failed"

    def test_coverage(self):
        out = "example.com/a/a.go:3:\tAdd\t100.0%\ntotal:\t\t\t(statements)\t87.5%\n"
        assert parse_go_coverage(out) == 87.5


class TestNode:
    def test_ci_with_lockfile(self, tmp_path):
        (tmp_path / "package-lock.json").touch()
        assert node_install_command({"install_command": ""}, str(tmp_path)) == ["npm", "ci"]

    def test_install_without_lockfile(self, tmp_path):
        assert node_install_command({"install_command": ""}, str(tmp_path)) == ["npm", "install"]

    def test_install_override(self, tmp_path):
        inputs = {"install_command": "yarn install --frozen-lockfile"}
        assert node_install_command(inputs, str(tmp_path))[0] == "yarn"

    def test_test_command(self):
        assert node_test_command({"test_command": ""}) == ["npm", "test"]
        assert node_test_command({"test_command": "npx jest"}) == ["npx", "jest"]


class TestPython:
    def test_default_with_coverage(self):
        args = python_test_command({"test_command": "", "coverage": True})
        assert args == ["python3", "-m", "pytest", "--cov", "--cov-report=term"]

    def test_summary(self):
        out = "collected 5 items\n...\n===== 4 passed, 1 failed in 0.12s =====\n"
        assert summarize_pytest(out) == "4 passed, 1 failed"

    def test_summary_none(self):
        assert summarize_pytest("no tests ran") == ""

    def test_coverage(self):
        out = "Name    Stmts   Miss  Cover\nTOTAL     120     18    85%\n"
        assert parse_pytest_coverage(out) == 85.0
