"""Version checks, commands and output summaries for the language test runners."""

import os
import re
import shlex

from pipeline_gate.errors import InputError

GO_COVER_PROFILE = "coverage.out"

VERSION_COMMANDS = {
    "go": ["go", "version"],
    "node": ["node", "--version"],
    "python": ["python3", "--version"],
}

_VERSION_RE = {
    "go": re.compile(r"go(\d+(?:\.\d+)*)"),
    "node": re.compile(r"v?(\d+(?:\.\d+)*)"),
    "python": re.compile(r"Python (\d+(?:\.\d+)*)"),
}


def parse_version(language, output):
    """Pull the version number out of `<tool> --version` output."""
    match = _VERSION_RE[language].search(output or "")
    return match.group(1) if match else None


def version_matches(expected, actual):
    """True if actual starts with expected on dot boundaries (1.22 ~ 1.22.3)."""
    if not expected:
        return True
    if not actual:
        return False
    want = expected.strip().lstrip("v").split(".")
    have = actual.split(".")
    return have[:len(want)] == want


def split_command(command):
    """Split a command override into args, rejecting empty or unbalanced ones."""
    try:
        args = shlex.split(command)
    except ValueError as e:
        raise InputError(f"Cannot parse command {command!r}: {e}") from None
    if not args:
        raise InputError("Command override is empty")
    return args


# --- Go ----------------------------------------------------------------------

def go_test_command(inputs):
    if inputs["test_command"]:
        return split_command(inputs["test_command"])
    args = ["go", "test"]
    if inputs["race"]:
        args.append("-race")
    if inputs["coverage"]:
        args.append(f"-coverprofile={GO_COVER_PROFILE}")
    args.append("./...")
    return args


def go_cover_command():
    return ["go", "tool", "cover", f"-func={GO_COVER_PROFILE}"]


def summarize_go_test(output):
    passed = len(re.findall(r"^ok\s", output, re.MULTILINE))
    failed = len(re.findall(r"^FAIL\s", output, re.MULTILINE))
    if not passed and not failed:
        return ""
    return f"{passed} package(s) ok, {failed} failed"


def parse_go_coverage(output):
    """Total statement coverage from `go tool cover -func` output."""
    match = re.search(r"^total:\s+\(statements\)\s+([\d.]+)%", output or "",
                      re.MULTILINE)
    return float(match.group(1)) if match else None


# --- Node --------------------------------------------------------------------

def node_install_command(inputs, workdir):
    if inputs["install_command"]:
        return split_command(inputs["install_command"])
    if os.path.exists(os.path.join(workdir, "package-lock.json")):
        return ["npm", "ci"]
    return ["npm", "install"]


def node_lint_command():
    return ["npm", "run", "lint"]


def node_test_command(inputs):
    if inputs["test_command"]:
        return split_command(inputs["test_command"])
    return ["npm", "test"]


# --- Python ------------------------------------------------------------------

def python_install_command(inputs):
    return ["python3", "-m", "pip", "install", "-r", inputs["requirements_file"]]


def python_test_command(inputs):
    if inputs["test_command"]:
        return split_command(inputs["test_command"])
    args = ["python3", "-m", "pytest"]
    if inputs["coverage"]:
        args.extend(["--cov", "--cov-report=term"])
    return args


def summarize_pytest(output):
    """'3 passed, 1 failed' style summary from pytest's last line."""
    counts = re.findall(
        r"(\d+) (passed|failed|errors?|skipped|xfailed|xpassed)", output or ""
    )
    if not counts:
        return ""
    # The final summary line repeats any earlier counts; keep the last mention
    seen = {}
    for num, label in counts:
        seen[label] = num
    return ", ".join(f"{num} {label}" for label, num in seen.items())


def parse_pytest_coverage(output):
    """Total percentage from the pytest-cov TOTAL line."""
    match = re.search(r"^TOTAL\s.*?(\d+(?:\.\d+)?)%\s*$", output or "",
                      re.MULTILINE)
    return float(match.group(1)) if match else None
