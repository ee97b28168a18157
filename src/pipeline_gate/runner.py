"""Run one external tool and normalize its result."""

import logging
import os
import subprocess
import time

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1800
REDACTED = "***"


def redact(text, secrets):
    """Replace every secret value in text with ***."""
    if not text:
        return text
    for value in secrets or ():
        if value:
            text = text.replace(value, REDACTED)
    return text


def run_tool(args, cwd=None, env=None, timeout=DEFAULT_TIMEOUT, secrets=None,
             stdin=None):
    """Run a command without a shell.

    Args:
        args: command as a list of strings
        cwd: working directory
        env: extra environment variables merged over os.environ
        timeout: seconds before the process is killed
        secrets: values to redact from captured output
        stdin: text fed to the process

    Returns a dict with command, returncode, stdout, stderr, duration and
    error. error is None unless the executable is missing or timed out; in
    that case returncode is None.
    """
    full_env = dict(os.environ)
    if env:
        full_env.update(env)

    logger.info("Running: %s", " ".join(args))
    started = time.monotonic()
    result = {
        "command": list(args),
        "returncode": None,
        "stdout": "",
        "stderr": "",
        "duration": 0.0,
        "error": None,
    }
    try:
        proc = subprocess.run(
            args, capture_output=True, text=True, cwd=cwd, env=full_env,
            timeout=timeout, input=stdin,
        )
    except FileNotFoundError:
        result["error"] = f"{args[0]} not found"
    except subprocess.TimeoutExpired:
        result["error"] = f"{args[0]} timed out after {timeout}s"
    else:
        result["returncode"] = proc.returncode
        result["stdout"] = redact(proc.stdout, secrets)
        result["stderr"] = redact(proc.stderr, secrets)
    result["duration"] = round(time.monotonic() - started, 2)

    if result["error"]:
        logger.warning("%s", result["error"])
    else:
        logger.debug("%s exited %s in %.2fs", args[0], result["returncode"],
                     result["duration"])
    return result


def tool_status(result, ok_codes=(0,)):
    """Map a tool result to 'pass' or 'fail'."""
    if result["error"] is not None:
        return "fail"
    return "pass" if result["returncode"] in ok_codes else "fail"


def tool_output(result):
    """Combined stdout and stderr, or the runner error."""
    if result["error"]:
        return result["error"]
    parts = [p for p in (result["stdout"], result["stderr"]) if p]
    return "\n".join(parts).strip()


def tail(text, lines=20):
    """Last few lines of text, for step summaries and reports."""
    return "\n".join(text.strip().splitlines()[-lines:])
