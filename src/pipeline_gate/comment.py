"""Post run reports as pull request comments through the gh CLI."""

import json
import logging

from pipeline_gate.runner import run_tool, tool_output

logger = logging.getLogger(__name__)


def detect_pr_number(environ):
    """Read the pull request number from the GitHub event payload, if any."""
    event_path = environ.get("GITHUB_EVENT_PATH")
    if not event_path:
        return None
    try:
        with open(event_path) as f:
            event = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Cannot read event payload %s: %s", event_path, e)
        return None
    if not isinstance(event, dict):
        return None
    number = (event.get("pull_request") or {}).get("number")
    if number is None:
        number = event.get("number")
    if number is None:
        return None
    try:
        return int(number)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric pull request number %r in %s", number, event_path)
        return None


def post_pr_comment(body, pr_number, token=None, repo=None):
    """Comment body on a pull request. Returns a step result.

    A comment that cannot be posted is reported as a warning; it never
    fails the pipeline.
    """
    if not pr_number:
        return {"status": "skip", "summary": "not a pull request"}

    args = ["gh", "pr", "comment", str(pr_number), "--body-file", "-"]
    if repo:
        args.extend(["--repo", repo])
    env = {"GH_TOKEN": token} if token else None

    result = run_tool(args, env=env, timeout=60, stdin=body,
                      secrets=[token] if token else None)
    if result["error"] or result["returncode"] != 0:
        return {
            "status": "warn",
            "summary": f"could not comment on PR #{pr_number}",
            "output": tool_output(result),
        }
    return {"status": "pass", "summary": f"commented on PR #{pr_number}"}
