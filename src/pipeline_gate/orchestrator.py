"""Run a graph of steps in dependency order.

A step is a dict:
    name: unique step name
    action: callable(context) -> result dict (at least "status")
    needs: names of steps that must pass (or warn) first
    if: bool or callable(context) -> bool; False skips the step
    always: run even if a dependency failed (reports, comments)
    continue_on_error: downgrade the step's failure to a warning

The context dict carries inputs, secrets, options and the results of the
steps finished so far under "results".
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from pipeline_gate.errors import GateError, PipelineError

logger = logging.getLogger(__name__)

STATUSES = ("pass", "warn", "fail", "skip")
OK_STATUSES = ("pass", "warn")


def validate_steps(steps):
    """Raise PipelineError for duplicate names, unknown needs, or cycles."""
    names = set()
    for step in steps:
        if step["name"] in names:
            raise PipelineError(f"Duplicate step name '{step['name']}'")
        names.add(step["name"])
    for step in steps:
        for dep in step.get("needs", []):
            if dep not in names:
                raise PipelineError(f"Step '{step['name']}' needs unknown step '{dep}'")
            if dep == step["name"]:
                raise PipelineError(f"Step '{step['name']}' needs itself")
    return plan_waves(steps)


def plan_waves(steps):
    """Group steps into waves whose dependencies are all in earlier waves.

    Order within a wave follows declaration order.
    """
    remaining = list(steps)
    done = set()
    waves = []
    while remaining:
        wave = [s for s in remaining if all(d in done for d in s.get("needs", []))]
        if not wave:
            stuck = ", ".join(s["name"] for s in remaining)
            raise PipelineError(f"Dependency cycle between steps: {stuck}")
        waves.append(wave)
        done.update(s["name"] for s in wave)
        remaining = [s for s in remaining if s["name"] not in done]
    return waves


def skip_reason(step, context, failed_earlier=False, fail_fast=False):
    """Return why a step should be skipped, or None to run it."""
    results = context["results"]
    if not step.get("always"):
        if fail_fast and failed_earlier:
            return "skipped after an earlier failure"
        for dep in step.get("needs", []):
            status = results[dep]["status"]
            if status not in OK_STATUSES:
                return f"needs '{dep}' ({status})"
    condition = step.get("if", True)
    if callable(condition):
        condition = condition(context)
    if not condition:
        return "condition not met"
    return None


def _normalize(name, result, duration):
    status = result.get("status")
    if status not in STATUSES:
        raise PipelineError(f"Step '{name}' returned invalid status {status!r}")
    return {
        "name": name,
        "status": status,
        "summary": result.get("summary", ""),
        "duration": result.get("duration", duration),
        "findings": result.get("findings") or [],
        "output": result.get("output", ""),
        "data": result.get("data") or {},
    }


def execute_step(step, context):
    """Run one step's action and normalize its result."""
    started = time.monotonic()
    try:
        result = step["action"](context)
    except GateError as e:
        result = {"status": "fail", "summary": str(e)}
    result = _normalize(step["name"], result, round(time.monotonic() - started, 2))
    if result["status"] == "fail" and step.get("continue_on_error"):
        result["status"] = "warn"
        result["summary"] = f"{result['summary']} (continue on error)".strip()
    return result


def _skipped(step, reason):
    return _normalize(step["name"], {"status": "skip", "summary": reason}, 0.0)


def _record(context, ordered, result):
    context["results"][result["name"]] = result
    ordered.append(result)
    log = logger.warning if result["status"] == "fail" else logger.info
    log("Step %s: %s %s", result["name"], result["status"], result["summary"])


def overall_status(step_results):
    statuses = {r["status"] for r in step_results}
    if "fail" in statuses:
        return "fail"
    if "warn" in statuses:
        return "warn"
    return "pass"


def run_pipeline(steps, context, max_workers=1, fail_fast=False, workflow=None):
    """Run steps and return the run dict.

    Args:
        steps: list of step dicts
        context: dict with inputs/secrets/options; "results" is (re)set here
        max_workers: >1 runs independent steps of a wave in parallel
        fail_fast: skip everything not marked always after the first failure
        workflow: workflow registry entry, used for naming the run

    Returns dict with workflow, workflow_name, status, steps, findings,
    started_at and duration.
    """
    waves = validate_steps(steps)
    context["results"] = {}
    ordered = []
    started_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    started = time.monotonic()

    def failed():
        return any(r["status"] == "fail" for r in ordered)

    for wave in waves:
        if max_workers <= 1 or len(wave) == 1:
            for step in wave:
                reason = skip_reason(step, context, failed(), fail_fast)
                if reason:
                    _record(context, ordered, _skipped(step, reason))
                else:
                    _record(context, ordered, execute_step(step, context))
            continue

        to_run = []
        failed_before = failed()
        for step in wave:
            reason = skip_reason(step, context, failed_before, fail_fast)
            if reason:
                _record(context, ordered, _skipped(step, reason))
            else:
                to_run.append(step)
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(execute_step, step, context) for step in to_run]
            for future in futures:
                _record(context, ordered, future.result())

    findings = []
    for result in ordered:
        findings.extend(result["findings"])

    workflow = workflow or {}
    return {
        "workflow": workflow.get("name", ""),
        "workflow_name": workflow.get("workflow_name", ""),
        "status": overall_status(ordered),
        "steps": ordered,
        "findings": findings,
        "started_at": started_at,
        "duration": round(time.monotonic() - started, 2),
    }
