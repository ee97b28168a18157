"""Render pipeline runs as Markdown (PR comments) or JSON."""

import json

from pipeline_gate.gate import SEVERITIES, count_by_severity

MAX_FINDING_ROWS = 50
# GitHub rejects comments over 65536 characters
MAX_PLAN_CHARS = 60000

STATUS_LABELS = {
    "pass": "Passed",
    "warn": "Passed with warnings",
    "fail": "**Failed**",
    "skip": "Skipped",
}


def generate_report(runs, fmt="markdown"):
    """Render one run dict or a list of them.

    Args:
        runs: run dict(s) from orchestrator.run_pipeline()
        fmt: 'markdown' or 'json'

    Returns:
        Formatted report string.
    """
    if isinstance(runs, dict):
        runs = [runs]
    if fmt == "json":
        return _generate_json(runs)
    return "\n".join(_generate_markdown(run) for run in runs)


def _generate_json(runs):
    statuses = {r["status"] for r in runs}
    status = "fail" if "fail" in statuses else "warn" if "warn" in statuses else "pass"
    payload = {
        "status": status,
        "runs": runs,
    }
    return json.dumps(payload, indent=2)


def _cell(value):
    """Make a value safe for a Markdown table cell."""
    text = "" if value is None else str(value)
    return text.replace("|", "\\|").replace("\n", " ")


def _location(finding):
    if finding.get("file"):
        if finding.get("line"):
            return f"{finding['file']}:{finding['line']}"
        return finding["file"]
    return finding.get("package") or "-"


def _generate_markdown(run):
    title = run.get("workflow_name") or run.get("workflow") or "Pipeline"
    lines = [
        f"## {title}: {STATUS_LABELS[run['status']]}",
        "",
        f"**Duration:** {run.get('duration', 0):.1f}s"
        + (f" | **Started:** {run['started_at']}" if run.get("started_at") else ""),
        "",
        "### Steps",
        "",
        "| Step | Status | Duration | Summary |",
        "|:-----|:------:|---------:|:--------|",
    ]
    for step in run["steps"]:
        lines.append(
            f"| {_cell(step['name'])} | {STATUS_LABELS[step['status']]} | "
            f"{step['duration']:.1f}s | {_cell(step['summary']) or '-'} |"
        )
    lines.append("")

    findings = run.get("findings") or []
    if findings:
        lines.extend(_findings_section(findings))

    for step in run["steps"]:
        plan = step["data"].get("plan_output")
        if plan:
            lines.extend(_plan_section(step["name"], plan))

    failed = [s for s in run["steps"] if s["status"] == "fail" and s["output"]]
    for step in failed:
        lines.extend([
            f"<details><summary>{step['name']} output</summary>",
            "",
            "```",
            step["output"],
            "```",
            "",
            "</details>",
            "",
        ])

    return "\n".join(lines)


def _findings_section(findings):
    counts = count_by_severity(findings)
    lines = [
        "### Findings",
        "",
        "| " + " | ".join(SEVERITIES) + " |",
        "|" + "|".join(":---:" for _ in SEVERITIES) + "|",
        "| " + " | ".join(str(counts[s]) for s in SEVERITIES) + " |",
        "",
        "| Severity | Tool | Rule | Title | Location |",
        "|:---------|:-----|:-----|:------|:---------|",
    ]
    ranked = sorted(findings, key=lambda f: SEVERITIES.index(f["severity"]))
    for f in ranked[:MAX_FINDING_ROWS]:
        lines.append(
            f"| {f['severity']} | {_cell(f['tool'])} | {_cell(f['rule'])} | "
            f"{_cell(f['title'])} | {_cell(_location(f))} |"
        )
    if len(ranked) > MAX_FINDING_ROWS:
        lines.append("")
        lines.append(f"_... and {len(ranked) - MAX_FINDING_ROWS} more_")
    lines.append("")
    return lines


def _plan_section(name, plan):
    if len(plan) > MAX_PLAN_CHARS:
        plan = plan[:MAX_PLAN_CHARS] + "\n... (truncated)"
    return [
        f"<details><summary>{name} output</summary>",
        "",
        "```hcl",
        plan,
        "```",
        "",
        "</details>",
        "",
    ]
