"""Write scanner findings as a SARIF 2.1.0 log."""

import json

SARIF_VERSION = "2.1.0"
SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"

_LEVELS = {
    "CRITICAL": "error",
    "HIGH": "error",
    "MEDIUM": "warning",
    "LOW": "note",
    "UNKNOWN": "note",
}


def _location(finding):
    uri = finding.get("file")
    if not uri:
        return None
    location = {"physicalLocation": {"artifactLocation": {"uri": uri}}}
    if finding.get("line"):
        location["physicalLocation"]["region"] = {"startLine": int(finding["line"])}
    return location


def build_sarif(findings):
    """Build a SARIF log with one run per tool, in first-seen order."""
    runs = {}
    for finding in findings:
        tool = finding["tool"]
        run = runs.setdefault(tool, {"rules": {}, "results": []})
        rule_id = finding.get("rule") or "unknown"
        run["rules"].setdefault(rule_id, {
            "id": rule_id,
            "shortDescription": {"text": finding.get("title") or rule_id},
        })
        message = finding.get("title") or rule_id
        if finding.get("package"):
            message = f"{message} [{finding['package']}]"
        result = {
            "ruleId": rule_id,
            "level": _LEVELS.get(finding.get("severity"), "note"),
            "message": {"text": message},
            "properties": {"severity": finding.get("severity")},
        }
        location = _location(finding)
        if location:
            result["locations"] = [location]
        run["results"].append(result)

    return {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {"driver": {"name": tool, "rules": list(run["rules"].values())}},
                "results": run["results"],
            }
            for tool, run in runs.items()
        ],
    }


def write_sarif(path, findings):
    with open(path, "w") as f:
        json.dump(build_sarif(findings), f, indent=2)
