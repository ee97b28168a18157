"""Aggregate scanner findings against the severity policy."""

from pipeline_gate.errors import InputError

SEVERITIES = ["CRITICAL", "HIGH", "MEDIUM", "LOW", "UNKNOWN"]

_ALIASES = {
    "MODERATE": "MEDIUM",
    "INFO": "LOW",
    "INFORMATIONAL": "LOW",
    "NEGLIGIBLE": "LOW",
    "NOTE": "LOW",
    "ERROR": "HIGH",
    "WARNING": "MEDIUM",
}


def normalize_severity(value):
    """Map a tool-specific severity label onto SEVERITIES."""
    text = str(value or "").strip().upper()
    text = _ALIASES.get(text, text)
    return text if text in SEVERITIES else "UNKNOWN"


def parse_severity_list(value):
    """Parse 'CRITICAL,HIGH' into an ordered list of severities."""
    levels = []
    for part in str(value).split(","):
        part = part.strip().upper()
        if not part:
            continue
        if part not in SEVERITIES:
            raise InputError(f"Unknown severity '{part}' (expected one of {', '.join(SEVERITIES)})")
        if part not in levels:
            levels.append(part)
    if not levels:
        raise InputError("Severity list is empty")
    return sorted(levels, key=SEVERITIES.index)


def count_by_severity(findings):
    counts = {sev: 0 for sev in SEVERITIES}
    for finding in findings:
        counts[normalize_severity(finding.get("severity"))] += 1
    return counts


def evaluate_gate(scanner_results, severity="CRITICAL,HIGH", fail_on_findings=True):
    """Decide pass/warn/fail from scanner step results.

    Args:
        scanner_results: step result dicts from the scanner steps
        severity: comma-separated blocking severities
        fail_on_findings: if False, blocking findings only warn

    Returns a dict with status, summary, counts, blocking, findings.
    """
    blocking_levels = parse_severity_list(severity)
    ran = [r for r in scanner_results if r["status"] != "skip"]
    errored = [r["name"] for r in ran if r["status"] == "fail"]

    findings = []
    for r in ran:
        findings.extend(r.get("findings") or [])
    counts = count_by_severity(findings)
    blocking = sum(counts[sev] for sev in blocking_levels)

    if not ran:
        return {
            "status": "pass",
            "summary": "no scanners ran",
            "counts": counts,
            "blocking": 0,
            "findings": [],
        }

    if errored:
        status = "fail"
        summary = f"scanner error: {', '.join(errored)}"
    elif blocking and fail_on_findings:
        status = "fail"
        summary = f"{blocking} blocking finding(s) at {'/'.join(blocking_levels)}"
    elif blocking:
        status = "warn"
        summary = f"{blocking} blocking finding(s) at {'/'.join(blocking_levels)} (not enforced)"
    else:
        status = "pass"
        summary = f"{len(findings)} finding(s), none at {'/'.join(blocking_levels)}"

    return {
        "status": status,
        "summary": summary,
        "counts": counts,
        "blocking": blocking,
        "findings": findings,
    }
