"""Command builders and output parsers for the security scanners.

Every parser takes the tool's JSON stdout and returns a list of findings:
{tool, rule, severity, title, file, line, package}.
"""

import json
import logging
import os

from pipeline_gate.gate import normalize_severity
from pipeline_gate.runner import run_tool, tail, tool_output

logger = logging.getLogger(__name__)


def _finding(tool, rule, severity, title, file=None, line=None, package=None):
    return {
        "tool": tool,
        "rule": rule or "",
        "severity": normalize_severity(severity),
        "title": title or "",
        "file": file,
        "line": line,
        "package": package,
    }


def _to_int(value):
    try:
        return int(str(value).split("-")[0])
    except (TypeError, ValueError):
        return None


# --- Trivy -------------------------------------------------------------------

def trivy_command(path):
    return ["trivy", "fs", "--format", "json", "--quiet", path]


def parse_trivy(data):
    """Parse `trivy fs --format json` output."""
    findings = []
    for target in data.get("Results") or []:
        target_name = target.get("Target")
        for vuln in target.get("Vulnerabilities") or []:
            pkg = vuln.get("PkgName")
            installed = vuln.get("InstalledVersion")
            if pkg and installed:
                pkg = f"{pkg}@{installed}"
            title = vuln.get("Title") or vuln.get("VulnerabilityID")
            if vuln.get("FixedVersion"):
                title = f"{title} (fixed in {vuln['FixedVersion']})"
            findings.append(_finding(
                "trivy", vuln.get("VulnerabilityID"), vuln.get("Severity"),
                title, file=target_name, package=pkg,
            ))
        for misconf in target.get("Misconfigurations") or []:
            line = (misconf.get("CauseMetadata") or {}).get("StartLine")
            findings.append(_finding(
                "trivy", misconf.get("ID"), misconf.get("Severity"),
                misconf.get("Title"), file=target_name, line=line,
            ))
        for secret in target.get("Secrets") or []:
            findings.append(_finding(
                "trivy", secret.get("RuleID"), secret.get("Severity"),
                secret.get("Title"), file=target_name,
                line=secret.get("StartLine"),
            ))
    return findings


# --- gosec -------------------------------------------------------------------

def gosec_command():
    return ["gosec", "-fmt=json", "./..."]


def parse_gosec(data):
    """Parse `gosec -fmt=json` output."""
    findings = []
    for issue in data.get("Issues") or []:
        cwe = (issue.get("cwe") or {}).get("id")
        title = issue.get("details", "")
        if cwe:
            title = f"{title} (CWE-{cwe})"
        findings.append(_finding(
            "gosec", issue.get("rule_id"), issue.get("severity"), title,
            file=issue.get("file"), line=_to_int(issue.get("line")),
        ))
    return findings


# --- Bandit ------------------------------------------------------------------

def bandit_command(path):
    return ["bandit", "-r", path, "-f", "json", "-q"]


def parse_bandit(data):
    """Parse `bandit -f json` output."""
    findings = []
    for issue in data.get("results") or []:
        findings.append(_finding(
            "bandit", issue.get("test_id"), issue.get("issue_severity"),
            issue.get("issue_text"), file=issue.get("filename"),
            line=issue.get("line_number"),
        ))
    return findings


# --- npm audit ---------------------------------------------------------------

def npm_audit_command():
    return ["npm", "audit", "--json"]


def parse_npm_audit(data):
    """Parse `npm audit --json` output (npm 7+ and the older advisories format)."""
    findings = []
    if "vulnerabilities" in data:
        for name, vuln in (data.get("vulnerabilities") or {}).items():
            advisories = [v for v in vuln.get("via") or [] if isinstance(v, dict)]
            if not advisories:
                # Only vulnerable through another package, reported there
                continue
            for adv in advisories:
                rule = adv.get("url") or str(adv.get("source", ""))
                rule = rule.rsplit("/", 1)[-1]
                findings.append(_finding(
                    "npm-audit", rule, adv.get("severity") or vuln.get("severity"),
                    adv.get("title"), package=f"{name}@{vuln.get('range', '*')}",
                ))
    for adv_id, adv in (data.get("advisories") or {}).items():
        findings.append(_finding(
            "npm-audit", str(adv_id), adv.get("severity"), adv.get("title"),
            package=adv.get("module_name"),
        ))
    return findings


SCANNERS = {
    "trivy": {
        "input": "enable_trivy",
        "label": "Trivy",
        "parse": parse_trivy,
        "result_keys": ("Results",),
    },
    "gosec": {
        "input": "enable_gosec",
        "label": "gosec",
        "parse": parse_gosec,
        "result_keys": ("Issues",),
    },
    "bandit": {
        "input": "enable_bandit",
        "label": "Bandit",
        "parse": parse_bandit,
        "result_keys": ("results",),
    },
    "npm-audit": {
        "input": "enable_npm_audit",
        "label": "npm audit",
        "parse": parse_npm_audit,
        "result_keys": ("vulnerabilities", "advisories"),
    },
}


def scanner_invocation(name, inputs, project_dir):
    """Return (args, cwd) for a scanner given resolved security-scan inputs."""
    if name == "trivy":
        return trivy_command(inputs["scan_path"]), project_dir
    if name == "gosec":
        return gosec_command(), os.path.join(project_dir, inputs["go_path"])
    if name == "bandit":
        return bandit_command(inputs["python_path"]), project_dir
    if name == "npm-audit":
        return npm_audit_command(), os.path.join(project_dir, inputs["node_path"])
    raise KeyError(name)


def decode_output(stdout):
    """Decode a scanner's JSON stdout into a dict, or None."""
    if not stdout.strip():
        return None
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return data


def scanner_error(name, data, returncode):
    """Return why a decoded payload is not a scan result, or None.

    npm prints {"error": {"code", "summary", "detail"}} when the audit
    itself fails (no lockfile, registry down) and exits 1.
    """
    error = data.get("error")
    if error:
        if isinstance(error, dict):
            return (error.get("summary") or error.get("detail")
                    or error.get("code") or "unknown error")
        return str(error)
    if returncode and not any(key in data for key in SCANNERS[name]["result_keys"]):
        return f"exit {returncode} without results"
    return None


def _failed(label, summary, output, duration):
    logger.warning("%s failed: %s", label, summary)
    return {
        "status": "fail",
        "summary": summary,
        "findings": [],
        "output": output,
        "duration": duration,
    }


def run_scanner(name, inputs, project_dir, secrets=None):
    """Run one scanner and return a step result.

    Scanners exit non-zero when they report findings, so the status only
    reflects whether the tool ran and produced a scan result; the gate
    step decides on the findings.
    """
    args, cwd = scanner_invocation(name, inputs, project_dir)
    result = run_tool(args, cwd=cwd, secrets=secrets)
    label = SCANNERS[name]["label"]

    if result["error"]:
        return _failed(label, result["error"], result["error"], result["duration"])

    data = decode_output(result["stdout"])
    if data is None:
        if result["returncode"] == 0 and not result["stdout"].strip():
            findings = []
        else:
            return _failed(label, f"{label} failed (exit {result['returncode']})",
                           tail(tool_output(result)), result["duration"])
    else:
        error = scanner_error(name, data, result["returncode"])
        if error:
            return _failed(label, f"{label} failed: {error}",
                           tail(tool_output(result)), result["duration"])
        findings = SCANNERS[name]["parse"](data)

    logger.info("%s: %d finding(s)", label, len(findings))
    return {
        "status": "pass",
        "summary": f"{len(findings)} finding(s)",
        "findings": findings,
        "output": tail(result["stderr"]) if result["stderr"] else "",
        "duration": result["duration"],
    }
