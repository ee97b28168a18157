"""Tests for scanner command builders and output parsers."""

import json
from unittest import mock

from pipeline_gate.gate import evaluate_gate
from pipeline_gate.scanners import (
    bandit_command,
    decode_output,
    parse_bandit,
    parse_gosec,
    parse_npm_audit,
    parse_trivy,
    run_scanner,
    scanner_invocation,
    trivy_command,
)
from pipeline_gate.workflows import resolve_inputs

TRIVY_OUTPUT = {
    "Results": [
        {
            "Target": "requirements.txt",
            "Vulnerabilities": [
                {
                    "VulnerabilityID": "CVE-2023-1234",
                    "PkgName": "requests",
                    "InstalledVersion": "2.25.0",
                    "FixedVersion": "2.31.0",
                    "Severity": "HIGH",
                    "Title": "Header leak",
                },
            ],
        },
        {
            "Target": "Dockerfile",
            "Misconfigurations": [
                {"ID": "DS002", "Title": "Image user should not be root",
                 "Severity": "HIGH", "CauseMetadata": {"StartLine": 3}},
            ],
            "Secrets": [
                {"RuleID": "aws-access-key-id", "Title": "AWS Access Key",
                 "Severity": "CRITICAL", "StartLine": 7},
            ],
        },
        {"Target": "go.sum"},
    ]
}

GOSEC_OUTPUT = {
    "Issues": [
        {"severity": "HIGH", "confidence": "HIGH", "cwe": {"id": "798"},
         "rule_id": "G101", "details": "Potential hardcoded credentials",
         "file": "/src/main.go", "line": "12"},
        {"severity": "MEDIUM", "rule_id": "G304", "details": "File inclusion",
         "file": "/src/io.go", "line": "40-42"},
    ],
    "Stats": {"files": 2},
}

BANDIT_OUTPUT = {
    "results": [
        {"issue_severity": "LOW", "issue_confidence": "HIGH", "test_id": "B101",
         "issue_text": "Use of assert detected.", "filename": "app/x.py",
         "line_number": 3},
    ],
    "errors": [],
}

NPM_AUDIT_V7 = {
    "auditReportVersion": 2,
    "vulnerabilities": {
        "lodash": {
            "name": "lodash",
            "severity": "high",
            "range": "<4.17.21",
            "via": [
                {"source": 1673, "title": "Command Injection in lodash",
                 "url": "https://github.com/advisories/GHSA-35jh-r3h4-6jhm",
                 "severity": "high"},
            ],
        },
        "parent-pkg": {
            "name": "parent-pkg",
            "severity": "high",
            "via": ["lodash"],
        },
    },
}

NPM_AUDIT_V6 = {
    "advisories": {
        "118": {"module_name": "minimist", "severity": "moderate",
                "title": "Prototype Pollution"},
    }
}


class TestParsers:
    def test_trivy(self):
        findings = parse_trivy(TRIVY_OUTPUT)
        assert len(findings) == 3
        vuln, misconf, secret = findings
        assert vuln["rule"] == "CVE-2023-1234"
        assert vuln["package"] == "requests@2.25.0"
        assert "fixed in 2.31.0" in vuln["title"]
        assert misconf["line"] == 3
        assert secret["severity"] == "CRITICAL"
        assert secret["file"] == "Dockerfile"

    def test_trivy_empty_results(self):
        assert parse_trivy({"Results": None}) == []

    def test_gosec(self):
        findings = parse_gosec(GOSEC_OUTPUT)
        assert findings[0]["rule"] == "G101"
        assert findings[0]["line"] == 12
        assert "CWE-798" in findings[0]["title"]
        assert findings[1]["line"] == 40
        assert findings[1]["severity"] == "MEDIUM"

    def test_bandit(self):
        findings = parse_bandit(BANDIT_OUTPUT)
        assert findings == [{
            "tool": "bandit", "rule": "B101", "severity": "LOW",
            "title": "Use of assert detected.", "file": "app/x.py",
            "line": 3, "package": None,
        }]

    def test_npm_audit_v7_skips_transitive_entries(self):
        findings = parse_npm_audit(NPM_AUDIT_V7)
        assert len(findings) == 1
        assert findings[0]["rule"] == "GHSA-35jh-r3h4-6jhm"
        assert findings[0]["package"] == "lodash@<4.17.21"
        assert findings[0]["severity"] == "HIGH"

    def test_npm_audit_v6(self):
        findings = parse_npm_audit(NPM_AUDIT_V6)
        assert findings[0]["rule"] == "118"
        assert findings[0]["severity"] == "MEDIUM"
        assert findings[0]["package"] == "minimist"

    def test_decode_output_rejects_non_json(self):
        assert decode_output("Traceback ...") is None
        assert decode_output("") is None
        assert decode_output("[]") is None


class TestInvocation:
    def test_paths_from_inputs(self):
        inputs = resolve_inputs("security-scan", {
            "scan_path": "app", "go_path": "svc", "python_path": "src", "node_path": "web",
        })
        assert scanner_invocation("trivy", inputs, "/p") == (trivy_command("app"), "/p")
        assert scanner_invocation("gosec", inputs, "/p")[1] == "/p/svc"
        assert scanner_invocation("bandit", inputs, "/p") == (bandit_command("src"), "/p")
        assert scanner_invocation("npm-audit", inputs, "/p")[1] == "/p/web"


def _tool_result(returncode=0, stdout="", stderr="", error=None):
    return {"command": [], "returncode": returncode, "stdout": stdout,
            "stderr": stderr, "duration": 0.5, "error": error}


class TestRunScanner:
    def setup_method(self):
        self.inputs = resolve_inputs("security-scan", {})

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_findings_with_nonzero_exit_still_pass(self, mock_run):
        mock_run.return_value = _tool_result(1, json.dumps(BANDIT_OUTPUT))
        result = run_scanner("bandit", self.inputs, "/p")
        assert result["status"] == "pass"
        assert len(result["findings"]) == 1
        assert result["summary"] == "1 finding(s)"

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_missing_tool_fails(self, mock_run):
        mock_run.return_value = _tool_result(None, error="trivy not found")
        result = run_scanner("trivy", self.inputs, "/p")
        assert result["status"] == "fail"
        assert result["summary"] == "trivy not found"

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_garbage_output_fails(self, mock_run):
        mock_run.return_value = _tool_result(2, "oops", "fatal: bad flag")
        result = run_scanner("gosec", self.inputs, "/p")
        assert result["status"] == "fail"
        assert "exit 2" in result["summary"]
        assert "fatal: bad flag" in result["output"]

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_silent_success_is_clean(self, mock_run):
        mock_run.return_value = _tool_result(0, "")
        result = run_scanner("npm-audit", self.inputs, "/p")
        assert result["status"] == "pass"
        assert result["findings"] == []

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_secrets_forwarded(self, mock_run):
        mock_run.return_value = _tool_result(0, "{}")
        run_scanner("trivy", self.inputs, "/p", secrets=["tok"])
        assert mock_run.call_args.kwargs["secrets"] == ["tok"]

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_npm_error_payload_fails(self, mock_run):
        payload = {"error": {"code": "ENOLOCK",
                             "summary": "This command requires an existing lockfile.",
                             "detail": "Try creating one first with: npm i --package-lock-only"}}
        mock_run.return_value = _tool_result(1, json.dumps(payload))
        result = run_scanner("npm-audit", self.inputs, "/p")
        assert result["status"] == "fail"
        assert result["summary"] == "npm audit failed: This command requires an existing lockfile."
        assert result["findings"] == []

        verdict = evaluate_gate([dict(result, name="npm-audit")])
        assert verdict["status"] == "fail"
        assert verdict["summary"] == "scanner error: npm-audit"

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_error_string_payload_fails(self, mock_run):
        mock_run.return_value = _tool_result(1, json.dumps({"error": "registry unreachable"}))
        result = run_scanner("npm-audit", self.inputs, "/p")
        assert result["status"] == "fail"
        assert "registry unreachable" in result["summary"]

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_nonzero_exit_without_results_fails(self, mock_run):
        mock_run.return_value = _tool_result(1, json.dumps({"Golang errors": {}}))
        result = run_scanner("gosec", self.inputs, "/p")
        assert result["status"] == "fail"
        assert result["summary"] == "gosec failed: exit 1 without results"

    @mock.patch("pipeline_gate.scanners.run_tool")
    def test_clean_audit_without_results_key_passes(self, mock_run):
        mock_run.return_value = _tool_result(0, json.dumps({"auditReportVersion": 2}))
        result = run_scanner("npm-audit", self.inputs, "/p")
        assert result["status"] == "pass"
        assert result["findings"] == []
