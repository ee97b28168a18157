"""Tests for configuration checks."""

from pipeline_gate.checker import check
from pipeline_gate.config import write_config

ROLE = "arn:aws:iam::123456789012:role/tf"


def _write(tmp_path, data):
    write_config(str(tmp_path / ".pipeline-gate.yml"), data)


def _levels(issues, level):
    return [msg for lvl, msg in issues if lvl == level]


class TestCheck:
    def test_missing_config(self, tmp_path):
        issues = check(str(tmp_path))
        assert len(issues) == 1
        assert issues[0][0] == "error"
        assert "not found" in issues[0][1]

    def test_malformed_config(self, tmp_path):
        (tmp_path / ".pipeline-gate.yml").write_text("workflows: [unclosed\n")
        issues = check(str(tmp_path))
        assert issues[0][0] == "error"
        assert "is invalid" in issues[0][1]

    def test_no_workflows(self, tmp_path):
        _write(tmp_path, {"preset": "recommended", "workflows": []})
        assert _levels(check(str(tmp_path)), "error") == [
            "No workflows listed in .pipeline-gate.yml"
        ]

    def test_valid_config(self, tmp_path):
        _write(tmp_path, {
            "workflows": ["security-scan", "go-tests", "terraform-plan"],
            "security-scan": {"enable_gosec": True},
            "terraform-plan": {"working_directory": "infra", "role_arn": ROLE},
        })
        issues = check(str(tmp_path))
        assert issues == [("ok", "All 3 workflows match .pipeline-gate.yml")]

    def test_missing_required_input(self, tmp_path):
        _write(tmp_path, {
            "workflows": ["terraform-plan"],
            "terraform-plan": {"working_directory": "infra"},
        })
        errors = _levels(check(str(tmp_path)), "error")
        assert errors == ["terraform-plan: required input 'role_arn' is not set"]

    def test_malformed_input(self, tmp_path):
        _write(tmp_path, {
            "workflows": ["security-scan"],
            "security-scan": {"severity": "CRITICAL,SEVERE"},
        })
        assert _levels(check(str(tmp_path)), "error")

    def test_unknown_input(self, tmp_path):
        _write(tmp_path, {"workflows": ["go-tests"], "go-tests": {"gotest_flags": "-v"}})
        errors = _levels(check(str(tmp_path)), "error")
        assert "unknown input(s): gotest_flags" in errors[0]

    def test_inputs_not_mapping(self, tmp_path):
        _write(tmp_path, {"workflows": ["go-tests"], "go-tests": ["race"]})
        assert _levels(check(str(tmp_path)), "error") == ["go-tests: inputs must be a mapping"]

    def test_unknown_workflow_warns(self, tmp_path):
        _write(tmp_path, {"workflows": ["security-scan", "rust-tests"]})
        issues = check(str(tmp_path))
        assert "Unknown workflow 'rust-tests' in .pipeline-gate.yml" in _levels(issues, "warning")
        assert _levels(issues, "ok")

    def test_destroy_warnings(self, tmp_path):
        _write(tmp_path, {
            "workflows": ["terraform-destroy"],
            "terraform-destroy": {
                "working_directory": "infra", "role_arn": ROLE,
                "approvers": "alice", "confirmation": "destroy",
            },
        })
        warnings = _levels(check(str(tmp_path)), "warning")
        assert any("confirmation should be given at run time" in w for w in warnings)
        assert any("only runs when named explicitly" in w for w in warnings)

    def test_inputs_for_disabled_workflow(self, tmp_path):
        _write(tmp_path, {"workflows": ["security-scan"], "python-tests": {"coverage": False}})
        warnings = _levels(check(str(tmp_path)), "warning")
        assert warnings == ["Inputs for 'python-tests' present but workflow not enabled"]
