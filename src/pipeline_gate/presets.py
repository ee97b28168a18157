"""Preset configurations: minimal, recommended, full."""

# Each preset maps workflow names to their input overrides.
# Only non-default values are listed; everything else uses the workflow default.

MINIMAL = {
    "security-scan": {
        # Trivy only (default), findings reported but not enforced
        "fail_on_findings": False,
        "comment_on_pr": False,
    },
    "go-tests": {
        "race": False,
        "coverage": False,
    },
    "node-tests": {},
    "python-tests": {
        "coverage": False,
    },
    "terraform-plan": {
        "comment_on_pr": False,
    },
}

RECOMMENDED = {
    "security-scan": {},
    "go-tests": {},
    "node-tests": {},
    "python-tests": {},
    "terraform-plan": {},
}

FULL = {
    "security-scan": {
        "severity": "CRITICAL,HIGH,MEDIUM",
        "upload_sarif": True,
    },
    "go-tests": {},
    "node-tests": {
        "run_lint": True,
    },
    "python-tests": {},
    "terraform-plan": {},
}

ALL_PRESETS = {
    "minimal": MINIMAL,
    "recommended": RECOMMENDED,
    "full": FULL,
}

# Scanner toggles switched on when the matching language is detected
LANGUAGE_SCANNERS = {
    "go": "enable_gosec",
    "node": "enable_npm_audit",
    "python": "enable_bandit",
}


def preset_inputs(preset_name, workflow_name, languages=()):
    """Input overrides for one workflow under a preset."""
    preset = ALL_PRESETS.get(preset_name, ALL_PRESETS["recommended"])
    inputs = dict(preset.get(workflow_name, {}))
    if workflow_name == "security-scan" and preset_name != "minimal":
        for lang in sorted(languages):
            if lang in LANGUAGE_SCANNERS:
                inputs[LANGUAGE_SCANNERS[lang]] = True
    return inputs
