"""Validate .pipeline-gate.yml against the workflow registry."""

from pipeline_gate.config import CONFIG_FILENAME, config_path, read_config
from pipeline_gate.errors import InputError
from pipeline_gate.pipelines import build_steps
from pipeline_gate.workflows import ALL_WORKFLOWS, EXPLICIT_ONLY_WORKFLOWS, resolve_inputs

# Inputs that are normally supplied at run time rather than stored
RUNTIME_INPUTS = {"confirmation"}


def check(project_dir="."):
    """Validate setup. Returns list of (level, message) tuples."""
    issues = []
    try:
        config = read_config(config_path(project_dir))
    except ValueError as e:
        return [("error", f"{CONFIG_FILENAME} is invalid: {e}")]

    if not config:
        issues.append(("error", f"{CONFIG_FILENAME} not found, run `pipeline-gate init` first"))
        return issues

    enabled = config.get("workflows", [])
    if not enabled:
        issues.append(("error", f"No workflows listed in {CONFIG_FILENAME}"))
        return issues

    for wf_name in enabled:
        if wf_name not in ALL_WORKFLOWS:
            issues.append(("warning", f"Unknown workflow '{wf_name}' in {CONFIG_FILENAME}"))
            continue

        inputs = config.get(wf_name) or {}
        if not isinstance(inputs, dict):
            issues.append(("error", f"{wf_name}: inputs must be a mapping"))
            continue

        stored_runtime = sorted(RUNTIME_INPUTS & set(inputs))
        if stored_runtime:
            issues.append((
                "warning",
                f"{wf_name}: {', '.join(stored_runtime)} should be given at run time, not stored",
            ))

        try:
            build_steps(wf_name, resolve_inputs(wf_name, inputs))
        except InputError as e:
            issues.append(("error", str(e)))

        if wf_name in EXPLICIT_ONLY_WORKFLOWS:
            issues.append((
                "warning",
                f"{wf_name} only runs when named explicitly (`pipeline-gate run {wf_name}`)",
            ))

    configured = {k for k in config if k in ALL_WORKFLOWS}
    for wf_name in sorted(configured - set(enabled)):
        issues.append(("warning", f"Inputs for '{wf_name}' present but workflow not enabled"))

    if not any(level == "error" for level, _ in issues):
        issues.append(("ok", f"All {len(enabled)} workflows match {CONFIG_FILENAME}"))

    return issues
