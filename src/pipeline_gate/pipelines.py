"""Build and run the step graph of each workflow."""

import logging
import os

from pipeline_gate import terraform, testrunners
from pipeline_gate.approval import request_approval
from pipeline_gate.comment import post_pr_comment
from pipeline_gate.errors import InputError
from pipeline_gate.gate import evaluate_gate
from pipeline_gate.orchestrator import overall_status, run_pipeline
from pipeline_gate.report import generate_report
from pipeline_gate.runner import DEFAULT_TIMEOUT, run_tool, tail, tool_output, tool_status
from pipeline_gate.sarif import write_sarif
from pipeline_gate.scanners import SCANNERS, run_scanner
from pipeline_gate.workflows import get_workflow, resolve_inputs, resolve_secrets

logger = logging.getLogger(__name__)


def workdir(context):
    """The workflow's working_directory, resolved against the project dir."""
    path = os.path.join(context["project_dir"], context["inputs"]["working_directory"])
    if not os.path.isdir(path):
        raise InputError(f"Working directory not found: {path}")
    return path


def _secret_values(context):
    return list(context["secrets"].values())


def command_action(args, env=None, ok_codes=(0,), timeout=DEFAULT_TIMEOUT,
                   summarize=None, cwd=workdir):
    """Build a step action that runs one command in the working directory.

    args and env may be callables taking the context.
    """
    def action(context):
        cmd = args(context) if callable(args) else args
        extra_env = env(context) if callable(env) else env
        result = run_tool(cmd, cwd=cwd(context), env=extra_env, timeout=timeout,
                          secrets=_secret_values(context))
        status = tool_status(result, ok_codes)
        output = tool_output(result)
        summary = result["error"] or (summarize(output) if summarize else "")
        if not summary:
            summary = f"exit {result['returncode']}"
        return {
            "status": status,
            "summary": summary,
            "output": tail(output) if status == "fail" else "",
            "duration": result["duration"],
        }
    return action


def partial_run(context):
    """A run dict built from the steps finished so far."""
    wf = get_workflow(context["workflow"])
    steps = list(context["results"].values())
    findings = []
    for step in steps:
        findings.extend(step["findings"])
    return {
        "workflow": wf["name"],
        "workflow_name": wf["workflow_name"],
        "status": overall_status(steps),
        "steps": steps,
        "findings": findings,
        "duration": sum(s["duration"] for s in steps),
    }


def comment_action(context):
    options = context["options"]
    body = generate_report(partial_run(context))
    return post_pr_comment(
        body, options.get("pr_number"),
        token=context["secrets"].get("github_token"),
        repo=options.get("repo"),
    )


# --- security-scan -----------------------------------------------------------

def security_scan_steps(inputs):
    steps = []
    for name, meta in SCANNERS.items():
        steps.append({
            "name": name,
            "action": lambda ctx, name=name: run_scanner(
                name, ctx["inputs"], ctx["project_dir"], _secret_values(ctx)
            ),
            "if": inputs[meta["input"]],
        })
    scanner_names = list(SCANNERS)

    def gate_action(context):
        scanned = [context["results"][n] for n in scanner_names]
        verdict = evaluate_gate(scanned, context["inputs"]["severity"],
                                context["inputs"]["fail_on_findings"])
        return {
            "status": verdict["status"],
            "summary": verdict["summary"],
            "data": {
                "counts": verdict["counts"],
                "blocking": verdict["blocking"],
                "severity": context["inputs"]["severity"],
            },
        }

    def sarif_action(context):
        findings = []
        for n in scanner_names:
            findings.extend(context["results"][n]["findings"])
        path = os.path.join(context["project_dir"], context["inputs"]["sarif_file"])
        write_sarif(path, findings)
        return {
            "status": "pass",
            "summary": f"wrote {len(findings)} result(s) to {context['inputs']['sarif_file']}",
            "data": {"sarif_file": path},
        }

    steps.extend([
        {
            "name": "gate",
            "action": gate_action,
            "needs": scanner_names,
            "always": True,
        },
        {
            "name": "sarif",
            "action": sarif_action,
            "needs": scanner_names,
            "if": inputs["upload_sarif"],
            "always": True,
        },
        {
            "name": "comment",
            "action": comment_action,
            "needs": ["gate", "sarif"],
            "if": inputs["comment_on_pr"],
            "always": True,
        },
    ])
    return steps


# --- terraform ---------------------------------------------------------------

def _tf_env(context):
    return terraform.terraform_env(context["inputs"], context["secrets"])


def plan_action(destroy=False):
    def action(context):
        result = run_tool(
            terraform.plan_command(destroy=destroy), cwd=workdir(context),
            env=_tf_env(context), timeout=terraform.TERRAFORM_TIMEOUT,
            secrets=_secret_values(context),
        )
        status = tool_status(result, terraform.PLAN_OK_CODES)
        if status == "fail":
            return {
                "status": "fail",
                "summary": result["error"] or f"terraform plan failed (exit {result['returncode']})",
                "output": tail(tool_output(result)),
                "duration": result["duration"],
            }
        summary = terraform.parse_plan_summary(result["stdout"])
        if result["returncode"] == terraform.PLAN_CHANGES_CODE and not summary["changes"]:
            # Output-only changes have no resource summary line
            summary["changes"] = True
        return {
            "status": "pass",
            "summary": terraform.describe_plan(summary),
            "duration": result["duration"],
            "data": dict(summary, plan_output=result["stdout"].strip()),
        }
    return action


def terraform_plan_steps(inputs):
    return [
        {
            "name": "init",
            "action": command_action(terraform.init_command(), env=_tf_env,
                                     timeout=terraform.TERRAFORM_TIMEOUT),
        },
        {
            "name": "validate",
            "action": command_action(terraform.validate_command(), env=_tf_env),
            "needs": ["init"],
        },
        {
            "name": "plan",
            "action": plan_action(),
            "needs": ["validate"],
        },
        {
            "name": "comment",
            "action": comment_action,
            "needs": ["plan"],
            "if": inputs["comment_on_pr"],
            "always": True,
        },
    ]


def terraform_destroy_steps(inputs):
    def has_changes(context):
        return context["results"]["plan-destroy"]["data"].get("changes", False)

    def approval_action(context):
        plan = context["results"]["plan-destroy"]["data"]
        options = context["options"]
        approver = request_approval(
            context["inputs"]["approvers"],
            confirmation=context["inputs"]["confirmation"],
            actor=options.get("actor"),
            interactive=options.get("interactive", False),
            description=(
                f"Terraform will destroy {plan.get('destroy', 0)} resource(s) "
                f"in {context['inputs']['working_directory']}."
            ),
        )
        return {"status": "pass", "summary": f"approved by {approver}"}

    return [
        {
            "name": "init",
            "action": command_action(terraform.init_command(), env=_tf_env,
                                     timeout=terraform.TERRAFORM_TIMEOUT),
        },
        {
            "name": "plan-destroy",
            "action": plan_action(destroy=True),
            "needs": ["init"],
        },
        {
            "name": "approval",
            "action": approval_action,
            "needs": ["plan-destroy"],
            "if": has_changes,
        },
        {
            "name": "destroy",
            "action": command_action(
                terraform.apply_plan_command(terraform.DESTROY_PLAN_FILE),
                env=_tf_env, timeout=terraform.TERRAFORM_TIMEOUT,
            ),
            "needs": ["approval"],
        },
    ]


# --- test runners ------------------------------------------------------------

def version_action(language, input_name):
    def action(context):
        expected = context["inputs"][input_name]
        if not expected:
            return {"status": "pass", "summary": "version check disabled"}
        result = run_tool(testrunners.VERSION_COMMANDS[language],
                          cwd=workdir(context), timeout=60)
        if tool_status(result) == "fail":
            return {
                "status": "fail",
                "summary": result["error"] or f"{language} version check failed",
                "output": tail(tool_output(result)),
                "duration": result["duration"],
            }
        actual = testrunners.parse_version(language, tool_output(result))
        if not testrunners.version_matches(expected, actual):
            return {
                "status": "fail",
                "summary": f"expected {language} {expected}, found {actual or 'unknown'}",
                "duration": result["duration"],
            }
        return {
            "status": "pass",
            "summary": f"{language} {actual}",
            "duration": result["duration"],
            "data": {"version": actual},
        }
    return action


def go_tests_steps(inputs):
    def coverage_action(context):
        result = run_tool(testrunners.go_cover_command(), cwd=workdir(context),
                          timeout=120)
        if tool_status(result) == "fail":
            return {
                "status": "warn",
                "summary": "coverage profile unavailable",
                "output": tail(tool_output(result)),
            }
        percent = testrunners.parse_go_coverage(result["stdout"])
        return {
            "status": "pass",
            "summary": f"{percent}% of statements" if percent is not None else "no coverage total",
            "duration": result["duration"],
            "data": {"coverage": percent},
        }

    return [
        {"name": "version", "action": version_action("go", "go_version")},
        {
            "name": "test",
            "action": command_action(testrunners.go_test_command(inputs),
                                     summarize=testrunners.summarize_go_test),
            "needs": ["version"],
        },
        {
            "name": "coverage",
            "action": coverage_action,
            "needs": ["test"],
            "if": inputs["coverage"] and not inputs["test_command"],
        },
    ]


def node_tests_steps(inputs):
    def install_args(context):
        return testrunners.node_install_command(context["inputs"], workdir(context))

    # Validate overrides before anything runs
    if inputs["install_command"]:
        testrunners.split_command(inputs["install_command"])

    steps = [
        {"name": "version", "action": version_action("node", "node_version")},
        {
            "name": "install",
            "action": command_action(install_args),
            "needs": ["version"],
        },
    ]
    # test follows lint when lint is enabled, install otherwise
    if inputs["run_lint"]:
        steps.append({
            "name": "lint",
            "action": command_action(testrunners.node_lint_command()),
            "needs": ["install"],
        })
    steps.append({
        "name": "test",
        "action": command_action(testrunners.node_test_command(inputs)),
        "needs": [steps[-1]["name"]],
    })
    return steps


def python_tests_steps(inputs):
    def install_action(context):
        req = context["inputs"]["requirements_file"]
        if not req or not os.path.exists(os.path.join(workdir(context), req)):
            return {"status": "pass", "summary": f"no {req or 'requirements file'}, nothing to install"}
        return command_action(testrunners.python_install_command(context["inputs"]))(context)

    test_args = testrunners.python_test_command(inputs)

    def test_action(context):
        result = run_tool(test_args, cwd=workdir(context),
                          secrets=_secret_values(context))
        output = tool_output(result)
        status = tool_status(result)
        summary = (result["error"] or testrunners.summarize_pytest(output)
                   or f"exit {result['returncode']}")
        coverage = testrunners.parse_pytest_coverage(output)
        if coverage is not None:
            summary = f"{summary}; coverage {coverage:g}%"
        return {
            "status": status,
            "summary": summary,
            "output": tail(output) if status == "fail" else "",
            "duration": result["duration"],
            "data": {"coverage": coverage},
        }

    return [
        {"name": "version", "action": version_action("python", "python_version")},
        {"name": "install", "action": install_action, "needs": ["version"]},
        {"name": "test", "action": test_action, "needs": ["install"]},
    ]


STEP_BUILDERS = {
    "security-scan": security_scan_steps,
    "terraform-plan": terraform_plan_steps,
    "terraform-destroy": terraform_destroy_steps,
    "go-tests": go_tests_steps,
    "node-tests": node_tests_steps,
    "python-tests": python_tests_steps,
}


def build_steps(workflow_name, inputs):
    """Step graph for a workflow, given its resolved inputs."""
    get_workflow(workflow_name)
    return STEP_BUILDERS[workflow_name](inputs)


def run_workflow(workflow_name, provided, project_dir=".", environ=None,
                 options=None, max_workers=1, fail_fast=False):
    """Resolve inputs and secrets, build the steps, and run them.

    Args:
        workflow_name: key in ALL_WORKFLOWS
        provided: raw input values (config overrides plus --set values)
        project_dir: directory every relative path is resolved against
        environ: environment secrets are read from (default os.environ)
        options: pr_number, repo, actor, interactive

    Returns the run dict from run_pipeline().
    """
    environ = os.environ if environ is None else environ
    wf = get_workflow(workflow_name)
    inputs = resolve_inputs(workflow_name, provided)
    steps = build_steps(workflow_name, inputs)
    context = {
        "workflow": workflow_name,
        "inputs": inputs,
        "secrets": resolve_secrets(workflow_name, environ),
        "project_dir": project_dir,
        "options": dict(options or {}),
    }
    logger.info("Running %s (%d steps)", wf["workflow_name"], len(steps))
    return run_pipeline(steps, context, max_workers=max_workers,
                        fail_fast=fail_fast, workflow=wf)
