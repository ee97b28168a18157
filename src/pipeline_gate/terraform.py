"""Terraform CLI invocations for the plan and destroy workflows."""

import re

TERRAFORM_TIMEOUT = 3600
PLAN_FILE = "tfplan"
DESTROY_PLAN_FILE = "tfdestroy"

# `terraform plan -detailed-exitcode`: 0 = no changes, 2 = changes present
PLAN_OK_CODES = (0, 2)
PLAN_CHANGES_CODE = 2

# Terraform 1.5+ prefixes "N to import, " when the plan imports resources
_PLAN_RE = re.compile(
    r"Plan: (?:(\d+) to import, )?(\d+) to add, (\d+) to change, (\d+) to destroy"
)


def terraform_env(inputs, secrets):
    """Environment for every terraform command.

    The AWS SDK assumes AWS_ROLE_ARN through the web identity token the CI
    platform provides (OIDC).
    """
    env = {
        "AWS_REGION": inputs["aws_region"],
        "AWS_DEFAULT_REGION": inputs["aws_region"],
        "AWS_ROLE_ARN": inputs["role_arn"],
        "AWS_ROLE_SESSION_NAME": "pipeline-gate",
        "TF_IN_AUTOMATION": "1",
        "TF_INPUT": "0",
    }
    token = secrets.get("tf_api_token")
    if token:
        env["TF_TOKEN_app_terraform_io"] = token
    return env


def init_command():
    return ["terraform", "init", "-input=false", "-no-color"]


def validate_command():
    return ["terraform", "validate", "-no-color"]


def plan_command(destroy=False):
    args = ["terraform", "plan", "-input=false", "-no-color",
            "-detailed-exitcode"]
    if destroy:
        args.append("-destroy")
    args.append(f"-out={DESTROY_PLAN_FILE if destroy else PLAN_FILE}")
    return args


def apply_plan_command(plan_file):
    return ["terraform", "apply", "-input=false", "-no-color",
            "-auto-approve", plan_file]


def parse_plan_summary(output):
    """Extract resource counts from plan output.

    Returns {"import", "add", "change", "destroy", "changes"}; all zero when
    the plan reports no changes or the summary line is missing.
    """
    match = _PLAN_RE.search(output or "")
    if match:
        imported, add, change, destroy = (int(n or 0) for n in match.groups())
    else:
        imported = add = change = destroy = 0
    return {
        "import": imported,
        "add": add,
        "change": change,
        "destroy": destroy,
        "changes": bool(imported or add or change or destroy),
    }


def describe_plan(summary):
    if not summary["changes"]:
        return "No changes."
    text = (f"{summary['add']} to add, {summary['change']} to change, "
            f"{summary['destroy']} to destroy")
    if summary.get("import"):
        text = f"{summary['import']} to import, {text}"
    return text
