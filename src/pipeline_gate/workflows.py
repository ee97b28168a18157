"""Registry of reusable workflows and their inputs."""

import re

from pipeline_gate.errors import InputError

# Each workflow entry: {input_name: {type, default, prompt, group}}
# 'group' is used to organize interactive prompts.
# 'pattern' (optional) is a full-match regex checked on non-empty strings.

SEVERITY_PATTERN = r"(?i)\s*(CRITICAL|HIGH|MEDIUM|LOW|UNKNOWN)(\s*,\s*(CRITICAL|HIGH|MEDIUM|LOW|UNKNOWN))*\s*"
ROLE_ARN_PATTERN = r"arn:aws[a-z-]*:iam::\d{12}:role/[\w+=,.@/-]+"
AWS_REGION_PATTERN = r"[a-z]{2}(-[a-z]+)+-\d"

GITHUB_TOKEN_SECRET = {
    "env": "GITHUB_TOKEN",
    "prompt": "Token used to comment on pull requests",
}

TF_API_TOKEN_SECRET = {
    "env": "TF_API_TOKEN",
    "prompt": "Terraform Cloud / Enterprise API token",
}

SECURITY_SCAN = {
    "name": "security-scan",
    "workflow_name": "Security Scan",
    "description": "Trivy, gosec, Bandit and npm audit behind a severity gate",
    "required_inputs": {},
    "optional_inputs": {
        "enable_trivy": {
            "type": "boolean",
            "default": True,
            "prompt": "Enable Trivy filesystem scan?",
            "group": "checks",
        },
        "enable_gosec": {
            "type": "boolean",
            "default": False,
            "prompt": "Enable gosec (Go)?",
            "group": "checks",
        },
        "enable_bandit": {
            "type": "boolean",
            "default": False,
            "prompt": "Enable Bandit (Python)?",
            "group": "checks",
        },
        "enable_npm_audit": {
            "type": "boolean",
            "default": False,
            "prompt": "Enable npm audit (Node)?",
            "group": "checks",
        },
        "scan_path": {
            "type": "string",
            "default": ".",
            "prompt": "Path scanned by Trivy",
        },
        "go_path": {
            "type": "string",
            "default": ".",
            "prompt": "Go module directory",
        },
        "python_path": {
            "type": "string",
            "default": ".",
            "prompt": "Python source directory",
        },
        "node_path": {
            "type": "string",
            "default": ".",
            "prompt": "Directory containing package.json",
        },
        "severity": {
            "type": "string",
            "default": "CRITICAL,HIGH",
            "prompt": "Blocking severities (comma-separated)",
            "pattern": SEVERITY_PATTERN,
        },
        "fail_on_findings": {
            "type": "boolean",
            "default": True,
            "prompt": "Fail the pipeline on blocking findings?",
            "group": "policy",
        },
        "comment_on_pr": {
            "type": "boolean",
            "default": True,
            "prompt": "Comment results on the pull request?",
            "group": "policy",
        },
        "upload_sarif": {
            "type": "boolean",
            "default": False,
            "prompt": "Write a SARIF report?",
            "group": "policy",
        },
        "sarif_file": {
            "type": "string",
            "default": "results.sarif",
            "prompt": "SARIF output path",
        },
    },
    "secrets": {
        "github_token": GITHUB_TOKEN_SECRET,
    },
    "language": None,
}

TERRAFORM_PLAN = {
    "name": "terraform-plan",
    "workflow_name": "Terraform Plan",
    "description": "terraform init, validate and plan with an assumed AWS role",
    "required_inputs": {
        "working_directory": {
            "type": "string",
            "default": "",
            "prompt": "Terraform directory",
        },
        "role_arn": {
            "type": "string",
            "default": "",
            "prompt": "AWS role ARN to assume (OIDC)",
            "pattern": ROLE_ARN_PATTERN,
        },
    },
    "optional_inputs": {
        "aws_region": {
            "type": "string",
            "default": "us-east-1",
            "prompt": "AWS region",
            "pattern": AWS_REGION_PATTERN,
        },
        "comment_on_pr": {
            "type": "boolean",
            "default": True,
            "prompt": "Comment the plan on the pull request?",
            "group": "policy",
        },
    },
    "secrets": {
        "tf_api_token": TF_API_TOKEN_SECRET,
        "github_token": GITHUB_TOKEN_SECRET,
    },
    "language": "terraform",
}

TERRAFORM_DESTROY = {
    "name": "terraform-destroy",
    "workflow_name": "Terraform Destroy",
    "description": "terraform destroy behind a manual approval barrier",
    "required_inputs": {
        "working_directory": {
            "type": "string",
            "default": "",
            "prompt": "Terraform directory",
        },
        "role_arn": {
            "type": "string",
            "default": "",
            "prompt": "AWS role ARN to assume (OIDC)",
            "pattern": ROLE_ARN_PATTERN,
        },
        "approvers": {
            "type": "string",
            "default": "",
            "prompt": "Users allowed to approve (comma-separated)",
        },
    },
    "optional_inputs": {
        "aws_region": {
            "type": "string",
            "default": "us-east-1",
            "prompt": "AWS region",
            "pattern": AWS_REGION_PATTERN,
        },
        # Checked by the approval barrier, which may prompt for it
        "confirmation": {
            "type": "string",
            "default": "",
            "prompt": "Type 'destroy' to confirm",
        },
    },
    "secrets": {
        "tf_api_token": TF_API_TOKEN_SECRET,
    },
    "language": None,
}

GO_TESTS = {
    "name": "go-tests",
    "workflow_name": "Go Tests",
    "description": "go test with optional race detector and coverage",
    "required_inputs": {},
    "optional_inputs": {
        "working_directory": {
            "type": "string",
            "default": ".",
            "prompt": "Go module directory",
        },
        "go_version": {
            "type": "string",
            "default": "1.22",
            "prompt": "Expected Go version (empty to skip check)",
        },
        "race": {
            "type": "boolean",
            "default": True,
            "prompt": "Run with -race?",
            "group": "checks",
        },
        "coverage": {
            "type": "boolean",
            "default": True,
            "prompt": "Collect coverage?",
            "group": "checks",
        },
        "test_command": {
            "type": "string",
            "default": "",
            "prompt": "Test command override",
        },
    },
    "secrets": {},
    "language": "go",
}

NODE_TESTS = {
    "name": "node-tests",
    "workflow_name": "Node Tests",
    "description": "npm install, optional lint, and npm test",
    "required_inputs": {},
    "optional_inputs": {
        "working_directory": {
            "type": "string",
            "default": ".",
            "prompt": "Directory containing package.json",
        },
        "node_version": {
            "type": "string",
            "default": "20",
            "prompt": "Expected Node.js version (empty to skip check)",
        },
        "install_command": {
            "type": "string",
            "default": "",
            "prompt": "Install command override",
        },
        "run_lint": {
            "type": "boolean",
            "default": False,
            "prompt": "Run `npm run lint`?",
            "group": "checks",
        },
        "test_command": {
            "type": "string",
            "default": "",
            "prompt": "Test command override",
        },
    },
    "secrets": {},
    "language": "node",
}

PYTHON_TESTS = {
    "name": "python-tests",
    "workflow_name": "Python Tests",
    "description": "pip install and pytest with optional coverage",
    "required_inputs": {},
    "optional_inputs": {
        "working_directory": {
            "type": "string",
            "default": ".",
            "prompt": "Project directory",
        },
        "python_version": {
            "type": "string",
            "default": "3.12",
            "prompt": "Expected Python version (empty to skip check)",
        },
        "requirements_file": {
            "type": "string",
            "default": "requirements.txt",
            "prompt": "Requirements file",
        },
        "coverage": {
            "type": "boolean",
            "default": True,
            "prompt": "Collect coverage with pytest-cov?",
            "group": "checks",
        },
        "test_command": {
            "type": "string",
            "default": "",
            "prompt": "Test command override",
        },
    },
    "secrets": {},
    "language": "python",
}

ALL_WORKFLOWS = {
    "security-scan": SECURITY_SCAN,
    "terraform-plan": TERRAFORM_PLAN,
    "terraform-destroy": TERRAFORM_DESTROY,
    "go-tests": GO_TESTS,
    "node-tests": NODE_TESTS,
    "python-tests": PYTHON_TESTS,
}

LANGUAGE_WORKFLOWS = {
    "go": ["go-tests"],
    "node": ["node-tests"],
    "python": ["python-tests"],
    "terraform": ["terraform-plan"],
}

# Always offered regardless of language
COMMON_WORKFLOWS = ["security-scan"]

# Never run implicitly; must be named on the command line
EXPLICIT_ONLY_WORKFLOWS = ["terraform-destroy"]

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def get_workflow(name):
    """Look up a workflow by name, raising InputError if unknown."""
    try:
        return ALL_WORKFLOWS[name]
    except KeyError:
        known = ", ".join(ALL_WORKFLOWS)
        raise InputError(f"Unknown workflow '{name}' (known: {known})") from None


def all_inputs(wf):
    """Required and optional input metadata, required first."""
    merged = {}
    merged.update(wf["required_inputs"])
    merged.update(wf["optional_inputs"])
    return merged


def coerce_value(key, meta, value):
    """Convert a raw input value to the declared type."""
    if meta["type"] == "boolean":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise InputError(f"Input '{key}' expects a boolean, got {value!r}")
    if isinstance(value, bool):
        raise InputError(f"Input '{key}' expects a string, got {value!r}")
    if value is None:
        return ""
    return str(value)


def resolve_inputs(workflow_name, provided):
    """Validate provided inputs and fill in defaults.

    Returns a dict with a value for every declared input.
    Raises InputError for unknown, missing, or malformed inputs.
    """
    wf = get_workflow(workflow_name)
    declared = all_inputs(wf)

    unknown = sorted(set(provided) - set(declared))
    if unknown:
        raise InputError(
            f"{workflow_name}: unknown input(s): {', '.join(unknown)}"
        )

    resolved = {}
    for key, meta in declared.items():
        if key in provided:
            value = coerce_value(key, meta, provided[key])
        else:
            value = meta["default"]

        if key in wf["required_inputs"] and value == "":
            raise InputError(f"{workflow_name}: required input '{key}' is not set")

        pattern = meta.get("pattern")
        if pattern and value and not re.fullmatch(pattern, value):
            raise InputError(f"{workflow_name}: input '{key}' is malformed: {value!r}")

        resolved[key] = value
    return resolved


def resolve_secrets(workflow_name, environ):
    """Collect the workflow's secrets from the environment.

    Secrets that are unset or empty are omitted.
    """
    wf = get_workflow(workflow_name)
    secrets = {}
    for name, meta in wf["secrets"].items():
        value = environ.get(meta["env"], "")
        if value:
            secrets[name] = value
    return secrets


def parse_assignments(pairs):
    """Parse KEY=VALUE strings from the command line into a dict."""
    values = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise InputError(f"Expected KEY=VALUE, got '{pair}'")
        key, value = pair.split("=", 1)
        key = key.strip()
        if not key:
            raise InputError(f"Expected KEY=VALUE, got '{pair}'")
        values[key] = value
    return values
