"""CLI entry point for pipeline-gate."""

import argparse
import logging
import os
import sys

from pipeline_gate import __version__
from pipeline_gate.checker import check
from pipeline_gate.comment import detect_pr_number
from pipeline_gate.config import CONFIG_FILENAME, config_path, read_config, workflow_inputs, write_config
from pipeline_gate.detect import detect_languages, find_terraform_dirs
from pipeline_gate.errors import GateError
from pipeline_gate.pipelines import run_workflow
from pipeline_gate.presets import ALL_PRESETS, preset_inputs
from pipeline_gate.prompt import ask_value, ask_yn
from pipeline_gate.report import generate_report
from pipeline_gate.workflows import (
    ALL_WORKFLOWS,
    COMMON_WORKFLOWS,
    EXPLICIT_ONLY_WORKFLOWS,
    LANGUAGE_WORKFLOWS,
    all_inputs,
    parse_assignments,
)

logger = logging.getLogger(__name__)


def setup_logging(verbosity=0):
    """Log to stderr so reports on stdout stay clean."""
    level = logging.WARNING
    if verbosity > 1:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    elif verbosity < 0:
        level = logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _fail(message):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _workflows_for(langs):
    """Common workflows plus one per detected language, deduplicated in order."""
    names = list(COMMON_WORKFLOWS)
    for lang in sorted(langs):
        names.extend(LANGUAGE_WORKFLOWS.get(lang, []))
    seen = set()
    unique = []
    for name in names:
        if name not in seen:
            seen.add(name)
            unique.append(name)
    return unique


def cmd_init(args):
    """Scaffold .pipeline-gate.yml for the project."""
    project_dir = args.project_dir or "."
    path = config_path(project_dir)
    if os.path.exists(path) and not args.force:
        _fail(f"{CONFIG_FILENAME} already exists (use --force to overwrite)")

    langs = detect_languages(project_dir)
    if langs:
        print(f"Detected: {', '.join(sorted(langs))}")
    else:
        print("No language markers detected (go.mod, package.json, pyproject.toml, *.tf)")
        if not args.non_interactive:
            for lang, label in (("go", "Go"), ("node", "Node.js"), ("python", "Python")):
                if ask_yn(f"Enable {label} workflows?", default=False):
                    langs.add(lang)

    tf_dirs = find_terraform_dirs(project_dir) if "terraform" in langs else []

    all_configs = {}
    for wf_name in _workflows_for(langs):
        wf = ALL_WORKFLOWS[wf_name]
        inputs = preset_inputs(args.preset, wf_name, langs)
        if wf_name == "terraform-plan" and tf_dirs:
            inputs.setdefault("working_directory", tf_dirs[0])

        if not args.non_interactive:
            print(f"{wf['workflow_name']}:")
            # Ask for required inputs
            for key, meta in wf["required_inputs"].items():
                if not inputs.get(key):
                    inputs[key] = ask_value(f"  {meta['prompt']}:", meta["default"])

            # Ask about boolean opt-ins
            for key, meta in wf["optional_inputs"].items():
                if meta["type"] == "boolean" and meta.get("group") == "checks":
                    current = inputs.get(key, meta["default"])
                    inputs[key] = ask_yn(f"  {meta['prompt']}", default=current)

        # Store only non-defaults
        declared = all_inputs(wf)
        all_configs[wf_name] = {
            k: v for k, v in inputs.items()
            if k in wf["required_inputs"] or v != declared[k]["default"]
        }

    config_data = {
        "version": __version__,
        "preset": args.preset,
        "workflows": list(all_configs.keys()),
    }
    for wf_name, inputs in all_configs.items():
        if inputs:
            config_data[wf_name] = inputs

    write_config(path, config_data)
    print(f"  Generated: {CONFIG_FILENAME}")
    for wf_name in all_configs:
        print(f"  Enabled: {wf_name}")

    missing = [
        f"{wf_name}.{key}"
        for wf_name, inputs in all_configs.items()
        for key in ALL_WORKFLOWS[wf_name]["required_inputs"]
        if not inputs.get(key)
    ]
    if missing:
        print(f"\nSet before running: {', '.join(missing)}")
    print(f"\nDone! {len(all_configs)} workflow(s) configured ({args.preset} preset)")


def cmd_list(args):
    """Print every workflow with its inputs and secrets."""
    for wf_name, wf in ALL_WORKFLOWS.items():
        print(f"{wf_name}: {wf['description']}")
        for key, meta in all_inputs(wf).items():
            if key in wf["required_inputs"]:
                default = "required"
            else:
                default = f"default: {meta['default']!r}"
            print(f"  {key} ({meta['type']}, {default})")
        for key, meta in wf["secrets"].items():
            print(f"  secret {key} (env {meta['env']})")
        print()


def cmd_check(args):
    """Validate .pipeline-gate.yml."""
    project_dir = args.project_dir or "."
    issues = check(project_dir)
    has_errors = False

    for level, msg in issues:
        if level == "error":
            print(f"ERROR: {msg}")
            has_errors = True
        elif level == "warning":
            print(f"WARNING: {msg}")
        else:
            print(f"OK: {msg}")

    if has_errors:
        sys.exit(1)


def cmd_run(args):
    """Run one workflow, or every configured workflow."""
    project_dir = args.project_dir or "."
    try:
        config = read_config(config_path(project_dir))
    except ValueError as e:
        _fail(f"{CONFIG_FILENAME} is invalid: {e}")

    try:
        overrides = parse_assignments(args.set)
    except GateError as e:
        _fail(str(e))

    if args.workflow:
        names = [args.workflow]
    else:
        names = [n for n in config.get("workflows", [])
                 if n not in EXPLICIT_ONLY_WORKFLOWS]
        if not names:
            _fail("No workflows to run; run `pipeline-gate init` or name one")
        if overrides and len(names) > 1:
            _fail("--set needs a single workflow name")

    options = {
        "pr_number": args.pr or detect_pr_number(os.environ),
        "repo": os.environ.get("GITHUB_REPOSITORY"),
        "actor": args.actor,
        "interactive": not args.non_interactive and sys.stdin.isatty(),
    }

    runs = []
    for name in names:
        try:
            provided = workflow_inputs(config, name)
        except ValueError as e:
            _fail(str(e))
        provided.update(overrides)
        try:
            run = run_workflow(
                name, provided, project_dir=project_dir, options=options,
                max_workers=args.jobs, fail_fast=args.fail_fast,
            )
        except GateError as e:
            _fail(str(e))
        logger.info("%s finished: %s", name, run["status"])
        runs.append(run)

    report = generate_report(runs, fmt=args.format)
    print(report)
    if args.report:
        with open(args.report, "w") as f:
            f.write(report)
            f.write("\n")

    if any(run["status"] == "fail" for run in runs):
        sys.exit(1)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="pipeline-gate",
        description="Run security scans, Terraform gates and test suites as one pipeline",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="More logging (-vv for debug)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only log errors",
    )

    sub = parser.add_subparsers(dest="command")

    # init
    p_init = sub.add_parser("init", help=f"Scaffold {CONFIG_FILENAME}")
    p_init.add_argument(
        "--preset",
        choices=sorted(ALL_PRESETS),
        default="recommended",
        help="Preset configuration (default: recommended)",
    )
    p_init.add_argument(
        "--non-interactive",
        action="store_true",
        help="Accept all defaults without prompting",
    )
    p_init.add_argument("--force", action="store_true", help="Overwrite an existing config")
    p_init.add_argument("--project-dir", metavar="DIR", help="Project directory (default: .)")

    # list
    sub.add_parser("list", help="List workflows and their inputs")

    # check
    p_check = sub.add_parser("check", help=f"Validate {CONFIG_FILENAME}")
    p_check.add_argument("--project-dir", metavar="DIR", help="Project directory (default: .)")

    # run
    p_run = sub.add_parser("run", help="Run a workflow (default: all configured)")
    p_run.add_argument("workflow", nargs="?", choices=sorted(ALL_WORKFLOWS),
                       help="Workflow to run")
    p_run.add_argument("--set", action="append", metavar="KEY=VALUE",
                       help="Override an input (repeatable)")
    p_run.add_argument("--project-dir", metavar="DIR", help="Project directory (default: .)")
    p_run.add_argument("--format", choices=["markdown", "json"], default="markdown",
                       help="Report format (default: markdown)")
    p_run.add_argument("--report", metavar="FILE", help="Also write the report to FILE")
    p_run.add_argument("--pr", type=int, metavar="N",
                       help="Pull request to comment on (default: from GITHUB_EVENT_PATH)")
    p_run.add_argument("--actor", metavar="NAME",
                       help="User approving destructive steps (default: GITHUB_ACTOR)")
    p_run.add_argument("--non-interactive", action="store_true",
                       help="Never prompt (approvals need --set confirmation=destroy)")
    p_run.add_argument("--jobs", type=int, default=1, metavar="N",
                       help="Run up to N independent steps in parallel")
    p_run.add_argument("--fail-fast", action="store_true",
                       help="Skip remaining steps after the first failure")

    args = parser.parse_args(argv)
    setup_logging(-1 if args.quiet else args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {"init": cmd_init, "list": cmd_list, "check": cmd_check, "run": cmd_run}
    commands[args.command](args)
