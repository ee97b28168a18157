"""Read and write .pipeline-gate.yml."""

import os

import yaml

CONFIG_FILENAME = ".pipeline-gate.yml"


def config_path(project_dir="."):
    return os.path.join(project_dir, CONFIG_FILENAME)


def read_config_string(content):
    """Parse config YAML text. Returns a dict ({} for empty documents).

    Raises ValueError for malformed YAML or a non-mapping root.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"malformed YAML: {e}") from None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("config root must be a mapping")
    return data


def read_config(path):
    """Read a config file. Returns {} if it does not exist."""
    if not os.path.exists(path):
        return {}
    with open(path) as f:
        return read_config_string(f.read())


def write_config(path, data):
    """Write config data, preserving key order."""
    with open(path, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def workflow_inputs(config, workflow_name):
    """Return the input overrides stored for one workflow."""
    inputs = config.get(workflow_name) or {}
    if not isinstance(inputs, dict):
        raise ValueError(f"'{workflow_name}' section must be a mapping")
    return dict(inputs)
