"""Auto-detect project type from files in the working directory."""

import os

GO_MARKERS = {"go.mod"}
NODE_MARKERS = {"package.json"}
PYTHON_MARKERS = {"pyproject.toml", "setup.py", "requirements.txt"}


def detect_languages(path="."):
    """Return set of detected language categories: 'go', 'node', 'python', 'terraform'."""
    langs = set()
    entries = set(os.listdir(path))
    if entries & GO_MARKERS:
        langs.add("go")
    if entries & NODE_MARKERS:
        langs.add("node")
    if entries & PYTHON_MARKERS:
        langs.add("python")
    if find_terraform_dirs(path):
        langs.add("terraform")
    return langs


def find_terraform_dirs(path=".", max_depth=2):
    """Directories (relative to path) holding *.tf files, shallowest first."""
    found = []
    root_depth = path.rstrip(os.sep).count(os.sep)
    for dirpath, dirnames, filenames in os.walk(path):
        depth = dirpath.rstrip(os.sep).count(os.sep) - root_depth
        dirnames[:] = sorted(d for d in dirnames
                             if not d.startswith(".") and d != "node_modules")
        if depth >= max_depth:
            dirnames[:] = []
        if any(f.endswith(".tf") for f in filenames):
            found.append(os.path.relpath(dirpath, path))
    return sorted(found, key=lambda d: (d.count(os.sep) if d != "." else -1, d))
