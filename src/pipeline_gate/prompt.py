"""Interactive prompt helpers."""

import sys


def _read(question):
    """Read one answer; EOF (closed stdin) counts as an empty answer."""
    try:
        return input(question).strip()
    except EOFError:
        print()
        return ""
    except KeyboardInterrupt:
        print()
        sys.exit(130)


def ask_yn(question, default=True):
    """Ask a yes/no question, return bool."""
    hint = "[Y/n]" if default else "[y/N]"
    answer = _read(f"{question} {hint} ").lower()
    if not answer:
        return default
    return answer.startswith("y")


def ask_value(question, default=""):
    """Ask for a string value with a default."""
    suffix = f" [{default}]" if default else ""
    answer = _read(f"{question}{suffix} ")
    return answer if answer else default
