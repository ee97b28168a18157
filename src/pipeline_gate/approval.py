"""Manual approval barrier for destructive steps."""

import getpass
import logging
import os

from pipeline_gate.errors import ApprovalDenied
from pipeline_gate.prompt import ask_value

logger = logging.getLogger(__name__)

CONFIRMATION_PHRASE = "destroy"


def parse_approvers(value):
    """Split a comma-separated approver list, dropping blanks and duplicates."""
    approvers = []
    for name in (value or "").split(","):
        name = name.strip()
        if name and name.lower() not in (a.lower() for a in approvers):
            approvers.append(name)
    return approvers


def resolve_actor(actor=None, environ=None):
    """Who is asking: explicit actor, then GITHUB_ACTOR, then the local user."""
    if actor:
        return actor
    environ = os.environ if environ is None else environ
    if environ.get("GITHUB_ACTOR"):
        return environ["GITHUB_ACTOR"]
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def check_approval(actor, approvers, confirmation, phrase=CONFIRMATION_PHRASE):
    """Raise ApprovalDenied unless actor may approve and typed the phrase.

    Returns the matched approver name.
    """
    allowed = parse_approvers(approvers)
    if not allowed:
        raise ApprovalDenied("no approvers configured")
    if not actor:
        raise ApprovalDenied("could not determine who is approving")

    matched = next((a for a in allowed if a.lower() == actor.lower()), None)
    if matched is None:
        raise ApprovalDenied(
            f"'{actor}' is not an approver (allowed: {', '.join(allowed)})"
        )
    if (confirmation or "").strip() != phrase:
        raise ApprovalDenied(f"confirmation must be exactly '{phrase}'")
    return matched


def request_approval(approvers, confirmation="", actor=None, interactive=False,
                     description="", environ=None):
    """Block a destructive action until it is approved.

    When no confirmation was supplied and interactive is True, the user is
    prompted to type it. Returns the approving user's name.
    """
    actor = resolve_actor(actor, environ)
    if not (confirmation or "").strip() and interactive:
        if description:
            print(description)
        confirmation = ask_value(
            f"{actor or 'User'}: type '{CONFIRMATION_PHRASE}' to confirm:"
        )
    try:
        approver = check_approval(actor, approvers, confirmation)
    except ApprovalDenied as e:
        logger.warning("Approval denied: %s", e)
        raise
    logger.info("Approved by %s", approver)
    return approver
