"""Exception hierarchy shared by the CLI and the orchestrator."""


class GateError(RuntimeError):
    """Base class for errors the CLI reports as ``Error: ...`` and exit 1."""


class InputError(GateError):
    """A workflow input or secret is missing, unknown, or malformed."""


class PipelineError(GateError):
    """The step graph is invalid (duplicate names, unknown needs, cycles)."""


class ApprovalDenied(GateError):
    """A destructive step was not approved."""
