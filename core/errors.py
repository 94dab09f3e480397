"""
Exception hierarchy for the agent core.

Two families matter to callers:
- LoopFailure: the agent could not produce an answer within its limits.
- InfrastructureError: the harness itself broke (memory, credentials, thinker).

Tool faults never appear here; the registry turns them into Outcome errors.
"""


class AgentError(Exception):
    """Root of every error raised by the agent core."""


# =============================================================================
# BOUNDED FAILURES
# =============================================================================

class LoopFailure(AgentError):
    """The loop ended without an answer. Expected, not a crash."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MaxIterationsExceeded(LoopFailure):
    """Raised when the iteration budget runs out before a Finish step."""

    def __init__(self, max_iterations: int):
        super().__init__("max iterations exceeded")
        self.max_iterations = max_iterations


class RunCancelled(LoopFailure):
    """Raised when a run observes its cancellation token."""

    def __init__(self):
        super().__init__("cancelled")


# =============================================================================
# INFRASTRUCTURE FAULTS
# =============================================================================

class InfrastructureError(AgentError):
    """The harness broke; the task is aborted but the process survives."""


class ConfigurationError(InfrastructureError):
    """Missing or invalid configuration."""


class MemoryStoreError(InfrastructureError):
    """The memory backing store could not be read or written."""


class ThinkerError(InfrastructureError):
    """The thinker failed to produce a step."""


class MalformedThinkerOutput(ThinkerError):
    """The thinker produced output that does not parse into a step."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class CredentialError(InfrastructureError):
    """Base class for credential lifecycle failures."""


class Unauthenticated(CredentialError):
    """Neither a stored credential nor a static API key is available."""


class CredentialRefreshError(CredentialError):
    """The token endpoint rejected or failed a refresh/exchange request."""


class InsecureCredentialStore(CredentialError):
    """The credential file is readable by others and could not be repaired."""
