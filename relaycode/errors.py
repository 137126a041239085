"""
Error taxonomy for the turn pipeline.

FormatError and ToolExecutionError never escape a turn: the first becomes
feedback in the conversation, the second an ``error: ...`` tool result.
PersistenceError aborts the turn and propagates to the caller.
"""


class RelayError(Exception):
    """Base class for relaycode errors."""


class FormatError(RelayError):
    """The response violates the turn-level format rules."""


class ToolExecutionError(RelayError):
    """A single tool could not be executed."""


class PendingEditConflict(ToolExecutionError):
    """A turn tried to change state while a different edit awaits confirmation."""


class PersistenceError(RelayError):
    """A required artifact is unreadable or corrupt."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
