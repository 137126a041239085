"""relaycode: a turn-based host for a text agent that edits a codebase through
a bracketed tool language and confirmation-gated edits."""

__version__ = "0.1.0"
