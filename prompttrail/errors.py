"""
Error taxonomy for PromptTrail.

Redaction never raises for text input and the path classifier never raises
for a well-formed path, so everything here surfaces from the session monitor
or its collaborators.
"""

from __future__ import annotations

from typing import Optional


class PromptTrailError(Exception):
    """Base class for all PromptTrail errors."""


class InputError(PromptTrailError, ValueError):
    """Raised when a call receives malformed arguments (fatal to the call only)."""


class DuplicateCorrelationError(PromptTrailError, RuntimeError):
    """Raised when a session that is finalizing or closed is correlated again."""

    def __init__(self, session_id: str, state: str) -> None:
        super().__init__(
            f"Session {session_id} is already {state}; correlation happens at most once"
        )
        self.session_id = session_id
        self.state = state


class PersistenceError(PromptTrailError):
    """The persistence collaborator failed to save a sanitized session."""

    def __init__(self, session_id: str, reason: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Failed to persist session {session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason
        self.cause = cause


class IgnoreFileReadError(PromptTrailError):
    """An ignore file exists but could not be read. Callers treat it as no rules."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read ignore file {path}: {reason}")
        self.path = path
        self.reason = reason
