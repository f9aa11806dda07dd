"""
Core data types shared across PromptTrail subsystems.

Interactions, file contexts and commit info are immutable once built; a
Session is the only mutable container and only the SessionMonitor mutates it.
They live here rather than in a specific subsystem to avoid circular imports.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from prompttrail.errors import InputError


class InteractionKind(str, Enum):
    """How the assistant was engaged."""

    CHAT = "chat"
    INLINE = "inline"
    COMMENT = "comment"

    @classmethod
    def parse(cls, value: "InteractionKind | str") -> "InteractionKind":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(k.value for k in cls)
        raise InputError(f"Unknown interaction kind {value!r}; expected one of: {allowed}")


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FINALIZING = "finalizing"
    CLOSED = "closed"


@dataclass(frozen=True)
class Position:
    line: int
    column: int


@dataclass(frozen=True)
class SelectionRange:
    start: Position
    end: Position

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": {"line": self.start.line, "column": self.start.column},
            "end": {"line": self.end.line, "column": self.end.column},
        }


@dataclass(frozen=True)
class FileContext:
    """The editor file an interaction was anchored to."""

    file_path: str
    language: str = ""
    selection: Optional[SelectionRange] = None
    content: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.file_path, str) or not self.file_path.strip():
            raise InputError("FileContext.file_path must be a non-empty string")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"file_path": self.file_path, "language": self.language}
        if self.selection is not None:
            data["selection"] = self.selection.to_dict()
        if self.content is not None:
            data["content"] = self.content
        return data


@dataclass(frozen=True)
class Interaction:
    """One captured prompt/response exchange."""

    interaction_id: str
    timestamp: float
    prompt: str
    kind: InteractionKind
    response: Optional[str] = None
    file_context: Optional[FileContext] = None
    # Which assistant produced the response: copilot, claude, cursor, other
    provider: str = "other"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.interaction_id,
            "timestamp": self.timestamp,
            "kind": self.kind.value,
            "provider": self.provider,
            "prompt": self.prompt,
        }
        if self.response is not None:
            data["response"] = self.response
        if self.file_context is not None:
            data["file_context"] = self.file_context.to_dict()
        return data


@dataclass(frozen=True)
class CommitInfo:
    """Commit metadata supplied by the version-control collaborator."""

    commit_hash: str
    branch: str
    author: str
    repository: str
    changed_files: tuple[str, ...] = ()
    message: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("commit_hash", "branch", "author", "repository"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise InputError(f"CommitInfo.{name} must be a non-empty string")
        # Accept any iterable of paths but store a tuple so the value stays hashable.
        object.__setattr__(self, "changed_files", tuple(str(f) for f in self.changed_files))

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:7]

    def to_dict(self) -> dict[str, Any]:
        return {
            "commit_hash": self.commit_hash,
            "branch": self.branch,
            "author": self.author,
            "repository": self.repository,
            "changed_files": list(self.changed_files),
            "message": self.message,
        }


@dataclass
class SessionMetadata:
    tool_version: str = "unknown"
    workspace_id: str = "unknown"
    providers_used: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_version": self.tool_version,
            "workspace_id": self.workspace_id,
            "providers_used": list(self.providers_used),
        }


@dataclass
class Session:
    """
    A time-and-size-bounded group of interactions.

    ``interactions`` is a bounded deque: appending past ``max_interactions``
    drops the oldest entry instead of growing.
    """

    session_id: str
    max_interactions: int = 50
    started_at: float = field(default_factory=time.time)
    ended_at: Optional[float] = None
    commit_info: Optional[CommitInfo] = None
    metadata: SessionMetadata = field(default_factory=SessionMetadata)
    state: SessionState = SessionState.ACTIVE
    # Monotonic clock for timeout checks, immune to wall-clock adjustments.
    last_activity: float = field(default_factory=time.monotonic)
    total_recorded: int = 0
    evicted_count: int = 0
    interactions: deque[Interaction] = field(init=False)

    def __post_init__(self) -> None:
        if self.max_interactions < 1:
            raise InputError("max_interactions must be at least 1")
        self.interactions = deque(maxlen=self.max_interactions)

    def append(self, interaction: Interaction) -> Optional[Interaction]:
        """Append an interaction, returning the evicted one if the buffer was full."""
        evicted: Optional[Interaction] = None
        if len(self.interactions) == self.max_interactions:
            evicted = self.interactions[0]
            self.evicted_count += 1
        self.interactions.append(interaction)
        self.total_recorded += 1
        self.last_activity = time.monotonic()
        if interaction.provider not in self.metadata.providers_used:
            self.metadata.providers_used.append(interaction.provider)
        return evicted

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def distinct_files(self) -> set[str]:
        return {i.file_context.file_path for i in self.interactions if i.file_context is not None}

    def distinct_kinds(self) -> set[InteractionKind]:
        return {i.kind for i in self.interactions}

    def idle_seconds(self, now: Optional[float] = None) -> float:
        now = time.monotonic() if now is None else now
        return max(0.0, now - self.last_activity)
