"""
Session Monitor: owns the current session and its lifecycle.

Interactions are recorded into a single active session that is bounded in
size (a ring buffer of the most recent interactions) and in time (an
inactivity timer whose allowance adapts to how valuable the session looks).
A commit closes the session through correlation: commit info is attached,
every interaction and a synthesized summary are sanitized, and the result is
handed to the persistence collaborator exactly once.

    Idle/Closed --record_interaction--> Active
    Active --inactivity timeout--> Idle (session archived)
    Active --correlate--> Finalizing --persist returns--> Closed
    any --dispose--> Closed

Thread-safe *only* within the asyncio event loop. Every state change happens
synchronously between awaits; the only suspension point is the persist call,
and by then the session is already Finalizing and its sanitized summary is
complete, so nothing recorded afterwards can leak into it.
"""

from __future__ import annotations

import asyncio
import secrets
import string
import time
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

import structlog

from prompttrail.errors import DuplicateCorrelationError, InputError, PersistenceError
from prompttrail.privacy.paths import PathInput, PathSensitivityClassifier
from prompttrail.privacy.redaction import SecretRedactor
from prompttrail.privacy.sanitizer import ContentSanitizer, SanitizedRecord
from prompttrail.session.quality import DefaultQualityPolicy, QualityPolicy
from prompttrail.session.store import Persister, SessionStore
from prompttrail.session.summary import SessionSummary, build_session_summary
from prompttrail.types import (
    CommitInfo,
    FileContext,
    Interaction,
    InteractionKind,
    Session,
    SessionMetadata,
    SessionState,
)

if TYPE_CHECKING:
    from prompttrail.config import PromptTrailConfig

logger = structlog.get_logger(__name__)

# Called with (session_id, detector_kinds) when sanitization removed something.
SensitiveContentHandler = Callable[[str, tuple[str, ...]], None]

DEFAULT_MAX_INTERACTIONS = 50
DEFAULT_INACTIVITY_TIMEOUT = 30 * 60.0
DEFAULT_HISTORY_LIMIT = 100


@dataclass
class CorrelationOutcome:
    """What happened when a session was correlated with a commit."""

    session: Session
    summary: SessionSummary
    persisted: bool = False
    error: Optional[PersistenceError] = None
    # True when the monitor was disposed while the persist call was in flight.
    abandoned: bool = False


def _new_session_id() -> str:
    ts_str = datetime.now().strftime("%Y%m%d-%H%M%S")
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"session-{ts_str}-{suffix}"


class SessionMonitor:
    """
    Tracks AI-assistant interactions and correlates them with commits.

    Construct one per process and pass it to whoever records interactions or
    reports commits. ``get_current_session()`` is a lock-free read; callers
    such as a status display may observe a session that a timer callback is
    about to close.
    """

    def __init__(
        self,
        persister: Optional[Persister] = None,
        sanitizer: Optional[ContentSanitizer] = None,
        quality_policy: Optional[QualityPolicy] = None,
        max_interactions: int = DEFAULT_MAX_INTERACTIONS,
        inactivity_timeout: float = DEFAULT_INACTIVITY_TIMEOUT,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        project_root: Optional[PathInput] = None,
        tool_version: str = "unknown",
        workspace_id: str = "unknown",
        filter_relevant_interactions: bool = False,
        on_sensitive_content: Optional[SensitiveContentHandler] = None,
    ) -> None:
        if int(max_interactions) < 1:
            raise InputError("max_interactions must be at least 1")
        if float(inactivity_timeout) <= 0:
            raise InputError("inactivity_timeout must be positive")
        if int(history_limit) < 1:
            raise InputError("history_limit must be at least 1")

        self._persister = persister
        self._sanitizer = sanitizer if sanitizer is not None else ContentSanitizer()
        self._quality = quality_policy if quality_policy is not None else DefaultQualityPolicy()
        self._max_interactions = int(max_interactions)
        self._base_timeout = float(inactivity_timeout)
        self._project_root = project_root
        self._tool_version = tool_version
        self._workspace_id = workspace_id
        self._filter_relevant = filter_relevant_interactions
        self._on_sensitive_content = on_sensitive_content

        self._state = SessionState.IDLE
        self._current: Optional[Session] = None
        self._finalizing: dict[str, Session] = {}
        self._history: deque[Session] = deque(maxlen=int(history_limit))
        self._timer: Optional[asyncio.TimerHandle] = None
        self._timeout_allowance = self._base_timeout
        # Bumped on dispose so in-flight correlations know to leave state alone.
        self._generation = 0

    @classmethod
    def from_config(
        cls,
        config: "PromptTrailConfig",
        persister: Optional[Persister] = None,
        project_root: Optional[PathInput] = None,
        on_sensitive_content: Optional[SensitiveContentHandler] = None,
    ) -> "SessionMonitor":
        """Wire a monitor, its sanitizer and a local store from configuration."""
        redactor = SecretRedactor(
            sensitivity_level=config.privacy.sensitivity_level,
            max_passes=config.privacy.redaction_max_passes,
        )
        classifier = PathSensitivityClassifier(ignore_file_name=config.privacy.ignore_file)
        if persister is None:
            persister = SessionStore(config.store.sessions_dir, max_count=config.store.max_count)
        return cls(
            persister=persister,
            sanitizer=ContentSanitizer(redactor=redactor, classifier=classifier),
            quality_policy=DefaultQualityPolicy(
                max_multiplier=config.session.max_timeout_multiplier
            ),
            max_interactions=config.session.max_interactions,
            inactivity_timeout=config.session.inactivity_timeout,
            history_limit=config.session.history_limit,
            project_root=project_root,
            tool_version=config.session.tool_version,
            workspace_id=config.session.workspace_id,
            filter_relevant_interactions=config.session.filter_relevant_interactions,
            on_sensitive_content=on_sensitive_content,
        )

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def get_current_session(self) -> Optional[Session]:
        return self._current

    def get_history(self) -> list[Session]:
        """Closed sessions, oldest first."""
        return list(self._history)

    def get_recent_interactions(self, limit: int = 10) -> list[Interaction]:
        if self._current is None or limit <= 0:
            return []
        return list(self._current.interactions)[-limit:]

    def current_timeout(self) -> float:
        """Inactivity allowance, in seconds, for the current session."""
        if self._current is None or not self._current.is_active:
            return self._base_timeout
        return self._quality.timeout_for(self._current, self._base_timeout)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_interaction(
        self,
        kind: InteractionKind | str,
        prompt: str,
        response: Optional[str] = None,
        file_context: Optional[FileContext] = None,
        provider: str = "other",
    ) -> Interaction:
        """
        Append an interaction to the active session, starting one if needed.

        The oldest interaction is evicted once the session holds
        ``max_interactions``. Resets the inactivity timer.
        """
        parsed_kind = InteractionKind.parse(kind)
        if not isinstance(prompt, str):
            raise InputError(f"prompt must be a string, got {type(prompt).__name__}")
        if response is not None and not isinstance(response, str):
            raise InputError(f"response must be a string, got {type(response).__name__}")
        if file_context is not None and not isinstance(file_context, FileContext):
            raise InputError("file_context must be a FileContext")
        if not isinstance(provider, str) or not provider.strip():
            raise InputError("provider must be a non-empty string")

        session = self._current
        if session is None or not session.is_active:
            session = self._start_session()

        interaction = Interaction(
            interaction_id=f"interaction-{uuid.uuid4().hex}",
            timestamp=time.time(),
            prompt=prompt,
            kind=parsed_kind,
            response=response,
            file_context=file_context,
            provider=provider.strip().lower(),
        )
        evicted = session.append(interaction)
        if evicted is not None:
            logger.debug(
                "session_monitor.interaction_evicted",
                session_id=session.session_id,
                interaction_id=evicted.interaction_id,
            )

        self._arm_timer(session)
        logger.debug(
            "session_monitor.interaction_recorded",
            session_id=session.session_id,
            interaction_id=interaction.interaction_id,
            kind=parsed_kind.value,
            count=len(session.interactions),
            timeout=round(self._timeout_allowance, 1),
        )
        return interaction

    # ------------------------------------------------------------------
    # Timeout handling
    # ------------------------------------------------------------------

    def check_timeout(self, now: Optional[float] = None) -> bool:
        """
        Close the current session if it has been idle past its allowance.

        Used when no event loop is running to drive the timer. *now* is a
        ``time.monotonic()`` reading. Returns True if a session was closed.
        """
        session = self._current
        if session is None or not session.is_active:
            return False
        if session.idle_seconds(now) < self.current_timeout():
            return False
        self._close_on_timeout(session)
        return True

    def _arm_timer(self, session: Session) -> None:
        self._cancel_timer()
        self._timeout_allowance = self._quality.timeout_for(session, self._base_timeout)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to schedule on; check_timeout() covers this mode.
            return
        self._timer = loop.call_later(
            self._timeout_allowance, self._on_timer, session.session_id
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, session_id: str) -> None:
        self._timer = None
        session = self._current
        if session is None or session.session_id != session_id or not session.is_active:
            return
        self._close_on_timeout(session)

    def _close_on_timeout(self, session: Session) -> None:
        self._cancel_timer()
        session.ended_at = time.time()
        session.state = SessionState.CLOSED
        self._archive(session)
        self._current = None
        self._state = SessionState.IDLE
        logger.info(
            "session_monitor.session_timed_out",
            session_id=session.session_id,
            interactions=len(session.interactions),
            allowance=round(self._timeout_allowance, 1),
        )

    # ------------------------------------------------------------------
    # Correlation
    # ------------------------------------------------------------------

    async def correlate(
        self,
        commit_info: CommitInfo,
        session_id: Optional[str] = None,
    ) -> Optional[CorrelationOutcome]:
        """
        Attach *commit_info* to a session, sanitize it and persist it once.

        Targets the current session unless *session_id* names another one.
        Returns None when there is no session to correlate. Raises
        DuplicateCorrelationError if the target is already finalizing or
        closed. Persistence failures do not raise: the session still closes
        and the failure is returned in ``CorrelationOutcome.error``. If
        building the sanitized summary raises, the session is closed and
        archived before the error propagates.
        """
        if not isinstance(commit_info, CommitInfo):
            raise InputError("commit_info must be a CommitInfo")

        session = self._resolve_target(session_id)
        if session is None:
            logger.info("session_monitor.nothing_to_correlate", commit=commit_info.short_hash)
            return None
        if not session.is_active:
            raise DuplicateCorrelationError(session.session_id, session.state.value)

        # Everything up to the persist call runs without yielding.
        generation = self._generation
        try:
            summary = self._begin_finalizing(session, commit_info)
        except Exception as e:
            logger.error(
                "session_monitor.summary_failed",
                session_id=session.session_id,
                error=str(e) or type(e).__name__,
            )
            self._finish_correlation(session, abandoned=False)
            raise

        persisted = False
        error: Optional[PersistenceError] = None
        try:
            if self._persister is None:
                logger.debug("session_monitor.no_persister", session_id=session.session_id)
            else:
                persisted = bool(await self._persister.persist(summary))
                if not persisted:
                    error = PersistenceError(session.session_id, "persister reported failure")
        except Exception as e:
            error = PersistenceError(session.session_id, str(e) or type(e).__name__, cause=e)
        finally:
            abandoned = generation != self._generation
            self._finish_correlation(session, abandoned)

        if error is not None:
            logger.error(
                "session_monitor.persist_failed",
                session_id=session.session_id,
                error=error.reason,
            )
        return CorrelationOutcome(
            session=session,
            summary=summary,
            persisted=persisted,
            error=error,
            abandoned=abandoned,
        )

    def _resolve_target(self, session_id: Optional[str]) -> Optional[Session]:
        if session_id is None:
            return self._current
        if self._current is not None and self._current.session_id == session_id:
            return self._current
        if session_id in self._finalizing:
            return self._finalizing[session_id]
        for session in self._history:
            if session.session_id == session_id:
                return session
        raise InputError(f"Unknown session: {session_id}")

    def _begin_finalizing(self, session: Session, commit_info: CommitInfo) -> SessionSummary:
        session.state = SessionState.FINALIZING
        session.ended_at = time.time()
        session.commit_info = commit_info
        self._finalizing[session.session_id] = session
        if session is self._current:
            self._cancel_timer()
            self._state = SessionState.FINALIZING

        logger.info(
            "session_monitor.correlation_started",
            session_id=session.session_id,
            commit=commit_info.short_hash,
            interactions=len(session.interactions),
        )

        interactions = list(session.interactions)
        if self._filter_relevant:
            interactions = self._relevant_interactions(interactions, commit_info)
        records = [
            self._sanitizer.sanitize_record(i, self._project_root) for i in interactions
        ]
        summary = build_session_summary(session, records, self._sanitizer)
        self._notify_if_sensitive(session, records, summary)
        return summary

    def _relevant_interactions(
        self, interactions: list[Interaction], commit_info: CommitInfo
    ) -> list[Interaction]:
        """Keep recent interactions touching changed files, plus recent chats."""
        cutoff = time.time() - self._base_timeout
        changed = [f.replace("\\", "/") for f in commit_info.changed_files]
        kept: list[Interaction] = []
        for interaction in interactions:
            if interaction.timestamp < cutoff:
                continue
            if interaction.file_context is not None:
                path = interaction.file_context.file_path.replace("\\", "/")
                if any(path.endswith(c) or c.endswith(path) for c in changed):
                    kept.append(interaction)
                    continue
            if interaction.kind is InteractionKind.CHAT:
                kept.append(interaction)
        return kept

    def _notify_if_sensitive(
        self,
        session: Session,
        records: list[SanitizedRecord],
        summary: SessionSummary,
    ) -> None:
        if not summary.sensitive_content_redacted or self._on_sensitive_content is None:
            return
        kinds: list[str] = []
        for record in records:
            kinds.extend(k for k in record.detector_kinds if k not in kinds)
        try:
            self._on_sensitive_content(session.session_id, tuple(kinds))
        except Exception:
            logger.warning(
                "session_monitor.notify_failed", session_id=session.session_id, exc_info=True
            )

    def _finish_correlation(self, session: Session, abandoned: bool) -> None:
        self._finalizing.pop(session.session_id, None)
        if abandoned:
            logger.info("session_monitor.correlation_abandoned", session_id=session.session_id)
            return
        session.state = SessionState.CLOSED
        self._archive(session)
        # The closed session stays current until the next interaction so a
        # repeated correlation is rejected rather than silently ignored.
        if session is self._current:
            self._state = SessionState.CLOSED
        logger.info("session_monitor.session_closed", session_id=session.session_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        """Close everything immediately without correlating."""
        self._cancel_timer()
        self._generation += 1
        now = time.time()
        closing = list(self._finalizing.values())
        if self._current is not None and self._current not in closing:
            closing.append(self._current)
        for session in closing:
            if session.ended_at is None:
                session.ended_at = now
            session.state = SessionState.CLOSED
        self._finalizing.clear()
        self._current = None
        self._state = SessionState.CLOSED
        logger.info("session_monitor.disposed", closed_sessions=len(closing))

    def _start_session(self) -> Session:
        self._cancel_timer()
        session = Session(
            session_id=_new_session_id(),
            max_interactions=self._max_interactions,
            metadata=SessionMetadata(
                tool_version=self._tool_version,
                workspace_id=self._workspace_id,
            ),
        )
        self._current = session
        self._state = SessionState.ACTIVE
        logger.info("session_monitor.session_started", session_id=session.session_id)
        return session

    def _archive(self, session: Session) -> None:
        if len(self._history) == self._history.maxlen:
            logger.debug(
                "session_monitor.history_evicted", session_id=self._history[0].session_id
            )
        self._history.append(session)
