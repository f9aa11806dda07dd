"""
Session Store: local persistence for sanitized session summaries.

Implements the persistence collaborator the session monitor hands finalized
sessions to. Each summary is written as a JSON file in ``sessions_dir`` with
owner-only permissions, and the store prunes old files to keep at most
``max_count``. Remote publishing is somebody else's job; this store is the
local landing zone and a reference ``Persister``.

The store never retries. A failed write is reported back as ``False`` and the
caller decides what to do about it.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Protocol

import structlog

from prompttrail.session.summary import SessionSummary

logger = structlog.get_logger(__name__)
SESSION_ID_PATTERN = re.compile(r"^session-\d{8}-\d{6}-[a-z0-9]{6}$")


class Persister(Protocol):
    """Outbound persistence collaborator."""

    async def persist(self, summary: SessionSummary) -> bool:
        """Persist *summary*; return False (or raise) on failure."""
        ...


class SessionStore:
    """
    File-backed store for sanitized session summaries.

    Each summary is saved as ``<session_id>.json`` in sessions_dir.
    """

    def __init__(self, sessions_dir: Path, max_count: int = 100) -> None:
        self.sessions_dir = sessions_dir
        self._sessions_dir_resolved = sessions_dir.resolve()
        self.max_count = max(1, int(max_count))
        sessions_dir.mkdir(parents=True, exist_ok=True)
        self._best_effort_chmod(sessions_dir, 0o700)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def persist(self, summary: SessionSummary) -> bool:
        return await asyncio.to_thread(self.save_summary, summary)

    def save_summary(self, summary: SessionSummary) -> bool:
        """Write *summary* to disk and prune old files. Returns success."""
        if not self.is_valid_session_id(summary.session_id):
            logger.error("session_store.invalid_session_id", session_id=summary.session_id)
            return False

        out_path = self.sessions_dir / f"{summary.session_id}.json"
        try:
            out_path.write_text(summary.model_dump_json(indent=2), encoding="utf-8")
            self._best_effort_chmod(out_path, 0o600)
        except OSError as e:
            logger.error("session_store.write_failed", path=str(out_path), error=str(e))
            return False

        logger.info(
            "session_store.saved",
            session_id=summary.session_id,
            interaction_count=summary.interaction_count,
        )
        self._prune()
        return True

    def list_summaries(self, limit: int = 10) -> list[dict]:
        """
        Return recent summaries, newest first.

        Each entry: {id, started_at, ended_at, interaction_count, commit_hash}
        """
        files = sorted(
            self.sessions_dir.glob("*.json"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        results = []
        for f in files[:limit]:
            try:
                data = json.loads(f.read_text(encoding="utf-8"))
                commit = data.get("commit") or {}
                results.append({
                    "id": f.stem,
                    "started_at": data.get("started_at", 0.0),
                    "ended_at": data.get("ended_at"),
                    "interaction_count": len(data.get("interactions", [])),
                    "commit_hash": commit.get("commit_hash"),
                })
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("session_store.list_read_error", file=str(f), error=str(e))
        return results

    def load_summary(self, session_id: str) -> SessionSummary:
        """
        Load a summary by session id.

        Raises FileNotFoundError if it does not exist or cannot be parsed.
        """
        if not self.is_valid_session_id(session_id):
            raise FileNotFoundError(f"Session not found: {session_id}")

        path = (self.sessions_dir / f"{session_id}.json").resolve()
        try:
            path.relative_to(self._sessions_dir_resolved)
        except ValueError as e:
            raise FileNotFoundError(f"Session not found: {session_id}") from e

        if not path.exists():
            raise FileNotFoundError(f"Session not found: {session_id}")

        try:
            return SessionSummary.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise FileNotFoundError(f"Cannot read session {session_id}: {e}") from e

    @staticmethod
    def is_valid_session_id(session_id: str) -> bool:
        """Return True when session_id matches the canonical filename format."""
        return bool(SESSION_ID_PATTERN.fullmatch(session_id))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prune(self) -> None:
        """Delete oldest summary files beyond max_count."""
        files = sorted(
            self.sessions_dir.glob("*.json"),
            key=lambda p: p.stat().st_mtime,
        )
        excess = len(files) - self.max_count
        if excess <= 0:
            return
        for f in files[:excess]:
            try:
                f.unlink()
                logger.debug("session_store.pruned", file=str(f))
            except OSError as e:
                logger.warning("session_store.prune_failed", file=str(f), error=str(e))

    @staticmethod
    def _best_effort_chmod(path: Path, mode: int) -> None:
        """Attempt to harden permissions without failing on unsupported filesystems."""
        try:
            path.chmod(mode)
        except OSError:
            logger.debug("session_store.chmod_skipped", path=str(path), mode=oct(mode))
