"""
Session summaries: the sanitized payload handed to persistence.

A summary is synthesized from a finalized session and its already-sanitized
interactions, then the rendered Markdown and the commit message are passed
through the redactor once more so nothing assembled here (commit messages in
particular) slips through unredacted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from prompttrail.privacy.sanitizer import ContentSanitizer, SanitizedRecord
from prompttrail.session.quality import analyze_session
from prompttrail.types import CommitInfo, Session

MAX_MARKDOWN_RESPONSE_CHARS = 2000


class SessionSummary(BaseModel):
    """Serializable, sanitized view of one finalized session."""

    session_id: str
    started_at: float
    ended_at: Optional[float] = None
    commit: Optional[dict[str, Any]] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    interactions: list[dict[str, Any]] = Field(default_factory=list)
    total_recorded: int = 0
    evicted_count: int = 0
    insights: dict[str, Any] = Field(default_factory=dict)
    sensitive_content_redacted: bool = False
    markdown: str = ""

    @property
    def interaction_count(self) -> int:
        return len(self.interactions)


def _iso(ts: Optional[float]) -> str:
    if ts is None:
        return "n/a"
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="seconds")


def render_markdown(
    session: Session,
    commit: Optional[CommitInfo],
    records: list[SanitizedRecord],
) -> str:
    lines = [f"# Session {session.session_id}", ""]
    if commit is not None:
        lines += [
            f"**Commit:** {commit.commit_hash}",
            f"**Author:** {commit.author}",
            f"**Branch:** {commit.branch}",
            f"**Message:** {commit.message or 'No commit message'}",
            f"**Repository:** {commit.repository}",
        ]
    lines += [
        f"**Started:** {_iso(session.started_at)}",
        f"**Ended:** {_iso(session.ended_at)}",
        "",
    ]
    if commit is not None:
        lines.append(f"## Changed Files ({len(commit.changed_files)})")
        lines += [f"- {path}" for path in commit.changed_files] or ["_none_"]
        lines.append("")

    lines.append(f"## Interactions ({len(records)})")
    for index, sanitized in enumerate(records, start=1):
        record = sanitized.record
        heading = f"### {index}. [{record.kind.value}] {_iso(record.timestamp)}"
        if record.file_context is not None:
            heading += f" (`{record.file_context.file_path}`)"
        lines += ["", heading, "", "**Prompt:**", "", record.prompt]
        if record.response:
            response = record.response
            if len(response) > MAX_MARKDOWN_RESPONSE_CHARS:
                response = response[:MAX_MARKDOWN_RESPONSE_CHARS] + "\n... (truncated)"
            lines += ["", "**Response:**", "", response]

    lines += ["", "---", "*Recorded by PromptTrail*"]
    return "\n".join(lines)


def build_session_summary(
    session: Session,
    records: list[SanitizedRecord],
    sanitizer: ContentSanitizer,
) -> SessionSummary:
    """Assemble and sanitize the summary for *session*."""
    commit = session.commit_info
    commit_dict: Optional[dict[str, Any]] = None
    redacted = any(r.needs_notice for r in records)

    if commit is not None:
        commit_dict = commit.to_dict()
        if commit.message:
            message, found = sanitizer.sanitize_text(commit.message)
            commit_dict["message"] = message
            redacted = redacted or found

    markdown, found = sanitizer.sanitize_text(render_markdown(session, commit, records))
    redacted = redacted or found

    return SessionSummary(
        session_id=session.session_id,
        started_at=session.started_at,
        ended_at=session.ended_at,
        commit=commit_dict,
        metadata=session.metadata.to_dict(),
        interactions=[r.record.to_dict() for r in records],
        total_recorded=session.total_recorded,
        evicted_count=session.evicted_count,
        insights=analyze_session(session).to_dict(),
        sensitive_content_redacted=redacted,
        markdown=markdown,
    )
