"""
Shared fixtures for the PromptTrail test suite.

Provides redactors, classifiers, commit metadata and an in-memory persister
so individual test modules can focus on behavior rather than setup.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from prompttrail.privacy.paths import PathSensitivityClassifier
from prompttrail.privacy.redaction import SecretRedactor
from prompttrail.privacy.sanitizer import ContentSanitizer
from prompttrail.session.summary import SessionSummary
from prompttrail.types import CommitInfo, FileContext


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_prompttrail_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep PROMPTTRAIL_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("PROMPTTRAIL_"):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Privacy fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def redactor() -> SecretRedactor:
    return SecretRedactor(sensitivity_level="balanced")


@pytest.fixture()
def classifier() -> PathSensitivityClassifier:
    return PathSensitivityClassifier()


@pytest.fixture()
def sanitizer(redactor: SecretRedactor, classifier: PathSensitivityClassifier) -> ContentSanitizer:
    return ContentSanitizer(redactor=redactor, classifier=classifier)


@pytest.fixture()
def project_root(tmp_path: Path) -> Path:
    """A project directory with a small .gitignore."""
    root = tmp_path / "project"
    root.mkdir()
    (root / ".gitignore").write_text(
        "# build output\n"
        "dist/\n"
        "temp_*\n"
        "\n"
        "*.log\n",
        encoding="utf-8",
    )
    return root


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------

def make_commit(**overrides) -> CommitInfo:
    fields = {
        "commit_hash": "3f2c1a9e8b7d6c5f4e3d2c1b0a9f8e7d6c5b4a39",
        "branch": "main",
        "author": "Dev Person <dev@example.com>",
        "repository": "example/repo",
        "changed_files": ("src/app.py", "README.md"),
        "message": "Add request logging",
    }
    fields.update(overrides)
    return CommitInfo(**fields)


@pytest.fixture()
def commit_info() -> CommitInfo:
    return make_commit()


@pytest.fixture()
def commit_factory():
    """Build CommitInfo values with selected fields overridden."""
    return make_commit


@pytest.fixture()
def app_context() -> FileContext:
    return FileContext(file_path="src/app.py", language="python", content="print('hi')")


class RecordingPersister:
    """In-memory persister that records every summary it is handed."""

    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.summaries: list[SessionSummary] = []
        self.gate: asyncio.Event | None = None

    async def persist(self, summary: SessionSummary) -> bool:
        self.summaries.append(summary)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture()
def persister() -> RecordingPersister:
    return RecordingPersister()
