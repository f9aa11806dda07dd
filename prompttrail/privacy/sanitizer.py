"""
Content sanitization for whole interaction records.

Composes the secret redactor and the path classifier: prompt and response
are redacted independently, and a file context anchored to a sensitive path
is dropped outright (not just its content) with a warning appended to the
prompt. Sanitization always yields a complete record.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

import structlog

from prompttrail.privacy.paths import PathInput, PathSensitivityClassifier
from prompttrail.privacy.redaction import SecretRedactor
from prompttrail.types import FileContext, Interaction

logger = structlog.get_logger(__name__)

SENSITIVE_FILE_WARNING = "[WARNING: Context from sensitive file was redacted for security]"
IGNORED_FILE_WARNING = "[WARNING: Context from .gitignore file was redacted for security]"


@dataclass(frozen=True)
class SanitizedRecord:
    """A sanitized interaction plus what sanitization had to do to it."""

    record: Interaction
    sensitive_found: bool = False
    file_context_dropped: bool = False
    detector_kinds: tuple[str, ...] = field(default_factory=tuple)

    @property
    def needs_notice(self) -> bool:
        """True when the user should be told something was removed."""
        return self.sensitive_found or self.file_context_dropped


class ContentSanitizer:
    """Sanitizes interaction records before they leave the machine."""

    def __init__(
        self,
        redactor: Optional[SecretRedactor] = None,
        classifier: Optional[PathSensitivityClassifier] = None,
    ) -> None:
        self.redactor = redactor if redactor is not None else SecretRedactor()
        self.classifier = classifier if classifier is not None else PathSensitivityClassifier()

    def sanitize_text(self, text: str) -> tuple[str, bool]:
        return self.redactor.sanitize(text)

    def sanitize_record(
        self,
        record: Interaction,
        project_root: Optional[PathInput] = None,
    ) -> SanitizedRecord:
        """
        Redact prompt, response and retained file content of *record*.

        When the file context's path is sensitive (built-in rules, or the
        project's ignore file when *project_root* is given) the context is
        removed and a fixed warning marker is appended to the prompt.
        """
        kinds: list[str] = []

        prompt_report = self.redactor.scan(record.prompt)
        kinds.extend(prompt_report.kinds_found)
        prompt = prompt_report.text
        found = prompt_report.sensitive_found

        response = record.response
        if response is not None:
            response_report = self.redactor.scan(response)
            response = response_report.text
            found = found or response_report.sensitive_found
            kinds.extend(k for k in response_report.kinds_found if k not in kinds)

        file_context: Optional[FileContext] = record.file_context
        dropped = False
        if file_context is not None:
            verdict = self.classifier.classify(file_context.file_path, project_root)
            if verdict is not None:
                warning = (
                    IGNORED_FILE_WARNING if verdict.reason == "ignore_rule" else SENSITIVE_FILE_WARNING
                )
                prompt = f"{prompt}\n\n{warning}"
                file_context = None
                dropped = True
                logger.info(
                    "content_sanitizer.file_context_dropped",
                    interaction_id=record.interaction_id,
                    reason=verdict.reason,
                    rule=verdict.rule,
                )
            elif file_context.content:
                content_report = self.redactor.scan(file_context.content)
                if content_report.sensitive_found:
                    file_context = replace(file_context, content=content_report.text)
                    found = True
                    kinds.extend(k for k in content_report.kinds_found if k not in kinds)

        if found:
            logger.warning(
                "content_sanitizer.sensitive_content_redacted",
                interaction_id=record.interaction_id,
                kinds=kinds,
            )

        sanitized = replace(record, prompt=prompt, response=response, file_context=file_context)
        return SanitizedRecord(
            record=sanitized,
            sensitive_found=found,
            file_context_dropped=dropped,
            detector_kinds=tuple(kinds),
        )
