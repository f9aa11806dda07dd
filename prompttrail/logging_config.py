"""Logging setup for PromptTrail entry points.

Every module logs through ``structlog.get_logger(__name__)``. Hosts that embed
PromptTrail call ``configure_logging()`` once before creating a monitor so
that captured prompts and responses never reach log output in plaintext.
"""

from __future__ import annotations

import functools
import logging

import structlog

SENSITIVE_LOG_KEYS = frozenset({"prompt", "response", "content", "text", "message"})
MAX_DISPLAY_LEN = 80


@functools.lru_cache(maxsize=1)
def _get_log_redactor():  # noqa: ANN202
    from prompttrail.privacy.redaction import SecretRedactor

    # Logs get the most aggressive catalog regardless of user sensitivity.
    return SecretRedactor(sensitivity_level="strict")


def _log_redact(text: str) -> str:
    return _get_log_redactor().redact(text)


def _redact_sensitive_fields(logger, method_name, event_dict):
    """
    Structlog processor that redacts sensitive fields from log output.

    Secrets are replaced before truncation so that full tokens are never
    written anywhere.
    """
    for key in SENSITIVE_LOG_KEYS:
        if key in event_dict:
            val = event_dict[key]
            if isinstance(val, str):
                val = _log_redact(val)
                if len(val) > MAX_DISPLAY_LEN:
                    val = val[:MAX_DISPLAY_LEN] + "... [truncated]"
                event_dict[key] = val

    return event_dict


_logging_configured = False


def configure_logging(level: int = logging.WARNING) -> None:
    """Configure structlog and standard-library logging.

    Safe to call more than once; subsequent calls are no-ops.
    """
    global _logging_configured  # noqa: PLW0603
    if _logging_configured:
        return
    _logging_configured = True

    logging.basicConfig(format="%(message)s", level=level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            _redact_sensitive_fields,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
