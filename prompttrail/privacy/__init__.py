"""Privacy module: keeping secrets and sensitive files out of recorded sessions."""

from prompttrail.privacy.paths import PathSensitivityClassifier
from prompttrail.privacy.redaction import REDACTION_MARKER, SecretRedactor
from prompttrail.privacy.sanitizer import ContentSanitizer, SanitizedRecord

__all__ = [
    "REDACTION_MARKER",
    "ContentSanitizer",
    "PathSensitivityClassifier",
    "SanitizedRecord",
    "SecretRedactor",
]
