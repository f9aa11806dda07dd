"""Session lifecycle: monitoring, quality scoring, summaries and local storage."""

from prompttrail.session.monitor import CorrelationOutcome, SessionMonitor
from prompttrail.session.quality import DefaultQualityPolicy, QualityPolicy, analyze_session
from prompttrail.session.store import Persister, SessionStore
from prompttrail.session.summary import SessionSummary

__all__ = [
    "CorrelationOutcome",
    "DefaultQualityPolicy",
    "Persister",
    "QualityPolicy",
    "SessionMonitor",
    "SessionStore",
    "SessionSummary",
    "analyze_session",
]
