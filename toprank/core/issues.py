"""
Toprank: Non-fatal issue collection

Recoverable failures (an oracle call that fell back to a neutral score,
a benchmark price that could not be fetched) must never interrupt a run.
They are recorded in an :class:`IssueCollector` and surfaced as a single
structured report once the run has finished.

Issues are deduplicated by ``(subject, context, message)`` while keeping
first-seen order, so a repeated failure for the same instrument is
reported once.

Thread safety: Thread-safe (the collector guards its state with a lock
because scorer workers record issues concurrently)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from toprank.core.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class Issue:
    """A single recoverable failure.

    Attributes:
        subject: Short description of what failed (e.g. "Oracle rating failed").
        context: Subject-specific context such as ``"symbol=AAPL"``.
        message: Error message of the underlying exception.
    """

    subject: str
    context: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"subject": self.subject, "context": self.context, "message": self.message}


class IssueCollector:
    """Collect, deduplicate and render recoverable issues for one run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issues: Dict[tuple[str, str, str], Issue] = {}

    def record(self, subject: str, error: object, context: Optional[str] = None) -> Issue:
        """Record a recoverable failure and log it at WARNING level."""

        message = str(error) if not isinstance(error, str) else error
        issue = Issue(subject=subject, context=context or "", message=message)
        key = (issue.subject, issue.context, issue.message)

        with self._lock:
            if key in self._issues:
                return self._issues[key]
            self._issues[key] = issue

        logger.warning("%s [%s]: %s", issue.subject, issue.context, issue.message)
        return issue

    @property
    def issues(self) -> List[Issue]:
        with self._lock:
            return list(self._issues.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._issues)

    def __bool__(self) -> bool:
        return len(self) > 0

    def as_dicts(self) -> List[Dict[str, str]]:
        return [issue.as_dict() for issue in self.issues]

    def render_text(self) -> str:
        """Render the issues as a plain-text report, one line per issue."""

        lines = []
        for issue in self.issues:
            context = f" [{issue.context}]" if issue.context else ""
            lines.append(f"- {issue.subject}{context}: {issue.message}")
        return "\n".join(lines)
