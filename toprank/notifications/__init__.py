"""Toprank – Out-of-band notifications."""

from .notifier import RunNotifier, Severity, SoftDeadline

__all__ = ["RunNotifier", "Severity", "SoftDeadline"]
