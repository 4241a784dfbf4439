"""
Toprank: Tests for Run Notifications and the Soft Deadline
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

import apprise
import pytest

from toprank.notifications.notifier import RunNotifier, Severity, SoftDeadline


class _FakeApprise:
    def __init__(self, accept: bool = True, deliver: bool = True) -> None:
        self.accept = accept
        self.deliver = deliver
        self.urls: List[str] = []
        self.sent: List[Dict[str, Any]] = []

    def add(self, url: str) -> bool:
        if self.accept:
            self.urls.append(url)
        return self.accept

    def notify(self, **kwargs: Any) -> bool:
        self.sent.append(kwargs)
        return self.deliver


class TestRunNotifier:
    def test_without_urls_notifications_are_log_only(self, caplog: pytest.LogCaptureFixture) -> None:
        notifier = RunNotifier()

        with caplog.at_level(logging.INFO, logger="toprank"):
            assert notifier.notify("Run completed", "all good") is True

        assert not notifier.enabled
        assert "Run completed" in caplog.text

    def test_failure_is_logged_at_error_level(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="toprank"):
            RunNotifier().notify("Run failed", "boom", Severity.FAILURE)

        assert any(r.levelno == logging.ERROR and "Run failed" in r.getMessage() for r in caplog.records)

    def test_delivers_through_apprise_with_mapped_type(self) -> None:
        app = _FakeApprise()
        notifier = RunNotifier(urls=["json://localhost"], app=app)  # type: ignore[arg-type]

        assert notifier.enabled
        assert notifier.notify("Issues", "details", Severity.WARNING) is True
        assert app.sent == [{"title": "Issues", "body": "details", "notify_type": apprise.NotifyType.WARNING}]

    def test_delivery_failure_is_reported_not_raised(self) -> None:
        notifier = RunNotifier(urls=["json://localhost"], app=_FakeApprise(deliver=False))  # type: ignore[arg-type]
        assert notifier.notify("Issues", "details") is False

    def test_invalid_urls_are_ignored(self) -> None:
        notifier = RunNotifier(urls=["not-a-url"], app=_FakeApprise(accept=False))  # type: ignore[arg-type]
        assert not notifier.enabled


class TestSoftDeadline:
    def test_fires_once_after_timeout(self) -> None:
        expired = threading.Event()
        deadline = SoftDeadline(0.01, expired.set).start()

        assert expired.wait(timeout=5.0)
        assert deadline.fired.is_set()
        deadline.cancel()

    def test_cancel_before_timeout_prevents_firing(self) -> None:
        calls: List[int] = []

        with SoftDeadline(30.0, lambda: calls.append(1)) as deadline:
            pass

        assert not deadline.fired.is_set()
        assert calls == []

    def test_non_positive_timeout_is_disabled(self) -> None:
        calls: List[int] = []

        with SoftDeadline(0, lambda: calls.append(1)) as deadline:
            pass

        assert not deadline.fired.wait(timeout=0.05)
        assert calls == []
