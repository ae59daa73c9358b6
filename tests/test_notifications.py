"""Tests for the default notifier."""

import pytest
import structlog
from structlog.testing import capture_logs

from osquery_nli import notifications
from osquery_nli.notifications import LoggingNotifier


def test_logging_notifier_logs_alert(monkeypatch: pytest.MonkeyPatch):
    with capture_logs() as logs:
        # a fresh logger so a cached one from earlier tests cannot bypass the capture
        monkeypatch.setattr(notifications, "logger", structlog.get_logger())
        LoggingNotifier().deliver("Osquery Alert: Chrome", "Found 2 results", "q-1")

    [entry] = [log for log in logs if log["event"] == "alert_notification"]
    assert entry["title"] == "Osquery Alert: Chrome"
    assert entry["body"] == "Found 2 results"
    assert entry["scheduled_query_id"] == "q-1"
    assert entry["log_level"] == "warning"
