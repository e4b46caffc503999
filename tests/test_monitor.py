"""
Tests for Monitor: counters, cost estimates, health checks and log tailing.
Run with: python -m pytest tests/test_monitor.py -v
"""

import asyncio
import json
import time

import pytest

from senan.config import ERROR_LOG_FILE, LOG_FILE
from senan.monitor import RECENT_ACTIVITY_S, Monitor, format_uptime


@pytest.fixture
def monitor(tmp_path):
    return Monitor(str(tmp_path))


class TestFormatUptime:

    @pytest.mark.parametrize("seconds,expected", [
        (59, "59s"),
        (61, "1m 1s"),
        (3725, "1h 2m"),
        (90061, "1d 1h 1m"),
    ])
    def test_format(self, seconds, expected):
        assert format_uptime(seconds) == expected


class TestTracking:

    def test_message_counts(self, monitor):
        monitor.track_message("ask")
        monitor.track_message("ask")
        monitor.track_message("quiz")
        assert monitor.message_count == 3
        assert monitor.top_commands(1) == [("ask", 2)]

    def test_api_cost(self, monitor):
        cost = monitor.track_api_usage(1000, 1000, "model")
        assert cost == pytest.approx(0.09)
        metrics = monitor.cost_metrics()
        assert metrics["total"]["requests"] == 1
        assert metrics["total"]["tokens"] == 2000
        assert metrics["daily"]["today"]["cost"] == pytest.approx(0.09)

    def test_profile_switch_and_upload(self, monitor):
        monitor.track_profile_switch("locked-down", "casual")
        monitor.track_upload("faq.json", True, "file_1")
        monitor.track_upload("lore.json", False)
        assert monitor.profile_switches == 1
        assert monitor.upload_count == 1

    def test_error_counted(self, monitor):
        monitor.track_error(ValueError("boom"), "test")
        assert monitor.error_count == 1


class TestHealth:

    def test_recent_activity(self, monitor):
        monitor.track_message("ask")
        assert monitor.health()["checks"]["recent_activity"]
        later = time.time() + RECENT_ACTIVITY_S + 60
        assert not monitor.health(now=later)["checks"]["recent_activity"]

    def test_error_rate(self, monitor):
        monitor.track_message("ask")
        monitor.track_error(RuntimeError("x"))
        health = monitor.health()
        assert not health["checks"]["error_rate_healthy"]
        assert not health["healthy"]
        assert health["error_rate"] == 100

    def test_status_shape(self, monitor):
        status = monitor.status()
        assert status["status"] in ("healthy", "unhealthy")
        assert {"uptime", "memory_mb", "messages", "errors", "top_commands"} <= set(status)


class TestRecentLogs:

    def test_reads_json_lines(self, monitor, tmp_path):
        lines = [json.dumps({"level": "INFO", "message": f"m{i}"}) for i in range(5)]
        (tmp_path / LOG_FILE).write_text("\n".join(lines) + "\nnot json\n", encoding="utf-8")
        entries = monitor.recent_logs(limit=3)
        assert [e["message"] for e in entries] == ["m3", "m4", "not json"]
        assert entries[-1]["level"] == "RAW"

    def test_error_log(self, monitor, tmp_path):
        (tmp_path / ERROR_LOG_FILE).write_text(json.dumps({"level": "ERROR", "message": "bad"}) + "\n", encoding="utf-8")
        assert monitor.recent_logs(errors_only=True)[0]["message"] == "bad"

    def test_missing_file(self, monitor):
        assert monitor.recent_logs() == []


class TestPeriodicChecks:

    def test_failing_check_keeps_running(self, monitor):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        async def scenario():
            task = asyncio.create_task(monitor._every(0, flaky))
            for _ in range(50):
                await asyncio.sleep(0)
                if len(calls) >= 2:
                    break
            task.cancel()

        asyncio.run(scenario())
        assert len(calls) >= 2
