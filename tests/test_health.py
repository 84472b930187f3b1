from __future__ import annotations

import json

from furnicrawl.health import HealthMonitor, HealthState


def test_zero_items_escalate_then_recover(tmp_path) -> None:
    log_path = tmp_path / "health.jsonl"
    monitor = HealthMonitor(run_id="run-1", log_path=log_path)

    for _ in range(3):
        monitor.record_zero_items(context="https://shop.test/c")
    assert monitor.state == HealthState.SUSPECT
    assert monitor.recommended_extra_delay() == 5.0

    for _ in range(3):
        monitor.record_zero_items(context="https://shop.test/c")
    assert monitor.state == HealthState.BLOCKED
    assert monitor.recommended_extra_delay() == 15.0

    monitor.record_items(context="https://shop.test/c", count=24)
    assert monitor.state == HealthState.HEALTHY
    assert monitor.recommended_extra_delay() == 0.0

    events = [json.loads(line)["event"] for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert "state_change" in events
    assert "recovered" in events


def test_product_failures_reset_on_success() -> None:
    monitor = HealthMonitor(run_id="run-2")

    for index in range(3):
        monitor.record_product_failure(url=f"https://shop.test/p/{index}", reason="timeout")
    assert monitor.state == HealthState.SUSPECT

    monitor.record_product_success(url="https://shop.test/p/ok")
    assert monitor.failure_streak == 0
    assert monitor.state == HealthState.HEALTHY


def test_dom_errors_mark_suspect() -> None:
    monitor = HealthMonitor(run_id="run-3")

    monitor.record_dom_error(context="pager", reason="selector missing")
    assert monitor.state == HealthState.HEALTHY
    monitor.record_dom_error(context="pager", reason="selector missing")
    assert monitor.state == HealthState.SUSPECT


def test_monitor_without_log_path_writes_nothing(tmp_path) -> None:
    monitor = HealthMonitor(run_id="run-4")
    monitor.record_product_failure(url="https://shop.test/p/1", reason="boom")
    assert list(tmp_path.iterdir()) == []


def test_unwritable_log_directory_disables_journal(tmp_path) -> None:
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory", encoding="utf-8")

    monitor = HealthMonitor(run_id="run-4", log_path=blocker / "health.jsonl")
    for _ in range(3):
        monitor.record_product_failure(url="https://shop.test/p/x", reason="timeout")

    assert monitor.log_path is None
    assert monitor.state == HealthState.SUSPECT
    assert blocker.read_text(encoding="utf-8") == "not a directory"
