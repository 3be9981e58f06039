from __future__ import annotations

from poll_app.core.models import HistoryEntry
from poll_app.core.services.history_log import HistoryLog


def _entry(index: int) -> HistoryEntry:
    return HistoryEntry(
        id=f"q{index}",
        text=f"Question {index}",
        options=("a", "b"),
        results=(index, 0),
        started_at_ms=index,
        time_limit_sec=60,
    )


def test_newest_entry_comes_first():
    log = HistoryLog()
    log.record(_entry(1))
    log.record(_entry(2))

    assert [entry.id for entry in log.entries()] == ["q2", "q1"]


def test_eleventh_entry_evicts_the_oldest():
    log = HistoryLog()
    for index in range(1, 12):
        log.record(_entry(index))

    ids = [entry.id for entry in log.entries()]
    assert len(log) == 10
    assert ids[0] == "q11"
    assert "q1" not in ids


def test_restored_entries_keep_order_and_cap():
    entries = [_entry(index) for index in range(12, 0, -1)]

    log = HistoryLog(entries)

    assert [entry.id for entry in log.entries()] == [f"q{index}" for index in range(12, 2, -1)]


def test_entries_view_is_read_only_snapshot():
    log = HistoryLog()
    log.record(_entry(1))
    view = log.entries()
    log.record(_entry(2))

    assert isinstance(view, tuple)
    assert len(view) == 1
