from datetime import datetime

from pomodoro.core.events import EventBus
from pomodoro.data.models import PomodoroStats
from pomodoro.data.recorder import SessionRecorder, replay
from pomodoro.data.storage import Storage

from conftest import make_session

NOW = datetime(2026, 3, 10, 12, 0)


def test_record_appends_and_updates_stats(recorder: SessionRecorder) -> None:
    session_id = recorder.record(
        datetime(2026, 3, 10, 9, 0, 0, 400000),
        datetime(2026, 3, 10, 9, 25, 0, 900000),
        1500,
        True,
    )

    sessions = recorder.sessions()
    stats = recorder.stats()

    assert [session.id for session in sessions] == [session_id]
    assert sessions[0].start_time == datetime(2026, 3, 10, 9, 0)
    assert stats.total_sessions == 1
    assert stats.total_time == 1500.0
    assert stats.most_productive_day == "2026-03-10"
    assert stats.most_productive_day_count == 1
    assert stats.last_updated == NOW


def test_breaks_are_recorded_but_not_counted(recorder: SessionRecorder) -> None:
    recorder.record(datetime(2026, 3, 10, 9, 25), datetime(2026, 3, 10, 9, 30), 300, False)

    assert len(recorder.sessions()) == 1
    assert recorder.stats().total_sessions == 0
    assert recorder.stats().total_time == 0.0


def test_incremental_stats_match_replay(recorder: SessionRecorder) -> None:
    sessions = [
        make_session("2026-03-08T09:00:00"),
        make_session("2026-03-09T09:00:00"),
        make_session("2026-03-09T10:00:00"),
        make_session("2026-03-09T10:30:00", minutes=5, is_completed=False),
        make_session("2026-03-10T09:00:00"),
    ]
    for session in sessions:
        recorder.merge([session])

    stats = recorder.stats()

    assert stats == replay(sessions, NOW)
    assert stats.most_productive_day == "2026-03-09"
    assert stats.most_productive_day_count == 2


def test_merge_skips_known_ids(recorder: SessionRecorder) -> None:
    session = make_session("2026-03-10T09:00:00")

    assert recorder.merge([session]) == [session]
    assert recorder.merge([session, session]) == []
    assert recorder.stats().total_sessions == 1


def test_merge_keeps_history_sorted(recorder: SessionRecorder) -> None:
    late = make_session("2026-03-10T11:00:00")
    early = make_session("2026-03-10T08:00:00")

    recorder.merge([late])
    recorder.merge([early])

    assert [session.id for session in recorder.sessions()] == [early.id, late.id]


def test_session_added_event(recorder: SessionRecorder, events: EventBus) -> None:
    seen = []
    events.session_added.connect(seen.append)

    session = make_session("2026-03-10T09:00:00")
    recorder.merge([session])
    recorder.merge([session])

    assert seen == [session]


def test_history_survives_reload(storage: Storage, recorder: SessionRecorder) -> None:
    recorder.merge([make_session("2026-03-10T09:00:00"), make_session("2026-03-10T10:00:00")])

    fresh = SessionRecorder(storage, clock=lambda: NOW)

    assert len(fresh.sessions()) == 2
    assert fresh.stats() == recorder.stats()


def test_clear_older_than_replays_remaining(recorder: SessionRecorder) -> None:
    old = make_session("2026-02-01T09:00:00")
    kept = [make_session("2026-03-09T09:00:00"), make_session("2026-03-10T09:00:00")]
    recorder.merge([old, *kept])
    recorder.mark_synced(datetime(2026, 3, 10, 11, 0))

    removed = recorder.clear_older_than(datetime(2026, 3, 1))

    assert removed == [old.id]
    assert [session.id for session in recorder.sessions()] == [session.id for session in kept]
    assert recorder.stats() == replay(kept, NOW, datetime(2026, 3, 10, 11, 0))
    assert recorder.stats().total_sessions == 2


def test_clear_older_than_with_nothing_old(recorder: SessionRecorder) -> None:
    recorder.merge([make_session("2026-03-10T09:00:00")])
    assert recorder.clear_older_than(datetime(2026, 1, 1)) == []
    assert len(recorder.sessions()) == 1


def test_clear_all_zeroes_stats(storage: Storage, recorder: SessionRecorder, events: EventBus) -> None:
    cleared = []
    events.history_cleared.connect(lambda: cleared.append(True))
    sessions = [make_session("2026-03-09T09:00:00"), make_session("2026-03-10T09:00:00")]
    recorder.merge(sessions)

    removed = recorder.clear_all()

    assert sorted(removed) == sorted(session.id for session in sessions)
    assert recorder.sessions() == []
    assert recorder.stats() == PomodoroStats(last_updated=NOW)
    assert storage.list_sessions() == []
    assert cleared == [True]


def test_corrupt_stats_blob_starts_from_zero(storage: Storage) -> None:
    storage.save_stats({"total_sessions": "lots"})

    recorder = SessionRecorder(storage, clock=lambda: NOW)

    assert recorder.stats() == PomodoroStats()


def test_recalculate_stats_repairs_cache(storage: Storage) -> None:
    sessions = [make_session("2026-03-09T09:00:00"), make_session("2026-03-10T09:00:00")]
    storage.insert_sessions(sessions)
    recorder = SessionRecorder(storage, clock=lambda: NOW)
    assert recorder.stats().total_sessions == 0

    stats = recorder.recalculate_stats()

    assert stats == replay(sessions, NOW)
    assert PomodoroStats.from_dict(storage.get_stats()) == stats


def test_completed_work_count_on(recorder: SessionRecorder) -> None:
    recorder.merge(
        [
            make_session("2026-03-10T09:00:00"),
            make_session("2026-03-10T09:25:00", minutes=5, is_completed=False),
            make_session("2026-03-10T10:00:00"),
            make_session("2026-03-09T10:00:00"),
        ]
    )

    assert recorder.completed_work_count_on(datetime(2026, 3, 10).date()) == 2
