from dataclasses import replace
from datetime import datetime

from pomodoro.core.settings import TimerSettings
from pomodoro.core.timer import Phase, PomodoroTimer


def run_interval(timer: PomodoroTimer, now: float):
    """Starts the current interval at ``now`` and ticks it to completion."""
    timer.start(now=now)
    total = timer.total_seconds
    return timer.tick(now + total), now + total


def test_initial_state_is_paused_work() -> None:
    timer = PomodoroTimer()
    snapshot = timer.snapshot(0.0)

    assert snapshot.phase == Phase.WORK
    assert snapshot.is_running is False
    assert snapshot.remaining_seconds == 1500
    assert snapshot.total_seconds == 1500
    assert snapshot.progress == 1.0
    assert snapshot.time_text == "25:00"


def test_pause_is_idempotent() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)
    timer.pause(now=100.0)
    first = timer.snapshot(150.0)

    timer.pause(now=200.0)
    second = timer.snapshot(250.0)

    assert first.remaining_seconds == second.remaining_seconds == 1400
    assert first.accumulated_elapsed == second.accumulated_elapsed == 100.0


def test_pause_resume_keeps_elapsed_stable() -> None:
    timer = PomodoroTimer()
    timer.start(now=10.0)
    timer.pause(now=15.0)
    frozen = timer.snapshot(60.0)
    timer.start(now=60.0)
    resumed = timer.snapshot(62.0)

    assert frozen.remaining_seconds == 1495
    assert resumed.remaining_seconds == 1493


def test_background_time_is_credited_from_wall_clock() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)

    left = timer.suspend(now=0.0)
    timer.resume(now=400.0)

    assert left == 1500
    assert timer.snapshot(400.0).remaining_seconds == 1100
    assert timer.tick(400.0) is None


def test_suspend_while_paused_needs_no_backstop() -> None:
    timer = PomodoroTimer()
    assert timer.suspend(now=0.0) is None


def test_interval_finished_in_background_completes_on_resume() -> None:
    timer = PomodoroTimer(TimerSettings(work_minutes=1))
    timer.start(now=0.0)
    timer.suspend(now=10.0)
    timer.resume(now=100.0)

    completion = timer.tick(100.0)

    assert completion is not None
    assert completion.finished_phase == Phase.WORK
    assert completion.ended_at == datetime.fromtimestamp(60.0)
    assert timer.phase == Phase.BREAK


def test_no_completion_until_precise_elapsed_reaches_total() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)

    assert timer.snapshot(1499.6).remaining_seconds == 0
    assert timer.tick(1499.6) is None
    assert timer.tick(1500.0) is not None


def test_remaining_is_rounded_to_nearest_second() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)

    assert timer.snapshot(0.4).remaining_seconds == 1500
    assert timer.snapshot(0.6).remaining_seconds == 1499


def test_recorded_duration_is_nominal_length_and_excludes_pause() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)
    timer.pause(now=100.0)
    timer.start(now=400.0)

    completion = timer.tick(1800.0)

    assert completion is not None
    assert completion.duration_seconds == 1500
    assert completion.started_at == datetime.fromtimestamp(0.0)
    assert completion.ended_at == datetime.fromtimestamp(1800.0)
    assert completion.was_work is True


def test_long_break_every_fourth_work_interval() -> None:
    settings = TimerSettings(sessions_until_long_break=4)
    timer = PomodoroTimer(settings)
    now = 0.0
    long_breaks = []

    for number in range(1, 13):
        completion, now = run_interval(timer, now)
        assert completion.finished_phase == Phase.WORK
        if completion.long_break:
            long_breaks.append(number)
            assert timer.total_seconds == settings.long_break_seconds
        else:
            assert timer.total_seconds == settings.short_break_seconds
        completion, now = run_interval(timer, now)
        assert completion.finished_phase == Phase.BREAK
        assert completion.was_work is False
        assert timer.phase == Phase.WORK

    assert long_breaks == [4, 8, 12]
    assert timer.completed_work_count == 12


def test_running_interval_ignores_config_change() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)

    kept = timer.apply_settings(replace(timer.settings, work_minutes=10))
    snapshot = timer.snapshot(100.0)

    assert kept is True
    assert snapshot.total_seconds == 1500
    assert snapshot.remaining_seconds == 1400

    assert timer.tick(1500.0) is not None
    run_interval(timer, 1500.0)
    assert timer.phase == Phase.WORK
    assert timer.total_seconds == 600


def test_paused_config_change_rebuilds_interval() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)
    timer.pause(now=100.0)

    kept = timer.apply_settings(replace(timer.settings, work_minutes=10))
    snapshot = timer.snapshot(200.0)

    assert kept is False
    assert snapshot.total_seconds == 600
    assert snapshot.remaining_seconds == 600
    assert snapshot.accumulated_elapsed == 0.0


def test_paused_flag_change_keeps_elapsed() -> None:
    timer = PomodoroTimer()
    timer.start(now=0.0)
    timer.pause(now=600.0)

    kept = timer.apply_settings(replace(timer.settings, sound_enabled=False, auto_start_breaks=True))
    snapshot = timer.snapshot(700.0)

    assert kept is False
    assert timer.settings.auto_start_breaks is True
    assert snapshot.total_seconds == 1500
    assert snapshot.remaining_seconds == 900
    assert snapshot.accumulated_elapsed == 600.0

    timer.start(now=700.0)
    assert timer.tick(1600.0) is not None


def test_auto_start_break_keeps_running() -> None:
    timer = PomodoroTimer(TimerSettings(auto_start_breaks=True))
    completion, now = run_interval(timer, 0.0)

    assert completion.auto_started is True
    assert timer.is_running is True
    assert timer.phase == Phase.BREAK
    assert timer.snapshot(now + 60).remaining_seconds == 240


def test_without_auto_start_next_interval_waits() -> None:
    timer = PomodoroTimer()
    completion, now = run_interval(timer, 0.0)

    assert completion.auto_started is False
    assert timer.is_running is False
    assert timer.snapshot(now + 60).remaining_seconds == 300


def test_reset_keeps_completed_count() -> None:
    timer = PomodoroTimer()
    run_interval(timer, 0.0)
    timer.start(now=2000.0)

    timer.reset()
    snapshot = timer.snapshot(2100.0)

    assert snapshot.phase == Phase.WORK
    assert snapshot.is_running is False
    assert snapshot.remaining_seconds == 1500
    assert snapshot.accumulated_elapsed == 0.0
    assert snapshot.completed_work_count == 1


def test_seeded_count_drives_cadence() -> None:
    timer = PomodoroTimer(TimerSettings(sessions_until_long_break=4))
    timer.seed_completed_count(3)

    completion, _ = run_interval(timer, 0.0)

    assert completion.long_break is True
    assert timer.snapshot(0.0).is_long_break is True
