"""Tests for tangle.core.session – level life-cycle and star rating."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest

from tangle.core.geometry import Bounds, Point, RopeEnd
from tangle.core.levels import LevelRepository
from tangle.core.progress import ProgressStore
from tangle.core.session import Lifecycle, LevelSession, SessionSnapshot, compute_stars

BOUNDS = Bounds(0, 360, 0, 400)


class FakeTimer:
    """Stands in for TimerController; ticks only when a test calls fire()."""

    def __init__(self, on_tick: Callable[[], None], interval_ms: int) -> None:
        self.on_tick: Optional[Callable[[], None]] = on_tick
        self.interval_ms = interval_ms
        self.running = False
        self.suspended = False
        self.retired = False

    def start(self) -> None:
        if not self.retired:
            self.running = True

    def stop(self) -> None:
        self.running = False

    def suspend(self) -> None:
        self.suspended = True

    def resume(self) -> None:
        self.suspended = False

    def retire(self) -> None:
        self.running = False
        self.retired = True
        self.on_tick = None

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            if self.running and not self.suspended and self.on_tick is not None:
                self.on_tick()


class Harness:
    def __init__(
        self,
        progress_file: Path,
        seed: Optional[int] = None,
        auto_start: bool = False,
        bounds: Bounds = BOUNDS,
        levels: Optional[LevelRepository] = None,
    ) -> None:
        self.timers: List[FakeTimer] = []
        self.deferred: List[Tuple[int, Callable[[], None]]] = []
        self.changes = 0
        self.progress = ProgressStore(progress_file)
        self.session = LevelSession(
            levels or LevelRepository(),
            self.progress,
            bounds,
            seed=seed,
            timer_factory=self._make_timer,
            defer=lambda delay, cb: self.deferred.append((delay, cb)),
            on_change=self._changed,
            auto_start=auto_start,
        )

    def _make_timer(self, on_tick: Callable[[], None], interval_ms: int) -> FakeTimer:
        timer = FakeTimer(on_tick, interval_ms)
        self.timers.append(timer)
        return timer

    def _changed(self) -> None:
        self.changes += 1

    @property
    def timer(self) -> FakeTimer:
        return self.timers[-1]

    def solve_level_one(self) -> None:
        # level 1 placed in BOUNDS: rope1 (65.7,125)->(294.3,275), rope2 (65.7,275)->(294.3,125)
        self.session.update_endpoint("rope2", RopeEnd.END, Point(280, 300))


@pytest.fixture()
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path / "progress.json")


@pytest.fixture()
def playing(harness: Harness) -> Harness:
    harness.session.load_level(1)
    assert harness.session.start()
    return harness


# ---------------------------------------------------------------------------
# compute_stars
# ---------------------------------------------------------------------------

class TestComputeStars:
    @pytest.mark.parametrize(
        "elapsed, stars",
        [(0, 3), (3, 3), (4, 2), (6, 2), (7, 1), (9, 1), (10, 0)],
    )
    def test_nine_second_budget(self, elapsed: int, stars: int):
        assert compute_stars(9, elapsed) == stars

    def test_thirty_second_budget(self):
        assert compute_stars(30, 9) == 3
        assert compute_stars(30, 10) == 3
        assert compute_stars(30, 11) == 2

    def test_unit_truncates(self):
        # unit = 10 // 3 = 3, so the third threshold is 9, not 10
        assert compute_stars(10, 9) == 1
        assert compute_stars(10, 10) == 0

    def test_tiny_budget_only_instant_solve(self):
        assert compute_stars(2, 0) == 3
        assert compute_stars(2, 1) == 0
        assert compute_stars(0, 0) == 3

    def test_negative_elapsed_treated_as_zero(self):
        assert compute_stars(9, -5) == 3


# ---------------------------------------------------------------------------
# Loading a level
# ---------------------------------------------------------------------------

class TestLoadLevel:
    def test_initial_snapshot_before_load(self, harness: Harness):
        snap = harness.session.snapshot()
        assert isinstance(snap, SessionSnapshot)
        assert snap.level_index == 1
        assert snap.lifecycle is Lifecycle.FRESH
        assert snap.attempt == 0
        assert harness.session.puzzle_snapshot().ropes == ()

    def test_start_without_ropes_is_refused(self, harness: Harness):
        assert harness.session.start() is False
        assert harness.session.lifecycle is Lifecycle.FRESH

    def test_fixture_level(self, harness: Harness):
        harness.session.load_level(1)
        s = harness.session
        assert s.lifecycle is Lifecycle.FRESH
        assert s.total_time == 10
        assert s.time_remaining == 10
        assert s.attempt == 1
        puzzle = s.puzzle_snapshot()
        assert [r.id for r in puzzle.ropes] == ["rope1", "rope2"]
        assert puzzle.intersection_count == 1
        assert harness.timers == []
        assert harness.changes == 1

    def test_generated_level(self, harness: Harness):
        harness.progress.record_completion(6, 1)
        harness.session.load_level(7)
        puzzle = harness.session.puzzle_snapshot()
        assert len(puzzle.ropes) == 8
        assert puzzle.intersection_count >= 1
        assert harness.session.total_time == 40

    def test_index_clamped(self, harness: Harness):
        harness.session.load_level(99)
        assert harness.session.level_index == 30
        harness.session.load_level(-2)
        assert harness.session.level_index == 1

    def test_remembers_current_level(self, harness: Harness):
        harness.session.load_level(4)
        assert harness.progress.current_level == 4

    def test_seeded_generation_is_reproducible(self, tmp_path: Path):
        a = Harness(tmp_path / "a.json", seed=7)
        b = Harness(tmp_path / "b.json", seed=7)
        a.session.load_level(12)
        b.session.load_level(12)
        assert a.session.puzzle_snapshot() == b.session.puzzle_snapshot()

    def test_retry_generates_new_layout(self, tmp_path: Path):
        h = Harness(tmp_path / "p.json", seed=7)
        h.session.load_level(12)
        first = h.session.puzzle_snapshot()
        h.session.retry()
        assert h.session.puzzle_snapshot() != first
        assert h.session.puzzle_snapshot().intersection_count >= 1


# ---------------------------------------------------------------------------
# Hand-authored layouts on other play areas
# ---------------------------------------------------------------------------

class TestFixtureLayouts:
    @pytest.mark.parametrize(
        "bounds",
        [
            Bounds(0, 100, 0, 100),
            Bounds(0, 360, 300, 700),
            Bounds(-50, 50, -20, 20),
            Bounds(1000, 1400, 0, 300),
        ],
    )
    @pytest.mark.parametrize("index", range(1, 6))
    def test_starts_tangled_in_any_area(self, tmp_path: Path, bounds: Bounds, index: int):
        h = Harness(tmp_path / "p.json", bounds=bounds)
        h.session.load_level(index)
        puzzle = h.session.puzzle_snapshot()
        assert len(puzzle.ropes) == index + 1
        assert puzzle.intersection_count >= 1
        for rope in puzzle.ropes:
            assert bounds.contains(rope.start)
            assert bounds.contains(rope.end)
        assert h.session.start()
        assert h.session.lifecycle is Lifecycle.PLAYING
        assert h.session.snapshot().stars is None

    def test_untangled_layout_falls_back_to_generator(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ):
        levels_dir = tmp_path / "levels"
        levels_dir.mkdir()
        (levels_dir / "level1.yaml").write_text(
            "title: Parallel\n"
            "ropes:\n"
            "  - {start: [60, 120], end: [300, 120]}\n"
            "  - {start: [60, 280], end: [300, 280]}\n",
            encoding="utf-8",
        )
        h = Harness(tmp_path / "p.json", levels=LevelRepository(levels_dir=levels_dir))
        with caplog.at_level(logging.WARNING, logger="tangle.core.session"):
            h.session.load_level(1)
        puzzle = h.session.puzzle_snapshot()
        assert len(puzzle.ropes) == 2
        assert puzzle.intersection_count >= 1
        assert "no crossings" in caplog.text
        assert h.session.start()
        assert h.session.lifecycle is Lifecycle.PLAYING


# ---------------------------------------------------------------------------
# Auto start after the settle delay
# ---------------------------------------------------------------------------

class TestAutoStart:
    def test_start_is_deferred(self, tmp_path: Path):
        h = Harness(tmp_path / "p.json", auto_start=True)
        h.session.load_level(1)
        assert h.session.lifecycle is Lifecycle.FRESH
        [(delay, callback)] = h.deferred
        assert delay == 500
        callback()
        assert h.session.lifecycle is Lifecycle.PLAYING
        assert h.timer.running
        assert h.timer.interval_ms == 1000

    def test_stale_start_is_ignored(self, tmp_path: Path):
        h = Harness(tmp_path / "p.json", auto_start=True)
        h.session.load_level(1)
        h.session.reset()
        stale, current = h.deferred[0][1], h.deferred[1][1]
        stale()
        assert h.session.lifecycle is Lifecycle.FRESH
        assert h.timers == []
        current()
        assert h.session.lifecycle is Lifecycle.PLAYING
        assert len(h.timers) == 1

    def test_start_after_close_is_ignored(self, tmp_path: Path):
        h = Harness(tmp_path / "p.json", auto_start=True)
        h.session.load_level(1)
        h.session.close()
        h.deferred[0][1]()
        assert h.session.lifecycle is Lifecycle.FRESH
        assert h.timers == []


# ---------------------------------------------------------------------------
# playing -> completed
# ---------------------------------------------------------------------------

class TestCompletion:
    def test_solving_completes(self, playing: Harness):
        playing.timer.fire(2)
        playing.solve_level_one()
        snap = playing.session.snapshot()
        assert snap.lifecycle is Lifecycle.COMPLETED
        assert snap.elapsed == 2
        assert snap.stars == 3
        assert playing.timer.retired
        assert playing.session.active_timer is None

    def test_completes_exactly_once(self, playing: Harness, monkeypatch: pytest.MonkeyPatch):
        calls = []
        real = playing.progress.record_completion
        monkeypatch.setattr(
            playing.progress,
            "record_completion",
            lambda level, stars: calls.append((level, stars)) or real(level, stars),
        )
        playing.solve_level_one()
        playing.session.update_endpoint("rope2", RopeEnd.END, Point(280, 310))
        playing.session.update_endpoint("rope2", RopeEnd.END, Point(280, 320))
        assert playing.session.lifecycle is Lifecycle.COMPLETED
        assert calls == [(1, 3)]

    def test_board_frozen_after_completion(self, playing: Harness):
        playing.solve_level_one()
        assert playing.session.update_endpoint("rope2", RopeEnd.END, Point(280, 150)) is False
        assert playing.session.puzzle_snapshot().solved is True

    def test_not_while_dragging(self, playing: Harness):
        playing.session.begin_drag()
        playing.solve_level_one()
        assert playing.session.lifecycle is Lifecycle.PLAYING
        assert playing.session.puzzle_snapshot().solved is True
        playing.session.end_drag()
        assert playing.session.lifecycle is Lifecycle.COMPLETED

    def test_drag_released_on_tangled_position(self, playing: Harness):
        playing.session.begin_drag()
        playing.solve_level_one()
        playing.session.update_endpoint("rope2", RopeEnd.END, Point(280, 150))
        playing.session.end_drag()
        assert playing.session.lifecycle is Lifecycle.PLAYING

    def test_star_rating_uses_elapsed(self, playing: Harness):
        # budget 10s, unit 3
        playing.timer.fire(5)
        playing.solve_level_one()
        assert playing.session.snapshot().stars == 2

    def test_progress_updated(self, playing: Harness):
        playing.timer.fire(8)
        playing.solve_level_one()
        progress = playing.session.progress_snapshot()
        assert progress.best_stars == {1: 1}
        assert progress.highest_unlocked_level == 2
        assert progress.total_stars == 1

    def test_solved_while_fresh_completes_on_start(self, harness: Harness):
        harness.session.load_level(1)
        harness.solve_level_one()
        assert harness.session.lifecycle is Lifecycle.FRESH
        harness.session.start()
        snap = harness.session.snapshot()
        assert snap.lifecycle is Lifecycle.COMPLETED
        assert snap.stars == 3

    def test_unknown_rope_ignored(self, playing: Harness):
        before = playing.changes
        assert playing.session.update_endpoint("ghost", RopeEnd.START, Point(1, 1)) is False
        assert playing.changes == before


# ---------------------------------------------------------------------------
# playing -> failed
# ---------------------------------------------------------------------------

class TestFailure:
    def test_countdown(self, playing: Harness):
        playing.timer.fire(3)
        assert playing.session.time_remaining == 7
        assert playing.session.lifecycle is Lifecycle.PLAYING

    def test_time_out_fails(self, playing: Harness):
        timer = playing.timer
        timer.fire(10)
        assert playing.session.lifecycle is Lifecycle.FAILED
        assert playing.session.time_remaining == 0
        assert timer.retired

    def test_extra_ticks_after_failure(self, playing: Harness):
        playing.timer.fire(10)
        playing.session.tick()
        playing.session.tick()
        assert playing.session.time_remaining == 0
        assert playing.session.lifecycle is Lifecycle.FAILED

    def test_no_progress_on_failure(self, playing: Harness):
        playing.timer.fire(10)
        assert playing.session.progress_snapshot().best_stars == {}
        assert not playing.progress.is_level_unlocked(2)

    def test_cannot_solve_after_failure(self, playing: Harness):
        playing.timer.fire(10)
        playing.solve_level_one()
        assert playing.session.lifecycle is Lifecycle.FAILED

    def test_tick_ignored_while_fresh(self, harness: Harness):
        harness.session.load_level(1)
        harness.session.tick()
        assert harness.session.time_remaining == 10


# ---------------------------------------------------------------------------
# Reset / retry / level changes
# ---------------------------------------------------------------------------

class TestAttempts:
    def test_retry_after_failure(self, playing: Harness):
        old_timer = playing.timer
        old_timer.fire(10)
        playing.session.retry()
        s = playing.session
        assert s.lifecycle is Lifecycle.FRESH
        assert s.time_remaining == s.total_time == 10
        assert s.attempt == 2
        assert s.snapshot().stars is None
        assert s.start()
        assert playing.timer is not old_timer

    def test_reset_while_playing_retires_timer(self, playing: Harness):
        timer = playing.timer
        playing.session.reset()
        assert timer.retired
        assert playing.session.active_timer is None
        timer.fire()
        assert playing.session.time_remaining == 10

    def test_new_attempt_can_complete_again(self, playing: Harness):
        playing.solve_level_one()
        playing.session.retry()
        playing.session.start()
        playing.timer.fire(4)
        playing.solve_level_one()
        snap = playing.session.snapshot()
        assert snap.lifecycle is Lifecycle.COMPLETED
        assert snap.stars == 2
        # best stays at 3
        assert playing.session.progress_snapshot().best_stars[1] == 3

    def test_only_one_live_timer(self, playing: Harness):
        playing.session.reset()
        playing.session.start()
        playing.session.reset()
        playing.session.start()
        live = [t for t in playing.timers if not t.retired]
        assert len(live) == 1

    def test_advance_after_completion(self, playing: Harness):
        playing.solve_level_one()
        assert playing.session.advance_level() is True
        assert playing.session.level_index == 2
        assert playing.session.lifecycle is Lifecycle.FRESH
        assert len(playing.session.puzzle_snapshot().ropes) == 3

    def test_advance_into_locked_level_refused(self, playing: Harness):
        assert playing.session.advance_level() is False
        assert playing.session.level_index == 1
        assert playing.session.lifecycle is Lifecycle.PLAYING

    def test_select_locked_level(self, harness: Harness):
        harness.session.load_level(1)
        assert harness.session.select_level(5) is False
        assert harness.session.level_index == 1

    def test_select_unlocked_level(self, harness: Harness):
        harness.progress.record_completion(4, 2)
        assert harness.session.select_level(5) is True
        assert harness.session.level_index == 5
        assert len(harness.session.puzzle_snapshot().ropes) == 6

    def test_advance_capped_at_last_level(self, harness: Harness):
        harness.progress.record_completion(29, 3)
        harness.session.select_level(30)
        harness.session.start()
        assert harness.session.advance_level() is True
        assert harness.session.level_index == 30

    def test_close_discards_board(self, playing: Harness):
        timer = playing.timer
        playing.session.close()
        assert timer.retired
        assert playing.session.puzzle_snapshot().ropes == ()
        assert playing.session.lifecycle is Lifecycle.FRESH
        assert playing.session.start() is False


# ---------------------------------------------------------------------------
# Suspend / resume
# ---------------------------------------------------------------------------

class TestSuspendResume:
    def test_suspend_pauses_clock(self, playing: Harness):
        playing.timer.fire(2)
        playing.session.suspend()
        playing.timer.fire(5)
        assert playing.session.time_remaining == 8
        playing.session.resume()
        playing.timer.fire()
        assert playing.session.time_remaining == 7

    def test_suspended_before_start(self, harness: Harness):
        harness.session.load_level(1)
        harness.session.suspend()
        harness.session.start()
        assert harness.timer.suspended
        harness.session.resume()
        assert not harness.timer.suspended

    def test_suspend_without_timer(self, harness: Harness):
        harness.session.suspend()
        harness.session.resume()
        assert harness.session.lifecycle is Lifecycle.FRESH


# ---------------------------------------------------------------------------
# Settings and progress reset
# ---------------------------------------------------------------------------

class TestPlayerData:
    def test_update_settings_notifies(self, harness: Harness):
        settings = harness.session.update_settings(sound_enabled=False, show_hints=False)
        assert settings.sound_enabled is False
        assert harness.session.settings_snapshot() == settings
        assert harness.changes == 1

    def test_unknown_setting_raises(self, harness: Harness):
        with pytest.raises(TypeError):
            harness.session.update_settings(volume=True)
        assert harness.changes == 0

    def test_reset_progress_restarts_at_level_one(self, playing: Harness):
        playing.solve_level_one()
        playing.session.advance_level()
        assert playing.session.start()
        playing.session.update_settings(music_enabled=False)
        timer = playing.timer

        playing.session.reset_progress()

        assert timer.retired
        assert playing.session.level_index == 1
        assert playing.session.lifecycle is Lifecycle.FRESH
        assert playing.session.progress_snapshot().best_stars == {}
        assert playing.progress.current_level == 1
        assert not playing.progress.is_level_unlocked(2)
        assert playing.session.settings_snapshot().music_enabled is False
