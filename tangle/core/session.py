from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from PySide6.QtCore import QTimer

from tangle.core.generator import INNER_PADDING
from tangle.core.geometry import Bounds, Point, RopeEnd
from tangle.core.levels import LevelRepository
from tangle.core.progress import MAX_STARS, GameSettings, PlayerProgress, ProgressStore
from tangle.core.puzzle import PuzzleSnapshot, PuzzleState
from tangle.core.timer import TimerController

logger = logging.getLogger(__name__)


class Lifecycle(str, Enum):
    FRESH = "fresh"
    PLAYING = "playing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSnapshot:
    level_index: int
    lifecycle: Lifecycle
    time_remaining: int
    total_time: int
    attempt: int
    stars: Optional[int] = None
    elapsed: Optional[int] = None


def compute_stars(total_time: int, elapsed: int) -> int:
    """Star rating for solving a level in ``elapsed`` of ``total_time`` seconds.

    The budget is split into three equal whole-second thirds: finishing within
    the first earns 3 stars, the second 2, the third 1, later 0. Budgets under
    3 seconds have zero-length thirds, so only an instant solve (elapsed 0)
    earns any stars, and it earns all 3.
    """
    unit = total_time // 3
    elapsed = max(0, elapsed)
    if elapsed <= unit:
        return MAX_STARS
    if elapsed <= unit * 2:
        return 2
    if elapsed <= unit * 3:
        return 1
    return 0


TimerFactory = Callable[[Callable[[], None], int], TimerController]
Defer = Callable[[int, Callable[[], None]], None]


def _qt_defer(delay_ms: int, callback: Callable[[], None]) -> None:
    QTimer.singleShot(delay_ms, callback)


class LevelSession:
    """Life-cycle of one level attempt: fresh -> playing -> completed/failed.

    Each attempt owns its own ``PuzzleState`` and at most one live
    ``TimerController``. Completion and failure each fire at most once per
    attempt; a new attempt (reset, retry, level change) clears both guards.
    """

    def __init__(
        self,
        levels: LevelRepository,
        progress: ProgressStore,
        bounds: Bounds,
        *,
        seed: Optional[int] = None,
        timer_factory: Optional[TimerFactory] = None,
        defer: Optional[Defer] = None,
        on_change: Optional[Callable[[], None]] = None,
        auto_start: bool = True,
    ) -> None:
        self._levels = levels
        self._progress = progress
        self._bounds = bounds
        self._seed = seed
        self._timer_factory = timer_factory or TimerController
        self._defer = defer or _qt_defer
        self._on_change = on_change
        self._auto_start = auto_start

        self._puzzle = PuzzleState()
        self._timer: Optional[TimerController] = None
        self._suspended = False

        self._level_index = max(1, min(levels.max_level, progress.current_level))
        self._lifecycle = Lifecycle.FRESH
        self._total_time = levels.get(self._level_index).time_limit
        self._time_remaining = self._total_time
        self._attempt = 0
        self._completion_fired = False
        self._failure_fired = False
        self._stars: Optional[int] = None
        self._elapsed: Optional[int] = None

    # -- read side ---------------------------------------------------------

    @property
    def level_index(self) -> int:
        return self._level_index

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def time_remaining(self) -> int:
        return self._time_remaining

    @property
    def total_time(self) -> int:
        return self._total_time

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def active_timer(self) -> Optional[TimerController]:
        return self._timer

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            level_index=self._level_index,
            lifecycle=self._lifecycle,
            time_remaining=self._time_remaining,
            total_time=self._total_time,
            attempt=self._attempt,
            stars=self._stars,
            elapsed=self._elapsed,
        )

    def puzzle_snapshot(self) -> PuzzleSnapshot:
        return self._puzzle.snapshot()

    def progress_snapshot(self) -> PlayerProgress:
        return self._progress.get_progress()

    def settings_snapshot(self) -> GameSettings:
        return self._progress.get_settings()

    # -- level selection ---------------------------------------------------

    def load_level(self, index: int) -> None:
        """Begin a new attempt at ``index`` (clamped into the level range)."""
        index = max(1, min(self._levels.max_level, index))
        self._retire_timer()
        self._puzzle.reset()
        self._puzzle = PuzzleState()

        level = self._levels.get(index)
        self._level_index = index
        self._attempt += 1
        self._lifecycle = Lifecycle.FRESH
        self._completion_fired = False
        self._failure_fired = False
        self._stars = None
        self._elapsed = None
        self._total_time = level.time_limit
        self._time_remaining = level.time_limit

        if level.is_generated:
            self._puzzle.initialize(level.rope_count, self._bounds, self._make_rng())
        else:
            self._puzzle.load_ropes(level.place(self._bounds.shrink(INNER_PADDING)), self._bounds)
            if self._puzzle.intersection_count == 0:
                logger.warning("Level %d layout has no crossings in this area; generating one", index)
                self._puzzle.initialize(level.rope_count, self._bounds, self._make_rng())
        self._progress.set_current_level(index)
        logger.info(
            "Level %d attempt %d ready: %d ropes, %d crossings, %ds",
            index,
            self._attempt,
            len(self._puzzle.ropes),
            self._puzzle.intersection_count,
            self._total_time,
        )
        self._notify()

        if self._auto_start:
            attempt = self._attempt
            self._defer(self._levels.config.start_delay_ms, lambda: self._deferred_start(attempt))

    def select_level(self, index: int) -> bool:
        if not self._progress.is_level_unlocked(index) or index > self._levels.max_level:
            logger.info("Level %d is locked", index)
            return False
        self.load_level(index)
        return True

    def advance_level(self) -> bool:
        return self.select_level(min(self._level_index + 1, self._levels.max_level))

    def reset(self) -> None:
        self.load_level(self._level_index)

    def retry(self) -> None:
        self.reset()

    def close(self) -> None:
        """Leave the level: stop the clock and drop the board."""
        self._retire_timer()
        self._puzzle.reset()
        self._puzzle = PuzzleState()
        self._attempt += 1
        self._lifecycle = Lifecycle.FRESH
        self._notify()

    # -- player data -------------------------------------------------------

    def update_settings(self, **changes: bool) -> GameSettings:
        settings = self._progress.update_settings(**changes)
        self._notify()
        return settings

    def reset_progress(self) -> None:
        """Wipe stars and unlocks, then start over from level 1."""
        self._progress.reset()
        logger.info("Progress reset")
        self.load_level(1)

    # -- clock -------------------------------------------------------------

    def start(self) -> bool:
        if self._lifecycle is not Lifecycle.FRESH or not self._puzzle.ropes:
            return False
        self._lifecycle = Lifecycle.PLAYING
        self._retire_timer()
        self._timer = self._timer_factory(self.tick, self._levels.config.tick_interval_ms)
        if self._suspended:
            self._timer.suspend()
        self._timer.start()
        logger.info("Level %d started", self._level_index)
        self._check_completion()
        self._notify()
        return True

    def tick(self) -> None:
        if self._lifecycle is not Lifecycle.PLAYING or self._time_remaining <= 0:
            return
        self._time_remaining -= 1
        if self._time_remaining == 0:
            self._fail()
        self._notify()

    def suspend(self) -> None:
        self._suspended = True
        if self._timer is not None:
            self._timer.suspend()

    def resume(self) -> None:
        self._suspended = False
        if self._timer is not None:
            self._timer.resume()

    # -- board -------------------------------------------------------------

    def update_endpoint(self, rope_id: str, end: RopeEnd, point: Point) -> bool:
        if self._lifecycle not in (Lifecycle.FRESH, Lifecycle.PLAYING):
            return False
        applied = self._puzzle.update_endpoint(rope_id, end, point)
        if applied:
            self._check_completion()
            self._notify()
        return applied

    def begin_drag(self) -> None:
        self._puzzle.begin_drag()

    def end_drag(self) -> None:
        self._puzzle.end_drag()
        if self._check_completion():
            self._notify()

    # -- transitions -------------------------------------------------------

    def _deferred_start(self, attempt: int) -> None:
        if attempt != self._attempt:
            logger.debug("Dropping start for stale attempt %d", attempt)
            return
        self.start()

    def _check_completion(self) -> bool:
        if (
            self._lifecycle is not Lifecycle.PLAYING
            or self._completion_fired
            or self._puzzle.is_dragging
            or not self._puzzle.solved
        ):
            return False
        self._completion_fired = True
        self._retire_timer()
        self._elapsed = self._total_time - self._time_remaining
        self._stars = compute_stars(self._total_time, self._elapsed)
        self._lifecycle = Lifecycle.COMPLETED
        self._progress.record_completion(self._level_index, self._stars)
        logger.info(
            "Level %d completed in %ds with %d stars",
            self._level_index,
            self._elapsed,
            self._stars,
        )
        return True

    def _fail(self) -> None:
        if self._lifecycle is not Lifecycle.PLAYING or self._failure_fired:
            return
        self._failure_fired = True
        self._retire_timer()
        self._lifecycle = Lifecycle.FAILED
        logger.info("Level %d failed: time ran out", self._level_index)

    def _retire_timer(self) -> None:
        if self._timer is not None:
            self._timer.retire()
            self._timer = None

    def _make_rng(self) -> random.Random:
        if self._seed is None:
            return random.Random()
        return random.Random(f"{self._seed}:{self._level_index}:{self._attempt}")

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
