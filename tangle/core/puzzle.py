from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from tangle.core.generator import generate_crossed_ropes
from tangle.core.geometry import Bounds, Point, Rope, RopeEnd, count_crossings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PuzzleSnapshot:
    """Read-only view of the board handed to the presentation layer."""

    ropes: Tuple[Rope, ...]
    intersection_count: int
    solved: bool


class PuzzleState:
    """Ropes of the current attempt plus their crossing count.

    The count is recomputed over every pair after each mutation, never
    patched incrementally.
    """

    def __init__(self) -> None:
        self._ropes: List[Rope] = []
        self._bounds: Optional[Bounds] = None
        self._intersection_count = 0
        self._drag_depth = 0

    @property
    def ropes(self) -> List[Rope]:
        return [rope.copy() for rope in self._ropes]

    @property
    def bounds(self) -> Optional[Bounds]:
        return self._bounds

    @property
    def intersection_count(self) -> int:
        return self._intersection_count

    @property
    def solved(self) -> bool:
        return self._intersection_count == 0 and len(self._ropes) > 0

    @property
    def is_dragging(self) -> bool:
        return self._drag_depth > 0

    def initialize(
        self,
        rope_count: int,
        bounds: Bounds,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Replace the board with a freshly generated tangled layout."""
        self.reset()
        self._bounds = bounds
        self._ropes = generate_crossed_ropes(rope_count, bounds, rng)
        self._recount()
        logger.debug(
            "Generated %d ropes with %d crossings", len(self._ropes), self._intersection_count
        )

    def load_ropes(self, ropes: Iterable[Rope], bounds: Bounds) -> None:
        """Replace the board with a fixed layout, clamped into ``bounds``."""
        self.reset()
        self._bounds = bounds
        self._ropes = [
            Rope(id=r.id, start=bounds.clamp(r.start), end=bounds.clamp(r.end), color=r.color)
            for r in ropes
        ]
        self._recount()

    def update_endpoint(self, rope_id: str, end: RopeEnd, point: Point) -> bool:
        """Move one endpoint. Returns False when ``rope_id`` is not on the board."""
        rope = self._find(rope_id)
        if rope is None or self._bounds is None:
            logger.debug("Ignoring update for unknown rope %r", rope_id)
            return False

        current = rope.endpoint(RopeEnd(end))
        x = point.x if math.isfinite(point.x) else current.x
        y = point.y if math.isfinite(point.y) else current.y
        rope.set_endpoint(RopeEnd(end), self._bounds.clamp(Point(x, y)))
        self._recount()
        return True

    def begin_drag(self) -> None:
        self._drag_depth += 1

    def end_drag(self) -> None:
        self._drag_depth = max(0, self._drag_depth - 1)

    def reset(self) -> None:
        self._ropes = []
        self._bounds = None
        self._intersection_count = 0
        self._drag_depth = 0

    def snapshot(self) -> PuzzleSnapshot:
        return PuzzleSnapshot(
            ropes=tuple(self.ropes),
            intersection_count=self._intersection_count,
            solved=self.solved,
        )

    def _find(self, rope_id: str) -> Optional[Rope]:
        for rope in self._ropes:
            if rope.id == rope_id:
                return rope
        return None

    def _recount(self) -> None:
        self._intersection_count = count_crossings(self._ropes)
