"""Segment geometry for ropes: intersection tests and crossing counts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

PARALLEL_EPSILON = 1e-4


@dataclass(frozen=True)
class Point:
    x: float
    y: float


class RopeEnd(str, Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned play area. Every rope endpoint must stay inside it."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def __post_init__(self) -> None:
        if not (self.min_x < self.max_x and self.min_y < self.max_y):
            raise ValueError(
                f"Invalid bounds: x=[{self.min_x}, {self.max_x}] y=[{self.min_y}, {self.max_y}]"
            )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return Point((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def contains(self, point: Point) -> bool:
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y

    def clamp(self, point: Point) -> Point:
        return Point(
            max(self.min_x, min(self.max_x, point.x)),
            max(self.min_y, min(self.max_y, point.y)),
        )

    def project(self, point: Point, target: "Bounds") -> Point:
        """Map ``point`` from this rectangle onto the same relative spot in ``target``."""
        return Point(
            target.min_x + (point.x - self.min_x) / self.width * target.width,
            target.min_y + (point.y - self.min_y) / self.height * target.height,
        )

    def shrink(self, padding: float) -> "Bounds":
        """Return these bounds inset by ``padding`` on every side.

        The inset is capped at a quarter of each span so small areas keep a
        non-empty interior.
        """
        pad_x = max(0.0, min(padding, self.width / 4.0))
        pad_y = max(0.0, min(padding, self.height / 4.0))
        return Bounds(
            min_x=self.min_x + pad_x,
            max_x=self.max_x - pad_x,
            min_y=self.min_y + pad_y,
            max_y=self.max_y - pad_y,
        )


@dataclass
class Rope:
    """A segment with two movable endpoints.

    ``id`` and ``color`` are fixed at creation; ``start`` and ``end`` are
    replaced as the player drags.
    """

    id: str
    start: Point
    end: Point
    color: str

    def endpoint(self, which: RopeEnd) -> Point:
        return self.start if which is RopeEnd.START else self.end

    def set_endpoint(self, which: RopeEnd, point: Point) -> None:
        if which is RopeEnd.START:
            self.start = point
        else:
            self.end = point

    def length(self) -> float:
        return ((self.end.x - self.start.x) ** 2 + (self.end.y - self.start.y) ** 2) ** 0.5

    def copy(self) -> "Rope":
        return Rope(id=self.id, start=self.start, end=self.end, color=self.color)


def intersects(a_start: Point, a_end: Point, b_start: Point, b_end: Point) -> bool:
    """Return True if segment a and segment b share at least one point.

    Near-parallel pairs (|denominator| below ``PARALLEL_EPSILON``) never
    intersect, including collinear overlaps. Touching endpoints do.
    """
    x1, y1 = a_start.x, a_start.y
    x2, y2 = a_end.x, a_end.y
    x3, y3 = b_start.x, b_start.y
    x4, y4 = b_end.x, b_end.y

    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < PARALLEL_EPSILON:
        return False

    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom
    return 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0


def ropes_intersect(a: Rope, b: Rope) -> bool:
    return intersects(a.start, a.end, b.start, b.end)


def count_crossings(ropes: Sequence[Rope]) -> int:
    """Number of unordered rope pairs that intersect."""
    count = 0
    for i in range(len(ropes)):
        for j in range(i + 1, len(ropes)):
            if ropes_intersect(ropes[i], ropes[j]):
                count += 1
    return count


def is_untangled(ropes: Sequence[Rope]) -> bool:
    return len(ropes) > 0 and count_crossings(ropes) == 0
