from __future__ import annotations

import logging
import math
import random
from typing import List, Optional

from tangle.core.geometry import Bounds, Point, Rope, count_crossings

logger = logging.getLogger(__name__)

ROPE_COLORS = (
    "#E74C3C",  # red
    "#3498DB",  # blue
    "#2ECC71",  # green
    "#F39C12",  # orange
    "#9B59B6",  # purple
    "#E67E22",  # dark orange
    "#1ABC9C",  # turquoise
    "#34495E",  # dark blue
    "#F1C40F",  # yellow
    "#E91E63",  # pink
)

INNER_PADDING = 20.0
MAX_ADJUST_ATTEMPTS = 15
ADJUST_FRACTION = 0.1
MAX_ADJUST_OFFSET = 25.0

_RADIUS_FACTOR = 0.4
_ANGLE_JITTER = 0.15
_RADIUS_JITTER = 0.1


def generate_crossed_ropes(
    rope_count: int,
    bounds: Bounds,
    rng: Optional[random.Random] = None,
    padding: float = INNER_PADDING,
) -> List[Rope]:
    """Lay out ``rope_count`` ropes inside ``bounds`` with at least one crossing.

    Endpoints are placed around the center of the padded area, nudged until
    some pair crosses, and as a last resort the first two ropes are forced
    into an X. Only ``rng`` is used for randomness, so a seeded
    ``random.Random`` reproduces the same layout.
    """
    if rope_count <= 0:
        return []
    if rng is None:
        rng = random.Random()

    area = bounds.shrink(padding)
    center = area.center
    radius = min(area.width, area.height) * _RADIUS_FACTOR

    ropes: List[Rope] = []
    for i in range(rope_count):
        start, end = _place_rope(i, rope_count, center, radius, rng)
        ropes.append(
            Rope(
                id=f"rope{i + 1}",
                start=area.clamp(start),
                end=area.clamp(end),
                color=ROPE_COLORS[i % len(ROPE_COLORS)],
            )
        )

    if rope_count < 2:
        return ropes

    attempts = 0
    while count_crossings(ropes) == 0 and attempts < MAX_ADJUST_ATTEMPTS:
        for rope in ropes:
            _nudge(rope, area, rng)
        attempts += 1

    if count_crossings(ropes) == 0:
        logger.debug(
            "No crossing after %d adjustments for %d ropes; forcing an X",
            attempts,
            rope_count,
        )
        _force_cross(ropes, center, radius)

    return ropes


def _polar(center: Point, angle: float, distance: float) -> Point:
    return Point(center.x + math.cos(angle) * distance, center.y + math.sin(angle) * distance)


def _place_rope(
    index: int,
    rope_count: int,
    center: Point,
    radius: float,
    rng: random.Random,
) -> tuple[Point, Point]:
    def jitter_angle(angle: float) -> float:
        return angle + rng.uniform(-_ANGLE_JITTER, _ANGLE_JITTER)

    def jitter_radius(distance: float) -> float:
        return distance * rng.uniform(1.0 - _RADIUS_JITTER, 1.0)

    if rope_count == 2:
        # two diagonals of a square
        diagonal = math.pi / 4 if index == 0 else 3 * math.pi / 4
        reach = radius * 0.8 * math.sqrt(2)
        start = _polar(center, jitter_angle(diagonal + math.pi), jitter_radius(reach))
        end = _polar(center, jitter_angle(diagonal), jitter_radius(reach))
    elif rope_count == 3:
        angle = jitter_angle(index * 2 * math.pi / 3)
        start = _polar(center, angle, jitter_radius(radius))
        end = _polar(center, jitter_angle(angle + math.pi), jitter_radius(radius * 0.7))
    else:
        base = jitter_angle(index * 2 * math.pi / rope_count)
        offset = jitter_angle(base + math.pi * (0.6 + (index % 3) * 0.2))
        start_radius = radius * (0.8 + (index % 2) * 0.2)
        end_radius = radius * (0.7 + ((index + 1) % 2) * 0.3)
        start = _polar(center, base, jitter_radius(start_radius))
        end = _polar(center, offset, jitter_radius(end_radius))
    return start, end


def _nudge(rope: Rope, area: Bounds, rng: random.Random) -> None:
    limit = min(rope.length() * ADJUST_FRACTION, MAX_ADJUST_OFFSET)
    rope.start = area.clamp(
        Point(rope.start.x + rng.uniform(-limit, limit), rope.start.y + rng.uniform(-limit, limit))
    )
    rope.end = area.clamp(
        Point(rope.end.x + rng.uniform(-limit, limit), rope.end.y + rng.uniform(-limit, limit))
    )


def _force_cross(ropes: List[Rope], center: Point, radius: float) -> None:
    # Only the first pair is moved; the rest keep their generated positions.
    reach = radius * 0.5
    ropes[0].start = Point(center.x - reach, center.y - reach)
    ropes[0].end = Point(center.x + reach, center.y + reach)
    ropes[1].start = Point(center.x - reach, center.y + reach)
    ropes[1].end = Point(center.x + reach, center.y - reach)
