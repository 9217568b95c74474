from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from tangle.core.config import GameConfig
from tangle.core.geometry import Bounds, Point, Rope

DEFAULT_LEVELS_DIR = Path(__file__).resolve().parent.parent / "data" / "levels"

# Coordinate frame the level*.yaml layouts are drawn in.
LAYOUT_FRAME = Bounds(40, 320, 80, 320)


@dataclass(frozen=True)
class Level:
    index: int
    name: str
    rope_count: int
    time_limit: int
    layout: Optional[Tuple[Rope, ...]] = None

    @property
    def is_generated(self) -> bool:
        return self.layout is None

    def ropes(self) -> List[Rope]:
        """Fresh copies of the hand-authored layout (empty for generated levels)."""
        return [rope.copy() for rope in self.layout or ()]

    def place(self, area: Bounds) -> List[Rope]:
        """The hand-authored layout scaled from ``LAYOUT_FRAME`` onto ``area``."""
        return [
            Rope(
                id=rope.id,
                start=LAYOUT_FRAME.project(rope.start, area),
                end=LAYOUT_FRAME.project(rope.end, area),
                color=rope.color,
            )
            for rope in self.layout or ()
        ]


class LevelRepository:
    def __init__(self, config: Optional[GameConfig] = None, levels_dir: Optional[Path] = None) -> None:
        self._config = config or GameConfig()
        self._levels_dir = levels_dir or DEFAULT_LEVELS_DIR
        self._levels = self._load_levels()

    @property
    def config(self) -> GameConfig:
        return self._config

    @property
    def max_level(self) -> int:
        return self._config.max_level

    def all(self) -> List[Level]:
        return list(self._levels.values())

    def get(self, index: int) -> Level:
        return self._levels[index]

    def _load_levels(self) -> Dict[int, Level]:
        base_dir = self._levels_dir
        if not base_dir.exists():
            raise FileNotFoundError(f"Levels directory not found: {base_dir}")

        levels: Dict[int, Level] = {}
        for level_path in sorted(base_dir.glob("level*.yaml")):
            m = re.match(r"^level(\d+)$", level_path.stem)
            if not m:
                continue
            index = int(m.group(1))
            if not 1 <= index <= self._config.max_level:
                raise ValueError(f"{level_path.name}: level number outside 1..{self._config.max_level}")
            levels[index] = self._parse_level(level_path, index)

        for index in range(1, self._config.max_level + 1):
            if index not in levels:
                levels[index] = Level(
                    index=index,
                    name=f"Level {index}",
                    rope_count=self._config.rope_count(index),
                    time_limit=self._config.time_limit(index),
                )
        return dict(sorted(levels.items()))

    def _parse_level(self, level_path: Path, index: int) -> Level:
        raw = yaml.safe_load(level_path.read_text(encoding="utf-8"))
        if not raw or not isinstance(raw, dict):
            raise ValueError(f"{level_path.name}: expected YAML with 'title' and 'ropes'")
        title = raw.get("title")
        if not title or not isinstance(title, str):
            raise ValueError(f"{level_path.name}: missing or invalid 'title'")
        items = raw.get("ropes")
        if not items or not isinstance(items, list):
            raise ValueError(f"{level_path.name}: 'ropes' must be a non-empty list")

        ropes = []
        for position, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                raise ValueError(f"{level_path.name}: rope #{position} is not a mapping")
            ropes.append(
                Rope(
                    id=str(item.get("id") or f"rope{position}"),
                    start=_parse_point(level_path, item.get("start")),
                    end=_parse_point(level_path, item.get("end")),
                    color=str(item.get("color", "#FFFFFF")),
                )
            )

        time_limit = raw.get("time_limit", len(ropes) * self._config.seconds_per_rope)
        if isinstance(time_limit, bool) or not isinstance(time_limit, int) or time_limit <= 0:
            raise ValueError(f"{level_path.name}: 'time_limit' must be a positive integer")
        return Level(
            index=index,
            name=title.strip(),
            rope_count=len(ropes),
            time_limit=time_limit,
            layout=tuple(ropes),
        )


def _parse_point(level_path: Path, value: object) -> Point:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"{level_path.name}: endpoints must be [x, y] pairs, got {value!r}")
    try:
        return Point(float(value[0]), float(value[1]))
    except (TypeError, ValueError) as e:
        raise ValueError(f"{level_path.name}: invalid endpoint {value!r}") from e
