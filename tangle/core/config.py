from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "data" / "game.yaml"


@dataclass(frozen=True)
class GameConfig:
    """Level table and clock tunables."""

    max_level: int = 30
    max_ropes: int = 10
    seconds_per_rope: int = 5
    start_delay_ms: int = 500
    tick_interval_ms: int = 1000

    def rope_count(self, level: int) -> int:
        return min(level + 1, self.max_ropes)

    def time_limit(self, level: int) -> int:
        return self.rope_count(level) * self.seconds_per_rope

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "GameConfig":
        path = path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path.name}: expected a mapping of settings")

        values = {}
        for field in fields(cls):
            if field.name not in raw:
                continue
            value = raw[field.name]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{path.name}: '{field.name}' must be a positive integer")
            values[field.name] = value
        return cls(**values)
