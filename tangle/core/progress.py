from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

MAX_STARS = 3


@dataclass
class PlayerProgress:
    highest_unlocked_level: int = 1
    completed_levels: int = 0
    best_stars: Dict[int, int] = field(default_factory=dict)

    @property
    def total_stars(self) -> int:
        return sum(self.best_stars.values())

    def stars_for(self, level: int) -> int:
        return self.best_stars.get(level, 0)

    def copy(self) -> "PlayerProgress":
        return PlayerProgress(
            highest_unlocked_level=self.highest_unlocked_level,
            completed_levels=self.completed_levels,
            best_stars=dict(self.best_stars),
        )


@dataclass
class GameSettings:
    sound_enabled: bool = True
    music_enabled: bool = True
    haptic_enabled: bool = True
    show_hints: bool = True


class ProgressStore:
    """Stores player progress, the last played level and settings.

    File: ~/.tangle/progress.json unless another path is given. A file that is
    missing or unreadable yields default progress; write errors are logged and
    otherwise ignored.
    """

    def __init__(self, file_path: Optional[Path] = None, max_level: int = 30) -> None:
        self._file_path = file_path or Path.home() / ".tangle" / "progress.json"
        self._max_level = max_level
        self._current_level, self._progress, self._settings = self._load()

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def current_level(self) -> int:
        return self._current_level

    def set_current_level(self, level: int) -> None:
        level = max(1, min(self._max_level, level))
        if level != self._current_level:
            self._current_level = level
            self._save()

    def get_progress(self) -> PlayerProgress:
        """Return a copy; mutate progress only through ``record_completion``."""
        return self._progress.copy()

    def get_settings(self) -> GameSettings:
        return GameSettings(**asdict(self._settings))

    def is_level_unlocked(self, level: int) -> bool:
        return 1 <= level <= self._progress.highest_unlocked_level

    def record_completion(self, level: int, stars: int) -> bool:
        """Merge a completed attempt. Returns True if anything changed.

        Best stars only ever grow and the next level is unlocked, so repeating
        the same merge is a no-op.
        """
        stars = max(0, min(MAX_STARS, stars))
        current = self._progress
        best = max(current.best_stars.get(level, 0), stars)
        unlocked = max(current.highest_unlocked_level, min(level + 1, self._max_level))
        completed = max(current.completed_levels, level)

        changed = (
            best != current.best_stars.get(level)
            or unlocked != current.highest_unlocked_level
            or completed != current.completed_levels
        )
        if not changed:
            return False

        current.best_stars[level] = best
        current.highest_unlocked_level = unlocked
        current.completed_levels = completed
        self._save()
        return True

    def update_settings(self, **changes: bool) -> GameSettings:
        known = {f.name for f in fields(GameSettings)}
        for key, value in changes.items():
            if key not in known:
                raise TypeError(f"Unknown setting: {key}")
            setattr(self._settings, key, bool(value))
        self._save()
        return self.get_settings()

    def reset(self) -> None:
        """Clear progress and the current level. Settings are kept."""
        self._current_level = 1
        self._progress = PlayerProgress()
        self._save()

    def save(self) -> None:
        """Persist current state to disk (e.g. on app exit)."""
        self._save()

    def _load(self) -> tuple[int, PlayerProgress, GameSettings]:
        current_level = 1
        progress = PlayerProgress()
        settings = GameSettings()
        if not self._file_path.exists():
            return current_level, progress, settings
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError("top level is not an object")
            current_level = max(1, min(self._max_level, int(payload.get("currentLevel", 1))))
            progress = _progress_from_dict(payload.get("playerStats") or {})
            settings = _settings_from_dict(payload.get("settings") or {})
        except (json.JSONDecodeError, OSError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Could not load progress from %s: %s", self._file_path, e)
            return 1, PlayerProgress(), GameSettings()
        return current_level, progress, settings

    def _save(self) -> None:
        progress = self._progress
        payload = {
            "currentLevel": self._current_level,
            "playerStats": {
                "highestUnlockedLevel": progress.highest_unlocked_level,
                "completedLevels": progress.completed_levels,
                "totalStars": progress.total_stars,
                "levelStars": {str(k): v for k, v in sorted(progress.best_stars.items())},
            },
            "settings": asdict(self._settings),
        }
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save progress to %s: %s", self._file_path, e)


def _progress_from_dict(raw: Dict[str, Any]) -> PlayerProgress:
    best_stars = {
        int(level): max(0, min(MAX_STARS, int(stars)))
        for level, stars in (raw.get("levelStars") or {}).items()
    }
    completed = int(raw.get("completedLevels", 0))
    # older saves may lack the unlock marker
    unlocked = int(raw.get("highestUnlockedLevel") or max(1, completed + 1))
    return PlayerProgress(
        highest_unlocked_level=max(1, unlocked),
        completed_levels=max(0, completed),
        best_stars=best_stars,
    )


def _settings_from_dict(raw: Dict[str, Any]) -> GameSettings:
    defaults = asdict(GameSettings())
    return GameSettings(**{key: bool(raw.get(key, value)) for key, value in defaults.items()})
