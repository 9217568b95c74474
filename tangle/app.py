"""Logging setup and wiring of the game core for a host application."""

import logging
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QCoreApplication
from PySide6.QtGui import QGuiApplication

from tangle.core.config import GameConfig
from tangle.core.geometry import Bounds
from tangle.core.levels import LevelRepository
from tangle.core.progress import ProgressStore
from tangle.core.session import LevelSession
from tangle.ui.bridge import GameBridge


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_game(
    bounds: Bounds,
    progress_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
    seed: Optional[int] = None,
) -> GameBridge:
    """Build the session for ``bounds`` and return the bridge a UI talks to.

    Must be called after the Qt application object exists. The saved current
    level is loaded straight away and starts after the configured delay.
    """
    config = GameConfig.load(config_path)
    levels = LevelRepository(config)
    progress_store = ProgressStore(progress_path, max_level=config.max_level)

    bridge: Optional[GameBridge] = None

    def publish() -> None:
        if bridge is not None:
            bridge.publish()

    session = LevelSession(levels, progress_store, bounds, seed=seed, on_change=publish)
    bridge = GameBridge(session)

    app = QCoreApplication.instance()
    if isinstance(app, QGuiApplication):
        app.applicationStateChanged.connect(bridge.on_application_state_changed)
    else:
        logging.info("No GUI application; timer will not follow app focus changes")

    session.load_level(progress_store.current_level)
    return bridge
