"""Qt boundary between the game core and the presentation layer."""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QObject, Qt, Signal, Slot

from tangle.core.geometry import Point, RopeEnd
from tangle.core.session import LevelSession

logger = logging.getLogger(__name__)


class GameBridge(QObject):
    """Forwards input and lifecycle commands to a ``LevelSession``.

    Every committed change in the session is re-published as fresh snapshots
    on the ``*_changed`` signals.
    """

    puzzle_changed = Signal(object)
    session_changed = Signal(object)
    progress_changed = Signal(object)
    settings_changed = Signal(object)

    def __init__(self, session: LevelSession, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._session = session

    @property
    def session(self) -> LevelSession:
        return self._session

    def publish(self) -> None:
        self.puzzle_changed.emit(self._session.puzzle_snapshot())
        self.session_changed.emit(self._session.snapshot())
        self.progress_changed.emit(self._session.progress_snapshot())
        self.settings_changed.emit(self._session.settings_snapshot())

    @Slot()
    def drag_started(self) -> None:
        self._session.begin_drag()

    @Slot(str, str, float, float)
    def drag_moved(self, rope_id: str, end: str, x: float, y: float) -> None:
        try:
            which = RopeEnd(end)
        except ValueError:
            return
        self._session.update_endpoint(rope_id, which, Point(x, y))

    @Slot()
    def drag_finished(self) -> None:
        self._session.end_drag()

    @Slot()
    def reset(self) -> None:
        self._session.reset()

    @Slot()
    def retry(self) -> None:
        self._session.retry()

    @Slot()
    def advance_level(self) -> None:
        self._session.advance_level()

    @Slot(int)
    def select_level(self, index: int) -> None:
        self._session.select_level(index)

    @Slot()
    def leave(self) -> None:
        self._session.close()

    @Slot(str, bool)
    def set_setting(self, name: str, enabled: bool) -> None:
        try:
            self._session.update_settings(**{name: enabled})
        except TypeError:
            logger.warning("Ignoring unknown setting %r", name)

    @Slot()
    def reset_progress(self) -> None:
        self._session.reset_progress()

    def on_application_state_changed(self, state: Qt.ApplicationState) -> None:
        if state == Qt.ApplicationState.ApplicationActive:
            self._session.resume()
        else:
            self._session.suspend()
