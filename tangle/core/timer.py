"""One-second ticker that drives the level clock."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer

logger = logging.getLogger(__name__)


class TimerController(QObject):
    """Cancellable periodic ticker backed by a ``QTimer``.

    ``suspend`` and ``resume`` pause the ticker without replaying ticks missed
    while suspended. Once ``retire`` is called the controller is dead: the
    timeout is disconnected and ``on_tick`` is never called again.
    """

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval_ms: int = 1000,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._on_tick: Optional[Callable[[], None]] = on_tick
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._on_timeout)
        self._running = False
        self._suspended = False
        self._retired = False

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    @property
    def is_running(self) -> bool:
        return self._running and not self._suspended

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    @property
    def is_retired(self) -> bool:
        return self._retired

    def start(self) -> None:
        if self._retired:
            logger.debug("start() on a retired timer ignored")
            return
        self._running = True
        if not self._suspended:
            self._timer.start()

    def stop(self) -> None:
        self._running = False
        self._timer.stop()

    def suspend(self) -> None:
        if self._retired or self._suspended:
            return
        self._suspended = True
        self._timer.stop()

    def resume(self) -> None:
        if self._retired or not self._suspended:
            return
        self._suspended = False
        if self._running:
            # a full interval from now
            self._timer.start()

    def retire(self) -> None:
        if self._retired:
            return
        self.stop()
        self._retired = True
        self._timer.timeout.disconnect(self._on_timeout)
        self._on_tick = None

    def _on_timeout(self) -> None:
        if self._retired or not self.is_running or self._on_tick is None:
            return
        self._on_tick()
