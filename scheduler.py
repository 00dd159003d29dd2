"""Single-shot timers on the Qt event loop."""

from __future__ import annotations

from typing import Callable, Optional

try:
    from PySide6.QtCore import QTimer
except Exception:  # pragma: no cover
    QTimer = None  # type: ignore


class QtTimerHandle:
    def __init__(self, timer: "QTimer") -> None:
        self._timer: Optional[QTimer] = timer

    @property
    def active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    def cancel(self) -> None:
        timer = self._timer
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()
        self._timer = None

    def _fire(self, callback: Callable[[], None]) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.deleteLater()
        callback()


class QtScheduler:
    """Schedules callbacks on the thread that owns the Qt event loop."""

    def __init__(self) -> None:
        if QTimer is None:
            raise RuntimeError("PySide6 is not installed")

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> QtTimerHandle:
        timer = QTimer()
        timer.setSingleShot(True)
        handle = QtTimerHandle(timer)
        timer.timeout.connect(lambda: handle._fire(callback))
        timer.start(max(0, int(delay_ms)))
        return handle
