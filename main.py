"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
from typing import Callable

from config import JsonConfigStore
from hotkey import GlobalHotkeyAdapter
from interfaces import SpeechEngine
from models import CaptureState, EngineEvent, EngineOptions, VoiceDisplay
from overlay import VoiceOverlay
from recognizer import DashscopeSpeechEngine
from scheduler import QtScheduler
from session_controller import SessionController
from task_store import JsonTaskStore

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger("voice-tasks")


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"
ICON_LISTENING = "#FF4444"
ICON_ERROR = "#FF8800"


class UIBridge(QObject):
    hotkey_signal = Signal()
    engine_signal = Signal(object, object)  # callback, EngineEvent

    def __init__(self) -> None:
        super().__init__()
        self.engine_signal.connect(self._deliver_engine_event)

    def _deliver_engine_event(self, callback: Callable[[EngineEvent], None], event: EngineEvent) -> None:
        callback(event)


class MainThreadEngine:
    """Re-posts engine callbacks from worker threads onto the Qt main thread."""

    def __init__(self, engine: SpeechEngine, bridge: UIBridge) -> None:
        self._engine = engine
        self._bridge = bridge

    def is_available(self) -> bool:
        return self._engine.is_available()

    def start(self, on_event: Callable[[EngineEvent], None], options: EngineOptions) -> None:
        self._engine.start(lambda event: self._bridge.engine_signal.emit(on_event, event), options)

    def stop(self) -> None:
        self._engine.stop()


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.task_store = JsonTaskStore()
        self.overlay = VoiceOverlay()
        self.ui = UIBridge()
        self.ui.hotkey_signal.connect(self.open_voice_panel)

        self.engine = DashscopeSpeechEngine(api_key=self.config_store.get_api_key())
        self.controller = self._build_controller()
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Voice Tasks — Ready")
        self._setup_menu()
        self.tray.show()

    def _build_controller(self) -> SessionController:
        return SessionController(
            engine=MainThreadEngine(self.engine, self.ui),
            task_sink=self.task_store,
            scheduler=QtScheduler(),
            timings=self.config_store.get_timings(),
            options=EngineOptions(locale=self.config_store.get_locale()),
            on_close=self.close_voice_panel,
            on_state_change=self._on_state_change,
            on_display_change=self._on_display_change,
        )

    def _setup_menu(self) -> None:
        menu = QMenu()

        listen_action = QAction("Start Listening", menu)
        listen_action.triggered.connect(self.open_voice_panel)
        menu.addAction(listen_action)

        close_action = QAction("Close Voice Panel", menu)
        close_action.triggered.connect(self.close_voice_panel)
        menu.addAction(close_action)

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self.controller.close()
        self.engine = DashscopeSpeechEngine(api_key=value)
        self.controller = self._build_controller()
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.f8"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    # ------------------------------------------------------------------
    # Voice panel
    # ------------------------------------------------------------------

    def open_voice_panel(self) -> None:
        self.overlay.show_display(self.controller.display)
        self.controller.toggle()

    def close_voice_panel(self) -> None:
        self.controller.close()
        self.overlay.hide_with_delay(0)

    def _on_state_change(self, from_state: CaptureState, to_state: CaptureState) -> None:
        if to_state == CaptureState.LISTENING:
            self.tray.setIcon(_create_icon(ICON_LISTENING))
            self.tray.setToolTip("Voice Tasks — Listening...")
        elif to_state == CaptureState.PROCESSING:
            self.tray.setToolTip("Voice Tasks — Processing...")
        elif to_state == CaptureState.IDLE:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Voice Tasks — Ready")
        elif to_state == CaptureState.ERRORED:
            self.tray.setIcon(_create_icon(ICON_ERROR))

    def _on_display_change(self, display: VoiceDisplay) -> None:
        if self.overlay.isVisible():
            self.overlay.show_display(display)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            # pynput calls back on its own thread; hop to the UI thread.
            self.hotkey.start(on_trigger=self.ui.hotkey_signal.emit)
        except Exception as exc:
            logger.warning("Hotkey disabled: %s", exc)
            self.tray.showMessage("Voice Tasks", f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.close()
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
