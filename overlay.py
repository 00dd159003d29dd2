"""Overlay window showing the voice panel."""

from __future__ import annotations

from models import VoiceDisplay

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

EXAMPLE_COMMANDS = (
    "Add task review presentation",
    "Remind me to call client at 3 PM",
    "Schedule meeting for tomorrow at 10",
    "Create task finish report",
)

_BOX = "font-size: 18px; padding: 16px; border-radius: 12px;"
_STYLES = {
    "error": f"color: #FF6B6B; background: rgba(0,0,0,210); font-weight: 600; {_BOX}",
    "interim": f"color: rgba(255,255,255,160); background: rgba(0,0,0,190); font-style: italic; {_BOX}",
    "transcript": f"color: black; background: white; font-weight: 500; {_BOX}",
    "hint": f"color: rgba(255,255,255,150); background: rgba(0,0,0,190); font-size: 14px; {_BOX}",
}


def hint_text() -> str:
    lines = ["Press the hotkey and speak clearly", "", "Try these commands:"]
    lines.extend(f'• "{command}"' for command in EXAMPLE_COMMANDS)
    return "\n".join(lines)


class VoiceOverlay(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._labels = {}
        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)
        for name in ("error", "interim", "transcript", "hint"):
            label = QLabel("")
            label.setWordWrap(True)
            label.setStyleSheet(_STYLES[name])
            label.hide()
            layout.addWidget(label)
            self._labels[name] = label
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def show_display(self, display: VoiceDisplay) -> None:
        """Show whichever parts of the panel currently have content."""
        self._cancel_hide_timer()
        error = display.error
        idle = not display.listening and not display.transcript and not error
        self._show("error", error)
        self._show("interim", "" if error else display.interim_text)
        self._show("transcript", "" if error else display.transcript)
        self._show("hint", hint_text() if idle else "")
        self._center_top()
        self.show()

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def _show(self, name: str, text: str) -> None:
        label = self._labels[name]
        label.setText(text)
        label.setVisible(bool(text))

    def _center_top(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.x() + (geom.width() - self.width()) // 2, geom.y() + 40)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
