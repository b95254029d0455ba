"""Floating overlay showing dictation status and the running transcript."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

_PANEL_STYLE = "background: rgba(20,20,20,200); border-radius: 12px; padding: 12px;"
_STATUS_STYLE = "color: #BBBBBB; font-size: 12px;"
_STATUS_ERROR_STYLE = "color: #FF6B6B; font-size: 12px;"
_TEXT_STYLE = "color: white; font-size: 18px;"


class TranscriptOverlay(QWidget):
    def __init__(self, width: int = 600) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)
        self.setFixedWidth(width)

        panel = QWidget(self)
        panel.setStyleSheet(_PANEL_STYLE)
        self._status = QLabel("")
        self._status.setStyleSheet(_STATUS_STYLE)
        self._text = QLabel("")
        self._text.setWordWrap(True)
        self._text.setStyleSheet(_TEXT_STYLE)

        inner = QVBoxLayout(panel)
        inner.addWidget(self._status)
        inner.addWidget(self._text)
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(panel)

        self._hide_timer = QTimer(self)
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self.hide)

    def set_status(self, status: str, error: bool = False) -> None:
        self._status.setStyleSheet(_STATUS_ERROR_STYLE if error else _STATUS_STYLE)
        self._status.setText(status)
        self._present()

    def set_transcript(self, text: str) -> None:
        # Partials carry the whole transcript, so the label is replaced.
        self._text.setText(text)
        self._present()

    def hide_after(self, delay_ms: int) -> None:
        self._hide_timer.start(delay_ms)

    def _present(self) -> None:
        self._hide_timer.stop()
        screen = QApplication.primaryScreen() if QApplication is not None else None
        if screen is not None:
            geom = screen.availableGeometry()
            self.adjustSize()
            self.move(geom.x() + (geom.width() - self.width()) // 2, geom.y() + 40)
        self.show()
