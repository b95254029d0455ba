"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
import threading

from audio_source import SoundDeviceAudioSource, list_input_devices
from config import JsonConfigStore
from errors import DictationError
from event_dispatcher import EventDispatcher
from hotkey import GlobalHotkeyAdapter
from inference_engine import StreamingInferenceEngine
from insertion import APP_NAME, ClipboardInsertionGateway
from models import ASRConfig, SessionState
from overlay import TranscriptOverlay
from permissions import SystemPermissionGate
from transcription_session import TranscriptionSession
from whisper_backend import WhisperCppTranscriber

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

ICON_IDLE = "#888888"
ICON_LISTENING = "#FF4444"
ICON_BUSY = "#FFCC00"
ICON_ERROR = "#FF8800"


def setup_logging(level: str = "INFO") -> None:
    if os.getenv("DEBUG_MODE", "false").lower() == "true":
        level = "DEBUG"
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _create_icon(color: str, size: int = 22) -> QIcon:
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


class UIBridge(QObject):
    transcript_signal = Signal(str)
    status_signal = Signal(str)
    error_signal = Signal(str)
    state_signal = Signal(str, str)
    notify_signal = Signal(str, str)


class TrayNotifier:
    """Notifier that hands messages to the Qt thread for a tray balloon."""

    def __init__(self, bridge: UIBridge) -> None:
        self._bridge = bridge

    def notify(self, title: str, message: str) -> None:
        self._bridge.notify_signal.emit(title, message)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        setup_logging(self.config_store.get_log_level())

        self.overlay = TranscriptOverlay()
        self.ui = UIBridge()
        self.ui.transcript_signal.connect(self.overlay.set_transcript)
        self.ui.status_signal.connect(self.overlay.set_status)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.notify_signal.connect(self._on_notify_ui)

        self.dispatcher = EventDispatcher()
        self.permissions = SystemPermissionGate()
        self.engine = StreamingInferenceEngine(WhisperCppTranscriber(), dispatcher=self.dispatcher)
        self.audio_source = SoundDeviceAudioSource(device=self.config_store.get_input_device())
        self.insertion = ClipboardInsertionGateway(
            notifier=TrayNotifier(self.ui),
            permissions=self.permissions,
            restore_delay_s=self.config_store.get_restore_delay_s(),
        )
        self.session = TranscriptionSession(
            audio_source=self.audio_source,
            engine=self.engine,
            insertion=self.insertion,
            permissions=self.permissions,
            config=ASRConfig.english(),
            dispatcher=self.dispatcher,
            on_state_change=self._on_state_change,
            on_partial=self.ui.transcript_signal.emit,
            on_status=self.ui.status_signal.emit,
            on_error=self._on_error,
        )
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip(f"{APP_NAME}: Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        toggle_action = QAction("Start/Stop Dictation", menu)
        toggle_action.triggered.connect(self._toggle_in_background)
        menu.addAction(toggle_action)

        devices_menu = menu.addMenu("Input Device")
        group = QActionGroup(devices_menu)
        current = self.config_store.get_input_device()
        for name in [""] + list_input_devices():
            action = QAction(name or "System Default", devices_menu)
            action.setCheckable(True)
            action.setChecked(name == (current or ""))
            action.triggered.connect(lambda _checked=False, n=name: self._select_device(n))
            group.addAction(action)
            devices_menu.addAction(action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)
        self._menu = menu

    def _select_device(self, name: str) -> None:
        self.config_store.set_input_device(name or None)
        self.audio_source.device = name or None
        logger.info("Input device set to %s", name or "system default")

    def _load_model(self) -> None:
        path = self.config_store.resolve_model_path()
        try:
            self.engine.load_model(str(path))
        except DictationError as exc:
            logger.error("Model load failed: %s", exc)
            self._on_error(exc.code, exc.message)

    # ------------------------------------------------------------------
    # Callbacks (worker threads -> signals for the UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{code}: {message}")

    def _on_error_ui(self, msg: str) -> None:
        self.overlay.set_status(msg, error=True)
        self.overlay.hide_after(3000)

    def _on_notify_ui(self, title: str, message: str) -> None:
        self.tray.showMessage(title, message, QSystemTrayIcon.Information, 4000)

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state == SessionState.LISTENING.value:
            self.tray.setIcon(_create_icon(ICON_LISTENING))
            self.overlay.set_transcript("")
        elif to_state in (SessionState.STARTING.value, SessionState.FINALIZING.value):
            self.tray.setIcon(_create_icon(ICON_BUSY))
        elif to_state == SessionState.IDLE.value:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.overlay.hide_after(1200)
        elif to_state == SessionState.ERROR.value:
            self.tray.setIcon(_create_icon(ICON_ERROR))
        self.tray.setToolTip(f"{APP_NAME}: {self.session.status}")

    # ------------------------------------------------------------------
    # Toggle
    # ------------------------------------------------------------------

    def _toggle(self) -> None:
        try:
            self.session.toggle()
        except DictationError as exc:
            logger.warning("Toggle failed: %s", exc)
            self._on_error(exc.code, exc.message)

    def _toggle_in_background(self) -> None:
        # Opening the input stream can take a moment; keep the Qt thread free.
        threading.Thread(target=self._toggle, daemon=True).start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self._load_model()
        try:
            self.hotkey.start(on_toggle=self._toggle)
        except Exception as exc:
            self._on_error_ui(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.session.cancel()
        self.insertion.wait_until_idle(timeout=0.5)
        self.dispatcher.stop()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
