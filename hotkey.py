"""Global dictation toggle on a single pynput key."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


def parse_hotkey(name: str) -> Any:
    """Turn ``"Key.alt_r"`` or a single character into a pynput key."""
    if keyboard is None:
        raise RuntimeError("pynput is not installed")
    if name.startswith("Key."):
        try:
            return getattr(keyboard.Key, name[len("Key."):])
        except AttributeError:
            raise ValueError(f"Unknown hotkey: {name}") from None
    if len(name) == 1:
        return keyboard.KeyCode.from_char(name)
    raise ValueError(f"Unknown hotkey: {name}")


class GlobalHotkeyAdapter:
    """Calls ``on_toggle`` once per physical press of the configured key.

    Auto-repeat presses are ignored until the key is released. Exceptions
    from ``on_toggle`` are logged so the listener thread keeps running.
    """

    def __init__(self, hotkey_name: str = "Key.alt_r") -> None:
        self.hotkey_name = hotkey_name
        self._listener: Optional[Any] = None
        self._target: Any = None
        self._down = threading.Event()
        self._on_toggle: Optional[Callable[[], None]] = None

    def start(self, on_toggle: Callable[[], None]) -> None:
        if self._listener is not None:
            return
        self._target = parse_hotkey(self.hotkey_name)
        self._on_toggle = on_toggle
        self._down.clear()
        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.start()
        logger.info("Hotkey listener started on %s", self.hotkey_name)

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is None:
            return
        listener.stop()
        self._on_toggle = None
        logger.info("Hotkey listener stopped")

    def _on_press(self, key: Any) -> None:
        if key != self._target or self._down.is_set():
            return
        self._down.set()
        on_toggle = self._on_toggle
        if on_toggle is None:
            return
        try:
            on_toggle()
        except Exception:
            logger.exception("Hotkey toggle failed")

    def _on_release(self, key: Any) -> None:
        if key == self._target:
            self._down.clear()
