"""Microphone and accessibility permission checks."""

from __future__ import annotations

import logging
import sys

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class SystemPermissionGate:
    """Best-effort checks through the audio and input libraries.

    A default input device that can be queried counts as microphone access.
    On macOS pynput exposes whether the process is a trusted accessibility
    client; other platforms need no grant for synthetic key events.
    """

    def __init__(self, platform: str = sys.platform) -> None:
        self._platform = platform

    def check_microphone_access(self) -> bool:
        if sd is None:
            return False
        try:
            info = sd.query_devices(kind="input")
        except Exception as exc:
            logger.warning("No usable input device: %s", exc)
            return False
        return int(info.get("max_input_channels", 0)) > 0

    def check_accessibility(self) -> bool:
        if keyboard is None:
            return False
        if self._platform != "darwin":
            return True
        trusted = bool(getattr(keyboard.Listener, "IS_TRUSTED", True))
        if not trusted:
            logger.warning(
                "Accessibility permission missing; approve this app in "
                "System Settings > Privacy & Security > Accessibility."
            )
        return trusted

    async def request_microphone(self) -> bool:
        return self.check_microphone_access()

    async def request_accessibility(self) -> bool:
        return self.check_accessibility()


class StaticPermissionGate:
    def __init__(self, microphone: bool = True, accessibility: bool = True) -> None:
        self.microphone = microphone
        self.accessibility = accessibility

    def check_microphone_access(self) -> bool:
        return self.microphone

    def check_accessibility(self) -> bool:
        return self.accessibility

    async def request_microphone(self) -> bool:
        return self.microphone

    async def request_accessibility(self) -> bool:
        return self.accessibility
