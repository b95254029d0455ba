"""Clipboard-preserving text insertion into the focused application."""

from __future__ import annotations

import logging
import sys
import threading
import time
from typing import Optional

from errors import (
    ACCESSIBILITY_DENIED,
    ALREADY_INSERTING,
    CLIPBOARD_ACCESS_FAILED,
    ERROR_MESSAGES,
    FALLBACK_MESSAGE,
    PASTE_COMMAND_FAILED,
)
from interfaces import Clipboard, Notifier, PasteKeystroke, PermissionGate
from models import ClipboardSnapshot, InsertionResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)

APP_NAME = "Inline Dictation"
TEXT_TYPE = "text/plain"


class PyperclipClipboard:
    def snapshot(self) -> ClipboardSnapshot:
        self._require()
        text = pyperclip.paste()
        if not text:
            return ClipboardSnapshot()
        return ClipboardSnapshot({TEXT_TYPE: text.encode("utf-8")})

    def set_text(self, text: str) -> None:
        self._require()
        pyperclip.copy(text)

    def restore(self, snapshot: ClipboardSnapshot) -> None:
        self._require()
        pyperclip.copy(snapshot.payloads.get(TEXT_TYPE, b"").decode("utf-8"))

    @staticmethod
    def _require() -> None:
        if pyperclip is None:
            raise RuntimeError("pyperclip is not installed")


class PynputPasteKeystroke:
    def __init__(self, platform: str = sys.platform) -> None:
        self._platform = platform

    def send_paste(self) -> None:
        if Controller is None or Key is None:
            raise RuntimeError("pynput is not installed")
        modifier = Key.cmd if self._platform == "darwin" else Key.ctrl
        keyboard = Controller()
        keyboard.press(modifier)
        try:
            keyboard.press("v")
            keyboard.release("v")
        finally:
            keyboard.release(modifier)


class LoggingNotifier:
    def notify(self, title: str, message: str) -> None:
        logger.warning("%s: %s", title, message)


class ClipboardInsertionGateway:
    """Pastes text through the clipboard and puts the old contents back.

    Only one insertion runs at a time; a concurrent call is rejected with
    ``ALREADY_INSERTING``. Restoration happens ``restore_delay_s`` after the
    paste keystroke. If a newer insertion starts before that, it takes over
    the pending snapshot so the clipboard still ends up as it was before the
    first insertion.
    """

    def __init__(
        self,
        clipboard: Optional[Clipboard] = None,
        keystroke: Optional[PasteKeystroke] = None,
        notifier: Optional[Notifier] = None,
        permissions: Optional[PermissionGate] = None,
        settle_delay_s: float = 0.05,
        restore_delay_s: float = 0.1,
    ) -> None:
        self._clipboard = clipboard or PyperclipClipboard()
        self._keystroke = keystroke or PynputPasteKeystroke()
        self._notifier = notifier or LoggingNotifier()
        self._permissions = permissions
        self._settle_delay_s = settle_delay_s
        self._restore_delay_s = restore_delay_s

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = False
        self._generation = 0
        self._pending_snapshot: Optional[ClipboardSnapshot] = None
        self._restore_timer: Optional[threading.Timer] = None

    def insert(self, text: str) -> InsertionResult:
        if not text:
            return InsertionResult(success=True, message="empty text", clipboard_restored=True)

        with self._lock:
            if self._in_flight:
                logger.warning("Insertion rejected, another one is in flight")
                return InsertionResult(
                    success=False,
                    code=ALREADY_INSERTING,
                    message=ERROR_MESSAGES[ALREADY_INSERTING],
                )
            self._in_flight = True
            self._generation += 1
            generation = self._generation
            inherited = self._pending_snapshot
            self._pending_snapshot = None
            if self._restore_timer is not None:
                self._restore_timer.cancel()
                self._restore_timer = None

        logger.info("Inserting %d characters", len(text))
        try:
            return self._perform(text, generation, inherited)
        finally:
            with self._idle:
                self._in_flight = False
                self._idle.notify_all()

    def wait_until_idle(self, timeout: float = 2.0) -> bool:
        with self._idle:
            return self._idle.wait_for(
                lambda: not self._in_flight and self._restore_timer is None,
                timeout,
            )

    def _perform(
        self, text: str, generation: int, inherited: Optional[ClipboardSnapshot]
    ) -> InsertionResult:
        try:
            snapshot = inherited if inherited is not None else self._clipboard.snapshot()
            self._clipboard.set_text(text)
        except Exception as exc:
            return self._fallback(text, CLIPBOARD_ACCESS_FAILED, exc)

        time.sleep(self._settle_delay_s)

        if self._permissions is not None and not self._permissions.check_accessibility():
            return self._fallback(text, ACCESSIBILITY_DENIED, None)

        try:
            self._keystroke.send_paste()
        except Exception as exc:
            return self._fallback(text, PASTE_COMMAND_FAILED, exc)

        self._schedule_restore(snapshot, generation)
        logger.info("Text insertion completed successfully")
        return InsertionResult(success=True)

    def _schedule_restore(self, snapshot: ClipboardSnapshot, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._pending_snapshot = snapshot
            timer = threading.Timer(self._restore_delay_s, self._restore, args=(generation,))
            timer.daemon = True
            self._restore_timer = timer
        timer.start()

    def _restore(self, generation: int) -> None:
        with self._idle:
            if generation != self._generation or self._pending_snapshot is None:
                logger.debug("Skipping clipboard restore, a newer insertion took over")
                return
            snapshot = self._pending_snapshot
            self._pending_snapshot = None
            self._restore_timer = None
            try:
                self._clipboard.restore(snapshot)
                logger.debug("Original clipboard content restored")
            except Exception as exc:
                logger.error("Clipboard restore failed: %s", exc)
            finally:
                self._idle.notify_all()

    def _fallback(self, text: str, code: str, exc: Optional[Exception]) -> InsertionResult:
        message = ERROR_MESSAGES[code] if exc is None else f"{ERROR_MESSAGES[code]}: {exc}"
        logger.error("Text insertion failed: %s", message)
        try:
            self._clipboard.set_text(text)
            logger.info("Text copied to clipboard as fallback")
        except Exception as copy_exc:
            logger.error("Clipboard fallback failed: %s", copy_exc)
        try:
            self._notifier.notify(APP_NAME, FALLBACK_MESSAGE)
        except Exception as notify_exc:
            logger.error("Notification failed: %s", notify_exc)
        return InsertionResult(success=False, code=code, message=message, clipboard_restored=False)
