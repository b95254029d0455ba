"""State-machine based dictation session orchestration."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import numpy as np

from errors import (
    CAPTURE_FAILED,
    ENGINE_FAULT,
    PASTE_COMMAND_FAILED,
    PERMISSION_DENIED,
    PermissionDeniedError,
    SessionBusyError,
)
from event_dispatcher import EventDispatcher
from interfaces import AudioSource, InferenceEngine, InsertionGateway, PermissionGate
from models import ASRConfig, InsertionResult, SessionState

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
TextCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]

STATUS_TEXT = {
    SessionState.IDLE: "Ready",
    SessionState.STARTING: "Starting...",
    SessionState.LISTENING: "Listening...",
    SessionState.FINALIZING: "Finalizing...",
    SessionState.ERROR: "Error",
}


class TranscriptionSession:
    """Drives capture and inference for one dictation at a time.

    ``start``, ``stop`` and ``toggle`` are mutually exclusive: a call made
    while another one is still running raises ``SessionBusyError``. ``stop``
    returns as soon as capture is stopped; the session reaches IDLE only
    when the engine delivers the final transcript, which is then inserted
    into the focused application.
    """

    def __init__(
        self,
        audio_source: AudioSource,
        engine: InferenceEngine,
        insertion: InsertionGateway,
        permissions: PermissionGate,
        config: Optional[ASRConfig] = None,
        dispatcher: Optional[EventDispatcher] = None,
        insert_delay_s: float = 0.1,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[TextCallback] = None,
        on_status: Optional[TextCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._audio_source = audio_source
        self._engine = engine
        self._insertion = insertion
        self._permissions = permissions
        self._config = config or ASRConfig.english()
        # Share the engine's timeline so results and faults never interleave.
        self._dispatcher = (
            dispatcher
            or getattr(engine, "dispatcher", None)
            or EventDispatcher(name="session-events")
        )
        self._insert_delay_s = insert_delay_s
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_status = on_status
        self._on_error = on_error

        self._lock = threading.RLock()
        self._op_lock = threading.Lock()
        self._state = SessionState.IDLE
        self._transcript = ""
        self._status = STATUS_TEXT[SessionState.IDLE]
        self._stream_id = 0
        self._insert_timer: Optional[threading.Timer] = None
        self.last_insertion: Optional[InsertionResult] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def status(self) -> str:
        return self._status

    def start(self) -> None:
        self._exclusive(self._start)

    def stop(self) -> None:
        self._exclusive(self._stop)

    def toggle(self) -> None:
        self._exclusive(self._toggle)

    def fail(self, code: str, message: str) -> None:
        with self._lock:
            if self._state == SessionState.IDLE:
                return
            self._transition(SessionState.ERROR)
            self._set_status(f"Error: {message}")
        logger.error("Dictation failed (%s): %s", code, message)
        self._safe_stop_capture()
        self._engine.cancel_stream()
        self._emit_error(code, message)

    def cancel(self) -> None:
        """Abandon the current dictation without inserting anything."""
        with self._lock:
            if self._state in (SessionState.IDLE, SessionState.ERROR):
                return
            self._stream_id += 1
            self._safe_stop_capture()
            self._engine.cancel_stream()
            self._transition(SessionState.IDLE)

    def wait_for_insertion(self, timeout: float = 2.0) -> None:
        timer = self._insert_timer
        if timer is not None:
            timer.join(timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _exclusive(self, operation: Callable[[], None]) -> None:
        if not self._op_lock.acquire(blocking=False):
            logger.warning("Rejected %s, another start/stop is pending", operation.__name__)
            raise SessionBusyError()
        try:
            operation()
        finally:
            self._op_lock.release()

    def _toggle(self) -> None:
        if self._state == SessionState.LISTENING:
            self._stop()
        else:
            self._start()

    def _start(self) -> None:
        with self._lock:
            if self._state not in (SessionState.IDLE, SessionState.ERROR):
                logger.debug("start() ignored in state %s", self._state.value)
                return
            if not self._permissions.check_microphone_access():
                logger.error("Microphone permission denied")
                self._emit_error(PERMISSION_DENIED, "microphone access not granted")
                raise PermissionDeniedError()
            logger.info("Starting dictation")
            self._stream_id += 1
            stream_id = self._stream_id
            self._transcript = ""
            self._transition(SessionState.STARTING)

        try:
            self._engine.begin_stream(
                self._config,
                on_partial=lambda text: self._handle_partial(stream_id, text),
                on_final=lambda text: self._handle_final(stream_id, text),
                on_fault=lambda message: self._handle_fault(stream_id, ENGINE_FAULT, message),
            )
        except Exception as exc:
            logger.error("Failed to start dictation: %s", exc)
            self._rollback(stream_id)
            raise

        try:
            self._audio_source.start_capture(
                self._handle_samples,
                on_fault=lambda message: self._dispatcher.post(
                    self._handle_fault, stream_id, CAPTURE_FAILED, message
                ),
            )
        except Exception as exc:
            logger.error("Failed to start dictation: %s", exc)
            self._engine.cancel_stream()
            self._rollback(stream_id)
            raise

        with self._lock:
            if self._state != SessionState.STARTING or self._stream_id != stream_id:
                self._safe_stop_capture()
                return
            self._transition(SessionState.LISTENING)
        logger.info("Dictation started successfully")

    def _stop(self) -> None:
        with self._lock:
            if self._state != SessionState.LISTENING:
                logger.debug("stop() ignored in state %s", self._state.value)
                return
            logger.info("Stopping dictation")
            self._transition(SessionState.FINALIZING)
        self._safe_stop_capture()
        self._engine.end_stream()

    def _rollback(self, stream_id: int) -> None:
        with self._lock:
            if self._stream_id == stream_id and self._state == SessionState.STARTING:
                self._transition(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Audio and engine callbacks
    # ------------------------------------------------------------------

    def _handle_samples(self, block: np.ndarray) -> None:
        if self._state not in (SessionState.STARTING, SessionState.LISTENING):
            return
        if block.size == 0:
            return
        self._engine.feed(block)

    def _handle_partial(self, stream_id: int, text: str) -> None:
        with self._lock:
            if stream_id != self._stream_id:
                return
            if self._state not in (SessionState.LISTENING, SessionState.FINALIZING):
                return
            self._transcript = text
            if self._state == SessionState.LISTENING:
                self._set_status("Transcribing...")
            logger.debug("Partial: %s", text)
            if self._on_partial:
                self._on_partial(text)

    def _handle_final(self, stream_id: int, text: str) -> None:
        with self._lock:
            if stream_id != self._stream_id or self._state != SessionState.FINALIZING:
                return
            self._transcript = text
            logger.info("Final: %s", text)
            if text:
                self._schedule_insertion(text)
            self._transition(SessionState.IDLE)
            self._set_status("Complete")

    def _handle_fault(self, stream_id: int, code: str, message: str) -> None:
        if stream_id != self._stream_id:
            return
        self.fail(code, message)

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def _schedule_insertion(self, text: str) -> None:
        timer = threading.Timer(self._insert_delay_s, self._run_insertion, args=(text,))
        timer.daemon = True
        self._insert_timer = timer
        timer.start()

    def _run_insertion(self, text: str) -> None:
        try:
            result = self._insertion.insert(text)
        except Exception as exc:
            logger.exception("Insertion raised")
            result = InsertionResult(success=False, code=PASTE_COMMAND_FAILED, message=str(exc))
        self.last_insertion = result
        if not result.success:
            self._emit_error(result.code, result.message)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _safe_stop_capture(self) -> None:
        try:
            self._audio_source.stop_capture()
        except Exception as exc:
            logger.error("Stopping audio capture failed: %s", exc)

    def _set_status(self, status: str) -> None:
        self._status = status
        if self._on_status:
            self._on_status(status)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Session %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
        self._set_status(STATUS_TEXT[to_state])
