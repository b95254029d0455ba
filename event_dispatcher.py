"""Single-threaded FIFO callback timeline.

Partial and final results are produced on the inference worker but must
reach observers in order and never concurrently with each other. Producers
``post`` callables here and one daemon thread runs them one at a time.
"""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

_STOP = object()


class EventDispatcher:
    def __init__(self, name: str = "dictation-events") -> None:
        self._name = name
        self._queue: Queue[Any] = Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._queue.put(_STOP)
            self._thread = None
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def post(self, fn: Callable[..., None], *args: Any) -> None:
        self.start()
        self._queue.put((fn, args))

    def wait_until_idle(self, timeout: float = 2.0) -> bool:
        """Block until everything posted so far has run."""
        if not self.is_running:
            return self._queue.empty()
        done = threading.Event()
        self._queue.put((done.set, ()))
        return done.wait(timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            fn, args = item
            try:
                fn(*args)
            except Exception:
                logger.exception("Event callback %r failed", fn)
