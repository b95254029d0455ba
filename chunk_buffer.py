"""Sample accumulator that releases fixed-size chunks in arrival order."""

from __future__ import annotations

import threading
from typing import Optional

import numpy as np


class ChunkBuffer:
    def __init__(self, chunk_samples: int = 16000) -> None:
        if chunk_samples <= 0:
            raise ValueError("chunk_samples must be positive")
        self.chunk_samples = chunk_samples
        self._lock = threading.Lock()
        self._pending = np.zeros(0, dtype=np.float32)

    @property
    def pending(self) -> int:
        return int(self._pending.size)

    def push(self, block: np.ndarray) -> list[np.ndarray]:
        """Append ``block`` and return every full chunk now available.

        A single push may complete several chunks when audio arrives in
        bursts, so extraction repeats until less than one chunk remains.
        """
        samples = np.asarray(block, dtype=np.float32).reshape(-1)
        with self._lock:
            if samples.size:
                self._pending = np.concatenate((self._pending, samples))
            count = self._pending.size // self.chunk_samples
            if count == 0:
                return []
            cut = count * self.chunk_samples
            head, self._pending = self._pending[:cut], self._pending[cut:].copy()
        return [chunk.copy() for chunk in np.split(head, count)]

    def flush(self) -> Optional[np.ndarray]:
        """Return and clear the remainder, or ``None`` when nothing is pending."""
        with self._lock:
            if self._pending.size == 0:
                return None
            remainder = self._pending
            self._pending = np.zeros(0, dtype=np.float32)
        return remainder

    def clear(self) -> None:
        with self._lock:
            self._pending = np.zeros(0, dtype=np.float32)
