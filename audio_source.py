"""Microphone capture adapter.

Opens the input device at its native rate and channel count, then
downmixes and resamples every callback block to the nominal 16 kHz mono
before handing it to the sink. Resampling uses nearest-neighbour index
mapping, which aliases; it is cheap enough to run on the audio callback
thread and good enough for speech recognition.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import numpy as np

from errors import CaptureError
from interfaces import FaultCallback, SampleSink

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

NOMINAL_RATE = 16000
RATE_EPSILON_HZ = 1.0


def downmix(block: np.ndarray) -> np.ndarray:
    data = np.asarray(block, dtype=np.float32)
    if data.ndim == 1:
        return data
    if data.shape[1] == 1:
        return data[:, 0]
    return data.mean(axis=1, dtype=np.float32)


def resample_nearest(samples: np.ndarray, native_rate: float, nominal_rate: float = NOMINAL_RATE) -> np.ndarray:
    """Map ``samples`` to ``nominal_rate`` with ``src = floor(i * native / nominal)``."""
    if abs(native_rate - nominal_rate) < RATE_EPSILON_HZ:
        return samples
    factor = native_rate / nominal_rate
    target_len = int(len(samples) / factor)
    if target_len <= 0:
        return np.zeros(0, dtype=np.float32)
    indices = np.floor(np.arange(target_len) * factor).astype(np.int64)
    indices = np.minimum(indices, len(samples) - 1)
    return samples[indices]


def list_input_devices() -> list[str]:
    if sd is None:
        return []
    return [
        str(device["name"])
        for device in sd.query_devices()
        if int(device.get("max_input_channels", 0)) > 0
    ]


class SoundDeviceAudioSource:
    def __init__(
        self,
        device: Optional[int | str] = None,
        nominal_rate: int = NOMINAL_RATE,
        blocksize: int = 1024,
    ) -> None:
        self.device = device
        self.nominal_rate = nominal_rate
        self.blocksize = blocksize
        self.native_rate: float = float(nominal_rate)
        self.channels = 1
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._sink: Optional[SampleSink] = None
        self._on_fault: Optional[FaultCallback] = None

    @property
    def is_capturing(self) -> bool:
        return self._running

    def start_capture(self, sink: SampleSink, on_fault: Optional[FaultCallback] = None) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise CaptureError("sounddevice is not installed")
            logger.info("Starting audio capture")
            stream = None
            try:
                info = sd.query_devices(self.device, "input")
                self.native_rate = float(info["default_samplerate"])
                self.channels = max(1, min(2, int(info["max_input_channels"])))
                self._sink = sink
                self._on_fault = on_fault
                stream = sd.InputStream(
                    device=self.device,
                    samplerate=self.native_rate,
                    channels=self.channels,
                    dtype="float32",
                    blocksize=self.blocksize,
                    callback=self._on_audio,
                    finished_callback=self._on_finished,
                )
                stream.start()
            except Exception as exc:
                self._sink = None
                self._on_fault = None
                if stream is not None:
                    try:
                        stream.close()
                    except Exception as close_exc:
                        logger.debug("Closing failed stream: %s", close_exc)
                logger.error("Audio capture failed to start: %s", exc)
                raise CaptureError(str(exc)) from exc
            self._stream = stream
            self._running = True
            logger.info(
                "Audio capture started (%.0f Hz, %d channel(s))", self.native_rate, self.channels
            )

    def stop_capture(self) -> None:
        with self._lock:
            if not self._running:
                return
            logger.info("Stopping audio capture")
            self._running = False
            stream, self._stream = self._stream, None
            try:
                if stream is not None:
                    stream.stop()
                    stream.close()
            finally:
                self._sink = None
                self._on_fault = None
            logger.info("Audio capture stopped")

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Audio callback status: %s", status)
        sink = self._sink
        if not self._running or sink is None:
            return
        mono = downmix(indata)
        samples = resample_nearest(mono, self.native_rate, self.nominal_rate)
        if samples.size:
            sink(np.array(samples, dtype=np.float32, copy=True))

    def _on_finished(self) -> None:
        on_fault = self._on_fault
        if self._running and on_fault is not None:
            logger.error("Audio stream finished unexpectedly")
            on_fault("audio stream finished unexpectedly")
