"""Streaming adapter over a local transcription backend.

Audio fed from the capture thread is only buffered here; full chunks are
queued to a per-stream processing thread which runs the backend one chunk
at a time. Results go out through the EventDispatcher so partial and final
callbacks are never delivered concurrently.

Partials are cumulative: each one carries the whole transcript so far,
not just the words recognised in the latest chunk.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from queue import Queue
from typing import Any, Optional

import numpy as np

from chunk_buffer import ChunkBuffer
from errors import (
    AlreadyStreamingError,
    EngineProcessingError,
    ModelLoadError,
    ModelNotLoadedError,
)
from event_dispatcher import EventDispatcher
from interfaces import FaultCallback, TextCallback, Transcriber
from models import ASRConfig

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Expected ggml file sizes per model variant, checked longest name first.
MODEL_SIZE_RANGES = {
    "medium": (1300 * MB, 1600 * MB),
    "large": (2800 * MB, 3300 * MB),
    "small": (400 * MB, 520 * MB),
    "base": (120 * MB, 160 * MB),
    "tiny": (30 * MB, 60 * MB),
}

_FINALIZE = object()
_CANCEL = object()


def expected_size_range(path: Path) -> Optional[tuple[int, int]]:
    name = path.name.lower()
    for variant, bounds in MODEL_SIZE_RANGES.items():
        if variant in name:
            return bounds
    return None


class _Stream:
    def __init__(
        self,
        stream_id: int,
        config: ASRConfig,
        on_partial: TextCallback,
        on_final: TextCallback,
        on_fault: Optional[FaultCallback],
    ) -> None:
        self.stream_id = stream_id
        self.config = config
        self.on_partial = on_partial
        self.on_final = on_final
        self.on_fault = on_fault
        self.buffer = ChunkBuffer(config.chunk_samples)
        self.queue: Queue[Any] = Queue()
        self.transcript = ""
        self.cancelled = False
        self.thread: Optional[threading.Thread] = None


class StreamingInferenceEngine:
    def __init__(
        self,
        transcriber: Transcriber,
        dispatcher: Optional[EventDispatcher] = None,
    ) -> None:
        self._transcriber = transcriber
        self._dispatcher = dispatcher or EventDispatcher()
        self._lock = threading.Lock()
        self._model_lock = threading.Lock()
        self._model_path: Optional[str] = None
        self._stream: Optional[_Stream] = None
        self._stream_counter = 0

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def is_streaming(self) -> bool:
        return self._stream is not None

    def is_model_loaded(self) -> bool:
        return self._model_path is not None

    def load_model(self, path: str) -> None:
        if self._model_path is not None:
            return
        model_path = Path(path)
        logger.info("Loading model from %s", model_path)
        if not model_path.is_file():
            logger.error("Model file missing: %s", model_path)
            raise ModelLoadError(f"Model file not found at {model_path}")
        self._check_model_size(model_path)
        with self._model_lock:
            try:
                self._transcriber.load(str(model_path))
            except ModelLoadError:
                raise
            except Exception as exc:
                raise ModelLoadError(f"Failed to load model: {exc}") from exc
        self._model_path = str(model_path)
        logger.info("Model loaded successfully")

    def _check_model_size(self, path: Path) -> None:
        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.warning("Could not check model file size: %s", exc)
            return
        logger.info("Model file size: %.1f MB", size / MB)
        bounds = expected_size_range(path)
        if bounds is not None and not bounds[0] <= size <= bounds[1]:
            logger.warning("Model file size seems unusual: %d bytes", size)

    def begin_stream(
        self,
        config: ASRConfig,
        on_partial: TextCallback,
        on_final: TextCallback,
        on_fault: Optional[FaultCallback] = None,
    ) -> None:
        with self._lock:
            if self._model_path is None:
                raise ModelNotLoadedError()
            if self._stream is not None:
                raise AlreadyStreamingError()
            self._stream_counter += 1
            stream = _Stream(self._stream_counter, config, on_partial, on_final, on_fault)
            stream.thread = threading.Thread(
                target=self._run_stream,
                args=(stream,),
                name=f"inference-{stream.stream_id}",
                daemon=True,
            )
            self._stream = stream
        self._dispatcher.start()
        stream.thread.start()
        logger.info(
            "Stream %d started (threads=%d, temperature=%.1f)",
            stream.stream_id,
            config.threads,
            config.temperature,
        )

    def feed(self, block: np.ndarray) -> None:
        with self._lock:
            stream = self._stream
            if stream is None:
                return
            for chunk in stream.buffer.push(block):
                stream.queue.put(chunk)

    def end_stream(self) -> None:
        """Stop accepting audio and queue the remainder ahead of the final.

        Runs under the same lock as ``feed``, so a block is either fully
        buffered before the flush or dropped as arriving after the end.
        """
        with self._lock:
            stream, self._stream = self._stream, None
            if stream is None:
                return
            remainder = stream.buffer.flush()
            if remainder is not None:
                stream.queue.put(remainder)
            stream.queue.put(_FINALIZE)
        logger.info("Stream %d ended", stream.stream_id)

    def cancel_stream(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is None:
            return
        stream.cancelled = True
        stream.buffer.clear()
        stream.queue.put(_CANCEL)
        logger.info("Stream %d cancelled", stream.stream_id)

    # ------------------------------------------------------------------
    # Processing thread
    # ------------------------------------------------------------------

    def _run_stream(self, stream: _Stream) -> None:
        while True:
            item = stream.queue.get()
            if item is _CANCEL or stream.cancelled:
                return
            if item is _FINALIZE:
                self._finalize(stream)
                return
            if not self._process_chunk(stream, item):
                return

    def _process_chunk(self, stream: _Stream, chunk: np.ndarray) -> bool:
        try:
            with self._model_lock:
                segments = self._transcriber.transcribe(chunk, stream.config)
        except EngineProcessingError as exc:
            logger.warning("Dropping %d samples: %s", len(chunk), exc)
            return True
        except Exception as exc:
            logger.exception("Inference engine fault")
            self._fault(stream, str(exc))
            return False

        text = " ".join(segment.strip() for segment in segments if segment.strip())
        if not text or stream.cancelled:
            return True
        stream.transcript = f"{stream.transcript} {text}" if stream.transcript else text
        logger.debug("Partial: %s", text)
        self._dispatcher.post(stream.on_partial, stream.transcript)
        return True

    def _finalize(self, stream: _Stream) -> None:
        final_text = stream.transcript.strip()
        logger.info("Final: %s", final_text)
        self._dispatcher.post(stream.on_final, final_text)
        stream.transcript = ""
        stream.buffer.clear()

    def _fault(self, stream: _Stream, message: str) -> None:
        stream.cancelled = True
        with self._lock:
            if self._stream is stream:
                self._stream = None
        if stream.on_fault is not None:
            self._dispatcher.post(stream.on_fault, message)
