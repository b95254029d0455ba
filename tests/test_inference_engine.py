"""Tests for StreamingInferenceEngine."""

from __future__ import annotations

import threading
from pathlib import Path

import numpy as np
import pytest

from errors import (
    AlreadyStreamingError,
    EngineProcessingError,
    ModelLoadError,
    ModelNotLoadedError,
)
from event_dispatcher import EventDispatcher
from inference_engine import StreamingInferenceEngine, expected_size_range
from models import ASRConfig


class StubTranscriber:
    """Returns scripted text per call; ``None`` entries raise a chunk error."""

    def __init__(self, outputs: list) -> None:  # noqa: ANN001
        self.outputs = list(outputs)
        self.loaded_path: str | None = None
        self.calls: list[int] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def load(self, path: str) -> None:
        self.loaded_path = path

    def transcribe(self, samples: np.ndarray, config: ASRConfig) -> list[str]:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self.calls.append(len(samples))
            output = self.outputs.pop(0) if self.outputs else ""
            if output is None:
                raise EngineProcessingError("bad chunk")
            if isinstance(output, Exception):
                raise output
            return [output] if output else []
        finally:
            with self._lock:
                self.active -= 1


class Collector:
    def __init__(self) -> None:
        self.partials: list[str] = []
        self.finals: list[str] = []
        self.faults: list[str] = []
        self.threads: set[str] = set()
        self.final_event = threading.Event()
        self.fault_event = threading.Event()

    def on_partial(self, text: str) -> None:
        self.threads.add(threading.current_thread().name)
        self.partials.append(text)

    def on_final(self, text: str) -> None:
        self.threads.add(threading.current_thread().name)
        self.finals.append(text)
        self.final_event.set()

    def on_fault(self, message: str) -> None:
        self.faults.append(message)
        self.fault_event.set()


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    path = tmp_path / "ggml-tiny.en-f16.bin"
    path.write_bytes(b"\x00" * 1024)
    return path


def _engine(outputs: list, model_file: Path) -> tuple[StreamingInferenceEngine, StubTranscriber]:  # noqa: ANN001
    transcriber = StubTranscriber(outputs)
    engine = StreamingInferenceEngine(transcriber, dispatcher=EventDispatcher(name="test-events"))
    engine.load_model(str(model_file))
    return engine, transcriber


# ---------------------------------------------------------------
# Model loading
# ---------------------------------------------------------------

def test_load_model_missing_file_fails(tmp_path: Path) -> None:
    engine = StreamingInferenceEngine(StubTranscriber([]))
    with pytest.raises(ModelLoadError, match="not found"):
        engine.load_model(str(tmp_path / "missing.bin"))
    assert engine.is_model_loaded() is False


def test_unusual_model_size_only_warns(model_file: Path, caplog) -> None:  # noqa: ANN001
    transcriber = StubTranscriber([])
    engine = StreamingInferenceEngine(transcriber)
    with caplog.at_level("WARNING"):
        engine.load_model(str(model_file))

    assert engine.is_model_loaded() is True
    assert transcriber.loaded_path == str(model_file)
    assert "size seems unusual" in caplog.text


def test_backend_failure_becomes_model_load_error(model_file: Path) -> None:
    class Broken(StubTranscriber):
        def load(self, path: str) -> None:
            raise RuntimeError("bad magic")

    engine = StreamingInferenceEngine(Broken([]))
    with pytest.raises(ModelLoadError, match="bad magic"):
        engine.load_model(str(model_file))
    assert engine.is_model_loaded() is False


def test_expected_size_range_by_variant() -> None:
    assert expected_size_range(Path("ggml-base.en.bin")) is not None
    assert expected_size_range(Path("ggml-medium.en.bin"))[0] > expected_size_range(Path("ggml-small.bin"))[0]
    assert expected_size_range(Path("custom.bin")) is None


# ---------------------------------------------------------------
# Stream lifecycle
# ---------------------------------------------------------------

def test_begin_stream_without_model_fails() -> None:
    engine = StreamingInferenceEngine(StubTranscriber([]))
    collector = Collector()
    with pytest.raises(ModelNotLoadedError):
        engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)
    assert engine.is_streaming is False


def test_only_one_stream_at_a_time(model_file: Path) -> None:
    engine, _ = _engine([], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)
    with pytest.raises(AlreadyStreamingError):
        engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)
    engine.cancel_stream()


def test_partials_are_cumulative_and_final_is_trimmed(model_file: Path) -> None:
    engine, transcriber = _engine(["hello", " big ", "world"], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)

    engine.feed(np.zeros(40000, dtype=np.float32))
    engine.end_stream()

    assert collector.final_event.wait(2.0)
    assert collector.partials == ["hello", "hello big", "hello big world"]
    assert collector.finals == ["hello big world"]
    # two full chunks then the 8000-sample remainder
    assert transcriber.calls == [16000, 16000, 8000]


def test_two_chunk_scenario_with_empty_second_chunk(model_file: Path) -> None:
    engine, _ = _engine(["hi", ""], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)

    for _ in range(2):
        engine.feed(np.zeros(16000, dtype=np.float32))
    engine.end_stream()

    assert collector.final_event.wait(2.0)
    assert collector.partials == ["hi"]
    assert collector.finals == ["hi"]


def test_chunk_processing_error_is_absorbed(model_file: Path) -> None:
    engine, transcriber = _engine(["one", None, "three"], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final, collector.on_fault)

    engine.feed(np.zeros(48000, dtype=np.float32))
    engine.end_stream()

    assert collector.final_event.wait(2.0)
    assert collector.finals == ["one three"]
    assert collector.faults == []
    assert len(transcriber.calls) == 3


def test_unexpected_backend_exception_is_a_fault(model_file: Path) -> None:
    engine, _ = _engine([RuntimeError("context lost")], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final, collector.on_fault)

    engine.feed(np.zeros(16000, dtype=np.float32))

    assert collector.fault_event.wait(2.0)
    assert collector.faults == ["context lost"]
    assert engine.is_streaming is False


def test_final_fires_once_and_state_resets_for_next_stream(model_file: Path) -> None:
    engine, _ = _engine(["first", "second"], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)
    engine.feed(np.zeros(16000, dtype=np.float32))
    engine.end_stream()
    engine.end_stream()
    assert collector.final_event.wait(2.0)

    second = Collector()
    engine.begin_stream(ASRConfig(), second.on_partial, second.on_final)
    engine.feed(np.zeros(16000, dtype=np.float32))
    engine.end_stream()
    assert second.final_event.wait(2.0)

    assert engine.dispatcher.wait_until_idle(2.0)
    assert collector.finals == ["first"]
    assert second.finals == ["second"]


def test_end_stream_without_audio_emits_empty_final(model_file: Path) -> None:
    engine, transcriber = _engine([], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)
    engine.end_stream()

    assert collector.final_event.wait(2.0)
    assert collector.finals == [""]
    assert transcriber.calls == []


def test_cancel_stream_suppresses_final(model_file: Path) -> None:
    engine, _ = _engine(["ignored"], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)
    engine.feed(np.zeros(100, dtype=np.float32))
    engine.cancel_stream()

    assert not collector.final_event.wait(0.2)
    assert engine.is_streaming is False


def test_feed_without_stream_is_ignored(model_file: Path) -> None:
    engine, transcriber = _engine(["x"], model_file)
    engine.feed(np.zeros(32000, dtype=np.float32))
    assert transcriber.calls == []


def test_callbacks_run_on_dispatcher_thread_and_model_never_overlaps(model_file: Path) -> None:
    engine, transcriber = _engine(["a", "b", "c", "d"], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)

    for _ in range(8):
        engine.feed(np.zeros(8000, dtype=np.float32))
    engine.end_stream()

    assert collector.final_event.wait(2.0)
    assert collector.threads == {"test-events"}
    assert transcriber.max_active == 1
    assert collector.finals == ["a b c d"]


def test_remainder_is_flushed_and_late_audio_is_dropped(model_file: Path) -> None:
    engine, transcriber = _engine(["one", "two", "late"], model_file)
    collector = Collector()
    engine.begin_stream(ASRConfig(), collector.on_partial, collector.on_final)

    engine.feed(np.zeros(20000, dtype=np.float32))
    engine.end_stream()
    engine.feed(np.zeros(50000, dtype=np.float32))

    assert collector.final_event.wait(2.0)
    assert transcriber.calls == [16000, 4000]
    assert collector.finals == ["one two"]
