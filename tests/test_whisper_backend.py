"""Tests for WhisperCppTranscriber."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

import whisper_backend
from errors import EngineProcessingError, ModelLoadError
from models import ASRConfig
from whisper_backend import WhisperCppTranscriber


@patch("whisper_backend.WhisperModel")
def test_load_builds_model_from_path(mock_model: MagicMock) -> None:
    transcriber = WhisperCppTranscriber(ASRConfig(threads=3))
    transcriber.load("/models/ggml-tiny.en-f16.bin")

    assert transcriber.is_loaded is True
    args, kwargs = mock_model.call_args
    assert args == ("/models/ggml-tiny.en-f16.bin",)
    assert kwargs["n_threads"] == 3


@patch("whisper_backend.WhisperModel")
def test_load_failure_is_model_load_error(mock_model: MagicMock) -> None:
    mock_model.side_effect = RuntimeError("invalid model file")

    transcriber = WhisperCppTranscriber()
    with pytest.raises(ModelLoadError, match="invalid model file"):
        transcriber.load("/models/broken.bin")
    assert transcriber.is_loaded is False


def test_load_without_pywhispercpp(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(whisper_backend, "WhisperModel", None)
    with pytest.raises(ModelLoadError, match="pywhispercpp is not installed"):
        WhisperCppTranscriber().load("/models/ggml-tiny.en-f16.bin")


@patch("whisper_backend.WhisperModel")
def test_transcribe_returns_segment_texts(mock_model: MagicMock) -> None:
    model = mock_model.return_value
    model.transcribe.return_value = [SimpleNamespace(text=" Hello"), SimpleNamespace(text=" there.")]
    config = ASRConfig(threads=2)

    transcriber = WhisperCppTranscriber(config)
    transcriber.load("/models/ggml-tiny.en-f16.bin")
    texts = transcriber.transcribe(np.zeros(16000, dtype=np.float64), config)

    assert texts == [" Hello", " there."]
    audio = model.transcribe.call_args.args[0]
    assert audio.dtype == np.float32
    kwargs = model.transcribe.call_args.kwargs
    assert kwargs["language"] == "en"
    assert kwargs["translate"] is False
    assert kwargs["single_segment"] is True


@patch("whisper_backend.WhisperModel")
def test_transcribe_failure_is_processing_error(mock_model: MagicMock) -> None:
    mock_model.return_value.transcribe.side_effect = RuntimeError("whisper_full failed")

    transcriber = WhisperCppTranscriber()
    transcriber.load("/models/ggml-tiny.en-f16.bin")
    with pytest.raises(EngineProcessingError):
        transcriber.transcribe(np.zeros(100, dtype=np.float32), ASRConfig())


def test_transcribe_before_load_fails() -> None:
    with pytest.raises(EngineProcessingError):
        WhisperCppTranscriber().transcribe(np.zeros(10, dtype=np.float32), ASRConfig())
