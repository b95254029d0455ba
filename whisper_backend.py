"""Local whisper.cpp transcription backend via pywhispercpp."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import numpy as np

from errors import EngineProcessingError, ModelLoadError
from models import ASRConfig

try:
    from pywhispercpp.model import Model as WhisperModel
except Exception:  # pragma: no cover
    WhisperModel = None  # type: ignore

logger = logging.getLogger(__name__)


class WhisperCppTranscriber:
    """Runs one greedy whisper.cpp pass per call and returns segment texts."""

    def __init__(self, config: Optional[ASRConfig] = None) -> None:
        self._config = config or ASRConfig.english()
        self._model: Any = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def load(self, path: str) -> None:
        if WhisperModel is None:
            raise ModelLoadError("pywhispercpp is not installed")
        try:
            self._model = WhisperModel(
                path,
                n_threads=self._config.threads,
                print_realtime=False,
                print_progress=False,
            )
        except Exception as exc:
            raise ModelLoadError(f"Failed to initialize whisper context: {exc}") from exc
        logger.info("whisper.cpp system info: %s", self.system_info())

    def system_info(self) -> str:
        if self._model is None:
            return ""
        try:
            return str(self._model.system_info())
        except Exception:
            return ""

    def transcribe(self, samples: np.ndarray, config: ASRConfig) -> list[str]:
        if self._model is None:
            raise EngineProcessingError("model is not loaded")
        audio = np.ascontiguousarray(samples, dtype=np.float32)
        with self._lock:
            try:
                segments = self._model.transcribe(
                    audio,
                    n_threads=config.threads,
                    language=config.language,
                    translate=config.translate,
                    no_context=config.no_context,
                    single_segment=config.single_segment,
                    temperature=config.temperature,
                )
            except Exception as exc:
                raise EngineProcessingError(f"whisper.cpp processing failed: {exc}") from exc
        return [str(segment.text) for segment in segments]
