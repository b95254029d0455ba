"""Protocol interfaces used by TranscriptionSession and its collaborators."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

import numpy as np

from models import ASRConfig, ClipboardSnapshot, InsertionResult

SampleSink = Callable[[np.ndarray], None]
FaultCallback = Callable[[str], None]
TextCallback = Callable[[str], None]


class AudioSource(Protocol):
    @property
    def is_capturing(self) -> bool: ...

    def start_capture(self, sink: SampleSink, on_fault: Optional[FaultCallback] = None) -> None: ...

    def stop_capture(self) -> None: ...


class Transcriber(Protocol):
    def load(self, path: str) -> None: ...

    def transcribe(self, samples: np.ndarray, config: ASRConfig) -> list[str]: ...


class InferenceEngine(Protocol):
    def load_model(self, path: str) -> None: ...

    def is_model_loaded(self) -> bool: ...

    def begin_stream(
        self,
        config: ASRConfig,
        on_partial: TextCallback,
        on_final: TextCallback,
        on_fault: Optional[FaultCallback] = None,
    ) -> None: ...

    def feed(self, block: np.ndarray) -> None: ...

    def end_stream(self) -> None: ...

    def cancel_stream(self) -> None: ...


class InsertionGateway(Protocol):
    def insert(self, text: str) -> InsertionResult: ...


class PermissionGate(Protocol):
    def check_microphone_access(self) -> bool: ...

    def check_accessibility(self) -> bool: ...

    async def request_microphone(self) -> bool: ...

    async def request_accessibility(self) -> bool: ...


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None: ...


class Clipboard(Protocol):
    def snapshot(self) -> ClipboardSnapshot: ...

    def set_text(self, text: str) -> None: ...

    def restore(self, snapshot: ClipboardSnapshot) -> None: ...


class PasteKeystroke(Protocol):
    def send_paste(self) -> None: ...
