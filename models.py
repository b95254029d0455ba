"""Core data models for the app."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum


class SessionState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    LISTENING = "LISTENING"
    FINALIZING = "FINALIZING"
    ERROR = "ERROR"


def _default_threads() -> int:
    return max(2, (os.cpu_count() or 2) - 2)


@dataclass
class ASRConfig:
    threads: int = field(default_factory=_default_threads)
    temperature: float = 0.0
    language: str = "en"
    translate: bool = False
    no_context: bool = True
    single_segment: bool = True
    sample_rate: int = 16000
    chunk_seconds: float = 1.0

    @property
    def chunk_samples(self) -> int:
        return int(self.sample_rate * self.chunk_seconds)

    @classmethod
    def english(cls) -> "ASRConfig":
        return cls()


@dataclass
class ClipboardSnapshot:
    """Raw clipboard payloads keyed by data type."""

    payloads: dict[str, bytes] = field(default_factory=dict)

@dataclass
class InsertionResult:
    success: bool
    code: str = ""
    message: str = ""
    clipboard_restored: bool = False
