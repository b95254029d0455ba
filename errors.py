"""Shared error codes, user-facing messages and exceptions."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
CAPTURE_FAILED = "CAPTURE_FAILED"
MODEL_NOT_LOADED = "MODEL_NOT_LOADED"
MODEL_LOAD_FAILED = "MODEL_LOAD_FAILED"
ALREADY_STREAMING = "ALREADY_STREAMING"
ALREADY_INSERTING = "ALREADY_INSERTING"
CLIPBOARD_ACCESS_FAILED = "CLIPBOARD_ACCESS_FAILED"
PASTE_COMMAND_FAILED = "PASTE_COMMAND_FAILED"
ACCESSIBILITY_DENIED = "ACCESSIBILITY_DENIED"
ENGINE_PROCESSING_ERROR = "ENGINE_PROCESSING_ERROR"
ENGINE_FAULT = "ENGINE_FAULT"
SESSION_BUSY = "SESSION_BUSY"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required in system settings.",
    CAPTURE_FAILED: "The microphone is busy or unavailable, please retry.",
    MODEL_NOT_LOADED: "No speech model is loaded.",
    MODEL_LOAD_FAILED: "The speech model could not be loaded.",
    ALREADY_STREAMING: "A transcription stream is already active.",
    ALREADY_INSERTING: "Another insertion is in progress.",
    CLIPBOARD_ACCESS_FAILED: "Could not access the clipboard.",
    PASTE_COMMAND_FAILED: "Could not send paste command to the application.",
    ACCESSIBILITY_DENIED: "Accessibility permission is required for text insertion.",
    ENGINE_PROCESSING_ERROR: "A chunk of audio could not be transcribed.",
    ENGINE_FAULT: "The speech engine stopped unexpectedly.",
    SESSION_BUSY: "Dictation is already starting or stopping.",
}

FALLBACK_MESSAGE = "Could not insert text. It has been copied to your clipboard instead."


class DictationError(Exception):
    code = ""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES.get(self.code, self.code))
        self.message = str(self)


class PermissionDeniedError(DictationError):
    code = PERMISSION_DENIED


class CaptureError(DictationError):
    code = CAPTURE_FAILED


class ModelNotLoadedError(DictationError):
    code = MODEL_NOT_LOADED


class ModelLoadError(DictationError):
    code = MODEL_LOAD_FAILED


class AlreadyStreamingError(DictationError):
    code = ALREADY_STREAMING


class EngineProcessingError(DictationError):
    code = ENGINE_PROCESSING_ERROR


class SessionBusyError(DictationError):
    code = SESSION_BUSY
