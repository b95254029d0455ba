"""JSON-based config store and model path resolution."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Iterable, Optional

DEFAULT_MODEL_NAME = "ggml-tiny.en-f16.bin"
DEFAULT_HOTKEY = "Key.alt_r"


def model_search_paths(model_name: str = DEFAULT_MODEL_NAME, cwd: Optional[Path] = None) -> list[Path]:
    """Candidate model locations, most specific first."""
    cwd = cwd or Path.cwd()
    bundle_dir = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parent))
    return [
        bundle_dir / "resources" / model_name,
        cwd / "models" / model_name,
        Path.home() / ".inline" / "models" / model_name,
        cwd.parent / "models" / model_name,
    ]


def resolve_model_path(candidates: Iterable[Path], default: Optional[Path] = None) -> Path:
    """Return the first existing candidate, else ``default`` or the first one."""
    candidates = list(candidates)
    for path in candidates:
        if path.is_file():
            return path
    if default is not None:
        return default
    if not candidates:
        raise ValueError("no model path candidates")
    return candidates[0]


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "inline_dictation" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_model_path(self) -> str:
        data = self._read_all()
        return str(data.get("model_path", ""))

    def set_model_path(self, path: str) -> None:
        data = self._read_all()
        data["model_path"] = path
        self._write_all(data)

    def get_model_name(self) -> str:
        data = self._read_all()
        return str(data.get("model_name", DEFAULT_MODEL_NAME))

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_input_device(self) -> Optional[str]:
        data = self._read_all()
        value = data.get("input_device")
        return str(value) if value else None

    def set_input_device(self, device: Optional[str]) -> None:
        data = self._read_all()
        data["input_device"] = device
        self._write_all(data)

    def get_log_level(self) -> str:
        data = self._read_all()
        return str(data.get("log_level", "INFO")).upper()

    def get_restore_delay_s(self) -> float:
        data = self._read_all()
        try:
            return max(0.0, float(data.get("restore_delay_ms", 100)) / 1000.0)
        except (TypeError, ValueError):
            return 0.1

    def resolve_model_path(self) -> Path:
        configured = self.get_model_path()
        if configured:
            return Path(configured).expanduser()
        name = self.get_model_name()
        return resolve_model_path(model_search_paths(name), default=Path.cwd() / "models" / name)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
