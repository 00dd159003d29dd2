"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path

from models import PipelineTimings

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "voice_tasks"

DEFAULT_HOTKEY = "Key.f8"
DEFAULT_LOCALE = "en-US"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        return str(self._read_all().get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        return str(self._read_all().get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_locale(self) -> str:
        return str(self._read_all().get("locale", DEFAULT_LOCALE))

    def get_timings(self) -> PipelineTimings:
        raw = self._read_all().get("timings")
        defaults = PipelineTimings()
        if not isinstance(raw, dict):
            return defaults
        values = {}
        for field in fields(PipelineTimings):
            value = raw.get(field.name)
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                values[field.name] = value
            elif value is not None:
                logger.warning("Ignoring invalid timing %s=%r", field.name, value)
        return PipelineTimings(**{**asdict(defaults), **values})

    def set_timings(self, timings: PipelineTimings) -> None:
        self._set("timings", asdict(timings))

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Unreadable config %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
