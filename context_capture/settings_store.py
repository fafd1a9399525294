"""JSON-file persistence for provider selection and credentials."""

from __future__ import annotations

import contextlib
import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

from .types import Settings

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Settings = {
    "ocrService": "ocrspace",
    "llmService": "openai",
    "theme": "system",
    "apiKeys": {},
}

# Credentials are read from the environment when the store has none.
API_KEY_ENV = {
    "ocrspace": "OCR_SPACE_API_KEY",
    "googlevision": "GOOGLE_VISION_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


class SettingsError(Exception):
    """Raised when the settings file cannot be written."""


def validate_api_key(api_key: Optional[str], provider_id: str) -> bool:
    """Cheap shape check for an API key; not a substitute for a real call."""
    if not api_key or not api_key.strip():
        return False
    if provider_id == "openai":
        return api_key.startswith("sk-") and len(api_key) > 20
    if provider_id == "anthropic":
        return api_key.startswith("sk-ant-") and len(api_key) > 20
    if provider_id in ("gemini", "googlevision"):
        return len(api_key) > 20
    if provider_id == "ocrspace":
        return len(api_key) > 10
    return False


class SettingsStore:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                raw: Any = json.load(fh)
        except (json.JSONDecodeError, OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", self._path, exc)
            return
        if not isinstance(raw, dict):
            return
        data: Dict[str, Any] = {}
        for key in ("ocrService", "llmService", "theme"):
            value = raw.get(key)
            if isinstance(value, str) and value:
                data[key] = value
        keys = raw.get("apiKeys")
        if isinstance(keys, dict):
            data["apiKeys"] = {
                str(provider): str(secret)
                for provider, secret in keys.items()
                if isinstance(secret, str) and secret
            }
        self._data = data

    def _persist(self) -> None:
        tmp_path = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False, indent=2)
            tmp_path.replace(self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise SettingsError("Failed to save settings") from exc

    def get_settings(self) -> Settings:
        with self._lock:
            merged = copy.deepcopy(cast(Dict[str, Any], DEFAULT_SETTINGS))
            for key, value in self._data.items():
                merged[key] = copy.deepcopy(value)
        return cast(Settings, merged)

    def save_settings(self, update: Mapping[str, Any]) -> Settings:
        """Merge ``update`` over the stored settings; an empty key string deletes it."""
        with self._lock:
            previous = copy.deepcopy(self._data)
            for key, value in update.items():
                if key == "apiKeys":
                    keys: Dict[str, str] = dict(self._data.get("apiKeys", {}))
                    for provider, secret in (value or {}).items():
                        if secret:
                            keys[provider] = secret
                        else:
                            keys.pop(provider, None)
                    self._data["apiKeys"] = keys
                elif value is not None:
                    self._data[key] = value
            try:
                self._persist()
            except SettingsError:
                self._data = previous
                raise
        for provider, secret in (update.get("apiKeys") or {}).items():
            if secret and not validate_api_key(secret, provider):
                logger.warning("API key saved for %s does not look like a valid key", provider)
        return self.get_settings()

    def get_api_key(self, provider_id: str) -> Optional[str]:
        with self._lock:
            stored = self._data.get("apiKeys", {}).get(provider_id)
        if stored:
            return stored
        env_name = API_KEY_ENV.get(provider_id)
        return os.environ.get(env_name) if env_name else None

    def clear(self) -> None:
        with self._lock:
            self._data = {}
            self._path.unlink(missing_ok=True)


def default_settings_path() -> Path:
    configured = os.environ.get("CONTEXT_CAPTURE_SETTINGS_PATH")
    if configured:
        return Path(configured)
    return Path(__file__).with_name("settings.json")


__all__ = [
    "API_KEY_ENV",
    "DEFAULT_SETTINGS",
    "SettingsError",
    "SettingsStore",
    "default_settings_path",
    "validate_api_key",
]
