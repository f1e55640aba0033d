from __future__ import annotations
"""Persistent defaults for the lister."""

from dataclasses import dataclass, field
import json
from pathlib import Path

from .exclusions import DEFAULT_EXCLUDED_EXTENSIONS, DEFAULT_EXCLUDED_KEYWORDS
from .sinks import DEFAULT_QUEUE_SIZE


@dataclass
class AppSettings:
    """Defaults applied when the command line leaves a value unset."""

    workers: int = 10
    endpoint_url: str = ""
    queue_size: int = DEFAULT_QUEUE_SIZE
    default_excluded_extensions: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_EXTENSIONS)
    )
    default_excluded_keywords: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_KEYWORDS)
    )


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _string_list(value, default: list[str]) -> list[str]:
    if not isinstance(value, list):
        return list(default)
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3lister_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        defaults = AppSettings()
        if not self._path.exists():
            return defaults
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return defaults
        if not isinstance(data, dict):
            return defaults
        endpoint_url = data.get("endpoint_url", "")
        return AppSettings(
            workers=_positive_int(data.get("workers"), defaults.workers),
            endpoint_url=endpoint_url.strip() if isinstance(endpoint_url, str) else "",
            queue_size=_positive_int(data.get("queue_size"), defaults.queue_size),
            default_excluded_extensions=_string_list(
                data.get("default_excluded_extensions"), defaults.default_excluded_extensions
            ),
            default_excluded_keywords=_string_list(
                data.get("default_excluded_keywords"), defaults.default_excluded_keywords
            ),
        )

    def save(self, settings: AppSettings) -> None:
        payload = {
            "workers": max(int(settings.workers), 1),
            "endpoint_url": settings.endpoint_url or "",
            "queue_size": max(int(settings.queue_size), 1),
            "default_excluded_extensions": list(settings.default_excluded_extensions),
            "default_excluded_keywords": list(settings.default_excluded_keywords),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
