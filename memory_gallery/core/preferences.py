"""
User preference persistence.

Plain JSON with two objects:
- "userPreferences": theme and animation toggles
- "config": free-form string settings (log levels, ...)

No versioning or migration; unreadable files fall back to defaults.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "userPreferences"
CONFIG_KEY = "config"


@dataclass
class UserPreferences:
    theme: str = "system"               # system | light | dark
    animations_enabled: bool = True
    reduced_motion: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPreferences":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class PreferencesStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Dict[str, Any] = {PREFERENCES_KEY: {}, CONFIG_KEY: {}}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed preferences file {self.path}")
            return
        self._data[PREFERENCES_KEY] = dict(raw.get(PREFERENCES_KEY) or {})
        self._data[CONFIG_KEY] = dict(raw.get(CONFIG_KEY) or {})

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        # atomic replace
        os.replace(tmp, self.path)

    # --------------------------------------------------------

    @property
    def preferences(self) -> UserPreferences:
        return UserPreferences.from_dict(self._data[PREFERENCES_KEY])

    def save_preferences(self, prefs: UserPreferences) -> None:
        self._data[PREFERENCES_KEY] = asdict(prefs)
        self._save()

    def get_config(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._data[CONFIG_KEY].get(key)
        return default if value is None else str(value)

    def set_config(self, key: str, value: str) -> None:
        self._data[CONFIG_KEY][key] = str(value)
        self._save()
