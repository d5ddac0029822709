import json
import os
from typing import Any, Dict, Optional

from compass.log import get_logger

logger = get_logger("compass.prefs")

MODE_KEY = "mode"
BUBBLE_SEEN_KEY = "bubble_seen"


class PreferenceStore:
    """Small key/value store for UI preferences that outlive a page visit.

    The base class keeps values in memory. Values are loaded once at
    construction and `_save` runs after every `set`.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._save()

    def _save(self) -> None:
        pass


class JsonFilePreferenceStore(PreferenceStore):
    def __init__(self, path: str):
        self._path = path
        super().__init__(self._load())

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(json.dumps({"event": "prefs_load_failed", "path": self._path, "error": str(e)}))
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> None:
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._values, f)


def open_preferences(path: Optional[str]) -> PreferenceStore:
    return JsonFilePreferenceStore(path) if path else PreferenceStore()
