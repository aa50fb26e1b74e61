"""Persistent node context - a small async key-value store backed by a JSON file."""

import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    """Raised when an operation needs the node context and none was provided."""


class NodeStorage:
    """Key-value context persisted as a single JSON document.

    File format:
    {
        "plugins": [
            {"name": "matterbridge-example", "path": "...", "enabled": true, ...}
        ]
    }
    """

    def __init__(self, directory: Path, name: str = "matterbridge"):
        self.directory = Path(directory)
        self.name = name
        self.file = self.directory / f"{name}.json"
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        """Load context from file, starting empty if not found or unreadable."""
        if self.file.exists():
            try:
                with open(self.file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                logger.error(f"Node context {self.file} is not a JSON object, starting empty")
            except (json.JSONDecodeError, IOError) as e:
                logger.error(f"Error loading node context {self.file}: {e}")

        return {}

    def _save(self) -> None:
        """Save context to file."""
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self.file, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved node context to {self.file}")

    async def get(self, key: str, default: Any = None) -> Any:
        """Get a stored value, or `default` when the key is absent."""
        return self._data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value and flush it to disk."""
        self._data[key] = value
        self._save()

    async def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()

    async def clear(self) -> None:
        self._data = {}
        self._save()

    def keys(self) -> list[str]:
        return list(self._data.keys())
