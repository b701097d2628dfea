"""
Key-value persistence for credits and assets.

The core only ever needs get/set by key, so any medium works. Two backends
ship here: an in-process dict and a JSON file on disk.

Usage:
    from listing_studio.utils.storage import JsonFileStore, AssetStore

    store = JsonFileStore(Path("data/studio.json"))
    assets = AssetStore(store)
    assets.save(asset)
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from ..models.schemas import ImageAsset
from .logger import get_logger

logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Minimal get/set persistence contract."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Process-local store, lost on restart."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """Store backed by a single JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f) or {}
        except json.JSONDecodeError as e:
            logger.error(
                f"Store file is not valid JSON, starting empty: {e}",
                extra={"path": str(self.path)}
            )
            return {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._data, f)
            tmp_path.replace(self.path)


class AssetStore:
    """ImageAsset records on top of a key-value store."""

    KEY_PREFIX = "asset:"
    INDEX_KEY = "asset_ids"

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self, asset_id: str) -> Optional[ImageAsset]:
        raw = self.store.get(self.KEY_PREFIX + asset_id)
        if raw is None:
            return None
        return ImageAsset.model_validate(raw)

    def save(self, asset: ImageAsset) -> None:
        self.store.set(self.KEY_PREFIX + asset.id, asset.model_dump(mode="json"))
        ids: List[str] = self.store.get(self.INDEX_KEY, [])
        if asset.id not in ids:
            self.store.set(self.INDEX_KEY, ids + [asset.id])

    def list_ids(self) -> List[str]:
        return list(self.store.get(self.INDEX_KEY, []))
