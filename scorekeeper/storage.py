import json
import logging
import os
import shutil
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from scorekeeper.config import DATA_DIR, SCHEMA_VERSION
from scorekeeper.exceptions import StorageDecodeError, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChangeListener = Callable[["CollectionKey"], None]


class CollectionKey(str, Enum):
    """
    Logical collection names. ``SETTINGS`` is reserved for app settings;
    nothing in this package stores to it, but ``clear_all`` removes it.
    """

    TEAMS = "teams"
    MATCHES = "matches"
    SETTINGS = "settings"


class JsonStorage:
    """
    Collection store backed by one JSON file per key.

    File layout: ``{"version": <int>, "payload": [...]}``. A bare list
    (unversioned file) is accepted on load. Records that fail to decode are
    skipped and the file is copied to ``<key>.json.corrupt`` first.
    Listeners registered with ``subscribe`` are called with the key after
    every save or clear.
    """

    def __init__(self, base_dir: Path = DATA_DIR, version: int = SCHEMA_VERSION):
        self.base_dir = Path(base_dir)
        self.version = version
        self._listeners: List[ChangeListener] = []

    def path_for(self, key: CollectionKey) -> Path:
        return self.base_dir / f"{CollectionKey(key).value}.json"

    def backup_path_for(self, key: CollectionKey) -> Path:
        return self.path_for(key).with_suffix(".json.corrupt")

    def quarantine(self, key: CollectionKey) -> Optional[Path]:
        """Move an unreadable collection file aside. Returns the new path."""
        path = self.path_for(key)
        if not path.exists():
            return None
        backup = self.backup_path_for(key)
        os.replace(path, backup)
        logger.warning("Moved unreadable collection %s to %s", CollectionKey(key).value, backup)
        return backup

    # ---------------------------------------------------------
    # Load / save
    # ---------------------------------------------------------

    def load_collection(self, key: CollectionKey, decode: Callable[[Dict[str, Any]], T]) -> List[T]:
        key = CollectionKey(key)
        path = self.path_for(key)
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageDecodeError(key.value, str(e)) from e

        if isinstance(data, dict):
            version = data.get("version")
            if version != self.version:
                logger.warning(
                    "Collection %s stored with version %s, expected %s; loading as-is",
                    key.value, version, self.version,
                )
            payload = data.get("payload")
        else:
            payload = data

        if not isinstance(payload, list):
            raise StorageDecodeError(key.value, "payload must be a list")

        items = []
        skipped = 0
        for index, item in enumerate(payload):
            try:
                items.append(decode(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                skipped += 1
                logger.warning("Skipping bad record %d in collection %s: %s", index, key.value, e)

        if skipped:
            backup = self.backup_path_for(key)
            try:
                shutil.copy2(path, backup)
            except OSError as e:
                logger.error("Cannot back up collection %s to %s: %s", key.value, backup, e)
            else:
                logger.warning(
                    "Collection %s: %d of %d record(s) unreadable; original kept at %s",
                    key.value, skipped, len(payload), backup,
                )
        return items

    def save_collection(self, key: CollectionKey, items: List[T], encode: Callable[[T], Dict[str, Any]]):
        key = CollectionKey(key)
        path = self.path_for(key)
        tmp = path.with_suffix(".json.tmp")
        box = {"version": self.version, "payload": [encode(item) for item in items]}

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(box, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            logger.error("Failed to persist collection %s: %s", key.value, e)
            raise StorageError(f"Cannot write collection '{key.value}'") from e

        logger.debug("Saved %d record(s) to %s", len(items), path)
        self._notify(key)

    def clear(self, key: CollectionKey):
        key = CollectionKey(key)
        path = self.path_for(key)
        if path.exists():
            path.unlink()
        self._notify(key)

    def clear_all(self):
        for key in CollectionKey:
            self.clear(key)

    # ---------------------------------------------------------
    # Change notifications
    # ---------------------------------------------------------

    def subscribe(self, listener: ChangeListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, key: CollectionKey):
        for listener in list(self._listeners):
            listener(CollectionKey(key))
