# promptbox/storage/store_adapter.py
"""
JSON persistence on top of a KeyValueStorage.

Reads never raise: anything missing or undecodable comes back as None and the
caller falls back to its default state. Failed writes are reported as a
warning (log + storage_write_failed event) and a False return value.
"""
import json
import logging
from typing import Any, Callable, Optional

from promptbox.errors import StorageError, classify_storage_error
from promptbox.event_bus import EventBus, Events, get_event_bus
from promptbox.storage.local_storage import KeyValueStorage

logger = logging.getLogger(__name__)

DOCUMENT_KEY = 'promptBoxData'
HANDOFF_KEY = 'promptEditor_data'
FILTERS_KEY = 'promptbox_filters'

APP_KEYS = (DOCUMENT_KEY, HANDOFF_KEY, FILTERS_KEY)


class PersistentStoreAdapter:
    """Load/save JSON values by key, tolerating missing or corrupt entries."""

    def __init__(self, storage: KeyValueStorage, namespace: str = 'prompt',
                 event_bus: Optional[EventBus] = None):
        self.storage = storage
        self.namespace = namespace
        self.event_bus = event_bus or get_event_bus()
        self.last_error: Optional[str] = None

    def load(self, key: str) -> Optional[Any]:
        """Decoded value under key, or None if missing or unreadable."""
        try:
            raw = self.storage.get_item(key)
        except StorageError as e:
            logger.warning(f"Failed to read '{key}', treating as empty: {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Stored value for '{key}' is not valid JSON, ignoring: {e}")
            return None

    def save(self, key: str, value: Any) -> bool:
        """
        Encode and write value under key.

        Returns:
            True on success, False if the write failed (a warning is published)
        """
        try:
            encoded = json.dumps(value, ensure_ascii=False)
            self.storage.set_item(key, encoded)
        except (StorageError, TypeError, ValueError) as e:
            message = classify_storage_error(e)
            self.last_error = message
            logger.warning(f"Failed to save '{key}': {e}")
            self.event_bus.publish(Events.STORAGE_WRITE_FAILED, {"key": key, "message": message})
            return False

        self.last_error = None
        logger.debug(f"Saved '{key}' ({len(encoded)} chars)")
        return True

    def exists(self, key: str) -> bool:
        """True if anything (even an undecodable value) is stored under key."""
        try:
            return self.storage.get_item(key) is not None
        except StorageError:
            return True

    def remove(self, key: str) -> bool:
        try:
            self.storage.remove_item(key)
            return True
        except StorageError as e:
            logger.warning(f"Failed to remove '{key}': {e}")
            return False

    def is_app_key(self, key: str) -> bool:
        """Keys owned by this application: the fixed keys plus anything carrying the namespace token."""
        return key in APP_KEYS or (bool(self.namespace) and self.namespace in key)

    def clear_app_data(self) -> list:
        """Remove this application's keys and leave unrelated keys untouched."""
        try:
            keys = self.storage.keys()
        except StorageError as e:
            logger.warning(f"Failed to list storage keys: {e}")
            keys = []

        targets = list(APP_KEYS) + [k for k in keys if k not in APP_KEYS and self.is_app_key(k)]
        removed = [key for key in targets if key in keys and self.remove(key)]

        logger.info(f"Cleared app data: {removed}")
        self.event_bus.publish(Events.DATA_CLEARED, {"scope": "app", "keys": removed})
        return removed

    def clear_all(self) -> bool:
        """Wipe every key in the underlying storage, then ask the presentation layer to reload."""
        try:
            self.storage.clear()
        except StorageError as e:
            logger.error(f"Failed to clear storage: {e}")
            return False

        logger.info("Cleared all storage data")
        self.event_bus.publish(Events.DATA_CLEARED, {"scope": "all"})
        self.event_bus.publish(Events.RELOAD_REQUIRED, {"reason": "clear_all"})
        return True

    def on_external_change(self, callback: Callable[[str, Optional[Any]], None]) -> Callable[[], None]:
        """
        Call callback(key, decoded_value) whenever another handle writes to storage.

        Returns:
            Unsubscribe function
        """
        def _on_change(key, raw):
            value = None
            if raw is not None:
                try:
                    value = json.loads(raw)
                except (json.JSONDecodeError, TypeError):
                    logger.warning(f"External change to '{key}' is not valid JSON")
            self.event_bus.publish(Events.STORAGE_EXTERNAL_CHANGE, {"key": key})
            callback(key, value)

        return self.storage.add_change_listener(_on_change)
