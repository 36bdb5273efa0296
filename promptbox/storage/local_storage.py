# promptbox/storage/local_storage.py
"""
Key-value string storage backends.

Values are opaque strings keyed by name. FileStorage keeps one file per key
under a data directory and watches it for writes made by other processes;
MemoryStorage keeps everything in a dict and can hand out siblings that share
the same data, the way several browser tabs share one localStorage.
"""
import logging
import os
import queue
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import quote, unquote

from promptbox.errors import QuotaExceededError, StorageError

logger = logging.getLogger(__name__)

# callback(key, new_value) - new_value is None when the key was removed
ChangeCallback = Callable[[str, Optional[str]], None]


class KeyValueStorage(ABC):
    """
    Abstract string key-value store.

    Change listeners are only told about writes made through *another*
    handle on the same data, never about this handle's own writes.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._listeners: List[ChangeCallback] = []
        self._listeners_lock = threading.Lock()

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store value under key. Raises StorageError (or QuotaExceededError)."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        pass

    def clear(self) -> None:
        """Remove every key."""
        for key in self.keys():
            self.remove_item(key)

    def __contains__(self, key: str) -> bool:
        return self.get_item(key) is not None

    def add_change_listener(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register a listener for external changes. Returns an unsubscribe function."""
        with self._listeners_lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._listeners_lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, key: str, value: Optional[str]):
        with self._listeners_lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(key, value)
            except Exception as e:
                logger.error(f"Storage change listener failed for '{key}': {e}", exc_info=True)

    def _check_quota(self, key: str, value: str, current: Iterable[tuple]):
        """Raise QuotaExceededError if writing value would push usage past the quota."""
        if self.quota_bytes is None:
            return
        used = sum(len(k.encode('utf-8')) + len(v.encode('utf-8')) for k, v in current if k != key)
        needed = len(key.encode('utf-8')) + len(value.encode('utf-8'))
        if used + needed > self.quota_bytes:
            raise QuotaExceededError(
                f"Writing '{key}' needs {needed} bytes, {self.quota_bytes - used} available"
            )


class _NotificationDispatcher:
    """
    Delivers change notifications between MemoryStorage siblings on one
    daemon thread. Listeners never run on the writing thread, so a listener
    taking its own store's lock never nests inside the writer's lock.
    """

    def __init__(self):
        self._queue: queue.Queue = queue.Queue()
        self._thread = None
        self._start_lock = threading.Lock()

    def submit(self, storage: 'KeyValueStorage', key: str, value: Optional[str]):
        self._ensure_running()
        self._queue.put((storage, key, value))

    def flush(self):
        """Block until every queued notification (and any it caused) was delivered."""
        self._queue.join()

    def _ensure_running(self):
        with self._start_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, daemon=True, name="StorageNotifier")
            self._thread.start()

    def _run(self):
        while True:
            storage, key, value = self._queue.get()
            try:
                storage._notify(key, value)
            finally:
                self._queue.task_done()


class MemoryStorage(KeyValueStorage):
    """In-process storage. Siblings share data and see each other's writes as external changes."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes=quota_bytes)
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()
        self._peers: List['MemoryStorage'] = [self]
        self._dispatcher = _NotificationDispatcher()

    def sibling(self) -> 'MemoryStorage':
        """Another handle on the same data (a second tab)."""
        other = MemoryStorage(quota_bytes=self.quota_bytes)
        other._data = self._data
        other._lock = self._lock
        other._peers = self._peers
        other._dispatcher = self._dispatcher
        self._peers.append(other)
        return other

    def get_item(self, key):
        with self._lock:
            return self._data.get(key)

    def set_item(self, key, value):
        if not isinstance(value, str):
            raise StorageError(f"Storage values must be strings, got {type(value).__name__}")
        with self._lock:
            self._check_quota(key, value, self._data.items())
            self._data[key] = value
        self._broadcast(key, value)

    def remove_item(self, key):
        with self._lock:
            if key not in self._data:
                return
            del self._data[key]
        self._broadcast(key, None)

    def keys(self):
        with self._lock:
            return list(self._data.keys())

    def flush(self):
        """Wait until siblings have been told about every write so far."""
        self._dispatcher.flush()

    def _broadcast(self, key, value):
        for peer in list(self._peers):
            if peer is not self:
                self._dispatcher.submit(peer, key, value)


class FileStorage(KeyValueStorage):
    """
    Directory-backed storage: one UTF-8 file per key.

    Writes go to a temp file and are moved into place so readers never see a
    partial value. A polling watcher reports files changed by other processes.
    """

    SUFFIX = '.json'

    def __init__(self, data_dir, quota_bytes: Optional[int] = None, watch_interval: float = 2.0):
        super().__init__(quota_bytes=quota_bytes)
        self.data_dir = Path(data_dir)
        self.watch_interval = watch_interval
        self._lock = threading.RLock()
        self._known: Dict[str, tuple] = {}

        self._watcher_thread = None
        self._watcher_running = False

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create storage directory {self.data_dir}: {e}")

        self._known = self._scan()

    def _path_for(self, key: str) -> Path:
        return self.data_dir / f"{quote(key, safe='')}{self.SUFFIX}"

    def _key_for(self, path: Path) -> str:
        return unquote(path.name[:-len(self.SUFFIX)])

    def _scan(self) -> Dict[str, tuple]:
        """Snapshot of (mtime_ns, size) per key currently on disk."""
        snapshot = {}
        try:
            for path in self.data_dir.glob(f"*{self.SUFFIX}"):
                try:
                    stat = path.stat()
                except FileNotFoundError:
                    continue
                snapshot[self._key_for(path)] = (stat.st_mtime_ns, stat.st_size)
        except OSError as e:
            logger.error(f"Failed to scan storage directory {self.data_dir}: {e}")
        return snapshot

    def get_item(self, key):
        path = self._path_for(key)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    def set_item(self, key, value):
        if not isinstance(value, str):
            raise StorageError(f"Storage values must be strings, got {type(value).__name__}")

        path = self._path_for(key)
        tmp_path = path.with_name(path.name + '.tmp')
        with self._lock:
            if self.quota_bytes is not None:
                current = ((k, self.get_item(k) or '') for k in self.keys())
                self._check_quota(key, value, current)
            try:
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    f.write(value)
                os.replace(tmp_path, path)
                stat = path.stat()
                self._known[key] = (stat.st_mtime_ns, stat.st_size)
            except OSError as e:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
                raise StorageError(f"Failed to write '{key}': {e}") from e

    def remove_item(self, key):
        with self._lock:
            try:
                self._path_for(key).unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StorageError(f"Failed to remove '{key}': {e}") from e
            self._known.pop(key, None)

    def keys(self):
        return sorted(self._scan().keys())

    # === External change detection ===

    def poll_changes(self) -> List[str]:
        """Compare disk against the last snapshot, notify listeners, return changed keys."""
        with self._lock:
            current = self._scan()
            changed = [k for k, sig in current.items() if self._known.get(k) != sig]
            removed = [k for k in self._known if k not in current]
            self._known = current

        for key in changed:
            try:
                value = self.get_item(key)
            except StorageError as e:
                logger.warning(f"Changed key '{key}' could not be read: {e}")
                value = None
            self._notify(key, value)
        for key in removed:
            self._notify(key, None)

        if changed or removed:
            logger.info(f"Detected external storage change: {changed + removed}")
        return changed + removed

    def start_watcher(self):
        """Start background watcher for writes made by other processes."""
        if self._watcher_thread is not None and self._watcher_thread.is_alive():
            logger.warning("Storage watcher already running")
            return

        self._watcher_running = True
        self._watcher_thread = threading.Thread(
            target=self._watcher_loop,
            daemon=True,
            name="StorageWatcher"
        )
        self._watcher_thread.start()
        logger.info(f"Storage watcher started on {self.data_dir}")

    def stop_watcher(self):
        """Stop the background watcher."""
        if self._watcher_thread is None:
            return

        self._watcher_running = False
        if self._watcher_thread.is_alive():
            self._watcher_thread.join(timeout=5)
        logger.info("Storage watcher stopped")

    def _watcher_loop(self):
        while self._watcher_running:
            try:
                time.sleep(self.watch_interval)
                self.poll_changes()
            except Exception as e:
                logger.error(f"Storage watcher error: {e}")
                time.sleep(5)  # Back off on errors
