"""
Settings Manager - Centralized configuration handling
Loads defaults, merges user overrides, resolves data paths
"""
import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

# Keys holding paths relative to BASE_DIR
PATH_KEYS = ('DATA_DIR', 'LOG_DIR')


class SettingsManager:
    """Manages application settings with persistence of user overrides."""

    def __init__(self, base_dir=None):
        self.BASE_DIR = Path(base_dir) if base_dir else Path(__file__).parent.parent
        self.DEFAULTS_PATH = Path(__file__).parent / 'settings_defaults.json'
        self._defaults = {}
        self._user = {}
        self._config = {}
        self._lock = threading.RLock()

        self._load_defaults()
        self._load_user_settings()
        self._merge_settings()

    @property
    def user_path(self) -> Path:
        return self.BASE_DIR / 'user' / 'settings.json'

    def _flatten_dict(self, nested_dict):
        """Flatten category-grouped settings to a single level"""
        items = {}
        for k, v in nested_dict.items():
            if k.startswith('_'):  # Skip metadata keys like _comment
                continue
            if isinstance(v, dict):
                items.update(self._flatten_dict(v))
            else:
                items[k] = v
        return items

    def _load_defaults(self):
        """Load promptbox/settings_defaults.json"""
        try:
            with open(self.DEFAULTS_PATH, 'r', encoding='utf-8') as f:
                nested = json.load(f)
            self._defaults = self._flatten_dict(nested)
            logger.info(f"Loaded default settings from {self.DEFAULTS_PATH}")
        except Exception as e:
            logger.error(f"Failed to load defaults: {e}")
            self._defaults = {}

    def _load_user_settings(self):
        """Load user/settings.json if exists"""
        if not self.user_path.exists():
            logger.info("No user settings found, using defaults")
            self._user = {}
            return

        try:
            with open(self.user_path, 'r', encoding='utf-8') as f:
                nested = json.load(f)
            self._user = self._flatten_dict(nested)
            logger.info(f"Loaded user settings from {self.user_path}")
        except Exception as e:
            logger.error(f"Failed to load user settings: {e}")
            self._user = {}

    def _merge_settings(self):
        """Merge defaults with user overrides and resolve relative paths"""
        self._config = {**self._defaults, **self._user}
        self._config['BASE_DIR'] = str(self.BASE_DIR)

        for key in PATH_KEYS:
            value = self._config.get(key)
            if value and not Path(value).is_absolute():
                self._config[key] = str(self.BASE_DIR / value)

    def get(self, key, default=None):
        """Get a setting value"""
        with self._lock:
            return self._config.get(key, default)

    def set(self, key, value, persist=False):
        """
        Set a setting value.

        Args:
            key: Setting key
            value: New value
            persist: If True, save to user/settings.json
        """
        with self._lock:
            if persist:
                self._user[key] = value
                self._merge_settings()
                self.save()
            else:
                self._config[key] = value

    def save(self):
        """Persist current user overrides to disk, grouped like the defaults"""
        try:
            with open(self.DEFAULTS_PATH, 'r', encoding='utf-8') as f:
                defaults_nested = json.load(f)
        except Exception:
            defaults_nested = {}

        nested = {"_comment": "Your custom settings - edit freely"}
        for key, value in self._user.items():
            category = self._find_category_for_key(defaults_nested, key)
            if category:
                nested.setdefault(category, {})[key] = value
            else:
                nested[key] = value

        try:
            self.user_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.user_path, 'w', encoding='utf-8') as f:
                json.dump(nested, f, indent=2)
            logger.info(f"Saved user settings to {self.user_path}")
            return True
        except Exception as e:
            logger.error(f"Failed to save user settings: {e}")
            return False

    def _find_category_for_key(self, nested_dict, target_key):
        """Find which top-level category a flat key belongs to"""
        for category, values in nested_dict.items():
            if category.startswith('_') or not isinstance(values, dict):
                continue
            if target_key in values:
                return category
        return None

    def reload(self):
        """Reload settings from disk"""
        with self._lock:
            self._load_user_settings()
            self._merge_settings()
            logger.info("Settings reloaded from disk")

    def remove_user_override(self, key):
        """
        Remove a user override for a key, reverting to default.

        Returns:
            bool: True if removed, False if no override existed
        """
        with self._lock:
            if key not in self._user:
                return False
            del self._user[key]
            self._merge_settings()
            self.save()
            logger.info(f"Removed user override for '{key}'")
            return True

    def get_user_overrides(self):
        """Get only the user-overridden settings"""
        return self._user.copy()

    def get_all_settings(self):
        """Get all current settings (defaults + user overrides)"""
        return self._config.copy()

    # Make this act like a module for attribute access
    def __getattr__(self, key):
        """Allow settings.KEY_NAME access"""
        if key.startswith('_'):
            return object.__getattribute__(self, key)
        with self._lock:
            if key in self._config:
                return self._config[key]
        raise AttributeError(f"Setting '{key}' not found")

    def __contains__(self, key):
        """Allow 'key in settings' checks"""
        with self._lock:
            return key in self._config

    def __repr__(self):
        return f"<SettingsManager: {len(self._config)} settings>"


settings = SettingsManager()
