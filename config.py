"""
Configuration Proxy

Defaults live in promptbox/settings_defaults.json; put overrides in
user/settings.json.

"""

# Proxy all attribute access to settings_manager
from promptbox.settings_manager import settings as _settings

def __getattr__(name):
    """Forward all config.SOMETHING to settings_manager"""
    return getattr(_settings, name)

# For backwards compatibility with 'key in config' checks
def __contains__(key):
    return key in _settings
