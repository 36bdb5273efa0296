"""Shared pytest fixtures for PromptBox tests."""
import sys
import json
from pathlib import Path

# Add project root to path BEFORE any other imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import pytest


@pytest.fixture
def event_bus():
    """Private event bus so tests don't see each other's events."""
    from promptbox.event_bus import EventBus
    return EventBus(backlog=200)


@pytest.fixture
def memory_storage():
    """Empty in-memory key-value storage."""
    from promptbox.storage import MemoryStorage
    return MemoryStorage()


@pytest.fixture
def adapter(memory_storage, event_bus):
    """JSON adapter over memory storage."""
    from promptbox.storage import PersistentStoreAdapter
    return PersistentStoreAdapter(memory_storage, namespace="prompt", event_bus=event_bus)


@pytest.fixture
def store(adapter):
    """Document store starting from an empty library."""
    from promptbox.library import DocumentStore
    return DocumentStore(adapter)


@pytest.fixture
def data_dir(tmp_path):
    """Directory for file-backed storage."""
    path = tmp_path / "storage"
    path.mkdir()
    return path


@pytest.fixture
def sample_prompts():
    """Three prompts with overlapping categories and tags."""
    return [
        {
            "id": "alpha",
            "title": "Alpha",
            "description": "First prompt about React components",
            "rating": 2,
            "categories": ["frontend", "vibe"],
            "tags": ["chatgpt", "work"],
        },
        {
            "id": "beta",
            "title": "Beta",
            "description": "Backend API design",
            "rating": 3,
            "categories": ["backend"],
            "tags": ["work", "super"],
        },
        {
            "id": "gamma",
            "title": "Gamma",
            "description": "Loose notes",
            "rating": 0,
            "categories": [],
            "tags": [],
        },
    ]


@pytest.fixture
def populated_store(store, sample_prompts):
    """Store holding the sample prompts."""
    for prompt in sample_prompts:
        store.create_or_update_prompt(prompt)
    return store


@pytest.fixture
def unicode_content():
    """Sample unicode content for encoding tests."""
    return {
        "japanese": "日本語テスト",
        "emoji": "Hello 👋 World 🌍",
        "mixed": "Test テスト 测试 🎉"
    }


@pytest.fixture
def settings_defaults():
    """Minimal grouped settings defaults for testing."""
    return {
        "_comment": "test defaults",
        "storage": {
            "DATA_DIR": "user/storage",
            "STORAGE_NAMESPACE": "prompt",
        },
        "web": {
            "WEB_UI_PORT": 8073,
        },
    }


@pytest.fixture
def settings_defaults_file(tmp_path, settings_defaults):
    """Temporary settings_defaults.json."""
    defaults_file = tmp_path / "settings_defaults.json"
    defaults_file.write_text(json.dumps(settings_defaults), encoding='utf-8')
    return defaults_file
