# main.py
import sys
import logging

import config
from promptbox.promptbox_logging import configure_logging

# Logging first, before any module logs at import time
configure_logging(config.LOG_DIR, config.LOG_LEVEL, config.LOG_BACKUP_DAYS)
logger = logging.getLogger(__name__)

try:
    from flask import Flask
    from promptbox.event_bus import get_event_bus
    from promptbox.storage import FileStorage, PersistentStoreAdapter
    from promptbox.library import DocumentStore
    from promptbox.library.library_api import create_library_api
except Exception as e:
    logger.critical(f"FATAL: Import error during startup: {e}", exc_info=True)
    sys.exit(1)


def build_store():
    """Wire storage -> adapter -> document store from settings."""
    storage = FileStorage(
        config.DATA_DIR,
        quota_bytes=config.STORAGE_QUOTA_BYTES,
        watch_interval=config.STORAGE_WATCH_INTERVAL,
    )
    adapter = PersistentStoreAdapter(storage, namespace=config.STORAGE_NAMESPACE, event_bus=get_event_bus())
    store = DocumentStore(
        adapter,
        seed_samples=config.SEED_SAMPLE_PROMPTS,
        app_name=config.APP_NAME,
        header_title=config.HEADER_TITLE,
        search_placeholder=config.SEARCH_PLACEHOLDER,
    )
    return storage, store


def create_app(store):
    app = Flask(__name__)
    app.register_blueprint(create_library_api(store))
    return app


def main():
    storage, store = build_store()

    # Pick up anything an editor handed off while we were down
    store.activate()
    store.start_sync()
    storage.start_watcher()

    app = create_app(store)
    logger.info(f"PromptBox serving on http://{config.WEB_UI_HOST}:{config.WEB_UI_PORT}")

    try:
        app.run(host=config.WEB_UI_HOST, port=config.WEB_UI_PORT, threaded=True, use_reloader=False)
    except KeyboardInterrupt:
        logger.info("\nShutting down...")
    finally:
        store.stop_sync()
        storage.stop_watcher()


if __name__ == "__main__":
    main()
