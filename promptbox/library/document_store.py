# promptbox/library/document_store.py
"""
Document Store - the in-memory prompt library and its mutations.

Every mutation keeps the vocabulary reconciled with prompt usage and writes
the whole document to storage in one call. A failed write never rolls back
the in-memory change; the adapter reports it as a warning instead.

Two stores on the same storage each hold their own copy of the document. With
sync on, a store reloads when the other one writes the document and consumes
hand-offs as soon as they land; edits racing between the two resolve to the
last writer.
"""
import copy
import logging
import threading
from typing import Callable, Optional

from promptbox.errors import InvalidPromptError
from promptbox.event_bus import EventBus, Events
from promptbox.storage.store_adapter import (
    DOCUMENT_KEY, FILTERS_KEY, HANDOFF_KEY, PersistentStoreAdapter,
)

from .exporters import library_stats
from .filters import FilterSelection, visible_prompts
from .handoff import EditorHandoffChannel, EditorSession
from .models import (
    SAMPLE_PROMPTS, SENTINEL, Rating, copy_prompt, empty_document, generate_prompt_id,
    normalize_prompt, unique_id,
)
from .vocabulary import merge_vocabulary, reconcile

logger = logging.getLogger(__name__)


def normalize_document(raw, defaults: dict) -> Optional[dict]:
    """
    Repair a stored document: drop invalid prompts, fill missing ids, make
    ids unique and reconcile the vocabulary. Returns None if raw isn't a
    document at all.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get('promptCards'), list):
        return None

    prompts = []
    for index, card in enumerate(raw['promptCards']):
        try:
            prompt = normalize_prompt(card)
        except InvalidPromptError as e:
            logger.warning(f"Skipping invalid stored prompt #{index}: {e}")
            continue
        existing = [p['id'] for p in prompts]
        if prompt['id'] is None:
            prompt['id'] = generate_prompt_id(prompt['title'], existing)
        else:
            prompt['id'] = unique_id(prompt['id'], existing)
        prompts.append(prompt)

    filters = raw.get('filters') if isinstance(raw.get('filters'), dict) else {}
    document = copy.deepcopy(defaults)
    if isinstance(raw.get('app'), str):
        document['app'] = raw['app']
    if isinstance(raw.get('header'), dict):
        document['header'] = copy.deepcopy(raw['header'])
    document['promptCards'] = prompts
    document['filters'] = reconcile(prompts, previous=filters)
    return document


class DocumentStore:
    """Owns the prompt document; all mutations go through here."""

    def __init__(self, adapter: PersistentStoreAdapter, event_bus: Optional[EventBus] = None,
                 seed_samples: bool = False, app_name: str = "PromptBox",
                 header_title: str = "PROMPTBOX", search_placeholder: str = "Search"):
        self.adapter = adapter
        self.event_bus = event_bus or adapter.event_bus
        self.seed_samples = seed_samples
        self._defaults = empty_document(app_name, header_title, search_placeholder)
        self._lock = threading.RLock()
        self._unsubscribe: Optional[Callable[[], None]] = None

        self.selection = FilterSelection()
        self.handoff = EditorHandoffChannel(adapter)
        self._document = self.load_document()
        logger.info(f"Document loaded with {len(self._document['promptCards'])} prompts")

    # === Loading & persistence ===

    def _seed_document(self) -> dict:
        document = copy.deepcopy(self._defaults)
        document['promptCards'] = [normalize_prompt(p) for p in SAMPLE_PROMPTS]
        document['filters'] = reconcile(document['promptCards'])
        return document

    def load_document(self) -> dict:
        """Read the document from storage. Never raises; falls back to an empty (or seeded) document."""
        raw = self.adapter.load(DOCUMENT_KEY)
        if raw is None:
            if self.seed_samples and not self.adapter.exists(DOCUMENT_KEY):
                logger.info("No stored library, starting from sample prompts")
                return self._seed_document()
            return copy.deepcopy(self._defaults)

        document = normalize_document(raw, self._defaults)
        if document is None:
            logger.warning("Stored library has an unexpected shape, starting empty")
            return copy.deepcopy(self._defaults)
        return document

    def persist_document(self, document: Optional[dict] = None) -> bool:
        """Write the document (replacing the in-memory one if given) to storage."""
        with self._lock:
            if document is not None:
                normalized = normalize_document(document, self._defaults)
                if normalized is None:
                    raise InvalidPromptError("Document must contain a promptCards list")
                self._document = normalized
            return self.adapter.save(DOCUMENT_KEY, self._document)

    def reload(self, reset_selection: bool = True):
        """
        Replace in-memory state with a fresh load from storage.

        With reset_selection=False the filter selection survives, minus any
        labels the reloaded vocabulary no longer has.
        """
        with self._lock:
            self._document = self.load_document()
            if reset_selection:
                self.selection.reset()
            else:
                vocabulary = self._document['filters']
                for category in list(self.selection.active_categories):
                    if category not in vocabulary['categories']:
                        self.selection.prune_category(category)
                for tag in list(self.selection.active_tags):
                    if tag not in vocabulary['tags']:
                        self.selection.prune_tag(tag)
        logger.info("Document reloaded from storage")
        self.event_bus.publish(Events.DOCUMENT_RELOADED, {"count": len(self._document['promptCards'])})

    def _commit(self, event_type: str, data: dict) -> bool:
        """Reconcile vocabulary, write the whole document, announce the change."""
        prompts = self._document['promptCards']
        self._document['filters'] = reconcile(prompts, previous=self._document['filters'])
        saved = self.adapter.save(DOCUMENT_KEY, self._document)
        self.event_bus.publish(event_type, dict(data, persisted=saved))
        return saved

    # === Getters ===

    @property
    def document(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._document)

    @property
    def prompts(self) -> list:
        with self._lock:
            return [copy_prompt(p) for p in self._document['promptCards']]

    @property
    def vocabulary(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._document['filters'])

    def _index_of(self, prompt_id) -> Optional[int]:
        for i, prompt in enumerate(self._document['promptCards']):
            if prompt['id'] == prompt_id:
                return i
        return None

    def get_prompt(self, prompt_id: str) -> Optional[dict]:
        with self._lock:
            index = self._index_of(prompt_id)
            if index is None:
                return None
            return copy_prompt(self._document['promptCards'][index])

    def get_visible_prompts(self, search_text: Optional[str] = None,
                            active_categories: Optional[list] = None,
                            active_tags: Optional[list] = None) -> list:
        """Filtered, pinned-first prompts. Arguments left as None come from the current selection."""
        with self._lock:
            selection = FilterSelection(
                active_categories=active_categories if active_categories is not None else self.selection.active_categories,
                active_tags=active_tags if active_tags is not None else self.selection.active_tags,
                search_text=search_text if search_text is not None else self.selection.search_text,
            )
            return [copy_prompt(p) for p in visible_prompts(self._document['promptCards'], selection)]

    def stats(self) -> dict:
        with self._lock:
            return library_stats(self._document['promptCards'], self._document['filters'])

    # === Prompt mutations ===

    def _upsert(self, prompt: dict) -> dict:
        """Insert or replace a normalized prompt in place. Existing prompts keep their pinned state."""
        prompts = self._document['promptCards']
        index = self._index_of(prompt['id']) if prompt['id'] else None
        if index is not None:
            prompt['pinned'] = prompts[index]['pinned']
            prompts[index] = prompt
        else:
            if prompt['id'] is None:
                prompt['id'] = generate_prompt_id(prompt['title'], [p['id'] for p in prompts])
            prompts.append(prompt)
        return prompt

    def create_or_update_prompt(self, prompt: dict) -> dict:
        """
        Replace the prompt with the same id (keeping pinned) or append it.

        Raises:
            InvalidPromptError: prompt fails validation (e.g. empty title)
        """
        normalized = normalize_prompt(prompt)
        with self._lock:
            stored = self._upsert(normalized)
            self._commit(Events.PROMPT_SAVED, {"id": stored['id']})
            logger.info(f"Saved prompt '{stored['id']}'")
            return copy_prompt(stored)

    def create_prompt(self, data: dict) -> dict:
        """Always insert a new prompt; a taken or missing id is replaced with a unique one."""
        normalized = normalize_prompt(data)
        with self._lock:
            existing = [p['id'] for p in self._document['promptCards']]
            if normalized['id']:
                normalized['id'] = unique_id(normalized['id'], existing)
            else:
                normalized['id'] = generate_prompt_id(normalized['title'], existing)
            self._document['promptCards'].append(normalized)
            self._commit(Events.PROMPT_SAVED, {"id": normalized['id'], "created": True})
            logger.info(f"Created prompt '{normalized['id']}'")
            return copy_prompt(normalized)

    def update_prompt(self, prompt_id: str, changes: dict) -> Optional[dict]:
        """Apply changes to an existing prompt. Unknown id is a no-op returning None."""
        if not isinstance(changes, dict):
            raise InvalidPromptError("Prompt changes must be an object")
        with self._lock:
            index = self._index_of(prompt_id)
            if index is None:
                logger.debug(f"update_prompt: '{prompt_id}' not found")
                return None
            merged = dict(self._document['promptCards'][index])
            merged.update(changes)
            merged['id'] = prompt_id
            normalized = normalize_prompt(merged)
            stored = self._upsert(normalized)
            self._commit(Events.PROMPT_SAVED, {"id": prompt_id})
            logger.info(f"Updated prompt '{prompt_id}'")
            return copy_prompt(stored)

    def delete_prompt(self, prompt_id: str) -> bool:
        with self._lock:
            index = self._index_of(prompt_id)
            if index is None:
                logger.debug(f"delete_prompt: '{prompt_id}' not found")
                return False
            del self._document['promptCards'][index]
            self._commit(Events.PROMPT_DELETED, {"id": prompt_id})
            logger.info(f"Deleted prompt '{prompt_id}'")
            return True

    def toggle_pin(self, prompt_id: str) -> Optional[bool]:
        """Flip pinned. Returns the new value, or None for an unknown id."""
        with self._lock:
            index = self._index_of(prompt_id)
            if index is None:
                return None
            prompt = self._document['promptCards'][index]
            prompt['pinned'] = not prompt['pinned']
            self._commit(Events.PROMPT_PINNED, {"id": prompt_id, "pinned": prompt['pinned']})
            return prompt['pinned']

    def set_rating(self, prompt_id: str, value) -> Optional[int]:
        """
        Set the rating, clamped to 0-3. Returns the stored rating, or None for an unknown id.

        Raises:
            InvalidPromptError: value is not a number
        """
        rating = Rating.coerce(value)
        with self._lock:
            index = self._index_of(prompt_id)
            if index is None:
                return None
            self._document['promptCards'][index]['rating'] = int(rating)
            self._commit(Events.PROMPT_RATED, {"id": prompt_id, "rating": int(rating), "label": rating.label})
            return int(rating)

    # === Vocabulary mutations ===

    def _delete_label(self, field: str, name: str, event_type: str) -> bool:
        if name == SENTINEL:
            logger.debug(f"Refusing to delete the {SENTINEL} {field} entry")
            return False

        with self._lock:
            touched = 0
            for prompt in self._document['promptCards']:
                if name in prompt[field]:
                    prompt[field] = [v for v in prompt[field] if v != name]
                    touched += 1
            in_vocabulary = name in self._document['filters'][field]
            self._document['filters'][field] = [v for v in self._document['filters'][field] if v != name]

            if field == 'categories':
                self.selection.prune_category(name)
            else:
                self.selection.prune_tag(name)

            if not touched and not in_vocabulary:
                return False

            self._commit(event_type, {"name": name, "prompts": touched})
            logger.info(f"Deleted {field} entry '{name}' from {touched} prompts")
            return True

    def delete_category(self, name: str) -> bool:
        """Strip a category from every prompt, the vocabulary and the active selection."""
        return self._delete_label('categories', name, Events.CATEGORY_DELETED)

    def delete_tag(self, name: str) -> bool:
        """Strip a tag from every prompt, the vocabulary and the active selection."""
        return self._delete_label('tags', name, Events.TAG_DELETED)

    # === Filter selection ===

    @staticmethod
    def _require_label(value, field: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise InvalidPromptError(f"{field} must be a non-empty string")
        return value.strip()

    @staticmethod
    def _require_search_text(value) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise InvalidPromptError("searchText must be a string")
        return value

    def toggle_category_filter(self, category: str) -> FilterSelection:
        """
        Raises:
            InvalidPromptError: category is not a non-empty string
        """
        category = self._require_label(category, 'category')
        with self._lock:
            self.selection.toggle_category(category)
            return self.selection

    def toggle_tag_filter(self, tag: str) -> FilterSelection:
        tag = self._require_label(tag, 'tag')
        with self._lock:
            self.selection.toggle_tag(tag)
            return self.selection

    def set_search_text(self, text: Optional[str]) -> FilterSelection:
        text = self._require_search_text(text)
        with self._lock:
            self.selection.search_text = text
            return self.selection

    def reset_selection(self) -> FilterSelection:
        with self._lock:
            self.selection.reset()
            return self.selection

    def get_selection(self) -> dict:
        with self._lock:
            return self.selection.to_dict()

    def update_selection(self, reset: bool = False, toggle_category=None, toggle_tag=None,
                         search_text=None) -> dict:
        """
        Apply several selection changes at once, in the order reset, category,
        tag, search. Everything is validated before anything changes.

        Returns:
            The resulting selection as a dict

        Raises:
            InvalidPromptError: a value has the wrong type (selection untouched)
        """
        if toggle_category is not None:
            toggle_category = self._require_label(toggle_category, 'toggleCategory')
        if toggle_tag is not None:
            toggle_tag = self._require_label(toggle_tag, 'toggleTag')
        if search_text is not None:
            search_text = self._require_search_text(search_text)

        with self._lock:
            if reset:
                self.selection.reset()
            if toggle_category is not None:
                self.selection.toggle_category(toggle_category)
            if toggle_tag is not None:
                self.selection.toggle_tag(toggle_tag)
            if search_text is not None:
                self.selection.search_text = search_text
            return self.selection.to_dict()

    # === Editor hand-off ===

    def open_editor(self, prompt_id: Optional[str] = None) -> Optional[EditorSession]:
        """
        Snapshot the vocabulary for the editor and start an editing session.

        Returns None if prompt_id is given but unknown.
        """
        with self._lock:
            prompt = None
            if prompt_id is not None:
                prompt = self.get_prompt(prompt_id)
                if prompt is None:
                    logger.warning(f"open_editor: prompt '{prompt_id}' not found")
                    return None
            self.adapter.save(FILTERS_KEY, self._document['filters'])
        return EditorSession(self.adapter, prompt)

    def submit_editor_handoff(self, payload: dict) -> bool:
        with self._lock:
            existing = [p['id'] for p in self._document['promptCards']]
        return self.handoff.submit(payload, existing)

    def consume_editor_handoff(self) -> Optional[dict]:
        """
        Apply a pending hand-off, if any, and clear the slot.

        Re-applying the same payload is harmless because prompts are keyed on
        id. The slot is kept if the document could not be written, so the
        edit is applied again on the next activation.
        """
        with self._lock:
            payload = self.handoff.read()
            if payload is None:
                return None

            stored = self._upsert(payload['prompt'])
            merged = merge_vocabulary(self._document['filters'], payload['newCategories'], payload['newTags'])
            self._document['filters'] = merged
            saved = self._commit(Events.PROMPT_SAVED, {"id": stored['id'], "handoff": True})

            if saved:
                self.handoff.clear()
            self.event_bus.publish(Events.HANDOFF_CONSUMED, {"id": stored['id'], "persisted": saved})
            logger.info(f"Applied hand-off for prompt '{stored['id']}'")
            return {
                'prompt': copy_prompt(stored),
                'newCategories': list(payload['newCategories']),
                'newTags': list(payload['newTags']),
            }

    def activate(self) -> Optional[dict]:
        """Main view became active: pick up anything the editor handed off in this process."""
        return self.consume_editor_handoff()

    # === Cross-instance sync ===

    def start_sync(self):
        """Consume hand-offs written by other processes as soon as storage reports them."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.adapter.on_external_change(self._on_external_change)
        logger.info("Listening for external hand-offs")

    def stop_sync(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_external_change(self, key, value):
        if key == HANDOFF_KEY and value is not None:
            logger.info("Hand-off slot changed externally")
            self.consume_editor_handoff()
        elif key == DOCUMENT_KEY:
            # Adopt the other writer's copy; unsaved local state is not merged
            logger.info("Library document changed externally, reloading")
            self.reload(reset_selection=False)

    # === Clearing ===

    def clear_app_data(self) -> list:
        """Remove this app's storage keys and start over from a fresh load."""
        removed = self.adapter.clear_app_data()
        self.reload()
        return removed

    def clear_all_data(self) -> bool:
        """Wipe the whole storage and reload."""
        ok = self.adapter.clear_all()
        self.reload()
        return ok
