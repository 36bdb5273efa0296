# promptbox/library/handoff.py
"""
Editor hand-off channel.

The editor works on a detached copy of a prompt and never touches the shared
document. On save it writes {prompt, newCategories, newTags} to the hand-off
slot; the document store consumes the slot when the main view activates or
when another process signals that the slot changed.
"""
import logging
from typing import Iterable, Optional

from promptbox.errors import InvalidPromptError
from promptbox.event_bus import Events
from promptbox.storage.store_adapter import FILTERS_KEY, HANDOFF_KEY, PersistentStoreAdapter

from .models import (
    SENTINEL, copy_prompt, draft_prompt_id, new_prompt_draft, normalize_labels, normalize_prompt,
)

logger = logging.getLogger(__name__)


def parse_handoff(data) -> dict:
    """
    Validate a hand-off payload.

    Returns:
        {"prompt": normalized prompt, "newCategories": [...], "newTags": [...]}

    Raises:
        InvalidPromptError: payload is not a well-formed hand-off
    """
    if not isinstance(data, dict):
        raise InvalidPromptError("Hand-off payload must be an object")
    if 'prompt' not in data:
        raise InvalidPromptError("Hand-off payload has no prompt")

    # Consumers key on the id, so an id-less prompt would be appended again on every apply
    prompt = normalize_prompt(data['prompt'])
    if prompt['id'] is None:
        raise InvalidPromptError("Hand-off prompt has no id")

    return {
        'prompt': prompt,
        'newCategories': normalize_labels(data.get('newCategories'), 'newCategories'),
        'newTags': normalize_labels(data.get('newTags'), 'newTags'),
    }


def build_handoff(prompt: dict, known_vocabulary: Optional[dict] = None) -> dict:
    """Hand-off payload for prompt, listing labels not in the known vocabulary."""
    known = known_vocabulary or {}
    known_categories = known.get('categories') or [SENTINEL]
    known_tags = known.get('tags') or [SENTINEL]
    return {
        'newCategories': [c for c in prompt.get('categories', []) if c not in known_categories],
        'newTags': [t for t in prompt.get('tags', []) if t not in known_tags],
        'prompt': prompt,
    }


class EditorHandoffChannel:
    """One-shot mailbox in the hand-off storage slot."""

    def __init__(self, adapter: PersistentStoreAdapter):
        self.adapter = adapter

    def submit(self, payload: dict, existing_ids: Iterable[str] = ()) -> bool:
        """
        Validate and write a hand-off payload, replacing any unconsumed one.

        A prompt without an id gets a new-prompt-<millis> id (unique among
        existing_ids) before it is written, so the slot always names the
        prompt it creates.

        Raises:
            InvalidPromptError: payload is malformed (nothing is written)
        """
        if isinstance(payload, dict) and isinstance(payload.get('prompt'), dict) \
                and payload['prompt'].get('id') is None:
            prompt = dict(payload['prompt'], id=draft_prompt_id(existing_ids))
            payload = dict(payload, prompt=prompt)
        parsed = parse_handoff(payload)
        ok = self.adapter.save(HANDOFF_KEY, parsed)
        if ok:
            logger.info(f"Hand-off submitted for prompt '{parsed['prompt'].get('id')}'")
            self.adapter.event_bus.publish(Events.HANDOFF_SUBMITTED, {"id": parsed['prompt'].get('id')})
        return ok

    def read(self) -> Optional[dict]:
        """Parsed payload in the slot, or None. Malformed payloads are discarded."""
        data = self.adapter.load(HANDOFF_KEY)
        if data is None:
            return None

        try:
            return parse_handoff(data)
        except InvalidPromptError as e:
            logger.warning(f"Discarding malformed hand-off payload: {e}")
            self.clear()
            self.adapter.event_bus.publish(Events.HANDOFF_DISCARDED, {"reason": str(e)})
            return None

    def clear(self) -> bool:
        return self.adapter.remove(HANDOFF_KEY)


class EditorSession:
    """
    Editing context for one prompt.

    Holds a detached copy of the prompt and the vocabulary snapshot taken
    when editing began; save() hands the result off instead of mutating the
    document.
    """

    def __init__(self, adapter: PersistentStoreAdapter, prompt: Optional[dict] = None):
        self.channel = EditorHandoffChannel(adapter)
        self.mode = 'edit' if prompt is not None else 'create'
        self.prompt = copy_prompt(prompt) if prompt is not None else new_prompt_draft()
        self.known_vocabulary = self._load_known_vocabulary(adapter)

    @staticmethod
    def _load_known_vocabulary(adapter) -> dict:
        snapshot = adapter.load(FILTERS_KEY)
        if not isinstance(snapshot, dict):
            return {'categories': [SENTINEL], 'tags': [SENTINEL]}
        vocabulary = {}
        for field in ('categories', 'tags'):
            values = snapshot.get(field)
            vocabulary[field] = [v for v in values if isinstance(v, str)] if isinstance(values, list) else [SENTINEL]
        return vocabulary

    def save(self, changes: Optional[dict] = None) -> dict:
        """
        Apply changes to the working copy and submit the hand-off.

        Returns:
            The submitted payload

        Raises:
            InvalidPromptError: title is empty or the prompt is otherwise invalid
        """
        working = dict(self.prompt)
        working.update(changes or {})
        working['id'] = self.prompt['id']

        prompt = normalize_prompt(working)
        payload = build_handoff(prompt, self.known_vocabulary)
        self.channel.submit(payload)
        self.prompt = prompt
        return payload
