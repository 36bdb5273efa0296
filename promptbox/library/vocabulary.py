# promptbox/library/vocabulary.py
"""
Category/tag vocabulary derived from prompt usage.

The vocabulary always starts with the sentinel and lists exactly the labels
used by at least one prompt.
"""
import logging
from typing import Iterable, Optional

from .models import SENTINEL

logger = logging.getLogger(__name__)


def _collect(prompts: Iterable[dict], field: str) -> list:
    seen = []
    for prompt in prompts:
        for label in prompt.get(field) or []:
            if label != SENTINEL and label not in seen:
                seen.append(label)
    return seen


def _ordered(used: list, previous: Optional[Iterable[str]]) -> list:
    """Sentinel, then labels from previous that are still used, then new labels in first-seen order."""
    result = [SENTINEL]
    if previous:
        for label in previous:
            if label in used and label not in result:
                result.append(label)
    for label in used:
        if label not in result:
            result.append(label)
    return result


def reconcile(prompts: Iterable[dict], previous: Optional[dict] = None) -> dict:
    """
    Derive {"categories": [...], "tags": [...]} from the prompts.

    Args:
        prompts: Prompt dicts
        previous: Optional prior vocabulary; surviving entries keep its order

    Returns:
        New vocabulary dict (inputs are not modified)
    """
    prompts = list(prompts)
    previous = previous or {}
    return {
        'categories': _ordered(_collect(prompts, 'categories'), previous.get('categories')),
        'tags': _ordered(_collect(prompts, 'tags'), previous.get('tags')),
    }


def merge_vocabulary(vocabulary: dict, new_categories: Iterable[str] = (),
                     new_tags: Iterable[str] = ()) -> dict:
    """Vocabulary with the given labels appended, no duplicates, sentinel kept first."""
    merged = {}
    for field, extra in (('categories', new_categories), ('tags', new_tags)):
        current = [SENTINEL] + [v for v in vocabulary.get(field, []) if v != SENTINEL]
        for label in extra or []:
            if isinstance(label, str) and label.strip() and label.strip() not in current:
                current.append(label.strip())
        merged[field] = current
    return merged


def is_sound(prompts: Iterable[dict], vocabulary: dict) -> bool:
    """True when the vocabulary lists exactly the labels in use (plus the sentinel)."""
    prompts = list(prompts)
    for field in ('categories', 'tags'):
        entries = vocabulary.get(field, [])
        if not entries or entries[0] != SENTINEL or len(set(entries)) != len(entries):
            return False
        if set(entries) - {SENTINEL} != set(_collect(prompts, field)):
            return False
    return True


def category_tag_map(prompts: Iterable[dict], categories: Iterable[str]) -> dict:
    """
    Tags used within each category, for the sidebar tree.

    The sentinel is a reset button, so it always maps to an empty list.
    """
    tree = {category: [] for category in categories}
    for prompt in prompts:
        for category in prompt.get('categories') or []:
            if category == SENTINEL or category not in tree:
                continue
            for tag in prompt.get('tags') or []:
                if tag != SENTINEL and tag not in tree[category]:
                    tree[category].append(tag)
    if SENTINEL in tree:
        tree[SENTINEL] = []
    return tree
