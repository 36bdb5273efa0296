# promptbox/library/filters.py
"""
Filter selection state and the visible-prompt computation.

visible_prompts() is pure: it never mutates the prompts or the selection and
is cheap enough to run on every keystroke of the search box.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .models import SENTINEL


def _toggle(active: List[str], label: str) -> List[str]:
    if label == SENTINEL:
        return [SENTINEL]
    remaining = [v for v in active if v != SENTINEL]
    if label in remaining:
        remaining = [v for v in remaining if v != label]
    else:
        remaining.append(label)
    return remaining or [SENTINEL]


def _prune(active: List[str], label: str) -> List[str]:
    remaining = [v for v in active if v != label]
    return remaining or [SENTINEL]


def _clean(values: Optional[Iterable[str]]) -> List[str]:
    """Active list with duplicates dropped; sentinel wins over everything else."""
    result = []
    for value in values or []:
        if isinstance(value, str) and value and value not in result:
            result.append(value)
    if not result or SENTINEL in result:
        return [SENTINEL]
    return result


@dataclass
class FilterSelection:
    """Active category/tag selection and search text. The active lists are never empty."""
    active_categories: List[str] = field(default_factory=lambda: [SENTINEL])
    active_tags: List[str] = field(default_factory=lambda: [SENTINEL])
    search_text: str = ""

    def __post_init__(self):
        self.active_categories = _clean(self.active_categories)
        self.active_tags = _clean(self.active_tags)
        self.search_text = self.search_text or ""

    def toggle_category(self, category: str):
        """Select or deselect a category. Selecting the sentinel clears the axis."""
        self.active_categories = _toggle(self.active_categories, category)

    def toggle_tag(self, tag: str):
        """Select or deselect a tag. Selecting the sentinel clears the axis."""
        self.active_tags = _toggle(self.active_tags, tag)

    def prune_category(self, category: str):
        self.active_categories = _prune(self.active_categories, category)

    def prune_tag(self, tag: str):
        self.active_tags = _prune(self.active_tags, tag)

    def reset(self):
        self.active_categories = [SENTINEL]
        self.active_tags = [SENTINEL]
        self.search_text = ""

    def to_dict(self) -> dict:
        return {
            'activeCategories': list(self.active_categories),
            'activeTags': list(self.active_tags),
            'searchText': self.search_text,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'FilterSelection':
        data = data or {}
        return cls(
            active_categories=data.get('activeCategories'),
            active_tags=data.get('activeTags'),
            search_text=data.get('searchText') or "",
        )


def matches_search(prompt: dict, search_text: str) -> bool:
    """Empty search matches everything; otherwise case-insensitive substring of title or description."""
    if not search_text:
        return True
    needle = search_text.lower()
    return (needle in (prompt.get('title') or '').lower()
            or needle in (prompt.get('description') or '').lower())


def matches_labels(labels: Iterable[str], active: Iterable[str]) -> bool:
    """Sentinel active matches everything (including unlabeled prompts); otherwise any overlap."""
    active = list(active)
    if SENTINEL in active:
        return True
    return any(label in active for label in labels or [])


def visible_prompts(prompts: Iterable[dict], selection: FilterSelection) -> list:
    """
    Prompts matching search AND category AND tag filters.

    Ordering is stable: pinned prompts first, then the rest, each group in
    collection order.
    """
    matched = [
        p for p in prompts
        if matches_search(p, selection.search_text)
        and matches_labels(p.get('categories'), selection.active_categories)
        and matches_labels(p.get('tags'), selection.active_tags)
    ]
    return [p for p in matched if p.get('pinned')] + [p for p in matched if not p.get('pinned')]
