# promptbox/library/models.py
"""
Prompt and document shapes.

Prompts and documents are plain JSON-ready dicts with the camelCase keys used
in storage. normalize_prompt() is the single gate every prompt passes through
before it enters a document.
"""
import copy
import logging
import re
import time
from enum import IntEnum
from typing import Any, Iterable, Optional

from promptbox.errors import InvalidPromptError

logger = logging.getLogger(__name__)

SENTINEL = "ALL"

DEFAULT_ACTIONS = {"edit": True, "delete": True, "copy": True}

NEW_PROMPT_CONTENT = (
    "# New Prompt\n\nStart writing your prompt here...\n\n## Instructions\n\n"
    "1. Add your instructions here\n2. Provide examples\n3. Include tips and best practices\n"
)


class Rating(IntEnum):
    """Qualitative rating tiers. 0 means no rating."""
    UNSET = 0
    TEMP = 1
    GOOD = 2
    EXCELLENT = 3

    @property
    def label(self) -> str:
        return _RATING_LABELS[self]

    @classmethod
    def coerce(cls, value: Any) -> 'Rating':
        """
        Clamp value to the nearest tier.

        Raises:
            InvalidPromptError: value is not a number
        """
        if isinstance(value, bool) or value is None:
            raise InvalidPromptError(f"Rating must be a number, got {value!r}")
        try:
            number = int(round(float(value)))
        except (TypeError, ValueError):
            raise InvalidPromptError(f"Rating must be a number, got {value!r}")
        return cls(max(cls.UNSET, min(cls.EXCELLENT, number)))


_RATING_LABELS = {
    Rating.UNSET: "Unrated",
    Rating.TEMP: "Temp",
    Rating.GOOD: "Good",
    Rating.EXCELLENT: "Excellent",
}


def slugify(text: str) -> str:
    """Lower-case, non-alphanumerics collapsed to single hyphens."""
    return re.sub(r'[^a-z0-9]+', '-', (text or '').lower()).strip('-')


def unique_id(candidate: str, existing_ids: Iterable[str] = ()) -> str:
    """candidate, or candidate-2, candidate-3, ... if taken."""
    existing = set(existing_ids)
    result = candidate
    n = 2
    while result in existing:
        result = f"{candidate}-{n}"
        n += 1
    return result


def draft_prompt_id(existing_ids: Iterable[str] = (), now: Optional[float] = None) -> str:
    """new-prompt-<millis> token for prompts that have no title-derived id yet."""
    millis = int((now if now is not None else time.time()) * 1000)
    return unique_id(f"new-prompt-{millis}", existing_ids)


def generate_prompt_id(title: str, existing_ids: Iterable[str] = (), now: Optional[float] = None) -> str:
    """Slug of the title (or a timestamp token), suffixed -2, -3, ... until unused."""
    base = slugify(title)
    if not base:
        return draft_prompt_id(existing_ids, now)
    return unique_id(base, existing_ids)


def normalize_labels(values: Any, field: str = "labels") -> list:
    """Stripped, de-duplicated, order-preserving list of label strings without the sentinel."""
    if values is None:
        return []
    if isinstance(values, str) or not isinstance(values, (list, tuple)):
        raise InvalidPromptError(f"{field} must be a list of strings")

    result = []
    for value in values:
        if not isinstance(value, str):
            raise InvalidPromptError(f"{field} entries must be strings, got {value!r}")
        label = value.strip()
        if label and label != SENTINEL and label not in result:
            result.append(label)
    return result


def normalize_prompt(raw: Any) -> dict:
    """
    Validate and normalize a prompt dict.

    The id is kept if present (None otherwise; the document store assigns
    one). Pinned defaults to False, rating is clamped to 0-3.

    Raises:
        InvalidPromptError: wrong shape, empty title, bad rating or labels
    """
    if not isinstance(raw, dict):
        raise InvalidPromptError("Prompt must be an object")

    prompt_id = raw.get('id')
    if prompt_id is not None and (not isinstance(prompt_id, str) or not prompt_id.strip()):
        raise InvalidPromptError("Prompt id must be a non-empty string")

    title = raw.get('title')
    if not isinstance(title, str) or not title.strip():
        raise InvalidPromptError("Prompt title is required")

    description = raw.get('description', '')
    if description is None:
        description = ''
    if not isinstance(description, str):
        raise InvalidPromptError("Prompt description must be a string")

    prompt = {
        'id': prompt_id.strip() if prompt_id else None,
        'title': title.strip(),
        'description': description,
    }

    for blob in ('content', 'exampleContent'):
        value = raw.get(blob)
        if value is None:
            continue
        if not isinstance(value, str):
            raise InvalidPromptError(f"Prompt {blob} must be a string")
        prompt[blob] = value

    prompt['rating'] = int(Rating.coerce(raw.get('rating', 0)))
    prompt['categories'] = normalize_labels(raw.get('categories'), 'categories')
    prompt['tags'] = normalize_labels(raw.get('tags'), 'tags')
    prompt['pinned'] = bool(raw.get('pinned', False))

    actions = dict(DEFAULT_ACTIONS)
    raw_actions = raw.get('actions')
    if isinstance(raw_actions, dict):
        for name in DEFAULT_ACTIONS:
            if name in raw_actions:
                actions[name] = bool(raw_actions[name])
    prompt['actions'] = actions

    return prompt


def new_prompt_draft(now: Optional[float] = None) -> dict:
    """Blank prompt for the editor's create mode."""
    return {
        'id': draft_prompt_id(now=now),
        'title': '',
        'description': '',
        'content': NEW_PROMPT_CONTENT,
        'rating': int(Rating.UNSET),
        'tags': [],
        'categories': [],
        'pinned': False,
        'actions': dict(DEFAULT_ACTIONS),
    }


def empty_document(app_name: str = "PromptBox", header_title: str = "PROMPTBOX",
                   search_placeholder: str = "Search") -> dict:
    """Document with no prompts and sentinel-only vocabulary."""
    return {
        'app': app_name,
        'header': {
            'title': header_title,
            'search': {
                'placeholder': search_placeholder,
                'icon': 'search-icon',
                'profileIcon': True,
            },
        },
        'filters': {'categories': [SENTINEL], 'tags': [SENTINEL]},
        'promptCards': [],
    }


def copy_prompt(prompt: dict) -> dict:
    """Detached copy so callers can't mutate document state."""
    return copy.deepcopy(prompt)


SAMPLE_PROMPTS = [
    {
        'id': 'creative-writing-assistant',
        'title': 'Creative Writing Assistant',
        'description': 'A powerful prompt for generating creative stories, poems, and artistic '
                       'content with vivid imagery and compelling narratives.',
        'content': '# Creative Writing Assistant\n\n## Instructions\n'
                   '1. Choose your genre (fantasy, sci-fi, romance, etc.)\n'
                   '2. Define the main character with distinct traits\n'
                   '3. Set the scene and atmosphere using sensory details\n',
        'rating': 2,
        'tags': ['chatgpt', 'prompt', 'work'],
        'categories': ['writing', 'vibe'],
    },
    {
        'id': 'frontend-code-generator',
        'title': 'Frontend Code Generator',
        'description': 'Generate modern React components with TypeScript, Tailwind CSS, and best '
                       'practices for responsive design.',
        'rating': 3,
        'tags': ['super', 'work', 'vit'],
        'categories': ['frontend'],
    },
    {
        'id': 'backend-api-designer',
        'title': 'Backend API Designer',
        'description': 'Create robust REST APIs with proper authentication, validation, and '
                       'documentation following industry standards.',
        'rating': 2,
        'tags': ['work', 'super'],
        'categories': ['backend'],
    },
    {
        'id': 'digital-art-concept',
        'title': 'Digital Art Concept',
        'description': 'Generate detailed prompts for AI art generation with specific styles, '
                       'lighting, and composition instructions.',
        'rating': 1,
        'tags': ['prompt', 'vit'],
        'categories': ['artist', 'vibe'],
    },
    {
        'id': 'productivity-workflow',
        'title': 'Productivity Workflow',
        'description': 'Optimize your daily workflow with smart automation suggestions and time '
                       'management strategies.',
        'rating': 3,
        'tags': ['work', 'super'],
        'categories': ['vibe'],
    },
    {
        'id': 'code-review-assistant',
        'title': 'Code Review Assistant',
        'description': 'Comprehensive code review prompts that check for security, performance, '
                       'and maintainability issues.',
        'rating': 2,
        'tags': ['chatgpt', 'work'],
        'categories': ['frontend', 'backend'],
    },
]
