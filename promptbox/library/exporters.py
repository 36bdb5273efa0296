# promptbox/library/exporters.py
"""Text renderings of prompts (clipboard, markdown download) and library stats."""
import re

from .models import SENTINEL, Rating


def _rating_label(prompt: dict) -> str:
    return Rating.coerce(prompt.get('rating', 0)).label


def _joined(values) -> str:
    return ', '.join(values or []) or 'None'


def format_copy_text(prompt: dict) -> str:
    """Plain text copied to the clipboard for a prompt card."""
    return (
        f"Title: {prompt.get('title', '')}\n\n"
        f"Description: {prompt.get('description', '')}\n\n"
        f"Rating: {_rating_label(prompt)}\n\n"
        f"Categories: {_joined(prompt.get('categories'))}\n\n"
        f"Tags: {_joined(prompt.get('tags'))}"
    )


def export_markdown(prompt: dict) -> str:
    """Markdown document for the editor's download button."""
    return (
        f"# {prompt.get('title') or 'Untitled Prompt'}\n\n"
        f"## Description\n{prompt.get('description', '')}\n\n"
        f"## Content\n{prompt.get('content') or ''}\n\n"
        f"## Example Usage\n{prompt.get('exampleContent') or ''}\n\n"
        f"## Metadata\n"
        f"- Rating: {_rating_label(prompt)}\n"
        f"- Categories: {_joined(prompt.get('categories'))}\n"
        f"- Tags: {_joined(prompt.get('tags'))}\n"
    )


def export_filename(title: str, ext: str = 'md') -> str:
    """'My Prompt!' -> 'my_prompt_.md'; untitled prompts export as 'prompt'."""
    stem = re.sub(r'[^a-z0-9]', '_', (title or 'prompt'), flags=re.IGNORECASE).lower()
    return f"{stem}.{ext}"


def library_stats(prompts: list, vocabulary: dict) -> dict:
    """Counts for the stats dropdown."""
    by_rating = {tier.label: 0 for tier in Rating if tier != Rating.UNSET}
    unrated = 0
    pinned = 0
    for prompt in prompts:
        tier = Rating.coerce(prompt.get('rating', 0))
        if tier == Rating.UNSET:
            unrated += 1
        else:
            by_rating[tier.label] += 1
        if prompt.get('pinned'):
            pinned += 1

    return {
        'total': len(prompts),
        'pinned': pinned,
        'unrated': unrated,
        'by_rating': by_rating,
        'categories': len([c for c in vocabulary.get('categories', []) if c != SENTINEL]),
        'tags': len([t for t in vocabulary.get('tags', []) if t != SENTINEL]),
    }
