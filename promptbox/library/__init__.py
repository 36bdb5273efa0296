"""
PromptBox library core.

  - models: prompt/document shapes, Rating, id generation
  - vocabulary: category/tag reconciliation
  - filters: filter selection and visible prompts
  - handoff: editor hand-off channel and editing sessions
  - document_store: the in-memory library and its mutations
  - exporters: clipboard/markdown text and stats
"""

from .models import SENTINEL, Rating, normalize_prompt, generate_prompt_id, empty_document
from .vocabulary import reconcile, merge_vocabulary, category_tag_map, is_sound
from .filters import FilterSelection, visible_prompts
from .handoff import EditorHandoffChannel, EditorSession, build_handoff, parse_handoff
from .document_store import DocumentStore, normalize_document
from .exporters import format_copy_text, export_markdown, export_filename, library_stats

__all__ = [
    'SENTINEL',
    'Rating',
    'normalize_prompt',
    'generate_prompt_id',
    'empty_document',
    'reconcile',
    'merge_vocabulary',
    'category_tag_map',
    'is_sound',
    'FilterSelection',
    'visible_prompts',
    'EditorHandoffChannel',
    'EditorSession',
    'build_handoff',
    'parse_handoff',
    'DocumentStore',
    'normalize_document',
    'format_copy_text',
    'export_markdown',
    'export_filename',
    'library_stats',
]
