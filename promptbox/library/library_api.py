# promptbox/library/library_api.py
"""
Flask blueprint for the prompt library.
Exposes the document store's operations to the presentation layer.
"""
import json
import logging
from flask import Blueprint, Response, request, jsonify
from werkzeug.exceptions import HTTPException

from promptbox.errors import InvalidPromptError
from promptbox.event_bus import get_event_bus

from .exporters import export_filename, export_markdown, format_copy_text
from .vocabulary import category_tag_map

logger = logging.getLogger(__name__)


def _event_cursor(value):
    """Event id to resume after, or None to start with the next event."""
    if value is None or value == '':
        return None
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        raise InvalidPromptError(f"Invalid event id '{value}'")


def create_library_api(store, event_bus=None):
    """Create and return the library API blueprint bound to a DocumentStore."""
    bp = Blueprint('library_api', __name__, url_prefix='/api/library')
    bus = event_bus or store.event_bus or get_event_bus()

    @bp.errorhandler(InvalidPromptError)
    def handle_invalid(e):
        return jsonify({'error': str(e)}), 400

    def _json_body():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise InvalidPromptError('No data provided')
        return data

    def _not_found(prompt_id):
        return jsonify({'error': f"Prompt '{prompt_id}' not found"}), 404

    @bp.route('/health', methods=['GET'])
    def health_check():
        return jsonify({'status': 'ok'})

    # === Prompts ===

    @bp.route('/prompts', methods=['GET'])
    def list_prompts():
        """Visible prompts for ?q=&category=&tag= (category/tag repeatable)."""
        categories = request.args.getlist('category') or None
        tags = request.args.getlist('tag') or None
        search = request.args.get('q')
        prompts = store.get_visible_prompts(search, categories, tags)
        return jsonify({'prompts': prompts, 'count': len(prompts)})

    @bp.route('/prompts/<prompt_id>', methods=['GET'])
    def get_prompt(prompt_id):
        prompt = store.get_prompt(prompt_id)
        if prompt is None:
            return _not_found(prompt_id)
        return jsonify(prompt)

    @bp.route('/prompts', methods=['POST'])
    def create_prompt():
        prompt = store.create_prompt(_json_body())
        return jsonify({'status': 'success', 'prompt': prompt, 'warning': store.adapter.last_error}), 201

    @bp.route('/prompts/<prompt_id>', methods=['PUT'])
    def update_prompt(prompt_id):
        prompt = store.update_prompt(prompt_id, _json_body())
        if prompt is None:
            return _not_found(prompt_id)
        return jsonify({'status': 'success', 'prompt': prompt, 'warning': store.adapter.last_error})

    @bp.route('/prompts/<prompt_id>', methods=['DELETE'])
    def delete_prompt(prompt_id):
        if not store.delete_prompt(prompt_id):
            return _not_found(prompt_id)
        return jsonify({'status': 'success', 'message': f"Prompt '{prompt_id}' deleted"})

    @bp.route('/prompts/<prompt_id>/pin', methods=['POST'])
    def toggle_pin(prompt_id):
        pinned = store.toggle_pin(prompt_id)
        if pinned is None:
            return _not_found(prompt_id)
        return jsonify({'status': 'success', 'pinned': pinned})

    @bp.route('/prompts/<prompt_id>/rating', methods=['PUT'])
    def set_rating(prompt_id):
        data = _json_body()
        if 'rating' not in data:
            return jsonify({'error': 'Rating required'}), 400
        rating = store.set_rating(prompt_id, data['rating'])
        if rating is None:
            return _not_found(prompt_id)
        return jsonify({'status': 'success', 'rating': rating})

    @bp.route('/prompts/<prompt_id>/copy-text', methods=['GET'])
    def copy_text(prompt_id):
        prompt = store.get_prompt(prompt_id)
        if prompt is None:
            return _not_found(prompt_id)
        return jsonify({'text': format_copy_text(prompt)})

    @bp.route('/prompts/<prompt_id>/export', methods=['GET'])
    def export_prompt(prompt_id):
        prompt = store.get_prompt(prompt_id)
        if prompt is None:
            return _not_found(prompt_id)
        filename = export_filename(prompt['title'], 'md')
        return Response(
            export_markdown(prompt),
            mimetype='text/markdown',
            headers={'Content-Disposition': f'attachment; filename="{filename}"'}
        )

    # === Vocabulary ===

    @bp.route('/vocabulary', methods=['GET'])
    def get_vocabulary():
        vocabulary = store.vocabulary
        return jsonify({
            'categories': vocabulary['categories'],
            'tags': vocabulary['tags'],
            'tree': category_tag_map(store.prompts, vocabulary['categories']),
        })

    @bp.route('/categories/<name>', methods=['DELETE'])
    def delete_category(name):
        deleted = store.delete_category(name)
        return jsonify({'status': 'success' if deleted else 'unchanged', 'selection': store.get_selection()})

    @bp.route('/tags/<name>', methods=['DELETE'])
    def delete_tag(name):
        deleted = store.delete_tag(name)
        return jsonify({'status': 'success' if deleted else 'unchanged', 'selection': store.get_selection()})

    # === Filter selection ===

    @bp.route('/selection', methods=['GET'])
    def get_selection():
        return jsonify(store.get_selection())

    @bp.route('/selection', methods=['PUT'])
    def update_selection():
        """Body: any of {toggleCategory, toggleTag, searchText, reset}."""
        data = _json_body()
        search_text = data.get('searchText')
        if 'searchText' in data and search_text is None:
            search_text = ""
        selection = store.update_selection(
            reset=bool(data.get('reset')),
            toggle_category=data.get('toggleCategory'),
            toggle_tag=data.get('toggleTag'),
            search_text=search_text,
        )
        return jsonify(selection)

    # === Editor hand-off ===

    @bp.route('/handoff', methods=['POST'])
    def submit_handoff():
        if not store.submit_editor_handoff(_json_body()):
            return jsonify({'error': store.adapter.last_error or 'Failed to store hand-off'}), 500
        return jsonify({'status': 'success'})

    @bp.route('/handoff/consume', methods=['POST'])
    def consume_handoff():
        applied = store.consume_editor_handoff()
        return jsonify({'applied': applied})

    # === Stats & data management ===

    @bp.route('/stats', methods=['GET'])
    def get_stats():
        return jsonify(store.stats())

    @bp.route('/clear', methods=['POST'])
    def clear_data():
        scope = request.args.get('scope', 'app')
        if scope == 'all':
            ok = store.clear_all_data()
            if not ok:
                return jsonify({'error': 'Failed to clear storage'}), 500
            return jsonify({'status': 'success', 'scope': 'all', 'reload': True})
        if scope != 'app':
            return jsonify({'error': f"Unknown scope '{scope}'"}), 400
        removed = store.clear_app_data()
        return jsonify({'status': 'success', 'scope': 'app', 'removed': removed})

    @bp.route('/events', methods=['GET'])
    def event_stream():
        """
        SSE stream of library events.

        Resumes after the Last-Event-ID header or ?since=; ?type= (repeatable)
        limits the stream to those event types.
        """
        # Read the request before the generator runs; the request context is gone by then
        since = _event_cursor(request.headers.get('Last-Event-ID') or request.args.get('since'))
        event_types = request.args.getlist('type') or None

        def generate():
            for event in bus.subscribe(since=since, event_types=event_types):
                if event['type'] == 'keepalive':
                    yield ": keepalive\n\n"
                    continue
                yield f"id: {event['id']}\ndata: {json.dumps(event)}\n\n"

        return Response(
            generate(),
            mimetype='text/event-stream',
            headers={
                'Cache-Control': 'no-cache',
                'Connection': 'keep-alive',
                'X-Accel-Buffering': 'no'
            }
        )

    @bp.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Library API error: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500

    return bp
