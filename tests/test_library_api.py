"""
Library API Tests

Tests the Flask library blueprint using the test client.
Focus on endpoint structure, status codes and response formats.

Run with: pytest tests/test_library_api.py -v
"""
import pytest
from flask import Flask


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def app(populated_store, event_bus):
    """Flask app with the library blueprint bound to a populated store."""
    from promptbox.library.library_api import create_library_api

    app = Flask(__name__)
    app.config['TESTING'] = True
    app.register_blueprint(create_library_api(populated_store, event_bus))
    return app


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# Prompts
# =============================================================================

class TestPromptRoutes:
    """Test prompt CRUD endpoints."""

    def test_health(self, client):
        """Health check responds ok."""
        response = client.get('/api/library/health')
        assert response.status_code == 200
        assert response.get_json() == {'status': 'ok'}

    def test_list_all(self, client):
        """Listing without filters returns everything."""
        response = client.get('/api/library/prompts')
        data = response.get_json()

        assert response.status_code == 200
        assert data['count'] == 3
        assert [p['id'] for p in data['prompts']] == ['alpha', 'beta', 'gamma']

    def test_list_filtered(self, client):
        """Query args filter by search, category and tag."""
        response = client.get('/api/library/prompts?category=frontend&category=backend&tag=super')

        assert [p['id'] for p in response.get_json()['prompts']] == ['beta']

        response = client.get('/api/library/prompts?q=react')
        assert [p['id'] for p in response.get_json()['prompts']] == ['alpha']

    def test_get_missing(self, client):
        """Unknown prompt returns 404."""
        response = client.get('/api/library/prompts/nope')
        assert response.status_code == 404
        assert 'error' in response.get_json()

    def test_create(self, client):
        """POST creates a prompt with a generated id."""
        response = client.post('/api/library/prompts', json={'title': 'New One', 'tags': ['t']})
        data = response.get_json()

        assert response.status_code == 201
        assert data['prompt']['id'] == 'new-one'
        assert data['warning'] is None

    def test_create_without_title(self, client):
        """Validation errors map to 400."""
        response = client.post('/api/library/prompts', json={'title': ''})

        assert response.status_code == 400
        assert 'title' in response.get_json()['error']

    def test_create_without_body(self, client):
        """A missing JSON body is a 400."""
        response = client.post('/api/library/prompts', data='nope', content_type='text/plain')
        assert response.status_code == 400

    def test_update(self, client):
        """PUT applies partial changes."""
        response = client.put('/api/library/prompts/alpha', json={'description': 'changed'})

        assert response.status_code == 200
        assert response.get_json()['prompt']['description'] == 'changed'

    def test_update_missing(self, client):
        """PUT on an unknown id is a 404."""
        response = client.put('/api/library/prompts/nope', json={'title': 'x'})
        assert response.status_code == 404

    def test_delete(self, client, populated_store):
        """DELETE removes the prompt."""
        response = client.delete('/api/library/prompts/gamma')

        assert response.status_code == 200
        assert populated_store.get_prompt('gamma') is None
        assert client.delete('/api/library/prompts/gamma').status_code == 404

    def test_pin(self, client):
        """Pin toggles and the pinned prompt lists first."""
        response = client.post('/api/library/prompts/gamma/pin')

        assert response.get_json()['pinned'] is True
        ids = [p['id'] for p in client.get('/api/library/prompts').get_json()['prompts']]
        assert ids[0] == 'gamma'

    def test_rating(self, client):
        """Ratings are clamped; missing or non-numeric ratings are rejected."""
        response = client.put('/api/library/prompts/alpha/rating', json={'rating': 10})
        assert response.get_json()['rating'] == 3

        assert client.put('/api/library/prompts/alpha/rating', json={}).status_code == 400
        assert client.put('/api/library/prompts/alpha/rating', json={'rating': 'x'}).status_code == 400

    def test_copy_text(self, client):
        """Copy text endpoint returns the formatted text."""
        response = client.get('/api/library/prompts/beta/copy-text')

        assert response.get_json()['text'].startswith('Title: Beta\n\n')

    def test_export(self, client):
        """Export returns markdown as an attachment."""
        response = client.get('/api/library/prompts/alpha/export')

        assert response.status_code == 200
        assert response.mimetype == 'text/markdown'
        assert 'filename="alpha.md"' in response.headers['Content-Disposition']
        assert response.get_data(as_text=True).startswith('# Alpha\n')


# =============================================================================
# Vocabulary & selection
# =============================================================================

class TestVocabularyRoutes:
    """Test vocabulary and filter selection endpoints."""

    def test_vocabulary(self, client):
        """Vocabulary includes the sidebar tree."""
        data = client.get('/api/library/vocabulary').get_json()

        assert data['categories'][0] == 'ALL'
        assert data['tree']['ALL'] == []
        assert data['tree']['backend'] == ['work', 'super']

    def test_delete_tag(self, client):
        """Deleting a tag reports success, then unchanged."""
        assert client.delete('/api/library/tags/work').get_json()['status'] == 'success'
        assert client.delete('/api/library/tags/work').get_json()['status'] == 'unchanged'

    def test_delete_active_category_prunes_selection(self, client):
        """The returned selection no longer mentions the deleted category."""
        client.put('/api/library/selection', json={'toggleCategory': 'backend'})

        data = client.delete('/api/library/categories/backend').get_json()

        assert data['selection']['activeCategories'] == ['ALL']

    def test_selection_update(self, client):
        """Selection changes apply and reset clears them."""
        data = client.put('/api/library/selection', json={'toggleTag': 'work', 'searchText': 'a'}).get_json()
        assert data == {'activeCategories': ['ALL'], 'activeTags': ['work'], 'searchText': 'a'}

        data = client.put('/api/library/selection', json={'reset': True}).get_json()
        assert data == {'activeCategories': ['ALL'], 'activeTags': ['ALL'], 'searchText': ''}

        assert client.get('/api/library/selection').get_json() == data

    def test_non_string_search_rejected(self, client):
        """A numeric searchText is a 400 and listing keeps working."""
        response = client.put('/api/library/selection', json={'searchText': 5})

        assert response.status_code == 400
        listing = client.get('/api/library/prompts')
        assert listing.status_code == 200
        assert listing.get_json()['count'] == 3

    def test_non_string_toggle_rejected(self, client):
        """A numeric toggle is a 400 and the selection is unchanged."""
        before = client.get('/api/library/selection').get_json()

        response = client.put('/api/library/selection', json={'toggleCategory': 5, 'searchText': 'x'})

        assert response.status_code == 400
        assert client.get('/api/library/selection').get_json() == before

    def test_null_search_clears(self, client):
        """searchText: null clears the search."""
        client.put('/api/library/selection', json={'searchText': 'react'})

        data = client.put('/api/library/selection', json={'searchText': None}).get_json()

        assert data['searchText'] == ''


# =============================================================================
# Hand-off, stats, clearing
# =============================================================================

class TestHandoffRoutes:
    """Test editor hand-off endpoints."""

    def test_submit_and_consume(self, client, populated_store):
        """A submitted hand-off is applied by consume."""
        response = client.post('/api/library/handoff', json={
            'prompt': {'id': 'alpha', 'title': 'Edited', 'categories': ['fresh']},
            'newCategories': ['fresh'],
        })
        assert response.status_code == 200

        applied = client.post('/api/library/handoff/consume').get_json()['applied']

        assert applied['prompt']['title'] == 'Edited'
        assert 'fresh' in populated_store.vocabulary['categories']
        assert client.post('/api/library/handoff/consume').get_json()['applied'] is None

    def test_malformed_handoff(self, client):
        """Bad payloads are rejected with 400."""
        response = client.post('/api/library/handoff', json={'newTags': []})
        assert response.status_code == 400


class TestMiscRoutes:
    """Test stats and clearing."""

    def test_stats(self, client):
        """Stats endpoint reports totals."""
        data = client.get('/api/library/stats').get_json()
        assert data['total'] == 3

    def test_clear_app(self, client, populated_store):
        """scope=app clears the library."""
        data = client.post('/api/library/clear?scope=app').get_json()

        assert data['scope'] == 'app'
        assert populated_store.prompts == []

    def test_clear_all_requests_reload(self, client):
        """scope=all tells the client to reload."""
        data = client.post('/api/library/clear?scope=all').get_json()
        assert data['reload'] is True

    def test_clear_unknown_scope(self, client):
        """Unknown scopes are rejected."""
        assert client.post('/api/library/clear?scope=everything').status_code == 400

    def test_unknown_route_is_404(self, client):
        """Routing errors pass through as 404, not 500."""
        assert client.get('/api/library/nothing-here').status_code == 404
