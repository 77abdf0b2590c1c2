"""Tests for the /health liveness probe."""
from unittest.mock import patch

from directory.errors import StorageError


class TestHealth:
    """GET /health reports database reachability."""

    def test_healthy(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy', 'database': 'ok'}

    def test_degraded_when_store_fails(self, client, store):
        with patch.object(store, 'list_runs', side_effect=StorageError('run list failed')):
            resp = client.get('/health')
        assert resp.status_code == 503
        assert resp.get_json() == {'status': 'degraded', 'database': 'unavailable'}
