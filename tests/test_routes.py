"""
Tests for the JSON control API.
"""

import threading

import pytest

from shotsieve.api import ScanOrchestrator
from shotsieve.app import create_app, LOG_QUIET
from shotsieve.models import ImageSignals

from conftest import BASE_TIME_MS, FakeLibrary


@pytest.fixture
def library():
    library = FakeLibrary()
    library.add('a', taken_at=BASE_TIME_MS)
    library.add('b', taken_at=BASE_TIME_MS + 1000)
    library.add('c', taken_at=BASE_TIME_MS + 3_600_000)
    library.add('d', taken_at=BASE_TIME_MS + 3_601_000)
    return library


@pytest.fixture
def engine(db, library, extractor):
    engine = ScanOrchestrator(db, library, extractor=extractor)
    yield engine
    engine.close()


@pytest.fixture
def client(engine):
    app = create_app(engine, LOG_QUIET)
    app.config['TESTING'] = True
    return app.test_client()


def _join_scan_threads():
    for thread in threading.enumerate():
        if thread.name == 'shotsieve-scan':
            thread.join(timeout=10)


def _scan(client, engine):
    assert client.post('/api/scan/start').get_json() == {'status': 'started'}
    _join_scan_threads()
    assert not engine.is_running


class TestScanControl:
    """Test scan lifecycle endpoints."""

    def test_status_before_scan(self, client):
        data = client.get('/api/scan/status').get_json()
        assert data == {
            'totalPending': 0,
            'totalDone': 0,
            'totalError': 0,
            'currentBatch': 0,
            'isRunning': False,
            'lastError': None,
        }

    def test_start(self, client, engine):
        _scan(client, engine)
        data = client.get('/api/scan/status').get_json()
        assert data['totalDone'] == 4
        assert data['isRunning'] is False

    def test_stop_when_idle(self, client):
        assert client.post('/api/scan/stop').get_json() == {'status': 'no_scan_running'}

    def test_last_error_reported(self, client, engine, library):
        library.list_error = ConnectionError("library offline")
        client.post('/api/scan/start')
        _join_scan_threads()
        assert client.get('/api/scan/status').get_json()['lastError'] == "library offline"

    def test_resume_once_without_sync(self, client, engine, library):
        client.post('/api/scan/resume-once')
        _join_scan_threads()
        assert library.list_calls == 0

    def test_reset_cursor(self, client, engine, db):
        _scan(client, engine)
        assert client.post('/api/scan/reset-cursor').get_json() == {'status': 'cursor_reset'}
        assert db.meta.get_scan_cursor().is_start

    def test_reset_all(self, client, engine):
        _scan(client, engine)
        data = client.post('/api/scan/reset-all').get_json()
        assert data == {'status': 'reset', 'assets': 4}
        assert client.get('/api/scan/status').get_json()['totalPending'] == 4

    def test_get_not_allowed_on_start(self, client):
        assert client.get('/api/scan/start').status_code == 405


class TestResults:
    """Test result endpoints."""

    def test_groups(self, client, engine):
        _scan(client, engine)
        data = client.get('/api/groups').get_json()
        assert data['total'] == 2
        assert {tuple(sorted(m['asset_id'] for m in g['members'])) for g in data['groups']} == {('a', 'b'), ('c', 'd')}

    def test_group_detail(self, client, engine):
        _scan(client, engine)
        group_id = client.get('/api/groups').get_json()['groups'][0]['group_id']

        data = client.get(f'/api/groups/{group_id}').get_json()
        assert data['group_id'] == group_id
        assert len(data['members']) == 2
        assert 'score' in data['members'][0]
        assert data['members'][0]['asset']['status'] == 'DONE'

    def test_group_not_found(self, client):
        assert client.get('/api/groups/grp_missing').status_code == 404

    def test_merge(self, client, engine):
        _scan(client, engine)
        target, source = [g['group_id'] for g in client.get('/api/groups').get_json()['groups']]

        response = client.post(f'/api/groups/{target}/merge', json={'source': source})
        assert response.get_json() == {'status': 'merged', 'moved': 2}

        data = client.get('/api/groups').get_json()
        assert data['total'] == 1
        assert sorted(m['asset_id'] for m in data['groups'][0]['members']) == ['a', 'b', 'c', 'd']

    def test_merge_requires_source(self, client, engine):
        _scan(client, engine)
        group_id = client.get('/api/groups').get_json()['groups'][0]['group_id']
        assert client.post(f'/api/groups/{group_id}/merge', json={}).status_code == 400
        assert client.post(f'/api/groups/{group_id}/merge', json={'source': 'nope'}).status_code == 404

    def test_blurry(self, client, engine, extractor):
        extractor.signals['c'] = ImageSignals(blur_score=25.0, mean_luma=30.0, phash='ffffffffffffffff')
        _scan(client, engine)
        data = client.get('/api/blurry').get_json()
        assert data['total'] == 1
        assert data['assets'][0]['asset_id'] == 'c'
        assert data['assets'][0]['adjusted_threshold'] == pytest.approx(70.0)

    def test_stats(self, client, engine):
        _scan(client, engine)
        data = client.get('/api/stats').get_json()
        assert data['total_assets'] == 4
        assert data['status']['done'] == 4
        assert data['enrichment'] == {'enabled': False, 'active': False, 'breaker_open': False}

    def test_ping(self, client):
        assert client.get('/api/ping').get_json()['status'] == 'ok'
