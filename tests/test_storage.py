"""Tests for run metadata storage."""

import json
import time

from server.storage import (
    init_db,
    create_run,
    update_status,
    attach_results,
    get_run,
    list_runs,
    get_connection,
)


class TestInitDb:
    """Tests for schema creation."""

    def test_creates_runs_table(self, mock_storage_paths):
        init_db()

        conn = get_connection()
        columns = {row['name'] for row in conn.execute('PRAGMA table_info(runs)').fetchall()}
        conn.close()

        assert columns == {
            'id', 'created_at', 'status', 'target', 'request_json',
            'manifests_json', 'reports_json', 'error_message',
        }

    def test_idempotent(self, mock_storage_paths):
        """Running init twice is harmless."""
        init_db()
        init_db()

        conn = get_connection()
        count = conn.execute(
            "SELECT COUNT(*) AS count FROM sqlite_master WHERE type='table' AND name='runs'"
        ).fetchone()['count']
        conn.close()

        assert count == 1


class TestRunLifecycle:
    """Tests for creating and updating runs."""

    def test_create_run(self, initialized_db, sample_run_request):
        run_id = create_run('https://example.com/products/', sample_run_request)

        run = get_run(run_id)

        assert len(run_id) == 36
        assert run['status'] == 'queued'
        assert run['target'] == 'https://example.com/products/'
        assert json.loads(run['request_json']) == sample_run_request
        assert run['created_at'].endswith('Z')
        assert run['manifests'] == {}
        assert run['reports'] == {}

    def test_status_transitions(self, initialized_db, sample_run_request):
        """queued -> running -> finished"""
        run_id = create_run('https://example.com', sample_run_request)

        update_status(run_id, 'running')
        assert get_run(run_id)['status'] == 'running'

        update_status(run_id, 'finished')
        assert get_run(run_id)['status'] == 'finished'

    def test_failure_message(self, initialized_db, sample_run_request):
        run_id = create_run('https://example.com', sample_run_request)

        update_status(run_id, 'failed', error_message='No URLs to run (empty after filtering)')

        run = get_run(run_id)
        assert run['status'] == 'failed'
        assert run['error_message'] == 'No URLs to run (empty after filtering)'

    def test_attach_results(self, initialized_db, sample_run_request):
        """Per-domain artifact paths come back as dicts."""
        run_id = create_run('https://example.com', sample_run_request)
        manifests = {'example.com': '/runs/example.com/TS/manifest.json'}
        reports = {'example.com': '/runs/example.com/TS/report.pdf'}

        attach_results(run_id, manifests, reports)

        run = get_run(run_id)
        assert run['manifests'] == manifests
        assert run['reports'] == reports

    def test_unknown_run(self, initialized_db):
        assert get_run('nonexistent-id') is None


class TestListRuns:
    """Tests for listing runs."""

    def test_empty(self, initialized_db):
        assert list_runs() == []

    def test_newest_first(self, initialized_db, sample_run_request):
        ids = []
        for i in range(3):
            ids.append(create_run(f'https://example{i}.com', sample_run_request))
            time.sleep(0.01)

        runs = list_runs()

        assert [r['id'] for r in runs] == list(reversed(ids))

    def test_limit(self, initialized_db, sample_run_request):
        for i in range(6):
            create_run(f'https://example{i}.com', sample_run_request)

        assert len(list_runs(limit=4)) == 4
