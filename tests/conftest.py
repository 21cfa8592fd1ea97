"""Shared test fixtures and configuration."""

import json
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest


# Exclude test_api.py from collection if the server stack cannot import
def _check_server_deps():
    """Check if server dependencies (authlib/cryptography) work."""
    try:
        from authlib.integrations.starlette_client import OAuth  # noqa: F401
        return True
    except BaseException:
        # pyo3_runtime.PanicException inherits from BaseException
        return False


collect_ignore = []
if not _check_server_deps():
    collect_ignore.append("test_api.py")


# ---------------------------------------------------------------------------
# Server storage
# ---------------------------------------------------------------------------

@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory structure."""
    data_dir = tmp_path / 'data'
    data_dir.mkdir()
    return {
        'data_dir': data_dir,
        'db_path': data_dir / 'captures.db',
    }


@pytest.fixture
def mock_storage_paths(temp_data_dir, monkeypatch):
    """Patch storage module paths to use temp directories."""
    monkeypatch.setattr('server.storage.DATA_DIR', temp_data_dir['data_dir'])
    monkeypatch.setattr('server.storage.DB_PATH', temp_data_dir['db_path'])
    return temp_data_dir


@pytest.fixture
def initialized_db(mock_storage_paths):
    """Initialize a test database with schema."""
    from server.storage import init_db
    init_db()
    return mock_storage_paths


@pytest.fixture
def sample_run_request():
    """Return a sample run request payload."""
    return {
        'urls': ['https://example.com/products/'],
        'sitemap': '',
        'options': {
            'mode': 1,
            'include': '/products/',
            'limit': 10,
            'build_report': True,
        },
    }


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------

@pytest.fixture
def fast_config(tmp_path):
    """A CaptureConfig with millisecond-scale waits."""
    from shooter import CaptureConfig
    return CaptureConfig(
        output_dir=str(tmp_path / 'runs'),
        fast_stabilize_ms=200,
        settle_timeout_ms=150,
        poll_interval_ms=5,
        stable_iterations=6,
        settle_iterations=3,
        sweep_steps=4,
        sweep_wait_ms=0,
        font_timeout_ms=10,
        wait_timeout_ms=50,
    )


@pytest.fixture
def fake_page():
    """Build a MagicMock standing in for a Playwright page.

    ``heights`` is a callable taking the sample number and returning the page
    height for that sample; a constant height gives a page that settles.
    """
    def _make(heights=lambda n: 2000, pending_images=0, dom_nodes=400, scroll_height=2000):
        page = MagicMock()
        page.is_closed.return_value = False
        page.query_selector.return_value = None
        page.wait_for_timeout.side_effect = lambda ms: time.sleep(ms / 1000)
        samples = {'n': 0}

        def _evaluate(script, *args):
            if 'pendingImages' in script:
                samples['n'] += 1
                return {
                    'height': heights(samples['n']),
                    'pendingImages': pending_images,
                    'domNodes': dom_nodes,
                }
            if 'document.fonts' in script:
                return True
            if 'scrollTo' in script:
                return None
            return scroll_height

        page.evaluate.side_effect = _evaluate
        page.samples = samples
        return page

    return _make


@pytest.fixture
def make_png():
    """Write a solid-colour PNG and return its path."""
    from PIL import Image

    def _make(path, width=120, height=300, color=(200, 30, 30)):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new('RGB', (width, height), color).save(path)
        return path

    return _make


@pytest.fixture
def sample_run_dir(tmp_path, make_png):
    """A persisted run: one complete page, one page missing its desktop capture."""
    run_dir = tmp_path / 'runs' / 'example.com' / '2025-03-01T09-30-12-345Z'
    make_png(run_dir / 'home' / 'mobile.png', 39, 200)
    make_png(run_dir / 'home' / 'desktop.png', 144, 300)
    make_png(run_dir / 'about' / 'mobile.png', 39, 120)

    logs = run_dir / 'logs'
    logs.mkdir(parents=True)
    for name, url in (('home', 'https://example.com/'), ('about', 'https://example.com/about')):
        for vp, ok in (('mobile', True), ('desktop', name == 'home')):
            record = {
                'url': url,
                'page_name': name,
                'stability': {'ok': ok, 'reason': '' if ok else 'timeout', 'height': 300, 'dom_nodes': 120},
                'states': ['probing', 'stable'] if ok else ['probing', 'sweeping', 'settling', 'unstable'],
            }
            (logs / f'{name}__{vp}__stability.json').write_text(json.dumps(record))
    (logs / 'about__desktop__console-errors.txt').write_text('NAV_FAIL: net::ERR_NAME_NOT_RESOLVED')
    (logs / 'home__mobile__request-failures.txt').write_text(
        'GET https://cdn.example.com/a.js :: net::ERR_ABORTED\nGET https://cdn.example.com/b.js :: net::ERR_ABORTED'
    )
    return run_dir
