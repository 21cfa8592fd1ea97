"""Background tasks for running capture jobs."""

import logging
from typing import Any

from server.config import settings
from server.schemas import RunRequest
from server.storage import update_status, attach_results
from shooter import CaptureConfig, run_capture, resolve_urls

log = logging.getLogger(__name__)


def config_from_request(request: RunRequest) -> CaptureConfig:
    """Turn API options into a CaptureConfig rooted at the server's runs directory."""
    options = request.options.model_dump()
    mode = options.pop('mode')
    sweep = options.pop('sweep')
    config = CaptureConfig.from_mode(mode, **options)
    config.sweep = config.sweep and sweep
    config.sitemap = request.sitemap
    config.output_dir = settings.runs_dir
    config.headless = True
    return config


def run_capture_task(run_id: str, payload: dict[str, Any]) -> None:
    """Run a capture job and persist where its artifacts landed."""
    update_status(run_id, 'running')
    try:
        request = RunRequest(**payload)
        config = config_from_request(request)
        urls = resolve_urls(request.urls, config)
        if not urls:
            raise ValueError('No URLs to run (empty after filtering)')

        result = run_capture(urls, config)

        manifests = {domain: str(path / 'manifest.json') for domain, path in result.run_dirs.items()}
        reports = {domain: str(path) for domain, path in result.reports.items()}
        attach_results(run_id, manifests, reports)
        update_status(run_id, 'finished')
    except Exception as exc:
        log.exception('Capture run %s failed', run_id)
        update_status(run_id, 'failed', error_message=str(exc)[:200])
