"""Batch orchestrator: captures every resolved URL and maintains the run manifests."""

import logging
from pathlib import Path

from playwright.sync_api import sync_playwright, BrowserContext

from .artifacts import run_timestamp, run_dir_for, logs_dir_for, write_capture_logs, write_manifest
from .capture import capture_page
from .models import CaptureConfig, CaptureTask, PageManifestEntry, RunManifest, RunResult, VIEWPORTS
from .page_helpers import route_noise
from .reporting import build_report
from .url_utils import get_domain, unique_page_name

log = logging.getLogger(__name__)


class RunAccumulator:
    """Run-scoped state: one manifest, name registry and directory per domain."""

    def __init__(self, output_dir, run_ts: str):
        self.output_dir = Path(output_dir)
        self.run_ts = run_ts
        self.manifests: dict = {}
        self._names: dict = {}

    def run_dir(self, domain: str) -> Path:
        return run_dir_for(self.output_dir, domain, self.run_ts)

    def claim_name(self, domain: str, url: str) -> str:
        return unique_page_name(url, self._names.setdefault(domain, set()))

    def add(self, domain: str, entry: PageManifestEntry) -> Path:
        """Append an entry and rewrite that domain's manifest."""
        manifest = self.manifests.setdefault(domain, RunManifest(domain=domain, run_timestamp=self.run_ts))
        manifest.pages.append(entry)
        return write_manifest(self.run_dir(domain), manifest)

    def result(self) -> RunResult:
        return RunResult(
            run_timestamp=self.run_ts,
            manifests=dict(self.manifests),
            run_dirs={domain: self.run_dir(domain) for domain in self.manifests},
        )


def capture_url(context: BrowserContext, url: str, config: CaptureConfig, accumulator: RunAccumulator) -> PageManifestEntry:
    """Capture one URL in every viewport and record it in the manifest."""
    domain = get_domain(url)
    name = accumulator.claim_name(domain, url)
    run_dir = accumulator.run_dir(domain)
    page_dir = run_dir / name
    logs_dir = logs_dir_for(run_dir)
    page_dir.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    for viewport in VIEWPORTS:
        task = CaptureTask(
            url=url,
            viewport=viewport,
            page_name=name,
            domain=domain,
            screenshot_path=page_dir / f'{viewport.name}.png',
        )
        page = context.new_page()
        try:
            page.set_viewport_size({'width': viewport.width, 'height': viewport.height})
            outcome = capture_page(page, task, config)
        finally:
            page.close()
        write_capture_logs(logs_dir, outcome, config, accumulator.run_ts)

    entry = PageManifestEntry(
        name=name,
        url=url,
        desktop=f'{name}/desktop.png',
        mobile=f'{name}/mobile.png',
    )
    accumulator.add(domain, entry)
    return entry


def capture_urls(context: BrowserContext, urls: list, config: CaptureConfig, accumulator: RunAccumulator, progress=None) -> None:
    """Capture URLs strictly one after another in a shared context."""
    _progress = progress or (lambda msg: None)
    total = len(urls)
    for idx, url in enumerate(urls, start=1):
        _progress(f'CAPTURING {idx}/{total}: {url}')
        log.info('Capturing %d/%d: %s', idx, total, url)
        entry = capture_url(context, url, config, accumulator)
        log.info('Captured %s -> %s', url, accumulator.run_dir(get_domain(url)) / entry.name)


def run_capture(urls: list, config: CaptureConfig, progress_callback=None) -> RunResult:
    """Capture every URL and optionally build one report per domain.

    Args:
        urls: Resolved, ordered list of absolute URLs.
        config: Capture configuration.
        progress_callback: Optional callable(str) receiving progress messages.
    """
    _progress = progress_callback or (lambda msg: None)
    if not urls:
        raise ValueError('No URLs to capture (empty after filtering)')

    accumulator = RunAccumulator(config.output_dir, run_timestamp())

    with sync_playwright() as p:
        _progress('LAUNCHING BROWSER...')
        browser = p.chromium.launch(headless=config.headless)
        try:
            context = browser.new_context()
            if config.block_noise:
                context.route('**/*', route_noise)
            capture_urls(context, urls, config, accumulator, _progress)
        finally:
            browser.close()

    result = accumulator.result()

    if config.build_report:
        for domain, manifest in result.manifests.items():
            _progress(f'BUILDING REPORT FOR {domain}...')
            result.reports[domain] = build_report(manifest, result.run_dirs[domain])

    _progress('RUN COMPLETE')
    return result
