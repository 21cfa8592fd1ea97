"""Run directory layout and persistence.

    <output>/<domain>/<run_ts>/manifest.json
    <output>/<domain>/<run_ts>/report.pdf
    <output>/<domain>/<run_ts>/<page>/{mobile,desktop}.png
    <output>/<domain>/<run_ts>/logs/<page>__<viewport>__console-errors.txt
    <output>/<domain>/<run_ts>/logs/<page>__<viewport>__request-failures.txt
    <output>/<domain>/<run_ts>/logs/<page>__<viewport>__stability.json
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from .models import CaptureConfig, CaptureOutcome, RunManifest, PageManifestEntry, VIEWPORTS

log = logging.getLogger(__name__)


MANIFEST_NAME = 'manifest.json'
REPORT_NAME = 'report.pdf'
LOGS_DIR_NAME = 'logs'


def run_timestamp() -> str:
    """Filesystem-safe UTC timestamp, e.g. 2025-03-01T09-30-12-345Z."""
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H-%M-%S-') + f'{now.microsecond // 1000:03d}Z'


def run_dir_for(output_dir, domain: str, run_ts: str) -> Path:
    return Path(output_dir) / domain / run_ts


def logs_dir_for(run_dir: Path) -> Path:
    return Path(run_dir) / LOGS_DIR_NAME


def log_base(page_name: str, viewport_name: str) -> str:
    return f'{page_name}__{viewport_name}'


def _write_text_atomic(path: Path, text: str) -> None:
    tmp = path.with_name(path.name + '.tmp')
    tmp.write_text(text, encoding='utf-8')
    os.replace(tmp, path)


# ---------------------------------------------------------------------------
# Capture logs
# ---------------------------------------------------------------------------

def write_capture_logs(logs_dir: Path, outcome: CaptureOutcome, config: CaptureConfig, run_ts: str) -> None:
    """Persist diagnostics and the stability record for one capture."""
    task = outcome.task
    logs_dir.mkdir(parents=True, exist_ok=True)
    base = log_base(task.page_name, task.viewport.name)

    console_lines = list(outcome.diagnostics) + list(outcome.console_errors)
    if console_lines:
        (logs_dir / f'{base}__console-errors.txt').write_text('\n'.join(console_lines), encoding='utf-8')
    if outcome.request_failures:
        (logs_dir / f'{base}__request-failures.txt').write_text(
            '\n'.join(outcome.request_failures), encoding='utf-8'
        )

    record = {
        'url': task.url,
        'domain': task.domain,
        'page_name': task.page_name,
        'viewport': {'name': task.viewport.name, 'width': task.viewport.width, 'height': task.viewport.height},
        'mode': config.mode,
        'run_timestamp': run_ts,
        'options': config.to_dict(),
        'stability': outcome.stability.to_dict(),
        'states': list(outcome.states),
        'diagnostics': list(outcome.diagnostics),
        'selector_found': outcome.selector_found,
        'fonts_ready': outcome.fonts_ready,
        'consent_dismissed': outcome.consent_dismissed,
        'screenshot': str(outcome.screenshot_path) if outcome.screenshot_path else None,
        'ts': datetime.now(timezone.utc).isoformat(),
    }
    (logs_dir / f'{base}__stability.json').write_text(json.dumps(record, indent=2), encoding='utf-8')


def read_capture_logs(run_dir: Path, page_name: str, viewport_name: str) -> dict:
    """Load whatever logs exist for one capture."""
    logs_dir = logs_dir_for(run_dir)
    base = log_base(page_name, viewport_name)

    def _lines(suffix: str) -> list:
        path = logs_dir / f'{base}__{suffix}'
        if not path.exists():
            return []
        return [line for line in path.read_text(encoding='utf-8', errors='replace').splitlines() if line.strip()]

    stability = None
    stability_path = logs_dir / f'{base}__stability.json'
    if stability_path.exists():
        try:
            stability = json.loads(stability_path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as exc:
            log.warning('Unreadable stability record %s: %s', stability_path, exc)

    return {
        'console_errors': _lines('console-errors.txt'),
        'request_failures': _lines('request-failures.txt'),
        'stability': stability,
    }


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

def write_manifest(run_dir: Path, manifest: RunManifest) -> Path:
    """Rewrite the whole manifest; a reader never sees a half-written file."""
    run_dir.mkdir(parents=True, exist_ok=True)
    path = run_dir / MANIFEST_NAME
    _write_text_atomic(path, json.dumps(manifest.to_dict(), indent=2))
    return path


def read_manifest(run_dir: Path):
    """Return the persisted RunManifest, or None if there is none."""
    path = Path(run_dir) / MANIFEST_NAME
    if not path.exists():
        return None
    return RunManifest.from_dict(json.loads(path.read_text(encoding='utf-8')))


def _page_names(run_dir: Path) -> list:
    """Pages with a screenshot on disk or a stability log, failed pages included."""
    run_dir = Path(run_dir)
    names = {vp.name for vp in VIEWPORTS}
    found = set()
    for child in run_dir.iterdir():
        if not child.is_dir() or child.name == LOGS_DIR_NAME:
            continue
        if any((child / f'{name}.png').exists() for name in names):
            found.add(child.name)
    logs_dir = run_dir / LOGS_DIR_NAME
    if logs_dir.is_dir():
        for path in logs_dir.glob('*__stability.json'):
            found.add(path.name.split('__', 1)[0])
    return sorted(found)


def is_run_dir(path: Path) -> bool:
    path = Path(path)
    if not path.is_dir():
        return False
    return (path / MANIFEST_NAME).exists() or bool(_page_names(path))


def load_run(run_dir: Path) -> RunManifest:
    """Re-open a persisted run from its manifest, or from a directory listing.

    Entries rebuilt from the listing carry the URL recorded in their stability
    log when one exists, otherwise an empty URL.
    """
    run_dir = Path(run_dir)
    manifest = read_manifest(run_dir)
    if manifest is not None:
        if not manifest.domain:
            manifest.domain = run_dir.parent.name
        if not manifest.run_timestamp:
            manifest.run_timestamp = run_dir.name
        return manifest

    log.info('No manifest in %s, rebuilding from directory listing', run_dir)
    manifest = RunManifest(domain=run_dir.parent.name, run_timestamp=run_dir.name)
    for name in _page_names(run_dir):
        url = ''
        for vp in VIEWPORTS:
            stability = read_capture_logs(run_dir, name, vp.name)['stability']
            if stability and stability.get('url'):
                url = stability['url']
                break
        manifest.pages.append(PageManifestEntry(
            name=name,
            url=url,
            desktop=f'{name}/desktop.png',
            mobile=f'{name}/mobile.png',
        ))
    return manifest


def find_run_dirs(path: Path) -> list:
    """Resolve a path to run directories: the run itself, or every run below a domain directory."""
    path = Path(path)
    if is_run_dir(path):
        return [path]
    if not path.is_dir():
        return []
    return [child for child in sorted(path.iterdir()) if is_run_dir(child)]
