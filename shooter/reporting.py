"""Report generation: composite PDF per domain, and a plain-text run summary.

The PDF is laid out in memory, then rendered in page batches on save. The
text summary is what the CLI prints at the end of a run.
"""

import logging
from pathlib import Path

from .artifacts import REPORT_NAME, find_run_dirs, load_run, read_capture_logs
from .models import RunManifest, VIEWPORTS
from .tiling import TilingAssembler, HEADING_SIZE

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

def _cover(assembler: TilingAssembler, manifest: RunManifest) -> None:
    assembler.add_text(f'Capture report: {manifest.domain}', size=HEADING_SIZE + 4)
    assembler.add_text(f'Run: {manifest.run_timestamp}')
    assembler.add_text(f'Pages: {len(manifest.pages)}')
    if not manifest.pages:
        assembler.add_placeholder('No pages were captured in this run.')


def build_report(
    manifest: RunManifest,
    run_dir: Path,
    out_path: Path = None,
    assembler: TilingAssembler = None,
) -> Path:
    """Lay out every entry of a run and write one PDF.

    Each entry starts on a fresh page. Missing screenshots become
    placeholders rather than failing the report.
    """
    run_dir = Path(run_dir)
    assembler = assembler or TilingAssembler()
    out_path = Path(out_path) if out_path else run_dir / REPORT_NAME

    _cover(assembler, manifest)
    for entry in manifest.pages:
        assembler.new_page()
        log.debug('Laying out %s', entry.name)
        assembler.layout(entry, run_dir)

    return assembler.document.save(out_path)


def regenerate_reports(path: Path) -> list:
    """Rebuild reports for a persisted run directory, or every run under a domain directory."""
    run_dirs = find_run_dirs(path)
    if not run_dirs:
        raise ValueError(f'No capture runs found at {path}')
    reports = []
    for run_dir in run_dirs:
        manifest = load_run(run_dir)
        log.info('Building report for %s (%d pages)', run_dir, len(manifest.pages))
        reports.append(build_report(manifest, run_dir))
    return reports


# ---------------------------------------------------------------------------
# Text summary
# ---------------------------------------------------------------------------

def _capture_status(run_dir: Path, rel: str, logs: dict) -> str:
    if not rel or not (run_dir / rel).exists():
        return 'MISSING'
    record = logs.get('stability') or {}
    if (record.get('stability') or {}).get('ok'):
        return 'stable'
    return 'unsettled' if record else 'captured'


def summarize_run(manifest: RunManifest, run_dir: Path) -> str:
    """Human-readable run summary: one line per page and viewport."""
    run_dir = Path(run_dir)
    lines = [
        '=' * 65,
        f'Domain: {manifest.domain}',
        f'Run: {manifest.run_timestamp}',
        f'Pages: {len(manifest.pages)}',
        f'Output: {run_dir}',
        '=' * 65,
    ]

    missing = 0
    unsettled = 0
    for i, entry in enumerate(manifest.pages, 1):
        short = entry.url[:60] + '...' if len(entry.url) > 60 else entry.url
        lines.append(f'  {i}. {entry.name}  {short}')
        for vp in VIEWPORTS:
            logs = read_capture_logs(run_dir, entry.name, vp.name)
            status = _capture_status(run_dir, getattr(entry, vp.name), logs)
            notes = ''
            if logs['console_errors']:
                notes += f', {len(logs["console_errors"])} console error(s)'
            if logs['request_failures']:
                notes += f', {len(logs["request_failures"])} failed request(s)'
            lines.append(f'       {vp.name:<8} {status}{notes}')
            if status == 'MISSING':
                missing += 1
            elif status == 'unsettled':
                unsettled += 1

    lines += [
        '-' * 65,
        f'Missing captures: {missing}',
        f'Captured before settling: {unsettled}',
    ]
    report_path = run_dir / REPORT_NAME
    if report_path.exists():
        lines.append(f'Report: {report_path}')
    return '\n'.join(lines)
