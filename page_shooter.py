#!/usr/bin/env python3
"""
Page Shooter
Full-page mobile + desktop screenshots of pages with lazy content, with an
adaptive stability check, a scroll-sweep fallback and optional PDF reports.
Requires: pip install -e . && playwright install chromium

Usage:
    page-shooter --urls https://example.com --mode 1          # uses /sitemap.xml
    page-shooter --sitemap https://example.com/sitemap.xml --include /products/ --limit 50
    page-shooter --urls https://a.com/page,https://b.co.uk/contact --report
    page-shooter --report-from runs/example.com/2025-03-01T09-30-12-345Z
"""

import argparse
import logging
import sys

from shooter import (  # noqa: F401
    CaptureConfig,
    RunResult,
    run_capture,
    resolve_urls,
    regenerate_reports,
    summarize_run,
    build_report,
    load_run,
)

log = logging.getLogger('page_shooter')


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description='Full-page mobile and desktop screenshots with optional PDF reports.')
    source = ap.add_argument_group('pages')
    source.add_argument('--urls', default='', help='Comma-separated URLs. A single domain root expands its /sitemap.xml.')
    source.add_argument('--sitemap', default='', help='Sitemap URL (or domain; /sitemap.xml is appended).')
    source.add_argument('--include', default='', help='Keep only sitemap URLs containing this substring.')
    source.add_argument('--exclude', default='', help='Drop sitemap URLs containing this substring.')
    source.add_argument('--limit', type=int, default=0, help='Cap the number of sitemap URLs (0 = no cap).')
    source.add_argument('--same-host-only', action='store_true', help='Keep only URLs on the sitemap host.')

    tuning = ap.add_argument_group('stability')
    tuning.add_argument('--mode', type=int, default=1, choices=(1, 2), help='Preset: 1 = fast, 2 = slower/deeper.')
    tuning.add_argument('--wait-for-selector', default=None, help='Selector every page must contain.')
    tuning.add_argument('--wait-timeout', type=int, default=None, help='Selector wait timeout in ms.')
    tuning.add_argument('--fast-stabilize', type=int, default=None, help='First stability probe timeout in ms.')
    tuning.add_argument('--stable-iterations', type=int, default=None, help='Consecutive stable samples required.')
    tuning.add_argument('--max-pending-images', type=int, default=None, help='Pending images still treated as stable.')
    tuning.add_argument('--no-sweep', action='store_true', help='Skip the scroll sweep fallback.')
    tuning.add_argument('--sweep-steps', type=int, default=None, help='Scroll increments in the sweep.')
    tuning.add_argument('--sweep-wait', type=int, default=None, help='Pause after each sweep step in ms.')
    tuning.add_argument('--no-block-noise', action='store_true', help='Do not block analytics/video requests.')

    output = ap.add_argument_group('output')
    output.add_argument('-o', '--out-dir', default='runs', help='Output directory (default: ./runs).')
    output.add_argument('--report', action='store_true', help='Build one PDF report per domain after capturing.')
    output.add_argument('--report-from', default='', help='Only rebuild reports for an existing run (or domain) directory.')
    output.add_argument('--headed', action='store_true', help='Show the browser window.')
    output.add_argument('-v', '--verbose', action='store_true', help='Debug logging.')
    return ap.parse_args(argv)


def config_from_args(args) -> CaptureConfig:
    overrides = {
        'wait_for_selector': args.wait_for_selector,
        'wait_timeout_ms': args.wait_timeout,
        'fast_stabilize_ms': args.fast_stabilize,
        'stable_iterations': args.stable_iterations,
        'max_pending_images': args.max_pending_images,
        'sweep_steps': args.sweep_steps,
        'sweep_wait_ms': args.sweep_wait,
    }
    config = CaptureConfig.from_mode(args.mode, **overrides)
    config.sweep = config.sweep and not args.no_sweep
    config.block_noise = not args.no_block_noise
    config.sitemap = args.sitemap
    config.include = args.include
    config.exclude = args.exclude
    config.limit = args.limit
    config.same_host_only = args.same_host_only
    config.headless = not args.headed
    config.output_dir = args.out_dir
    config.build_report = args.report
    return config


def run(args) -> int:
    if args.report_from:
        for path in regenerate_reports(args.report_from):
            log.info('Report saved to: %s', path)
        return 0

    if not args.urls and not args.sitemap:
        raise ValueError('Provide --urls or --sitemap (or --report-from)')

    config = config_from_args(args)
    urls = resolve_urls(args.urls.split(','), config)
    if not urls:
        raise ValueError('No URLs to run (empty after filtering)')

    print(f'\nPage Shooter (mode {config.mode})')
    print(f'URLs queued: {len(urls)}')
    print('-' * 40)

    result = run_capture(urls, config, progress_callback=lambda msg: log.debug(msg))

    for domain, manifest in result.manifests.items():
        print('\n' + summarize_run(manifest, result.run_dirs[domain]))
    for domain, path in result.reports.items():
        log.info('Report for %s saved to: %s', domain, path)
    return 0


def main(argv=None) -> int:
    """CLI entry point. Any uncaught error ends the run with one fatal line."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='[%(levelname)s] %(message)s',
    )
    try:
        return run(args)
    except Exception as exc:
        log.error('Fatal: %s', exc)
        if args.verbose:
            log.exception('Traceback')
        return 1


if __name__ == '__main__':
    sys.exit(main())
