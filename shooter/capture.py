"""Capture orchestration for one (url, viewport) pair.

Sequence: navigate, dismiss consent, optional selector wait, font wait, then
the probe/sweep/settle state machine, then one full-page screenshot no matter
what the final verdict was. Page-content problems become diagnostics on the
outcome; only a closed/crashed page or a filesystem error escapes.
"""

import logging
from enum import Enum
from typing import Optional

from playwright.sync_api import Page, Error as PlaywrightError

from .models import CaptureConfig, CaptureOutcome, CaptureTask, StabilityResult
from .page_helpers import dismiss_popups, wait_for_selector_if_needed, wait_for_fonts, sweep_page
from .stability import ProbeParams, probe_page

log = logging.getLogger(__name__)


FAST_PROBE_MIN_ITERATIONS = 3


class CaptureState(Enum):
    PROBING = 'probing'
    SWEEPING = 'sweeping'
    SETTLING = 'settling'
    STABLE = 'stable'
    UNSTABLE = 'unstable'


TERMINAL_STATES = (CaptureState.STABLE, CaptureState.UNSTABLE)


def next_state(state: CaptureState, result: Optional[StabilityResult], sweep_enabled: bool) -> CaptureState:
    """Single transition function for the probe/sweep/settle machine.

    PROBING  -> STABLE | SWEEPING | SETTLING (sweep disabled)
    SWEEPING -> SETTLING
    SETTLING -> STABLE | UNSTABLE
    """
    if state is CaptureState.PROBING:
        if result is not None and result.ok:
            return CaptureState.STABLE
        return CaptureState.SWEEPING if sweep_enabled else CaptureState.SETTLING
    if state is CaptureState.SWEEPING:
        return CaptureState.SETTLING
    if state is CaptureState.SETTLING:
        if result is not None and result.ok:
            return CaptureState.STABLE
        return CaptureState.UNSTABLE
    raise ValueError(f'No transition out of terminal state {state.value}')


def fast_probe_params(config: CaptureConfig) -> ProbeParams:
    """Short first probe: half the stable-sample requirement so it fails fast."""
    return ProbeParams(
        timeout_ms=config.fast_stabilize_ms,
        poll_interval_ms=config.poll_interval_ms,
        stable_iterations=max(FAST_PROBE_MIN_ITERATIONS, config.stable_iterations // 2),
        max_pending_images=config.max_pending_images,
    )


def settle_probe_params(config: CaptureConfig) -> ProbeParams:
    """Fixed short window used after a sweep; never the long timeout again."""
    return ProbeParams(
        timeout_ms=config.settle_timeout_ms,
        poll_interval_ms=config.poll_interval_ms,
        stable_iterations=config.settle_iterations,
        max_pending_images=config.max_pending_images,
    )


def stabilise(page: Page, config: CaptureConfig) -> tuple:
    """Drive the state machine to a terminal state.

    Returns (final StabilityResult, list of visited state names).
    """
    state = CaptureState.PROBING
    trail = [state.value]
    result = None

    while state not in TERMINAL_STATES:
        if state is CaptureState.PROBING:
            result = probe_page(page, fast_probe_params(config))
        elif state is CaptureState.SWEEPING:
            sweep_page(page, config.sweep_steps, config.sweep_wait_ms)
        elif state is CaptureState.SETTLING:
            result = probe_page(page, settle_probe_params(config))
        state = next_state(state, result, config.sweep)
        trail.append(state.value)

    return result, trail


def capture_page(page: Page, task: CaptureTask, config: CaptureConfig) -> CaptureOutcome:
    """Run the full capture protocol for one task and write its screenshot."""
    console_errors: list = []
    request_failures: list = []
    diagnostics: list = []

    def _on_console(msg) -> None:
        if msg.type == 'error':
            console_errors.append(msg.text)

    def _on_request_failed(request) -> None:
        failure = request.failure or 'failed'
        request_failures.append(f'{request.method} {request.url} :: {failure}')

    page.on('console', _on_console)
    page.on('requestfailed', _on_request_failed)

    try:
        page.goto(task.url, wait_until=config.wait_until, timeout=config.navigation_timeout_ms)
    except PlaywrightError as exc:
        if page.is_closed():
            raise
        log.warning('Navigation failed for %s (%s): %s', task.url, task.viewport.name, exc)
        diagnostics.append(f'NAV_FAIL: {exc}')

    consent_dismissed = dismiss_popups(page) if config.dismiss_popups else False

    selector_found = None
    if config.wait_for_selector:
        selector_found = wait_for_selector_if_needed(page, config.wait_for_selector, config.wait_timeout_ms)
        if not selector_found:
            log.warning('Selector %s not found on %s', config.wait_for_selector, task.url)
            diagnostics.append(
                f'SELECTOR_MISSING: {config.wait_for_selector} not attached within {config.wait_timeout_ms}ms'
            )

    fonts_ready = wait_for_fonts(page, config.font_timeout_ms)

    stability, states = stabilise(page, config)
    if not stability.ok:
        log.info('Page did not settle: %s (%s), capturing anyway', task.url, task.viewport.name)

    task.screenshot_path.parent.mkdir(parents=True, exist_ok=True)
    screenshot_path = task.screenshot_path
    try:
        page.screenshot(path=str(task.screenshot_path), full_page=True)
    except PlaywrightError as exc:
        if page.is_closed():
            raise
        log.warning('Screenshot failed for %s (%s): %s', task.url, task.viewport.name, exc)
        diagnostics.append(f'SCREENSHOT_FAIL: {exc}')
        screenshot_path = None

    return CaptureOutcome(
        task=task,
        stability=stability,
        states=states,
        console_errors=console_errors,
        request_failures=request_failures,
        diagnostics=diagnostics,
        selector_found=selector_found,
        fonts_ready=fonts_ready,
        consent_dismissed=consent_dismissed,
        screenshot_path=screenshot_path,
    )
