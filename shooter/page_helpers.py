"""Page interaction helpers: consent dismissal, selector and font waits, scroll sweep.

Every helper here is best-effort. Expected "not found" / "timed out" cases
come back as a boolean instead of an exception so the capture pipeline can
keep going.
"""

import logging

from playwright.sync_api import Page, Route, Error as PlaywrightError

from .patterns import CONSENT_SELECTORS, should_block_request

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# JS snippets
# ---------------------------------------------------------------------------

_SCROLL_HEIGHT_JS = '''
() => Math.max(
    document.body ? document.body.scrollHeight : 0,
    document.documentElement ? document.documentElement.scrollHeight : 0
)
'''

_SCROLL_TO_JS = '(y) => window.scrollTo(0, y)'

_FONTS_READY_JS = '''
async (timeoutMs) => {
    if (!document.fonts) return true;
    return await Promise.race([
        document.fonts.ready.then(() => true),
        new Promise(resolve => setTimeout(() => resolve(false), timeoutMs)),
    ]);
}
'''

CONSENT_CLICK_TIMEOUT_MS = 800
CONSENT_PAUSE_MS = 400
VISIBLE_WAIT_CAP_MS = 5000
SWEEP_RETURN_PAUSE_MS = 250


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def dismiss_popups(page: Page, selectors: list = None) -> bool:
    """Dismiss the first matching cookie/consent overlay.

    The first selector that matches an element wins, whether or not the
    click lands. Returns True only when a click succeeded.
    """
    for selector in selectors or CONSENT_SELECTORS:
        try:
            button = page.query_selector(selector)
        except PlaywrightError as exc:
            log.debug('Consent lookup failed for %s: %s', selector, exc)
            continue
        if not button:
            continue

        clicked = False
        try:
            button.click(timeout=CONSENT_CLICK_TIMEOUT_MS)
            clicked = True
        except PlaywrightError as exc:
            log.debug('Consent click failed for %s: %s', selector, exc)
        page.wait_for_timeout(CONSENT_PAUSE_MS)
        return clicked
    return False


def wait_for_selector_if_needed(page: Page, selector: str, timeout_ms: int) -> bool:
    """Wait for ``selector`` to be attached, then (best-effort) visible.

    Returns False if no selector is given or it never attached in time.
    """
    if not selector:
        return False
    try:
        page.wait_for_selector(selector, state='attached', timeout=timeout_ms)
    except PlaywrightError as exc:
        log.debug('Selector %s not attached: %s', selector, exc)
        return False
    try:
        page.wait_for_selector(selector, state='visible', timeout=min(timeout_ms, VISIBLE_WAIT_CAP_MS))
    except PlaywrightError:
        log.debug('Selector %s attached but not visible', selector)
    return True


def wait_for_fonts(page: Page, timeout_ms: int = 8000) -> bool:
    """Wait for web fonts; False on timeout or evaluation failure."""
    try:
        return bool(page.evaluate(_FONTS_READY_JS, timeout_ms))
    except PlaywrightError as exc:
        log.debug('Font wait failed: %s', exc)
        return False


def scroll_positions(total_height: int, steps: int) -> list:
    """Scroll offsets for a sweep: ``steps`` equal increments from 0 to the bottom."""
    steps = max(1, steps)
    return [(total_height * i) // steps for i in range(steps + 1)]


def sweep_page(page: Page, steps: int = 6, wait_ms: int = 250) -> bool:
    """Scroll top to bottom and back to force viewport-triggered lazy loading."""
    try:
        total = int(page.evaluate(_SCROLL_HEIGHT_JS) or 0)
        for y in scroll_positions(total, steps):
            page.evaluate(_SCROLL_TO_JS, y)
            page.wait_for_timeout(wait_ms)
        page.evaluate(_SCROLL_TO_JS, 0)
        page.wait_for_timeout(SWEEP_RETURN_PAUSE_MS)
    except PlaywrightError as exc:
        if page.is_closed():
            raise
        log.debug('Sweep failed: %s', exc)
        return False
    return True


def route_noise(route: Route) -> None:
    """Context route handler that aborts known noise requests."""
    if should_block_request(route.request.url):
        route.abort()
    else:
        route.continue_()
