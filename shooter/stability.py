"""Render stability probing.

A page is considered settled once its scroll height, DOM size and number of
pending images stop changing for a number of consecutive samples. The probe
is a heuristic: running out of time is a normal outcome, reported as
``StabilityResult(ok=False, reason='timeout')`` rather than raised.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from playwright.sync_api import Page, Error as PlaywrightError

from .models import RenderSnapshot, StabilityResult

log = logging.getLogger(__name__)


HEIGHT_TOLERANCE_PX = 2
DOM_TOLERANCE_NODES = 5

_SNAPSHOT_JS = '''
() => {
    const body = document.body ? document.body.scrollHeight : 0;
    const root = document.documentElement ? document.documentElement.scrollHeight : 0;
    const images = Array.from(document.images || []);
    return {
        height: Math.max(body, root),
        pendingImages: images.filter(img => !img.complete).length,
        domNodes: document.getElementsByTagName('*').length,
    };
}
'''


@dataclass(frozen=True)
class ProbeParams:
    """Tuning for one probing attempt."""
    timeout_ms: int
    poll_interval_ms: int = 250
    stable_iterations: int = 6
    max_pending_images: int = 5


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def is_stable_sample(previous: RenderSnapshot, current: RenderSnapshot, max_pending_images: int) -> bool:
    """All three tolerances must hold at once."""
    height_stable = abs(current.height - previous.height) <= HEIGHT_TOLERANCE_PX
    dom_stable = abs(current.dom_nodes - previous.dom_nodes) <= DOM_TOLERANCE_NODES
    images_ok = current.pending_images <= max_pending_images
    return height_stable and dom_stable and images_ok


def probe(
    sample: Callable[[], Optional[RenderSnapshot]],
    params: ProbeParams,
    clock: Callable[[], float] = _monotonic_ms,
    sleep: Callable[[float], None] = lambda ms: time.sleep(ms / 1000),
) -> StabilityResult:
    """Poll ``sample`` until it is stable or ``params.timeout_ms`` runs out.

    The deadline is checked between samples and clamps every sleep. A single
    ``sample`` call is not interrupted, so one that hangs past the deadline
    delays the return by its own duration.

    Args:
        sample: Returns the current snapshot, or None if it could not be taken.
            A None sample resets the consecutive counter.
        params: Timeout, cadence and tolerances.
        clock: Millisecond clock.
        sleep: Millisecond sleep; never asked to sleep past the deadline.
    """
    required = max(1, params.stable_iterations)
    start = clock()
    previous: Optional[RenderSnapshot] = None
    stable_count = 0
    samples = 0

    while clock() - start < params.timeout_ms:
        current = sample()
        samples += 1

        if current is not None and previous is not None and is_stable_sample(
            previous, current, params.max_pending_images
        ):
            stable_count += 1
            if stable_count >= required:
                return StabilityResult(
                    ok=True,
                    height=current.height,
                    pending_images=current.pending_images,
                    dom_nodes=current.dom_nodes,
                    samples=samples,
                    elapsed_ms=clock() - start,
                )
        else:
            stable_count = 0

        previous = current
        remaining = params.timeout_ms - (clock() - start)
        if remaining <= 0:
            break
        sleep(min(params.poll_interval_ms, remaining))

    return StabilityResult(ok=False, reason='timeout', samples=samples, elapsed_ms=clock() - start)


def take_snapshot(page: Page) -> Optional[RenderSnapshot]:
    """Measure the page; None if the evaluation failed (e.g. mid-navigation)."""
    try:
        data = page.evaluate(_SNAPSHOT_JS)
    except PlaywrightError as exc:
        if page.is_closed():
            raise
        log.debug('Snapshot failed: %s', exc)
        return None
    return RenderSnapshot(
        height=int(data.get('height') or 0),
        pending_images=int(data.get('pendingImages') or 0),
        dom_nodes=int(data.get('domNodes') or 0),
    )


def probe_page(page: Page, params: ProbeParams) -> StabilityResult:
    """Run the stability probe against a live Playwright page."""
    result = probe(
        lambda: take_snapshot(page),
        params,
        sleep=page.wait_for_timeout,
    )
    log.debug('Stability probe (%d ms, %d samples): %s', params.timeout_ms, params.stable_iterations, result)
    return result
