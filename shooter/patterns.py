"""Static tables: mode presets, consent-banner selectors and request noise rules."""


# ---------------------------------------------------------------------------
# Mode presets
# ---------------------------------------------------------------------------

DEFAULT_MODE = 1

MODE_PRESETS = {
    # Fast as possible while still forcing lazy content via the sweep fallback.
    1: {
        'fast_stabilize_ms': 4000,
        'sweep': True,
        'sweep_steps': 6,
        'sweep_wait_ms': 250,
        'max_pending_images': 5,
        'stable_iterations': 6,
        'wait_timeout_ms': 20000,
    },
    # Slower and deeper: more time to stabilise and a longer sweep.
    2: {
        'fast_stabilize_ms': 5000,
        'sweep': True,
        'sweep_steps': 8,
        'sweep_wait_ms': 300,
        'max_pending_images': 5,
        'stable_iterations': 6,
        'wait_timeout_ms': 25000,
    },
}


# ---------------------------------------------------------------------------
# Cookie / consent overlays (ordered, first match wins)
# ---------------------------------------------------------------------------

CONSENT_SELECTORS = [
    'button:has-text("Accept")',
    'button:has-text("Accept all")',
    'button:has-text("Allow all")',
    'button:has-text("I agree")',
    'button:has-text("Agree")',
    'button:has-text("OK")',
    'button:has-text("Got it")',
    'button:has-text("Continue")',
    '[aria-label*="accept" i]',
]


# ---------------------------------------------------------------------------
# Request noise
# ---------------------------------------------------------------------------

# Analytics beacons keep pages from ever going quiet.
NOISE_URL_SUBSTRINGS = (
    'a.klaviyo.com/onsite/track-analytics',
    'monorail-edge.shopifysvc.com',
    '/api/collect',
)

# Instagram embeds: keep the images, drop the videos.
INSTAGRAM_CDN = 'scontent.cdninstagram.com'


def should_block_request(url: str) -> bool:
    """Return True if a request URL is known noise."""
    for needle in NOISE_URL_SUBSTRINGS:
        if needle in url:
            return True
    if INSTAGRAM_CDN in url and '.mp4' in url.lower():
        return True
    return False
