"""Data classes used throughout the capture pipeline.

All structured types for render measurements, capture tasks, manifests and
run configuration live here so they can be imported cleanly by every other
module.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from .patterns import MODE_PRESETS, DEFAULT_MODE


@dataclass(frozen=True)
class Viewport:
    """A named browser viewport."""
    name: str
    width: int
    height: int


# Capture order is mobile first, then desktop.
VIEWPORTS = (
    Viewport('mobile', 390, 844),
    Viewport('desktop', 1440, 900),
)


@dataclass(frozen=True)
class RenderSnapshot:
    """Point-in-time measurement of a page's render state."""
    height: int
    pending_images: int
    dom_nodes: int


@dataclass(frozen=True)
class StabilityResult:
    """Terminal value of one probing attempt."""
    ok: bool
    reason: str = ''
    height: Optional[int] = None
    pending_images: Optional[int] = None
    dom_nodes: Optional[int] = None
    samples: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CaptureTask:
    """One (url, viewport) unit of work."""
    url: str
    viewport: Viewport
    page_name: str
    domain: str
    screenshot_path: Path


@dataclass
class CaptureOutcome:
    """Everything one capture produced, including its diagnostics."""
    task: CaptureTask
    stability: StabilityResult
    states: list = field(default_factory=list)
    console_errors: list = field(default_factory=list)
    request_failures: list = field(default_factory=list)
    diagnostics: list = field(default_factory=list)   # NAV_FAIL, SELECTOR_MISSING, SCREENSHOT_FAIL
    selector_found: Optional[bool] = None             # None when no selector is configured
    fonts_ready: bool = False
    consent_dismissed: bool = False
    screenshot_path: Optional[Path] = None            # None when the screenshot failed


@dataclass
class PageManifestEntry:
    """One captured URL; image paths are relative to the run directory."""
    name: str
    url: str
    desktop: str
    mobile: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'PageManifestEntry':
        name = data.get('name', '')
        return cls(
            name=name,
            url=data.get('url', ''),
            desktop=data.get('desktop') or f'{name}/desktop.png',
            mobile=data.get('mobile') or f'{name}/mobile.png',
        )


@dataclass
class RunManifest:
    """All entries for one (domain, run)."""
    domain: str
    run_timestamp: str
    pages: list = field(default_factory=list)  # List[PageManifestEntry]

    def to_dict(self) -> dict:
        return {
            'domain': self.domain,
            'run_timestamp': self.run_timestamp,
            'pages': [p.to_dict() for p in self.pages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RunManifest':
        # Manifests written by the older node runner use "runTs".
        return cls(
            domain=data.get('domain', ''),
            run_timestamp=data.get('run_timestamp') or data.get('runTs', ''),
            pages=[PageManifestEntry.from_dict(p) for p in data.get('pages', [])],
        )


@dataclass
class CaptureConfig:
    """Config for a capture run.

    Defaults match mode 1 (fast). Use ``from_mode`` to start from another
    preset and override individual values.
    """
    mode: int = DEFAULT_MODE
    # Stability
    fast_stabilize_ms: int = 4000
    stable_iterations: int = 6
    max_pending_images: int = 5
    poll_interval_ms: int = 250
    settle_timeout_ms: int = 2500
    settle_iterations: int = 3
    # Sweep fallback
    sweep: bool = True
    sweep_steps: int = 6
    sweep_wait_ms: int = 250
    # Page preparation
    wait_for_selector: str = ''
    wait_timeout_ms: int = 20000
    font_timeout_ms: int = 8000
    navigation_timeout_ms: int = 60000
    wait_until: str = 'networkidle'
    dismiss_popups: bool = True
    block_noise: bool = True
    # URL resolution
    sitemap: str = ''
    include: str = ''
    exclude: str = ''
    limit: int = 0
    same_host_only: bool = False
    # Browser and output
    headless: bool = True
    output_dir: str = 'runs'
    build_report: bool = False

    @classmethod
    def from_mode(cls, mode: int, **overrides) -> 'CaptureConfig':
        """Build a config from a mode preset; unknown modes fall back to mode 1."""
        preset = MODE_PRESETS.get(mode, MODE_PRESETS[DEFAULT_MODE])
        values = dict(preset)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(mode=mode, **values)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RunResult:
    """Results for a capture run, keyed by domain."""
    run_timestamp: str
    manifests: dict = field(default_factory=dict)  # domain -> RunManifest
    run_dirs: dict = field(default_factory=dict)   # domain -> Path
    reports: dict = field(default_factory=dict)    # domain -> Path
