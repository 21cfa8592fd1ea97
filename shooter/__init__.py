"""Page Shooter – core package.

Re-exports all public symbols so consumers can do:
    from shooter import run_capture, CaptureConfig
or use the top-level CLI module:
    from page_shooter import run_capture, CaptureConfig
"""

# Models
from .models import (  # noqa: F401
    Viewport,
    VIEWPORTS,
    RenderSnapshot,
    StabilityResult,
    CaptureTask,
    CaptureOutcome,
    PageManifestEntry,
    RunManifest,
    CaptureConfig,
    RunResult,
)

# Static tables
from .patterns import (  # noqa: F401
    MODE_PRESETS,
    CONSENT_SELECTORS,
    should_block_request,
)

# Stability probing
from .stability import (  # noqa: F401
    ProbeParams,
    is_stable_sample,
    probe,
    probe_page,
)

# Page helpers
from .page_helpers import (  # noqa: F401
    dismiss_popups,
    wait_for_selector_if_needed,
    wait_for_fonts,
    sweep_page,
)

# Capture orchestration
from .capture import (  # noqa: F401
    CaptureState,
    next_state,
    capture_page,
)

# URL utilities
from .url_utils import (  # noqa: F401
    get_domain,
    get_page_name,
    apply_url_filters,
    resolve_urls,
)

# Persistence
from .artifacts import load_run, write_manifest, read_manifest  # noqa: F401

# Tiling and reporting
from .document import ReportDocument, ReportPage, ImageStrip  # noqa: F401
from .tiling import TilingAssembler, wrap_text  # noqa: F401
from .reporting import build_report, regenerate_reports, summarize_run  # noqa: F401

# Runner
from .runner import run_capture  # noqa: F401
