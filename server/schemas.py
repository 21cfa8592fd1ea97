"""Pydantic schemas for API."""

from pydantic import BaseModel, Field


class CaptureOptions(BaseModel):
    """Options passed to the capture runner.

    Fields mirror CaptureConfig; anything left unset falls back to the
    selected mode preset.
    """
    mode: int = Field(default=1, ge=1, le=2)
    fast_stabilize_ms: int | None = Field(default=None, gt=0)
    stable_iterations: int | None = Field(default=None, gt=0)
    max_pending_images: int | None = Field(default=None, ge=0)
    sweep: bool = True
    sweep_steps: int | None = Field(default=None, gt=0)
    sweep_wait_ms: int | None = Field(default=None, ge=0)
    wait_for_selector: str = ''
    wait_timeout_ms: int | None = Field(default=None, gt=0)
    block_noise: bool = True
    include: str = ''
    exclude: str = ''
    limit: int = Field(default=0, ge=0)
    same_host_only: bool = False
    build_report: bool = True


class RunRequest(BaseModel):
    """Capture run request payload: explicit URLs, a sitemap, or a bare domain."""
    urls: list[str] = Field(default_factory=list)
    sitemap: str = ''
    options: CaptureOptions = CaptureOptions()

    def target(self) -> str:
        """Short description stored with the run."""
        if self.sitemap:
            return self.sitemap
        if len(self.urls) == 1:
            return self.urls[0]
        return f'{len(self.urls)} urls'
