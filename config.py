#!/usr/bin/env python3
"""
Scan configuration.

All settings are in-memory process state; nothing here is read from or
written to disk.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


# =============================================================================
# Constants
# =============================================================================

DEFAULT_CLUSTER_COUNT = 3
DEFAULT_CONTRAST_THRESHOLD = 4.5  # WCAG 2.1 AA, normal text
ALPHA_THRESHOLD = 100  # Pixels with alpha <= this (~39% opacity) are ignored
QUANTIZE_STEP = 10  # Channel bucket size for color samples

# k-means parameters
MAX_ITERATIONS = 25
TOLERANCE = 1e-6

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side
MAX_SAMPLE_DIMENSION = 256  # Downscale bound before sampling

CONTRAST_SERVICE_URL = 'https://www.aremycolorsaccessible.com/api/are-they'
DEFAULT_ORIGIN = 'http://localhost:8888'
FILES_PREFIX = '/files/'

REQUEST_TIMEOUT = 10.0  # Seconds, per network call
IMAGE_TIMEOUT = 30.0  # Seconds, whole evaluation of one image
HIGHLIGHT_SECONDS = 0.8  # Flash duration after navigating to a cell
PAGE_BACKGROUND = '#FFFFFF'  # Used when a cell reports a transparent background


class ScoringSource(Enum):
    """Where contrast scores come from."""
    LOCAL = "local"    # WCAG formula computed in-process
    REMOTE = "remote"  # Contrast scoring service over HTTP


@dataclass(frozen=True)
class ScanConfig:
    """Tunable policy for the scan pipeline."""

    cluster_count: int = DEFAULT_CLUSTER_COUNT
    contrast_threshold: float = DEFAULT_CONTRAST_THRESHOLD
    score_source: ScoringSource = ScoringSource.LOCAL
    contrast_service_url: str = CONTRAST_SERVICE_URL

    request_timeout: float = REQUEST_TIMEOUT
    image_timeout: float = IMAGE_TIMEOUT

    alpha_threshold: int = ALPHA_THRESHOLD
    quantize_step: int = QUANTIZE_STEP
    max_iterations: int = MAX_ITERATIONS
    tolerance: float = TOLERANCE
    max_sample_dimension: Optional[int] = MAX_SAMPLE_DIMENSION

    # Relative image references resolve to origin + files_prefix + path
    origin: str = DEFAULT_ORIGIN
    files_prefix: str = FILES_PREFIX

    page_background: str = PAGE_BACKGROUND
    highlight_seconds: float = HIGHLIGHT_SECONDS

    def __post_init__(self):
        # Accept plain strings for the scoring source
        if not isinstance(self.score_source, ScoringSource):
            try:
                object.__setattr__(self, 'score_source', ScoringSource(self.score_source))
            except ValueError:
                raise ValueError(f"Unknown score source: {self.score_source!r}")

        if self.cluster_count < 1:
            raise ValueError(f"cluster_count must be >= 1, got {self.cluster_count}")
        if self.contrast_threshold < 0:
            raise ValueError(f"contrast_threshold must be >= 0, got {self.contrast_threshold}")
        if not 0 <= self.alpha_threshold <= 255:
            raise ValueError(f"alpha_threshold must be within 0-255, got {self.alpha_threshold}")
        if self.quantize_step < 1:
            raise ValueError(f"quantize_step must be >= 1, got {self.quantize_step}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.request_timeout <= 0 or self.image_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.max_sample_dimension is not None and self.max_sample_dimension < 1:
            raise ValueError(f"max_sample_dimension must be >= 1, got {self.max_sample_dimension}")

    def with_overrides(self, **changes) -> 'ScanConfig':
        """Return a validated copy with the given fields changed."""
        return replace(self, **changes)


DEFAULT_CONFIG = ScanConfig()
