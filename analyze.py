#!/usr/bin/env python3
"""
Cell accessibility scan.

Turns the current content of one cell into a list of findings. Two stages:
Alt Text Check (text cells only) → Image Contrast (every located image,
evaluated concurrently). A scan never touches the issue index; the caller
decides what to do with the result.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config import DEFAULT_CONFIG, ScanConfig
from contrast import is_low_contrast, make_scorer
from errors import AccessibilityScanError, ClusteringDegenerateError
from extract_colors import extract_dominant_color, fetch_image_bytes, parse_css_color, rgb_to_hex
from markup import TEXT_CELL, locate_images, missing_alt_references, resolve_reference

logger = logging.getLogger(__name__)


# =============================================================================
# Findings
# =============================================================================

class FindingKind(Enum):
    """Types of accessibility defects."""
    MISSING_ALT = "missing_alt"
    LOW_CONTRAST = "low_contrast"


MISSING_ALT_MESSAGE = "Missing Alt Tag"
LOW_CONTRAST_MESSAGE = "Low Image Contrast: {color}"


@dataclass(frozen=True)
class ContrastDetail:
    """Measured contrast of one image against its cell."""
    score: float
    color: str  # Dominant image color, '#RRGGBB'
    background: str  # Cell background, '#RRGGBB'
    reference: str  # Resolved image URL


@dataclass(frozen=True)
class Finding:
    """One accessibility defect in a cell."""
    kind: FindingKind
    cell_id: str
    detail: object = None  # Image reference for MISSING_ALT, ContrastDetail for LOW_CONTRAST

    @property
    def message(self) -> str:
        if self.kind is FindingKind.LOW_CONTRAST:
            return LOW_CONTRAST_MESSAGE.format(color=self.detail.color)
        return MISSING_ALT_MESSAGE


@dataclass(frozen=True)
class ImageEvaluation:
    """Outcome of the color pipeline for one image."""
    reference: str
    color: str
    score: float
    low_contrast: bool


# =============================================================================
# Scanner
# =============================================================================

def resolve_background(value: str, config: ScanConfig) -> Optional[tuple]:
    """
    Turn a cell's CSS background into an (r, g, b) tuple.

    Missing or fully transparent backgrounds show the page behind them, so
    the configured page background is used. Unparseable values give None.
    """
    rgba = parse_css_color(value)
    if rgba is None and value and value.strip():
        return None
    if rgba is None or rgba[3] == 0:
        rgba = parse_css_color(config.page_background)
        if rgba is None:
            return None
    return rgba[:3]


class CellScanner:
    """Produces the complete finding list for a cell."""

    def __init__(self, config: ScanConfig = DEFAULT_CONFIG,
                 loader: Optional[Callable[[str], bytes]] = None,
                 scorer=None):
        """
        Args:
            config: Scan policy
            loader: Blocking callable returning encoded image bytes for a URL.
                Runs in a worker thread. Defaults to an HTTP/data-URI loader.
            scorer: Object with ``async score(image_hex, background_hex)``.
                Defaults to the one selected by ``config.score_source``.
        """
        self.config = config
        self.loader = loader or (lambda url: fetch_image_bytes(url, timeout=config.request_timeout))
        self.scorer = scorer or make_scorer(config)

    def _load_dominant_color(self, url: str) -> str:
        data = self.loader(url)
        cluster = extract_dominant_color(
            data,
            k=self.config.cluster_count,
            alpha_threshold=self.config.alpha_threshold,
            step=self.config.quantize_step,
            max_dimension=self.config.max_sample_dimension,
            max_iterations=self.config.max_iterations,
            tolerance=self.config.tolerance,
        )
        if cluster is None:
            raise ClusteringDegenerateError(f"No opaque pixels in {url}")
        return cluster.hex

    async def _evaluate(self, url: str, background: str) -> ImageEvaluation:
        color = await asyncio.to_thread(self._load_dominant_color, url)
        score = await self.scorer.score(color, background)
        low = is_low_contrast(score, self.config.contrast_threshold)
        logger.debug("Dominant color %s vs cell color %s. Contrast: %.2f", color, background, score)
        return ImageEvaluation(reference=url, color=color, score=score, low_contrast=low)

    async def evaluate_image(self, url: str, background: str) -> Optional[ImageEvaluation]:
        """
        Run the color pipeline on one image.

        Returns None when the image cannot contribute a result: load or decode
        failure, no opaque pixels, scoring failure, or timeout.
        """
        try:
            return await asyncio.wait_for(self._evaluate(url, background),
                                          timeout=self.config.image_timeout)
        except asyncio.TimeoutError:
            logger.warning("Image evaluation timed out after %.1fs: %s",
                           self.config.image_timeout, url)
        except AccessibilityScanError as e:
            logger.warning("Skipping contrast check for %s: %s", url, e)
        return None

    async def scan(self, cell, base_path: Optional[str] = None) -> list[Finding]:
        """
        Scan a cell as it is now.

        Content is read once, before the first suspension point, so later
        edits never leak into this result.
        """
        cell_id = cell.cell_id
        cell_type = cell.cell_type
        source = cell.source or ""
        background = resolve_background(cell.background, self.config)

        findings = []

        # Stage 1: Alt Text Check
        if cell_type == TEXT_CELL:
            for reference in missing_alt_references(source):
                findings.append(Finding(FindingKind.MISSING_ALT, cell_id, reference))

        # Stage 2: Image Contrast
        if background is None:
            logger.warning("Cell %s has unparseable background %r; contrast not checked",
                           cell_id, cell.background)
            return findings

        background_hex = rgb_to_hex(background)
        urls = [
            resolve_reference(ref, self.config.origin, self.config.files_prefix, base_path)
            for ref in locate_images(source, cell_type)
        ]
        evaluations = await asyncio.gather(
            *(self.evaluate_image(url, background_hex) for url in urls)
        )

        for evaluation in evaluations:
            if evaluation is not None and evaluation.low_contrast:
                detail = ContrastDetail(
                    score=evaluation.score,
                    color=evaluation.color,
                    background=background_hex,
                    reference=evaluation.reference,
                )
                findings.append(Finding(FindingKind.LOW_CONTRAST, cell_id, detail))

        logger.debug("Cell %s: %d image(s), %d finding(s)", cell_id, len(urls), len(findings))
        return findings
