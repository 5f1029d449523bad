#!/usr/bin/env python3
"""
Score the contrast between an image's dominant color and its background.

Scores are WCAG contrast ratios (1 to 21). They can be computed locally or
by a remote scoring service that answers with ``"<value>:1"``.
"""

import asyncio
import json
import logging
import math

import requests

from config import ScanConfig, ScoringSource
from errors import ScoringServiceError
from extract_colors import parse_css_color

logger = logging.getLogger(__name__)


def relative_luminance(rgb: tuple) -> float:
    """WCAG relative luminance of an (r, g, b) color with 0-255 channels."""
    def linear(c):
        c = c / 255.0
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (linear(c) for c in rgb[:3])
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(rgb1: tuple, rgb2: tuple) -> float:
    """Compute the WCAG contrast ratio between two colors."""
    l1 = relative_luminance(rgb1)
    l2 = relative_luminance(rgb2)

    lighter = max(l1, l2)
    darker = min(l1, l2)

    return (lighter + 0.05) / (darker + 0.05)


def is_low_contrast(score: float, threshold: float) -> bool:
    """A score strictly below the threshold is a finding; equal passes."""
    return score < threshold


def _hex_to_rgb(color: str) -> tuple:
    rgba = parse_css_color(color)
    if rgba is None:
        raise ValueError(f"Not a color: {color!r}")
    return rgba[:3]


class LocalContrastScorer:
    """Computes contrast ratios in-process."""

    async def score(self, image_color: str, background_color: str) -> float:
        try:
            return contrast_ratio(_hex_to_rgb(image_color), _hex_to_rgb(background_color))
        except ValueError as e:
            raise ScoringServiceError(str(e)) from e


class RemoteContrastScorer:
    """Asks the contrast scoring service for a ratio."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout

    def _request(self, image_color: str, background_color: str) -> float:
        payload = {"colors": [image_color, background_color]}
        try:
            response = requests.post(self.url, data=json.dumps(payload), timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise ScoringServiceError(f"Contrast service unreachable: {e}") from e
        except ValueError as e:
            raise ScoringServiceError(f"Contrast service returned invalid JSON: {e}") from e
        return parse_contrast(body)

    async def score(self, image_color: str, background_color: str) -> float:
        return await asyncio.to_thread(self._request, image_color, background_color)


def parse_contrast(body) -> float:
    """
    Parse a scoring service response such as ``{"contrast": "4.5:1"}``.

    Raises:
        ScoringServiceError: If the value is missing, non-numeric, negative
            or not finite
    """
    try:
        raw = body["contrast"]
    except (KeyError, TypeError):
        raise ScoringServiceError(f"Response has no contrast value: {body!r}")

    try:
        value = float(str(raw).split(":")[0].strip())
    except ValueError:
        raise ScoringServiceError(f"Unparseable contrast value: {raw!r}")

    if not math.isfinite(value) or value < 0:
        raise ScoringServiceError(f"Contrast value out of range: {raw!r}")
    return value


def make_scorer(config: ScanConfig):
    """Build the scorer selected by the config's scoring source."""
    if config.score_source is ScoringSource.REMOTE:
        logger.debug("Using remote contrast service at %s", config.contrast_service_url)
        return RemoteContrastScorer(config.contrast_service_url, config.request_timeout)
    return LocalContrastScorer()
