#!/usr/bin/env python3
"""
Extract the dominant color of an image.

Opaque pixels are quantized into coarse RGB buckets, clustered with k-means,
and the centroid of the most populous cluster is the image's dominant color.
"""

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote_to_bytes

import numpy as np
import requests
from PIL import Image, ImageColor, UnidentifiedImageError
from sklearn.cluster import KMeans

from config import (
    ALPHA_THRESHOLD,
    MAX_IMAGE_DIMENSION,
    MAX_IMAGE_PIXELS,
    MAX_ITERATIONS,
    MAX_SAMPLE_DIMENSION,
    QUANTIZE_STEP,
    REQUEST_TIMEOUT,
    TOLERANCE,
)
from errors import ImageLoadError

logger = logging.getLogger(__name__)

RANDOM_STATE = 0  # Fixed k-means++ seed so repeated scans agree


# =============================================================================
# Color Conversion
# =============================================================================

def rgb_to_int(rgb: tuple) -> int:
    """Pack an (r, g, b) tuple into a 24-bit integer."""
    r, g, b = (int(c) for c in rgb)
    return (r << 16) | (g << 8) | b


def int_to_rgb(value: int) -> tuple:
    """Unpack a 24-bit integer into an (r, g, b) tuple."""
    return ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)


def rgb_to_hex(rgb: tuple) -> str:
    """Convert (r, g, b) to an uppercase '#RRGGBB' string."""
    return f"#{rgb_to_int(rgb):06X}"


# rgba() with a fractional alpha, which ImageColor does not accept
_RGBA_FLOAT_RE = re.compile(
    r'^rgba\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*([0-9]*\.?[0-9]+)\s*\)$', re.IGNORECASE
)


def parse_css_color(value: Optional[str]) -> Optional[tuple]:
    """
    Parse a CSS color string into an (r, g, b, a) tuple.

    Accepts hex, rgb(), rgba(), hsl() and named colors. Returns None for
    empty or unparseable input. 'transparent' parses as alpha 0.
    """
    if not value or not value.strip():
        return None
    value = value.strip()
    if value.lower() == 'transparent':
        return (0, 0, 0, 0)

    match = _RGBA_FLOAT_RE.match(value)
    if match and '.' in match.group(4):
        r, g, b = (min(int(c), 255) for c in match.groups()[:3])
        alpha = min(float(match.group(4)), 1.0)
        return (r, g, b, int(round(alpha * 255)))

    try:
        color = ImageColor.getrgb(value)
    except ValueError:
        return None
    if len(color) == 3:
        color = (*color, 255)
    return tuple(color)


# =============================================================================
# Color Sampler
# =============================================================================

def _decode_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(',')
    if not sep:
        raise ImageLoadError("Malformed data URI")
    try:
        if header.lower().endswith(';base64'):
            return base64.b64decode(payload, validate=False)
        return unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as e:
        raise ImageLoadError(f"Could not decode data URI: {e}") from e


def fetch_image_bytes(url: str, timeout: float = REQUEST_TIMEOUT) -> bytes:
    """
    Load raw image bytes from a resolved reference.

    Inline ``data:`` URIs are decoded locally; everything else is fetched
    over HTTP.

    Raises:
        ImageLoadError: If the resource is unreachable or the response fails
    """
    if url.lower().startswith('data:'):
        return _decode_data_uri(url)

    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ImageLoadError(f"Could not fetch {url}: {e}") from e
    return response.content


def decode_image(data: bytes, max_dimension: Optional[int] = MAX_SAMPLE_DIMENSION) -> np.ndarray:
    """
    Decode image bytes into an RGBA pixel array.

    Args:
        data: Encoded image (PNG, JPEG, GIF, ...)
        max_dimension: Longest side after downscaling, None keeps full size.
            Nearest-neighbour resampling is used so no blended colors appear.

    Returns:
        uint8 array of shape (height, width, 4)

    Raises:
        ImageLoadError: If the data is not a decodable image or exceeds size limits
    """
    try:
        img = Image.open(io.BytesIO(data))
        width, height = img.size

        # Validate image dimensions (security: prevent decompression bombs)
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise ImageLoadError(
                f"Image dimensions {width}x{height} exceed maximum "
                f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
            )
        if width * height > MAX_IMAGE_PIXELS:
            raise ImageLoadError(
                f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
            )

        img = img.convert('RGBA')
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ImageLoadError(f"Could not decode image: {e}") from e

    if max_dimension and max(img.size) > max_dimension:
        img.thumbnail((max_dimension, max_dimension), Image.Resampling.NEAREST)

    return np.asarray(img)


def sample_colors(rgba: np.ndarray, alpha_threshold: int = ALPHA_THRESHOLD,
                  step: int = QUANTIZE_STEP) -> np.ndarray:
    """
    Quantize the opaque pixels of an image.

    Args:
        rgba: Pixel array with 4 channels in the last axis
        alpha_threshold: Pixels with alpha at or below this are dropped
        step: Bucket size; each channel becomes floor(c / step) * step

    Returns:
        int32 array of shape (n_samples, 3)
    """
    pixels = rgba.reshape(-1, 4)
    opaque = pixels[pixels[:, 3] > alpha_threshold, :3].astype(np.int32)
    return (opaque // step) * step


# =============================================================================
# Dominant Color Estimator
# =============================================================================

@dataclass
class ColorCluster:
    """One group of similar samples."""
    centroid: tuple  # (r, g, b), integer channels
    count: int  # Number of samples assigned

    @property
    def hex(self) -> str:
        return rgb_to_hex(self.centroid)

    @property
    def value(self) -> int:
        """Centroid as a 24-bit RGB integer."""
        return rgb_to_int(self.centroid)


def cluster_colors(samples: np.ndarray, k: int = 3, max_iterations: int = MAX_ITERATIONS,
                   tolerance: float = TOLERANCE) -> list[ColorCluster]:
    """
    Partition color samples into at most k clusters.

    Identical samples are collapsed and weighted by their count, which gives
    the same partition as clustering every sample but at a fraction of the
    cost (quantized images rarely have more than a few hundred distinct
    buckets). k is capped at the number of distinct samples.

    Returns:
        Clusters in k-means label order. Empty when there are no samples.
    """
    if len(samples) == 0:
        return []

    unique, counts = np.unique(np.asarray(samples).reshape(-1, 3), axis=0, return_counts=True)
    n_clusters = min(k, len(unique))

    kmeans = KMeans(
        n_clusters=n_clusters,
        init='k-means++',
        n_init=1,
        max_iter=max_iterations,
        tol=tolerance,
        random_state=RANDOM_STATE,
    )
    labels = kmeans.fit_predict(unique.astype(np.float64), sample_weight=counts)
    sizes = np.bincount(labels, weights=counts, minlength=n_clusters)

    clusters = []
    for center, size in zip(kmeans.cluster_centers_, sizes):
        # Round half up, then keep within the channel range
        rgb = np.clip(np.floor(center + 0.5), 0, 255).astype(int)
        clusters.append(ColorCluster(centroid=tuple(int(c) for c in rgb), count=int(size)))
    return clusters


def dominant_color(samples: np.ndarray, k: int = 3, max_iterations: int = MAX_ITERATIONS,
                   tolerance: float = TOLERANCE) -> Optional[ColorCluster]:
    """
    Pick the most populous cluster of the samples.

    Ties go to the lowest cluster index. Returns None when there are no
    samples (a fully transparent image).
    """
    clusters = cluster_colors(samples, k=k, max_iterations=max_iterations, tolerance=tolerance)
    if not clusters:
        return None

    best = 0
    for i, cluster in enumerate(clusters):
        if cluster.count > clusters[best].count:
            best = i
    logger.debug("Clusters: %s, dominant %s",
                 [(c.hex, c.count) for c in clusters], clusters[best].hex)
    return clusters[best]


def extract_dominant_color(data: bytes, k: int = 3,
                           alpha_threshold: int = ALPHA_THRESHOLD,
                           step: int = QUANTIZE_STEP,
                           max_dimension: Optional[int] = MAX_SAMPLE_DIMENSION,
                           max_iterations: int = MAX_ITERATIONS,
                           tolerance: float = TOLERANCE) -> Optional[ColorCluster]:
    """Decode, sample and cluster an encoded image in one call."""
    rgba = decode_image(data, max_dimension=max_dimension)
    samples = sample_colors(rgba, alpha_threshold=alpha_threshold, step=step)
    return dominant_color(samples, k=k, max_iterations=max_iterations, tolerance=tolerance)
