#!/usr/bin/env python3
"""
Exception classes for the scan pipeline.

Each one is recovered where it is raised from: a failure degrades one
image (or one fragment) toward fewer findings and never reaches the host.
"""


class AccessibilityScanError(Exception):
    """Base exception for scan pipeline failures."""
    pass


class MarkupParseError(AccessibilityScanError):
    """Raised when markdown or HTML cannot be parsed for images."""
    pass


class ImageLoadError(AccessibilityScanError):
    """Raised when an image cannot be fetched or decoded."""
    pass


class ClusteringDegenerateError(AccessibilityScanError):
    """Raised when an image has no opaque pixels to cluster."""
    pass


class ScoringServiceError(AccessibilityScanError):
    """Raised when the contrast scoring service fails or returns garbage."""
    pass


__all__ = [
    'AccessibilityScanError',
    'MarkupParseError',
    'ImageLoadError',
    'ClusteringDegenerateError',
    'ScoringServiceError',
]
