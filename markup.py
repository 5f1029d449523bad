#!/usr/bin/env python3
"""
Locate images in cell markup.

Markdown cells are searched for ``![alt](url)`` syntax and for raw HTML
``<img>`` tags; rendered code output is HTML only.
"""

import logging
import posixpath
import re
from typing import Optional
from urllib.parse import quote, urlparse

from bs4 import BeautifulSoup

from errors import MarkupParseError

logger = logging.getLogger(__name__)


TEXT_CELL = 'text'
CODE_OUTPUT_CELL = 'code-output'

# ![alt](target) where target may carry an optional "title"
MARKDOWN_IMAGE_RE = re.compile(r'!\[(.*?)\]\((.*?)\)', re.DOTALL)


def _clean_target(target: str) -> str:
    """Strip an optional title and angle brackets from a markdown link target."""
    target = target.strip()
    if target.startswith('<') and '>' in target:
        return target[1:target.index('>')].strip()
    # Title follows the first whitespace: ![a](img.png "Title")
    parts = target.split(None, 1)
    return parts[0] if parts else ''


def find_markdown_images(text: str) -> list[tuple[str, str]]:
    """
    Find markdown image syntax.

    Returns:
        List of (alt, reference) pairs in document order. Images with an
        empty target are skipped.
    """
    images = []
    for match in MARKDOWN_IMAGE_RE.finditer(text or ''):
        reference = _clean_target(match.group(2))
        if reference:
            images.append((match.group(1), reference))
    return images


def _parse_html(markup: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(markup, 'html.parser')
    except Exception as e:
        raise MarkupParseError(f"Could not parse HTML: {e}") from e


def find_html_images(markup: str) -> list[tuple[Optional[str], Optional[str]]]:
    """
    Find ``<img>`` elements in an HTML fragment.

    Returns:
        List of (alt, src) pairs in document order; either may be None
        when the attribute is absent.

    Raises:
        MarkupParseError: If the fragment cannot be parsed
    """
    if not markup:
        return []
    soup = _parse_html(markup)
    images = []
    for img in soup.find_all('img'):
        src = img.get('src')
        images.append((img.get('alt'), src.strip() if src else None))
    return images


def is_absolute_reference(reference: str) -> bool:
    """True if the reference carries its own URL scheme (http, https, data...)."""
    try:
        parsed = urlparse(reference)
    except ValueError:
        return False
    # Single letter schemes are Windows drive letters, not URLs
    return len(parsed.scheme) > 1


def resolve_reference(reference: str, origin: str, files_prefix: str = '/files/',
                      base_path: Optional[str] = None) -> str:
    """
    Resolve an image reference into a loadable URL.

    Absolute URLs are returned verbatim. Anything else is a path served by
    the host under ``files_prefix``, relative to the directory of the hosting
    document when ``base_path`` is given.
    """
    if is_absolute_reference(reference):
        return reference

    path = reference.lstrip('/')
    if base_path and not reference.startswith('/'):
        path = posixpath.normpath(posixpath.join(base_path, path)).lstrip('/')
        # normpath leaves '..' at the front when escaping the root
        while path.startswith('../'):
            path = path[3:]

    prefix = '/' + files_prefix.strip('/') + '/'
    return origin.rstrip('/') + prefix + quote(path, safe="/%?=&#~")


def missing_alt_references(text: str) -> list[str]:
    """
    Find images in markdown source that lack alternative text.

    Markdown images with empty or whitespace-only alt text and HTML images
    with a missing or empty ``alt`` attribute are reported, in that order.
    """
    missing = [ref for alt, ref in find_markdown_images(text) if not alt.strip()]

    try:
        html_images = find_html_images(text)
    except MarkupParseError as e:
        logger.warning("Skipping HTML alt check: %s", e)
        html_images = []

    for alt, src in html_images:
        if alt is None or not alt.strip():
            missing.append(src or '')
    return missing


def locate_images(source: str, cell_type: str) -> list[str]:
    """
    Extract image references from a cell's content.

    Args:
        source: Markdown text for text cells, rendered HTML for code output
        cell_type: TEXT_CELL or CODE_OUTPUT_CELL

    Returns:
        Unresolved references in document order (markdown syntax first for
        text cells). Parse failures yield an empty list for that fragment.
    """
    references = []
    if cell_type == TEXT_CELL:
        references.extend(ref for _, ref in find_markdown_images(source))
    elif cell_type != CODE_OUTPUT_CELL:
        return []

    try:
        references.extend(src for _, src in find_html_images(source) if src)
    except MarkupParseError as e:
        logger.warning("No images located in %s fragment: %s", cell_type, e)
    return references
