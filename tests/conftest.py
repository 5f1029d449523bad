import asyncio
import base64
import io

import numpy as np
import pytest
from PIL import Image


def make_png(pixels: np.ndarray) -> bytes:
    """Encode an (h, w, 3|4) uint8 array as PNG bytes."""
    buf = io.BytesIO()
    Image.fromarray(pixels.astype(np.uint8)).save(buf, format='PNG')
    return buf.getvalue()


def solid_png(rgb, size=(8, 8), alpha=255) -> bytes:
    h, w = size
    pixels = np.zeros((h, w, 4), dtype=np.uint8)
    pixels[..., :3] = rgb
    pixels[..., 3] = alpha
    return make_png(pixels)


def data_uri(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode('ascii')


class FakeLoader:
    """Maps URLs to PNG bytes; unknown URLs fail like an unreachable image."""

    def __init__(self, images=None):
        self.images = dict(images or {})
        self.calls = []

    def __call__(self, url: str) -> bytes:
        from errors import ImageLoadError

        self.calls.append(url)
        if url not in self.images:
            raise ImageLoadError(f"404: {url}")
        return self.images[url]


class FakeScorer:
    """Returns fixed scores per image color, optionally after a delay."""

    def __init__(self, scores=None, default=21.0, delays=None):
        self.scores = dict(scores or {})
        self.default = default
        self.delays = dict(delays or {})
        self.calls = []

    async def score(self, image_color, background_color):
        self.calls.append((image_color, background_color))
        delay = self.delays.get(image_color, 0)
        if delay:
            await asyncio.sleep(delay)
        return self.scores.get(image_color, self.default)


@pytest.fixture
def loader():
    return FakeLoader()


@pytest.fixture
def scorer():
    return FakeScorer()
