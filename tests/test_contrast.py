import asyncio

import pytest
import requests

import contrast
from config import ScanConfig, ScoringSource
from contrast import (
    LocalContrastScorer,
    RemoteContrastScorer,
    contrast_ratio,
    is_low_contrast,
    make_scorer,
    parse_contrast,
    relative_luminance,
)
from errors import ScoringServiceError


def test_luminance_extremes():
    assert relative_luminance((0, 0, 0)) == 0.0
    assert relative_luminance((255, 255, 255)) == pytest.approx(1.0)


def test_contrast_ratio_black_white_and_symmetry():
    assert contrast_ratio((0, 0, 0), (255, 255, 255)) == pytest.approx(21.0)
    assert contrast_ratio((255, 255, 255), (0, 0, 0)) == pytest.approx(21.0)
    assert contrast_ratio((120, 40, 200), (120, 40, 200)) == pytest.approx(1.0)


def test_contrast_ratio_known_pair():
    # #777777 on white is the classic just-failing AA gray
    assert contrast_ratio((0x77, 0x77, 0x77), (255, 255, 255)) == pytest.approx(4.48, abs=0.01)


def test_threshold_is_strict_less_than():
    assert not is_low_contrast(4.5, 4.5)
    assert is_low_contrast(3.5, 4.5)
    assert is_low_contrast(4.49, 4.5)
    assert not is_low_contrast(5.0, 5.0)
    assert is_low_contrast(4.0, 5.0)


def test_local_scorer():
    score = asyncio.run(LocalContrastScorer().score("#000000", "#FFFFFF"))
    assert score == pytest.approx(21.0)


def test_local_scorer_rejects_bad_color():
    with pytest.raises(ScoringServiceError):
        asyncio.run(LocalContrastScorer().score("#000000", "not-a-color"))


@pytest.mark.parametrize("body,expected", [
    ({"contrast": "4.5:1"}, 4.5),
    ({"contrast": "21:1"}, 21.0),
    ({"contrast": "1.07:1", "other": True}, 1.07),
    ({"contrast": 3}, 3.0),
])
def test_parse_contrast(body, expected):
    assert parse_contrast(body) == pytest.approx(expected)


@pytest.mark.parametrize("body", [
    {},
    {"contrast": "n/a"},
    {"contrast": "-2:1"},
    {"contrast": "inf:1"},
    {"contrast": "nan:1"},
    ["4.5:1"],
    None,
])
def test_parse_contrast_rejects(body):
    with pytest.raises(ScoringServiceError):
        parse_contrast(body)


class _Response:
    def __init__(self, payload=None, status_error=None, json_error=None):
        self.payload = payload
        self.status_error = status_error
        self.json_error = json_error

    def raise_for_status(self):
        if self.status_error:
            raise self.status_error

    def json(self):
        if self.json_error:
            raise self.json_error
        return self.payload


def test_remote_scorer_posts_both_colors(monkeypatch):
    sent = {}

    def fake_post(url, data, timeout):
        sent.update(url=url, data=data, timeout=timeout)
        return _Response({"contrast": "2.5:1"})

    monkeypatch.setattr(contrast.requests, "post", fake_post)
    scorer = RemoteContrastScorer("https://scores.example/api", timeout=3.0)
    assert asyncio.run(scorer.score("#112233", "#FFFFFF")) == 2.5
    assert sent["url"] == "https://scores.example/api"
    assert sent["data"] == '{"colors": ["#112233", "#FFFFFF"]}'
    assert sent["timeout"] == 3.0


@pytest.mark.parametrize("response", [
    _Response(status_error=requests.HTTPError("500")),
    _Response(json_error=ValueError("Expecting value")),
    _Response({"unexpected": 1}),
])
def test_remote_scorer_failures(monkeypatch, response):
    monkeypatch.setattr(contrast.requests, "post", lambda url, data, timeout: response)
    scorer = RemoteContrastScorer("https://scores.example/api", timeout=1.0)
    with pytest.raises(ScoringServiceError):
        asyncio.run(scorer.score("#112233", "#FFFFFF"))


def test_remote_scorer_unreachable(monkeypatch):
    def refuse(url, data, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(contrast.requests, "post", refuse)
    with pytest.raises(ScoringServiceError):
        asyncio.run(RemoteContrastScorer("https://x", 1.0).score("#000000", "#FFFFFF"))


def test_make_scorer_follows_config():
    assert isinstance(make_scorer(ScanConfig()), LocalContrastScorer)
    remote = make_scorer(ScanConfig(score_source="remote", contrast_service_url="https://x/api"))
    assert isinstance(remote, RemoteContrastScorer)
    assert remote.url == "https://x/api"


def test_config_validation():
    assert ScanConfig(score_source="local").score_source is ScoringSource.LOCAL
    with pytest.raises(ValueError):
        ScanConfig(score_source="psychic")
    with pytest.raises(ValueError):
        ScanConfig(cluster_count=0)
    with pytest.raises(ValueError):
        ScanConfig(contrast_threshold=-1)
    with pytest.raises(ValueError):
        ScanConfig(image_timeout=0)
    with pytest.raises(ValueError):
        ScanConfig().with_overrides(alpha_threshold=300)


def test_config_overrides_return_copy():
    base = ScanConfig()
    tuned = base.with_overrides(contrast_threshold=5.0, cluster_count=4)
    assert tuned.contrast_threshold == 5.0
    assert tuned.cluster_count == 4
    assert base.contrast_threshold == 4.5
