import io
import random
from types import SimpleNamespace

import requests
from PIL import Image

from caltrack import image_normalizer
from caltrack.image_normalizer import normalize_image, normalize_image_bytes


def _png(width, height, mode="RGB"):
    buffer = io.BytesIO()
    Image.new(mode, (width, height)).save(buffer, format="PNG")
    return buffer.getvalue()


def _fake_get(status_code=200, content=b""):
    def fake_get(url, timeout=None):
        return SimpleNamespace(ok=200 <= status_code < 300, status_code=status_code, content=content)
    return fake_get


def test_large_image_is_shrunk_keeping_aspect_ratio():
    result = normalize_image_bytes(_png(2048, 1536))
    assert (result["original_width"], result["original_height"]) == (2048, 1536)
    assert (result["width"], result["height"]) == (1024, 768)
    assert Image.open(io.BytesIO(result["data"])).format == "JPEG"


def test_portrait_image_bounded_by_height():
    result = normalize_image_bytes(_png(1000, 3000))
    assert result["height"] == 1024
    assert result["width"] <= 1024


def test_small_image_is_not_upscaled():
    result = normalize_image_bytes(_png(640, 480))
    assert (result["width"], result["height"]) == (640, 480)


def test_transparent_image_is_reencoded_as_jpeg():
    result = normalize_image_bytes(_png(100, 100, mode="RGBA"))
    decoded = Image.open(io.BytesIO(result["data"]))
    assert decoded.format == "JPEG"
    assert decoded.mode == "RGB"


def test_undecodable_bytes_give_no_result():
    assert normalize_image_bytes(b"not an image") is None


def test_fetch_and_normalize(monkeypatch):
    monkeypatch.setattr(image_normalizer.requests, "get", _fake_get(content=_png(1500, 1500)))
    result = normalize_image("https://storage.example.com/meal.png")
    assert (result["width"], result["height"]) == (1024, 1024)


def test_http_error_gives_no_result(monkeypatch):
    monkeypatch.setattr(image_normalizer.requests, "get", _fake_get(status_code=404))
    assert normalize_image("https://storage.example.com/missing.png") is None


def test_network_error_gives_no_result(monkeypatch):
    def boom(url, timeout=None):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(image_normalizer.requests, "get", boom)
    assert normalize_image("https://storage.example.com/meal.png") is None


def test_oversized_image_gives_no_result(huge_png):
    assert normalize_image_bytes(huge_png) is None


def test_reencodes_at_quality_85():
    noise = Image.frombytes("RGB", (256, 256), random.Random(7).randbytes(256 * 256 * 3))
    png = io.BytesIO()
    noise.save(png, format="PNG")

    result = normalize_image_bytes(png.getvalue())

    expected = io.BytesIO()
    noise.save(expected, format="JPEG", quality=85)
    default = io.BytesIO()
    noise.save(default, format="JPEG")
    assert result["data"] == expected.getvalue()
    assert len(result["data"]) > len(default.getvalue())
