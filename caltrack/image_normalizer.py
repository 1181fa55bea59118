# caltrack/image_normalizer.py
import io
import os
import requests
from PIL import Image, UnidentifiedImageError
from dotenv import load_dotenv

load_dotenv()

# Longest side sent to the vision model
MAX_IMAGE_DIMENSION = 1024
JPEG_QUALITY = 85
IMAGE_FETCH_TIMEOUT = float(os.getenv("IMAGE_FETCH_TIMEOUT", "30"))


def normalize_image(image_url: str):
    """
    Download an image and shrink it for inference.
    Returns None if the download or decode fails.
    """
    try:
        response = requests.get(image_url, timeout=IMAGE_FETCH_TIMEOUT)
    except requests.RequestException as e:
        print(f"⚠️ Image fetch failed: {e} | {image_url}")
        return None

    if not response.ok:
        print(f"⚠️ Image fetch failed: HTTP {response.status_code} | {image_url}")
        return None

    return normalize_image_bytes(response.content)


def normalize_image_bytes(image_bytes: bytes):
    """
    Fit the image inside MAX_IMAGE_DIMENSION x MAX_IMAGE_DIMENSION (keeping the
    aspect ratio, never enlarging) and re-encode as JPEG.
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        original_width, original_height = image.size

        image.thumbnail((MAX_IMAGE_DIMENSION, MAX_IMAGE_DIMENSION))
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        print(f"⚠️ Image decode failed: {e}")
        return None

    data = buffer.getvalue()
    width, height = image.size
    print(f"🖼️ Image resized: {original_width}x{original_height} -> {width}x{height} ({len(data)}b)")

    return {
        "data": data,
        "width": width,
        "height": height,
        "original_width": original_width,
        "original_height": original_height,
    }
