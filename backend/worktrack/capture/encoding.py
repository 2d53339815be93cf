"""Still-image encoding: raw RGB frames in, inline JPEG out."""

import base64
import binascii
import io

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

DATA_URL_PREFIX = "data:image/jpeg;base64,"


def _to_image(frame: np.ndarray) -> Image.Image:
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        raise ValueError(f"Expected an RGB frame, got shape {frame.shape}")
    return Image.fromarray(frame.astype(np.uint8)).convert("RGB")


def encode_still(frame: np.ndarray, size: tuple[int, int], quality: int = 80) -> str:
    """
    Encode one frame as a fixed-size JPEG data URL.

    The frame is scaled and center-cropped to ``size`` so every stored photo
    has the same dimensions.
    """
    image = ImageOps.fit(_to_image(frame), size)
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def encode_preview(frame: np.ndarray, max_width: int = 640, quality: int = 60) -> bytes:
    """Small JPEG of the live frame for the preview surface."""
    image = _to_image(frame)
    if image.width > max_width:
        image = image.resize((max_width, round(image.height * max_width / image.width)))
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def decode_image(data: str | bytes) -> np.ndarray:
    """
    Decode a client-captured image (data URL, bare base64 or raw bytes)
    into an RGB frame. Raises ValueError for anything unreadable.
    """
    if isinstance(data, str):
        payload = data.split(",", 1)[1] if data.startswith("data:") else data
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Image is not valid base64: {e}")
    else:
        raw = data

    try:
        with Image.open(io.BytesIO(raw)) as image:
            image = ImageOps.exif_transpose(image)
            return np.asarray(image.convert("RGB"))
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Unreadable image: {e}")
