import hashlib
import os
import numpy as np
from typing import cast
from halidepy.domain.types import (
    ImageBuffer,
    PixelBuffer,
    OPAQUE_ALPHA,
    LUMA_R,
    LUMA_G,
    LUMA_B,
)
from halidepy.kernel.image.validation import ensure_image


def uint8_to_float32(img: np.ndarray) -> ImageBuffer:
    return ensure_image(img.astype(np.float32) / 255.0)


def uint16_to_float32(img: np.ndarray) -> ImageBuffer:
    return ensure_image(img.astype(np.float32) / 65535.0)


def get_luminance(img: np.ndarray) -> np.ndarray:
    """
    Calculates relative luminance using Rec. 709 coefficients.
    Supports both 3D (H, W, 3) and 2D (N, 3) arrays.
    """
    return cast(
        np.ndarray, LUMA_R * img[..., 0] + LUMA_G * img[..., 1] + LUMA_B * img[..., 2]
    )


def to_intensity(img: np.ndarray) -> ImageBuffer:
    """
    Reduces a decoded image to a single-channel float32 intensity buffer in [0, 1].

    Integer buffers are scaled by their dtype range, alpha is dropped and
    colour is collapsed to luminance. Float buffers are assumed normalized.
    """
    if not isinstance(img, np.ndarray):
        raise TypeError(f"Expected numpy.ndarray, got {type(img)}")

    if img.dtype == np.uint8:
        f32 = uint8_to_float32(img)
    elif img.dtype == np.uint16:
        f32 = uint16_to_float32(img)
    elif np.issubdtype(img.dtype, np.integer):
        f32 = ensure_image(img.astype(np.float32) / float(np.iinfo(img.dtype).max))
    else:
        f32 = ensure_image(img)

    if f32.ndim == 3:
        if f32.shape[2] == 1:
            f32 = f32[:, :, 0]
        elif f32.shape[2] == 2:
            # Luminance + alpha
            f32 = f32[:, :, 0]
        elif f32.shape[2] >= 3:
            f32 = get_luminance(f32[:, :, :3])
    if f32.ndim != 2:
        raise ValueError(f"Unsupported image shape {img.shape}")

    return ensure_image(np.ascontiguousarray(np.clip(f32, 0.0, 1.0)))


def to_rgba(gray: PixelBuffer) -> PixelBuffer:
    """Expands a grayscale uint8 canvas to RGBA with a fixed opaque alpha."""
    h, w = gray.shape[:2]
    rgba = np.empty((h, w, 4), dtype=np.uint8)
    rgba[:, :, 0] = gray
    rgba[:, :, 1] = gray
    rgba[:, :, 2] = gray
    rgba[:, :, 3] = OPAQUE_ALPHA
    return rgba


def calculate_file_hash(file_path: str) -> str:
    """
    Generates a fast fingerprint of an input image.
    Hashes the first 1MB, last 1MB, and total file size.
    """
    file_size = os.path.getsize(file_path)
    hasher = hashlib.sha256()
    hasher.update(str(file_size).encode())

    with open(file_path, "rb") as f:
        hasher.update(f.read(1024 * 1024))

        if file_size > 2 * 1024 * 1024:
            f.seek(-1024 * 1024, os.SEEK_END)
            hasher.update(f.read(1024 * 1024))

    return hasher.hexdigest()


def calculate_buffer_hash(img: np.ndarray) -> str:
    """Fingerprint of an in-memory buffer, used when no source file exists."""
    hasher = hashlib.sha256()
    hasher.update(str(img.shape).encode())
    hasher.update(str(img.dtype).encode())
    hasher.update(np.ascontiguousarray(img).tobytes())
    return hasher.hexdigest()
