from typing import Any, cast
import numpy as np
from halidepy.domain.types import ImageBuffer, ExposureField, Dimensions


def ensure_image(arr: Any) -> ImageBuffer:
    """
    Ensures the input is a float32 numpy array and returns it as an ImageBuffer.
    This is preferred over a raw cast because it performs runtime validation.
    """
    if not isinstance(arr, np.ndarray):
        raise TypeError(f"Expected numpy.ndarray, got {type(arr)}")

    if arr.dtype != np.float32:
        arr = arr.astype(np.float32)

    return cast(ImageBuffer, arr)


def ensure_field(arr: Any, dims: Dimensions | None = None) -> ExposureField:
    """
    Validates a 2D non-negative intensity field.

    Raises ValueError for empty, non-2D, non-finite or negative data, and
    for a shape that disagrees with the expected (height, width).
    """
    field = ensure_image(arr)
    if field.ndim != 2:
        raise ValueError(f"Expected a 2D intensity field, got shape {field.shape}")
    if field.size == 0:
        raise ValueError("Intensity field is empty")
    if dims is not None and field.shape != tuple(dims):
        raise ValueError(
            f"Field shape {field.shape} does not match canvas (height, width) {dims}"
        )
    if not np.all(np.isfinite(field)):
        raise ValueError("Intensity field contains NaN or infinite values")
    if float(field.min()) < 0.0:
        raise ValueError("Intensity field contains negative values")
    return np.ascontiguousarray(field)


def ensure_dimensions(width: Any, height: Any) -> Dimensions:
    """Validates canvas dimensions and returns them as (height, width)."""
    w = int(width)
    h = int(height)
    if w <= 0 or h <= 0:
        raise ValueError(f"Canvas dimensions must be positive, got {w}x{h}")
    return h, w


def validate_bool(val: Any, default: bool = False) -> bool:
    """Ensures a value is a bool."""
    if val is None:
        return default
    return bool(val)
