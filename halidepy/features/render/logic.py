import math
from typing import Union
import numpy as np
from numba import njit  # type: ignore
from halidepy.domain.models import Emulsion
from halidepy.domain.types import PixelBuffer, BACKGROUND_VALUE
from halidepy.features.render.models import (
    DensityCurveParams,
    RENDER_MODES,
    RENDER_CHANNELS,
)
from halidepy.kernel.image.logic import to_rgba
from halidepy.kernel.image.validation import ensure_dimensions
from halidepy.kernel.system.performance import time_function

ArrayOrFloat = Union[np.ndarray, float]


# Sequential on purpose: overlapping grains resolve to the last one in emulsion order
@njit(cache=True)
def _render_points_jit(
    canvas: np.ndarray, x: np.ndarray, y: np.ndarray, values: np.ndarray
) -> None:
    h, w = canvas.shape
    for i in range(x.shape[0]):
        gx = x[i]
        gy = y[i]
        if gx < 0 or gy < 0 or gx >= w or gy >= h:
            continue
        canvas[gy, gx] = values[i]


@njit(cache=True)
def _render_disks_jit(
    canvas: np.ndarray,
    x: np.ndarray,
    y: np.ndarray,
    radius_px: np.ndarray,
    values: np.ndarray,
) -> None:
    h, w = canvas.shape
    for i in range(x.shape[0]):
        gx = x[i]
        gy = y[i]
        if gx < 0 or gy < 0 or gx >= w or gy >= h:
            continue
        r = radius_px[i]
        r2 = r * r
        reach = int(math.ceil(r))
        for dy in range(-reach, reach + 1):
            yy = gy + dy
            if yy < 0 or yy >= h:
                continue
            for dx in range(-reach, reach + 1):
                xx = gx + dx
                if xx < 0 or xx >= w:
                    continue
                # The centre pixel is always covered, even for sub-pixel grains
                if dx * dx + dy * dy <= r2 or (dx == 0 and dy == 0):
                    canvas[yy, xx] = values[i]


def characteristic_density(
    developed_fraction: ArrayOrFloat, curve: DensityCurveParams
) -> ArrayOrFloat:
    """
    H&D curve: D = d_min + gamma * log10((f + e0) / e0), clamped to [d_min, d_max].
    Monotonically non-decreasing in the developed fraction.
    """
    e = np.asarray(developed_fraction, dtype=np.float64) + curve.e0
    density = curve.d_min + curve.gamma * np.log10(e / curve.e0)
    res = np.clip(density, curve.d_min, curve.d_max)
    if np.ndim(res) == 0:
        return float(res)
    return res


def density_to_pixel(density: ArrayOrFloat, curve: DensityCurveParams) -> ArrayOrFloat:
    """
    Tone inversion: higher density gives a darker pixel, D-min maps to 255.
    """
    d = np.asarray(density, dtype=np.float64)
    norm = (d - curve.d_min) / (curve.d_max - curve.d_min)
    # Round half up
    val = np.floor(255.0 * (1.0 - norm) + 0.5)
    res = np.clip(val, 0, 255).astype(np.uint8)
    if np.ndim(res) == 0:
        return int(res)
    return res


def grain_pixel_values(emulsion: Emulsion, curve: DensityCurveParams) -> np.ndarray:
    density = characteristic_density(emulsion.developed_fraction, curve)
    return np.asarray(density_to_pixel(density, curve), dtype=np.uint8)


@time_function
def render(
    emulsion: Emulsion,
    width: int,
    height: int,
    curve: DensityCurveParams = DensityCurveParams(),
    mode: str = "point",
    pixels_per_micron: float = 2.0,
    channels: int = 1,
) -> PixelBuffer:
    """
    Maps developed grains to an 8-bit negative.

    The canvas starts white; grains off the canvas are skipped. "point" mode
    writes one pixel per grain, "disk" mode a filled disk of the grain's
    radius scaled by pixels_per_micron, clipped to the canvas.
    """
    h, w = ensure_dimensions(width, height)
    if mode not in RENDER_MODES:
        raise ValueError(f"Unknown render mode '{mode}', expected one of {RENDER_MODES}")
    if channels not in RENDER_CHANNELS:
        raise ValueError(f"channels must be one of {RENDER_CHANNELS}, got {channels}")

    canvas = np.full((h, w), BACKGROUND_VALUE, dtype=np.uint8)
    if len(emulsion):
        values = grain_pixel_values(emulsion, curve)
        if mode == "point":
            _render_points_jit(canvas, emulsion.x, emulsion.y, values)
        else:
            radius_px = emulsion.radius * float(pixels_per_micron)
            _render_disks_jit(canvas, emulsion.x, emulsion.y, radius_px, values)

    if channels == 4:
        return to_rgba(canvas)
    return canvas
