import math
import numpy as np
from numba import njit, prange  # type: ignore
from scipy.signal import fftconvolve
from halidepy.domain.types import ExposureField
from halidepy.kernel.image.validation import ensure_field, ensure_dimensions, ensure_image
from halidepy.kernel.system.performance import time_function


@njit(parallel=True, cache=True)
def _convolve_zero_border_jit(field: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """
    Direct 2D convolution. Taps falling outside the canvas contribute nothing.
    """
    h, w = field.shape
    kh, kw = kernel.shape
    ry = kh // 2
    rx = kw // 2
    res = np.empty((h, w), dtype=np.float32)

    for y in prange(h):
        for x in range(w):
            acc = 0.0
            for dy in range(-ry, ry + 1):
                yy = y + dy
                if yy < 0 or yy >= h:
                    continue
                for dx in range(-rx, rx + 1):
                    xx = x + dx
                    if xx < 0 or xx >= w:
                        continue
                    acc += field[yy, xx] * kernel[ry - dy, rx - dx]
            res[y, x] = acc
    return res


def kernel_size(sigma: float) -> int:
    """Odd kernel side covering +/- 3 sigma, never smaller than 3."""
    return max(3, 2 * int(math.ceil(3.0 * sigma)) + 1)


def gaussian_kernel(sigma: float) -> np.ndarray:
    """
    Normalized 2D Gaussian kernel exp(-r^2 / (2 sigma^2)), summing to 1.
    """
    if sigma <= 0.0:
        raise ValueError(f"sigma must be positive, got {sigma}")

    size = kernel_size(sigma)
    r = size // 2
    ax = np.arange(-r, r + 1, dtype=np.float64)
    xx, yy = np.meshgrid(ax, ax)
    kernel = np.exp(-(xx * xx + yy * yy) / (2.0 * sigma * sigma))
    kernel /= kernel.sum()
    return kernel


def convolve_field(
    field: ExposureField, kernel: np.ndarray, backend: str = "direct"
) -> ExposureField:
    """
    Convolves an intensity field with a kernel, ignoring out-of-canvas samples.

    Both backends zero-pad, so energy spreading past the border is lost.
    """
    if backend == "direct":
        return _convolve_zero_border_jit(
            np.ascontiguousarray(field, dtype=np.float32),
            np.ascontiguousarray(kernel, dtype=np.float64),
        )
    if backend == "fft":
        res = fftconvolve(field.astype(np.float64), kernel, mode="same")
        # Remove FFT round-off below zero
        return ensure_image(np.maximum(res, 0.0))
    raise ValueError(f"Unknown convolution backend '{backend}'")


def _pick_backend(backend: str, kernel: np.ndarray, threshold: int) -> str:
    if backend != "auto":
        return backend
    return "fft" if kernel.shape[0] > threshold else "direct"


@time_function
def diffuse(
    width: int,
    height: int,
    field: ExposureField,
    reflection_factor: float,
    sigma_down: float,
    sigma_up: float,
    backend: str = "auto",
    fft_kernel_threshold: int = 31,
) -> ExposureField:
    """
    Two-pass halation model.

    The incoming field is blurred on its way down through the emulsion
    (transmitted), a fraction of it bounces off the base (reflected) and is
    blurred again on the way up. The upward light is added to the original
    exposure, so the result is pointwise >= the input and is not clamped.
    """
    dims = ensure_dimensions(width, height)
    src = ensure_field(field, dims)

    if not 0.0 <= reflection_factor <= 1.0:
        raise ValueError(
            f"reflection_factor must be within [0, 1], got {reflection_factor}"
        )

    down = gaussian_kernel(sigma_down)
    up = gaussian_kernel(sigma_up)

    if reflection_factor == 0.0:
        return src.copy()

    transmitted = convolve_field(
        src, down, _pick_backend(backend, down, fft_kernel_threshold)
    )
    reflected = transmitted * np.float32(reflection_factor)
    upward = convolve_field(
        reflected, up, _pick_backend(backend, up, fft_kernel_threshold)
    )

    return ensure_image(src + upward)
