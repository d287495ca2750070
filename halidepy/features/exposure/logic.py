import math
import numpy as np
from halidepy.domain.models import Grain, Emulsion
from halidepy.domain.types import ExposureField
from halidepy.kernel.image.validation import ensure_field
from halidepy.kernel.system.parallel import run_chunked
from halidepy.kernel.system.performance import time_function


# Photon counts saturate here so the int64 binomial draw never overflows.
# Activation needs at most latent_threshold successes, far below this.
MAX_PHOTONS = 2**62


def check_exposure_time(exposure_time: float) -> None:
    if not math.isfinite(exposure_time) or exposure_time < 0.0:
        raise ValueError(
            f"exposure_time must be finite and non-negative, got {exposure_time}"
        )


def _check_exposure_args(intensity: float, exposure_time: float) -> None:
    if not math.isfinite(intensity) or intensity < 0.0:
        raise ValueError(f"intensity must be finite and non-negative, got {intensity}")
    check_exposure_time(exposure_time)


def photon_count(radius: float, intensity: float, exposure_time: float) -> int:
    """
    Photons landing on the grain's cross-section: floor(I * pi r^2 * t),
    saturating at MAX_PHOTONS.
    """
    photons = intensity * math.pi * radius * radius * exposure_time
    if not photons < MAX_PHOTONS:
        return MAX_PHOTONS
    return int(math.floor(photons))


def photon_counts(
    radius: np.ndarray, intensity: np.ndarray, exposure_time: float
) -> np.ndarray:
    area = np.pi * radius * radius
    photons = np.floor(intensity * area * exposure_time)
    return np.minimum(photons, float(MAX_PHOTONS)).astype(np.int64)


def expose_grain(
    grain: Grain, intensity: float, exposure_time: float, rng: np.random.Generator
) -> None:
    """
    Photon absorption for one grain, sampled as a single binomial draw.

    Absorption stops the moment the latent threshold is reached, so an
    activating exposure leaves silver_count exactly at the threshold.
    """
    _check_exposure_args(intensity, exposure_time)
    if grain.activated:
        return

    n = photon_count(grain.radius, intensity, exposure_time)
    absorbed = int(rng.binomial(n, grain.absorption_probability)) if n > 0 else 0

    before = grain.silver_count
    total = before + absorbed
    if before < grain.latent_threshold <= total:
        total = grain.latent_threshold
    grain.silver_count = total
    grain.activated = total >= grain.latent_threshold


def expose_grain_bernoulli(
    grain: Grain, intensity: float, exposure_time: float, rng: np.random.Generator
) -> None:
    """
    Reference per-photon loop. Same distribution as expose_grain, far slower.
    """
    _check_exposure_args(intensity, exposure_time)
    if grain.activated:
        return

    n = photon_count(grain.radius, intensity, exposure_time)
    for _ in range(n):
        if rng.random() < grain.absorption_probability:
            # Each absorbed photon reduces one silver ion
            grain.silver_count += 1
            if grain.silver_count >= grain.latent_threshold:
                grain.activated = True
                return
    grain.activated = grain.silver_count >= grain.latent_threshold


def absorb_photons(
    silver_count: np.ndarray,
    latent_threshold: np.ndarray,
    activated: np.ndarray,
    counts: np.ndarray,
    absorption_probability: np.ndarray,
    rng: np.random.Generator,
) -> None:
    """
    Vectorized expose_grain over aligned array slices, updated in place.
    """
    pending = ~activated
    n = np.where(pending, counts, 0)
    absorbed = rng.binomial(n, absorption_probability)

    before = silver_count.copy()
    total = before + absorbed
    crossed = pending & (before < latent_threshold) & (total >= latent_threshold)
    total[crossed] = latent_threshold[crossed]

    silver_count[pending] = total[pending]
    activated[pending] = silver_count[pending] >= latent_threshold[pending]


def sample_intensities(field: ExposureField, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Field value under each grain; grains off the canvas receive no light."""
    h, w = field.shape
    inside = (x >= 0) & (x < w) & (y >= 0) & (y < h)
    res = np.zeros(len(x), dtype=np.float64)
    res[inside] = field[y[inside], x[inside]]
    return res


@time_function
def expose_emulsion(
    emulsion: Emulsion,
    field: ExposureField,
    exposure_time: float,
    seed_sequence: np.random.SeedSequence,
    chunk_size: int = 1 << 20,
    max_workers: int | None = None,
) -> int:
    """
    Exposes every grain to the field value at its position.

    Grains are processed in fixed-size chunks, each with its own random
    stream and its own disjoint slice of the emulsion arrays.
    Returns the number of activated grains.
    """
    check_exposure_time(exposure_time)
    field = ensure_field(field)

    def worker(start: int, stop: int, rng: np.random.Generator) -> None:
        sl = slice(start, stop)
        intensity = sample_intensities(field, emulsion.x[sl], emulsion.y[sl])
        counts = photon_counts(emulsion.radius[sl], intensity, exposure_time)
        absorb_photons(
            emulsion.silver_count[sl],
            emulsion.latent_threshold[sl],
            emulsion.activated[sl],
            counts,
            emulsion.absorption_probability[sl],
            rng,
        )

    run_chunked(worker, len(emulsion), chunk_size, seed_sequence, max_workers)
    emulsion.exposed = True
    return emulsion.activated_count
