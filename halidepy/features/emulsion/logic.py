import numpy as np
from halidepy.domain.models import Emulsion
from halidepy.domain.types import ExposureField
from halidepy.features.emulsion.models import (
    EmulsionConfig,
    GenerationStrategy,
    RandomScatter,
    PerPixelGrid,
)
from halidepy.features.exposure.logic import (
    absorb_photons,
    check_exposure_time,
    photon_counts,
)
from halidepy.kernel.image.validation import ensure_field, ensure_dimensions
from halidepy.kernel.system.parallel import run_chunked
from halidepy.kernel.system.performance import time_function


def _scatter_grains(
    emulsion: Emulsion,
    width: int,
    height: int,
    config: EmulsionConfig,
    seed_sequence: np.random.SeedSequence,
    max_workers: int | None,
) -> None:
    r_lo, r_hi = config.radius_range
    t_lo, t_hi = config.latent_threshold_range
    p_lo, p_hi = config.absorption_probability_range

    def worker(start: int, stop: int, rng: np.random.Generator) -> None:
        n = stop - start
        emulsion.x[start:stop] = rng.integers(0, width, size=n)
        emulsion.y[start:stop] = rng.integers(0, height, size=n)
        emulsion.radius[start:stop] = rng.uniform(r_lo, r_hi, size=n)
        emulsion.latent_threshold[start:stop] = rng.integers(int(t_lo), int(t_hi), size=n)
        emulsion.absorption_probability[start:stop] = rng.uniform(p_lo, p_hi, size=n)

    run_chunked(worker, len(emulsion), config.chunk_size, seed_sequence, max_workers)


def _grid_grains(
    emulsion: Emulsion,
    width: int,
    field: ExposureField,
    samples_per_pixel: int,
    exposure_time: float,
    config: EmulsionConfig,
    seed_sequence: np.random.SeedSequence,
    max_workers: int | None,
) -> None:
    r_lo, r_hi = config.radius_range
    flat_field = field.ravel()

    def worker(start: int, stop: int, rng: np.random.Generator) -> None:
        n = stop - start
        idx = np.arange(start, stop, dtype=np.int64)
        emulsion.x[start:stop] = idx % width
        emulsion.y[start:stop] = idx // width
        radius = rng.uniform(r_lo, r_hi, size=n)
        emulsion.radius[start:stop] = radius
        threshold = emulsion.latent_threshold[start:stop]
        threshold[:] = config.grid_latent_threshold
        probability = emulsion.absorption_probability[start:stop]
        probability[:] = config.grid_absorption_probability

        # Every candidate is exposed on its own, then averaged into the pixel's grain
        counts = photon_counts(radius, flat_field[start:stop], exposure_time)
        total = np.zeros(n, dtype=np.int64)
        for _ in range(samples_per_pixel):
            silver = np.zeros(n, dtype=np.int64)
            activated = np.zeros(n, dtype=np.bool_)
            absorb_photons(silver, threshold, activated, counts, probability, rng)
            total += silver

        silver_count = total // samples_per_pixel
        emulsion.silver_count[start:stop] = silver_count
        emulsion.activated[start:stop] = silver_count >= threshold

    run_chunked(worker, len(emulsion), config.chunk_size, seed_sequence, max_workers)
    emulsion.exposed = True


def deduplicate_positions(emulsion: Emulsion, width: int, height: int) -> Emulsion:
    """
    Keeps the first grain landing on each canvas pixel.

    Runs after generation over a pixel grid, so generation itself needs no
    shared bookkeeping. Grains off the canvas are left untouched.
    """
    inside = (
        (emulsion.x >= 0)
        & (emulsion.x < width)
        & (emulsion.y >= 0)
        & (emulsion.y < height)
    )
    keep = ~inside

    inside_idx = np.flatnonzero(inside)
    cells = emulsion.y[inside_idx] * width + emulsion.x[inside_idx]
    _, first = np.unique(cells, return_index=True)
    keep[inside_idx[first]] = True

    return emulsion.select(np.flatnonzero(keep))


@time_function
def generate(
    width: int,
    height: int,
    field: ExposureField,
    strategy: GenerationStrategy,
    seed_sequence: np.random.SeedSequence,
    config: EmulsionConfig = EmulsionConfig(),
    exposure_time: float = 0.0,
    max_workers: int | None = None,
) -> Emulsion:
    """
    Builds the grain population for a width x height canvas.

    RandomScatter draws every grain parameter independently. PerPixelGrid
    places one grain per pixel in row-major order and exposes its candidates
    at the pixel's intensity, so `exposure_time` only matters for the grid.
    """
    dims = ensure_dimensions(width, height)
    field = ensure_field(field, dims)

    if isinstance(strategy, RandomScatter):
        if strategy.num_grains < 0:
            raise ValueError(f"num_grains must be non-negative, got {strategy.num_grains}")
        emulsion = Emulsion.allocate(strategy.num_grains)
        _scatter_grains(emulsion, width, height, config, seed_sequence, max_workers)
        if config.unique_positions:
            emulsion = deduplicate_positions(emulsion, width, height)
        return emulsion

    if isinstance(strategy, PerPixelGrid):
        spp = strategy.samples_per_pixel
        if spp < 0:
            raise ValueError(f"samples_per_pixel must be non-negative, got {spp}")
        check_exposure_time(exposure_time)
        if spp == 0:
            return Emulsion.empty()
        emulsion = Emulsion.allocate(width * height)
        _grid_grains(
            emulsion, width, field, spp, exposure_time, config, seed_sequence, max_workers
        )
        return emulsion

    raise TypeError(f"Unsupported generation strategy {strategy!r}")
