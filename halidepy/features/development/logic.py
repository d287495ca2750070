import numpy as np
from numba import njit, prange  # type: ignore
from halidepy.domain.models import Grain, Emulsion
from halidepy.features.development.models import Developer
from halidepy.kernel.system.performance import time_function

DEFAULT_EPSILON = 1e-6


@njit(parallel=True, cache=True)
def _develop_jit(
    silver_count: np.ndarray,
    latent_threshold: np.ndarray,
    developed_fraction: np.ndarray,
    strength: float,
    max_development: float,
    dt: float,
    epsilon: float,
) -> None:
    """
    One forward-Euler development step for every grain, in place.
    """
    n = silver_count.shape[0]
    for i in prange(n):
        latent_ratio = silver_count[i] / latent_threshold[i]
        if latent_ratio <= epsilon:
            continue
        val = developed_fraction[i] + strength * latent_ratio * dt
        if val < 0.0:
            val = 0.0
        elif val > max_development:
            val = max_development
        developed_fraction[i] = val


def _check_dt(dt: float) -> None:
    if dt <= 0.0:
        raise ValueError(f"Development dt must be positive, got {dt}")


def develop_grain(
    grain: Grain, dev: Developer, dt: float, epsilon: float = DEFAULT_EPSILON
) -> None:
    """
    Advances a grain's development by one explicit step of length dt.

    The rate depends only on the latent image (silver_count / latent_threshold),
    so one step of dt equals k steps of dt / k until the ceiling is hit.
    """
    _check_dt(dt)
    latent_ratio = grain.silver_count / grain.latent_threshold
    if latent_ratio <= epsilon:
        return

    val = grain.developed_fraction + dev.strength * latent_ratio * dt
    grain.developed_fraction = min(max(val, 0.0), dev.max_development)


@time_function
def develop_emulsion(
    emulsion: Emulsion,
    dev: Developer,
    dt: float,
    epsilon: float = DEFAULT_EPSILON,
    passes: int = 1,
) -> None:
    """
    Develops the whole emulsion. `dt` is split evenly over `passes` steps.
    """
    _check_dt(dt)
    if passes < 1:
        raise ValueError(f"passes must be at least 1, got {passes}")
    if len(emulsion) == 0:
        return

    step = dt / passes
    for _ in range(passes):
        _develop_jit(
            emulsion.silver_count,
            emulsion.latent_threshold,
            emulsion.developed_fraction,
            float(dev.strength),
            float(dev.max_development),
            float(step),
            float(epsilon),
        )
