from dataclasses import dataclass
from typing import Tuple, Union

EMULSION_STRATEGIES = ("random", "grid")


@dataclass(frozen=True)
class RandomScatter:
    """Independently placed grains with fully randomized parameters."""

    num_grains: int


@dataclass(frozen=True)
class PerPixelGrid:
    """One retained grain per pixel, averaged over `samples_per_pixel` candidates."""

    samples_per_pixel: int


GenerationStrategy = Union[RandomScatter, PerPixelGrid]


@dataclass(frozen=True)
class EmulsionConfig:
    """
    Grain population parameters.
    Ranges are half-open [low, high) like numpy's uniform / integers draws.
    """

    strategy: str = "random"
    num_grains: int = 1_000_000
    samples_per_pixel: int = 1

    radius_range: Tuple[float, float] = (0.1, 0.5)  # Microns
    latent_threshold_range: Tuple[int, int] = (5, 20)  # Silver atoms
    absorption_probability_range: Tuple[float, float] = (0.3, 0.6)

    # Grid strategy uses fixed chemistry, only radius is randomized
    grid_latent_threshold: int = 10
    grid_absorption_probability: float = 0.9

    unique_positions: bool = False  # Keep at most one grain per pixel
    chunk_size: int = 1 << 20  # Grains per independently seeded work unit

    def resolve_strategy(self) -> GenerationStrategy:
        if self.strategy == "random":
            return RandomScatter(num_grains=self.num_grains)
        if self.strategy == "grid":
            return PerPixelGrid(samples_per_pixel=self.samples_per_pixel)
        raise ValueError(
            f"Unknown emulsion strategy '{self.strategy}', expected one of {EMULSION_STRATEGIES}"
        )

    def validate(self) -> None:
        self.resolve_strategy()
        if self.num_grains < 0:
            raise ValueError(f"num_grains must be non-negative, got {self.num_grains}")
        if self.samples_per_pixel < 0:
            raise ValueError(
                f"samples_per_pixel must be non-negative, got {self.samples_per_pixel}"
            )

        r_lo, r_hi = self.radius_range
        if not 0.0 < r_lo < r_hi:
            raise ValueError(
                f"radius_range must satisfy 0 < low < high, got {self.radius_range}"
            )

        t_lo, t_hi = self.latent_threshold_range
        if int(t_lo) != t_lo or int(t_hi) != t_hi:
            raise ValueError(
                f"latent_threshold_range must hold integers, got {self.latent_threshold_range}"
            )
        if t_lo < 1:
            raise ValueError(
                f"latent_threshold_range lower bound must be >= 1, got {t_lo}"
            )
        if t_lo >= t_hi:
            raise ValueError(
                f"latent_threshold_range is empty or inverted: {self.latent_threshold_range}"
            )

        p_lo, p_hi = self.absorption_probability_range
        if not 0.0 < p_lo < p_hi <= 1.0:
            raise ValueError(
                "absorption_probability_range must satisfy 0 < low < high <= 1, "
                f"got {self.absorption_probability_range}"
            )

        if self.grid_latent_threshold < 1:
            raise ValueError(
                f"grid_latent_threshold must be >= 1, got {self.grid_latent_threshold}"
            )
        if not 0.0 < self.grid_absorption_probability <= 1.0:
            raise ValueError(
                "grid_absorption_probability must be within (0, 1], "
                f"got {self.grid_absorption_probability}"
            )
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
