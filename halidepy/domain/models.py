from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, Iterator, List, Optional
import numpy as np
from halidepy.domain.types import Position
from halidepy.features.emulsion.models import EmulsionConfig
from halidepy.features.halation.models import HalationConfig
from halidepy.features.exposure.models import ExposureConfig
from halidepy.features.development.models import DevelopmentConfig
from halidepy.features.render.models import RenderConfig


@dataclass
class Grain:
    """
    A single silver-halide crystal.

    Position, radius, threshold and absorption probability are fixed at
    creation. silver_count and activated are written by exposure,
    developed_fraction by development.
    """

    x: int
    y: int
    radius: float  # Microns
    latent_threshold: int  # Silver atoms needed for activation
    absorption_probability: float  # Per-photon capture probability

    silver_count: int = 0
    activated: bool = False
    developed_fraction: float = 0.0
    spectral_sensitivity: Optional[float] = None  # Reserved for wavelength weighting

    def __post_init__(self) -> None:
        if self.latent_threshold < 1:
            raise ValueError(
                f"latent_threshold must be a positive integer, got {self.latent_threshold}"
            )
        if self.radius <= 0.0:
            raise ValueError(f"radius must be positive, got {self.radius}")
        if not 0.0 < self.absorption_probability <= 1.0:
            raise ValueError(
                f"absorption_probability must be within (0, 1], got {self.absorption_probability}"
            )
        if self.silver_count < 0:
            raise ValueError("silver_count must be non-negative")

    @property
    def position(self) -> Position:
        return self.x, self.y


class Emulsion:
    """
    Fixed-size grain population stored as parallel arrays (struct-of-arrays).

    Stages mutate the arrays in place; indexing returns a Grain snapshot that
    does not write back.
    """

    def __init__(
        self,
        x: np.ndarray,
        y: np.ndarray,
        radius: np.ndarray,
        latent_threshold: np.ndarray,
        absorption_probability: np.ndarray,
        silver_count: Optional[np.ndarray] = None,
        activated: Optional[np.ndarray] = None,
        developed_fraction: Optional[np.ndarray] = None,
        spectral_sensitivity: Optional[np.ndarray] = None,
        exposed: bool = False,
    ) -> None:
        n = len(x)
        self.x = np.ascontiguousarray(x, dtype=np.int64)
        self.y = np.ascontiguousarray(y, dtype=np.int64)
        self.radius = np.ascontiguousarray(radius, dtype=np.float64)
        self.latent_threshold = np.ascontiguousarray(latent_threshold, dtype=np.int64)
        self.absorption_probability = np.ascontiguousarray(
            absorption_probability, dtype=np.float64
        )
        self.silver_count = (
            np.zeros(n, dtype=np.int64)
            if silver_count is None
            else np.ascontiguousarray(silver_count, dtype=np.int64)
        )
        self.activated = (
            np.zeros(n, dtype=np.bool_)
            if activated is None
            else np.ascontiguousarray(activated, dtype=np.bool_)
        )
        self.developed_fraction = (
            np.zeros(n, dtype=np.float64)
            if developed_fraction is None
            else np.ascontiguousarray(developed_fraction, dtype=np.float64)
        )
        # NaN marks "not set"
        self.spectral_sensitivity = (
            np.full(n, np.nan, dtype=np.float32)
            if spectral_sensitivity is None
            else np.ascontiguousarray(spectral_sensitivity, dtype=np.float32)
        )
        # Set once photon absorption has run (grid generation exposes its candidates)
        self.exposed = exposed

        for name in (
            "y",
            "radius",
            "latent_threshold",
            "absorption_probability",
            "silver_count",
            "activated",
            "developed_fraction",
            "spectral_sensitivity",
        ):
            if len(getattr(self, name)) != n:
                raise ValueError(f"Emulsion array '{name}' does not match length {n}")
        if n and int(self.latent_threshold.min()) < 1:
            raise ValueError("latent_threshold must be a positive integer for every grain")

    @classmethod
    def allocate(cls, n: int) -> "Emulsion":
        """Preallocates an emulsion of n grains for chunked writers."""
        return cls(
            x=np.zeros(n, dtype=np.int64),
            y=np.zeros(n, dtype=np.int64),
            radius=np.ones(n, dtype=np.float64),
            latent_threshold=np.ones(n, dtype=np.int64),
            absorption_probability=np.ones(n, dtype=np.float64),
        )

    @classmethod
    def empty(cls) -> "Emulsion":
        return cls.allocate(0)

    @classmethod
    def from_grains(cls, grains: List[Grain]) -> "Emulsion":
        return cls(
            x=np.array([g.x for g in grains], dtype=np.int64),
            y=np.array([g.y for g in grains], dtype=np.int64),
            radius=np.array([g.radius for g in grains], dtype=np.float64),
            latent_threshold=np.array(
                [g.latent_threshold for g in grains], dtype=np.int64
            ),
            absorption_probability=np.array(
                [g.absorption_probability for g in grains], dtype=np.float64
            ),
            silver_count=np.array([g.silver_count for g in grains], dtype=np.int64),
            activated=np.array([g.activated for g in grains], dtype=np.bool_),
            developed_fraction=np.array(
                [g.developed_fraction for g in grains], dtype=np.float64
            ),
            spectral_sensitivity=np.array(
                [
                    np.nan if g.spectral_sensitivity is None else g.spectral_sensitivity
                    for g in grains
                ],
                dtype=np.float32,
            ),
        )

    def __len__(self) -> int:
        return len(self.x)

    def __getitem__(self, i: int) -> Grain:
        s = float(self.spectral_sensitivity[i])
        return Grain(
            x=int(self.x[i]),
            y=int(self.y[i]),
            radius=float(self.radius[i]),
            latent_threshold=int(self.latent_threshold[i]),
            absorption_probability=float(self.absorption_probability[i]),
            silver_count=int(self.silver_count[i]),
            activated=bool(self.activated[i]),
            developed_fraction=float(self.developed_fraction[i]),
            spectral_sensitivity=None if np.isnan(s) else s,
        )

    def __iter__(self) -> Iterator[Grain]:
        for i in range(len(self)):
            yield self[i]

    def to_grains(self) -> List[Grain]:
        return list(self)

    @property
    def activated_count(self) -> int:
        return int(np.count_nonzero(self.activated))

    def select(self, mask_or_index: np.ndarray) -> "Emulsion":
        """Returns a new emulsion holding the selected grains, in order."""
        return Emulsion(
            x=self.x[mask_or_index],
            y=self.y[mask_or_index],
            radius=self.radius[mask_or_index],
            latent_threshold=self.latent_threshold[mask_or_index],
            absorption_probability=self.absorption_probability[mask_or_index],
            silver_count=self.silver_count[mask_or_index],
            activated=self.activated[mask_or_index],
            developed_fraction=self.developed_fraction[mask_or_index],
            spectral_sensitivity=self.spectral_sensitivity[mask_or_index],
            exposed=self.exposed,
        )


@dataclass(frozen=True)
class SimulationConfig:
    """
    Complete parameter set for a single simulated negative.
    """

    seed: Optional[int] = None  # None draws fresh OS entropy
    emulsion: EmulsionConfig = field(default_factory=EmulsionConfig)
    halation: HalationConfig = field(default_factory=HalationConfig)
    exposure: ExposureConfig = field(default_factory=ExposureConfig)
    development: DevelopmentConfig = field(default_factory=DevelopmentConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    def validate(self) -> None:
        """Raises ValueError before any simulation work on a bad configuration."""
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")
        self.emulsion.validate()
        self.halation.validate()
        self.exposure.validate()
        self.development.validate()
        self.render.validate()

    def to_dict(self) -> Dict[str, Any]:
        """
        Flattens for serialization.
        """
        res: Dict[str, Any] = {"seed": self.seed}
        res.update(asdict(self.emulsion))
        res.update(asdict(self.halation))
        res.update(asdict(self.exposure))
        res.update(asdict(self.development))
        res.update(asdict(self.render))
        return res

    @classmethod
    def from_flat_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        """
        from JSON / CLI layers.
        """

        def filter_keys(config_cls: Any, d: Dict[str, Any]) -> Dict[str, Any]:
            res = {}
            for f in fields(config_cls):
                v = d.get(f.name)
                if v is None:
                    continue
                # JSON has no tuples
                if isinstance(f.default, tuple) and isinstance(v, list):
                    v = tuple(v)
                res[f.name] = v
            return res

        seed = data.get("seed")
        return cls(
            seed=None if seed is None else int(seed),
            emulsion=EmulsionConfig(**filter_keys(EmulsionConfig, data)),
            halation=HalationConfig(**filter_keys(HalationConfig, data)),
            exposure=ExposureConfig(**filter_keys(ExposureConfig, data)),
            development=DevelopmentConfig(**filter_keys(DevelopmentConfig, data)),
            render=RenderConfig(**filter_keys(RenderConfig, data)),
        )
