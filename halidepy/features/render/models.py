from dataclasses import dataclass

RENDER_MODES = ("point", "disk")
RENDER_CHANNELS = (1, 4)


@dataclass(frozen=True)
class DensityCurveParams:
    """
    Characteristic (H&D) curve: D = d_min + gamma * log10((f + e0) / e0),
    clamped to [d_min, d_max].
    """

    d_min: float = 0.1  # Base + fog
    d_max: float = 2.0  # Shoulder ceiling
    gamma: float = 0.7  # Contrast
    e0: float = 0.001  # Development offset (toe position)

    def __post_init__(self) -> None:
        for name in ("d_min", "d_max", "gamma", "e0"):
            if getattr(self, name) <= 0.0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.d_min >= self.d_max:
            raise ValueError(
                f"d_min ({self.d_min}) must be lower than d_max ({self.d_max})"
            )


@dataclass(frozen=True)
class RenderConfig:
    """
    Density mapping and canvas output parameters.
    """

    d_min: float = 0.1
    d_max: float = 2.0
    gamma: float = 0.7
    e0: float = 0.001

    render_mode: str = "point"  # "point" writes one pixel, "disk" a filled footprint
    pixels_per_micron: float = 2.0  # Disk mode footprint scale
    channels: int = 1  # 1 = grayscale, 4 = RGBA with opaque alpha

    @property
    def curve(self) -> DensityCurveParams:
        return DensityCurveParams(
            d_min=self.d_min, d_max=self.d_max, gamma=self.gamma, e0=self.e0
        )

    def validate(self) -> None:
        _ = self.curve
        if self.render_mode not in RENDER_MODES:
            raise ValueError(
                f"Unknown render mode '{self.render_mode}', expected one of {RENDER_MODES}"
            )
        if self.pixels_per_micron <= 0.0:
            raise ValueError("pixels_per_micron must be positive")
        if self.channels not in RENDER_CHANNELS:
            raise ValueError(f"channels must be one of {RENDER_CHANNELS}")
