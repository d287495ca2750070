import math
from dataclasses import dataclass


@dataclass(frozen=True)
class ExposureConfig:
    """
    Configuration for the photon absorption step.
    """

    exposure_time: float = 700.0  # Photon flux integration time

    def validate(self) -> None:
        if not math.isfinite(self.exposure_time) or self.exposure_time < 0.0:
            raise ValueError(
                f"exposure_time must be finite and non-negative, got {self.exposure_time}"
            )
