from dataclasses import dataclass

HALATION_BACKENDS = ("auto", "direct", "fft")


@dataclass(frozen=True)
class HalationConfig:
    """
    Light scattering through the emulsion and back off the film base.
    """

    reflection_factor: float = 0.25  # Fraction of transmitted light reflected up
    sigma_down: float = 1.0  # Forward scatter width (pixels)
    sigma_up: float = 4.0  # Reflected scatter width (pixels)

    backend: str = "auto"
    fft_kernel_threshold: int = 31  # Kernel side above which "auto" picks FFT

    def validate(self) -> None:
        if not 0.0 <= self.reflection_factor <= 1.0:
            raise ValueError(
                f"reflection_factor must be within [0, 1], got {self.reflection_factor}"
            )
        if self.sigma_down <= 0.0 or self.sigma_up <= 0.0:
            raise ValueError(
                f"Halation sigmas must be positive, got down={self.sigma_down} up={self.sigma_up}"
            )
        if self.backend not in HALATION_BACKENDS:
            raise ValueError(
                f"Unknown halation backend '{self.backend}', expected one of {HALATION_BACKENDS}"
            )
        if self.fft_kernel_threshold < 3:
            raise ValueError("fft_kernel_threshold must be at least 3")
