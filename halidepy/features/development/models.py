from dataclasses import dataclass


@dataclass(frozen=True)
class Developer:
    """
    Developer bath shared read-only by every grain during a development pass.
    """

    strength: float = 0.1  # Rate constant
    max_development: float = 1.0  # Saturation ceiling for developed_fraction

    def __post_init__(self) -> None:
        if self.strength <= 0.0:
            raise ValueError(f"Developer strength must be positive, got {self.strength}")
        if self.max_development <= 0.0:
            raise ValueError(
                f"Developer max_development must be positive, got {self.max_development}"
            )


@dataclass(frozen=True)
class DevelopmentConfig:
    strength: float = 0.1
    max_development: float = 1.0
    development_dt: float = 0.1
    epsilon: float = 1e-6  # Latent ratio at or below which a grain is left alone
    passes: int = 1  # development_dt is split evenly across passes

    @property
    def developer(self) -> Developer:
        return Developer(strength=self.strength, max_development=self.max_development)

    def validate(self) -> None:
        # Developer performs the strength / ceiling checks
        _ = self.developer
        if self.development_dt <= 0.0:
            raise ValueError(
                f"development_dt must be positive, got {self.development_dt}"
            )
        if self.epsilon < 0.0:
            raise ValueError(f"epsilon must be non-negative, got {self.epsilon}")
        if self.passes < 1:
            raise ValueError(f"passes must be at least 1, got {self.passes}")
