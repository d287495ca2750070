import numpy as np
from halidepy.domain.interfaces import IProcessor, SimulationContext
from halidepy.features.halation.models import HalationConfig
from halidepy.features.halation.logic import diffuse
from halidepy.kernel.system.logging import get_logger

logger = get_logger(__name__)


class HalationProcessor(IProcessor):
    """
    Stage 1: turns the input intensities into the post-scatter exposure field.
    """

    def __init__(self, config: HalationConfig):
        self.config = config

    def process(self, context: SimulationContext) -> None:
        if context.exposure_field is None:
            raise ValueError("HalationProcessor requires an input field on the context")

        field = diffuse(
            context.width,
            context.height,
            context.exposure_field,
            reflection_factor=self.config.reflection_factor,
            sigma_down=self.config.sigma_down,
            sigma_up=self.config.sigma_up,
            backend=self.config.backend,
            fft_kernel_threshold=self.config.fft_kernel_threshold,
        )

        added = float(
            np.sum(field, dtype=np.float64)
            - np.sum(context.exposure_field, dtype=np.float64)
        )
        context.metrics["halation_energy_added"] = added
        logger.debug(f"Halation added {added:.4f} units of exposure")

        context.exposure_field = field
