import numpy as np
from halidepy.domain.interfaces import IProcessor, SimulationContext
from halidepy.features.development.models import DevelopmentConfig
from halidepy.features.development.logic import develop_emulsion
from halidepy.kernel.system.logging import get_logger

logger = get_logger(__name__)


class DevelopmentProcessor(IProcessor):
    """
    Stage 4: chemical amplification of the latent image.
    """

    def __init__(self, config: DevelopmentConfig):
        self.config = config

    def process(self, context: SimulationContext) -> None:
        emulsion = context.emulsion
        if emulsion is None:
            raise ValueError("DevelopmentProcessor requires an emulsion")

        develop_emulsion(
            emulsion,
            self.config.developer,
            self.config.development_dt,
            epsilon=self.config.epsilon,
            passes=self.config.passes,
        )

        developed = int(np.count_nonzero(emulsion.developed_fraction > 0.0))
        mean = float(emulsion.developed_fraction.mean()) if len(emulsion) else 0.0
        context.metrics["developed_grains"] = developed
        context.metrics["mean_developed_fraction"] = mean
        logger.info(f"Development: {developed} grains developed (mean {mean:.4f})")
