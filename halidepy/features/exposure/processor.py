from halidepy.domain.interfaces import IProcessor, SimulationContext
from halidepy.features.exposure.models import ExposureConfig
from halidepy.features.exposure.logic import expose_emulsion
from halidepy.kernel.system.logging import get_logger

logger = get_logger(__name__)


class ExposureProcessor(IProcessor):
    """
    Stage 3: photon absorption and latent image formation.
    """

    def __init__(self, config: ExposureConfig, chunk_size: int = 1 << 20):
        self.config = config
        self.chunk_size = chunk_size

    def process(self, context: SimulationContext) -> None:
        emulsion = context.emulsion
        if emulsion is None or context.exposure_field is None:
            raise ValueError("ExposureProcessor requires an emulsion and a field")

        # Drawn even when skipped so later stages see the same streams
        (seed,) = context.spawn_seeds(1)

        if emulsion.exposed:
            logger.debug("Emulsion was exposed during generation, skipping")
        else:
            expose_emulsion(
                emulsion,
                context.exposure_field,
                self.config.exposure_time,
                seed,
                chunk_size=self.chunk_size,
            )

        activated = emulsion.activated_count
        context.metrics["activated_grains"] = activated
        logger.info(f"Exposure: {activated}/{len(emulsion)} grains activated")
