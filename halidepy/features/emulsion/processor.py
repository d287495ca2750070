from halidepy.domain.interfaces import IProcessor, SimulationContext
from halidepy.features.emulsion.models import EmulsionConfig
from halidepy.features.emulsion.logic import generate
from halidepy.features.exposure.models import ExposureConfig
from halidepy.kernel.system.logging import get_logger

logger = get_logger(__name__)


class EmulsionProcessor(IProcessor):
    """
    Stage 2: coats the canvas with grains.
    The exposure config is needed by the grid strategy, which exposes its
    candidate grains while generating them.
    """

    def __init__(self, config: EmulsionConfig, exposure: ExposureConfig):
        self.config = config
        self.exposure = exposure

    def process(self, context: SimulationContext) -> None:
        if context.exposure_field is None:
            raise ValueError("EmulsionProcessor requires an exposure field")

        (seed,) = context.spawn_seeds(1)
        strategy = self.config.resolve_strategy()

        emulsion = generate(
            context.width,
            context.height,
            context.exposure_field,
            strategy,
            seed,
            config=self.config,
            exposure_time=self.exposure.exposure_time,
        )

        context.metrics["grain_count"] = len(emulsion)
        logger.info(
            f"Emulsion: {len(emulsion)} grains ({type(strategy).__name__}) "
            f"on {context.width}x{context.height}"
        )
        context.emulsion = emulsion
