from halidepy.domain.interfaces import IProcessor, SimulationContext
from halidepy.features.render.models import RenderConfig
from halidepy.features.render.logic import render


class RenderProcessor(IProcessor):
    """
    Stage 5: characteristic curve and canvas output.
    """

    def __init__(self, config: RenderConfig):
        self.config = config

    def process(self, context: SimulationContext) -> None:
        if context.emulsion is None:
            raise ValueError("RenderProcessor requires an emulsion")

        context.output = render(
            context.emulsion,
            context.width,
            context.height,
            curve=self.config.curve,
            mode=self.config.render_mode,
            pixels_per_micron=self.config.pixels_per_micron,
            channels=self.config.channels,
        )
