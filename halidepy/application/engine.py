from typing import Optional, Any, Dict, Tuple
import numpy as np
from halidepy.domain.interfaces import IProcessor, SimulationContext
from halidepy.domain.models import SimulationConfig
from halidepy.domain.types import ImageBuffer, PixelBuffer
from halidepy.kernel.caching.logic import CacheEntry, calculate_config_hash
from halidepy.kernel.caching.manager import PipelineCache
from halidepy.kernel.image.logic import calculate_buffer_hash
from halidepy.kernel.image.validation import ensure_field
from halidepy.kernel.system.logging import get_logger
from halidepy.features.halation.processor import HalationProcessor
from halidepy.features.emulsion.processor import EmulsionProcessor
from halidepy.features.exposure.processor import ExposureProcessor
from halidepy.features.development.processor import DevelopmentProcessor
from halidepy.features.render.processor import RenderProcessor

logger = get_logger(__name__)


class EmulsionEngine:
    """
    The orchestrator that runs halation -> emulsion -> exposure -> development
    -> render, caching the deterministic halation field between runs.
    """

    def __init__(self) -> None:
        self.cache = PipelineCache()
        self.last_context: Optional[SimulationContext] = None

    def _run_halation(
        self, processor: HalationProcessor, context: SimulationContext
    ) -> bool:
        """
        Runs the halation stage unless the cached field matches this config.
        Returns True if the field was recomputed.
        """
        conf_hash = calculate_config_hash(processor.config)
        cached = self.cache.halation
        if cached and cached.config_hash == conf_hash:
            context.metrics.update(cached.metrics)
            context.exposure_field = cached.data
            return False

        processor.process(context)
        assert context.exposure_field is not None
        self.cache.halation = CacheEntry(
            conf_hash, context.exposure_field, context.metrics.copy()
        )
        return True

    def process(
        self,
        img: ImageBuffer,
        settings: SimulationConfig,
        source_hash: Optional[str] = None,
        context: Optional[SimulationContext] = None,
    ) -> Tuple[PixelBuffer, Dict[str, Any]]:
        """
        Simulates one negative from a single-channel [0, 1] intensity buffer.
        Configuration and input are validated before any simulation work.
        """
        settings.validate()
        field = ensure_field(img)
        if float(field.max()) > 1.0:
            raise ValueError("Input intensities must be normalized to [0, 1]")

        h, w = field.shape
        if context is None:
            context = SimulationContext(
                canvas_size=(h, w),
                seed_sequence=np.random.SeedSequence(settings.seed),
            )
        context.exposure_field = field

        if source_hash is None:
            source_hash = calculate_buffer_hash(field)
        # Invalidate cache if source changed
        if self.cache.source_hash != source_hash:
            self.cache.clear()
            self.cache.source_hash = source_hash

        recomputed = self._run_halation(HalationProcessor(settings.halation), context)
        logger.debug(f"Halation field {'computed' if recomputed else 'from cache'}")

        stages: Tuple[IProcessor, ...] = (
            EmulsionProcessor(settings.emulsion, settings.exposure),
            ExposureProcessor(settings.exposure, chunk_size=settings.emulsion.chunk_size),
            DevelopmentProcessor(settings.development),
            RenderProcessor(settings.render),
        )
        for stage in stages:
            stage.process(context)

        self.last_context = context
        assert context.output is not None
        return context.output, context.metrics
