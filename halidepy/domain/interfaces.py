from typing import Protocol, Optional, Any, List, runtime_checkable
from dataclasses import dataclass, field
import numpy as np
from halidepy.domain.types import Dimensions, ExposureField, PixelBuffer
from halidepy.domain.models import Emulsion


@dataclass
class SimulationContext:
    """
    Shared state passed through the pipeline.
    """

    # (Height, Width)
    canvas_size: Dimensions

    # Root of every random stream used by the run
    seed_sequence: np.random.SeedSequence

    exposure_field: Optional[ExposureField] = None
    emulsion: Optional[Emulsion] = None
    output: Optional[PixelBuffer] = None

    # Counters and timings gathered by the stages
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def height(self) -> int:
        return self.canvas_size[0]

    @property
    def width(self) -> int:
        return self.canvas_size[1]

    def spawn_seeds(self, n: int) -> List[np.random.SeedSequence]:
        """Independent child streams, reproducible in call order."""
        return self.seed_sequence.spawn(n)


@runtime_checkable
class IProcessor(Protocol):
    """
    Interface for any simulation stage.
    """

    def process(self, context: SimulationContext) -> None: ...


class IImageLoader(Protocol):
    """
    Interface for decoding an input file into an intensity buffer.
    """

    def load(self, file_path: str) -> np.ndarray: ...
