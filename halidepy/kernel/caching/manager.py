from typing import Optional
from halidepy.kernel.caching.logic import CacheEntry


class PipelineCache:
    """
    Holds deterministic intermediate results for the ACTIVE input.
    Stochastic stages are never cached. Reset when the source changes.
    """

    source_hash: str = ""

    # Checkpoints
    halation: Optional[CacheEntry] = None

    def clear(self) -> None:
        self.halation = None
        self.source_hash = ""
