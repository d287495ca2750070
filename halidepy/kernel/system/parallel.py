import concurrent.futures
from typing import Callable, List, Tuple
import numpy as np
from halidepy.kernel.system.config import APP_CONFIG

# (start, stop) slice of a preallocated array
ChunkBounds = Tuple[int, int]


def chunk_bounds(n: int, chunk_size: int) -> List[ChunkBounds]:
    """Fixed-size partition of range(n); depends only on n and chunk_size."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [(start, min(start + chunk_size, n)) for start in range(0, n, chunk_size)]


def run_chunked(
    worker: Callable[[int, int, np.random.Generator], None],
    n: int,
    chunk_size: int,
    seed_sequence: np.random.SeedSequence,
    max_workers: int | None = None,
) -> int:
    """
    Runs worker(start, stop, rng) over disjoint chunks of a length-n population.

    Every chunk gets its own Generator spawned from seed_sequence in chunk
    order, so results are identical for any worker count. Workers must only
    write to their own [start, stop) slice. Returns the number of chunks.
    """
    bounds = chunk_bounds(n, chunk_size)
    if not bounds:
        return 0

    seeds = seed_sequence.spawn(len(bounds))
    workers = max(1, min(max_workers or APP_CONFIG.max_workers, len(bounds)))

    if workers == 1:
        for (start, stop), seed in zip(bounds, seeds):
            worker(start, stop, np.random.default_rng(seed))
        return len(bounds)

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(worker, start, stop, np.random.default_rng(seed))
            for (start, stop), seed in zip(bounds, seeds)
        ]
        for future in futures:
            # Re-raises the first worker failure
            future.result()
    return len(bounds)
