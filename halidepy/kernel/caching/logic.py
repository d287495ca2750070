import hashlib
import json
from dataclasses import dataclass, asdict
from typing import Any, Dict
from halidepy.domain.types import ExposureField


@dataclass
class CacheEntry:
    """
    A cached deterministic stage result and the metrics it produced.
    """

    config_hash: str
    data: ExposureField
    metrics: Dict[str, Any]


def calculate_config_hash(config: Any) -> str:
    """MD5 of a stage config dataclass, serialized with sorted keys."""
    serialized = json.dumps(asdict(config), sort_keys=True)
    return hashlib.md5(serialized.encode("utf-8")).hexdigest()
