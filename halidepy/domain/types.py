from typing import TypeAlias, Tuple
import numpy as np
import numpy.typing as npt
from dataclasses import dataclass


# Image Types
# Single channel intensity buffer 0.0 - 1.0 (Height, Width)
ImageBuffer: TypeAlias = npt.NDArray[np.float32]
# Post-halation intensities, non-negative and unbounded above (Height, Width)
ExposureField: TypeAlias = npt.NDArray[np.float32]
# Rendered output, (Height, Width) grayscale or (Height, Width, 4) RGBA
PixelBuffer: TypeAlias = npt.NDArray[np.uint8]

# Geometry Types
# (Height, Width)
Dimensions: TypeAlias = Tuple[int, int]
# (x, y) on the canvas
Position: TypeAlias = Tuple[int, int]

# https://en.wikipedia.org/wiki/Luma_(video)
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722

# Canvas value before any grain is rendered (paper white)
BACKGROUND_VALUE = 255
OPAQUE_ALPHA = 255


@dataclass
class AppConfig:
    max_workers: int
    cache_dir: str
    default_export_dir: str
    user_config_dir: str
    perf_log_enabled: bool
