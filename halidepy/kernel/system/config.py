import os
from halidepy.domain.types import AppConfig
from halidepy.domain.models import SimulationConfig
from halidepy.features.emulsion.models import EmulsionConfig
from halidepy.features.halation.models import HalationConfig
from halidepy.features.exposure.models import ExposureConfig
from halidepy.features.development.models import DevelopmentConfig
from halidepy.features.render.models import RenderConfig

# User dir env (perf logs, exports)
BASE_USER_DIR = os.path.abspath(os.getenv("HALIDEPY_USER_DIR", "user"))

# Global application constants
APP_CONFIG = AppConfig(
    max_workers=max(1, (os.cpu_count() or 1) - 1),
    cache_dir=os.path.join(BASE_USER_DIR, "cache"),
    default_export_dir=os.path.join(BASE_USER_DIR, "export"),
    user_config_dir=os.path.expanduser("~/.halidepy"),
    perf_log_enabled=os.getenv("HALIDEPY_PERF_LOG", "0") == "1",
)

# Reference run: 1M randomly scattered grains, 700 time units of exposure,
# a weak developer applied for a single 0.1 step.
DEFAULT_SIMULATION_CONFIG = SimulationConfig(
    seed=None,
    emulsion=EmulsionConfig(
        strategy="random",
        num_grains=1_000_000,
        samples_per_pixel=1,
        radius_range=(0.1, 0.5),
        latent_threshold_range=(5, 20),
        absorption_probability_range=(0.3, 0.6),
        grid_latent_threshold=10,
        grid_absorption_probability=0.9,
        unique_positions=False,
    ),
    halation=HalationConfig(
        reflection_factor=0.25,
        sigma_down=1.0,
        sigma_up=4.0,
        backend="auto",
    ),
    exposure=ExposureConfig(
        exposure_time=700.0,
    ),
    development=DevelopmentConfig(
        strength=0.1,
        max_development=1.0,
        development_dt=0.1,
        epsilon=1e-6,
        passes=1,
    ),
    render=RenderConfig(
        d_min=0.1,
        d_max=2.0,
        gamma=0.7,
        e0=0.001,
        render_mode="point",
        channels=1,
    ),
)
