"""halidepy CLI.

Simulates grain-accurate film negatives from ordinary image files.
"""

import os
import sys

os.environ.setdefault("NUMBA_THREADING_LAYER", "workqueue")

import argparse
import json
import logging
import time
from typing import Any, Dict, List, Optional

from halidepy.application.engine import EmulsionEngine
from halidepy.domain.models import SimulationConfig
from halidepy.infrastructure.loaders.image_loader import (
    IntensityLoader,
    SUPPORTED_INPUT_EXTENSIONS,
    save_output,
)
from halidepy.kernel.image.logic import calculate_file_hash
from halidepy.kernel.image.validation import validate_bool
from halidepy.kernel.system.config import APP_CONFIG, DEFAULT_SIMULATION_CONFIG
from halidepy.kernel.system.logging import setup_logging

FORMAT_EXTENSIONS = {
    "png": "png",
    "tiff": "tiff",
    "jpeg": "jpg",
}
FORMAT_CHOICES = tuple(FORMAT_EXTENSIONS.keys())
STRATEGY_CHOICES = ("random", "grid")
RENDER_MODE_CHOICES = ("point", "disk")
BACKEND_CHOICES = ("auto", "direct", "fft")

CONFIG_DIR = APP_CONFIG.user_config_dir
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")

# CLI flags whose dest is also a flat SimulationConfig key
CONFIG_FLAGS = (
    "seed",
    "strategy",
    "num_grains",
    "samples_per_pixel",
    "unique_positions",
    "exposure_time",
    "strength",
    "max_development",
    "development_dt",
    "passes",
    "reflection_factor",
    "sigma_down",
    "sigma_up",
    "backend",
    "d_min",
    "d_max",
    "gamma",
    "e0",
    "render_mode",
    "pixels_per_micron",
)


def load_user_config() -> dict:
    """Loads ~/.halidepy/config.json if it exists. Returns {"cli": {}, "simulation": {}}."""
    if not os.path.isfile(CONFIG_FILE):
        return {"cli": {}, "simulation": {}}
    with open(CONFIG_FILE, "r") as f:
        data = json.load(f)
    return {
        "cli": data.get("cli", {}),
        "simulation": data.get("simulation", {}),
    }


def generate_default_config() -> int:
    """Creates ~/.halidepy/config.json with defaults. Returns 0 on success, 1 if exists."""
    if os.path.isfile(CONFIG_FILE):
        print(f"Config already exists: {CONFIG_FILE}", file=sys.stderr)
        return 1
    os.makedirs(CONFIG_DIR, exist_ok=True)
    default = {
        "cli": {
            "output": APP_CONFIG.default_export_dir,
            "format": "png",
            "rgba": False,
        },
        "simulation": DEFAULT_SIMULATION_CONFIG.to_dict(),
    }
    with open(CONFIG_FILE, "w") as f:
        json.dump(default, f, indent=4)
    print(f"Config created: {CONFIG_FILE}", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="halidepy",
        description="halidepy -- silver-halide negative simulator",
        epilog="Example: halidepy --num-grains 2000000 --seed 7 --output ./out scan.png",
    )

    parser.add_argument(
        "inputs",
        nargs="*",
        metavar="FILE_OR_DIR",
        help="Input images or directories containing images",
    )
    parser.add_argument(
        "--output",
        default=None,
        metavar="DIR",
        help=f"Output directory (default: {APP_CONFIG.default_export_dir})",
    )
    parser.add_argument(
        "--format",
        choices=FORMAT_CHOICES,
        default="png",
        dest="output_format",
        help="Output file format (default: png)",
    )
    parser.add_argument(
        "--rgba",
        action="store_true",
        default=False,
        help="Write four-channel RGBA with opaque alpha instead of grayscale",
    )
    parser.add_argument("--seed", type=int, default=None, metavar="INT",
                        help="Random seed for reproducible runs")

    group = parser.add_argument_group("emulsion")
    group.add_argument("--strategy", choices=STRATEGY_CHOICES, default=None,
                       help="Grain placement: random scatter or one grain per pixel (default: random)")
    group.add_argument("--num-grains", type=int, default=None, metavar="INT",
                       help="Grain count for the random strategy (default: 1000000)")
    group.add_argument("--samples-per-pixel", type=int, default=None, metavar="INT",
                       help="Candidates averaged per pixel for the grid strategy (default: 1)")
    group.add_argument("--unique-positions", action=argparse.BooleanOptionalAction, default=None,
                       help="Keep at most one randomly scattered grain per pixel")

    group = parser.add_argument_group("exposure & development")
    group.add_argument("--exposure-time", type=float, default=None, metavar="FLOAT",
                       help="Photon flux integration time (default: 700)")
    group.add_argument("--strength", type=float, default=None, metavar="FLOAT",
                       help="Developer rate constant (default: 0.1)")
    group.add_argument("--max-development", type=float, default=None, metavar="FLOAT",
                       help="Developed fraction ceiling (default: 1.0)")
    group.add_argument("--dt", type=float, default=None, dest="development_dt", metavar="FLOAT",
                       help="Development time step (default: 0.1)")
    group.add_argument("--passes", type=int, default=None, metavar="INT",
                       help="Split the development step into this many passes (default: 1)")

    group = parser.add_argument_group("halation")
    group.add_argument("--reflection-factor", type=float, default=None, metavar="FLOAT",
                       help="Fraction of light reflected by the film base, 0..1 (default: 0.25)")
    group.add_argument("--sigma-down", type=float, default=None, metavar="PX",
                       help="Downward scatter width (default: 1.0)")
    group.add_argument("--sigma-up", type=float, default=None, metavar="PX",
                       help="Reflected scatter width (default: 4.0)")
    group.add_argument("--backend", choices=BACKEND_CHOICES, default=None,
                       help="Halation convolution backend (default: auto)")

    group = parser.add_argument_group("rendering")
    group.add_argument("--d-min", type=float, default=None, metavar="FLOAT")
    group.add_argument("--d-max", type=float, default=None, metavar="FLOAT")
    group.add_argument("--gamma", type=float, default=None, metavar="FLOAT")
    group.add_argument("--e0", type=float, default=None, metavar="FLOAT")
    group.add_argument("--render-mode", choices=RENDER_MODE_CHOICES, default=None,
                       help="Draw grains as single pixels or as disks (default: point)")
    group.add_argument("--pixels-per-micron", type=float, default=None, metavar="FLOAT",
                       help="Disk footprint scale (default: 2.0)")

    parser.add_argument(
        "--settings",
        default=None,
        metavar="JSON_FILE",
        help="Load a flat SimulationConfig from a JSON settings file",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        default=False,
        help="Generate default config at ~/.halidepy/config.json and exit",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        default=False,
        help="Print the effective configuration as JSON and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )

    return parser


def discover_files(inputs: List[str]) -> List[str]:
    """Resolves input paths to a sorted list of supported image files."""
    files = []
    for input_path in inputs:
        path = os.path.abspath(input_path)
        if os.path.isfile(path):
            ext = os.path.splitext(path)[1].lower()
            if ext in SUPPORTED_INPUT_EXTENSIONS:
                files.append(path)
            else:
                print(f"Warning: Skipping unsupported file: {path}", file=sys.stderr)
        elif os.path.isdir(path):
            for root, _dirs, filenames in os.walk(path):
                for fname in sorted(filenames):
                    ext = os.path.splitext(fname)[1].lower()
                    if ext in SUPPORTED_INPUT_EXTENSIONS:
                        files.append(os.path.join(root, fname))
        else:
            print(f"Warning: Path not found: {path}", file=sys.stderr)
    return files


def build_config(args: argparse.Namespace, user_config: dict) -> SimulationConfig:
    """Builds SimulationConfig with loading priority:
    DEFAULT -> user config -> --settings -> CLI flags
    """
    base_dict: Dict[str, Any] = DEFAULT_SIMULATION_CONFIG.to_dict()

    simulation = user_config.get("simulation", {})
    if simulation:
        base_dict.update(simulation)

    if args.settings:
        with open(os.path.abspath(args.settings), "r") as f:
            settings_data = json.load(f)
        base_dict.update(settings_data)

    for key in CONFIG_FLAGS:
        value = getattr(args, key, None)
        if value is not None:
            base_dict[key] = value

    if args.rgba:
        base_dict["channels"] = 4

    config = SimulationConfig.from_flat_dict(base_dict)
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns 0 on success, 1 on failure."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.init_config:
        return generate_default_config()

    user_config = load_user_config()

    cli_defaults = user_config.get("cli", {})
    if args.output is None:
        args.output = cli_defaults.get("output") or APP_CONFIG.default_export_dir
    if args.output_format == "png" and cli_defaults.get("format") in FORMAT_CHOICES:
        args.output_format = cli_defaults["format"]
    if not args.rgba:
        args.rgba = validate_bool(cli_defaults.get("rgba"), default=False)

    try:
        config = build_config(args, user_config)
    except (json.JSONDecodeError, FileNotFoundError, KeyError, TypeError, ValueError) as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    if args.dump_config:
        print(json.dumps(config.to_dict(), indent=4))
        return 0

    files = discover_files(args.inputs)
    if not files:
        print("Error: No supported image files found.", file=sys.stderr)
        return 1

    output_dir = os.path.abspath(args.output)
    os.makedirs(output_dir, exist_ok=True)

    loader = IntensityLoader()
    engine = EmulsionEngine()
    ext = FORMAT_EXTENSIONS[args.output_format]

    total = len(files)
    failed = 0
    print(f"Simulating {total} file(s) -> {output_dir}", file=sys.stderr)
    t_start = time.monotonic()

    for i, file_path in enumerate(files, 1):
        name = os.path.splitext(os.path.basename(file_path))[0]
        print(f"  [{i}/{total}] {name} ...", file=sys.stderr, end="", flush=True)
        t_file = time.monotonic()

        try:
            image = loader.load(file_path)
            output, metrics = engine.process(
                image, config, source_hash=calculate_file_hash(file_path)
            )
            out_path = os.path.join(output_dir, f"negative_{name}.{ext}")
            save_output(output, out_path, args.output_format)

            elapsed = time.monotonic() - t_file
            print(
                f" OK ({metrics.get('activated_grains', 0)} activated, {elapsed:.1f}s)",
                file=sys.stderr,
            )
        except (OSError, ValueError, TypeError) as e:
            # The failing file produces no output; the batch carries on
            print(f" ERROR: {e}", file=sys.stderr)
            failed += 1

    total_time = time.monotonic() - t_start
    succeeded = total - failed
    print(f"Done: {succeeded}/{total} succeeded in {total_time:.1f}s", file=sys.stderr)

    return 1 if failed > 0 else 0


def cli_entry() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    sys.exit(main())
