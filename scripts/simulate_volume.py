#!/usr/bin/env python3
"""Simulate a volumetric image from a list of Gaussian point sources.

CLI driver around src.volume_simulator: loads an injection.v1 YAML config,
splats every source into signal/weight volumes, normalizes and projects them,
and writes the results atomically.

Usage:
    python scripts/simulate_volume.py --config configs/injection.v1.yaml

    # Override output directory, verbose logging
    python scripts/simulate_volume.py --config configs/injection.v1.yaml \
        --output_dir outputs/beads --verbose

Outputs:
    - signal.npy / weight.npy: Accumulated volumes
    - normalized.npy: signal / weight where weight > min_weight
    - projection.npy: Weighted average along projection.axis
    - projection.png: 8-bit min-max preview of the projection
    - metadata.yaml: Kernel constants, timings, SHA-256 of the config and each array
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.utils import logging_config, validators, volumes
from src.volume_simulator.simulate import run_simulation, save_outputs


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Simulate a volume from Gaussian point sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        '--config',
        type=str,
        required=True,
        help='Path to injection.v1 YAML config'
    )
    parser.add_argument(
        '--output_dir',
        type=str,
        default=None,
        help='Output directory (default: outputs.dir from config)'
    )
    parser.add_argument(
        '--check_finite',
        action='store_true',
        help='Fail if the normalized volume contains NaN/Inf'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable DEBUG logging (overrides logging.level)'
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    cfg = validators.load_injection_config(args.config)

    log_level = "DEBUG" if args.verbose else cfg.logging.level
    logging_config.setup_logging(
        log_level=log_level,
        log_file=cfg.logging.file,
        json=cfg.logging.json_format,
        rotate=cfg.logging.rotate.model_dump() if cfg.logging.rotate else None,
        tz=cfg.logging.tz,
        quiet_libs=["PIL"],
        context={"app": "simulate"}
    )
    logging_config.install_excepthook()
    logger = logging.getLogger(__name__)

    logger.info(f"Loaded config: {args.config}")
    logger.info(
        f"Volume {tuple(cfg.volume.shape)} {cfg.volume.dtype}, "
        f"sigma={tuple(cfg.kernel.sigma)}, {len(cfg.sources)} source(s)"
    )

    result = run_simulation(cfg)

    if args.check_finite:
        volumes.assert_finite(result.normalized, "normalized")

    paths = save_outputs(result, cfg, output_dir=args.output_dir, config_path=args.config)
    for name, path in paths.items():
        logger.info(f"  {name}: {path}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
