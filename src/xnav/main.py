#!/usr/bin/env python3
"""
===============================================================================
XNAV - MAIN ENTRY POINT
===============================================================================
Runs the X-ray pulsar navigation scenario: a spacecraft near 1 AU is tracked
by a Kalman filter fed with simulated pulse-arrival delays from a small
catalog of millisecond pulsars.

USAGE:
    xnav                              # Reference scenario
    xnav --config my_scenario.yaml    # Custom scenario
    xnav --seed 7 --steps 200         # Reproducible, longer run
    xnav --monte-carlo 50             # Monte Carlo with 50 runs

OUTPUTS:
    trajectory.csv   - Per-step truth, estimate, error and uncertainty

===============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from xnav.config import load_config
from xnav.core.constants import C_LIGHT
from xnav.core.exceptions import ParseError, SingularCovariance
from xnav.navigation.catalog import load_catalog
from xnav.navigation.photon_simulator import expected_timing_error
from xnav.simulation.monte_carlo import MonteCarloSim
from xnav.simulation.sim_engine import NavigationSimulation

logger = logging.getLogger('XNAV_MAIN')


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure root logging to stdout and, optionally, a log file."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w'))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='xnav',
        description='X-ray pulsar navigation Kalman filter simulation',
    )
    parser.add_argument('--config', type=str, default=None,
                        help='Path to YAML scenario configuration')
    parser.add_argument('--steps', type=int, default=None,
                        help='Number of simulation steps')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for reproducible runs')
    parser.add_argument('--csv', type=str, default=None,
                        help='Output CSV path for the trajectory')
    parser.add_argument('--monte-carlo', type=int, default=0, metavar='N',
                        help='Run an N-member Monte Carlo ensemble instead')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker processes for the Monte Carlo ensemble')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable debug logging')
    return parser.parse_args(argv)


def log_catalog(pulsars, dt: float) -> None:
    """Log the catalog with the expected ranging accuracy per pulsar."""
    logger.info("Navigation catalog (%d pulsars):", len(pulsars))
    for p in pulsars:
        sigma_km = expected_timing_error(p, dt) * C_LIGHT
        logger.info(
            "  %-16s P=%7.3f ms  flux=%7.1f ph/s  expected sigma=%8.3f km",
            p.pulsar_id, p.period * 1e3, p.flux, sigma_km,
        )


def run_monte_carlo(config: dict, num_runs: int, num_workers: int) -> int:
    mc_cfg = config.get('monte_carlo', {})
    mc = MonteCarloSim(config, num_runs=num_runs,
                       seed=int(mc_cfg.get('base_seed', 42)))
    mc.run_all(num_workers=num_workers)

    for metric, values in mc.compute_statistics().items():
        logger.info(
            "  %-22s mean=%10.4f  std=%10.4f  p50=%10.4f  p99=%10.4f",
            metric, values['mean'], values['std'], values['p50'], values['p99'],
        )
    logger.info("Success rate: %.1f%%", 100.0 * mc.get_success_rate())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        setup_logging(args.verbose)
        logger.error("Could not load configuration: %s", exc)
        return 1

    setup_logging(args.verbose, config['output'].get('log_file'))

    if args.steps is not None:
        config['simulation']['n_steps'] = args.steps
    if args.seed is not None:
        config['simulation']['seed'] = args.seed
    if args.csv is not None:
        config['output']['csv_path'] = args.csv

    logger.info("=" * 60)
    logger.info("XNAV: PULSAR NAVIGATION KALMAN FILTER")
    logger.info("=" * 60)

    try:
        pulsars = load_catalog(
            config['pulsars'].get('par_files') or (),
            config['pulsars'].get('catalog') or None,
        )
    except ParseError as exc:
        logger.error("Invalid pulsar catalog: %s", exc)
        return 1

    log_catalog(pulsars, float(config['simulation']['dt_s']))

    if args.monte_carlo > 0:
        workers = args.workers
        if workers is None:
            workers = int(config['monte_carlo'].get('num_workers', 1))
        return run_monte_carlo(config, args.monte_carlo, workers)

    sim = NavigationSimulation(config, pulsars=pulsars)
    try:
        sim.run()
    except SingularCovariance as exc:
        logger.error("Navigation filter failure: %s", exc)
        return 1

    sim.get_summary()

    csv_path = config['output'].get('csv_path')
    if csv_path:
        sim.save_telemetry(csv_path)

    return 0


if __name__ == '__main__':
    sys.exit(main())
