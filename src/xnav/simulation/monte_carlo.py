"""
===============================================================================
XNAV - Monte Carlo Navigation Ensemble
===============================================================================
Repeats the navigation scenario with independent photon / noise draws to
measure how the filter performs statistically rather than on one lucky or
unlucky realization. Uses multiprocessing for parallel execution and pandas
for result aggregation.

Every run gets its own generator seeded with base_seed + run_id, so the
ensemble is reproducible and runs share no random state.
===============================================================================
"""

import copy
import logging
from multiprocessing import Pool
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def _run_single_wrapper(args: Tuple[Dict[str, Any], int, int]) -> Dict[str, Any]:
    """
    Module-level wrapper for single-run execution.

    Required because multiprocessing Pool.map cannot pickle instance methods.

    Parameters
    ----------
    args : tuple of (config_dict, run_id, seed)

    Returns
    -------
    dict
        Run summary including run_id, success flag and accuracy metrics.
    """
    config, run_id, seed = args

    # Import here to avoid circular imports at module level
    from xnav.simulation.sim_engine import NavigationSimulation

    result = {
        'run_id': run_id,
        'seed': seed,
        'success': False,
        'final_error': np.nan,
        'rms_error': np.nan,
        'max_error_after_burn': np.nan,
        'final_uncertainty': np.nan,
        'mean_nis': np.nan,
        'error_message': '',
    }

    try:
        sim = NavigationSimulation(config, rng=np.random.default_rng(seed))
        sim.run()
        summary = sim.get_summary()
        result.update({
            'success': True,
            'final_error': summary.get('final_error', np.nan),
            'rms_error': summary.get('rms_error', np.nan),
            'max_error_after_burn': summary.get('max_error_after_burn', np.nan),
            'final_uncertainty': summary.get('final_uncertainty', np.nan),
            'mean_nis': summary.get('mean_nis', np.nan),
        })
    except np.linalg.LinAlgError as exc:
        result['error_message'] = str(exc)
        logger.warning("Run %d failed: %s", run_id, exc)

    return result


class MonteCarloSim:
    """
    Monte Carlo framework for navigation accuracy assessment.

    Parameters
    ----------
    base_config : dict
        Scenario configuration passed unchanged to every run.
    num_runs : int
        Number of independent runs.
    seed : int
        Base seed; run i uses seed + i.

    Attributes
    ----------
    results : pd.DataFrame or None
        Populated after run_all() completes.
    """

    def __init__(self, base_config: Dict[str, Any], num_runs: int = 20,
                 seed: int = 42) -> None:
        self.base_config = base_config
        self.num_runs = num_runs
        self.seed = seed
        self.results: Optional[pd.DataFrame] = None

        logger.info("MonteCarloSim initialized: %d runs, seed=%d", num_runs, seed)

    def run_all(self, num_workers: int = 1) -> pd.DataFrame:
        """
        Execute all runs, sequentially or on a process pool.

        Parameters
        ----------
        num_workers : int
            Number of worker processes. 1 runs sequentially in-process.

        Returns
        -------
        pd.DataFrame
            One row per run, indexed by run_id.
        """
        logger.info(
            "Starting Monte Carlo: %d runs on %d workers",
            self.num_runs, num_workers,
        )

        args_list = [
            (copy.deepcopy(self.base_config), run_id, self.seed + run_id)
            for run_id in range(self.num_runs)
        ]

        if num_workers <= 1:
            results_list = [_run_single_wrapper(args) for args in args_list]
        else:
            with Pool(processes=num_workers) as pool:
                results_list = pool.map(_run_single_wrapper, args_list)

        self.results = pd.DataFrame(results_list)
        self.results.set_index('run_id', inplace=True)

        n_success = int(self.results['success'].sum())
        logger.info(
            "Monte Carlo complete: %d/%d runs successful (%.1f%%)",
            n_success, self.num_runs, 100.0 * n_success / max(self.num_runs, 1),
        )

        return self.results

    def compute_statistics(self) -> Dict[str, Dict[str, float]]:
        """
        Summary statistics for every numeric metric.

        Returns
        -------
        dict
            For each metric: mean, std, min, max, p50, p99.
        """
        if self.results is None or self.results.empty:
            logger.warning("No results to compute statistics on.")
            return {}

        stats: Dict[str, Dict[str, float]] = {}
        for col in self.results.select_dtypes(include=[np.number]).columns:
            if col in ('success', 'seed'):
                continue
            data = self.results[col].dropna()
            if len(data) == 0:
                continue

            stats[col] = {
                'mean': float(data.mean()),
                'std': float(data.std()),
                'min': float(data.min()),
                'max': float(data.max()),
                'p50': float(np.percentile(data, 50)),
                'p99': float(np.percentile(data, 99)),
            }

        return stats

    def get_success_rate(self) -> float:
        """Fraction of runs that finished without a filter failure."""
        if self.results is None or self.results.empty:
            return 0.0
        return float(self.results['success'].mean())
