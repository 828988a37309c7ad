"""
===============================================================================
XNAV - Navigation Simulation Engine
===============================================================================
Time-stepped driver for the pulsar navigation scenario. Owns the spacecraft
ground truth, runs the measurement model and the Kalman filter each step,
and records telemetry in a pandas DataFrame for post-run analysis.

Each step executes, in order:

    1. MANEUVER   -- Apply any scripted impulsive delta-V for this step.
    2. TRUTH      -- Advance the true position with constant velocity.
    3. MEASURE    -- One delay measurement per pulsar from the true position.
    4. PREDICT    -- Propagate the filter by dt.
    5. UPDATE     -- Fuse the measurement batch.
    6. LOGGING    -- Record truth, estimate, error and uncertainty.

The truth is never shown to the filter except through step 3.
===============================================================================
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from xnav.config import default_config
from xnav.core.exceptions import SingularCovariance
from xnav.navigation.catalog import load_catalog
from xnav.navigation.kalman import PulsarKalmanFilter
from xnav.navigation.measurement_model import XrayTimingModel
from xnav.navigation.photon_simulator import PhotonSimulator
from xnav.navigation.pulsar import Pulsar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepRecord:
    """Per-step navigation result handed to reporting and export."""

    step: int
    time_s: float
    true_position: np.ndarray
    estimated_position: np.ndarray
    position_error: float
    uncertainty: float
    nis: float
    event: str = ''

    def as_row(self) -> Dict[str, Any]:
        return {
            't': self.step,
            'true_x': self.true_position[0],
            'true_y': self.true_position[1],
            'true_z': self.true_position[2],
            'est_x': self.estimated_position[0],
            'est_y': self.estimated_position[1],
            'est_z': self.estimated_position[2],
            'error_pos': self.position_error,
            'uncertainty': self.uncertainty,
            'nis': self.nis,
            'event': self.event,
        }


class NavigationSimulation:
    """
    Pulsar-based navigation scenario runner.

    Parameters
    ----------
    config : dict, optional
        Scenario configuration as returned by ``xnav.config.load_config``.
        Defaults to the built-in reference scenario.
    pulsars : sequence of Pulsar, optional
        Navigation catalog. Loaded from ``config['pulsars']`` when omitted.
    rng : np.random.Generator, optional
        Generator for every random draw of the run. When omitted one is
        created from ``config['simulation']['seed']``.

    Attributes
    ----------
    true_position, true_velocity : np.ndarray
        Ground truth in km and km/s.
    nav_filter : PulsarKalmanFilter
        The estimator; exclusively owned by this simulation.
    records : list of StepRecord
        One record per completed step.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 pulsars: Optional[Sequence[Pulsar]] = None,
                 rng: Optional[np.random.Generator] = None) -> None:
        self.config = config if config is not None else default_config()

        sim_cfg = self.config.get('simulation', {})
        self.dt: float = float(sim_cfg.get('dt_s', 1.0))
        self.n_steps: int = int(sim_cfg.get('n_steps', 100))
        self.report_every: int = max(int(sim_cfg.get('report_every', 5)), 1)

        if rng is None:
            rng = np.random.default_rng(sim_cfg.get('seed'))
        self.rng = rng

        if pulsars is None:
            pulsar_cfg = self.config.get('pulsars', {})
            pulsars = load_catalog(
                pulsar_cfg.get('par_files') or (),
                pulsar_cfg.get('catalog') or None,
            )
        self.pulsars: List[Pulsar] = list(pulsars)

        self.measurement_model = XrayTimingModel(PhotonSimulator(rng=self.rng))

        # Scripted impulsive maneuvers keyed by step index
        self._maneuvers: Dict[int, Dict[str, Any]] = {}
        for maneuver in self.config.get('maneuvers') or []:
            self._maneuvers[int(maneuver['step'])] = {
                'delta_v': np.array(maneuver['delta_v_km_s'], dtype=np.float64),
                'label': str(maneuver.get('label', 'BURN')),
            }

        self.current_step: int = 0
        self.true_position = np.zeros(3)
        self.true_velocity = np.zeros(3)
        self.nav_filter: Optional[PulsarKalmanFilter] = None
        self.records: List[StepRecord] = []

        logger.info(
            "NavigationSimulation created.  %d pulsars, dt=%.3f s, %d steps",
            len(self.pulsars), self.dt, self.n_steps,
        )

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def initialize(self) -> None:
        """
        Set the true spacecraft state and the filter's initial guess.

        The filter starts at the true position plus the configured offset,
        with zero velocity and a diagonal covariance.
        """
        sc_cfg = self.config.get('spacecraft', {})
        filt_cfg = self.config.get('filter', {})

        self.true_position = np.array(
            sc_cfg.get('initial_position_km', [149600000.0, 0.0, 0.0]),
            dtype=np.float64,
        )
        self.true_velocity = np.array(
            sc_cfg.get('initial_velocity_km_s', [0.0, 30.0, 0.0]),
            dtype=np.float64,
        )

        offset = np.array(
            filt_cfg.get('initial_position_offset_km', [100.0, -50.0, 50.0]),
            dtype=np.float64,
        )
        self.nav_filter = PulsarKalmanFilter.from_position(
            self.true_position + offset,
            initial_variance=float(filt_cfg.get('initial_covariance', 1000.0)),
            process_noise=float(filt_cfg.get('process_noise', 0.1)),
        )

        self.current_step = 0
        self.records = []

        logger.info(
            "Initial estimate offset %.3f km from truth, sigma=%.3f km",
            np.linalg.norm(offset), self.nav_filter.position_uncertainty(),
        )

    # =========================================================================
    # SINGLE STEP
    # =========================================================================

    def step(self) -> StepRecord:
        """
        Advance the scenario by one step and return its record.

        Raises
        ------
        SingularCovariance
            If the filter update fails; the run cannot continue.
        """
        if self.nav_filter is None:
            self.initialize()

        k = self.current_step
        dt = self.dt

        # --- 1. Scripted maneuver ---
        event = ''
        maneuver = self._maneuvers.get(k)
        if maneuver is not None:
            self.true_velocity = self.true_velocity + maneuver['delta_v']
            event = maneuver['label']
            logger.info(
                "Step %d: maneuver %s, delta-V=%s km/s",
                k, event, maneuver['delta_v'],
            )

        # --- 2. Truth propagation ---
        self.true_position = self.true_position + self.true_velocity * dt

        # --- 3. Measurements ---
        measurements, delays, variances = self.measurement_model.measure_all(
            self.pulsars, self.true_position, dt,
        )
        starved = [m.pulsar_id for m in measurements if m.n_photons == 0]
        if starved:
            logger.debug("Step %d: no photons from %s", k, ', '.join(starved))

        # --- 4-5. Filter predict / update ---
        self.nav_filter.predict(dt)
        try:
            innovation, S = self.nav_filter.update(self.pulsars, delays, variances)
        except SingularCovariance:
            logger.error("Step %d: filter update failed, aborting run", k)
            raise

        # --- 6. Telemetry ---
        estimated_position = self.nav_filter.get_position()
        record = StepRecord(
            step=k,
            time_s=(k + 1) * dt,
            true_position=self.true_position.copy(),
            estimated_position=estimated_position,
            position_error=float(np.linalg.norm(estimated_position - self.true_position)),
            uncertainty=self.nav_filter.position_uncertainty(),
            nis=self.nav_filter.get_innovation_consistency(innovation, S),
            event=event,
        )
        self.records.append(record)
        self.current_step += 1

        if k % self.report_every == 0 or event:
            logger.info(
                "%-5d | %-15.4f | %-15.4f | %s",
                k, record.position_error, record.uncertainty, event,
            )

        return record

    # =========================================================================
    # FULL SIMULATION RUN
    # =========================================================================

    def run(self, n_steps: Optional[int] = None) -> pd.DataFrame:
        """
        Run the scenario from the initial state.

        Parameters
        ----------
        n_steps : int, optional
            Override the number of steps from the configuration.

        Returns
        -------
        pd.DataFrame
            Telemetry for every step (see get_telemetry).
        """
        if n_steps is not None:
            self.n_steps = int(n_steps)

        self.initialize()
        wall_start = time.time()

        logger.info("%-5s | %-15s | %-15s | %s", "Step", "Error (km)", "Sigma (km)", "Event")
        logger.info("-" * 65)

        for _ in range(self.n_steps):
            self.step()

        if not self.nav_filter.is_covariance_valid():
            logger.warning("Covariance lost symmetry or positive semi-definiteness")

        logger.info(
            "Simulation complete.  %d steps in %.2f s wall time",
            self.n_steps, time.time() - wall_start,
        )
        return self.get_telemetry()

    # =========================================================================
    # TELEMETRY
    # =========================================================================

    def get_telemetry(self) -> pd.DataFrame:
        """
        Convert the step records to a DataFrame.

        Returns
        -------
        pd.DataFrame
            Columns: t, true_x, true_y, true_z, est_x, est_y, est_z,
            error_pos, uncertainty, nis, event.
        """
        if not self.records:
            logger.warning("No telemetry recorded.")
            return pd.DataFrame()

        return pd.DataFrame([r.as_row() for r in self.records])

    def save_telemetry(self, filepath: str) -> None:
        """Write the telemetry DataFrame to a CSV file."""
        df = self.get_telemetry()
        df.to_csv(filepath, index=False)
        logger.info("Telemetry saved to %s  (%d records)", filepath, len(df))

    # =========================================================================
    # RUN SUMMARY
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """
        Summarize the navigation accuracy of the completed run.

        Returns
        -------
        dict
            final_error        : float -- last position error (km)
            rms_error          : float -- RMS position error over all steps (km)
            max_error_after_burn : float -- peak error from the first maneuver on (km)
            final_uncertainty  : float -- last sqrt(trace(P_pos)) (km)
            mean_nis           : float -- mean NIS over the run
            steps              : int
        """
        if not self.records:
            return {}

        errors = np.array([r.position_error for r in self.records])
        first_burn = min(self._maneuvers) if self._maneuvers else len(errors)

        summary = {
            'final_error': float(errors[-1]),
            'rms_error': float(np.sqrt(np.mean(errors ** 2))),
            'max_error_after_burn': (
                float(errors[first_burn:].max()) if first_burn < len(errors) else float('nan')
            ),
            'final_uncertainty': self.records[-1].uncertainty,
            'mean_nis': float(np.nanmean([r.nis for r in self.records])),
            'steps': len(self.records),
        }

        logger.info("Navigation Summary:")
        for key, value in summary.items():
            if isinstance(value, float):
                logger.info("  %-25s: %.4f", key, value)
            else:
                logger.info("  %-25s: %s", key, value)

        return summary

    def __repr__(self) -> str:
        return (
            f"NavigationSimulation(step={self.current_step}, "
            f"pulsars={len(self.pulsars)}, records={len(self.records)})"
        )
