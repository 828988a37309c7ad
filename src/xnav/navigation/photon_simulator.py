"""
===============================================================================
XNAV - X-ray Photon Arrival Simulator
===============================================================================
Emulates a photon-counting X-ray detector staring at a periodic pulsar for a
fixed exposure. The detected photon stream is what a real XNAV receiver folds
into a pulse profile to estimate the pulse time of arrival (TOA); here it
also sets the statistical quality of each timing measurement.

Photon Model
------------
1. **Photon count**: The number of detected photons N over an exposure T is
   Poisson distributed with mean flux * T.

2. **Pulse phase**: Each photon is either
   - pulsed (probability SIGNAL_FRACTION = 0.3): phase drawn from a Gaussian
     pulse centered at 0.5 with sigma = width / 2.355 (FWHM to sigma), then
     wrapped into [0, 1);
   - background (probability 0.7): phase uniform on [0, 1).

3. **Arrival time**: A uniformly random instant inside the exposure selects
   the pulse cycle k = floor(t / P); the photon then arrives at
   (k + phase) * P. Photons landing beyond the exposure are discarded.

Timing Noise
------------
Folding n photons into a profile gives a TOA whose standard error is

    sigma_TOA = (width * P) / sqrt(n)

With no photons there is no measurement at all, which is reported as a very
large sentinel sigma rather than a division by zero.

References
----------
    [1] Emadzadeh & Speyer, "Navigation in Space by X-ray Pulsars",
        Springer, 2011.
    [2] Ray et al., "Characterization of Pulsar Sources for X-ray
        Navigation", 2017.
===============================================================================
"""

import logging
from typing import Optional

import numpy as np

from xnav.core.constants import FWHM_TO_SIGMA, NO_PHOTON_SIGMA, SIGNAL_FRACTION
from xnav.navigation.pulsar import Pulsar

logger = logging.getLogger(__name__)


def simulate_photons(pulsar: Pulsar, duration: float,
                     rng: np.random.Generator) -> np.ndarray:
    """
    Draw one exposure worth of photon detection times.

    Parameters
    ----------
    pulsar : Pulsar
        Source being observed (flux, width and period are used).
    duration : float
        Exposure time in seconds.
    rng : np.random.Generator
        Generator for every random draw. Pass a seeded generator for
        reproducible runs.

    Returns
    -------
    np.ndarray
        Arrival times in [0, duration), sorted ascending. Empty when the
        expected photon count flux * duration is not positive.

    Raises
    ------
    ValueError
        If a NaN arrival time was produced (e.g. NaN period or width).
    """
    expected_photons = pulsar.flux * duration
    if not expected_photons > 0.0:
        return np.empty(0, dtype=np.float64)

    n_photons = int(rng.poisson(expected_photons))
    if n_photons == 0:
        return np.empty(0, dtype=np.float64)

    # --- Pulse phase: pulsed photons around 0.5, background uniform ---
    is_signal = rng.random(n_photons) < SIGNAL_FRACTION
    pulse_phase = rng.normal(0.5, pulsar.width / FWHM_TO_SIGMA, size=n_photons)
    pulse_phase = pulse_phase - np.floor(pulse_phase)
    background_phase = rng.random(n_photons)
    phase = np.where(is_signal, pulse_phase, background_phase)

    # x - floor(x) rounds up to exactly 1.0 for tiny negative x
    phase[phase >= 1.0] = 0.0

    # --- Absolute arrival time within the exposure ---
    t_window = rng.random(n_photons) * duration
    cycles = np.floor(t_window / pulsar.period)
    final_time = (cycles + phase) * pulsar.period

    if np.isnan(final_time).any():
        raise ValueError(
            f"NaN photon arrival time for {pulsar.pulsar_id}; check period "
            f"({pulsar.period}) and width ({pulsar.width})"
        )

    timestamps = final_time[final_time < duration]

    return np.sort(timestamps, kind='stable')


def timing_standard_error(pulsar: Pulsar, n_photons: int) -> float:
    """
    Standard error of the mean pulse arrival time for n folded photons.

    Returns NO_PHOTON_SIGMA (1e9 s) when n_photons is zero so that the
    corresponding measurement carries effectively no weight.
    """
    if n_photons <= 0:
        return NO_PHOTON_SIGMA
    return (pulsar.width * pulsar.period) / np.sqrt(n_photons)


def expected_timing_error(pulsar: Pulsar, integration_time: float) -> float:
    """
    Analytic TOA accuracy expected from the nominal photon budget.

    Uses the mean photon count flux * T instead of a random draw:

        sigma = (width * P) / (2 * sqrt(flux * T))

    Parameters
    ----------
    pulsar : Pulsar
        Source being observed.
    integration_time : float
        Exposure in seconds.

    Returns
    -------
    float
        Expected 1-sigma timing error in seconds; 1.0 s for a non-positive
        integration time.
    """
    if integration_time <= 0.0:
        return 1.0
    n_ph = pulsar.flux * integration_time
    return (pulsar.width * pulsar.period) / (2.0 * np.sqrt(n_ph))


class PhotonSimulator:
    """
    Photon-counting detector bound to a single random generator.

    The generator is injected (or created from a seed) and reused for every
    exposure, so one seeded simulator gives a reproducible photon stream
    across a whole run.

    Parameters
    ----------
    rng : np.random.Generator, optional
        Generator to draw from. Takes precedence over ``seed``.
    seed : int, optional
        Seed for a new generator when ``rng`` is not given. If both are
        None, entropy from the OS is used.

    Examples
    --------
    >>> detector = PhotonSimulator(seed=7)
    >>> times = detector.observe(pulsar, duration=1.0)
    >>> sigma = detector.timing_error(pulsar, len(times))
    """

    def __init__(self, rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None) -> None:
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def observe(self, pulsar: Pulsar, duration: float) -> np.ndarray:
        """Simulate one exposure of ``duration`` seconds on ``pulsar``."""
        times = simulate_photons(pulsar, duration, self.rng)
        if times.size == 0 and pulsar.flux * duration > 0.0:
            logger.warning(
                "No photons detected from %s in %.3f s exposure",
                pulsar.pulsar_id, duration,
            )
        return times

    @staticmethod
    def timing_error(pulsar: Pulsar, n_photons: int) -> float:
        return timing_standard_error(pulsar, n_photons)
