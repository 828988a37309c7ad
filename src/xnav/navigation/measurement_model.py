"""
===============================================================================
XNAV - Pulsar Timing Measurement Model
===============================================================================
Turns the true spacecraft position into the noisy pulse-delay observable
that the navigation filter consumes.

For every pulsar at every step:

    1. roemer  = -(r . n) / c
    2. shapiro = pulsar.shapiro_delay(r)
    3. perfect = roemer + shapiro
    4. photons are simulated for the exposure; their count sets the timing
       standard error sigma_t, and one zero-mean Gaussian perturbation with
       that sigma is drawn (no perturbation when no photon arrived)
    5. the measurement is (perfect + noise, (sigma_t * c)^2)

The variance is expressed in km^2 because the filter state is in km: a
timing error of sigma_t seconds is a pseudo-range error of sigma_t * c km.

The Shapiro term is part of the simulated truth only. The filter models the
delay as purely geometric, so it shows up as a small systematic bias
(a few km near 1 AU) that the estimator has to live with.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from xnav.core.constants import C_LIGHT
from xnav.navigation.photon_simulator import PhotonSimulator
from xnav.navigation.pulsar import Pulsar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayMeasurement:
    """One pulsar's timing delay for one step, with its noise statistics."""

    pulsar_id: str
    delay_s: float
    variance_km2: float
    n_photons: int
    sigma_s: float


class XrayTimingModel:
    """
    Measurement generator combining the pulsar geometry with simulated
    photon statistics.

    Parameters
    ----------
    detector : PhotonSimulator, optional
        Photon source. The model draws its timing perturbation from the
        detector's generator, so a single seeded detector makes the whole
        measurement stream reproducible.
    rng : np.random.Generator, optional
        Used to build a detector when ``detector`` is not given.
    """

    def __init__(self, detector: Optional[PhotonSimulator] = None,
                 rng: Optional[np.random.Generator] = None) -> None:
        self.detector = detector if detector is not None else PhotonSimulator(rng=rng)

    @property
    def rng(self) -> np.random.Generator:
        return self.detector.rng

    def perfect_delay(self, pulsar: Pulsar, true_position: np.ndarray) -> float:
        """Noise-free Roemer + Shapiro delay in seconds."""
        return pulsar.roemer_delay(true_position) + pulsar.shapiro_delay(true_position)

    def measure(self, pulsar: Pulsar, true_position: np.ndarray,
                exposure: float) -> DelayMeasurement:
        """
        Produce one noisy delay measurement.

        Parameters
        ----------
        pulsar : Pulsar
            Source being timed.
        true_position : np.ndarray
            True spacecraft position in km.
        exposure : float
            Photon integration time in seconds (normally the step size).

        Returns
        -------
        DelayMeasurement
        """
        true_position = np.asarray(true_position, dtype=np.float64)
        perfect = self.perfect_delay(pulsar, true_position)

        photon_times = self.detector.observe(pulsar, exposure)
        n_photons = int(photon_times.size)
        sigma = self.detector.timing_error(pulsar, n_photons)

        if n_photons > 0:
            noise = self.rng.normal(0.0, sigma)
        else:
            noise = 0.0

        return DelayMeasurement(
            pulsar_id=pulsar.pulsar_id,
            delay_s=float(perfect + noise),
            variance_km2=float((sigma * C_LIGHT) ** 2),
            n_photons=n_photons,
            sigma_s=float(sigma),
        )

    def measure_all(self, pulsars: Sequence[Pulsar], true_position: np.ndarray,
                    exposure: float
                    ) -> Tuple[List[DelayMeasurement], np.ndarray, np.ndarray]:
        """
        Measure every pulsar in catalog order.

        Returns
        -------
        measurements : list of DelayMeasurement
        delays : np.ndarray
            Delays in seconds, one per pulsar.
        variances : np.ndarray
            Pseudo-range variances in km^2, one per pulsar.
        """
        measurements = [self.measure(p, true_position, exposure) for p in pulsars]
        delays = np.array([m.delay_s for m in measurements], dtype=np.float64)
        variances = np.array([m.variance_km2 for m in measurements], dtype=np.float64)

        logger.debug(
            "Measured %d pulsars, photons=%s",
            len(measurements), [m.n_photons for m in measurements],
        )
        return measurements, delays, variances
