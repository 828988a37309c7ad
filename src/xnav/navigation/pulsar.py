"""
===============================================================================
XNAV - Pulsar Model
===============================================================================
Describes a millisecond pulsar used as a navigation beacon and computes the
two deterministic parts of its pulse arrival-time delay at the spacecraft.

Key Models
----------
1. **Direction vector**: The pulsar is effectively at infinite distance, so
   only its direction matters. Equatorial coordinates (right ascension alpha,
   declination delta) map to a unit vector in the inertial frame:

       n = [cos(delta) cos(alpha), cos(delta) sin(alpha), sin(delta)]

2. **Roemer delay**: Geometric light-travel delay of a plane wavefront
   between the solar-system origin and the spacecraft position r:

       dt_R = -(r . n) / c

   A positive delay means the pulse arrives later than at the origin.

3. **Shapiro delay**: Relativistic delay of light passing through the
   curved spacetime around the Sun:

       dt_S = -(2 GM_sun / c^3) * ln(1 - cos(theta))

   where theta is the angle between the spacecraft position vector and the
   pulsar direction. The factor 2 GM_sun / c^3 is about 9.85 microseconds.

References
----------
    [1] Sheikh et al., "Spacecraft Navigation Using X-Ray Pulsars",
        J. Guidance, Control and Dynamics, 2006.
    [2] Shapiro, "Fourth Test of General Relativity", PRL, 1964.
===============================================================================
"""

from dataclasses import dataclass, field

import numpy as np

from xnav.core.constants import (
    C_LIGHT, DEG2RAD, DEFAULT_PULSE_WIDTH, SHAPIRO_FACTOR, SHAPIRO_MIN_RADIUS,
)


def direction_vector(ra_deg: float, dec_deg: float) -> np.ndarray:
    """
    Convert right ascension / declination to an inertial unit vector.

    Parameters
    ----------
    ra_deg : float
        Right ascension in degrees.
    dec_deg : float
        Declination in degrees.

    Returns
    -------
    np.ndarray
        3-element unit vector. The result is renormalized so that floating
        point drift in the trigonometric terms never leaves |n| != 1.
    """
    ra = ra_deg * DEG2RAD
    dec = dec_deg * DEG2RAD

    n = np.array([
        np.cos(dec) * np.cos(ra),
        np.cos(dec) * np.sin(ra),
        np.sin(dec),
    ], dtype=np.float64)

    return n / np.linalg.norm(n)


@dataclass(frozen=True, eq=False)
class Pulsar:
    """
    Immutable pulsar descriptor shared by the measurement model and the
    photon simulator.

    Attributes
    ----------
    pulsar_id : str
        Catalog name, e.g. "PSR B1937+21".
    direction : np.ndarray
        Read-only unit vector toward the pulsar (inertial frame).
    flux : float
        Nominal detected photon rate (photons/s).
    period : float
        Rotation period (s).
    width : float
        Pulse FWHM as a fraction of the period.

    Examples
    --------
    >>> psr = Pulsar.from_equatorial("PSR B1937+21", 20.0, 30.0,
    ...                              period=0.00155, flux=500.0)
    >>> delay = psr.shapiro_delay(np.array([1.496e8, 0.0, 0.0]))
    """

    pulsar_id: str
    direction: np.ndarray = field(repr=False)
    flux: float
    period: float
    width: float = DEFAULT_PULSE_WIDTH

    def __post_init__(self) -> None:
        n = np.array(self.direction, dtype=np.float64).flatten()
        if n.shape != (3,):
            raise ValueError(
                f"Pulsar direction must have 3 components, got {n.shape[0]}"
            )
        norm = np.linalg.norm(n)
        if norm == 0.0:
            raise ValueError(f"Pulsar {self.pulsar_id} has a zero direction vector")
        n = n / norm
        n.setflags(write=False)
        object.__setattr__(self, 'direction', n)

    @classmethod
    def from_equatorial(cls, pulsar_id: str, ra_deg: float, dec_deg: float,
                        period: float, flux: float,
                        width: float = DEFAULT_PULSE_WIDTH) -> 'Pulsar':
        """Build a pulsar from its sky position in degrees."""
        return cls(
            pulsar_id=pulsar_id,
            direction=direction_vector(ra_deg, dec_deg),
            flux=float(flux),
            period=float(period),
            width=float(width),
        )

    # =========================================================================
    # TIMING DELAYS
    # =========================================================================

    def roemer_delay(self, position: np.ndarray) -> float:
        """Geometric delay -(r . n) / c in seconds for a position in km."""
        return float(-np.dot(position, self.direction) / C_LIGHT)

    def shapiro_delay(self, position: np.ndarray) -> float:
        """
        Compute the solar Shapiro delay at the spacecraft position.

        Parameters
        ----------
        position : np.ndarray
            Heliocentric spacecraft position [x, y, z] in km.

        Returns
        -------
        float
            Delay in seconds. Exactly 0.0 when the spacecraft is within
            1 km of the origin, where the line of sight is undefined.

        Notes
        -----
        No clamp is applied as cos(theta) approaches 1: the logarithm
        diverges and the delay becomes +inf when the position is exactly
        aligned with the pulsar direction. For cos(theta) < 0 the delay is
        negative.
        """
        r_vec = np.asarray(position, dtype=np.float64)
        r = np.linalg.norm(r_vec)
        if r < SHAPIRO_MIN_RADIUS:
            return 0.0

        cos_theta = np.dot(r_vec / r, self.direction)

        return float(-SHAPIRO_FACTOR * np.log(1.0 - cos_theta))

    def __repr__(self) -> str:
        return (
            f"Pulsar({self.pulsar_id!r}, P={self.period * 1e3:.3f} ms, "
            f"flux={self.flux:.1f} ph/s, width={self.width:.3f})"
        )
