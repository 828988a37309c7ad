"""
===============================================================================
XNAV - Kalman Filter for Pulsar Navigation
===============================================================================

Implements the 6-state linear Kalman filter that fuses pulsar timing delays
into a spacecraft position / velocity estimate.

State Vector (6 elements)
-------------------------
    x[0:3] = position [x, y, z]        (km, heliocentric inertial frame)
    x[3:6] = velocity [vx, vy, vz]     (km/s, heliocentric inertial frame)

Dynamics Model
--------------
Constant-velocity kinematics. Over a step dt the transition matrix is

    F = | I(3)  dt*I(3) |
        | 0(3)    I(3)  |

and a fixed diagonal process noise Q is added to the covariance. Q is NOT
scaled by dt: the filter keeps the same process noise regardless of the
step size, which is only consistent for a fixed step.

Measurement Model
-----------------
Each pulsar i with unit direction n_i contributes a scalar pseudo-range

    z_i = -delay_i * c = n_i . r + noise

so the measurement matrix row is [n_ix, n_iy, n_iz, 0, 0, 0]. Velocity is
never observed directly; it is recovered through the position-velocity
cross-covariance built up by the predict step. The number of rows is the
number of pulsars in the catalog, so H, S and K are sized at run time.

Covariance Update
-----------------
The simple form P = (I - K H) P is used. Unlike the Joseph form it does not
force symmetry, which is acceptable for the short, well-conditioned runs
this filter is designed for. is_covariance_valid() reports when symmetry or
positive semi-definiteness has been lost.

References
----------
    [1] Kalman, "A New Approach to Linear Filtering and Prediction
        Problems", ASME J. Basic Engineering, 1960.
    [2] Bar-Shalom, Li & Kirubarajan, "Estimation with Applications to
        Tracking and Navigation", Wiley, 2001.
===============================================================================
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from xnav.core.constants import C_LIGHT, SINGULAR_RCOND
from xnav.core.exceptions import InvalidDimensions, SingularCovariance
from xnav.navigation.pulsar import Pulsar

logger = logging.getLogger(__name__)

STATE_DIM = 6


class PulsarKalmanFilter:
    """
    Linear Kalman filter estimating position and velocity from pulsar
    timing delays.

    The filter exclusively owns its state x and covariance P. They change
    only through predict() and update(); every accessor returns a copy.

    Attributes
    ----------
    x : np.ndarray
        6-element state vector [position(3), velocity(3)].
    P : np.ndarray
        6x6 state error covariance matrix.
    Q : np.ndarray
        6x6 process noise covariance added at every predict.

    Examples
    --------
    >>> kf = PulsarKalmanFilter.from_position(np.array([1.496e8, 0.0, 0.0]))
    >>> kf.predict(dt=1.0)
    >>> innovation, S = kf.update(pulsars, delays, variances)
    """

    DEFAULT_INITIAL_VARIANCE = 1000.0   # km^2 and (km/s)^2
    DEFAULT_PROCESS_NOISE = 0.1

    def __init__(self, x0: np.ndarray, P0: np.ndarray,
                 Q: Optional[np.ndarray] = None) -> None:
        """
        Initialize the filter.

        Parameters
        ----------
        x0 : np.ndarray
            Initial state [position(3), velocity(3)] in km and km/s.
        P0 : np.ndarray
            Initial 6x6 covariance. May be all zeros (perfectly known state).
        Q : np.ndarray, optional
            6x6 process noise. Defaults to 0.1 * I.

        Raises
        ------
        InvalidDimensions
            If any array has the wrong shape.
        """
        self.x = np.array(x0, dtype=np.float64).flatten()
        if self.x.shape[0] != STATE_DIM:
            raise InvalidDimensions(
                f"State vector must have {STATE_DIM} elements, got "
                f"{self.x.shape[0]}. Expected: [pos(3), vel(3)]"
            )

        self.P = np.array(P0, dtype=np.float64)
        if self.P.shape != (STATE_DIM, STATE_DIM):
            raise InvalidDimensions(
                f"Covariance matrix must be 6x6, got {self.P.shape}"
            )

        if Q is None:
            Q = np.eye(STATE_DIM) * self.DEFAULT_PROCESS_NOISE
        self.Q = np.array(Q, dtype=np.float64)
        if self.Q.shape != (STATE_DIM, STATE_DIM):
            raise InvalidDimensions(
                f"Process noise matrix must be 6x6, got {self.Q.shape}"
            )

    @classmethod
    def from_position(cls, initial_position: np.ndarray,
                      initial_velocity: Optional[np.ndarray] = None,
                      initial_variance: float = DEFAULT_INITIAL_VARIANCE,
                      process_noise: float = DEFAULT_PROCESS_NOISE
                      ) -> 'PulsarKalmanFilter':
        """
        Build a filter from a position guess with a diagonal covariance.

        The velocity guess defaults to zero, so the filter has to learn the
        spacecraft velocity from the measurement history.
        """
        x0 = np.zeros(STATE_DIM)
        x0[0:3] = initial_position
        if initial_velocity is not None:
            x0[3:6] = initial_velocity
        return cls(
            x0,
            np.eye(STATE_DIM) * initial_variance,
            np.eye(STATE_DIM) * process_noise,
        )

    # =========================================================================
    # PREDICT STEP
    # =========================================================================

    @staticmethod
    def transition_matrix(dt: float) -> np.ndarray:
        """Constant-velocity state transition matrix for a step of dt."""
        F = np.eye(STATE_DIM)
        F[0, 3] = dt
        F[1, 4] = dt
        F[2, 5] = dt
        return F

    def predict(self, dt: float) -> None:
        """
        Propagate the state and covariance forward by dt seconds.

            x = F x
            P = F P F^T + Q
        """
        F = self.transition_matrix(dt)

        self.x = F @ self.x
        self.P = F @ self.P @ F.T + self.Q

    # =========================================================================
    # MEASUREMENT UPDATE
    # =========================================================================

    @staticmethod
    def measurement_matrix(pulsars: Sequence[Pulsar]) -> np.ndarray:
        """
        Build the n x 6 observation matrix, one row [n, 0, 0, 0] per pulsar.
        """
        H = np.zeros((len(pulsars), STATE_DIM), dtype=np.float64)
        for i, pulsar in enumerate(pulsars):
            H[i, 0:3] = pulsar.direction
        return H

    def update(self, pulsars: Sequence[Pulsar], measured_delays: Sequence[float],
               variances: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Fuse one batch of pulsar delay measurements.

        Parameters
        ----------
        pulsars : sequence of Pulsar
            Pulsars measured this step, in the same order as the delays.
        measured_delays : sequence of float
            Measured delays in seconds.
        variances : sequence of float
            Pseudo-range variances in km^2 (diagonal of R).

        Returns
        -------
        innovation : np.ndarray
            z - H x before the update (km).
        S : np.ndarray
            Innovation covariance H P H^T + R (km^2).

        Raises
        ------
        InvalidDimensions
            If the three inputs do not have the same length.
        SingularCovariance
            If S cannot be inverted. State and covariance are unchanged.
        """
        measured_delays = np.asarray(measured_delays, dtype=np.float64).flatten()
        variances = np.asarray(variances, dtype=np.float64).flatten()

        n = len(pulsars)
        if measured_delays.shape[0] != n or variances.shape[0] != n:
            raise InvalidDimensions(
                f"Got {n} pulsars, {measured_delays.shape[0]} delays and "
                f"{variances.shape[0]} variances; lengths must match"
            )

        if n == 0:
            logger.debug("Empty measurement batch; update skipped")
            return np.zeros(0), np.zeros((0, 0))

        # --- Pseudo-range measurements (km) ---
        z = -measured_delays * C_LIGHT

        H = self.measurement_matrix(pulsars)

        # --- Innovation ---
        innovation = z - H @ self.x

        # --- Innovation covariance ---
        R = np.diag(variances)
        S = H @ self.P @ H.T + R

        self._check_innovation_covariance(S)

        try:
            S_inv = np.linalg.inv(S)
        except np.linalg.LinAlgError as exc:
            raise SingularCovariance(
                f"Innovation covariance ({n}x{n}) is singular: {exc}"
            ) from exc

        if not np.all(np.isfinite(S_inv)):
            raise SingularCovariance(
                f"Innovation covariance ({n}x{n}) inverse is not finite"
            )

        # --- Kalman gain ---
        K = self.P @ H.T @ S_inv

        # --- State and covariance update ---
        self.x = self.x + K @ innovation
        self.P = (np.eye(STATE_DIM) - K @ H) @ self.P

        logger.debug(
            "Update with %d pulsars: |innovation|=%.4f km, trace(P)=%.4f",
            n, np.linalg.norm(innovation), np.trace(self.P),
        )

        return innovation, S

    @staticmethod
    def _check_innovation_covariance(S: np.ndarray) -> None:
        """
        Reject an innovation covariance that is singular to working precision.

        The test runs on the correlation form D^-1/2 S D^-1/2 so that a
        measurement carrying the no-photon sentinel variance does not count
        as ill-conditioning by itself.
        """
        n = S.shape[0]
        diag = np.diag(S)
        if not np.all(np.isfinite(S)) or np.any(diag <= 0.0):
            raise SingularCovariance(
                f"Innovation covariance ({n}x{n}) has a non-positive or "
                f"non-finite diagonal"
            )

        scale = np.sqrt(diag)
        sv = np.linalg.svd(S / np.outer(scale, scale), compute_uv=False)
        if sv[-1] <= sv[0] * SINGULAR_RCOND:
            raise SingularCovariance(
                f"Innovation covariance ({n}x{n}) is singular to working "
                f"precision (rcond={sv[-1] / sv[0]:.3e})"
            )

    # =========================================================================
    # STATE ACCESS METHODS
    # =========================================================================

    def get_state(self) -> np.ndarray:
        """Return a copy of the 6-element state vector."""
        return self.x.copy()

    def get_covariance(self) -> np.ndarray:
        """Return a copy of the 6x6 covariance matrix."""
        return self.P.copy()

    def get_position(self) -> np.ndarray:
        """Return the estimated position [x, y, z] in km."""
        return self.x[0:3].copy()

    def get_velocity(self) -> np.ndarray:
        """Return the estimated velocity [vx, vy, vz] in km/s."""
        return self.x[3:6].copy()

    def position_uncertainty(self) -> float:
        """
        Scalar position uncertainty sqrt(trace(P[0:3, 0:3])) in km.

        This is the radius of the 1-sigma position error sphere, the figure
        reported in the navigation telemetry.
        """
        return float(np.sqrt(np.trace(self.P[0:3, 0:3])))

    # =========================================================================
    # FILTER HEALTH DIAGNOSTICS
    # =========================================================================

    def is_covariance_valid(self, tol: float = 1e-6) -> bool:
        """
        Check that P is still symmetric and positive semi-definite.

        The tolerance is relative to the largest covariance entry. Loss of
        either property signals a numerical failure of the recursion.
        """
        scale = max(np.max(np.abs(self.P)), 1.0)
        if not np.all(np.isfinite(self.P)):
            return False
        if np.max(np.abs(self.P - self.P.T)) > tol * scale:
            return False
        eigvals = np.linalg.eigvalsh(0.5 * (self.P + self.P.T))
        return bool(eigvals.min() >= -tol * scale)

    def get_innovation_consistency(self, innovation: np.ndarray,
                                   S: np.ndarray) -> float:
        """
        Normalized innovation squared, NIS = y^T S^{-1} y.

        For a consistent filter NIS follows a chi-squared distribution with
        as many degrees of freedom as there are measurements. Returns NaN
        for an empty batch.
        """
        innovation = np.asarray(innovation, dtype=np.float64).flatten()
        S = np.asarray(S, dtype=np.float64)
        if innovation.size == 0:
            return float('nan')

        S_inv_innovation = np.linalg.solve(S, innovation)
        return float(innovation @ S_inv_innovation)

    @staticmethod
    def nis_bounds(dof: int, confidence: float = 0.95) -> Tuple[float, float]:
        """
        Two-sided chi-squared acceptance interval for the NIS.

        Parameters
        ----------
        dof : int
            Number of scalar measurements in the batch.
        confidence : float
            Probability mass inside the interval.
        """
        alpha = 1.0 - confidence
        lower = stats.chi2.ppf(alpha / 2.0, df=dof)
        upper = stats.chi2.ppf(1.0 - alpha / 2.0, df=dof)
        return float(lower), float(upper)

    def __repr__(self) -> str:
        return (
            f"PulsarKalmanFilter(pos={np.round(self.x[0:3], 3)}, "
            f"sigma_pos={self.position_uncertainty():.3f} km)"
        )
