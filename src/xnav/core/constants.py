"""
===============================================================================
XNAV - Physical and Astronomical Constants
===============================================================================
Central repository for the physical constants used by the pulsar navigation
core. Units are kilometers and seconds throughout, so the speed of light is
expressed in km/s and the solar gravitational parameter in km^3/s^2.

These values come from IAU 2012 / IERS standards where applicable.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# FUNDAMENTAL PHYSICAL CONSTANTS
# =============================================================================
C_LIGHT = 299792.458                   # km/s
AU = 149597870.7                       # Astronomical Unit in km

# =============================================================================
# SUN PARAMETERS
# =============================================================================
GM_SUN = 132712440018.0                # km^3/s^2

# Scale factor of the solar Shapiro delay, 2 * GM / c^3 (~9.85e-6 s)
SHAPIRO_FACTOR = 2.0 * GM_SUN / C_LIGHT ** 3

# =============================================================================
# PULSAR TIMING DEFAULTS
# =============================================================================
# Pulse full-width at half-maximum as a fraction of the rotation period
DEFAULT_PULSE_WIDTH = 0.05

# Gaussian FWHM = 2.355 sigma
FWHM_TO_SIGMA = 2.355

# Fraction of detected photons that follow the pulse profile; the remainder
# is uniform background
SIGNAL_FRACTION = 0.3

# Timing standard error reported when no photon was detected (s)
NO_PHOTON_SIGMA = 1.0e9

# Positions closer than this to the Sun (km) get no Shapiro delay
SHAPIRO_MIN_RADIUS = 1.0

# =============================================================================
# FILTER NUMERICS
# =============================================================================
# Innovation covariance with a diagonally scaled reciprocal condition number
# below this is treated as singular
SINGULAR_RCOND = 1.0e-12
