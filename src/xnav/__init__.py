"""
===============================================================================
XNAV - X-ray Pulsar Navigation
===============================================================================
Spacecraft position / velocity estimation from simulated pulsar X-ray
timing, using a linear Kalman filter fed by a Poisson photon-arrival model.

Packages:
    core        -- Constants and error types
    navigation  -- Pulsar model, photon simulator, measurement model, filter
    simulation  -- Scenario driver and Monte Carlo ensemble
===============================================================================
"""

__version__ = "0.1.0"
