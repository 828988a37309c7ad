"""
===============================================================================
XNAV - Navigation Subsystem
===============================================================================
Pulsar timing models and the navigation filter.

Modules:
    pulsar            -- Pulsar descriptor, direction vector, Roemer / Shapiro delay
    photon_simulator  -- Poisson photon arrivals and TOA standard error
    measurement_model -- Noisy per-pulsar delay measurements and variances
    kalman            -- 6-state constant-velocity Kalman filter
    catalog           -- Par-file parsing and the built-in pulsar catalog
===============================================================================
"""
