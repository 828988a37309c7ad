"""
===============================================================================
XNAV - Core Module
===============================================================================
Shared building blocks for the pulsar navigation system.

Submodules:
    constants   -- Physical constants in km / s units and timing defaults
    exceptions  -- ParseError, InvalidDimensions, SingularCovariance
===============================================================================
"""
