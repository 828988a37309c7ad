"""
===============================================================================
XNAV - Simulation Module
===============================================================================
Scenario drivers for the pulsar navigation filter.

Submodules:
    sim_engine   -- Time-stepped truth / measurement / filter loop and telemetry
    monte_carlo  -- Seeded ensemble of independent runs with pandas statistics
===============================================================================
"""
