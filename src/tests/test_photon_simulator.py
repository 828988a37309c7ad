"""
===============================================================================
XNAV - Photon Simulator Test Suite
===============================================================================
Tests for the Poisson photon-arrival simulator: empty exposures, ordering
and range of the timestamps, photon statistics, the pulsed / background
phase mixture, and the TOA standard error.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import logging

import numpy as np
import pytest

from xnav.core.constants import NO_PHOTON_SIGMA
from xnav.navigation.photon_simulator import (
    PhotonSimulator, expected_timing_error, simulate_photons, timing_standard_error,
)
from xnav.navigation.pulsar import Pulsar


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def rng():
    return np.random.default_rng(2024)


@pytest.fixture
def j0437():
    return Pulsar.from_equatorial("PSR J0437-4715", 70.0, -47.0,
                                  period=0.00575, flux=800.0)


# =============================================================================
# Test: Empty exposures
# =============================================================================

class TestEmptyExposure:
    """No expected photons means no photons."""

    def test_zero_flux(self, rng):
        p = Pulsar.from_equatorial("dark", 0.0, 0.0, period=0.01, flux=0.0)
        times = simulate_photons(p, 1.0, rng)
        assert times.size == 0

    def test_zero_duration(self, rng, j0437):
        assert simulate_photons(j0437, 0.0, rng).size == 0

    def test_negative_duration(self, rng, j0437):
        assert simulate_photons(j0437, -1.0, rng).size == 0


# =============================================================================
# Test: Timestamp ordering and range
# =============================================================================

class TestTimestamps:
    """Arrival times are sorted and lie inside the exposure."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    @pytest.mark.parametrize("duration", [0.002, 0.5, 1.0, 3.7])
    def test_sorted_and_in_range(self, j0437, seed, duration):
        times = simulate_photons(j0437, duration, np.random.default_rng(seed))
        assert np.all(np.diff(times) >= 0.0)
        assert np.all(times >= 0.0)
        assert np.all(times < duration)

    def test_reproducible_with_seed(self, j0437):
        a = simulate_photons(j0437, 1.0, np.random.default_rng(99))
        b = simulate_photons(j0437, 1.0, np.random.default_rng(99))
        np.testing.assert_array_equal(a, b)

    def test_fresh_draw_each_call(self, rng, j0437):
        a = simulate_photons(j0437, 1.0, rng)
        b = simulate_photons(j0437, 1.0, rng)
        assert a.size != b.size or not np.array_equal(a, b)

    def test_nan_period_rejected(self, rng):
        p = Pulsar.from_equatorial("broken", 0.0, 0.0, period=float('nan'), flux=100.0)
        with pytest.raises(ValueError):
            simulate_photons(p, 1.0, rng)


# =============================================================================
# Test: Photon statistics
# =============================================================================

class TestPhotonStatistics:
    """Counts follow the Poisson mean; phases follow the pulse mixture."""

    def test_mean_count(self, rng, j0437):
        """Mean photon count is close to flux * duration."""
        counts = [simulate_photons(j0437, 1.0, rng).size for _ in range(50)]
        assert np.mean(counts) == pytest.approx(800.0, rel=0.05)

    def test_pulse_concentration(self, rng):
        """The 30% pulsed fraction piles photons up around phase 0.5."""
        p = Pulsar.from_equatorial("bright", 0.0, 0.0, period=0.004, flux=20000.0)
        times = simulate_photons(p, 1.0, rng)
        phase = np.mod(times / p.period, 1.0)
        near_peak = np.mean(np.abs(phase - 0.5) < 0.05)
        # Uniform background alone would give 0.10; the mixture gives ~0.36
        assert near_peak > 0.25

    def test_background_fills_all_phases(self, rng):
        p = Pulsar.from_equatorial("bright", 0.0, 0.0, period=0.004, flux=20000.0)
        times = simulate_photons(p, 1.0, rng)
        phase = np.mod(times / p.period, 1.0)
        hist, _ = np.histogram(phase, bins=10, range=(0.0, 1.0))
        assert np.all(hist > 0)


# =============================================================================
# Test: Timing noise
# =============================================================================

class TestTimingError:
    """Tests for the TOA standard error helpers."""

    def test_standard_error(self, j0437):
        expected = 0.05 * 0.00575 / 10.0
        assert timing_standard_error(j0437, 100) == pytest.approx(expected)

    def test_zero_photons_sentinel(self, j0437):
        assert timing_standard_error(j0437, 0) == NO_PHOTON_SIGMA

    def test_decreases_with_photons(self, j0437):
        assert timing_standard_error(j0437, 400) < timing_standard_error(j0437, 100)

    def test_expected_timing_error(self, j0437):
        expected = 0.05 * 0.00575 / (2.0 * np.sqrt(800.0 * 2.0))
        assert expected_timing_error(j0437, 2.0) == pytest.approx(expected)

    def test_expected_timing_error_no_integration(self, j0437):
        assert expected_timing_error(j0437, 0.0) == 1.0


# =============================================================================
# Test: PhotonSimulator wrapper
# =============================================================================

class TestPhotonSimulator:
    """Tests for the generator-bound detector."""

    def test_seeded_detectors_agree(self, j0437):
        a = PhotonSimulator(seed=5).observe(j0437, 1.0)
        b = PhotonSimulator(seed=5).observe(j0437, 1.0)
        np.testing.assert_array_equal(a, b)

    def test_injected_generator_is_used(self, j0437):
        gen = np.random.default_rng(5)
        detector = PhotonSimulator(rng=gen)
        assert detector.rng is gen
        expected = simulate_photons(j0437, 1.0, np.random.default_rng(5))
        np.testing.assert_array_equal(detector.observe(j0437, 1.0), expected)

    def test_warns_when_starved(self, caplog):
        faint = Pulsar.from_equatorial("faint", 0.0, 0.0, period=0.01, flux=1e-9)
        with caplog.at_level(logging.WARNING):
            times = PhotonSimulator(seed=1).observe(faint, 1.0)
        assert times.size == 0
        assert "No photons detected" in caplog.text
