"""
===============================================================================
XNAV - Pulsar Catalog Test Suite
===============================================================================
Tests for sexagesimal parsing, par-file loading, inline catalog entries,
and the fallback to the built-in catalog.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from xnav.core.exceptions import ParseError
from xnav.navigation.catalog import (
    DEFAULT_CATALOG_ENTRIES, default_catalog, load_catalog, load_par_file,
    parse_dms, parse_hms, pulsar_from_config,
)
from xnav.navigation.pulsar import direction_vector


B1937_PAR = """\
# Millisecond pulsar B1937+21
PSR            B1937+21
RAJ            19:39:38.561
DECJ           +21:34:59.13
F0             641.928
PEPOCH         55000
"""


@pytest.fixture
def par_file(tmp_path):
    path = tmp_path / "J1937+21.par"
    path.write_text(B1937_PAR)
    return str(path)


# =============================================================================
# Test: Sexagesimal parsing
# =============================================================================

class TestSexagesimal:
    """Tests for RAJ / DECJ conversion."""

    def test_hms(self):
        expected = (19.0 + 39.0 / 60.0 + 38.561 / 3600.0) * 15.0
        assert parse_hms("19:39:38.561") == pytest.approx(expected)

    def test_hms_zero(self):
        assert parse_hms("00:00:00") == 0.0

    def test_dms_positive(self):
        assert parse_dms("+21:34:59.13") == pytest.approx(21.0 + 34.0 / 60.0 + 59.13 / 3600.0)

    def test_dms_negative(self):
        assert parse_dms("-47:15:09.1") == pytest.approx(-(47.0 + 15.0 / 60.0 + 9.1 / 3600.0))

    def test_dms_negative_zero_degrees(self):
        """The sign survives a '-00' degree field."""
        assert parse_dms("-00:30:00") == pytest.approx(-0.5)

    @pytest.mark.parametrize("text", ["19:39", "", "12"])
    def test_too_few_fields(self, text):
        assert parse_hms(text) == 0.0
        assert parse_dms(text) == 0.0

    @pytest.mark.parametrize("text", ["19:3x:38", "aa:bb:cc"])
    def test_malformed(self, text):
        with pytest.raises(ParseError):
            parse_hms(text)
        with pytest.raises(ParseError):
            parse_dms(text)


# =============================================================================
# Test: Par file loading
# =============================================================================

class TestParFile:
    """Tests for load_par_file."""

    def test_load(self, par_file):
        p = load_par_file(par_file)
        assert p.pulsar_id == "B1937+21"
        assert p.period == pytest.approx(1.0 / 641.928)
        ra = parse_hms("19:39:38.561")
        dec = parse_dms("+21:34:59.13")
        assert_allclose(p.direction, direction_vector(ra, dec), atol=1e-15)

    def test_known_flux(self, par_file):
        assert load_par_file(par_file).flux == 5.0

    def test_default_flux_and_period(self, tmp_path):
        path = tmp_path / "other.par"
        path.write_text("PSRJ J1012+5307\nRAJ 10:12:33.4\nDECJ 53:07:02.5\n")
        p = load_par_file(str(path))
        assert p.flux == 1.0
        assert p.period == pytest.approx(0.010)

    def test_p0(self, tmp_path):
        path = tmp_path / "p0.par"
        path.write_text("PSRJ J0437-4715\nP0 0.00575745\n")
        p = load_par_file(str(path))
        assert p.period == pytest.approx(0.00575745)
        assert p.flux == 8.0

    def test_unparsable_f0_defaults_to_1hz(self, tmp_path):
        path = tmp_path / "f0.par"
        path.write_text("PSR X\nF0 fast\n")
        assert load_par_file(str(path)).period == pytest.approx(1.0)

    def test_zero_f0_rejected(self, tmp_path):
        path = tmp_path / "f0.par"
        path.write_text("PSR X\nF0 0\n")
        with pytest.raises(ParseError):
            load_par_file(str(path))

    def test_malformed_raj_reports_location(self, tmp_path):
        path = tmp_path / "bad.par"
        path.write_text("PSR X\n\nRAJ 1x:00:00\n")
        with pytest.raises(ParseError, match="bad.par:3"):
            load_par_file(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_par_file(str(tmp_path / "nope.par"))


# =============================================================================
# Test: Catalog assembly
# =============================================================================

class TestLoadCatalog:
    """Tests for load_catalog and the built-in catalog."""

    def test_default_catalog(self):
        catalog = default_catalog()
        assert [p.pulsar_id for p in catalog] == [e[0] for e in DEFAULT_CATALOG_ENTRIES]
        assert [p.flux for p in catalog] == [500.0, 800.0, 300.0, 250.0]
        for p in catalog:
            assert abs(np.linalg.norm(p.direction) - 1.0) < 1e-12

    def test_fallback_when_nothing_loads(self, tmp_path):
        catalog = load_catalog([str(tmp_path / "missing.par")])
        assert len(catalog) == 4

    def test_fallback_on_bad_file(self, tmp_path):
        path = tmp_path / "bad.par"
        path.write_text("RAJ zz:00:00\n")
        assert len(load_catalog([str(path)])) == 4

    def test_directory_path_skipped(self, tmp_path, par_file):
        folder = tmp_path / "pars"
        folder.mkdir()
        catalog = load_catalog([str(folder), par_file])
        assert [p.pulsar_id for p in catalog] == ["B1937+21"]

    def test_undecodable_file_skipped(self, tmp_path):
        path = tmp_path / "binary.par"
        path.write_bytes(b"PSR \xff\xfe\x00\x81\nRAJ 19:39:38.561\n")
        assert len(load_catalog([str(path)])) == 4

    def test_par_file_replaces_default(self, par_file):
        catalog = load_catalog([par_file])
        assert [p.pulsar_id for p in catalog] == ["B1937+21"]

    def test_inline_entries(self):
        entries = [
            {'id': 'A', 'ra_deg': 10.0, 'dec_deg': 5.0, 'period_s': 0.002, 'flux': 100.0},
            {'id': 'B', 'ra_deg': 200.0, 'dec_deg': -5.0, 'period_s': 0.003,
             'flux': 50.0, 'width': 0.1},
        ]
        catalog = load_catalog([], entries)
        assert [p.pulsar_id for p in catalog] == ['A', 'B']
        assert catalog[1].width == pytest.approx(0.1)

    def test_bad_inline_entry(self):
        with pytest.raises(ParseError):
            pulsar_from_config({'id': 'A', 'ra_deg': 10.0})
