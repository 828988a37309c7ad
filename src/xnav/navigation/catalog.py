"""
===============================================================================
XNAV - Pulsar Catalog
===============================================================================
Builds the list of navigation pulsars, either from TEMPO-style parameter
(.par) files or from the built-in catalog of four bright millisecond
pulsars.

Par File Format
---------------
Plain text, one ``KEY VALUE [...]`` entry per line; ``#`` starts a comment
line. Only these keys are used:

    PSR / PSRJ  -- pulsar name
    RAJ         -- right ascension, hh:mm:ss.s
    DECJ        -- declination, [+-]dd:mm:ss.s
    F0          -- spin frequency (Hz), period = 1 / F0
    P0          -- spin period (s)

Par files carry no X-ray flux, so the photon rate defaults to 1 ph/s except
for a few well-known bright sources.
===============================================================================
"""

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from xnav.core.constants import DEFAULT_PULSE_WIDTH
from xnav.core.exceptions import ParseError
from xnav.navigation.pulsar import Pulsar

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 0.010     # s
DEFAULT_FLUX = 1.0         # photons/s

# Substring of the pulsar name -> detected photon rate (photons/s)
KNOWN_FLUXES = {
    '1937': 5.0,
    '0437': 8.0,
}

# (name, RA deg, Dec deg, period s, flux photons/s)
DEFAULT_CATALOG_ENTRIES = (
    ('PSR B1937+21', 20.0, 30.0, 0.00155, 500.0),
    ('PSR J0437-4715', 70.0, -47.0, 0.00575, 800.0),
    ('PSR J1824-2452', 276.0, -24.0, 0.00305, 300.0),
    ('PSR J2124-3358', 321.0, -33.0, 0.00493, 250.0),
)


def _parse_sexagesimal(text: str, what: str):
    parts = text.split(':')
    if len(parts) < 3:
        return None
    try:
        return parts, float(parts[0]), float(parts[1]), float(parts[2])
    except ValueError as exc:
        raise ParseError(f"Invalid {what} value '{text}': {exc}") from exc


def parse_hms(text: str) -> float:
    """
    Convert an ``hh:mm:ss.s`` right ascension to degrees.

    Returns 0.0 when fewer than three fields are present.

    Raises
    ------
    ParseError
        If a field is not a number.
    """
    parsed = _parse_sexagesimal(text, 'RAJ')
    if parsed is None:
        return 0.0
    _, h, m, s = parsed
    return (h + m / 60.0 + s / 3600.0) * 15.0


def parse_dms(text: str) -> float:
    """
    Convert a ``[+-]dd:mm:ss.s`` declination to degrees.

    The sign comes from the degrees field, including a ``-00`` degree
    field. Returns 0.0 when fewer than three fields are present.
    """
    parsed = _parse_sexagesimal(text, 'DECJ')
    if parsed is None:
        return 0.0
    parts, d, m, s = parsed
    sign = -1.0 if (d < 0.0 or parts[0].strip().startswith('-')) else 1.0
    return sign * (abs(d) + m / 60.0 + s / 3600.0)


def _parse_float(value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        return default


def flux_for(pulsar_id: str) -> float:
    """Photon rate assumed for a pulsar loaded from a par file."""
    for key, flux in KNOWN_FLUXES.items():
        if key in pulsar_id:
            return flux
    return DEFAULT_FLUX


def load_par_file(path: str) -> Pulsar:
    """
    Read a pulsar from a par file.

    Parameters
    ----------
    path : str
        Path to the .par file.

    Returns
    -------
    Pulsar

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ParseError
        If RAJ or DECJ hold malformed numbers.
    """
    pulsar_id = ''
    ra = 0.0
    dec = 0.0
    period = DEFAULT_PERIOD

    with open(path, 'r', encoding='utf-8') as f:
        for line_no, line in enumerate(f, start=1):
            if line.startswith('#') or not line.strip():
                continue

            parts = line.split()
            if len(parts) < 2:
                continue

            key, value = parts[0], parts[1]
            try:
                if key in ('PSR', 'PSRJ'):
                    pulsar_id = value
                elif key == 'RAJ':
                    ra = parse_hms(value)
                elif key == 'DECJ':
                    dec = parse_dms(value)
                elif key == 'F0':
                    period = 1.0 / _parse_float(value, 1.0)
                elif key == 'P0':
                    period = _parse_float(value, DEFAULT_PERIOD)
            except ParseError as exc:
                raise ParseError(f"{path}:{line_no}: {exc}") from exc
            except ZeroDivisionError as exc:
                raise ParseError(f"{path}:{line_no}: F0 must be non-zero") from exc

    pulsar = Pulsar.from_equatorial(pulsar_id, ra, dec, period, flux_for(pulsar_id))
    logger.debug("Loaded %r from %s", pulsar, path)
    return pulsar


def default_catalog() -> List[Pulsar]:
    """The four built-in millisecond pulsars."""
    return [
        Pulsar.from_equatorial(name, ra, dec, period, flux)
        for name, ra, dec, period, flux in DEFAULT_CATALOG_ENTRIES
    ]


def pulsar_from_config(entry: Dict[str, Any]) -> Pulsar:
    """
    Build a pulsar from an inline config mapping with keys ``id``, ``ra_deg``,
    ``dec_deg``, ``period_s``, ``flux`` and optionally ``width``.
    """
    try:
        return Pulsar.from_equatorial(
            str(entry['id']),
            float(entry['ra_deg']),
            float(entry['dec_deg']),
            float(entry['period_s']),
            float(entry['flux']),
            float(entry.get('width', DEFAULT_PULSE_WIDTH)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ParseError(f"Invalid pulsar catalog entry {entry!r}: {exc}") from exc


def load_catalog(par_files: Iterable[str] = (),
                 entries: Optional[Iterable[Dict[str, Any]]] = None) -> List[Pulsar]:
    """
    Assemble the navigation catalog.

    Par files that are missing, unreadable or malformed are skipped with a
    log message; inline ``entries`` are appended after them. When nothing
    could be loaded, the built-in catalog is returned instead.
    """
    pulsars: List[Pulsar] = []

    for path in par_files:
        if not os.path.exists(path):
            logger.info("Par file %s not found; skipping", path)
            continue
        try:
            pulsars.append(load_par_file(path))
        except (OSError, UnicodeDecodeError, ParseError) as exc:
            logger.warning("Skipping par file %s: %s", path, exc)

    for entry in entries or ():
        pulsars.append(pulsar_from_config(entry))

    if not pulsars:
        logger.warning("No pulsar parameter files loaded; using built-in catalog")
        return default_catalog()

    logger.info("Loaded %d pulsars from configuration", len(pulsars))
    return pulsars
