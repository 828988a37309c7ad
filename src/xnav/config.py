"""
===============================================================================
XNAV - Scenario Configuration
===============================================================================
Loads the YAML scenario file and fills in every missing key with the
reference scenario: four pulsars, a spacecraft at 1 AU moving at 30 km/s,
100 one-second steps and a 2 km/s burn at step 40.
===============================================================================
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / 'config' / 'xnav_config.yaml'

DEFAULT_CONFIG: Dict[str, Any] = {
    'simulation': {
        'n_steps': 100,
        'dt_s': 1.0,
        'seed': None,
        'report_every': 5,
    },
    'spacecraft': {
        'initial_position_km': [149600000.0, 0.0, 0.0],
        'initial_velocity_km_s': [0.0, 30.0, 0.0],
    },
    'maneuvers': [
        {'step': 40, 'delta_v_km_s': [0.0, 2.0, 0.0], 'label': 'BURN'},
    ],
    'filter': {
        'initial_position_offset_km': [100.0, -50.0, 50.0],
        'initial_covariance': 1000.0,
        'process_noise': 0.1,
    },
    'pulsars': {
        'par_files': [],
        'catalog': [],
    },
    'output': {
        'csv_path': 'trajectory.csv',
        'log_file': None,
    },
    'monte_carlo': {
        'num_runs': 20,
        'num_workers': 1,
        'base_seed': 42,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def default_config() -> Dict[str, Any]:
    """Return a fresh copy of the reference scenario configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the scenario configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. Defaults to
            config/xnav_config.yaml at the project root; when that default
            file does not exist the built-in scenario is returned.

    Returns:
        Configuration dictionary with every section present.

    Raises:
        FileNotFoundError: If an explicitly given path does not exist.
        ValueError: If the file does not contain a YAML mapping.
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.info("No configuration file found; using built-in scenario")
            return default_config()
        config_path = str(DEFAULT_CONFIG_PATH)

    logger.info("Loading configuration from: %s", config_path)
    with open(config_path, 'r') as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(
            f"Configuration file {config_path} must contain a mapping, "
            f"got {type(loaded).__name__}"
        )

    config = _merge(DEFAULT_CONFIG, loaded)

    # Relative par-file paths are resolved against the config file location
    base_dir = Path(config_path).resolve().parent
    config['pulsars']['par_files'] = [
        str(p) if Path(p).is_absolute() else str(base_dir / p)
        for p in config['pulsars'].get('par_files') or []
    ]
    return config
