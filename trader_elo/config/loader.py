"""
Configuration Loader for Trader ELO

Loads configuration from YAML file with environment variable interpolation.
Follows Fast Fail principle - crashes immediately if config is invalid.
"""

import copy
import math
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel


# Built-in scoring parameters, the single source of the default weights and
# thresholds. config/config.yaml ships the same values; calculators
# constructed without a config use these.
DEFAULT_ELO_CONFIG: Dict[str, Any] = {
    'block_weights': {
        'performance': 0.40,
        'riskControl': 0.30,
        'consistency': 0.15,
        'accountHealth': 0.10,
        'longevity': 0.05,
    },
    'tiers': {
        'exclusion_coverage': 30,
        'medium_coverage': 35,
        'high_coverage': 50,
    },
    'neutral_block_score': 50,
    'reliability': {
        'full_trades': 300,
        'base_confidence': 0.5,
    },
    'penalties': {
        'profit_concentration': {
            'threshold': 0.6,
            'points': 15,
        },
        'risk_spike': {
            'severe_threshold': 5,
            'severe_points': 30,
            'moderate_threshold': 3,
            'moderate_points': 15,
        },
        'bot_probability': {
            'human_variability_threshold': 30,
            'min_points': 10,
            'max_points': 25,
        },
    },
    'categories': {
        'elite': 90,
        'professional': 80,
        'consistent': 65,
        'unstable': 50,
    },
}

EXPECTED_BLOCKS = tuple(DEFAULT_ELO_CONFIG['block_weights'])
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class Config(BaseModel):
    """
    Master configuration model for Trader ELO

    Wraps the raw YAML dictionary and exposes dot-path access.
    """

    # Raw config data (loaded from YAML)
    _raw_config: Dict[str, Any] = {}

    class Config:
        """Pydantic config"""
        arbitrary_types_allowed = True
        extra = "allow"  # Allow extra fields from YAML

    def __init__(self, **data):
        """Initialize with raw config data"""
        super().__init__(**data)
        self._raw_config = data

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get nested config value using dot notation

        Example:
            config.get('elo.reliability.full_trades')  # Returns 300
            config.get('elo.block_weights')  # Returns {'performance': 0.4, ...}

        Args:
            key_path: Dot-separated path to config key
            default: Default value if key not found

        Returns:
            Config value or default
        """
        keys = key_path.split('.')
        value = self._raw_config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_required(self, key_path: str) -> Any:
        """
        Get required config value - raises error if missing

        Args:
            key_path: Dot-separated path to config key

        Returns:
            Config value

        Raises:
            ValueError: If key not found
        """
        value = self.get(key_path)
        if value is None:
            raise ValueError(f"Required config key not found: {key_path}")
        return value


def get_elo_config(config: Optional[Any] = None) -> Dict[str, Any]:
    """
    Resolve the 'elo' section used by the calculators.

    Args:
        config: None (built-in defaults), a Config object, or a raw dict
                with an 'elo' section

    Returns:
        The 'elo' section as a dict

    Raises:
        KeyError: If a config is given without an 'elo' section (Fast Fail)
    """
    if config is None:
        return copy.deepcopy(DEFAULT_ELO_CONFIG)

    raw = config._raw_config if hasattr(config, '_raw_config') else config
    return raw['elo']


def _interpolate_env_vars(config_str: str) -> str:
    """
    Replace ${VAR_NAME} placeholders with environment variables

    Supports:
    - ${VAR_NAME} - Required, crashes if missing
    - ${VAR_NAME:-} - Optional, empty string if missing
    - ${VAR_NAME:-default} - Optional, uses default if missing

    Args:
        config_str: YAML config as string

    Returns:
        Config string with env vars interpolated

    Raises:
        ValueError: If required env var is missing
    """
    # Pattern matches: ${VAR} or ${VAR:-} or ${VAR:-default}
    pattern = re.compile(r'\$\{(\w+)(:-([^}]*))?\}')

    def replacer(match):
        var_name = match.group(1)
        has_default = match.group(2) is not None
        default_value = match.group(3) if match.group(3) else ""

        value = os.getenv(var_name)

        if value is None:
            if has_default:
                return default_value
            else:
                raise ValueError(
                    f"Environment variable '{var_name}' is required but not set. "
                    f"Check your .env file or environment."
                )

        return value

    return pattern.sub(replacer, config_str)


# Global config cache to avoid duplicate loads
_cached_config: Config | None = None


def load_config(config_path: str | Path = "config/config.yaml") -> Config:
    """
    Load Trader ELO configuration from YAML file (cached)

    Process:
    1. Return cached config if available
    2. Load .env file (if exists)
    3. Read YAML config
    4. Interpolate environment variables (${VAR})
    5. Parse and validate YAML
    6. Cache and return Config object

    Args:
        config_path: Path to YAML config file

    Returns:
        Config object with loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid or env vars missing
        yaml.YAMLError: If YAML parsing fails

    Example:
        >>> from trader_elo.config import load_config
        >>> config = load_config()
        >>> config.get('elo.reliability.full_trades')
        300
    """
    global _cached_config

    # Return cached config if available
    if _cached_config is not None:
        return _cached_config

    # 1. Load .env file (if exists)
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    # 2. Read YAML config
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            f"Expected location: {config_path.absolute()}"
        )

    with open(config_path, 'r') as f:
        config_str = f.read()

    # 3. Interpolate environment variables
    try:
        config_str = _interpolate_env_vars(config_str)
    except ValueError as e:
        raise ValueError(
            f"Failed to interpolate environment variables in {config_path}: {e}"
        ) from e

    # 4. Parse YAML
    try:
        config_dict = yaml.safe_load(config_str)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(
            f"Failed to parse YAML config {config_path}: {e}"
        ) from e

    if not isinstance(config_dict, dict):
        raise ValueError(
            f"Config file {config_path} must contain a YAML dictionary, "
            f"got {type(config_dict)}"
        )

    # 5. Create Config object
    config = Config(**config_dict)

    # 6. Validate critical settings (Fast Fail)
    _validate_config(config)

    # 7. Cache for future calls
    _cached_config = config

    return config


def _validate_config(config: Config) -> None:
    """
    Validate critical configuration settings

    Raises ValueError if any critical settings are invalid.
    This ensures Fast Fail principle - crash early if config is broken.

    Args:
        config: Loaded configuration

    Raises:
        ValueError: If validation fails
    """
    elo = config.get('elo')
    if not isinstance(elo, dict):
        raise ValueError("Config must have an 'elo' section")

    # Block weights: exactly the five blocks, positive, summing to 1.0
    weights = config.get('elo.block_weights')
    if not isinstance(weights, dict) or set(weights) != set(EXPECTED_BLOCKS):
        raise ValueError(
            f"elo.block_weights must define exactly {list(EXPECTED_BLOCKS)}"
        )

    for block, weight in weights.items():
        if not isinstance(weight, (int, float)) or weight <= 0:
            raise ValueError(f"elo.block_weights.{block} must be a positive number, got {weight!r}")

    total_weight = sum(weights.values())
    if not math.isclose(total_weight, 1.0, abs_tol=1e-9):
        raise ValueError(f"elo.block_weights must sum to 1.0, got {total_weight}")

    # Coverage tiers
    exclusion = config.get_required('elo.tiers.exclusion_coverage')
    medium = config.get_required('elo.tiers.medium_coverage')
    high = config.get_required('elo.tiers.high_coverage')
    if not (0 <= exclusion <= medium <= high <= 100):
        raise ValueError(
            "elo.tiers must satisfy 0 <= exclusion_coverage <= medium_coverage "
            f"<= high_coverage <= 100, got {exclusion}/{medium}/{high}"
        )

    # Reliability
    full_trades = config.get_required('elo.reliability.full_trades')
    if full_trades <= 0:
        raise ValueError(f"elo.reliability.full_trades must be positive, got {full_trades}")

    base_confidence = config.get_required('elo.reliability.base_confidence')
    if not 0 <= base_confidence <= 1:
        raise ValueError(
            f"elo.reliability.base_confidence must be within [0, 1], got {base_confidence}"
        )

    # Category thresholds must be descending
    categories = config.get_required('elo.categories')
    thresholds = [categories[k] for k in ('elite', 'professional', 'consistent', 'unstable')]
    if thresholds != sorted(thresholds, reverse=True):
        raise ValueError(f"elo.categories thresholds must be descending, got {thresholds}")

    # Logging
    log_level = config.get('logging.level', 'INFO')
    if str(log_level).upper() not in VALID_LOG_LEVELS:
        raise ValueError(
            f"logging.level must be one of {list(VALID_LOG_LEVELS)}, got '{log_level}'"
        )

    # Validation passed - logging handled by caller
