"""
Configuration module for Trader ELO

Provides unified configuration loading from:
1. config/config.yaml (master configuration)
2. .env file (environment overrides)
3. Environment variables (override)
"""

from .loader import DEFAULT_ELO_CONFIG, Config, get_elo_config, load_config

__all__ = ["load_config", "Config", "get_elo_config", "DEFAULT_ELO_CONFIG"]
