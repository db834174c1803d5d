"""Configuration loader for apartment alerts."""

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "matching": {
        "max_matches_per_alert": None,
        "include_non_matches": False,
        "max_workers": 1,
    },
    "commute": {
        "enabled": True,
        "cache_ttl_hours": 24,
        "timeout_seconds": 10,
    },
    "ledger": {
        "db_path": None,
        "retention_days": 30,
    },
    "areas": {
        "path": None,
    },
}


def load_config(config_path: str = "./config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file and environment variables.

    Missing keys inside a known section fall back to DEFAULTS.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Dictionary containing merged configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    load_dotenv()

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Copy config/config.example.yaml to config/config.yaml and customize it."
        )

    with open(config_file, "r") as f:
        config = yaml.safe_load(f) or {}

    _validate_config(config)

    merged = {}
    for section, defaults in DEFAULTS.items():
        merged[section] = {**defaults, **(config.get(section) or {})}
    return merged


def default_config() -> Dict[str, Any]:
    """Configuration used when no config file is given."""
    load_dotenv()
    return {section: dict(values) for section, values in DEFAULTS.items()}


def _validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration structure."""
    required_sections = ["matching", "commute", "ledger"]
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    matching = config["matching"] or {}
    workers = matching.get("max_workers", 1)
    if not isinstance(workers, int) or workers < 1:
        raise ValueError(f"matching.max_workers must be a positive integer, got {workers}")

    cap = matching.get("max_matches_per_alert")
    if cap is not None and (not isinstance(cap, int) or cap < 1):
        raise ValueError(f"matching.max_matches_per_alert must be a positive integer, got {cap}")

    ttl = (config["commute"] or {}).get("cache_ttl_hours", 24)
    if not isinstance(ttl, (int, float)) or ttl <= 0:
        raise ValueError(f"commute.cache_ttl_hours must be positive, got {ttl}")

    retention = (config["ledger"] or {}).get("retention_days", 30)
    if not isinstance(retention, int) or retention < 0:
        raise ValueError(f"ledger.retention_days must be a non-negative integer, got {retention}")


def get_env(key: str, default: str = None, required: bool = False) -> str:
    """
    Get environment variable with optional default and required check.

    Args:
        key: Environment variable name
        default: Default value if not set
        required: If True, raise error when not set

    Returns:
        Environment variable value

    Raises:
        ValueError: If required and not set
    """
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable not set: {key}")
    return value
