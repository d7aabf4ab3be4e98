"""
Configuration management and loading.

Handles the optional YAML configuration file: monthly budget and pricing overrides.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tokenwise.core.optimizer import OptimizerConfig
from tokenwise.core.pricing import DEFAULT_PRICING_TABLE, PricingEntry, PricingTable

logger = logging.getLogger(__name__)

PRICING_KEYS = ("input", "output", "cache_read", "cache_write")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    budget: Optional[float] = None
    pricing: PricingTable = DEFAULT_PRICING_TABLE

    def __post_init__(self):
        """Validate budget is positive when set."""
        if self.budget is not None and (not math.isfinite(self.budget) or self.budget <= 0):
            raise ValueError("budget must be a finite number > 0")

    def optimizer_config(self, budget: Optional[float] = None) -> OptimizerConfig:
        """Build the optimizer configuration, letting ``budget`` override the file value."""
        return OptimizerConfig(budget=budget if budget is not None else self.budget)


def load_config(path: str) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Strict validation ensures no silent misconfigurations, such as a typo in
    a rate name silently falling back to default pricing.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        logger.info("Config file %s is empty, using defaults", path)
        return AppConfig()

    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'budget', 'pricing', 'aliases'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    budget = _parse_budget(raw_config.get('budget'))

    pricing_data = raw_config.get('pricing') or {}
    if not isinstance(pricing_data, dict):
        raise ValueError("'pricing' must be a dictionary")

    prices = {}
    for model, entry_data in pricing_data.items():
        if not isinstance(entry_data, dict):
            raise ValueError(f"Pricing for '{model}' must be a dictionary")
        prices[str(model)] = _parse_pricing_entry(entry_data, f"pricing.{model}")

    aliases_data = raw_config.get('aliases') or {}
    if not isinstance(aliases_data, dict):
        raise ValueError("'aliases' must be a dictionary")

    aliases = {}
    for alias, target in aliases_data.items():
        if not isinstance(target, str):
            raise ValueError(f"Alias '{alias}' must map to a model name")
        aliases[str(alias)] = target

    pricing = DEFAULT_PRICING_TABLE.extend(prices=prices, aliases=aliases)
    for alias, target in pricing.aliases.items():
        if target not in pricing.prices:
            raise ValueError(f"Alias '{alias}' points to unknown model '{target}'")

    logger.info(
        "Loaded config from %s (budget=%s, %d pricing overrides, %d aliases)",
        path, budget, len(prices), len(aliases)
    )
    return AppConfig(budget=budget, pricing=pricing)


def _parse_budget(value: Any) -> Optional[float]:
    if value is None:
        return None
    if (isinstance(value, bool) or not isinstance(value, (int, float))
            or not math.isfinite(value) or value <= 0):
        raise ValueError("'budget' must be a finite number > 0")
    return float(value)


def _parse_pricing_entry(data: Dict, path: str) -> PricingEntry:
    """Parse and validate one pricing entry.

    Args:
        data: Pricing entry data
        path: Path for error messages

    Returns:
        Validated PricingEntry

    Raises:
        ValueError: If the entry is invalid
    """
    unknown_keys = set(data.keys()) - set(PRICING_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    rates = {}
    for key in PRICING_KEYS:
        if key not in data:
            raise ValueError(f"Missing required '{key}' in {path}")
        rate = data[key]
        if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate < 0:
            raise ValueError(f"'{key}' in {path} must be a number >= 0")
        rates[key] = float(rate)

    return PricingEntry(**rates)
