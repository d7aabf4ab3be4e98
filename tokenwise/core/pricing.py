"""
Pricing calculations and rate management.

Handles cost computations for LLM models, including prompt-cache reads and writes.
Rates are USD per 1M tokens.
"""

import logging
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional

if TYPE_CHECKING:
    from .models import UsageRecord

logger = logging.getLogger(__name__)

TOKENS_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class PricingEntry:
    """Per-1M-token rates for a specific model."""
    input: float
    output: float
    cache_read: float
    cache_write: float

    def __post_init__(self):
        """Validate rates are non-negative."""
        for rate in fields(self):
            if getattr(self, rate.name) < 0:
                raise ValueError(f"{rate.name} rate cannot be negative")


@dataclass(frozen=True)
class CostBreakdown:
    """USD cost of one or more requests, split by billing component.

    ``without_cache`` is the hypothetical cost had no caching been used. It is
    only used to estimate cache savings and is never part of ``total``.
    """
    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0
    total: float = 0.0
    without_cache: float = 0.0

    def __add__(self, other: "CostBreakdown") -> "CostBreakdown":
        if not isinstance(other, CostBreakdown):
            return NotImplemented
        return CostBreakdown(
            input=self.input + other.input,
            output=self.output + other.output,
            cache_read=self.cache_read + other.cache_read,
            cache_write=self.cache_write + other.cache_write,
            total=self.total + other.total,
            without_cache=self.without_cache + other.without_cache,
        )


@dataclass(frozen=True)
class PricingTable:
    """Immutable pricing table with alias and fuzzy-prefix resolution.

    Keys are stored lower-cased. Declaration order of ``prices`` is kept because
    fuzzy prefix matching returns the first key that matches.
    """
    prices: Mapping[str, PricingEntry]
    aliases: Mapping[str, str] = field(default_factory=dict)
    default: PricingEntry = PricingEntry(input=3.00, output=15.00, cache_read=0.30, cache_write=3.75)

    def __post_init__(self):
        prices = {name.strip().lower(): entry for name, entry in self.prices.items()}
        aliases = {
            alias.strip().lower(): target.strip().lower()
            for alias, target in self.aliases.items()
        }
        object.__setattr__(self, "prices", MappingProxyType(prices))
        object.__setattr__(self, "aliases", MappingProxyType(aliases))

    def get_pricing(self, model: Optional[str]) -> PricingEntry:
        """Get pricing for a model. Never fails.

        Resolution order:
        1. Exact (case-insensitive, trimmed) match
        2. Alias redirect
        3. Same two steps with a ``provider/`` prefix stripped
        4. Fuzzy prefix match in declaration order
        5. Default mid-range entry

        Args:
            model: Model identifier as it appears in the logs

        Returns:
            PricingEntry for the model
        """
        name = (model or "").strip().lower()

        entry = self._lookup(name)
        if entry is not None:
            return entry

        if "/" in name:
            name = name.split("/", 1)[1]
            entry = self._lookup(name)
            if entry is not None:
                return entry

        # An empty name is a prefix of every key
        if name:
            for key, candidate in self.prices.items():
                if name.startswith(key) or key.startswith(name):
                    return candidate

        logger.debug("No pricing for model %r, using default rates", model)
        return self.default

    def _lookup(self, name: str) -> Optional[PricingEntry]:
        if name in self.prices:
            return self.prices[name]
        target = self.aliases.get(name)
        if target is not None:
            return self.prices.get(target)
        return None

    def extend(
        self,
        prices: Optional[Mapping[str, PricingEntry]] = None,
        aliases: Optional[Mapping[str, str]] = None,
    ) -> "PricingTable":
        """Return a new table with extra or overriding entries.

        Overridden models keep their original position; new ones are appended.
        """
        merged_prices = dict(self.prices)
        merged_prices.update({name.strip().lower(): entry for name, entry in (prices or {}).items()})
        merged_aliases = dict(self.aliases)
        merged_aliases.update(aliases or {})
        return PricingTable(prices=merged_prices, aliases=merged_aliases, default=self.default)


# Built-in pricing table
DEFAULT_PRICING_TABLE = PricingTable(
    prices={
        # Anthropic
        "claude-opus-4-20250514": PricingEntry(input=15.00, output=75.00, cache_read=1.50, cache_write=18.75),
        "claude-opus-4-6": PricingEntry(input=15.00, output=75.00, cache_read=1.50, cache_write=18.75),
        "claude-sonnet-4-20250514": PricingEntry(input=3.00, output=15.00, cache_read=0.30, cache_write=3.75),
        "claude-sonnet-4-6": PricingEntry(input=3.00, output=15.00, cache_read=0.30, cache_write=3.75),
        "claude-3.5-sonnet": PricingEntry(input=3.00, output=15.00, cache_read=0.30, cache_write=3.75),
        "claude-3-haiku": PricingEntry(input=0.25, output=1.25, cache_read=0.03, cache_write=0.30),
        "claude-3.5-haiku": PricingEntry(input=0.80, output=4.00, cache_read=0.08, cache_write=1.00),
        # OpenAI
        "gpt-4o": PricingEntry(input=2.50, output=10.00, cache_read=1.25, cache_write=2.50),
        "gpt-4o-mini": PricingEntry(input=0.15, output=0.60, cache_read=0.075, cache_write=0.15),
        "gpt-4-turbo": PricingEntry(input=10.00, output=30.00, cache_read=5.00, cache_write=10.00),
        "gpt-4": PricingEntry(input=30.00, output=60.00, cache_read=15.00, cache_write=30.00),
        "gpt-3.5-turbo": PricingEntry(input=0.50, output=1.50, cache_read=0.25, cache_write=0.50),
        "gpt-5.2": PricingEntry(input=5.00, output=20.00, cache_read=2.50, cache_write=5.00),
        # DeepSeek
        "deepseek-chat": PricingEntry(input=0.27, output=1.10, cache_read=0.07, cache_write=0.27),
        "deepseek-reasoner": PricingEntry(input=0.55, output=2.19, cache_read=0.14, cache_write=0.55),
    },
    aliases={
        "claude-opus": "claude-opus-4-6",
        "claude-sonnet": "claude-sonnet-4-6",
        "gpt4o": "gpt-4o",
        "gpt4o-mini": "gpt-4o-mini",
        "gpt-4o-2024": "gpt-4o",
    },
)


def get_pricing(model: Optional[str], table: PricingTable = DEFAULT_PRICING_TABLE) -> PricingEntry:
    """Get pricing for a model from ``table``, falling back to default rates."""
    return table.get_pricing(model)


def calculate_cost(record: "UsageRecord", table: PricingTable = DEFAULT_PRICING_TABLE) -> CostBreakdown:
    """Calculate the cost breakdown of a single usage record.

    Cached prompt tokens are billed at the cache-read rate only, so the input
    component covers ``prompt_tokens - cached_tokens`` floored at zero.

    Args:
        record: Normalized usage record
        table: Pricing table to price the record against

    Returns:
        CostBreakdown in USD
    """
    pricing = table.get_pricing(record.model)
    m = TOKENS_PER_MILLION

    uncached_prompt = max(0, record.prompt_tokens - record.cached_tokens)
    input_cost = (uncached_prompt / m) * pricing.input
    output_cost = (record.completion_tokens / m) * pricing.output
    cache_read_cost = (record.cached_tokens / m) * pricing.cache_read
    cache_write_cost = (record.cache_creation_tokens / m) * pricing.cache_write

    # Cache-creation tokens are billed at the full input rate in the no-cache case
    without_cache = (
        (record.prompt_tokens / m) * pricing.input
        + output_cost
        + (record.cache_creation_tokens / m) * pricing.input
    )

    return CostBreakdown(
        input=input_cost,
        output=output_cost,
        cache_read=cache_read_cost,
        cache_write=cache_write_cost,
        total=input_cost + output_cost + cache_read_cost + cache_write_cost,
        without_cache=without_cache,
    )
