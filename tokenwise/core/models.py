"""
Data models for the analysis pipeline.

Defines the canonical usage record and the aggregate statistics built from it.
"""

from dataclasses import dataclass

from .pricing import CostBreakdown


@dataclass(frozen=True)
class UsageRecord:
    """Canonical, format-agnostic record of a single API call.

    Every parsed log entry is normalized into this shape. Token fields are
    always non-negative ints; the parser never lets a missing value through.
    """
    timestamp: str
    model: str = "unknown"
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_tokens: int = 0
    cache_creation_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class ModelStats:
    """Aggregated usage and cost for one model."""
    request_count: int
    total_cost: float
    costs: CostBreakdown
    prompt_tokens: int
    completion_tokens: int
    cached_tokens: int
    cache_creation_tokens: int
    cache_hit_rate: float


@dataclass(frozen=True)
class DailyStats:
    """Aggregated usage and cost for one calendar day."""
    request_count: int
    total_cost: float
    tokens: int  # prompt + completion
    prompt_tokens: int
    cached_tokens: int
    cache_hit_rate: float


@dataclass(frozen=True)
class CacheStats:
    """Global prompt-cache statistics."""
    hit_rate: float
    total_cached: int
    total_prompt: int
    total_cache_creation: int
    total_completion: int
    savings: float


def cache_hit_rate(cached_tokens: int, prompt_tokens: int) -> float:
    """Percentage of prompt tokens served from cache, 0 when there is no prompt."""
    if prompt_tokens <= 0:
        return 0.0
    return (cached_tokens / prompt_tokens) * 100
