"""
Cost analysis engine.

Computes per-record costs and aggregates them into totals, per-model and
per-day statistics, then runs anomaly detection over the aggregates.

Analysis is deterministic and side-effect free:
1. A single pass over the records builds all buckets
2. Hit rates are derived from token sums afterwards
3. Running it twice on the same records gives identical results
"""

import logging
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .anomaly import AnomalyEvent, detect_anomalies
from .models import CacheStats, DailyStats, ModelStats, UsageRecord, cache_hit_rate
from .pricing import DEFAULT_PRICING_TABLE, CostBreakdown, PricingTable, calculate_cost

logger = logging.getLogger(__name__)

UNKNOWN_KEY = "unknown"


@dataclass(frozen=True)
class Analysis:
    """Complete analysis result for a set of usage records.

    ``models`` and ``daily`` are read-only mappings and ``anomalies`` is a
    tuple, so a result can be shared without being modified.
    """
    request_count: int
    totals: CostBreakdown
    models: Mapping[str, ModelStats]
    daily: Mapping[str, DailyStats]
    cache_stats: CacheStats
    anomalies: Tuple[AnomalyEvent, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "models", MappingProxyType(dict(self.models)))
        object.__setattr__(self, "daily", MappingProxyType(dict(self.daily)))
        object.__setattr__(self, "anomalies", tuple(self.anomalies))

    @property
    def total_cost(self) -> float:
        """Total billed cost across all records."""
        return self.totals.total


@dataclass
class _ModelBucket:
    request_count: int = 0
    costs: CostBreakdown = CostBreakdown()
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_tokens: int = 0
    cache_creation_tokens: int = 0

    def freeze(self) -> ModelStats:
        return ModelStats(
            request_count=self.request_count,
            total_cost=self.costs.total,
            costs=self.costs,
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            cached_tokens=self.cached_tokens,
            cache_creation_tokens=self.cache_creation_tokens,
            cache_hit_rate=cache_hit_rate(self.cached_tokens, self.prompt_tokens),
        )


@dataclass
class _DayBucket:
    request_count: int = 0
    total_cost: float = 0.0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_tokens: int = 0

    def freeze(self) -> DailyStats:
        return DailyStats(
            request_count=self.request_count,
            total_cost=self.total_cost,
            tokens=self.prompt_tokens + self.completion_tokens,
            prompt_tokens=self.prompt_tokens,
            cached_tokens=self.cached_tokens,
            cache_hit_rate=cache_hit_rate(self.cached_tokens, self.prompt_tokens),
        )


def analyze(
    records: Sequence[UsageRecord],
    pricing: PricingTable = DEFAULT_PRICING_TABLE
) -> Analysis:
    """Analyze a list of normalized usage records.

    Args:
        records: Parsed usage records
        pricing: Pricing table used to cost each record

    Returns:
        Analysis with totals, per-model and per-day stats, cache stats and
        anomalies. Empty input yields a zero-valued Analysis.
    """
    totals = CostBreakdown()
    models: Dict[str, _ModelBucket] = {}
    daily: Dict[str, _DayBucket] = {}
    total_prompt = 0
    total_cached = 0
    total_cache_creation = 0
    total_completion = 0

    for record in records:
        cost = calculate_cost(record, pricing)
        totals = totals + cost

        total_prompt += record.prompt_tokens
        total_cached += record.cached_tokens
        total_cache_creation += record.cache_creation_tokens
        total_completion += record.completion_tokens

        model = models.setdefault(record.model or UNKNOWN_KEY, _ModelBucket())
        model.request_count += 1
        model.costs = model.costs + cost
        model.prompt_tokens += record.prompt_tokens
        model.completion_tokens += record.completion_tokens
        model.cached_tokens += record.cached_tokens
        model.cache_creation_tokens += record.cache_creation_tokens

        day = daily.setdefault((record.timestamp or "")[:10] or UNKNOWN_KEY, _DayBucket())
        day.request_count += 1
        day.total_cost += cost.total
        day.prompt_tokens += record.prompt_tokens
        day.completion_tokens += record.completion_tokens
        day.cached_tokens += record.cached_tokens

    model_stats = {name: bucket.freeze() for name, bucket in models.items()}
    daily_stats = {day: bucket.freeze() for day, bucket in daily.items()}

    cache_stats = CacheStats(
        hit_rate=cache_hit_rate(total_cached, total_prompt),
        total_cached=total_cached,
        total_prompt=total_prompt,
        total_cache_creation=total_cache_creation,
        total_completion=total_completion,
        savings=max(0.0, totals.without_cache - totals.total),
    )

    anomalies = detect_anomalies(daily_stats, model_stats)

    logger.debug(
        "Analyzed %d records: %d models, %d days, total $%.4f",
        len(records), len(model_stats), len(daily_stats), totals.total
    )

    return Analysis(
        request_count=len(records),
        totals=totals,
        models=model_stats,
        daily=daily_stats,
        cache_stats=cache_stats,
        anomalies=anomalies,
    )


def get_daily_trend(analysis: Analysis) -> List[Dict[str, Any]]:
    """Daily stats sorted by date ascending, each as ``{"date": ..., **stats}``."""
    return [
        {"date": day, **asdict(stats)}
        for day, stats in sorted(analysis.daily.items())
    ]


def get_model_ranking(analysis: Analysis) -> List[Dict[str, Any]]:
    """Model stats sorted by total cost descending, each as ``{"model": ..., **stats}``."""
    ranked = sorted(analysis.models.items(), key=lambda item: item[1].total_cost, reverse=True)
    return [{"model": model, **asdict(stats)} for model, stats in ranked]
