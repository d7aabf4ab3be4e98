"""
Anomaly detection for cost patterns.

Identifies unusual spending and caching behavior in aggregated usage.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .models import DailyStats, ModelStats

logger = logging.getLogger(__name__)

# Fixed thresholds
CACHE_DROP_MIN_PREVIOUS_RATE = 40.0
CACHE_DROP_RATIO = 0.5
COST_SPIKE_MIN_DAYS = 3
COST_SPIKE_MULTIPLIER = 2.5
COST_SPIKE_MIN_COST = 0.01
LOW_REUSE_MIN_CREATION = 1000
LOW_REUSE_RATIO = 0.2


class AnomalyType(Enum):
    """Kinds of detected anomalies."""
    CACHE_DROP = "cache_drop"
    COST_SPIKE = "cost_spike"
    LOW_CACHE_REUSE = "low_cache_reuse"


class AnomalySeverity(Enum):
    """Severity levels for detected anomalies."""
    WARNING = "warning"
    ALERT = "alert"


@dataclass(frozen=True)
class AnomalyEvent:
    """Detected anomaly with details and explanation."""
    type: AnomalyType
    severity: AnomalySeverity
    message: str
    observed_value: float
    threshold: float
    day: Optional[str] = None
    model: Optional[str] = None


def detect_anomalies(
    daily: Dict[str, DailyStats],
    models: Dict[str, ModelStats],
) -> List[AnomalyEvent]:
    """Detect anomalies in per-day and per-model aggregates.

    Rules, reported in this order:
    - cache_drop (WARNING): previous day's hit rate > 40% and the current
      day's hit rate < 50% of it
    - cost_spike (ALERT): with at least 3 days, a day costing more than
      2.5 * the mean daily cost and more than $0.01
    - low_cache_reuse (WARNING): a model wrote > 1000 cache tokens but read
      back fewer than 20% of them

    Args:
        daily: Per-day stats keyed by YYYY-MM-DD
        models: Per-model stats keyed by model name

    Returns:
        List of detected anomalies (empty if none)
    """
    anomalies = []
    days = sorted(daily)

    # Cache hit rate drops between consecutive days
    for previous_day, day in zip(days, days[1:]):
        previous_rate = daily[previous_day].cache_hit_rate
        current_rate = daily[day].cache_hit_rate
        threshold = previous_rate * CACHE_DROP_RATIO
        if previous_rate > CACHE_DROP_MIN_PREVIOUS_RATE and current_rate < threshold:
            anomalies.append(AnomalyEvent(
                type=AnomalyType.CACHE_DROP,
                severity=AnomalySeverity.WARNING,
                day=day,
                observed_value=current_rate,
                threshold=threshold,
                message=f"Cache hit rate dropped from {previous_rate:.1f}% to {current_rate:.1f}% on {day}"
            ))

    # Daily cost spikes
    if len(days) >= COST_SPIKE_MIN_DAYS:
        costs = [daily[day].total_cost for day in days]
        avg_cost = sum(costs) / len(costs)
        threshold = avg_cost * COST_SPIKE_MULTIPLIER
        for day, cost in zip(days, costs):
            if cost > threshold and cost > COST_SPIKE_MIN_COST:
                anomalies.append(AnomalyEvent(
                    type=AnomalyType.COST_SPIKE,
                    severity=AnomalySeverity.ALERT,
                    day=day,
                    observed_value=cost,
                    threshold=threshold,
                    message=f"Cost spike on {day}: ${cost:.4f} (avg: ${avg_cost:.4f})"
                ))

    # Cache written but rarely read back
    for model, stats in models.items():
        threshold = stats.cache_creation_tokens * LOW_REUSE_RATIO
        if stats.cache_creation_tokens > LOW_REUSE_MIN_CREATION and stats.cached_tokens < threshold:
            anomalies.append(AnomalyEvent(
                type=AnomalyType.LOW_CACHE_REUSE,
                severity=AnomalySeverity.WARNING,
                model=model,
                observed_value=stats.cached_tokens,
                threshold=threshold,
                message=(
                    f'Model "{model}" created {stats.cache_creation_tokens:,} cache tokens '
                    f"but only read {stats.cached_tokens:,}; cache is being wasted"
                )
            ))

    for anomaly in anomalies:
        logger.info("Anomaly detected: %s", anomaly.message)
    return anomalies
