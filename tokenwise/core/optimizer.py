"""
Cost optimization recommendations.

Generates actionable suggestions from an Analysis.

Rule Order:
1. Cache hit rate - Prompt caching is the cheapest win
2. Model switching - Cheaper alternatives for expensive models
3. Cache key rotation - Cache written but never read back
4. Budget - Projected monthly spend against the configured budget
5. Anomalies - Cache drops and cost spikes passed through as alerts

The result is stably sorted by priority, so recommendations of equal
priority keep the rule order above.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .analyzer import Analysis
from .anomaly import AnomalyType
from .pricing import DEFAULT_PRICING_TABLE, PricingTable

DAYS_PER_MONTH = 30

# Cheaper alternatives per model, cheapest-preference first
CHEAPER_ALTERNATIVES: Dict[str, List[str]] = {
    "claude-opus-4-6": ["claude-sonnet-4-6", "claude-3.5-haiku"],
    "claude-opus-4-20250514": ["claude-sonnet-4-6", "claude-3.5-haiku"],
    "gpt-4": ["gpt-4o", "gpt-4o-mini"],
    "gpt-4-turbo": ["gpt-4o", "gpt-4o-mini"],
    "gpt-4o": ["gpt-4o-mini"],
    "gpt-5.2": ["gpt-4o", "gpt-4o-mini"],
    "claude-sonnet-4-6": ["claude-3.5-haiku"],
    "claude-3.5-sonnet": ["claude-3.5-haiku"],
}


class Priority(Enum):
    """Recommendation priority, most urgent first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class RecommendationType(Enum):
    """Which rule produced a recommendation."""
    CACHE = "cache"
    MODEL_SWITCH = "model_switch"
    CACHE_KEYS = "cache_keys"
    BUDGET = "budget"
    ANOMALY = "anomaly"


@dataclass(frozen=True)
class Recommendation:
    """A single cost-optimization suggestion."""
    type: RecommendationType
    priority: Priority
    title: str
    description: str
    action: str
    savings: Optional[str] = None


@dataclass(frozen=True)
class OptimizerConfig:
    """Configuration for recommendation rules."""
    budget: Optional[float] = None  # Monthly budget in USD

    def __post_init__(self):
        """Validate budget is positive when set."""
        if self.budget is not None and (not math.isfinite(self.budget) or self.budget <= 0):
            raise ValueError("budget must be a finite number > 0")


def optimize(
    analysis: Analysis,
    config: Optional[OptimizerConfig] = None,
    pricing: PricingTable = DEFAULT_PRICING_TABLE
) -> List[Recommendation]:
    """Generate prioritized recommendations for an analysis.

    Args:
        analysis: Output of analyze()
        config: Optional optimizer configuration (monthly budget)
        pricing: Pricing table used to compare model rates

    Returns:
        Recommendations sorted by priority (critical first)
    """
    config = config or OptimizerConfig()
    recommendations: List[Recommendation] = []

    recommendations.extend(_recommend_cache_optimizations(analysis))
    recommendations.extend(_recommend_model_switching(analysis, pricing))
    recommendations.extend(_recommend_cache_key_fix(analysis))
    if config.budget is not None:
        recommendations.extend(_recommend_budget_alerts(analysis, config.budget))
    else:
        recommendations.extend(_recommend_spending_summary(analysis))
    recommendations.extend(_recommend_from_anomalies(analysis))

    return sorted(recommendations, key=lambda r: PRIORITY_RANK.get(r.priority, PRIORITY_RANK[Priority.LOW]))


def _recommend_cache_optimizations(analysis: Analysis) -> List[Recommendation]:
    stats = analysis.cache_stats

    if stats.hit_rate < 20 and stats.total_prompt > 10000:
        return [Recommendation(
            type=RecommendationType.CACHE,
            priority=Priority.HIGH,
            title="Very Low Cache Hit Rate",
            description=f"Cache hit rate is only {stats.hit_rate:.1f}%. Most prompt tokens are not being cached.",
            action=(
                "Enable sticky sessions to route requests to the same endpoint. "
                "Use consistent system prompts. Consider prompt caching features."
            ),
            savings=f"Potential savings: up to ${stats.savings * 3:.2f}/period with better caching",
        )]
    if stats.hit_rate < 50 and stats.total_prompt > 5000:
        return [Recommendation(
            type=RecommendationType.CACHE,
            priority=Priority.MEDIUM,
            title="Cache Hit Rate Below 50%",
            description=f"Cache hit rate is {stats.hit_rate:.1f}%. There's room for improvement.",
            action=(
                "Use sticky sessions to maintain cache affinity. "
                "Keep system prompts and common prefixes consistent across requests."
            ),
            savings=f"Current cache savings: ${stats.savings:.4f}. Could potentially double with optimization.",
        )]
    return []


def _recommend_model_switching(analysis: Analysis, pricing: PricingTable) -> List[Recommendation]:
    recommendations = []
    for model, stats in analysis.models.items():
        current = pricing.prices.get(model)
        alternatives = CHEAPER_ALTERNATIVES.get(model)
        if current is None or not alternatives or current.input <= 0:
            continue

        for alternative in alternatives:
            candidate = pricing.prices.get(alternative)
            if candidate is None:
                continue

            savings_ratio = 1 - (candidate.input / current.input)
            if savings_ratio <= 0.3:
                continue
            estimated_savings = stats.total_cost * savings_ratio
            if estimated_savings <= 0.001:
                continue

            recommendations.append(Recommendation(
                type=RecommendationType.MODEL_SWITCH,
                priority=Priority.MEDIUM if estimated_savings > 0.1 else Priority.LOW,
                title=f"Consider {alternative} instead of {model}",
                description=(
                    f'"{model}" costs ${current.input:g}/M input tokens. '
                    f'"{alternative}" costs ${candidate.input:g}/M ({savings_ratio * 100:.0f}% cheaper).'
                ),
                action=(
                    f"For simpler tasks currently using {model}, try {alternative}. "
                    "Evaluate quality vs cost trade-off for your use case."
                ),
                savings=(
                    f"Estimated savings: ${estimated_savings:.4f}/period "
                    f"if all {model} requests switch to {alternative}"
                ),
            ))
            break
    return recommendations


def _recommend_cache_key_fix(analysis: Analysis) -> List[Recommendation]:
    stats = analysis.cache_stats
    if stats.total_cache_creation > 5000 and stats.total_cached < stats.total_cache_creation * 0.3:
        return [Recommendation(
            type=RecommendationType.CACHE_KEYS,
            priority=Priority.HIGH,
            title="Cache Created But Not Reused",
            description=(
                f"{stats.total_cache_creation:,} tokens were written to cache, but only "
                f"{stats.total_cached:,} tokens were read back. Cache is being wasted."
            ),
            action=(
                "Check if API keys are being rotated too frequently (each key may have its own cache). "
                "Ensure requests use consistent prefixes. Verify provider-side caching is enabled."
            ),
            savings="Wasted cache write cost: estimate based on cache_creation without reuse",
        )]
    return []


def _recommend_budget_alerts(analysis: Analysis, monthly_budget: float) -> List[Recommendation]:
    day_count = len(analysis.daily)
    if day_count == 0:
        return []

    daily_avg = analysis.total_cost / day_count
    projected_monthly = daily_avg * DAYS_PER_MONTH

    if projected_monthly > monthly_budget:
        overage_percent = ((projected_monthly / monthly_budget) - 1) * 100
        return [Recommendation(
            type=RecommendationType.BUDGET,
            priority=Priority.CRITICAL if projected_monthly > monthly_budget * 1.5 else Priority.HIGH,
            title="Budget Alert",
            description=(
                f"Projected monthly spend: ${projected_monthly:.2f} "
                f"({overage_percent:.0f}% over ${monthly_budget:,.2f} budget)"
            ),
            action=(
                f"Current daily average: ${daily_avg:.4f}/day. To stay within budget, "
                f"reduce to ${monthly_budget / DAYS_PER_MONTH:.4f}/day."
            ),
            savings=f"Need to reduce by ${projected_monthly - monthly_budget:.2f}/month",
        )]
    if projected_monthly > monthly_budget * 0.8:
        return [Recommendation(
            type=RecommendationType.BUDGET,
            priority=Priority.MEDIUM,
            title="Approaching Budget Limit",
            description=(
                f"Projected monthly spend: ${projected_monthly:.2f} "
                f"({projected_monthly / monthly_budget * 100:.0f}% of ${monthly_budget:,.2f} budget)"
            ),
            action="Monitor spending closely. Consider implementing the optimization recommendations above.",
        )]
    return []


def _recommend_spending_summary(analysis: Analysis) -> List[Recommendation]:
    if analysis.total_cost <= 1.0:
        return []

    day_count = len(analysis.daily)
    daily_avg = analysis.total_cost / day_count if day_count else analysis.total_cost
    projected_monthly = daily_avg * DAYS_PER_MONTH
    return [Recommendation(
        type=RecommendationType.BUDGET,
        priority=Priority.LOW,
        title="Spending Summary",
        description=f"Daily average: ${daily_avg:.4f}. Projected monthly: ${projected_monthly:.2f}.",
        action="Set a budget with --budget to enable budget alerts.",
    )]


def _recommend_from_anomalies(analysis: Analysis) -> List[Recommendation]:
    recommendations = []
    for anomaly in analysis.anomalies:
        if anomaly.type == AnomalyType.CACHE_DROP:
            recommendations.append(Recommendation(
                type=RecommendationType.ANOMALY,
                priority=Priority.HIGH,
                title="Cache Hit Rate Drop Detected",
                description=anomaly.message,
                action="Investigate if API keys were rotated, sessions changed, or prompt templates modified.",
            ))
        elif anomaly.type == AnomalyType.COST_SPIKE:
            recommendations.append(Recommendation(
                type=RecommendationType.ANOMALY,
                priority=Priority.HIGH,
                title="Cost Spike Detected",
                description=anomaly.message,
                action="Review requests on this day for unusual patterns or runaway loops.",
            ))
    return recommendations
