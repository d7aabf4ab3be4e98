"""
Sample usage data for the demo command.

Generates realistic NewAPI-style records spread over the last week.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class SampleModel:
    """Traffic profile of one model in the generated data."""
    name: str
    weight: float
    prompt_range: Tuple[int, int]
    completion_range: Tuple[int, int]


SAMPLE_MODELS = [
    SampleModel("claude-opus-4-6", 0.15, (2000, 50000), (500, 4000)),
    SampleModel("claude-sonnet-4-6", 0.45, (1000, 30000), (200, 3000)),
    SampleModel("gpt-5.2", 0.25, (1500, 25000), (300, 2500)),
    SampleModel("gpt-4o-mini", 0.15, (500, 10000), (100, 1500)),
]

MODEL_WEIGHTS = [model.weight for model in SAMPLE_MODELS]


def generate_records(
    count: int = 110,
    seed: Optional[int] = None,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Generate sample usage records.

    Recent days get more traffic; some attempts on older days are skipped, so
    the result can hold fewer than ``count`` records.

    Args:
        count: Number of records to attempt
        seed: Random seed for reproducible output
        now: Reference time (defaults to the current UTC time)

    Returns:
        Raw records sorted by timestamp
    """
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)
    records = []

    for _ in range(count):
        model = rng.choices(SAMPLE_MODELS, weights=MODEL_WEIGHTS)[0]

        days_ago = rng.randint(0, 6)
        if rng.random() > 1 - days_ago / 10 and days_ago > 3:
            continue

        moment = (now - timedelta(days=days_ago)).replace(
            hour=rng.randint(8, 23), minute=rng.randint(0, 59), second=rng.randint(0, 59), microsecond=0
        )

        prompt_tokens = rng.randint(*model.prompt_range)
        completion_tokens = rng.randint(*model.completion_range)
        cached_tokens = 0
        cache_creation_tokens = 0

        caching_chance = 0.75 if "sonnet" in model.name else 0.55
        if rng.random() < caching_chance:
            if rng.random() < 0.6:
                # Cache hit
                cached_tokens = int(prompt_tokens * (0.3 + rng.random() * 0.6))
            else:
                # Cache write, sometimes with a partial hit
                cache_creation_tokens = int(prompt_tokens * (0.4 + rng.random() * 0.4))
                if rng.random() < 0.3:
                    cached_tokens = int(prompt_tokens * (0.1 + rng.random() * 0.2))

        records.append({
            "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "model": model.name,
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "cached_tokens": cached_tokens,
            "cache_creation_tokens": cache_creation_tokens,
        })

    records.sort(key=lambda r: r["timestamp"])
    return records
