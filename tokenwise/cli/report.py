"""
Report rendering for analysis results.

Terminal output uses rich; JSON export mirrors the Analysis structure.
"""

import json
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tokenwise.core.analyzer import Analysis, get_daily_trend, get_model_ranking
from tokenwise.core.anomaly import AnomalySeverity
from tokenwise.core.optimizer import Priority, Recommendation

PRIORITY_STYLES = {
    Priority.CRITICAL: "bold red",
    Priority.HIGH: "bold red",
    Priority.MEDIUM: "bold yellow",
    Priority.LOW: "dim",
}

RULE_WIDTH = 58


def format_cost(cost: float) -> str:
    """Format a USD cost with precision that scales with its size."""
    if cost >= 1:
        return f"${cost:.2f}"
    if cost >= 0.01:
        return f"${cost:.4f}"
    return f"${cost:.6f}"


def format_tokens(count: int) -> str:
    """Format a token count as 1.2M / 3.4K / 512."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def _rate_style(rate: float) -> str:
    if rate > 60:
        return "green"
    if rate > 30:
        return "yellow"
    return "red"


def _progress_bar(percent: float, width: int = 20) -> str:
    filled = max(0, min(width, round(percent / 100 * width)))
    style = "green"
    if percent < 30:
        style = "red"
    elif percent < 60:
        style = "yellow"
    return f"[{style}]{'█' * filled}[/][dim]{'░' * (width - filled)}[/]"


def print_report(console: Console, analysis: Analysis, recommendations: List[Recommendation]) -> None:
    """Print the full terminal report."""
    console.print("\n[bold cyan]TokenWise[/] [dim]AI API Cost Intelligence[/]")
    _print_summary(console, analysis)
    _print_model_table(console, analysis)
    _print_daily_trend(console, analysis)
    _print_anomalies(console, analysis)
    _print_recommendation_list(console, recommendations)
    console.print("\n[dim]" + "─" * RULE_WIDTH + "[/]")


def print_recommendations(console: Console, analysis: Analysis, recommendations: List[Recommendation]) -> None:
    """Print the optimization report only."""
    console.print("\n[bold cyan]OPTIMIZATION REPORT[/]")
    console.print("[dim]" + "─" * RULE_WIDTH + "[/]")
    console.print(
        f"[dim]  Analyzed {analysis.request_count} requests across {len(analysis.models)} models[/]\n"
    )

    if not recommendations:
        console.print("  [bold green]✓ No optimization issues found. Your usage looks great![/]\n")
        return

    for index, rec in enumerate(recommendations, start=1):
        _print_recommendation(console, rec, prefix=f"{index}. ")

    console.print("[dim]" + "─" * RULE_WIDTH + "[/]")
    console.print(f"[dim]  {len(recommendations)} recommendation(s) generated by TokenWise[/]\n")


def _print_summary(console: Console, analysis: Analysis) -> None:
    totals = analysis.totals
    stats = analysis.cache_stats
    avg_cost = analysis.total_cost / analysis.request_count if analysis.request_count else 0.0

    console.print("\n[bold]COST SUMMARY[/]")
    console.print("[dim]" + "─" * RULE_WIDTH + "[/]")
    console.print(f"  Total Spend:         [bold]{format_cost(analysis.total_cost)}[/]")
    console.print(f"  Requests:            [bold]{analysis.request_count}[/]")
    console.print(f"  Avg Cost/Request:    {format_cost(avg_cost)}")
    console.print(f"  Cache Savings:       [green]{format_cost(stats.savings)}[/]")
    console.print()
    console.print("  [dim]Cost Breakdown:[/]")
    console.print(f"    Input:        {format_cost(totals.input)}  [dim](prompt tokens)[/]")
    console.print(f"    Output:       {format_cost(totals.output)}  [dim](completion tokens)[/]")
    console.print(f"    Cache Read:   {format_cost(totals.cache_read)}  [dim](cached prompts)[/]")
    console.print(f"    Cache Write:  {format_cost(totals.cache_write)}  [dim](cache creation)[/]")
    console.print()
    console.print(f"  Cache Hit Rate:  {_progress_bar(stats.hit_rate)} {stats.hit_rate:.1f}%")
    console.print(
        f"    [dim]Cached: {format_tokens(stats.total_cached)} / "
        f"{format_tokens(stats.total_prompt)} prompt tokens[/]"
    )


def _print_model_table(console: Console, analysis: Analysis) -> None:
    ranking = get_model_ranking(analysis)
    if not ranking:
        return

    table = Table(title="MODEL BREAKDOWN", title_justify="left", title_style="bold")
    table.add_column("Model")
    table.add_column("Requests", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cache Hit", justify="right")

    for entry in ranking:
        rate = entry["cache_hit_rate"]
        table.add_row(
            escape(entry["model"]),
            str(entry["request_count"]),
            format_cost(entry["total_cost"]),
            format_tokens(entry["prompt_tokens"] + entry["completion_tokens"]),
            f"[{_rate_style(rate)}]{rate:.1f}%[/]",
        )
    console.print()
    console.print(table)


def _print_daily_trend(console: Console, analysis: Analysis) -> None:
    trend = get_daily_trend(analysis)
    if not trend:
        return

    table = Table(title="DAILY TREND", title_justify="left", title_style="bold")
    table.add_column("Date")
    table.add_column("Requests", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cache Rate", justify="right")
    table.add_column("")

    max_cost = max(day["total_cost"] for day in trend)
    for day in trend:
        bar_length = round(day["total_cost"] / max_cost * 15) if max_cost > 0 else 0
        rate = day["cache_hit_rate"]
        table.add_row(
            escape(day["date"]),
            str(day["request_count"]),
            format_cost(day["total_cost"]),
            format_tokens(day["tokens"]),
            f"[{_rate_style(rate)}]{rate:.1f}%[/]",
            f"[cyan]{'▓' * bar_length}[/][dim]{'░' * (15 - bar_length)}[/]",
        )
    console.print()
    console.print(table)


def _print_anomalies(console: Console, analysis: Analysis) -> None:
    if not analysis.anomalies:
        return

    console.print("\n[bold red]ANOMALIES DETECTED[/]")
    console.print("[dim]" + "─" * RULE_WIDTH + "[/]")
    for anomaly in analysis.anomalies:
        style = "red" if anomaly.severity == AnomalySeverity.ALERT else "yellow"
        console.print(f"  [{style}]●[/]  {escape(anomaly.message)}")


def _print_recommendation_list(console: Console, recommendations: List[Recommendation]) -> None:
    if not recommendations:
        console.print("\n[bold green]✓ No optimization issues detected[/]")
        return

    console.print("\n[bold]OPTIMIZATION RECOMMENDATIONS[/]")
    console.print("[dim]" + "─" * RULE_WIDTH + "[/]")
    for rec in recommendations:
        _print_recommendation(console, rec)


def _print_recommendation(console: Console, rec: Recommendation, prefix: str = "") -> None:
    style = PRIORITY_STYLES.get(rec.priority, "dim")
    console.print(f"\n  [bold]{prefix}{escape(rec.title)}[/]  [{style}]{rec.priority.value.upper()}[/]")
    console.print(f"  [dim]{escape(rec.description)}[/]")
    console.print(f"  → {escape(rec.action)}")
    if rec.savings:
        console.print(f"  [green]{escape(rec.savings)}[/]")


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _to_plain(value: Any) -> Any:
    return json.loads(json.dumps(value, default=_json_default))


def analysis_to_dict(analysis: Analysis, recommendations: List[Recommendation]) -> Dict[str, Any]:
    """Convert an analysis and its recommendations into JSON-ready data."""
    return _to_plain({
        "summary": {
            "totalCost": analysis.total_cost,
            "requestCount": analysis.request_count,
            "avgCostPerRequest": (
                analysis.total_cost / analysis.request_count if analysis.request_count else 0.0
            ),
            "cacheSavings": analysis.cache_stats.savings,
            "cacheHitRate": analysis.cache_stats.hit_rate,
        },
        "costBreakdown": asdict(analysis.totals),
        "cacheStats": asdict(analysis.cache_stats),
        "models": {name: asdict(stats) for name, stats in analysis.models.items()},
        "daily": {day: asdict(stats) for day, stats in analysis.daily.items()},
        "anomalies": [asdict(anomaly) for anomaly in analysis.anomalies],
        "recommendations": [asdict(rec) for rec in recommendations],
    })


def to_json(analysis: Analysis, recommendations: List[Recommendation]) -> str:
    """Render the full analysis as an indented JSON document."""
    return json.dumps(analysis_to_dict(analysis, recommendations), indent=2)


def recommendations_to_json(recommendations: List[Recommendation]) -> str:
    """Render recommendations as an indented JSON list."""
    return json.dumps([asdict(rec) for rec in recommendations], indent=2, default=_json_default)
