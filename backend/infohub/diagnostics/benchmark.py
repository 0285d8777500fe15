#!/usr/bin/env python3
"""
Load benchmark for a running School Info Hub server.

Sends N requests to each endpoint with a bounded number in flight, then
rates every latency and error metric against thresholds.

Usage:
    infohub-bench --requests 50 --concurrency 10
    infohub-bench --output bench.json
"""

import argparse
import asyncio
import json
import math
import statistics
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import httpx
from rich.console import Console
from rich.table import Table

DEFAULT_URL = "http://localhost:8000"

DEFAULT_ENDPOINTS = [
    "/api/v1/health",
    "/api/v1/public/info",
    "/api/v1/public/announcements",
    "/api/v1/public/events",
    "/api/v1/public/newsletters",
    "/api/v1/public/resources",
]


class Rating(str, Enum):
    PASS = "pass"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Threshold:
    """Values at or below ``warning`` pass; above ``critical`` is critical"""
    warning: float
    critical: float

    def rate(self, value: float) -> Rating:
        if value > self.critical:
            return Rating.CRITICAL
        if value > self.warning:
            return Rating.WARNING
        return Rating.PASS


DEFAULT_THRESHOLDS: Dict[str, Threshold] = {
    "avg_ms": Threshold(200, 500),
    "p95_ms": Threshold(500, 1000),
    "max_ms": Threshold(1000, 3000),
    "error_rate": Threshold(0.01, 0.05),
}


@dataclass
class EndpointStats:
    path: str
    requests: int
    errors: int
    min_ms: float
    avg_ms: float
    p50_ms: float
    p95_ms: float
    max_ms: float

    @property
    def error_rate(self) -> float:
        return self.errors / self.requests if self.requests else 0.0


@dataclass
class MetricRating:
    path: str
    metric: str
    value: float
    rating: Rating


@dataclass
class BenchmarkReport:
    base_url: str
    requests_per_endpoint: int
    concurrency: int
    endpoints: List[EndpointStats] = field(default_factory=list)
    ratings: List[MetricRating] = field(default_factory=list)
    score: float = 0.0
    recommendations: List[str] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")

    @property
    def exit_code(self) -> int:
        return 1 if any(r.rating == Rating.CRITICAL for r in self.ratings) else 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for entry, stats in zip(data["endpoints"], self.endpoints):
            entry["error_rate"] = round(stats.error_rate, 4)
        return data


def percentile(values: Sequence[float], pct: float) -> float:
    """Nearest-rank percentile; 0.0 for an empty sample"""
    if not values:
        return 0.0
    ordered = sorted(values)
    rank = max(1, math.ceil(pct / 100 * len(ordered)))
    return ordered[min(rank, len(ordered)) - 1]


def summarize(path: str, durations: List[float], errors: int) -> EndpointStats:
    requests = len(durations) + errors
    if not durations:
        return EndpointStats(path, requests, errors, 0.0, 0.0, 0.0, 0.0, 0.0)
    return EndpointStats(
        path=path,
        requests=requests,
        errors=errors,
        min_ms=round(min(durations), 2),
        avg_ms=round(statistics.mean(durations), 2),
        p50_ms=round(percentile(durations, 50), 2),
        p95_ms=round(percentile(durations, 95), 2),
        max_ms=round(max(durations), 2),
    )


def rate_endpoint(stats: EndpointStats, thresholds: Dict[str, Threshold]) -> List[MetricRating]:
    ratings = []
    for metric, threshold in thresholds.items():
        value = getattr(stats, metric)
        ratings.append(MetricRating(stats.path, metric, value, threshold.rate(value)))
    return ratings


def compute_score(ratings: Sequence[MetricRating]) -> float:
    if not ratings:
        return 0.0
    passed = sum(1 for r in ratings if r.rating == Rating.PASS)
    warnings = sum(1 for r in ratings if r.rating == Rating.WARNING)
    score = 100 * passed / len(ratings) - 5 * warnings
    return round(max(0.0, min(100.0, score)), 1)


def recommendations_for(ratings: Sequence[MetricRating]) -> List[str]:
    advice = []
    for r in ratings:
        if r.rating == Rating.PASS:
            continue
        level = "Critical" if r.rating == Rating.CRITICAL else "Warning"
        if r.metric == "error_rate":
            advice.append(f"{level}: {r.path} failed {r.value:.1%} of requests; check server logs")
        elif r.metric == "avg_ms":
            advice.append(f"{level}: {r.path} averages {r.value:.0f}ms; review its queries and caching")
        elif r.metric == "p95_ms":
            advice.append(f"{level}: {r.path} p95 is {r.value:.0f}ms; look for slow outliers")
        else:
            advice.append(f"{level}: {r.path} peaked at {r.value:.0f}ms")
    if not advice:
        advice.append("All endpoints are within thresholds")
    return advice


async def bench_endpoint(
    client: httpx.AsyncClient,
    path: str,
    requests: int,
    semaphore: asyncio.Semaphore,
) -> EndpointStats:
    durations: List[float] = []
    errors = 0

    async def one() -> None:
        nonlocal errors
        async with semaphore:
            start = time.perf_counter()
            try:
                response = await client.get(path)
            except httpx.HTTPError:
                errors += 1
                return
            if response.status_code >= 400:
                errors += 1
                return
            durations.append((time.perf_counter() - start) * 1000)

    await asyncio.gather(*(one() for _ in range(requests)))
    return summarize(path, durations, errors)


async def run_benchmark(
    base_url: str,
    endpoints: Sequence[str] = DEFAULT_ENDPOINTS,
    requests: int = 20,
    concurrency: int = 5,
    timeout: float = 10.0,
    thresholds: Optional[Dict[str, Threshold]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BenchmarkReport:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    report = BenchmarkReport(base_url=base_url, requests_per_endpoint=requests, concurrency=concurrency)
    semaphore = asyncio.Semaphore(concurrency)

    async with httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport) as client:
        for path in endpoints:
            stats = await bench_endpoint(client, path, requests, semaphore)
            report.endpoints.append(stats)
            report.ratings.extend(rate_endpoint(stats, thresholds))

    report.score = compute_score(report.ratings)
    report.recommendations = recommendations_for(report.ratings)
    return report


RATING_STYLE = {Rating.PASS: "green", Rating.WARNING: "yellow", Rating.CRITICAL: "red"}


def print_report(report: BenchmarkReport, console: Console) -> None:
    console.print(f"\n[bold]School Info Hub benchmark[/bold]  {report.base_url}")
    console.print(f"{report.requests_per_endpoint} requests per endpoint, concurrency {report.concurrency}")

    worst: Dict[str, Rating] = {}
    order = [Rating.PASS, Rating.WARNING, Rating.CRITICAL]
    for r in report.ratings:
        current = worst.get(r.path, Rating.PASS)
        worst[r.path] = max(current, r.rating, key=order.index)

    table = Table(show_header=True, header_style="bold")
    for column in ("Endpoint", "Min", "Avg", "P50", "P95", "Max", "Errors", "Rating"):
        table.add_column(column, justify="left" if column == "Endpoint" else "right")
    for s in report.endpoints:
        rating = worst.get(s.path, Rating.PASS)
        style = RATING_STYLE[rating]
        table.add_row(
            s.path,
            f"{s.min_ms:.0f}ms", f"{s.avg_ms:.0f}ms", f"{s.p50_ms:.0f}ms",
            f"{s.p95_ms:.0f}ms", f"{s.max_ms:.0f}ms",
            f"{s.errors}/{s.requests}",
            f"[{style}]{rating.value}[/{style}]",
        )
    console.print(table)

    console.print(f"\n[bold]Score: {report.score:.1f}/100[/bold]")
    for line in report.recommendations:
        console.print(f"  - {line}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark School Info Hub endpoints")
    parser.add_argument("--url", default=DEFAULT_URL, help="Base URL to benchmark")
    parser.add_argument("--requests", "-n", type=int, default=20, help="Requests per endpoint")
    parser.add_argument("--concurrency", "-c", type=int, default=5, help="Requests in flight at once")
    parser.add_argument("--timeout", type=float, default=10.0)
    parser.add_argument("--endpoint", action="append", dest="endpoints", help="Endpoint path (repeatable)")
    parser.add_argument("--output", "-o", help="Write the JSON report to this file")
    args = parser.parse_args(argv)

    report = asyncio.run(run_benchmark(
        args.url,
        endpoints=args.endpoints or DEFAULT_ENDPOINTS,
        requests=args.requests,
        concurrency=args.concurrency,
        timeout=args.timeout,
    ))

    print_report(report, Console())
    if args.output:
        with open(args.output, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
        print(f"Report written to {args.output}")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
