#!/usr/bin/env python3
"""
Quick health check for a running School Info Hub server.

Usage:
    infohub-health
    infohub-health --url https://hub.school.example --timeout 5 --json

Exit codes:
    0 = Server up and every endpoint reachable
    1 = Server down
    2 = Some endpoints returned errors or could not be reached
"""

import argparse
import asyncio
import json
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from rich.console import Console
from rich.table import Table

DEFAULT_URL = "http://localhost:8000"

DEFAULT_ENDPOINTS: List[Tuple[str, str]] = [
    ("API health", "/api/v1/health/live"),
    ("Readiness", "/api/v1/health/ready"),
    ("Public info", "/api/v1/public/info"),
    ("Public announcements", "/api/v1/public/announcements"),
    ("Public events", "/api/v1/public/events"),
    ("Public newsletters", "/api/v1/public/newsletters"),
    ("Announcements", "/api/v1/announcements"),
    ("Communications", "/api/v1/communications"),
    ("Resources", "/api/v1/resources"),
    ("Events", "/api/v1/events"),
    ("Notifications", "/api/v1/notifications"),
]


class EndpointStatus(str, Enum):
    HEALTHY = "HEALTHY"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    ERROR = "ERROR"
    UNREACHABLE = "UNREACHABLE"


STATUS_STYLE = {
    EndpointStatus.HEALTHY: "green",
    EndpointStatus.AUTH_REQUIRED: "cyan",
    EndpointStatus.ERROR: "yellow",
    EndpointStatus.UNREACHABLE: "red",
}


@dataclass
class EndpointResult:
    name: str
    path: str
    status: EndpointStatus
    status_code: Optional[int] = None
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


@dataclass
class HealthReport:
    base_url: str
    server_up: bool
    server_status_code: Optional[int] = None
    results: List[EndpointResult] = field(default_factory=list)
    checked_at: str = field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")

    def counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in EndpointStatus}
        for r in self.results:
            counts[r.status.value] += 1
        return counts

    @property
    def exit_code(self) -> int:
        if not self.server_up:
            return 1
        if any(r.status in (EndpointStatus.ERROR, EndpointStatus.UNREACHABLE) for r in self.results):
            return 2
        return 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["summary"] = self.counts()
        data["exitCode"] = self.exit_code
        return data


def classify(status_code: int) -> EndpointStatus:
    """2xx is healthy, 401 means the endpoint is up but wants a login"""
    if 200 <= status_code < 300:
        return EndpointStatus.HEALTHY
    if status_code == 401:
        return EndpointStatus.AUTH_REQUIRED
    return EndpointStatus.ERROR


async def check_server(client: httpx.AsyncClient) -> Tuple[bool, Optional[int]]:
    """Try the API health route, then the site root"""
    for path in ("/api/v1/health", "/"):
        try:
            response = await client.get(path)
        except httpx.HTTPError:
            continue
        if response.status_code < 500:
            return True, response.status_code
    return False, None


async def check_endpoint(client: httpx.AsyncClient, name: str, path: str) -> EndpointResult:
    start = time.perf_counter()
    try:
        response = await client.get(path)
    except httpx.TimeoutException:
        return EndpointResult(name, path, EndpointStatus.UNREACHABLE, error="Timed out")
    except httpx.HTTPError as e:
        return EndpointResult(name, path, EndpointStatus.UNREACHABLE, error=str(e) or type(e).__name__)

    elapsed = round((time.perf_counter() - start) * 1000, 1)
    return EndpointResult(name, path, classify(response.status_code), response.status_code, elapsed)


async def run_health_check(
    base_url: str,
    endpoints: Sequence[Tuple[str, str]] = DEFAULT_ENDPOINTS,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HealthReport:
    async with httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport) as client:
        server_up, server_status = await check_server(client)
        report = HealthReport(base_url=base_url, server_up=server_up, server_status_code=server_status)
        if not server_up:
            return report
        for name, path in endpoints:
            report.results.append(await check_endpoint(client, name, path))
    return report


def print_report(report: HealthReport, console: Console) -> None:
    console.print(f"\n[bold]School Info Hub health check[/bold]  {report.base_url}")
    console.print(f"Time: {report.checked_at}")

    if not report.server_up:
        console.print("[red]Server is not responding[/red]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Endpoint")
    table.add_column("Path")
    table.add_column("Status")
    table.add_column("Code", justify="right")
    table.add_column("Time", justify="right")
    for r in report.results:
        style = STATUS_STYLE[r.status]
        table.add_row(
            r.name,
            r.path,
            f"[{style}]{r.status.value}[/{style}]",
            str(r.status_code or "-"),
            f"{r.response_time_ms:.0f}ms" if r.response_time_ms is not None else (r.error or "-"),
        )
    console.print(table)

    counts = report.counts()
    console.print(
        f"Healthy: {counts['HEALTHY']}  Auth required: {counts['AUTH_REQUIRED']}  "
        f"Errors: {counts['ERROR']}  Unreachable: {counts['UNREACHABLE']}"
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Check School Info Hub server health")
    parser.add_argument("--url", default=DEFAULT_URL, help="Base URL to check")
    parser.add_argument("--timeout", type=float, default=5.0, help="Per-request timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print a machine-readable report")
    args = parser.parse_args(argv)

    report = asyncio.run(run_health_check(args.url, timeout=args.timeout))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report, Console())
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
