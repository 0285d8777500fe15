#!/usr/bin/env python3
"""
API integration suite for a running School Info Hub server.

Each check is a method, a path and the set of status codes that count as a
pass. Checks marked ``auth`` run with a bearer token and are skipped when no
credentials are given.

Usage:
    infohub-api-suite --url http://localhost:8000
    infohub-api-suite --email admin@school.example --password secret
"""

import argparse
import asyncio
import json
import sys
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

import httpx
from rich.console import Console

DEFAULT_URL = "http://localhost:8000"
API = "/api/v1"


@dataclass(frozen=True)
class ApiCheck:
    name: str
    method: str
    path: str
    expected: FrozenSet[int] = frozenset({200})
    json: Optional[Dict[str, Any]] = None
    auth: bool = False


@dataclass
class CheckOutcome:
    name: str
    method: str
    path: str
    passed: bool
    skipped: bool = False
    status_code: Optional[int] = None
    duration_ms: float = 0.0
    attempts: int = 0
    error: Optional[str] = None


@dataclass
class SuiteReport:
    base_url: str
    logged_in: bool
    outcomes: List[CheckOutcome] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.passed)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.passed and not o.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseUrl": self.base_url,
            "loggedIn": self.logged_in,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "outcomes": [asdict(o) for o in self.outcomes],
        }


DEFAULT_CHECKS: List[ApiCheck] = [
    # Health
    ApiCheck("Health", "GET", f"{API}/health"),
    ApiCheck("Liveness", "GET", f"{API}/health/live"),
    ApiCheck("Readiness", "GET", f"{API}/health/ready", frozenset({200, 503})),
    # Public site
    ApiCheck("School info", "GET", f"{API}/public/info"),
    ApiCheck("Public announcements", "GET", f"{API}/public/announcements"),
    ApiCheck("Public events", "GET", f"{API}/public/events?upcoming=true"),
    ApiCheck("Public newsletters", "GET", f"{API}/public/newsletters"),
    ApiCheck("Newsletter archive", "GET", f"{API}/public/newsletters/archive"),
    ApiCheck("Public resources", "GET", f"{API}/public/resources"),
    ApiCheck("Auth providers", "GET", f"{API}/auth/providers"),
    # Auth gates
    ApiCheck("Profile without token", "GET", f"{API}/auth/me", frozenset({401})),
    ApiCheck("Admin without token", "GET", f"{API}/admin/users", frozenset({401})),
    ApiCheck("Bad login", "POST", f"{API}/auth/login", frozenset({400, 401, 422}),
             json={"email": "nobody@school.example", "password": "wrong-password"}),
    ApiCheck("Feedback validation", "POST", f"{API}/feedback", frozenset({400, 422}), json={}),
    # Signed-in
    ApiCheck("Profile", "GET", f"{API}/auth/me", auth=True),
    ApiCheck("Announcements", "GET", f"{API}/announcements", auth=True),
    ApiCheck("Events", "GET", f"{API}/events", auth=True),
    ApiCheck("Communications", "GET", f"{API}/communications", auth=True),
    ApiCheck("Resources", "GET", f"{API}/resources", auth=True),
    ApiCheck("Notifications", "GET", f"{API}/notifications", auth=True),
    ApiCheck("Notification stats", "GET", f"{API}/notifications/stats", auth=True),
]


async def login(client: httpx.AsyncClient, email: str, password: str) -> Optional[str]:
    try:
        response = await client.post(f"{API}/auth/login", json={"email": email, "password": password})
    except httpx.TransportError:
        return None
    if response.status_code != 200:
        return None
    return response.json().get("accessToken")


async def run_check(
    client: httpx.AsyncClient,
    check: ApiCheck,
    token: Optional[str] = None,
    retries: int = 2,
    retry_delay: float = 0.5,
) -> CheckOutcome:
    if check.auth and not token:
        return CheckOutcome(check.name, check.method, check.path, passed=False, skipped=True,
                            error="No credentials")

    headers = {"Authorization": f"Bearer {token}"} if check.auth else {}
    last_error = None
    for attempt in range(1, retries + 2):
        start = time.perf_counter()
        try:
            response = await client.request(check.method, check.path, json=check.json, headers=headers)
        except httpx.TransportError as e:
            last_error = str(e) or type(e).__name__
            if attempt <= retries:
                await asyncio.sleep(retry_delay)
            continue

        duration = round((time.perf_counter() - start) * 1000, 1)
        passed = response.status_code in check.expected
        return CheckOutcome(
            check.name, check.method, check.path,
            passed=passed,
            status_code=response.status_code,
            duration_ms=duration,
            attempts=attempt,
            error=None if passed else f"Expected {sorted(check.expected)}, got {response.status_code}",
        )

    return CheckOutcome(check.name, check.method, check.path, passed=False,
                        attempts=retries + 1, error=last_error)


async def run_suite(
    base_url: str,
    checks: Sequence[ApiCheck] = DEFAULT_CHECKS,
    email: Optional[str] = None,
    password: Optional[str] = None,
    timeout: float = 10.0,
    retries: int = 2,
    retry_delay: float = 0.5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SuiteReport:
    async with httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport) as client:
        token = await login(client, email, password) if email and password else None
        report = SuiteReport(base_url=base_url, logged_in=token is not None)
        for check in checks:
            report.outcomes.append(await run_check(client, check, token, retries, retry_delay))
    return report


def print_report(report: SuiteReport, console: Console) -> None:
    console.print(f"\n[bold]School Info Hub API suite[/bold]  {report.base_url}")
    if not report.logged_in:
        console.print("[yellow]Not signed in: authenticated checks are skipped[/yellow]")

    for o in report.outcomes:
        if o.skipped:
            console.print(f"  [dim]SKIP[/dim]  {o.method:6} {o.path}  ({o.name})")
        elif o.passed:
            console.print(f"  [green]PASS[/green]  {o.method:6} {o.path}  {o.status_code} in {o.duration_ms:.0f}ms")
        else:
            console.print(f"  [red]FAIL[/red]  {o.method:6} {o.path}  {o.error}")

    console.print(f"\nPassed: {report.passed}  Failed: {report.failed}  Skipped: {report.skipped}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run API checks against a School Info Hub server")
    parser.add_argument("--url", default=DEFAULT_URL, help="Base URL to test")
    parser.add_argument("--email", help="Account used for authenticated checks")
    parser.add_argument("--password", help="Password for --email")
    parser.add_argument("--timeout", type=float, default=10.0)
    parser.add_argument("--retries", type=int, default=2, help="Retries on connection errors")
    parser.add_argument("--json", action="store_true", help="Print a machine-readable report")
    args = parser.parse_args(argv)

    report = asyncio.run(run_suite(
        args.url, email=args.email, password=args.password,
        timeout=args.timeout, retries=args.retries,
    ))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report, Console())
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
