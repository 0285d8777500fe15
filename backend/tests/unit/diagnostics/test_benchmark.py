"""
Unit Tests for the benchmark runner
"""
import json

import httpx
import pytest

from infohub.diagnostics.benchmark import (
    EndpointStats,
    MetricRating,
    Rating,
    Threshold,
    compute_score,
    main,
    percentile,
    rate_endpoint,
    recommendations_for,
    run_benchmark,
    summarize,
)


class TestStatistics:

    def test_percentile_nearest_rank(self):
        values = list(range(1, 101))
        assert percentile(values, 50) == 50
        assert percentile(values, 95) == 95
        assert percentile(values, 100) == 100
        assert percentile([7.0], 95) == 7.0
        assert percentile([], 95) == 0.0

    def test_summarize(self):
        stats = summarize("/x", [10.0, 20.0, 30.0, 40.0], errors=1)

        assert stats.requests == 5
        assert stats.avg_ms == 25.0
        assert stats.p50_ms == 20.0
        assert stats.max_ms == 40.0
        assert stats.error_rate == pytest.approx(0.2)

    def test_summarize_all_failed(self):
        stats = summarize("/x", [], errors=3)
        assert stats.requests == 3
        assert stats.avg_ms == 0.0
        assert stats.error_rate == 1.0


class TestRatings:

    @pytest.mark.parametrize("value,expected", [
        (100, Rating.PASS), (200, Rating.PASS), (201, Rating.WARNING), (501, Rating.CRITICAL),
    ])
    def test_threshold(self, value, expected):
        assert Threshold(200, 500).rate(value) == expected

    def test_rate_endpoint(self):
        stats = EndpointStats("/x", 10, 0, 5, 300, 100, 600, 700)
        ratings = {r.metric: r.rating for r in rate_endpoint(stats, {
            "avg_ms": Threshold(200, 500),
            "p95_ms": Threshold(500, 1000),
            "error_rate": Threshold(0.01, 0.05),
        })}
        assert ratings == {"avg_ms": Rating.WARNING, "p95_ms": Rating.WARNING, "error_rate": Rating.PASS}

    def test_score(self):
        ratings = [
            MetricRating("/x", "avg_ms", 1, Rating.PASS),
            MetricRating("/x", "p95_ms", 1, Rating.PASS),
            MetricRating("/x", "max_ms", 1, Rating.WARNING),
            MetricRating("/x", "error_rate", 1, Rating.CRITICAL),
        ]
        assert compute_score(ratings) == 45.0
        assert compute_score([]) == 0.0

    def test_recommendations(self):
        assert recommendations_for([MetricRating("/x", "avg_ms", 1, Rating.PASS)]) == [
            "All endpoints are within thresholds"
        ]
        advice = recommendations_for([MetricRating("/x", "error_rate", 0.5, Rating.CRITICAL)])
        assert advice == ["Critical: /x failed 50.0% of requests; check server logs"]


class TestRunBenchmark:

    @pytest.mark.asyncio
    async def test_counts_requests_and_errors(self):
        def handler(request):
            return httpx.Response(500 if request.url.path == "/bad" else 200, json={})

        report = await run_benchmark(
            "http://hub", ["/good", "/bad"], requests=4, concurrency=2,
            transport=httpx.MockTransport(handler),
        )

        good, bad = report.endpoints
        assert (good.requests, good.errors) == (4, 0)
        assert (bad.requests, bad.errors) == (4, 4)
        assert report.exit_code == 1
        assert any(r.path == "/bad" and r.rating == Rating.CRITICAL for r in report.ratings)
        assert report.to_dict()["endpoints"][1]["error_rate"] == 1.0


def test_main_writes_report(tmp_path, monkeypatch):
    async def fake_run(url, endpoints, requests, concurrency, timeout):
        def handler(request):
            return httpx.Response(200, json={})
        return await run_benchmark(url, endpoints, requests=2, concurrency=1, transport=httpx.MockTransport(handler))

    monkeypatch.setattr("infohub.diagnostics.benchmark.run_benchmark", fake_run)
    output = tmp_path / "bench.json"
    code = main(["--endpoint", "/ping", "-o", str(output)])

    data = json.loads(output.read_text())
    assert code == 0
    assert data["endpoints"][0]["path"] == "/ping"
