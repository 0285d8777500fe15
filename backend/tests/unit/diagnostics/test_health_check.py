"""
Unit Tests for the health check runner
"""
import json

import httpx
import pytest

from infohub.diagnostics.health_check import (
    EndpointStatus,
    HealthReport,
    EndpointResult,
    classify,
    main,
    run_health_check,
)


def _transport(routes):
    """MockTransport answering from a path -> status map; unknown paths raise ConnectError"""
    def handler(request: httpx.Request) -> httpx.Response:
        status = routes.get(request.url.path)
        if status is None:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status, json={})
    return httpx.MockTransport(handler)


class TestClassify:

    @pytest.mark.parametrize("code,expected", [
        (200, EndpointStatus.HEALTHY),
        (204, EndpointStatus.HEALTHY),
        (401, EndpointStatus.AUTH_REQUIRED),
        (403, EndpointStatus.ERROR),
        (500, EndpointStatus.ERROR),
    ])
    def test_classify(self, code, expected):
        assert classify(code) == expected


class TestRunHealthCheck:

    @pytest.mark.asyncio
    async def test_all_healthy(self):
        transport = _transport({"/api/v1/health": 200, "/a": 200, "/b": 401})
        report = await run_health_check("http://hub", [("A", "/a"), ("B", "/b")], transport=transport)

        assert report.server_up
        assert [r.status for r in report.results] == [EndpointStatus.HEALTHY, EndpointStatus.AUTH_REQUIRED]
        assert report.exit_code == 0

    @pytest.mark.asyncio
    async def test_falls_back_to_root(self):
        transport = _transport({"/api/v1/health": 503, "/": 200, "/a": 200})
        report = await run_health_check("http://hub/", [("A", "/a")], transport=transport)

        assert report.server_up
        assert report.server_status_code == 200

    @pytest.mark.asyncio
    async def test_server_down(self):
        report = await run_health_check("http://hub", [("A", "/a")], transport=_transport({}))

        assert not report.server_up
        assert report.results == []
        assert report.exit_code == 1

    @pytest.mark.asyncio
    async def test_errors_and_timeouts_exit_2(self):
        timeout = httpx.ReadTimeout("slow")
        transport = _transport({"/api/v1/health": 200, "/broken": 500, "/slow": timeout})
        report = await run_health_check(
            "http://hub", [("Broken", "/broken"), ("Slow", "/slow")], transport=transport
        )

        broken, slow = report.results
        assert broken.status == EndpointStatus.ERROR
        assert slow.status == EndpointStatus.UNREACHABLE
        assert slow.error == "Timed out"
        assert report.exit_code == 2
        assert report.counts()["UNREACHABLE"] == 1


def test_report_to_dict():
    report = HealthReport(base_url="http://hub", server_up=True, results=[
        EndpointResult("A", "/a", EndpointStatus.HEALTHY, 200, 3.0),
    ])
    data = report.to_dict()

    assert data["summary"]["HEALTHY"] == 1
    assert data["exitCode"] == 0
    assert data["results"][0]["status"] == "HEALTHY"


def test_main_json_output(capsys, monkeypatch):
    async def fake_run(url, timeout):
        return HealthReport(base_url=url, server_up=False)

    monkeypatch.setattr("infohub.diagnostics.health_check.run_health_check", fake_run)
    code = main(["--url", "http://hub", "--json"])

    assert code == 1
    assert json.loads(capsys.readouterr().out)["server_up"] is False
