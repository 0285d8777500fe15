"""
Performance monitoring

- PerformanceLog: bounded in-process log of request timings; the oldest
  entries rotate out once PERFORMANCE_LOG_SIZE is reached.
- QueryMonitor: times database statements (through engine events) and
  named operations, and keeps a report of slow ones.

Both are single-process and only touched from the event loop.
"""

import re
import resource
import sys
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from sqlalchemy import event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.config import settings
from infohub.core.logging_config import logger


_STARTS_KEY = "infohub_query_starts"
_TABLE_RE = re.compile(r"\b(?:FROM|INTO|UPDATE|TABLE)\s+[\"`]?(\w+)", re.IGNORECASE)


def statement_name(statement: str) -> str:
    """Short label for a SQL statement, such as SELECT announcements"""
    words = statement.split(None, 1)
    if not words:
        return "UNKNOWN"
    match = _TABLE_RE.search(statement)
    verb = words[0].upper()
    return f"{verb} {match.group(1)}" if match else verb


@dataclass
class RequestMetric:
    endpoint: str
    method: str
    response_time: float  # milliseconds
    status_code: int
    timestamp: float = field(default_factory=time.time)
    cached: bool = False
    user_agent: Optional[str] = None


@dataclass
class QueryMetric:
    name: str
    duration: float  # milliseconds
    success: bool
    timestamp: float = field(default_factory=time.time)
    error: Optional[str] = None


class PerformanceLog:
    """Fixed-size request log with windowed statistics"""

    def __init__(self, max_size: int = None, slow_threshold_ms: float = None):
        self.max_size = max_size or settings.PERFORMANCE_LOG_SIZE
        self.slow_threshold_ms = slow_threshold_ms or settings.SLOW_REQUEST_MS
        self._entries: Deque[RequestMetric] = deque(maxlen=self.max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, metric: RequestMetric) -> None:
        self._entries.append(metric)

    def clear(self) -> None:
        self._entries.clear()

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return [asdict(m) for m in list(self._entries)[-limit:]]

    def stats(self, window_seconds: int = 300) -> Dict[str, Any]:
        """Aggregate the requests seen in the last `window_seconds`"""
        cutoff = time.time() - window_seconds
        recent = [m for m in self._entries if m.timestamp > cutoff]

        if not recent:
            return {
                "totalRequests": 0,
                "averageResponseTime": 0,
                "slowRequests": 0,
                "errorRate": 0,
                "cachedRequests": 0,
                "endpoints": {},
            }

        total_time = sum(m.response_time for m in recent)
        errors = sum(1 for m in recent if m.status_code >= 400)

        endpoints: Dict[str, Dict[str, Any]] = {}
        for m in recent:
            key = f"{m.method} {m.endpoint}"
            ep = endpoints.setdefault(key, {"count": 0, "totalTime": 0.0, "maxResponseTime": 0.0, "errors": 0})
            ep["count"] += 1
            ep["totalTime"] += m.response_time
            ep["maxResponseTime"] = max(ep["maxResponseTime"], m.response_time)
            if m.status_code >= 400:
                ep["errors"] += 1

        for ep in endpoints.values():
            ep["avgResponseTime"] = round(ep.pop("totalTime") / ep["count"], 2)
            ep["maxResponseTime"] = round(ep["maxResponseTime"], 2)

        return {
            "totalRequests": len(recent),
            "averageResponseTime": round(total_time / len(recent), 2),
            "slowRequests": sum(1 for m in recent if m.response_time > self.slow_threshold_ms),
            "errorRate": round(errors / len(recent) * 100, 2),
            "cachedRequests": sum(1 for m in recent if m.cached),
            "endpoints": endpoints,
        }


class QueryMonitor:
    """Times named database operations"""

    def __init__(self, slow_query_threshold_ms: float = None, max_entries: int = 1000):
        self.slow_query_threshold = slow_query_threshold_ms or settings.SLOW_QUERY_MS
        self._metrics: Deque[QueryMetric] = deque(maxlen=max_entries)
        self.started_at = time.time()

    @asynccontextmanager
    async def monitor(self, name: str):
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            self._record(name, start, success=False, error=str(e))
            raise
        else:
            self._record(name, start, success=True)

    def instrument(self, engine: Engine) -> None:
        """Time every statement executed through `engine` (the sync engine behind an AsyncEngine)"""

        @event.listens_for(engine, "before_cursor_execute")
        def _before(conn, cursor, statement, parameters, context, executemany):
            conn.info.setdefault(_STARTS_KEY, []).append(time.perf_counter())

        @event.listens_for(engine, "after_cursor_execute")
        def _after(conn, cursor, statement, parameters, context, executemany):
            starts = conn.info.get(_STARTS_KEY)
            if starts:
                self._record(statement_name(statement), starts.pop(), success=True)

        @event.listens_for(engine, "handle_error")
        def _failed(context):
            conn = context.connection
            starts = conn.info.get(_STARTS_KEY) if conn is not None else None
            if starts:
                self._record(
                    statement_name(context.statement or ""), starts.pop(),
                    success=False, error=str(context.original_exception),
                )

    def _record(self, name: str, start: float, success: bool, error: Optional[str] = None) -> None:
        duration = (time.perf_counter() - start) * 1000
        self._metrics.append(QueryMetric(name=name, duration=duration, success=success, error=error))
        logger.log_db_query(name, duration, success=success)
        if duration > self.slow_query_threshold:
            logger.log_performance(f"query {name}", duration, threshold_ms=self.slow_query_threshold)

    def set_slow_query_threshold(self, threshold_ms: float) -> None:
        self.slow_query_threshold = threshold_ms

    def clear(self) -> None:
        self._metrics.clear()

    def metrics(self) -> Dict[str, Any]:
        entries = list(self._metrics)
        if not entries:
            return {
                "totalQueries": 0,
                "averageQueryTime": 0,
                "slowQueries": 0,
                "errorCount": 0,
                "recentQueries": [],
            }
        return {
            "totalQueries": len(entries),
            "averageQueryTime": round(sum(m.duration for m in entries) / len(entries), 2),
            "slowQueries": sum(1 for m in entries if m.duration > self.slow_query_threshold),
            "errorCount": sum(1 for m in entries if not m.success),
            "recentQueries": [asdict(m) for m in entries[-10:]],
        }

    def slow_queries_report(self, limit: int = 10) -> List[Dict[str, Any]]:
        slow = [m for m in self._metrics if m.duration > self.slow_query_threshold]
        slow.sort(key=lambda m: m.duration, reverse=True)
        return [
            {
                "name": m.name,
                "duration": round(m.duration, 2),
                "timestamp": datetime.utcfromtimestamp(m.timestamp).isoformat() + "Z",
                "success": m.success,
                "error": m.error,
            }
            for m in slow[:limit]
        ]


performance_log = PerformanceLog()
query_monitor = QueryMonitor()


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"


def _peak_memory_mb() -> float:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(peak / divisor, 2)


def build_recommendations(metrics: Dict[str, Any]) -> List[str]:
    recommendations: List[str] = []
    if metrics["totalQueries"] == 0:
        recommendations.append("No database operations recorded yet")
        return recommendations
    if metrics["averageQueryTime"] > 200:
        recommendations.append("Average query time is above 200ms; review indexes on filtered columns")
    if metrics["slowQueries"] > 10:
        recommendations.append(f"{metrics['slowQueries']} slow queries recorded; consider caching hot reads")
    if metrics["errorCount"] > 0:
        recommendations.append(f"{metrics['errorCount']} database operations failed; check the error log")
    if not recommendations:
        recommendations.append("Database performance looks healthy")
    return recommendations


def generate_performance_report() -> Dict[str, Any]:
    metrics = query_monitor.metrics()
    return {
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "uptime": format_uptime(time.time() - query_monitor.started_at),
        "queryMetrics": metrics,
        "slowQueries": query_monitor.slow_queries_report(),
        "requestStats": performance_log.stats(),
        "recommendations": build_recommendations(metrics),
        "process": {"peakMemoryMb": _peak_memory_mb()},
    }


async def database_health_check(db: AsyncSession) -> Dict[str, Any]:
    """Check connectivity with SELECT 1 and confirm the core tables exist"""
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
        latency = round((time.perf_counter() - start) * 1000, 2)
        connection = await db.connection()
        tables = await connection.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    except Exception as e:
        logger.error(f"[Performance] Database health check failed: {e}")
        return {"healthy": False, "error": str(e)}

    required = {"users", "announcements", "events", "notifications", "communications"}
    missing = sorted(required - set(tables))
    return {
        "healthy": not missing,
        "latencyMs": latency,
        "tableCount": len(tables),
        "missingTables": missing,
    }
