"""CloudWatch custom metrics with background batching.

Two families of data points are emitted:

* ``DashboardAPI/*``: count, latency and errors for every call the
  dashboard client makes.
* ``QueryEngine/*``: one count per answered query, dimensioned by intent
  and outcome (``answered``, ``clarification``, ``degraded``, ``failed``).

Points are buffered in memory and flushed by a daemon thread every
``FLUSH_INTERVAL_SECONDS``.  Unless ``METRICS_ENABLED=true`` the buffer is
only logged at DEBUG level and never sent.

>>> from therapy_assistant.services.metrics import metrics
>>> metrics.record_success("dashboard", "GET /api/strategies", latency_ms=42.0)
>>> metrics.record_query("BUDGET_ANALYSIS", "answered", latency_ms=87.5)
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "TherapyAssistant"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # PutMetricData limit per call


def _dims(**pairs: str) -> list[dict[str, str]]:
    return [{"Name": name, "Value": value} for name, value in pairs.items()]


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self, enabled: bool | None = None) -> None:
        if enabled is None:
            enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._enabled = enabled
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    def _point(self, name: str, dimensions: list[dict[str, str]], value: float, unit: str) -> None:
        with self._lock:
            self._buffer.append(
                {
                    "MetricName": name,
                    "Dimensions": dimensions,
                    "Timestamp": datetime.now(UTC),
                    "Value": value,
                    "Unit": unit,
                }
            )

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record a successful external call."""
        self._point("DashboardAPI/RequestCount", _dims(Service=service, Status="success"), 1, "Count")
        self._point(
            "DashboardAPI/Latency",
            _dims(Service=service, Operation=operation),
            latency_ms,
            "Milliseconds",
        )
        logger.debug("Metric: %s %s success latency=%.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed external call."""
        self._point("DashboardAPI/RequestCount", _dims(Service=service, Status="failure"), 1, "Count")
        self._point("DashboardAPI/ErrorCount", _dims(Service=service, ErrorType=error_type), 1, "Count")
        if latency_ms > 0:
            self._point(
                "DashboardAPI/Latency",
                _dims(Service=service, Operation=operation),
                latency_ms,
                "Milliseconds",
            )
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    def record_query(self, intent: str, outcome: str, latency_ms: float) -> None:
        """Record one processed query."""
        self._point("QueryEngine/QueryCount", _dims(Intent=intent, Outcome=outcome), 1, "Count")
        self._point("QueryEngine/Latency", _dims(Intent=intent), latency_ms, "Milliseconds")
        logger.debug("Metric: query %s %s latency=%.1fms", intent, outcome, latency_ms)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns the count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


metrics = MetricsClient()
