"""Smoke and load checks against a running quotes API.

Two modes, selected by the first argument (``smoke`` by default):

    smoke   One client posting sequential quotes with unique keys, plus one
            replay of the first key. Passes if under 1% of requests fail and
            the p95 latency stays under 800 ms.
    load    Many concurrent clients posting quotes with unique keys across
            many document ids. Passes if under 1% of requests fail and the
            p95 latency stays under 1200 ms.

Configuration comes from environment variables:

    BASE_URL       API base URL (default http://localhost:8000)
    QUOTES_TOKEN   Bearer token (default dev-token)

Run with: python demo_app.py, then in another shell:

    python smoke_check.py smoke
    python smoke_check.py load

The process exits with status 1 if the thresholds are not met.
"""

import asyncio
import math
import os
import sys
import time
import uuid
from typing import Any

import httpx

from idempotent_quotes.observability.logging import configure_logging, get_logger

QUOTES_PATH = "/api/v1/quotes"

MAX_FAILURE_RATE = 0.01
SMOKE_P95_LIMIT_MS = 800.0
LOAD_P95_LIMIT_MS = 1200.0

logger = get_logger(__name__)


class RunReport:
    """Request outcomes of one run and the thresholds they are judged by.

    Attributes:
        name: Run mode, ``smoke`` or ``load``
        p95_limit_ms: Latency the 95th percentile must stay under
        durations_ms: Latency of every request, in completion order
        failures: Number of requests that failed a check
    """

    def __init__(self, name: str, p95_limit_ms: float) -> None:
        self.name = name
        self.p95_limit_ms = p95_limit_ms
        self.durations_ms: list[float] = []
        self.failures = 0

    def record(self, duration_ms: float, ok: bool) -> None:
        self.durations_ms.append(duration_ms)
        if not ok:
            self.failures += 1

    @property
    def total(self) -> int:
        return len(self.durations_ms)

    @property
    def failure_rate(self) -> float:
        return self.failures / self.total if self.total else 0.0

    @property
    def p95_ms(self) -> float:
        if not self.durations_ms:
            return 0.0
        ordered = sorted(self.durations_ms)
        return ordered[math.ceil(0.95 * len(ordered)) - 1]

    @property
    def passed(self) -> bool:
        return (
            self.total > 0
            and self.failure_rate < MAX_FAILURE_RATE
            and self.p95_ms < self.p95_limit_ms
        )

    def summary(self) -> dict[str, Any]:
        return {
            "mode": self.name,
            "requests": self.total,
            "failures": self.failures,
            "failure_rate": round(self.failure_rate, 4),
            "p95_ms": round(self.p95_ms, 1),
            "passed": self.passed,
        }


async def post_quote(
    client: httpx.AsyncClient,
    token: str,
    key: str,
    payload: dict[str, Any],
    expected_status: str = "created",
) -> tuple[float, bool]:
    """POST one quote and check the response.

    A request passes if it returns 201 with a quote id and the expected
    ``Idempotency-Status`` header.

    Returns:
        Latency in milliseconds and whether the request passed
    """
    headers = {"Authorization": f"Bearer {token}", "Idempotency-Key": key}
    started = time.perf_counter()
    try:
        response = await client.post(QUOTES_PATH, json=payload, headers=headers)
    except httpx.HTTPError as e:
        duration_ms = (time.perf_counter() - started) * 1000
        logger.warning("check.request_failed", key=key, error=str(e))
        return duration_ms, False
    duration_ms = (time.perf_counter() - started) * 1000

    ok = (
        response.status_code == 201
        and bool(response.json().get("id"))
        and response.headers.get("Idempotency-Status") == expected_status
    )
    if not ok:
        logger.warning(
            "check.unexpected_response",
            key=key,
            status_code=response.status_code,
            body=response.text[:200],
        )
    return duration_ms, ok


async def run_smoke(
    client: httpx.AsyncClient,
    token: str,
    iterations: int = 30,
    pause_seconds: float = 1.0,
) -> RunReport:
    report = RunReport("smoke", SMOKE_P95_LIMIT_MS)
    payload = {"documentId": "DOC-SMOKE-1", "amount": 123.45, "currency": "CLP"}
    first_key = None

    for i in range(iterations):
        key = f"smoke-{i}-{uuid.uuid4().hex}"
        first_key = first_key or key
        report.record(*await post_quote(client, token, key, payload))
        if pause_seconds:
            await asyncio.sleep(pause_seconds)

    if first_key is not None:
        report.record(*await post_quote(client, token, first_key, payload, "replayed"))
    return report


async def run_load(
    client: httpx.AsyncClient,
    token: str,
    total: int = 1000,
    concurrency: int = 50,
    pause_seconds: float = 0.2,
) -> RunReport:
    """Spread ``total`` requests over ``concurrency`` concurrent clients.

    Every request uses its own key, so each one creates a quote.
    """
    report = RunReport("load", LOAD_P95_LIMIT_MS)

    async def worker(vu: int) -> None:
        for i in range(vu, total, concurrency):
            payload = {
                "documentId": f"DOC-LOAD-{vu}-{i % 1000}",
                "amount": 10 + i % 100,
                "currency": "CLP",
            }
            key = f"load-{vu}-{i}-{uuid.uuid4().hex}"
            report.record(*await post_quote(client, token, key, payload))
            if pause_seconds:
                await asyncio.sleep(pause_seconds)

    await asyncio.gather(*(worker(vu) for vu in range(concurrency)))
    return report


async def run(mode: str, base_url: str, token: str) -> RunReport:
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        if mode == "load":
            return await run_load(client, token)
        return await run_smoke(client, token)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    mode = args[0] if args else "smoke"
    if mode not in ("smoke", "load"):
        print(f"Unknown mode {mode!r}; expected smoke or load", file=sys.stderr)
        return 2

    configure_logging(level=os.environ.get("LOG_LEVEL", "INFO"), json_output=False)
    base_url = os.environ.get("BASE_URL", "http://localhost:8000")
    token = os.environ.get("QUOTES_TOKEN", "dev-token")

    logger.info("check.started", mode=mode, base_url=base_url)
    report = asyncio.run(run(mode, base_url, token))
    if report.passed:
        logger.info("check.passed", **report.summary())
        return 0
    logger.error("check.failed", **report.summary())
    return 1


if __name__ == "__main__":
    sys.exit(main())
