"""
NewsAI - Health Check
======================
Probes each backing service and folds the results into one status.
A probe is up when it returns a truthy value within the timeout.

* every service up   → ``healthy``
* some services down → ``degraded``
* every service down → ``unhealthy``
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel

from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)

HealthStatus = Literal["healthy", "degraded", "unhealthy"]
ServiceStatus = Literal["healthy", "unhealthy"]
Probe = Callable[[], Awaitable[object]]

_PROBE_TIMEOUT_SECONDS = 3.0


class HealthReport(BaseModel):
    status: HealthStatus
    timestamp: datetime
    services: dict[str, ServiceStatus]


async def _run_probe(name: str, probe: Probe, timeout: float) -> ServiceStatus:
    try:
        ok = await asyncio.wait_for(probe(), timeout=timeout)
    except Exception as exc:
        logger.warning("[HEALTH] %s unhealthy: %s", name, exc)
        return "unhealthy"
    if not ok:
        logger.warning("[HEALTH] %s reported itself down.", name)
        return "unhealthy"
    return "healthy"


async def check_health(probes: Mapping[str, Probe], timeout: float = _PROBE_TIMEOUT_SECONDS) -> HealthReport:
    """Run every probe concurrently and summarise."""
    names = list(probes)
    statuses = await asyncio.gather(*(_run_probe(name, probes[name], timeout) for name in names))
    services: dict[str, ServiceStatus] = dict(zip(names, statuses))

    down = sum(1 for s in statuses if s == "unhealthy")
    if down == 0:
        overall: HealthStatus = "healthy"
    elif down == len(statuses):
        overall = "unhealthy"
    else:
        overall = "degraded"

    return HealthReport(status=overall, timestamp=datetime.now(timezone.utc), services=services)
