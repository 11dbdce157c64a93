"""
HTTP health probes for compose-status.

Each container that declares a health port label gets one request per pass.
Results are cycle-local: they are attached to the published view and thrown
away on the next pass. A failed or timed out probe is an annotation, it never
marks a unit down and never aborts the pass.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, Optional

import httpx

from config.settings import LabelKeys
from docker_monitor.labels import parse_health_config
from models.status_models import HealthCheckConfig, HealthCheckResult, ObservedUnit

logger = logging.getLogger(__name__)


def pick_address(networks: Dict[str, str]) -> Optional[str]:
    """IP of the first network by name, so the choice is stable between passes"""
    for name in sorted(networks):
        if networks[name]:
            return networks[name]
    return None


def build_url(address: str, config: HealthCheckConfig) -> str:
    host = f"[{address}]" if ':' in address else address
    return f"http://{host}:{config.port}{config.path}"


def is_expected(status_code: int, config: HealthCheckConfig) -> bool:
    if config.expected_code is not None:
        return status_code == config.expected_code
    return 200 <= status_code < 300


class HttpHealthChecker:
    """Runs health probes with a short hard timeout"""

    def __init__(self, labels: LabelKeys, timeout: float, client: Optional[httpx.AsyncClient] = None):
        self.labels = labels
        self.timeout = timeout
        self.http_client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
        )

    async def probe(self, url: str, config: HealthCheckConfig) -> HealthCheckResult:
        """
        Issue a single probe.

        The whole request is bounded by self.timeout, on top of httpx's own
        per-phase timeouts.
        """
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self.http_client.request(config.method, url),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return HealthCheckResult(
                success=False,
                duration_ms=(time.perf_counter() - started) * 1000,
                timed_out=True,
                error='timeout',
            )
        except httpx.RequestError as e:
            return HealthCheckResult(
                success=False,
                duration_ms=(time.perf_counter() - started) * 1000,
                error=str(e) or type(e).__name__,
            )

        duration_ms = (time.perf_counter() - started) * 1000
        return HealthCheckResult(
            success=is_expected(response.status_code, config),
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

    async def check(self, unit: ObservedUnit) -> Optional[HealthCheckResult]:
        """Probe one unit, or return None when it has no health check configured"""
        config = parse_health_config(unit.labels, self.labels)
        if config is None:
            return None

        address = pick_address(unit.networks)
        if address is None:
            return HealthCheckResult(success=False, error='no network address')

        result = await self.probe(build_url(address, config), config)
        if not result.success:
            logger.debug(
                f"Health check failed for {unit.key}: status={result.status_code} "
                f"timed_out={result.timed_out} error={result.error}"
            )
        return result

    async def check_all(self, units: Iterable[ObservedUnit]) -> Dict[str, HealthCheckResult]:
        """
        Probe every configured unit concurrently.

        Returns:
            Dict of unit key -> result, only for units with a health check
        """
        units = list(units)
        results = await asyncio.gather(
            *(self.check(unit) for unit in units),
            return_exceptions=True,
        )

        checked = {}
        for unit, result in zip(units, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"Unexpected error probing {unit.key}: {result}")
                result = HealthCheckResult(success=False, error=str(result) or type(result).__name__)
            if result is not None:
                checked[unit.key] = result
        return checked

    async def close(self):
        await self.http_client.aclose()
