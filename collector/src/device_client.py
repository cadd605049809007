"""
Client for the energy socket's local REST API.

The device is modelled as a capability interface (DeviceAPI) with four
primitives: get_info, get_measurement, get_state and put_state.  Everything
the poller and health reporting need (partial state updates, convenience
setters, the concurrent full-status fetch and the timed health check) is
built once on top of those primitives, so a simulator can stand in for the
real socket in tests.

HomeWizardClient implements the primitives over HTTP with httpx:

- GET  /api           device info (product, serial, firmware, API version)
- GET  /api/v1/data   live measurement
- GET  /api/v1/state  relay / LED / lock state
- PUT  /api/v1/state  partial state update

No operation raises.  Every failure is returned as a DeviceError classified
as timeout, connection, http, validation or unknown.  The base URL and the
timeout can be changed at runtime; each request builds its own AsyncClient
from the values current at call time, so in-flight requests are unaffected.

CHANGELOG:
- 2026-10-18: Bound every request with an overall deadline, not only per phase
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import abc
import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import ValidationError

from collector.src.models import (
    DeviceError,
    DeviceHealth,
    DeviceResult,
    FullStatus,
    StatePatch,
)

logger = logging.getLogger(__name__)

INFO_PATH = "/api"
MEASUREMENT_PATH = "/api/v1/data"
STATE_PATH = "/api/v1/state"

DEFAULT_TIMEOUT_MS = 10000


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def classify_error(
    exc: BaseException,
    *,
    url: str | None = None,
    timeout_ms: int | None = None,
) -> DeviceError:
    """Map an exception raised while talking to the device onto the taxonomy.

    Args:
        exc: The exception to classify.
        url: Device base URL, attached to connection errors.
        timeout_ms: Configured deadline, attached to timeout errors.

    Returns:
        A DeviceError of type timeout, connection, http or unknown.
    """
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return DeviceError(type="timeout", message="Request timeout", timeout_ms=timeout_ms)

    if isinstance(exc, (httpx.ConnectError, ConnectionError)):
        return DeviceError(
            type="connection",
            message=f"Cannot connect to device: {exc}",
            url=url,
        )

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return DeviceError(
            type="http",
            message=response.reason_phrase or f"HTTP {response.status_code}",
            status=response.status_code,
            body=body,
            url=url,
        )

    return DeviceError(type="unknown", message=str(exc) or type(exc).__name__, url=url)


def _validation_failure(message: str) -> DeviceResult:
    return DeviceResult(success=False, error=DeviceError(type="validation", message=message))


# ---------------------------------------------------------------------------
# Capability interface
# ---------------------------------------------------------------------------


class DeviceAPI(abc.ABC):
    """Capability interface of an energy socket.

    Subclasses implement the four primitives.  The derived operations below
    only ever talk to the device through them.
    """

    @abc.abstractmethod
    async def get_info(self) -> DeviceResult:
        """Fetch the device info document."""

    @abc.abstractmethod
    async def get_measurement(self) -> DeviceResult:
        """Fetch the live measurement document."""

    @abc.abstractmethod
    async def get_state(self) -> DeviceResult:
        """Fetch the state document."""

    @abc.abstractmethod
    async def put_state(self, payload: dict[str, Any]) -> DeviceResult:
        """Send an already validated partial state document."""

    def update_device_url(self, url: str) -> None:
        """Point subsequent calls at a different device (no-op by default)."""

    def update_timeout(self, timeout_ms: int) -> None:
        """Change the deadline for subsequent calls (no-op by default)."""

    # ------------------------------------------------------------------
    # State updates
    # ------------------------------------------------------------------

    async def update_state(self, partial: StatePatch | dict[str, Any]) -> DeviceResult:
        """Send a partial state update.

        Only fields present in ``partial`` go on the wire; the device keeps
        its current value for everything else.  Invalid input yields a
        ``validation`` failure and no request is made.

        Args:
            partial: A StatePatch, or a dict with any subset of
                ``power_on``, ``brightness`` and ``switch_lock``.
        """
        if not isinstance(partial, StatePatch):
            try:
                partial = StatePatch.model_validate(partial)
            except ValidationError as exc:
                return _validation_failure(f"Invalid state update: {exc.errors()[0]['msg']}")

        payload = partial.to_payload()
        if not payload:
            return _validation_failure("State update contains no fields")
        return await self.put_state(payload)

    async def set_power(self, power_on: bool) -> DeviceResult:
        """Switch the relay on or off."""
        return await self.update_state({"power_on": power_on})

    async def set_brightness(self, brightness: int) -> DeviceResult:
        """Set the LED ring brightness (0-255)."""
        if brightness < 0 or brightness > 255:
            return _validation_failure("Brightness must be between 0 and 255")
        return await self.update_state({"brightness": brightness})

    async def set_switch_lock(self, locked: bool) -> DeviceResult:
        """Lock or unlock the physical button."""
        return await self.update_state({"switch_lock": locked})

    # ------------------------------------------------------------------
    # Composite operations
    # ------------------------------------------------------------------

    async def get_full_status(self) -> FullStatus:
        """Fetch info, measurement and state concurrently.

        The overall result is successful even when some of the three calls
        failed; each failed sub-document is ``None`` with its error under
        ``errors``.  Only a failure of the join itself makes the overall
        result unsuccessful.
        """
        try:
            info, measurement, state = await asyncio.gather(
                self.get_info(),
                self.get_measurement(),
                self.get_state(),
            )
        except Exception as exc:
            logger.warning("Full status fetch failed", exc_info=True)
            return FullStatus(success=False, error=classify_error(exc))

        return FullStatus(
            success=True,
            info=info.data if info.success else None,
            measurement=measurement.data if measurement.success else None,
            state=state.data if state.success else None,
            errors={
                "info": info.error,
                "measurement": measurement.error,
                "state": state.error,
            },
        )

    async def health_check(self) -> DeviceHealth:
        """Time one info call; healthy iff it succeeds."""
        start = time.perf_counter()
        try:
            result = await self.get_info()
        except Exception as exc:
            logger.warning("Device health check raised", exc_info=True)
            return DeviceHealth(
                status="unhealthy",
                timestamp=datetime.now(tz=UTC),
                details=classify_error(exc),
            )
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        return DeviceHealth(
            status="healthy" if result.success else "unhealthy",
            response_time_ms=round(elapsed_ms, 1),
            timestamp=datetime.now(tz=UTC),
            details=result.data if result.success else result.error,
        )


# ---------------------------------------------------------------------------
# HTTP implementation
# ---------------------------------------------------------------------------


class HomeWizardClient(DeviceAPI):
    """HTTP client for a HomeWizard energy socket (local API v1).

    Args:
        device_url: Base URL of the socket, e.g. ``http://192.168.1.50``.
        timeout_ms: Deadline applied to every request.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    Usage::

        client = HomeWizardClient("http://192.168.1.50", timeout_ms=5000)
        result = await client.get_measurement()
        if result.success:
            print(result.data["active_power_w"])
    """

    def __init__(
        self,
        device_url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = device_url.rstrip("/")
        self._timeout_ms = timeout_ms
        self._transport = transport

    @property
    def base_url(self) -> str:
        """Device base URL used by the next request."""
        return self._base_url

    @property
    def timeout_ms(self) -> int:
        """Deadline in milliseconds used by the next request."""
        return self._timeout_ms

    def update_device_url(self, url: str) -> None:
        """Point subsequent requests at ``url``."""
        self._base_url = url.rstrip("/")
        logger.info("Device URL updated to %s", self._base_url)

    def update_timeout(self, timeout_ms: int) -> None:
        """Use ``timeout_ms`` for subsequent requests."""
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        self._timeout_ms = timeout_ms
        logger.info("Device timeout updated to %dms", timeout_ms)

    async def get_info(self) -> DeviceResult:
        return await self._request("GET", INFO_PATH)

    async def get_measurement(self) -> DeviceResult:
        return await self._request("GET", MEASUREMENT_PATH)

    async def get_state(self) -> DeviceResult:
        return await self._request("GET", STATE_PATH)

    async def put_state(self, payload: dict[str, Any]) -> DeviceResult:
        return await self._request("PUT", STATE_PATH, payload)

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> DeviceResult:
        """Issue one request and wrap the outcome in a DeviceResult."""
        # Snapshot so a concurrent update only affects later calls.
        base_url = self._base_url
        timeout_ms = self._timeout_ms
        timeout_s = timeout_ms / 1000.0
        url = f"{base_url}{path}"

        try:
            async with httpx.AsyncClient(
                timeout=timeout_s,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            ) as client:
                response = await asyncio.wait_for(
                    client.request(method, url, json=payload),
                    timeout=timeout_s,
                )
                response.raise_for_status()
                data = response.json() if response.content else {}
            if not isinstance(data, dict):
                raise ValueError(f"Expected a JSON object from {path}, got {type(data).__name__}")
        except Exception as exc:
            error = classify_error(exc, url=base_url, timeout_ms=timeout_ms)
            logger.warning("Device %s %s failed (%s): %s", method, url, error.type, error.message)
            return DeviceResult(success=False, error=error, url=url)

        return DeviceResult(success=True, data=data, url=url)
