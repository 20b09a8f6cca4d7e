"""Fire-and-forget delivery of tracking payloads.

The Dispatcher hands every payload to a background delivery and returns
immediately. Delivery tries the configured transports in order until one
accepts the payload. There is no retry and no queue: a transport error or a
rejected payload is logged and dropped.

When called from inside a running asyncio loop, delivery is scheduled as a
task on that loop. Otherwise it runs on a single background worker thread.
"""

import asyncio
import json
import weakref
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Any, Callable

import httpx
import structlog

from pathwise.utils.exceptions import DeliveryError

logger = structlog.get_logger()

JSON_HEADERS = {"Content-Type": "application/json"}


class Transport(ABC):
    """Sends one JSON body to an endpoint."""

    name = "transport"

    @abstractmethod
    async def send(self, url: str, body: bytes) -> bool:
        """Send a body.

        Returns:
            True if the payload was accepted (queued by the host or answered
            with a 2xx), False if it was refused.

        Raises:
            DeliveryError: If the payload could not be handed off at all.
        """

    async def aclose(self) -> None:
        """Release resources held for the running loop."""


class BeaconTransport(Transport):
    """Host-provided, unload-safe send primitive (navigator.sendBeacon style)."""

    name = "beacon"

    def __init__(self, send_beacon: Callable[[str, bytes], bool]):
        self._send_beacon = send_beacon

    async def send(self, url: str, body: bytes) -> bool:
        try:
            return bool(self._send_beacon(url, body))
        except Exception as e:
            raise DeliveryError(url, original_error=str(e)) from e


class HttpTransport(Transport):
    """JSON POST over httpx with a short timeout."""

    name = "http"

    def __init__(
        self,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP transport.

        Args:
            timeout: Seconds allowed for the whole request.
            transport: Optional httpx transport (httpx.MockTransport in tests).
        """
        self.timeout = timeout
        self._transport = transport
        # Keyed by event loop; an httpx client is bound to the loop that opened it
        self._clients = weakref.WeakKeyDictionary()

    def _client(self) -> httpx.AsyncClient:
        loop = asyncio.get_running_loop()
        client = self._clients.get(loop)
        if client is None or client.is_closed:
            client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
            self._clients[loop] = client
        return client

    async def send(self, url: str, body: bytes) -> bool:
        try:
            response = await self._client().post(url, content=body, headers=JSON_HEADERS)
        except httpx.HTTPError as e:
            raise DeliveryError(url, original_error=str(e)) from e

        if not response.is_success:
            logger.debug(
                "Tracking endpoint rejected payload",
                url=url,
                status_code=response.status_code,
            )
        return response.is_success

    async def aclose(self) -> None:
        client = self._clients.pop(asyncio.get_running_loop(), None)
        if client is not None:
            await client.aclose()


class Dispatcher:
    """Schedules payload delivery without blocking the caller."""

    def __init__(self, transports: list[Transport], log: Any = None):
        """Initialize the dispatcher.

        Args:
            transports: Transports in order of preference.
            log: structlog-compatible logger receiving delivery failures.
        """
        self.transports = list(transports)
        self.logger = log or logger.bind(component="dispatcher")
        self._tasks: set[asyncio.Task] = set()
        self._futures: set[Future] = set()
        self._executor: ThreadPoolExecutor | None = None
        self._worker_loop: asyncio.AbstractEventLoop | None = None

    def dispatch(self, url: str, payload: dict[str, Any]) -> None:
        """Schedule a payload for delivery and return at once."""
        try:
            body = json.dumps(payload, default=str).encode("utf-8")
        except (TypeError, ValueError) as e:
            self.logger.warning("Payload not serializable", url=url, error=str(e))
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self.deliver(url, body))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="pathwise-dispatch"
            )
        future = self._executor.submit(self._run_on_worker, self.deliver(url, body))
        self._futures.add(future)
        future.add_done_callback(self._futures.discard)

    def _run_on_worker(self, coro: Any) -> Any:
        # Only ever called on the single worker thread
        if self._worker_loop is None:
            self._worker_loop = asyncio.new_event_loop()
        return self._worker_loop.run_until_complete(coro)

    def _shutdown_worker_loop(self) -> None:
        if self._worker_loop is None:
            return
        self._worker_loop.run_until_complete(self._close_transports())
        self._worker_loop.close()
        self._worker_loop = None

    async def deliver(self, url: str, body: bytes) -> bool:
        """Try each transport in turn. Never raises.

        Returns:
            True if some transport accepted the payload.
        """
        for transport in self.transports:
            try:
                if await transport.send(url, body):
                    return True
            except DeliveryError as e:
                self.logger.warning(
                    "Tracking delivery failed",
                    transport=transport.name,
                    url=url,
                    error=e.details.get("original_error") or e.message,
                )
                return False
            except Exception as e:
                self.logger.warning(
                    "Tracking delivery failed",
                    transport=transport.name,
                    url=url,
                    error=str(e),
                )
                return False

        self.logger.debug("Tracking payload not accepted", url=url)
        return False

    async def drain(self) -> None:
        """Wait for deliveries scheduled on the running loop."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain the running loop's deliveries and close its transport clients."""
        await self.drain()
        await self._close_transports()

    async def _close_transports(self) -> None:
        for transport in self.transports:
            try:
                await transport.aclose()
            except Exception as e:
                self.logger.debug(
                    "Transport close failed", transport=transport.name, error=str(e)
                )

    def join(self, timeout: float | None = None) -> None:
        """Wait for deliveries running on the background thread."""
        pending = list(self._futures)
        if pending:
            wait_futures(pending, timeout=timeout)

    def close(self) -> None:
        """Finish outstanding thread deliveries and release the worker."""
        if self._executor is not None:
            self._executor.submit(self._shutdown_worker_loop).result()
            self._executor.shutdown(wait=True)
            self._executor = None
