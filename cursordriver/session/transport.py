from __future__ import annotations
import asyncio
import logging
from typing import Any, List, Optional, Type

import httpx
from zendriver.core.connection import Connection

from ..errors import CDPConnectionError
from ..utils import unwrap_first
from .config import scfg

logger = logging.getLogger(__name__)


class EventStreamClosed(Exception):
    """The transport went away while a subscriber was waiting for an event."""

    pass


async def resolve_page_endpoint(port: int, *, host: str = scfg.DEBUG_HOST) -> str:
    """Return the WebSocket debugger URL of the browser's first page target."""
    url = f"http://{host}:{port}/json/list"
    try:
        async with httpx.AsyncClient(timeout=scfg.ENDPOINT_HTTP_TIMEOUT_S) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            targets = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise CDPConnectionError(f"cannot list targets at {url}: {exc}") from exc
    for target in targets:
        if target.get("type") == "page" and target.get("webSocketDebuggerUrl"):
            return target["webSocketDebuggerUrl"]
    raise CDPConnectionError(f"no page target exposed at {url}")


class EventSubscription:
    """Queue of CDP events of one type, fed by the transport's handler."""

    def __init__(self, transport: "CDPTransport", event_type: Type[Any]):
        self.transport = transport
        self.event_type = event_type
        self._queue: asyncio.Queue = asyncio.Queue()
        self._active = True

    def _push(self, event: Any) -> None:
        if self._active:
            self._queue.put_nowait(event)

    async def recv(self) -> Any:
        """Wait for the next event; raise EventStreamClosed if the transport closes first."""
        if not self._queue.empty():
            return self._queue.get_nowait()
        get_task = asyncio.ensure_future(self._queue.get())
        closed_task = asyncio.ensure_future(self.transport.wait_closed())
        try:
            done, _ = await asyncio.wait(
                {get_task, closed_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            get_task.cancel()
            closed_task.cancel()
        if get_task in done and not get_task.cancelled():
            return get_task.result()
        raise EventStreamClosed(f"transport closed before {self.event_type.__name__}")

    def close(self) -> None:
        if self._active:
            self._active = False
            self.transport._unsubscribe(self)


class CDPTransport:
    """Duplex CDP connection to one page target, backed by a zendriver Connection."""

    def __init__(self, connection: Connection, websocket_url: str = ""):
        self.connection = connection
        self.websocket_url = websocket_url
        self._subscriptions: List[EventSubscription] = []
        self._closed = asyncio.Event()

    @classmethod
    async def dial(cls, websocket_url: str) -> "CDPTransport":
        connection = Connection(websocket_url)
        try:
            await unwrap_first(("connect", "aopen"), connection)()
        except Exception as exc:
            raise CDPConnectionError(f"cannot connect to {websocket_url}: {exc}") from exc
        logger.debug("Connected to %s", websocket_url)
        return cls(connection, websocket_url)

    @property
    def closed(self) -> bool:
        return self._closed.is_set() or bool(getattr(self.connection, "closed", False))

    async def send(self, command) -> Any:
        """Send a zendriver ``cdp`` command and return its parsed result."""
        if self.closed:
            raise CDPConnectionError(f"transport to {self.websocket_url or 'browser'} is closed")
        return await self.connection.send(command)

    def subscribe(self, event_type: Type[Any]) -> EventSubscription:
        subscription = EventSubscription(self, event_type)
        self._subscriptions.append(subscription)
        self.connection.add_handler(event_type, subscription._push)
        return subscription

    def _unsubscribe(self, subscription: EventSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            self.connection.remove_handlers(subscription.event_type, subscription._push)

    async def wait_closed(self) -> None:
        """Return once the transport is closed, locally or by the browser."""
        while not self.closed:
            try:
                await asyncio.wait_for(
                    self._closed.wait(), timeout=scfg.CLOSE_POLL_INTERVAL_S
                )
            except asyncio.TimeoutError:
                pass

    async def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        for subscription in list(self._subscriptions):
            subscription.close()
        await unwrap_first(("disconnect", "aclose"), self.connection)()
        logger.debug("Transport to %s closed", self.websocket_url or "browser")


def is_transport_failure(transport: Optional[CDPTransport], exc: BaseException) -> bool:
    """True when exc means the connection itself is gone, not that a command was refused."""
    if isinstance(exc, CDPConnectionError):
        return True
    return transport is not None and transport.closed
