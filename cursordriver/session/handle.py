from __future__ import annotations
import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional, Type

from zendriver.core.connection import ProtocolException

from ..errors import CDPConnectionError, CursorDriverError
from ..geometry import ViewportGeometry
from .ports import PortReservation
from .transport import CDPTransport, is_transport_failure

logger = logging.getLogger(__name__)


class SessionState(enum.IntEnum):
    """Startup stages in order; FAILED and CLOSED are terminal."""

    LAUNCHING = 0
    CONNECTED = 1
    ACTIVE = 2  # page + runtime domains enabled
    CALIBRATED = 3
    FAILED = 10
    CLOSED = 11


@dataclass
class Session:
    """One live browser + CDP connection, owned by whoever called ``start()``."""

    port: int
    reservation: Optional[PortReservation] = None
    launcher: Any = None
    pid: Optional[int] = None
    transport: Optional[CDPTransport] = None
    user_data_dir: Optional[str] = None
    owns_user_data_dir: bool = False
    state: SessionState = SessionState.LAUNCHING
    viewport: Optional[ViewportGeometry] = None
    failure: Optional[str] = None
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def calibrated(self) -> bool:
        return self.state == SessionState.CALIBRATED

    @property
    def usable(self) -> bool:
        return self.calibrated and not (self.transport is None or self.transport.closed)

    def mark_failed(self, reason: str) -> None:
        if self.state not in (SessionState.FAILED, SessionState.CLOSED):
            logger.warning("Session on port %d unusable: %s", self.port, reason)
            self.state = SessionState.FAILED
            self.failure = reason

    def require(self, stage: SessionState, action: str) -> CDPTransport:
        """Return the transport if the session reached stage, else raise."""
        if self.state == SessionState.CLOSED:
            raise CDPConnectionError(f"{action}: session on port {self.port} is shut down")
        if self.state == SessionState.FAILED:
            raise CDPConnectionError(
                f"{action}: session on port {self.port} failed ({self.failure})"
            )
        if self.transport is None or self.transport.closed:
            self.mark_failed("transport closed")
            raise CDPConnectionError(f"{action}: transport on port {self.port} is closed")
        if self.state < stage:
            raise CDPConnectionError(
                f"{action}: session on port {self.port} is {self.state.name.lower()}, "
                f"needs {stage.name.lower()}"
            )
        return self.transport

    @asynccontextmanager
    async def exclusive(self, action: str, stage: SessionState = SessionState.CALIBRATED):
        """Hold the per-session lock for one session-mutating operation."""
        self.require(stage, action)
        async with self._lock:
            # re-check: the session may have failed while we waited for the lock
            yield self.require(stage, action)

    async def send(
        self,
        transport: CDPTransport,
        command,
        *,
        action: str,
        error: Type[CursorDriverError],
        **error_kwargs,
    ) -> Any:
        """Send one command, mapping failures to error (or CDPConnectionError if the link died)."""
        try:
            return await transport.send(command)
        except CDPConnectionError as exc:
            self.mark_failed(str(exc))
            raise
        except Exception as exc:
            if isinstance(exc, ProtocolException):
                reason = f"{action}: {exc}"
            else:
                reason = f"{action}: {type(exc).__name__}: {exc}"
            if is_transport_failure(transport, exc):
                self.mark_failed(reason)
                raise CDPConnectionError(reason) from exc
            raise _build_error(error, reason, error_kwargs) from exc


def _build_error(error: Type[CursorDriverError], reason: str, kwargs) -> CursorDriverError:
    if kwargs:
        return error(reason=reason, **kwargs)
    return error(reason)
