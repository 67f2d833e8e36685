from __future__ import annotations
import logging
import socket
import sys
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import PortReservationError
from .config import scfg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortReservation:
    """Proof of holding a debugging port; pass it back to release."""

    port: int
    registry: "PortRegistry"

    def release(self) -> None:
        self.registry.release(self)


class PortRegistry:
    """Process-wide table of reserved debugging ports, one holder per port."""

    def __init__(self):
        self._lock = threading.Lock()
        self._held: Dict[int, PortReservation] = {}

    def acquire(self, port: int) -> PortReservation:
        """Reserve port or raise PortReservationError if another session holds it."""
        with self._lock:
            if port in self._held:
                raise PortReservationError(port, "already reserved by another session")
            reservation = PortReservation(port, self)
            self._held[port] = reservation
        logger.debug("Reserved debugging port %d", port)
        return reservation

    def release(self, reservation: PortReservation) -> None:
        """Release a reservation; releasing twice is a no-op."""
        with self._lock:
            if self._held.get(reservation.port) is reservation:
                del self._held[reservation.port]
                logger.debug("Released debugging port %d", reservation.port)

    def is_held(self, port: int) -> bool:
        with self._lock:
            return port in self._held

    def held_ports(self):
        with self._lock:
            return sorted(self._held)


def find_free_port(host: str = scfg.DEBUG_HOST) -> int:
    """Ask the OS for an unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        s.listen(1)
        return s.getsockname()[1]


def ensure_bindable(port: int, host: str = scfg.DEBUG_HOST) -> None:
    """Raise PortReservationError if something outside this process holds port.

    Only a live listener counts as holding the port: connections left in
    TIME_WAIT by a previous browser do not, since Chrome binds with
    SO_REUSEADDR too.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        # on Windows SO_REUSEADDR would also allow stealing a live listener
        if sys.platform != "win32":
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((host, port))
        except OSError as exc:
            raise PortReservationError(port, f"cannot bind {host}:{port} ({exc})") from exc


def reserve(registry: PortRegistry, port: Optional[int]) -> PortReservation:
    """Reserve the requested port, or a free one when port is None."""
    if port is None:
        port = find_free_port()
    reservation = registry.acquire(port)
    try:
        ensure_bindable(port)
    except PortReservationError:
        reservation.release()
        raise
    return reservation


# Singleton registry
registry = PortRegistry()
