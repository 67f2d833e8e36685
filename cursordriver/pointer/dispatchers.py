from __future__ import annotations
import asyncio
import logging
from typing import Protocol, runtime_checkable

from ..geometry import ScreenPoint

logger = logging.getLogger(__name__)


@runtime_checkable
class PointerInjector(Protocol):
    """Moves the OS pointer to an absolute screen pixel; returns success."""

    def move_to(self, x: int, y: int) -> bool: ...


class PyAutoGUIInjector:
    """PointerInjector backed by pyautogui (needs a display)."""

    def __init__(self, *, duration_s: float = 0.0, failsafe: bool = True):
        import pyautogui  # imported lazily: it opens the display on import

        pyautogui.FAILSAFE = failsafe
        self._pyautogui = pyautogui
        self.duration_s = duration_s

    def move_to(self, x: int, y: int) -> bool:
        try:
            self._pyautogui.moveTo(x, y, duration=self.duration_s)
        except self._pyautogui.FailSafeException:
            logger.warning("pyautogui fail-safe triggered moving to (%d, %d)", x, y)
            return False
        return True


async def inject(injector: PointerInjector, point: ScreenPoint) -> bool:
    """Run the (blocking) injector off the event loop."""
    return bool(await asyncio.to_thread(injector.move_to, point.x, point.y))
