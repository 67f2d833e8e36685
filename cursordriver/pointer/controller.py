from __future__ import annotations
import logging
from typing import Tuple, Union

from ..errors import OutOfBoundsError, PointerInjectionError
from ..geometry import ElementRect, ScreenPoint, element_center, to_screen_point
from ..session.handle import Session, SessionState
from .dispatchers import PointerInjector, inject
from .locate import get_element_rect
from .telemetry import recorder

logger = logging.getLogger(__name__)


class PointerController:
    """Tiny façade that moves the OS pointer onto elements of a calibrated session."""

    def __init__(self, session: Session, injector: PointerInjector):
        self.session = session
        self.injector = injector

    def _viewport(self):
        self.session.require(SessionState.CALIBRATED, "map pointer target")
        return self.session.viewport

    def screen_point_for(self, rect: ElementRect) -> ScreenPoint:
        """Validated screen point at the rect's center; may raise OutOfBoundsError."""
        x, y = element_center(rect)
        viewport = self._viewport()
        try:
            return to_screen_point((x, y), viewport)
        except OutOfBoundsError:
            recorder.log_out_of_bounds(x, y + viewport.deadzone)
            raise

    async def move_to_point(self, point: ScreenPoint, *, label: str = "") -> ScreenPoint:
        if not await inject(self.injector, point):
            recorder.log_failed(point.x, point.y, label)
            raise PointerInjectionError(f"injector refused move to ({point.x}, {point.y})")
        recorder.log_move(point.x, point.y, label)
        logger.debug("Pointer at (%d, %d) %s", point.x, point.y, label)
        return point

    async def move_to_element(self, target: Union[str, int]) -> ScreenPoint:
        """Move onto the center of a selector or node id."""
        rect = await get_element_rect(self.session, target)
        point = self.screen_point_for(rect)
        return await self.move_to_point(point, label=str(target))

    async def move_to_center(self) -> ScreenPoint:
        """Move to the middle of the page content area."""
        return await self.move_to_point(self._viewport().center(), label="center")

    def bounds(self) -> Tuple[float, float, float, float]:
        """(left, top, right, bottom) of the valid screen rectangle."""
        viewport = self._viewport()
        return viewport.left, viewport.top, viewport.right, viewport.bottom
