from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence, Tuple

from .errors import OutOfBoundsError
from .utils import truncate


def _non_negative(name: str, value: Any) -> float:
    value = float(value)
    if not value >= 0.0:
        raise ValueError(f"{name} must be a non-negative number, got {value!r}")
    return value


@dataclass(frozen=True)
class ViewportGeometry:
    """Screen and window measurements taken once per session during calibration.

    The deadzone is the height of the browser chrome: the vertical gap between
    the top of the physical screen and the top of the page content area.
    Pointer targets are valid inside ``[left, right] x [top, bottom]``.
    """

    screen_width: float
    screen_height: float
    inner_width: float
    inner_height: float

    def __post_init__(self) -> None:
        for name in ("screen_width", "screen_height", "inner_width", "inner_height"):
            object.__setattr__(self, name, _non_negative(name, getattr(self, name)))
        if self.inner_height > self.screen_height:
            raise ValueError(
                f"inner_height {self.inner_height:g} exceeds screen_height "
                f"{self.screen_height:g} (negative deadzone)"
            )

    @classmethod
    def from_sizes(
        cls, window: Mapping[str, Any], screen: Mapping[str, Any]
    ) -> "ViewportGeometry":
        """Build from the ``{width, height}`` dicts measured in the page."""
        return cls(
            screen_width=screen["width"],
            screen_height=screen["height"],
            inner_width=window["width"],
            inner_height=window["height"],
        )

    @property
    def deadzone(self) -> float:
        return self.screen_height - self.inner_height

    @property
    def top(self) -> float:
        return self.deadzone

    @property
    def bottom(self) -> float:
        return self.screen_height

    @property
    def left(self) -> float:
        return 0.0

    @property
    def right(self) -> float:
        return self.screen_width

    def center(self) -> "ScreenPoint":
        """Screen point in the middle of the page content area."""
        return ScreenPoint(
            truncate((self.left + self.right) / 2.0),
            truncate((self.top + self.bottom) / 2.0),
            self,
        )


@dataclass(frozen=True)
class ElementRect:
    """Viewport-relative rectangle of a DOM element."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))
        object.__setattr__(self, "width", _non_negative("width", self.width))
        object.__setattr__(self, "height", _non_negative("height", self.height))

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "ElementRect":
        """Build from a serialized ``DOMRect`` (``{x, y, width, height}``)."""
        return cls(
            x=data["x"], y=data["y"], width=data["width"], height=data["height"]
        )

    @classmethod
    def from_quad(cls, quad: Sequence[float]) -> "ElementRect":
        """Bounding rect of an 8-number CDP quad (x1,y1 .. x4,y4)."""
        if len(quad) < 8:
            raise ValueError(f"quad needs 8 numbers, got {len(quad)}")
        xs = [quad[0], quad[2], quad[4], quad[6]]
        ys = [quad[1], quad[3], quad[5], quad[7]]
        x_min, x_max = min(xs), max(xs)
        y_min, y_max = min(ys), max(ys)
        return cls(x=x_min, y=y_min, width=x_max - x_min, height=y_max - y_min)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class ScreenPoint:
    """Absolute integer pixel on screen, guaranteed inside the viewport's bounds.

    Construction validates against ``viewport`` and raises ``OutOfBoundsError``;
    non-int coordinates raise ``TypeError``.
    Lower bounds are floored since pixel positions are truncated measurements.
    """

    x: int
    y: int
    viewport: ViewportGeometry = field(repr=False, compare=False)

    def __post_init__(self) -> None:
        for axis in ("x", "y"):
            value = getattr(self, axis)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(
                    f"ScreenPoint.{axis} must be an int pixel, "
                    f"got {type(value).__name__} {value!r}"
                )
        _check_axis("y", self.y, math.floor(self.viewport.top), self.viewport.bottom)
        _check_axis("x", self.x, math.floor(self.viewport.left), self.viewport.right)

    def as_tuple(self) -> Tuple[int, int]:
        return self.x, self.y


def _check_axis(axis: str, value: float, lower: float, upper: float) -> None:
    if not lower <= value <= upper:
        raise OutOfBoundsError(axis, value, lower, upper)


def element_center(rect: ElementRect) -> Tuple[float, float]:
    """Center of rect in viewport space."""
    return rect.x + rect.width / 2.0, rect.y + rect.height / 2.0


def to_screen_point(
    viewport_point: Tuple[float, float], viewport: ViewportGeometry
) -> ScreenPoint:
    """Map a viewport-space point to a validated screen point.

    The deadzone is added to y before validation. Bounds are checked on the
    unrounded values, then both axes are truncated toward zero.
    """
    x = float(viewport_point[0])
    y = float(viewport_point[1]) + viewport.deadzone
    _check_axis("y", y, viewport.top, viewport.bottom)
    _check_axis("x", x, viewport.left, viewport.right)
    return ScreenPoint(truncate(x), truncate(y), viewport)
