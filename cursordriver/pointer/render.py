from __future__ import annotations
import asyncio
import io
import logging
from pathlib import Path as FSPath
from typing import Set, Tuple

from PIL import Image, ImageDraw

from ..page.primitives import capture_screenshot
from ..session.handle import Session, SessionState
from . import telemetry
from .telemetry import recorder

logger = logging.getLogger(__name__)

# strong refs to in-flight overlay callbacks
_CALLBACK_TASKS: Set[asyncio.Task] = set()

_KIND_COLORS = {
    "move": (255, 200, 80),
    "failed": (255, 60, 60),
}


async def save_target_overlay(
    session: Session,
    outfile: str = "pointer_targets.jpg",
    *,
    ring_radius: int = 7,
    annotate: bool = True,
) -> str:
    """
    Draw every recorded pointer target over a screenshot of the current page
    and save it as a JPEG. Screen coordinates are shifted up by the deadzone
    and scaled to the screenshot's pixel size. Rendering runs in a worker thread.
    """
    session.require(SessionState.CALIBRATED, "render pointer overlay")
    viewport = session.viewport
    png = await capture_screenshot(session)
    events_snapshot = [e for e in recorder.events if e.kind in _KIND_COLORS]

    def _render() -> str:
        image = Image.open(io.BytesIO(png)).convert("RGB")
        draw = ImageDraw.Draw(image)
        scale_x = image.width / viewport.inner_width if viewport.inner_width else 1.0
        scale_y = image.height / viewport.inner_height if viewport.inner_height else 1.0

        def to_image(x: float, y: float) -> Tuple[float, float]:
            return x * scale_x, (y - viewport.deadzone) * scale_y

        for ev in events_snapshot:
            x, y = to_image(ev.x, ev.y)
            color = _KIND_COLORS[ev.kind]
            draw.ellipse(
                [x - ring_radius, y - ring_radius, x + ring_radius, y + ring_radius],
                outline=color,
                width=2,
            )
            draw.ellipse([x - 2, y - 2, x + 2, y + 2], fill=(255, 255, 255), outline=color)
            if annotate and ev.label:
                draw.text((x + ring_radius + 3, y - 6), ev.label, fill=color)

        if annotate:
            summary = (
                f"targets: {len(events_snapshot)} | deadzone {viewport.deadzone:g}px | "
                f"screen {viewport.screen_width:g}x{viewport.screen_height:g}"
            )
            if not events_snapshot:
                summary = "No pointer targets recorded"
            draw.text((10, image.height - 20), summary, fill=(200, 200, 200))

        image.save(outfile, format="JPEG", quality=92, optimize=True)
        return outfile

    outfile_path = await asyncio.to_thread(_render)

    cb = telemetry._OVERLAY_CALLBACK
    if cb is not None:
        task = asyncio.create_task(cb(FSPath(outfile_path)))
        _CALLBACK_TASKS.add(task)
        task.add_done_callback(_callback_done)
    else:
        logger.debug(
            "Overlay saved to %s but no overlay callback is registered", outfile_path
        )
    return outfile_path


def _callback_done(task: asyncio.Task) -> None:
    _CALLBACK_TASKS.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Overlay callback failed: %r", exc)
