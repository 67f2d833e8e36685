from __future__ import annotations
import base64
import logging
from typing import List, Sequence, Tuple

from zendriver import cdp

from ..errors import CommandError, ElementNotFoundError
from ..geometry import ElementRect, element_center
from ..session.handle import Session

logger = logging.getLogger(__name__)


async def _command(session: Session, command, action: str):
    async with session.exclusive(action) as transport:
        return await session.send(transport, command, action=action, error=CommandError)


async def query_selector(session: Session, selector: str) -> cdp.dom.NodeId:
    """Resolve a CSS selector to a DOM node id in the current document."""
    root = await _command(session, cdp.dom.get_document(depth=-1), "DOM.getDocument")
    node_id = await _command(
        session,
        cdp.dom.query_selector(node_id=root.node_id, selector=selector),
        "DOM.querySelector",
    )
    if not node_id:
        raise ElementNotFoundError(selector)
    return node_id


async def scroll_into_view(session: Session, node_id: cdp.dom.NodeId) -> None:
    await _command(
        session,
        cdp.dom.scroll_into_view_if_needed(node_id=node_id),
        "DOM.scrollIntoViewIfNeeded",
    )


async def get_box_rect(session: Session, node_id: cdp.dom.NodeId) -> ElementRect:
    """Viewport rect of a node's border box."""
    model = await _command(
        session, cdp.dom.get_box_model(node_id=node_id), "DOM.getBoxModel"
    )
    return ElementRect.from_quad(list(model.border))


async def _dispatch_mouse(session: Session, type_: str, x: float, y: float) -> None:
    await _command(
        session,
        cdp.input_.dispatch_mouse_event(
            type_=type_,
            x=float(x),
            y=float(y),
            button=cdp.input_.MouseButton.LEFT,
            click_count=1,
        ),
        type_,
    )


async def click(session: Session, node_id: cdp.dom.NodeId) -> Tuple[float, float]:
    """Scroll node into view and left-click its center via the Input domain.

    CDP input events take viewport coordinates, so no deadzone is applied.
    Returns the clicked viewport point.
    """
    await scroll_into_view(session, node_id)
    x, y = element_center(await get_box_rect(session, node_id))
    await _dispatch_mouse(session, "mousePressed", x, y)
    await _dispatch_mouse(session, "mouseReleased", x, y)
    logger.debug("Clicked node %s at (%.1f, %.1f)", node_id, x, y)
    return x, y


async def insert_text(session: Session, text: str) -> None:
    """Insert text into the focused element as if typed in one go."""
    await _command(session, cdp.input_.insert_text(text=text), "Input.insertText")


async def set_file_input_files(
    session: Session, node_id: cdp.dom.NodeId, paths: Sequence[str]
) -> None:
    await scroll_into_view(session, node_id)
    files: List[str] = [str(p) for p in paths]
    await _command(
        session,
        cdp.dom.set_file_input_files(files=files, node_id=node_id),
        "DOM.setFileInputFiles",
    )


async def capture_screenshot(session: Session) -> bytes:
    """PNG bytes of the current viewport."""
    data = await _command(
        session, cdp.page.capture_screenshot(format_="png"), "Page.captureScreenshot"
    )
    return base64.b64decode(data)
