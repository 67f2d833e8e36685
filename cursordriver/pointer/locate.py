from __future__ import annotations
from typing import Union

from zendriver import cdp

from ..errors import ElementNotFoundError, EvaluationError
from ..geometry import ElementRect
from ..page.evaluator import ScriptRequest, evaluate_json
from ..page.primitives import get_box_rect
from ..session.handle import Session

BOUNDING_RECT_SCRIPT = """(() => {
    const el = document.querySelector($selector);
    if (!el) return JSON.stringify(null);
    const rect = el.getBoundingClientRect();
    return JSON.stringify({x: rect.x, y: rect.y, width: rect.width, height: rect.height});
})()"""


async def get_bounding_client_rect(session: Session, selector: str) -> ElementRect:
    """Viewport rect of the first element matching a CSS selector."""
    request = ScriptRequest(BOUNDING_RECT_SCRIPT, {"selector": selector})
    data = await evaluate_json(session, request)
    if data is None:
        raise ElementNotFoundError(selector)
    try:
        return ElementRect.from_json(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise EvaluationError(request.render(), f"bad DOMRect {data!r}: {exc}") from exc


async def get_element_rect(
    session: Session, target: Union[str, int, cdp.dom.NodeId]
) -> ElementRect:
    """Return the rect for a CSS selector or a DOM node id."""
    if isinstance(target, str):
        return await get_bounding_client_rect(session, target)
    return await get_box_rect(session, cdp.dom.NodeId(target))
