from __future__ import annotations
import logging

from zendriver import cdp

from ..errors import NavigationError
from ..session.handle import Session, SessionState
from ..session.transport import EventStreamClosed

logger = logging.getLogger(__name__)


async def _navigate(session: Session, url: str, stage: SessionState) -> None:
    async with session.exclusive("navigate", stage) as transport:
        # subscribe first so a fast load cannot fire before we listen
        load_events = transport.subscribe(cdp.page.LoadEventFired)
        try:
            result = await session.send(
                transport,
                cdp.page.navigate(url=url),
                action="Page.navigate",
                error=NavigationError,
                url=url,
            )
            error_text = result[2] if len(result) > 2 else None
            if error_text:
                raise NavigationError(url, error_text)
            try:
                await load_events.recv()
            except EventStreamClosed as exc:
                session.mark_failed(str(exc))
                raise NavigationError(url, "event stream closed before load") from exc
        finally:
            load_events.close()
    logger.debug("Loaded %s", url)


async def navigate(session: Session, url: str) -> None:
    """Navigate the page to url and block until its load event fires.

    No timeout is applied; wrap in ``asyncio.wait_for`` to bound the wait.
    """
    await _navigate(session, url, SessionState.CALIBRATED)
