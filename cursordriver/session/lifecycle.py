from __future__ import annotations
import asyncio
import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, List, Optional

from zendriver import cdp

from ..errors import CDPConnectionError, EvaluationError, LaunchError, ShutdownError
from ..geometry import ViewportGeometry
from ..page.evaluator import _evaluate, decode_json
from ..page.navigator import _navigate
from . import ports
from .config import LaunchConfig, scfg
from .handle import Session, SessionState
from .launcher import ProcessLauncher, build_args, resolve_executable
from .transport import CDPTransport, resolve_page_endpoint

logger = logging.getLogger(__name__)

EndpointResolver = Callable[[int], Awaitable[str]]
Dialer = Callable[[str], Awaitable[CDPTransport]]


async def start(
    config: Optional[LaunchConfig] = None,
    *,
    launcher: Optional[ProcessLauncher] = None,
    registry: Optional[ports.PortRegistry] = None,
    resolve_endpoint: EndpointResolver = resolve_page_endpoint,
    dial: Dialer = CDPTransport.dial,
) -> Session:
    """Launch a browser and return a calibrated session.

    Steps run strictly in order: resolve executable, reserve port, launch,
    connect, enable Page/Runtime, load about:blank, calibrate. Any failure
    (or cancellation) tears down whatever was already acquired and re-raises;
    no partially started session escapes.
    """
    config = config or LaunchConfig()
    launcher = launcher or ProcessLauncher()
    registry = registry or ports.registry

    executable = resolve_executable(config)
    reservation = ports.reserve(registry, config.debugging_port)
    session = Session(port=reservation.port, reservation=reservation, launcher=launcher)
    try:
        await _launch(session, config, executable)
        await _connect(session, resolve_endpoint, dial)
        await _activate_domains(session)
        await _navigate(session, scfg.BLANK_URL, SessionState.ACTIVE)
        await _calibrate(session)
    except BaseException as exc:
        logger.debug("Startup on port %d aborted: %r", session.port, exc)
        await _abort(session)
        raise
    logger.info(
        "Browser session ready on port %d (pid=%s, deadzone=%g)",
        session.port,
        session.pid,
        session.viewport.deadzone,
    )
    return session


async def _launch(session: Session, config: LaunchConfig, executable: str) -> None:
    if config.user_data_dir:
        session.user_data_dir = config.user_data_dir
    else:
        session.user_data_dir = tempfile.mkdtemp(prefix=scfg.PROFILE_DIR_PREFIX)
        session.owns_user_data_dir = True
    args = build_args(session.port, session.user_data_dir, config.extra_args)
    session.pid = await session.launcher.launch(executable, args)
    # one-shot grace period, not a retry loop
    await asyncio.sleep(config.grace_period_s)
    if not session.launcher.is_running(session.pid):
        raise LaunchError(
            f"browser pid={session.pid} exited during startup ({executable})"
        )


async def _connect(
    session: Session, resolve_endpoint: EndpointResolver, dial: Dialer
) -> None:
    websocket_url = await resolve_endpoint(session.port)
    session.transport = await dial(websocket_url)
    session.state = SessionState.CONNECTED


async def _activate_domains(session: Session) -> None:
    async with session.exclusive("enable domains", SessionState.CONNECTED) as transport:
        for name, command in (("Page", cdp.page.enable), ("Runtime", cdp.runtime.enable)):
            try:
                await transport.send(command())
            except Exception as exc:
                raise CDPConnectionError(
                    f"cannot enable {name} domain on port {session.port}: {exc}"
                ) from exc
        session.state = SessionState.ACTIVE


async def _measure(session: Session, expression: str) -> dict:
    size = decode_json(
        expression, await _evaluate(session, expression, SessionState.ACTIVE)
    )
    if not isinstance(size, dict) or not {"width", "height"} <= set(size):
        raise EvaluationError(expression, f"expected {{width, height}}, got {size!r}")
    return size


async def _calibrate(session: Session) -> None:
    window = await _measure(session, scfg.WINDOW_SIZE_EXPRESSION)
    screen = await _measure(session, scfg.SCREEN_SIZE_EXPRESSION)
    try:
        session.viewport = ViewportGeometry.from_sizes(window, screen)
    except (TypeError, ValueError) as exc:
        raise EvaluationError(
            scfg.SCREEN_SIZE_EXPRESSION, f"unusable measurements: {exc}"
        ) from exc
    session.state = SessionState.CALIBRATED


async def _release(session: Session) -> List[BaseException]:
    """Close transport, then kill the process; collect failures instead of stopping."""
    errors: List[BaseException] = []
    if session.transport is not None:
        try:
            await session.transport.close()
        except Exception as exc:
            logger.warning("Closing transport on port %d failed: %s", session.port, exc)
            errors.append(exc)
    if session.pid is not None:
        try:
            await session.launcher.kill(session.pid)
        except Exception as exc:
            logger.warning("Killing browser pid=%d failed: %s", session.pid, exc)
            errors.append(exc)
    if session.reservation is not None:
        session.reservation.release()
    if session.owns_user_data_dir and session.user_data_dir:
        shutil.rmtree(session.user_data_dir, ignore_errors=True)
    return errors


async def _abort(session: Session) -> None:
    session.mark_failed("startup aborted")
    errors = await _release(session)
    session.state = SessionState.CLOSED
    for exc in errors:
        logger.warning("Cleanup after failed startup: %r", exc)


async def shutdown(session: Session) -> None:
    """Close the transport then force-kill the browser.

    Both steps always run. Raises ShutdownError listing every failure.
    """
    if session.state == SessionState.CLOSED:
        return
    errors = await _release(session)
    session.state = SessionState.CLOSED
    if errors:
        raise ShutdownError(errors, pid=session.pid)
    logger.info("Browser session on port %d shut down", session.port)


@asynccontextmanager
async def open_session(config: Optional[LaunchConfig] = None, **kwargs):
    """``async with open_session(cfg) as session:`` start/shutdown pairing."""
    session = await start(config, **kwargs)
    try:
        yield session
    finally:
        await shutdown(session)
