from __future__ import annotations
import asyncio
import logging
import os
import platform
import shutil
from typing import Dict, List, Optional, Sequence

import psutil

from ..errors import LaunchError
from .config import LaunchConfig, scfg

logger = logging.getLogger(__name__)

_MACOS_CHROME = "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"
_WINDOWS_CHROME = (
    r"%ProgramFiles%\Google\Chrome\Application\chrome.exe",
    r"%ProgramFiles(x86)%\Google\Chrome\Application\chrome.exe",
    r"%LocalAppData%\Google\Chrome\Application\chrome.exe",
)
_POSIX_CHROME = ("google-chrome", "google-chrome-stable", "chromium", "chromium-browser")


def _default_executable() -> Optional[str]:
    system = platform.system()
    if system == "Darwin":
        return _MACOS_CHROME if os.path.isfile(_MACOS_CHROME) else None
    if system == "Windows":
        for pattern in _WINDOWS_CHROME:
            candidate = os.path.expandvars(pattern)
            if os.path.isfile(candidate):
                return candidate
        return None
    for name in _POSIX_CHROME:
        found = shutil.which(name)
        if found:
            return found
    return None


def resolve_executable(config: LaunchConfig) -> str:
    """Pick the browser binary: config override, then $CHROME_BINARY, then platform default."""
    override = config.browser_binary_path or os.environ.get(scfg.ENV_BINARY)
    if override:
        found = override if os.path.isfile(override) else shutil.which(override)
        if not found:
            raise LaunchError(f"browser executable not found: {override!r}")
        return found
    found = _default_executable()
    if not found:
        raise LaunchError(
            f"no Chrome/Chromium install found on {platform.system()}; "
            f"set browser_binary_path or ${scfg.ENV_BINARY}"
        )
    return found


def build_args(port: int, user_data_dir: str, extra_args: Sequence[str] = ()) -> List[str]:
    """Command-line flags for a kiosk-mode browser bound to a debugging port."""
    return [
        f"--remote-debugging-port={port}",
        *scfg.BASE_FLAGS,
        f"--user-data-dir={user_data_dir}",
        *extra_args,
    ]


class ProcessLauncher:
    """Starts browser processes and force-kills them by pid."""

    def __init__(self):
        self._children: Dict[int, asyncio.subprocess.Process] = {}

    async def launch(self, executable: str, args: Sequence[str]) -> int:
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise LaunchError(f"failed to start {executable!r}: {exc}") from exc
        self._children[process.pid] = process
        logger.debug("Browser started pid=%d (%s)", process.pid, executable)
        return process.pid

    def is_running(self, pid: int) -> bool:
        process = self._children.get(pid)
        if process is not None and process.returncode is not None:
            return False
        try:
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False

    async def kill(self, pid: int) -> None:
        """Kill pid and its children; a process that already exited is not an error."""
        process = self._children.pop(pid, None)
        try:
            parent = psutil.Process(pid)
            victims = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            victims = []
        for victim in victims:
            try:
                victim.kill()
            except psutil.NoSuchProcess:
                pass
        if victims:
            await asyncio.to_thread(psutil.wait_procs, victims, scfg.KILL_WAIT_S)
        if process is not None:
            await process.wait()
        logger.debug("Browser pid=%d terminated", pid)
