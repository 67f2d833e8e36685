from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import List, Optional


class scfg:
    """Session startup tuning."""

    # --- Launch ---
    # One-shot wait after spawning the browser, before the first connection attempt
    GRACE_PERIOD_S = 2.0
    BASE_FLAGS = ("--disable-notifications", "--no-first-run", "--kiosk")
    PROFILE_DIR_PREFIX = "cursordriver-profile-"
    KILL_WAIT_S = 3.0

    # --- Endpoint / transport ---
    DEBUG_HOST = "127.0.0.1"
    ENDPOINT_HTTP_TIMEOUT_S = 5.0
    CLOSE_POLL_INTERVAL_S = 0.1

    # --- Calibration ---
    BLANK_URL = "about:blank"
    WINDOW_SIZE_EXPRESSION = (
        "JSON.stringify({width: window.innerWidth, height: window.innerHeight})"
    )
    SCREEN_SIZE_EXPRESSION = (
        "JSON.stringify({width: window.screen.width, height: window.screen.height})"
    )

    # --- Environment overrides ---
    ENV_BINARY = "CHROME_BINARY"
    ENV_PORT = "CURSORDRIVER_DEBUGGING_PORT"
    ENV_USER_DATA_DIR = "CURSORDRIVER_USER_DATA_DIR"


@dataclass
class LaunchConfig:
    """Options recognized by ``start()``.

    ``debugging_port=None`` picks a free ephemeral port; ``user_data_dir=None``
    creates a process-unique temp profile that is removed at shutdown.
    """

    browser_binary_path: Optional[str] = None
    debugging_port: Optional[int] = None
    user_data_dir: Optional[str] = None
    extra_args: List[str] = field(default_factory=list)
    grace_period_s: float = scfg.GRACE_PERIOD_S

    def __post_init__(self) -> None:
        if self.debugging_port is not None:
            port = int(self.debugging_port)
            if not 0 < port < 65536:
                raise ValueError(f"debugging_port out of range: {self.debugging_port!r}")
            self.debugging_port = port
        if self.grace_period_s < 0:
            raise ValueError("grace_period_s must be >= 0")

    @classmethod
    def from_env(cls, **overrides) -> "LaunchConfig":
        """Build from environment variables; keyword overrides win."""
        port = os.environ.get(scfg.ENV_PORT)
        values = {
            "browser_binary_path": os.environ.get(scfg.ENV_BINARY) or None,
            "debugging_port": int(port) if port else None,
            "user_data_dir": os.environ.get(scfg.ENV_USER_DATA_DIR) or None,
        }
        values.update(overrides)
        return cls(**values)
