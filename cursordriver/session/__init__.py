from .config import LaunchConfig, scfg
from .handle import Session, SessionState
from .ports import PortRegistry, registry
from .launcher import ProcessLauncher
from .transport import CDPTransport
from .lifecycle import open_session, shutdown, start

__all__ = [
    "LaunchConfig",
    "scfg",
    "Session",
    "SessionState",
    "PortRegistry",
    "registry",
    "ProcessLauncher",
    "CDPTransport",
    "open_session",
    "shutdown",
    "start",
]
