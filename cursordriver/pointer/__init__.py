from .controller import PointerController
from .dispatchers import PointerInjector, PyAutoGUIInjector
from .locate import get_bounding_client_rect, get_element_rect
from .render import save_target_overlay
from .telemetry import recorder, set_overlay_callback

__all__ = [
    "PointerController",
    "PointerInjector",
    "PyAutoGUIInjector",
    "get_bounding_client_rect",
    "get_element_rect",
    "save_target_overlay",
    "recorder",
    "set_overlay_callback",
]
