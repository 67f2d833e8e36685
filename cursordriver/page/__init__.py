from .evaluator import ScriptRequest, evaluate, evaluate_json
from .navigator import navigate
from .primitives import (
    capture_screenshot,
    click,
    get_box_rect,
    insert_text,
    query_selector,
    scroll_into_view,
    set_file_input_files,
)

__all__ = [
    "ScriptRequest",
    "evaluate",
    "evaluate_json",
    "navigate",
    "capture_screenshot",
    "click",
    "get_box_rect",
    "insert_text",
    "query_selector",
    "scroll_into_view",
    "set_file_input_files",
]
