from __future__ import annotations
import math


def truncate(value: float) -> int:
    """Convert a float measurement to an integer pixel, truncating toward zero."""
    if not math.isfinite(value):
        raise ValueError(f"cannot convert non-finite measurement {value!r} to a pixel")
    return int(value)


def unwrap_first(method_names, obj):
    """Return the first callable attribute of obj among method_names."""
    for method_name in method_names:
        method = getattr(obj, method_name, None)
        if callable(method):
            return method
    raise AttributeError(
        f"{type(obj).__name__} exposes none of: {', '.join(method_names)}"
    )
