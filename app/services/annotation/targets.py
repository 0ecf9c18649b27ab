"""
IIIF target fragment codec

Maps a canvas rectangle to and from the media-fragment selector used by
IIIF annotations:

    <canvasURI>#xywh=<int>,<int>,<int>,<int>
"""
from dataclasses import dataclass
from typing import Any, Optional
import math

from .models import Rect

FRAGMENT_SEPARATOR = "#xywh="


@dataclass(frozen=True)
class Target:
    """Decoded annotation target"""
    canvas_id: str
    x: float
    y: float
    w: float
    h: float

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h)


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (1.5 -> 2, -1.5 -> -2)"""
    rounded = math.floor(abs(value) + 0.5)
    return int(-rounded if value < 0 else rounded)


def encode_target(canvas_id: str, x: float, y: float, w: float, h: float) -> str:
    """
    Encode a rectangle as a IIIF target string

    Each component is rounded on its own, so x + w is not re-derived from
    the rounded edges.
    """
    parts = ",".join(str(round_half_away(v)) for v in (x, y, w, h))
    return f"{canvas_id}{FRAGMENT_SEPARATOR}{parts}"


def _parse_number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def decode_target(target: Any) -> Optional[Target]:
    """
    Decode a IIIF target string

    Args:
        target: Target value from an annotation (any JSON value)

    Returns:
        Target, or None when the value is not a "<canvas>#xywh=x,y,w,h"
        string with four numeric components
    """
    if not isinstance(target, str):
        return None

    canvas_id, separator, fragment = target.partition(FRAGMENT_SEPARATOR)
    if not separator or not canvas_id or not fragment:
        return None

    components = fragment.split(",")
    if len(components) != 4:
        return None

    numbers = [_parse_number(c) for c in components]
    if any(n is None for n in numbers):
        return None

    x, y, w, h = numbers
    return Target(canvas_id=canvas_id, x=x, y=y, w=w, h=h)
