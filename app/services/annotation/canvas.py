"""
Annotation Canvas - Streamlit component for drawing regions on canvas images

The frontend only reports raw pointer events; all geometry runs in
geometry.reduce on the Python side.
"""
import base64
import logging
import os
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import streamlit.components.v1 as components
from PIL import Image

from app.config import ANNOTATION_CANVAS_RELEASE_MODE
from .geometry import (
    Corner,
    EditorState,
    Event,
    ImageLoaded,
    PointerDown,
    PointerMove,
    PointerUp,
    ResetView,
    Wheel,
)
from .models import AnnotationData, CanvasInfo

logger = logging.getLogger(__name__)

# Declare the custom component
_RELEASE = ANNOTATION_CANVAS_RELEASE_MODE

if not _RELEASE:
    _annotation_canvas = components.declare_component(
        "annotation_canvas",
        url="http://localhost:5174",  # Vite dev server
    )
else:
    parent_dir = os.path.dirname(os.path.abspath(__file__))
    build_dir = os.path.join(parent_dir, "../../../frontend/annotation_canvas/build")
    _annotation_canvas = components.declare_component(
        "annotation_canvas",
        path=build_dir
    )


def image_to_base64(image: Image.Image) -> str:
    """
    Convert PIL Image to base64 string

    Args:
        image: PIL Image object

    Returns:
        Base64-encoded data URL string
    """
    buffered = BytesIO()
    image.save(buffered, format="PNG")
    img_str = base64.b64encode(buffered.getvalue()).decode()
    return f"data:image/png;base64,{img_str}"


def resolve_image(canvas: CanvasInfo) -> Optional[str]:
    """
    Image URL to hand to the frontend

    Local files (e.g. pages of an uploaded PDF) are inlined as data URLs and
    their natural size is recorded on the canvas; remote images are passed
    through and report their size once loaded.

    Returns:
        URL, or None when the canvas has no image
    """
    source = canvas.image_source
    if source is None:
        return None

    if "://" in source and not source.startswith("file://"):
        return source
    local_path = Path(source[len("file://"):] if source.startswith("file://") else source)
    if not local_path.is_file():
        return source

    with Image.open(local_path) as image:
        canvas.refine_size(*image.size)
        return image_to_base64(image)


def annotation_to_dict(annotation: AnnotationData) -> Dict[str, Any]:
    """Convert AnnotationData to dict format for JS component"""
    return {
        "id": annotation.id,
        "x": annotation.x,
        "y": annotation.y,
        "w": annotation.w,
        "h": annotation.h,
        "text": annotation.text,
    }


def editor_to_dict(state: EditorState) -> Dict[str, Any]:
    """Viewport, preview and selection for the JS component"""
    return {
        "zoom": state.viewport.zoom,
        "offset": {"x": state.viewport.offset_x, "y": state.viewport.offset_y},
        "preview": state.preview.to_dict() if state.preview else None,
        "selectedId": state.selected_id,
        "drawMode": state.draw_mode,
    }


def annotation_canvas(
    image_url: str,
    annotations: List[AnnotationData],
    state: EditorState,
    key: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Display interactive annotation canvas

    Args:
        image_url: Image to display (URL or data URL)
        annotations: Annotations of the canvas
        state: Current editor state
        key: Streamlit component key

    Returns:
        Dict with:
        - events: Pointer events since the last rerun
        - eventsTimestamp: Changes whenever a new batch is sent
    """
    annotations_data = [annotation_to_dict(a) for a in annotations]

    return _annotation_canvas(
        imageUrl=image_url,
        annotations=annotations_data,
        editor=editor_to_dict(state),
        key=key,
        default={"events": [], "eventsTimestamp": None},
    )


def _event_from_dict(data: Dict[str, Any], by_id: Dict[str, AnnotationData]) -> Optional[Event]:
    kind = data.get("type")

    if kind == "pointerdown":
        hit = by_id.get(data.get("hitId")) if data.get("hitId") else None
        corner = data.get("corner")
        return PointerDown(
            x=float(data["x"]),
            y=float(data["y"]),
            hit=hit,
            corner=Corner(corner) if corner and hit is not None else None,
        )
    if kind == "pointermove":
        return PointerMove(x=float(data["x"]), y=float(data["y"]))
    if kind in ("pointerup", "pointerleave"):
        return PointerUp()
    if kind == "wheel":
        return Wheel(delta_y=float(data["deltaY"]))
    if kind == "imageloaded":
        return ImageLoaded(width=float(data["width"]), height=float(data["height"]))
    if kind == "resetview":
        return ResetView()
    return None


def parse_canvas_events(
    result: Optional[Dict[str, Any]],
    annotations: Sequence[AnnotationData],
) -> List[Event]:
    """
    Parse the result from annotation_canvas component into editor events

    Args:
        result: Raw result dict from component
        annotations: Annotations the component was rendered with (hit ids
            are resolved against these)

    Returns:
        Editor events in the order they happened; malformed entries are skipped
    """
    if not result:
        return []

    by_id = {a.id: a for a in annotations}
    events = []
    for data in result.get("events") or []:
        if not isinstance(data, dict):
            continue
        try:
            event = _event_from_dict(data, by_id)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed canvas event {data!r}: {e}")
            continue
        if event is not None:
            events.append(event)
    return events
