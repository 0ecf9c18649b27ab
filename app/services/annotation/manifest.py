"""
IIIF Manifest Parser

Turns raw IIIF Presentation API v3 Manifest JSON into a ManifestState.
Only what is needed to locate canvases, their images and their existing
transcriptions is read; the manifest is not otherwise validated.
"""
import logging
from typing import Any, Dict, List, Optional

from .errors import FormatError
from .models import AnnotationData, CanvasInfo, ManifestState, now_millis
from .targets import decode_target

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_LABEL = "Untitled Manifest"


def _get_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _first(value: Any) -> Any:
    """First entry of a list, or the value itself"""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def parse_label(value: Any) -> str:
    """
    Extract a display label

    Accepts a plain string or a language map ({"en": ["Title"], ...}); for a
    map the first string of the first value wins. Returns "" when nothing
    usable is found.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value:
        first = next(iter(value.values()))
        if isinstance(first, list) and first and isinstance(first[0], str):
            return first[0]
    return ""


def _parse_dimension(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, (int, float)) and value > 0:
        return int(value) if float(value).is_integer() else value
    return None


def _canvas_image(canvas: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Image service / direct URL of the canvas's first painting annotation"""
    items = canvas.get("items")
    page = _first(items) if isinstance(items, list) else None
    annotations = page.get("items") if isinstance(page, dict) else None
    painting = _first(annotations) if isinstance(annotations, list) else None
    body = painting.get("body") if isinstance(painting, dict) else None
    body = _first(body)
    if not isinstance(body, dict):
        return {"image_service": None, "image_url": None}

    service = _first(body.get("service"))
    service_id = None
    if isinstance(service, dict):
        service_id = _get_string(service.get("id")) or _get_string(service.get("@id"))

    return {
        "image_service": service_id,
        "image_url": _get_string(body.get("id")),
    }


def _canvas_thumbnail(canvas: Dict[str, Any]) -> Optional[str]:
    thumbnail = _first(canvas.get("thumbnail"))
    if isinstance(thumbnail, dict):
        return _get_string(thumbnail.get("id"))
    return None


def _annotation_from_item(
    item: Any,
    canvas_id: Optional[str],
    fallback_id: str,
    created_at: int,
) -> Optional[AnnotationData]:
    """
    Decode one Annotation item

    Args:
        item: Raw annotation JSON
        canvas_id: Owning canvas id, or None to take it from the target
        fallback_id: Id used when the item has none
        created_at: Creation timestamp to assign

    Returns:
        AnnotationData, or None when the target cannot be decoded
    """
    if not isinstance(item, dict):
        return None

    target = decode_target(item.get("target"))
    if target is None:
        logger.debug(f"Dropping annotation {item.get('id', fallback_id)!r}: undecodable target {item.get('target')!r}")
        return None

    body = _first(item.get("body"))
    body = body if isinstance(body, dict) else {}

    return AnnotationData(
        id=_get_string(item.get("id")) or fallback_id,
        canvas_id=canvas_id or target.canvas_id,
        x=target.x,
        y=target.y,
        w=target.w,
        h=target.h,
        text=_get_string(body.get("value")) or "",
        language=_get_string(body.get("language")) or "",
        created_at=created_at,
    )


def parse_existing_annotations(canvas: Dict[str, Any]) -> List[AnnotationData]:
    """
    Collect the supplementing annotations embedded in a canvas

    Items whose target cannot be decoded are dropped; the rest are kept.
    """
    pages = canvas.get("annotations")
    if not isinstance(pages, list):
        return []

    now = now_millis()
    result = []
    for page in pages:
        items = page.get("items") if isinstance(page, dict) else None
        if not isinstance(items, list):
            continue
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            if item.get("type") != "Annotation" or item.get("motivation") != "supplementing":
                continue
            annotation = _annotation_from_item(
                item,
                canvas_id=None,
                fallback_id=f"{canvas['id']}-legacy-{index}",
                created_at=now + index,
            )
            if annotation is not None:
                result.append(annotation)

    return result


def parse_annotation_page(page: Any, canvas_id: str) -> Optional[List[AnnotationData]]:
    """
    Decode a previously saved AnnotationPage for one canvas

    Args:
        page: AnnotationPage JSON as written by build_annotation_page
        canvas_id: Canvas the page belongs to

    Returns:
        List of annotations, or None when the page has no items list
    """
    items = page.get("items") if isinstance(page, dict) else None
    if not isinstance(items, list):
        return None

    now = now_millis()
    result = []
    for idx, item in enumerate(items):
        annotation = _annotation_from_item(
            item,
            canvas_id=canvas_id,
            fallback_id=f"{canvas_id}-{idx}",
            created_at=now + idx,
        )
        if annotation is not None:
            result.append(annotation)
    return result


def parse_manifest(manifest: Any) -> ManifestState:
    """
    Parse a IIIF Presentation API v3 Manifest

    Args:
        manifest: Raw manifest JSON (dict)

    Returns:
        ManifestState with one CanvasInfo per page item, in manifest order

    Raises:
        FormatError: If the document is not a Manifest, has no canvases, or
            contains a malformed canvas
    """
    if not isinstance(manifest, dict) or manifest.get("type") != "Manifest":
        raise FormatError("Not a IIIF Presentation API v3 Manifest")

    items = manifest.get("items")
    if not isinstance(items, list) or not items:
        raise FormatError("No canvases found in the Manifest")

    canvases = []
    for index, canvas in enumerate(items):
        if (
            not isinstance(canvas, dict)
            or canvas.get("type") != "Canvas"
            or not isinstance(canvas.get("id"), str)
        ):
            raise FormatError(f"Canvas #{index + 1} is malformed")

        canvases.append(CanvasInfo(
            id=canvas["id"],
            label=parse_label(canvas.get("label")) or f"Canvas {index + 1}",
            width=_parse_dimension(canvas.get("width")),
            height=_parse_dimension(canvas.get("height")),
            thumbnail=_canvas_thumbnail(canvas),
            existing_annotations=parse_existing_annotations(canvas),
            **_canvas_image(canvas),
        ))

    state = ManifestState(
        id=_get_string(manifest.get("id")),
        label=parse_label(manifest.get("label")) or DEFAULT_MANIFEST_LABEL,
        canvases=canvases,
    )
    logger.info(f"Parsed manifest {state.label!r} with {len(canvases)} canvases")
    return state
