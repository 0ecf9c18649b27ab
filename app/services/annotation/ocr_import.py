"""
OCR Importer

Converts third-party OCR results (NDL OCR style JSON) into annotations.

Input format:
    {
        "contents": [[{"boundingBox": [[x, y], [x, y], [x, y], [x, y]],
                       "text": "...", "confidence": 0.98, "isVertical": "true"}]],
        "imginfo": {"img_width": 2000, "img_height": 3000}
    }

Each text line's quadrilateral is reduced to its axis-aligned bounding box
and rescaled from the OCR engine's source image to canvas pixels.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .models import AnnotationData, ManifestState, now_millis

logger = logging.getLogger(__name__)

TargetSize = Tuple[Optional[float], Optional[float]]

_TRAILING_INDEX = re.compile(r"_(\d+)$")


@dataclass
class OcrBatchResult:
    """
    Result of a multi-file OCR import

    Attributes:
        annotations_by_canvas: Updated annotation list per touched canvas id
            (existing annotations followed by the imported ones)
        errors: One human-readable message per failed file
        imported_count: Number of annotations created across all files
    """
    annotations_by_canvas: Dict[str, List[AnnotationData]] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    imported_count: int = 0


def _positive(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if value > 0 else None


def _clamp(value: float, upper: Optional[float]) -> float:
    if upper is None:
        return value
    return max(0.0, min(upper, value))


def _line_points(line: Dict[str, Any]) -> Optional[List[Tuple[float, float]]]:
    box = line.get("boundingBox")
    if not isinstance(box, list) or not box:
        return None
    points = []
    for point in box:
        if not isinstance(point, (list, tuple)) or len(point) < 2:
            return None
        x, y = point[0], point[1]
        if isinstance(x, bool) or isinstance(y, bool):
            return None
        if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
            return None
        points.append((x, y))
    return points


def import_ocr(
    ocr_result: Dict[str, Any],
    canvas_id: str,
    language: str = "ja",
    target_size: Optional[TargetSize] = None,
    now: Optional[int] = None,
    first_index: int = 0,
) -> List[AnnotationData]:
    """
    Convert one OCR result into annotations for a canvas

    Args:
        ocr_result: Parsed OCR JSON
        canvas_id: Canvas the annotations belong to
        language: Language tag for every annotation
        target_size: (width, height) of the canvas; either side may be None
        now: Import time in epoch milliseconds (default: the current time)
        first_index: Sequence number of the first line, so ids stay unique
            when several results are imported at the same instant

    Returns:
        One annotation per non-empty text line, in OCR order

    Raises:
        ValueError: If the result has no "contents" list
    """
    if not isinstance(ocr_result, dict) or not isinstance(ocr_result.get("contents"), list):
        raise ValueError("OCR result has no contents")

    target_w, target_h = target_size if target_size is not None else (None, None)
    target_w, target_h = _positive(target_w), _positive(target_h)

    info = ocr_result.get("imginfo")
    info = info if isinstance(info, dict) else {}
    source_w, source_h = _positive(info.get("img_width")), _positive(info.get("img_height"))

    scale_x = target_w / source_w if target_w and source_w else 1.0
    scale_y = target_h / source_h if target_h and source_h else 1.0

    lines = [
        line
        for region in ocr_result["contents"] if isinstance(region, list)
        for line in region if isinstance(line, dict)
    ]

    now = now if now is not None else now_millis()
    result = []
    for line in lines:
        text = line.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        points = _line_points(line)
        if points is None:
            logger.debug(f"Skipping OCR line without a usable bounding box: {text!r}")
            continue

        xs = [_clamp(px * scale_x, target_w) for px, _ in points]
        ys = [_clamp(py * scale_y, target_h) for _, py in points]
        x, y = min(xs), min(ys)

        idx = first_index + len(result)
        extras = {k: line[k] for k in ("confidence", "isVertical") if k in line}
        result.append(AnnotationData(
            id=f"ocr-{now}-{idx}",
            canvas_id=canvas_id,
            x=x,
            y=y,
            w=max(0.0, max(xs) - x),
            h=max(0.0, max(ys) - y),
            text=text,
            language=language,
            created_at=now + idx,
            extras=extras,
        ))

    return result


def match_canvas(filename: str, manifest: ManifestState) -> int:
    """
    Find the canvas an OCR file belongs to

    The canvas whose label equals the file stem wins; otherwise a trailing
    "_<n>" in the stem is read as a 1-based canvas number.

    Returns:
        0-based canvas index, or -1 when nothing matches
    """
    name = PurePath(filename).name
    base_name = re.sub(r"\.json$", "", name, flags=re.IGNORECASE)

    for i, canvas in enumerate(manifest.canvases):
        if canvas.label == base_name:
            return i

    match = _TRAILING_INDEX.search(base_name)
    if match:
        number = int(match.group(1))
        if 1 <= number <= len(manifest.canvases):
            return number - 1

    return -1


def _next_ocr_index(existing: Dict[str, Sequence[AnnotationData]], now: int) -> int:
    """First free sequence number for OCR ids created at now"""
    prefix = f"ocr-{now}-"
    used = [
        int(a.id[len(prefix):])
        for annotations in existing.values()
        for a in annotations
        if a.id.startswith(prefix) and a.id[len(prefix):].isdigit()
    ]
    return max(used) + 1 if used else 0


def import_ocr_files(
    files: Iterable[Tuple[str, Union[str, bytes]]],
    manifest: ManifestState,
    language: str = "ja",
    existing: Optional[Dict[str, Sequence[AnnotationData]]] = None,
) -> OcrBatchResult:
    """
    Import several OCR files, one per canvas

    A file that fails to parse or matches no canvas is reported in the
    result's error list and the remaining files are still imported.

    Args:
        files: (filename, raw JSON) pairs
        manifest: Loaded manifest used to match files to canvases
        language: Language tag for imported annotations
        existing: Current annotation lists per canvas id

    Returns:
        OcrBatchResult
    """
    existing = existing or {}
    batch = OcrBatchResult()
    now = now_millis()
    next_index = _next_ocr_index(existing, now)

    for filename, raw in files:
        try:
            data = json.loads(raw)
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not parse OCR file {filename}: {e}")
            batch.errors.append(f"{filename}: could not be parsed")
            continue

        canvas_index = match_canvas(filename, manifest)
        if canvas_index == -1:
            logger.warning(f"No canvas matches OCR file {filename}")
            batch.errors.append(f"{filename}: no matching canvas found")
            continue

        canvas = manifest.canvases[canvas_index]
        try:
            imported = import_ocr(
                data,
                canvas.id,
                language=language,
                target_size=(canvas.width, canvas.height),
                now=now,
                first_index=next_index,
            )
        except ValueError as e:
            logger.warning(f"Invalid OCR file {filename}: {e}")
            batch.errors.append(f"{filename}: could not be parsed")
            continue

        current = batch.annotations_by_canvas.get(canvas.id)
        if current is None:
            current = list(existing.get(canvas.id, []))
        batch.annotations_by_canvas[canvas.id] = current + imported
        batch.imported_count += len(imported)
        next_index += len(imported)
        logger.info(f"Imported {len(imported)} lines from {filename} into {canvas.label!r}")

    return batch
