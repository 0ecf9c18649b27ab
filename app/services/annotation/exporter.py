"""
Annotation Exporter

Serializes in-memory annotations back into IIIF Presentation API v3 JSON:
- AnnotationPage per canvas (the unit that is persisted)
- Full manifest with one AnnotationPage per annotated canvas (export file)
- Zip archive of per-canvas AnnotationPages
"""
import copy
import io
import json
import logging
import uuid
import zipfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from app.config import EXPORTS_DIR, EXPORT_FILENAME, IIIF_CONTEXT
from .models import AnnotationData, ManifestState
from .targets import encode_target

logger = logging.getLogger(__name__)


def _urn() -> str:
    return f"urn:uuid:{uuid.uuid4()}"


def to_json(document: Any) -> str:
    """Serialize a IIIF document the way it is written to disk (2-space indent)"""
    return json.dumps(document, indent=2, ensure_ascii=False)


def build_annotation_item(annotation: AnnotationData) -> Dict[str, Any]:
    """One supplementing Annotation with a fresh id"""
    body = {
        "type": "TextualBody",
        "value": annotation.text,
        "format": "text/plain",
    }
    if annotation.language:
        body["language"] = annotation.language

    return {
        "id": _urn(),
        "type": "Annotation",
        "motivation": "supplementing",
        "body": body,
        "target": encode_target(
            annotation.canvas_id, annotation.x, annotation.y, annotation.w, annotation.h
        ),
    }


def build_annotation_page(annotations: Sequence[AnnotationData]) -> Dict[str, Any]:
    """
    Wrap one canvas's annotations in an AnnotationPage

    Page and annotation ids are generated fresh on every call.
    """
    return {
        "@context": IIIF_CONTEXT,
        "id": _urn(),
        "type": "AnnotationPage",
        "items": [build_annotation_item(a) for a in annotations],
    }


def build_manifest_with_annotations(
    raw_manifest: Any,
    annotations_by_canvas: Mapping[str, Sequence[AnnotationData]],
) -> Any:
    """
    Copy a manifest with its canvases' annotations replaced

    Every canvas with a string id loses its previous "annotations"; canvases
    with at least one in-memory annotation get exactly one AnnotationPage.
    Other items pass through unchanged. raw_manifest is never modified.

    Args:
        raw_manifest: Original manifest JSON
        annotations_by_canvas: Current annotation list per canvas id

    Returns:
        New manifest JSON
    """
    manifest = copy.deepcopy(raw_manifest)
    if not isinstance(manifest, dict) or not isinstance(manifest.get("items"), list):
        return manifest

    items = []
    for canvas in manifest["items"]:
        if not isinstance(canvas, dict) or not isinstance(canvas.get("id"), str):
            items.append(canvas)
            continue

        canvas.pop("annotations", None)
        annotations = annotations_by_canvas.get(canvas["id"]) or []
        if annotations:
            canvas["annotations"] = [{
                "id": _urn(),
                "type": "AnnotationPage",
                "items": [build_annotation_item(a) for a in annotations],
            }]
        items.append(canvas)

    manifest["items"] = items
    return manifest


class AnnotationExporter:
    """
    Export annotated manifests as downloadable files
    """

    def __init__(self, output_dir: Path = None):
        """
        Initialize exporter

        Args:
            output_dir: Output directory for exports (default: data/exports)
        """
        if output_dir is None:
            output_dir = EXPORTS_DIR
        self.output_dir = Path(output_dir)

    def export_manifest_bytes(
        self,
        raw_manifest: Any,
        annotations_by_canvas: Mapping[str, Sequence[AnnotationData]],
    ) -> bytes:
        """
        Export the annotated manifest in memory (for browser download)

        Returns:
            UTF-8 JSON, served as application/ld+json
        """
        manifest = build_manifest_with_annotations(raw_manifest, annotations_by_canvas)
        return to_json(manifest).encode("utf-8")

    def export_manifest(
        self,
        raw_manifest: Any,
        annotations_by_canvas: Mapping[str, Sequence[AnnotationData]],
        output_name: Optional[str] = None,
    ) -> Path:
        """
        Export the annotated manifest to disk

        Args:
            raw_manifest: Original manifest JSON
            annotations_by_canvas: Current annotation list per canvas id
            output_name: Output filename (default: manifest-annotated.json)

        Returns:
            Path to the exported file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        output_path = self.output_dir / (output_name or EXPORT_FILENAME)
        output_path.write_bytes(self.export_manifest_bytes(raw_manifest, annotations_by_canvas))

        logger.info(f"Exported annotated manifest to {output_path}")
        return output_path

    def export_pages_zip_bytes(
        self,
        manifest: ManifestState,
        annotations_by_canvas: Mapping[str, Sequence[AnnotationData]],
    ) -> bytes:
        """
        Export one AnnotationPage per annotated canvas as a zip archive

        Entries are named canvas-<n>.json with the 1-based canvas number.
        """
        buffer = io.BytesIO()

        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for index, canvas in enumerate(manifest.canvases):
                annotations = annotations_by_canvas.get(canvas.id) or []
                if not annotations:
                    continue
                zf.writestr(
                    f"canvas-{index + 1:03d}.json",
                    to_json(build_annotation_page(annotations)),
                )

        buffer.seek(0)
        return buffer.getvalue()
