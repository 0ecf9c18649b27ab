"""
Annotation Service

Parses IIIF manifests, edits transcription rectangles, imports OCR results
and writes the result back as IIIF annotations.

Usage:
    from app.services.annotation import ProjectStore, AnnotationSession, parse_manifest

    # Create a project from a manifest
    store = ProjectStore()
    meta = store.create_project("My book", "manifest-url", url, manifest_json)

    # Edit it
    session = AnnotationSession.open(store, meta.id)
    session.dispatch(SetDrawMode(True))
    session.dispatch(PointerDown(10, 10))
    session.dispatch(PointerMove(200, 60))
    session.dispatch(PointerUp())          # creates and selects an annotation
    session.update_text(session.selected.id, "Hello World")
    session.flush()                        # saves annotations/0.json

    # Import NDL OCR results (one file per canvas)
    batch = session.import_ocr_files([("page_00001.json", raw_json)])

    # Export the annotated manifest
    from app.services.annotation import AnnotationExporter
    exporter = AnnotationExporter()
    path = exporter.export_manifest(session.raw_manifest, session.annotations_by_canvas)

    # Use annotation canvas (in Streamlit app)
    from app.services.annotation import annotation_canvas, parse_canvas_events
    result = annotation_canvas(image_url, session.current_annotations, session.editor)
"""
from .errors import AnnotatorError, FormatError, ProjectNotFoundError
from .models import (
    Rect,
    AnnotationData,
    CanvasInfo,
    ManifestState,
    ProjectMeta,
    sort_for_display,
)
from .targets import Target, encode_target, decode_target
from .manifest import parse_manifest, parse_annotation_page, parse_label
from .ocr_import import OcrBatchResult, import_ocr, import_ocr_files, match_canvas
from .geometry import (
    Corner,
    EditorState,
    Viewport,
    CanvasChanged,
    ImageLoaded,
    SetDrawMode,
    Select,
    Wheel,
    ResetView,
    PointerDown,
    PointerMove,
    PointerUp,
    DeleteSelected,
    CreateAnnotation,
    UpdateAnnotation,
    DeleteAnnotation,
    DragEnded,
    reduce,
)
from .exporter import AnnotationExporter, build_annotation_page, build_manifest_with_annotations
from .scheduler import SaveScheduler
from .storage import ProjectStore, ProjectRecord
from .session import AnnotationSession

# Lazy imports for Streamlit components (avoid loading Streamlit in non-UI contexts)
_canvas_module = None


def __getattr__(name):
    """Lazy load Streamlit canvas components to avoid import warnings outside the app."""
    global _canvas_module
    if name in ("annotation_canvas", "parse_canvas_events", "resolve_image"):
        if _canvas_module is None:
            from . import canvas as _canvas_module
        return getattr(_canvas_module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AnnotatorError",
    "FormatError",
    "ProjectNotFoundError",
    "Rect",
    "AnnotationData",
    "CanvasInfo",
    "ManifestState",
    "ProjectMeta",
    "sort_for_display",
    "Target",
    "encode_target",
    "decode_target",
    "parse_manifest",
    "parse_annotation_page",
    "parse_label",
    "OcrBatchResult",
    "import_ocr",
    "import_ocr_files",
    "match_canvas",
    "Corner",
    "EditorState",
    "Viewport",
    "CanvasChanged",
    "ImageLoaded",
    "SetDrawMode",
    "Select",
    "Wheel",
    "ResetView",
    "PointerDown",
    "PointerMove",
    "PointerUp",
    "DeleteSelected",
    "CreateAnnotation",
    "UpdateAnnotation",
    "DeleteAnnotation",
    "DragEnded",
    "reduce",
    "AnnotationExporter",
    "build_annotation_page",
    "build_manifest_with_annotations",
    "SaveScheduler",
    "ProjectStore",
    "ProjectRecord",
    "AnnotationSession",
    "annotation_canvas",
    "parse_canvas_events",
    "resolve_image",
]
