"""
Annotation editing session

Owns the per-canvas annotation lists of one open project, feeds editor
events through the geometry reducer, applies the resulting intents and
schedules persistence.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from app.config import DEFAULT_LANGUAGE
from .exporter import AnnotationExporter, build_annotation_page, build_manifest_with_annotations
from .geometry import (
    CanvasChanged,
    CreateAnnotation,
    DeleteAnnotation,
    DragEnded,
    EditorState,
    Event,
    ImageLoaded,
    Intent,
    PointerDown,
    Select,
    SetDrawMode,
    UpdateAnnotation,
    reduce,
)
from .manifest import parse_annotation_page, parse_manifest
from .models import AnnotationData, CanvasInfo, ManifestState, new_annotation_id, now_millis, sort_for_display
from .ocr_import import OcrBatchResult, import_ocr_files
from .scheduler import SaveScheduler, TimerFactory
from .storage import ProjectStore

logger = logging.getLogger(__name__)


def load_annotations_by_canvas(
    manifest: ManifestState,
    saved_pages: Optional[Dict[int, Any]] = None,
) -> Dict[str, List[AnnotationData]]:
    """
    Build the initial annotation list of every canvas

    A saved AnnotationPage for the canvas index wins; otherwise the
    annotations embedded in the manifest are used.
    """
    saved_pages = saved_pages or {}
    result = {}
    for index, canvas in enumerate(manifest.canvases):
        loaded = None
        if index in saved_pages:
            loaded = parse_annotation_page(saved_pages[index], canvas.id)
        if loaded is None:
            loaded = list(canvas.existing_annotations)
        result[canvas.id] = loaded
    return result


class AnnotationSession:
    """
    Editing state for one manifest

    Usage:
        store = ProjectStore()
        session = AnnotationSession.open(store, project_id)
        session.dispatch(SetDrawMode(True))
        session.dispatch(PointerDown(10, 10))
        session.dispatch(PointerMove(200, 80))
        session.dispatch(PointerUp())
        session.update_text(session.selected.id, "transcription")
        session.flush()
    """

    def __init__(
        self,
        raw_manifest: Any,
        manifest: ManifestState,
        annotations_by_canvas: Dict[str, List[AnnotationData]],
        store: Optional[ProjectStore] = None,
        project_id: Optional[str] = None,
        default_language: str = DEFAULT_LANGUAGE,
        timer_factory: Optional[TimerFactory] = None,
    ):
        self.raw_manifest = raw_manifest
        self.manifest = manifest
        self.annotations_by_canvas = annotations_by_canvas
        self.store = store
        self.project_id = project_id
        self.default_language = default_language
        self.scheduler = SaveScheduler(self._persist, timer_factory=timer_factory)
        self.current_index = 0
        self.editor = EditorState()
        self._show_current_canvas()

    @classmethod
    def from_manifest(
        cls,
        raw_manifest: Any,
        saved_pages: Optional[Dict[int, Any]] = None,
        **kwargs,
    ) -> "AnnotationSession":
        """
        Start a session from raw manifest JSON

        Raises:
            FormatError: If the manifest is structurally invalid
        """
        manifest = parse_manifest(raw_manifest)
        return cls(
            raw_manifest=raw_manifest,
            manifest=manifest,
            annotations_by_canvas=load_annotations_by_canvas(manifest, saved_pages),
            **kwargs,
        )

    @classmethod
    def open(cls, store: ProjectStore, project_id: str, **kwargs) -> "AnnotationSession":
        """
        Open a stored project

        Raises:
            ProjectNotFoundError: If the project does not exist
            FormatError: If its manifest is structurally invalid
        """
        record = store.read_project(project_id)
        logger.info(f"Opening project {record.meta.name!r} ({project_id})")
        return cls.from_manifest(
            record.manifest,
            saved_pages=record.annotations_by_canvas_index,
            store=store,
            project_id=project_id,
            **kwargs,
        )

    # Navigation

    @property
    def current_canvas(self) -> CanvasInfo:
        return self.manifest.canvases[self.current_index]

    @property
    def current_annotations(self) -> List[AnnotationData]:
        """Current canvas's annotations in reading order"""
        return sort_for_display(self.annotations_by_canvas.get(self.current_canvas.id, []))

    @property
    def selected(self) -> Optional[AnnotationData]:
        return self.find(self.editor.selected_id)

    def find(self, annotation_id: Optional[str]) -> Optional[AnnotationData]:
        """Annotation of the current canvas by id"""
        if annotation_id is None:
            return None
        for annotation in self.annotations_by_canvas.get(self.current_canvas.id, []):
            if annotation.id == annotation_id:
                return annotation
        return None

    def go_to(self, index: int) -> None:
        """Show canvas index (clamped), clearing selection and resetting the view"""
        index = max(0, min(len(self.manifest.canvases) - 1, index))
        if index == self.current_index:
            return
        self.current_index = index
        self._show_current_canvas()

    def next_canvas(self) -> None:
        self.go_to(self.current_index + 1)

    def prev_canvas(self) -> None:
        self.go_to(self.current_index - 1)

    def _show_current_canvas(self) -> None:
        canvas = self.current_canvas
        self.editor, _ = reduce(self.editor, CanvasChanged(canvas.id, canvas.width, canvas.height))

    # Editing

    def _resolve_hit(self, event: PointerDown) -> PointerDown:
        """
        Swap the hit annotation for its current version

        A component batch can hold several gestures on the same rectangle,
        so hits are looked up when the event runs, not when it was parsed.
        """
        live = self.find(event.hit.id)
        if live is None:
            return replace(event, hit=None, corner=None)
        return replace(event, hit=live)

    def dispatch(self, event: Event) -> List[Intent]:
        """
        Run an editor event and apply its intents

        Returns:
            The intents that were applied
        """
        if isinstance(event, ImageLoaded):
            self.current_canvas.refine_size(event.width, event.height)
        elif isinstance(event, PointerDown) and event.hit is not None:
            event = self._resolve_hit(event)
        transition = reduce(self.editor, event)
        self.editor = transition.state
        for intent in transition.intents:
            self._apply(intent)
        return transition.intents

    def _apply(self, intent: Intent) -> None:
        canvas_id = self.current_canvas.id

        if isinstance(intent, CreateAnnotation):
            rect = intent.rect
            annotation = AnnotationData(
                id=new_annotation_id(),
                canvas_id=canvas_id,
                x=rect.x,
                y=rect.y,
                w=rect.w,
                h=rect.h,
                language=self.default_language,
                created_at=now_millis(),
            )
            self.annotations_by_canvas.setdefault(canvas_id, []).append(annotation)
            self.editor, _ = reduce(self.editor, Select(annotation.id))
            self.editor, _ = reduce(self.editor, SetDrawMode(False))
            self._schedule_save(canvas_id)
        elif isinstance(intent, UpdateAnnotation):
            # Visible state only; the gesture end persists
            self._replace(canvas_id, intent.annotation_id, lambda a: a.with_rect(intent.rect))
        elif isinstance(intent, DeleteAnnotation):
            self.delete_annotation(intent.annotation_id)
        elif isinstance(intent, DragEnded):
            self._schedule_save(canvas_id)
            self.scheduler.flush()
        else:
            raise TypeError(f"Unknown editor intent: {intent!r}")

    def _replace(self, canvas_id: str, annotation_id: str, update) -> bool:
        annotations = self.annotations_by_canvas.get(canvas_id, [])
        for i, annotation in enumerate(annotations):
            if annotation.id == annotation_id:
                annotations[i] = update(annotation)
                return True
        return False

    def update_text(self, annotation_id: str, text: str) -> bool:
        canvas_id = self.current_canvas.id
        changed = self._replace(canvas_id, annotation_id, lambda a: replace(a, text=text))
        if changed:
            self._schedule_save(canvas_id)
        return changed

    def update_language(self, annotation_id: str, language: str) -> bool:
        canvas_id = self.current_canvas.id
        changed = self._replace(canvas_id, annotation_id, lambda a: replace(a, language=language))
        if changed:
            self._schedule_save(canvas_id)
        return changed

    def delete_annotation(self, annotation_id: str) -> bool:
        """Remove an annotation from the current canvas"""
        canvas_id = self.current_canvas.id
        annotations = self.annotations_by_canvas.get(canvas_id, [])
        remaining = [a for a in annotations if a.id != annotation_id]
        if len(remaining) == len(annotations):
            return False
        self.annotations_by_canvas[canvas_id] = remaining
        if self.editor.selected_id == annotation_id:
            self.editor, _ = reduce(self.editor, Select(None))
        self._schedule_save(canvas_id)
        return True

    # OCR

    def import_ocr_files(self, files: Iterable[Tuple[str, Union[str, bytes]]]) -> OcrBatchResult:
        """
        Import OCR files into their matching canvases and save each touched canvas

        Per-file failures are reported in the result and do not stop the batch.
        """
        batch = import_ocr_files(
            files,
            self.manifest,
            language=self.default_language,
            existing=self.annotations_by_canvas,
        )
        # Pending edits go out before the imported lists replace them
        self.scheduler.flush()
        for canvas_id, annotations in batch.annotations_by_canvas.items():
            self.annotations_by_canvas[canvas_id] = annotations
            self._persist(self.manifest.index_of(canvas_id), list(annotations))
        return batch

    # Persistence and export

    def _schedule_save(self, canvas_id: str) -> None:
        index = self.manifest.index_of(canvas_id)
        self.scheduler.schedule(index, list(self.annotations_by_canvas.get(canvas_id, [])))

    def _persist(self, canvas_index: int, annotations: List[AnnotationData]) -> None:
        if self.store is None or self.project_id is None or canvas_index < 0:
            return
        canvas_id = self.manifest.canvases[canvas_index].id
        page = build_annotation_page([replace(a, canvas_id=canvas_id) for a in annotations])
        self.store.write_canvas_annotations(self.project_id, canvas_index, page)

    def flush(self) -> bool:
        """Write any pending change now"""
        return self.scheduler.flush()

    def export_manifest(self) -> Any:
        """Full manifest with the current annotations"""
        return build_manifest_with_annotations(self.raw_manifest, self.annotations_by_canvas)

    def export_manifest_bytes(self, exporter: Optional[AnnotationExporter] = None) -> bytes:
        exporter = exporter or AnnotationExporter()
        return exporter.export_manifest_bytes(self.raw_manifest, self.annotations_by_canvas)

    def annotation_counts(self) -> Dict[str, int]:
        """Number of annotations per canvas id"""
        return {
            canvas.id: len(self.annotations_by_canvas.get(canvas.id, []))
            for canvas in self.manifest.canvases
        }
