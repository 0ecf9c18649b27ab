"""
Project Storage Service

Persists projects (a manifest plus its saved per-canvas annotation pages)
as JSON files.

Directory structure:
    data/projects/
        <project_id>/
            meta.json
            manifest.json
            annotations/
                0.json      - AnnotationPage for canvas index 0
                1.json
"""
import json
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.config import PROJECTS_DIR
from .errors import ProjectNotFoundError
from .exporter import to_json
from .models import ProjectMeta, SOURCE_TYPES

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ProjectRecord:
    """
    Everything stored for one project

    Attributes:
        meta: Project metadata
        manifest: Raw manifest JSON
        annotations_by_canvas_index: Saved AnnotationPage JSON keyed by
            0-based canvas index
    """
    meta: ProjectMeta
    manifest: Any
    annotations_by_canvas_index: Dict[int, Any] = field(default_factory=dict)


class ProjectStore:
    """
    Storage service for annotation projects

    Each project is stored in its own directory:
        <base_path>/<project_id>/
            meta.json       - ProjectMeta
            manifest.json   - Raw manifest as loaded
            annotations/    - One AnnotationPage per edited canvas
    """

    def __init__(self, base_path: Path = None):
        """
        Initialize storage service

        Args:
            base_path: Base directory for projects (default: data/projects,
                or $IIIF_DATA_DIR/projects)
        """
        if base_path is None:
            base_path = PROJECTS_DIR
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _project_dir(self, project_id: str) -> Path:
        """Get the directory path for a project"""
        if not project_id or "/" in project_id or "\\" in project_id or project_id in (".", ".."):
            raise ProjectNotFoundError(project_id)
        return self.base_path / project_id

    def _meta_path(self, project_id: str) -> Path:
        return self._project_dir(project_id) / "meta.json"

    def _manifest_path(self, project_id: str) -> Path:
        return self._project_dir(project_id) / "manifest.json"

    def _annotations_dir(self, project_id: str) -> Path:
        return self._project_dir(project_id) / "annotations"

    def _write_json(self, path: Path, data: Any) -> None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(to_json(data))

    def _read_json(self, path: Path) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _read_meta(self, project_id: str) -> ProjectMeta:
        path = self._meta_path(project_id)
        if not path.exists():
            raise ProjectNotFoundError(project_id)
        return ProjectMeta.from_dict(self._read_json(path))

    def _touch(self, project_id: str, name: Optional[str] = None) -> ProjectMeta:
        """Bump updated_at (and optionally rename)"""
        meta = self._read_meta(project_id)
        if name:
            meta.name = name
        meta.updated_at = _timestamp()
        self._write_json(self._meta_path(project_id), meta.to_dict())
        return meta

    def exists(self, project_id: str) -> bool:
        """Check if a project exists"""
        try:
            return self._meta_path(project_id).exists()
        except ProjectNotFoundError:
            return False

    def create_project(
        self,
        name: str,
        source_type: str,
        source_ref: str,
        manifest: Any,
    ) -> ProjectMeta:
        """
        Create a new project

        Args:
            name: Display name
            source_type: "manifest-url", "manifest-file" or "file-upload"
            source_ref: URL or filename(s) of the source
            manifest: Raw manifest JSON

        Returns:
            Metadata of the created project
        """
        if source_type not in SOURCE_TYPES:
            raise ValueError(f"Unknown source type: {source_type}")

        project_id = str(uuid.uuid4())
        now = _timestamp()
        meta = ProjectMeta(
            id=project_id,
            name=name,
            source_type=source_type,
            source_ref=source_ref,
            created_at=now,
            updated_at=now,
        )

        self._annotations_dir(project_id).mkdir(parents=True, exist_ok=True)
        self._write_json(self._meta_path(project_id), meta.to_dict())
        self._write_json(self._manifest_path(project_id), manifest)

        logger.info(f"Created project {name!r} ({project_id})")
        return meta

    def list_projects(self) -> List[ProjectMeta]:
        """
        List stored projects

        Returns:
            Project metadata, most recently updated first. Directories
            without a readable meta.json are skipped.
        """
        metas = []
        for item in self.base_path.iterdir():
            meta_path = item / "meta.json"
            if not item.is_dir() or not meta_path.exists():
                continue
            try:
                metas.append(ProjectMeta.from_dict(self._read_json(meta_path)))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable project {item.name}: {e}")

        return sorted(metas, key=lambda m: m.updated_at, reverse=True)

    def read_project(self, project_id: str) -> ProjectRecord:
        """
        Load a project with its saved annotation pages

        Raises:
            ProjectNotFoundError: If the project does not exist
        """
        meta = self._read_meta(project_id)
        manifest = self._read_json(self._manifest_path(project_id))

        pages: Dict[int, Any] = {}
        annotations_dir = self._annotations_dir(project_id)
        if annotations_dir.exists():
            for page_path in annotations_dir.glob("*.json"):
                if not page_path.stem.isdigit():
                    continue
                try:
                    pages[int(page_path.stem)] = self._read_json(page_path)
                except ValueError as e:
                    logger.warning(f"Ignoring unreadable annotation page {page_path}: {e}")

        return ProjectRecord(meta=meta, manifest=manifest, annotations_by_canvas_index=pages)

    def update_manifest(self, project_id: str, manifest: Any, name: Optional[str] = None) -> ProjectMeta:
        """Replace a project's manifest (and optionally its name)"""
        self._read_meta(project_id)
        self._write_json(self._manifest_path(project_id), manifest)
        return self._touch(project_id, name=name)

    def write_canvas_annotations(self, project_id: str, canvas_index: int, annotation_page: Any) -> Path:
        """
        Save one canvas's AnnotationPage

        Args:
            project_id: Project id
            canvas_index: 0-based canvas index
            annotation_page: AnnotationPage JSON from build_annotation_page

        Returns:
            Path to the written file
        """
        if canvas_index < 0:
            raise ValueError(f"Invalid canvas index: {canvas_index}")

        self._read_meta(project_id)
        annotations_dir = self._annotations_dir(project_id)
        annotations_dir.mkdir(parents=True, exist_ok=True)

        page_path = annotations_dir / f"{canvas_index}.json"
        self._write_json(page_path, annotation_page)
        self._touch(project_id)

        logger.debug(f"Saved annotations for canvas {canvas_index} of {project_id}")
        return page_path

    def delete_project(self, project_id: str) -> bool:
        """
        Delete a project and all its files

        Returns:
            True if deleted, False if not found
        """
        project_dir = self._project_dir(project_id)
        if project_dir.exists() and project_dir.is_dir():
            shutil.rmtree(project_dir)
            logger.info(f"Deleted project {project_id}")
            return True
        return False
