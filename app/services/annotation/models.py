"""
Annotation Data Models

Dataclasses for representing manifests, canvases and transcription regions.
"""
from dataclasses import dataclass, field, replace
from typing import List, Optional, Dict, Any
import time
import uuid

from app.config import IIIF_FULL_IMAGE_SUFFIX


def now_millis() -> int:
    """Current time as epoch milliseconds"""
    return int(time.time() * 1000)


def new_annotation_id() -> str:
    """Time-based annotation id, unique within one millisecond"""
    return f"{now_millis()}-{uuid.uuid4().hex[:4]}"


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in canvas pixel space (top-left origin)"""
    x: float
    y: float
    w: float
    h: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "Rect":
        return cls(x=data["x"], y=data["y"], w=data["w"], h=data["h"])


@dataclass
class AnnotationData:
    """
    One transcribed region on a canvas

    Attributes:
        canvas_id: Id of the owning canvas
        x, y, w, h: Rectangle in canvas pixels
        text: Transcription text
        language: Language tag (ISO code or empty)
        id: Unique identifier, never empty
        created_at: Creation time in epoch millis (ordering tie-break only)
        extras: Non-IIIF values (e.g. OCR confidence), never exported
    """
    canvas_id: str
    x: float
    y: float
    w: float
    h: float
    text: str = ""
    language: str = ""
    id: str = field(default_factory=new_annotation_id)
    created_at: int = field(default_factory=now_millis)
    extras: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("Annotation id must not be empty")

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h)

    def with_rect(self, rect: Rect) -> "AnnotationData":
        """Copy of this annotation moved/resized to rect"""
        return replace(self, x=rect.x, y=rect.y, w=rect.w, h=rect.h)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "canvas_id": self.canvas_id,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "text": self.text,
            "language": self.language,
            "created_at": self.created_at,
        }
        if self.extras:
            data["extras"] = dict(self.extras)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationData":
        return cls(
            id=data["id"],
            canvas_id=data["canvas_id"],
            x=data["x"],
            y=data["y"],
            w=data["w"],
            h=data["h"],
            text=data.get("text", ""),
            language=data.get("language", ""),
            created_at=data.get("created_at", now_millis()),
            extras=dict(data.get("extras", {})),
        )


@dataclass
class CanvasInfo:
    """
    One page of a manifest

    Width and height may be unknown until the image loads; refine_size()
    fills them in from the image's natural pixel dimensions.
    """
    id: str
    label: str
    width: Optional[int] = None
    height: Optional[int] = None
    thumbnail: Optional[str] = None
    image_service: Optional[str] = None
    image_url: Optional[str] = None
    existing_annotations: List[AnnotationData] = field(default_factory=list)

    @property
    def image_source(self) -> Optional[str]:
        """URI of a full-resolution rendition, or None when the canvas has no image"""
        if self.image_service:
            return f"{self.image_service.rstrip('/')}{IIIF_FULL_IMAGE_SUFFIX}"
        return self.image_url

    def refine_size(self, width: int, height: int) -> None:
        """Record the loaded image's natural size"""
        if width > 0 and height > 0:
            self.width = width
            self.height = height

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "width": self.width,
            "height": self.height,
            "thumbnail": self.thumbnail,
            "image_service": self.image_service,
            "image_url": self.image_url,
            "existing_annotations": [a.to_dict() for a in self.existing_annotations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanvasInfo":
        return cls(
            id=data["id"],
            label=data.get("label", ""),
            width=data.get("width"),
            height=data.get("height"),
            thumbnail=data.get("thumbnail"),
            image_service=data.get("image_service"),
            image_url=data.get("image_url"),
            existing_annotations=[
                AnnotationData.from_dict(a) for a in data.get("existing_annotations", [])
            ],
        )


@dataclass
class ManifestState:
    """
    A loaded manifest

    Canvas order is the manifest item order and is never changed.
    """
    label: str
    canvases: List[CanvasInfo] = field(default_factory=list)
    id: Optional[str] = None

    def canvas_by_id(self, canvas_id: str) -> Optional[CanvasInfo]:
        """Get a canvas by ID"""
        for canvas in self.canvases:
            if canvas.id == canvas_id:
                return canvas
        return None

    def index_of(self, canvas_id: str) -> int:
        """0-based index of a canvas, or -1 when not found"""
        for i, canvas in enumerate(self.canvases):
            if canvas.id == canvas_id:
                return i
        return -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "canvases": [c.to_dict() for c in self.canvases],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestState":
        return cls(
            id=data.get("id"),
            label=data.get("label", ""),
            canvases=[CanvasInfo.from_dict(c) for c in data.get("canvases", [])],
        )


def sort_for_display(annotations: List[AnnotationData]) -> List[AnnotationData]:
    """Annotations in top-to-bottom reading order (stored order is untouched)"""
    return sorted(annotations, key=lambda a: (a.y, a.created_at))


SOURCE_TYPES = ("manifest-url", "manifest-file", "file-upload")


@dataclass
class ProjectMeta:
    """
    Stored project metadata

    Attributes:
        id: Project identifier (directory name in the store)
        name: Display name
        source_type: Where the manifest came from ("manifest-url",
            "manifest-file" or "file-upload")
        source_ref: URL or filename(s) of the source
        created_at: ISO timestamp
        updated_at: ISO timestamp, bumped on every save
    """
    id: str
    name: str
    source_type: str
    source_ref: str
    created_at: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "source_type": self.source_type,
            "source_ref": self.source_ref,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectMeta":
        return cls(
            id=data["id"],
            name=data["name"],
            source_type=data["source_type"],
            source_ref=data.get("source_ref", ""),
            created_at=data["created_at"],
            updated_at=data.get("updated_at", data["created_at"]),
        )
