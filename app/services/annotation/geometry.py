"""
Rectangle editor geometry

Pure state machine behind the annotation canvas: pan, zoom, draw, select,
move and corner-resize, all in canvas pixel space.

The editor never holds the annotation list. Pointer events that touch a
rectangle carry the hit annotation; the reducer answers with intents
(create / update / delete / drag ended) that the owner of the list applies.

Usage:
    state = EditorState()
    state, _ = reduce(state, CanvasChanged("https://example.org/c1", 1000, 1400))
    state, _ = reduce(state, SetDrawMode(True))
    state, _ = reduce(state, PointerDown(10, 10))
    state, _ = reduce(state, PointerMove(120, 60))
    state, intents = reduce(state, PointerUp())
    # intents == [CreateAnnotation(Rect(10, 10, 110, 50))]
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple, Union
import math

from app.config import MIN_RECT_SIZE, ZOOM_MIN, ZOOM_MAX, ZOOM_STEP
from .models import AnnotationData, Rect


class Corner(str, Enum):
    """Resize handles of the selected rectangle"""
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


@dataclass(frozen=True)
class Viewport:
    """Zoom factor and translation of the image's top-left corner (viewport pixels)"""
    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0


# Drag modes. Exactly one is active at a time.

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Panning:
    last_x: float
    last_y: float


@dataclass(frozen=True)
class Drawing:
    start_x: float
    start_y: float


@dataclass(frozen=True)
class Moving:
    target_id: str
    base: Rect
    current: Rect
    start_x: float
    start_y: float


@dataclass(frozen=True)
class Resizing:
    corner: Corner
    target_id: str
    base: Rect
    current: Rect
    start_x: float
    start_y: float


DragMode = Union[Idle, Panning, Drawing, Moving, Resizing]


@dataclass(frozen=True)
class EditorState:
    """
    Editor state for the active canvas

    Attributes:
        canvas_id: Active canvas, None before a canvas is shown
        canvas_width: Image width in pixels, None while unknown
        canvas_height: Image height in pixels, None while unknown
        viewport: Current zoom and offset
        drag: Active gesture
        preview: Rectangle being drawn
        selected_id: Selected annotation
        draw_mode: Whether pointer-down on the image starts a new rectangle
    """
    canvas_id: Optional[str] = None
    canvas_width: Optional[float] = None
    canvas_height: Optional[float] = None
    viewport: Viewport = field(default_factory=Viewport)
    drag: DragMode = field(default_factory=Idle)
    preview: Optional[Rect] = None
    selected_id: Optional[str] = None
    draw_mode: bool = False

    @property
    def bounds(self) -> Tuple[float, float]:
        """Canvas size, unknown sides treated as unbounded"""
        width = self.canvas_width if self.canvas_width else math.inf
        height = self.canvas_height if self.canvas_height else math.inf
        return width, height

    def to_image(self, px: float, py: float) -> Tuple[float, float]:
        """Map a viewport point to canvas pixels, clamped to the canvas"""
        width, height = self.bounds
        vp = self.viewport
        x = clamp((px - vp.offset_x) / vp.zoom, 0, width)
        y = clamp((py - vp.offset_y) / vp.zoom, 0, height)
        return x, y


# Events

@dataclass(frozen=True)
class CanvasChanged:
    canvas_id: str
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass(frozen=True)
class ImageLoaded:
    """Natural size of the image once it has loaded"""
    width: float
    height: float


@dataclass(frozen=True)
class SetDrawMode:
    enabled: bool


@dataclass(frozen=True)
class Select:
    annotation_id: Optional[str]


@dataclass(frozen=True)
class Wheel:
    """One scroll tick; negative delta_y zooms in"""
    delta_y: float


@dataclass(frozen=True)
class ResetView:
    pass


@dataclass(frozen=True)
class PointerDown:
    """
    Pointer pressed at viewport coordinates (x, y)

    hit is the annotation under the pointer (None for the background) and
    corner the resize handle that was pressed, if any.
    """
    x: float
    y: float
    hit: Optional[AnnotationData] = None
    corner: Optional[Corner] = None


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    pass


@dataclass(frozen=True)
class DeleteSelected:
    pass


Event = Union[
    CanvasChanged, ImageLoaded, SetDrawMode, Select, Wheel, ResetView,
    PointerDown, PointerMove, PointerUp, DeleteSelected,
]


# Intents

@dataclass(frozen=True)
class CreateAnnotation:
    rect: Rect


@dataclass(frozen=True)
class UpdateAnnotation:
    annotation_id: str
    rect: Rect


@dataclass(frozen=True)
class DeleteAnnotation:
    annotation_id: str


@dataclass(frozen=True)
class DragEnded:
    """Move/resize gesture finished; the canvas's list should be persisted now"""
    annotation_id: str


Intent = Union[CreateAnnotation, UpdateAnnotation, DeleteAnnotation, DragEnded]


@dataclass(frozen=True)
class Transition:
    state: EditorState
    intents: List[Intent] = field(default_factory=list)

    def __iter__(self):
        # Allows `state, intents = reduce(...)`
        return iter((self.state, self.intents))


def move_rect(base: Rect, dx: float, dy: float, width: float, height: float) -> Rect:
    """Translate base by (dx, dy), keeping it fully inside the canvas"""
    return Rect(
        x=clamp(base.x + dx, 0, width - base.w),
        y=clamp(base.y + dy, 0, height - base.h),
        w=base.w,
        h=base.h,
    )


def resize_rect(
    corner: Corner,
    base: Rect,
    dx: float,
    dy: float,
    width: float,
    height: float,
    min_size: float = MIN_RECT_SIZE,
) -> Rect:
    """
    Drag one corner of base by (dx, dy)

    The opposite corner stays fixed, each side keeps at least min_size and
    the rectangle never crosses the canvas edge.
    """
    x, y = base.x, base.y
    right, bottom = base.x + base.w, base.y + base.h

    if corner in (Corner.NW, Corner.SW):
        x = clamp(base.x + dx, 0, right - min_size)
        w = right - x
    else:
        w = clamp(base.w + dx, min_size, width - base.x)

    if corner in (Corner.NW, Corner.NE):
        y = clamp(base.y + dy, 0, bottom - min_size)
        h = bottom - y
    else:
        h = clamp(base.h + dy, min_size, height - base.y)

    return Rect(x=x, y=y, w=w, h=h)


def drawn_rect(start_x: float, start_y: float, x: float, y: float) -> Rect:
    """Axis-aligned box between the gesture start and the current point"""
    return Rect(
        x=min(start_x, x),
        y=min(start_y, y),
        w=abs(x - start_x),
        h=abs(y - start_y),
    )


def _pointer_down(state: EditorState, event: PointerDown) -> Transition:
    if state.canvas_id is None:
        return Transition(state)

    hit = event.hit
    if hit is not None and event.corner is not None:
        return Transition(replace(
            state,
            selected_id=hit.id,
            drag=Resizing(
                corner=Corner(event.corner),
                target_id=hit.id,
                base=hit.rect,
                current=hit.rect,
                start_x=event.x,
                start_y=event.y,
            ),
        ))

    if hit is not None:
        return Transition(replace(
            state,
            selected_id=hit.id,
            drag=Moving(
                target_id=hit.id,
                base=hit.rect,
                current=hit.rect,
                start_x=event.x,
                start_y=event.y,
            ),
        ))

    if state.draw_mode:
        x, y = state.to_image(event.x, event.y)
        return Transition(replace(
            state,
            drag=Drawing(start_x=x, start_y=y),
            preview=Rect(x, y, 0, 0),
        ))

    if state.selected_id is not None:
        return Transition(replace(state, selected_id=None, drag=Idle()))

    return Transition(replace(state, drag=Panning(last_x=event.x, last_y=event.y)))


def _pointer_move(state: EditorState, event: PointerMove) -> Transition:
    drag = state.drag

    if isinstance(drag, Idle):
        return Transition(state)

    if isinstance(drag, Panning):
        vp = state.viewport
        viewport = replace(
            vp,
            offset_x=vp.offset_x + event.x - drag.last_x,
            offset_y=vp.offset_y + event.y - drag.last_y,
        )
        return Transition(replace(
            state,
            viewport=viewport,
            drag=Panning(last_x=event.x, last_y=event.y),
        ))

    if isinstance(drag, Drawing):
        x, y = state.to_image(event.x, event.y)
        return Transition(replace(state, preview=drawn_rect(drag.start_x, drag.start_y, x, y)))

    if isinstance(drag, (Moving, Resizing)):
        width, height = state.bounds
        dx = (event.x - drag.start_x) / state.viewport.zoom
        dy = (event.y - drag.start_y) / state.viewport.zoom
        if isinstance(drag, Moving):
            rect = move_rect(drag.base, dx, dy, width, height)
        else:
            rect = resize_rect(drag.corner, drag.base, dx, dy, width, height)
        if rect == drag.current:
            return Transition(state)
        return Transition(
            replace(state, drag=replace(drag, current=rect)),
            [UpdateAnnotation(drag.target_id, rect)],
        )

    raise TypeError(f"Unknown drag mode: {drag!r}")


def _pointer_up(state: EditorState) -> Transition:
    drag = state.drag
    idle = replace(state, drag=Idle(), preview=None)

    if isinstance(drag, Drawing):
        preview = state.preview
        if preview is not None and preview.w > MIN_RECT_SIZE and preview.h > MIN_RECT_SIZE:
            return Transition(idle, [CreateAnnotation(preview)])
        return Transition(idle)

    if isinstance(drag, (Moving, Resizing)):
        return Transition(idle, [DragEnded(drag.target_id)])

    return Transition(idle)


def reduce(state: EditorState, event: Event) -> Transition:
    """
    Apply one event to the editor state

    Args:
        state: Current editor state
        event: Pointer, wheel or control event

    Returns:
        Transition with the next state and the intents for the list owner
    """
    if isinstance(event, PointerDown):
        return _pointer_down(state, event)

    if isinstance(event, PointerMove):
        return _pointer_move(state, event)

    if isinstance(event, PointerUp):
        return _pointer_up(state)

    if isinstance(event, Wheel):
        step = ZOOM_STEP if event.delta_y < 0 else -ZOOM_STEP
        zoom = clamp(state.viewport.zoom + step, ZOOM_MIN, ZOOM_MAX)
        return Transition(replace(state, viewport=replace(state.viewport, zoom=zoom)))

    if isinstance(event, CanvasChanged):
        return Transition(EditorState(
            canvas_id=event.canvas_id,
            canvas_width=event.width,
            canvas_height=event.height,
            draw_mode=state.draw_mode,
        ))

    if isinstance(event, ImageLoaded):
        return Transition(replace(state, canvas_width=event.width, canvas_height=event.height))

    if isinstance(event, ResetView):
        return Transition(replace(state, viewport=Viewport()))

    if isinstance(event, SetDrawMode):
        return Transition(replace(state, draw_mode=event.enabled))

    if isinstance(event, Select):
        return Transition(replace(state, selected_id=event.annotation_id))

    if isinstance(event, DeleteSelected):
        if state.selected_id is None:
            return Transition(state)
        return Transition(
            replace(state, selected_id=None, drag=Idle()),
            [DeleteAnnotation(state.selected_id)],
        )

    raise TypeError(f"Unknown editor event: {event!r}")
