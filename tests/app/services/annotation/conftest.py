"""
Shared pytest fixtures for annotation tests
"""
import json

import pytest

from app.services.annotation import (
    AnnotationData,
    AnnotationExporter,
    CanvasInfo,
    ManifestState,
    ProjectStore,
)

CANVAS_1 = "https://example.org/iiif/book1/canvas/p1"
CANVAS_2 = "https://example.org/iiif/book1/canvas/p2"
IMAGE_SERVICE = "https://example.org/iiif/image/page1"


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to"""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


@pytest.fixture
def fake_timers():
    """Timer factory that records every timer it creates"""
    timers = []

    def factory(delay, callback):
        timer = FakeTimer(delay, callback)
        timers.append(timer)
        return timer

    factory.timers = timers
    return factory


def make_supplementing(target, value="text", language="ja", annotation_id=None):
    """Supplementing annotation JSON as found in manifests"""
    body = {"type": "TextualBody", "value": value, "format": "text/plain"}
    if language:
        body["language"] = language
    item = {
        "type": "Annotation",
        "motivation": "supplementing",
        "body": body,
        "target": target,
    }
    if annotation_id:
        item["id"] = annotation_id
    return item


@pytest.fixture
def sample_manifest():
    """Two-canvas IIIF v3 manifest; the first canvas carries one transcription"""
    return {
        "@context": "http://iiif.io/api/presentation/3/context.json",
        "id": "https://example.org/iiif/book1/manifest",
        "type": "Manifest",
        "label": {"en": ["Book 1"]},
        "items": [
            {
                "id": CANVAS_1,
                "type": "Canvas",
                "label": {"none": ["p. 1"]},
                "width": 1000,
                "height": 1400,
                "thumbnail": [{"id": "https://example.org/thumb/p1.jpg", "type": "Image"}],
                "items": [
                    {
                        "id": f"{CANVAS_1}/page",
                        "type": "AnnotationPage",
                        "items": [
                            {
                                "id": f"{CANVAS_1}/painting",
                                "type": "Annotation",
                                "motivation": "painting",
                                "body": {
                                    "id": f"{IMAGE_SERVICE}/full/max/0/default.jpg",
                                    "type": "Image",
                                    "service": [{"id": IMAGE_SERVICE, "type": "ImageService3"}],
                                },
                                "target": CANVAS_1,
                            }
                        ],
                    }
                ],
                "annotations": [
                    {
                        "id": f"{CANVAS_1}/annotations",
                        "type": "AnnotationPage",
                        "items": [
                            make_supplementing(f"{CANVAS_1}#xywh=100,200,300,40", "Hello", annotation_id="anno-1"),
                        ],
                    }
                ],
            },
            {
                "id": CANVAS_2,
                "type": "Canvas",
                "label": "p. 2",
                "width": 1000,
                "height": 1400,
                "items": [
                    {
                        "id": f"{CANVAS_2}/page",
                        "type": "AnnotationPage",
                        "items": [
                            {
                                "id": f"{CANVAS_2}/painting",
                                "type": "Annotation",
                                "motivation": "painting",
                                "body": {"id": "https://example.org/images/p2.jpg", "type": "Image"},
                                "target": CANVAS_2,
                            }
                        ],
                    }
                ],
            },
        ],
    }


@pytest.fixture
def sample_manifest_state():
    """Parsed form of a small two-canvas manifest"""
    return ManifestState(
        id="https://example.org/iiif/book1/manifest",
        label="Book 1",
        canvases=[
            CanvasInfo(id=CANVAS_1, label="page_00001", width=400, height=300),
            CanvasInfo(id=CANVAS_2, label="page_00002", width=400, height=300),
        ],
    )


@pytest.fixture
def sample_annotation():
    """Create a sample AnnotationData"""
    return AnnotationData(
        id="a1",
        canvas_id=CANVAS_1,
        x=10,
        y=20,
        w=30,
        h=40,
        text="Hello World",
        language="en",
        created_at=1000,
    )


@pytest.fixture
def sample_ocr_result():
    """NDL OCR result with a 200x100 source image"""
    return {
        "contents": [
            [
                {
                    "boundingBox": [[10, 10], [20, 10], [20, 20], [10, 20]],
                    "text": "line one",
                    "confidence": 0.98,
                    "isVertical": "true",
                },
                {
                    "boundingBox": [[30, 40], [60, 40], [60, 50], [30, 50]],
                    "text": "   ",
                },
            ],
            [
                {
                    "boundingBox": [[100, 60], [150, 60], [150, 80], [100, 80]],
                    "text": "line two",
                },
            ],
        ],
        "imginfo": {"img_width": 200, "img_height": 100},
    }


@pytest.fixture
def sample_ocr_json(sample_ocr_result):
    """Raw OCR file content"""
    return json.dumps(sample_ocr_result)


@pytest.fixture
def temp_store(tmp_path):
    """ProjectStore in a temporary directory"""
    return ProjectStore(base_path=tmp_path / "projects")


@pytest.fixture
def temp_exporter(tmp_path):
    """AnnotationExporter writing to a temporary directory"""
    return AnnotationExporter(output_dir=tmp_path / "exports")


@pytest.fixture
def supplementing():
    """Factory for supplementing annotation JSON"""
    return make_supplementing
