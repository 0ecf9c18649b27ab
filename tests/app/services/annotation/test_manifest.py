"""
Tests for the IIIF manifest parser
"""
import pytest

from app.services.annotation import FormatError
from app.services.annotation.manifest import (
    parse_annotation_page,
    parse_existing_annotations,
    parse_label,
    parse_manifest,
)

CANVAS_1 = "https://example.org/iiif/book1/canvas/p1"
CANVAS_2 = "https://example.org/iiif/book1/canvas/p2"


class TestParseLabel:
    """Tests for parse_label"""

    def test_plain_string(self):
        assert parse_label("Title") == "Title"

    def test_language_map_first_value(self):
        """Test first string of the first language wins"""
        assert parse_label({"ja": ["題名", "別名"], "en": ["Title"]}) == "題名"

    @pytest.mark.parametrize("value", [None, {}, {"en": []}, {"en": [1]}, 12])
    def test_unusable_label(self, value):
        assert parse_label(value) == ""


class TestParseManifest:
    """Tests for parse_manifest"""

    def test_parse_basic_fields(self, sample_manifest):
        """Test manifest label and canvases are read in order"""
        state = parse_manifest(sample_manifest)

        assert state.label == "Book 1"
        assert state.id == "https://example.org/iiif/book1/manifest"
        assert [c.id for c in state.canvases] == [CANVAS_1, CANVAS_2]
        assert [c.label for c in state.canvases] == ["p. 1", "p. 2"]

    def test_parse_canvas_dimensions(self, sample_manifest):
        state = parse_manifest(sample_manifest)

        assert state.canvases[0].width == 1000
        assert state.canvases[0].height == 1400

    def test_parse_image_service(self, sample_manifest):
        """Test image service takes precedence for the image source"""
        canvas = parse_manifest(sample_manifest).canvases[0]

        assert canvas.image_service == "https://example.org/iiif/image/page1"
        assert canvas.image_source == "https://example.org/iiif/image/page1/full/full/0/default.jpg"
        assert canvas.thumbnail == "https://example.org/thumb/p1.jpg"

    def test_parse_direct_image_url(self, sample_manifest):
        """Test body id is used when there is no image service"""
        canvas = parse_manifest(sample_manifest).canvases[1]

        assert canvas.image_service is None
        assert canvas.image_source == "https://example.org/images/p2.jpg"

    def test_parse_service_with_legacy_id(self, sample_manifest):
        """Test a v2-style "@id" service is accepted"""
        body = sample_manifest["items"][0]["items"][0]["items"][0]["body"]
        body["service"] = {"@id": "https://example.org/iiif/image/legacy", "type": "ImageService2"}

        canvas = parse_manifest(sample_manifest).canvases[0]

        assert canvas.image_service == "https://example.org/iiif/image/legacy"

    def test_parse_existing_annotations(self, sample_manifest):
        """Test embedded supplementing annotations are decoded"""
        state = parse_manifest(sample_manifest)
        annotations = state.canvases[0].existing_annotations

        assert len(annotations) == 1
        assert annotations[0].id == "anno-1"
        assert annotations[0].canvas_id == CANVAS_1
        assert (annotations[0].x, annotations[0].y, annotations[0].w, annotations[0].h) == (100, 200, 300, 40)
        assert annotations[0].text == "Hello"
        assert annotations[0].language == "ja"
        assert state.canvases[1].existing_annotations == []

    def test_default_labels(self, sample_manifest):
        """Test synthesized labels when none are given"""
        del sample_manifest["label"]
        del sample_manifest["items"][1]["label"]

        state = parse_manifest(sample_manifest)

        assert state.label == "Untitled Manifest"
        assert state.canvases[1].label == "Canvas 2"

    def test_missing_dimensions(self, sample_manifest):
        """Test unknown sizes stay unknown"""
        del sample_manifest["items"][1]["width"]
        sample_manifest["items"][1]["height"] = 0

        canvas = parse_manifest(sample_manifest).canvases[1]

        assert canvas.width is None
        assert canvas.height is None

    def test_raw_manifest_not_modified(self, sample_manifest):
        import copy
        original = copy.deepcopy(sample_manifest)

        parse_manifest(sample_manifest)

        assert sample_manifest == original

    @pytest.mark.parametrize("document", [
        None,
        [],
        {"type": "Collection", "items": []},
        {"items": [{"id": "c", "type": "Canvas"}]},
    ])
    def test_not_a_manifest(self, document):
        with pytest.raises(FormatError, match="Not a IIIF Presentation API v3 Manifest"):
            parse_manifest(document)

    @pytest.mark.parametrize("items", [None, [], "canvases"])
    def test_no_canvases(self, items):
        document = {"type": "Manifest"}
        if items is not None:
            document["items"] = items

        with pytest.raises(FormatError, match="No canvases found"):
            parse_manifest(document)

    def test_malformed_canvas_reports_index(self, sample_manifest):
        """Test the offending canvas's 1-based index is in the message"""
        sample_manifest["items"].append({"type": "Canvas"})

        with pytest.raises(FormatError, match="Canvas #3"):
            parse_manifest(sample_manifest)

    def test_wrong_canvas_type(self, sample_manifest):
        sample_manifest["items"][0]["type"] = "Range"

        with pytest.raises(FormatError, match="Canvas #1"):
            parse_manifest(sample_manifest)


class TestParseExistingAnnotations:
    """Tests for parse_existing_annotations"""

    def test_unparsable_target_dropped(self, supplementing):
        """Test one bad target drops only that annotation"""
        canvas = {
            "id": CANVAS_1,
            "annotations": [{
                "type": "AnnotationPage",
                "items": [
                    supplementing(f"{CANVAS_1}#xywh=1,2,3,4", "keep 1"),
                    supplementing(f"{CANVAS_1}#xywh=oops", "drop"),
                    supplementing(f"{CANVAS_1}#xywh=5,6,7,8", "keep 2"),
                ],
            }],
        }

        annotations = parse_existing_annotations(canvas)

        assert [a.text for a in annotations] == ["keep 1", "keep 2"]

    def test_only_supplementing_annotations(self, supplementing):
        commenting = supplementing(f"{CANVAS_1}#xywh=1,2,3,4", "comment")
        commenting["motivation"] = "commenting"
        canvas = {
            "id": CANVAS_1,
            "annotations": [{
                "type": "AnnotationPage",
                "items": [commenting, supplementing(f"{CANVAS_1}#xywh=1,2,3,4", "kept")],
            }],
        }

        annotations = parse_existing_annotations(canvas)

        assert [a.text for a in annotations] == ["kept"]

    def test_fallback_id_and_target_canvas(self, supplementing):
        """Test missing ids are synthesized and the canvas comes from the target"""
        canvas = {
            "id": CANVAS_1,
            "annotations": [{
                "type": "AnnotationPage",
                "items": [supplementing(f"{CANVAS_2}#xywh=1,2,3,4", language="")],
            }],
        }

        annotation = parse_existing_annotations(canvas)[0]

        assert annotation.id == f"{CANVAS_1}-legacy-0"
        assert annotation.canvas_id == CANVAS_2
        assert annotation.language == ""

    def test_body_as_list(self, supplementing):
        item = supplementing(f"{CANVAS_1}#xywh=1,2,3,4", "listed")
        item["body"] = [item["body"]]
        canvas = {"id": CANVAS_1, "annotations": [{"items": [item]}]}

        assert parse_existing_annotations(canvas)[0].text == "listed"

    def test_no_annotations(self):
        assert parse_existing_annotations({"id": CANVAS_1}) == []


class TestParseAnnotationPage:
    """Tests for parse_annotation_page"""

    def test_parse_saved_page(self, supplementing):
        page = {
            "type": "AnnotationPage",
            "items": [
                supplementing(f"{CANVAS_1}#xywh=1,2,3,4", "first", annotation_id="urn:uuid:1"),
                supplementing(f"{CANVAS_1}#xywh=5,6,7,8", "second"),
            ],
        }

        annotations = parse_annotation_page(page, CANVAS_1)

        assert [a.id for a in annotations] == ["urn:uuid:1", f"{CANVAS_1}-1"]
        assert all(a.canvas_id == CANVAS_1 for a in annotations)
        assert annotations[0].created_at < annotations[1].created_at

    def test_page_canvas_overrides_target(self, supplementing):
        """Test the page's canvas wins over the one in the target"""
        page = {"items": [supplementing(f"{CANVAS_2}#xywh=1,2,3,4")]}

        assert parse_annotation_page(page, CANVAS_1)[0].canvas_id == CANVAS_1

    @pytest.mark.parametrize("page", [None, {}, {"items": "x"}, []])
    def test_page_without_items(self, page):
        assert parse_annotation_page(page, CANVAS_1) is None
