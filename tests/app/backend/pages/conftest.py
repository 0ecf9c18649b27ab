"""
Shared pytest fixtures for backend page tests
"""
import pytest
from unittest.mock import MagicMock, Mock

from app.state import AnnotationState
from app.services.annotation import AnnotationSession, ProjectStore


# Constants for test data
CANVAS_1 = "https://example.org/iiif/book1/canvas/p1"
CANVAS_2 = "https://example.org/iiif/book1/canvas/p2"


class ManualTimer:
    """Save timer that never fires on its own"""

    def __init__(self, delay, callback):
        self.callback = callback

    def start(self):
        pass

    def cancel(self):
        pass


@pytest.fixture
def mock_streamlit():
    """Mock Streamlit module for UI testing."""
    mock_st = MagicMock()

    # Mock sidebar
    mock_st.sidebar = MagicMock()
    mock_st.sidebar.header = MagicMock()
    mock_st.sidebar.selectbox = MagicMock(return_value="")
    mock_st.sidebar.info = MagicMock()
    mock_st.sidebar.error = MagicMock()
    mock_st.sidebar.warning = MagicMock()
    mock_st.sidebar.divider = MagicMock()
    mock_st.sidebar.markdown = MagicMock()
    mock_st.sidebar.caption = MagicMock()
    mock_st.sidebar.button = MagicMock(return_value=False)
    mock_st.sidebar.text_area = MagicMock(return_value="")
    mock_st.sidebar.text_input = MagicMock(return_value="")
    mock_st.sidebar.subheader = MagicMock()

    # Mock main UI elements
    mock_st.file_uploader = MagicMock(return_value=None)
    mock_st.text_input = MagicMock(return_value="")
    mock_st.info = MagicMock()
    mock_st.success = MagicMock()
    mock_st.error = MagicMock()
    mock_st.warning = MagicMock()
    mock_st.button = MagicMock(return_value=False)
    mock_st.toggle = MagicMock(return_value=False)
    mock_st.columns = MagicMock()
    mock_st.divider = MagicMock()
    mock_st.subheader = MagicMock()
    mock_st.markdown = MagicMock()
    mock_st.download_button = MagicMock()
    mock_st.rerun = MagicMock()

    # Mock expander context manager
    mock_expander = MagicMock()
    mock_expander.__enter__ = Mock(return_value=mock_st)
    mock_expander.__exit__ = Mock(return_value=None)
    mock_st.expander = MagicMock(return_value=mock_expander)
    mock_st.sidebar.expander = MagicMock(return_value=mock_expander)

    # Mock session state
    mock_st.session_state = MagicMock()

    return mock_st


@pytest.fixture
def mock_streamlit_columns():
    """
    Factory fixture that creates column mocks.

    Usage:
        mock_st.columns = MagicMock(side_effect=lambda spec: mock_streamlit_columns(len(spec)))
    """
    def _create_columns(count):
        cols = []
        for _ in range(count):
            col = MagicMock()
            col.button = MagicMock(return_value=False)
            col.markdown = MagicMock()
            col.toggle = MagicMock(return_value=False)
            cols.append(col)
        return cols
    return _create_columns


@pytest.fixture
def page_manifest():
    """Two-canvas manifest with one existing transcription"""
    return {
        "@context": "http://iiif.io/api/presentation/3/context.json",
        "id": "https://example.org/iiif/book1/manifest",
        "type": "Manifest",
        "label": {"en": ["Book 1"]},
        "items": [
            {
                "id": CANVAS_1,
                "type": "Canvas",
                "label": "page_00001",
                "width": 1000,
                "height": 1400,
                "items": [{
                    "type": "AnnotationPage",
                    "items": [{
                        "type": "Annotation",
                        "motivation": "painting",
                        "body": {"id": "https://example.org/images/p1.jpg", "type": "Image"},
                        "target": CANVAS_1,
                    }],
                }],
                "annotations": [{
                    "type": "AnnotationPage",
                    "items": [{
                        "id": "anno-1",
                        "type": "Annotation",
                        "motivation": "supplementing",
                        "body": {"type": "TextualBody", "value": "Hello", "language": "ja"},
                        "target": f"{CANVAS_1}#xywh=100,200,300,40",
                    }],
                }],
            },
            {
                "id": CANVAS_2,
                "type": "Canvas",
                "label": "page_00002",
                "width": 1000,
                "height": 1400,
            },
        ],
    }


@pytest.fixture
def temp_project_store(tmp_path):
    """Create temporary project storage."""
    return ProjectStore(base_path=tmp_path / "projects")


@pytest.fixture
def annotation_state_empty():
    """Create empty AnnotationState."""
    return AnnotationState(settings={"safe_delete": True, "default_language": "ja"})


@pytest.fixture
def annotation_state_with_session(temp_project_store, page_manifest):
    """Create AnnotationState with a stored project open."""
    meta = temp_project_store.create_project("Book 1", "manifest-url", "https://example.org/m.json", page_manifest)
    state = AnnotationState(settings={"safe_delete": True, "default_language": "ja"})
    state.project_id = meta.id
    state.session = AnnotationSession.open(temp_project_store, meta.id, timer_factory=ManualTimer)
    return state


@pytest.fixture
def uploaded_file():
    """Factory for mock Streamlit uploaded files."""
    def _create(name, content):
        mock_file = MagicMock()
        mock_file.name = name
        data = content.encode("utf-8") if isinstance(content, str) else content
        mock_file.getvalue = MagicMock(return_value=data)
        return mock_file
    return _create


@pytest.fixture
def button_clicks():
    """
    Factory for a button mock that only returns True for the given labels.

    Usage:
        mock_st.button = button_clicks("Next")
    """
    def _create(*labels):
        return MagicMock(side_effect=lambda label, *args, **kwargs: label in labels)
    return _create
