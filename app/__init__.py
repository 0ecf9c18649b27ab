"""
IIIF Annotator Application Package

Contains the Streamlit application organized into:
- state.py: Session state management
- main.py: Main entry point
- backend/pages/: Page modules
- services/annotation/: Manifest parsing, editing, OCR import, storage and export
"""
from app.main import main
from app.state import AnnotationState, init_session_state

__all__ = ["main", "AnnotationState", "init_session_state"]
