"""
Application state management for the IIIF annotator

Contains dataclasses for session state that persists across Streamlit reruns.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.config import load_user_settings


@dataclass
class AnnotationState:
    """Application state for the annotation page"""
    project_id: Optional[str] = None
    # Loaded project, owns the per-canvas annotation lists
    session: Optional["AnnotationSession"] = None  # Forward reference
    settings: Dict[str, Any] = field(default_factory=load_user_settings)
    ocr_errors: List[str] = field(default_factory=list)
    error: Optional[str] = None
    pending_delete_id: Optional[str] = None
    last_events_timestamp: Optional[Any] = None


def init_session_state():
    """Initialize session state if not already done"""
    import streamlit as st

    if "annotation_state" not in st.session_state:
        st.session_state.annotation_state = AnnotationState()
