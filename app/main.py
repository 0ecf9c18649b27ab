"""
IIIF Annotator - transcribe regions of IIIF canvases

Main application entry point.
"""
import streamlit as st

from app.config import DATA_DIR
from app.logging_setup import setup_logging
from app.state import init_session_state
from app.backend.pages.annotate import render_annotation_page


def main():
    """Main application entry point"""
    # Page config
    st.set_page_config(
        page_title="IIIF Annotator",
        page_icon="",
        layout="wide",
    )

    setup_logging(DATA_DIR / "logs")

    # Initialize session state
    init_session_state()

    st.sidebar.title("IIIF Annotator")
    render_annotation_page()


if __name__ == "__main__":
    main()
