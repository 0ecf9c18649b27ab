"""
Annotation Page - transcribe regions of IIIF canvases

Features:
- Project management (create from manifest URL or file, open, delete)
- Canvas navigation
- Interactive canvas for drawing, moving and resizing regions
- Text and language input for the selected region
- NDL OCR import (several files at once, matched to canvases by filename)
- Auto-save as you annotate
- User settings (delete confirmation, default language)
- Export of the annotated manifest
"""
import json
import logging
import urllib.request

import streamlit as st

from app.config import EXPORT_FILENAME, EXPORT_MEDIA_TYPE, PAGES_ZIP_FILENAME, save_user_settings
from app.state import AnnotationState
from app.services.annotation import (
    AnnotationExporter,
    AnnotationSession,
    DeleteSelected,
    FormatError,
    ProjectNotFoundError,
    ProjectStore,
    ResetView,
    SetDrawMode,
    Select,
    annotation_canvas,
    parse_canvas_events,
    parse_manifest,
    resolve_image,
)

logger = logging.getLogger(__name__)


def get_annotation_state() -> AnnotationState:
    """Get annotation state from session state"""
    return st.session_state.annotation_state


def open_project(store: ProjectStore, state: AnnotationState, project_id: str) -> bool:
    """Load a stored project into the session state"""
    if state.session is not None:
        state.session.flush()
    try:
        state.session = AnnotationSession.open(
            store,
            project_id,
            default_language=state.settings["default_language"],
        )
    except (ProjectNotFoundError, FormatError) as e:
        state.error = str(e)
        return False

    state.project_id = project_id
    state.error = None
    state.ocr_errors = []
    state.pending_delete_id = None
    return True


def create_project_from_manifest(
    store: ProjectStore,
    state: AnnotationState,
    manifest,
    source_type: str,
    source_ref: str,
) -> bool:
    """Validate a manifest, store it as a new project and open it"""
    try:
        parsed = parse_manifest(manifest)
    except FormatError as e:
        state.error = str(e)
        return False

    meta = store.create_project(parsed.label, source_type, source_ref, manifest)
    return open_project(store, state, meta.id)


def fetch_manifest(url: str):
    """Download manifest JSON"""
    with urllib.request.urlopen(url, timeout=30) as response:
        return json.loads(response.read().decode("utf-8"))


def render_project_sidebar(store: ProjectStore, state: AnnotationState):
    """Render project management controls in sidebar"""
    st.sidebar.header("Projects")

    projects = store.list_projects()

    # Create new project
    with st.sidebar.expander("New Project", expanded=not projects):
        url = st.text_input("Manifest URL", key="manifest_url", placeholder="https://example.org/manifest.json")
        if st.button("Load URL", disabled=not url):
            try:
                manifest = fetch_manifest(url.strip())
            except (OSError, ValueError) as e:
                logger.warning(f"Could not load manifest from {url}: {e}")
                state.error = "Could not load the manifest. Check the URL and CORS settings."
            else:
                if create_project_from_manifest(store, state, manifest, "manifest-url", url.strip()):
                    st.rerun()

        manifest_file = st.file_uploader("Manifest file", type=["json"], key="manifest_file")
        if manifest_file is not None and st.button("Create from file"):
            try:
                manifest = json.loads(manifest_file.getvalue())
            except ValueError:
                state.error = "Could not parse the JSON. Check manifest.json."
            else:
                if create_project_from_manifest(store, state, manifest, "manifest-file", manifest_file.name):
                    st.rerun()

    if not projects:
        return

    ids = [p.id for p in projects]
    names = {p.id: p.name for p in projects}
    selected = st.sidebar.selectbox(
        "Open Project",
        [""] + ids,
        index=ids.index(state.project_id) + 1 if state.project_id in ids else 0,
        format_func=lambda pid: names.get(pid, ""),
        key="select_project",
    )
    if selected and selected != state.project_id:
        if open_project(store, state, selected):
            st.rerun()

    if state.project_id in ids:
        if st.sidebar.button("Delete Project", type="secondary", key="delete_project"):
            if state.session is not None:
                # Drop writes still pending for the deleted project
                state.session.scheduler.cancel()
            store.delete_project(state.project_id)
            state.project_id = None
            state.session = None
            st.rerun()


def render_settings(state: AnnotationState, settings_path=None):
    """
    Render user settings in sidebar

    Changes are saved right away and the default language also applies to
    annotations created in the open project from now on.

    Args:
        state: Annotation state holding the current settings
        settings_path: Settings file (default: USER_SETTINGS_PATH)
    """
    settings = state.settings
    with st.sidebar.expander("Settings", expanded=False):
        safe_delete = st.toggle(
            "Confirm before deleting annotations",
            value=settings["safe_delete"],
            key="setting_safe_delete",
        )
        language = st.text_input(
            "Default language",
            value=settings["default_language"],
            key="setting_default_language",
        ).strip()

    updated = dict(settings)
    updated["safe_delete"] = safe_delete
    if language:
        updated["default_language"] = language
    if updated == settings:
        return

    try:
        save_user_settings(updated, settings_path)
    except OSError as e:
        logger.warning(f"Could not save settings: {e}")
        state.error = "Could not save the settings."
    state.settings = updated
    if state.session is not None:
        state.session.default_language = updated["default_language"]


def render_canvas_navigation(state: AnnotationState):
    """Render canvas navigation and drawing controls"""
    session = state.session
    num_canvases = len(session.manifest.canvases)

    col1, col2, col3, col4, col5 = st.columns([1, 1, 3, 1, 1])

    with col1:
        if st.button("Prev", disabled=session.current_index == 0, key="canvas_prev"):
            session.prev_canvas()
            st.rerun()

    with col2:
        if st.button("Next", disabled=session.current_index >= num_canvases - 1, key="canvas_next"):
            session.next_canvas()
            st.rerun()

    with col3:
        st.markdown(
            f"**{session.current_canvas.label}** ({session.current_index + 1} / {num_canvases})"
            f" - Zoom: {round(session.editor.viewport.zoom * 100)}%"
        )

    with col4:
        # Unkeyed so the toggle follows the session when drawing ends
        draw_mode = st.toggle("Draw", value=session.editor.draw_mode)
        if draw_mode != session.editor.draw_mode:
            session.dispatch(SetDrawMode(draw_mode))

    with col5:
        if st.button("Reset Zoom", key="reset_zoom"):
            session.dispatch(ResetView())
            st.rerun()


def render_annotation_canvas(state: AnnotationState):
    """Render the annotation canvas and apply its pointer events"""
    session = state.session
    image_url = resolve_image(session.current_canvas)
    if image_url is None:
        st.error("No image found for this canvas.")
        return

    annotations = session.current_annotations
    result = annotation_canvas(
        image_url=image_url,
        annotations=annotations,
        state=session.editor,
        key=f"canvas_{session.current_index}",
    )
    if not result:
        return

    # Skip if we already processed this batch (prevents infinite loop)
    timestamp = result.get("eventsTimestamp")
    if timestamp is not None and timestamp == state.last_events_timestamp:
        return
    state.last_events_timestamp = timestamp

    events = parse_canvas_events(result, annotations)
    for event in events:
        session.dispatch(event)
    if events:
        st.rerun()


def render_annotation_sidebar(state: AnnotationState):
    """Render annotation list and editor in sidebar"""
    session = state.session
    st.sidebar.divider()
    st.sidebar.header("Annotations")

    annotations = session.current_annotations
    if not annotations:
        st.sidebar.info("No annotations yet. Turn on Draw and drag on the image.")
        return

    for annotation in annotations:
        is_selected = annotation.id == session.editor.selected_id
        text = annotation.text or "[empty]"
        label = text[:20] + "..." if len(text) > 20 else text
        if st.sidebar.button(
            f"{'> ' if is_selected else ''}{label}",
            key=f"annotation_{annotation.id}",
            use_container_width=True,
        ):
            session.dispatch(Select(annotation.id))
            st.rerun()

    selected = session.selected
    if selected is None:
        return

    st.sidebar.divider()
    st.sidebar.subheader("Edit Annotation")

    new_text = st.sidebar.text_area("Text", value=selected.text, key=f"text_{selected.id}", height=100)
    if new_text != selected.text:
        session.update_text(selected.id, new_text)

    new_language = st.sidebar.text_input("Language", value=selected.language, key=f"lang_{selected.id}")
    if new_language != selected.language:
        session.update_language(selected.id, new_language)

    if st.sidebar.button("Delete Annotation", type="secondary", key=f"delete_{selected.id}"):
        if state.settings["safe_delete"] and state.pending_delete_id != selected.id:
            state.pending_delete_id = selected.id
            st.sidebar.warning("Click again to delete this annotation.")
            return
        state.pending_delete_id = None
        session.dispatch(DeleteSelected())
        st.rerun()


def render_ocr_import(state: AnnotationState):
    """Render NDL OCR import section"""
    uploaded_files = st.file_uploader(
        "NDL OCR JSON (one file per canvas)",
        type=["json"],
        accept_multiple_files=True,
        key="ocr_upload",
    )

    if uploaded_files and st.button("Import OCR"):
        batch = state.session.import_ocr_files((f.name, f.getvalue()) for f in uploaded_files)
        state.ocr_errors = batch.errors
        if batch.imported_count:
            st.success(f"Imported {batch.imported_count} lines into {len(batch.annotations_by_canvas)} canvas(es)")

    for message in state.ocr_errors:
        st.warning(message)


def render_export(state: AnnotationState):
    """Render download buttons for the annotated manifest"""
    session = state.session
    exporter = AnnotationExporter()

    st.download_button(
        label="Download Annotated Manifest",
        data=session.export_manifest_bytes(exporter),
        file_name=EXPORT_FILENAME,
        mime=EXPORT_MEDIA_TYPE,
        use_container_width=True,
    )
    st.download_button(
        label="Download Annotation Pages",
        data=exporter.export_pages_zip_bytes(session.manifest, session.annotations_by_canvas),
        file_name=PAGES_ZIP_FILENAME,
        mime="application/zip",
        use_container_width=True,
    )


def render_annotation_page():
    """Main annotation page render function"""
    state = get_annotation_state()
    store = ProjectStore()

    # Sidebar: Project management
    render_project_sidebar(store, state)
    render_settings(state)

    if state.error:
        st.error(state.error)

    # Main content
    if state.session is None:
        st.info("Create or open a project to start annotating.")
        return

    render_canvas_navigation(state)
    st.divider()

    render_annotation_sidebar(state)
    render_annotation_canvas(state)

    st.divider()
    with st.expander("Import OCR", expanded=False):
        render_ocr_import(state)
    with st.expander("Export", expanded=False):
        render_export(state)
