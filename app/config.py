"""
Application configuration settings for the IIIF annotator UI and services
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Project directories
# Support bundled mode via environment variable override
PROJECT_ROOT = Path(os.environ.get('IIIF_ANNOTATOR_ROOT', Path(__file__).parent.parent))
DATA_DIR = PROJECT_ROOT / "data"

# IIIF_DATA_DIR relocates all persisted projects (e.g. when run from a packaged CLI)
_IIIF_DATA_DIR = os.environ.get('IIIF_DATA_DIR')
PROJECTS_DIR = Path(_IIIF_DATA_DIR) / "projects" if _IIIF_DATA_DIR else DATA_DIR / "projects"
EXPORTS_DIR = DATA_DIR / "exports"
USER_SETTINGS_PATH = DATA_DIR / "settings.yaml"

# Editor settings
MIN_RECT_SIZE = 5  # Canvas pixels; smaller drags are discarded
ZOOM_MIN = 0.25
ZOOM_MAX = 6.0
ZOOM_STEP = 0.1

# Persistence
SAVE_DEBOUNCE_SECONDS = 0.5

# IIIF settings
IIIF_CONTEXT = "http://iiif.io/api/presentation/3/context.json"
IIIF_FULL_IMAGE_SUFFIX = "/full/full/0/default.jpg"
DEFAULT_LANGUAGE = "ja"
EXPORT_FILENAME = "manifest-annotated.json"
EXPORT_MEDIA_TYPE = "application/ld+json"
PAGES_ZIP_FILENAME = "annotation-pages.zip"

# Annotation Canvas Configuration
# Development mode connects to Vite dev server at http://localhost:5174
# Production mode loads pre-built component from frontend/annotation_canvas/build/
ANNOTATION_CANVAS_RELEASE_MODE = os.getenv('ANNOTATION_CANVAS_RELEASE', 'false').lower() == 'true'

DEFAULT_USER_SETTINGS: Dict[str, Any] = {
    "safe_delete": True,
    "default_language": DEFAULT_LANGUAGE,
}


def load_user_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load user settings from a YAML file

    Missing files, unreadable YAML and values of the wrong type all fall
    back to the defaults.

    Args:
        path: Settings file (default: USER_SETTINGS_PATH)

    Returns:
        Dict with every key of DEFAULT_USER_SETTINGS
    """
    path = Path(path) if path is not None else USER_SETTINGS_PATH
    settings = dict(DEFAULT_USER_SETTINGS)

    if not path.exists():
        return settings

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return settings

    if not isinstance(raw, dict):
        return settings

    if isinstance(raw.get("safe_delete"), bool):
        settings["safe_delete"] = raw["safe_delete"]
    if isinstance(raw.get("default_language"), str):
        settings["default_language"] = raw["default_language"]

    return settings


def save_user_settings(settings: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Save user settings to a YAML file and return its path."""
    path = Path(path) if path is not None else USER_SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    merged = dict(DEFAULT_USER_SETTINGS)
    merged.update({k: v for k, v in settings.items() if k in DEFAULT_USER_SETTINGS})

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(merged, f, default_flow_style=False, allow_unicode=True)

    return path
