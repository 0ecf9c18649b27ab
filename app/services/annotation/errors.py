"""
Exceptions raised by the annotation service
"""


class AnnotatorError(Exception):
    """Base class for annotation service errors"""


class FormatError(AnnotatorError):
    """Manifest is structurally invalid (not a Manifest, no canvases, malformed canvas)"""


class ProjectNotFoundError(AnnotatorError):
    """No stored project with the requested id"""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id
