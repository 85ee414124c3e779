"""
CAD Core - Error taxonomy

Closure policy rejections are not exceptions; they come back as results
(see cadcore.models.TransitionResult) and are audited.
"""


class CADError(Exception):
    """Base class for CAD core errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CADError):
    """Malformed input. Raised before any mutation; nothing is recorded."""

    status_code = 400

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class NotFoundError(CADError):
    """Referenced incident or unit does not exist."""

    status_code = 404

    def __init__(self, kind: str, ref: str):
        super().__init__(f"{kind} not found: {ref}")
        self.kind = kind
        self.ref = ref
