"""
Error taxonomy for the classroom core.

Every error is an HTTPException so FastAPI renders it as {"detail": ...}
with the right status, whether it is raised from a router or a service.
"""

from fastapi import HTTPException


class ClassroomError(HTTPException):
    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class Unauthorized(ClassroomError):
    """No identity, or the identity has the wrong role."""
    status_code = 401
    default_detail = "Unauthorized"


class Forbidden(ClassroomError):
    """Role is right but the requester does not own the target."""
    status_code = 403
    default_detail = "Forbidden"


class NotFound(ClassroomError):
    status_code = 404
    default_detail = "Not found"


class ValidationError(ClassroomError):
    """Structural constraint violated (question shape, index bounds, missing class)."""
    status_code = 400
    default_detail = "Validation failed"


class PreconditionFailed(ClassroomError):
    """State does not allow the operation (unpublished, already enrolled, ...)."""
    status_code = 412
    default_detail = "Precondition failed"
