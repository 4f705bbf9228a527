"""
Error taxonomy shared by the domain modules.

Each error carries the HTTP status it maps to; main.py renders them as
{"detail": ...} the same way HTTPException bodies look.
"""
from typing import Optional


class MunchError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(MunchError):
    status_code = 400
    default_detail = "Invalid request"


class AuthError(MunchError):
    status_code = 401
    default_detail = "Could not validate credentials"


class PermissionDeniedError(MunchError):
    status_code = 403
    default_detail = "Insufficient permissions"


class NotFoundError(MunchError):
    status_code = 404
    default_detail = "Not found"


class ConflictError(MunchError):
    status_code = 409
    default_detail = "Conflict"


class InternalError(MunchError):
    pass
