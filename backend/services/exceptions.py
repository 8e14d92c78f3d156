"""
HTTP error taxonomy for the gallery API.
Each error carries its status code so routers and services can raise them directly;
the application exception handler renders every one as ``{"error": message}``.
"""
from fastapi import HTTPException, status

class Unauthenticated(HTTPException):
    """No, invalid, or expired session credential."""

    def __init__(self, detail: str = "Not authenticated", clear_session_cookie: bool = False):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
        self.clear_session_cookie = clear_session_cookie

class Forbidden(HTTPException):
    """Principal resolved but the scope check failed."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class NotFound(HTTPException):
    """Missing resource or token. Also used to mask the existence of expired share tokens."""

    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class BadRequest(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class UnsupportedMediaType(HTTPException):
    def __init__(self, detail: str = "Unsupported file type"):
        super().__init__(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=detail)

class Conflict(HTTPException):
    """Unique constraint hit on creation, e.g. a token collision."""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class PayloadTooLarge(HTTPException):
    def __init__(self, detail: str = "File too large"):
        super().__init__(status_code=413, detail=detail)

# Uniform message for every share-token failure
INVALID_SHARE_LINK = "Invalid or expired share link"
