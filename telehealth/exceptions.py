from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional

class APIException(HTTPException):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(status_code=status_code, detail=detail)


class BookingValidationError(APIException):
    """Field level validation failure; ``errors`` maps field name to message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(status_code=422, detail=self.errors)


class NotFoundError(APIException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class StoreOperationError(APIException):
    """The appointment store rejected or failed an operation. Retry is allowed."""

    def __init__(self, detail: str = "Appointment store is unavailable, please try again"):
        super().__init__(status_code=503, detail=detail)


class StoreTimeoutError(StoreOperationError):
    def __init__(self, detail: str = "Appointment store timed out, please try again"):
        super().__init__(detail=detail)
        self.status_code = 504


class SlotConflictError(APIException):
    def __init__(self, detail: str = "This time slot is already booked"):
        super().__init__(status_code=409, detail=detail)


class WorkflowStateError(APIException):
    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail)


class PermissionDeniedError(APIException):
    def __init__(self, detail: str = "Not allowed"):
        super().__init__(status_code=403, detail=detail)


class AuthenticationError(APIException):
    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(status_code=401, detail=detail)


def create_error_response(error_message: Any, status_code: Optional[int] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", 401)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code),
        headers=getattr(exc, "headers", None),
    )
