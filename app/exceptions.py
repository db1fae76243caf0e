from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class SchedulingError(Exception):
    status_code: int = 400
    error_code: str = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    error_code = "validation_error"


class InvalidIntervalError(ValidationError):
    error_code = "invalid_interval"


class SlotConflictError(SchedulingError):
    error_code = "slot_conflict"

    def __init__(self, message: str = "Time slot is already booked"):
        super().__init__(message)


class NotFoundError(SchedulingError):
    status_code = 404
    error_code = "not_found"


class LinkNotFoundError(NotFoundError):
    error_code = "link_not_found"

    def __init__(self, message: str = "Link no encontrado"):
        super().__init__(message)


class LinkInactiveError(SchedulingError):
    error_code = "link_inactive"

    def __init__(self, message: str = "Este link ya no está activo"):
        super().__init__(message)


class LinkExpiredError(SchedulingError):
    error_code = "link_expired"

    def __init__(self, message: str = "Este link ha expirado"):
        super().__init__(message)


class LinkExhaustedError(SchedulingError):
    error_code = "link_exhausted"

    def __init__(self, message: str = "Este link ha alcanzado el límite de uso"):
        super().__init__(message)


class LinkDoctorMismatchError(SchedulingError):
    error_code = "link_doctor_mismatch"

    def __init__(self, message: str = "Este link es para un doctor diferente"):
        super().__init__(message)


class InternalError(SchedulingError):
    status_code = 500
    error_code = "internal_error"


class SchedulingBusyError(InternalError):
    status_code = 503
    error_code = "scheduling_busy"

    def __init__(self, message: str = "Scheduling is busy, please retry"):
        super().__init__(message)


def create_error_response(message: str, error_code: str) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "message": message,
        "error": error_code,
    }


async def scheduling_exception_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.error_code),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", "unauthorized")
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail), "http_error"),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in errors]
    message = "Missing or invalid fields: " + ", ".join(f for f in fields if f) if fields else "Invalid request"
    return JSONResponse(status_code=400, content=create_error_response(message, "validation_error"))
