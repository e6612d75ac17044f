"""
Maps typed core errors onto HTTP responses.

Every error body has the same shape:
    {"error": {"code": ..., "message": ..., "details": ...}}
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from reservation_engine.core.errors import ErrorCode, ReservationEngineError
from reservation_engine.core.logging import get_logger

logger = get_logger(__name__)

HTTP_422_UNPROCESSABLE = 422

STATUS_BY_CODE = {
    ErrorCode.VALIDATION_FAILED: HTTP_422_UNPROCESSABLE,
    ErrorCode.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESERVATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.EVENT_ALREADY_OCCURRED: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_EXHAUSTED: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_RESERVED: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_CANCELED: status.HTTP_409_CONFLICT,
    ErrorCode.STORE_UNAVAILABLE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def handle_core_error(request: Request, exc: ReservationEngineError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("request_store_failure", code=exc.code.value)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in err["loc"] if part != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE,
        content={
            "error": {
                "code": ErrorCode.VALIDATION_FAILED.value,
                "message": "Validation failed",
                "details": details,
            }
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationEngineError, handle_core_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
