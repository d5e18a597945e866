import logging
from enum import Enum
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    DISCOUNT_NOT_FOUND = "DISCOUNT_NOT_FOUND"
    DISCOUNT_INVALID = "DISCOUNT_INVALID"
    DISCOUNT_CODE_EXISTS = "DISCOUNT_CODE_EXISTS"

    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"

    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_INVALID_TRANSITION = "ORDER_INVALID_TRANSITION"

    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    CUSTOMER_PHONE_EXISTS = "CUSTOMER_PHONE_EXISTS"


class AppException(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: ErrorCode,
        details: Optional[dict] = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.details = details


HTTP_STATUS_TO_ERROR_CODE = {
    400: ErrorCode.VALIDATION_ERROR,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


def _error_response(status_code: int, detail, error_code: ErrorCode, details=None) -> JSONResponse:
    error = {"status_code": status_code, "detail": detail, "error_code": error_code.value}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


async def app_exception_handler(request: Request, exc: AppException):
    return _error_response(exc.status_code, exc.detail, exc.error_code, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_code = HTTP_STATUS_TO_ERROR_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return _error_response(exc.status_code, exc.detail, error_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(422, jsonable_encoder(exc.errors()), ErrorCode.VALIDATION_ERROR)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method},
    )
    return _error_response(500, "Something went wrong. Please try again.", ErrorCode.INTERNAL_ERROR)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.exception("DB integrity error")
    return _error_response(409, "Database constraint violation", ErrorCode.CONFLICT)
