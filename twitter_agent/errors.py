from fastapi import HTTPException, status
from starlette.exceptions import HTTPException as StarletteHTTPException

from twitter_agent.schemas import ErrorCode, ErrorDetail, ErrorResponse

_STATUS_CODES = {
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    429: ErrorCode.RATE_LIMITED,
}


def http_error(
    code: ErrorCode, message: str, http_status=status.HTTP_400_BAD_REQUEST, hint: str | None = None
):
    detail = ErrorDetail(code=code, message=message, hint=hint)
    return HTTPException(status_code=http_status, detail=detail.model_dump(mode="json"))


def envelope_from_http_exception(exc: StarletteHTTPException) -> ErrorResponse:
    d = exc.detail
    if isinstance(d, dict) and "code" in d and "message" in d:
        return ErrorResponse(error=d)  # already our shape
    # Framework-raised errors (404 route, 405 method) carry a plain string detail
    code = _STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    if code is ErrorCode.INTERNAL_ERROR and 400 <= exc.status_code < 500:
        code = ErrorCode.INVALID_REQUEST
    return ErrorResponse(error=ErrorDetail(code=code, message=str(d), hint=None).model_dump())
