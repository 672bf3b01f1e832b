"""Map OnboardingError onto HTTP responses."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from niv_backend.config.logging_config import get_logger
from niv_backend.models.enums import ErrorCode
from niv_backend.models.errors import OnboardingError
from .responses import ErrorResponse

logger = get_logger(__name__)

ERROR_STATUS_CODES = {
    ErrorCode.PATIENT_NOT_FOUND: 404,
    ErrorCode.ONBOARDING_NOT_FOUND: 404,
    ErrorCode.PCC_UNAUTHORIZED: 502,
    ErrorCode.PCC_UNAVAILABLE: 503,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.ONBOARDING_ALREADY_EXISTS: 409,
    ErrorCode.CONCURRENT_MODIFICATION: 409,
    ErrorCode.RT_ASSIGNMENT_FAILED: 422,
    ErrorCode.MISSING_CLINICAL_DATA: 422,
}

# OpenAPI documentation for the error body, keyed by every mapped status
ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in sorted(set(ERROR_STATUS_CODES.values()))
}


def status_code_for(error: OnboardingError) -> int:
    return ERROR_STATUS_CODES.get(error.code, 500)


async def onboarding_error_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.error if exc.code is ErrorCode.PCC_UNAUTHORIZED else logger.warning
    log(
        "Onboarding error",
        error_code=exc.code.value,
        action=exc.action.value,
        path=request.url.path,
        status_code=status_code,
    )
    headers = {"Retry-After": "30"} if exc.is_recoverable() else None
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OnboardingError, onboarding_error_handler)
