"""Translate EHR transport failures into OnboardingError."""
import re
from typing import Any, Dict, Optional

import httpx

from niv_backend.config.logging_config import get_logger
from niv_backend.models.errors import OnboardingError

logger = get_logger(__name__)

TRANSIENT_STATUS_CODES = frozenset({408, 429, 502, 503, 504, 522, 524})
AUTH_STATUS_CODES = frozenset({401, 403})

_NETWORK_PATTERN = re.compile(
    r"network|timeout|connection|enotfound|econnrefused|etimedout|econnreset",
    re.IGNORECASE,
)
_STATUS_IN_MESSAGE = re.compile(r"status code (\d{3})", re.IGNORECASE)


def extract_status_code(error: BaseException) -> Optional[int]:
    """
    Best-effort HTTP status lookup.

    Checks, in order: ``httpx.HTTPStatusError.response``, a ``status_code``
    attribute, then a "status code NNN" fragment in the message.
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    match = _STATUS_IN_MESSAGE.search(str(error))
    if match:
        return int(match.group(1))
    return None


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True
    return bool(_NETWORK_PATTERN.search(str(error)))


def classify_error(
    error: BaseException,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> OnboardingError:
    """
    Classify a raw failure from an EHR call.

    Args:
        error: The exception raised by the transport or credential exchange
        operation: Logical operation name (e.g. ``patient_lookup``)
        context: Extra fields to carry on the resulting error

    Returns:
        OnboardingError with code and recovery action set
    """
    if isinstance(error, OnboardingError):
        return error

    context = dict(context or {})
    status_code = extract_status_code(error)

    if status_code is not None:
        context["status_code"] = status_code
        if status_code == 404:
            return OnboardingError.patient_not_found(
                str(context.get("patient_id", "unknown")),
                context.get("org_uuid"),
                context,
            )
        if status_code in AUTH_STATUS_CODES:
            return OnboardingError.pcc_unauthorized(operation, context)
        if status_code in TRANSIENT_STATUS_CODES:
            return OnboardingError.pcc_unavailable(operation, context)
        logger.warning("Unexpected EHR status", operation=operation, status_code=status_code)
        return OnboardingError.pcc_unavailable(operation, context)

    if is_network_error(error):
        context["network_error"] = True
        return OnboardingError.pcc_unavailable(operation, context)

    logger.warning(
        "Unclassified EHR failure",
        operation=operation,
        error_type=type(error).__name__,
        error=str(error),
    )
    return OnboardingError.pcc_unavailable(operation, context)
