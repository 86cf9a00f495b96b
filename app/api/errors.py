"""
Mapping from booking rejections to HTTP errors, so routes stay thin.

Every error body uses the envelope {"error": {"code", "message", "details"}}.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from app.services.booking_outcomes import Rejection, RejectionReason

REJECTION_STATUS: Dict[RejectionReason, int] = {
    RejectionReason.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    RejectionReason.LIMIT_REACHED: status.HTTP_403_FORBIDDEN,
    RejectionReason.NO_ELIGIBLE_PROVIDER: status.HTTP_404_NOT_FOUND,
    RejectionReason.NO_AVAILABLE_SLOT: status.HTTP_409_CONFLICT,
}

STATUS_SERVICE_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE
MSG_BOOKING_UNAVAILABLE = "Booking is temporarily unavailable. Please try again."


def error_body(code: str, message: str, details: Optional[Any] = None, **extra: Any) -> Dict[str, Any]:
    body = {"code": code, "message": message, "details": details}
    body.update(extra)
    return {"error": body}


def rejection_to_http(rejection: Rejection) -> HTTPException:
    """
    LIMIT_REACHED details carry used/limit/planType so the client can show
    an upgrade prompt.
    """
    details = dict(rejection.details)
    details["stage"] = rejection.stage.value
    return HTTPException(
        status_code=REJECTION_STATUS[rejection.reason],
        detail=error_body(rejection.reason.value, rejection.message, details),
    )


def not_found(what: str, ident: Any) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=error_body("NOT_FOUND", f"{what} {ident} not found"),
    )
