"""
Translate engine errors to HTTP responses.

    DispatchValidationError           -> 400 {"message", "errors"}
    PermissionDenied                  -> 403
    OrderNotFound / PartyNotFound     -> 404
    InvariantViolation / transitions  -> 409
    ExternalFailure (incl. partial)   -> 502
"""
import logging
from contextlib import contextmanager

from fastapi import HTTPException, status

from dispatchdesk.exceptions import (
    DispatchValidationError, ExternalFailure, InvalidTransition, InvariantViolation, OrderNotFound,
    PartialPaymentFailure, PartyNotFound, PermissionDenied,
)

logger = logging.getLogger(__name__)


def to_http_exception(e: Exception) -> HTTPException:
    if isinstance(e, DispatchValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": e.message, "errors": e.errors},
        )
    if isinstance(e, PermissionDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, (OrderNotFound, PartyNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvariantViolation):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.message, "errors": e.details},
        )
    if isinstance(e, InvalidTransition):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, PartialPaymentFailure):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": str(e),
                "failed_method": e.failed_method,
                "committed": [c.model_dump(mode="json") for c in e.committed],
            },
        )
    if isinstance(e, ExternalFailure):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@contextmanager
def engine_errors():
    """Run a block and re-raise engine errors as HTTPException."""
    try:
        yield
    except (
        DispatchValidationError, PermissionDenied, OrderNotFound, PartyNotFound,
        InvariantViolation, InvalidTransition, ExternalFailure,
    ) as e:
        if isinstance(e, ExternalFailure):
            logger.warning(f"External failure: {e} (cause: {e.__cause__!r})")
        raise to_http_exception(e) from e
