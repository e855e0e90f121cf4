"""Failure → HTTP translation for the Checkout API.

Core operations return Result values; this is the one place their failure
side becomes an HTTP status. Each response carries a stable ``code`` and
the failure's message under ``detail``.
"""

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from returns.pipeline import is_successful

from checkout.errors import (
    CheckoutError,
    ConcurrentUpdate,
    GatewayUnavailable,
    InsufficientStock,
    InvalidGatewayRequest,
    InvalidTransition,
    OrderNotFound,
    ProductNotStocked,
    Rejected,
    SignatureInvalid,
    ValidationFailed,
    VersionConflict,
)

_STATUS = {
    ValidationFailed: (400, "validation_failed"),
    ProductNotStocked: (404, "product_not_stocked"),
    InsufficientStock: (409, "out_of_stock"),
    VersionConflict: (409, "version_conflict"),
    InvalidTransition: (409, "invalid_transition"),
    OrderNotFound: (404, "order_not_found"),
    GatewayUnavailable: (502, "payment_not_started"),
    InvalidGatewayRequest: (422, "payment_rejected"),
    SignatureInvalid: (400, "signature_invalid"),
    Rejected: (400, "callback_rejected"),
    ConcurrentUpdate: (503, "concurrent_update"),
}


def to_http_exception(failure: CheckoutError) -> HTTPException:
    status_code, code = _STATUS.get(type(failure), (500, "internal_error"))
    detail = {"code": code, "message": failure.message}

    if isinstance(failure, InsufficientStock):
        detail.update(product_id=failure.product_id, available=failure.available, requested=failure.requested)
    elif isinstance(failure, ValidationFailed):
        detail.update(field=failure.field)
    elif isinstance(failure, VersionConflict):
        detail.update(product_id=failure.product_id, current_version=failure.actual_version)
    elif isinstance(failure, InvalidTransition):
        detail.update(current_status=failure.current, target_status=failure.target)
    elif isinstance(failure, (GatewayUnavailable, ConcurrentUpdate)):
        detail.update(retryable=True)
    elif isinstance(failure, (SignatureInvalid, Rejected)):
        detail.update(correlation_id=failure.correlation_id)

    return HTTPException(status_code=status_code, detail=detail)


def unwrap_or_raise(result):
    """Return the success value, or raise the HTTP error for the failure."""
    if is_successful(result):
        return result.unwrap()
    raise to_http_exception(result.failure())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies get the same 400 body as any other validation failure."""
    first = exc.errors()[0] if exc.errors() else {}
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "code": "validation_failed",
                "message": first.get("msg", "Invalid request"),
                "field": ".".join(location) or None,
            }
        },
    )
