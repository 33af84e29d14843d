"""HTTP error mapping for use case errors"""

import logging
from typing import Optional
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from libs.result import Error

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
    "INVALID_SIGNATURE": status.HTTP_401_UNAUTHORIZED,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "INSUFFICIENT_BALANCE": status.HTTP_402_PAYMENT_REQUIRED,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PLAN_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "TRANSACTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PLAN_NAME_EXISTS": status.HTTP_409_CONFLICT,
    "IDEMPOTENCY_CONFLICT": status.HTTP_409_CONFLICT,
    "PAYMENT_INIT_FAILED": status.HTTP_502_BAD_GATEWAY,
    "PAYMENT_GATEWAY_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "SETTLEMENT_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "RECONCILIATION_FLAG_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "RECONCILIATION_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "SUBSCRIPTION_INIT_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "TOPUP_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "DEDUCTION_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "CANCEL_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "AUTO_RENEWAL_UPDATE_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "PAYMENT_METHOD_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "PLAN_CREATE_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "PLAN_UPDATE_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ClientError(Exception):
    """
    Raised by routes to turn a use case Error into an HTTP response

    Rendered as {"error": {"code", "message", "reason"?, "details"?}}.
    When status_code is omitted it is looked up from the error code
    (400 for anything unmapped).
    """

    def __init__(self, error: Error, status_code: Optional[int] = None):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code or STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST)


async def client_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error.code}: {exc.error.reason}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder({"error": exc.error.to_dict()}))
