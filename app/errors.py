# app/errors.py
from fastapi import Request, status
from fastapi.responses import JSONResponse


class SettlementError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SettlementError):
    """Missing/invalid request data or a booking in the wrong state."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ValidationError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransition(ValidationError):
    pass


class AuthorizationError(SettlementError):
    status_code = status.HTTP_403_FORBIDDEN


class GatewayError(SettlementError):
    status_code = status.HTTP_502_BAD_GATEWAY


class ConfigurationError(SettlementError):
    """Cleaner payout account missing or unusable."""


class DuplicateEventError(SettlementError):
    status_code = status.HTTP_200_OK


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


__all__ = [
    "SettlementError",
    "ValidationError",
    "NotFoundError",
    "InvalidTransition",
    "AuthorizationError",
    "GatewayError",
    "ConfigurationError",
    "DuplicateEventError",
    "settlement_error_handler",
]
