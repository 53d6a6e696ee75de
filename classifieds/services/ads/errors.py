from __future__ import annotations


class AdsError(Exception):
    """Base for failures surfaced to API clients with a stable error code."""

    status = 400
    code = "ADS_ERROR"

    def __init__(self, message: str, *, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.fields = dict(fields or {})

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.fields:
            error["fields"] = dict(self.fields)
        return error


class ValidationError(AdsError):
    status = 400
    code = "VALIDATION_FAILED"

    def __init__(self, fields: dict[str, str], message: str = "Validation failed"):
        super().__init__(message, fields=fields)


class InvalidReference(ValidationError):
    code = "INVALID_REFERENCE"

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(
            {field: message or f"{field} does not reference a known inventory record"},
            message=f"Invalid reference: {field}",
        )


class NotFound(AdsError):
    status = 404
    code = "NOT_FOUND"


class TransactionFailure(AdsError):
    status = 500
    code = "TRANSACTION_FAILED"


class InventoryUnavailable(AdsError):
    status = 503
    code = "INVENTORY_UNAVAILABLE"


class IdempotencyConflict(AdsError):
    status = 409
    code = "IDEMPOTENCY_KEY_REUSE"


class IdempotencyInProgress(AdsError):
    status = 409
    code = "IDEMPOTENCY_IN_PROGRESS"
