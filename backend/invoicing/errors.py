"""Error hierarchy for the invoicing API.

Every error carries a machine code, a category and the HTTP status it maps
to. Handlers in error_handlers.py turn them into ``{"error": ..., "code": ...}``.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BUSINESS_RULE = "business_rule"
    CONFLICT = "conflict"
    AUTHENTICATION = "authentication"
    FORBIDDEN = "forbidden"
    PERSISTENCE = "persistence"


class InvoicingError(Exception):
    """Base exception for all invoicing failures."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.http_status = http_status

    def to_response(self) -> dict:
        return {"error": self.message, "code": self.code}


# ─── Caller errors ──────────────────────────────────────────────

class ValidationError(InvoicingError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "VALIDATION_ERROR", ErrorCategory.VALIDATION, 400)
        self.field = field

    def to_response(self) -> dict:
        body = super().to_response()
        if self.field:
            body["field"] = self.field
        return body


class NotFound(InvoicingError):
    def __init__(self, resource_type: str, resource_id=None, code: str = "NOT_FOUND"):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} '{resource_id}' not found"
        super().__init__(message, code, ErrorCategory.NOT_FOUND, 404)
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvoiceNotFound(NotFound):
    def __init__(self, invoice_id):
        super().__init__("Invoice", invoice_id, code="INVOICE_NOT_FOUND")


class TenantNotFound(NotFound):
    def __init__(self, subdomain: str | None):
        super().__init__("Tenant", subdomain, code="TENANT_NOT_FOUND")


class BusinessRuleViolation(InvoicingError):
    def __init__(self, message: str, code: str = "BUSINESS_RULE_VIOLATION"):
        super().__init__(message, code, ErrorCategory.BUSINESS_RULE, 400)


class AmountExceedsBalance(BusinessRuleViolation):
    def __init__(self, amount_cents: int, remaining_cents: int):
        super().__init__(
            f"Payment amount ({amount_cents / 100:.2f}) exceeds remaining balance "
            f"({remaining_cents / 100:.2f})",
            code="AMOUNT_EXCEEDS_BALANCE",
        )
        self.amount_cents = amount_cents
        self.remaining_cents = remaining_cents


class InvalidStatusTransition(BusinessRuleViolation):
    def __init__(self, current: str, target: str, reason: str):
        super().__init__(
            f"Cannot change invoice status from {current} to {target}: {reason}",
            code="INVALID_STATUS_TRANSITION",
        )
        self.current = current
        self.target = target


class Conflict(InvoicingError):
    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message, code, ErrorCategory.CONFLICT, 409)


class AuthenticationError(InvoicingError):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, "AUTHENTICATION_FAILED", ErrorCategory.AUTHENTICATION, 401)


class TenantInactive(InvoicingError):
    def __init__(self, subdomain: str):
        super().__init__(
            "This tenant account is inactive.",
            "TENANT_INACTIVE", ErrorCategory.FORBIDDEN, 403,
        )
        self.subdomain = subdomain


# ─── Infrastructure errors ──────────────────────────────────────

class PersistenceFailure(InvoicingError):
    def __init__(self, operation: str):
        super().__init__(
            f"Failed to {operation}",
            "PERSISTENCE_FAILURE", ErrorCategory.PERSISTENCE, 500,
        )
        self.operation = operation
