"""Invoice totals and the invoice/payment lifecycle.

Amounts are integer cents. Invariants kept by every write in this module:
    0 <= amount_paid <= total
    status == PAID     iff amount_paid >= total
    status == PARTIAL  iff 0 < amount_paid < total
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy import and_

from invoicing import models
from invoicing.db import is_unique_violation
from invoicing.errors import (
    AmountExceedsBalance, Conflict, InvalidStatusTransition, InvoiceNotFound,
    InvoicingError, PersistenceFailure, ValidationError,
)
from invoicing.models import InvoiceStatus, PaymentMethod
from invoicing.tenancy import TenantScope

logger = logging.getLogger(__name__)

# statuses a user may set by hand; PAID and PARTIAL only follow payments
MANUAL_STATUSES = frozenset({
    InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.VIEWED,
    InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED,
})
CREATABLE_STATUSES = frozenset({InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value})


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def line_amount(quantity, unit_price_cents: int) -> int:
    return _round_cents(Decimal(str(quantity)) * Decimal(int(unit_price_cents)))


def compute_totals(lines: Iterable, tax_rate=0, discount_cents: int = 0) -> InvoiceTotals:
    """lines: iterable of (quantity, unit_price_cents)."""
    subtotal = sum(line_amount(qty, price) for qty, price in lines)
    tax = _round_cents(Decimal(subtotal) * Decimal(str(tax_rate or 0)) / Decimal(100))
    discount = int(discount_cents or 0)
    return InvoiceTotals(
        subtotal_cents=subtotal,
        tax_cents=tax,
        discount_cents=discount,
        total_cents=subtotal + tax - discount,
    )


def derive_status(current: str, amount_paid_cents: int, total_cents: int) -> str:
    if amount_paid_cents >= total_cents:
        return InvoiceStatus.PAID.value
    if amount_paid_cents > 0:
        return InvoiceStatus.PARTIAL.value
    return current


def format_invoice_number(year: int, sequence: int) -> str:
    return f"INV-{year}-{sequence:03d}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- payments ---

async def record_payment(
    scope: TenantScope,
    invoice_id: int,
    amount_cents: int,
    payment_date: Optional[date] = None,
    method: str = PaymentMethod.BANK_TRANSFER.value,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> tuple[dict, dict]:
    """Append a payment and refresh the invoice's paid amount and status.

    The first statement of the transaction is the guarded increment, so it
    takes the invoice's write lock (row lock on Postgres, database lock on
    SQLite) before anything is read. A concurrent payment waits for it and is
    then checked against the updated balance. Returns (payment, invoice).
    """
    if amount_cents is None or int(amount_cents) <= 0:
        raise ValidationError("amount_cents must be > 0", field="amount_cents")
    amount_cents = int(amount_cents)
    itbl = models.Invoice.__table__
    ptbl = models.Payment.__table__

    try:
        async with scope.transaction():
            updated = await _apply_payment(scope, invoice_id, amount_cents)
            if updated is None:
                # unknown invoice, or the amount exceeds what is still owed
                invoice = await scope.get(itbl, invoice_id)
                if not invoice:
                    raise InvoiceNotFound(invoice_id)
                remaining = int(invoice["total_cents"]) - int(invoice["amount_paid_cents"])
                raise AmountExceedsBalance(amount_cents, remaining)

            payment_id = await scope.insert(
                ptbl,
                invoice_id=invoice_id,
                amount_cents=amount_cents,
                payment_date=payment_date or date.today(),
                method=method,
                reference=reference or None,
                notes=notes or None,
            )
            new_status = derive_status(
                updated["status"], int(updated["amount_paid_cents"]), int(updated["total_cents"]),
            )
            changes = {"status": new_status}
            if new_status == InvoiceStatus.PAID.value:
                changes["paid_date"] = _now()
            await scope.update(itbl, invoice_id, **changes)

            payment = await scope.fetch_one(scope.select(ptbl).where(ptbl.c.id == payment_id))
            invoice = await scope.get(itbl, invoice_id)
    except InvoicingError:
        raise
    except Exception as exc:
        logger.exception(
            "payment transaction aborted",
            extra={"tenant_id": scope.tenant_id, "invoice_id": invoice_id},
        )
        raise PersistenceFailure("record payment") from exc

    logger.info(
        "payment recorded",
        extra={
            "tenant_id": scope.tenant_id, "invoice_id": invoice_id,
            "payment_id": payment["id"], "amount_cents": amount_cents,
        },
    )
    return payment, invoice


async def _apply_payment(scope: TenantScope, invoice_id: int, amount_cents: int) -> Optional[dict]:
    """Guarded increment: matches nothing if the payment would overpay."""
    itbl = models.Invoice.__table__
    stmt = (
        itbl.update()
        .where(and_(
            itbl.c.id == invoice_id,
            itbl.c.tenant_id == scope.tenant_id,
            itbl.c.amount_paid_cents + amount_cents <= itbl.c.total_cents,
        ))
        .values(amount_paid_cents=itbl.c.amount_paid_cents + amount_cents)
        .returning(itbl.c.status, itbl.c.amount_paid_cents, itbl.c.total_cents)
    )
    return await scope.fetch_one(stmt)


# --- invoices ---

async def _ensure_owned(scope: TenantScope, table, row_id: int, label: str) -> dict:
    row = await scope.get(table, row_id)
    if not row:
        raise ValidationError(f"{label} not in your tenant", field=f"{label.lower()}_id")
    return row


async def create_invoice(scope: TenantScope, user_id: int, payload, currency: str = "USD") -> dict:
    company = await _ensure_owned(scope, models.Company.__table__, payload.company_id, "Company")
    client = await _ensure_owned(scope, models.Client.__table__, payload.client_id, "Client")
    if client["company_id"] != company["id"]:
        raise ValidationError("Client does not belong to this company", field="client_id")
    if payload.project_id is not None:
        project = await _ensure_owned(scope, models.Project.__table__, payload.project_id, "Project")
        if project["client_id"] != client["id"]:
            raise ValidationError("Project does not belong to this client", field="project_id")

    tax_rate = payload.tax_rate if payload.tax_rate is not None else company["tax_rate"]
    totals = compute_totals(
        [(line.quantity, line.unit_price_cents) for line in payload.line_items],
        tax_rate=tax_rate,
        discount_cents=payload.discount_cents,
    )
    if totals.total_cents < 0:
        raise ValidationError("Invoice total cannot be negative", field="discount_cents")

    status = payload.status.value
    if status not in CREATABLE_STATUSES:
        raise ValidationError(f"Invoices cannot be created as {status}", field="status")
    paid_date = None
    if totals.total_cents == 0:
        # nothing owed: amount_paid (0) >= total
        status, paid_date = InvoiceStatus.PAID.value, _now()

    issue_date = payload.issue_date or date.today()
    try:
        invoice = await _insert_invoice(
            scope, user_id, payload, totals,
            company_id=company["id"],
            client_id=client["id"],
            status=status,
            paid_date=paid_date,
            issue_date=issue_date,
            tax_rate=Decimal(str(tax_rate)),
            currency=(payload.currency or currency).upper(),
        )
    except InvoicingError:
        raise
    except Exception as exc:
        logger.exception("invoice creation aborted", extra={"tenant_id": scope.tenant_id})
        raise PersistenceFailure("create invoice") from exc

    logger.info(
        "invoice created",
        extra={"tenant_id": scope.tenant_id, "invoice_id": invoice["id"], "user_id": user_id},
    )
    return invoice


async def _number_taken(scope: TenantScope, number: str) -> bool:
    itbl = models.Invoice.__table__
    return await scope.fetch_one(scope.select(itbl, itbl.c.id).where(itbl.c.number == number)) is not None


async def _insert_invoice(scope: TenantScope, user_id: int, payload, totals: InvoiceTotals, **fields) -> dict:
    itbl = models.Invoice.__table__
    ltbl = models.InvoiceLineItem.__table__
    async with scope.transaction():
        if payload.number:
            number = payload.number
            if await _number_taken(scope, number):
                raise Conflict(f"Invoice number {number} already exists", code="INVOICE_NUMBER_TAKEN")
        else:
            # skip numbers a caller already claimed by hand
            number = None
            while number is None or await _number_taken(scope, number):
                number = format_invoice_number(date.today().year, await scope.next_invoice_sequence())

        try:
            invoice_id = await scope.insert(
                itbl,
                number=number,
                project_id=payload.project_id,
                user_id=user_id,
                due_date=payload.due_date,
                subtotal_cents=totals.subtotal_cents,
                tax_cents=totals.tax_cents,
                discount_cents=totals.discount_cents,
                total_cents=totals.total_cents,
                amount_paid_cents=0,
                notes=payload.notes,
                terms=payload.terms,
                **fields,
            )
        except Exception as exc:
            # another request claimed the number between the check and the insert
            if is_unique_violation(exc):
                raise Conflict(f"Invoice number {number} already exists", code="INVOICE_NUMBER_TAKEN") from exc
            raise
        for position, line in enumerate(payload.line_items):
            await scope.insert(
                ltbl,
                invoice_id=invoice_id,
                description=line.description,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                amount_cents=line_amount(line.quantity, line.unit_price_cents),
                category=line.category,
                position=position,
            )
        return await scope.get(itbl, invoice_id)


async def update_invoice(scope: TenantScope, invoice_id: int, changes: dict) -> dict:
    itbl = models.Invoice.__table__
    async with scope.transaction():
        invoice = await scope.get(itbl, invoice_id, for_update=True)
        if not invoice:
            raise InvoiceNotFound(invoice_id)

        values = {}
        target = changes.get("status")
        if target is not None:
            target = InvoiceStatus(target)
            if target.value != invoice["status"]:
                _check_manual_transition(invoice, target)
                values["status"] = target.value
        for key in ("due_date", "notes", "terms"):
            if key in changes and (key != "due_date" or changes[key] is not None):
                values[key] = changes[key]

        if values:
            await scope.update(itbl, invoice_id, **values)
        return await scope.get(itbl, invoice_id)


def _check_manual_transition(invoice: dict, target: InvoiceStatus) -> None:
    current = invoice["status"]
    if target not in MANUAL_STATUSES:
        raise InvalidStatusTransition(current, target.value, "set by recording payments")
    if int(invoice["total_cents"]) <= 0:
        raise InvalidStatusTransition(current, target.value, "nothing is owed on this invoice")
    if int(invoice["amount_paid_cents"]) > 0:
        raise InvalidStatusTransition(current, target.value, "invoice already has payments")
