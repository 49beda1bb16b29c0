from decimal import Decimal

import pytest

from invoicing.billing import (
    compute_totals, derive_status, format_invoice_number, line_amount,
)


def test_totals_with_tax():
    totals = compute_totals([(80, 12500), (50, 10000)], tax_rate=Decimal("8.5"), discount_cents=0)
    assert totals.subtotal_cents == 1_500_000
    assert totals.tax_cents == 127_500
    assert totals.total_cents == 1_627_500


def test_negative_line_items_reduce_subtotal():
    totals = compute_totals([(10, 15000), (1, -5000)], tax_rate=0)
    assert totals.subtotal_cents == 145_000
    assert totals.total_cents == 145_000


def test_discount_is_subtracted_after_tax():
    totals = compute_totals([(1, 10000)], tax_rate=10, discount_cents=2500)
    assert totals.tax_cents == 1000
    assert totals.total_cents == 8500


def test_fractional_quantities_round_half_up():
    assert line_amount(Decimal("0.5"), 1001) == 501
    assert line_amount(Decimal("7.25"), 10000) == 72500
    # 333 * 7.5% = 24.975 -> 25
    assert compute_totals([(1, 333)], tax_rate=Decimal("7.5")).tax_cents == 25


def test_missing_tax_rate_means_no_tax():
    totals = compute_totals([(2, 500)], tax_rate=None)
    assert totals.tax_cents == 0
    assert totals.total_cents == 1000


@pytest.mark.parametrize(
    "current, paid, total, expected",
    [
        ("SENT", 1_627_500, 1_627_500, "PAID"),
        ("SENT", 1_000_000, 2_712_500, "PARTIAL"),
        ("PARTIAL", 2_712_500, 2_712_500, "PAID"),
        ("DRAFT", 0, 1000, "DRAFT"),
        ("OVERDUE", 0, 1000, "OVERDUE"),
        ("DRAFT", 0, 0, "PAID"),
    ],
)
def test_derive_status(current, paid, total, expected):
    assert derive_status(current, paid, total) == expected


def test_invoice_number_format():
    assert format_invoice_number(2025, 1) == "INV-2025-001"
    assert format_invoice_number(2025, 42) == "INV-2025-042"
    assert format_invoice_number(2026, 1234) == "INV-2026-1234"
