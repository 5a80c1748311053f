"""Installment schedule generation and effective-status derivation."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from .sales import Installment, InstallmentStatus

_OUTSTANDING = (InstallmentStatus.pending, InstallmentStatus.overdue, InstallmentStatus.late)


def add_months(start: date, months: int) -> date:
    """Shift ``start`` by whole months, clamping to the last day of short months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def build_schedule(total_installments: int, amount: Decimal, start: date) -> list[tuple[int, Decimal, date]]:
    """Return ``(number, amount, due_date)`` rows, first due one month after ``start``."""
    if total_installments < 0:
        raise ValueError("total_installments must not be negative")
    return [
        (number, amount, add_months(start, number))
        for number in range(1, total_installments + 1)
    ]


def derive_status(
    stored: InstallmentStatus,
    due_date: date,
    today: date,
    late_after_days: int,
) -> InstallmentStatus:
    """Compute the status an installment effectively has on ``today``.

    Paid and pending-approval installments keep their stored status. Anything
    still outstanding becomes ``overdue`` once its due date has passed and
    ``late`` when more than ``late_after_days`` days have gone by.
    """
    if stored not in _OUTSTANDING:
        return stored
    if due_date >= today:
        return stored
    if today - due_date > timedelta(days=late_after_days):
        return InstallmentStatus.late
    return InstallmentStatus.overdue


def with_effective_status(installment: Installment, today: date, late_after_days: int) -> Installment:
    installment.status = derive_status(installment.status, installment.due_date, today, late_after_days)
    return installment


@dataclass(slots=True)
class InstallmentSummary:
    total_installments: int = 0
    paid_installments: int = 0
    pending_installments: int = 0
    pending_approval_installments: int = 0
    overdue_installments: int = 0
    late_installments: int = 0
    total_paid: Decimal = Decimal("0")
    total_remaining: Decimal = Decimal("0")
    next_due_date: date | None = None
    last_payment_date: date | None = None


def summarize(installments: Iterable[Installment]) -> InstallmentSummary:
    """Aggregate installments that already carry their effective status."""
    summary = InstallmentSummary()
    for item in installments:
        summary.total_installments += 1
        if item.status is InstallmentStatus.paid:
            summary.paid_installments += 1
            summary.total_paid += item.amount
            if summary.last_payment_date is None or item.due_date > summary.last_payment_date:
                summary.last_payment_date = item.due_date
            continue
        if item.status is InstallmentStatus.pending_approval:
            summary.pending_approval_installments += 1
        elif item.status is InstallmentStatus.pending:
            summary.pending_installments += 1
        elif item.status is InstallmentStatus.overdue:
            summary.overdue_installments += 1
        elif item.status is InstallmentStatus.late:
            summary.late_installments += 1
        if item.status in _OUTSTANDING:
            summary.total_remaining += item.amount
            if summary.next_due_date is None or item.due_date < summary.next_due_date:
                summary.next_due_date = item.due_date
    return summary
