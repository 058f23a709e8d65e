"""
Derived status rules for installments and contracts.

Both functions only look at amounts, paid amounts and due dates, so a single
payment and a bulk sweep always arrive at the same answer for the same rows.
"""

from collections.abc import Mapping


class InstallmentStatus:
    PENDING = 'PENDING'
    PAID = 'PAID'
    LATE = 'LATE'

    CHOICES = [
        (PENDING, 'Pending'),
        (PAID, 'Paid'),
        (LATE, 'Late'),
    ]


class ContractStatus:
    ACTIVE = 'ACTIVE'
    CLOSED = 'CLOSED'
    DEFAULTED = 'DEFAULTED'

    CHOICES = [
        (ACTIVE, 'Active'),
        (CLOSED, 'Closed'),
        (DEFAULTED, 'Defaulted'),
    ]


def _field(item, name):
    if isinstance(item, Mapping):
        return item[name]
    return getattr(item, name)


def is_settled(amount_cents, paid_cents):
    return paid_cents >= amount_cents


def installment_status(amount_cents, paid_cents, due_date, now):
    """PAID wins over LATE: a fully paid installment is never late."""
    if is_settled(amount_cents, paid_cents):
        return InstallmentStatus.PAID
    if due_date < now:
        return InstallmentStatus.LATE
    return InstallmentStatus.PENDING


def contract_status(installments, now):
    """
    Derive a contract status from its installments.

    `installments` may hold model instances or mappings with
    `amount_cents`, `paid_cents` and `due_date`.
    """
    rows = [
        (_field(i, 'amount_cents'), _field(i, 'paid_cents'), _field(i, 'due_date'))
        for i in installments
    ]

    if all(is_settled(amount, paid) for amount, paid, _ in rows):
        return ContractStatus.CLOSED
    if any(due < now and not is_settled(amount, paid) for amount, paid, due in rows):
        return ContractStatus.DEFAULTED
    return ContractStatus.ACTIVE
