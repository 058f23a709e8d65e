"""
Money allocation helpers for installment contracts.

All amounts are integer cents. Nothing in here touches the database, so the
same functions size a new schedule and cap a payment against a single
installment.
"""

from .exceptions import InvalidAmount


def split_installments(total_cents, months):
    """
    Split a contract total into `months` installment amounts.

    The per-installment base is the floor of total / months; whatever is left
    over goes entirely to the first installment, so the result always sums
    back to `total_cents`.

    Example:
        split_installments(100, 3) -> [34, 33, 33]
    """
    if months < 1:
        raise InvalidAmount("months must be at least 1.")
    if total_cents < 0:
        raise InvalidAmount("total_cents cannot be negative.")

    base = total_cents // months
    rest = total_cents - base * months
    amounts = [base] * months
    amounts[0] += rest
    return amounts


def apply_payment(outstanding_cents, requested_cents):
    """
    Cap a requested payment at the outstanding balance.

    Returns (applied_cents, leftover_cents). A settled installment
    (outstanding == 0) applies nothing and hands the whole request back as
    leftover.
    """
    outstanding = max(outstanding_cents, 0)
    applied = min(requested_cents, outstanding)
    return applied, requested_cents - applied
