"""
Transactional ledger operations.

Every public function here is one all-or-nothing unit of work. Rows that are
read and then written are locked with select_for_update, always in the
order contract -> installment -> payment, and the paid_cents / stock writes
are additionally guarded by a conditional UPDATE on the value that was read.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from dateutil.relativedelta import relativedelta
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from customer.models import Customer
from products.models import Product
from . import allocation
from .exceptions import (
    ConcurrentUpdate,
    ContractHasInstallments,
    InsufficientStock,
    InvalidAmount,
    InvalidInstallment,
    InvalidProduct,
    InvalidStatus,
    NotFound,
)
from .models import Contract, ContractItem, Installment, NotificationLog, Payment
from .notify import record
from .status import ContractStatus, InstallmentStatus, contract_status

logger = logging.getLogger(__name__)

CONFLICT_RETRIES = 3


@dataclass
class PaymentResult:
    installment: Installment
    payment: Optional[Payment]
    applied_cents: int
    leftover_cents: int
    installment_status: str
    contract_status: str

    @property
    def already_settled(self):
        return self.applied_cents == 0


@dataclass
class ReversalResult:
    installment: Installment
    reversed_cents: int
    installment_status: str
    contract_status: str


# ============================================================
# Helpers
# ============================================================

def _as_datetime(value):
    """Accept a date or datetime and return an aware datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        raise InvalidAmount("start_date must be a date or datetime.")
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt


def _is_cents(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _normalize_items(items):
    """Merge duplicate product lines, keeping first-seen order."""
    if not items:
        raise InvalidProduct("At least one item is required.")

    quantities = {}
    for item in items:
        try:
            product_id = int(item['product_id'])
            qty = int(item['qty'])
        except (KeyError, TypeError, ValueError):
            raise InvalidProduct("Each item needs an integer product_id and qty.")
        if qty < 1:
            raise InvalidAmount("qty must be at least 1.")
        quantities[product_id] = quantities.get(product_id, 0) + qty
    return quantities


def _lock_installment(installment_id, missing):
    """Lock an installment together with its contract (contract first)."""
    contract_id = (
        Installment.objects.filter(pk=installment_id)
        .values_list('contract_id', flat=True)
        .first()
    )
    if contract_id is None:
        raise missing

    contract = Contract.objects.select_for_update().get(pk=contract_id)
    try:
        installment = Installment.objects.select_for_update().get(pk=installment_id)
    except Installment.DoesNotExist:
        raise missing
    return contract, installment


def _set_paid_cents(installment, new_paid_cents, now):
    """Conditional write of paid_cents guarded by the value read under lock."""
    updated = Installment.objects.filter(
        pk=installment.pk,
        paid_cents=installment.paid_cents,
    ).update(paid_cents=new_paid_cents, updated_at=now)
    if not updated:
        raise ConcurrentUpdate()
    installment.paid_cents = new_paid_cents


def _sync_installment(installment, now):
    new_status = installment.derive_status(now)
    if new_status != installment.status:
        installment.status = new_status
        installment.save(update_fields=['status', 'updated_at'])
    return new_status


def _sync_contract(contract, now):
    """Contract row must already be locked by the caller."""
    installments = list(Installment.objects.filter(contract_id=contract.pk))
    new_status = contract_status(installments, now)
    if new_status != contract.status:
        contract.status = new_status
        contract.save(update_fields=['status', 'updated_at'])
    return new_status


def _with_conflict_retry(func, *args, **kwargs):
    for attempt in range(1, CONFLICT_RETRIES + 1):
        try:
            return func(*args, **kwargs)
        except ConcurrentUpdate:
            if attempt == CONFLICT_RETRIES:
                raise
            logger.warning(f"[Ledger] Concurrent update in {func.__name__}, retry {attempt}")


# ============================================================
# Contract creation
# ============================================================

def create_contract(customer_id, items, months, start_date, created_by=None, now=None):
    """
    Create a contract, its items and its full installment schedule, and
    decrement stock for every item, all in one transaction.

    Raises:
        NotFound: unknown customer
        InvalidProduct: unknown product id(s)
        InsufficientStock: any line would take stock below zero
    """
    if months is None or int(months) < 1:
        raise InvalidAmount("months must be at least 1.")
    months = int(months)
    quantities = _normalize_items(items)
    start = _as_datetime(start_date)
    now = now or timezone.now()

    with transaction.atomic():
        if not Customer.objects.filter(pk=customer_id).exists():
            raise NotFound(f"Customer {customer_id} not found.")

        products = {
            p.pk: p
            for p in Product.objects.select_for_update()
            .filter(pk__in=list(quantities))
            .order_by('pk')
        }
        missing = sorted(set(quantities) - set(products))
        if missing:
            raise InvalidProduct(f"Invalid product(s): {missing}")

        lines = [
            (products[product_id], qty, products[product_id].price_cents)
            for product_id, qty in quantities.items()
        ]
        total_cents = sum(qty * unit_cents for _, qty, unit_cents in lines)

        for product_id in sorted(quantities):
            qty = quantities[product_id]
            updated = Product.objects.filter(pk=product_id, stock__gte=qty).update(
                stock=F('stock') - qty,
                updated_at=now,
            )
            if not updated:
                raise InsufficientStock(
                    f"Insufficient stock for product {product_id}: "
                    f"requested {qty}, available {products[product_id].stock}."
                )

        contract = Contract.objects.create(
            customer_id=customer_id,
            total_cents=total_cents,
            months=months,
            start_date=start,
            status=ContractStatus.ACTIVE,
            created_by=created_by,
        )
        ContractItem.objects.bulk_create([
            ContractItem(contract=contract, product=product, qty=qty, unit_cents=unit_cents)
            for product, qty, unit_cents in lines
        ])

        schedule = []
        for i, amount in enumerate(allocation.split_installments(total_cents, months)):
            installment = Installment(
                contract=contract,
                seq=i + 1,
                due_date=start + relativedelta(months=i),
                amount_cents=amount,
                paid_cents=0,
            )
            installment.status = installment.derive_status(now)
            schedule.append(installment)
        Installment.objects.bulk_create(schedule)

        contract.status = contract_status(schedule, now)
        contract.save(update_fields=['status', 'updated_at'])

        record(NotificationLog.CONTRACT_CREATED, {
            'contractId': contract.pk,
            'customerId': customer_id,
            'totalCents': total_cents,
            'months': months,
            'items': [
                {'productId': product.pk, 'qty': qty, 'unitCents': unit_cents}
                for product, qty, unit_cents in lines
            ],
        })

    logger.info(
        f"[Ledger] Contract {contract.pk} created for customer {customer_id}: "
        f"{total_cents} cents over {months} months"
    )
    return contract


# ============================================================
# Payments
# ============================================================

def _apply_payment_once(installment_id, requested_cents, paid_at, received_by, now):
    with transaction.atomic():
        contract, installment = _lock_installment(
            installment_id,
            InvalidInstallment(f"Installment {installment_id} not found."),
        )

        applied, leftover = allocation.apply_payment(installment.outstanding_cents, requested_cents)

        payment = None
        if applied:
            payment = Payment.objects.create(
                installment=installment,
                amount_cents=applied,
                paid_at=paid_at,
                received_by=received_by,
            )
            _set_paid_cents(installment, installment.paid_cents + applied, now)

        inst_status = _sync_installment(installment, now)
        con_status = _sync_contract(contract, now)

        if applied:
            record(NotificationLog.PAYMENT_APPLIED, {
                'paymentId': payment.pk,
                'installmentId': installment.pk,
                'contractId': contract.pk,
                'appliedCents': applied,
                'leftoverCents': leftover,
            })

    return PaymentResult(
        installment=installment,
        payment=payment,
        applied_cents=applied,
        leftover_cents=leftover,
        installment_status=inst_status,
        contract_status=con_status,
    )


def apply_payment(installment_id, requested_cents, paid_at=None, received_by=None, now=None):
    """
    Apply a payment to one installment, capped at its outstanding balance.

    Only the applied amount is stored. A request against a settled
    installment is a successful no-op (applied 0, the whole request is
    leftover), so retries are safe.
    """
    if not _is_cents(requested_cents) or requested_cents <= 0:
        raise InvalidAmount("amount_cents must be a whole number of cents greater than zero.")
    now = now or timezone.now()
    paid_at = paid_at or now

    result = _with_conflict_retry(
        _apply_payment_once, installment_id, requested_cents, paid_at, received_by, now
    )

    if result.already_settled:
        logger.info(f"[Ledger] Installment {installment_id} already settled, nothing applied")
    else:
        logger.info(
            f"[Ledger] Applied {result.applied_cents} cents to installment {installment_id} "
            f"(leftover {result.leftover_cents}, status {result.installment_status})"
        )
    return result


def _reverse_payment_once(payment_id, now):
    with transaction.atomic():
        installment_id = (
            Payment.objects.filter(pk=payment_id)
            .values_list('installment_id', flat=True)
            .first()
        )
        missing = NotFound(f"Payment {payment_id} not found.")
        if installment_id is None:
            raise missing

        contract, installment = _lock_installment(installment_id, missing)
        try:
            payment = Payment.objects.select_for_update().get(pk=payment_id)
        except Payment.DoesNotExist:
            raise missing

        amount = payment.amount_cents
        if amount > installment.paid_cents:
            raise InvalidAmount(
                f"Payment {payment_id} exceeds the paid amount of installment {installment.pk}."
            )

        payment.delete()
        _set_paid_cents(installment, installment.paid_cents - amount, now)

        inst_status = _sync_installment(installment, now)
        con_status = _sync_contract(contract, now)

        record(NotificationLog.PAYMENT_REVERSED, {
            'paymentId': payment_id,
            'installmentId': installment.pk,
            'contractId': contract.pk,
            'reversedCents': amount,
        })

    return ReversalResult(
        installment=installment,
        reversed_cents=amount,
        installment_status=inst_status,
        contract_status=con_status,
    )


def reverse_payment(payment_id, now=None):
    """
    Delete a payment and take exactly its amount back off the installment.
    """
    now = now or timezone.now()
    result = _with_conflict_retry(_reverse_payment_once, payment_id, now)
    logger.info(
        f"[Ledger] Reversed payment {payment_id}: -{result.reversed_cents} cents on "
        f"installment {result.installment.pk} (status {result.installment_status})"
    )
    return result


# ============================================================
# Reconciliation of a single contract
# ============================================================

def recalculate_contract(contract_id, now=None):
    """
    Re-derive every installment status and then the contract status.

    Only drifted fields are written, so repeated calls are harmless.
    """
    now = now or timezone.now()

    with transaction.atomic():
        try:
            contract = Contract.objects.select_for_update().get(pk=contract_id)
        except Contract.DoesNotExist:
            raise NotFound(f"Contract {contract_id} not found.")

        installments = list(
            Installment.objects.select_for_update()
            .filter(contract_id=contract.pk)
            .order_by('seq')
        )
        changed = 0
        for installment in installments:
            new_status = installment.derive_status(now)
            if new_status != installment.status:
                installment.status = new_status
                installment.save(update_fields=['status', 'updated_at'])
                changed += 1

        new_contract_status = contract_status(installments, now)
        if new_contract_status != contract.status:
            contract.status = new_contract_status
            contract.save(update_fields=['status', 'updated_at'])
            changed += 1

    if changed:
        logger.info(f"[Ledger] Recalculated contract {contract_id}: {changed} field(s) corrected")
    return contract


def refresh_contract_status(contract_id, now=None):
    """
    Re-derive only the contract status. Returns the status, or None when the
    contract no longer exists.
    """
    now = now or timezone.now()
    with transaction.atomic():
        contract = Contract.objects.select_for_update().filter(pk=contract_id).first()
        if contract is None:
            return None
        return _sync_contract(contract, now)


# ============================================================
# Administrative edits
# ============================================================

def update_installment(installment_id, due_date=None, amount_cents=None, status=None, now=None):
    """
    Administrative edit of an installment's due date, amount or status.

    Without an explicit status the status is re-derived. The contract status
    is always re-derived afterwards.
    """
    if status is not None and status not in dict(InstallmentStatus.CHOICES):
        raise InvalidStatus(f"Invalid installment status: {status}")
    if amount_cents is not None and (not _is_cents(amount_cents) or amount_cents < 0):
        raise InvalidAmount("amount_cents must be a non-negative whole number of cents.")
    now = now or timezone.now()

    with transaction.atomic():
        contract, installment = _lock_installment(
            installment_id,
            InvalidInstallment(f"Installment {installment_id} not found."),
        )

        changes = {}
        if amount_cents is not None:
            if amount_cents < installment.paid_cents:
                raise InvalidAmount("amount_cents cannot be less than paid_cents.")
            changes['amountCents'] = [installment.amount_cents, amount_cents]
            installment.amount_cents = amount_cents
        if due_date is not None:
            due_date = _as_datetime(due_date)
            changes['dueDate'] = [installment.due_date.isoformat(), due_date.isoformat()]
            installment.due_date = due_date

        if status is not None:
            installment.status = status
        else:
            installment.status = installment.derive_status(now)
        installment.save()

        con_status = _sync_contract(contract, now)

        record(NotificationLog.INSTALLMENT_UPDATED, {
            'installmentId': installment.pk,
            'contractId': contract.pk,
            'changes': changes,
            'status': installment.status,
            'statusOverride': status is not None,
        })

    logger.info(f"[Ledger] Installment {installment_id} updated, contract {contract.pk} is {con_status}")
    return installment


def set_contract_status(contract_id, status):
    """Administrative override of the contract status."""
    if status not in dict(ContractStatus.CHOICES):
        raise InvalidStatus(f"Invalid contract status: {status}")

    with transaction.atomic():
        try:
            contract = Contract.objects.select_for_update().get(pk=contract_id)
        except Contract.DoesNotExist:
            raise NotFound(f"Contract {contract_id} not found.")

        previous = contract.status
        contract.status = status
        contract.save(update_fields=['status', 'updated_at'])

        record(NotificationLog.CONTRACT_STATUS_OVERRIDDEN, {
            'contractId': contract.pk,
            'from': previous,
            'to': status,
        })

    logger.warning(f"[Ledger] Contract {contract_id} status overridden: {previous} -> {status}")
    return contract


def delete_contract(contract_id):
    """Contracts can only be deleted while they have no installments."""
    with transaction.atomic():
        try:
            contract = Contract.objects.select_for_update().get(pk=contract_id)
        except Contract.DoesNotExist:
            raise NotFound(f"Contract {contract_id} not found.")

        if contract.installments.exists():
            raise ContractHasInstallments()

        contract.delete()
        record(NotificationLog.CONTRACT_DELETED, {'contractId': contract_id})

    logger.info(f"[Ledger] Contract {contract_id} deleted")
