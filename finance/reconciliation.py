"""
Reconciliation sweeps run by the scheduler and by administrators.

Sweeps work in short per-batch transactions and only touch rows that still
match their guard conditions at update time, so running one twice, or
alongside payment requests, is harmless.
"""

import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import timedelta

from django.core.cache import cache
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from products.models import Product
from . import notify
from .exceptions import JobAlreadyRunning, UnknownJob
from .ledger import refresh_contract_status
from .models import Installment, NotificationLog
from .reminders import (
    days_until,
    ledger_setting,
    overdue_message,
    upcoming_message,
    was_recently_notified,
)
from .status import InstallmentStatus

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    job: str
    count: int = 0
    contracts: list = field(default_factory=list)
    at: str = ''

    def as_dict(self):
        return asdict(self)


def _batched_status_sweep(queryset, new_status, now):
    """
    Move every installment in `queryset` to `new_status`, one transaction per
    batch. The queryset filter is re-applied in each UPDATE, so rows changed
    by a concurrent payment in the meantime are left alone.

    Returns (updated count, sorted contract ids touched).
    """
    batch_size = ledger_setting('SWEEP_BATCH_SIZE', 500)
    count = 0
    contract_ids = set()
    last_pk = 0

    while True:
        with transaction.atomic():
            rows = list(
                queryset.filter(pk__gt=last_pk)
                .order_by('pk')
                .values_list('pk', 'contract_id')[:batch_size]
            )
            if not rows:
                break
            ids = [pk for pk, _ in rows]
            count += queryset.filter(pk__in=ids).update(status=new_status, updated_at=now)

        contract_ids.update(contract_id for _, contract_id in rows)
        last_pk = ids[-1]

    return count, sorted(contract_ids)


def _refresh_contracts(contract_ids, now):
    for contract_id in contract_ids:
        refresh_contract_status(contract_id, now=now)


def mark_overdue(now=None):
    """Past-due, underpaid installments that are not PAID become LATE."""
    now = now or timezone.now()
    queryset = Installment.objects.filter(
        due_date__lt=now,
        paid_cents__lt=F('amount_cents'),
    ).exclude(status=InstallmentStatus.PAID)

    count, contract_ids = _batched_status_sweep(queryset, InstallmentStatus.LATE, now)
    _refresh_contracts(contract_ids, now)

    if count:
        notify.record(NotificationLog.SCHEDULER_OVERDUE, {'count': count, 'at': now.isoformat()})
        logger.info(f"[Reconciliation] {count} installment(s) marked LATE across {len(contract_ids)} contract(s)")
    return SweepResult(job='overdue', count=count, contracts=contract_ids, at=now.isoformat())


def mark_paid(now=None):
    """Fully paid installments whose status is not PAID yet become PAID."""
    now = now or timezone.now()
    queryset = Installment.objects.filter(
        paid_cents__gte=F('amount_cents'),
    ).exclude(status=InstallmentStatus.PAID)

    count, contract_ids = _batched_status_sweep(queryset, InstallmentStatus.PAID, now)
    _refresh_contracts(contract_ids, now)

    if count:
        notify.record(NotificationLog.SCHEDULER_MARK_PAID, {'count': count, 'at': now.isoformat()})
        logger.info(f"[Reconciliation] {count} installment(s) marked PAID across {len(contract_ids)} contract(s)")
    return SweepResult(job='markPaid', count=count, contracts=contract_ids, at=now.isoformat())


def low_stock_alert(now=None):
    """One LOW_STOCK entry listing every product at or below its threshold."""
    now = now or timezone.now()
    low = list(
        Product.objects.filter(stock__lte=F('stock_threshold')).order_by('pk')
    )
    if low:
        notify.record(NotificationLog.LOW_STOCK, {
            'at': now.isoformat(),
            'items': [
                {'id': p.pk, 'name': p.name, 'stock': p.stock, 'threshold': p.stock_threshold}
                for p in low
            ],
        })
        logger.info(f"[Reconciliation] {len(low)} product(s) low on stock")
    return SweepResult(job='lowStock', count=len(low), at=now.isoformat())


# ============================================================
# Reminders
# ============================================================

def _upcoming_window_end(now, days_before):
    """Start of the local day after `days_before` days from today."""
    local_midnight = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return local_midnight + timedelta(days=days_before + 1)


def _candidate(installment):
    customer = installment.contract.customer
    return {
        'installmentId': installment.pk,
        'seq': installment.seq,
        'dueDate': installment.due_date,
        'amountCents': installment.amount_cents,
        'paidCents': installment.paid_cents,
        'contractId': installment.contract_id,
        'customerId': customer.pk,
        'name': customer.name,
        'phone': customer.phone,
    }


def collect_reminder_candidates(now=None):
    """
    Installments that should get a reminder right now.

    overdue:  due_date < now and still underpaid
    upcoming: now <= due_date < start of (today + daysBefore + 1), underpaid

    Installments already reminded of the same kind within the cooldown are
    left out.
    """
    now = now or timezone.now()
    days_before = ledger_setting('REMINDER_DAYS_BEFORE', 3)
    resend_hours = ledger_setting('REMINDER_RESEND_HOURS', 24)

    unpaid = (
        Installment.objects.filter(paid_cents__lt=F('amount_cents'))
        .select_related('contract__customer')
        .order_by('due_date', 'pk')
    )
    overdue_qs = unpaid.filter(due_date__lt=now)
    upcoming_qs = unpaid.filter(
        due_date__gte=now,
        due_date__lt=_upcoming_window_end(now, days_before),
    )

    overdue = [
        _candidate(inst) for inst in overdue_qs
        if not was_recently_notified(NotificationLog.REMINDER_OVERDUE, inst.pk, resend_hours, now)
    ]
    upcoming = [
        _candidate(inst) for inst in upcoming_qs
        if not was_recently_notified(NotificationLog.REMINDER_UPCOMING, inst.pk, resend_hours, now)
    ]
    return {'overdue': overdue, 'upcoming': upcoming, 'daysBefore': days_before}


def _send_reminder(sender, kind, candidate, text):
    phone = candidate['phone']
    if not phone:
        result = {'success': False, 'provider_id': None, 'error': 'missing_phone'}
    else:
        try:
            result = sender.send(phone, text)
        except Exception as e:
            logger.exception(f"[Reminders] Sender failed for installment {candidate['installmentId']}")
            result = {'success': False, 'provider_id': None, 'error': str(e)}

    ok = bool(result.get('success'))
    notify.record(kind, {
        'installmentId': candidate['installmentId'],
        'contractId': candidate['contractId'],
        'customerId': candidate['customerId'],
        'phone': phone,
        'ok': ok,
        'providerId': result.get('provider_id'),
        'error': None if ok else (result.get('error') or 'send_failed'),
        'text': text,
    })
    return ok


def run_reminders(now=None, sender=None):
    """
    Send one SMS per reminder candidate and log each attempt.

    The cooldown is checked again just before each send, so two overlapping
    runs do not both message the same installment.
    """
    now = now or timezone.now()
    sender = sender or notify.SmsSender()
    resend_hours = ledger_setting('REMINDER_RESEND_HOURS', 24)
    candidates = collect_reminder_candidates(now)

    sent = errors = skipped = 0
    batches = [
        (NotificationLog.REMINDER_OVERDUE, candidates['overdue']),
        (NotificationLog.REMINDER_UPCOMING, candidates['upcoming']),
    ]
    for kind, items in batches:
        for candidate in items:
            if was_recently_notified(kind, candidate['installmentId'], resend_hours, now):
                skipped += 1
                continue

            outstanding = candidate['amountCents'] - candidate['paidCents']
            if kind == NotificationLog.REMINDER_OVERDUE:
                text = overdue_message(
                    candidate['name'], candidate['seq'], candidate['dueDate'], outstanding
                )
            else:
                text = upcoming_message(
                    candidate['name'], candidate['seq'], candidate['dueDate'], outstanding,
                    days_until(candidate['dueDate'], now),
                )

            if _send_reminder(sender, kind, candidate, text):
                sent += 1
            else:
                errors += 1

    logger.info(f"[Reminders] sent={sent} errors={errors} skipped={skipped}")
    return {
        'sent': sent,
        'errors': errors,
        'skipped': skipped,
        'overdue': len(candidates['overdue']),
        'upcoming': len(candidates['upcoming']),
        'daysBefore': candidates['daysBefore'],
    }


# ============================================================
# Per-entity notification scans
# ============================================================

def run_due_soon_scan(now=None):
    """Emit one `due_soon` event per PENDING installment due in the look-ahead window."""
    now = now or timezone.now()
    days_before = ledger_setting('REMINDER_DAYS_BEFORE', 3)
    start = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)

    due = (
        Installment.objects.filter(
            status=InstallmentStatus.PENDING,
            due_date__gte=start,
            due_date__lt=_upcoming_window_end(now, days_before),
        )
        .select_related('contract__customer')
        .order_by('due_date', 'pk')
    )
    count = 0
    for inst in due:
        notify.send(NotificationLog.DUE_SOON, {
            'installmentId': inst.pk,
            'contractId': inst.contract_id,
            'customer': inst.contract.customer.name,
            'dueDate': inst.due_date.isoformat(),
        })
        count += 1
    return {'count': count}


def run_low_stock_scan(now=None):
    """Emit one `low_stock` event per product strictly below its threshold."""
    count = 0
    for product in Product.objects.filter(stock__lt=F('stock_threshold')).order_by('pk'):
        notify.send(NotificationLog.LOW_STOCK_EVENT, {
            'productId': product.pk,
            'name': product.name,
            'stock': product.stock,
            'threshold': product.stock_threshold,
        })
        count += 1
    return {'count': count}


# ============================================================
# Job registry
# ============================================================

JOBS = {
    'overdue': mark_overdue,
    'markPaid': mark_paid,
    'lowStock': low_stock_alert,
    'reminders': run_reminders,
}


_running = set()
_running_guard = threading.Lock()


def _release_lock(lock_key, token):
    # an expired lock may already belong to another run
    if cache.get(lock_key) == token:
        cache.delete(lock_key)
    else:
        logger.warning(f"[Reconciliation] Lock {lock_key} expired before the job finished")


def run_job(name, now=None):
    """
    Run one registered job. Used by both the scheduler and manual triggers.

    A cache lock keeps the same job from running twice at once across
    processes; a second caller gets JobAlreadyRunning. Within one process
    the job also stays blocked after the cache lock expires, until the
    running call returns.
    """
    func = JOBS.get(name)
    if func is None:
        raise UnknownJob(f"Unknown job: {name}")

    with _running_guard:
        if name in _running:
            raise JobAlreadyRunning(f"Job {name} is already running.")
        _running.add(name)

    try:
        lock_key = f"ledger:job:{name}"
        lock_seconds = ledger_setting('JOB_LOCK_SECONDS', 600)
        token = uuid.uuid4().hex
        if not cache.add(lock_key, token, timeout=lock_seconds):
            raise JobAlreadyRunning(f"Job {name} is already running.")

        try:
            logger.info(f"[Reconciliation] Running job {name}")
            result = func(now=now)
        finally:
            _release_lock(lock_key, token)
    finally:
        with _running_guard:
            _running.discard(name)

    if isinstance(result, SweepResult):
        return result.as_dict()
    return result
