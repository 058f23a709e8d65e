"""
Payment reminder helpers: the cooldown check and the SMS texts.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import NotificationLog

logger = logging.getLogger(__name__)


def ledger_setting(name, default=None):
    return getattr(settings, 'LEDGER', {}).get(name, default)


def was_recently_notified(kind, installment_id, window_hours, now=None):
    """
    True when a `kind` log entry for this installment was written within the
    last `window_hours`.

    Entries are counted whether the send succeeded or not, so a failed
    reminder is retried on the next window instead of on every run.
    """
    now = now or timezone.now()
    since = now - timedelta(hours=window_hours)
    return NotificationLog.objects.filter(
        type=kind,
        created_at__gte=since,
        payload__installmentId=installment_id,
    ).exists()


def format_amount(cents):
    label = ledger_setting('CURRENCY_LABEL', 'IQD')
    return f"{cents // 100} {label}"


def overdue_message(name, seq, due_date, outstanding_cents, sender=None):
    sender = sender or ledger_setting('SENDER_NAME', 'Tasdeed')
    due = timezone.localtime(due_date).strftime('%Y-%m-%d')
    return (
        f"Dear {name}, installment #{seq} has been overdue since {due} "
        f"with {format_amount(outstanding_cents)} outstanding. "
        f"Please pay as soon as possible. - {sender}"
    )


def upcoming_message(name, seq, due_date, outstanding_cents, days, sender=None):
    sender = sender or ledger_setting('SENDER_NAME', 'Tasdeed')
    due = timezone.localtime(due_date).strftime('%Y-%m-%d')
    return (
        f"Reminder: installment #{seq} is due on {due} (in {days} day(s)). "
        f"Remaining amount {format_amount(outstanding_cents)}. - {sender}"
    )


def days_until(due_date, now):
    """Whole days until due_date, rounded up, never negative."""
    seconds = (due_date - now).total_seconds()
    if seconds <= 0:
        return 0
    return int(-(-seconds // 86400))
