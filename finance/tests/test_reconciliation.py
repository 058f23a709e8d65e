from datetime import timedelta
from unittest import mock

import pytest
from django.core.cache import cache
from django.utils import timezone

from customer.models import Customer
from finance import ledger, reconciliation
from finance.exceptions import JobAlreadyRunning, UnknownJob
from finance.models import Contract, Installment, NotificationLog
from finance.reminders import days_until, format_amount, was_recently_notified
from finance.status import ContractStatus, InstallmentStatus


def ok_sender():
    sender = mock.MagicMock()
    sender.send.return_value = {'success': True, 'provider_id': 'p-1', 'error': None}
    return sender


@pytest.mark.django_db
class TestStatusSweeps:

    def test_mark_overdue(self, make_contract, now):
        contract = make_contract(months=3, start=now + timedelta(days=1))
        later = now + timedelta(days=40)

        result = reconciliation.mark_overdue(now=later)

        assert result.count == 2
        assert result.contracts == [contract.pk]
        statuses = dict(contract.installments.values_list('seq', 'status'))
        assert statuses == {1: InstallmentStatus.LATE, 2: InstallmentStatus.LATE, 3: InstallmentStatus.PENDING}
        assert Contract.objects.get(pk=contract.pk).status == ContractStatus.DEFAULTED
        assert NotificationLog.objects.get(type=NotificationLog.SCHEDULER_OVERDUE).payload['count'] == 2

    def test_mark_overdue_leaves_paid_alone(self, make_contract, now):
        contract = make_contract(months=1, start=now + timedelta(days=1))
        installment = contract.installments.get()
        ledger.apply_payment(installment.pk, 100)

        result = reconciliation.mark_overdue(now=now + timedelta(days=10))

        assert result.count == 0
        installment.refresh_from_db()
        assert installment.status == InstallmentStatus.PAID
        assert not NotificationLog.objects.filter(type=NotificationLog.SCHEDULER_OVERDUE).exists()

    def test_mark_overdue_is_stable_on_rerun(self, make_contract, now):
        contract = make_contract(months=3, start=now + timedelta(days=1))
        later = now + timedelta(days=40)

        reconciliation.mark_overdue(now=later)
        reconciliation.mark_overdue(now=later)

        statuses = dict(contract.installments.values_list('seq', 'status'))
        assert statuses[1] == statuses[2] == InstallmentStatus.LATE
        assert Contract.objects.get(pk=contract.pk).status == ContractStatus.DEFAULTED

    def test_batches_cover_every_row(self, make_contract, now, settings):
        settings.LEDGER = {**settings.LEDGER, 'SWEEP_BATCH_SIZE': 1}
        make_contract(months=4, start=now - timedelta(days=200), created_at=now - timedelta(days=300))

        result = reconciliation.mark_overdue(now=now)

        assert result.count == 4
        assert set(Installment.objects.values_list('status', flat=True)) == {InstallmentStatus.LATE}

    def test_mark_paid(self, make_contract):
        contract = make_contract(months=2)
        Installment.objects.filter(contract=contract).update(paid_cents=50)

        result = reconciliation.mark_paid()

        assert result.count == 2
        assert set(contract.installments.values_list('status', flat=True)) == {InstallmentStatus.PAID}
        assert Contract.objects.get(pk=contract.pk).status == ContractStatus.CLOSED
        assert reconciliation.mark_paid().count == 0


@pytest.mark.django_db
class TestStockScans:

    def test_low_stock_alert_includes_threshold(self, make_product):
        at_threshold = make_product(name="At", stock=5, stock_threshold=5)
        below = make_product(name="Below", stock=1, stock_threshold=5)
        make_product(name="Fine", stock=50, stock_threshold=5)

        result = reconciliation.low_stock_alert()

        assert result.count == 2
        entry = NotificationLog.objects.get(type=NotificationLog.LOW_STOCK)
        assert [i['id'] for i in entry.payload['items']] == [at_threshold.pk, below.pk]

    def test_low_stock_scan_is_strict(self, make_product):
        make_product(name="At", stock=5, stock_threshold=5)
        below = make_product(name="Below", stock=1, stock_threshold=5)

        assert reconciliation.run_low_stock_scan() == {'count': 1}
        entry = NotificationLog.objects.get(type=NotificationLog.LOW_STOCK_EVENT)
        assert entry.payload['productId'] == below.pk

    def test_no_low_stock_writes_nothing(self, make_product):
        make_product(stock=100)
        assert reconciliation.low_stock_alert().count == 0
        assert not NotificationLog.objects.filter(type=NotificationLog.LOW_STOCK).exists()


@pytest.mark.django_db
class TestReminders:

    def test_candidates(self, make_contract, now):
        overdue = make_contract(months=2, start=now - timedelta(days=5))
        upcoming = make_contract(months=1, start=now + timedelta(days=2))
        make_contract(months=1, start=now + timedelta(days=20))

        candidates = reconciliation.collect_reminder_candidates(now=now)

        assert [c['installmentId'] for c in candidates['overdue']] == [overdue.installments.get(seq=1).pk]
        assert [c['installmentId'] for c in candidates['upcoming']] == [upcoming.installments.get().pk]
        assert candidates['daysBefore'] == 3

    def test_paid_installments_are_not_candidates(self, make_contract, now):
        contract = make_contract(months=1, start=now - timedelta(days=5))
        ledger.apply_payment(contract.installments.get().pk, 100)

        candidates = reconciliation.collect_reminder_candidates(now=now)

        assert candidates['overdue'] == []

    def test_send_and_dedup(self, make_contract, now):
        contract = make_contract(months=2, start=now - timedelta(days=5))
        sender = ok_sender()

        first = reconciliation.run_reminders(now=now, sender=sender)
        second = reconciliation.run_reminders(now=now, sender=sender)

        assert first['sent'] == 1
        assert first['errors'] == 0
        assert second['sent'] == 0
        assert sender.send.call_count == 1

        phone, text = sender.send.call_args[0]
        assert phone == "+9647701234567"
        assert "overdue" in text
        assert "#1" in text

        entry = NotificationLog.objects.get(type=NotificationLog.REMINDER_OVERDUE)
        assert entry.payload['installmentId'] == contract.installments.get(seq=1).pk
        assert entry.payload['ok'] is True

    def test_resend_after_cooldown(self, make_contract, now):
        make_contract(months=2, start=now - timedelta(days=5))
        sender = ok_sender()

        reconciliation.run_reminders(now=now, sender=sender)
        NotificationLog.objects.filter(type=NotificationLog.REMINDER_OVERDUE).update(
            created_at=now - timedelta(hours=25)
        )
        result = reconciliation.run_reminders(now=now, sender=sender)

        assert result['sent'] == 1
        assert sender.send.call_count == 2

    def test_missing_phone_is_logged_as_failure(self, make_contract, now):
        silent = Customer.objects.create(name="No Phone")
        contract = make_contract(months=1, start=now - timedelta(days=2), buyer=silent)
        sender = ok_sender()

        result = reconciliation.run_reminders(now=now, sender=sender)

        assert result['errors'] == 1
        assert result['sent'] == 0
        sender.send.assert_not_called()
        entry = NotificationLog.objects.get(type=NotificationLog.REMINDER_OVERDUE)
        assert entry.payload['installmentId'] == contract.installments.get().pk
        assert entry.payload['ok'] is False
        assert entry.payload['error'] == 'missing_phone'

    def test_failed_send_counts_as_notified(self, make_contract, now):
        make_contract(months=1, start=now - timedelta(days=2))
        sender = mock.MagicMock()
        sender.send.side_effect = RuntimeError("gateway down")

        first = reconciliation.run_reminders(now=now, sender=sender)
        second = reconciliation.run_reminders(now=now, sender=sender)

        assert first['errors'] == 1
        assert second['errors'] == 0
        assert sender.send.call_count == 1

    def test_upcoming_message(self, make_contract, now):
        make_contract(months=1, start=now + timedelta(days=2))
        sender = ok_sender()

        result = reconciliation.run_reminders(now=now, sender=sender)

        assert result['upcoming'] == 1
        _, text = sender.send.call_args[0]
        assert "in 2 day(s)" in text
        assert NotificationLog.objects.filter(type=NotificationLog.REMINDER_UPCOMING).count() == 1

    def test_due_soon_scan(self, make_contract, now):
        soon = make_contract(months=1, start=now + timedelta(days=1))
        make_contract(months=1, start=now + timedelta(days=30))

        assert reconciliation.run_due_soon_scan(now=now) == {'count': 1}
        entry = NotificationLog.objects.get(type=NotificationLog.DUE_SOON)
        assert entry.payload['installmentId'] == soon.installments.get().pk

    def test_was_recently_notified_window(self, db, now):
        NotificationLog.objects.create(
            type=NotificationLog.REMINDER_OVERDUE,
            payload={'installmentId': 7},
            created_at=now - timedelta(hours=2),
        )
        assert was_recently_notified(NotificationLog.REMINDER_OVERDUE, 7, 24, now)
        assert not was_recently_notified(NotificationLog.REMINDER_OVERDUE, 7, 1, now)
        assert not was_recently_notified(NotificationLog.REMINDER_UPCOMING, 7, 24, now)
        assert not was_recently_notified(NotificationLog.REMINDER_OVERDUE, 8, 24, now)


class TestReminderText:

    def test_days_until_rounds_up(self):
        now = timezone.now()
        assert days_until(now + timedelta(hours=1), now) == 1
        assert days_until(now + timedelta(days=2), now) == 2
        assert days_until(now - timedelta(days=1), now) == 0

    def test_format_amount_drops_cents(self):
        assert format_amount(1250099) == "12500 IQD"


@pytest.mark.django_db
class TestRunJob:

    def test_runs_registered_job(self, make_contract, now):
        make_contract(months=1, start=now - timedelta(days=3))

        result = reconciliation.run_job('overdue')

        assert result['job'] == 'overdue'
        assert result['count'] == 1

    def test_unknown_job(self):
        with pytest.raises(UnknownJob):
            reconciliation.run_job('nope')

    def test_lock_blocks_second_run(self):
        cache.add('ledger:job:markPaid', 'held', timeout=60)

        with pytest.raises(JobAlreadyRunning):
            reconciliation.run_job('markPaid')

    def test_lock_released_after_failure(self):
        with mock.patch.dict(reconciliation.JOBS, {'overdue': mock.Mock(side_effect=RuntimeError("boom"))}):
            with pytest.raises(RuntimeError):
                reconciliation.run_job('overdue')

        assert cache.get('ledger:job:overdue') is None

    def test_finishing_run_keeps_a_newer_lock(self):
        def slow_job(now=None):
            # this run's lock expired and another process took the job
            cache.set('ledger:job:overdue', 'other-run', timeout=60)
            return {'count': 0}

        with mock.patch.dict(reconciliation.JOBS, {'overdue': slow_job}):
            reconciliation.run_job('overdue')

        assert cache.get('ledger:job:overdue') == 'other-run'
        with pytest.raises(JobAlreadyRunning):
            reconciliation.run_job('overdue')

    def test_expired_lock_does_not_allow_overlap(self):
        nested = []

        def slow_job(now=None):
            cache.delete('ledger:job:overdue')
            with pytest.raises(JobAlreadyRunning):
                reconciliation.run_job('overdue')
            nested.append('refused')
            return {'count': 0}

        with mock.patch.dict(reconciliation.JOBS, {'overdue': slow_job}):
            reconciliation.run_job('overdue')
            assert nested == ['refused']
            assert reconciliation.run_job('overdue') == {'count': 0}

    def test_reminders_job_uses_sms_sender(self, make_contract, now):
        make_contract(months=1, start=now - timedelta(days=3))

        with mock.patch('finance.notify.SmsSender.send', return_value={'success': True, 'provider_id': 'x', 'error': None}) as send:
            result = reconciliation.run_job('reminders')

        assert result['sent'] == 1
        send.assert_called_once()
