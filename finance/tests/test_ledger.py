from datetime import timedelta
from unittest import mock

import pytest
from dateutil.relativedelta import relativedelta

from finance import ledger
from finance.exceptions import (
    ConcurrentUpdate,
    ContractHasInstallments,
    InsufficientStock,
    InvalidAmount,
    InvalidInstallment,
    InvalidProduct,
    InvalidStatus,
    NotFound,
)
from finance.models import Contract, ContractItem, Installment, NotificationLog, Payment
from finance.status import ContractStatus, InstallmentStatus


@pytest.mark.django_db
class TestCreateContract:

    def test_schedule_and_stock(self, make_contract, product, now):
        start = now + timedelta(days=1)
        contract = make_contract(months=3, start=start)

        assert contract.total_cents == 100
        assert contract.status == ContractStatus.ACTIVE

        installments = list(contract.installments.order_by('seq'))
        assert [i.amount_cents for i in installments] == [34, 33, 33]
        assert [i.seq for i in installments] == [1, 2, 3]
        assert [i.due_date for i in installments] == [start + relativedelta(months=k) for k in range(3)]
        assert all(i.status == InstallmentStatus.PENDING for i in installments)

        product.refresh_from_db()
        assert product.stock == 9

        item = ContractItem.objects.get(contract=contract)
        assert (item.qty, item.unit_cents) == (1, 100)
        assert NotificationLog.objects.filter(type=NotificationLog.CONTRACT_CREATED).count() == 1

    def test_unit_price_is_snapshotted(self, make_contract, product):
        contract = make_contract(qty=2)
        product.price_cents = 500
        product.save()

        item = contract.items.get()
        assert item.unit_cents == 100
        assert Contract.objects.get(pk=contract.pk).total_cents == 200

    def test_duplicate_lines_are_merged(self, customer, product, now):
        contract = ledger.create_contract(
            customer_id=customer.pk,
            items=[{'product_id': product.pk, 'qty': 1}, {'product_id': product.pk, 'qty': 2}],
            months=1,
            start_date=now + timedelta(days=1),
            now=now,
        )
        assert contract.items.get().qty == 3
        product.refresh_from_db()
        assert product.stock == 7

    def test_backdated_start_is_late_and_defaulted(self, make_contract, now):
        contract = make_contract(months=2, start=now - timedelta(days=5))

        first, second = contract.installments.order_by('seq')
        assert first.status == InstallmentStatus.LATE
        assert second.status == InstallmentStatus.PENDING
        assert Contract.objects.get(pk=contract.pk).status == ContractStatus.DEFAULTED

    def test_free_product_closes_contract(self, make_contract, make_product):
        freebie = make_product(name="Sticker", price_cents=0)
        contract = make_contract(months=2, item=freebie)

        assert set(contract.installments.values_list('status', flat=True)) == {InstallmentStatus.PAID}
        assert contract.status == ContractStatus.CLOSED

    def test_insufficient_stock_rolls_back_everything(self, customer, make_product, now):
        plenty = make_product(name="Charger", stock=10)
        scarce = make_product(name="Tablet", stock=1)

        with pytest.raises(InsufficientStock):
            ledger.create_contract(
                customer_id=customer.pk,
                items=[{'product_id': plenty.pk, 'qty': 3}, {'product_id': scarce.pk, 'qty': 2}],
                months=3,
                start_date=now,
                now=now,
            )

        plenty.refresh_from_db()
        scarce.refresh_from_db()
        assert (plenty.stock, scarce.stock) == (10, 1)
        assert Contract.objects.count() == 0
        assert Installment.objects.count() == 0
        assert ContractItem.objects.count() == 0

    def test_stock_can_reach_zero(self, make_contract, make_product):
        last_one = make_product(name="Last one", stock=1)
        make_contract(item=last_one, qty=1)
        last_one.refresh_from_db()
        assert last_one.stock == 0

    def test_unknown_product(self, customer, now):
        with pytest.raises(InvalidProduct):
            ledger.create_contract(customer.pk, [{'product_id': 9999, 'qty': 1}], 3, now)

    def test_unknown_customer(self, product, now):
        with pytest.raises(NotFound):
            ledger.create_contract(9999, [{'product_id': product.pk, 'qty': 1}], 3, now)

    def test_no_items(self, customer, now):
        with pytest.raises(InvalidProduct):
            ledger.create_contract(customer.pk, [], 3, now)

    def test_zero_months(self, customer, product, now):
        with pytest.raises(InvalidAmount):
            ledger.create_contract(customer.pk, [{'product_id': product.pk, 'qty': 1}], 0, now)

    def test_zero_qty(self, customer, product, now):
        with pytest.raises(InvalidAmount):
            ledger.create_contract(customer.pk, [{'product_id': product.pk, 'qty': 0}], 3, now)


@pytest.mark.django_db
class TestApplyPayment:

    def test_overpayment_is_capped(self, make_contract, make_user):
        contract = make_contract(months=1)
        installment = contract.installments.get()
        cashier = make_user(role='cashier')

        result = ledger.apply_payment(installment.pk, 150, received_by=cashier)

        assert (result.applied_cents, result.leftover_cents) == (100, 50)
        assert result.installment_status == InstallmentStatus.PAID
        assert result.contract_status == ContractStatus.CLOSED
        assert result.payment.amount_cents == 100
        assert result.payment.received_by == cashier

        installment.refresh_from_db()
        assert installment.paid_cents == 100
        assert Payment.objects.filter(installment=installment).count() == 1

    def test_settled_installment_is_a_noop(self, make_contract):
        installment = make_contract(months=1).installments.get()
        ledger.apply_payment(installment.pk, 100)

        result = ledger.apply_payment(installment.pk, 30)

        assert result.already_settled
        assert (result.applied_cents, result.leftover_cents) == (0, 30)
        assert result.payment is None
        assert Payment.objects.filter(installment=installment).count() == 1
        assert NotificationLog.objects.filter(type=NotificationLog.PAYMENT_APPLIED).count() == 1

    def test_paying_first_installment_keeps_contract_active(self, make_contract):
        contract = make_contract(months=3)
        first = contract.installments.get(seq=1)

        result = ledger.apply_payment(first.pk, 34)

        assert result.applied_cents == 34
        assert result.installment_status == InstallmentStatus.PAID
        assert result.contract_status == ContractStatus.ACTIVE

    def test_partial_payment_keeps_pending(self, make_contract):
        contract = make_contract(months=3)
        first = contract.installments.get(seq=1)

        result = ledger.apply_payment(first.pk, 20)

        assert result.installment_status == InstallmentStatus.PENDING
        assert result.contract_status == ContractStatus.ACTIVE
        first.refresh_from_db()
        assert first.paid_cents == 20

    def test_paying_late_installment_clears_default(self, make_contract):
        contract = make_contract(months=2, start=None)
        first = contract.installments.get(seq=1)
        Installment.objects.filter(pk=first.pk).update(due_date=first.due_date - timedelta(days=30))
        ledger.recalculate_contract(contract.pk)
        assert Contract.objects.get(pk=contract.pk).status == ContractStatus.DEFAULTED

        result = ledger.apply_payment(first.pk, first.amount_cents)

        assert result.installment_status == InstallmentStatus.PAID
        assert result.contract_status == ContractStatus.ACTIVE

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, make_contract, amount):
        installment = make_contract().installments.first()
        with pytest.raises(InvalidAmount):
            ledger.apply_payment(installment.pk, amount)

    @pytest.mark.parametrize("amount", [1.9, "10", True, None])
    def test_amount_must_be_whole_cents(self, make_contract, amount):
        installment = make_contract().installments.first()
        with pytest.raises(InvalidAmount):
            ledger.apply_payment(installment.pk, amount)
        installment.refresh_from_db()
        assert installment.paid_cents == 0
        assert not Payment.objects.exists()

    def test_unknown_installment(self, db):
        with pytest.raises(InvalidInstallment):
            ledger.apply_payment(9999, 10)

    def test_retries_after_concurrent_update(self, make_contract):
        installment = make_contract(months=1).installments.get()
        real_set_paid = ledger._set_paid_cents
        calls = []

        def flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise ConcurrentUpdate()
            return real_set_paid(*args, **kwargs)

        with mock.patch('finance.ledger._set_paid_cents', side_effect=flaky):
            result = ledger.apply_payment(installment.pk, 60)

        assert len(calls) == 2
        assert result.applied_cents == 60
        assert Payment.objects.filter(installment=installment).count() == 1
        installment.refresh_from_db()
        assert installment.paid_cents == 60

    def test_gives_up_after_repeated_conflicts(self, make_contract):
        installment = make_contract(months=1).installments.get()

        with mock.patch('finance.ledger._set_paid_cents', side_effect=ConcurrentUpdate()):
            with pytest.raises(ConcurrentUpdate):
                ledger.apply_payment(installment.pk, 60)

        assert Payment.objects.count() == 0
        installment.refresh_from_db()
        assert installment.paid_cents == 0


@pytest.mark.django_db
class TestReversePayment:

    def test_reverse_takes_exact_amount_back(self, make_contract):
        installment = make_contract(months=1).installments.get()
        ledger.apply_payment(installment.pk, 60)
        second = ledger.apply_payment(installment.pk, 40)
        assert second.installment_status == InstallmentStatus.PAID

        result = ledger.reverse_payment(second.payment.pk)

        assert result.reversed_cents == 40
        assert result.installment_status == InstallmentStatus.PENDING
        assert result.contract_status == ContractStatus.ACTIVE
        installment.refresh_from_db()
        assert installment.paid_cents == 60
        assert not Payment.objects.filter(pk=second.payment.pk).exists()
        assert NotificationLog.objects.filter(type=NotificationLog.PAYMENT_REVERSED).count() == 1

    def test_reverse_on_past_due_goes_back_to_late(self, make_contract, now):
        contract = make_contract(months=1, start=now - timedelta(days=3))
        installment = contract.installments.get()
        ledger.apply_payment(installment.pk, 60)
        last = ledger.apply_payment(installment.pk, 40)
        assert last.contract_status == ContractStatus.CLOSED

        result = ledger.reverse_payment(last.payment.pk)

        assert result.installment_status == InstallmentStatus.LATE
        assert result.contract_status == ContractStatus.DEFAULTED

    def test_paid_cents_tracks_payments(self, make_contract):
        installment = make_contract(months=1).installments.get()
        kept = []
        for amount in (10, 25, 30):
            kept.append(ledger.apply_payment(installment.pk, amount).payment)
        ledger.reverse_payment(kept.pop(1).pk)
        ledger.apply_payment(installment.pk, 80)

        installment.refresh_from_db()
        payments = Payment.objects.filter(installment=installment)
        assert installment.paid_cents == sum(p.amount_cents for p in payments) == 100
        assert installment.status == InstallmentStatus.PAID

    def test_unknown_payment(self, db):
        with pytest.raises(NotFound):
            ledger.reverse_payment(9999)


@pytest.mark.django_db
class TestRecalculate:

    def test_recalculate_fixes_drift(self, make_contract, now):
        contract = make_contract(months=3)
        Installment.objects.filter(contract=contract, seq=2).update(paid_cents=33)

        later = now + timedelta(days=3)
        ledger.recalculate_contract(contract.pk, now=later)

        statuses = dict(contract.installments.values_list('seq', 'status'))
        assert statuses == {1: InstallmentStatus.LATE, 2: InstallmentStatus.PAID, 3: InstallmentStatus.PENDING}
        assert Contract.objects.get(pk=contract.pk).status == ContractStatus.DEFAULTED

    def test_recalculate_is_idempotent(self, make_contract):
        contract = make_contract()
        before = list(contract.installments.values_list('status', flat=True))

        ledger.recalculate_contract(contract.pk)
        ledger.recalculate_contract(contract.pk)

        assert list(contract.installments.values_list('status', flat=True)) == before

    def test_recalculate_unknown(self, db):
        with pytest.raises(NotFound):
            ledger.recalculate_contract(9999)

    def test_refresh_missing_contract_returns_none(self, db):
        assert ledger.refresh_contract_status(9999) is None


@pytest.mark.django_db
class TestAdministrativeEdits:

    def test_amount_cannot_drop_below_paid(self, make_contract):
        installment = make_contract(months=1).installments.get()
        ledger.apply_payment(installment.pk, 50)

        with pytest.raises(InvalidAmount):
            ledger.update_installment(installment.pk, amount_cents=40)

    def test_lowering_amount_to_paid_settles(self, make_contract):
        installment = make_contract(months=1).installments.get()
        ledger.apply_payment(installment.pk, 50)

        updated = ledger.update_installment(installment.pk, amount_cents=50)

        assert updated.status == InstallmentStatus.PAID
        assert Contract.objects.get(pk=installment.contract_id).status == ContractStatus.CLOSED

    def test_moving_due_date_to_past_makes_late(self, make_contract, now):
        installment = make_contract(months=1).installments.get()

        updated = ledger.update_installment(installment.pk, due_date=now - timedelta(days=2))

        assert updated.status == InstallmentStatus.LATE
        assert Contract.objects.get(pk=installment.contract_id).status == ContractStatus.DEFAULTED
        entry = NotificationLog.objects.get(type=NotificationLog.INSTALLMENT_UPDATED)
        assert entry.payload['installmentId'] == installment.pk

    def test_explicit_status_override(self, make_contract):
        installment = make_contract(months=1).installments.get()
        updated = ledger.update_installment(installment.pk, status=InstallmentStatus.LATE)
        assert updated.status == InstallmentStatus.LATE

    def test_unknown_installment_status(self, make_contract):
        installment = make_contract(months=1).installments.get()
        with pytest.raises(InvalidStatus) as exc:
            ledger.update_installment(installment.pk, status="LOST")
        assert exc.value.kind == "InvalidStatus"

    def test_fractional_amount_edit_refused(self, make_contract):
        installment = make_contract(months=1).installments.get()
        with pytest.raises(InvalidAmount):
            ledger.update_installment(installment.pk, amount_cents=50.5)

    def test_unknown_contract_status(self, make_contract):
        contract = make_contract()
        with pytest.raises(InvalidStatus) as exc:
            ledger.set_contract_status(contract.pk, "FROZEN")
        assert exc.value.kind == "InvalidStatus"
        contract.refresh_from_db()
        assert contract.status == ContractStatus.ACTIVE

    def test_set_contract_status(self, make_contract):
        contract = make_contract()
        updated = ledger.set_contract_status(contract.pk, ContractStatus.DEFAULTED)
        assert updated.status == ContractStatus.DEFAULTED
        assert NotificationLog.objects.filter(type=NotificationLog.CONTRACT_STATUS_OVERRIDDEN).exists()

    def test_delete_contract_with_installments_refused(self, make_contract):
        contract = make_contract()
        with pytest.raises(ContractHasInstallments):
            ledger.delete_contract(contract.pk)
        assert Contract.objects.filter(pk=contract.pk).exists()

    def test_delete_contract_without_installments(self, make_contract):
        contract = make_contract()
        contract.installments.all().delete()

        ledger.delete_contract(contract.pk)

        assert not Contract.objects.filter(pk=contract.pk).exists()
