from django.db import models
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.contrib.auth import get_user_model
from django.utils import timezone

from customer.models import Customer
from products.models import Product
from .status import InstallmentStatus, ContractStatus, installment_status

User = get_user_model()


# ========================================
# CONTRACT MODEL
# ========================================

class Contract(models.Model):
    """
    An installment sale: a customer buys one or more products and pays the
    total over `months` monthly installments.

    Business Rules:
    - total_cents is the sum of item unit price x qty at creation, never edited
    - The contract and its full installment schedule are created together
    - status is derived from the installments (see finance.status)
    """

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name='contracts'
    )
    total_cents = models.PositiveBigIntegerField(help_text="Contract total in cents")
    months = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Number of monthly installments"
    )
    start_date = models.DateTimeField(help_text="Due date of the first installment")
    status = models.CharField(
        max_length=20,
        choices=ContractStatus.CHOICES,
        default=ContractStatus.ACTIVE
    )

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='contracts_created'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'contracts'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', '-created_at']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"Contract {self.id} - {self.customer_id} ({self.status})"


class ContractItem(models.Model):
    """Product line of a contract with the unit price captured at sale time."""

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name='items'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='contract_items'
    )
    qty = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_cents = models.PositiveIntegerField(help_text="Unit price snapshot in cents")

    class Meta:
        db_table = 'contract_items'
        ordering = ['contract', 'id']

    def __str__(self):
        return f"{self.qty} x {self.product_id} @ {self.unit_cents}"

    @property
    def line_cents(self):
        return self.qty * self.unit_cents


# ========================================
# INSTALLMENT MODEL
# ========================================

class Installment(models.Model):
    """
    One scheduled sub-payment of a contract.

    Business Rules:
    - seq runs 1..months and is unique per contract
    - paid_cents always equals the sum of the installment's payments
    - amount_cents may be edited administratively, never below paid_cents
    """

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name='installments'
    )
    seq = models.PositiveIntegerField(help_text="Installment sequence number (1, 2, 3...)")
    due_date = models.DateTimeField(help_text="Payment due date")
    amount_cents = models.PositiveBigIntegerField(help_text="Amount owed in cents")
    paid_cents = models.PositiveBigIntegerField(default=0, help_text="Amount paid in cents")
    status = models.CharField(
        max_length=20,
        choices=InstallmentStatus.CHOICES,
        default=InstallmentStatus.PENDING
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'installments'
        ordering = ['contract', 'seq']
        unique_together = ['contract', 'seq']
        indexes = [
            models.Index(fields=['contract', 'seq']),
            models.Index(fields=['due_date']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"Installment {self.seq} for Contract {self.contract_id}"

    @property
    def outstanding_cents(self):
        return max(self.amount_cents - self.paid_cents, 0)

    def derive_status(self, now=None):
        """Status these amounts and dates call for; does not save."""
        return installment_status(
            self.amount_cents,
            self.paid_cents,
            self.due_date,
            now or timezone.now(),
        )


# ========================================
# PAYMENT MODEL
# ========================================

class Payment(models.Model):
    """
    Money applied to one installment.

    Only the applied amount is stored; any leftover of the request is
    returned to the caller. Payments are never edited, only deleted
    (reversed).
    """

    installment = models.ForeignKey(
        Installment,
        on_delete=models.CASCADE,
        related_name='payments'
    )
    amount_cents = models.PositiveBigIntegerField(validators=[MinValueValidator(1)])
    paid_at = models.DateTimeField(default=timezone.now)

    received_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments_received'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-paid_at']
        indexes = [
            models.Index(fields=['installment', '-paid_at']),
            models.Index(fields=['paid_at']),
        ]

    def __str__(self):
        return f"Payment {self.amount_cents} for Installment {self.installment_id}"


# ========================================
# NOTIFICATION / AUDIT LOG MODEL
# ========================================

class NotificationLog(models.Model):
    """
    Append-only audit trail of ledger events, scheduler summaries and
    outbound notifications.

    Reminder entries carry `installmentId` in their payload; the reminder
    deduplicator looks those up to avoid re-notifying inside the cooldown.
    """

    # Ledger audit
    CONTRACT_CREATED = 'CONTRACT_CREATED'
    CONTRACT_STATUS_OVERRIDDEN = 'CONTRACT_STATUS_OVERRIDDEN'
    CONTRACT_DELETED = 'CONTRACT_DELETED'
    PAYMENT_APPLIED = 'PAYMENT_APPLIED'
    PAYMENT_REVERSED = 'PAYMENT_REVERSED'
    INSTALLMENT_UPDATED = 'INSTALLMENT_UPDATED'

    # Scheduler summaries
    SCHEDULER_OVERDUE = 'SCHEDULER_OVERDUE'
    SCHEDULER_MARK_PAID = 'SCHEDULER_MARK_PAID'
    LOW_STOCK = 'LOW_STOCK'

    # Outbound notifications
    REMINDER_OVERDUE = 'REMINDER_OVERDUE'
    REMINDER_UPCOMING = 'REMINDER_UPCOMING'
    DUE_SOON = 'due_soon'
    LOW_STOCK_EVENT = 'low_stock'

    type = models.CharField(max_length=50, db_index=True)
    payload = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'notification_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['type', '-created_at']),
        ]

    def __str__(self):
        return f"{self.type} at {self.created_at}"
