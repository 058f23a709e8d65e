"""
Django Models for Tasdeed - Customers

Customers buy products on installment contracts. Reminder SMS messages are
sent to `phone`, so a customer without a phone number never receives one.
"""

from django.db import models
from django.core.validators import RegexValidator
from django.contrib.auth import get_user_model

User = get_user_model()


# ========================================
# CUSTOMER MODEL
# ========================================

class Customer(models.Model):
    """
    Core customer model storing basic contact information.

    Business Rules:
    - A customer can hold several contracts
    - Phone is optional but required for SMS reminders
    """

    phone_regex = RegexValidator(
        regex=r'^\+?\d{7,15}$',
        message="Phone number must be entered in the format: '+9647701234567'. Up to 15 digits allowed."
    )

    name = models.CharField(max_length=200)
    phone = models.CharField(
        validators=[phone_regex],
        max_length=17,
        null=True,
        blank=True,
        help_text="Mobile number used for payment reminders"
    )
    email = models.EmailField(null=True, blank=True)
    address = models.TextField(null=True, blank=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='customers_created'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'customers'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['name']),
            models.Index(fields=['phone']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"{self.name} ({self.phone or 'no phone'})"
