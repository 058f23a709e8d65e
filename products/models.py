"""
Django Models for the Product Catalog

Products are sold on installment contracts. The catalog only tracks what the
ledger needs: the current unit price (in cents) and the stock on hand.

Key Features:
- Single retail price per product, stored as integer cents
- Stock is decremented atomically when a contract is created
- Per-product low-stock threshold used by the daily stock scan
"""

from django.db import models
from django.core.validators import MinValueValidator


# ========================================
# PRODUCT MODEL
# ========================================

class Product(models.Model):
    """
    A sellable product.

    Business Rules:
    - price_cents is the unit price snapshotted onto contract items
    - stock never goes below zero (contract creation fails instead)
    - stock <= stock_threshold flags the product as low on stock
    """

    name = models.CharField(
        max_length=200,
        help_text="Product name (e.g., Galaxy A15 128GB)"
    )

    price_cents = models.PositiveIntegerField(
        validators=[MinValueValidator(0)],
        help_text="Unit price in cents"
    )

    stock = models.PositiveIntegerField(
        default=0,
        help_text="Units currently on hand"
    )

    stock_threshold = models.PositiveIntegerField(
        default=5,
        help_text="Low-stock alert threshold"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['name']),
            models.Index(fields=['-created_at']),
        ]
        verbose_name = 'Product'
        verbose_name_plural = 'Products'

    def __str__(self):
        return f"{self.name} ({self.stock} in stock)"

    @property
    def is_low_stock(self):
        return self.stock <= self.stock_threshold
