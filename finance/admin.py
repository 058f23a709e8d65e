from django.contrib import admin

from .models import Contract, ContractItem, Installment, Payment, NotificationLog


class ContractItemInline(admin.TabularInline):
    model = ContractItem
    extra = 0
    readonly_fields = ['product', 'qty', 'unit_cents']
    can_delete = False


class InstallmentInline(admin.TabularInline):
    model = Installment
    extra = 0
    fields = ['seq', 'due_date', 'amount_cents', 'paid_cents', 'status']
    readonly_fields = ['seq', 'due_date', 'amount_cents', 'paid_cents', 'status']
    can_delete = False
    show_change_link = True


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    """
    Read-mostly view of contracts. Amounts and statuses are owned by the
    ledger, so they are not editable here.
    """
    list_display = ['id', 'customer', 'total_cents', 'months', 'start_date', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['customer__name', 'customer__phone']
    readonly_fields = ['total_cents', 'status', 'created_by', 'created_at', 'updated_at']
    inlines = [ContractItemInline, InstallmentInline]


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['amount_cents', 'paid_at', 'received_by']
    can_delete = False


@admin.register(Installment)
class InstallmentAdmin(admin.ModelAdmin):
    list_display = ['id', 'contract', 'seq', 'due_date', 'amount_cents', 'paid_cents', 'status']
    list_filter = ['status', 'due_date']
    search_fields = ['contract__customer__name', 'contract__customer__phone']
    readonly_fields = ['contract', 'seq', 'amount_cents', 'paid_cents', 'status', 'created_at', 'updated_at']
    inlines = [PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'installment', 'amount_cents', 'paid_at', 'received_by']
    list_filter = ['paid_at']
    readonly_fields = ['installment', 'amount_cents', 'paid_at', 'received_by', 'created_at']


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ['id', 'type', 'created_at']
    list_filter = ['type']
    readonly_fields = ['type', 'payload', 'created_at']
