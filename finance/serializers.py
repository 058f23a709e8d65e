from rest_framework import serializers
from .models import Contract, ContractItem, Installment, Payment, NotificationLog
from .reconciliation import JOBS
from .status import ContractStatus, InstallmentStatus


# ------------------------------
# Contract Item Serializer
# ------------------------------
class ContractItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    line_cents = serializers.IntegerField(read_only=True)

    class Meta:
        model = ContractItem
        fields = ['id', 'product', 'product_name', 'qty', 'unit_cents', 'line_cents']
        read_only_fields = fields


# ------------------------------
# Payment Serializer
# ------------------------------
class PaymentSerializer(serializers.ModelSerializer):
    contract_id = serializers.IntegerField(source='installment.contract_id', read_only=True)
    received_by_email = serializers.EmailField(source='received_by.email', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id',
            'installment',
            'contract_id',
            'amount_cents',
            'paid_at',
            'received_by',
            'received_by_email',
            'created_at',
        ]
        read_only_fields = fields


# ------------------------------
# Installment Serializers
# ------------------------------
class InstallmentSerializer(serializers.ModelSerializer):
    outstanding_cents = serializers.IntegerField(read_only=True)
    customer_id = serializers.IntegerField(source='contract.customer_id', read_only=True)
    customer_name = serializers.CharField(source='contract.customer.name', read_only=True)
    contract_status = serializers.CharField(source='contract.status', read_only=True)

    class Meta:
        model = Installment
        fields = [
            'id',
            'contract',
            'contract_status',
            'customer_id',
            'customer_name',
            'seq',
            'due_date',
            'amount_cents',
            'paid_cents',
            'outstanding_cents',
            'status',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class InstallmentDetailSerializer(InstallmentSerializer):
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta(InstallmentSerializer.Meta):
        fields = InstallmentSerializer.Meta.fields + ['payments']
        read_only_fields = fields


class ContractInstallmentSerializer(serializers.ModelSerializer):
    """Installment row nested inside a contract, with its payments."""
    outstanding_cents = serializers.IntegerField(read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Installment
        fields = ['id', 'seq', 'due_date', 'amount_cents', 'paid_cents', 'outstanding_cents', 'status', 'payments']
        read_only_fields = fields


class InstallmentUpdateSerializer(serializers.Serializer):
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    amount_cents = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    status = serializers.ChoiceField(choices=InstallmentStatus.CHOICES, required=False, allow_null=True)


# ------------------------------
# Contract Serializers
# ------------------------------
class ContractSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    customer_phone = serializers.CharField(source='customer.phone', read_only=True)
    items_count = serializers.IntegerField(read_only=True, required=False)
    installments_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Contract
        fields = [
            'id',
            'customer',
            'customer_name',
            'customer_phone',
            'total_cents',
            'months',
            'start_date',
            'status',
            'items_count',
            'installments_count',
            'created_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ContractDetailSerializer(ContractSerializer):
    items = ContractItemSerializer(many=True, read_only=True)
    installments = ContractInstallmentSerializer(many=True, read_only=True)

    class Meta(ContractSerializer.Meta):
        fields = ContractSerializer.Meta.fields + ['items', 'installments']
        read_only_fields = fields


class ContractItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    qty = serializers.IntegerField(min_value=1)


class ContractCreateSerializer(serializers.Serializer):
    """
    Input for contract creation. Prices come from the catalog, never from
    the request.
    """
    customer_id = serializers.IntegerField()
    months = serializers.IntegerField(min_value=1, max_value=120)
    start_date = serializers.DateTimeField()
    items = ContractItemInputSerializer(many=True, allow_empty=False)


class ContractStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ContractStatus.CHOICES)


# ------------------------------
# Payment input
# ------------------------------
class PaymentCreateSerializer(serializers.Serializer):
    installment_id = serializers.IntegerField()
    amount_cents = serializers.IntegerField()
    paid_at = serializers.DateTimeField(required=False, allow_null=True)


class InstallmentPaySerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField()
    paid_at = serializers.DateTimeField(required=False, allow_null=True)


# ------------------------------
# Administrative jobs
# ------------------------------
class JobRunSerializer(serializers.Serializer):
    job = serializers.ChoiceField(choices=list(JOBS))


class NotificationLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationLog
        fields = ['id', 'type', 'payload', 'created_at']
        read_only_fields = fields
