from rest_framework import serializers
from .models import Product


# ============================================================
# Product Serializer
# ============================================================
class ProductSerializer(serializers.ModelSerializer):
    """
    Serializer for the product catalog.
    Prices are integer cents.
    """
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id',
            'name',
            'price_cents',
            'stock',
            'stock_threshold',
            'is_low_stock',
            'created_at',
            'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        """
        Ensure 'name' is unique during creation and valid during updates.
        """
        instance = getattr(self, 'instance', None)
        queryset = Product.objects.filter(name__iexact=value)
        if instance is not None:
            queryset = queryset.exclude(pk=instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A product with this name already exists.")
        return value
