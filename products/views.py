from rest_framework import viewsets, filters, status
from rest_framework.response import Response
from django.db.models import F, ProtectedError
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from home.permissions import HasResourcePermission
from .models import Product
from .serializers import ProductSerializer

import logging
logger = logging.getLogger(__name__)


class ProductViewSet(viewsets.ModelViewSet):
    """
    ViewSet for managing the product catalog.

    Stock is decremented by contract creation; editing it here is an
    administrative correction.
    """
    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    permission_classes = [HasResourcePermission]
    rbac_resource = 'product'
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ['name', 'price_cents', 'stock', 'created_at']
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = super().get_queryset()
        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(name__icontains=q.strip())
        if self.request.query_params.get('low_stock', '').lower() in ('1', 'true', 'yes'):
            queryset = queryset.filter(stock__lte=F('stock_threshold'))
        return queryset

    @swagger_auto_schema(
        operation_summary="List Products",
        manual_parameters=[
            openapi.Parameter('q', openapi.IN_QUERY, description="Search by name", type=openapi.TYPE_STRING),
            openapi.Parameter('low_stock', openapi.IN_QUERY, description="Only products at or below their threshold", type=openapi.TYPE_BOOLEAN),
        ],
        tags=["Products"]
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    def perform_create(self, serializer):
        product = serializer.save()
        logger.info(f"[Products] Product {product.pk} created by {self.request.user}")

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        try:
            product.delete()
        except ProtectedError:
            return Response(
                {"status": "error", "error": "ProductInUse", "message": "Product is referenced by contracts."},
                status=status.HTTP_409_CONFLICT,
            )
        logger.info(f"[Products] Product {kwargs.get('pk')} deleted by {request.user}")
        return Response(status=status.HTTP_204_NO_CONTENT)
