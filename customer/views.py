import logging

from django.db.models import Count, Q, ProtectedError
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import filters, status, viewsets
from rest_framework.response import Response

from home.permissions import HasResourcePermission
from .models import Customer
from .serializers import CustomerSerializer

logger = logging.getLogger(__name__)


# ============ CUSTOMER CRUD ============ #


class CustomerViewSet(viewsets.ModelViewSet):
    """
    Create, list, update and delete customers.
    A customer holding contracts cannot be deleted.
    """
    serializer_class = CustomerSerializer
    permission_classes = [HasResourcePermission]
    rbac_resource = 'customer'
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ['name', 'created_at']
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = Customer.objects.annotate(contracts_count=Count('contracts'))
        q = self.request.query_params.get('q')
        if q:
            q = q.strip()
            queryset = queryset.filter(
                Q(name__icontains=q) | Q(phone__icontains=q) | Q(email__icontains=q)
            )
        return queryset

    @swagger_auto_schema(
        operation_summary="List Customers",
        manual_parameters=[
            openapi.Parameter('q', openapi.IN_QUERY, description="Search by name, phone or email", type=openapi.TYPE_STRING),
        ],
        tags=["Customers"]
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    def perform_create(self, serializer):
        customer = serializer.save()
        logger.info(f"Customer {customer.pk} created by {self.request.user}")

    def destroy(self, request, *args, **kwargs):
        customer = self.get_object()
        try:
            customer.delete()
        except ProtectedError:
            return Response(
                {"status": "error", "error": "CustomerHasContracts", "message": "Customer has contracts and cannot be deleted."},
                status=status.HTTP_409_CONFLICT,
            )
        logger.info(f"Customer {kwargs.get('pk')} deleted by {request.user}")
        return Response(status=status.HTTP_204_NO_CONTENT)
