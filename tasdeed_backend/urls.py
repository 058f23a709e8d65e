from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenRefreshView

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

from home.views import RoleTokenObtainPairView, StatusView


# Swagger Configuration
schema_view = get_schema_view(
    openapi.Info(
        title="Tasdeed Installment Sales API",
        default_version='v1',
        description="""
        # Installment Sales & Ledger API

        Products are sold on installment contracts; payments are applied
        against monthly installments and every installment and contract
        status is derived from the ledger.

        ## Features
        - Contract creation with automatic installment schedule
        - Capped payment application and payment reversal
        - Background reconciliation (overdue / paid sweeps, low stock, reminders)
        - Role-based access control

        ## Authentication
        This API uses JWT (JSON Web Tokens) for authentication.

        ### Login Flow:
        1. Call /api/token/ with email and password
        2. Receive access and refresh tokens
        3. Use access token in Authorization header: Bearer <token>
        4. Refresh with /api/token/refresh/

        ## User Roles
        - *Salesperson*: Customers, contract creation
        - *Cashier*: Take payments
        - *Accountant*: Installments, payments, reminder preview
        - *Manager*: Everything operational, manual job runs
        - *Admin*: Full system access
        """,
        contact=openapi.Contact(email="support@tasdeed.local"),
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Health
    path('status/', StatusView.as_view(), name='status'),

    # API Documentation
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
    path('swagger.json', schema_view.without_ui(cache_timeout=0), name='schema-json'),

    # Authentication
    path('api/token/', RoleTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # API v1
    path('api/v1/users/', include('home.urls')),
    path('api/v1/customers/', include('customer.urls')),
    path('api/v1/products/', include('products.urls')),
    path('api/v1/finance/', include('finance.urls')),
]
