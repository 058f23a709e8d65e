# Django imports
from django.db import connection, DatabaseError  # Database health check
from django.utils import timezone

# Third-party imports
from rest_framework import status, viewsets, filters  # DRF status codes, viewsets, filters
from rest_framework.permissions import IsAuthenticated, AllowAny  # DRF permission classes
from rest_framework.response import Response  # DRF response object
from rest_framework.views import APIView  # DRF APIView base class
from rest_framework_simplejwt.views import TokenObtainPairView  # JWT token view

from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from .models import CustomUser as User
from .permissions import HasResourcePermission
from .serializers import (
    RoleTokenObtainPairSerializer,
    UserCreateSerializer,
    UserProfileUpdateSerializer,
    UserSerializer,
)

import logging
logger = logging.getLogger(__name__)


# ==================== AUTHENTICATION ====================
class RoleTokenObtainPairView(TokenObtainPairView):
    """
    Email + password login. The access token carries the user's roles.
    """
    serializer_class = RoleTokenObtainPairSerializer


# ==================== HEALTH CHECK ====================
class StatusView(APIView):
    """
    Liveness/health endpoint. Answers 503 when the database is unreachable.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    @swagger_auto_schema(
        operation_summary="Health Check",
        responses={
            200: openapi.Response(
                description="Service healthy",
                schema=openapi.Schema(
                    type=openapi.TYPE_OBJECT,
                    properties={
                        'status': openapi.Schema(type=openapi.TYPE_STRING),
                        'timestamp': openapi.Schema(type=openapi.TYPE_STRING),
                        'db': openapi.Schema(type=openapi.TYPE_OBJECT),
                    }
                )
            ),
            503: "Database unavailable"
        },
        tags=['Status']
    )
    def get(self, request):
        db_ok = False
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            db_ok = True
        except DatabaseError:
            logger.warning("Database health check failed", exc_info=True)

        payload = {
            "status": "ok" if db_ok else "partial",
            "timestamp": timezone.now().isoformat(),
            "db": {"ok": db_ok},
        }
        return Response(payload, status=status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE)


# ==================== USER PROFILE ====================
class UserProfileView(APIView):
    """
    Get and update user profile.
    """
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Get User Profile",
        operation_description="Retrieves the authenticated user's profile details.",
        responses={
            200: UserSerializer,
            401: "Authentication required"
        },
        tags=['User Profile']
    )
    def get(self, request):
        """Get current user profile"""
        serializer = UserSerializer(request.user)
        return Response(serializer.data)

    @swagger_auto_schema(
        operation_summary="Update User Profile",
        operation_description="Updates the authenticated user's profile. Supports partial updates.",
        request_body=UserProfileUpdateSerializer,
        responses={
            200: UserSerializer,
            400: "Invalid input data"
        },
        tags=['User Profile']
    )
    def patch(self, request):
        """Update user profile"""
        serializer = UserProfileUpdateSerializer(
            request.user,
            data=request.data,
            partial=True
        )
        if serializer.is_valid():
            serializer.save()
            return Response(
                UserSerializer(request.user).data,
                status=status.HTTP_200_OK
            )
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# ==================== USER MANAGEMENT ====================
class UserViewSet(viewsets.ModelViewSet):
    """
    Staff account management, gated by the 'users' RBAC resource.
    """
    queryset = User.objects.all()
    permission_classes = [HasResourcePermission]
    rbac_resource = 'users'
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['email', 'first_name', 'last_name']
    ordering_fields = ['email', 'date_joined']

    def get_serializer_class(self):
        if self.action == 'create':
            return UserCreateSerializer
        return UserSerializer

    def perform_create(self, serializer):
        user = serializer.save()
        logger.info(f"User {user.email} ({user.role}) created by {self.request.user}")

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user.pk == request.user.pk:
            return Response(
                {"status": "error", "message": "You cannot delete your own account."},
                status=status.HTTP_400_BAD_REQUEST
            )
        logger.warning(f"User {user.email} deleted by {request.user}")
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
