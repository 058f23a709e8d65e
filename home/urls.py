from django.urls import path, include
from .import views
from rest_framework.routers import DefaultRouter

# Create router and register viewsets
router = DefaultRouter()
router.register(r'', views.UserViewSet, basename='user')

urlpatterns = [
    # User Profile
    path('profile/', views.UserProfileView.as_view(), name='profile'),

    # Admin User Management
    path('', include(router.urls)),
]
