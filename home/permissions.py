"""
DRF permission classes backed by the RBAC grants in home.rbac.

Views declare the resource they expose:

    class ProductViewSet(viewsets.ModelViewSet):
        permission_classes = [HasResourcePermission]
        rbac_resource = 'product'

and may pin the action with `rbac_action` (e.g. 'pay' for the payment
endpoint). Otherwise the action follows the HTTP method.
"""

from rest_framework import permissions

from .rbac import can

METHOD_ACTIONS = {
    'GET': 'read',
    'HEAD': 'read',
    'OPTIONS': 'read',
    'POST': 'create',
    'PUT': 'update',
    'PATCH': 'update',
    'DELETE': 'delete',
}


def user_roles(user):
    if not user or not user.is_authenticated:
        return []
    get_roles = getattr(user, 'get_roles', None)
    if get_roles is not None:
        return get_roles()
    role = getattr(user, 'role', None)
    return [role] if role else []


class HasResourcePermission(permissions.BasePermission):
    """
    Permission check against the view's `rbac_resource`.
    """
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        resource = getattr(view, 'rbac_resource', None)
        if resource is None:
            return False

        action = getattr(view, 'rbac_action', None) or METHOD_ACTIONS.get(request.method)
        return can(user_roles(user), resource, action)
