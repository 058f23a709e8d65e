"""
Role based access checks.

Grants are "resource:action" strings per role, read from settings.RBAC_GRANTS.
Either side may be "*". Roles in settings.RBAC_SUPER_ROLES pass every check.
"""

from django.conf import settings


def _key(resource, action):
    return f"{resource}:{action}"


def get_grants():
    grants = getattr(settings, 'RBAC_GRANTS', {}) or {}
    return {role: set(perms) for role, perms in grants.items()}


def get_super_roles():
    return list(getattr(settings, 'RBAC_SUPER_ROLES', ['admin']))


def can(roles, resource, action):
    """
    Check whether any of `roles` may perform `action` on `resource`.
    """
    if not roles:
        return False

    if any(role in get_super_roles() for role in roles):
        return True

    wanted = {
        _key(resource, action),
        _key(resource, '*'),
        _key('*', action),
        _key('*', '*'),
    }
    grants = get_grants()
    for role in roles:
        if wanted & grants.get(role, set()):
            return True
    return False
