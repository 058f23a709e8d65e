from types import SimpleNamespace

import pytest

from home.permissions import HasResourcePermission, user_roles
from home.rbac import can

GRANTS = {
    'cashier': ['payment:create', 'payment:read'],
    'auditor': ['*:read'],
    'ops': ['jobs:*'],
}


@pytest.fixture(autouse=True)
def grants(settings):
    settings.RBAC_GRANTS = GRANTS
    settings.RBAC_SUPER_ROLES = ['admin']


class TestCan:

    def test_exact_grant(self):
        assert can(['cashier'], 'payment', 'create')

    def test_missing_grant(self):
        assert not can(['cashier'], 'payment', 'delete')

    def test_wildcard_resource(self):
        assert can(['auditor'], 'contract', 'read')
        assert not can(['auditor'], 'contract', 'create')

    def test_wildcard_action(self):
        assert can(['ops'], 'jobs', 'run')
        assert not can(['ops'], 'reminders', 'send')

    def test_super_role_passes_everything(self):
        assert can(['admin'], 'anything', 'delete')

    def test_any_role_is_enough(self):
        assert can(['unknown', 'cashier'], 'payment', 'read')

    def test_no_roles(self):
        assert not can([], 'payment', 'read')
        assert not can(['unknown'], 'payment', 'read')


class TestHasResourcePermission:

    def request(self, method, user):
        return SimpleNamespace(method=method, user=user)

    def view(self, resource='payment', action=None):
        return SimpleNamespace(rbac_resource=resource, rbac_action=action)

    def user(self, role, authenticated=True, superuser=False):
        user = SimpleNamespace(is_authenticated=authenticated, role=role, is_superuser=superuser)
        user.get_roles = lambda: [role] + (['admin'] if superuser else [])
        return user

    def test_method_maps_to_action(self):
        perm = HasResourcePermission()
        cashier = self.user('cashier')
        assert perm.has_permission(self.request('GET', cashier), self.view())
        assert perm.has_permission(self.request('POST', cashier), self.view())
        assert not perm.has_permission(self.request('DELETE', cashier), self.view())

    def test_pinned_action(self):
        perm = HasResourcePermission()
        assert perm.has_permission(self.request('POST', self.user('ops')), self.view('jobs', 'run'))
        assert not perm.has_permission(self.request('POST', self.user('cashier')), self.view('jobs', 'run'))

    def test_anonymous_denied(self):
        perm = HasResourcePermission()
        anonymous = self.user('admin', authenticated=False)
        assert not perm.has_permission(self.request('GET', anonymous), self.view())

    def test_view_without_resource_denied(self):
        perm = HasResourcePermission()
        assert not perm.has_permission(self.request('GET', self.user('admin')), self.view(resource=None))

    def test_superuser_roles(self):
        assert user_roles(self.user('cashier', superuser=True)) == ['cashier', 'admin']


@pytest.mark.django_db
class TestUserRoles:

    def test_model_roles(self, make_user):
        assert make_user(role='manager').get_roles() == ['manager']

    def test_superuser_gets_admin_role(self, django_user_model):
        user = django_user_model.objects.create_superuser(email="root@tasdeed.test", password="pass12345!")
        assert user.get_roles() == ['admin']
