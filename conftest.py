from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from customer.models import Customer
from products.models import Product

User = get_user_model()


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def now():
    return timezone.now().replace(microsecond=0)


@pytest.fixture
def make_user(db):
    def _make_user(role=User.SALESPERSON, email=None, **extra):
        email = email or f"{role}@tasdeed.test"
        return User.objects.create_user(email=email, password="pass12345!", role=role, **extra)
    return _make_user


@pytest.fixture
def api_client_for(make_user):
    """APIClient authenticated as a fresh user with the given role."""
    def _client(role):
        client = APIClient()
        client.force_authenticate(user=make_user(role=role))
        return client
    return _client


@pytest.fixture
def customer(db):
    return Customer.objects.create(name="Ali Hassan", phone="+9647701234567")


@pytest.fixture
def make_product(db):
    def _make_product(name="Galaxy A15", price_cents=100, stock=10, stock_threshold=2):
        return Product.objects.create(
            name=name,
            price_cents=price_cents,
            stock=stock,
            stock_threshold=stock_threshold,
        )
    return _make_product


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def make_contract(customer, product, now):
    """Contract through the ledger so the schedule and statuses are real."""
    from finance import ledger

    def _make_contract(months=3, qty=1, start=None, buyer=None, item=None, created_at=None):
        return ledger.create_contract(
            customer_id=(buyer or customer).pk,
            items=[{'product_id': (item or product).pk, 'qty': qty}],
            months=months,
            start_date=start or now + timedelta(days=1),
            now=created_at or now,
        )
    return _make_contract
