"""
Pytest configuration shared by every Django app's tests.
"""

from django.contrib.auth import get_user_model

import pytest

from apps.web.core.models import Client


@pytest.fixture
def client_tenant() -> Client:
    """The restaurant (tenant) most tests act on behalf of."""
    return Client.objects.create(
        slug="test-client",
        name="Test Kitchen",
        email="kitchen@example.com",
    )


@pytest.fixture
def user(client_tenant: Client):
    """Restaurant staff member who belongs to ``client_tenant``."""
    return get_user_model().objects.create_user(
        username="testuser",
        email="testuser@example.com",
        password="testpass123",
        client=client_tenant,
    )


@pytest.fixture
def staff_user():
    """Platform operator with no tenant of their own."""
    return get_user_model().objects.create_user(
        username="operator",
        email="ops@example.com",
        password="testpass123",
        is_staff=True,
    )
