"""
Fixtures for authentication tests.
"""

import pytest

from authentication.models import User
from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """A buyer account with a named profile."""
    return UserFactory(first_name="Bea", last_name="Buyer")


@pytest.fixture
def superuser(db):
    return User.objects.create_superuser(
        email="admin@example.com", password="AdminPass123!"
    )
