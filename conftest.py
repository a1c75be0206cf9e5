# conftest.py
import uuid
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from fs_core.common import idempotency


@pytest.fixture(autouse=True)
def _clear_idempotency_store():
    idempotency.clear()
    yield
    idempotency.clear()


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(
        username="dispatcher",
        password="testpass",
        email="dispatcher@example.com",
        is_active=True,
    )


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def customer_id():
    return uuid.UUID("00000000-0000-0000-0000-0000000000c1")


@pytest.fixture
def inspection(db, customer_id):
    from fs_core.inspections.services import InspectionService

    return InspectionService.create(
        customer_id=customer_id,
        customer_name="Lone Star Office Park",
        site_address="100 Main St, Austin TX",
    )


@pytest.fixture
def make_deficiency(inspection):
    """
    Factory: make_deficiency(low="100.00", high="200.00", category="smoke_detector")
    """
    from fs_core.inspections.ledger import DeficiencyLedger

    def _make(low=None, high=None, category="smoke_detector", description="Detector failed sensitivity test", **kw):
        return DeficiencyLedger.record(
            inspection_id=inspection.id,
            category=category,
            description=description,
            estimated_cost_low=None if low is None else Decimal(str(low)),
            estimated_cost_high=None if high is None else Decimal(str(high)),
            **kw,
        )

    return _make
