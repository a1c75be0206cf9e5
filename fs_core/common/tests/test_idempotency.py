# fs_core/common/tests/test_idempotency.py
import pytest
from django.test import override_settings

from fs_core.common import idempotency
from fs_core.common.models import IdempotencyRecord

pytestmark = pytest.mark.django_db


def test_in_memory_store_roundtrip():
    assert idempotency.load_response(1, "post", "/api/v1/payments/", "k1") is None
    idempotency.save_response(1, "post", "/api/v1/payments/", "k1", {"id": "p1"}, 201)

    assert idempotency.load_response(1, "POST", "/api/v1/payments/", "k1") == {"id": "p1"}
    assert idempotency.load_response(2, "POST", "/api/v1/payments/", "k1") is None


def test_missing_key_is_ignored():
    idempotency.save_response(1, "POST", "/p/", None, {"id": "p1"})
    assert idempotency.load_response(1, "POST", "/p/", None) is None


@override_settings(COMMON_IDEMPOTENCY_USE_DB=True)
def test_db_store_keeps_first_response(user):
    idempotency.save_response(user.id, "POST", "/p/", "k1", {"n": 1}, 201)
    idempotency.save_response(user.id, "POST", "/p/", "k1", {"n": 2}, 201)

    assert IdempotencyRecord.objects.count() == 1
    assert idempotency.load_response(user.id, "POST", "/p/", "k1") == {"n": 1}
