# fs_core/common/tests/test_concurrency.py
import pytest

from fs_core.common.concurrency import check_version, save_versioned
from fs_core.common.exceptions import ConcurrentModification
from fs_core.quotes.models import Quote
from fs_core.quotes.services import QuoteService

pytestmark = pytest.mark.django_db


def test_save_versioned_bumps_version():
    quote = QuoteService.create(customer_name="Acme")
    start = quote.version

    quote.notes = "walkthrough done"
    save_versioned(quote, ["notes"])

    assert quote.version == start + 1
    fresh = Quote.objects.get(id=quote.id)
    assert fresh.version == start + 1
    assert fresh.notes == "walkthrough done"


def test_stale_instance_is_rejected():
    quote = QuoteService.create(customer_name="Acme")
    stale = Quote.objects.get(id=quote.id)

    quote.notes = "first writer"
    save_versioned(quote, ["notes"])

    stale.notes = "second writer"
    with pytest.raises(ConcurrentModification):
        save_versioned(stale, ["notes"])

    assert Quote.objects.get(id=quote.id).notes == "first writer"


def test_check_version_mismatch():
    quote = QuoteService.create(customer_name="Acme")
    check_version(quote, None)
    check_version(quote, quote.version)
    with pytest.raises(ConcurrentModification):
        check_version(quote, quote.version + 1)


def test_service_honours_expected_version():
    quote = QuoteService.create(customer_name="Acme")
    with pytest.raises(ConcurrentModification):
        QuoteService.update_terms(quote_id=quote.id, expected_version=quote.version + 5, notes="x")
