# fs_core/billing/tests/conftest.py
from decimal import Decimal

import pytest

from fs_core.billing.services import InvoiceService


@pytest.fixture
def make_invoice(db, customer_id):
    """
    Draft invoice for one 1000.00 panel at 8.25% tax (total 1082.50), or the lines given.
    """

    def _make(line_items=None, send=False, **kw):
        kw.setdefault("customer_id", customer_id)
        kw.setdefault("customer_name", "Riverside Apartments")
        kw.setdefault("tax_rate", Decimal("0.0825"))
        invoice = InvoiceService.create(
            line_items=line_items
            if line_items is not None
            else [{"description": "Fire alarm panel", "quantity": Decimal("1"), "unit_price": Decimal("1000.00")}],
            **kw,
        )
        if send:
            invoice = InvoiceService.send(invoice_id=invoice.id)
        return invoice

    return _make
