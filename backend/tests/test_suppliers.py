"""Tests for the supplier ledger: purchases, returns, payments, invoices and history retention."""

import pytest
from decimal import Decimal

from pos_inventory.core.config import settings
from pos_inventory.core.exceptions import ConflictError, ValidationError
from pos_inventory.models.supplier import SupplierPayment, SupplierPriceHistory
from pos_inventory.services.supplier_ledger_service import SupplierLedgerService


@pytest.fixture
def supplier_setup(db_session, main_warehouse, make_item):
    service = SupplierLedgerService(db_session)
    supplier = service.create_supplier({
        "name": "Green Valley Farm",
        "code": "gvf",
        "contact": {"person": "Dilshod", "phone": "+998 90 000 00 00"},
        "categories": ["Vegetables", " "],
    })
    potatoes = make_item("Potatoes", stock="0", cost="0")
    return {"db": db_session, "service": service, "supplier": supplier, "potatoes": potatoes}


class TestSupplierCrud:

    def test_create_normalizes_payload(self, supplier_setup):
        supplier = supplier_setup["supplier"]
        assert supplier.code == "GVF"
        assert supplier.contact_person == "Dilshod"
        assert supplier.categories == ["Vegetables"]
        assert supplier.currency == settings.default_currency
        assert supplier.balance == Decimal("0")

    def test_duplicate_name_conflicts(self, supplier_setup):
        with pytest.raises(ConflictError):
            supplier_setup["service"].create_supplier({"name": "Green Valley Farm"})

    def test_archive_hides_supplier(self, supplier_setup):
        service = supplier_setup["service"]
        service.archive_supplier(supplier_setup["supplier"].id)

        assert service.list_suppliers()["suppliers"] == []
        assert service.list_suppliers(status="inactive")["totals"]["count"] == 1

    def test_archived_supplier_cannot_deliver(self, supplier_setup):
        service = supplier_setup["service"]
        service.archive_supplier(supplier_setup["supplier"].id)
        with pytest.raises(ValidationError):
            service.record_purchase(supplier_setup["supplier"].id, supplier_setup["potatoes"].id, "1", "5")


class TestPurchases:

    def test_first_purchase_sets_cost(self, supplier_setup):
        service = supplier_setup["service"]
        result = service.record_purchase(
            supplier_setup["supplier"].id, supplier_setup["potatoes"].id, "10", "100", reference="INV-1"
        )

        item = result["item"]
        supplier = result["supplier"]
        movement = result["movement"]
        assert item.cost == Decimal("100")
        assert item.current_stock == Decimal("10")
        assert supplier.balance == Decimal("1000")
        assert supplier.total_purchases == Decimal("1000")
        assert supplier.last_purchase_date is not None
        assert movement.type == "incoming"
        assert movement.supplier_id == supplier.id
        assert movement.total_cost == Decimal("1000")

        history = supplier_setup["db"].query(SupplierPriceHistory).one()
        assert history.unit_cost == Decimal("100")
        assert history.quantity == Decimal("10")

    def test_second_purchase_averages_cost(self, supplier_setup):
        service = supplier_setup["service"]
        supplier_id = supplier_setup["supplier"].id
        item_id = supplier_setup["potatoes"].id

        service.record_purchase(supplier_id, item_id, "10", "100")
        result = service.record_purchase(supplier_id, item_id, "30", "60")

        # (10 * 100 + 30 * 60) / 40
        assert result["item"].cost == Decimal("70")
        assert result["item"].current_stock == Decimal("40")
        assert result["supplier"].balance == Decimal("2800")

    def test_zero_cost_stock_is_averaged_in(self, supplier_setup, make_item):
        service = supplier_setup["service"]
        salt = make_item("Salt", stock="10", cost="0")

        result = service.record_purchase(supplier_setup["supplier"].id, salt.id, "10", "100")

        # (10 * 0 + 10 * 100) / 20
        assert result["item"].cost == Decimal("50")

    @pytest.mark.parametrize("quantity,unit_cost", [("0", "10"), ("5", "0"), ("abc", "10")])
    def test_invalid_purchase(self, supplier_setup, quantity, unit_cost):
        with pytest.raises(ValidationError):
            supplier_setup["service"].record_purchase(
                supplier_setup["supplier"].id, supplier_setup["potatoes"].id, quantity, unit_cost
            )


class TestReturns:

    def test_return_is_clamped_to_stock(self, supplier_setup):
        service = supplier_setup["service"]
        supplier_id = supplier_setup["supplier"].id
        item_id = supplier_setup["potatoes"].id
        service.record_purchase(supplier_id, item_id, "4", "50")

        result = service.record_return(supplier_id, item_id, "10")

        movement = result["movement"]
        assert movement.type == "return"
        assert movement.delta == Decimal("-4")
        assert movement.meta["requested_quantity"] == 10.0
        assert movement.meta["deducted_quantity"] == 4.0
        assert result["item"].current_stock == Decimal("0")
        # Cost defaults to the last purchase price: 200 - 4 * 50
        assert result["supplier"].balance == Decimal("0")
        assert result["supplier"].total_purchases == Decimal("0")

        history = (
            supplier_setup["db"].query(SupplierPriceHistory)
            .order_by(SupplierPriceHistory.id.desc())
            .first()
        )
        assert history.unit_cost == Decimal("-50")

    def test_return_without_stock_records_nothing_taken(self, supplier_setup):
        service = supplier_setup["service"]
        supplier_id = supplier_setup["supplier"].id

        result = service.record_return(supplier_id, supplier_setup["potatoes"].id, "3", unit_cost="20")

        movement = result["movement"]
        assert movement.type == "return"
        assert movement.quantity == Decimal("0")
        assert movement.delta == Decimal("0")
        assert movement.meta["requested_quantity"] == 3.0
        assert movement.meta["deducted_quantity"] == 0.0
        assert result["item"].current_stock == Decimal("0")
        assert result["supplier"].balance == Decimal("0")
        history = supplier_setup["db"].query(SupplierPriceHistory).one()
        assert history.quantity == Decimal("0")


class TestPayments:

    def test_payment_floors_balance(self, supplier_setup):
        service = supplier_setup["service"]
        supplier_id = supplier_setup["supplier"].id
        service.record_purchase(supplier_id, supplier_setup["potatoes"].id, "2", "100")

        result = service.record_payment(supplier_id, "500", method="transfer")

        assert result["supplier"].balance == Decimal("0")
        assert result["supplier"].total_payments == Decimal("500")
        assert result["payment"].method == "transfer"

    def test_payment_must_be_positive(self, supplier_setup):
        with pytest.raises(ValidationError):
            supplier_setup["service"].record_payment(supplier_setup["supplier"].id, "-1")


class TestLedgerHistory:

    def test_history_is_trimmed(self, supplier_setup, monkeypatch):
        monkeypatch.setattr(settings, "history_retention_limit", 3)
        service = supplier_setup["service"]
        supplier_id = supplier_setup["supplier"].id

        for amount in range(1, 6):
            service.record_payment(supplier_id, str(amount))

        payments = supplier_setup["db"].query(SupplierPayment).order_by(SupplierPayment.id).all()
        assert [p.amount for p in payments] == [Decimal("3"), Decimal("4"), Decimal("5")]

    def test_ledger_pages(self, supplier_setup):
        service = supplier_setup["service"]
        supplier_id = supplier_setup["supplier"].id
        for amount in range(1, 4):
            service.record_payment(supplier_id, str(amount))
        service.attach_invoice(supplier_id, {"number": "A-17", "amount": "99.5"})

        ledger = service.get_ledger(supplier_id, page=2, limit=2)

        assert ledger["totals"] == {"price_history": 0, "payments": 3, "invoices": 1}
        assert len(ledger["payments"]) == 1
        assert ledger["invoices"] == []
        first_page = service.get_ledger(supplier_id, page=1, limit=2)
        assert first_page["invoices"][0].number == "A-17"
        assert first_page["invoices"][0].status == "pending"
