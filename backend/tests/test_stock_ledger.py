"""Tests for the stock ledger: adjustments, transfers, counts, import/export and the movement log."""

import pytest
from decimal import Decimal

from pos_inventory.core.exceptions import InsufficientStockError, ValidationError
from pos_inventory.models.inventory import InventoryItem
from pos_inventory.models.operations import AuditLogEntry
from pos_inventory.models.stock import InventoryMovement, InventoryStock
from pos_inventory.services.stock_ledger_service import MovementFilter, StockLedgerService


def _stock(db_session, item_id, warehouse_id) -> Decimal:
    row = (
        db_session.query(InventoryStock)
        .filter(InventoryStock.item_id == item_id, InventoryStock.warehouse_id == warehouse_id)
        .populate_existing()
        .one()
    )
    return row.quantity


def _assert_total_matches_rows(db_session, item_id):
    item = db_session.query(InventoryItem).filter(InventoryItem.id == item_id).populate_existing().one()
    rows = db_session.query(InventoryStock).filter(InventoryStock.item_id == item_id).all()
    assert item.current_stock == sum((r.quantity for r in rows), Decimal("0"))


class TestAdjustStock:

    def test_usage_beyond_balance_is_rejected(self, db_session, main_warehouse, make_item):
        item = make_item("Tomatoes", stock="10")
        ledger = StockLedgerService(db_session)

        with pytest.raises(InsufficientStockError) as exc:
            ledger.adjust_stock(item.id, "15", movement_type="usage")

        assert exc.value.status_code == 400
        assert _stock(db_session, item.id, main_warehouse.id) == Decimal("10")
        # Only the opening balance movement exists
        assert db_session.query(InventoryMovement).filter(InventoryMovement.item_id == item.id).count() == 1

    def test_usage_within_balance(self, db_session, main_warehouse, make_item, test_user):
        item = make_item("Tomatoes", stock="10")
        result = StockLedgerService(db_session).adjust_stock(
            item.id, "8", movement_type="usage", reason="Prep", user_id=test_user.id
        )

        movement = result["movement"]
        assert movement.type == "usage"
        assert movement.delta == Decimal("-8")
        assert movement.quantity == Decimal("8")
        assert movement.balance_after == Decimal("2")
        assert movement.created_by == test_user.id
        assert _stock(db_session, item.id, main_warehouse.id) == Decimal("2")
        _assert_total_matches_rows(db_session, item.id)

    def test_incoming_is_always_positive(self, db_session, make_item):
        item = make_item("Rice", stock="1")
        result = StockLedgerService(db_session).adjust_stock(item.id, "-4", movement_type="incoming")
        assert result["movement"].delta == Decimal("4")
        assert result["item"].current_stock == Decimal("5")
        assert result["item"].last_restock_date is not None

    def test_plain_adjustment_keeps_sign(self, db_session, make_item):
        item = make_item("Rice", stock="5")
        result = StockLedgerService(db_session).adjust_stock(item.id, "-2")
        assert result["movement"].type == "adjustment"
        assert result["movement"].delta == Decimal("-2")

    def test_unknown_type_becomes_adjustment(self, db_session, make_item):
        item = make_item("Rice", stock="5")
        result = StockLedgerService(db_session).adjust_stock(item.id, "1", movement_type="magic")
        assert result["movement"].type == "adjustment"

    def test_zero_quantity_rejected(self, db_session, make_item):
        item = make_item("Rice", stock="5")
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).adjust_stock(item.id, "0")

    def test_adjustment_is_audited(self, db_session, make_item):
        item = make_item("Rice", stock="5")
        StockLedgerService(db_session).adjust_stock(item.id, "1", movement_type="waste")
        entry = (
            db_session.query(AuditLogEntry)
            .filter(AuditLogEntry.action == "inventory_adjust")
            .one()
        )
        assert entry.entity_id == str(item.id)
        assert entry.details["type"] == "waste"


class TestTransferStock:

    def test_transfer_moves_quantity(self, db_session, main_warehouse, bar_warehouse, make_item):
        item = make_item("Limes", stock="10")
        result = StockLedgerService(db_session).transfer_stock(item.id, "4", target_warehouse_id=bar_warehouse.id)

        out_movement, in_movement = result["movements"]
        assert out_movement.type == "transfer_out"
        assert out_movement.delta == Decimal("-4")
        assert out_movement.warehouse_id == main_warehouse.id
        assert in_movement.type == "transfer_in"
        assert in_movement.delta == Decimal("4")
        assert in_movement.warehouse_id == bar_warehouse.id
        for movement in (out_movement, in_movement):
            assert movement.source_warehouse_id == main_warehouse.id
            assert movement.target_warehouse_id == bar_warehouse.id

        assert _stock(db_session, item.id, main_warehouse.id) == Decimal("6")
        assert _stock(db_session, item.id, bar_warehouse.id) == Decimal("4")
        assert result["item"].current_stock == Decimal("10")
        _assert_total_matches_rows(db_session, item.id)

    def test_transfer_more_than_available_rolls_back(self, db_session, main_warehouse, bar_warehouse, make_item):
        item = make_item("Limes", stock="3")
        with pytest.raises(InsufficientStockError):
            StockLedgerService(db_session).transfer_stock(item.id, "5", target_warehouse_id=bar_warehouse.id)
        assert _stock(db_session, item.id, main_warehouse.id) == Decimal("3")

    def test_same_warehouse_rejected(self, db_session, main_warehouse, make_item):
        item = make_item("Limes", stock="3")
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).transfer_stock(
                item.id, "1", target_warehouse_id=main_warehouse.id
            )

    def test_target_required(self, db_session, make_item):
        item = make_item("Limes", stock="3")
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).transfer_stock(item.id, "1")


class TestCycleCount:

    def test_count_records_difference(self, db_session, main_warehouse, make_item):
        item = make_item("Cheese", stock="12")
        result = StockLedgerService(db_session).cycle_count(item.id, main_warehouse.id, "7")

        assert result["delta"] == Decimal("-5")
        assert result["movement"].type == "count_adjustment"
        assert result["movement"].balance_after == Decimal("7")
        assert result["stock"].last_count_date is not None
        assert result["item"].current_stock == Decimal("7")

    def test_matching_count_writes_no_movement(self, db_session, main_warehouse, make_item):
        item = make_item("Cheese", stock="12")
        result = StockLedgerService(db_session).cycle_count(item.id, main_warehouse.id, "12")

        assert result["delta"] == Decimal("0")
        assert result["movement"] is None
        assert db_session.query(InventoryMovement).filter(
            InventoryMovement.type == "count_adjustment"
        ).count() == 0

    def test_negative_count_rejected(self, db_session, main_warehouse, make_item):
        item = make_item("Cheese", stock="12")
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).cycle_count(item.id, main_warehouse.id, "-1")

    def test_warehouse_required(self, db_session, make_item):
        item = make_item("Cheese", stock="12")
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).cycle_count(item.id, None, "3")


class TestImportExport:

    def test_export_then_import_restores_counts(self, db_session, main_warehouse, make_item):
        flour = make_item("Flour", stock="10", sku="fl-1", par="4")
        sugar = make_item("Sugar", stock="6")
        ledger = StockLedgerService(db_session)

        exported = ledger.export_stock_csv(main_warehouse.id)
        lines = exported["csv"].strip().split("\n")
        assert lines[0] == "name,sku,quantity,unit,parLevel"
        assert lines[1] == "Flour,FL-1,10.000,kg,4.000"
        assert exported["filename"].startswith("MAIN-stock-")

        ledger.adjust_stock(flour.id, "3", movement_type="usage")
        ledger.adjust_stock(sugar.id, "2", movement_type="incoming")

        result = ledger.import_stock(main_warehouse.id, csv_text=exported["csv"])
        assert result["updated"] == 2
        assert result["skipped"] == 0
        assert _stock(db_session, flour.id, main_warehouse.id) == Decimal("10")
        assert _stock(db_session, sugar.id, main_warehouse.id) == Decimal("6")

        deltas = {row["name"]: row["delta"] for row in result["results"]}
        assert deltas == {"Flour": Decimal("3"), "Sugar": Decimal("-2")}
        imported = db_session.query(InventoryMovement).filter(
            InventoryMovement.type == "count_adjustment"
        ).all()
        assert all(m.meta["import"] is True for m in imported)

    def test_import_rows_skips_unknown_and_clamps(self, db_session, main_warehouse, make_item):
        item = make_item("Butter", stock="2")
        result = StockLedgerService(db_session).import_stock(
            main_warehouse.id,
            rows=[
                {"itemId": item.id, "quantity": "-3"},
                {"name": "Nothing like this", "quantity": "1"},
                {"name": "Butter", "quantity": "not a number"},
            ],
        )
        assert result["updated"] == 1
        assert result["skipped"] == 2
        assert _stock(db_session, item.id, main_warehouse.id) == Decimal("0")

    def test_import_without_matches_fails(self, db_session, main_warehouse):
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).import_stock(
                main_warehouse.id, rows=[{"name": "Ghost", "quantity": "1"}]
            )

    def test_import_without_rows_fails(self, db_session, main_warehouse):
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).import_stock(main_warehouse.id)


class TestMovementLog:

    def test_newest_first_with_filters(self, db_session, main_warehouse, make_item):
        item = make_item("Eggs", stock="30", unit="pcs")
        other = make_item("Milk", stock="5", unit="l")
        ledger = StockLedgerService(db_session)
        ledger.adjust_stock(item.id, "6", movement_type="usage")
        ledger.adjust_stock(item.id, "2", movement_type="waste")

        movements, total, page, limit = ledger.list_movements(MovementFilter(item_id=item.id))
        assert total == 3
        assert [m.type for m in movements] == ["waste", "usage", "incoming"]

        waste, total, _, _ = ledger.list_movements(MovementFilter(type="waste"))
        assert total == 1
        assert waste[0].item_id == item.id

        _, total, _, _ = ledger.list_item_movements(other.id)
        assert total == 1

    def test_pagination_is_capped(self, db_session, make_item):
        item = make_item("Eggs", stock="30", unit="pcs")
        ledger = StockLedgerService(db_session)
        for _ in range(3):
            ledger.adjust_stock(item.id, "1", movement_type="usage")

        movements, total, page, limit = ledger.list_movements(page=2, limit=2)
        assert total == 4
        assert page == 2
        assert len(movements) == 2

        _, _, _, limit = ledger.list_movements(limit=10_000)
        assert limit == 200
