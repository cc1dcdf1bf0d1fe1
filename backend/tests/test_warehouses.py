"""Tests for the warehouse registry and default warehouse resolution."""

import pytest
from decimal import Decimal

from pos_inventory.core.exceptions import ConflictError, NotFoundError, ValidationError
from pos_inventory.models.warehouse import Warehouse
from pos_inventory.services.warehouse_service import WarehouseService


def _defaults(db_session):
    return db_session.query(Warehouse).filter(Warehouse.is_default.is_(True)).all()


class TestDefaultWarehouse:

    def test_created_on_first_use(self, db_session):
        service = WarehouseService(db_session)
        warehouse = service.resolve_warehouse()
        db_session.commit()

        assert warehouse.code == "MAIN"
        assert warehouse.is_default is True
        assert warehouse.is_active is True
        assert len(_defaults(db_session)) == 1

    def test_existing_main_is_promoted(self, db_session):
        main = Warehouse(name="Old main", code="MAIN", is_default=False, is_active=False)
        db_session.add(main)
        db_session.commit()

        warehouse = WarehouseService(db_session).ensure_default_warehouse()
        db_session.commit()

        assert warehouse.id == main.id
        assert warehouse.is_default is True
        assert warehouse.is_active is True
        assert db_session.query(Warehouse).count() == 1

    def test_set_default_keeps_single_default(self, db_session, main_warehouse, bar_warehouse):
        service = WarehouseService(db_session)
        service.set_default_warehouse(bar_warehouse.id)

        defaults = _defaults(db_session)
        assert [w.id for w in defaults] == [bar_warehouse.id]
        db_session.refresh(main_warehouse)
        assert main_warehouse.is_default is False

    def test_create_as_default(self, db_session, main_warehouse):
        warehouse = WarehouseService(db_session).create_warehouse(
            {"name": "Kitchen", "code": "kit", "type": "kitchen", "is_default": True}
        )
        assert warehouse.code == "KIT"
        assert [w.id for w in _defaults(db_session)] == [warehouse.id]

    def test_resolve_inactive_warehouse_fails(self, db_session, main_warehouse, bar_warehouse):
        service = WarehouseService(db_session)
        service.archive_warehouse(bar_warehouse.id)
        with pytest.raises(NotFoundError):
            service.resolve_warehouse(bar_warehouse.id)


class TestWarehouseCrud:

    def test_duplicate_code_conflicts(self, db_session, bar_warehouse):
        with pytest.raises(ConflictError):
            WarehouseService(db_session).create_warehouse({"name": "Second bar", "code": "BAR"})

    def test_unknown_type_falls_back(self, db_session, main_warehouse):
        warehouse = WarehouseService(db_session).create_warehouse({"name": "Cellar", "type": "dungeon"})
        assert warehouse.type == "custom"

    def test_address_and_contact_are_flattened(self, db_session, main_warehouse):
        warehouse = WarehouseService(db_session).create_warehouse({
            "name": "Store room",
            "address": {"street": " 1 Main st ", "city": "Tashkent"},
            "contact": {"name": "Aziz", "phone": "+998"},
        })
        assert warehouse.street == "1 Main st"
        assert warehouse.city == "Tashkent"
        assert warehouse.contact_name == "Aziz"

    def test_cannot_deactivate_default(self, db_session, main_warehouse):
        with pytest.raises(ValidationError):
            WarehouseService(db_session).update_warehouse(main_warehouse.id, {"is_active": False})

    def test_cannot_archive_default(self, db_session, main_warehouse):
        with pytest.raises(ValidationError):
            WarehouseService(db_session).archive_warehouse(main_warehouse.id)

    def test_cannot_archive_with_stock(self, db_session, bar_warehouse, make_item):
        make_item("Lemons", stock="5", default_warehouse_id=bar_warehouse.id)
        with pytest.raises(ValidationError):
            WarehouseService(db_session).archive_warehouse(bar_warehouse.id)

    def test_archive_empty_warehouse(self, db_session, bar_warehouse):
        warehouse = WarehouseService(db_session).archive_warehouse(bar_warehouse.id)
        assert warehouse.is_active is False

        active = WarehouseService(db_session).list_warehouses()
        assert bar_warehouse.id not in [w.id for w in active]
        everything = WarehouseService(db_session).list_warehouses(status="all")
        assert everything[0].is_default is True


class TestWarehouseStock:

    def test_stock_summary(self, db_session, main_warehouse, make_item):
        make_item("Flour", stock="10", cost="2", par="12")
        make_item("Sugar", stock="4", cost="5")

        result = WarehouseService(db_session).warehouse_stock(main_warehouse.id)

        assert result["summary"]["total_items"] == 2
        assert result["summary"]["total_quantity"] == Decimal("14")
        assert result["summary"]["inventory_value"] == Decimal("40")
        assert result["summary"]["low_stock_count"] == 1
        flour = next(row for row in result["items"] if row["name"] == "Flour")
        assert flour["is_low_stock"] is True
