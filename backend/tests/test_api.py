"""HTTP-level tests: authentication, role checks, error bodies and the order flow."""

from decimal import Decimal

from pos_inventory.models.operations import InventoryUsageTask, UsageTaskStatus
from pos_inventory.models.stock import InventoryStock
from pos_inventory.services.recipe_service import RecipeService


class TestAuth:

    def test_login_and_me(self, client, test_user):
        res = client.post("/api/v1/auth/login", json={"email": "owner@bistro.uz", "password": "testpass123"})
        assert res.status_code == 200
        token = res.json()["access_token"]
        assert res.json()["user"]["role"] == "owner"

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "owner@bistro.uz"

    def test_wrong_password(self, client, test_user):
        res = client.post("/api/v1/auth/login", json={"email": "owner@bistro.uz", "password": "nope"})
        assert res.status_code == 401

    def test_requires_token(self, client):
        assert client.get("/api/v1/inventory/").status_code == 401

    def test_staff_cannot_adjust(self, client, staff_headers, make_item):
        item = make_item("Tea", stock="5", unit="pcs")
        res = client.post(
            f"/api/v1/inventory/{item.id}/adjust",
            json={"quantity": "1", "type": "usage"},
            headers=staff_headers,
        )
        assert res.status_code == 403

    def test_staff_can_read(self, client, staff_headers, make_item):
        make_item("Tea", stock="5", unit="pcs")
        res = client.get("/api/v1/inventory/", headers=staff_headers)
        assert res.status_code == 200


class TestInventoryEndpoints:

    def test_create_item_with_opening_stock(self, client, auth_headers, main_warehouse):
        res = client.post(
            "/api/v1/inventory/",
            json={"name": "Coffee beans", "sku": "cb-1", "unit": "kg", "current_stock": "4", "cost": "30"},
            headers=auth_headers,
        )
        assert res.status_code == 201

        items = client.get("/api/v1/inventory/", headers=auth_headers).json()["items"]
        assert [i["sku"] for i in items] == ["CB-1"]
        assert Decimal(str(items[0]["current_stock"])) == Decimal("4")

    def test_adjust_and_insufficient_stock(self, client, auth_headers, make_item):
        item = make_item("Tea", stock="10", unit="pcs")

        res = client.post(
            f"/api/v1/inventory/{item.id}/adjust",
            json={"quantity": "15", "type": "usage"},
            headers=auth_headers,
        )
        assert res.status_code == 400
        assert "Insufficient stock" in res.json()["detail"]

        res = client.post(
            f"/api/v1/inventory/{item.id}/adjust",
            json={"quantity": "8", "type": "usage", "reason": "Tasting"},
            headers=auth_headers,
        )
        assert res.status_code == 200
        movement = res.json()["movement"]
        assert Decimal(str(movement["delta"])) == Decimal("-8")
        assert Decimal(str(movement["balance_after"])) == Decimal("2")

    def test_missing_item_is_404(self, client, auth_headers):
        res = client.post(
            "/api/v1/inventory/999/adjust",
            json={"quantity": "1", "type": "incoming"},
            headers=auth_headers,
        )
        assert res.status_code == 404

    def test_movements_are_paginated(self, client, auth_headers, make_item):
        make_item("Tea", stock="10", unit="pcs")
        res = client.get("/api/v1/inventory/movements?limit=1", headers=auth_headers)
        assert res.status_code == 200
        body = res.json()
        assert body["total"] == 1
        assert body["has_more"] is False


class TestWarehouseEndpoints:

    def test_list_creates_default(self, client, auth_headers):
        res = client.get("/api/v1/warehouses/", headers=auth_headers)
        assert res.status_code == 200
        assert [w["code"] for w in res.json()["items"]] == ["MAIN"]

    def test_archive_default_is_rejected(self, client, auth_headers, main_warehouse):
        res = client.delete(f"/api/v1/warehouses/{main_warehouse.id}", headers=auth_headers)
        assert res.status_code == 400


class TestOrderEndpoints:

    def test_order_triggers_usage(self, client, auth_headers, db_session, make_item, make_menu_item):
        rice = make_item("Rice", stock="10", cost="12")
        plov = make_menu_item("Plov", price="45.00")
        RecipeService(db_session).create_recipe({
            "name": "Plov",
            "menu_item_id": plov.id,
            "version": {"ingredients": [{"item_id": rice.id, "quantity": "0.5"}]},
        })

        res = client.post(
            "/api/v1/orders/",
            json={"items": [{"menu_item_id": plov.id, "qty": 2}], "table_name": "T1"},
            headers=auth_headers,
        )
        assert res.status_code == 201
        order_id = res.json()["id"]

        # TestClient runs background tasks before returning
        db_session.expire_all()
        task = db_session.query(InventoryUsageTask).filter(InventoryUsageTask.order_id == order_id).one()
        assert task.status == UsageTaskStatus.DONE
        quantity = db_session.query(InventoryStock.quantity).filter(InventoryStock.item_id == rice.id).scalar()
        assert quantity == Decimal("9")

    def test_retry_requires_manager(self, client, staff_headers, auth_headers, make_menu_item):
        soup = make_menu_item("Soup", price="20.00")
        res = client.post("/api/v1/orders/", json={"items": [{"menu_item_id": soup.id}]}, headers=auth_headers)
        order_id = res.json()["id"]

        res = client.post(f"/api/v1/orders/{order_id}/usage/retry", headers=staff_headers)
        assert res.status_code == 403
        res = client.post(f"/api/v1/orders/{order_id}/usage/retry", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["status"] == "done"


class TestHealth:

    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        body = res.json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"] == "healthy"
        assert "usage_outbox" in body["checks"]["scheduler"]
