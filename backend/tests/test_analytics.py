"""Tests for inventory analytics: overview, usage trends, food cost and alerts."""

from datetime import timedelta
from decimal import Decimal

from pos_inventory.db.base import utcnow
from pos_inventory.models.stock import InventoryMovement
from pos_inventory.services.inventory_analytics_service import InventoryAnalyticsService, days_left
from pos_inventory.services.recipe_service import RecipeService
from pos_inventory.services.stock_ledger_service import StockLedgerService


class TestOverview:

    def test_totals_and_lists(self, db_session, make_item):
        flour = make_item("Flour", stock="3", cost="10", par="5")
        make_item("Salt", stock="8", cost="2", par="1")
        StockLedgerService(db_session).adjust_stock(flour.id, "1", movement_type="usage")

        overview = InventoryAnalyticsService(db_session).overview()

        totals = overview["totals"]
        assert totals["total_items"] == 2
        assert totals["total_stock_units"] == Decimal("10")
        assert totals["inventory_value"] == Decimal("36.00")
        assert totals["low_stock_count"] == 1
        assert totals["valuation"]["fifo"] == totals["inventory_value"]
        assert [row["name"] for row in overview["low_stock_items"]] == ["Flour"]
        assert overview["fast_moving"][0]["id"] == flour.id
        assert overview["fast_moving"][0]["total_usage"] == Decimal("1")

    def test_archived_items_are_excluded(self, db_session, make_item):
        from pos_inventory.services.inventory_item_service import InventoryItemService

        item = make_item("Old syrup", stock="0", cost="5", par="2")
        InventoryItemService(db_session).archive_item(item.id)

        overview = InventoryAnalyticsService(db_session).overview()
        assert overview["totals"]["total_items"] == 0
        assert overview["low_stock_items"] == []


class TestUsageTrends:

    def test_outbound_movements_grouped_by_day_and_type(self, db_session, make_item):
        item = make_item("Milk", stock="20", unit="l")
        ledger = StockLedgerService(db_session)
        ledger.adjust_stock(item.id, "2", movement_type="usage")
        ledger.adjust_stock(item.id, "3", movement_type="usage")
        ledger.adjust_stock(item.id, "1", movement_type="waste")

        trends = InventoryAnalyticsService(db_session).usage_trends(7)

        assert trends["days"] == 7
        totals = {row["type"]: row["total"] for row in trends["usage"]}
        assert totals == {"usage": Decimal("5"), "waste": Decimal("1")}


class TestFoodCost:

    def test_cost_percentage_of_price(self, db_session, make_item, make_menu_item):
        beef = make_item("Beef", stock="5", cost="80")
        burger = make_menu_item("Burger", price="40.00")
        RecipeService(db_session).create_recipe({
            "name": "Burger",
            "menu_item_id": burger.id,
            "version": {"ingredients": [{"item_id": beef.id, "quantity": "0.15"}]},
        })

        report = InventoryAnalyticsService(db_session).food_cost_report()["report"]

        assert len(report) == 1
        assert report[0]["ingredient_cost"] == Decimal("12")
        assert report[0]["food_cost_pct"] == Decimal("30.00")


class TestAlerts:

    def test_low_stock_and_expiring(self, db_session, make_item):
        make_item("Cream", stock="1", par="4", shelf_life_days=2, expiry_tracking_enabled=True)
        make_item("Pepper", stock="9", par="1")

        alerts = InventoryAnalyticsService(db_session).alerts()

        assert [row["name"] for row in alerts["low_stock"]] == ["Cream"]
        assert [row["name"] for row in alerts["expiring_soon"]] == ["Cream"]
        assert alerts["expiring_soon"][0]["days_left"] == 2

    def test_usage_spike_is_flagged(self, db_session, make_item):
        item = make_item("Oil", stock="100", unit="l")
        ledger = StockLedgerService(db_session)
        for _ in range(2):
            ledger.adjust_stock(item.id, "1", movement_type="usage")
        # Backdate the first two usages so they form the baseline
        past = (
            db_session.query(InventoryMovement)
            .filter(InventoryMovement.type == "usage")
            .order_by(InventoryMovement.id)
            .all()
        )
        past[0].created_at = utcnow() - timedelta(days=2)
        past[1].created_at = utcnow() - timedelta(days=1)
        db_session.commit()
        ledger.adjust_stock(item.id, "5", movement_type="usage")

        anomalies = InventoryAnalyticsService(db_session).alerts()["anomalies"]

        assert [row["name"] for row in anomalies] == ["Oil"]
        assert anomalies[0]["today_usage"] == Decimal("5")
        assert anomalies[0]["average_usage"] == Decimal("1.00")

    def test_days_left_without_tracking(self, make_item):
        item = make_item("Salt", stock="1")
        assert days_left(item) is None
