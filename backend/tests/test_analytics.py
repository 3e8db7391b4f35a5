"""
Reporting aggregations and the analytics routes.
"""

import pytest

from shopkeep.services import reporting_service
from shopkeep.services.sales_service import record_sale
from shopkeep.validation import ValidationError


@pytest.fixture
def small_shop(make_product):
    """Three products in three categories and two sales made today."""
    hoodie = make_product(name="Hoodie", category="Apparel", quantity=10, reorder_level=2,
                          sell_price_cents=1000)
    mug = make_product(name="Mug", category="Drinkware", quantity=4, reorder_level=5,
                       sell_price_cents=500)
    pen = make_product(name="Pen", category="Stationery", quantity=0, reorder_level=10,
                       sell_price_cents=200)

    record_sale(product_id=hoodie.id, quantity_sold=3, unit_price_cents=1000)
    record_sale(product_id=mug.id, quantity_sold=1, unit_price_cents=500)
    return {"hoodie": hoodie, "mug": mug, "pen": pen}


class TestReportingService:

    def test_dashboard(self, small_shop):
        data = reporting_service.dashboard()

        assert data["total_products"] == 3
        assert data["total_value_cents"] == 7 * 1000 + 3 * 500
        assert data["total_value"] == "85.00"
        assert data["low_stock_count"] == 2
        assert data["out_of_stock_count"] == 1
        assert data["today_sales"] == {"count": 2, "revenue_cents": 3500, "revenue": "35.00"}
        assert data["month_sales"]["count"] == 2
        assert data["top_selling_product"]["name"] == "Hoodie"
        assert data["top_selling_product"]["total_sold"] == 3

    def test_dashboard_on_empty_shop(self, db_session):
        data = reporting_service.dashboard()

        assert data["total_products"] == 0
        assert data["total_value"] == "0.00"
        assert data["top_selling_product"] is None

    def test_sales_trend_groups_by_day(self, small_shop):
        rows = reporting_service.sales_trend(period=7)

        assert len(rows) == 1
        assert rows[0]["sales_count"] == 2
        assert rows[0]["items_sold"] == 4
        assert rows[0]["revenue"] == "35.00"
        assert rows[0]["unique_products"] == 2

    def test_category_distribution_most_valuable_first(self, small_shop):
        rows = reporting_service.category_distribution()

        assert [r["category"] for r in rows] == ["Apparel", "Drinkware", "Stationery"]
        assert rows[0]["total_inventory"] == 7
        assert rows[0]["total_value"] == "70.00"
        assert rows[2]["total_value_cents"] == 0

    def test_top_products_by_metric(self, small_shop):
        by_quantity = reporting_service.top_products(metric="quantity")
        assert [r["name"] for r in by_quantity] == ["Hoodie", "Mug"]
        assert by_quantity[0]["total_revenue"] == "30.00"

        assert [r["name"] for r in reporting_service.top_products(limit=1)] == ["Hoodie"]

    def test_weekly_summary(self, small_shop):
        stats = reporting_service.weekly_summary()

        assert stats["total_transactions"] == 2
        assert stats["total_items_sold"] == 4
        assert stats["total_revenue"] == "35.00"
        assert stats["avg_transaction_value"] == "17.50"

    @pytest.mark.parametrize("kwargs", [
        {"period": 0},
        {"period": 400},
        {"metric": "profit"},
        {"limit": 0},
    ])
    def test_top_products_rejects_bad_arguments(self, db_session, kwargs):
        with pytest.raises(ValidationError):
            reporting_service.top_products(**kwargs)


class TestAnalyticsRoutes:

    def test_requires_login(self, client, db_session):
        assert client.get('/api/analytics/dashboard').status_code == 401

    def test_dashboard_and_charts(self, client, staff_headers, small_shop):
        response = client.get('/api/analytics/dashboard', headers=staff_headers)
        assert response.status_code == 200
        assert response.get_json()['total_products'] == 3

        body = client.get('/api/analytics/sales-trend?period=30', headers=staff_headers).get_json()
        assert body['count'] == 1

        body = client.get('/api/analytics/category-distribution', headers=staff_headers).get_json()
        assert body['count'] == 3

        body = client.get('/api/analytics/top-products?metric=quantity&limit=5', headers=staff_headers).get_json()
        assert body['items'][0]['name'] == 'Hoodie'

    def test_bad_period_is_400(self, client, staff_headers):
        response = client.get('/api/analytics/sales-trend?period=0', headers=staff_headers)
        assert response.status_code == 400
