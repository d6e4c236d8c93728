"""
Analytics page pipeline against a fake Shopify GraphQL endpoint.

Guards against:
1. Customer cap overshoot and missing truncation flag
2. Top-customer list losing order or growing past 10
3. New-customer detection ignoring the single-order fallback
4. Upstream GraphQL errors being swallowed
"""
import asyncio
import random

import httpx
import pytest

from clv_insights.connectors.shopify_graphql import ShopifyGraphQLClient, ShopifyQueryError
from clv_insights.services.customer_analytics_service import (
    CustomerAnalyticsService,
    insert_top_customer,
    orders_window_query,
)
from clv_insights.services.customer_records import CustomerRecord
from clv_insights.services.date_range import normalize_date_range
from tests.shopify_fakes import FakeShopify, customer_node, order_node

JANUARY = normalize_date_range("2024-01-01", "2024-01-31")


def _run(coro):
    return asyncio.run(coro)


# ────────────────────────────────────────────
# CUSTOMER TOTALS
# ────────────────────────────────────────────


class TestSummarizeCustomers:

    def test_totals_average_and_currency(self):
        fake = FakeShopify(customers=[
            customer_node("c1", "Ann", "ann@example.com", spent="120.50", orders=2, currency="AUD"),
            customer_node("c2", None, "bob@example.com", spent=None, orders=None, currency="AUD"),
            customer_node("c3", None, None, spent="79.50", orders=1, currency="AUD"),
        ])
        summary = _run(CustomerAnalyticsService(fake.client()).summarize_customers())

        assert summary.customers_count == 3
        assert summary.total_clv == pytest.approx(200.0)
        assert summary.average_clv == pytest.approx(200.0 / 3)
        assert summary.currency_code == "AUD"
        assert summary.truncated is False

        names = {c.id: (c.name, c.email) for c in summary.top_customers}
        assert names["c2"] == ("bob@example.com", "bob@example.com")
        assert names["c3"] == ("Unknown", "-")

    def test_last_seen_currency_wins(self):
        fake = FakeShopify(customers=[
            customer_node("c1", spent=1, currency="USD"),
            customer_node("c2", spent=1, currency="EUR"),
            customer_node("c3", spent=None),
        ])
        summary = _run(CustomerAnalyticsService(fake.client(), page_size=2).summarize_customers())
        assert summary.currency_code == "EUR"

    def test_empty_shop(self):
        summary = _run(CustomerAnalyticsService(FakeShopify().client()).summarize_customers())
        assert summary.customers_count == 0
        assert summary.average_clv == 0
        assert summary.currency_code == "USD"
        assert summary.top_customers == []

    def test_cap_hit_with_more_pages_sets_truncated(self):
        """2001 customers, cap 2000: totals cover exactly the first 2000."""
        fake = FakeShopify(customers=[customer_node(f"c{i}", spent=i) for i in range(2001)])
        summary = _run(CustomerAnalyticsService(fake.client()).summarize_customers())

        assert summary.truncated is True
        assert summary.customers_count == 2000
        assert summary.total_clv == pytest.approx(sum(range(2000)))
        assert len(fake.variables("Customers")) == 8

    def test_cap_exactly_reached_without_more_pages_is_not_truncated(self):
        fake = FakeShopify(customers=[customer_node(f"c{i}", spent=1) for i in range(500)])
        summary = _run(CustomerAnalyticsService(fake.client(), max_customers=500).summarize_customers())
        assert summary.customers_count == 500
        assert summary.truncated is False

    def test_last_page_is_trimmed_to_the_cap(self):
        fake = FakeShopify(customers=[customer_node(f"c{i}", spent=1) for i in range(1000)])
        service = CustomerAnalyticsService(fake.client(), page_size=300, max_customers=700)
        summary = _run(service.summarize_customers())

        assert summary.customers_count == 700
        assert summary.truncated is True
        assert [v["first"] for v in fake.variables("Customers")] == [300, 300, 100]


# ────────────────────────────────────────────
# TOP CUSTOMERS
# ────────────────────────────────────────────


class TestTopCustomers:

    @staticmethod
    def _record(i: int, spent: float) -> CustomerRecord:
        return CustomerRecord(id=f"c{i}", name=f"C{i}", email="-", total_spent=spent)

    def test_sorted_descending_and_bounded_for_any_insert_order(self):
        spends = [float(s) for s in range(25)]
        for seed in range(5):
            random.Random(seed).shuffle(spends)
            top = []
            for i, spent in enumerate(spends):
                top = insert_top_customer(top, self._record(i, spent))
                assert len(top) <= 10
                values = [c.total_spent for c in top]
                assert values == sorted(values, reverse=True)
            assert [c.total_spent for c in top] == [float(s) for s in range(24, 14, -1)]

    def test_ties_keep_first_inserted(self):
        top = []
        for i in range(12):
            top = insert_top_customer(top, self._record(i, 100.0))
        assert [c.id for c in top] == [f"c{i}" for i in range(10)]


# ────────────────────────────────────────────
# NEW CUSTOMERS IN WINDOW
# ────────────────────────────────────────────


class TestFindNewCustomers:

    def test_first_order_inside_window_counts(self):
        inside = customer_node("c1", "In", spent=50, orders=3, first_order_at="2024-01-10T09:00:00Z")
        before = customer_node("c2", "Old", spent=80, orders=4, first_order_at="2023-11-02T09:00:00Z")
        fake = FakeShopify(orders=[
            order_node("2024-01-10T09:00:00Z", inside),
            order_node("2024-01-12T09:00:00Z", before),
            order_node("2024-01-13T09:00:00Z", None),
        ])
        summary = _run(CustomerAnalyticsService(fake.client()).find_new_customers(JANUARY))

        assert [c.id for c in summary.new_customers] == ["c1"]
        assert summary.orders_scanned == 3
        assert summary.used_fallback is False
        assert summary.truncated is False

    def test_single_order_fallback(self):
        """No first-order date but exactly one order: the current order is the first."""
        customer = customer_node("c9", "Fallback", spent=40, orders=1)
        fake = FakeShopify(orders=[order_node("2024-01-05T14:30:00Z", customer)])
        summary = _run(CustomerAnalyticsService(fake.client()).find_new_customers(JANUARY))

        assert summary.used_fallback is True
        assert len(summary.new_customers) == 1
        assert summary.new_customers[0].first_order_date == "2024-01-05T14:30:00Z"
        assert summary.new_customers[0].first_order_date.startswith("2024-01-05")

    def test_no_first_order_and_several_orders_is_not_new(self):
        customer = customer_node("c9", orders=3)
        fake = FakeShopify(orders=[order_node("2024-01-05T14:30:00Z", customer)])
        summary = _run(CustomerAnalyticsService(fake.client()).find_new_customers(JANUARY))
        assert summary.new_customers == []
        assert summary.used_fallback is False

    def test_dedup_first_occurrence_wins_and_sorted_by_first_order(self):
        late = customer_node("late", "Late", spent=10, orders=2, first_order_at="2024-01-20T00:00:00Z")
        early = customer_node("early", "Early", spent=10, orders=2, first_order_at="2024-01-03T00:00:00Z")
        fake = FakeShopify(orders=[
            order_node("2024-01-20T00:00:00Z", late),
            order_node("2024-01-21T00:00:00Z", dict(late, displayName="Late again")),
            order_node("2024-01-22T00:00:00Z", early),
        ])
        summary = _run(CustomerAnalyticsService(fake.client()).find_new_customers(JANUARY))

        assert [c.id for c in summary.new_customers] == ["early", "late"]
        assert summary.new_customers[1].name == "Late"

    def test_order_cap_sets_truncated(self):
        customer = customer_node("c1", orders=5, first_order_at="2023-01-01T00:00:00Z")
        fake = FakeShopify(orders=[order_node("2024-01-10T00:00:00Z", customer) for _ in range(30)])
        summary = _run(CustomerAnalyticsService(fake.client(), page_size=10, max_orders=25).find_new_customers(JANUARY))

        assert summary.orders_scanned == 25
        assert summary.truncated is True

    def test_window_is_sent_as_search_query(self):
        fake = FakeShopify()
        _run(CustomerAnalyticsService(fake.client()).find_new_customers(JANUARY))

        expected = "created_at:>=2024-01-01T00:00:00Z created_at:<=2024-01-31T23:59:59Z"
        assert orders_window_query(JANUARY) == expected
        assert fake.variables("OrdersInRange")[0]["query"] == expected


# ────────────────────────────────────────────
# LOOKUP
# ────────────────────────────────────────────


class TestLookupCustomer:

    def test_lookup_with_referral(self):
        node = customer_node(
            "c1", "Ann Lee", "ann@example.com", spent="310.00", orders=3,
            first_order_at="2023-06-01T08:00:00Z",
            first_visit={
                "source": "Google",
                "referrerUrl": "https://www.google.com/",
                "utmParameters": {"source": "google", "medium": "cpc"},
            },
        )
        fake = FakeShopify(lookup=[node])
        result = _run(CustomerAnalyticsService(fake.client()).lookup_customer("ann@example.com"))

        assert fake.variables("CustomerLookup") == [{"first": 1, "query": "email:ann@example.com"}]
        assert result.name == "Ann Lee"
        assert result.total_spent == pytest.approx(310.0)
        assert result.orders_count == 3
        assert result.first_order_date == "2023-06-01T08:00:00Z"
        assert result.referrer_channel == "UTM (source=google, medium=cpc)"
        assert result.referrer_url == "https://www.google.com/"
        assert result.utm_summary == "source=google, medium=cpc"

    def test_lookup_without_orders(self):
        fake = FakeShopify(lookup=[customer_node("c1", None, "new@example.com")])
        result = _run(CustomerAnalyticsService(fake.client()).lookup_customer("new@example.com"))

        assert result.first_order_date is None
        assert result.referrer_channel == "Unknown"
        assert result.referrer_url is None
        assert result.utm_summary is None

    def test_no_match_returns_none(self):
        result = _run(CustomerAnalyticsService(FakeShopify().client()).lookup_customer("nobody@example.com"))
        assert result is None


# ────────────────────────────────────────────
# DASHBOARD + ERRORS
# ────────────────────────────────────────────


def test_dashboard_payload_shape():
    fake = FakeShopify(
        customers=[customer_node("c1", "Ann", "ann@example.com", spent=1234.5, orders=2)],
        orders=[order_node("2024-01-05T00:00:00Z", customer_node("c1", "Ann", "ann@example.com", spent=1234.5, orders=1))],
    )
    data = _run(CustomerAnalyticsService(fake.client()).get_dashboard(JANUARY))

    assert data["range"] == {"start": "2024-01-01", "end": "2024-01-31"}
    assert data["customer_lookup"] == {"query": "", "result": None}
    assert data["totals"]["customers"] == 1
    assert data["totals"]["total_clv_display"] == "$1,234.50"
    assert data["top_customers"][0]["id"] == "c1"
    assert data["new_customers"][0]["first_order_date"] == "2024-01-05T00:00:00Z"
    assert data["notes"] == {
        "customers_truncated": False,
        "orders_truncated": False,
        "used_new_customer_fallback": True,
    }
    assert fake.variables("CustomerLookup") == []


def test_graphql_errors_abort():
    fake = FakeShopify(errors=[{"message": "Throttled"}])
    with pytest.raises(ShopifyQueryError) as exc_info:
        _run(CustomerAnalyticsService(fake.client()).summarize_customers())
    assert exc_info.value.errors == [{"message": "Throttled"}]


def test_query_uses_transport_default_timeout():
    seen = []

    def handler(request):
        seen.append(request.extensions["timeout"])
        return httpx.Response(200, json={"data": {}})

    client = ShopifyGraphQLClient("test-shop.myshopify.com", "test-token", transport=httpx.MockTransport(handler))
    assert _run(client.query("query Shop { shop { name } }")) == {}
    assert seen == [httpx.Timeout(5.0).as_dict()]
