"""
Customer Analytics Service

Lifetime value totals, top customers, new-customer detection for a date
window and single-customer referral lookup. Everything is fetched fresh from
the Shopify Admin GraphQL API per request; nothing is persisted.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from clv_insights.connectors.shopify_graphql import ShopifyGraphQLClient
from clv_insights.services.attribution import format_referrer_channel, format_utm
from clv_insights.services.customer_records import (
    CustomerRecord,
    customer_from_node,
    parse_timestamp,
)
from clv_insights.services.date_range import DateRange
from clv_insights.utils.helpers import format_currency, safe_divide
from clv_insights.utils.logger import log

PAGE_SIZE = 250
MAX_CUSTOMERS = 2000
MAX_ORDERS = 2000
TOP_CUSTOMERS_LIMIT = 10
DEFAULT_CURRENCY = "USD"

CUSTOMERS_QUERY = """
query Customers($first: Int!, $after: String) {
  customers(first: $first, after: $after) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      id
      displayName
      email
      numberOfOrders
      amountSpent {
        amount
        currencyCode
      }
    }
  }
}
"""

CUSTOMER_LOOKUP_QUERY = """
query CustomerLookup($first: Int!, $query: String!) {
  customers(first: $first, query: $query) {
    nodes {
      id
      displayName
      email
      numberOfOrders
      amountSpent {
        amount
        currencyCode
      }
      orders(first: 1, sortKey: CREATED_AT) {
        nodes {
          createdAt
          customerJourneySummary {
            firstVisit {
              source
              sourceType
              sourceDescription
              referrerUrl
              landingPage
              utmParameters {
                source
                medium
                campaign
                term
                content
              }
            }
          }
        }
      }
    }
  }
}
"""

ORDERS_IN_RANGE_QUERY = """
query OrdersInRange($first: Int!, $after: String, $query: String!) {
  orders(first: $first, after: $after, query: $query, sortKey: CREATED_AT) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      createdAt
      customer {
        id
        displayName
        email
        numberOfOrders
        amountSpent {
          amount
          currencyCode
        }
        orders(first: 1, sortKey: CREATED_AT) {
          nodes {
            createdAt
          }
        }
      }
    }
  }
}
"""


@dataclass
class CustomerSummary:
    """Aggregates from the capped walk over all customers"""
    customers_count: int = 0
    total_clv: float = 0.0
    currency_code: str = DEFAULT_CURRENCY
    top_customers: List[CustomerRecord] = field(default_factory=list)
    truncated: bool = False

    @property
    def average_clv(self) -> float:
        return safe_divide(self.total_clv, self.customers_count)


@dataclass
class NewCustomersSummary:
    """Customers whose first order falls inside the requested window"""
    new_customers: List[CustomerRecord] = field(default_factory=list)
    orders_scanned: int = 0
    truncated: bool = False
    used_fallback: bool = False


@dataclass
class CustomerLookupResult:
    id: str
    name: str
    email: str
    total_spent: float
    orders_count: int
    first_order_date: Optional[str]
    referrer_channel: str
    referrer_url: Optional[str]
    utm_summary: Optional[str]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "total_spent": self.total_spent,
            "orders_count": self.orders_count,
            "first_order_date": self.first_order_date,
            "referrer_channel": self.referrer_channel,
            "referrer_url": self.referrer_url,
            "utm_summary": self.utm_summary,
        }


def insert_top_customer(
    top: List[CustomerRecord],
    candidate: CustomerRecord,
    limit: int = TOP_CUSTOMERS_LIMIT
) -> List[CustomerRecord]:
    """
    Add a candidate to the top-spenders list, keeping it sorted by spend
    descending and at most `limit` long.

    Re-sorting on every insert is fine at this size. Ties keep insertion order.
    """
    ranked = sorted(top + [candidate], key=lambda c: c.total_spent, reverse=True)
    return ranked[:limit]


def orders_window_query(window: DateRange) -> str:
    """Shopify search syntax selecting orders created inside the window"""
    start = window.start.strftime("%Y-%m-%dT%H:%M:%SZ")
    end = window.end.strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"created_at:>={start} created_at:<={end}"


class CustomerAnalyticsService:
    """
    Builds the analytics page view model.

    Caps and page size are injected so callers (and tests) control them
    without touching module state.
    """

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        page_size: int = PAGE_SIZE,
        max_customers: int = MAX_CUSTOMERS,
        max_orders: int = MAX_ORDERS
    ):
        self.client = client
        self.page_size = page_size
        self.max_customers = max_customers
        self.max_orders = max_orders

    # ------------------------------------------------------------------
    # All customers (capped)
    # ------------------------------------------------------------------

    async def summarize_customers(self) -> CustomerSummary:
        """
        Walk customers up to `max_customers`, summing lifetime spend and
        tracking the top spenders.

        The currency code is the last non-empty one seen. Shops are assumed
        to report a single currency.
        """
        summary = CustomerSummary()
        last_page = None

        async for page in self.client.paginate(
            CUSTOMERS_QUERY,
            "customers",
            page_size=self.page_size,
            limit=self.max_customers,
        ):
            last_page = page
            for node in page.nodes:
                customer = customer_from_node(node)
                if customer.currency_code:
                    summary.currency_code = customer.currency_code

                summary.customers_count += 1
                summary.total_clv += customer.total_spent
                summary.top_customers = insert_top_customer(summary.top_customers, customer)

        if (
            last_page is not None
            and last_page.page_info.has_next_page
            and summary.customers_count >= self.max_customers
        ):
            summary.truncated = True
            log.warning(f"Customer walk stopped at the {self.max_customers} customer cap; totals are partial")

        log.info(
            f"Summarized {summary.customers_count} customers: "
            f"{summary.total_clv:.2f} {summary.currency_code} lifetime value"
        )
        return summary

    # ------------------------------------------------------------------
    # Orders in window -> new customers
    # ------------------------------------------------------------------

    async def find_new_customers(self, window: DateRange) -> NewCustomersSummary:
        """
        Scan orders created inside the window and collect customers whose
        first order also falls inside it.

        A customer with no resolvable first-order timestamp but exactly one
        lifetime order is treated as new, using the current order as the first
        one; `used_fallback` records that this happened.
        """
        summary = NewCustomersSummary()
        seen: Dict[str, CustomerRecord] = {}
        last_page = None

        async for page in self.client.paginate(
            ORDERS_IN_RANGE_QUERY,
            "orders",
            variables={"query": orders_window_query(window)},
            page_size=self.page_size,
            limit=self.max_orders,
        ):
            last_page = page
            for order in page.nodes:
                summary.orders_scanned += 1
                node = order.get("customer")
                if not node or not node.get("id"):
                    continue

                customer = customer_from_node(node)
                first_order_raw = customer.first_order_date
                first_order_at = parse_timestamp(first_order_raw)

                if first_order_at is not None:
                    is_new = window.contains(first_order_at)
                elif customer.orders_count == 1:
                    is_new = True
                    summary.used_fallback = True
                    customer.first_order_date = order.get("createdAt")
                else:
                    is_new = False

                if not is_new or customer.id in seen:
                    continue

                if not customer.first_order_date:
                    customer.first_order_date = order.get("createdAt")
                seen[customer.id] = customer

        if (
            last_page is not None
            and last_page.page_info.has_next_page
            and summary.orders_scanned >= self.max_orders
        ):
            summary.truncated = True
            log.warning(f"Order scan stopped at the {self.max_orders} order cap; new customers may be missing")

        if summary.used_fallback:
            log.warning("First-order date missing for some customers; used single-order fallback")

        summary.new_customers = sorted(seen.values(), key=lambda c: c.first_order_date or "")
        log.info(
            f"Scanned {summary.orders_scanned} orders from {window.start_input} to {window.end_input}: "
            f"{len(summary.new_customers)} new customers"
        )
        return summary

    # ------------------------------------------------------------------
    # Single customer lookup
    # ------------------------------------------------------------------

    async def lookup_customer(self, email: str) -> Optional[CustomerLookupResult]:
        """Exact-match lookup by email, with first-order referral attribution"""
        data = await self.client.query(CUSTOMER_LOOKUP_QUERY, {"first": 1, "query": f"email:{email}"})
        nodes = (data.get("customers") or {}).get("nodes") or []
        if not nodes:
            log.info(f"No customer found for {email}")
            return None

        node = nodes[0]
        customer = customer_from_node(node)
        first_orders = (node.get("orders") or {}).get("nodes") or []
        first_order = first_orders[0] if first_orders else None
        visit = None
        if first_order:
            visit = (first_order.get("customerJourneySummary") or {}).get("firstVisit")

        return CustomerLookupResult(
            id=customer.id,
            name=customer.name,
            email=customer.email,
            total_spent=customer.total_spent,
            orders_count=customer.orders_count,
            first_order_date=(first_order or {}).get("createdAt") or None,
            referrer_channel=format_referrer_channel(visit),
            referrer_url=(visit or {}).get("referrerUrl") or None,
            utm_summary=format_utm((visit or {}).get("utmParameters")),
        )

    # ------------------------------------------------------------------
    # Page view model
    # ------------------------------------------------------------------

    async def get_dashboard(self, window: DateRange, lookup_email: str = "") -> dict:
        """Analytics page payload. Upstream calls run one after another."""
        customers = await self.summarize_customers()
        orders = await self.find_new_customers(window)
        lookup = await self.lookup_customer(lookup_email) if lookup_email else None

        currency = customers.currency_code
        return {
            "range": window.to_dict(),
            "customer_lookup": {
                "query": lookup_email,
                "result": lookup.to_dict() if lookup else None,
            },
            "totals": {
                "customers": customers.customers_count,
                "total_clv": customers.total_clv,
                "average_clv": customers.average_clv,
                "currency_code": currency,
                "total_clv_display": format_currency(customers.total_clv, currency),
                "average_clv_display": format_currency(customers.average_clv, currency),
            },
            "top_customers": [
                {
                    "id": c.id,
                    "name": c.name,
                    "email": c.email,
                    "total_spent": c.total_spent,
                    "orders_count": c.orders_count,
                }
                for c in customers.top_customers
            ],
            "new_customers": [
                {
                    "id": c.id,
                    "name": c.name,
                    "email": c.email,
                    "first_order_date": c.first_order_date,
                    "total_spent": c.total_spent,
                    "orders_count": c.orders_count,
                }
                for c in orders.new_customers
            ],
            "notes": {
                "customers_truncated": customers.truncated,
                "orders_truncated": orders.truncated,
                "used_new_customer_fallback": orders.used_fallback,
            },
        }
