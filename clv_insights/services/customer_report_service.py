"""
Customer Report Service

Filterable, sortable, paginated customer list with spend/order histograms.
Loads every customer (no cap), then filters, sorts and buckets in memory.
"""
import bisect
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from clv_insights.connectors.shopify_graphql import ShopifyGraphQLClient
from clv_insights.services.customer_records import (
    CustomerRecord,
    customer_from_node,
    parse_timestamp,
)
from clv_insights.services.date_range import end_of_day, parse_date_param, start_of_day
from clv_insights.utils.url_parsing import encode_params
from clv_insights.utils.logger import log

SORT_KEYS = ("ltv_desc", "ltv_asc", "orders_desc", "orders_asc")
DEFAULT_SORT = "ltv_desc"
TAGS_MODES = ("any", "all")
PAGE_SIZE_OPTIONS = (50, 100, 250, 500)
DEFAULT_PAGE_SIZE = 250
PER_PAGE_ALL = "all"

LTV_BUCKET_EDGES = (0, 50, 100, 250, 500, 1000, 2000, 5000, 10000)
ORDER_BUCKET_EDGES = (0, 1, 2, 3, 5, 10, 20, 50)

# Order matters: saved presets and generated links list params in this order
CONFIG_KEYS = (
    "sort",
    "per_page",
    "q",
    "tags",
    "tags_mode",
    "min_orders",
    "max_orders",
    "min_spent",
    "max_spent",
    "created_start",
    "created_end",
    "first_order_start",
    "first_order_end",
)

REPORT_CUSTOMERS_QUERY = """
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
      createdAt
      numberOfOrders
      tags
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
"""

Predicate = Callable[[CustomerRecord], bool]


# ---------------------------------------------------------------------------
# Query param parsing
# ---------------------------------------------------------------------------

def parse_positive_number(value: Optional[str], fallback: int) -> int:
    """Positive number (floored), otherwise the fallback"""
    if not value:
        return fallback
    try:
        parsed = float(value)
    except ValueError:
        return fallback
    if not math.isfinite(parsed) or parsed <= 0:
        return fallback
    return max(1, int(parsed))


def parse_optional_number(value: Optional[str]) -> Optional[float]:
    """Non-negative number, or None when missing/malformed (the filter is then skipped)"""
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    if not math.isfinite(parsed) or parsed < 0:
        return None
    return parsed


def parse_sort(value: Optional[str]) -> str:
    return value if value in SORT_KEYS else DEFAULT_SORT


def parse_tags_mode(value: Optional[str]) -> str:
    return "all" if value == "all" else "any"


def parse_tags(value: Optional[str]) -> List[str]:
    """Comma-separated tag list, trimmed and lower-cased, empties dropped"""
    return [tag.strip().lower() for tag in (value or "").split(",") if tag.strip()]


def normalize_query(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def parse_bound(value: Optional[str], end: bool = False) -> Optional[datetime]:
    """Date filter bound: start of day for lower bounds, 23:59:59 for upper bounds"""
    day = parse_date_param(value)
    if day is None:
        return None
    return end_of_day(day) if end else start_of_day(day)


@dataclass
class ReportParams:
    """Parsed report query string. Raw strings are kept to echo back into the form."""
    sort: str = DEFAULT_SORT
    page: int = 1
    per_page_param: Optional[str] = None
    query: str = ""
    tags: str = ""
    tags_mode: str = "any"
    min_orders: str = ""
    max_orders: str = ""
    min_spent: str = ""
    max_spent: str = ""
    created_start: str = ""
    created_end: str = ""
    first_order_start: str = ""
    first_order_end: str = ""
    export_csv: bool = False

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "ReportParams":
        return cls(
            sort=parse_sort(params.get("sort")),
            page=parse_positive_number(params.get("page"), 1),
            per_page_param=params.get("per_page") or None,
            query=normalize_query(params.get("q")),
            tags=params.get("tags") or "",
            tags_mode=parse_tags_mode(params.get("tags_mode")),
            min_orders=params.get("min_orders") or "",
            max_orders=params.get("max_orders") or "",
            min_spent=params.get("min_spent") or "",
            max_spent=params.get("max_spent") or "",
            created_start=params.get("created_start") or "",
            created_end=params.get("created_end") or "",
            first_order_start=params.get("first_order_start") or "",
            first_order_end=params.get("first_order_end") or "",
            export_csv=params.get("export") == "csv",
        )

    @property
    def is_all(self) -> bool:
        return self.per_page_param == PER_PAGE_ALL

    @property
    def tag_list(self) -> List[str]:
        return parse_tags(self.tags)

    def config_values(self) -> dict:
        """Values keyed by CONFIG_KEYS, as they would appear in the query string"""
        return {
            "sort": self.sort,
            "per_page": self.per_page_param or "",
            "q": self.query,
            "tags": self.tags,
            "tags_mode": self.tags_mode,
            "min_orders": self.min_orders,
            "max_orders": self.max_orders,
            "min_spent": self.min_spent,
            "max_spent": self.max_spent,
            "created_start": self.created_start,
            "created_end": self.created_end,
            "first_order_start": self.first_order_start,
            "first_order_end": self.first_order_end,
        }


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def _matches_query(query: str) -> Predicate:
    return lambda c: query in c.name.lower() or query in c.email.lower()


def _within(low: Optional[float], high: Optional[float], value_of: Callable[[CustomerRecord], float]) -> Predicate:
    def check(customer: CustomerRecord) -> bool:
        value = value_of(customer)
        if low is not None and value < low:
            return False
        if high is not None and value > high:
            return False
        return True
    return check


def _has_tags(tags: Sequence[str], mode: str) -> Predicate:
    wanted = [t.lower() for t in tags]
    combine = all if mode == "all" else any

    def check(customer: CustomerRecord) -> bool:
        have = {t.lower() for t in customer.tags}
        return combine(t in have for t in wanted)
    return check


def _timestamp_within(
    low: Optional[datetime],
    high: Optional[datetime],
    raw_of: Callable[[CustomerRecord], Optional[str]]
) -> Predicate:
    """Customers without the timestamp are excluded whenever a bound is set"""
    def check(customer: CustomerRecord) -> bool:
        moment = parse_timestamp(raw_of(customer))
        if moment is None:
            return False
        if low is not None and moment < low:
            return False
        if high is not None and moment > high:
            return False
        return True
    return check


def build_predicates(params: ReportParams) -> List[Predicate]:
    """One predicate per active filter. A customer must pass all of them."""
    predicates: List[Predicate] = []

    if params.query:
        predicates.append(_matches_query(params.query))

    min_orders = parse_optional_number(params.min_orders)
    max_orders = parse_optional_number(params.max_orders)
    if min_orders is not None or max_orders is not None:
        predicates.append(_within(min_orders, max_orders, lambda c: c.orders_count))

    min_spent = parse_optional_number(params.min_spent)
    max_spent = parse_optional_number(params.max_spent)
    if min_spent is not None or max_spent is not None:
        predicates.append(_within(min_spent, max_spent, lambda c: c.total_spent))

    tags = params.tag_list
    if tags:
        predicates.append(_has_tags(tags, params.tags_mode))

    created_start = parse_bound(params.created_start)
    created_end = parse_bound(params.created_end, end=True)
    if created_start or created_end:
        predicates.append(_timestamp_within(created_start, created_end, lambda c: c.created_at))

    first_start = parse_bound(params.first_order_start)
    first_end = parse_bound(params.first_order_end, end=True)
    if first_start or first_end:
        predicates.append(_timestamp_within(first_start, first_end, lambda c: c.first_order_date))

    return predicates


def filter_customers(customers: Sequence[CustomerRecord], predicates: Sequence[Predicate]) -> List[CustomerRecord]:
    return [c for c in customers if all(p(c) for p in predicates)]


# ---------------------------------------------------------------------------
# Sorting, buckets, pagination
# ---------------------------------------------------------------------------

def sort_customers(customers: Sequence[CustomerRecord], sort: str) -> List[CustomerRecord]:
    """
    Sort by spend or order count; the other metric breaks ties in the same
    direction. Equal customers keep their upstream order.
    """
    if sort in ("orders_asc", "orders_desc"):
        key = lambda c: (c.orders_count, c.total_spent)  # noqa: E731
    else:
        key = lambda c: (c.total_spent, c.orders_count)  # noqa: E731
    return sorted(customers, key=key, reverse=sort.endswith("_desc"))


def build_buckets(values: Sequence[float], edges: Sequence[float]) -> List[dict]:
    """
    Histogram over half-open ranges [edges[i], edges[i+1]); the last bucket is
    open-ended. Values below the first edge land in the last bucket so every
    value is counted exactly once.
    """
    if not edges:
        raise ValueError("at least one bucket edge is required")

    buckets = []
    for index, edge in enumerate(edges):
        if index == len(edges) - 1:
            label = f"{edge}+"
        else:
            label = f"{edge}-{edges[index + 1] - 1}"
        buckets.append({"label": label, "count": 0})

    for value in values:
        index = bisect.bisect_right(edges, value) - 1
        if index < 0:
            index = len(edges) - 1
        buckets[index]["count"] += 1

    return buckets


@dataclass
class PageWindow:
    page: int
    per_page: int
    total_pages: int
    start_index: int
    end_index: int

    @property
    def start_row(self) -> int:
        return self.start_index + 1 if self.end_index > self.start_index else 0


def resolve_per_page(per_page_param: Optional[str], default_per_page: int = DEFAULT_PAGE_SIZE) -> int:
    """One of the fixed size options, matched on the raw value (no flooring)"""
    try:
        requested = float(per_page_param) if per_page_param else None
    except ValueError:
        return default_per_page
    if requested in PAGE_SIZE_OPTIONS:
        return int(requested)
    return default_per_page


def resolve_page(
    total: int,
    requested_page: int,
    per_page_param: Optional[str],
    default_per_page: int = DEFAULT_PAGE_SIZE
) -> PageWindow:
    """
    Pick the page size and clamp the requested page into [1, total_pages].

    "all" means exactly the filtered total (at least 1). Anything outside the
    fixed size options falls back to `default_per_page`.
    """
    if per_page_param == PER_PAGE_ALL:
        per_page = max(total, 1)
    else:
        per_page = resolve_per_page(per_page_param, default_per_page)

    total_pages = max(1, math.ceil(total / per_page))
    page = min(max(1, requested_page), total_pages)
    start_index = (page - 1) * per_page
    end_index = min(start_index + per_page, total)
    return PageWindow(
        page=page,
        per_page=per_page,
        total_pages=total_pages,
        start_index=start_index,
        end_index=end_index,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

@dataclass
class ReportResult:
    """Filtered and sorted customers plus everything the page needs around them"""
    params: ReportParams
    customers: List[CustomerRecord]
    currency_code: str
    window: PageWindow
    ltv_buckets: List[dict] = field(default_factory=list)
    order_buckets: List[dict] = field(default_factory=list)

    @property
    def page_customers(self) -> List[CustomerRecord]:
        return self.customers[self.window.start_index:self.window.end_index]

    @property
    def per_page_selection(self) -> str:
        return PER_PAGE_ALL if self.params.is_all else str(self.window.per_page)

    def link_params(self, page: Optional[int] = None, export: bool = False) -> str:
        """Query string that reproduces this view (optionally another page or the CSV export)"""
        values = self.params.config_values()
        values["per_page"] = self.per_page_selection
        query = encode_params(values, CONFIG_KEYS)
        extras = []
        if page is not None:
            extras.append(f"page={page}")
        if export:
            extras.append("export=csv")
        return "&".join([p for p in [query] + extras if p])

    def to_dict(self, presets: Optional[List[dict]] = None) -> dict:
        params = self.params
        window = self.window
        return {
            "sort": params.sort,
            "page": window.page,
            "per_page": window.per_page,
            "per_page_selection": self.per_page_selection,
            "query": params.query,
            "tags": params.tags,
            "tags_mode": params.tags_mode,
            "min_orders": params.min_orders,
            "max_orders": params.max_orders,
            "min_spent": params.min_spent,
            "max_spent": params.max_spent,
            "created_start": params.created_start,
            "created_end": params.created_end,
            "first_order_start": params.first_order_start,
            "first_order_end": params.first_order_end,
            "presets": presets or [],
            "charts": {
                "ltv_buckets": self.ltv_buckets,
                "order_buckets": self.order_buckets,
            },
            "total_customers": len(self.customers),
            "currency_code": self.currency_code,
            "customers": [c.to_dict() for c in self.page_customers],
            "pagination": {
                "page": window.page,
                "total_pages": window.total_pages,
                "start_row": window.start_row,
                "end_row": window.end_index,
                "prev_params": self.link_params(page=window.page - 1) if window.page > 1 else None,
                "next_params": self.link_params(page=window.page + 1) if window.page < window.total_pages else None,
            },
            "export_params": self.link_params(export=True),
        }


class CustomerReportService:
    def __init__(
        self,
        client: ShopifyGraphQLClient,
        page_size: int = 250,
        default_per_page: int = DEFAULT_PAGE_SIZE
    ):
        self.client = client
        self.page_size = page_size
        self.default_per_page = default_per_page

    async def fetch_all_customers(self) -> Tuple[List[CustomerRecord], str]:
        """Every customer in upstream order, plus the last non-empty currency code"""
        customers: List[CustomerRecord] = []
        currency_code = "USD"

        async for page in self.client.paginate(REPORT_CUSTOMERS_QUERY, "customers", page_size=self.page_size):
            for node in page.nodes:
                customer = customer_from_node(node)
                if customer.currency_code:
                    currency_code = customer.currency_code
                customers.append(customer)

        log.info(f"Loaded {len(customers)} customers for the report")
        return customers, currency_code

    async def build_report(self, params: ReportParams) -> ReportResult:
        customers, currency_code = await self.fetch_all_customers()
        return run_report(customers, currency_code, params, default_per_page=self.default_per_page)


def run_report(
    customers: Sequence[CustomerRecord],
    currency_code: str,
    params: ReportParams,
    default_per_page: int = DEFAULT_PAGE_SIZE
) -> ReportResult:
    """Filter, sort, bucket and paginate an already-loaded customer list"""
    filtered = filter_customers(customers, build_predicates(params))
    ordered = sort_customers(filtered, params.sort)
    window = resolve_page(len(ordered), params.page, params.per_page_param, default_per_page)

    log.debug(f"Report: {len(ordered)}/{len(customers)} customers after filters, page {window.page}/{window.total_pages}")

    return ReportResult(
        params=params,
        customers=ordered,
        currency_code=currency_code,
        window=window,
        ltv_buckets=build_buckets([c.total_spent for c in ordered], LTV_BUCKET_EDGES),
        order_buckets=build_buckets([c.orders_count for c in ordered], ORDER_BUCKET_EDGES),
    )
