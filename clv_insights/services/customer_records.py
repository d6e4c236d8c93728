"""
Normalized customer records built from Shopify GraphQL customer nodes.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser
from dateutil import tz

from clv_insights.utils.helpers import to_amount, to_count


@dataclass
class CustomerRecord:
    """One customer as the analytics and report views see it"""
    id: str
    name: str
    email: str
    total_spent: float = 0.0
    orders_count: int = 0
    currency_code: Optional[str] = None
    created_at: Optional[str] = None
    first_order_date: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "total_spent": self.total_spent,
            "orders_count": self.orders_count,
            "created_at": self.created_at,
            "first_order_date": self.first_order_date,
            "tags": list(self.tags),
        }


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an upstream ISO timestamp; None when missing or malformed"""
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        # Upstream timestamps are UTC
        parsed = parsed.replace(tzinfo=tz.UTC)
    return parsed


def first_order_created_at(node: Dict[str, Any]) -> Optional[str]:
    """createdAt of the first node of `orders(first: 1, sortKey: CREATED_AT)`"""
    orders = (node.get("orders") or {}).get("nodes") or []
    if not orders:
        return None
    return orders[0].get("createdAt") or None


def customer_from_node(node: Dict[str, Any]) -> CustomerRecord:
    """Build a CustomerRecord from a GraphQL customer node"""
    email = node.get("email")
    money = node.get("amountSpent") or {}
    return CustomerRecord(
        id=node.get("id"),
        name=node.get("displayName") or email or "Unknown",
        email=email or "-",
        total_spent=to_amount(money.get("amount")),
        orders_count=to_count(node.get("numberOfOrders")),
        currency_code=money.get("currencyCode") or None,
        created_at=node.get("createdAt") or None,
        first_order_date=first_order_created_at(node),
        tags=[str(tag).lower() for tag in (node.get("tags") or [])],
    )
