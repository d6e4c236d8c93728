"""
CSV export of the customer report.
"""
import csv
import io
from datetime import date
from typing import Iterable, List, Optional

from clv_insights.services.customer_records import CustomerRecord
from clv_insights.services.date_range import utc_today
from clv_insights.utils.helpers import format_number

CSV_HEADER = [
    "Customer",
    "Email",
    "Orders",
    "TotalSpent",
    "CustomerCreatedAt",
    "FirstOrderDate",
    "Tags",
]
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def customer_row(customer: CustomerRecord) -> List[str]:
    return [
        customer.name,
        customer.email,
        str(customer.orders_count),
        format_number(customer.total_spent),
        customer.created_at or "",
        customer.first_order_date or "",
        ", ".join(customer.tags),
    ]


def build_csv(customers: Iterable[CustomerRecord]) -> str:
    """
    Serialize customers with the fixed header.

    Fields containing a comma, quote or newline are quoted and internal
    quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for customer in customers:
        writer.writerow(customer_row(customer))
    return buffer.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    today = today or utc_today()
    return f"customer-report-{today.isoformat()}.csv"
