"""
Referral attribution formatting for the single-customer lookup.

Works on the `firstVisit` snapshot Shopify attaches to an order's
customer journey summary.
"""
from typing import Any, Dict, Optional

from clv_insights.utils.url_parsing import referrer_hostname

UTM_FIELDS = ("source", "medium", "campaign", "term", "content")


def format_utm(utm: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    "source=google, medium=cpc" style summary of the non-empty UTM fields.

    Fields always appear in source, medium, campaign, term, content order.
    Returns None when nothing is set.
    """
    if not utm:
        return None
    parts = [f"{field}={utm[field]}" for field in UTM_FIELDS if utm.get(field)]
    return ", ".join(parts) if parts else None


def format_referrer_channel(visit: Optional[Dict[str, Any]]) -> str:
    """
    Human-readable acquisition channel for a first visit.

    Priority: UTM source/medium, then the named source (with description),
    then the referrer hostname, then "Unknown".
    """
    if not visit:
        return "Unknown"

    utm = visit.get("utmParameters") or {}
    if utm.get("source") or utm.get("medium"):
        summary = format_utm(utm)
        return f"UTM ({summary})" if summary else "UTM"

    source = visit.get("source")
    if source:
        description = visit.get("sourceDescription")
        return f"{source} - {description}" if description else source

    referrer = referrer_hostname(visit.get("referrerUrl"))
    if referrer:
        return referrer

    return "Unknown"
