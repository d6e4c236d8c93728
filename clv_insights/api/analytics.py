"""
Customer Analytics API

Lifetime value totals, top customers, new customers for a date window and
single-customer referral lookup.
"""
import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from clv_insights.api.deps import get_analytics_service
from clv_insights.config import get_settings
from clv_insights.connectors.shopify_graphql import ShopifyQueryError
from clv_insights.services.customer_analytics_service import CustomerAnalyticsService
from clv_insights.services.date_range import normalize_date_range
from clv_insights.utils.logger import log

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("")
async def get_analytics(
    start: Optional[str] = Query(None, description="Window start (YYYY-MM-DD)"),
    end: Optional[str] = Query(None, description="Window end (YYYY-MM-DD)"),
    customer_email: Optional[str] = Query(None, description="Exact email to look up"),
    service: CustomerAnalyticsService = Depends(get_analytics_service),
):
    """Analytics page payload: totals, top customers, new customers, lookup, notes."""
    window = normalize_date_range(start, end, range_days=get_settings().default_range_days)
    lookup_email = (customer_email or "").strip()
    try:
        data = await service.get_dashboard(window, lookup_email)
        return {"success": True, "data": data}
    except (ShopifyQueryError, httpx.HTTPError) as e:
        log.error(f"Error in /analytics: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        log.error(f"Error in /analytics: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
