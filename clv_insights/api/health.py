"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime
from clv_insights.config import get_settings
from clv_insights import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "shop": settings.shopify_shop_url or None,
        "limits": {
            "page_size": settings.page_size,
            "max_customers": settings.max_customers,
            "max_orders": settings.max_orders,
        },
        "timestamp": datetime.utcnow().isoformat()
    }
