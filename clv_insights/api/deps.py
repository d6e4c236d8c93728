"""
Shared FastAPI dependencies: Shopify client, shop scope, configured services.
"""
from fastapi import Depends

from clv_insights.config import get_settings
from clv_insights.connectors.shopify_graphql import ShopifyGraphQLClient
from clv_insights.services.customer_analytics_service import CustomerAnalyticsService
from clv_insights.services.customer_report_service import CustomerReportService


def get_shop() -> str:
    """Shop domain that owns saved presets (the configured store)"""
    settings = get_settings()
    return settings.shopify_shop_url.replace('https://', '').replace('http://', '').rstrip('/')


def get_shopify_client() -> ShopifyGraphQLClient:
    settings = get_settings()
    return ShopifyGraphQLClient(
        settings.shopify_shop_url,
        settings.shopify_access_token,
        settings.shopify_api_version,
    )


def get_analytics_service(
    client: ShopifyGraphQLClient = Depends(get_shopify_client),
) -> CustomerAnalyticsService:
    settings = get_settings()
    return CustomerAnalyticsService(
        client,
        page_size=settings.page_size,
        max_customers=settings.max_customers,
        max_orders=settings.max_orders,
    )


def get_report_service(
    client: ShopifyGraphQLClient = Depends(get_shopify_client),
) -> CustomerReportService:
    settings = get_settings()
    return CustomerReportService(
        client,
        page_size=settings.page_size,
        default_per_page=settings.report_default_page_size,
    )
