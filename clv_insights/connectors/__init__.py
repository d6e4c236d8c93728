"""Data connectors for CLV Insights"""

from clv_insights.connectors.shopify_graphql import ShopifyGraphQLClient, ShopifyQueryError

__all__ = [
    "ShopifyGraphQLClient",
    "ShopifyQueryError",
]
