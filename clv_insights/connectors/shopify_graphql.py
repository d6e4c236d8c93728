"""
Shopify GraphQL Connector

Thin transport for the Shopify Admin GraphQL API.
Requests are sequential: pagination awaits each page before asking for the next.
"""
import httpx
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from clv_insights.utils.logger import log


class ShopifyQueryError(Exception):
    """Raised when a GraphQL response carries a non-empty `errors` array"""

    def __init__(self, errors: List[Any]):
        self.errors = errors
        super().__init__(f"Shopify GraphQL query failed: {errors}")


@dataclass
class PageInfo:
    """Cursor state returned with every connection page"""
    has_next_page: bool = False
    end_cursor: Optional[str] = None


@dataclass
class Page:
    """One page of a cursor-paginated connection"""
    nodes: List[Dict[str, Any]]
    page_info: PageInfo


class ShopifyGraphQLClient:
    """
    Client for the Shopify Admin GraphQL endpoint

    Args:
        store_url: Shopify store URL (e.g., "your-store.myshopify.com")
        access_token: Shopify Admin API access token
        api_version: API version to use
        transport: Optional httpx transport (used to stub the API in tests)
    """

    def __init__(
        self,
        store_url: str,
        access_token: str,
        api_version: str = "2025-01",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.store_url = store_url.replace('https://', '').replace('http://', '').rstrip('/')
        self.access_token = access_token
        self.api_version = api_version
        self.endpoint = f"https://{self.store_url}/admin/api/{api_version}/graphql.json"
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for Shopify API requests"""
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json"
        }

    async def query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GraphQL document and return its `data` object

        Raises:
            ShopifyQueryError: the response carried GraphQL errors
            httpx.HTTPStatusError: the endpoint answered with a non-2xx status
        """
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self.endpoint,
                json={"query": document, "variables": variables or {}},
                headers=self._get_headers()
            )
            response.raise_for_status()
            payload = response.json()

        errors = payload.get("errors")
        if errors:
            log.error(f"Shopify GraphQL errors: {errors}")
            raise ShopifyQueryError(errors)

        return payload.get("data") or {}

    async def paginate(
        self,
        document: str,
        connection: str,
        variables: Optional[Dict[str, Any]] = None,
        page_size: int = 250,
        limit: Optional[int] = None
    ) -> AsyncIterator[Page]:
        """
        Walk a cursor-paginated connection page by page

        The document must accept `$first: Int!` and `$after: String` and select
        `pageInfo { hasNextPage endCursor }` and `nodes` on `connection`.

        Args:
            document: GraphQL query
            connection: Top-level field holding the connection (e.g. "customers")
            variables: Extra variables merged into every page request
            page_size: Nodes per page
            limit: Stop once this many nodes were yielded (None = walk everything)

        Yields:
            Page objects in upstream order. The last page's page_info tells the
            caller whether more nodes were left behind by `limit`.
        """
        after = None
        fetched = 0
        page_number = 0

        while True:
            first = page_size
            if limit is not None:
                first = min(page_size, limit - fetched)
                if first <= 0:
                    break

            data = await self.query(document, {**(variables or {}), "first": first, "after": after})
            payload = data.get(connection) or {}
            nodes = payload.get("nodes") or []
            raw_info = payload.get("pageInfo") or {}
            page_info = PageInfo(
                has_next_page=bool(raw_info.get("hasNextPage")),
                end_cursor=raw_info.get("endCursor"),
            )

            page_number += 1
            fetched += len(nodes)
            log.debug(f"Fetched {connection} page {page_number}: {len(nodes)} nodes ({fetched} total)")

            yield Page(nodes=nodes, page_info=page_info)

            if not page_info.has_next_page:
                break
            after = page_info.end_cursor
