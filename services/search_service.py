"""
Search Service

Product search and aggregations against the search backend's invocation
endpoint. Every request is wrapped in a SearchRequestEnvelope and every
response is validated against its declared shape before use.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from models.request_context import RequestContext
from models.search_models import (
    GetInvocationResponse,
    ProductSearchResponse,
    ProductSummary,
    SearchHit,
    SearchInvocationResponse,
    SearchQuery,
    SearchRequestEnvelope,
    SearchResult,
)
from services.base_service import BaseService
from services.client_factory import SEARCH, ApiClients
from services.search_cache import AGGREGATION_PREFIX, SEARCH_PREFIX, SearchCache, cache_key
from utils.context_utils import ContextProvider, SearchContextResolver
from utils.search_queries import build_product_ids_query, build_text_search_query, with_code_filters

logger = logging.getLogger(__name__)


def _first(source: Dict[str, Any], *keys: str, kind: type = str) -> Any:
    for key in keys:
        value = source.get(key)
        if isinstance(value, kind) and not isinstance(value, bool):
            return value
    return None


def to_product_summary(hit: SearchHit) -> ProductSummary:
    """Normalize a hit's snake_case source into a ProductSummary."""
    source = hit.source
    product_id = _first(source, "product_id", "productId", kind=int)
    if product_id is None and hit.id.isdigit():
        product_id = int(hit.id)

    price = _first(source, "unit_list_price", "unitListPrice", kind=(int, float))

    return ProductSummary(
        id=hit.id,
        product_id=product_id,
        brand_product_id=_first(source, "brand_product_id", "brandProductId"),
        product_name=_first(source, "product_name", "productName"),
        short_description=_first(
            source, "shortDescription", "product_short_description", "productShortDescription"
        ),
        brand_name=_first(source, "brand_name", "brandName", "brands_name", "brandsName"),
        product_index_name=_first(source, "product_index_name", "productIndexName"),
        unit_list_price=float(price) if price is not None else None,
        assets=source.get("product_assetss") or source.get("productAssetss") or [],
        source=source,
    )


def to_product_response(result: SearchResult) -> ProductSearchResponse:
    products = [to_product_summary(hit) for hit in result.hits.hits]
    return ProductSearchResponse(
        success=True,
        data=products,
        total=result.hits.total or len(products),
    )


class SearchService(BaseService):
    """
    Search backend client.

    Throwing methods raise ApiError; `*_safe` methods return an empty
    ProductSearchResponse with success=False (or None) instead.
    """

    default_client_name = SEARCH
    context_resolver_class = SearchContextResolver

    def __init__(
        self,
        clients: ApiClients,
        context_provider: Optional[ContextProvider] = None,
        cache: Optional[SearchCache] = None,
    ):
        super().__init__(clients, context_provider)
        self.cache = cache

    @classmethod
    def from_registry(cls, registry) -> "SearchService":
        return cls(registry.clients, cache=registry.cache)

    async def search(
        self,
        index: str,
        query: SearchQuery,
        context: Optional[RequestContext] = None,
    ) -> SearchResult:
        """Run a search query and return the validated backend result."""
        envelope = SearchRequestEnvelope.for_query(index, query)
        payload = await self.call_with("", envelope.to_payload(), context=context)
        return self._decode(payload, SearchInvocationResponse).body

    async def search_products(
        self,
        index: str,
        query: SearchQuery,
        catalog_codes: Optional[Sequence[str]] = None,
        equipment_codes: Optional[Sequence[str]] = None,
        context: Optional[RequestContext] = None,
    ) -> ProductSearchResponse:
        query = with_code_filters(query, catalog_codes, equipment_codes)

        async def fetch():
            result = await self.search(index, query, context)
            return to_product_response(result).model_dump()

        if self.cache is None:
            payload = await fetch()
        else:
            key = cache_key(SEARCH_PREFIX, index, query.to_body())
            payload = await self.cache.get_or_fetch(key, fetch, self.cache.search_ttl_seconds)

        response = ProductSearchResponse.model_validate(payload)
        logger.debug(f"Product search: index={index}, hits={len(response.data)}, total={response.total}")
        return response

    async def search_products_safe(
        self,
        index: str,
        query: SearchQuery,
        catalog_codes: Optional[Sequence[str]] = None,
        equipment_codes: Optional[Sequence[str]] = None,
        context: Optional[RequestContext] = None,
    ) -> ProductSearchResponse:
        try:
            return await self.search_products(index, query, catalog_codes, equipment_codes, context)
        except Exception as e:
            logger.warning(f"Product search failed: index={index}, error={e!r}")
            return ProductSearchResponse(success=False)

    async def search_products_by_text(
        self,
        text: str,
        index: str,
        limit: int = 20,
        offset: int = 0,
        catalog_codes: Optional[Sequence[str]] = None,
        equipment_codes: Optional[Sequence[str]] = None,
        context: Optional[RequestContext] = None,
    ) -> ProductSearchResponse:
        query = build_text_search_query(text, limit, offset)
        return await self.search_products_safe(index, query, catalog_codes, equipment_codes, context)

    async def get_product_by_id(
        self,
        product_id: int,
        index: str,
        context: Optional[RequestContext] = None,
    ) -> Optional[ProductSummary]:
        result = await self.search_products_safe(index, build_product_ids_query([int(product_id)]), context=context)
        return result.data[0] if result.data else None

    async def get_products_by_ids(
        self,
        product_ids: Sequence[int],
        index: str,
        context: Optional[RequestContext] = None,
    ) -> List[ProductSummary]:
        if not product_ids:
            return []
        result = await self.search_products_safe(index, build_product_ids_query(product_ids), context=context)
        return result.data

    async def get_product(
        self,
        identifier: str,
        index: str,
        context: Optional[RequestContext] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch one document by its index identifier (e.g. Prod0000012390).

        Returns:
            The document source, or None when the backend reports it not found
        """
        envelope = SearchRequestEnvelope(index=index, query_type="get", body=identifier)
        payload = await self.call_with("", envelope.to_payload(), context=context)
        return self._decode(payload, GetInvocationResponse).document

    async def get_product_safe(
        self,
        identifier: str,
        index: str,
        context: Optional[RequestContext] = None,
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.get_product(identifier, index, context)
        except Exception as e:
            logger.warning(f"Product lookup failed: index={index}, id={identifier}, error={e!r}")
            return None

    async def get_aggregations(
        self,
        index: str,
        query: SearchQuery,
        context: Optional[RequestContext] = None,
    ) -> Dict[str, Any]:
        """Run an aggregation-only query and return its `aggregations` object."""

        async def fetch():
            result = await self.search(index, query, context)
            return result.aggregations

        if self.cache is None:
            return await fetch()

        key = cache_key(AGGREGATION_PREFIX, index, query.to_body())
        return await self.cache.get_or_fetch(key, fetch, self.cache.aggregation_ttl_seconds)

    async def get_aggregations_safe(
        self,
        index: str,
        query: SearchQuery,
        context: Optional[RequestContext] = None,
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.get_aggregations(index, query, context)
        except Exception as e:
            logger.warning(f"Aggregation query failed: index={index}, error={e!r}")
            return None
