"""
Facet Aggregation Service

Assembles faceted-filter data for a catalog-browsing context from a search
backend that returns only one dynamic level of keyed terms per request.

Three phases:
1. Discovery: one size-0 query returns the static facets (brands,
   categories, price, stock) and the names of every dynamic facet family.
2. Values: one query per discovered name returns that name's value buckets,
   under the same filter scope as its discovery.
3. Merge: family -> name -> [(value, count)] in discovery order, values in
   backend order.

A discovery failure fails the whole operation. A failed value query drops
only that name and is recorded on the result's `partial_failure`.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from models.api_errors import AggregationPartialFailure, DecodeError
from models.facet_models import FacetRequest, FacetResult, FacetValue, PriceStats, StockCounts
from models.request_context import RequestContext
from models.search_models import AggregationResult
from services.base_service import BaseService
from services.client_factory import SEARCH, ApiClients
from services.search_service import SearchService
from utils.context_utils import ContextProvider, SearchContextResolver
from utils.search_queries import (
    DYNAMIC_FAMILIES,
    MATCHING_AGG,
    NAME_FILTER_AGG,
    NAMES_AGG,
    VALUES_AGG,
    DynamicFacetFamily,
    build_discovery_query,
    build_value_query,
)

logger = logging.getLogger(__name__)

# Bucket keys the index uses for missing values
_EMPTY_KEYS = ("", "null")


def _walk(aggregations: Dict[str, Any], path: Sequence[str]) -> Any:
    node: Any = aggregations
    for key in path:
        if not isinstance(node, dict):
            raise DecodeError(f"Aggregation {'.'.join(path)} is not an object")
        node = node.get(key)
        if node is None:
            return None
    return node


def parse_terms(aggregations: Dict[str, Any], *path: str) -> AggregationResult:
    """
    Read the terms aggregation at `path`.

    A missing aggregation is empty; one that does not match the terms shape
    raises DecodeError.
    """
    node = _walk(aggregations, path)
    if node is None:
        return AggregationResult()
    try:
        return AggregationResult.model_validate(node)
    except ValidationError as e:
        raise DecodeError(f"Malformed aggregation {'.'.join(path)}", data=node) from e


def _bucket_key(bucket) -> str:
    if bucket.key_as_string:
        return bucket.key_as_string
    if isinstance(bucket.key, list):
        return "|".join(str(part) for part in bucket.key)
    return str(bucket.key)


def to_facet_values(result: AggregationResult) -> List[FacetValue]:
    """Buckets as (value, count) in backend order, minus empty keys."""
    values = []
    for bucket in result.buckets:
        key = _bucket_key(bucket)
        if key.strip() in _EMPTY_KEYS:
            continue
        values.append(FacetValue(value=key, count=bucket.doc_count))
    return values


def discovered_names(result: AggregationResult) -> List[str]:
    names: List[str] = []
    for value in to_facet_values(result):
        if value.value not in names:
            names.append(value.value)
    return names


def _number(node: Any, key: str) -> float:
    value = node.get(key) if isinstance(node, dict) else None
    return float(value) if isinstance(value, (int, float)) else 0.0


def _doc_count(aggregations: Dict[str, Any], *path: str) -> int:
    node = _walk(aggregations, path)
    if isinstance(node, dict) and isinstance(node.get("doc_count"), int):
        return node["doc_count"]
    return 0


class FacetAggregationService(BaseService):
    default_client_name = SEARCH
    context_resolver_class = SearchContextResolver

    def __init__(
        self,
        clients: ApiClients,
        context_provider: Optional[ContextProvider] = None,
        search_service: Optional[SearchService] = None,
        max_concurrency: int = 1,
        families: Sequence[DynamicFacetFamily] = DYNAMIC_FAMILIES,
    ):
        super().__init__(clients, context_provider)
        self.search_service = search_service or SearchService(clients, self.context_provider)
        self.max_concurrency = max(1, max_concurrency)
        self.families = tuple(families)

    @classmethod
    def from_registry(cls, registry) -> "FacetAggregationService":
        return cls(
            registry.clients,
            search_service=registry.get(SearchService),
            max_concurrency=registry.facet_max_concurrency,
        )

    async def get_facets(
        self,
        request: FacetRequest,
        context: Optional[RequestContext] = None,
    ) -> FacetResult:
        """
        Run the three-phase aggregation.

        Raises:
            ApiError: The discovery query failed or returned a malformed shape
        """
        if context is None:
            context = self.resolve_context()
        category_ids = request.category.scope_ids if request.category else None
        filters = request.active_filters

        discovery = build_discovery_query(filters, category_ids, self.families)
        aggregations = await self.search_service.get_aggregations(request.index, discovery, context)

        result = self._static_facets(aggregations)
        names = self._discover(aggregations)
        lookups = [(family, name) for family in self.families for name in names.get(family.name, [])]

        outcomes = await self._fetch_all(request.index, lookups, filters, category_ids, context)

        failures = AggregationPartialFailure()
        facets: Dict[str, Dict[str, List[FacetValue]]] = {}
        for (family, name), outcome in zip(lookups, outcomes):
            if isinstance(outcome, Exception):
                failures.add(family.name, name, outcome)
                continue
            facets.setdefault(family.name, {})[name] = outcome

        result.facets = facets
        result.partial_failure = failures if failures else None

        logger.info(
            f"Facets aggregated: index={request.index}, names={len(lookups)}, "
            f"failed={len(failures.failures)}, total_hits={result.total_hits}"
        )
        return result

    async def get_facets_safe(
        self,
        request: FacetRequest,
        context: Optional[RequestContext] = None,
    ) -> FacetResult:
        try:
            return await self.get_facets(request, context)
        except Exception as e:
            logger.warning(f"Facet aggregation failed: index={request.index}, error={e!r}")
            return FacetResult(success=False)

    def _static_facets(self, aggregations: Dict[str, Any]) -> FacetResult:
        price = _walk(aggregations, ("price_filter_context", "price_stats"))
        return FacetResult(
            total_hits=_doc_count(aggregations, MATCHING_AGG),
            brands=to_facet_values(parse_terms(aggregations, "brand_filter_context", "brands")),
            categories=to_facet_values(parse_terms(aggregations, "category_filter_context", "categories")),
            price=PriceStats(min=_number(price, "min"), max=_number(price, "max")),
            stock=StockCounts(
                in_stock=_doc_count(aggregations, "stock_filter_context", "in_stock"),
                out_of_stock=_doc_count(aggregations, "stock_filter_context", "out_of_stock"),
            ),
        )

    def _discover(self, aggregations: Dict[str, Any]) -> Dict[str, List[str]]:
        names = {}
        for family in self.families:
            terms = parse_terms(aggregations, family.context_agg, family.name, NAMES_AGG)
            names[family.name] = discovered_names(terms)
            logger.debug(f"Discovered facet names: family={family.name}, count={len(names[family.name])}")
        return names

    async def _fetch_values(
        self,
        index: str,
        family: DynamicFacetFamily,
        name: str,
        filters,
        category_ids,
        context: RequestContext,
    ) -> List[FacetValue]:
        query = build_value_query(family, name, filters, category_ids)
        aggregations = await self.search_service.get_aggregations(index, query, context)
        return to_facet_values(parse_terms(aggregations, family.name, NAME_FILTER_AGG, VALUES_AGG))

    async def _fetch_isolated(self, index, family, name, filters, category_ids, context):
        try:
            return await self._fetch_values(index, family, name, filters, category_ids, context)
        except Exception as e:
            logger.warning(f"Facet value query failed: family={family.name}, name={name}, error={e!r}")
            return e

    async def _fetch_all(
        self,
        index: str,
        lookups: List[Tuple[DynamicFacetFamily, str]],
        filters,
        category_ids,
        context: RequestContext,
    ) -> List[Any]:
        """One outcome (values or the exception) per lookup, in lookup order."""
        if self.max_concurrency == 1:
            outcomes = []
            for family, name in lookups:
                outcomes.append(await self._fetch_isolated(index, family, name, filters, category_ids, context))
            return outcomes

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(family, name):
            async with semaphore:
                return await self._fetch_isolated(index, family, name, filters, category_ids, context)

        return await asyncio.gather(*(bounded(family, name) for family, name in lookups))
