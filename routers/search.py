"""
Search router: product detail lookup and smart-filter facets.

The caller's bearer token (and optional x-tenant header) is forwarded to the
search backend as an explicit request context. The context carries the
caller's own credential store, so the shared clients' store and cookie jar are
never consulted for these routes.
"""
import logging
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from models.api_errors import ApiError
from models.facet_models import FacetRequest
from models.request_context import RequestContext
from services.facet_service import FacetAggregationService
from services.registry import ServiceRegistry, get_service_registry
from services.search_service import SearchService
from utils.context_utils import SearchContextResolver, get_request_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["search"])

PRODUCT_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=7200"


def get_registry() -> ServiceRegistry:
    return get_service_registry()


def get_caller_context(request: Request) -> RequestContext:
    """Context of the incoming caller; an explicit x-tenant header wins over the token issuer."""
    store = get_request_store(request)
    context = replace(SearchContextResolver(store).resolve(), credential_store=store)
    tenant = request.headers.get("x-tenant")
    if tenant:
        context = replace(context, tenant_code=tenant)
    return context


def product_identifier(product_id: str) -> str:
    """Numeric ids become index names (Prod + 10 zero-padded digits)."""
    if product_id.isdigit():
        return f"Prod{product_id.zfill(10)}"
    return product_id


def _error_status(error: ApiError) -> int:
    return error.status if error.status and error.status >= 400 else 500


@router.get("/opensearch/products/{product_id}")
async def get_product(
    product_id: str,
    index: Optional[str] = None,
    context: RequestContext = Depends(get_caller_context),
    registry: ServiceRegistry = Depends(get_registry),
):
    """
    Fetch one product document from the search index.

    Args:
        product_id: Numeric product id or product index name (e.g. Prod0000012390)
        index: Search index; defaults to `<tenant>pgandproducts`

    Raises:
        HTTPException: 400 when no index can be determined
    """
    elastic_index = index
    if not elastic_index and context.tenant_code:
        elastic_index = f"{context.tenant_code.lower()}pgandproducts"
    if not elastic_index:
        raise HTTPException(
            status_code=400,
            detail="Search index is required. Provide the 'index' query parameter or an x-tenant header."
        )

    identifier = product_identifier(product_id)
    search_service = registry.get(SearchService)

    try:
        document = await search_service.get_product(identifier, elastic_index, context)
    except ApiError as e:
        logger.error(f"Product lookup failed: index={elastic_index}, id={identifier}, status={e.status}, error={e.message}")
        return JSONResponse(
            status_code=_error_status(e),
            content={"success": False, "error": f"Search request failed: {e.message}", "productId": product_id},
        )

    if document is None:
        logger.info(f"Product not found: index={elastic_index}, id={identifier}")
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": "Product not found", "productId": product_id},
        )

    return JSONResponse(
        content={"success": True, "data": document},
        headers={"Cache-Control": PRODUCT_CACHE_CONTROL},
    )


@router.post("/smart-filters")
async def smart_filters(
    body: FacetRequest,
    context: RequestContext = Depends(get_caller_context),
    registry: ServiceRegistry = Depends(get_registry),
):
    """
    Faceted-filter data for a category page.

    Value lookups that fail are listed under `partial_failures`; the response
    still reports success.
    """
    facet_service = registry.get(FacetAggregationService)

    try:
        result = await facet_service.get_facets(body, context)
    except ApiError as e:
        logger.error(f"Smart filter aggregation failed: index={body.index}, status={e.status}, error={e.message}")
        return JSONResponse(
            status_code=_error_status(e),
            content={"success": False, "error": e.message},
        )

    content = result.model_dump(exclude={"partial_failure"})
    content["partial_failures"] = result.partial_failure.failures if result.partial_failure else []
    return content
