"""Data models for the storefront API client layer."""
from .request_context import RequestContext
from .identity_claims import IdentityClaims
from .client_descriptor import ClientDescriptor
from .api_errors import (
    ApiError,
    NetworkError,
    AuthError,
    ClientError,
    ServerError,
    DecodeError,
    ContextError,
    AggregationPartialFailure,
)
from .search_models import (
    BoolQuery,
    SearchQuery,
    SearchRequestEnvelope,
    AggregationBucket,
    AggregationResult,
    ProductSummary,
    ProductSearchResponse,
)
from .facet_models import (
    ActiveFilters,
    CategoryContext,
    FacetRequest,
    FacetValue,
    FacetResult,
)

__all__ = [
    # Request context and identity
    "RequestContext",
    "IdentityClaims",
    "ClientDescriptor",
    # Errors
    "ApiError",
    "NetworkError",
    "AuthError",
    "ClientError",
    "ServerError",
    "DecodeError",
    "ContextError",
    "AggregationPartialFailure",
    # Search wire models
    "BoolQuery",
    "SearchQuery",
    "SearchRequestEnvelope",
    "AggregationBucket",
    "AggregationResult",
    "ProductSummary",
    "ProductSearchResponse",
    # Facets
    "ActiveFilters",
    "CategoryContext",
    "FacetRequest",
    "FacetValue",
    "FacetResult",
]
