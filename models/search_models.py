"""
Search Backend Wire Models

Request envelope, query body and response shapes for the search backend's
invocation endpoint. Responses are validated once at the boundary against these
declared shapes; anything that does not fit becomes a DecodeError upstream.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Clause = Dict[str, Any]


class BoolQuery(BaseModel):
    """Boolean clause lists of a search query."""
    must: List[Clause] = Field(default_factory=list)
    filter: List[Clause] = Field(default_factory=list)
    must_not: List[Clause] = Field(default_factory=list)

    def to_clause(self) -> Dict[str, Any]:
        return {
            "bool": {
                "must": list(self.must),
                "filter": list(self.filter),
                "must_not": list(self.must_not),
            }
        }


class SearchQuery(BaseModel):
    """
    Declarative search body.

    `from_` is serialized as `from`. `aggs` is the only part the aggregation
    engine writes to or reads from.
    """
    model_config = ConfigDict(populate_by_name=True)

    query: BoolQuery = Field(default_factory=BoolQuery)
    size: int = Field(default=10, ge=0)
    from_: int = Field(default=0, ge=0, alias="from")
    sort: List[Clause] = Field(default_factory=list)
    aggs: Dict[str, Any] = Field(default_factory=dict)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "query": self.query.to_clause(),
            "size": self.size,
            "from": self.from_,
        }
        if self.sort:
            body["sort"] = list(self.sort)
        if self.aggs:
            body["aggs"] = dict(self.aggs)
        return body


class SearchRequestEnvelope(BaseModel):
    """Envelope posted to the search invocation endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    index: str = Field(..., min_length=1, description="Target search index")
    query_type: Literal["search", "get"] = Field(default="search", alias="queryType")
    body: Union[Dict[str, Any], str] = Field(
        ...,
        description="Query body for 'search', document identifier for 'get'"
    )

    @classmethod
    def for_query(cls, index: str, query: SearchQuery) -> "SearchRequestEnvelope":
        return cls(index=index, query_type="search", body=query.to_body())

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class AggregationBucket(BaseModel):
    """One keyed bucket; nested sub-aggregation results are kept as extra fields."""
    model_config = ConfigDict(extra="allow")

    key: Union[str, int, float, List[Any]]
    doc_count: int = Field(..., ge=0)
    key_as_string: Optional[str] = None

    @property
    def sub_aggregations(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class AggregationResult(BaseModel):
    """A terms-style aggregation result."""
    model_config = ConfigDict(extra="allow")

    buckets: List[AggregationBucket] = Field(default_factory=list)
    doc_count_error_upper_bound: Optional[int] = None
    sum_other_doc_count: Optional[int] = None


class SearchHit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    source: Dict[str, Any] = Field(default_factory=dict, alias="_source")


class SearchHits(BaseModel):
    total: int = 0
    hits: List[SearchHit] = Field(default_factory=list)

    @field_validator("total", mode="before")
    @classmethod
    def _total_value(cls, value: Any) -> Any:
        # Backends report either a bare count or {"value": n, "relation": "eq"}
        if isinstance(value, dict):
            return value.get("value", 0)
        return 0 if value is None else value


class SearchResult(BaseModel):
    hits: SearchHits = Field(default_factory=SearchHits)
    aggregations: Dict[str, Any] = Field(default_factory=dict)


class SearchInvocationResponse(BaseModel):
    """Response of the invocation endpoint: the backend result under `body`."""
    body: SearchResult


class GetInvocationResponse(BaseModel):
    """Response of a `get` invocation: the document source under `body._source`."""
    body: Dict[str, Any]

    @property
    def document(self) -> Optional[Dict[str, Any]]:
        if self.body.get("found") is False:
            return None
        source = self.body.get("_source")
        return source if isinstance(source, dict) else None


class ProductSummary(BaseModel):
    """Product hit normalized from the index's snake_case source fields."""
    id: str
    product_id: Optional[int] = None
    brand_product_id: Optional[str] = None
    product_name: Optional[str] = None
    short_description: Optional[str] = None
    brand_name: Optional[str] = None
    product_index_name: Optional[str] = None
    unit_list_price: Optional[float] = None
    assets: List[Dict[str, Any]] = Field(default_factory=list)
    source: Dict[str, Any] = Field(default_factory=dict)


class ProductSearchResponse(BaseModel):
    success: bool
    data: List[ProductSummary] = Field(default_factory=list)
    total: int = 0
