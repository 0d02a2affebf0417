"""
Facet Data Models

Inputs to and results of the faceted-filter aggregation.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.api_errors import AggregationPartialFailure


class ActiveFilters(BaseModel):
    """Filters the shopper has currently applied."""
    brand: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: Optional[bool] = None
    variant_attributes: Dict[str, List[str]] = Field(default_factory=dict)
    product_specifications: Dict[str, List[str]] = Field(default_factory=dict)
    catalog_codes: List[str] = Field(default_factory=list)
    equipment_codes: List[str] = Field(default_factory=list)


class CategoryContext(BaseModel):
    """The category page being browsed."""
    category_id: int
    category_level: int = 0
    parent_id: Optional[int] = None
    category_name: Optional[str] = None
    path_ids: List[int] = Field(default_factory=list)

    @property
    def scope_ids(self) -> List[int]:
        return self.path_ids or [self.category_id]


class FacetRequest(BaseModel):
    """Input to the faceted-filter aggregation."""
    index: str = Field(..., min_length=1)
    category: Optional[CategoryContext] = None
    active_filters: ActiveFilters = Field(default_factory=ActiveFilters)


class FacetValue(BaseModel):
    value: str
    count: int


class PriceStats(BaseModel):
    min: float = 0
    max: float = 0


class StockCounts(BaseModel):
    in_stock: int = 0
    out_of_stock: int = 0


class FacetResult(BaseModel):
    """
    Merged facet data.

    `facets` maps facet family -> facet name -> values in backend order,
    with families and names in the order they were discovered.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool = True
    total_hits: int = 0
    brands: List[FacetValue] = Field(default_factory=list)
    categories: List[FacetValue] = Field(default_factory=list)
    price: PriceStats = Field(default_factory=PriceStats)
    stock: StockCounts = Field(default_factory=StockCounts)
    facets: Dict[str, Dict[str, List[FacetValue]]] = Field(default_factory=dict)
    partial_failure: Optional[AggregationPartialFailure] = None

    @property
    def is_partial(self) -> bool:
        return bool(self.partial_failure)
