"""
Search Query Builders

Declarative clauses for the product index and the two query shapes used by
the faceted-filter aggregation:

- discovery: size 0, one filter context per facet family, nested terms
  aggregations returning the *names* of each dynamic family
- value: size 0, one nested terms aggregation returning the values of a
  single discovered name

Every facet family is aggregated under the active filters minus its own, so
a shopper still sees the other options of a filter they have applied.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from models.facet_models import ActiveFilters
from models.search_models import BoolQuery, SearchQuery

Clause = Dict[str, Any]

# Bucket cap for name discovery and value lookups
MAX_FACET_BUCKETS = 10000
DEFAULT_BUCKET_SIZE = 100

BRAND_FIELD = "brands_name.keyword"
CATEGORY_ID_FIELD = "product_categories.categoryId"
CATEGORY_NAME_FIELD = "product_categories.categoryName.keyword"
PRICE_FIELD = "unit_list_price"
STOCK_FIELD = "inventory.totalStock"
CATALOG_CODE_FIELD = "catalog_code.keyword"
EQUIPMENT_CODE_FIELD = "equipment_code.keyword"

# Filter families that can be left out of a filter context
BRAND = "brand"
PRICE = "price"
STOCK = "stock"
VARIANT_ATTRIBUTES = "variant_attributes"
PRODUCT_SPECIFICATIONS = "product_specifications"
CATALOG_CODES = "catalog_codes"
EQUIPMENT_CODES = "equipment_codes"
CATEGORIES = "categories"

MATCHING_AGG = "matching"
NAMES_AGG = "names"
NAME_FILTER_AGG = "name_filter"
VALUES_AGG = "values"


@dataclass(frozen=True)
class DynamicFacetFamily:
    """A nested facet family whose names are only known from the index."""
    name: str
    nested_path: str
    name_field: str
    value_field: str

    @property
    def context_agg(self) -> str:
        return f"{self.name}_filter_context"


VARIANT_ATTRIBUTE_FAMILY = DynamicFacetFamily(
    name=VARIANT_ATTRIBUTES,
    nested_path="variant_attributes",
    name_field="variant_attributes.attribute_name.keyword",
    value_field="variant_attributes.attribute_value.keyword",
)
SPECIFICATION_FAMILY = DynamicFacetFamily(
    name=PRODUCT_SPECIFICATIONS,
    nested_path="specifications",
    name_field="specifications.spec_name.keyword",
    value_field="specifications.spec_value.keyword",
)
DYNAMIC_FAMILIES = (VARIANT_ATTRIBUTE_FAMILY, SPECIFICATION_FAMILY)


def base_must() -> List[Clause]:
    return [{"term": {"is_published": 1}}]


def base_must_not() -> List[Clause]:
    return [
        {"match": {"pg_index_name": {"query": "PrdGrp0*"}}},
        {"term": {"is_internal": True}},
    ]


def base_scope() -> BoolQuery:
    """Published, non-internal products."""
    return BoolQuery(must=base_must(), must_not=base_must_not())


def category_filter(category_ids: Sequence[int]) -> Clause:
    if len(category_ids) == 1:
        return {"term": {CATEGORY_ID_FIELD: category_ids[0]}}
    return {"terms": {CATEGORY_ID_FIELD: list(category_ids)}}


def brand_filter(brand: str) -> Clause:
    return {"term": {BRAND_FIELD: brand}}


def price_range_filter(min_price: Optional[float] = None, max_price: Optional[float] = None) -> Optional[Clause]:
    if min_price is None and max_price is None:
        return None
    bounds = {}
    if min_price is not None:
        bounds["gte"] = min_price
    if max_price is not None:
        bounds["lte"] = max_price
    return {"range": {PRICE_FIELD: bounds}}


def in_stock_clause() -> Clause:
    return {"range": {STOCK_FIELD: {"gt": 0}}}


def out_of_stock_clause() -> Clause:
    # Products without an inventory record count as out of stock
    return {
        "bool": {
            "should": [
                {"range": {STOCK_FIELD: {"lte": 0}}},
                {"bool": {"must_not": {"exists": {"field": STOCK_FIELD}}}},
            ],
            "minimum_should_match": 1,
        }
    }


def stock_filter(in_stock: bool) -> Clause:
    return in_stock_clause() if in_stock else out_of_stock_clause()


def nested_value_filters(family: DynamicFacetFamily, selected: Dict[str, List[str]]) -> List[Clause]:
    """One nested clause per selected name; names without values are skipped."""
    clauses = []
    for name, values in selected.items():
        if not values:
            continue
        clauses.append({
            "nested": {
                "path": family.nested_path,
                "query": {
                    "bool": {
                        "must": [
                            {"term": {family.name_field: name}},
                            {"terms": {family.value_field: list(values)}},
                        ]
                    }
                },
            }
        })
    return clauses


def catalog_code_filter(codes: Sequence[str]) -> Clause:
    return {"terms": {CATALOG_CODE_FIELD: list(codes)}}


def equipment_code_filter(codes: Sequence[str]) -> Clause:
    return {"terms": {EQUIPMENT_CODE_FIELD: list(codes)}}


def build_base_filter(
    active_filters: ActiveFilters,
    category_ids: Optional[Sequence[int]] = None,
    exclude: Optional[str] = None,
) -> BoolQuery:
    """
    Base scope plus category and active filter clauses.

    Args:
        active_filters: Filters the shopper has applied
        category_ids: Category scope (omitted when empty)
        exclude: Filter family left out, usually the one being aggregated

    Returns:
        BoolQuery with the clauses under `must`
    """
    must = base_must()

    if category_ids and exclude != CATEGORIES:
        must.append(category_filter(category_ids))

    if active_filters.brand and exclude != BRAND:
        must.append(brand_filter(active_filters.brand))

    if exclude != PRICE:
        price = price_range_filter(active_filters.min_price, active_filters.max_price)
        if price:
            must.append(price)

    if active_filters.in_stock is not None and exclude != STOCK:
        must.append(stock_filter(active_filters.in_stock))

    if exclude != VARIANT_ATTRIBUTES:
        must.extend(nested_value_filters(VARIANT_ATTRIBUTE_FAMILY, active_filters.variant_attributes))

    if exclude != PRODUCT_SPECIFICATIONS:
        must.extend(nested_value_filters(SPECIFICATION_FAMILY, active_filters.product_specifications))

    if active_filters.catalog_codes and exclude != CATALOG_CODES:
        must.append(catalog_code_filter(active_filters.catalog_codes))

    if active_filters.equipment_codes and exclude != EQUIPMENT_CODES:
        must.append(equipment_code_filter(active_filters.equipment_codes))

    return BoolQuery(must=must, must_not=base_must_not())


def _filter_context(bool_query: BoolQuery, aggs: Dict[str, Any]) -> Dict[str, Any]:
    return {"filter": bool_query.to_clause(), "aggs": aggs}


def build_discovery_query(
    active_filters: ActiveFilters,
    category_ids: Optional[Sequence[int]] = None,
    families: Iterable[DynamicFacetFamily] = DYNAMIC_FAMILIES,
    bucket_size: int = DEFAULT_BUCKET_SIZE,
) -> SearchQuery:
    """
    Discovery query: static facets plus the names of every dynamic family.

    The top-level query is the base scope only; each family applies its own
    filter context so that its exclusion is honored. `matching` counts the
    documents under every active filter.
    """
    aggs: Dict[str, Any] = {
        MATCHING_AGG: {"filter": build_base_filter(active_filters, category_ids).to_clause()},
        "brand_filter_context": _filter_context(
            build_base_filter(active_filters, category_ids, exclude=BRAND),
            {"brands": {"terms": {"field": BRAND_FIELD, "size": bucket_size}}},
        ),
        "category_filter_context": _filter_context(
            build_base_filter(active_filters, category_ids, exclude=CATEGORIES),
            {"categories": {"terms": {"field": CATEGORY_NAME_FIELD, "size": bucket_size}}},
        ),
        "price_filter_context": _filter_context(
            build_base_filter(active_filters, category_ids, exclude=PRICE),
            {"price_stats": {"stats": {"field": PRICE_FIELD}}},
        ),
        "stock_filter_context": _filter_context(
            build_base_filter(active_filters, category_ids, exclude=STOCK),
            {
                "in_stock": {"filter": in_stock_clause()},
                "out_of_stock": {"filter": out_of_stock_clause()},
            },
        ),
    }

    for family in families:
        aggs[family.context_agg] = _filter_context(
            build_base_filter(active_filters, category_ids, exclude=family.name),
            {
                family.name: {
                    "nested": {"path": family.nested_path},
                    "aggs": {
                        NAMES_AGG: {"terms": {"field": family.name_field, "size": MAX_FACET_BUCKETS}},
                    },
                }
            },
        )

    return SearchQuery(query=base_scope(), size=0, aggs=aggs)


def build_value_query(
    family: DynamicFacetFamily,
    name: str,
    active_filters: ActiveFilters,
    category_ids: Optional[Sequence[int]] = None,
) -> SearchQuery:
    """Value buckets of one discovered name, under the same filter as its discovery."""
    return SearchQuery(
        query=build_base_filter(active_filters, category_ids, exclude=family.name),
        size=0,
        aggs={
            family.name: {
                "nested": {"path": family.nested_path},
                "aggs": {
                    NAME_FILTER_AGG: {
                        "filter": {"term": {family.name_field: name}},
                        "aggs": {
                            VALUES_AGG: {"terms": {"field": family.value_field, "size": MAX_FACET_BUCKETS}},
                        },
                    }
                },
            }
        },
    )


def build_text_search_query(text: str, limit: int = 20, offset: int = 0) -> SearchQuery:
    """Full-text product search, best fields first."""
    return SearchQuery(
        query=BoolQuery(must=[{
            "multi_match": {
                "query": text,
                "fields": [
                    "brand_product_id^3",
                    "product_name^2",
                    "product_short_description",
                    "product_description",
                    "brands_name",
                    "catalog_code",
                    "hsn",
                ],
                "type": "best_fields",
                "fuzziness": "AUTO",
            }
        }]),
        size=limit,
        from_=offset,
        sort=[{"_score": {"order": "desc"}}],
    )


def build_product_ids_query(product_ids: Sequence[int]) -> SearchQuery:
    ids = list(product_ids)
    if len(ids) == 1:
        clause = {"term": {"product_id": ids[0]}}
    else:
        clause = {"terms": {"product_id": ids}}
    return SearchQuery(query=BoolQuery(must=[clause]), size=max(len(ids), 1))


def with_code_filters(
    query: SearchQuery,
    catalog_codes: Optional[Sequence[str]] = None,
    equipment_codes: Optional[Sequence[str]] = None,
) -> SearchQuery:
    """Copy of `query` restricted to the given catalog and equipment codes."""
    must = list(query.query.must)
    if catalog_codes:
        must.append(catalog_code_filter(catalog_codes))
    if equipment_codes:
        must.append(equipment_code_filter(equipment_codes))
    if len(must) == len(query.query.must):
        return query
    return query.model_copy(update={"query": query.query.model_copy(update={"must": must})})
