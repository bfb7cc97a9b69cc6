"""Product-level derivations and client-side list operations.

Everything here is a pure function of :class:`~wolo_pos.data_manager.ProductRow`
values: unit cost resolution, stock and expiry classification, and the
search/sort/paginate pipeline behind the product listing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple, TypeVar

from . import log
from .constants import (
    ASSUMED_MARGIN,
    DEFAULT_PAGE_SIZE,
    EXPIRY_WARNING_DAYS,
    URGENT_EXPIRY_DAYS,
    ExpiryStatus,
    StockStatus,
)
from .data_manager import ProductRow


T = TypeVar("T")

STOCK_FILTERS = ("", "low", "out")
EXPIRY_FILTERS = ("", "expiring", "expired")
SORTABLE_FIELDS = tuple(f.name for f in fields(ProductRow))


def resolve_unit_cost(product: ProductRow) -> Optional[Decimal]:
    """Return the unit cost of ``product`` or ``None`` when it is unknown.

    Resolution order: a positive ``cost_price``, then ``total_bulk_cost /
    quantity_purchased``.
    """

    if product.cost_price is not None and product.cost_price > 0:
        return product.cost_price
    if product.total_bulk_cost and product.quantity_purchased:
        return product.total_bulk_cost / product.quantity_purchased
    return None


def normalize_costs(product: ProductRow, *, assumed_margin: Decimal = ASSUMED_MARGIN) -> ProductRow:
    """Fill in the cost price the way the product entry form does.

    A positive bulk cost and purchased quantity always win. Otherwise, if no
    cost price is known but a selling price is, the cost is estimated as
    ``selling_price / (1 + assumed_margin)`` and ``cost_estimated`` is set.
    """

    if product.total_bulk_cost and product.quantity_purchased:
        return replace(
            product,
            cost_price=product.total_bulk_cost / product.quantity_purchased,
            cost_estimated=False,
        )
    if product.cost_price is not None and product.cost_price > 0:
        return replace(product, cost_estimated=False)
    if product.selling_price > 0:
        estimate = product.selling_price / (1 + assumed_margin)
        log.warning(
            "Product '%s' has no cost data; estimating cost %s from a %s margin",
            product.product_id,
            estimate,
            assumed_margin,
        )
        return replace(product, cost_price=estimate, cost_estimated=True)
    return replace(product, cost_price=None, cost_estimated=False)


def stock_status(quantity: int, reorder_level: int) -> StockStatus:
    """Classify a stock level; the three outcomes are mutually exclusive."""

    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= reorder_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def classify_stock(product: ProductRow, *, threshold: Optional[int] = None) -> StockStatus:
    """Classify ``product`` against its reorder level or an explicit threshold."""

    level = product.reorder_level if threshold is None else threshold
    return stock_status(product.quantity_in_stock, level)


def days_until_expiry(product: ProductRow, today: date) -> Optional[int]:
    if product.expiry_date is None:
        return None
    return (product.expiry_date - today).days


def expiry_status(days: int, *, warning_days: int = EXPIRY_WARNING_DAYS) -> ExpiryStatus:
    """Classify a day count: ``<= 0`` expired, up to ``warning_days`` soon."""

    if days <= 0:
        return ExpiryStatus.EXPIRED
    if days <= warning_days:
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.GOOD


def is_urgent(days: int, *, urgent_days: int = URGENT_EXPIRY_DAYS) -> bool:
    return 0 < days <= urgent_days


# ---------------------------------------------------------------------------
# Listing pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProductQuery:
    """Filter, sort and paging options for the product listing."""

    search: str = ""
    category: str = ""
    stock_filter: str = ""
    expiry_filter: str = ""
    sort_key: str = "name"
    descending: bool = False
    page: int = 1
    per_page: int = DEFAULT_PAGE_SIZE
    warning_days: Optional[int] = None


@dataclass(frozen=True)
class Page:
    """One page of a filtered, sorted listing."""

    items: Tuple[Any, ...]
    page: int
    per_page: int
    total_items: int
    total_pages: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _matches_search(product: ProductRow, term: str) -> bool:
    if not term:
        return True
    haystack = [product.name, product.barcode, product.description, product.sku]
    return any(term in value.lower() for value in haystack if value)


def _matches_stock(product: ProductRow, stock_filter: str) -> bool:
    if stock_filter == "low":
        return product.quantity_in_stock <= product.reorder_level
    if stock_filter == "out":
        return product.quantity_in_stock == 0
    return True


def _matches_expiry(product: ProductRow, expiry_filter: str, today: date, warning_days: int) -> bool:
    if not expiry_filter:
        return True
    days = days_until_expiry(product, today)
    if days is None:
        return False
    if expiry_filter == "expiring":
        return 0 <= days <= warning_days
    return days < 0


def filter_products(products: Sequence[ProductRow], query: ProductQuery, *, today: Optional[date] = None) -> List[ProductRow]:
    """Apply the search, category, stock and expiry filters of ``query``.

    Args:
        products (Sequence[ProductRow]): Listing to filter, in display order.
        query (ProductQuery): Filter options. ``stock_filter`` accepts
            ``"low"`` (at or below reorder level) or ``"out"``;
            ``expiry_filter`` accepts ``"expiring"`` (within
            ``warning_days`` days, default 30, today included) or
            ``"expired"``.
        today (date | None): Reference day for expiry filters.

    Returns:
        list[ProductRow]: Matching products in their original order.

    Raises:
        ValueError: If a filter value is not recognised.
    """

    if query.stock_filter not in STOCK_FILTERS:
        raise ValueError(f"Unknown stock filter: {query.stock_filter}")
    if query.expiry_filter not in EXPIRY_FILTERS:
        raise ValueError(f"Unknown expiry filter: {query.expiry_filter}")

    today = today or date.today()
    term = query.search.strip().lower()
    warning_days = EXPIRY_WARNING_DAYS if query.warning_days is None else query.warning_days
    return [
        product
        for product in products
        if _matches_search(product, term)
        and (not query.category or product.category == query.category)
        and _matches_stock(product, query.stock_filter)
        and _matches_expiry(product, query.expiry_filter, today, warning_days)
    ]


def sort_products(products: Sequence[ProductRow], key: str = "name", *, descending: bool = False) -> List[ProductRow]:
    """Sort products by one of their fields.

    Text compares case-insensitively. Products missing the value come first
    in ascending order and last in descending order. The sort is stable.

    Raises:
        ValueError: If ``key`` is not a product field.
    """

    if key not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort products by '{key}'")

    def _value(product: ProductRow) -> Any:
        value = getattr(product, key)
        return value.lower() if isinstance(value, str) else value

    missing = [p for p in products if getattr(p, key) in (None, "")]
    present = [p for p in products if getattr(p, key) not in (None, "")]
    present.sort(key=_value, reverse=descending)
    return present + missing if descending else missing + present


def paginate(items: Sequence[T], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Page:
    """Slice ``items`` into a :class:`Page`; out-of-range pages are clamped.

    Raises:
        ValueError: If ``per_page`` is not positive.
    """

    if per_page <= 0:
        raise ValueError("per_page must be greater than zero")
    total_items = len(items)
    total_pages = max(1, math.ceil(total_items / per_page))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * per_page
    return Page(
        items=tuple(items[start:start + per_page]),
        page=page,
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
    )


def query_products(products: Sequence[ProductRow], query: ProductQuery, *, today: Optional[date] = None) -> Page:
    """Filter, sort and paginate ``products`` in one step."""

    matched = filter_products(products, query, today=today)
    ordered = sort_products(matched, query.sort_key, descending=query.descending)
    return paginate(ordered, query.page, query.per_page)
