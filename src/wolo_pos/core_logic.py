"""Business logic layer for Wolo POS.

This module is the persistence gateway the rest of the package talks to. It
consumes the Data Access Layer (DAL) for all I/O and makes sure every
mutation of the catalog, the sales ledger or the settings passes through the
domain rules: stock can never go negative, the shelf never holds more than
the stock, a sale total always equals the sum of its lines, and mobile-money
sales carry a phone number.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from openpyxl.workbook import Workbook

from . import catalog, data_manager, log
from .constants import EXPECTED_SCHEMA_VERSION, PaymentMethod, SaleStatus


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced product or sale is unknown."""


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and workbook references used by the BLL."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    _cache: Dict[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class SaleLineCommand:
    """One requested line of a sale. ``unit_price`` defaults to the list price."""

    product_id: str
    quantity: int
    unit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class SaleCommand:
    """User intent for completing a sale."""

    items: Sequence[SaleLineCommand]
    payment_method: PaymentMethod
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    timestamp: Optional[datetime] = None


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current UTC time when it is ``None``."""

    return candidate if candidate is not None else datetime.now(UTC)


def _get_cache_bucket(context: RuntimeContext, name: str) -> Dict[str, Any]:
    """Return a mutable cache bucket dedicated to the supplied name.

    Buckets are plain dictionaries keyed by domain area (products, sales,
    sale items, settings) that store precomputed query results so repeated
    reads do not rescan the workbook.
    """

    bucket = context._cache.get(name)
    if bucket is None:
        log.debug("Initializing cache bucket '%s'", name)
        bucket = {}
        context._cache[name] = bucket
    return bucket


def _invalidate_cache(context: RuntimeContext, *names: str) -> None:
    """Evict one or more cache buckets after mutating workbook state.

    Missing buckets are ignored.
    """

    if not names:
        return

    log.debug("Invalidating cache buckets: %s", ", ".join(names))

    for name in names:
        context._cache.pop(name, None)


def _ensure_products_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the product cache bucket on demand.

    Returns:
        dict[str, Any]: Bucket containing ``all`` products, ``active``
            products, and a ``by_id`` lookup dictionary.
    """

    bucket = _get_cache_bucket(context, "products")
    if "all" not in bucket:
        all_products = list(data_manager.iter_products(context.workbook))
        bucket["all"] = all_products
        bucket["active"] = [product for product in all_products if product.is_active]
        bucket["by_id"] = {product.product_id: product for product in all_products}
        log.debug(
            "Populated products cache with %d entries (%d active)",
            len(all_products),
            len(bucket["active"]),
        )
    return bucket


def _ensure_sales_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the sales cache bucket on demand.

    Returns:
        dict[str, Any]: Bucket containing ``all`` sales in workbook order and a
            ``by_id`` lookup dictionary.
    """

    bucket = _get_cache_bucket(context, "sales")
    if "all" not in bucket:
        all_sales = list(data_manager.iter_sales(context.workbook))
        bucket["all"] = all_sales
        bucket["by_id"] = {sale.sale_id: sale for sale in all_sales}
        log.debug("Populated sales cache with %d entries", len(all_sales))
    return bucket


def _ensure_sale_items_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the line-item cache, grouped by sale identifier."""

    bucket = _get_cache_bucket(context, "sale_items")
    if "by_sale" not in bucket:
        by_sale: Dict[str, List[data_manager.SaleItemRow]] = {}
        for item in data_manager.iter_sale_items(context.workbook):
            by_sale.setdefault(item.sale_id, []).append(item)
        bucket["by_sale"] = by_sale
        log.debug("Populated sale item cache for %d sales", len(by_sale))
    return bucket


def _ensure_settings_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "settings")
    if "by_key" not in bucket:
        bucket["by_key"] = {setting.key: setting for setting in data_manager.iter_settings(context.workbook)}
    return bucket


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook for the BLL.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Fully populated context ready for orchestration
            functions.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def list_products(context: RuntimeContext, *, include_inactive: bool = False) -> List[data_manager.ProductRow]:
    """Return cached product rows optionally filtered by active status.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        include_inactive (bool): When ``True`` the result includes deactivated
            products. The default is to surface only active entries.

    Returns:
        list[data_manager.ProductRow]: Copy of the cached product dataset in
            sheet order.
    """
    cache = _ensure_products_cache(context)
    source = cache["all"] if include_inactive else cache["active"]
    return list(source)


def list_categories(context: RuntimeContext) -> List[str]:
    """Return the distinct non-empty categories of active products, sorted."""

    return sorted({product.category for product in list_products(context) if product.category})


def get_product_by_id(context: RuntimeContext, product_id: str) -> Optional[data_manager.ProductRow]:
    """Return the product with ``product_id`` or ``None`` if it is unknown."""

    return _ensure_products_cache(context)["by_id"].get(product_id)


def require_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Resolve a product record by its identifier.

    Raises:
        MissingReferenceError: If ``product_id`` is absent from the workbook.
    """
    product = get_product_by_id(context, product_id)
    if product is None:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise MissingReferenceError(f"Unknown product id: {product_id}")
    return product


def validate_product(product: data_manager.ProductRow) -> None:
    """Check the invariants every stored product must satisfy.

    Raises:
        BusinessRuleViolation: If the name is blank or the shelf quantity
            exceeds the stock.
        ValueError: If a quantity or price is negative.
    """
    if not product.name.strip():
        raise BusinessRuleViolation(f"Product '{product.product_id}' must have a name")
    for label, quantity in (
        ("quantity_in_stock", product.quantity_in_stock),
        ("quantity_on_shelf", product.quantity_on_shelf),
        ("reorder_level", product.reorder_level),
    ):
        if quantity < 0:
            log.error("Quantity validation failed for %s: %s", label, quantity)
            raise ValueError(f"{label} must be zero or positive")
    require_nonnegative_money(product.selling_price)
    if product.cost_price is not None:
        require_nonnegative_money(product.cost_price)
    if product.quantity_on_shelf > product.quantity_in_stock:
        log.error(
            "Shelf quantity %s exceeds stock %s for product '%s'",
            product.quantity_on_shelf,
            product.quantity_in_stock,
            product.product_id,
        )
        raise BusinessRuleViolation(
            f"Shelf quantity ({product.quantity_on_shelf}) cannot exceed stock "
            f"({product.quantity_in_stock}) for product '{product.product_id}'"
        )


_TEXT = (str,)
_NUMBER = (int,)
_MONEY = (Decimal, int)
PRODUCT_FIELD_TYPES: Dict[str, tuple] = {
    "product_id": _TEXT,
    "name": _TEXT,
    "category": _TEXT,
    "barcode": _TEXT + (type(None),),
    "sku": _TEXT + (type(None),),
    "description": _TEXT + (type(None),),
    "quantity_in_stock": _NUMBER,
    "quantity_on_shelf": _NUMBER,
    "quantity_purchased": _NUMBER + (type(None),),
    "reorder_level": _NUMBER,
    "selling_price": _MONEY,
    "cost_price": _MONEY + (type(None),),
    "total_bulk_cost": _MONEY + (type(None),),
    "expiry_date": (date, type(None)),
    "cost_estimated": (bool,),
    "is_active": (bool,),
}


def check_product_types(values: Dict[str, Any]) -> None:
    """Reject product field values of the wrong Python type.

    Booleans are not accepted where a number is expected and timestamps are
    not accepted as expiry dates.

    Raises:
        ValueError: If a known field holds a value of an unexpected type.
    """
    for name, value in values.items():
        expected = PRODUCT_FIELD_TYPES.get(name)
        if expected is None:
            continue
        bool_as_number = isinstance(value, bool) and bool not in expected
        if bool_as_number or isinstance(value, datetime) or not isinstance(value, expected):
            log.error("Type validation failed for %s: %r", name, value)
            raise ValueError(f"{name} cannot be set to {value!r}")


def add_product(context: RuntimeContext, record: data_manager.ProductRow) -> data_manager.ProductRow:
    """Validate and append a new product to the catalog.

    The cost price is normalized first (bulk cost wins, otherwise a missing
    cost is estimated from the configured margin).

    Returns:
        data_manager.ProductRow: The product as stored.

    Raises:
        BusinessRuleViolation: If the identifier is taken or an invariant
            fails.
        ValueError: If a quantity or price is negative or a field has the
            wrong type.
    """
    if get_product_by_id(context, record.product_id) is not None:
        log.warning("Attempted to add duplicate product '%s'", record.product_id)
        raise BusinessRuleViolation(f"Product '{record.product_id}' already exists")

    check_product_types(asdict(record))
    product = catalog.normalize_costs(record, assumed_margin=context.settings.assumed_margin)
    validate_product(product)
    data_manager.append_product(context.workbook, product)
    _invalidate_cache(context, "products")
    log.info("Added product '%s' (%s)", product.product_id, product.name)
    return product


COST_FIELDS = frozenset({"cost_price", "selling_price", "total_bulk_cost", "quantity_purchased"})


def update_product(context: RuntimeContext, product_id: str, **changes: Any) -> data_manager.ProductRow:
    """Apply ``changes`` to an existing product and persist the changed cells.

    Setting ``quantity_on_shelf`` above the stock is rejected. Lowering
    ``quantity_in_stock`` alone clamps the shelf quantity down to match.
    Changing any cost-related field re-runs cost normalization; an estimated
    cost is re-estimated unless a new ``cost_price`` is supplied.

    Raises:
        MissingReferenceError: If the product is unknown.
        BusinessRuleViolation: If the identifier is changed or an invariant
            fails.
        ValueError: If ``changes`` names an unknown field, a value of the wrong
            type or a negative value.
    """
    current = require_product(context, product_id)
    if "product_id" in changes and changes["product_id"] != product_id:
        raise BusinessRuleViolation("Product identifiers cannot be changed")
    try:
        updated = replace(current, **changes)
    except TypeError as exc:
        raise ValueError(f"Unknown product field in {sorted(changes)}") from exc
    check_product_types(changes)

    if "quantity_on_shelf" not in changes and updated.quantity_on_shelf > updated.quantity_in_stock:
        updated = replace(updated, quantity_on_shelf=max(updated.quantity_in_stock, 0))
    if COST_FIELDS & changes.keys():
        if current.cost_estimated and "cost_price" not in changes:
            updated = replace(updated, cost_price=None)
        updated = catalog.normalize_costs(updated, assumed_margin=context.settings.assumed_margin)
    validate_product(updated)

    before = data_manager.serialize_product(current)
    after = data_manager.serialize_product(updated)
    dirty = {name: value for name, value in after.items() if before.get(name) != value}
    if dirty:
        data_manager.update_product(context.workbook, product_id, field_values=dirty)
        _invalidate_cache(context, "products")
        log.info("Updated product '%s' fields: %s", product_id, ", ".join(sorted(dirty)))
    return updated


def deactivate_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Soft-delete a product; reports and listings then exclude it."""

    return update_product(context, product_id, is_active=False)


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def list_sales(context: RuntimeContext, *, include_voided: bool = False) -> List[data_manager.SaleRow]:
    """Return cached sales in workbook order, hiding voided ones by default."""

    sales = _ensure_sales_cache(context)["all"]
    if include_voided:
        return list(sales)
    return [sale for sale in sales if not sale.is_voided]


def get_sale(context: RuntimeContext, sale_id: str) -> Optional[data_manager.SaleRow]:
    return _ensure_sales_cache(context)["by_id"].get(sale_id)


def require_sale(context: RuntimeContext, sale_id: str) -> data_manager.SaleRow:
    """Resolve a sale by identifier.

    Raises:
        MissingReferenceError: If ``sale_id`` is unknown.
    """
    sale = get_sale(context, sale_id)
    if sale is None:
        log.warning("Sale lookup failed for id '%s'", sale_id)
        raise MissingReferenceError(f"Unknown sale id: {sale_id}")
    return sale


def get_sale_line_items(context: RuntimeContext, sale_id: str) -> List[data_manager.SaleItemRow]:
    """Return the line items of a sale.

    Items nested on the sale record take precedence over the ``SaleItems``
    sheet.

    Raises:
        MissingReferenceError: If ``sale_id`` is unknown.
    """
    sale = require_sale(context, sale_id)
    if sale.items:
        return list(sale.items)
    return list(_ensure_sale_items_cache(context)["by_sale"].get(sale_id, []))


def sale_matches_category(context: RuntimeContext, sale: data_manager.SaleRow, category: str) -> bool:
    """Return whether any line of ``sale`` sells a product in ``category``."""

    for item in get_sale_line_items(context, sale.sale_id):
        if item.product_id is None:
            continue
        product = get_product_by_id(context, item.product_id)
        if product is not None and product.category == category:
            return True
    return False


def get_sales_in_range(
    context: RuntimeContext,
    start_date: date,
    end_date: date,
    category: Optional[str] = None,
    *,
    include_voided: bool = False,
) -> List[data_manager.SaleRow]:
    """Return sales whose calendar date lies in ``[start_date, end_date]``.

    When ``category`` is given, a sale is kept if any of its line items
    resolves to a product of that category. Sales whose items cannot be read
    are dropped from a category-filtered result with a warning.

    Raises:
        ValueError: If ``start_date`` is after ``end_date``.
    """
    if start_date > end_date:
        raise ValueError(f"Start date {start_date} is after end date {end_date}")

    in_range = [
        sale
        for sale in list_sales(context, include_voided=include_voided)
        if start_date <= sale.timestamp.date() <= end_date
    ]
    if not category:
        return in_range

    matched: List[data_manager.SaleRow] = []
    for sale in in_range:
        try:
            if sale_matches_category(context, sale, category):
                matched.append(sale)
        except (MissingReferenceError, data_manager.DataAccessError) as exc:
            log.warning("Skipping sale '%s' in category filter: %s", sale.sale_id, exc)
    return matched


def generate_sale_id(*, prefix: str = "S", when: Optional[datetime] = None) -> str:
    """Generate a sortable sale identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}``."""

    when = when or _resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}"


def allocate_sale_id(context: RuntimeContext, when: datetime) -> str:
    """Return a sale identifier for ``when`` that no stored sale uses yet.

    Colliding identifiers are advanced one microsecond at a time; the sale
    keeps its own timestamp.
    """

    taken = _ensure_sales_cache(context)["by_id"]
    candidate = when
    sale_id = generate_sale_id(when=candidate)
    while sale_id in taken:
        candidate += timedelta(microseconds=1)
        sale_id = generate_sale_id(when=candidate)
    if candidate != when:
        log.warning("Sale id for %s already taken; using '%s'", when.isoformat(), sale_id)
    return sale_id


def generate_invoice_number(context: RuntimeContext, *, when: datetime) -> str:
    """Generate ``INV-YYYYMMDD-NNNN``, numbering sales per calendar day."""

    same_day = sum(
        1 for sale in list_sales(context, include_voided=True) if sale.timestamp.date() == when.date()
    )
    return f"INV-{when.strftime('%Y%m%d')}-{same_day + 1:04d}"


def validate_payment(command: SaleCommand) -> None:
    """Check the payment method and its customer requirements.

    Raises:
        BusinessRuleViolation: If the method is unsupported or a mobile-money
            sale has no customer phone.
    """
    if not isinstance(command.payment_method, PaymentMethod):
        log.error("Unsupported payment method provided: %s", command.payment_method)
        raise BusinessRuleViolation(f"Unsupported payment method: {command.payment_method}")
    if command.payment_method is PaymentMethod.MOBILE_MONEY and not (command.customer_phone or "").strip():
        log.error("Mobile money sale rejected: no customer phone")
        raise BusinessRuleViolation("Mobile money payments require a customer phone number")


def build_sale_items(
    context: RuntimeContext, command: SaleCommand, *, sale_id: str
) -> List[data_manager.SaleItemRow]:
    """Validate the requested lines and price them.

    Raises:
        BusinessRuleViolation: If the sale is empty, a product is inactive or
            stock is insufficient.
        MissingReferenceError: If a product is unknown.
        ValueError: If a quantity or price is invalid.
    """
    if not command.items:
        raise BusinessRuleViolation("A sale needs at least one item")

    requested: Dict[str, int] = {}
    items: List[data_manager.SaleItemRow] = []
    for line in command.items:
        product = require_product(context, line.product_id)
        if not product.is_active:
            log.warning("Attempted sale of inactive product '%s'", line.product_id)
            raise BusinessRuleViolation(f"Product '{line.product_id}' is inactive")
        require_positive_quantity(line.quantity)
        unit_price = product.selling_price if line.unit_price is None else line.unit_price
        require_nonnegative_money(unit_price)

        requested[product.product_id] = requested.get(product.product_id, 0) + line.quantity
        if requested[product.product_id] > product.quantity_in_stock:
            log.warning(
                "Insufficient stock for '%s': requested %s, available %s",
                product.product_id,
                requested[product.product_id],
                product.quantity_in_stock,
            )
            raise BusinessRuleViolation(
                f"Insufficient stock for '{product.name}': "
                f"{product.quantity_in_stock} available"
            )
        items.append(
            data_manager.SaleItemRow(
                sale_id=sale_id,
                product_id=product.product_id,
                product_name=product.name,
                quantity=line.quantity,
                unit_price=unit_price,
                subtotal=unit_price * line.quantity,
            )
        )
    return items


def record_sale(context: RuntimeContext, command: SaleCommand) -> data_manager.SaleRow:
    """Validate and record a completed sale, decrementing stock.

    The sale header, its line items and the stock changes are all written to
    the in-memory workbook; :func:`persist_context` saves them. The total is
    always the sum of the line subtotals. Sold units leave the shelf first,
    then the back stock.

    Returns:
        data_manager.SaleRow: The recorded sale with its items attached.

    Raises:
        BusinessRuleViolation: On payment, product or stock violations.
        MissingReferenceError: If a product is unknown.
        ValueError: When quantity or price validations fail.
    """
    validate_payment(command)
    timestamp = _resolve_timestamp(command.timestamp)
    sale_id = allocate_sale_id(context, timestamp)
    items = build_sale_items(context, command, sale_id=sale_id)

    sale = data_manager.SaleRow(
        sale_id=sale_id,
        invoice_number=generate_invoice_number(context, when=timestamp),
        timestamp=timestamp,
        payment_method=command.payment_method.value,
        total_amount=sum((item.subtotal for item in items), Decimal("0")),
        customer_name=command.customer_name,
        customer_phone=command.customer_phone,
        item_count=len(items),
        notes=command.notes,
        status=SaleStatus.COMPLETED.value,
        items=tuple(items),
    )

    data_manager.append_sale(context.workbook, sale)
    for item in items:
        data_manager.append_sale_item(context.workbook, item)

    sold: Dict[str, int] = {}
    for item in items:
        sold[item.product_id] = sold.get(item.product_id, 0) + item.quantity
    for product_id, quantity in sold.items():
        product = require_product(context, product_id)
        new_stock = product.quantity_in_stock - quantity
        new_shelf = min(max(product.quantity_on_shelf - quantity, 0), new_stock)
        data_manager.update_product(
            context.workbook,
            product_id,
            field_values={"quantity_in_stock": new_stock, "quantity_on_shelf": new_shelf},
        )

    _invalidate_cache(context, "products", "sales", "sale_items")
    log.info(
        "Recorded sale '%s' (%s) with %d items, total=%s, payment=%s",
        sale.sale_id,
        sale.invoice_number,
        len(items),
        sale.total_amount,
        sale.payment_method,
    )
    return sale


def void_sale(context: RuntimeContext, sale_id: str, *, notes: Optional[str] = None) -> data_manager.SaleRow:
    """Soft-delete a sale so reports exclude it. Stock is not restored.

    Raises:
        MissingReferenceError: If the sale is unknown.
        BusinessRuleViolation: If the sale is already voided.
    """
    sale = require_sale(context, sale_id)
    if sale.is_voided:
        raise BusinessRuleViolation(f"Sale '{sale_id}' is already voided")

    voided = replace(sale, status=SaleStatus.VOIDED.value, notes=notes or sale.notes)
    changes: Dict[str, Any] = {"status": voided.status}
    if notes:
        changes["notes"] = notes
    data_manager.update_sale(context.workbook, sale_id, field_values=changes)
    _invalidate_cache(context, "sales")
    log.info("Voided sale '%s'", sale_id)
    return voided


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def get_setting(context: RuntimeContext, key: str) -> Optional[data_manager.SettingRow]:
    """Return the stored setting for ``key`` or ``None``."""

    return _ensure_settings_cache(context)["by_key"].get(key)


def list_settings(context: RuntimeContext) -> Dict[str, Any]:
    """Return every setting as a plain ``key -> value`` dictionary."""

    return {key: row.value for key, row in _ensure_settings_cache(context)["by_key"].items()}


def save_setting(context: RuntimeContext, key: str, value: Any) -> data_manager.SettingRow:
    """Insert or replace a setting.

    Raises:
        ValueError: If ``key`` is blank or ``value`` is not JSON-serializable.
    """
    if not key or not key.strip():
        raise ValueError("Setting key must not be empty")
    updated_at = _resolve_timestamp(None).isoformat()
    try:
        data_manager.upsert_setting(context.workbook, key, value, updated_at=updated_at)
    except TypeError as exc:
        log.error("Setting '%s' rejected: %s", key, exc)
        raise ValueError(f"Setting '{key}' is not JSON-serializable") from exc
    _invalidate_cache(context, "settings")
    log.info("Saved setting '%s'", key)
    return data_manager.SettingRow(key=key, value=value, updated_at=updated_at)


# ---------------------------------------------------------------------------
# Validation and lifecycle helpers
# ---------------------------------------------------------------------------


def require_positive_quantity(quantity: int) -> None:
    """Validate that a quantity is a strictly positive integer.

    Raises:
        ValueError: If ``quantity`` is zero, negative or not an integer.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be a whole number greater than zero")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        ValueError: If ``amount`` is less than zero.
    """
    if amount < Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def persist_context(context: RuntimeContext) -> None:
    """Persist any in-memory workbook changes to the configured data file."""

    data_manager.save_workbook(
        context.workbook,
        destination=context.settings.data_file,
    )
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    Returns:
        RuntimeContext: Fresh context containing a newly opened workbook and
            an empty cache.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook)
