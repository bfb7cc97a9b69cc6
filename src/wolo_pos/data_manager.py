"""Data access layer for Wolo POS.

This module provides low-level helpers that read from and write to the
pharmacy workbook. Business logic belongs elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. Normalization: turning raw records, whatever their key spelling, into the
   canonical row dataclasses. This is the only place in the package that
   knows about legacy column names such as ``quantityInStock`` or
   ``reorder_level``.
4. Sheet operations: loading structured records and appending or updating
   individual rows.
"""


from __future__ import annotations

import configparser
import json
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
import openpyxl

from . import log
from .constants import (
    ASSUMED_COGS_RATIO,
    ASSUMED_MARGIN,
    DEFAULT_CURRENCY,
    DEFAULT_HISTORY_LENGTH,
    DEFAULT_REORDER_LEVEL,
    EXPIRY_WARNING_DAYS,
    URGENT_EXPIRY_DAYS,
    SaleStatus,
    SheetName,
)


CONFIG_FILE_NAME = "config.ini"
PRODUCTS_SHEET = SheetName.PRODUCTS.value
SALES_SHEET = SheetName.SALES.value
SALE_ITEMS_SHEET = SheetName.SALE_ITEMS.value
SETTINGS_SHEET = SheetName.SETTINGS.value

# Header layout used when bootstrapping a fresh workbook.
SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    PRODUCTS_SHEET: [
        "ProductID",
        "Name",
        "Category",
        "Barcode",
        "SKU",
        "Description",
        "QuantityInStock",
        "QuantityOnShelf",
        "CostPrice",
        "SellingPrice",
        "TotalBulkCost",
        "QuantityPurchased",
        "ReorderLevel",
        "ExpiryDate",
        "CostEstimated",
        "IsActive",
    ],
    SALES_SHEET: [
        "SaleID",
        "InvoiceNumber",
        "Timestamp",
        "PaymentMethod",
        "CustomerName",
        "CustomerPhone",
        "TotalAmount",
        "ItemCount",
        "Notes",
        "Status",
    ],
    SALE_ITEMS_SHEET: [
        "SaleID",
        "ProductID",
        "ProductName",
        "Quantity",
        "UnitPrice",
        "Subtotal",
    ],
    SETTINGS_SHEET: [
        "Key",
        "Value",
        "UpdatedAt",
    ],
}

# Accepted spellings per canonical field, already folded (lowercase, no
# separators). The first alias matches the header written by SHEET_COLUMNS.
PRODUCT_FIELDS: Mapping[str, Tuple[str, ...]] = {
    "product_id": ("productid", "id"),
    "name": ("name", "productname"),
    "category": ("category", "categoryname"),
    "barcode": ("barcode",),
    "sku": ("sku",),
    "description": ("description",),
    "quantity_in_stock": ("quantityinstock", "instock", "stock", "quantity"),
    "quantity_on_shelf": ("quantityonshelf", "onshelf", "shelfquantity"),
    "cost_price": ("costprice", "purchaseprice", "unitcost"),
    "selling_price": ("sellingprice", "sellprice", "price"),
    "total_bulk_cost": ("totalbulkcost", "bulkcost"),
    "quantity_purchased": ("quantitypurchased",),
    "reorder_level": ("reorderlevel", "lowstockthreshold", "reorderthreshold"),
    "expiry_date": ("expirydate", "expiry", "expirationdate"),
    "cost_estimated": ("costestimated",),
    "is_active": ("isactive", "active"),
}

SALE_FIELDS: Mapping[str, Tuple[str, ...]] = {
    "sale_id": ("saleid", "id"),
    "invoice_number": ("invoicenumber", "invoice", "orderid"),
    "timestamp": ("timestamp", "saledate", "date", "createdat"),
    "payment_method": ("paymentmethod", "paymenttype"),
    "customer_name": ("customername", "customer"),
    "customer_phone": ("customerphone", "phone"),
    "total_amount": ("totalamount", "total"),
    "item_count": ("itemcount",),
    "notes": ("notes",),
    "status": ("status", "paymentstatus"),
}

SALE_ITEM_FIELDS: Mapping[str, Tuple[str, ...]] = {
    "sale_id": ("saleid",),
    "product_id": ("productid",),
    "product_name": ("productname", "name"),
    "quantity": ("quantity", "qty"),
    "unit_price": ("unitprice", "price"),
    "subtotal": ("subtotal", "totalprice", "total"),
}

SETTING_FIELDS: Mapping[str, Tuple[str, ...]] = {
    "key": ("key",),
    "value": ("value",),
    "updated_at": ("updatedat",),
}

NESTED_ITEM_KEYS = ("items", "saleitems", "lineitems")


class DataAccessError(Exception):
    """Raised when a sheet or record cannot be interpreted."""


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    store_name: str
    schema_version: str
    currency: str = DEFAULT_CURRENCY
    reorder_level: int = DEFAULT_REORDER_LEVEL
    history_length: int = DEFAULT_HISTORY_LENGTH
    cogs_ratio: Decimal = ASSUMED_COGS_RATIO
    assumed_margin: Decimal = ASSUMED_MARGIN
    expiry_warning_days: int = EXPIRY_WARNING_DAYS
    urgent_expiry_days: int = URGENT_EXPIRY_DAYS


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    name: str
    category: str = ""
    quantity_in_stock: int = 0
    quantity_on_shelf: int = 0
    cost_price: Optional[Decimal] = None
    selling_price: Decimal = Decimal("0.00")
    total_bulk_cost: Optional[Decimal] = None
    quantity_purchased: Optional[int] = None
    reorder_level: int = DEFAULT_REORDER_LEVEL
    expiry_date: Optional[date] = None
    barcode: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    cost_estimated: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class SaleItemRow:
    """In-memory view of a row from the ``SaleItems`` sheet."""

    sale_id: str
    product_id: Optional[str]
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class SaleRow:
    """In-memory view of a row from the ``Sales`` sheet.

    ``items`` is only populated when the source record nested its line items;
    rows read from the workbook leave it empty and rely on ``item_count``.
    """

    sale_id: str
    invoice_number: str
    timestamp: datetime
    payment_method: str
    total_amount: Decimal
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    item_count: Optional[int] = None
    notes: Optional[str] = None
    status: str = SaleStatus.COMPLETED.value
    items: Tuple[SaleItemRow, ...] = field(default=())

    @property
    def is_voided(self) -> bool:
        return self.status == SaleStatus.VOIDED.value


@dataclass(frozen=True)
class SettingRow:
    """In-memory view of a row from the ``Settings`` sheet."""

    key: str
    value: Any
    updated_at: Optional[str] = None


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. When no explicit path is given the function
    walks up from the current working directory toward the filesystem root
    looking for a file named ``CONFIG_FILE_NAME``. The first match that exists
    on disk is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Initialized parser containing the raw
            configuration data.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` entries are mandatory. The ``[Defaults]``, ``[History]`` and
    ``[Reports]`` sections are optional and fall back to the package
    constants. Relative ``DataFile`` paths are anchored to ``base_path`` (or
    the current working directory) and resolved.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to anchor a relative
            ``DataFile`` entry.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If an optional numeric entry cannot be parsed.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        store_name = parser.get("System", "StoreName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    try:
        cogs_ratio = Decimal(parser.get("Reports", "AssumedCogsRatio", fallback=str(ASSUMED_COGS_RATIO)))
        assumed_margin = Decimal(parser.get("Reports", "AssumedMargin", fallback=str(ASSUMED_MARGIN)))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid decimal in [Reports] section: {exc}") from exc

    return ConfigSettings(
        data_file=data_file_path,
        store_name=store_name,
        schema_version=schema_version,
        currency=parser.get("Defaults", "Currency", fallback=DEFAULT_CURRENCY),
        reorder_level=parser.getint("Defaults", "ReorderLevel", fallback=DEFAULT_REORDER_LEVEL),
        history_length=parser.getint("History", "MaxLength", fallback=DEFAULT_HISTORY_LENGTH),
        cogs_ratio=cogs_ratio,
        assumed_margin=assumed_margin,
        expiry_warning_days=parser.getint("Reports", "ExpiryWarningDays", fallback=EXPIRY_WARNING_DAYS),
        urgent_expiry_days=parser.getint("Reports", "UrgentExpiryDays", fallback=URGENT_EXPIRY_DAYS),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the pharmacy workbook and return a live ``openpyxl`` workbook.

    Args:
        data_file (Path): Filesystem path to the workbook file.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to ``destination``, creating parent folders."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


# ---------------------------------------------------------------------------
# Normalization boundary
# ---------------------------------------------------------------------------


def fold_key(key: object) -> str:
    """Fold a field or header name so spelling variants compare equal.

    ``"quantity_in_stock"``, ``"quantityInStock"`` and ``"Quantity In Stock"``
    all fold to ``"quantityinstock"``.
    """

    return re.sub(r"[^a-z0-9]", "", str(key).lower())


def normalize_record(raw: Mapping[str, Any], fields: Mapping[str, Tuple[str, ...]]) -> Dict[str, Any]:
    """Map a raw record onto canonical field names.

    For every canonical field the aliases are tried in order and the first
    one carrying a non-blank value wins. Fields with no usable alias map to
    ``None``.

    Args:
        raw (Mapping[str, Any]): Record keyed by any accepted spelling.
        fields (Mapping[str, tuple[str, ...]]): Canonical field to folded
            aliases, e.g. :data:`PRODUCT_FIELDS`.

    Returns:
        dict[str, Any]: Values keyed by canonical field name.
    """

    folded = {fold_key(key): value for key, value in raw.items() if key is not None}
    result: Dict[str, Any] = {}
    for name, aliases in fields.items():
        result[name] = None
        for alias in aliases:
            value = folded.get(alias)
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            result[name] = value
            break
    return result


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_decimal(value: Any, *, field_name: str) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        log.warning("Ignoring non-numeric value %r for field '%s'", value, field_name)
        return None
    if not number.is_finite():
        log.warning("Ignoring non-finite value %r for field '%s'", value, field_name)
        return None
    return number


def _to_int(value: Any, *, field_name: str) -> Optional[int]:
    number = _to_decimal(value, field_name=field_name)
    if number is None:
        return None
    return int(number)


def _to_bool(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


def _to_date(value: Any, *, field_name: str) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        log.warning("Ignoring unparseable date %r for field '%s'", value, field_name)
        return None


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment


def deserialize_product(raw: Mapping[str, Any]) -> ProductRow:
    """Convert a raw product record into a strongly typed :class:`ProductRow`.

    Numeric values become :class:`~decimal.Decimal` or ``int``, identifiers
    are coerced to ``str`` to survive Excel's number guessing, and a missing
    reorder level falls back to :data:`DEFAULT_REORDER_LEVEL`. Non-positive
    cost figures are treated as absent.

    Raises:
        DataAccessError: If the record carries no product identifier.
    """

    values = normalize_record(raw, PRODUCT_FIELDS)
    product_id = _to_text(values["product_id"])
    if product_id is None:
        raise DataAccessError(f"Product record without identifier: {dict(raw)!r}")

    cost_price = _to_decimal(values["cost_price"], field_name="cost_price")
    bulk_cost = _to_decimal(values["total_bulk_cost"], field_name="total_bulk_cost")
    quantity_purchased = _to_int(values["quantity_purchased"], field_name="quantity_purchased")
    reorder_level = _to_int(values["reorder_level"], field_name="reorder_level")
    selling_price = _to_decimal(values["selling_price"], field_name="selling_price")

    return ProductRow(
        product_id=product_id,
        name=_to_text(values["name"]) or "",
        category=_to_text(values["category"]) or "",
        quantity_in_stock=max(_to_int(values["quantity_in_stock"], field_name="quantity_in_stock") or 0, 0),
        quantity_on_shelf=max(_to_int(values["quantity_on_shelf"], field_name="quantity_on_shelf") or 0, 0),
        cost_price=cost_price if cost_price is not None and cost_price > 0 else None,
        selling_price=selling_price if selling_price is not None else Decimal("0.00"),
        total_bulk_cost=bulk_cost if bulk_cost is not None and bulk_cost > 0 else None,
        quantity_purchased=quantity_purchased if quantity_purchased is not None and quantity_purchased > 0 else None,
        reorder_level=reorder_level if reorder_level is not None else DEFAULT_REORDER_LEVEL,
        expiry_date=_to_date(values["expiry_date"], field_name="expiry_date"),
        barcode=_to_text(values["barcode"]),
        sku=_to_text(values["sku"]),
        description=_to_text(values["description"]),
        cost_estimated=_to_bool(values["cost_estimated"], default=False),
        is_active=_to_bool(values["is_active"], default=True),
    )


def deserialize_sale_item(raw: Mapping[str, Any], *, sale_id: Optional[str] = None) -> SaleItemRow:
    """Convert a raw line-item record into a :class:`SaleItemRow`.

    A missing subtotal is recomputed as ``quantity * unit_price``. ``sale_id``
    overrides the record's own sale reference, which nested items often omit.
    """

    values = normalize_record(raw, SALE_ITEM_FIELDS)
    quantity = _to_int(values["quantity"], field_name="quantity") or 0
    unit_price = _to_decimal(values["unit_price"], field_name="unit_price") or Decimal("0.00")
    subtotal = _to_decimal(values["subtotal"], field_name="subtotal")
    if subtotal is None:
        subtotal = unit_price * quantity
    return SaleItemRow(
        sale_id=sale_id or _to_text(values["sale_id"]) or "",
        product_id=_to_text(values["product_id"]),
        product_name=_to_text(values["product_name"]) or "",
        quantity=quantity,
        unit_price=unit_price,
        subtotal=subtotal,
    )


def deserialize_sale(raw: Mapping[str, Any]) -> SaleRow:
    """Convert a raw sale record into a strongly typed :class:`SaleRow`.

    Nested line items, when present under ``items``, ``sale_items`` or
    ``lineItems``, are deserialized as well. The invoice number falls back to
    the sale identifier.

    Raises:
        DataAccessError: If the record has no identifier or no readable
            timestamp.
    """

    values = normalize_record(raw, SALE_FIELDS)
    sale_id = _to_text(values["sale_id"])
    if sale_id is None:
        raise DataAccessError(f"Sale record without identifier: {dict(raw)!r}")
    timestamp = _to_datetime(values["timestamp"])
    if timestamp is None:
        raise DataAccessError(f"Sale '{sale_id}' has no readable timestamp")

    nested: Sequence[Any] = ()
    for key, value in raw.items():
        if fold_key(key) in NESTED_ITEM_KEYS and isinstance(value, (list, tuple)):
            nested = value
            break
    items = tuple(
        deserialize_sale_item(item, sale_id=sale_id) for item in nested if isinstance(item, Mapping)
    )

    return SaleRow(
        sale_id=sale_id,
        invoice_number=_to_text(values["invoice_number"]) or sale_id,
        timestamp=timestamp,
        payment_method=(_to_text(values["payment_method"]) or "other").lower(),
        total_amount=_to_decimal(values["total_amount"], field_name="total_amount") or Decimal("0.00"),
        customer_name=_to_text(values["customer_name"]),
        customer_phone=_to_text(values["customer_phone"]),
        item_count=_to_int(values["item_count"], field_name="item_count"),
        notes=_to_text(values["notes"]),
        status=(_to_text(values["status"]) or SaleStatus.COMPLETED.value).lower(),
        items=items,
    )


def deserialize_setting(raw: Mapping[str, Any]) -> SettingRow:
    """Convert a raw settings record, decoding the JSON-encoded value."""

    values = normalize_record(raw, SETTING_FIELDS)
    key = _to_text(values["key"])
    if key is None:
        raise DataAccessError(f"Setting record without key: {dict(raw)!r}")
    encoded = values["value"]
    if isinstance(encoded, str):
        try:
            value = json.loads(encoded)
        except json.JSONDecodeError:
            value = encoded
    else:
        value = encoded
    return SettingRow(key=key, value=value, updated_at=_to_text(values["updated_at"]))


def serialize_product(record: ProductRow) -> Dict[str, Any]:
    """Convert a product dataclass into cell values keyed by canonical field."""

    return {
        "product_id": record.product_id,
        "name": record.name,
        "category": record.category,
        "barcode": record.barcode,
        "sku": record.sku,
        "description": record.description,
        "quantity_in_stock": record.quantity_in_stock,
        "quantity_on_shelf": record.quantity_on_shelf,
        "cost_price": record.cost_price,
        "selling_price": record.selling_price,
        "total_bulk_cost": record.total_bulk_cost,
        "quantity_purchased": record.quantity_purchased,
        "reorder_level": record.reorder_level,
        "expiry_date": record.expiry_date.isoformat() if record.expiry_date else None,
        "cost_estimated": record.cost_estimated,
        "is_active": record.is_active,
    }


def serialize_sale(record: SaleRow) -> Dict[str, Any]:
    """Convert a sale dataclass into cell values keyed by canonical field."""

    return {
        "sale_id": record.sale_id,
        "invoice_number": record.invoice_number,
        "timestamp": record.timestamp.isoformat(),
        "payment_method": record.payment_method,
        "customer_name": record.customer_name,
        "customer_phone": record.customer_phone,
        "total_amount": record.total_amount,
        "item_count": record.item_count,
        "notes": record.notes,
        "status": record.status,
    }


def serialize_sale_item(record: SaleItemRow) -> Dict[str, Any]:
    """Convert a line-item dataclass into cell values keyed by canonical field."""

    return {
        "sale_id": record.sale_id,
        "product_id": record.product_id,
        "product_name": record.product_name,
        "quantity": record.quantity,
        "unit_price": record.unit_price,
        "subtotal": record.subtotal,
    }


# ---------------------------------------------------------------------------
# Sheet operations
# ---------------------------------------------------------------------------


def _get_sheet(workbook: Workbook, sheet_name: str) -> Worksheet:
    try:
        return workbook[sheet_name]
    except KeyError as exc:
        raise DataAccessError(f"Workbook has no '{sheet_name}' sheet") from exc


def _column_map(sheet: Worksheet, fields: Mapping[str, Tuple[str, ...]]) -> Dict[str, int]:
    """Map canonical field names to 1-based column indexes of ``sheet``."""

    columns: Dict[str, int] = {}
    for index, cell in enumerate(sheet[1], start=1):
        if cell.value is None:
            continue
        folded = fold_key(cell.value)
        for name, aliases in fields.items():
            if name not in columns and folded in aliases:
                columns[name] = index
                break
    return columns


def iter_records(workbook: Workbook, sheet_name: str) -> Iterator[Dict[str, Any]]:
    """Yield each populated row of ``sheet_name`` as a header-keyed dict.

    The header row is read as-is; fully empty rows are skipped.
    """

    sheet = _get_sheet(workbook, sheet_name)
    headers = [cell.value for cell in sheet[1]]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        if any(cell is not None for cell in raw):
            yield {header: value for header, value in zip(headers, raw) if header is not None}


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over product records stored on the ``Products`` worksheet.

    Rows that cannot be interpreted are logged and skipped so one damaged row
    never hides the rest of the catalog.
    """

    for raw in iter_records(workbook, PRODUCTS_SHEET):
        try:
            yield deserialize_product(raw)
        except DataAccessError as exc:
            log.warning("Skipping product row: %s", exc)


def iter_sales(workbook: Workbook) -> Iterable[SaleRow]:
    """Iterate over sale headers stored on the ``Sales`` worksheet."""

    for raw in iter_records(workbook, SALES_SHEET):
        try:
            yield deserialize_sale(raw)
        except DataAccessError as exc:
            log.warning("Skipping sale row: %s", exc)


def iter_sale_items(workbook: Workbook) -> Iterable[SaleItemRow]:
    """Iterate over line items stored on the ``SaleItems`` worksheet."""

    for raw in iter_records(workbook, SALE_ITEMS_SHEET):
        yield deserialize_sale_item(raw)


def iter_settings(workbook: Workbook) -> Iterable[SettingRow]:
    """Iterate over key/value pairs stored on the ``Settings`` worksheet."""

    for raw in iter_records(workbook, SETTINGS_SHEET):
        try:
            yield deserialize_setting(raw)
        except DataAccessError as exc:
            log.warning("Skipping setting row: %s", exc)


def _append(workbook: Workbook, sheet_name: str, fields: Mapping[str, Tuple[str, ...]], values: Mapping[str, Any]) -> None:
    sheet = _get_sheet(workbook, sheet_name)
    columns = _column_map(sheet, fields)
    key_field = next(iter(fields))
    if key_field not in columns:
        raise DataAccessError(f"Sheet '{sheet_name}' has no column for '{key_field}'")
    dropped = [name for name in values if name not in columns and values[name] is not None]
    if dropped:
        log.debug("Sheet '%s' has no columns for %s; values not stored", sheet_name, ", ".join(dropped))
    width = max(sheet.max_column, max(columns.values(), default=0))
    row: list[object] = [None] * width
    for name, column in columns.items():
        row[column - 1] = values.get(name)
    sheet.append(row)


def append_product(workbook: Workbook, record: ProductRow) -> None:
    """Append a product record to the ``Products`` worksheet."""

    _append(workbook, PRODUCTS_SHEET, PRODUCT_FIELDS, serialize_product(record))


def append_sale(workbook: Workbook, record: SaleRow) -> None:
    """Append a sale header to the ``Sales`` worksheet.

    Nested items are not written here; see :func:`append_sale_item`.
    """

    _append(workbook, SALES_SHEET, SALE_FIELDS, serialize_sale(record))


def append_sale_item(workbook: Workbook, record: SaleItemRow) -> None:
    """Append a line item to the ``SaleItems`` worksheet."""

    _append(workbook, SALE_ITEMS_SHEET, SALE_ITEM_FIELDS, serialize_sale_item(record))


def locate_row(workbook: Workbook, sheet_name: str, fields: Mapping[str, Tuple[str, ...]], key_field: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        fields (Mapping[str, tuple[str, ...]]): Alias table for the sheet.
        key_field (str): Canonical name of the lookup column.
        key_value (str): Value to match; cells are compared as text.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_field`` has no column in the worksheet header.
    """

    sheet = _get_sheet(workbook, sheet_name)
    columns = _column_map(sheet, fields)
    if key_field not in columns:
        raise KeyError(f"Unknown column: {key_field}")

    key_col_index = columns[key_field]
    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        cell_value = row[key_col_index - 1] if len(row) >= key_col_index else None
        if cell_value is not None and str(cell_value) == str(key_value):
            return row_idx
    return None


def _update(workbook: Workbook, sheet_name: str, fields: Mapping[str, Tuple[str, ...]], key_field: str, key_value: str, field_values: Mapping[str, Any]) -> None:
    row_index = locate_row(workbook, sheet_name, fields, key_field, key_value)
    if row_index is None:
        raise KeyError(f"Row not found in '{sheet_name}': {key_value}")

    sheet = _get_sheet(workbook, sheet_name)
    columns = _column_map(sheet, fields)
    for name, value in field_values.items():
        if name not in columns:
            raise KeyError(f"Unknown field for '{sheet_name}': {name}")
        sheet.cell(row=row_index, column=columns[name], value=value)


def update_product(workbook: Workbook, product_id: str, *, field_values: Mapping[str, Any]) -> None:
    """Update selected columns for an existing product.

    ``field_values`` is keyed by canonical field name (see
    :func:`serialize_product`); only those cells are written.

    Raises:
        KeyError: If the product or any referenced column cannot be found.
    """

    _update(workbook, PRODUCTS_SHEET, PRODUCT_FIELDS, "product_id", product_id, field_values)


def update_sale(workbook: Workbook, sale_id: str, *, field_values: Mapping[str, Any]) -> None:
    """Update selected columns for an existing sale header.

    Raises:
        KeyError: If the sale or any referenced column cannot be found.
    """

    _update(workbook, SALES_SHEET, SALE_FIELDS, "sale_id", sale_id, field_values)


def upsert_setting(workbook: Workbook, key: str, value: Any, *, updated_at: str) -> None:
    """Insert or replace a setting; the value is stored JSON-encoded.

    Raises:
        TypeError: If ``value`` cannot be encoded as JSON.
    """

    encoded = json.dumps(value)
    row_index = locate_row(workbook, SETTINGS_SHEET, SETTING_FIELDS, "key", key)
    if row_index is None:
        _append(workbook, SETTINGS_SHEET, SETTING_FIELDS, {"key": key, "value": encoded, "updated_at": updated_at})
        return
    _update(workbook, SETTINGS_SHEET, SETTING_FIELDS, "key", key, {"value": encoded, "updated_at": updated_at})
