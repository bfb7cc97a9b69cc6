"""Enumerations and numeric constants shared across Wolo POS modules.

The data access layer, the business logic layer, the report engine and the
CLI all import their identifiers from here so that sheet names, payment
methods and report labels have a single source of truth.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

DEFAULT_REORDER_LEVEL = 10
DEFAULT_HISTORY_LENGTH = 50
DEFAULT_CURRENCY = "GHS"
DEFAULT_PAGE_SIZE = 10

# Provisional estimates, not accounting rules. Reports flag every figure
# that depends on one of them.
ASSUMED_COGS_RATIO = Decimal("0.60")
ASSUMED_MARGIN = Decimal("0.30")

EXPIRY_WARNING_DAYS = 30
URGENT_EXPIRY_DAYS = 7

DASHBOARD_DAYS = 7
TOP_PRODUCT_LIMIT = 5


class PaymentMethod(str, Enum):
    """Enumerate supported payment methods for sales."""

    CASH = "cash"
    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    OTHER = "other"


class SaleStatus(str, Enum):
    """Lifecycle states of a recorded sale."""

    COMPLETED = "completed"
    VOIDED = "voided"


class StockStatus(str, Enum):
    """Mutually exclusive stock classifications used by inventory reports."""

    OUT_OF_STOCK = "Out of Stock"
    LOW_STOCK = "Low Stock"
    IN_STOCK = "In Stock"


class ExpiryStatus(str, Enum):
    """Expiry classifications used by the expiring-products report."""

    EXPIRED = "Expired"
    EXPIRING_SOON = "Expiring Soon"
    GOOD = "Good"


class ReportType(str, Enum):
    """Report variants produced by the report engine."""

    SALES = "sales"
    INVENTORY = "inventory"
    LOW_STOCK = "low-stock"
    EXPIRING = "expiring"
    INCOME_STATEMENT = "income-statement"
    BALANCE_SHEET = "balance-sheet"
    CASH_FLOW = "cash-flow"
    PROFIT_LOSS = "profit-loss"
    DASHBOARD = "dashboard"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    PRODUCTS = "Products"
    SALES = "Sales"
    SALE_ITEMS = "SaleItems"
    SETTINGS = "Settings"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_REORDER_LEVEL",
    "DEFAULT_HISTORY_LENGTH",
    "DEFAULT_CURRENCY",
    "DEFAULT_PAGE_SIZE",
    "ASSUMED_COGS_RATIO",
    "ASSUMED_MARGIN",
    "EXPIRY_WARNING_DAYS",
    "URGENT_EXPIRY_DAYS",
    "DASHBOARD_DAYS",
    "TOP_PRODUCT_LIMIT",
    "PaymentMethod",
    "SaleStatus",
    "StockStatus",
    "ExpiryStatus",
    "ReportType",
    "SheetName",
]
