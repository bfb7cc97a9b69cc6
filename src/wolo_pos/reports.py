"""Derived report engine for Wolo POS.

Each report comes in two halves:

* ``build_*`` functions are pure. They take products, sales and line items
  that were already fetched and return a frozen report dataclass. The same
  inputs always produce the same figures.
* ``generate_*`` functions fetch those inputs through :mod:`core_logic` for a
  runtime context and hand them to the matching builder.

Money is accumulated as :class:`~decimal.Decimal` without intermediate
rounding; :func:`format_currency` rounds to cents for display only.

Some figures are estimates because the ledger does not record everything an
accountant would need. They are always flagged on the report:

* a sale whose line-item costs cannot be resolved contributes
  ``cogs_ratio`` (60% by default) of its total to the cost of goods sold and
  is listed in ``estimated_sale_ids``;
* cash on the balance sheet is the sum of all sales up to the reporting date
  (``cash_is_approximate``);
* a sale with no item information counts as one item
  (``item_count_estimated``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import catalog, core_logic, data_manager, log
from .constants import (
    ASSUMED_COGS_RATIO,
    DASHBOARD_DAYS,
    DEFAULT_CURRENCY,
    EXPIRY_WARNING_DAYS,
    TOP_PRODUCT_LIMIT,
    URGENT_EXPIRY_DAYS,
    ExpiryStatus,
    StockStatus,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

LineItemLookup = Mapping[str, Optional[Sequence[data_manager.SaleItemRow]]]


def _now() -> datetime:
    return datetime.now(UTC)


def format_currency(amount: Optional[Decimal], currency: str = DEFAULT_CURRENCY) -> str:
    """Round ``amount`` to cents for display; ``None`` renders as ``n/a``."""

    if amount is None:
        return "n/a"
    return f"{currency} {amount.quantize(CENT, rounding=ROUND_HALF_UP):,}"


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """Return ``part / whole * 100``, or zero when ``whole`` is zero."""

    if whole == 0:
        return ZERO
    return part / whole * HUNDRED


# ---------------------------------------------------------------------------
# Sales report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SalesReportRow:
    sale_id: str
    invoice_number: str
    timestamp: datetime
    customer_name: str
    payment_method: str
    item_count: int
    item_count_estimated: bool
    total_amount: Decimal
    status: str


@dataclass(frozen=True)
class SalesReport:
    start_date: date
    end_date: date
    category: Optional[str]
    rows: Tuple[SalesReportRow, ...]
    total_items: int
    total_amount: Decimal
    generated_at: datetime


def resolve_item_count(sale: data_manager.SaleRow) -> Tuple[int, bool]:
    """Return ``(count, estimated)`` for a sale.

    An explicit positive ``item_count`` wins, then the number of nested line
    items; with neither the sale counts as one item and the count is flagged
    as estimated.
    """

    if sale.item_count:
        return sale.item_count, False
    if sale.items:
        return len(sale.items), False
    return 1, True


def build_sales_report(
    sales: Iterable[data_manager.SaleRow],
    *,
    start_date: date,
    end_date: date,
    category: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> SalesReport:
    """Aggregate completed sales dated within ``[start_date, end_date]``.

    ``category`` is recorded on the report; category filtering itself needs
    product lookups and happens in :func:`generate_sales_report`.
    """

    rows: List[SalesReportRow] = []
    total_items = 0
    total_amount = ZERO
    for sale in sales:
        if sale.is_voided or not start_date <= sale.timestamp.date() <= end_date:
            continue
        count, estimated = resolve_item_count(sale)
        rows.append(
            SalesReportRow(
                sale_id=sale.sale_id,
                invoice_number=sale.invoice_number,
                timestamp=sale.timestamp,
                customer_name=sale.customer_name or "Walk-in",
                payment_method=sale.payment_method,
                item_count=count,
                item_count_estimated=estimated,
                total_amount=sale.total_amount,
                status=sale.status,
            )
        )
        total_items += count
        total_amount += sale.total_amount

    return SalesReport(
        start_date=start_date,
        end_date=end_date,
        category=category or None,
        rows=tuple(rows),
        total_items=total_items,
        total_amount=total_amount,
        generated_at=generated_at or _now(),
    )


def generate_sales_report(
    context: core_logic.RuntimeContext,
    start_date: date,
    end_date: date,
    category: Optional[str] = None,
) -> SalesReport:
    sales = core_logic.get_sales_in_range(context, start_date, end_date, category)
    report = build_sales_report(sales, start_date=start_date, end_date=end_date, category=category)
    log.info(
        "Generated sales report %s..%s: %d sales, total=%s",
        start_date,
        end_date,
        len(report.rows),
        report.total_amount,
    )
    return report


# ---------------------------------------------------------------------------
# Inventory, low stock and expiry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventoryReportRow:
    product_id: str
    name: str
    category: str
    quantity_in_stock: int
    reorder_level: int
    selling_price: Decimal
    unit_cost: Optional[Decimal]
    cost_estimated: bool
    value: Optional[Decimal]
    status: StockStatus


@dataclass(frozen=True)
class InventoryReport:
    category: Optional[str]
    rows: Tuple[InventoryReportRow, ...]
    total_units: int
    total_value: Decimal
    unvalued_count: int
    in_stock_count: int
    low_stock_count: int
    out_of_stock_count: int
    generated_at: datetime


@dataclass(frozen=True)
class LowStockReport:
    category: Optional[str]
    threshold: Optional[int]
    rows: Tuple[InventoryReportRow, ...]
    low_stock_count: int
    out_of_stock_count: int
    generated_at: datetime


def inventory_row(product: data_manager.ProductRow, *, threshold: Optional[int] = None) -> InventoryReportRow:
    """Value and classify one product."""

    unit_cost = catalog.resolve_unit_cost(product)
    return InventoryReportRow(
        product_id=product.product_id,
        name=product.name,
        category=product.category,
        quantity_in_stock=product.quantity_in_stock,
        reorder_level=product.reorder_level if threshold is None else threshold,
        selling_price=product.selling_price,
        unit_cost=unit_cost,
        cost_estimated=product.cost_estimated,
        value=None if unit_cost is None else unit_cost * product.quantity_in_stock,
        status=catalog.classify_stock(product, threshold=threshold),
    )


def _select_products(
    products: Iterable[data_manager.ProductRow], category: Optional[str]
) -> List[data_manager.ProductRow]:
    return [p for p in products if p.is_active and (not category or p.category == category)]


def inventory_value(products: Iterable[data_manager.ProductRow]) -> Tuple[Decimal, int]:
    """Return ``(total value, number of products without a usable cost)``."""

    total = ZERO
    unvalued = 0
    for product in products:
        unit_cost = catalog.resolve_unit_cost(product)
        if unit_cost is None:
            unvalued += 1
            continue
        total += unit_cost * product.quantity_in_stock
    return total, unvalued


def build_inventory_report(
    products: Iterable[data_manager.ProductRow],
    *,
    category: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> InventoryReport:
    """Value every active product (optionally in one category).

    Products without a resolvable unit cost are listed with ``value=None``
    and left out of ``total_value``.
    """

    rows = [inventory_row(product) for product in _select_products(products, category)]
    counts = {status: 0 for status in StockStatus}
    total_value = ZERO
    for row in rows:
        counts[row.status] += 1
        if row.value is not None:
            total_value += row.value

    return InventoryReport(
        category=category or None,
        rows=tuple(rows),
        total_units=sum(row.quantity_in_stock for row in rows),
        total_value=total_value,
        unvalued_count=sum(1 for row in rows if row.value is None),
        in_stock_count=counts[StockStatus.IN_STOCK],
        low_stock_count=counts[StockStatus.LOW_STOCK],
        out_of_stock_count=counts[StockStatus.OUT_OF_STOCK],
        generated_at=generated_at or _now(),
    )


def build_low_stock_report(
    products: Iterable[data_manager.ProductRow],
    *,
    category: Optional[str] = None,
    threshold: Optional[int] = None,
    generated_at: Optional[datetime] = None,
) -> LowStockReport:
    """List low and out-of-stock products, lowest quantity first.

    ``threshold`` replaces each product's reorder level when given. Ties keep
    their catalog order.
    """

    rows = [
        row
        for row in (inventory_row(p, threshold=threshold) for p in _select_products(products, category))
        if row.status is not StockStatus.IN_STOCK
    ]
    rows.sort(key=lambda row: row.quantity_in_stock)
    return LowStockReport(
        category=category or None,
        threshold=threshold,
        rows=tuple(rows),
        low_stock_count=sum(1 for row in rows if row.status is StockStatus.LOW_STOCK),
        out_of_stock_count=sum(1 for row in rows if row.status is StockStatus.OUT_OF_STOCK),
        generated_at=generated_at or _now(),
    )


def generate_inventory_report(context: core_logic.RuntimeContext, category: Optional[str] = None) -> InventoryReport:
    return build_inventory_report(core_logic.list_products(context), category=category)


def generate_low_stock_report(
    context: core_logic.RuntimeContext,
    category: Optional[str] = None,
    threshold: Optional[int] = None,
) -> LowStockReport:
    return build_low_stock_report(core_logic.list_products(context), category=category, threshold=threshold)


@dataclass(frozen=True)
class ExpiryReportRow:
    product_id: str
    name: str
    category: str
    quantity_in_stock: int
    expiry_date: date
    days_until_expiry: int
    status: ExpiryStatus
    urgent: bool


@dataclass(frozen=True)
class ExpiryReport:
    today: date
    within_days: Optional[int]
    category: Optional[str]
    rows: Tuple[ExpiryReportRow, ...]
    expired_count: int
    expiring_soon_count: int
    generated_at: datetime


def build_expiry_report(
    products: Iterable[data_manager.ProductRow],
    *,
    today: date,
    within_days: Optional[int] = None,
    category: Optional[str] = None,
    warning_days: int = EXPIRY_WARNING_DAYS,
    urgent_days: int = URGENT_EXPIRY_DAYS,
    generated_at: Optional[datetime] = None,
) -> ExpiryReport:
    """Classify active products that carry an expiry date.

    With ``within_days`` only products expiring on or before ``today +
    within_days`` are kept; expired products always are. Rows are sorted by
    expiry date, earliest first.
    """

    horizon = None if within_days is None else today + timedelta(days=within_days)
    rows: List[ExpiryReportRow] = []
    for product in _select_products(products, category):
        days = catalog.days_until_expiry(product, today)
        if days is None or (horizon is not None and product.expiry_date > horizon):
            continue
        rows.append(
            ExpiryReportRow(
                product_id=product.product_id,
                name=product.name,
                category=product.category,
                quantity_in_stock=product.quantity_in_stock,
                expiry_date=product.expiry_date,
                days_until_expiry=days,
                status=catalog.expiry_status(days, warning_days=warning_days),
                urgent=catalog.is_urgent(days, urgent_days=urgent_days),
            )
        )
    rows.sort(key=lambda row: row.expiry_date)
    return ExpiryReport(
        today=today,
        within_days=within_days,
        category=category or None,
        rows=tuple(rows),
        expired_count=sum(1 for row in rows if row.status is ExpiryStatus.EXPIRED),
        expiring_soon_count=sum(1 for row in rows if row.status is ExpiryStatus.EXPIRING_SOON),
        generated_at=generated_at or _now(),
    )


def generate_expiry_report(
    context: core_logic.RuntimeContext,
    *,
    today: Optional[date] = None,
    within_days: Optional[int] = None,
    category: Optional[str] = None,
) -> ExpiryReport:
    return build_expiry_report(
        core_logic.list_products(context),
        today=today or date.today(),
        within_days=within_days,
        category=category,
        warning_days=context.settings.expiry_warning_days,
        urgent_days=context.settings.urgent_expiry_days,
    )


# ---------------------------------------------------------------------------
# Financial statements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IncomeStatement:
    start_date: date
    end_date: date
    sale_count: int
    revenue: Decimal
    cost_of_goods_sold: Decimal
    gross_profit: Decimal
    gross_margin_pct: Decimal
    operating_expenses: Decimal
    net_income: Decimal
    net_margin_pct: Decimal
    estimated_sale_ids: Tuple[str, ...]
    uses_estimated_costs: bool
    generated_at: datetime

    @property
    def is_estimated(self) -> bool:
        return bool(self.estimated_sale_ids) or self.uses_estimated_costs


@dataclass(frozen=True)
class BalanceSheet:
    as_of: date
    cash: Decimal
    accounts_receivable: Decimal
    inventory_value: Decimal
    fixed_assets: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    equity: Decimal
    unvalued_product_count: int
    generated_at: datetime
    cash_is_approximate: bool = True


@dataclass(frozen=True)
class CashFlowStatement:
    start_date: date
    end_date: date
    cash_from_sales: Decimal
    inventory_payments: Decimal
    operating_activities: Decimal
    investing_activities: Decimal
    financing_activities: Decimal
    net_change_in_cash: Decimal
    generated_at: datetime


@dataclass(frozen=True)
class ProfitAndLossLine:
    label: str
    amount: Decimal
    percent_of_revenue: Decimal


@dataclass(frozen=True)
class ProfitAndLossSummary:
    statement: IncomeStatement
    lines: Tuple[ProfitAndLossLine, ...]
    generated_at: datetime


def sale_cost(
    sale: data_manager.SaleRow,
    items: Optional[Sequence[data_manager.SaleItemRow]],
    products_by_id: Mapping[str, data_manager.ProductRow],
    *,
    cogs_ratio: Decimal = ASSUMED_COGS_RATIO,
) -> Tuple[Decimal, bool, bool]:
    """Return ``(cost, estimated, used_estimated_cost)`` for one sale.

    ``items=None`` means the line items could not be fetched. Items whose
    product or unit cost is unknown contribute nothing; when no item yields a
    cost at all, the whole sale is costed at ``cogs_ratio`` of its total.
    """

    cost = ZERO
    resolved = False
    used_estimated_cost = False
    for item in items or ():
        product = products_by_id.get(item.product_id) if item.product_id else None
        unit_cost = catalog.resolve_unit_cost(product) if product is not None else None
        if unit_cost is None:
            continue
        cost += unit_cost * item.quantity
        resolved = True
        used_estimated_cost = used_estimated_cost or product.cost_estimated
    if resolved:
        return cost, False, used_estimated_cost
    return sale.total_amount * cogs_ratio, True, False


def build_income_statement(
    sales: Iterable[data_manager.SaleRow],
    products: Iterable[data_manager.ProductRow],
    line_items: LineItemLookup,
    *,
    start_date: date,
    end_date: date,
    cogs_ratio: Decimal = ASSUMED_COGS_RATIO,
    generated_at: Optional[datetime] = None,
) -> IncomeStatement:
    """Compute revenue, COGS and margins for completed sales in the period.

    Line items nested on a sale are used directly; otherwise they are looked
    up in ``line_items`` by sale id, where ``None`` marks a failed fetch.
    Operating expenses are not tracked and are always zero.
    """

    products_by_id = {product.product_id: product for product in products}
    revenue = ZERO
    cogs = ZERO
    estimated: List[str] = []
    uses_estimated_costs = False
    sale_count = 0
    for sale in sales:
        if sale.is_voided or not start_date <= sale.timestamp.date() <= end_date:
            continue
        sale_count += 1
        revenue += sale.total_amount
        items = sale.items or line_items.get(sale.sale_id)
        cost, is_estimate, used_estimated_cost = sale_cost(sale, items, products_by_id, cogs_ratio=cogs_ratio)
        cogs += cost
        uses_estimated_costs = uses_estimated_costs or used_estimated_cost
        if is_estimate:
            estimated.append(sale.sale_id)

    gross_profit = revenue - cogs
    operating_expenses = ZERO
    net_income = gross_profit - operating_expenses
    return IncomeStatement(
        start_date=start_date,
        end_date=end_date,
        sale_count=sale_count,
        revenue=revenue,
        cost_of_goods_sold=cogs,
        gross_profit=gross_profit,
        gross_margin_pct=percent_of(gross_profit, revenue),
        operating_expenses=operating_expenses,
        net_income=net_income,
        net_margin_pct=percent_of(net_income, revenue),
        estimated_sale_ids=tuple(estimated),
        uses_estimated_costs=uses_estimated_costs,
        generated_at=generated_at or _now(),
    )


def build_balance_sheet(
    sales: Iterable[data_manager.SaleRow],
    products: Iterable[data_manager.ProductRow],
    *,
    as_of: date,
    generated_at: Optional[datetime] = None,
) -> BalanceSheet:
    """Approximate the balance sheet as of ``as_of``.

    Cash is every completed sale total up to and including ``as_of``.
    Receivables, fixed assets and liabilities have no data source yet and are
    zero, so equity equals total assets by construction.
    """

    cash = sum(
        (sale.total_amount for sale in sales if not sale.is_voided and sale.timestamp.date() <= as_of),
        ZERO,
    )
    stock_value, unvalued = inventory_value(_select_products(products, None))
    accounts_receivable = ZERO
    fixed_assets = ZERO
    total_assets = cash + accounts_receivable + stock_value + fixed_assets
    total_liabilities = ZERO
    return BalanceSheet(
        as_of=as_of,
        cash=cash,
        accounts_receivable=accounts_receivable,
        inventory_value=stock_value,
        fixed_assets=fixed_assets,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        equity=total_assets - total_liabilities,
        unvalued_product_count=unvalued,
        generated_at=generated_at or _now(),
    )


def build_cash_flow_statement(
    sales: Iterable[data_manager.SaleRow],
    *,
    start_date: date,
    end_date: date,
    generated_at: Optional[datetime] = None,
) -> CashFlowStatement:
    """Summarize cash movement for the period.

    Purchases are not tracked, so inventory payments, investing and financing
    activities are zero and operating cash equals cash from sales.
    """

    cash_from_sales = sum(
        (
            sale.total_amount
            for sale in sales
            if not sale.is_voided and start_date <= sale.timestamp.date() <= end_date
        ),
        ZERO,
    )
    inventory_payments = ZERO
    operating = cash_from_sales - inventory_payments
    investing = ZERO
    financing = ZERO
    return CashFlowStatement(
        start_date=start_date,
        end_date=end_date,
        cash_from_sales=cash_from_sales,
        inventory_payments=inventory_payments,
        operating_activities=operating,
        investing_activities=investing,
        financing_activities=financing,
        net_change_in_cash=operating + investing + financing,
        generated_at=generated_at or _now(),
    )


def build_profit_and_loss(statement: IncomeStatement, *, generated_at: Optional[datetime] = None) -> ProfitAndLossSummary:
    """Restate an income statement with each line as a share of revenue."""

    revenue = statement.revenue
    entries = (
        ("Revenue", revenue),
        ("Cost of Goods Sold", statement.cost_of_goods_sold),
        ("Gross Profit", statement.gross_profit),
        ("Operating Expenses", statement.operating_expenses),
        ("Net Income", statement.net_income),
    )
    lines = tuple(
        ProfitAndLossLine(label=label, amount=amount, percent_of_revenue=percent_of(amount, revenue))
        for label, amount in entries
    )
    return ProfitAndLossSummary(statement=statement, lines=lines, generated_at=generated_at or _now())


def collect_line_items(
    context: core_logic.RuntimeContext, sales: Sequence[data_manager.SaleRow]
) -> Dict[str, Optional[List[data_manager.SaleItemRow]]]:
    """Fetch line items per sale, in sale order.

    A failed fetch maps to ``None`` instead of aborting, so the income
    statement can fall back to its estimate for that sale alone.
    """

    collected: Dict[str, Optional[List[data_manager.SaleItemRow]]] = {}
    for sale in sales:
        if sale.items:
            collected[sale.sale_id] = list(sale.items)
            continue
        try:
            collected[sale.sale_id] = core_logic.get_sale_line_items(context, sale.sale_id)
        except (core_logic.MissingReferenceError, data_manager.DataAccessError) as exc:
            log.warning("Line items unavailable for sale '%s'; using estimate: %s", sale.sale_id, exc)
            collected[sale.sale_id] = None
    return collected


def generate_income_statement(
    context: core_logic.RuntimeContext, start_date: date, end_date: date
) -> IncomeStatement:
    sales = core_logic.get_sales_in_range(context, start_date, end_date)
    statement = build_income_statement(
        sales,
        core_logic.list_products(context, include_inactive=True),
        collect_line_items(context, sales),
        start_date=start_date,
        end_date=end_date,
        cogs_ratio=context.settings.cogs_ratio,
    )
    if statement.estimated_sale_ids:
        log.warning(
            "Income statement %s..%s estimates COGS for %d of %d sales",
            start_date,
            end_date,
            len(statement.estimated_sale_ids),
            statement.sale_count,
        )
    return statement


def generate_balance_sheet(context: core_logic.RuntimeContext, as_of: Optional[date] = None) -> BalanceSheet:
    return build_balance_sheet(
        core_logic.list_sales(context),
        core_logic.list_products(context),
        as_of=as_of or date.today(),
    )


def generate_cash_flow_statement(
    context: core_logic.RuntimeContext, start_date: date, end_date: date
) -> CashFlowStatement:
    sales = core_logic.get_sales_in_range(context, start_date, end_date)
    return build_cash_flow_statement(sales, start_date=start_date, end_date=end_date)


def generate_profit_and_loss(
    context: core_logic.RuntimeContext, start_date: date, end_date: date
) -> ProfitAndLossSummary:
    return build_profit_and_loss(generate_income_statement(context, start_date, end_date))


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TopProduct:
    product_id: Optional[str]
    name: str
    quantity_sold: int
    revenue: Decimal


@dataclass(frozen=True)
class DashboardSummary:
    """At-a-glance figures for the home screen.

    ``daily_totals`` holds one ``(day, total)`` pair per day of the window,
    oldest first, with zero for days without sales.
    """

    today: date
    today_sale_count: int
    today_total: Decimal
    daily_totals: Tuple[Tuple[date, Decimal], ...]
    top_products: Tuple[TopProduct, ...]
    inventory_value: Decimal
    product_count: int
    low_stock_count: int
    out_of_stock_count: int
    expiring_count: int
    generated_at: datetime

    @property
    def window_total(self) -> Decimal:
        return sum((total for _, total in self.daily_totals), ZERO)


def daily_sales_totals(
    sales: Iterable[data_manager.SaleRow], *, start_date: date, end_date: date
) -> List[Tuple[date, Decimal]]:
    """Sum completed sales per calendar day of ``[start_date, end_date]``."""

    totals: Dict[date, Decimal] = {}
    day = start_date
    while day <= end_date:
        totals[day] = ZERO
        day += timedelta(days=1)
    for sale in sales:
        sold_on = sale.timestamp.date()
        if not sale.is_voided and sold_on in totals:
            totals[sold_on] += sale.total_amount
    return list(totals.items())


def top_products_by_quantity(
    sales: Iterable[data_manager.SaleRow], line_items: LineItemLookup, *, limit: int = TOP_PRODUCT_LIMIT
) -> List[TopProduct]:
    """Rank products by units sold across completed sales.

    Lines are grouped by product id, or by name for lines whose product no
    longer exists. Ties keep the order in which products were first sold.
    Sales whose line items are unavailable are skipped.
    """

    sold: Dict[str, TopProduct] = {}
    for sale in sales:
        if sale.is_voided:
            continue
        for item in line_items.get(sale.sale_id) or ():
            key = item.product_id or item.product_name
            seen = sold.get(key)
            sold[key] = TopProduct(
                product_id=item.product_id,
                name=seen.name if seen else item.product_name,
                quantity_sold=(seen.quantity_sold if seen else 0) + item.quantity,
                revenue=(seen.revenue if seen else ZERO) + item.subtotal,
            )
    ranked = sorted(sold.values(), key=lambda product: product.quantity_sold, reverse=True)
    return ranked[:limit]


def build_dashboard_summary(
    sales: Iterable[data_manager.SaleRow],
    products: Iterable[data_manager.ProductRow],
    line_items: LineItemLookup,
    *,
    today: date,
    days: int = DASHBOARD_DAYS,
    top_n: int = TOP_PRODUCT_LIMIT,
    warning_days: int = EXPIRY_WARNING_DAYS,
    generated_at: Optional[datetime] = None,
) -> DashboardSummary:
    """Summarise the ``days`` days ending ``today`` and the active catalog.

    Voided sales and sales after ``today`` are ignored. Stock counts follow
    each product's reorder level; products expiring within ``warning_days``
    days (but not yet expired) count as expiring.

    Raises:
        ValueError: If ``days`` or ``top_n`` is not positive.
    """

    if days <= 0 or top_n <= 0:
        raise ValueError("Dashboard window and top product count must be greater than zero")

    start_date = today - timedelta(days=days - 1)
    window = [
        sale for sale in sales if not sale.is_voided and start_date <= sale.timestamp.date() <= today
    ]
    todays = [sale for sale in window if sale.timestamp.date() == today]

    active = _select_products(products, None)
    value, _ = inventory_value(active)
    stock = [catalog.classify_stock(product) for product in active]
    expiring = 0
    for product in active:
        remaining = catalog.days_until_expiry(product, today)
        if remaining is None:
            continue
        if catalog.expiry_status(remaining, warning_days=warning_days) is ExpiryStatus.EXPIRING_SOON:
            expiring += 1

    return DashboardSummary(
        today=today,
        today_sale_count=len(todays),
        today_total=sum((sale.total_amount for sale in todays), ZERO),
        daily_totals=tuple(daily_sales_totals(window, start_date=start_date, end_date=today)),
        top_products=tuple(top_products_by_quantity(window, line_items, limit=top_n)),
        inventory_value=value,
        product_count=len(active),
        low_stock_count=stock.count(StockStatus.LOW_STOCK),
        out_of_stock_count=stock.count(StockStatus.OUT_OF_STOCK),
        expiring_count=expiring,
        generated_at=generated_at or _now(),
    )


def generate_dashboard_summary(
    context: core_logic.RuntimeContext,
    *,
    today: Optional[date] = None,
    days: int = DASHBOARD_DAYS,
    top_n: int = TOP_PRODUCT_LIMIT,
) -> DashboardSummary:
    today = today or date.today()
    sales = core_logic.get_sales_in_range(context, today - timedelta(days=max(days, 1) - 1), today)
    summary = build_dashboard_summary(
        sales,
        core_logic.list_products(context),
        collect_line_items(context, sales),
        today=today,
        days=days,
        top_n=top_n,
        warning_days=context.settings.expiry_warning_days,
    )
    log.info(
        "Generated dashboard for %s: %d sales today, total=%s",
        today,
        summary.today_sale_count,
        summary.today_total,
    )
    return summary
