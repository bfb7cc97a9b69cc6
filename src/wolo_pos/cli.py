"""Command-line entry points for Wolo POS.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the objects consumed by the business layer, and
printing receipts, listings and reports. Keeping the CLI thin ensures the
same parser configuration can be reused by tests, scripts, or any other
front-end that wants to expose the package capabilities.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

from . import catalog, core_logic, data_manager, log, reports
from .constants import DEFAULT_PAGE_SIZE, PaymentMethod, ReportType
from .receipt import format_receipt


DEFAULT_REPORT_DAYS = 30


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed.

    ``persists`` marks commands whose workbook changes are saved after a
    successful run.
    """

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    persists: bool = True


def parse_money(text: str) -> Decimal:
    """argparse type for non-negative decimal amounts."""

    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"Invalid amount: {text}") from exc
    if amount < 0:
        raise argparse.ArgumentTypeError(f"Amount must be zero or positive: {text}")
    return amount


def parse_iso_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {text}") from exc


def parse_line_item(text: str) -> core_logic.SaleLineCommand:
    """argparse type for ``PRODUCT_ID:QUANTITY[:UNIT_PRICE]``."""

    parts = text.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise argparse.ArgumentTypeError(f"Expected PRODUCT_ID:QUANTITY[:UNIT_PRICE], got '{text}'")
    try:
        quantity = int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Quantity must be a whole number in '{text}'") from exc
    unit_price = parse_money(parts[2]) if len(parts) == 3 else None
    return core_logic.SaleLineCommand(product_id=parts[0], quantity=quantity, unit_price=unit_price)


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="wolo-pos",
        description="Command-line tools for the Wolo Pharmacy workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to an upward search from the current directory).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and catalog edits."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "deactivate-product": register_deactivate_product_command(subparsers),
        "sale": register_sale_command(subparsers),
        "void-sale": register_void_sale_command(subparsers),
        "set-setting": register_set_setting_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "products": register_products_command(subparsers),
        "report": register_report_command(subparsers),
        "get-setting": register_get_setting_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_product_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--name", required=required)
    parser.add_argument("--category", default=None)
    parser.add_argument("--selling-price", type=parse_money, required=required)
    parser.add_argument("--cost-price", type=parse_money, default=None)
    parser.add_argument("--bulk-cost", type=parse_money, default=None, help="Total cost of the purchased batch.")
    parser.add_argument("--quantity-purchased", type=int, default=None)
    parser.add_argument("--stock", type=int, default=None, help="Units in stock.")
    parser.add_argument("--shelf", type=int, default=None, help="Units on the shelf (at most the stock).")
    parser.add_argument("--reorder-level", type=int, default=None)
    parser.add_argument("--expiry-date", type=parse_iso_date, default=None)
    parser.add_argument("--barcode", default=None)
    parser.add_argument("--sku", default=None)
    parser.add_argument("--description", default=None)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Register a new product in the Products sheet."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        _add_product_fields(parser, required=True)
        parser.add_argument("--inactive", action="store_true", help="Mark the product as inactive on creation.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""
    name = "update-product"
    help_text = "Change fields of an existing product."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        _add_product_fields(parser, required=False)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_product)


def register_deactivate_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``deactivate-product``."""
    name = "deactivate-product"
    help_text = "Hide a product from listings and reports."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_deactivate_product)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale and print its receipt."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--item",
            dest="items",
            type=parse_line_item,
            action="append",
            required=True,
            help="PRODUCT_ID:QUANTITY[:UNIT_PRICE]; repeat for each line.",
        )
        parser.add_argument(
            "--payment-method",
            choices=[member.value for member in PaymentMethod],
            default=PaymentMethod.CASH.value,
        )
        parser.add_argument("--customer-name", default=None)
        parser.add_argument("--customer-phone", default=None)
        parser.add_argument("--notes", dest="notes", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_void_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``void-sale``."""
    name = "void-sale"
    help_text = "Void a recorded sale so reports exclude it."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--sale-id", required=True)
        parser.add_argument("--notes", dest="notes", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_void_sale)


def register_set_setting_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``set-setting``."""
    name = "set-setting"
    help_text = "Store a setting value (JSON literals are decoded)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--key", required=True)
        parser.add_argument("--value", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_set_setting)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    name = "products"
    help_text = "List products with search, filters, sorting and paging."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--search", default="")
        parser.add_argument("--category", default="")
        parser.add_argument("--stock", dest="stock_filter", choices=["low", "out"], default="")
        parser.add_argument("--expiry", dest="expiry_filter", choices=["expiring", "expired"], default="")
        parser.add_argument("--sort", dest="sort_key", choices=catalog.SORTABLE_FIELDS, default="name")
        parser.add_argument("--descending", action="store_true")
        parser.add_argument("--page", type=int, default=1)
        parser.add_argument("--per-page", type=int, default=DEFAULT_PAGE_SIZE)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_products, persists=False)


def register_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``report``."""
    name = "report"
    help_text = "Display a sales, inventory or financial report."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("report_type", choices=[member.value for member in ReportType])
        parser.add_argument("--start", type=parse_iso_date, default=None, help="Period start (default: 30 days ago).")
        parser.add_argument("--end", type=parse_iso_date, default=None, help="Period end (default: today).")
        parser.add_argument("--as-of", type=parse_iso_date, default=None, help="Balance sheet or dashboard date (default: today).")
        parser.add_argument("--category", default=None)
        parser.add_argument("--threshold", type=int, default=None, help="Low-stock threshold override.")
        parser.add_argument("--within-days", type=int, default=None, help="Expiry horizon in days.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_report, persists=False)


def register_get_setting_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``get-setting``."""
    name = "get-setting"
    help_text = "Print a stored setting as JSON."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--key", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_get_setting, persists=False)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    return core_logic.load_runtime_context(Path(config_path) if config_path is not None else None)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


PRODUCT_ARGUMENTS = {
    "name": "name",
    "category": "category",
    "selling_price": "selling_price",
    "cost_price": "cost_price",
    "bulk_cost": "total_bulk_cost",
    "quantity_purchased": "quantity_purchased",
    "stock": "quantity_in_stock",
    "shelf": "quantity_on_shelf",
    "reorder_level": "reorder_level",
    "expiry_date": "expiry_date",
    "barcode": "barcode",
    "sku": "sku",
    "description": "description",
}


def translate_product_changes(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect the product fields supplied on the command line."""
    changes: Dict[str, Any] = {}
    for argument, field_name in PRODUCT_ARGUMENTS.items():
        value = getattr(args, argument, None)
        if value is not None:
            changes[field_name] = value
    return changes


def translate_add_product(args: argparse.Namespace, *, default_reorder_level: int) -> data_manager.ProductRow:
    """Translate CLI args into a new product row."""
    changes = translate_product_changes(args)
    changes.setdefault("reorder_level", default_reorder_level)
    changes.setdefault("category", "")
    return data_manager.ProductRow(
        product_id=args.product_id,
        is_active=not getattr(args, "inactive", False),
        **changes,
    )


def translate_sale(args: argparse.Namespace) -> core_logic.SaleCommand:
    """Translate CLI args into a sale command object."""
    return core_logic.SaleCommand(
        items=tuple(args.items),
        payment_method=PaymentMethod(args.payment_method),
        customer_name=args.customer_name,
        customer_phone=args.customer_phone,
        notes=args.notes,
    )


def translate_setting_value(raw: str) -> Any:
    """Decode ``raw`` as JSON, keeping it as plain text when it is not JSON."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def resolve_period(args: argparse.Namespace, *, today: Optional[date] = None) -> tuple[date, date]:
    """Return the ``(start, end)`` reporting period from the CLI args."""
    end = args.end or today or date.today()
    start = args.start or end - timedelta(days=DEFAULT_REPORT_DAYS)
    return start, end


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow in the BLL."""
    record = translate_add_product(args, default_reorder_level=context.settings.reorder_level)
    product = core_logic.add_product(context, record)
    print(f"Added product {product.product_id} ({product.name})")
    if product.cost_estimated:
        print(f"Cost price estimated at {reports.format_currency(product.cost_price, context.settings.currency)}")
    return 0


def run_update_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow in the BLL."""
    changes = translate_product_changes(args)
    if not changes:
        log.warning("update-product called without any field to change")
        return 1
    product = core_logic.update_product(context, args.product_id, **changes)
    print(f"Updated product {product.product_id}")
    return 0


def run_deactivate_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.deactivate_product(context, args.product_id)
    print(f"Deactivated product {args.product_id}")
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow via the BLL and print the receipt."""
    command = translate_sale(args)
    sale = core_logic.record_sale(context, command)
    print(format_receipt(sale, context.settings.store_name, context.settings.currency))
    return 0


def run_void_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.void_sale(context, args.sale_id, notes=args.notes)
    print(f"Voided sale {args.sale_id}")
    return 0


def run_set_setting(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.save_setting(context, args.key, translate_setting_value(args.value))
    print(f"Saved setting {args.key}")
    return 0


def run_get_setting(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    setting = core_logic.get_setting(context, args.key)
    if setting is None:
        log.warning("Setting '%s' is not defined", args.key)
        return 1
    print(json.dumps(setting.value))
    return 0


def run_products(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """List products through the catalog query pipeline."""
    query = catalog.ProductQuery(
        search=args.search,
        category=args.category,
        stock_filter=args.stock_filter,
        expiry_filter=args.expiry_filter,
        sort_key=args.sort_key,
        descending=args.descending,
        page=args.page,
        per_page=args.per_page,
        warning_days=context.settings.expiry_warning_days,
    )
    page = catalog.query_products(core_logic.list_products(context), query)
    print(format_product_page(page, context.settings.currency))
    return 0


def run_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Generate the requested report and print it."""
    report_type = ReportType(args.report_type)
    start, end = resolve_period(args)
    if report_type is ReportType.SALES:
        report: Any = reports.generate_sales_report(context, start, end, args.category)
    elif report_type is ReportType.INVENTORY:
        report = reports.generate_inventory_report(context, args.category)
    elif report_type is ReportType.LOW_STOCK:
        report = reports.generate_low_stock_report(context, args.category, args.threshold)
    elif report_type is ReportType.EXPIRING:
        report = reports.generate_expiry_report(context, within_days=args.within_days, category=args.category)
    elif report_type is ReportType.INCOME_STATEMENT:
        report = reports.generate_income_statement(context, start, end)
    elif report_type is ReportType.BALANCE_SHEET:
        report = reports.generate_balance_sheet(context, args.as_of)
    elif report_type is ReportType.CASH_FLOW:
        report = reports.generate_cash_flow_statement(context, start, end)
    elif report_type is ReportType.DASHBOARD:
        report = reports.generate_dashboard_summary(context, today=args.as_of)
    else:
        report = reports.generate_profit_and_loss(context, start, end)
    print(render_report(report, context.settings.currency))
    return 0


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_product_page(page: catalog.Page, currency: str) -> str:
    lines = [f"{'ID':<10} {'Name':<28} {'Category':<14} {'Stock':>6} {'Price':>14}  Status"]
    for product in page.items:
        status = catalog.classify_stock(product).value
        price = reports.format_currency(product.selling_price, currency)
        lines.append(
            f"{product.product_id:<10} {product.name[:28]:<28} {product.category[:14]:<14} "
            f"{product.quantity_in_stock:>6} {price:>14}  {status}"
        )
    lines.append(f"Page {page.page} of {page.total_pages} ({page.total_items} products)")
    return "\n".join(lines)


def _amount_lines(entries: Sequence[tuple[str, Optional[Decimal]]], currency: str) -> List[str]:
    return [f"{label:<28} {reports.format_currency(amount, currency):>18}" for label, amount in entries]


def render_report(report: Any, currency: str) -> str:
    """Render any report dataclass from :mod:`wolo_pos.reports` as text."""

    def money(amount: Optional[Decimal]) -> str:
        return reports.format_currency(amount, currency)

    if isinstance(report, reports.SalesReport):
        lines = [f"Sales report {report.start_date} to {report.end_date}"]
        if report.category:
            lines.append(f"Category: {report.category}")
        for row in report.rows:
            count = f"{row.item_count}{'*' if row.item_count_estimated else ''}"
            lines.append(
                f"{row.invoice_number:<18} {row.timestamp:%Y-%m-%d} {row.customer_name[:20]:<20} "
                f"{count:>5} {money(row.total_amount):>16}"
            )
        lines.append(f"Total items: {report.total_items}  Total: {money(report.total_amount)}")
        if any(row.item_count_estimated for row in report.rows):
            lines.append("* item count estimated")
        return "\n".join(lines)

    if isinstance(report, (reports.InventoryReport, reports.LowStockReport)):
        title = "Inventory report" if isinstance(report, reports.InventoryReport) else "Low stock report"
        lines = [title]
        for row in report.rows:
            lines.append(
                f"{row.product_id:<10} {row.name[:28]:<28} {row.quantity_in_stock:>6} "
                f"{money(row.value):>16}  {row.status.value}"
            )
        if isinstance(report, reports.InventoryReport):
            lines.append(f"Total units: {report.total_units}  Total value: {money(report.total_value)}")
            if report.unvalued_count:
                lines.append(f"{report.unvalued_count} product(s) without cost data are not valued")
        else:
            lines.append(f"Low stock: {report.low_stock_count}  Out of stock: {report.out_of_stock_count}")
        return "\n".join(lines)

    if isinstance(report, reports.ExpiryReport):
        lines = [f"Expiring products as of {report.today}"]
        for row in report.rows:
            flag = " (urgent)" if row.urgent else ""
            lines.append(
                f"{row.product_id:<10} {row.name[:28]:<28} {row.expiry_date} "
                f"{row.days_until_expiry:>5}d  {row.status.value}{flag}"
            )
        lines.append(f"Expired: {report.expired_count}  Expiring soon: {report.expiring_soon_count}")
        return "\n".join(lines)

    if isinstance(report, reports.IncomeStatement):
        lines = [f"Income statement {report.start_date} to {report.end_date}"]
        lines += _amount_lines(
            [
                ("Revenue", report.revenue),
                ("Cost of Goods Sold", report.cost_of_goods_sold),
                ("Gross Profit", report.gross_profit),
                ("Operating Expenses", report.operating_expenses),
                ("Net Income", report.net_income),
            ],
            currency,
        )
        lines.append(f"Gross margin: {report.gross_margin_pct:.2f}%  Net margin: {report.net_margin_pct:.2f}%")
        if report.is_estimated:
            lines.append(f"COGS includes estimates ({len(report.estimated_sale_ids)} sale(s) at assumed ratio)")
        return "\n".join(lines)

    if isinstance(report, reports.BalanceSheet):
        lines = [f"Balance sheet as of {report.as_of}"]
        lines += _amount_lines(
            [
                ("Cash (approximate)", report.cash),
                ("Accounts Receivable", report.accounts_receivable),
                ("Inventory", report.inventory_value),
                ("Fixed Assets", report.fixed_assets),
                ("Total Assets", report.total_assets),
                ("Total Liabilities", report.total_liabilities),
                ("Equity", report.equity),
            ],
            currency,
        )
        return "\n".join(lines)

    if isinstance(report, reports.CashFlowStatement):
        lines = [f"Cash flow {report.start_date} to {report.end_date}"]
        lines += _amount_lines(
            [
                ("Cash from Sales", report.cash_from_sales),
                ("Inventory Payments", report.inventory_payments),
                ("Operating Activities", report.operating_activities),
                ("Investing Activities", report.investing_activities),
                ("Financing Activities", report.financing_activities),
                ("Net Change in Cash", report.net_change_in_cash),
            ],
            currency,
        )
        return "\n".join(lines)

    if isinstance(report, reports.ProfitAndLossSummary):
        statement = report.statement
        lines = [f"Profit & loss {statement.start_date} to {statement.end_date}"]
        for line in report.lines:
            lines.append(f"{line.label:<28} {money(line.amount):>18} {line.percent_of_revenue:>8.2f}%")
        return "\n".join(lines)

    if isinstance(report, reports.DashboardSummary):
        lines = [f"Dashboard for {report.today}"]
        lines += _amount_lines(
            [
                (f"Sales today ({report.today_sale_count})", report.today_total),
                ("Inventory value", report.inventory_value),
            ],
            currency,
        )
        lines.append(
            f"Products: {report.product_count}  Low stock: {report.low_stock_count}  "
            f"Out of stock: {report.out_of_stock_count}  Expiring: {report.expiring_count}"
        )
        lines.append("Daily sales")
        lines += [f"  {day}  {money(total):>18}" for day, total in report.daily_totals]
        lines.append("Top products")
        for rank, product in enumerate(report.top_products, start=1):
            lines.append(f"  {rank}. {product.name[:28]:<28} {product.quantity_sold:>6} sold")
        if not report.top_products:
            lines.append("  No sales in this period")
        return "\n".join(lines)

    raise TypeError(f"Unsupported report type: {type(report).__name__}")


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        core_logic.ensure_schema_version(context)
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0 and command_table[args.command].persists:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
