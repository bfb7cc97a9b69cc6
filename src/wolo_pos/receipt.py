"""Plain-text sale receipts."""

from __future__ import annotations

from typing import List

from .constants import DEFAULT_CURRENCY
from .data_manager import SaleRow
from .reports import format_currency


RECEIPT_WIDTH = 40
DEFAULT_STORE_NAME = "Wolo Pharmacy"


def _columns(left: str, right: str, width: int = RECEIPT_WIDTH) -> str:
    space = max(width - len(left) - len(right), 1)
    return f"{left}{' ' * space}{right}"


def format_receipt(
    sale: SaleRow,
    store_name: str = DEFAULT_STORE_NAME,
    currency: str = DEFAULT_CURRENCY,
    *,
    width: int = RECEIPT_WIDTH,
) -> str:
    """Render ``sale`` as a fixed-width receipt.

    Each line item shows its name, then quantity, unit price and line total on
    the row below. Long product names are truncated to the receipt width.
    """

    rule = "-" * width
    lines: List[str] = [
        (store_name or DEFAULT_STORE_NAME).center(width).rstrip(),
        rule,
        _columns("Invoice:", sale.invoice_number or sale.sale_id, width),
        _columns("Date:", sale.timestamp.strftime("%Y-%m-%d %H:%M"), width),
        _columns("Customer:", sale.customer_name or "Walk-in", width),
        rule,
    ]
    for item in sale.items:
        lines.append((item.product_name or item.product_id or "Item")[:width])
        lines.append(
            _columns(
                f"  {item.quantity} x {format_currency(item.unit_price, currency)}",
                format_currency(item.subtotal, currency),
                width,
            )
        )
    lines.extend(
        [
            rule,
            _columns("TOTAL", format_currency(sale.total_amount, currency), width),
            _columns("Paid by:", sale.payment_method.replace("_", " ").title(), width),
            rule,
            "Thank you for your purchase!".center(width).rstrip(),
        ]
    )
    return "\n".join(lines)
