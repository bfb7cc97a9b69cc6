"""Application composition root.

:class:`PharmacyApp` wires a :class:`~wolo_pos.core_logic.RuntimeContext` to a
:class:`~wolo_pos.history.StateManager`. Every user action calls the
persistence gateway first and then refreshes the affected part of the view
state in a single undoable step. Undo and redo only move the view state; rows
already written to the workbook stay as they are.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Optional

from . import catalog, core_logic, data_manager, log
from .history import StateManager


GATEWAY_ERRORS = (
    core_logic.BusinessRuleViolation,
    data_manager.DataAccessError,
    ValueError,
    KeyError,
)


class PharmacyApp:
    """User-facing operations over a runtime context and its view state.

    Failed operations are logged and reported through ``last_error``; they
    return ``None`` or ``False`` instead of raising.
    """

    def __init__(self, context: core_logic.RuntimeContext, state: Optional[StateManager] = None) -> None:
        self.context = context
        self.state = state if state is not None else StateManager(max_history=context.settings.history_length)
        self.last_error: Optional[str] = None

    def _fail(self, action: str, exc: Exception) -> None:
        self.last_error = str(exc)
        log.error("%s failed: %s", action, exc)

    def load(self) -> bool:
        """Fill the view state with products, sales and settings."""

        try:
            snapshot = {
                "products": core_logic.list_products(self.context),
                "sales": core_logic.list_sales(self.context),
                "settings": core_logic.list_settings(self.context),
            }
        except GATEWAY_ERRORS as exc:
            self._fail("Loading data", exc)
            return False
        self.state.update(snapshot)
        self.last_error = None
        return True

    def navigate(self, page: str) -> None:
        self.state.set("current_page", page)

    def product_page(self, query: catalog.ProductQuery, *, today: Optional[date] = None) -> Optional[catalog.Page]:
        """Filter, sort and paginate the products currently in view.

        A query without its own expiry window uses the configured one.
        """

        if query.warning_days is None:
            query = replace(query, warning_days=self.context.settings.expiry_warning_days)
        try:
            return catalog.query_products(self.state.get("products", []), query, today=today)
        except ValueError as exc:
            self._fail("Product query", exc)
            return None

    def add_product(self, record: data_manager.ProductRow) -> Optional[data_manager.ProductRow]:
        try:
            product = core_logic.add_product(self.context, record)
            products = core_logic.list_products(self.context)
        except GATEWAY_ERRORS as exc:
            self._fail(f"Adding product '{record.product_id}'", exc)
            return None
        self.state.update(products=products)
        return product

    def update_product(self, product_id: str, **changes: Any) -> Optional[data_manager.ProductRow]:
        try:
            product = core_logic.update_product(self.context, product_id, **changes)
            products = core_logic.list_products(self.context)
        except GATEWAY_ERRORS as exc:
            self._fail(f"Updating product '{product_id}'", exc)
            return None
        self.state.update(products=products)
        return product

    def deactivate_product(self, product_id: str) -> bool:
        try:
            core_logic.deactivate_product(self.context, product_id)
            products = core_logic.list_products(self.context)
        except GATEWAY_ERRORS as exc:
            self._fail(f"Deactivating product '{product_id}'", exc)
            return False
        self.state.update(products=products)
        return True

    def complete_sale(self, command: core_logic.SaleCommand) -> Optional[data_manager.SaleRow]:
        """Record a sale and refresh both the products and the sales in view."""

        try:
            sale = core_logic.record_sale(self.context, command)
            products = core_logic.list_products(self.context)
            sales = core_logic.list_sales(self.context)
        except GATEWAY_ERRORS as exc:
            self._fail("Completing sale", exc)
            return None
        self.state.update(products=products, sales=sales)
        return sale

    def void_sale(self, sale_id: str, *, notes: Optional[str] = None) -> bool:
        try:
            core_logic.void_sale(self.context, sale_id, notes=notes)
            sales = core_logic.list_sales(self.context)
        except GATEWAY_ERRORS as exc:
            self._fail(f"Voiding sale '{sale_id}'", exc)
            return False
        self.state.update(sales=sales)
        return True

    def save_setting(self, key: str, value: Any) -> bool:
        try:
            core_logic.save_setting(self.context, key, value)
            settings = core_logic.list_settings(self.context)
        except GATEWAY_ERRORS as exc:
            self._fail(f"Saving setting '{key}'", exc)
            return False
        self.state.update(settings=settings)
        return True

    def undo(self) -> bool:
        return self.state.undo()

    def redo(self) -> bool:
        return self.state.redo()
