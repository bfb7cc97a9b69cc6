"""Unit tests verifying the business logic layer with a mocked data access layer."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest

from wolo_pos import constants, core_logic, data_manager
from wolo_pos.constants import PaymentMethod


def _product(product_id: str, **overrides) -> data_manager.ProductRow:
    values = {
        "name": f"Product {product_id}",
        "quantity_in_stock": 10,
        "quantity_on_shelf": 4,
        "selling_price": Decimal("5.00"),
        "cost_price": Decimal("3.00"),
    }
    values.update(overrides)
    return data_manager.ProductRow(product_id=product_id, **values)


def _sale(sale_id: str, when: datetime, total: str = "10.00", **overrides) -> data_manager.SaleRow:
    return data_manager.SaleRow(
        sale_id=sale_id,
        invoice_number=f"INV-{sale_id}",
        timestamp=when,
        payment_method="cash",
        total_amount=Decimal(total),
        **overrides,
    )


@pytest.fixture
def stub_dal(monkeypatch):
    """Replace the data layer with in-memory rows and recording mocks."""

    state = {"products": [], "sales": [], "items": [], "settings": []}
    mocks = {
        "append_product": Mock(),
        "append_sale": Mock(),
        "append_sale_item": Mock(),
        "update_product": Mock(),
        "update_sale": Mock(),
        "upsert_setting": Mock(),
    }
    monkeypatch.setattr(data_manager, "iter_products", lambda workbook: list(state["products"]))
    monkeypatch.setattr(data_manager, "iter_sales", lambda workbook: list(state["sales"]))
    monkeypatch.setattr(data_manager, "iter_sale_items", lambda workbook: list(state["items"]))
    monkeypatch.setattr(data_manager, "iter_settings", lambda workbook: list(state["settings"]))
    for name, mock in mocks.items():
        monkeypatch.setattr(data_manager, name, mock)
    state["mocks"] = mocks
    return state


# ---------------------------------------------------------------------------
# Runtime/context management
# ---------------------------------------------------------------------------


def test_load_runtime_context_returns_context(monkeypatch, tmp_path):
    """load_runtime_context should assemble settings and workbook into a context."""

    config_path = tmp_path / "config.ini"
    parser = Mock(name="parser")
    parsed_settings = data_manager.ConfigSettings(
        data_file=tmp_path / "master.xlsx",
        store_name="Pharmacy",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
    )
    workbook = Mock(name="workbook")

    find_config_file = Mock(return_value=config_path)
    read_config = Mock(return_value=parser)
    parse_settings = Mock(return_value=parsed_settings)
    open_workbook = Mock(return_value=workbook)

    monkeypatch.setattr(data_manager, "find_config_file", find_config_file)
    monkeypatch.setattr(data_manager, "read_config", read_config)
    monkeypatch.setattr(data_manager, "parse_settings", parse_settings)
    monkeypatch.setattr(data_manager, "open_workbook", open_workbook)

    context = core_logic.load_runtime_context(config_path)

    assert context.settings is parsed_settings
    assert context.workbook is workbook
    find_config_file.assert_called_once_with(config_path)
    read_config.assert_called_once_with(config_path.resolve())
    parse_settings.assert_called_once_with(parser, base_path=config_path.resolve().parent)
    open_workbook.assert_called_once_with(parsed_settings.data_file)


def test_ensure_schema_version_rejects_mismatch(context):
    bad_context = core_logic.RuntimeContext(
        settings=replace(context.settings, schema_version="0.9"),
        workbook=context.workbook,
    )
    with pytest.raises(RuntimeError):
        core_logic.ensure_schema_version(bad_context)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def test_list_products_excludes_inactive_by_default(stub_dal, context):
    stub_dal["products"] = [_product("P1"), _product("P2", is_active=False)]

    assert [p.product_id for p in core_logic.list_products(context)] == ["P1"]
    assert {p.product_id for p in core_logic.list_products(context, include_inactive=True)} == {"P1", "P2"}


def test_list_products_reuses_cache_between_calls(monkeypatch, context):
    iter_mock = Mock(return_value=[_product("P1")])
    monkeypatch.setattr(data_manager, "iter_products", iter_mock)

    core_logic.list_products(context)
    core_logic.list_products(context)

    iter_mock.assert_called_once_with(context.workbook)


def test_list_categories_are_distinct_and_sorted(stub_dal, context):
    stub_dal["products"] = [
        _product("P1", category="Pain"),
        _product("P2", category="Antibiotic"),
        _product("P3", category="Pain"),
        _product("P4"),
    ]
    assert core_logic.list_categories(context) == ["Antibiotic", "Pain"]


def test_get_product_by_id_returns_none_for_unknown(stub_dal, context):
    assert core_logic.get_product_by_id(context, "missing") is None
    with pytest.raises(core_logic.MissingReferenceError):
        core_logic.require_product(context, "missing")


def test_add_product_estimates_missing_cost(stub_dal, context):
    record = data_manager.ProductRow("P1", "Cough Syrup", selling_price=Decimal("13.00"))

    stored = core_logic.add_product(context, record)

    assert stored.cost_price == Decimal("10")
    assert stored.cost_estimated is True
    stub_dal["mocks"]["append_product"].assert_called_once_with(context.workbook, stored)


def test_add_product_derives_cost_from_bulk_purchase(stub_dal, context):
    record = data_manager.ProductRow(
        "P1",
        "Bandages",
        selling_price=Decimal("8.00"),
        cost_price=Decimal("7.00"),
        total_bulk_cost=Decimal("50.00"),
        quantity_purchased=10,
    )

    assert core_logic.add_product(context, record).cost_price == Decimal("5")


def test_add_product_rejects_duplicates(stub_dal, context):
    stub_dal["products"] = [_product("P1")]

    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.add_product(context, _product("P1"))
    stub_dal["mocks"]["append_product"].assert_not_called()


def test_add_product_rejects_shelf_above_stock(stub_dal, context):
    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.add_product(context, _product("P1", quantity_in_stock=2, quantity_on_shelf=3))
    stub_dal["mocks"]["append_product"].assert_not_called()


def test_add_product_rejects_blank_name_and_negative_price(stub_dal, context):
    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.add_product(context, _product("P1", name="  "))
    with pytest.raises(ValueError):
        core_logic.add_product(context, _product("P2", selling_price=Decimal("-1")))


def test_update_product_writes_only_changed_fields(stub_dal, context):
    stub_dal["products"] = [_product("P1")]

    updated = core_logic.update_product(context, "P1", name="Renamed")

    assert updated.name == "Renamed"
    stub_dal["mocks"]["update_product"].assert_called_once_with(
        context.workbook, "P1", field_values={"name": "Renamed"}
    )


def test_update_product_lowering_stock_clamps_shelf(stub_dal, context):
    stub_dal["products"] = [_product("P1", quantity_in_stock=10, quantity_on_shelf=8)]

    updated = core_logic.update_product(context, "P1", quantity_in_stock=5)

    assert updated.quantity_on_shelf == 5
    stub_dal["mocks"]["update_product"].assert_called_once_with(
        context.workbook, "P1", field_values={"quantity_in_stock": 5, "quantity_on_shelf": 5}
    )


def test_update_product_rejects_explicit_shelf_above_stock(stub_dal, context):
    stub_dal["products"] = [_product("P1", quantity_in_stock=10)]

    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.update_product(context, "P1", quantity_on_shelf=11)
    stub_dal["mocks"]["update_product"].assert_not_called()


def test_update_product_rejects_unknown_fields_and_id_changes(stub_dal, context):
    stub_dal["products"] = [_product("P1")]

    with pytest.raises(ValueError):
        core_logic.update_product(context, "P1", colour="red")
    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.update_product(context, "P1", product_id="P2")


@pytest.mark.parametrize(
    "changes",
    [
        {"expiry_date": "2025-01-01"},
        {"expiry_date": datetime(2025, 1, 1, tzinfo=UTC)},
        {"quantity_in_stock": "12"},
        {"reorder_level": True},
        {"selling_price": 4.5},
        {"is_active": "no"},
        {"barcode": 6001},
    ],
)
def test_update_product_rejects_values_of_the_wrong_type(stub_dal, context, changes):
    stub_dal["products"] = [_product("P1")]

    with pytest.raises(ValueError):
        core_logic.update_product(context, "P1", **changes)
    stub_dal["mocks"]["update_product"].assert_not_called()


def test_update_product_accepts_dates_and_clears_optional_fields(stub_dal, context):
    stub_dal["products"] = [_product("P1", barcode="6001")]

    updated = core_logic.update_product(context, "P1", expiry_date=date(2025, 1, 1), barcode=None)

    assert (updated.expiry_date, updated.barcode) == (date(2025, 1, 1), None)


def test_add_product_rejects_values_of_the_wrong_type(stub_dal, context):
    with pytest.raises(ValueError):
        core_logic.add_product(context, _product("P1", quantity_on_shelf="4"))
    stub_dal["mocks"]["append_product"].assert_not_called()


def test_update_product_reestimates_estimated_cost(stub_dal, context):
    stub_dal["products"] = [
        _product("P1", cost_price=Decimal("10"), cost_estimated=True, selling_price=Decimal("13.00"))
    ]

    updated = core_logic.update_product(context, "P1", selling_price=Decimal("26.00"))

    assert updated.cost_price == Decimal("20")
    assert updated.cost_estimated is True


def test_deactivate_product_marks_inactive(stub_dal, context):
    stub_dal["products"] = [_product("P1")]

    assert core_logic.deactivate_product(context, "P1").is_active is False
    stub_dal["mocks"]["update_product"].assert_called_once_with(
        context.workbook, "P1", field_values={"is_active": False}
    )


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def test_record_sale_totals_lines_and_decrements_stock(stub_dal, context, set_fixed_datetime):
    moment = set_fixed_datetime(datetime(2024, 5, 1, 9, 30, tzinfo=UTC))
    stub_dal["products"] = [
        _product("P1", quantity_in_stock=10, quantity_on_shelf=4, selling_price=Decimal("5.00")),
        _product("P2", quantity_in_stock=3, quantity_on_shelf=3, selling_price=Decimal("2.50")),
    ]
    command = core_logic.SaleCommand(
        items=[
            core_logic.SaleLineCommand("P1", 6),
            core_logic.SaleLineCommand("P2", 1, unit_price=Decimal("2.00")),
        ],
        payment_method=PaymentMethod.CASH,
    )

    sale = core_logic.record_sale(context, command)

    assert sale.timestamp == moment
    assert sale.sale_id == "S20240501093000000000"
    assert sale.invoice_number == "INV-20240501-0001"
    assert sale.total_amount == Decimal("32.00")
    assert sale.item_count == 2
    assert [item.subtotal for item in sale.items] == [Decimal("30.00"), Decimal("2.00")]
    stub_dal["mocks"]["append_sale"].assert_called_once_with(context.workbook, sale)
    assert stub_dal["mocks"]["append_sale_item"].call_count == 2
    update = stub_dal["mocks"]["update_product"]
    update.assert_any_call(context.workbook, "P1", field_values={"quantity_in_stock": 4, "quantity_on_shelf": 0})
    update.assert_any_call(context.workbook, "P2", field_values={"quantity_in_stock": 2, "quantity_on_shelf": 2})


def test_record_sale_numbers_invoices_per_day(stub_dal, context, set_fixed_datetime):
    set_fixed_datetime(datetime(2024, 5, 1, 12, 0, tzinfo=UTC))
    stub_dal["products"] = [_product("P1")]
    stub_dal["sales"] = [
        _sale("S-a", datetime(2024, 5, 1, 8, 0, tzinfo=UTC)),
        _sale("S-b", datetime(2024, 5, 1, 9, 0, tzinfo=UTC), status="voided"),
        _sale("S-c", datetime(2024, 4, 30, 9, 0, tzinfo=UTC)),
    ]

    sale = core_logic.record_sale(
        context,
        core_logic.SaleCommand(items=[core_logic.SaleLineCommand("P1", 1)], payment_method=PaymentMethod.CARD),
    )

    assert sale.invoice_number == "INV-20240501-0003"


def test_record_sale_skips_sale_ids_already_taken(stub_dal, context):
    moment = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    stub_dal["products"] = [_product("P1")]
    stub_dal["sales"] = [
        _sale("S20240501120000000000", moment),
        _sale("S20240501120000000001", moment),
    ]

    sale = core_logic.record_sale(
        context,
        core_logic.SaleCommand(
            items=[core_logic.SaleLineCommand("P1", 1)], payment_method=PaymentMethod.CASH, timestamp=moment
        ),
    )

    assert sale.sale_id == "S20240501120000000002"
    assert sale.timestamp == moment
    assert {item.sale_id for item in sale.items} == {"S20240501120000000002"}


def test_record_sale_rejects_cumulative_overselling(stub_dal, context):
    stub_dal["products"] = [_product("P1", quantity_in_stock=5)]
    command = core_logic.SaleCommand(
        items=[core_logic.SaleLineCommand("P1", 3), core_logic.SaleLineCommand("P1", 3)],
        payment_method=PaymentMethod.CASH,
    )

    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.record_sale(context, command)
    stub_dal["mocks"]["append_sale"].assert_not_called()
    stub_dal["mocks"]["update_product"].assert_not_called()


@pytest.mark.parametrize(
    "items, error",
    [
        ([], core_logic.BusinessRuleViolation),
        ([core_logic.SaleLineCommand("P1", 0)], ValueError),
        ([core_logic.SaleLineCommand("P1", -2)], ValueError),
        ([core_logic.SaleLineCommand("missing", 1)], core_logic.MissingReferenceError),
        ([core_logic.SaleLineCommand("P1", 1, unit_price=Decimal("-1"))], ValueError),
        ([core_logic.SaleLineCommand("OLD", 1)], core_logic.BusinessRuleViolation),
    ],
)
def test_record_sale_validates_lines(stub_dal, context, items, error):
    stub_dal["products"] = [_product("P1"), _product("OLD", is_active=False)]

    with pytest.raises(error):
        core_logic.record_sale(context, core_logic.SaleCommand(items=items, payment_method=PaymentMethod.CASH))
    stub_dal["mocks"]["append_sale"].assert_not_called()


def test_record_sale_requires_phone_for_mobile_money(stub_dal, context):
    stub_dal["products"] = [_product("P1")]
    command = core_logic.SaleCommand(
        items=[core_logic.SaleLineCommand("P1", 1)],
        payment_method=PaymentMethod.MOBILE_MONEY,
    )

    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.record_sale(context, command)

    accepted = core_logic.record_sale(context, replace(command, customer_phone="0241234567"))
    assert accepted.payment_method == "mobile_money"


def test_record_sale_rejects_unsupported_payment_method(stub_dal, context):
    stub_dal["products"] = [_product("P1")]
    command = core_logic.SaleCommand(items=[core_logic.SaleLineCommand("P1", 1)], payment_method="barter")

    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.record_sale(context, command)


def test_void_sale_updates_status_and_rejects_repeat(stub_dal, context):
    stub_dal["sales"] = [
        _sale("S1", datetime(2024, 5, 1, tzinfo=UTC)),
        _sale("S2", datetime(2024, 5, 1, tzinfo=UTC), status="voided"),
    ]

    voided = core_logic.void_sale(context, "S1", notes="customer returned goods")

    assert voided.is_voided
    stub_dal["mocks"]["update_sale"].assert_called_once_with(
        context.workbook, "S1", field_values={"status": "voided", "notes": "customer returned goods"}
    )
    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.void_sale(context, "S2")
    with pytest.raises(core_logic.MissingReferenceError):
        core_logic.void_sale(context, "S404")


def test_list_sales_hides_voided_sales(stub_dal, context):
    stub_dal["sales"] = [
        _sale("S1", datetime(2024, 5, 1, tzinfo=UTC)),
        _sale("S2", datetime(2024, 5, 1, tzinfo=UTC), status="voided"),
    ]

    assert [s.sale_id for s in core_logic.list_sales(context)] == ["S1"]
    assert len(core_logic.list_sales(context, include_voided=True)) == 2


def test_get_sales_in_range_is_inclusive(stub_dal, context):
    stub_dal["sales"] = [
        _sale("before", datetime(2024, 4, 30, 23, 59, tzinfo=UTC)),
        _sale("start", datetime(2024, 5, 1, 0, 0, tzinfo=UTC)),
        _sale("end", datetime(2024, 5, 31, 23, 59, tzinfo=UTC)),
        _sale("after", datetime(2024, 6, 1, 0, 0, tzinfo=UTC)),
    ]

    result = core_logic.get_sales_in_range(context, date(2024, 5, 1), date(2024, 5, 31))

    assert [s.sale_id for s in result] == ["start", "end"]


def test_get_sales_in_range_rejects_inverted_range(stub_dal, context):
    with pytest.raises(ValueError):
        core_logic.get_sales_in_range(context, date(2024, 5, 2), date(2024, 5, 1))


def test_get_sales_in_range_filters_by_line_item_category(stub_dal, context):
    when = datetime(2024, 5, 10, tzinfo=UTC)
    stub_dal["products"] = [_product("P1", category="Pain"), _product("P2", category="Vitamins")]
    stub_dal["sales"] = [_sale("S1", when), _sale("S2", when)]
    stub_dal["items"] = [
        data_manager.SaleItemRow("S1", "P2", "Vit C", 1, Decimal("5"), Decimal("5")),
        data_manager.SaleItemRow("S1", "P1", "Paracetamol", 1, Decimal("5"), Decimal("5")),
        data_manager.SaleItemRow("S2", "P2", "Vit C", 2, Decimal("5"), Decimal("10")),
    ]

    result = core_logic.get_sales_in_range(context, date(2024, 5, 1), date(2024, 5, 31), "Pain")

    assert [s.sale_id for s in result] == ["S1"]


def test_get_sale_line_items_prefers_nested_items(stub_dal, context):
    nested = data_manager.SaleItemRow("S1", "P1", "Nested", 1, Decimal("1"), Decimal("1"))
    stub_dal["sales"] = [_sale("S1", datetime(2024, 5, 1, tzinfo=UTC), items=(nested,))]
    stub_dal["items"] = [data_manager.SaleItemRow("S1", "P1", "Sheet", 1, Decimal("1"), Decimal("1"))]

    assert core_logic.get_sale_line_items(context, "S1") == [nested]
    with pytest.raises(core_logic.MissingReferenceError):
        core_logic.get_sale_line_items(context, "S404")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def test_get_setting_returns_none_when_missing(stub_dal, context):
    stub_dal["settings"] = [data_manager.SettingRow("currency", "GHS")]

    assert core_logic.get_setting(context, "currency").value == "GHS"
    assert core_logic.get_setting(context, "missing") is None
    assert core_logic.list_settings(context) == {"currency": "GHS"}


def test_save_setting_writes_and_invalidates(stub_dal, context, set_fixed_datetime):
    set_fixed_datetime(datetime(2024, 5, 1, tzinfo=UTC))
    stub_dal["settings"] = [data_manager.SettingRow("currency", "GHS")]
    core_logic.list_settings(context)
    stub_dal["settings"] = [data_manager.SettingRow("currency", "USD")]

    row = core_logic.save_setting(context, "currency", "USD")

    assert row.updated_at == "2024-05-01T00:00:00+00:00"
    stub_dal["mocks"]["upsert_setting"].assert_called_once_with(
        context.workbook, "currency", "USD", updated_at="2024-05-01T00:00:00+00:00"
    )
    assert core_logic.list_settings(context) == {"currency": "USD"}


def test_save_setting_rejects_blank_key_and_unserializable_value(stub_dal, context):
    stub_dal["mocks"]["upsert_setting"].side_effect = TypeError("not serializable")

    with pytest.raises(ValueError):
        core_logic.save_setting(context, " ", 1)
    with pytest.raises(ValueError):
        core_logic.save_setting(context, "bad", object())


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
def test_require_positive_quantity_rejects_invalid_values(quantity):
    with pytest.raises(ValueError):
        core_logic.require_positive_quantity(quantity)


def test_require_nonnegative_money_accepts_zero():
    core_logic.require_nonnegative_money(Decimal("0"))
    with pytest.raises(ValueError):
        core_logic.require_nonnegative_money(Decimal("-0.01"))


def test_persist_context_saves_to_configured_file(monkeypatch, context):
    save = Mock()
    monkeypatch.setattr(data_manager, "save_workbook", save)

    core_logic.persist_context(context)

    save.assert_called_once_with(context.workbook, destination=context.settings.data_file)
