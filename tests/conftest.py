"""Shared pytest fixtures for Wolo POS tests.

Workbook-backed fixtures build a real master workbook and ``config.ini`` in
``tmp_path``; the business logic fixtures pair default settings with a mock
workbook so tests can stub the data access functions they touch.
"""

from __future__ import annotations

import argparse
import configparser
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable
from unittest.mock import Mock

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from wolo_pos import cli, constants, core_logic, data_manager  # noqa: E402
from wolo_pos.setup_excel import create_master_workbook  # noqa: E402

STORE_NAME = "Test Pharmacy"


@dataclass(frozen=True)
class ConfigBundle:
    """Paths of one isolated pharmacy installation created for a test."""

    directory: Path
    config_path: Path
    workbook_path: Path
    store_name: str


def write_config(
    path: Path,
    data_file: str,
    *,
    store_name: str = STORE_NAME,
    schema_version: str = constants.EXPECTED_SCHEMA_VERSION,
    history_length: int = constants.DEFAULT_HISTORY_LENGTH,
) -> Path:
    """Write a ``config.ini`` with every section the data layer reads."""

    parser = configparser.ConfigParser()
    parser.optionxform = str  # keep the CamelCase option names
    parser["System"] = {"DataFile": data_file, "StoreName": store_name, "SchemaVersion": schema_version}
    parser["Defaults"] = {"Currency": constants.DEFAULT_CURRENCY, "ReorderLevel": "10"}
    parser["History"] = {"MaxLength": str(history_length)}
    with path.open("w", encoding="utf-8") as handle:
        parser.write(handle)
    return path


# ---------------------------------------------------------------------------
# Workbook-backed fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def master_workbook_path(tmp_path: Path) -> Path:
    """A fresh, empty master workbook in its own directory."""

    return create_master_workbook(tmp_path / f"workbook_{uuid.uuid4().hex}" / "master_workbook.xlsx")


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Create workbook and config pairs; keyword arguments tune the config."""

    def _create(*, make_relative: bool = False, store_name: str = STORE_NAME, **config_options) -> ConfigBundle:
        directory = tmp_path / f"pharmacy_{uuid.uuid4().hex}"
        workbook_path = create_master_workbook(directory / "master_workbook.xlsx")
        data_file = workbook_path.name if make_relative else str(workbook_path)
        config_path = write_config(directory / "config.ini", data_file, store_name=store_name, **config_options)
        return ConfigBundle(directory, config_path, workbook_path, store_name)

    return _create


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Runtime context loaded through the public API from ``config_file``."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(prog="wolo-pos", description="Wolo POS")


@pytest.fixture
def subparsers_action(cli_parser: argparse.ArgumentParser) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Three no-op command specs for command table tests."""

    return [
        cli.CommandSpec(name, f"{name} help", lambda action, name=name: action.add_parser(name), lambda *_: 0)
        for name in ("alpha", "beta", "gamma")
    ]


# ---------------------------------------------------------------------------
# Business logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    return data_manager.ConfigSettings(
        data_file=tmp_path / "master_workbook.xlsx",
        store_name=STORE_NAME,
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
    )


@pytest.fixture
def workbook() -> Mock:
    return Mock(name="workbook")


@pytest.fixture
def context(settings: data_manager.ConfigSettings, workbook: Mock) -> core_logic.RuntimeContext:
    return core_logic.RuntimeContext(settings=settings, workbook=workbook)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Freeze ``core_logic``'s clock; the code under test must ask for UTC."""

    def _freeze(moment: datetime) -> datetime:
        class _FrozenClock(datetime):
            @classmethod
            def now(cls, tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FrozenClock)
        return moment

    return _freeze
