# Shared pytest fixtures
from __future__ import annotations

from pathlib import Path

import pytest

from sheetsql.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(tmp_path: Path, monkeypatch) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def simple_table_grid() -> list[list[object]]:
    return [
        ["Title Row"],
        ["ID", "Name", "Amount"],
        ["1", "Widget", "100"],
        ["2", "Gadget", "200"],
    ]


@pytest.fixture()
def matrix_grid() -> list[list[object]]:
    return [
        ["", "", "Q1 Budget", "Q2 Budget", "H1 Total"],
        ["SALES", "", "", "", ""],
        ["", "Salaries", 180000, 185000, 365000],
        ["", "Travel", 25000, 30000, 55000],
    ]


@pytest.fixture()
def sectioned_matrix_grid() -> list[list[object]]:
    """Two sections with subtotal rows, a grand total row and a Total column."""
    return [
        ["", "", "Jan", "Feb", "Total"],
        ["SALES", "", "", "", ""],
        ["", "Salaries", 100, 200, 300],
        ["", "Travel", 10, 20, 30],
        ["", "Total Sales", 110, 220, 330],
        ["MARKETING", "", "", "", ""],
        ["", "Ads", 5, 6, 11],
        ["", "Events", 7, 8, 15],
        ["", "Total Marketing", 12, 14, 26],
        ["", "Grand Total", 122, 234, 356],
    ]
