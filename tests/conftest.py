"""Shared fixtures: a small ONS-shaped workbook built with openpyxl."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

WORKBOOK_YEARS: list[int] = [2019, 2020, 2021, 2022, 2023, 2024]
COHORTS: dict[str, int] = {
    "Table 5.2a": 2019,
    "Table 5.2b": 2020,
    "Table 5.2c": 2021,
    "Table 5.2d": 2022,
    "Table 5.2e": 2023,
}

Row = tuple[Any, ...]

DEFINITION_ROWS: list[Row] = [
    ("Agriculture, forestry & fishing", "A", "01-03"),
    ("Manufacturing", "C", "10 - 33"),
    ("Construction", "F", "41-43"),
    ("Wholesale and retail; repair of motor vehicles", "G", "45-47"),
    ("Accommodation & food services", "I", "55-56"),
    ("Professional, scientific & technical", "M", "69-75"),
    ("Total", None, None),
]

_BLANK_YEARS: list[Any] = [None] * len(WORKBOOK_YEARS)

BIRTHS_ROWS: list[Row] = [
    ("A : Agriculture, forestry & fishing", *_BLANK_YEARS),
    ("01 : Crop and animal production", 50, 50, 50, 50, 50, 50),
    ("C : Manufacturing", *_BLANK_YEARS),
    ("10 : Manufacture of food products", 100, 110, 120, 130, 140, 150),
    ("101 : Processing and preserving of meat", 5, 5, 5, 5, 5, 5),
    ("11 : Manufacture of beverages", 10, 11, 12, 13, 14, 15),
    ("F : Construction", *_BLANK_YEARS),
    ("41 : Construction of buildings", "2,000", "2,100", "2,200", "2,300", "2,400", "2,500"),
    ("G : Wholesale and retail", *_BLANK_YEARS),
    ("47 : Retail trade", 300, 310, ":", 330, 340, 350),
]

DEATHS_ROWS: list[Row] = [
    ("01 : Crop and animal production", 40, 40, 40, 40, 40, 40),
    ("10 : Manufacture of food products", 80, 80, 80, 80, 80, 80),
    ("11 : Manufacture of beverages", 8, 8, 8, 8, 8, 8),
    ("41 : Construction of buildings", "1,500", "1,500", "1,500", "1,500", "1,500", "1,500"),
    ("47 : Retail trade", 200, 200, 200, 200, 200, 200),
]

ACTIVE_ROWS: list[Row] = [
    ("C : Manufacturing", *_BLANK_YEARS),
    ("01 : Crop and animal production", 500, 500, 500, 500, 500, 500),
    ("10 : Manufacture of food products", "1,000", "1,000", "1,000", "1,000", "1,000", "1,000"),
    ("41 : Construction of buildings", 20000, 20000, 20000, 20000, 20000, 20000),
    ("47 : Retail trade", 3000, 3000, 3000, 3000, 3000, 3000),
]

HIGH_GROWTH_ROWS: list[Row] = [
    ("10 : Manufacture of food products", 12, 12, 12, 12, 12, 12),
    ("11 : Manufacture of beverages", 1, 1, 1, 1, 1, 1),
    ("41 : Construction of buildings", 30, 30, 30, 30, 30, 30),
    ("47 : Retail trade", 25, 25, 25, 25, 25, 25),
]


def survival_rows(cohort: int) -> list[Row]:
    """Label, births, then (survivors, percent) for horizons 1..5."""

    def _row(label: str, births: Any, survivors: Any, percent: float) -> Row:
        return (label, births, survivors, percent, *([None] * 8))

    return [
        ("SIC07 Industry", "Births", "1 year survival", "%", *([None] * 8)),
        ("C : Manufacturing", *([None] * 11)),
        _row("10 : Manufacture of food products", 100, 90, 90.0),
        _row("101 : Processing and preserving of meat", 5, 4, 80.0),
        _row("11 : Manufacture of beverages", 10, 9, 90.0),
        _row("41 : Construction of buildings", "2,000", "1,800", 90.0),
        _row("47 : Retail trade", 300, 270, 90.0),
        _row("01 : Crop and animal production", 50, 45, 90.0),
    ]


def _write_wide(wb: Workbook, sheet: str, title: str, rows: Sequence[Row]) -> None:
    ws = wb.create_sheet(sheet)
    ws.append([title])
    ws.append(["Source: Office for National Statistics"])
    ws.append(["Figures may not sum due to rounding"])
    ws.append(["SIC07 Industry", *WORKBOOK_YEARS, None])
    for row in rows:
        ws.append(list(row))


def _write_survival(wb: Workbook, sheet: str, rows: Sequence[Row]) -> None:
    ws = wb.create_sheet(sheet)
    ws.append([f"{sheet}: Births and survival of new enterprises"])
    ws.append(["Source: Office for National Statistics"])
    ws.append(["Counts and percentages"])
    ws.append(["This worksheet contains one table"])
    for row in rows:
        ws.append(list(row))


def _write_definition(wb: Workbook, rows: Sequence[Row]) -> None:
    ws = wb.create_sheet("Industry Definition")
    ws.append(["Industry Definition"])
    ws.append(["SIC 2007 sections and their divisions"])
    ws.append(["Description", "SIC07 section letter", "Division"])
    for row in rows:
        ws.append(list(row))


def build_workbook(
    path: Path,
    *,
    overrides: Mapping[str, Sequence[Row]] | None = None,
    omit: Sequence[str] = (),
) -> Path:
    """Write an ONS-shaped workbook; *overrides* replaces a sheet's data rows."""
    overrides = dict(overrides or {})
    wb = Workbook()
    default = wb.active
    assert default is not None
    wb.remove(default)

    wide = {
        "Table 1.2": ("Births of new enterprises", BIRTHS_ROWS),
        "Table 2.2": ("Deaths of new enterprises", DEATHS_ROWS),
        "Table 3.2": ("Active enterprises", ACTIVE_ROWS),
        "Table 7.2": ("High-growth enterprises", HIGH_GROWTH_ROWS),
    }
    for sheet, (title, rows) in wide.items():
        if sheet not in omit:
            _write_wide(wb, sheet, title, overrides.get(sheet, rows))
    for sheet, cohort in COHORTS.items():
        if sheet not in omit:
            _write_survival(wb, sheet, overrides.get(sheet, survival_rows(cohort)))
    if "Industry Definition" not in omit:
        _write_definition(wb, overrides.get("Industry Definition", DEFINITION_ROWS))

    wb.save(path)
    return path


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    def _factory(name: str = "ons_original.xlsx", **kwargs: Any) -> Path:
        return build_workbook(tmp_path / name, **kwargs)

    return _factory


@pytest.fixture
def ons_workbook(workbook_factory: Callable[..., Path]) -> Path:
    return workbook_factory()
