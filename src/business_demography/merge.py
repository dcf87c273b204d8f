"""Division x year panel built by left-joining every indicator onto births."""

from __future__ import annotations

import pandas as pd

from business_demography import SURVIVAL_HORIZONS, YEAR_WINDOW
from business_demography.models import IndustryLevel, JoinIntegrityError, StageReport

KEY_COLUMNS: list[str] = ["industry_code", "year"]

SURVIVAL_PANEL_COLUMNS: list[str] = [f"percent_of_{n}_year" for n in SURVIVAL_HORIZONS] + [
    f"survival_of_{n}_year" for n in SURVIVAL_HORIZONS
]

PANEL_COLUMNS: list[str] = [
    "industry_raw",
    "industry_code",
    "year",
    "births_of_new_enterprises",
    "active_enterprises",
    "deaths_of_new_enterprises",
    *SURVIVAL_PANEL_COLUMNS,
    "high_growth_enterprises",
]


def prepare_indicator(
    table: pd.DataFrame,
    columns: list[str],
    *,
    years: tuple[int, int] = YEAR_WINDOW,
) -> pd.DataFrame:
    """Restrict *table* to division rows inside *years* and select *columns*."""
    start, end = years
    is_division = table["industry_level"] == IndustryLevel.division.value
    in_window = table["year"].between(start, end)
    mask = (is_division & in_window).to_numpy(dtype=bool)
    return table.loc[mask, KEY_COLUMNS + columns].reset_index(drop=True)


def check_unique_keys(table: pd.DataFrame, name: str) -> None:
    """Raise :class:`JoinIntegrityError` if (industry_code, year) repeats in *table*."""
    dupes = table[table.duplicated(subset=KEY_COLUMNS, keep=False)]
    if dupes.empty:
        return
    keys = sorted(
        {(str(code), int(year)) for code, year in dupes[KEY_COLUMNS].itertuples(index=False)}
    )
    shown = ", ".join(f"{code}/{year}" for code, year in keys[:5])
    more = f" (+{len(keys) - 5} more)" if len(keys) > 5 else ""
    raise JoinIntegrityError(f"{name}: duplicate (industry_code, year) keys: {shown}{more}")


def merge_panel(
    births: pd.DataFrame,
    *,
    active: pd.DataFrame,
    deaths: pd.DataFrame,
    survival: pd.DataFrame,
    high_growth: pd.DataFrame,
    years: tuple[int, int] = YEAR_WINDOW,
) -> tuple[pd.DataFrame, StageReport]:
    """Join every indicator onto the births anchor by exact (industry_code, year).

    Secondary rows without an anchor key are dropped; anchor rows without a
    secondary match keep nulls for that indicator.  The result has one row
    per anchor key, the fixed ``PANEL_COLUMNS`` order, and is sorted by
    ``(industry_code, year)``.
    """
    anchor = prepare_indicator(
        births, ["industry_raw", "births_of_new_enterprises"], years=years
    )
    check_unique_keys(anchor, "births")

    secondaries: list[tuple[str, pd.DataFrame]] = [
        ("active", prepare_indicator(active, ["active_enterprises"], years=years)),
        ("deaths", prepare_indicator(deaths, ["deaths_of_new_enterprises"], years=years)),
        ("survival", prepare_indicator(survival, SURVIVAL_PANEL_COLUMNS, years=years)),
        ("high_growth", prepare_indicator(high_growth, ["high_growth_enterprises"], years=years)),
    ]

    warnings: list[str] = []
    panel = anchor
    anchor_keys = anchor[KEY_COLUMNS]
    for name, table in secondaries:
        check_unique_keys(table, name)
        panel = panel.merge(table, on=KEY_COLUMNS, how="left")
        if len(panel) != len(anchor):
            raise JoinIntegrityError(
                f"{name}: join changed the panel from {len(anchor)} to {len(panel)} rows"
            )
        unmatched = len(table) - len(table.merge(anchor_keys, on=KEY_COLUMNS, how="inner"))
        if unmatched:
            warnings.append(f"{name}: {unmatched} rows have no births row and were dropped")

    panel = (
        panel[PANEL_COLUMNS]
        .sort_values(KEY_COLUMNS, kind="stable")
        .reset_index(drop=True)
    )
    report = StageReport.from_counts("master_panel", len(anchor), len(panel), warnings)
    return panel, report
