"""Extraction of wide indicator sheets and cohort survival sheets."""

from __future__ import annotations

import math

import pandas as pd
import pytest

from business_demography.config import BIRTHS, SURVIVAL_SHEETS, SheetSpec
from business_demography.extract import (
    coerce_counts,
    drop_empty,
    extract_indicator,
    extract_survival,
    extract_survival_sheet,
    find_year_columns,
    melt_years,
)
from business_demography.models import StructuralError


def _wide(rows: list[list[object]], header: list[object] | None = None) -> pd.DataFrame:
    header = header or ["SIC07 Industry", 2019, 2020, "Unnamed: 3"]
    return pd.DataFrame(rows, columns=header, dtype="string")


def test_drop_empty_removes_blank_rows_and_columns() -> None:
    df = pd.DataFrame(
        {
            "label": ["10 Food", None, "  ", "11 Drink"],
            "blank": [None, None, " ", None],
            "2019": ["1", None, None, "2"],
        },
        dtype="string",
    )

    cleaned = drop_empty(df)

    assert list(cleaned.columns) == ["label", "2019"]
    assert cleaned["label"].tolist() == ["10 Food", "11 Drink"]


def test_find_year_columns_accepts_ints_and_annotated_headers() -> None:
    years = find_year_columns([2019, "2020 [note 3]", " 2021", "Total", "Unnamed: 5"], sheet="T")

    assert years == {2019: 2019, "2020 [note 3]": 2020, " 2021": 2021}


def test_find_year_columns_without_years_is_structural_failure() -> None:
    with pytest.raises(StructuralError, match="Table 9: no year columns"):
        find_year_columns(["Industry", "Count"], sheet="Table 9")


def test_find_year_columns_rejects_repeated_year() -> None:
    with pytest.raises(StructuralError, match="year 2019 appears in more than one column"):
        find_year_columns(["2019", "2019.1"], sheet="Table 1.2")


def test_coerce_counts_strips_thousands_separators() -> None:
    s = pd.Series(["1,234", " 2 345 ", "12", None, "", ":", "[c]", "95.5%"], dtype="string")

    parsed, unparseable = coerce_counts(s)

    assert parsed.iloc[0] == 1234
    assert parsed.iloc[1] == 2345
    assert parsed.iloc[2] == 12
    assert parsed.iloc[7] == 95.5
    assert parsed.iloc[3:7].isna().all()
    assert unparseable == 2
    assert parsed.dtype == "float64"


def test_coerce_counts_numeric_dtype_passthrough() -> None:
    parsed, unparseable = coerce_counts(pd.Series([1, 2, None], dtype="float64"))

    assert parsed.tolist()[:2] == [1.0, 2.0]
    assert math.isnan(parsed.iloc[2])
    assert unparseable == 0


def test_melt_then_pivot_recovers_wide_values() -> None:
    wide = pd.DataFrame(
        {
            "industry_raw": ["10 Food", "11 Drink", "41 Buildings"],
            "2019": ["1", "2", "3"],
            "2020": ["4", None, "6"],
            "2021 [p]": ["7", "8", "9"],
        }
    )
    year_columns = find_year_columns(wide.columns[1:])

    long = melt_years(wide, year_columns, id_column="industry_raw", value_name="value")
    back = long.pivot(index="industry_raw", columns="year", values="value")
    back = back.rename(columns={year: col for col, year in year_columns.items()})
    back = back.reindex(index=wide["industry_raw"], columns=list(year_columns))

    expected = wide.set_index("industry_raw")
    pd.testing.assert_frame_equal(back, expected, check_names=False, check_dtype=False)
    assert len(long) == 9
    assert sorted(long["year"].unique()) == [2019, 2020, 2021]


def test_extract_indicator_keeps_divisions_and_parses_values() -> None:
    raw = _wide(
        [
            ["C : Manufacturing", None, None, None],
            ["10 : Food", "1,200", "1,300", None],
            ["101 : Meat", "5", "6", None],
            [None, None, None, None],
            ["47 : Retail", ":", "310", None],
        ]
    )

    table, report = extract_indicator(raw, BIRTHS)

    assert list(table.columns) == [
        "industry_raw",
        "industry_code",
        "industry_level",
        "year",
        "births_of_new_enterprises",
    ]
    assert table["industry_code"].tolist() == ["10", "10", "47", "47"]
    assert table["year"].tolist() == [2019, 2020, 2019, 2020]
    assert set(table["industry_level"]) == {"division"}
    assert table["births_of_new_enterprises"].iloc[0] == 1200
    assert math.isnan(table["births_of_new_enterprises"].iloc[2])
    assert report.stage == "births"
    assert report.rows_in == 8
    assert report.rows_out == 4
    assert any("section-header" in w for w in report.warnings)
    assert any("unparseable births_of_new_enterprises" in w for w in report.warnings)
    assert any("group/class" in w for w in report.warnings)


def test_extract_indicator_retains_finer_levels_when_not_division_only() -> None:
    raw = _wide([["10 : Food", "1", "2", None], ["1011 : Beef", "3", "4", None]])
    spec = SheetSpec("births", "Table 1.2", 3, "births_of_new_enterprises", division_only=False)

    table, _report = extract_indicator(raw, spec)

    assert sorted(set(table["industry_level"])) == ["class", "division"]


def test_extract_indicator_without_year_columns_fails() -> None:
    raw = _wide([["10 : Food", "1", "2", None]], header=["Industry", "A", "B", "C"])

    with pytest.raises(StructuralError, match="Table 1.2: no year columns"):
        extract_indicator(raw, BIRTHS)


def test_extract_indicator_with_only_headers_fails() -> None:
    raw = _wide([["C : Manufacturing", "1", "2", None], ["Total", "3", "4", None]])

    with pytest.raises(StructuralError, match="every label is a section header"):
        extract_indicator(raw, BIRTHS)


def test_extract_indicator_without_divisions_fails() -> None:
    raw = _wide([["101 : Meat", "1", "2", None]])

    with pytest.raises(StructuralError, match="no division-level rows"):
        extract_indicator(raw, BIRTHS)


def test_extract_indicator_empty_sheet_fails() -> None:
    raw = _wide([[None, None, None, None]])

    with pytest.raises(StructuralError, match="empty"):
        extract_indicator(raw, BIRTHS)


def _survival_raw(rows: list[list[object]]) -> pd.DataFrame:
    return pd.DataFrame(rows, dtype="string")


def test_extract_survival_sheet_injects_cohort_year() -> None:
    spec = SURVIVAL_SHEETS[1]
    raw = _survival_raw(
        [
            ["SIC07 Industry", "Births", "1 year", "%"],
            ["10 : Food", "1,000", "900", "90.0"],
            ["101 : Meat", "50", "40", "80.0"],
            [None, None, None, None],
        ]
    )

    table, report = extract_survival_sheet(raw, spec)

    assert table["year"].tolist() == [2020, 2020]
    assert table["industry_level"].tolist() == ["division", "group"]
    assert table["births"].tolist() == [1000.0, 50.0]
    assert table["survival_of_1_year"].tolist() == [900.0, 40.0]
    assert table["percent_of_1_year"].tolist() == [90.0, 80.0]
    assert table["survival_of_5_year"].isna().all()
    assert report.rows_in == 3
    assert report.rows_out == 2


def test_extract_survival_sheet_rejects_extra_columns() -> None:
    row = ["10 : Food"] + ["1"] * 12
    with pytest.raises(StructuralError, match="beyond the 12-column survival layout"):
        extract_survival_sheet(_survival_raw([row]), SURVIVAL_SHEETS[0])


def test_extract_survival_stacks_cohorts() -> None:
    sheets = [
        (spec, _survival_raw([["10 : Food", "100", str(80 + i), "80"]]))
        for i, spec in enumerate(SURVIVAL_SHEETS)
    ]

    table, report = extract_survival(sheets)

    assert table["year"].tolist() == [2019, 2020, 2021, 2022, 2023]
    assert table["survival_of_1_year"].tolist() == [80.0, 81.0, 82.0, 83.0, 84.0]
    assert not table.duplicated(subset=["industry_code", "year"]).any()
    assert report.rows_out == 5


def test_extract_survival_rejects_duplicate_cohorts() -> None:
    raw = _survival_raw([["10 : Food", "100", "80", "80"]])
    sheets = [(SURVIVAL_SHEETS[0], raw), (SURVIVAL_SHEETS[0], raw)]

    with pytest.raises(StructuralError, match="cohort years are not unique"):
        extract_survival(sheets)


def test_extract_survival_sheet_of_headers_only_names_sheet() -> None:
    raw = _survival_raw([["C : Manufacturing", None, None, None]])

    with pytest.raises(StructuralError, match="Table 5.2c"):
        extract_survival_sheet(raw, SURVIVAL_SHEETS[2])
