"""Sheet extraction: raw ONS grids into long industry x year tables.

Pure functions: every extractor takes the raw sheet as read from the
workbook and returns ``(table, stage_report)`` without touching the disk.
"""

from __future__ import annotations

import re
from collections.abc import Hashable, Iterable, Sequence

import pandas as pd

from business_demography.classify import classify_labels
from business_demography.config import SURVIVAL_COLUMNS, SheetSpec
from business_demography.models import IndustryLevel, StageReport, StructuralError

_YEAR_HEADER_RE = re.compile(r"^(\d{4})")
_DIGIT_GAP_RE = re.compile(r"(?<=\d)[\s\u00a0]+(?=\d)")

DETAIL_COLUMNS: list[str] = ["industry_raw", "industry_code", "industry_level", "year"]


# ── Grid cleanup ─────────────────────────────────────────────────


def _blank_to_na(df: pd.DataFrame) -> pd.DataFrame:
    def _column(s: pd.Series) -> pd.Series:
        blank = (s.astype("string").str.strip() == "").fillna(False).to_numpy(dtype=bool)
        return s.mask(blank)

    return df.apply(_column)


def drop_empty(df: pd.DataFrame) -> pd.DataFrame:
    """Drop rows and columns where every cell is missing or blank."""
    cleaned = _blank_to_na(df)
    return cleaned.dropna(axis=1, how="all").dropna(axis=0, how="all")


def find_year_columns(columns: Iterable[Hashable], *, sheet: str = "") -> dict[Hashable, int]:
    """Map every header starting with four digits to that year.

    Raises
    ------
    StructuralError
        If no header looks like a year, or two headers give the same year.
    """
    years: dict[Hashable, int] = {}
    for col in columns:
        match = _YEAR_HEADER_RE.match(str(col).strip())
        if match:
            years[col] = int(match.group(1))

    if not years:
        raise StructuralError(f"{sheet}: no year columns found in the header row")

    seen: dict[int, Hashable] = {}
    for col, year in years.items():
        if year in seen:
            raise StructuralError(
                f"{sheet}: year {year} appears in more than one column "
                f"({seen[year]!r} and {col!r})"
            )
        seen[year] = col
    return years


# ── Type coercion ────────────────────────────────────────────────


def coerce_counts(s: pd.Series) -> tuple[pd.Series, int]:
    """Parse Excel-formatted numbers, returning ``(values, unparseable_count)``.

    Thousands separators are stripped first (``"1,234"`` -> ``1234``).  Cells
    that still do not parse, such as ONS suppression markers, become NaN.
    """
    if pd.api.types.is_numeric_dtype(s):
        return pd.to_numeric(s, errors="coerce").astype("float64"), 0

    text = s.astype("string").str.strip().fillna("")
    cleaned = (
        text.str.replace(",", "", regex=False)
        .str.replace("%", "", regex=False)
        .str.replace(_DIGIT_GAP_RE, "", regex=True)
    )
    parsed = pd.to_numeric(cleaned.astype(object), errors="coerce").astype("float64")
    unparseable = parsed.isna().to_numpy() & (text != "").to_numpy(dtype=bool)
    return parsed, int(unparseable.sum())


# ── Reshaping ────────────────────────────────────────────────────


def melt_years(
    df: pd.DataFrame,
    year_columns: dict[Hashable, int],
    *,
    id_column: str,
    value_name: str,
) -> pd.DataFrame:
    """Reshape one-column-per-year into one row per (label, year)."""
    long = df.melt(
        id_vars=[id_column],
        value_vars=list(year_columns),
        var_name="year",
        value_name=value_name,
    )
    long["year"] = long["year"].map(year_columns).astype("int64")
    return long


def _split_headers(df: pd.DataFrame, *, sheet: str) -> tuple[pd.DataFrame, int]:
    codes = classify_labels(df["industry_raw"])
    df = df.assign(
        industry_code=codes["industry_code"], industry_level=codes["industry_level"]
    )
    is_header = (df["industry_level"] == IndustryLevel.header.value).to_numpy(dtype=bool)
    kept = df.loc[~is_header]
    if kept.empty:
        raise StructuralError(
            f"{sheet}: no industry rows found (every label is a section header)"
        )
    return kept, int(is_header.sum())


# ── Extractors ───────────────────────────────────────────────────


def extract_indicator(raw: pd.DataFrame, spec: SheetSpec) -> tuple[pd.DataFrame, StageReport]:
    """Extract one wide indicator sheet (label column + year columns).

    Returns ``(table, report)`` where *table* has the detail columns plus
    ``spec.value_column``, sorted by ``(industry_code, year)``.
    """
    sheet = spec.sheet
    value = spec.value_column
    warnings: list[str] = []

    df = drop_empty(raw)
    if df.shape[0] == 0 or df.shape[1] < 2:
        raise StructuralError(f"{sheet}: table is empty after removing blank rows and columns")

    label_col = df.columns[0]
    year_columns = find_year_columns(df.columns[1:], sheet=sheet)
    df = df.rename(columns={label_col: "industry_raw"})
    df["industry_raw"] = df["industry_raw"].astype("string").str.strip()

    long = melt_years(df, year_columns, id_column="industry_raw", value_name=value)
    rows_in = len(long)

    long, header_rows = _split_headers(long, sheet=sheet)
    if header_rows:
        warnings.append(f"Dropped {header_rows} section-header rows")

    parsed, unparseable = coerce_counts(long[value])
    long = long.assign(**{value: parsed})
    if unparseable:
        warnings.append(f"Found {unparseable} unparseable {value} values; treated as missing")

    if spec.division_only:
        is_division = (long["industry_level"] == IndustryLevel.division.value).to_numpy(dtype=bool)
        finer = int((~is_division).sum())
        long = long.loc[is_division]
        if long.empty:
            raise StructuralError(f"{sheet}: no division-level rows found")
        if finer:
            warnings.append(f"Dropped {finer} group/class rows (division-level table)")

    table = (
        long[DETAIL_COLUMNS + [value]]
        .sort_values(["industry_code", "year"], kind="stable")
        .reset_index(drop=True)
    )
    report = StageReport.from_counts(spec.name, rows_in, len(table), warnings)
    return table, report


def extract_survival_sheet(
    raw: pd.DataFrame, spec: SheetSpec
) -> tuple[pd.DataFrame, StageReport]:
    """Extract one birth-cohort survival sheet (positional columns, no year header)."""
    sheet = spec.sheet
    if spec.cohort_year is None:
        raise ValueError(f"{sheet}: survival sheets need a cohort year")
    warnings: list[str] = []

    df = _blank_to_na(raw).dropna(axis=0, how="all")
    if df.empty:
        raise StructuralError(f"{sheet}: table is empty after removing blank rows")

    width = len(SURVIVAL_COLUMNS)
    overflow = df.iloc[:, width:]
    if overflow.notna().to_numpy().any():
        raise StructuralError(
            f"{sheet}: found data beyond the {width}-column survival layout"
        )
    df = df.iloc[:, :width].copy()
    df.columns = pd.Index(SURVIVAL_COLUMNS[: df.shape[1]])
    df = df.reindex(columns=SURVIVAL_COLUMNS)
    df["industry_raw"] = df["industry_raw"].astype("string").str.strip()
    rows_in = len(df)

    df, header_rows = _split_headers(df, sheet=sheet)
    if header_rows:
        warnings.append(f"Dropped {header_rows} section-header rows")

    numeric = SURVIVAL_COLUMNS[1:]
    parsed_cols: dict[str, pd.Series] = {}
    for col in numeric:
        parsed, unparseable = coerce_counts(df[col])
        parsed_cols[col] = parsed
        if unparseable:
            warnings.append(f"Found {unparseable} unparseable {col} values; treated as missing")
    df = df.assign(year=spec.cohort_year, **parsed_cols)
    df["year"] = df["year"].astype("int64")

    table = df[DETAIL_COLUMNS + numeric].reset_index(drop=True)
    report = StageReport.from_counts(spec.name, rows_in, len(table), warnings)
    return table, report


def extract_survival(
    sheets: Sequence[tuple[SheetSpec, pd.DataFrame]],
) -> tuple[pd.DataFrame, StageReport]:
    """Extract and stack every cohort sheet into one table keyed by (code, cohort year)."""
    if not sheets:
        raise StructuralError("survival: no cohort sheets configured")

    cohorts = [spec.cohort_year for spec, _raw in sheets]
    if len(set(cohorts)) != len(cohorts):
        raise StructuralError(f"survival: cohort years are not unique: {cohorts}")

    tables: list[pd.DataFrame] = []
    rows_in = 0
    warnings: list[str] = []
    for spec, raw in sheets:
        table, report = extract_survival_sheet(raw, spec)
        tables.append(table)
        rows_in += report.rows_in
        warnings.extend(f"{spec.sheet}: {w}" for w in report.warnings)

    combined = (
        pd.concat(tables, ignore_index=True)
        .sort_values(["year", "industry_code"], kind="stable")
        .reset_index(drop=True)
    )
    return combined, StageReport.from_counts("survival", rows_in, len(combined), warnings)
