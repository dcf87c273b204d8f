"""SIC division -> section lookup built from the "Industry Definition" sheet."""

from __future__ import annotations

import re
from collections.abc import Sequence

import pandas as pd

from business_demography.config import INDUSTRY_DEFINITION_COLUMNS, INDUSTRY_DEFINITION_SHEET
from business_demography.models import JoinIntegrityError, RangeError, StageReport, StructuralError

LOOKUP_COLUMNS: list[str] = ["division_code", "section_letter", "section_name"]

_WHITESPACE_RE = re.compile(r"\s+")
_DIGITS_RE = re.compile(r"[0-9]+")
_RANGE_RE = re.compile(r"^(?P<start>[^-–]+)(?:[-–](?P<end>[^-–]+))?$")


def _parse_bound(token: str, text: str) -> int:
    if not _DIGITS_RE.fullmatch(token):
        raise RangeError(f"Cannot parse division bound {token!r} in range {text!r}")
    value = int(token)
    if value > 99:
        raise RangeError(f"Division bound {value} in range {text!r} is not a 2-digit code")
    return value


def expand_division_range(text: str) -> list[str]:
    """Expand ``"10-12"`` into ``["10", "11", "12"]``.

    A single code (``"05"``) expands to itself.  Whitespace anywhere in the
    string is ignored.  Raises :class:`RangeError` instead of ever returning
    an empty list.
    """
    raw = "" if text is None else str(text)
    compact = _WHITESPACE_RE.sub("", raw)
    match = _RANGE_RE.match(compact)
    if not compact or not match:
        raise RangeError(f"Cannot parse division range {raw!r}")

    start = _parse_bound(match.group("start"), raw)
    end_token = match.group("end")
    end = start if end_token is None else _parse_bound(end_token, raw)
    if start > end:
        raise RangeError(f"Division range {raw!r} has lower bound {start} > upper bound {end}")
    return [f"{code:02d}" for code in range(start, end + 1)]


def _check_one_section(lookup: pd.DataFrame) -> None:
    clashes = lookup[lookup["division_code"].duplicated(keep=False)]
    if clashes.empty:
        return
    detail = "; ".join(
        f"{code} -> {', '.join(sorted(group['section_name'].astype(str)))}"
        for code, group in clashes.groupby("division_code", sort=True)
    )
    raise JoinIntegrityError(
        f"{INDUSTRY_DEFINITION_SHEET}: divisions mapped to more than one section: {detail}"
    )


def build_section_lookup(
    raw: pd.DataFrame, sections: Sequence[str] | None = None
) -> tuple[pd.DataFrame, StageReport]:
    """Build one row per (division, section) from the industry definition sheet.

    The sheet also carries aggregate rows (e.g. "Production 05-39") whose
    ranges overlap the sections, so the full lookup may map one division to
    several sections.  Pass *sections* to keep only those sections; a
    division must then belong to exactly one of them.

    The stage report counts definition rows: ``rows_in`` is every row of
    the sheet, ``rows_out`` the rows with a division range that survive the
    section filter.

    Raises
    ------
    StructuralError
        If the sheet lacks the description, section letter or division columns.
    JoinIntegrityError
        If one division falls inside the ranges of two configured sections.
    """
    sheet = INDUSTRY_DEFINITION_SHEET
    df = raw.copy()
    df.columns = pd.Index([str(c).strip() for c in df.columns])
    missing = sorted(set(INDUSTRY_DEFINITION_COLUMNS) - set(df.columns))
    if missing:
        raise StructuralError(f"{sheet}: missing expected columns: {', '.join(missing)}")

    df = df[list(INDUSTRY_DEFINITION_COLUMNS)].rename(columns=INDUSTRY_DEFINITION_COLUMNS)
    rows_in = len(df)
    df = df.dropna(subset=["division_range"])
    df = df[df["division_range"].astype("string").str.strip() != ""]
    if df.empty:
        raise StructuralError(f"{sheet}: no division ranges found")

    df = df.assign(
        section_name=df["section_name"].astype("string").str.strip(),
        section_letter=df["section_letter"].astype("string").str.strip(),
        division_code=[expand_division_range(r) for r in df["division_range"]],
    )

    warnings: list[str] = []
    skipped = rows_in - len(df)
    if skipped:
        warnings.append(f"Skipped {skipped} definition rows without a division range")
    if sections is not None:
        df = df[df["section_name"].isin(list(sections)).to_numpy(dtype=bool)]

    lookup = (
        df.explode("division_code")
        .reindex(columns=LOOKUP_COLUMNS)
        .drop_duplicates()
        .sort_values(LOOKUP_COLUMNS, kind="stable")
        .reset_index(drop=True)
    )
    lookup["division_code"] = lookup["division_code"].astype("string")
    if sections is not None:
        lookup, gap_warnings = restrict_lookup(lookup, sections)
        warnings.extend(gap_warnings)

    return lookup, StageReport.from_counts("section_lookup", rows_in, len(df), warnings)


def restrict_lookup(
    lookup: pd.DataFrame, sections: Sequence[str]
) -> tuple[pd.DataFrame, list[str]]:
    """Keep only the configured sections; return ``(lookup, warnings)``.

    Raises :class:`JoinIntegrityError` if a kept division still maps to
    more than one of the configured sections.
    """
    wanted = list(sections)
    kept = lookup[lookup["section_name"].isin(wanted)].reset_index(drop=True)
    _check_one_section(kept)
    present = set(kept["section_name"].astype(str))
    warnings = [
        f"Configured section {name!r} has no divisions in the lookup"
        for name in wanted
        if name not in present
    ]
    return kept, warnings
