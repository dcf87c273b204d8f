"""Section x year roll-up of the division panel."""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd

from business_demography.lookup import restrict_lookup
from business_demography.models import NA_POLICIES, JoinIntegrityError, NAPolicy, StageReport

# summary column -> panel column
SUM_COLUMNS: dict[str, str] = {
    "births_of_new_enterprises": "births_of_new_enterprises",
    "active_enterprises": "active_enterprises",
    "deaths_of_new_enterprises": "deaths_of_new_enterprises",
    "high_growth_enterprises": "high_growth_enterprises",
    "survivors_1yr": "survival_of_1_year",
}

SUMMARY_COLUMNS: list[str] = ["year", "section_name", *SUM_COLUMNS, "survival_rate"]

_GROUP_KEYS: list[str] = ["year", "section_name"]


def normalize_division_codes(codes: pd.Series) -> pd.Series:
    """Zero-pad division codes to two characters (``"1"`` -> ``"01"``).

    Codes that went through a numeric round-trip (``1``, ``"1.0"``) are
    normalised too, so both sides of the lookup join compare equal.
    """
    text = codes.astype("string").str.strip()
    text = text.str.replace(r"\.0+$", "", regex=True)
    return text.str.zfill(2)


def _sum_or_null(s: pd.Series) -> float:
    return float(s.sum()) if s.notna().all() else float("nan")


def aggregate_sections(
    panel: pd.DataFrame,
    lookup: pd.DataFrame,
    *,
    sections: Sequence[str] | None = None,
    na_policy: NAPolicy = "zero",
) -> tuple[pd.DataFrame, StageReport]:
    """Sum division indicators per (year, section) and derive ``survival_rate``.

    *lookup* maps ``division_code`` to ``section_name``; pass *sections* to
    restrict it here, or restrict it beforehand with
    :func:`business_demography.lookup.restrict_lookup`.

    ``na_policy="zero"`` sums ignoring nulls; ``"propagate"`` makes a group
    null as soon as one contributing value is null.  ``survival_rate`` is
    ``survivors_1yr / births`` where births > 0 and null otherwise.

    Output contract: one row per (panel year, configured section).  A
    section without any panel rows still gets its rows, with null metrics.
    Configured divisions with no panel rows contribute nothing and never
    produce a row of their own (there is no year to put them under); they
    are named in the report warning ``"No panel rows for divisions: ..."``.
    """
    if na_policy not in NA_POLICIES:
        raise ValueError(f"Invalid na_policy: {na_policy!r}. Use zero/propagate.")

    warnings: list[str] = []
    if sections is not None:
        lookup, gap_warnings = restrict_lookup(lookup, sections)
        warnings.extend(gap_warnings)

    absent_metrics = [col for col in SUM_COLUMNS.values() if col not in panel.columns]
    panel = panel.assign(
        industry_code=normalize_division_codes(panel["industry_code"]),
        **{col: float("nan") for col in absent_metrics},
    )
    lookup = lookup.assign(division_code=normalize_division_codes(lookup["division_code"]))
    lookup = lookup[["division_code", "section_name"]].drop_duplicates()
    if lookup["division_code"].duplicated().any():
        clashes = sorted(set(lookup.loc[lookup["division_code"].duplicated(), "division_code"]))
        raise JoinIntegrityError(
            f"section_lookup: divisions mapped to more than one section: {', '.join(clashes)}"
        )

    # Every configured division survives the join; divisions without panel rows get nulls.
    joined = lookup.merge(panel, how="left", left_on="division_code", right_on="industry_code")
    no_data = joined["year"].isna().to_numpy(dtype=bool)
    missing_divisions = sorted(set(joined.loc[no_data, "division_code"].astype(str)))
    if missing_divisions:
        warnings.append(f"No panel rows for divisions: {', '.join(missing_divisions)}")

    matched = joined.loc[~no_data].rename(columns={v: k for k, v in SUM_COLUMNS.items()})
    matched = matched.assign(
        year=matched["year"].astype("int64"),
        section_name=matched["section_name"].astype(str),
    )
    grouped = matched.groupby(_GROUP_KEYS, sort=True)[list(SUM_COLUMNS)]
    if na_policy == "zero":
        sums = grouped.sum(min_count=0)
    else:
        sums = grouped.agg(_sum_or_null)
    # An indicator the panel never carried stays null under either policy.
    for total, source in SUM_COLUMNS.items():
        if source in absent_metrics:
            sums[total] = float("nan")

    years = sorted(int(y) for y in panel["year"].dropna().unique())
    names = sorted(set(lookup["section_name"].astype(str)))
    grid = pd.MultiIndex.from_product([years, names], names=_GROUP_KEYS)
    summary = sums.astype("float64").reindex(grid).reset_index()

    absent = grid.difference(sums.index).to_frame(index=False)
    for name, group in absent.groupby("section_name", sort=True):
        missing_years = ", ".join(str(y) for y in sorted(group["year"]))
        warnings.append(f"Section {name!r} has no data for: {missing_years}")

    births = summary["births_of_new_enterprises"]
    summary["survival_rate"] = (summary["survivors_1yr"] / births).where(births > 0)
    summary = (
        summary[SUMMARY_COLUMNS].sort_values(_GROUP_KEYS, kind="stable").reset_index(drop=True)
    )

    report = StageReport.from_counts("section_summary", len(panel), len(matched), warnings)
    return summary, report
