"""Source-sheet schemas and run configuration.

The ONS workbook layout is fixed: each indicator lives on a known sheet with
a known number of metadata rows above the table.  ``SheetSpec`` records that
layout explicitly so extraction can validate it instead of guessing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from business_demography import SURVIVAL_HORIZONS, YEAR_WINDOW
from business_demography.models import NA_POLICIES, NAPolicy


@dataclass(frozen=True)
class SheetSpec:
    """Where one indicator lives in the workbook and how to read it."""

    name: str
    sheet: str
    skiprows: int
    value_column: str
    division_only: bool = True
    cohort_year: int | None = None


# ── Wide indicator sheets (year columns) ─────────────────────────

BIRTHS = SheetSpec("births", "Table 1.2", 3, "births_of_new_enterprises")
DEATHS = SheetSpec("deaths", "Table 2.2", 3, "deaths_of_new_enterprises")
ACTIVE = SheetSpec("active", "Table 3.2", 3, "active_enterprises")
HIGH_GROWTH = SheetSpec("high_growth", "Table 7.2", 3, "high_growth_enterprises")

WIDE_SHEETS: tuple[SheetSpec, ...] = (BIRTHS, DEATHS, ACTIVE, HIGH_GROWTH)
INDICATORS: tuple[str, ...] = tuple(spec.name for spec in WIDE_SHEETS)

# ── Survival sheets (one per birth cohort, positional columns) ───

SURVIVAL_SHEETS: tuple[SheetSpec, ...] = tuple(
    SheetSpec(
        "survival",
        f"Table 5.2{letter}",
        4,
        "survival_of_1_year",
        division_only=False,
        cohort_year=year,
    )
    for letter, year in zip("abcde", range(2019, 2024))
)

SURVIVAL_COLUMNS: list[str] = ["industry_raw", "births"] + [
    f"{kind}_of_{n}_year" for n in SURVIVAL_HORIZONS for kind in ("survival", "percent")
]

# ── Section lookup sheet ─────────────────────────────────────────

INDUSTRY_DEFINITION_SHEET = "Industry Definition"
INDUSTRY_DEFINITION_SKIPROWS = 2
INDUSTRY_DEFINITION_COLUMNS: dict[str, str] = {
    "Description": "section_name",
    "SIC07 section letter": "section_letter",
    "Division": "division_range",
}

DEFAULT_SECTIONS: tuple[str, ...] = (
    "Manufacturing",
    "Construction",
    "Wholesale and retail; repair of motor vehicles",
    "Accommodation & food services",
    "Professional, scientific & technical",
)

DEFAULT_INPUT = Path("Dataset/ONS_Business_Demography/ons_original.xlsx")
DEFAULT_OUT_DIR = Path("Dataset/Final_Master_Datasets")


@dataclass
class PipelineConfig:
    """Everything a run needs besides the workbook itself."""

    sections: tuple[str, ...] = DEFAULT_SECTIONS
    years: tuple[int, int] = YEAR_WINDOW
    na_policy: NAPolicy = "zero"
    wide_sheets: tuple[SheetSpec, ...] = WIDE_SHEETS
    survival_sheets: tuple[SheetSpec, ...] = SURVIVAL_SHEETS

    def __post_init__(self) -> None:
        if not self.sections:
            raise ValueError("At least one section must be configured")
        if len(set(self.sections)) != len(self.sections):
            raise ValueError("Configured sections must be unique")
        start, end = self.years
        if start > end:
            raise ValueError(f"Invalid year window: {start} > {end}")
        if self.na_policy not in NA_POLICIES:
            raise ValueError(f"Invalid na_policy: {self.na_policy!r}. Use zero/propagate.")
        missing = sorted(set(INDICATORS) - {spec.name for spec in self.wide_sheets})
        if missing:
            raise ValueError(f"Missing indicator sheets: {', '.join(missing)}")


def load_sections_file(path: Path | None) -> list[str]:
    """Return section names from a text file, one per line.

    Blank lines and ``#`` comments are ignored.
    """
    if not path:
        return []
    if not path.exists():
        raise ValueError(f"Sections file not found: {path} (expected one section per line)")
    if path.is_dir():
        raise ValueError(f"Sections file is a directory, not a file: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read sections file {path}: {exc}") from exc

    sections: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        sections.append(stripped)
    return sections
