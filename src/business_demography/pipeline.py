"""Pipeline entry point: ONS workbook in, section x year summary out.

Each stage fully materialises its table, writes it to the ``TableStore``
and only then hands it to the next stage.  A failing stage raises before
writing, so no stage ever leaves a partial table behind.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from business_demography.aggregate import aggregate_sections
from business_demography.config import (
    INDUSTRY_DEFINITION_SHEET,
    INDUSTRY_DEFINITION_SKIPROWS,
    PipelineConfig,
)
from business_demography.extract import extract_indicator, extract_survival
from business_demography.io import read_sheet
from business_demography.lookup import build_section_lookup
from business_demography.merge import merge_panel
from business_demography.models import StageReport
from business_demography.store import TableStore

StageCallback = Callable[[str, StageReport], None]


@dataclass
class PipelineResult:
    """Tables, per-stage reports and store locations of one run."""

    tables: dict[str, pd.DataFrame] = field(default_factory=dict)
    reports: dict[str, StageReport] = field(default_factory=dict)
    written: dict[str, str] = field(default_factory=dict)

    @property
    def summary(self) -> pd.DataFrame:
        return self.tables["section_summary"]

    def warnings(self) -> list[str]:
        return [f"{name}: {w}" for name, report in self.reports.items() for w in report.warnings]


def _extract_stages(
    workbook: Path, config: PipelineConfig
) -> Iterator[tuple[str, pd.DataFrame, StageReport]]:
    for spec in config.wide_sheets:
        raw = read_sheet(workbook, spec.sheet, skiprows=spec.skiprows)
        table, report = extract_indicator(raw, spec)
        yield spec.name, table, report

    cohorts = [
        (spec, read_sheet(workbook, spec.sheet, skiprows=spec.skiprows, header=False))
        for spec in config.survival_sheets
    ]
    table, report = extract_survival(cohorts)
    yield "survival", table, report

    raw = read_sheet(workbook, INDUSTRY_DEFINITION_SHEET, skiprows=INDUSTRY_DEFINITION_SKIPROWS)
    lookup, report = build_section_lookup(raw, sections=config.sections)
    yield "section_lookup", lookup, report


def extract_all(
    workbook: Path, config: PipelineConfig | None = None
) -> tuple[dict[str, pd.DataFrame], dict[str, StageReport]]:
    """Run every extractor without persisting anything (used by ``validate``)."""
    config = config or PipelineConfig()
    tables: dict[str, pd.DataFrame] = {}
    reports: dict[str, StageReport] = {}
    for name, table, report in _extract_stages(Path(workbook), config):
        tables[name] = table
        reports[name] = report
    return tables, reports


def run_pipeline(
    workbook: Path,
    store: TableStore,
    config: PipelineConfig | None = None,
    *,
    on_stage: StageCallback | None = None,
) -> PipelineResult:
    """Extract, merge and aggregate *workbook*, persisting every stage to *store*.

    Raises
    ------
    FileNotFoundError
        If the workbook does not exist.
    StructuralError
        If a sheet is missing or does not have the expected layout.
    JoinIntegrityError
        If join keys are duplicated or a division maps to two sections.
    """
    config = config or PipelineConfig()
    result = PipelineResult()

    def _record(name: str, table: pd.DataFrame, report: StageReport) -> None:
        result.written[name] = store.write(name, table)
        result.tables[name] = table
        result.reports[name] = report
        if on_stage is not None:
            on_stage(name, report)

    for name, table, report in _extract_stages(Path(workbook), config):
        _record(name, table, report)

    tables = result.tables
    panel, report = merge_panel(
        tables["births"],
        active=tables["active"],
        deaths=tables["deaths"],
        survival=tables["survival"],
        high_growth=tables["high_growth"],
        years=config.years,
    )
    _record("master_panel", panel, report)

    summary, report = aggregate_sections(
        panel, tables["section_lookup"], na_policy=config.na_policy
    )
    _record("section_summary", summary, report)
    return result
