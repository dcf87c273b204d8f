"""CLI entry point for business-demography."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from business_demography import __version__
from business_demography.config import (
    DEFAULT_INPUT,
    DEFAULT_OUT_DIR,
    DEFAULT_SECTIONS,
    PipelineConfig,
    load_sections_file,
)
from business_demography.io import sha256_file, utcnow_iso, write_json
from business_demography.models import RunManifest, StageReport
from business_demography.pipeline import extract_all, run_pipeline
from business_demography.store import CsvTableStore

app = typer.Typer(
    name="bdemog",
    help="business-demography — ONS business demography into a section-year panel.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


class NAPolicyOption(str, Enum):
    zero = "zero"
    propagate = "propagate"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"business-demography v{__version__}")
        raise typer.Exit()


def _resolve_config(
    sections: list[str] | None, sections_file: Path | None, na_policy: NAPolicyOption
) -> PipelineConfig:
    chosen = load_sections_file(sections_file) + list(sections or [])
    return PipelineConfig(
        sections=tuple(chosen) if chosen else DEFAULT_SECTIONS,
        na_policy=na_policy.value,
    )


def _write_run_artifacts(
    out_dir: Path,
    input_file: Path,
    created_at: str,
    reports: Mapping[str, StageReport],
    *,
    tables: list[str] | None = None,
    error_code: int | None = None,
    error_message: str = "",
) -> tuple[Path, Path]:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    manifest = RunManifest.from_reports(
        reports,
        version=__version__,
        run_id=created_at,
        input_path=str(input_file.resolve()),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        sha256=sha256,
        status="success" if error_code is None else "failed",
        error_code=error_code,
        error_message=error_message,
        tables=sorted(tables or []),
    )
    report_path = write_json(
        out_dir / "stage_report.json", {name: r.to_dict() for name, r in reports.items()}
    )
    manifest_path = write_json(out_dir / "run_manifest.json", manifest.to_dict())
    return report_path, manifest_path


def _fail(
    out_dir: Path,
    input_file: Path,
    created_at: str,
    reports: Mapping[str, StageReport],
    *,
    message: str,
    error_code: int,
    tables: list[str] | None = None,
) -> NoReturn:
    report_path, manifest_path = _write_run_artifacts(
        out_dir,
        input_file,
        created_at,
        reports,
        tables=tables,
        error_code=error_code,
        error_message=message,
    )
    _err(message)
    console.print(f"  Stage report -> {report_path}")
    console.print(f"  Manifest     -> {manifest_path}")
    raise typer.Exit(code=error_code)


def _stage_table(reports: Mapping[str, StageReport], title: str) -> RichTable:
    tbl = RichTable(title=title, show_lines=True)
    tbl.add_column("Stage", style="bold", no_wrap=True)
    tbl.add_column("Rows in", justify="right")
    tbl.add_column("Rows out", justify="right")
    tbl.add_column("Warnings")
    for name, report in reports.items():
        warnings = "\n".join(f"[yellow]{w}[/yellow]" for w in report.warnings)
        tbl.add_row(
            name, str(report.rows_in), str(report.rows_out), warnings or "[green]none[/green]"
        )
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """business-demography CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = typer.Option(
        DEFAULT_INPUT, "--input", "-i",
        help="Path to the ONS business demography workbook (.xlsx).",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        DEFAULT_OUT_DIR, "--out-dir", "-o",
        help="Output directory for the stage tables, report and manifest.",
    ),
    sections: list[str] | None = typer.Option(
        None, "--section", "-s",
        help="SIC section to keep (repeatable). Defaults to the five report sections.",
    ),
    sections_file: Path | None = typer.Option(
        None, "--sections-file",
        help="Text file with one section name per line.",
    ),
    na_policy: NAPolicyOption = typer.Option(
        NAPolicyOption.zero,
        "--na-policy",
        help="Missing values in section sums: zero (ignore) or propagate.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Extract, merge and aggregate the workbook into section-year tables."""
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    reports: dict[str, StageReport] = {}
    store = CsvTableStore(out_dir)

    try:
        config = _resolve_config(sections, sections_file, na_policy)
    except ValueError as exc:
        _fail(out_dir, input_file, created_at, reports, message=str(exc), error_code=2)

    if not quiet:
        console.print(Panel(
            f"[bold]business-demography[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Pipeline Start", border_style="blue",
        ))
        console.print(f"  Sections: {', '.join(config.sections)}")
        console.print(f"  Years: {config.years[0]}-{config.years[1]}, na_policy={config.na_policy}")

    def _on_stage(name: str, report: StageReport) -> None:
        reports[name] = report
        echo(f"[blue]>[/blue] {name}: {report.rows_out} rows -> {store.path_for(name)}")
        for w in report.warnings:
            echo(f"  [yellow]![/yellow] {w}")

    try:
        result = run_pipeline(input_file, store, config, on_stage=_on_stage)
    except (FileNotFoundError, ValueError) as exc:
        _fail(out_dir, input_file, created_at, reports, message=str(exc), error_code=2,
              tables=list(reports))
    except Exception as exc:
        _fail(out_dir, input_file, created_at, reports,
              message=f"Unexpected internal error: {exc}", error_code=1, tables=list(reports))

    report_path, manifest_path = _write_run_artifacts(
        out_dir, input_file, created_at, result.reports, tables=list(result.written)
    )
    echo(f"  Stage report -> {report_path}")
    echo(f"  Manifest     -> {manifest_path}")

    if not quiet:
        console.print(Panel(
            f"[green]Done[/green] — {len(result.summary)} section-year rows -> "
            f"{store.path_for('section_summary')}",
            title="Pipeline Complete", border_style="green",
        ))


# ── validate command ─────────────────────────────────────────────


@app.command()
def validate(
    input_file: Path = typer.Option(
        DEFAULT_INPUT, "--input", "-i",
        help="Path to the ONS business demography workbook (.xlsx).",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        DEFAULT_OUT_DIR, "--out-dir", "-o",
        help="Output directory for the stage report and manifest.",
    ),
    sections: list[str] | None = typer.Option(
        None, "--section", "-s",
        help="SIC section to keep (repeatable). Defaults to the five report sections.",
    ),
    sections_file: Path | None = typer.Option(
        None, "--sections-file",
        help="Text file with one section name per line.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes report + manifest.",
    ),
) -> None:
    """Check that every source sheet extracts cleanly without writing tables.

    Writes stage_report.json + run_manifest.json only.
    Exit 0 = OK, exit 2 = structural failure.
    """
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    reports: dict[str, StageReport] = {}

    try:
        config = _resolve_config(sections, sections_file, NAPolicyOption.zero)
        _tables, reports = extract_all(input_file, config)
    except (FileNotFoundError, ValueError) as exc:
        _fail(out_dir, input_file, created_at, reports, message=str(exc), error_code=2)
    except Exception as exc:
        _fail(out_dir, input_file, created_at, reports,
              message=f"Unexpected internal error: {exc}", error_code=1)

    report_path, manifest_path = _write_run_artifacts(out_dir, input_file, created_at, reports)

    if not quiet:
        console.print(Panel(
            f"[bold]business-demography[/bold] v{__version__}  [dim]validate mode[/dim]\n"
            f"Input: {input_file}",
            title="Validate", border_style="cyan",
        ))
        console.print(_stage_table(reports, "Validation Summary"))
    console.print(f"  Stage report -> {report_path}")
    console.print(f"  Manifest     -> {manifest_path}")
