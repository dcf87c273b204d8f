"""Data models, enums and the error taxonomy used across the package."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from numbers import Integral, Real
from typing import Any, Literal


NAPolicy = Literal["zero", "propagate"]
NA_POLICIES: tuple[str, ...] = ("zero", "propagate")


class IndustryLevel(str, Enum):
    """Granularity of a SIC07 code, by digit count."""

    division = "division"
    group = "group"
    klass = "class"
    header = "header"


# ── Errors ───────────────────────────────────────────────────────


class StructuralError(ValueError):
    """A sheet or table does not have the shape the pipeline relies on."""


class RangeError(StructuralError):
    """A division range string cannot be expanded."""


class JoinIntegrityError(ValueError):
    """Join keys are not unique, or a join changed the anchor row set."""


# ── Validators ───────────────────────────────────────────────────


def _to_non_negative_int(value: Any, field_name: str) -> int:
    """Coerce a row count; integral floats (``3.0`` out of a pandas sum) are accepted."""
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be an integer, not bool")
    if isinstance(value, Integral):
        result = int(value)
    elif isinstance(value, Real) and float(value).is_integer():
        result = int(value)
    else:
        raise TypeError(f"{field_name} must be an integer, got {value!r}")
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0, got {result}")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    """Stripped, non-blank strings with repeats removed (first occurrence kept)."""
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        text = item.strip()
        if text and text not in normalized:
            normalized.append(text)
    return normalized


# ── Reports ──────────────────────────────────────────────────────


@dataclass
class StageReport:
    """Row accounting and warnings for one pipeline stage.

    Contract invariant: ``dropped_rows == rows_in - rows_out``.
    """

    stage: str = ""
    rows_in: int = 0
    rows_out: int = 0
    dropped_rows: int = 0
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.dropped_rows = _to_non_negative_int(self.dropped_rows, "dropped_rows")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in")
        if self.dropped_rows != self.rows_in - self.rows_out:
            raise ValueError("dropped_rows must equal rows_in - rows_out")

    @classmethod
    def from_counts(
        cls, stage: str, rows_in: int, rows_out: int, warnings: Sequence[str] | None = None
    ) -> StageReport:
        return cls(
            stage=stage,
            rows_in=rows_in,
            rows_out=rows_out,
            dropped_rows=rows_in - rows_out,
            warnings=list(warnings or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "dropped_rows": self.dropped_rows,
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single pipeline run."""

    tool: str = "business-demography"
    version: str = ""
    run_id: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""
    tables: list[str] = field(default_factory=list)
    stage_rows: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")
        if self.error_code is not None:
            self.error_code = _to_non_negative_int(self.error_code, "error_code")
        self.tables = _to_string_list(self.tables, "tables")
        self.stage_rows = {
            str(name): _to_non_negative_int(count, f"stage_rows[{name}]")
            for name, count in dict(self.stage_rows).items()
        }

    @classmethod
    def from_reports(cls, reports: Mapping[str, StageReport], **kwargs: Any) -> RunManifest:
        return cls(stage_rows={name: r.rows_out for name, r in reports.items()}, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "tables": list(self.tables),
            "stage_rows": dict(self.stage_rows),
        }
