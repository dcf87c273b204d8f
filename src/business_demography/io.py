"""I/O helpers — read workbook sheets, write JSON/text artifacts atomically."""

from __future__ import annotations

import hashlib
import json
import math
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

from business_demography.models import StructuralError

_EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Loading ──────────────────────────────────────────────────────


def read_sheet(path: Path, sheet: str, *, skiprows: int, header: bool = True) -> pd.DataFrame:
    """Read one worksheet as strings, skipping the ONS metadata rows above it.

    With ``header=False`` the first row after *skiprows* is data and columns
    are positional integers.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not a supported Excel format.
    StructuralError
        If the workbook has no sheet called *sheet*.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input workbook not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in _EXCEL_SUFFIXES:
        raise ValueError(f"Unsupported file type: {suffix!r}. Use an .xlsx workbook")

    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
    try:
        return read_excel(
            path,
            sheet_name=sheet,
            skiprows=skiprows,
            header=0 if header else None,
            engine="openpyxl",
            dtype="string",
        )
    except ValueError as exc:
        if "not found" in str(exc).lower():
            raise StructuralError(f"{sheet}: sheet not found in {path.name}") from exc
        raise


# ── Writing ──────────────────────────────────────────────────────


def write_text_atomic(path: Path, text: str) -> Path:
    """Write *text* via a temp file + rename so readers never see a partial file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8", newline="\n")
    tmp_path.replace(path)
    return path


def _json_default(obj: Any) -> Any:
    if obj is pd.NA or obj is pd.NaT:
        return None
    if isinstance(obj, Path):
        return obj.as_posix()
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    # StageReport / RunManifest
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict) and not isinstance(obj, (pd.DataFrame, pd.Series)):
        return to_dict()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, float) and math.isnan(converted):
            return None
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed, strict JSON to *path*.

    Keys are sorted and the write is atomic.  Bare ``NaN``/``Infinity``
    floats raise ``ValueError`` instead of producing invalid JSON.
    """
    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        allow_nan=False,
        default=_json_default,
    )
    return write_text_atomic(path, payload + "\n")


# ── Provenance ───────────────────────────────────────────────────


def sha256_file(path: Path, *, chunk_size: int = 1 << 20) -> str:
    """Return the hex SHA-256 digest of *path*, read in *chunk_size* blocks."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    digest = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def utcnow_iso() -> str:
    """Current UTC time, ISO-8601 with millisecond precision (manifest ``run_id``)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")
