"""Table persistence between pipeline stages.

Stages hand tables to a ``TableStore`` instead of agreeing on file paths.
``CsvTableStore`` is the on-disk backing used by the CLI; ``MemoryTableStore``
keeps everything in a dict for tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import pandas as pd

from business_demography.io import write_text_atomic

# Columns holding SIC codes must stay text so "01" is not read back as 1.
CODE_COLUMNS: tuple[str, ...] = ("industry_code", "division_code")


class TableStore(Protocol):
    def write(self, name: str, df: pd.DataFrame) -> str: ...

    def read(self, name: str) -> pd.DataFrame: ...

    def names(self) -> list[str]: ...


def _integral_floats_to_int(df: pd.DataFrame) -> pd.DataFrame:
    """Cast float columns holding only whole numbers to nullable ints for output."""
    out = df.copy()
    for col in out.columns:
        s = out[col]
        if not pd.api.types.is_float_dtype(s):
            continue
        values = s.dropna()
        if len(values) and (values == values.round()).all():
            out[col] = s.astype("Int64")
    return out


class CsvTableStore:
    """One UTF-8, comma-separated file with a header row per table."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        return self.root / f"{name}.csv"

    def write(self, name: str, df: pd.DataFrame) -> str:
        payload = _integral_floats_to_int(df).to_csv(index=False, lineterminator="\n")
        return str(write_text_atomic(self.path_for(name), payload))

    def read(self, name: str) -> pd.DataFrame:
        path = self.path_for(name)
        if not path.exists():
            raise FileNotFoundError(f"Table {name!r} not found at {path}")
        return pd.read_csv(path, dtype={col: "string" for col in CODE_COLUMNS}, encoding="utf-8")

    def names(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.csv"))


class MemoryTableStore:
    """Dict-backed store; reads and writes hand out copies."""

    def __init__(self) -> None:
        self._tables: dict[str, pd.DataFrame] = {}

    def write(self, name: str, df: pd.DataFrame) -> str:
        self._tables[name] = df.copy()
        return f"memory://{name}"

    def read(self, name: str) -> pd.DataFrame:
        if name not in self._tables:
            raise FileNotFoundError(f"Table {name!r} not found in memory store")
        return self._tables[name].copy()

    def names(self) -> list[str]:
        return sorted(self._tables)
