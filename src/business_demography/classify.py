"""SIC07 code extraction from free-text industry labels."""

from __future__ import annotations

import re

import pandas as pd

from business_demography.models import IndustryLevel

_LEADING_CODE_RE = re.compile(r"^(\d{2,4})")

_LEVEL_BY_LENGTH: dict[int, IndustryLevel] = {
    2: IndustryLevel.division,
    3: IndustryLevel.group,
    4: IndustryLevel.klass,
}


def classify_label(label: object) -> tuple[str | None, IndustryLevel]:
    """Return ``(code, level)`` for one industry label.

    The code is the leading run of digits of the trimmed label, 2 to 4
    characters long.  Labels without one (section titles, blanks, a single
    leading digit) are ``header`` with no code.
    """
    if label is None:
        return None, IndustryLevel.header
    try:
        if pd.isna(label):
            return None, IndustryLevel.header
    except (TypeError, ValueError):
        pass

    match = _LEADING_CODE_RE.match(str(label).strip())
    if not match:
        return None, IndustryLevel.header
    code = match.group(1)
    return code, _LEVEL_BY_LENGTH[len(code)]


def classify_labels(labels: pd.Series) -> pd.DataFrame:
    """Vectorised :func:`classify_label` returning code and level columns."""
    codes = labels.astype("string").str.strip().str.extract(_LEADING_CODE_RE, expand=False)
    levels = codes.str.len().map(
        lambda n: _LEVEL_BY_LENGTH[int(n)].value if pd.notna(n) else IndustryLevel.header.value
    )
    return pd.DataFrame(
        {
            "industry_code": codes.astype("string"),
            "industry_level": levels.astype("string"),
        },
        index=labels.index,
    )
