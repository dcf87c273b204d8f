"""business-demography — ONS business demography tables into a section-year panel."""

__version__ = "0.1.0"

YEAR_WINDOW: tuple[int, int] = (2019, 2023)

SURVIVAL_HORIZONS: tuple[int, ...] = (1, 2, 3, 4, 5)
