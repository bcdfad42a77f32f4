"""
Consistent number and display formatting.
"""
import pandas as pd
from typing import Union

from profit_os.config import (
    FORMAT_COUNT,
    FORMAT_CURRENCY,
    FORMAT_CURRENCY_DECIMAL,
    FORMAT_HOURS,
    FORMAT_PERCENT,
)


MISSING = "—"


# =============================================================================
# NUMBER FORMATTERS
# =============================================================================

def fmt_currency(value: Union[float, int, None], decimals: int = 0) -> str:
    """Format as currency: £1,234 or -£1,234.56"""
    if value is None or pd.isna(value):
        return MISSING
    template = FORMAT_CURRENCY if decimals == 0 else FORMAT_CURRENCY_DECIMAL
    if value < 0:
        return "-" + template.format(abs(value))
    return template.format(value)


def fmt_units(value: Union[float, int, None]) -> str:
    """Format share units (days or hours): 1,234.5"""
    if value is None or pd.isna(value):
        return MISSING
    return FORMAT_HOURS.format(value)


def fmt_percent(value: Union[float, int, None]) -> str:
    """Format percentage: 12.3%"""
    if value is None or pd.isna(value):
        return MISSING
    return FORMAT_PERCENT.format(value)


def fmt_count(value: Union[float, int, None]) -> str:
    """Format count: 1,234"""
    if value is None or pd.isna(value):
        return MISSING
    return FORMAT_COUNT.format(int(value))


# =============================================================================
# DATAFRAME FORMATTERS
# =============================================================================

CURRENCY_COLUMNS = ["revenue", "total_allocated_cost", "profit", "allocated_cost",
                    "base_cost", "bonus_cost", "overtime_cost", "total_cost"]
UNIT_COLUMNS = ["total_share_units", "share_units"]
PERCENT_COLUMNS = ["margin"]
COUNT_COLUMNS = ["assigned_staff_count"]


def format_report_df(df: pd.DataFrame) -> pd.DataFrame:
    """
    Format a report dataframe for display.

    Applies the matching formatter to known column names; other columns are
    left untouched.
    """
    df = df.copy()

    for col in df.columns:
        if col in CURRENCY_COLUMNS:
            df[col] = df[col].apply(fmt_currency)
        elif col in UNIT_COLUMNS:
            df[col] = df[col].apply(fmt_units)
        elif col in PERCENT_COLUMNS:
            df[col] = df[col].apply(fmt_percent)
        elif col in COUNT_COLUMNS:
            df[col] = df[col].apply(fmt_count)

    return df
