"""
Schema validation and column alias mapping.
"""
import pandas as pd
import streamlit as st
from typing import List, Tuple, Dict

from profit_os.config import REQUIRED_COLUMNS, OPTIONAL_COLUMNS, COLUMN_ALIASES


class SchemaValidationError(Exception):
    """Raised when required columns are missing."""
    pass


def normalise_columns(df: pd.DataFrame, table_name: str) -> pd.DataFrame:
    """
    Rename source-system columns to canonical names.
    An alias is skipped when the canonical column already exists.
    """
    aliases = COLUMN_ALIASES.get(table_name, {})
    renames = {
        source: target
        for source, target in aliases.items()
        if source in df.columns and target not in df.columns
    }
    if not renames:
        return df
    return df.rename(columns=renames)


def validate_required_columns(df: pd.DataFrame, table_name: str) -> Tuple[bool, List[str]]:
    """
    Validate that required columns exist in dataframe.
    Returns (is_valid, missing_columns).
    """
    if table_name not in REQUIRED_COLUMNS:
        return True, []

    required = REQUIRED_COLUMNS[table_name]
    missing = [col for col in required if col not in df.columns]

    return len(missing) == 0, missing


def check_optional_columns(df: pd.DataFrame, table_name: str) -> List[str]:
    """
    Check which optional columns are missing.
    Returns list of missing optional columns.
    """
    if table_name not in OPTIONAL_COLUMNS:
        return []

    optional = OPTIONAL_COLUMNS[table_name]
    missing = [col for col in optional if col not in df.columns]

    return missing


def validate_schema(df: pd.DataFrame, table_name: str, strict: bool = True) -> Dict:
    """
    Full schema validation.

    Args:
        df: DataFrame to validate
        table_name: Name of table for column requirements lookup
        strict: If True, raise error on missing required columns

    Returns:
        Dict with validation results
    """
    is_valid, missing_required = validate_required_columns(df, table_name)
    missing_optional = check_optional_columns(df, table_name)

    result = {
        "is_valid": is_valid,
        "missing_required": missing_required,
        "missing_optional": missing_optional,
        "total_columns": len(df.columns),
        "total_rows": len(df),
    }

    if strict and not is_valid:
        raise SchemaValidationError(
            f"Missing required columns in {table_name}: {missing_required}"
        )

    return result


def display_validation_result(result: Dict, table_name: str):
    """Display validation result in Streamlit."""
    if result["is_valid"]:
        st.success(f"{table_name}: Schema valid ({result['total_rows']:,} rows, {result['total_columns']} columns)")
    else:
        st.error(f"{table_name}: Missing required columns: {result['missing_required']}")

    if result["missing_optional"]:
        st.warning(f"{table_name}: Missing optional columns (will degrade gracefully): {result['missing_optional']}")


NUMERIC_COLUMNS = ["mrr", "amount", "hours", "hourly_rate", "base_salary"]
DATE_COLUMNS = [
    "start_date",
    "end_date",
    "pay_date",
    "pay_period_start",
    "pay_period_end",
    "overtime_date",
    "exception_date",
]
ID_COLUMNS = ["staff_id", "pattern_id", "client_id"]


def ensure_column_types(df: pd.DataFrame) -> pd.DataFrame:
    """Ensure consistent column types."""
    df = df.copy()

    for col in NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    for col in DATE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce")

    # Ids compare as strings across tables
    for col in ID_COLUMNS:
        if col in df.columns:
            df[col] = df[col].where(df[col].isna(), df[col].astype(str))

    for col in ["currency", "base_currency"]:
        if col in df.columns:
            df[col] = df[col].where(df[col].isna(), df[col].astype(str).str.strip().str.upper())

    return df


def prepare_table(df: pd.DataFrame, table_name: str, strict: bool = False) -> Tuple[pd.DataFrame, Dict]:
    """Alias, validate and type a raw table. Returns (table, validation_result)."""
    df = normalise_columns(df, table_name)
    result = validate_schema(df, table_name, strict=strict)
    return ensure_column_types(df), result

