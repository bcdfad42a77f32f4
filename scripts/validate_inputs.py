#!/usr/bin/env python
"""
Validate input data files against schema requirements.

Usage:
    python scripts/validate_inputs.py
    python scripts/validate_inputs.py --data-dir /path/to/data
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd
from profit_os.config import config, CORE_TABLES, TABLE_FILES
from profit_os.data.schema import SchemaValidationError, normalise_columns, validate_schema


def validate_file(filepath: Path, table_name: str) -> dict:
    """Validate a single file."""
    result = {
        "exists": False,
        "format": None,
        "rows": 0,
        "columns": 0,
        "valid": False,
        "missing_required": [],
        "missing_optional": [],
        "errors": []
    }

    parquet_path = filepath.with_suffix(".parquet")
    csv_path = filepath.with_suffix(".csv")

    if parquet_path.exists():
        result["exists"] = True
        result["format"] = "parquet"
        load_path = parquet_path
    elif csv_path.exists():
        result["exists"] = True
        result["format"] = "csv"
        load_path = csv_path
    else:
        result["errors"].append(f"File not found: {filepath}.(parquet|csv)")
        return result

    try:
        if result["format"] == "parquet":
            df = pd.read_parquet(load_path)
        else:
            df = pd.read_csv(load_path)

        result["rows"] = len(df)
        result["columns"] = len(df.columns)
    except Exception as e:
        result["errors"].append(f"Failed to load: {e}")
        return result

    df = normalise_columns(df, table_name)
    try:
        schema_result = validate_schema(df, table_name, strict=True)
        result["valid"] = True
        result["missing_optional"] = schema_result["missing_optional"]
    except SchemaValidationError as e:
        schema_result = validate_schema(df, table_name, strict=False)
        result["missing_required"] = schema_result["missing_required"]
        result["missing_optional"] = schema_result["missing_optional"]
        result["errors"].append(str(e))

    return result


def main():
    parser = argparse.ArgumentParser(description="Validate input data files")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Override data directory"
    )

    args = parser.parse_args()

    if args.data_dir:
        data_dir = Path(args.data_dir)
    else:
        data_dir = config.data_dir

    processed_dir = data_dir / "processed"

    print("=" * 60)
    print("Data Input Validation")
    print("=" * 60)
    print(f"Source directory: {processed_dir}")
    print()

    all_valid = True

    for table_key, filename in TABLE_FILES.items():
        filepath = processed_dir / filename

        print(f"Validating: {table_key}")
        print("-" * 40)

        result = validate_file(filepath, table_key)

        if result["exists"]:
            print(f"  ✓ Found: {filename}.{result['format']}")
            print(f"    Rows: {result['rows']:,}")
            print(f"    Columns: {result['columns']}")

            if result["valid"]:
                print(f"  ✓ Schema valid")
            else:
                print(f"  ✗ Schema invalid")
                print(f"    Missing required: {result['missing_required']}")
                all_valid = False

            if result["missing_optional"]:
                print(f"  ⚠ Missing optional: {result['missing_optional']}")

            for err in result["errors"]:
                print(f"  ✗ Error: {err}")
        else:
            print(f"  ✗ Not found: {filename}")
            if table_key in CORE_TABLES:
                all_valid = False
                print(f"    (REQUIRED)")
            else:
                print(f"    (optional, counted as empty)")

        print()

    print("=" * 60)
    if all_valid:
        print("✓ All validations passed")
        sys.exit(0)
    else:
        print("✗ Validation failed - see errors above")
        sys.exit(1)


if __name__ == "__main__":
    main()
