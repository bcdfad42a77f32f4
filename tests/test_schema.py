"""
Tests for schema validation and column aliasing.
"""
import pytest
import pandas as pd
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from profit_os.data.schema import (
    validate_required_columns,
    check_optional_columns,
    validate_schema,
    normalise_columns,
    ensure_column_types,
    prepare_table,
    SchemaValidationError
)


class TestValidateRequiredColumns:
    """Tests for required column validation."""

    def test_all_columns_present(self):
        """All required columns present should return valid."""
        df = pd.DataFrame({
            "staff_id": ["S1"],
            "client_name": ["Acme"],
            "days_of_week": ["[1,3,5]"],
            "recurrence_interval": ["weekly"],
            "start_date": ["2025-01-01"],
        })

        is_valid, missing = validate_required_columns(df, "patterns")

        assert is_valid is True
        assert missing == []

    def test_missing_columns(self):
        """Missing columns should be detected."""
        df = pd.DataFrame({
            "staff_id": ["S1"],
            # Missing other columns
        })

        is_valid, missing = validate_required_columns(df, "pay_records")

        assert is_valid is False
        assert "amount" in missing
        assert "pay_date" in missing

    def test_unknown_table(self):
        """Unknown table name should pass (no requirements)."""
        df = pd.DataFrame({"any_col": [1, 2, 3]})

        is_valid, missing = validate_required_columns(df, "unknown_table")

        assert is_valid is True
        assert missing == []


class TestValidateSchema:
    """Tests for full schema validation."""

    def test_strict_mode_raises(self):
        """Strict mode should raise on missing columns."""
        df = pd.DataFrame({"name": ["Acme"]})

        with pytest.raises(SchemaValidationError):
            validate_schema(df, "clients", strict=True)

    def test_non_strict_returns_result(self):
        """Non-strict mode should return result dict."""
        df = pd.DataFrame({"name": ["Acme"]})

        result = validate_schema(df, "clients", strict=False)

        assert result["is_valid"] is False
        assert result["missing_required"] == ["mrr"]
        assert result["total_rows"] == 1
        assert result["total_columns"] == 1


class TestCheckOptionalColumns:
    """Tests for optional column checking."""

    def test_returns_missing_optional(self):
        df = pd.DataFrame({"staff_id": ["S1"], "base_salary": [2400]})

        missing = check_optional_columns(df, "staff_profiles")

        assert "pay_frequency" in missing
        assert "base_currency" in missing

    def test_empty_for_unknown_table(self):
        df = pd.DataFrame({"col": [1]})

        assert check_optional_columns(df, "unknown") == []


class TestNormaliseColumns:
    """Tests for source-system alias mapping."""

    def test_maps_user_id_to_staff_id(self):
        df = pd.DataFrame({"user_id": ["u1"], "type": ["salary"]})

        result = normalise_columns(df, "pay_records")

        assert "staff_id" in result.columns
        assert "record_type" in result.columns
        assert "user_id" not in result.columns

    def test_existing_canonical_column_wins(self):
        """An alias is ignored when the canonical column is already there."""
        df = pd.DataFrame({"user_id": ["u1"], "staff_id": ["s1"]})

        result = normalise_columns(df, "patterns")

        assert list(result["staff_id"]) == ["s1"]
        assert "user_id" in result.columns

    def test_aliases_are_per_table(self):
        """'id' is the client id on clients but the pattern id on patterns."""
        clients = normalise_columns(pd.DataFrame({"id": [1], "name": ["Acme"]}), "clients")
        patterns = normalise_columns(pd.DataFrame({"id": [7]}), "patterns")

        assert "client_id" in clients.columns
        assert "pattern_id" in patterns.columns


class TestEnsureColumnTypes:
    """Tests for type coercion."""

    def test_coerces_numbers_dates_and_ids(self):
        df = pd.DataFrame({
            "staff_id": [101, 102],
            "pattern_id": ["p1", None],
            "amount": ["2000", "bad"],
            "pay_date": ["2025-03-28", "not a date"],
            "currency": [" gbp", None],
        })

        result = ensure_column_types(df)

        assert result["staff_id"].iloc[0] == "101"
        assert result["pattern_id"].iloc[0] == "p1"
        assert pd.isna(result["pattern_id"].iloc[1])
        assert result["amount"].iloc[0] == 2000
        assert pd.isna(result["amount"].iloc[1])
        assert result["pay_date"].iloc[0] == pd.Timestamp("2025-03-28")
        assert pd.isna(result["pay_date"].iloc[1])
        assert result["currency"].iloc[0] == "GBP"

    def test_prepare_table_aliases_then_validates(self):
        df = pd.DataFrame({"client_name": ["Acme"], "mrr": ["1200"], "id": [1]})

        result_df, result = prepare_table(df, "clients")

        assert result["is_valid"] is True
        assert result_df["name"].iloc[0] == "Acme"
        assert result_df["mrr"].iloc[0] == 1200
        assert result_df["client_id"].iloc[0] == "1"
