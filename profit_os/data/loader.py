"""
Data loading utilities with Streamlit caching.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import pandas as pd
import streamlit as st

from profit_os.config import config, TABLE_FILES, CORE_TABLES
from profit_os.data.rates import RateFetcher, RateTable, fetch_exchange_rates, static_rates
from profit_os.data.schema import prepare_table
from profit_os.metrics.client_profitability import EngineInputs


logger = logging.getLogger("profit-os.loader")


def _resolve_dir(data_dir: Optional[Union[str, Path]]) -> Path:
    """Directory holding the table files."""
    if data_dir is None:
        return config.processed_dir
    return Path(data_dir)


def _load_file(filepath: Path) -> Optional[pd.DataFrame]:
    """Load a single file (parquet or csv)."""
    parquet_path = filepath.with_suffix(".parquet")
    csv_path = filepath.with_suffix(".csv")

    if parquet_path.exists():
        return pd.read_parquet(parquet_path)
    elif csv_path.exists():
        return pd.read_csv(csv_path)
    return None


def load_table(table_name: str, data_dir: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """
    Load one input table by its logical name.

    Missing optional tables come back empty; a missing core table is logged
    and also comes back empty so the report degrades instead of failing.
    """
    if table_name not in TABLE_FILES:
        raise KeyError(f"Unknown table: {table_name}")

    filepath = _resolve_dir(data_dir) / TABLE_FILES[table_name]
    df = _load_file(filepath)
    if df is None:
        if table_name in CORE_TABLES:
            logger.warning("Core table %s not found in %s", table_name, filepath.parent)
        else:
            logger.debug("Optional table %s not found", table_name)
        return pd.DataFrame()

    df, result = prepare_table(df, table_name, strict=False)
    if not result["is_valid"]:
        logger.warning("%s is missing required columns: %s", table_name, result["missing_required"])
    return df


def load_tables(data_dir: Optional[Union[str, Path]] = None,
                max_workers: Optional[int] = None) -> Dict[str, pd.DataFrame]:
    """Load every input table concurrently."""
    max_workers = max_workers or config.max_load_workers
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {name: pool.submit(load_table, name, data_dir) for name in TABLE_FILES}
        tables = {name: future.result() for name, future in futures.items()}

    clients = tables.get("clients")
    if clients is not None and "name" in clients.columns:
        tables["clients"] = clients.sort_values("name", kind="mergesort").reset_index(drop=True)

    return tables


def load_engine_inputs(data_dir: Optional[Union[str, Path]] = None,
                       fetch_rates: bool = True,
                       fetcher: Optional[RateFetcher] = None) -> Tuple[EngineInputs, RateTable]:
    """
    Load all tables and the exchange-rate table in parallel.

    Args:
        data_dir: Directory holding the table files; defaults to the processed dir
        fetch_rates: If False, use the static fallback table without a network call
        fetcher: Optional rate fetcher passed through to fetch_exchange_rates

    Returns:
        (EngineInputs, RateTable)
    """
    with ThreadPoolExecutor(max_workers=2) as pool:
        tables_future = pool.submit(load_tables, data_dir)
        if fetch_rates:
            rates_future = pool.submit(fetch_exchange_rates, fetcher)
        else:
            rates_future = pool.submit(static_rates)
        tables = tables_future.result()
        rate_table = rates_future.result()

    logger.info(
        "Loaded %d tables (%s rates)",
        sum(1 for df in tables.values() if len(df) > 0),
        rate_table.source,
        extra={"rates_source": rate_table.source},
    )
    return EngineInputs.from_tables(tables), rate_table


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_tables_cached(data_dir: Optional[str] = None) -> Dict[str, pd.DataFrame]:
    """Cached table load for the Streamlit app."""
    return load_tables(data_dir)


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_rates_cached(offline: bool = False) -> RateTable:
    """Cached rate table for the Streamlit app."""
    if offline:
        return static_rates()
    return fetch_exchange_rates()


def get_data_status(data_dir: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Get status of all data files."""
    base = _resolve_dir(data_dir)
    status = {"processed": {}}

    for key, filename in TABLE_FILES.items():
        parquet_path = base / f"{filename}.parquet"
        csv_path = base / f"{filename}.csv"
        status["processed"][key] = {
            "parquet_exists": parquet_path.exists(),
            "csv_exists": csv_path.exists(),
            "core": key in CORE_TABLES,
        }

    return status
