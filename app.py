"""
Client Profitability Operating System

Main entry point for Streamlit app.
"""
import streamlit as st
from pathlib import Path
from datetime import datetime, timezone

# Page config must be first Streamlit command
st.set_page_config(
    page_title="Client Profitability OS",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent))

from profit_os.config import config, TABLE_FILES, CORE_TABLES
from profit_os.data.loader import get_data_status, load_tables_cached
from profit_os.data.schema import validate_schema, display_validation_result
from profit_os.logging_config import setup_logging


def main():
    """Main app entry point."""
    setup_logging(config.log_level, json_output=config.log_json)

    st.title("Client Profitability Operating System")
    st.caption("Staff cost → recurring shifts → clients → monthly profit")

    status = get_data_status()

    core_available = all(
        status["processed"][name]["parquet_exists"] or status["processed"][name]["csv_exists"]
        for name in CORE_TABLES
    )

    if not core_available:
        st.error("No data found!")
        optional = "\n".join(
            f"        - `{filename}.parquet` (or .csv)"
            for key, filename in TABLE_FILES.items() if key not in CORE_TABLES
        )
        st.markdown(f"""
        ### Setup Required

        Please place your data files in: `{config.processed_dir}`

        Required files:
        - `{TABLE_FILES['clients']}.parquet` (or .csv)

        Optional files (missing tables count as zero share / zero cost):
{optional}
        """)

        st.info("Once data is in place, refresh this page.")
        return

    with st.expander("Data fingerprint", expanded=False):
        rows = []
        for filename in TABLE_FILES.values():
            for ext in ("parquet", "csv"):
                path = config.processed_dir / f"{filename}.{ext}"
                if path.exists():
                    mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
                    rows.append({
                        "file": path.name,
                        "size_mb": round(path.stat().st_size / (1024 * 1024), 2),
                        "modified_utc": mtime.strftime("%Y-%m-%d %H:%M"),
                    })
        st.dataframe(rows, use_container_width=True)

    with st.spinner("Loading data..."):
        try:
            tables = load_tables_cached()
        except Exception as e:
            st.error(f"Error loading data: {e}")
            return

    st.markdown("---")

    col1, col2 = st.columns([1, 4])

    with col1:
        st.markdown("### Quick Links")
        st.page_link("pages/1_Client_Profitability.py", label="Client Profitability", icon="💰")

    with col2:
        st.markdown("### Data Overview")

        clients = tables.get("clients")
        c1, c2, c3, c4 = st.columns(4)

        with c1:
            st.metric("Clients", f"{len(clients):,}")

        with c2:
            patterns = tables.get("patterns")
            staff = patterns["staff_id"].nunique() if "staff_id" in patterns.columns else 0
            st.metric("Rostered staff", f"{staff:,}")

        with c3:
            st.metric("Recurring patterns", f"{len(patterns):,}")

        with c4:
            if "mrr" in clients.columns:
                st.metric("Total MRR", f"£{clients['mrr'].sum():,.0f}")

    st.markdown("---")
    with st.expander("Data Status"):
        for key, info in status["processed"].items():
            present = info["parquet_exists"] or info["csv_exists"]
            icon = "✅" if present else ("❌" if info["core"] else "⚪")
            format_used = "parquet" if info["parquet_exists"] else "csv" if info["csv_exists"] else "missing"
            st.markdown(f"{icon} `{key}` ({format_used})")
            df = tables.get(key)
            if present and df is not None:
                display_validation_result(validate_schema(df, key, strict=False), key)


if __name__ == "__main__":
    main()
