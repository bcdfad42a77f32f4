"""
Export utilities for tables and profitability reports.
"""
import pandas as pd
import json
from pathlib import Path
from typing import Optional, Union
from datetime import datetime
from io import BytesIO

from profit_os.metrics.profitability import AllocationReport


REPORT_CSV_COLUMNS = [
    "client_name",
    "revenue",
    "total_allocated_cost",
    "profit",
    "margin",
    "total_share_units",
    "assigned_staff_count",
]


def export_dataframe_csv(df: pd.DataFrame, filename: Optional[str] = None) -> tuple:
    """
    Export dataframe to CSV bytes.

    Returns: (csv_bytes, filename)
    """
    if filename is None:
        filename = format_export_filename("export")

    csv_bytes = df.to_csv(index=False).encode('utf-8')

    return csv_bytes, filename


def report_to_json(report: AllocationReport) -> str:
    """Serialise a report to an indented JSON string."""
    payload = report.to_dict()
    payload["generated_at"] = datetime.now().isoformat(timespec="seconds")
    return json.dumps(payload, indent=2)


def export_report_json(report: AllocationReport, filename: Optional[str] = None) -> tuple:
    """
    Export the full report (clients, staff breakdowns, totals, advisories).

    Returns: (json_bytes, filename)
    """
    if filename is None:
        filename = f"client_profitability_{report.period.month_key}.json"

    return report_to_json(report).encode('utf-8'), filename


def export_report_csv(report: AllocationReport, filename: Optional[str] = None) -> tuple:
    """
    Export one row per client plus a TOTAL row.

    Returns: (csv_bytes, filename)
    """
    df = report.clients[REPORT_CSV_COLUMNS].copy()

    totals = {
        "client_name": "TOTAL",
        "revenue": report.totals.get("revenue", 0.0),
        "total_allocated_cost": report.totals.get("total_cost", 0.0),
        "profit": report.totals.get("profit", 0.0),
        "margin": report.totals.get("margin", 0.0),
        "total_share_units": report.totals.get("total_share_units", 0.0),
        "assigned_staff_count": report.totals.get("staff_count", 0),
    }
    df = pd.concat([df, pd.DataFrame([totals])], ignore_index=True)
    df.insert(0, "period", report.period.month_key)

    if filename is None:
        filename = f"client_profitability_{report.period.month_key}.csv"

    return df.to_csv(index=False).encode('utf-8'), filename


def export_report_excel(report: AllocationReport, filename: Optional[str] = None) -> tuple:
    """
    Export clients, staff breakdown and staff costs to separate sheets.
    """
    if filename is None:
        filename = f"client_profitability_{report.period.month_key}.xlsx"

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        report.clients.to_excel(writer, sheet_name="clients", index=False)
        if len(report.staff_breakdown) > 0:
            report.staff_breakdown.to_excel(writer, sheet_name="staff_breakdown", index=False)
        if len(report.staff_costs) > 0:
            report.staff_costs.to_excel(writer, sheet_name="staff_costs", index=False)

    return buffer.getvalue(), filename


def write_report_json(report: AllocationReport, output: Union[str, Path]) -> Path:
    """Write the JSON report to disk, creating parent directories."""
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report_to_json(report), encoding="utf-8")
    return path


def format_export_filename(base_name: str, extension: str = "csv",
                           include_timestamp: bool = True) -> str:
    """Generate formatted export filename."""
    if include_timestamp:
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return f"{base_name}_{timestamp}.{extension}"
    return f"{base_name}.{extension}"
