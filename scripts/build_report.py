#!/usr/bin/env python
"""
Build the client profitability report for one month and write it as JSON.

Usage:
    python scripts/build_report.py --month 2025-01
    python scripts/build_report.py --month 2025-01 --data-dir /path/to/data --offline
"""
import argparse
import logging
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from profit_os.config import config
from profit_os.data.loader import load_engine_inputs
from profit_os.data.periods import ReportingPeriod
from profit_os.exports import write_report_json
from profit_os.logging_config import setup_logging
from profit_os.metrics.client_profitability import AllocationPolicy, compute_client_profitability
from profit_os.metrics.patterns import SHARE_MODES
from profit_os.metrics.profitability import REVENUE_MODES
from profit_os.metrics.staff_cost import COST_SOURCES


logger = logging.getLogger("profit-os.build-report")


def main():
    parser = argparse.ArgumentParser(description="Build client profitability report")
    parser.add_argument(
        "--month",
        type=str,
        required=True,
        help="Reporting month as YYYY-MM"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Override data directory"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output JSON path (default: <data-dir>/reports/client_profitability_<month>.json)"
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Use the fallback exchange-rate table instead of the live API"
    )
    parser.add_argument("--cost-source", choices=COST_SOURCES, default=config.cost_source)
    parser.add_argument("--revenue-mode", choices=REVENUE_MODES, default=config.revenue_mode)
    parser.add_argument("--share-mode", choices=SHARE_MODES, default=config.share_mode)
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else config.log_level, json_output=config.log_json)

    try:
        period = ReportingPeriod.for_month(args.month)
    except ValueError as e:
        print(f"ERROR: invalid --month {args.month!r}: {e}")
        sys.exit(2)

    data_dir = Path(args.data_dir) if args.data_dir else config.data_dir
    processed_dir = data_dir / "processed"
    output = Path(args.output) if args.output else (
        data_dir / "reports" / f"client_profitability_{period.month_key}.json"
    )

    print(f"Building client profitability for {period.label}...")
    print(f"  Source: {processed_dir}")
    print(f"  Output: {output}")
    print()

    policy = AllocationPolicy(
        cost_source=args.cost_source,
        revenue_mode=args.revenue_mode,
        share_mode=args.share_mode,
    )

    inputs, rate_table = load_engine_inputs(processed_dir, fetch_rates=not args.offline)
    if len(inputs.clients) == 0:
        print(f"ERROR: Could not load clients from {processed_dir}")
        print("Please ensure the file exists as .parquet or .csv")
        sys.exit(1)

    started = time.perf_counter()
    report = compute_client_profitability(
        inputs,
        period,
        rate_table.rates,
        policy=policy,
        rates_stale=rate_table.is_fallback,
    )
    write_report_json(report, output)

    totals = report.totals
    print("✓ Report built")
    print()
    print("Summary:")
    print(f"  Clients:        {totals['client_count']:,}")
    print(f"  Revenue:        {totals['revenue']:,.2f}")
    print(f"  Allocated cost: {totals['total_cost']:,.2f}")
    print(f"  Profit:         {totals['profit']:,.2f} ({totals['margin']:.1f}%)")
    if totals["unallocated_cost"]:
        print(f"  Unallocated:    {totals['unallocated_cost']:,.2f}")
    for flag, raised in report.flags.items():
        if raised:
            print(f"  ⚠ {flag}")
    logger.info(
        "Wrote report for %s",
        period.month_key,
        extra={
            "period": period.month_key,
            "rates_source": rate_table.source,
            "duration_ms": round((time.perf_counter() - started) * 1000),
        },
    )


if __name__ == "__main__":
    main()
