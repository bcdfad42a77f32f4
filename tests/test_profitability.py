"""
Tests for client revenue, margin and the report builder.
"""
import json
import pytest
import pandas as pd
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from profit_os.data.periods import ReportingPeriod
from profit_os.metrics.profitability import (
    active_clients,
    build_report,
    margin_pct,
    net_revenue,
)


MARCH = ReportingPeriod.for_month("2025-03")


def _clients(rows):
    return pd.DataFrame(rows, columns=["client_id", "name", "mrr", "status"])


def _allocations(rows):
    return pd.DataFrame(rows, columns=["staff_id", "client_name", "share_units", "allocated_cost"])


class TestRevenue:
    """Tests for MRR to revenue."""

    def test_net_of_vat(self):
        assert net_revenue(1200) == pytest.approx(1000.0)

    def test_gross_mrr(self):
        assert net_revenue(1200, "gross_mrr") == 1200.0

    def test_missing_mrr_is_zero(self):
        assert net_revenue(None) == 0.0
        assert net_revenue(float("nan")) == 0.0
        assert net_revenue("n/a") == 0.0

    def test_unknown_mode_raises(self):
        with pytest.raises(ValueError):
            net_revenue(1200, "net_of_gst")


class TestMargin:
    """Tests for margin %."""

    def test_zero_revenue_margin_is_zero(self):
        assert margin_pct(-500, 0) == 0.0
        assert margin_pct(0, 0) == 0.0

    def test_negative_revenue_margin_is_zero(self):
        assert margin_pct(100, -10) == 0.0

    def test_margin(self):
        assert margin_pct(-1000, 1000) == pytest.approx(-100.0)
        assert margin_pct(250, 1000) == pytest.approx(25.0)


class TestActiveClients:
    """Tests for active client selection."""

    def test_filters_inactive(self):
        clients = _clients([
            [1, "Acme", 1200, "active"],
            [2, "Beta", 600, "churned"],
            [3, "Gamma", 600, " Active "],
        ])

        assert active_clients(clients)["name"].tolist() == ["Acme", "Gamma"]

    def test_no_status_column_means_active(self):
        clients = pd.DataFrame({"client_id": [1], "name": ["Acme"], "mrr": [1200]})

        assert len(active_clients(clients)) == 1


class TestBuildReport:
    """Tests for joining allocations with revenue."""

    def test_single_client_report(self):
        clients = _clients([[1, "Acme", 1200, "active"]])
        allocations = _allocations([["S1", "Acme", 13.0, 2000.0]])

        report = build_report(clients, allocations, MARCH)

        row = report.client_row("Acme")
        assert row["revenue"] == pytest.approx(1000.0)
        assert row["total_allocated_cost"] == pytest.approx(2000.0)
        assert row["profit"] == pytest.approx(-1000.0)
        assert row["margin"] == pytest.approx(-100.0)
        assert row["total_share_units"] == 13.0
        assert row["assigned_staff_count"] == 1

    def test_sorted_by_profit_with_stable_ties(self):
        clients = _clients([
            [1, "Zeta", 1200, "active"],
            [2, "Alpha", 1200, "active"],
            [3, "Best", 2400, "active"],
            [4, "Mid", 1200, "active"],
        ])
        allocations = _allocations([["S1", "Mid", 5.0, 500.0]])

        report = build_report(clients, allocations, MARCH)

        assert report.clients["client_name"].tolist() == ["Best", "Zeta", "Alpha", "Mid"]

    def test_client_without_allocation(self):
        clients = _clients([[1, "Acme", 0, "active"]])

        report = build_report(clients, None, MARCH)

        row = report.client_row("Acme")
        assert row["total_allocated_cost"] == 0.0
        assert row["margin"] == 0.0
        assert row["assigned_staff_count"] == 0

    def test_gross_mode(self):
        clients = _clients([[1, "Acme", 1200, "active"]])

        report = build_report(clients, None, MARCH, revenue_mode="gross_mrr")

        assert report.totals["revenue"] == 1200.0

    def test_unmatched_client_warning(self):
        clients = _clients([[1, "Acme", 1200, "active"]])
        allocations = _allocations([
            ["S1", "Acme", 5.0, 500.0],
            ["S1", "Old Client", 5.0, 500.0],
        ])

        report = build_report(clients, allocations, MARCH)

        assert report.totals["total_cost"] == pytest.approx(500.0)
        assert report.totals["unmatched_cost"] == pytest.approx(500.0)
        assert [w.type for w in report.warnings] == ["unmatched_client"]
        assert report.warnings[0].subject == "Old Client"

    def test_breakdown_uses_staff_names(self):
        clients = _clients([[1, "Acme", 1200, "active"]])
        allocations = _allocations([
            ["S1", "Acme", 5.0, 500.0],
            ["S2", "Acme", 10.0, 800.0],
        ])

        report = build_report(clients, allocations, MARCH, staff_names={"S1": "Sam"})

        breakdown = report.breakdown_for("Acme")
        assert breakdown["staff_name"].tolist() == ["S2", "Sam"]
        assert report.totals["staff_count"] == 2

    def test_totals(self):
        clients = _clients([
            [1, "Acme", 1200, "active"],
            [2, "Beta", 2400, "active"],
        ])
        allocations = _allocations([
            ["S1", "Acme", 10.0, 1000.0],
            ["S1", "Beta", 10.0, 1000.0],
        ])
        unallocated = pd.DataFrame({"staff_id": ["S2"], "total_cost": [250.0], "reason": ["no_share_units"]})

        report = build_report(clients, allocations, MARCH, unallocated=unallocated)

        assert report.totals["revenue"] == pytest.approx(3000.0)
        assert report.totals["total_cost"] == pytest.approx(2000.0)
        assert report.totals["profit"] == pytest.approx(1000.0)
        assert report.totals["margin"] == pytest.approx(100 / 3)
        assert report.totals["unallocated_cost"] == 250.0
        assert report.totals["client_count"] == 2

    def test_no_clients(self):
        report = build_report(None, None, MARCH)

        assert len(report.clients) == 0
        assert report.totals["margin"] == 0.0

    def test_to_dict_is_json_serialisable(self):
        clients = _clients([[1, "Acme", 1200, "active"]])
        allocations = _allocations([["S1", "Acme", 13.0, 2000.0]])

        payload = build_report(clients, allocations, MARCH).to_dict()
        decoded = json.loads(json.dumps(payload))

        assert decoded["period"] == {"start": "2025-03-01", "end": "2025-03-31"}
        assert decoded["clients"][0]["staff_breakdown"][0]["allocated_cost"] == 2000.0
        assert decoded["flags"]["rates_stale"] is False
