"""
Proportional allocation of staff cost to clients.

CRITICAL: This is the only place allocation ratios are computed. Every
caller goes through ``allocate`` so that per-staff allocations always sum
back to the staff member's total cost.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Mapping, Tuple

import pandas as pd


logger = logging.getLogger("profit-os.allocation")

ALLOCATION_COLUMNS = ["staff_id", "client_name", "share_units", "allocated_cost"]
UNALLOCATED_COLUMNS = ["staff_id", "total_cost", "reason"]


def _clean_share(value: Any) -> float:
    try:
        share = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(share) or share < 0:
        return 0.0
    return share


def allocate(staff_id: Any, client_shares: Mapping[str, float], total_cost: float) -> Dict[str, float]:
    """
    Split ``total_cost`` across clients in proportion to share units.

    Returns {} when the staff member has no positive share (their cost is
    unallocated). Otherwise the values sum to ``total_cost``; the last client
    absorbs the floating-point residual.
    """
    shares = {client: _clean_share(units) for client, units in client_shares.items()}
    shares = {client: units for client, units in shares.items() if units > 0}
    total_share = sum(shares.values())
    if total_share <= 0:
        logger.debug("No share units for staff %s; cost left unallocated", staff_id)
        return {}

    cost = float(total_cost) if total_cost is not None and not pd.isna(total_cost) else 0.0
    clients = list(shares)
    allocated: Dict[str, float] = {}
    running = 0.0
    for client in clients[:-1]:
        amount = cost * (shares[client] / total_share)
        allocated[client] = amount
        running += amount
    allocated[clients[-1]] = cost - running
    return allocated


def allocate_costs(shares: pd.DataFrame, staff_costs: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Apply ``allocate`` to every staff member.

    Args:
        shares: staff_id, client_name, share_units
        staff_costs: staff_id, total_cost

    Returns:
        (allocations, unallocated)
        allocations: staff_id, client_name, share_units, allocated_cost
        unallocated: staff_id, total_cost, reason for staff with cost but no share
    """
    cost_lookup: Dict[str, float] = {}
    if staff_costs is not None and len(staff_costs) > 0:
        for staff_id, cost in zip(staff_costs["staff_id"].astype(str), staff_costs["total_cost"]):
            cost_lookup[staff_id] = float(cost)

    rows = []
    allocated_staff = set()
    if shares is not None and len(shares) > 0:
        work = shares.copy()
        work["staff_id"] = work["staff_id"].astype(str)
        for staff_id, staff_shares in work.groupby("staff_id", sort=False):
            client_shares = (
                staff_shares.groupby("client_name", sort=False)["share_units"].sum().to_dict()
            )
            split = allocate(staff_id, client_shares, cost_lookup.get(staff_id, 0.0))
            if not split:
                continue
            allocated_staff.add(staff_id)
            for client_name, amount in split.items():
                rows.append({
                    "staff_id": staff_id,
                    "client_name": client_name,
                    "share_units": float(client_shares[client_name]),
                    "allocated_cost": amount,
                })

    unallocated = [
        {"staff_id": staff_id, "total_cost": cost, "reason": "no_share_units"}
        for staff_id, cost in cost_lookup.items()
        if staff_id not in allocated_staff and cost != 0
    ]

    return (
        pd.DataFrame(rows, columns=ALLOCATION_COLUMNS),
        pd.DataFrame(unallocated, columns=UNALLOCATED_COLUMNS),
    )
