# src/forecast_engine/models/ppe_schedule.py
"""
PP&E and Capex Schedule

Rolls gross PP&E and accumulated depreciation forward period by period:

    Ending Gross     = Beginning Gross + Capex - Disposals
    Ending Accum Dep = Beginning Accum Dep + Dep Expense - Dep on Disposals
    Net PP&E         = Ending Gross - Ending Accum Dep

Disposals are not modeled and are always zero.
"""

import logging
from typing import Dict, Optional, Sequence

import numpy as np

from ..core.exceptions import UnsupportedDriverMethod
from .assumptions import (
    CapexDrivers,
    DecliningBalanceDepreciation,
    FixedCapex,
    GrowthLinkedCapex,
    PercentOfGrossDepreciation,
    PercentOfRevenueCapex,
    PPEBalances,
    PPEDrivers,
    StraightLineDepreciation,
)
from .schedules import CheckResult, PPEPeriod, PPESchedule

logger = logging.getLogger(__name__)

# Opening gross PP&E when the baseline supplies none
DEFAULT_OPENING_GROSS_PPE = 1_000_000_000.0

ROLL_FORWARD_TOLERANCE = 1.0


def compute_capex(
    drivers: CapexDrivers,
    revenue: float,
    prior_revenue: Optional[float] = None
) -> float:
    """
    Capital expenditure for one period.

    Args:
        drivers: Capex driver variant
        revenue: Period revenue
        prior_revenue: Previous forecast period's revenue; None in the
            first forecast period

    Returns:
        Capex amount
    """
    if isinstance(drivers, PercentOfRevenueCapex):
        return revenue * drivers.percent

    if isinstance(drivers, FixedCapex):
        return drivers.amount

    if isinstance(drivers, GrowthLinkedCapex):
        if not prior_revenue:
            return drivers.base
        revenue_growth = (revenue - prior_revenue) / prior_revenue
        return drivers.base * (1 + revenue_growth * drivers.growth_multiplier)

    raise UnsupportedDriverMethod('capex', getattr(drivers, 'method', drivers))


def compute_depreciation(
    drivers: PPEDrivers,
    beginning_gross: float,
    beginning_accum_dep: float
) -> float:
    """
    Depreciation expense for one period.

    Straight-line and percent-of-gross work off beginning gross PP&E;
    declining balance works off beginning net book value. The charge never
    exceeds the beginning net book value.

    Args:
        drivers: Depreciation driver variant
        beginning_gross: Gross PP&E at the start of the period
        beginning_accum_dep: Accumulated depreciation at the start of the period

    Returns:
        Depreciation expense
    """
    net_book_value = beginning_gross - beginning_accum_dep

    if isinstance(drivers, StraightLineDepreciation):
        expense = beginning_gross / drivers.useful_life
    elif isinstance(drivers, DecliningBalanceDepreciation):
        expense = net_book_value * drivers.rate
    elif isinstance(drivers, PercentOfGrossDepreciation):
        expense = beginning_gross * drivers.rate
    else:
        raise UnsupportedDriverMethod('depreciation', getattr(drivers, 'method', drivers))

    return max(min(expense, net_book_value), 0.0)


def roll_forward_ppe(
    prior: PPEBalances,
    revenue: float,
    prior_revenue: Optional[float],
    capex_drivers: CapexDrivers,
    ppe_drivers: PPEDrivers
) -> PPEPeriod:
    """
    Roll PP&E forward one period.

    Args:
        prior: Closing balances of the previous period
        revenue: Period revenue
        prior_revenue: Previous forecast period's revenue (None in period 1)
        capex_drivers: Capex driver variant
        ppe_drivers: Depreciation driver variant

    Returns:
        PPEPeriod row
    """
    capex = compute_capex(capex_drivers, revenue, prior_revenue)

    beginning_gross = prior.gross
    disposals = 0.0
    ending_gross = beginning_gross + capex - disposals

    beginning_accum_dep = prior.accumulated_depreciation
    dep_expense = compute_depreciation(ppe_drivers, beginning_gross, beginning_accum_dep)
    dep_on_disposals = 0.0
    ending_accum_dep = beginning_accum_dep + dep_expense - dep_on_disposals

    return PPEPeriod(
        beginning_gross=beginning_gross,
        capex=capex,
        disposals=disposals,
        ending_gross=ending_gross,
        beginning_accum_dep=beginning_accum_dep,
        dep_expense=dep_expense,
        dep_on_disposals=dep_on_disposals,
        ending_accum_dep=ending_accum_dep,
        net_ppe=ending_gross - ending_accum_dep
    )


def opening_ppe(historical: Optional[PPEBalances]) -> PPEBalances:
    """Opening balances, defaulting when the baseline has none."""
    if historical is None:
        return PPEBalances(gross=DEFAULT_OPENING_GROSS_PPE, accumulated_depreciation=0.0)
    return historical


def build_ppe_schedule(
    periods: Sequence[int],
    revenue: Dict[int, float],
    capex_drivers: CapexDrivers,
    ppe_drivers: PPEDrivers,
    historical_ppe: Optional[PPEBalances] = None
) -> PPESchedule:
    """
    Build the PP&E schedule over the forecast periods.

    Args:
        periods: Forecast period indices, in order
        revenue: Mapping of period to revenue
        capex_drivers: Capex driver variant
        ppe_drivers: Depreciation driver variant
        historical_ppe: Closing balances of the last historical period

    Returns:
        PPESchedule
    """
    balances = opening_ppe(historical_ppe)
    prior_revenue = None
    rows = []

    for period in periods:
        rev = revenue.get(period, 0.0)
        row = roll_forward_ppe(balances, rev, prior_revenue, capex_drivers, ppe_drivers)
        rows.append(row)

        balances = PPEBalances(row.ending_gross, row.ending_accum_dep)
        prior_revenue = rev

    schedule = PPESchedule.from_rows(periods, rows)

    if rows:
        logger.debug(
            "PP&E schedule: net %.0f -> %.0f, capex %.0f, D&A %.0f",
            schedule.net_ppe[0], schedule.net_ppe[-1],
            sum(schedule.capex), sum(schedule.dep_expense)
        )

    return schedule


def verify_ppe_roll_forward(schedule: PPESchedule) -> CheckResult:
    """
    Recompute every PP&E roll-forward identity.

    Returns:
        CheckResult with the largest absolute discrepancy over all periods;
        passes below one currency unit
    """
    if not len(schedule):
        return CheckResult(passed=True, error=0.0)

    beginning_gross = np.asarray(schedule.beginning_gross)
    ending_gross = np.asarray(schedule.ending_gross)
    ending_accum = np.asarray(schedule.ending_accum_dep)

    gross_error = ending_gross - (
        beginning_gross + np.asarray(schedule.capex) - np.asarray(schedule.disposals)
    )
    accum_error = ending_accum - (
        np.asarray(schedule.beginning_accum_dep)
        + np.asarray(schedule.dep_expense)
        - np.asarray(schedule.dep_on_disposals)
    )
    net_error = np.asarray(schedule.net_ppe) - (ending_gross - ending_accum)

    max_error = float(np.max(np.abs(np.concatenate([gross_error, accum_error, net_error]))))

    return CheckResult(passed=max_error < ROLL_FORWARD_TOLERANCE, error=max_error)
