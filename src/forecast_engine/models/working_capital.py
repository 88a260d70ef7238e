# src/forecast_engine/models/working_capital.py
"""
Working Capital Schedule

Drives receivables, inventory, payables and other current items off
revenue and COGS (turnover days or percentages) and tracks the change in
net working capital that feeds the cash flow.

    NWC  = AR + Inventory + Other CA - AP - Other CL
    dNWC = NWC(t) - NWC(t-1)
"""

import logging
from typing import Dict, Optional, Sequence

from ..core.exceptions import UnsupportedDriverMethod
from .assumptions import (
    DaysInventoryOutstanding,
    DaysPayableOutstanding,
    DaysSalesOutstanding,
    FixedAmount,
    PercentOfCogs,
    PercentOfRevenue,
    WorkingCapitalBalances,
    WorkingCapitalDrivers,
)
from .schedules import CheckResult, WorkingCapitalPeriod, WorkingCapitalSchedule

logger = logging.getLogger(__name__)

DAYS_IN_YEAR = 365

# Industry defaults for unset driver values
DEFAULT_DSO = 45
DEFAULT_DIO = 60
DEFAULT_DPO = 30
DEFAULT_AR_PERCENT_OF_REVENUE = 0.10
DEFAULT_INVENTORY_PERCENT_OF_COGS = 0.15
DEFAULT_AP_PERCENT_OF_COGS = 0.08
DEFAULT_OTHER_CA_PERCENT_OF_REVENUE = 0.05
DEFAULT_OTHER_CL_PERCENT_OF_REVENUE = 0.03


def _or_default(value: Optional[float], default: float) -> float:
    return default if value is None else value


def _receivables(revenue: float, driver) -> float:
    if isinstance(driver, DaysSalesOutstanding):
        return revenue / DAYS_IN_YEAR * _or_default(driver.days, DEFAULT_DSO)
    if isinstance(driver, PercentOfRevenue):
        return revenue * _or_default(driver.percent, DEFAULT_AR_PERCENT_OF_REVENUE)
    raise UnsupportedDriverMethod('accounts receivable', getattr(driver, 'method', driver))


def _inventory(cogs: float, driver) -> float:
    if isinstance(driver, DaysInventoryOutstanding):
        return cogs / DAYS_IN_YEAR * _or_default(driver.days, DEFAULT_DIO)
    if isinstance(driver, PercentOfCogs):
        return cogs * _or_default(driver.percent, DEFAULT_INVENTORY_PERCENT_OF_COGS)
    raise UnsupportedDriverMethod('inventory', getattr(driver, 'method', driver))


def _payables(cogs: float, driver) -> float:
    if isinstance(driver, DaysPayableOutstanding):
        return cogs / DAYS_IN_YEAR * _or_default(driver.days, DEFAULT_DPO)
    if isinstance(driver, PercentOfCogs):
        return cogs * _or_default(driver.percent, DEFAULT_AP_PERCENT_OF_COGS)
    raise UnsupportedDriverMethod('accounts payable', getattr(driver, 'method', driver))


def _other_item(revenue: float, driver, default_percent: float, category: str) -> float:
    if driver is None:
        return 0.0
    if isinstance(driver, PercentOfRevenue):
        return revenue * _or_default(driver.percent, default_percent)
    if isinstance(driver, FixedAmount):
        return _or_default(driver.amount, 0.0)
    raise UnsupportedDriverMethod(category, getattr(driver, 'method', driver))


def roll_forward_working_capital(
    prior: WorkingCapitalBalances,
    revenue: float,
    cogs: float,
    drivers: WorkingCapitalDrivers
) -> WorkingCapitalPeriod:
    """
    Working capital balances for one period.

    Args:
        prior: Closing balances of the previous period
        revenue: Period revenue
        cogs: Period cost of goods sold
        drivers: Working capital drivers

    Returns:
        WorkingCapitalPeriod row
    """
    ar = _receivables(revenue, drivers.ar)
    inventory = _inventory(cogs, drivers.inventory)
    other_ca = _other_item(revenue, drivers.other_ca,
                           DEFAULT_OTHER_CA_PERCENT_OF_REVENUE, 'other current assets')
    ap = _payables(cogs, drivers.ap)
    other_cl = _other_item(revenue, drivers.other_cl,
                           DEFAULT_OTHER_CL_PERCENT_OF_REVENUE, 'other current liabilities')

    nwc = ar + inventory + other_ca - ap - other_cl

    return WorkingCapitalPeriod(
        ar=ar,
        inventory=inventory,
        other_ca=other_ca,
        ap=ap,
        other_cl=other_cl,
        nwc=nwc,
        change_in_nwc=nwc - prior.nwc
    )


def build_working_capital_schedule(
    periods: Sequence[int],
    revenue: Dict[int, float],
    cogs: Dict[int, float],
    drivers: WorkingCapitalDrivers,
    historical_wc: Optional[WorkingCapitalBalances] = None
) -> WorkingCapitalSchedule:
    """
    Build the working capital schedule over the forecast periods.

    Args:
        periods: Forecast period indices, in order
        revenue: Mapping of period to revenue
        cogs: Mapping of period to COGS
        drivers: Working capital drivers
        historical_wc: Closing balances of the last historical period
            (all zero when omitted)

    Returns:
        WorkingCapitalSchedule
    """
    balances = historical_wc or WorkingCapitalBalances()
    rows = []

    for period in periods:
        row = roll_forward_working_capital(
            balances, revenue.get(period, 0.0), cogs.get(period, 0.0), drivers
        )
        rows.append(row)
        balances = WorkingCapitalBalances(
            ar=row.ar,
            inventory=row.inventory,
            other_ca=row.other_ca,
            ap=row.ap,
            other_cl=row.other_cl
        )

    schedule = WorkingCapitalSchedule.from_rows(periods, rows)

    if rows:
        logger.debug("Working capital: NWC %.0f -> %.0f", schedule.nwc[0], schedule.nwc[-1])

    return schedule


def verify_nwc_identity(schedule: WorkingCapitalSchedule) -> CheckResult:
    """
    Check NWC = AR + Inventory + Other CA - AP - Other CL for every period.

    This is a definitional identity, so it must hold exactly.
    """
    max_error = 0.0
    for i in range(len(schedule)):
        expected = (
            schedule.ar[i] + schedule.inventory[i] + schedule.other_ca[i]
            - schedule.ap[i] - schedule.other_cl[i]
        )
        max_error = max(max_error, abs(schedule.nwc[i] - expected))

    return CheckResult(passed=max_error == 0.0, error=max_error)
