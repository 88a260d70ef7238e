# src/forecast_engine/models/cost_forecast.py
"""
Cost Forecast

Derives cost of goods sold and SG&A from revenue. Both lines share the
same shape: a percentage of revenue, a fixed-plus-variable split, or an
explicit breakdown. An unknown driver is a hard failure, never a default.
"""

import logging
from typing import Dict, Optional

from ..core.exceptions import MissingDriverParameter, UnsupportedDriverMethod
from .assumptions import (
    CogsDrivers,
    DetailedSga,
    FixedPlusVariableCogs,
    FixedPlusVariableSga,
    PercentOfRevenueCost,
    SgaDrivers,
    UnitCostCogs,
)

logger = logging.getLogger(__name__)

# Variable share of revenue assumed for FIXED_PLUS_VARIABLE COGS without volumes
VARIABLE_COGS_FALLBACK = 0.5

COGS_VARIANTS = (PercentOfRevenueCost, FixedPlusVariableCogs, UnitCostCogs)
SGA_VARIANTS = (PercentOfRevenueCost, FixedPlusVariableSga, DetailedSga)


def cogs_for_period(
    revenue: float,
    drivers: CogsDrivers,
    volume: Optional[float] = None
) -> float:
    """
    COGS for one period.

    Args:
        revenue: Period revenue
        drivers: COGS driver variant
        volume: Units sold in the period, when known

    Returns:
        Cost of goods sold
    """
    if isinstance(drivers, PercentOfRevenueCost):
        return revenue * drivers.percent

    if isinstance(drivers, FixedPlusVariableCogs):
        if volume is not None:
            variable_cost = drivers.variable_cost_per_unit * volume
        else:
            variable_cost = revenue * VARIABLE_COGS_FALLBACK
        return drivers.fixed_cost + variable_cost

    if isinstance(drivers, UnitCostCogs):
        if volume is None:
            raise MissingDriverParameter(drivers.method.value, 'volume')
        return drivers.variable_cost_per_unit * volume

    raise UnsupportedDriverMethod('COGS', getattr(drivers, 'method', drivers))


def sga_for_period(revenue: float, drivers: SgaDrivers) -> float:
    """SG&A for one period."""
    if isinstance(drivers, PercentOfRevenueCost):
        return revenue * drivers.percent

    if isinstance(drivers, FixedPlusVariableSga):
        return drivers.fixed_cost + revenue * drivers.variable_percent

    if isinstance(drivers, DetailedSga):
        return drivers.sales_and_marketing + drivers.general_and_admin + (drivers.rd or 0.0)

    raise UnsupportedDriverMethod('SG&A', getattr(drivers, 'method', drivers))


def _average_share(costs: Dict[int, float], revenue: Dict[int, float]) -> float:
    shares = [costs[p] / revenue[p] for p in costs if revenue[p]]
    return sum(shares) / len(shares) if shares else 0.0


def forecast_cogs(
    revenue: Dict[int, float],
    drivers: CogsDrivers,
    volume: Optional[Dict[int, float]] = None
) -> Dict[int, float]:
    """
    Forecast COGS for every period of a revenue series.

    Args:
        revenue: Mapping of period to revenue
        drivers: COGS driver variant
        volume: Optional mapping of period to units sold; periods missing
            from it count as zero volume

    Returns:
        Mapping of period to COGS
    """
    if not isinstance(drivers, COGS_VARIANTS):
        raise UnsupportedDriverMethod('COGS', getattr(drivers, 'method', drivers))

    result = {}
    for period, rev in revenue.items():
        period_volume = volume.get(period, 0.0) if volume is not None else None
        result[period] = cogs_for_period(rev, drivers, period_volume)

    logger.debug("COGS forecast: method %s, average %.1f%% of revenue",
                 drivers.method.value, _average_share(result, revenue) * 100)
    return result


def forecast_sga(revenue: Dict[int, float], drivers: SgaDrivers) -> Dict[int, float]:
    """Forecast SG&A for every period of a revenue series."""
    if not isinstance(drivers, SGA_VARIANTS):
        raise UnsupportedDriverMethod('SG&A', getattr(drivers, 'method', drivers))

    result = {period: sga_for_period(rev, drivers) for period, rev in revenue.items()}

    logger.debug("SG&A forecast: method %s, average %.1f%% of revenue",
                 drivers.method.value, _average_share(result, revenue) * 100)
    return result
