# src/forecast_engine/models/revenue_forecast.py
"""
Revenue Forecast

Produces the period-indexed revenue series from one of the revenue
driver methods (growth rate, price x volume, segments). The most recent
historical revenue is the base of the projection.
"""

import logging
from typing import Dict, Optional, Sequence

import numpy as np

from ..core.exceptions import UnsupportedDriverMethod
from .assumptions import (
    GrowthRateRevenue,
    PriceVolumeRevenue,
    RevenueDrivers,
    SegmentRevenue,
)

logger = logging.getLogger(__name__)

# Flat revenue used when the base cannot carry growth math
FALLBACK_REVENUE = 1_000_000_000.0


def has_usable_base(historical_revenue: Sequence[float]) -> bool:
    """True when the latest historical revenue is strictly positive."""
    return len(historical_revenue) > 0 and historical_revenue[-1] > 0


def project_revenue(
    drivers: RevenueDrivers,
    base_revenue: float,
    position: int,
    period: int,
    prior_revenue: Optional[float] = None
) -> float:
    """
    Revenue for a single forecast period.

    Args:
        drivers: Revenue driver variant
        base_revenue: Last historical revenue
        position: 1-based position of the period within the forecast range
        period: Period index (used for per-period rate overrides)
        prior_revenue: Revenue of the previous period (defaults to the base)

    Returns:
        Forecast revenue for the period
    """
    if prior_revenue is None:
        prior_revenue = base_revenue

    if isinstance(drivers, GrowthRateRevenue):
        rate = drivers.rate_for(period)
        if drivers.compound:
            return prior_revenue * (1 + rate)
        return base_revenue * (1 + rate * position)

    if isinstance(drivers, PriceVolumeRevenue):
        price = drivers.base_price * (1 + drivers.price_growth) ** position
        volume = drivers.base_volume * (1 + drivers.volume_growth) ** position
        return price * volume

    if isinstance(drivers, SegmentRevenue):
        return sum(
            segment.base_revenue * (1 + segment.growth_rate) ** position
            for segment in drivers.segments
        )

    raise UnsupportedDriverMethod('revenue', getattr(drivers, 'method', drivers))


def forecast_revenue(
    historical_revenue: Sequence[float],
    periods: Sequence[int],
    drivers: RevenueDrivers
) -> Dict[int, float]:
    """
    Forecast revenue for the requested periods.

    A zero or negative base does not go through growth math: every period
    gets FALLBACK_REVENUE instead and a warning is logged.

    Args:
        historical_revenue: Historical revenue, oldest first
        periods: Forecast period indices, in order
        drivers: Revenue driver variant

    Returns:
        Mapping of period index to revenue, covering exactly ``periods``
    """
    logger.debug("Revenue forecast: method %s, %d periods",
                 getattr(drivers, 'method', drivers), len(periods))

    if not has_usable_base(historical_revenue):
        logger.warning(
            "Base revenue is zero or negative (%s); using flat fallback of %.0f",
            historical_revenue[-1] if len(historical_revenue) else None,
            FALLBACK_REVENUE
        )
        return {period: FALLBACK_REVENUE for period in periods}

    base_revenue = historical_revenue[-1]
    result = {}
    prior = base_revenue

    for position, period in enumerate(periods, start=1):
        prior = project_revenue(drivers, base_revenue, position, period, prior)
        result[period] = prior

    if periods:
        logger.debug("Revenue forecast: base %.0f, final %.0f",
                     base_revenue, result[periods[-1]])

    return result


def forecast_volume(
    periods: Sequence[int],
    drivers: RevenueDrivers
) -> Optional[Dict[int, float]]:
    """
    Unit volume series implied by price x volume drivers.

    Returns:
        Mapping of period to volume, or None for methods without volumes
    """
    if not isinstance(drivers, PriceVolumeRevenue):
        return None

    return {
        period: drivers.base_volume * (1 + drivers.volume_growth) ** position
        for position, period in enumerate(periods, start=1)
    }


def calculate_implied_growth_rates(revenue: Dict[int, float]) -> Dict[int, float]:
    """
    Period-over-period growth of a revenue series.

    The first period has no predecessor and is omitted; a zero
    predecessor yields a growth of 0.

    Args:
        revenue: Mapping of period to revenue

    Returns:
        Mapping of period to growth rate versus the previous period
    """
    ordered = sorted(revenue)
    if len(ordered) < 2:
        return {}

    values = np.array([revenue[period] for period in ordered], dtype=float)
    previous = values[:-1]
    current = values[1:]

    with np.errstate(divide='ignore', invalid='ignore'):
        growth = np.where(previous == 0, 0.0, (current - previous) / previous)

    return {period: float(rate) for period, rate in zip(ordered[1:], growth)}
