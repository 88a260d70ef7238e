# src/forecast_engine/models/__init__.py
"""
Forecast Models Module
"""

from .revenue_forecast import forecast_revenue, forecast_volume, calculate_implied_growth_rates
from .cost_forecast import forecast_cogs, forecast_sga
from .ppe_schedule import build_ppe_schedule, verify_ppe_roll_forward
from .working_capital import build_working_capital_schedule, verify_nwc_identity
from .debt_schedule import CashSignal, DebtBalances, build_debt_schedule, verify_debt_roll_forward
from .schedules import (
    CheckResult,
    CircularityResult,
    DebtSchedule,
    EquitySchedule,
    ForecastChecks,
    PPESchedule,
    SolverState,
    WorkingCapitalSchedule,
)

__all__ = [
    'forecast_revenue',
    'forecast_volume',
    'calculate_implied_growth_rates',
    'forecast_cogs',
    'forecast_sga',
    'build_ppe_schedule',
    'verify_ppe_roll_forward',
    'build_working_capital_schedule',
    'verify_nwc_identity',
    'CashSignal',
    'DebtBalances',
    'build_debt_schedule',
    'verify_debt_roll_forward',
    'CheckResult',
    'CircularityResult',
    'DebtSchedule',
    'EquitySchedule',
    'ForecastChecks',
    'PPESchedule',
    'SolverState',
    'WorkingCapitalSchedule',
]
