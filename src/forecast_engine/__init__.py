"""
Three-Statement Forecast Engine

Projects a company's income statement, balance sheet and cash flow
statement from a historical baseline and declarative driver assumptions,
resolving the interest -> net income -> cash -> revolver loop with a
circularity solver.

Main Components:
- Driver Assumptions (revenue, costs, working capital, capex, debt)
- Schedulers (revenue, cost, PP&E, working capital, debt)
- Circularity Solver (iterative fixed point or closed form)
- Full Forecast Builder (statements, schedules, checks)
"""

__version__ = "1.0.0"

from forecast_engine.core.circularity_solver import (
    CircularityInput,
    CircularitySolver,
    PeriodSolution,
    solve_circularity,
)
from forecast_engine.core.exceptions import (
    ForecastError,
    InvalidBaseline,
    MissingDriverParameter,
    UnsupportedDriverMethod,
)
from forecast_engine.models.assumptions import ForecastAssumptions, HistoricalBaseline
from forecast_engine.financial_statements.statement_builder import (
    FullForecastBuilder,
    FullForecastOutput,
    build_full_forecast,
)
from forecast_engine.utils.config_loader import (
    load_assumptions,
    load_baseline,
    load_forecast_config,
)

__all__ = [
    # Main entry points
    'FullForecastBuilder',
    'FullForecastOutput',
    'build_full_forecast',

    # Inputs
    'ForecastAssumptions',
    'HistoricalBaseline',
    'load_assumptions',
    'load_baseline',
    'load_forecast_config',

    # Circularity
    'CircularityInput',
    'CircularitySolver',
    'PeriodSolution',
    'solve_circularity',

    # Errors
    'ForecastError',
    'InvalidBaseline',
    'MissingDriverParameter',
    'UnsupportedDriverMethod',
]
