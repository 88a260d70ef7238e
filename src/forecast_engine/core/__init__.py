# src/forecast_engine/core/__init__.py
"""
Core Forecast Engine Components

The circularity solver and the error taxonomy shared by every scheduler.
"""

from .exceptions import (
    ForecastError,
    InvalidBaseline,
    MissingDriverParameter,
    UnsupportedDriverMethod,
)
from .circularity_solver import (
    CircularityInput,
    CircularitySolver,
    PeriodSolution,
    revolver_plug,
    solve_circularity,
)

__all__ = [
    'ForecastError',
    'InvalidBaseline',
    'MissingDriverParameter',
    'UnsupportedDriverMethod',
    'CircularityInput',
    'CircularitySolver',
    'PeriodSolution',
    'revolver_plug',
    'solve_circularity',
]
