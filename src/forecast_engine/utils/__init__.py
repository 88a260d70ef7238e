# src/forecast_engine/utils/__init__.py
"""
Utility Functions Module

Configuration loading and diagnostic ratios.
"""

from .config_loader import (
    ForecastConfig,
    assumptions_from_dict,
    baseline_from_dict,
    load_assumptions,
    load_baseline,
    load_forecast_config,
)
from .ratios import (
    calculate_cash_conversion_cycle,
    calculate_dio,
    calculate_dpo,
    calculate_dscr,
    calculate_dso,
    calculate_ebitda_margin,
    calculate_net_debt,
    calculate_net_debt_to_ebitda,
    calculate_operating_margin,
)

__all__ = [
    # Configuration
    'ForecastConfig',
    'assumptions_from_dict',
    'baseline_from_dict',
    'load_assumptions',
    'load_baseline',
    'load_forecast_config',

    # Ratios
    'calculate_cash_conversion_cycle',
    'calculate_dio',
    'calculate_dpo',
    'calculate_dscr',
    'calculate_dso',
    'calculate_ebitda_margin',
    'calculate_net_debt',
    'calculate_net_debt_to_ebitda',
    'calculate_operating_margin',
]
