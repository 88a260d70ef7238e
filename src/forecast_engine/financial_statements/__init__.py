# src/forecast_engine/financial_statements/__init__.py
"""
Financial Statements Module

Assembles the income statement, balance sheet and cash flow statement
from the forecast schedules.
"""

from .statements import BalanceSheet, CashFlowStatement, IncomeStatement
from .statement_builder import FullForecastBuilder, FullForecastOutput, PeriodState, build_full_forecast

__all__ = [
    'BalanceSheet',
    'CashFlowStatement',
    'IncomeStatement',
    'FullForecastBuilder',
    'FullForecastOutput',
    'PeriodState',
    'build_full_forecast',
]
