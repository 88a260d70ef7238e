# src/forecast_engine/financial_statements/statements.py
"""
Financial Statements

Column-oriented income statement, balance sheet and cash flow statement,
one tuple per line item aligned with the forecast periods.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from ..models.schedules import _Schedule, _column_names


class _Statement(_Schedule):

    @classmethod
    def from_columns(cls, periods: Sequence[int], columns: Dict[str, List[float]]):
        """Build from a mapping of line item to per-period values."""
        data = {name: tuple(columns[name]) for name in _column_names(cls)}
        return cls(periods=tuple(periods), **data)


@dataclass(frozen=True)
class IncomeStatement(_Statement):
    periods: Tuple[int, ...]
    revenue: Tuple[float, ...]
    cogs: Tuple[float, ...]
    gross_profit: Tuple[float, ...]
    sga: Tuple[float, ...]
    ebitda: Tuple[float, ...]
    depreciation: Tuple[float, ...]
    ebit: Tuple[float, ...]
    interest: Tuple[float, ...]
    ebt: Tuple[float, ...]
    taxes: Tuple[float, ...]
    net_income: Tuple[float, ...]
    shares_outstanding: Tuple[float, ...]
    eps: Tuple[float, ...]


@dataclass(frozen=True)
class BalanceSheet(_Statement):
    periods: Tuple[int, ...]

    # Assets
    cash: Tuple[float, ...]
    ar: Tuple[float, ...]
    inventory: Tuple[float, ...]
    other_ca: Tuple[float, ...]
    total_current_assets: Tuple[float, ...]
    net_ppe: Tuple[float, ...]
    total_assets: Tuple[float, ...]

    # Liabilities
    ap: Tuple[float, ...]
    other_cl: Tuple[float, ...]
    term_debt: Tuple[float, ...]
    revolver: Tuple[float, ...]
    total_liabilities: Tuple[float, ...]

    # Equity
    paid_in_capital: Tuple[float, ...]
    retained_earnings: Tuple[float, ...]
    total_equity: Tuple[float, ...]

    total_liabilities_and_equity: Tuple[float, ...]


@dataclass(frozen=True)
class CashFlowStatement(_Statement):
    periods: Tuple[int, ...]

    # Operating
    net_income: Tuple[float, ...]
    depreciation: Tuple[float, ...]
    change_in_nwc: Tuple[float, ...]
    cfo: Tuple[float, ...]

    # Investing
    capex: Tuple[float, ...]
    cfi: Tuple[float, ...]

    # Financing
    term_debt_repayment: Tuple[float, ...]
    revolver_drawdown: Tuple[float, ...]
    revolver_repayment: Tuple[float, ...]
    dividends: Tuple[float, ...]
    cff: Tuple[float, ...]

    net_change_in_cash: Tuple[float, ...]
    beginning_cash: Tuple[float, ...]
    ending_cash: Tuple[float, ...]
