# src/forecast_engine/models/schedules.py
"""
Schedule Data Structures

Immutable value types produced by one forecast run: the per-period rows
each scheduler emits while folding over the horizon, the schedules they
are collected into, and the circularity and check results.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import List, Sequence, Tuple

import pandas as pd


def _column_names(cls) -> List[str]:
    return [f.name for f in fields(cls) if f.name != 'periods']


def _collect(cls, periods: Sequence[int], rows: Sequence) -> dict:
    """Transpose per-period rows into the tuple columns of ``cls``."""
    columns = {name: tuple(getattr(row, name) for row in rows) for name in _column_names(cls)}
    columns['periods'] = tuple(periods)
    return columns


class _Schedule:
    """Mixin for column-oriented schedules aligned by forecast period."""

    def to_dataframe(self) -> pd.DataFrame:
        data = {name: list(getattr(self, name)) for name in _column_names(type(self))}
        frame = pd.DataFrame(data, index=list(self.periods))
        frame.index.name = 'period'
        return frame

    def __len__(self) -> int:
        return len(self.periods)


# ============================================================================
# Working capital
# ============================================================================

@dataclass(frozen=True)
class WorkingCapitalPeriod:
    ar: float
    inventory: float
    other_ca: float
    ap: float
    other_cl: float
    nwc: float
    change_in_nwc: float


@dataclass(frozen=True)
class WorkingCapitalSchedule(_Schedule):
    periods: Tuple[int, ...]
    ar: Tuple[float, ...]
    inventory: Tuple[float, ...]
    other_ca: Tuple[float, ...]
    ap: Tuple[float, ...]
    other_cl: Tuple[float, ...]
    nwc: Tuple[float, ...]
    change_in_nwc: Tuple[float, ...]

    @classmethod
    def from_rows(cls, periods: Sequence[int], rows: Sequence[WorkingCapitalPeriod]):
        return cls(**_collect(cls, periods, rows))


# ============================================================================
# PP&E
# ============================================================================

@dataclass(frozen=True)
class PPEPeriod:
    beginning_gross: float
    capex: float
    disposals: float
    ending_gross: float
    beginning_accum_dep: float
    dep_expense: float
    dep_on_disposals: float
    ending_accum_dep: float
    net_ppe: float


@dataclass(frozen=True)
class PPESchedule(_Schedule):
    periods: Tuple[int, ...]
    beginning_gross: Tuple[float, ...]
    capex: Tuple[float, ...]
    disposals: Tuple[float, ...]
    ending_gross: Tuple[float, ...]
    beginning_accum_dep: Tuple[float, ...]
    dep_expense: Tuple[float, ...]
    dep_on_disposals: Tuple[float, ...]
    ending_accum_dep: Tuple[float, ...]
    net_ppe: Tuple[float, ...]

    @classmethod
    def from_rows(cls, periods: Sequence[int], rows: Sequence[PPEPeriod]):
        return cls(**_collect(cls, periods, rows))


# ============================================================================
# Debt
# ============================================================================

@dataclass(frozen=True)
class DebtPeriod:
    term_debt_beginning: float
    term_debt_drawdown: float
    term_debt_repayment: float
    term_debt_ending: float
    term_debt_interest: float
    revolver_beginning: float
    revolver_drawdown: float
    revolver_repayment: float
    revolver_ending: float
    revolver_interest: float
    commitment_fee: float
    cash_swept: float
    ending_cash: float
    total_debt: float
    total_interest: float


@dataclass(frozen=True)
class DebtSchedule(_Schedule):
    periods: Tuple[int, ...]
    term_debt_beginning: Tuple[float, ...]
    term_debt_drawdown: Tuple[float, ...]
    term_debt_repayment: Tuple[float, ...]
    term_debt_ending: Tuple[float, ...]
    term_debt_interest: Tuple[float, ...]
    revolver_beginning: Tuple[float, ...]
    revolver_drawdown: Tuple[float, ...]
    revolver_repayment: Tuple[float, ...]
    revolver_ending: Tuple[float, ...]
    revolver_interest: Tuple[float, ...]
    commitment_fee: Tuple[float, ...]
    cash_swept: Tuple[float, ...]
    ending_cash: Tuple[float, ...]
    total_debt: Tuple[float, ...]
    total_interest: Tuple[float, ...]

    @classmethod
    def from_rows(cls, periods: Sequence[int], rows: Sequence[DebtPeriod]):
        return cls(**_collect(cls, periods, rows))


# ============================================================================
# Equity
# ============================================================================

@dataclass(frozen=True)
class EquityPeriod:
    retained_earnings_beginning: float
    net_income: float
    dividends: float
    other_adjustments: float
    retained_earnings_ending: float
    paid_in_capital: float
    total_equity: float
    shares_outstanding: float


@dataclass(frozen=True)
class EquitySchedule(_Schedule):
    periods: Tuple[int, ...]
    retained_earnings_beginning: Tuple[float, ...]
    net_income: Tuple[float, ...]
    dividends: Tuple[float, ...]
    other_adjustments: Tuple[float, ...]
    retained_earnings_ending: Tuple[float, ...]
    paid_in_capital: Tuple[float, ...]
    total_equity: Tuple[float, ...]
    shares_outstanding: Tuple[float, ...]

    @classmethod
    def from_rows(cls, periods: Sequence[int], rows: Sequence[EquityPeriod]):
        return cls(**_collect(cls, periods, rows))


# ============================================================================
# Circularity
# ============================================================================

class SolverState(Enum):
    """Circularity solver states."""
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"


@dataclass(frozen=True)
class ConvergenceLogEntry:
    """One solver step: the balances it produced and the interest delta."""
    iteration: int
    cash: float
    revolver: float
    interest: float
    error: float


@dataclass(frozen=True)
class CircularityResult:
    converged: bool
    iterations: int
    final_error: float
    convergence_log: Tuple[ConvergenceLogEntry, ...]
    state: SolverState = SolverState.CONVERGED

    def log_dataframe(self) -> pd.DataFrame:
        """Convergence log as a DataFrame, one row per solver step."""
        return pd.DataFrame(
            [vars(entry) for entry in self.convergence_log],
            columns=['iteration', 'cash', 'revolver', 'interest', 'error']
        )


# ============================================================================
# Checks
# ============================================================================

@dataclass(frozen=True)
class CheckResult:
    """Outcome of one consistency check: pass flag and worst discrepancy."""
    passed: bool
    error: float


@dataclass(frozen=True)
class CircularitySummary:
    all_converged: bool
    max_error: float
    total_iterations: int
    non_converged_periods: Tuple[int, ...] = ()


@dataclass(frozen=True)
class ForecastChecks:
    ppe_roll_forward: CheckResult
    debt_roll_forward: CheckResult
    nwc_identity: CheckResult
    bs_balance: CheckResult
    cf_tie_out: CheckResult
    re_roll_forward: CheckResult
    circularity: CircularitySummary

    @property
    def all_passed(self) -> bool:
        checks = (
            self.ppe_roll_forward, self.debt_roll_forward, self.nwc_identity,
            self.bs_balance, self.cf_tie_out, self.re_roll_forward,
        )
        return all(check.passed for check in checks) and self.circularity.all_converged

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for name in ('ppe_roll_forward', 'debt_roll_forward', 'nwc_identity',
                     'bs_balance', 'cf_tie_out', 're_roll_forward'):
            check = getattr(self, name)
            rows.append({'check': name, 'passed': check.passed, 'error': check.error})
        rows.append({
            'check': 'circularity',
            'passed': self.circularity.all_converged,
            'error': self.circularity.max_error,
        })
        return pd.DataFrame(rows).set_index('check')
