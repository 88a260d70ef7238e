# src/forecast_engine/financial_statements/statement_builder.py
"""
Full Forecast Builder

Orchestrates the schedulers and the circularity solver into the three
financial statements.

Sequence per forecast period:
1. Revenue, then COGS and SG&A off revenue
2. PP&E roll-forward (capex, depreciation) and working capital
3. EBIT = Revenue - COGS - SG&A - Depreciation
4. Circularity solve: interest, net income, cash and the revolver plug
5. Debt roll-forward of the period (scheduled repayment, cash sweep)
6. Closing balances become the next period's opening state

Nothing is mutated: each period's closing position is a new PeriodState.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ..core.circularity_solver import CircularityInput, PeriodSolution, solve_circularity
from ..core.exceptions import InvalidBaseline, MissingDriverParameter
from ..models.assumptions import (
    FixedDpsDividend,
    ForecastAssumptions,
    HistoricalBaseline,
    PayoutRatioDividend,
    PPEBalances,
    WorkingCapitalBalances,
)
from ..models.cost_forecast import cogs_for_period, sga_for_period
from ..models.debt_schedule import (
    CashSignal,
    DebtBalances,
    build_debt_schedule,
    roll_forward_debt,
    scheduled_term_repayment,
    verify_debt_roll_forward,
)
from ..models.ppe_schedule import opening_ppe, roll_forward_ppe, verify_ppe_roll_forward
from ..models.revenue_forecast import forecast_revenue, forecast_volume
from ..models.schedules import (
    CheckResult,
    CircularityResult,
    CircularitySummary,
    DebtSchedule,
    EquityPeriod,
    EquitySchedule,
    ForecastChecks,
    PPEPeriod,
    PPESchedule,
    SolverState,
    WorkingCapitalPeriod,
    WorkingCapitalSchedule,
)
from ..models.working_capital import roll_forward_working_capital, verify_nwc_identity
from .statements import BalanceSheet, CashFlowStatement, IncomeStatement

logger = logging.getLogger(__name__)

DEFAULT_FORECAST_YEARS = 5
CHECK_TOLERANCE = 1.0


@dataclass(frozen=True)
class PeriodState:
    """Closing position of one period, carried into the next."""
    cash: float
    term_debt: float
    revolver: float
    ppe: PPEBalances
    working_capital: WorkingCapitalBalances
    retained_earnings: float
    prior_revenue: Optional[float] = None


@dataclass(frozen=True)
class FullForecastOutput:
    """Everything one forecast run produces."""
    periods: Tuple[int, ...]
    income_statement: IncomeStatement
    balance_sheet: BalanceSheet
    cash_flow: CashFlowStatement
    working_capital: WorkingCapitalSchedule
    ppe: PPESchedule
    debt: DebtSchedule
    equity: EquitySchedule
    circularity: CircularityResult
    period_circularity: Dict[int, CircularityResult]
    checks: ForecastChecks
    assumptions: ForecastAssumptions

    def to_dataframes(self) -> Dict[str, pd.DataFrame]:
        """All statements, schedules and checks as DataFrames keyed by name."""
        return {
            'income_statement': self.income_statement.to_dataframe(),
            'balance_sheet': self.balance_sheet.to_dataframe(),
            'cash_flow': self.cash_flow.to_dataframe(),
            'working_capital': self.working_capital.to_dataframe(),
            'ppe': self.ppe.to_dataframe(),
            'debt': self.debt.to_dataframe(),
            'equity': self.equity.to_dataframe(),
            'circularity': self.circularity.log_dataframe(),
            'checks': self.checks.to_dataframe(),
        }


@dataclass
class _PeriodRecord:
    """Everything computed for one period, before assembly."""
    revenue: float
    cogs: float
    sga: float
    ebit: float
    shares: float
    ppe: PPEPeriod
    wc: WorkingCapitalPeriod
    solution: PeriodSolution
    signal: CashSignal
    term_repayment: float
    beginning_cash: float
    ending_cash: float
    term_debt: float
    revolver: float
    revolver_drawdown: float
    revolver_repayment: float
    retained_earnings_beginning: float
    retained_earnings_ending: float


class FullForecastBuilder:
    """
    Build a complete three-statement forecast.

    Example:
        >>> builder = FullForecastBuilder(assumptions, baseline, forecast_years=5)
        >>> output = builder.build()
        >>> output.checks.all_passed
        True
    """

    def __init__(
        self,
        assumptions: ForecastAssumptions,
        baseline: HistoricalBaseline,
        forecast_years: int = DEFAULT_FORECAST_YEARS
    ):
        """
        Initialize the builder.

        Args:
            assumptions: Driver configuration
            baseline: Closing position of the last historical period
            forecast_years: Number of forecast periods

        Raises:
            InvalidBaseline: If the baseline cannot seed the first period
            MissingDriverParameter: If the baseline needs a driver that is
                not configured
        """
        if forecast_years < 1:
            raise ValueError(f"forecast_years must be at least 1, got {forecast_years}")

        self.assumptions = assumptions
        self.baseline = baseline
        self.forecast_years = forecast_years

        history = baseline.historical_periods
        self.periods: Tuple[int, ...] = tuple(range(history, history + forecast_years))

        self._validate()

    # ========================================================================
    # Validation
    # ========================================================================

    def _validate(self) -> None:
        debt = self.assumptions.debt
        baseline = self.baseline

        if baseline.revolver < 0:
            raise InvalidBaseline(f"Opening revolver cannot be negative: {baseline.revolver}")

        if baseline.revolver > debt.revolver_capacity:
            raise InvalidBaseline(
                f"Opening revolver {baseline.revolver:,.0f} exceeds "
                f"capacity {debt.revolver_capacity:,.0f}"
            )

        if baseline.term_debt > 0 and debt.term_debt is None:
            raise MissingDriverParameter('TERM_DEBT', 'term_debt')

        if isinstance(self.assumptions.dividend, FixedDpsDividend) and self.assumptions.shares is None:
            raise MissingDriverParameter(self.assumptions.dividend.method.value, 'shares')

    # ========================================================================
    # Opening position
    # ========================================================================

    def _opening_term_debt(self) -> float:
        term = self.assumptions.debt.term_debt
        if term is not None and term.opening_balance is not None:
            return term.opening_balance
        return self.baseline.term_debt

    def _opening_state(self) -> PeriodState:
        return PeriodState(
            cash=self.baseline.cash,
            term_debt=self._opening_term_debt(),
            revolver=self.baseline.revolver,
            ppe=opening_ppe(self.baseline.ppe),
            working_capital=self.baseline.working_capital,
            retained_earnings=self.baseline.retained_earnings
        )

    @staticmethod
    def _paid_in_capital(state: PeriodState) -> float:
        """Opening equity (assets - liabilities) less opening retained earnings."""
        wc = state.working_capital
        assets = state.cash + wc.ar + wc.inventory + wc.other_ca + state.ppe.net
        liabilities = wc.ap + wc.other_cl + state.term_debt + state.revolver
        return assets - liabilities - state.retained_earnings

    # ========================================================================
    # Per-period step
    # ========================================================================

    def _shares_at(self, position: int) -> float:
        shares = self.assumptions.shares
        return shares.shares_at(position) if shares is not None else 0.0

    def _dividend_terms(self, shares: float) -> Tuple[float, float]:
        """(payout ratio, fixed dividends) for the solver."""
        dividend = self.assumptions.dividend
        if isinstance(dividend, PayoutRatioDividend):
            return dividend.payout_ratio, 0.0
        if isinstance(dividend, FixedDpsDividend):
            return 0.0, dividend.dividend_per_share * shares
        return 0.0, 0.0

    def _step(
        self,
        state: PeriodState,
        position: int,
        revenue: float,
        volume: Optional[float]
    ) -> Tuple[_PeriodRecord, PeriodState]:
        a = self.assumptions
        debt = a.debt

        cogs = cogs_for_period(revenue, a.costs.cogs, volume)
        sga = sga_for_period(revenue, a.costs.sga)

        ppe_row = roll_forward_ppe(state.ppe, revenue, state.prior_revenue, a.capex, a.ppe)
        wc_row = roll_forward_working_capital(state.working_capital, revenue, cogs, a.working_capital)

        ebit = revenue - cogs - sga - ppe_row.dep_expense

        term_repayment = scheduled_term_repayment(debt.term_debt, position, state.term_debt)
        shares = self._shares_at(position)
        payout_ratio, fixed_dividends = self._dividend_terms(shares)

        solution = solve_circularity(
            CircularityInput(
                ebit=ebit,
                tax_rate=a.tax.rate,
                non_cash_charges=ppe_row.dep_expense,
                change_in_nwc=wc_row.change_in_nwc,
                capex=ppe_row.capex,
                term_debt_beginning=state.term_debt,
                term_debt_ending=state.term_debt - term_repayment,
                term_debt_rate=debt.term_debt.interest_rate if debt.term_debt else 0.0,
                revolver_beginning=state.revolver,
                revolver_rate=debt.revolver.interest_rate if debt.revolver else 0.0,
                revolver_capacity=debt.revolver_capacity,
                minimum_cash=debt.minimum_cash,
                beginning_cash=state.cash,
                debt_repayment=term_repayment,
                dividend_payout_ratio=payout_ratio,
                fixed_dividends=fixed_dividends,
                commitment_fee_rate=debt.revolver.commitment_fee if debt.revolver else 0.0
            ),
            method=a.circularity.method,
            max_iterations=a.circularity.max_iterations,
            tolerance=a.circularity.tolerance
        )

        signal = CashSignal(
            revolver_drawdown=solution.revolver_drawdown,
            revolver_repayment=solution.revolver_repayment,
            ending_cash=solution.ending_cash
        )
        debt_row = roll_forward_debt(
            DebtBalances(state.term_debt, state.revolver), signal, debt, position
        )

        retained_earnings = state.retained_earnings + solution.net_income - solution.dividends

        record = _PeriodRecord(
            revenue=revenue,
            cogs=cogs,
            sga=sga,
            ebit=ebit,
            shares=shares,
            ppe=ppe_row,
            wc=wc_row,
            solution=solution,
            signal=signal,
            term_repayment=debt_row.term_debt_repayment,
            beginning_cash=state.cash,
            ending_cash=debt_row.ending_cash,
            term_debt=debt_row.term_debt_ending,
            revolver=debt_row.revolver_ending,
            revolver_drawdown=debt_row.revolver_drawdown,
            revolver_repayment=debt_row.revolver_repayment,
            retained_earnings_beginning=state.retained_earnings,
            retained_earnings_ending=retained_earnings
        )

        next_state = PeriodState(
            cash=debt_row.ending_cash,
            term_debt=debt_row.term_debt_ending,
            revolver=debt_row.revolver_ending,
            ppe=PPEBalances(ppe_row.ending_gross, ppe_row.ending_accum_dep),
            working_capital=WorkingCapitalBalances(
                ar=wc_row.ar,
                inventory=wc_row.inventory,
                other_ca=wc_row.other_ca,
                ap=wc_row.ap,
                other_cl=wc_row.other_cl
            ),
            retained_earnings=retained_earnings,
            prior_revenue=revenue
        )

        return record, next_state

    # ========================================================================
    # Build
    # ========================================================================

    def build(self) -> FullForecastOutput:
        """
        Run the forecast.

        Returns:
            FullForecastOutput with statements, schedules, circularity
            results and checks
        """
        a = self.assumptions
        periods = self.periods

        logger.info("Building forecast: %d historical + %d forecast periods",
                    self.baseline.historical_periods, len(periods))

        revenue = forecast_revenue(self.baseline.revenue, periods, a.revenue)
        volume = forecast_volume(periods, a.revenue)

        state = self._opening_state()
        paid_in_capital = self._paid_in_capital(state)
        opening_debt = DebtBalances(state.term_debt, state.revolver)

        records: List[_PeriodRecord] = []
        for position, period in enumerate(periods, start=1):
            period_volume = volume.get(period) if volume is not None else None
            record, state = self._step(state, position, revenue[period], period_volume)
            records.append(record)

            logger.debug(
                "Period %d: revenue %.0f, net income %.0f, cash %.0f, revolver %.0f",
                period, record.revenue, record.solution.net_income,
                record.ending_cash, record.revolver
            )

        debt_schedule = build_debt_schedule(
            periods, a.debt, opening_debt, [r.signal for r in records]
        )
        ppe_schedule = PPESchedule.from_rows(periods, [r.ppe for r in records])
        wc_schedule = WorkingCapitalSchedule.from_rows(periods, [r.wc for r in records])
        equity_schedule = self._equity_schedule(records, paid_in_capital)

        income_statement = self._income_statement(records)
        balance_sheet = self._balance_sheet(records, paid_in_capital)
        cash_flow = self._cash_flow(records)

        period_circularity = {
            period: record.solution.result for period, record in zip(periods, records)
        }
        circularity = self._aggregate_circularity(period_circularity)

        checks = ForecastChecks(
            ppe_roll_forward=verify_ppe_roll_forward(ppe_schedule),
            debt_roll_forward=verify_debt_roll_forward(debt_schedule, a.debt.revolver_capacity),
            nwc_identity=verify_nwc_identity(wc_schedule),
            bs_balance=self._check_balance_sheet(balance_sheet),
            cf_tie_out=self._check_cash_tie_out(cash_flow, balance_sheet),
            re_roll_forward=self._check_retained_earnings(equity_schedule),
            circularity=self._summarize_circularity(period_circularity)
        )

        if checks.all_passed:
            logger.info("Forecast built: all checks passed")
        else:
            failed = [name for name, row in checks.to_dataframe().iterrows() if not row['passed']]
            logger.info("Forecast built: checks failed: %s", ", ".join(failed))

        return FullForecastOutput(
            periods=periods,
            income_statement=income_statement,
            balance_sheet=balance_sheet,
            cash_flow=cash_flow,
            working_capital=wc_schedule,
            ppe=ppe_schedule,
            debt=debt_schedule,
            equity=equity_schedule,
            circularity=circularity,
            period_circularity=period_circularity,
            checks=checks,
            assumptions=a
        )

    # ========================================================================
    # Assembly
    # ========================================================================

    def _income_statement(self, records: List[_PeriodRecord]) -> IncomeStatement:
        columns: Dict[str, List[float]] = {}

        def add(name, value):
            columns.setdefault(name, []).append(value)

        for r in records:
            s = r.solution
            add('revenue', r.revenue)
            add('cogs', r.cogs)
            add('gross_profit', r.revenue - r.cogs)
            add('sga', r.sga)
            add('ebitda', r.revenue - r.cogs - r.sga)
            add('depreciation', r.ppe.dep_expense)
            add('ebit', r.ebit)
            add('interest', s.interest)
            add('ebt', s.ebt)
            add('taxes', s.tax)
            add('net_income', s.net_income)
            add('shares_outstanding', r.shares)
            add('eps', s.net_income / r.shares if r.shares else 0.0)

        return IncomeStatement.from_columns(self.periods, columns)

    def _balance_sheet(self, records: List[_PeriodRecord], paid_in_capital: float) -> BalanceSheet:
        columns: Dict[str, List[float]] = {}

        def add(name, value):
            columns.setdefault(name, []).append(value)

        for r in records:
            wc = r.wc
            current_assets = r.ending_cash + wc.ar + wc.inventory + wc.other_ca
            total_assets = current_assets + r.ppe.net_ppe
            total_liabilities = wc.ap + wc.other_cl + r.term_debt + r.revolver
            total_equity = paid_in_capital + r.retained_earnings_ending

            add('cash', r.ending_cash)
            add('ar', wc.ar)
            add('inventory', wc.inventory)
            add('other_ca', wc.other_ca)
            add('total_current_assets', current_assets)
            add('net_ppe', r.ppe.net_ppe)
            add('total_assets', total_assets)
            add('ap', wc.ap)
            add('other_cl', wc.other_cl)
            add('term_debt', r.term_debt)
            add('revolver', r.revolver)
            add('total_liabilities', total_liabilities)
            add('paid_in_capital', paid_in_capital)
            add('retained_earnings', r.retained_earnings_ending)
            add('total_equity', total_equity)
            add('total_liabilities_and_equity', total_liabilities + total_equity)

        return BalanceSheet.from_columns(self.periods, columns)

    def _cash_flow(self, records: List[_PeriodRecord]) -> CashFlowStatement:
        columns: Dict[str, List[float]] = {}

        def add(name, value):
            columns.setdefault(name, []).append(value)

        for r in records:
            s = r.solution
            cfo = s.net_income + r.ppe.dep_expense - r.wc.change_in_nwc
            cfi = -r.ppe.capex
            cff = r.revolver_drawdown - r.revolver_repayment - r.term_repayment - s.dividends
            net_change = cfo + cfi + cff

            add('net_income', s.net_income)
            add('depreciation', r.ppe.dep_expense)
            add('change_in_nwc', r.wc.change_in_nwc)
            add('cfo', cfo)
            add('capex', r.ppe.capex)
            add('cfi', cfi)
            add('term_debt_repayment', r.term_repayment)
            add('revolver_drawdown', r.revolver_drawdown)
            add('revolver_repayment', r.revolver_repayment)
            add('dividends', s.dividends)
            add('cff', cff)
            add('net_change_in_cash', net_change)
            add('beginning_cash', r.beginning_cash)
            add('ending_cash', r.beginning_cash + net_change)

        return CashFlowStatement.from_columns(self.periods, columns)

    def _equity_schedule(self, records: List[_PeriodRecord], paid_in_capital: float) -> EquitySchedule:
        rows = [
            EquityPeriod(
                retained_earnings_beginning=r.retained_earnings_beginning,
                net_income=r.solution.net_income,
                dividends=r.solution.dividends,
                other_adjustments=0.0,
                retained_earnings_ending=r.retained_earnings_ending,
                paid_in_capital=paid_in_capital,
                total_equity=paid_in_capital + r.retained_earnings_ending,
                shares_outstanding=r.shares
            )
            for r in records
        ]
        return EquitySchedule.from_rows(self.periods, rows)

    # ========================================================================
    # Circularity & checks
    # ========================================================================

    @staticmethod
    def _aggregate_circularity(results: Dict[int, CircularityResult]) -> CircularityResult:
        """All periods' solves as one result; the log concatenates period logs."""
        values = list(results.values())
        converged = all(r.converged for r in values)
        return CircularityResult(
            converged=converged,
            iterations=sum(r.iterations for r in values),
            final_error=max((r.final_error for r in values), default=0.0),
            convergence_log=tuple(entry for r in values for entry in r.convergence_log),
            state=SolverState.CONVERGED if converged else SolverState.NOT_CONVERGED
        )

    @staticmethod
    def _summarize_circularity(results: Dict[int, CircularityResult]) -> CircularitySummary:
        return CircularitySummary(
            all_converged=all(r.converged for r in results.values()),
            max_error=max((r.final_error for r in results.values()), default=0.0),
            total_iterations=sum(r.iterations for r in results.values()),
            non_converged_periods=tuple(p for p, r in results.items() if not r.converged)
        )

    @staticmethod
    def _max_check(errors) -> CheckResult:
        max_error = max((abs(e) for e in errors), default=0.0)
        return CheckResult(passed=max_error < CHECK_TOLERANCE, error=max_error)

    def _check_balance_sheet(self, bs: BalanceSheet) -> CheckResult:
        """Assets = Liabilities + Equity."""
        return self._max_check(
            a - le for a, le in zip(bs.total_assets, bs.total_liabilities_and_equity)
        )

    def _check_cash_tie_out(self, cf: CashFlowStatement, bs: BalanceSheet) -> CheckResult:
        """Cash flow ending cash equals balance sheet cash."""
        return self._max_check(c - b for c, b in zip(cf.ending_cash, bs.cash))

    def _check_retained_earnings(self, equity: EquitySchedule) -> CheckResult:
        """RE(t) = RE(t-1) + NI - Dividends + Other, with continuity across periods."""
        errors = []
        previous_ending = self.baseline.retained_earnings
        for i in range(len(equity)):
            beginning = equity.retained_earnings_beginning[i]
            expected = (
                beginning + equity.net_income[i] - equity.dividends[i]
                + equity.other_adjustments[i]
            )
            errors.append(equity.retained_earnings_ending[i] - expected)
            errors.append(beginning - previous_ending)
            previous_ending = equity.retained_earnings_ending[i]
        return self._max_check(errors)


def build_full_forecast(
    assumptions: ForecastAssumptions,
    baseline: HistoricalBaseline,
    forecast_years: int = DEFAULT_FORECAST_YEARS
) -> FullForecastOutput:
    """Build a complete three-statement forecast in one call."""
    return FullForecastBuilder(assumptions, baseline, forecast_years).build()
