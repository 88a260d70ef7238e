# src/forecast_engine/core/circularity_solver.py
"""
Circularity solver for the interest / cash / revolver loop.

Interest expense reduces net income, which reduces the cash generated in
the period, which may force a revolver draw, which raises the balance the
interest is computed on. Within one period this is a fixed-point problem
in the interest figure:

    interest_k+1 = f(interest_k)

The iterative method repeats the step below until successive interest
values differ by less than the tolerance:

    EBT        = EBIT - interest_k
    Tax        = max(EBT * t, 0)
    NI         = EBT - Tax
    OCF        = NI + non-cash charges - dNWC
    FCF        = OCF - Capex
    Cash*      = Beginning cash + FCF + financing flows
    Revolver   = plug that restores Cash* to the minimum cash balance,
                 within [0, capacity]
    interest   = avg(term debt) * r_term + avg(revolver) * r_revolver

The closed-form method performs a single pass and is an approximation.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

from ..models.assumptions import SolverMethod
from ..models.schedules import CircularityResult, ConvergenceLogEntry, SolverState
from .exceptions import UnsupportedDriverMethod

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 20
DEFAULT_TOLERANCE = 1.0


@dataclass(frozen=True)
class CircularityInput:
    """
    Inputs of one period's solve. Everything here is known before the
    interest figure is.

    Args:
        ebit: Earnings before interest and tax
        tax_rate: Effective tax rate
        non_cash_charges: Depreciation and amortization
        change_in_nwc: Increase in net working capital
        capex: Capital expenditure
        term_debt_beginning: Term debt at the start of the period
        term_debt_ending: Term debt after scheduled repayment
        term_debt_rate: Term debt interest rate
        revolver_beginning: Revolver balance at the start of the period
        revolver_rate: Revolver interest rate
        revolver_capacity: Facility size
        minimum_cash: Cash floor the revolver defends
        beginning_cash: Cash at the start of the period
        debt_drawdown: New term borrowing in the period
        debt_repayment: Scheduled term repayment in the period
        dividend_payout_ratio: Share of positive net income paid out
        fixed_dividends: Dividends independent of net income
        commitment_fee_rate: Fee on the undrawn part of the facility
    """
    ebit: float
    tax_rate: float
    non_cash_charges: float
    change_in_nwc: float
    capex: float
    term_debt_beginning: float = 0.0
    term_debt_ending: float = 0.0
    term_debt_rate: float = 0.0
    revolver_beginning: float = 0.0
    revolver_rate: float = 0.0
    revolver_capacity: float = 0.0
    minimum_cash: float = 0.0
    beginning_cash: float = 0.0
    debt_drawdown: float = 0.0
    debt_repayment: float = 0.0
    dividend_payout_ratio: float = 0.0
    fixed_dividends: float = 0.0
    commitment_fee_rate: float = 0.0

    def __post_init__(self):
        if not 0 <= self.tax_rate < 1:
            raise ValueError(f"Tax rate must be between 0 and 1, got {self.tax_rate}")
        if self.revolver_capacity < 0:
            raise ValueError(f"Revolver capacity cannot be negative, got {self.revolver_capacity}")

    @property
    def term_interest(self) -> float:
        """Average term balance x term rate."""
        return (self.term_debt_beginning + self.term_debt_ending) / 2 * self.term_debt_rate


@dataclass(frozen=True)
class PeriodSolution:
    """
    Solved figures for one period.

    ``interest`` is the figure net income was computed with, so the income
    statement and cash flow tie. ``recomputed_interest`` is the interest the
    resulting balances imply; the two differ by ``result.final_error``.
    """
    interest: float
    recomputed_interest: float
    term_interest: float
    revolver_interest: float
    commitment_fee: float
    ebt: float
    tax: float
    net_income: float
    operating_cash_flow: float
    free_cash_flow: float
    dividends: float
    cash_before_revolver: float
    revolver_drawdown: float
    revolver_repayment: float
    revolver_ending: float
    ending_cash: float
    result: CircularityResult


@dataclass(frozen=True)
class _Pass:
    """One evaluation of the period at a given interest guess."""
    interest: float
    ebt: float
    tax: float
    net_income: float
    operating_cash_flow: float
    free_cash_flow: float
    dividends: float
    cash_before_revolver: float
    revolver_drawdown: float
    revolver_repayment: float
    revolver_ending: float
    ending_cash: float
    term_interest: float
    revolver_interest: float
    commitment_fee: float

    @property
    def new_interest(self) -> float:
        return self.term_interest + self.revolver_interest + self.commitment_fee


def revolver_plug(
    cash: float,
    minimum_cash: float,
    revolver_beginning: float,
    capacity: float
) -> Tuple[float, float]:
    """
    Revolver draw or paydown that moves cash toward the minimum balance.

    Args:
        cash: Cash before any revolver activity
        minimum_cash: Cash floor
        revolver_beginning: Drawn balance before the adjustment
        capacity: Facility size

    Returns:
        Tuple of (drawdown, repayment); at most one is non-zero
    """
    if cash < minimum_cash:
        headroom = max(capacity - revolver_beginning, 0.0)
        return min(minimum_cash - cash, headroom), 0.0

    return 0.0, min(cash - minimum_cash, revolver_beginning)


class CircularitySolver:
    """
    Solve one period's interest / cash / revolver loop.

    State machine: INITIALIZING (revolver assumed undrawn, interest seeded
    from term debt alone) -> ITERATING -> CONVERGED or NOT_CONVERGED.
    The revolver plug is recomputed from the period's opening balance on
    every step, so successive steps never stack draws.
    """

    def __init__(
        self,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tolerance: float = DEFAULT_TOLERANCE
    ):
        """
        Initialize circularity solver.

        Args:
            max_iterations: Cap on fixed-point steps per period
            tolerance: Absolute interest change below which the solve stops
        """
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        if tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {tolerance}")

        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def _income_and_cash(self, inputs: CircularityInput, interest: float) -> dict:
        ebt = inputs.ebit - interest
        tax = max(ebt * inputs.tax_rate, 0.0)
        net_income = ebt - tax

        operating_cash_flow = net_income + inputs.non_cash_charges - inputs.change_in_nwc
        free_cash_flow = operating_cash_flow - inputs.capex

        dividends = max(net_income, 0.0) * inputs.dividend_payout_ratio + inputs.fixed_dividends
        financing = inputs.debt_drawdown - inputs.debt_repayment - dividends

        return {
            'interest': interest,
            'ebt': ebt,
            'tax': tax,
            'net_income': net_income,
            'operating_cash_flow': operating_cash_flow,
            'free_cash_flow': free_cash_flow,
            'dividends': dividends,
            'cash_before_revolver': inputs.beginning_cash + free_cash_flow + financing,
        }

    def _interest_on(self, inputs: CircularityInput, revolver_ending: float) -> dict:
        average_revolver = (inputs.revolver_beginning + revolver_ending) / 2
        undrawn = max(inputs.revolver_capacity - average_revolver, 0.0)
        return {
            'term_interest': inputs.term_interest,
            'revolver_interest': average_revolver * inputs.revolver_rate,
            'commitment_fee': undrawn * inputs.commitment_fee_rate,
        }

    def _run_pass(self, inputs: CircularityInput, interest: float) -> _Pass:
        figures = self._income_and_cash(inputs, interest)

        drawdown, repayment = revolver_plug(
            figures['cash_before_revolver'],
            inputs.minimum_cash,
            inputs.revolver_beginning,
            inputs.revolver_capacity
        )
        revolver_ending = inputs.revolver_beginning + drawdown - repayment

        return _Pass(
            revolver_drawdown=drawdown,
            revolver_repayment=repayment,
            revolver_ending=revolver_ending,
            ending_cash=figures['cash_before_revolver'] + drawdown - repayment,
            **figures,
            **self._interest_on(inputs, revolver_ending)
        )

    @staticmethod
    def _solution(step: _Pass, result: CircularityResult) -> PeriodSolution:
        return PeriodSolution(
            interest=step.interest,
            recomputed_interest=step.new_interest,
            term_interest=step.term_interest,
            revolver_interest=step.revolver_interest,
            commitment_fee=step.commitment_fee,
            ebt=step.ebt,
            tax=step.tax,
            net_income=step.net_income,
            operating_cash_flow=step.operating_cash_flow,
            free_cash_flow=step.free_cash_flow,
            dividends=step.dividends,
            cash_before_revolver=step.cash_before_revolver,
            revolver_drawdown=step.revolver_drawdown,
            revolver_repayment=step.revolver_repayment,
            revolver_ending=step.revolver_ending,
            ending_cash=step.ending_cash,
            result=result
        )

    def solve_iterative(self, inputs: CircularityInput) -> PeriodSolution:
        """
        Iterate the interest fixed point until it settles.

        On hitting the iteration cap the last computed values are returned
        with state NOT_CONVERGED and the full convergence log.

        Args:
            inputs: Period inputs

        Returns:
            PeriodSolution
        """
        state = SolverState.INITIALIZING
        interest = inputs.term_interest
        log: List[ConvergenceLogEntry] = []

        state = SolverState.ITERATING
        step = None
        error = 0.0

        for iteration in range(1, self.max_iterations + 1):
            step = self._run_pass(inputs, interest)
            error = abs(step.new_interest - interest)

            log.append(ConvergenceLogEntry(
                iteration=iteration,
                cash=step.ending_cash,
                revolver=step.revolver_ending,
                interest=step.new_interest,
                error=error
            ))
            logger.debug(
                "Circularity iteration %d: interest=%.4f revolver=%.4f error=%.6f",
                iteration, step.new_interest, step.revolver_ending, error
            )

            if error < self.tolerance:
                state = SolverState.CONVERGED
                break

            interest = step.new_interest

        converged = state is SolverState.CONVERGED
        if not converged:
            state = SolverState.NOT_CONVERGED
            logger.warning(
                "Circularity did not converge after %d iterations (error %.6f)",
                self.max_iterations, error
            )

        result = CircularityResult(
            converged=converged,
            iterations=len(log),
            final_error=error,
            convergence_log=tuple(log),
            state=state
        )
        return self._solution(step, result)

    def solve_closed_form(self, inputs: CircularityInput) -> PeriodSolution:
        """
        Single-pass approximation.

        Interest is first taken as term interest alone (zero average
        revolver), the revolver plug is sized on that, and interest is
        refined once with the resulting revolver balance. Net income and
        cash are restated at the refined interest while the revolver draw
        is kept, so ending cash may sit marginally off the minimum.

        Always reports converged=True and one iteration; this is not a
        convergence guarantee.
        """
        first = self._run_pass(inputs, inputs.term_interest)
        refined = first.new_interest

        figures = self._income_and_cash(inputs, refined)
        ending_cash = (
            figures['cash_before_revolver']
            + first.revolver_drawdown
            - first.revolver_repayment
        )

        step = _Pass(
            revolver_drawdown=first.revolver_drawdown,
            revolver_repayment=first.revolver_repayment,
            revolver_ending=first.revolver_ending,
            ending_cash=ending_cash,
            term_interest=first.term_interest,
            revolver_interest=first.revolver_interest,
            commitment_fee=first.commitment_fee,
            **figures
        )

        result = CircularityResult(
            converged=True,
            iterations=1,
            final_error=0.0,
            convergence_log=(ConvergenceLogEntry(
                iteration=1,
                cash=ending_cash,
                revolver=first.revolver_ending,
                interest=refined,
                error=0.0
            ),),
            state=SolverState.CONVERGED
        )
        return self._solution(step, result)

    def solve(
        self,
        inputs: CircularityInput,
        method: SolverMethod = SolverMethod.ITERATIVE
    ) -> PeriodSolution:
        """Solve with the selected method."""
        if method is SolverMethod.ITERATIVE:
            return self.solve_iterative(inputs)
        if method is SolverMethod.CLOSED_FORM:
            return self.solve_closed_form(inputs)
        raise UnsupportedDriverMethod('circularity', method)


def solve_circularity(
    inputs: CircularityInput,
    method: SolverMethod = SolverMethod.ITERATIVE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    tolerance: float = DEFAULT_TOLERANCE
) -> PeriodSolution:
    """
    Solve one period's circularity.

    Args:
        inputs: Period inputs
        method: ITERATIVE or CLOSED_FORM
        max_iterations: Iteration cap for the iterative method
        tolerance: Convergence tolerance for the iterative method

    Returns:
        PeriodSolution
    """
    return CircularitySolver(max_iterations, tolerance).solve(inputs, method)
