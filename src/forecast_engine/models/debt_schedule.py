# src/forecast_engine/models/debt_schedule.py
"""
Debt Schedule

Rolls term debt and the revolving credit facility forward period by period.

    Term Ending     = Term Beginning + Drawdown - Scheduled Repayment - Sweep
    Revolver Ending = Revolver Beginning + Draw - Repay - Sweep
    Interest        = Average Balance x Rate (per instrument)

The revolver draw/repay of each period is decided by the circularity
solver and arrives here as a CashSignal. An optional cash sweep then
applies part of the cash above a threshold to debt paydown.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .assumptions import DebtDrivers, SweepPriority, TermDebt
from .schedules import CheckResult, DebtPeriod, DebtSchedule

logger = logging.getLogger(__name__)

ROLL_FORWARD_TOLERANCE = 1.0


@dataclass(frozen=True)
class DebtBalances:
    """Debt outstanding at a period end."""
    term_debt: float = 0.0
    revolver: float = 0.0

    @property
    def total(self) -> float:
        return self.term_debt + self.revolver


@dataclass(frozen=True)
class CashSignal:
    """
    What the circularity solve decided for one period.

    Args:
        revolver_drawdown: Revolver draw needed to hold minimum cash
        revolver_repayment: Revolver paydown out of excess cash
        ending_cash: Cash after the revolver plug, before any sweep
        term_debt_drawdown: New term borrowing in the period
    """
    revolver_drawdown: float = 0.0
    revolver_repayment: float = 0.0
    ending_cash: float = 0.0
    term_debt_drawdown: float = 0.0


def scheduled_term_repayment(
    term_debt: Optional[TermDebt],
    position: int,
    beginning_balance: float
) -> float:
    """
    Contractual term debt repayment for a forecast period.

    The amortization schedule gives the repayment per forecast period; in
    the maturity period the whole remaining balance is repaid. Repayment
    never exceeds the beginning balance.

    Args:
        term_debt: Term debt terms (None: no term debt)
        position: 1-based position of the period within the forecast range
        beginning_balance: Term debt at the start of the period

    Returns:
        Scheduled repayment
    """
    if term_debt is None or beginning_balance <= 0:
        return 0.0

    if term_debt.maturity_period is not None and position >= term_debt.maturity_period:
        return beginning_balance

    schedule = term_debt.amortization_schedule
    repayment = schedule[position - 1] if position <= len(schedule) else 0.0

    return min(max(repayment, 0.0), beginning_balance)


def _sweep_order(priority: SweepPriority) -> Tuple[str, str]:
    if priority is SweepPriority.TERM_FIRST:
        return ('term', 'revolver')
    return ('revolver', 'term')


def roll_forward_debt(
    prior: DebtBalances,
    signal: CashSignal,
    drivers: DebtDrivers,
    position: int
) -> DebtPeriod:
    """
    Roll debt forward one period.

    Args:
        prior: Closing debt balances of the previous period
        signal: Revolver activity and cash decided by the circularity solve
        drivers: Debt drivers
        position: 1-based position of the period within the forecast range

    Returns:
        DebtPeriod row; ``ending_cash`` is net of any swept cash
    """
    term = drivers.term_debt
    capacity = drivers.revolver_capacity

    # Term debt
    term_beginning = prior.term_debt
    term_drawdown = signal.term_debt_drawdown
    term_repayment = scheduled_term_repayment(term, position, term_beginning)
    term_ending = term_beginning + term_drawdown - term_repayment

    # Revolver, clamped to [0, capacity]
    revolver_beginning = prior.revolver
    revolver_drawdown = min(
        max(signal.revolver_drawdown, 0.0),
        max(capacity - revolver_beginning, 0.0)
    )
    revolver_repayment = min(
        max(signal.revolver_repayment, 0.0),
        revolver_beginning + revolver_drawdown
    )
    revolver_ending = revolver_beginning + revolver_drawdown - revolver_repayment

    # Cash sweep
    ending_cash = signal.ending_cash
    cash_swept = 0.0
    sweep = drivers.cash_sweep

    if sweep is not None and sweep.enabled and ending_cash > sweep.excess_cash_threshold:
        available = (ending_cash - sweep.excess_cash_threshold) * sweep.sweep_percent

        for instrument in _sweep_order(sweep.priority):
            if instrument == 'revolver':
                paydown = min(available, revolver_ending)
                revolver_repayment += paydown
                revolver_ending -= paydown
            else:
                paydown = min(available, term_ending)
                term_repayment += paydown
                term_ending -= paydown
            available -= paydown
            cash_swept += paydown

        ending_cash -= cash_swept

        if cash_swept:
            logger.debug("Period %d: swept %.0f of excess cash into debt paydown",
                         position, cash_swept)

    # Interest on average balances
    term_rate = term.interest_rate if term is not None else 0.0
    term_interest = (term_beginning + term_ending) / 2 * term_rate

    revolver = drivers.revolver
    average_revolver = (revolver_beginning + revolver_ending) / 2
    revolver_interest = average_revolver * revolver.interest_rate if revolver else 0.0
    commitment_fee = (
        max(capacity - average_revolver, 0.0) * revolver.commitment_fee if revolver else 0.0
    )

    return DebtPeriod(
        term_debt_beginning=term_beginning,
        term_debt_drawdown=term_drawdown,
        term_debt_repayment=term_repayment,
        term_debt_ending=term_ending,
        term_debt_interest=term_interest,
        revolver_beginning=revolver_beginning,
        revolver_drawdown=revolver_drawdown,
        revolver_repayment=revolver_repayment,
        revolver_ending=revolver_ending,
        revolver_interest=revolver_interest,
        commitment_fee=commitment_fee,
        cash_swept=cash_swept,
        ending_cash=ending_cash,
        total_debt=term_ending + revolver_ending,
        total_interest=term_interest + revolver_interest + commitment_fee
    )


def build_debt_schedule(
    periods: Sequence[int],
    drivers: DebtDrivers,
    opening: DebtBalances,
    signals: Sequence[CashSignal]
) -> DebtSchedule:
    """
    Build the debt schedule over the forecast periods.

    Args:
        periods: Forecast period indices, in order
        drivers: Debt drivers
        opening: Debt balances entering the first forecast period
        signals: One CashSignal per period, aligned with ``periods``

    Returns:
        DebtSchedule
    """
    if len(signals) != len(periods):
        raise ValueError(
            f"Expected one cash signal per period ({len(periods)}), got {len(signals)}"
        )

    balances = opening
    rows: List[DebtPeriod] = []

    for position, signal in enumerate(signals, start=1):
        row = roll_forward_debt(balances, signal, drivers, position)
        rows.append(row)
        balances = DebtBalances(row.term_debt_ending, row.revolver_ending)

    schedule = DebtSchedule.from_rows(periods, rows)

    if rows:
        logger.debug(
            "Debt schedule: total debt %.0f -> %.0f, interest %.0f",
            opening.total, schedule.total_debt[-1], sum(schedule.total_interest)
        )

    return schedule


def verify_debt_roll_forward(
    schedule: DebtSchedule,
    revolver_capacity: Optional[float] = None
) -> CheckResult:
    """
    Recompute the debt roll-forward identities.

    Checks both instruments' roll-forwards, period-to-period continuity,
    total debt and total interest. With a capacity, a revolver balance
    below zero or above capacity adds the size of the breach to the error.

    Returns:
        CheckResult; passes below one currency unit
    """
    if not len(schedule):
        return CheckResult(passed=True, error=0.0)

    term_beginning = np.asarray(schedule.term_debt_beginning)
    term_ending = np.asarray(schedule.term_debt_ending)
    revolver_beginning = np.asarray(schedule.revolver_beginning)
    revolver_ending = np.asarray(schedule.revolver_ending)

    errors = [
        term_ending - (term_beginning + np.asarray(schedule.term_debt_drawdown)
                       - np.asarray(schedule.term_debt_repayment)),
        revolver_ending - (revolver_beginning + np.asarray(schedule.revolver_drawdown)
                           - np.asarray(schedule.revolver_repayment)),
        np.asarray(schedule.total_debt) - (term_ending + revolver_ending),
        np.asarray(schedule.total_interest) - (
            np.asarray(schedule.term_debt_interest)
            + np.asarray(schedule.revolver_interest)
            + np.asarray(schedule.commitment_fee)
        ),
        term_beginning[1:] - term_ending[:-1],
        revolver_beginning[1:] - revolver_ending[:-1],
    ]

    if revolver_capacity is not None:
        errors.append(np.maximum(-revolver_ending, 0.0))
        errors.append(np.maximum(revolver_ending - revolver_capacity, 0.0))

    max_error = float(np.max(np.abs(np.concatenate(errors))))

    return CheckResult(passed=max_error < ROLL_FORWARD_TOLERANCE, error=max_error)
