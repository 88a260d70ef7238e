# tests/test_debt_schedule.py
import pytest

from forecast_engine.models.assumptions import (
    CashSweep,
    DebtDrivers,
    Revolver,
    SweepPriority,
    TermDebt,
)
from forecast_engine.models.debt_schedule import (
    CashSignal,
    DebtBalances,
    build_debt_schedule,
    roll_forward_debt,
    scheduled_term_repayment,
    verify_debt_roll_forward,
)


def drivers_with_sweep(priority=SweepPriority.REVOLVER_FIRST, enabled=True):
    return DebtDrivers(
        term_debt=TermDebt(interest_rate=0.05),
        revolver=Revolver(capacity=50.0, interest_rate=0.1),
        cash_sweep=CashSweep(excess_cash_threshold=100.0, sweep_percent=0.5,
                             priority=priority, enabled=enabled),
    )


class TestScheduledRepayment:

    def test_amortization_schedule(self):
        term = TermDebt(0.05, amortization_schedule=[10.0, 20.0])

        assert scheduled_term_repayment(term, 1, 100.0) == 10.0
        assert scheduled_term_repayment(term, 2, 90.0) == 20.0
        assert scheduled_term_repayment(term, 3, 70.0) == 0.0

    def test_bullet_at_maturity(self):
        term = TermDebt(0.05, maturity_period=2, amortization_schedule=(10.0,))
        assert scheduled_term_repayment(term, 2, 90.0) == 90.0

    def test_capped_at_balance(self):
        term = TermDebt(0.05, amortization_schedule=(200.0,))
        assert scheduled_term_repayment(term, 1, 100.0) == 100.0

    def test_no_term_debt(self):
        assert scheduled_term_repayment(None, 1, 100.0) == 0.0


class TestCashSweep:

    def test_revolver_first_then_term(self):
        row = roll_forward_debt(
            DebtBalances(term_debt=100.0, revolver=30.0),
            CashSignal(ending_cash=200.0),
            drivers_with_sweep(),
            position=1
        )

        assert row.cash_swept == pytest.approx(50.0)
        assert row.revolver_repayment == pytest.approx(30.0)
        assert row.revolver_ending == 0.0
        assert row.term_debt_repayment == pytest.approx(20.0)
        assert row.term_debt_ending == pytest.approx(80.0)
        assert row.ending_cash == pytest.approx(150.0)
        assert row.term_debt_interest == pytest.approx(4.5)
        assert row.revolver_interest == pytest.approx(1.5)
        assert row.total_debt == pytest.approx(80.0)

    def test_term_first(self):
        row = roll_forward_debt(
            DebtBalances(term_debt=100.0, revolver=30.0),
            CashSignal(ending_cash=200.0),
            drivers_with_sweep(SweepPriority.TERM_FIRST),
            position=1
        )

        assert row.term_debt_ending == pytest.approx(50.0)
        assert row.revolver_ending == pytest.approx(30.0)

    @pytest.mark.parametrize('ending_cash, enabled', [(90.0, True), (200.0, False)])
    def test_no_sweep(self, ending_cash, enabled):
        row = roll_forward_debt(
            DebtBalances(term_debt=100.0, revolver=30.0),
            CashSignal(ending_cash=ending_cash),
            drivers_with_sweep(enabled=enabled),
            position=1
        )

        assert row.cash_swept == 0.0
        assert row.ending_cash == ending_cash
        assert row.total_debt == pytest.approx(130.0)

    def test_sweep_percent_validated(self):
        with pytest.raises(ValueError):
            CashSweep(excess_cash_threshold=0.0, sweep_percent=1.5)


def test_revolver_draw_clamped_to_capacity():
    drivers = DebtDrivers(revolver=Revolver(capacity=50.0, interest_rate=0.1, commitment_fee=0.01))
    row = roll_forward_debt(
        DebtBalances(revolver=40.0), CashSignal(revolver_drawdown=30.0), drivers, position=1
    )

    assert row.revolver_drawdown == pytest.approx(10.0)
    assert row.revolver_ending == pytest.approx(50.0)
    assert row.commitment_fee == pytest.approx(0.05)
    assert row.total_interest == pytest.approx(row.revolver_interest + row.commitment_fee)


def test_build_schedule_and_verify():
    drivers = DebtDrivers(
        term_debt=TermDebt(0.06, amortization_schedule=(25.0, 25.0), maturity_period=3),
        revolver=Revolver(capacity=100.0, interest_rate=0.08, minimum_cash=10.0),
    )
    signals = [
        CashSignal(revolver_drawdown=40.0, ending_cash=10.0),
        CashSignal(revolver_repayment=15.0, ending_cash=10.0),
        CashSignal(revolver_repayment=25.0, ending_cash=30.0),
    ]

    schedule = build_debt_schedule([4, 5, 6], drivers, DebtBalances(100.0, 0.0), signals)

    assert schedule.periods == (4, 5, 6)
    assert schedule.term_debt_ending == pytest.approx((75.0, 50.0, 0.0))
    assert schedule.revolver_ending == pytest.approx((40.0, 25.0, 0.0))
    assert schedule.term_debt_beginning[1] == schedule.term_debt_ending[0]

    check = verify_debt_roll_forward(schedule, revolver_capacity=100.0)
    assert check.passed
    assert check.error < 1e-9


def test_verify_flags_capacity_breach():
    drivers = DebtDrivers(revolver=Revolver(capacity=50.0, interest_rate=0.1))
    schedule = build_debt_schedule(
        [1], drivers, DebtBalances(revolver=0.0), [CashSignal(revolver_drawdown=50.0)]
    )

    assert verify_debt_roll_forward(schedule, revolver_capacity=50.0).passed

    check = verify_debt_roll_forward(schedule, revolver_capacity=5.0)
    assert not check.passed
    assert check.error == pytest.approx(45.0)


def test_signal_count_must_match_periods():
    with pytest.raises(ValueError):
        build_debt_schedule([1, 2], DebtDrivers(), DebtBalances(), [CashSignal()])
