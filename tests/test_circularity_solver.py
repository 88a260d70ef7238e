# tests/test_circularity_solver.py
import logging

import pytest

from forecast_engine.core.circularity_solver import (
    CircularityInput,
    CircularitySolver,
    revolver_plug,
    solve_circularity,
)
from forecast_engine.core.exceptions import UnsupportedDriverMethod
from forecast_engine.models.assumptions import SolverMethod
from forecast_engine.models.schedules import SolverState


def revolver_draw_inputs(**overrides):
    """EBIT 1.5, cash 50 against a 100 floor: the fixed point draws 50 at 6%."""
    values = dict(
        ebit=1.5,
        tax_rate=0.0,
        non_cash_charges=0.0,
        change_in_nwc=0.0,
        capex=0.0,
        revolver_rate=0.06,
        revolver_capacity=500.0,
        minimum_cash=100.0,
        beginning_cash=50.0,
    )
    values.update(overrides)
    return CircularityInput(**values)


class TestIterative:

    def test_converges_to_fixed_point(self):
        solution = solve_circularity(revolver_draw_inputs(), tolerance=1e-9)

        assert solution.result.converged
        assert solution.result.state is SolverState.CONVERGED
        assert solution.revolver_drawdown == pytest.approx(50.0, abs=1e-6)
        assert solution.revolver_ending == pytest.approx(50.0, abs=1e-6)
        assert solution.ending_cash == pytest.approx(100.0, abs=1e-6)
        assert solution.interest == pytest.approx(1.5, abs=1e-6)
        assert solution.revolver_interest == pytest.approx(25.0 * 0.06, abs=1e-6)
        assert solution.net_income == pytest.approx(0.0, abs=1e-6)

    def test_log_records_every_step(self):
        solution = solve_circularity(revolver_draw_inputs(), tolerance=1e-9)
        log = solution.result.convergence_log

        assert len(log) == solution.result.iterations
        assert [entry.iteration for entry in log] == list(range(1, len(log) + 1))
        assert log[0].interest == pytest.approx(1.455)
        assert log[0].revolver == pytest.approx(48.5)
        assert log[-1].error < 1e-9
        assert solution.result.final_error == log[-1].error

    def test_no_debt_converges_in_one_step(self):
        solution = solve_circularity(revolver_draw_inputs(ebit=10.0, minimum_cash=0.0))

        assert solution.result.iterations == 1
        assert solution.interest == 0.0
        assert solution.net_income == pytest.approx(10.0)
        assert solution.ending_cash == pytest.approx(60.0)

    def test_not_converged_keeps_log(self, caplog):
        with caplog.at_level(logging.WARNING):
            solution = solve_circularity(revolver_draw_inputs(), max_iterations=1, tolerance=1e-6)

        result = solution.result
        assert not result.converged
        assert result.state is SolverState.NOT_CONVERGED
        assert result.iterations == 1
        assert len(result.convergence_log) == 1
        assert result.final_error == pytest.approx(1.455)
        assert 'did not converge' in caplog.text

    def test_statements_tie_at_reported_interest(self):
        inputs = revolver_draw_inputs(tax_rate=0.25, ebit=20.0, capex=5.0, non_cash_charges=3.0)
        s = solve_circularity(inputs, tolerance=1e-9)

        assert s.ebt == pytest.approx(inputs.ebit - s.interest)
        assert s.net_income == pytest.approx(s.ebt - s.tax)
        assert s.free_cash_flow == pytest.approx(s.net_income + 3.0 - 5.0)
        assert s.ending_cash == pytest.approx(
            inputs.beginning_cash + s.free_cash_flow + s.revolver_drawdown - s.revolver_repayment
        )

    def test_tax_floored_at_zero(self):
        s = solve_circularity(revolver_draw_inputs(ebit=-10.0, tax_rate=0.3))
        assert s.tax == 0.0

    def test_revolver_capped_at_capacity(self):
        s = solve_circularity(revolver_draw_inputs(revolver_capacity=20.0, revolver_beginning=5.0))

        assert s.revolver_drawdown == pytest.approx(15.0)
        assert s.revolver_ending == pytest.approx(20.0)
        assert s.ending_cash < 100.0

    def test_excess_cash_repays_opening_revolver(self):
        s = solve_circularity(revolver_draw_inputs(beginning_cash=300.0, revolver_beginning=80.0))

        assert s.revolver_repayment == pytest.approx(80.0)
        assert s.revolver_ending == 0.0

    def test_dividends_on_positive_income_only(self):
        inputs = revolver_draw_inputs(ebit=10.0, minimum_cash=0.0,
                                      dividend_payout_ratio=0.5, fixed_dividends=1.0)
        assert solve_circularity(inputs).dividends == pytest.approx(6.0)

        loss = revolver_draw_inputs(ebit=-10.0, minimum_cash=0.0,
                                    dividend_payout_ratio=0.5, fixed_dividends=1.0)
        assert solve_circularity(loss).dividends == pytest.approx(1.0)

    def test_deterministic(self):
        first = solve_circularity(revolver_draw_inputs(), tolerance=1e-9)
        second = solve_circularity(revolver_draw_inputs(), tolerance=1e-9)
        assert first == second


class TestClosedForm:

    def test_single_pass(self):
        s = solve_circularity(revolver_draw_inputs(), method=SolverMethod.CLOSED_FORM)

        assert s.result.converged
        assert s.result.iterations == 1
        assert s.result.final_error == 0.0
        assert len(s.result.convergence_log) == 1
        assert s.revolver_drawdown == pytest.approx(48.5)
        assert s.interest == pytest.approx(1.455)
        assert s.ending_cash == pytest.approx(98.545)

    def test_term_interest_on_average_balance(self):
        inputs = revolver_draw_inputs(
            minimum_cash=0.0, ebit=100.0,
            term_debt_beginning=200.0, term_debt_ending=100.0, term_debt_rate=0.1,
            debt_repayment=100.0, beginning_cash=500.0
        )
        s = solve_circularity(inputs, method=SolverMethod.CLOSED_FORM)

        assert s.term_interest == pytest.approx(15.0)
        assert s.interest == pytest.approx(15.0)


def test_commitment_fee_on_undrawn_capacity():
    inputs = revolver_draw_inputs(ebit=0.0, minimum_cash=0.0, revolver_capacity=100.0,
                                  revolver_beginning=20.0, beginning_cash=100.0,
                                  commitment_fee_rate=0.01)
    s = solve_circularity(inputs, tolerance=1e-9)

    # Opening 20 is repaid in full, average drawn 10, undrawn 90
    assert s.revolver_ending == 0.0
    assert s.commitment_fee == pytest.approx(0.9)
    assert s.revolver_interest == pytest.approx(0.6)


def test_revolver_plug():
    assert revolver_plug(40.0, 100.0, 0.0, 1000.0) == (60.0, 0.0)
    assert revolver_plug(40.0, 100.0, 990.0, 1000.0) == (10.0, 0.0)
    assert revolver_plug(150.0, 100.0, 30.0, 1000.0) == (0.0, 30.0)
    assert revolver_plug(110.0, 100.0, 30.0, 1000.0) == (0.0, 10.0)


def test_unknown_method():
    with pytest.raises(UnsupportedDriverMethod):
        CircularitySolver().solve(revolver_draw_inputs(), method='NEWTON')


@pytest.mark.parametrize('kwargs', [{'max_iterations': 0}, {'tolerance': 0.0}])
def test_invalid_solver_settings(kwargs):
    with pytest.raises(ValueError):
        CircularitySolver(**kwargs)


def test_invalid_tax_rate():
    with pytest.raises(ValueError):
        revolver_draw_inputs(tax_rate=1.2)
