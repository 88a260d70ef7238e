# tests/test_statement_builder.py
from dataclasses import replace

import pytest

from forecast_engine.core.exceptions import InvalidBaseline, MissingDriverParameter
from forecast_engine.financial_statements.statement_builder import (
    FullForecastBuilder,
    build_full_forecast,
)
from forecast_engine.models.assumptions import (
    CircularitySettings,
    DebtDrivers,
    FixedDpsDividend,
    Revolver,
    SolverMethod,
)
from forecast_engine.models.revenue_forecast import FALLBACK_REVENUE


class TestNoDebtScenario:

    def test_cash_accumulates_net_income(self, flat_assumptions, flat_baseline):
        output = build_full_forecast(flat_assumptions, flat_baseline, forecast_years=3)

        assert output.periods == (1, 2, 3)
        assert output.income_statement.ebit == pytest.approx((10.0, 10.0, 10.0))
        assert output.income_statement.net_income == pytest.approx((10.0, 10.0, 10.0))
        assert output.balance_sheet.cash == pytest.approx((60.0, 70.0, 80.0))
        assert output.balance_sheet.revolver == (0.0, 0.0, 0.0)

    def test_one_iteration_per_period(self, flat_assumptions, flat_baseline):
        output = build_full_forecast(flat_assumptions, flat_baseline, forecast_years=3)

        assert all(r.iterations == 1 for r in output.period_circularity.values())
        assert output.circularity.iterations == 3
        assert len(output.circularity.convergence_log) == 3
        assert output.checks.all_passed

    def test_equity_roll_forward(self, flat_assumptions, flat_baseline):
        output = build_full_forecast(flat_assumptions, flat_baseline, forecast_years=2)

        assert output.equity.paid_in_capital == (50.0, 50.0)
        assert output.equity.retained_earnings_ending == pytest.approx((10.0, 20.0))
        assert output.balance_sheet.total_equity == pytest.approx((60.0, 70.0))


class TestLeveragedScenario:

    @pytest.fixture
    def output(self, leveraged_assumptions, leveraged_baseline):
        return build_full_forecast(leveraged_assumptions, leveraged_baseline, forecast_years=5)

    def test_all_checks_pass(self, output):
        checks = output.checks
        assert checks.all_passed, checks.to_dataframe()
        assert checks.nwc_identity.error == 0.0
        assert checks.circularity.non_converged_periods == ()

    def test_balance_sheet_balances(self, output):
        bs = output.balance_sheet
        for assets, claims in zip(bs.total_assets, bs.total_liabilities_and_equity):
            assert assets == pytest.approx(claims, abs=1.0)

    def test_cash_flow_ties_to_balance_sheet(self, output):
        assert output.cash_flow.ending_cash == pytest.approx(output.balance_sheet.cash)
        assert output.cash_flow.beginning_cash[0] == 60.0
        assert output.cash_flow.beginning_cash[1:] == pytest.approx(output.balance_sheet.cash[:-1])

    def test_revolver_within_bounds(self, output):
        for balance in output.debt.revolver_ending:
            assert 0.0 <= balance <= 300.0

    def test_term_debt_amortizes_to_maturity(self, output):
        assert output.debt.term_debt_beginning[0] == 400.0
        assert output.balance_sheet.term_debt[-1] == 0.0

    def test_debt_schedule_matches_balance_sheet(self, output):
        assert output.debt.revolver_ending == pytest.approx(output.balance_sheet.revolver)
        assert output.debt.term_debt_ending == pytest.approx(output.balance_sheet.term_debt)

    def test_eps(self, output):
        inc = output.income_statement
        assert inc.eps == pytest.approx(tuple(ni / 100.0 for ni in inc.net_income))

    def test_dataframes(self, output):
        frames = output.to_dataframes()

        assert set(frames) == {
            'income_statement', 'balance_sheet', 'cash_flow', 'working_capital',
            'ppe', 'debt', 'equity', 'circularity', 'checks',
        }
        assert list(frames['income_statement'].index) == [2, 3, 4, 5, 6]
        assert bool(frames['checks']['passed'].all())


def test_deterministic(leveraged_assumptions, leveraged_baseline):
    first = build_full_forecast(leveraged_assumptions, leveraged_baseline)
    second = build_full_forecast(leveraged_assumptions, leveraged_baseline)

    assert first.income_statement == second.income_statement
    assert first.balance_sheet == second.balance_sheet
    assert first.circularity == second.circularity


def test_closed_form_reports_converged(leveraged_assumptions, leveraged_baseline):
    assumptions = replace(
        leveraged_assumptions,
        circularity=CircularitySettings(method=SolverMethod.CLOSED_FORM)
    )
    output = build_full_forecast(assumptions, leveraged_baseline)

    assert output.checks.circularity.all_converged
    assert output.circularity.iterations == 5
    assert output.checks.bs_balance.passed
    assert output.checks.cf_tie_out.passed


def test_non_convergence_is_reported(flat_assumptions, flat_baseline):
    assumptions = replace(
        flat_assumptions,
        debt=DebtDrivers(revolver=Revolver(capacity=1000.0, interest_rate=0.1, minimum_cash=500.0)),
        circularity=CircularitySettings(max_iterations=1, tolerance=1e-6)
    )
    output = build_full_forecast(assumptions, flat_baseline, forecast_years=2)

    summary = output.checks.circularity
    assert not summary.all_converged
    assert summary.non_converged_periods == (1, 2)
    assert not output.checks.all_passed
    assert output.checks.bs_balance.passed


def test_revenue_fallback(flat_assumptions, flat_baseline):
    baseline = replace(flat_baseline, revenue=(0.0,))
    output = build_full_forecast(flat_assumptions, baseline, forecast_years=2)

    assert output.income_statement.revenue == (FALLBACK_REVENUE, FALLBACK_REVENUE)


class TestValidation:

    def test_opening_revolver_above_capacity(self, leveraged_assumptions, leveraged_baseline):
        baseline = replace(leveraged_baseline, revolver=400.0)
        with pytest.raises(InvalidBaseline):
            FullForecastBuilder(leveraged_assumptions, baseline)

    def test_opening_revolver_without_facility(self, flat_assumptions, flat_baseline):
        with pytest.raises(InvalidBaseline):
            FullForecastBuilder(flat_assumptions, replace(flat_baseline, revolver=10.0))

    def test_term_debt_without_driver(self, flat_assumptions, flat_baseline):
        with pytest.raises(MissingDriverParameter):
            FullForecastBuilder(flat_assumptions, replace(flat_baseline, term_debt=100.0))

    def test_fixed_dps_requires_shares(self, flat_assumptions, flat_baseline):
        assumptions = replace(flat_assumptions, dividend=FixedDpsDividend(0.5))
        with pytest.raises(MissingDriverParameter):
            FullForecastBuilder(assumptions, flat_baseline)

    def test_forecast_years_positive(self, flat_assumptions, flat_baseline):
        with pytest.raises(ValueError):
            FullForecastBuilder(flat_assumptions, flat_baseline, forecast_years=0)
