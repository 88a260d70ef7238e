# tests/conftest.py
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from forecast_engine.models.assumptions import (  # noqa: E402
    CashSweep,
    CostDrivers,
    DebtDrivers,
    EffectiveTax,
    FixedCapex,
    FixedPlusVariableSga,
    FixedShares,
    ForecastAssumptions,
    GrowthRateRevenue,
    HistoricalBaseline,
    PayoutRatioDividend,
    PercentOfCogs,
    PercentOfRevenue,
    PercentOfRevenueCapex,
    PercentOfRevenueCost,
    PPEBalances,
    Revolver,
    StraightLineDepreciation,
    TermDebt,
    WorkingCapitalBalances,
    WorkingCapitalDrivers,
)

SAMPLE_CONFIG = Path(__file__).parent.parent / 'configs' / 'sample_forecast.yaml'


@pytest.fixture
def sample_config_path():
    return SAMPLE_CONFIG


@pytest.fixture
def flat_assumptions():
    """Flat revenue, 50% COGS, 40% SG&A, no capex, no working capital, no debt, no tax."""
    return ForecastAssumptions(
        revenue=GrowthRateRevenue(annual_rate=0.0),
        costs=CostDrivers(
            cogs=PercentOfRevenueCost(0.5),
            sga=PercentOfRevenueCost(0.4),
        ),
        capex=FixedCapex(0.0),
        ppe=StraightLineDepreciation(10),
        working_capital=WorkingCapitalDrivers(
            ar=PercentOfRevenue(0.0),
            inventory=PercentOfCogs(0.0),
            ap=PercentOfCogs(0.0),
        ),
        tax=EffectiveTax(0.0),
    )


@pytest.fixture
def flat_baseline():
    return HistoricalBaseline(
        revenue=[100.0],
        ppe=PPEBalances(0.0),
        cash=50.0,
    )


@pytest.fixture
def leveraged_assumptions():
    return ForecastAssumptions(
        revenue=GrowthRateRevenue(annual_rate=0.05),
        costs=CostDrivers(
            cogs=PercentOfRevenueCost(0.6),
            sga=FixedPlusVariableSga(fixed_cost=100.0, variable_percent=0.1),
        ),
        capex=PercentOfRevenueCapex(0.06),
        ppe=StraightLineDepreciation(10),
        debt=DebtDrivers(
            term_debt=TermDebt(interest_rate=0.06, maturity_period=5,
                               amortization_schedule=(50.0, 50.0, 50.0)),
            revolver=Revolver(capacity=300.0, interest_rate=0.08,
                              minimum_cash=50.0, commitment_fee=0.005),
            cash_sweep=CashSweep(excess_cash_threshold=150.0, sweep_percent=0.5),
        ),
        tax=EffectiveTax(0.25),
        dividend=PayoutRatioDividend(0.3),
        shares=FixedShares(100.0),
    )


@pytest.fixture
def leveraged_baseline():
    return HistoricalBaseline(
        revenue=[900.0, 1000.0],
        cogs=[540.0, 600.0],
        working_capital=WorkingCapitalBalances(ar=120.0, inventory=90.0, ap=40.0),
        ppe=PPEBalances(800.0, 300.0),
        term_debt=400.0,
        revolver=50.0,
        cash=60.0,
        retained_earnings=200.0,
    )
