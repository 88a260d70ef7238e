# tests/test_ppe_schedule.py
from dataclasses import replace

import pytest

from forecast_engine.core.exceptions import UnsupportedDriverMethod
from forecast_engine.models.assumptions import (
    DecliningBalanceDepreciation,
    FixedCapex,
    GrowthLinkedCapex,
    PercentOfGrossDepreciation,
    PercentOfRevenueCapex,
    PPEBalances,
    StraightLineDepreciation,
)
from forecast_engine.models.ppe_schedule import (
    DEFAULT_OPENING_GROSS_PPE,
    build_ppe_schedule,
    compute_capex,
    compute_depreciation,
    roll_forward_ppe,
    verify_ppe_roll_forward,
)


def test_roll_forward_straight_line():
    row = roll_forward_ppe(
        PPEBalances(1000.0, 0.0), 100.0, None,
        PercentOfRevenueCapex(0.1), StraightLineDepreciation(10)
    )

    assert row.capex == pytest.approx(10.0)
    assert row.dep_expense == pytest.approx(100.0)
    assert row.ending_gross == pytest.approx(1010.0)
    assert row.ending_accum_dep == pytest.approx(100.0)
    assert row.net_ppe == pytest.approx(910.0)
    assert row.disposals == 0.0


@pytest.mark.parametrize('drivers, expected', [
    (StraightLineDepreciation(5), 200.0),
    (DecliningBalanceDepreciation(0.2), 120.0),
    (PercentOfGrossDepreciation(0.1), 100.0),
])
def test_depreciation_methods(drivers, expected):
    assert compute_depreciation(drivers, 1000.0, 400.0) == pytest.approx(expected)


def test_depreciation_capped_at_net_book_value():
    assert compute_depreciation(StraightLineDepreciation(2), 100.0, 95.0) == pytest.approx(5.0)
    assert compute_depreciation(StraightLineDepreciation(2), 100.0, 100.0) == 0.0


def test_useful_life_must_be_positive():
    with pytest.raises(ValueError):
        StraightLineDepreciation(0)


def test_growth_linked_capex():
    drivers = GrowthLinkedCapex(base=50.0, growth_multiplier=2.0)

    assert compute_capex(drivers, 110.0, None) == pytest.approx(50.0)
    assert compute_capex(drivers, 110.0, 0.0) == pytest.approx(50.0)
    assert compute_capex(drivers, 110.0, 100.0) == pytest.approx(60.0)


def test_unknown_capex_driver():
    with pytest.raises(UnsupportedDriverMethod):
        compute_capex(StraightLineDepreciation(5), 100.0)


def test_schedule_defaults_opening_gross():
    schedule = build_ppe_schedule(
        [3, 4], {3: 100.0, 4: 100.0}, FixedCapex(0.0), StraightLineDepreciation(10)
    )

    assert schedule.periods == (3, 4)
    assert schedule.beginning_gross[0] == DEFAULT_OPENING_GROSS_PPE
    assert schedule.beginning_accum_dep[0] == 0.0
    assert schedule.beginning_gross[1] == schedule.ending_gross[0]


def test_schedule_roll_forward_verifies():
    schedule = build_ppe_schedule(
        [1, 2, 3], {1: 100.0, 2: 120.0, 3: 90.0},
        GrowthLinkedCapex(base=20.0), DecliningBalanceDepreciation(0.15),
        PPEBalances(500.0, 100.0)
    )

    check = verify_ppe_roll_forward(schedule)
    assert check.passed
    assert check.error < 1e-6

    frame = schedule.to_dataframe()
    assert list(frame.index) == [1, 2, 3]
    assert frame.index.name == 'period'


def test_verify_detects_broken_roll_forward():
    schedule = build_ppe_schedule(
        [1], {1: 100.0}, FixedCapex(10.0), StraightLineDepreciation(10), PPEBalances(100.0)
    )
    broken = replace(schedule, ending_gross=(schedule.ending_gross[0] + 5.0,))

    check = verify_ppe_roll_forward(broken)
    assert not check.passed
    assert check.error == pytest.approx(5.0)
