# tests/test_working_capital.py
from dataclasses import replace

import pytest

from forecast_engine.core.exceptions import UnsupportedDriverMethod
from forecast_engine.models.assumptions import (
    DaysInventoryOutstanding,
    DaysPayableOutstanding,
    DaysSalesOutstanding,
    FixedAmount,
    PercentOfCogs,
    PercentOfRevenue,
    WorkingCapitalBalances,
    WorkingCapitalDrivers,
)
from forecast_engine.models.working_capital import (
    build_working_capital_schedule,
    roll_forward_working_capital,
    verify_nwc_identity,
)


def test_days_based_balances():
    drivers = WorkingCapitalDrivers(
        ar=DaysSalesOutstanding(73),
        inventory=DaysInventoryOutstanding(36.5),
        ap=DaysPayableOutstanding(18.25),
    )
    row = roll_forward_working_capital(WorkingCapitalBalances(), 365.0, 200.0, drivers)

    assert row.ar == pytest.approx(73.0)
    assert row.inventory == pytest.approx(20.0)
    assert row.ap == pytest.approx(10.0)
    assert row.other_ca == 0.0
    assert row.other_cl == 0.0
    assert row.nwc == pytest.approx(83.0)


def test_unset_days_use_defaults():
    row = roll_forward_working_capital(WorkingCapitalBalances(), 365.0, 365.0, WorkingCapitalDrivers())

    assert row.ar == pytest.approx(45.0)
    assert row.inventory == pytest.approx(60.0)
    assert row.ap == pytest.approx(30.0)


def test_zero_percent_is_not_replaced_by_default():
    drivers = WorkingCapitalDrivers(
        ar=PercentOfRevenue(0.0),
        inventory=PercentOfCogs(0.0),
        ap=PercentOfCogs(None),
        other_ca=FixedAmount(7.0),
        other_cl=PercentOfRevenue(),
    )
    row = roll_forward_working_capital(WorkingCapitalBalances(), 100.0, 50.0, drivers)

    assert row.ar == 0.0
    assert row.inventory == 0.0
    assert row.ap == pytest.approx(4.0)
    assert row.other_ca == pytest.approx(7.0)
    assert row.other_cl == pytest.approx(3.0)


def test_change_in_nwc_against_prior_balances():
    prior = WorkingCapitalBalances(ar=10.0, inventory=5.0, ap=3.0)
    drivers = WorkingCapitalDrivers(
        ar=PercentOfRevenue(0.1), inventory=PercentOfCogs(0.1), ap=PercentOfCogs(0.05)
    )
    row = roll_forward_working_capital(prior, 200.0, 100.0, drivers)

    assert row.nwc == pytest.approx(25.0)
    assert row.change_in_nwc == pytest.approx(25.0 - 12.0)


def test_variant_not_allowed_for_line():
    drivers = WorkingCapitalDrivers(ar=FixedAmount(5.0))
    with pytest.raises(UnsupportedDriverMethod):
        roll_forward_working_capital(WorkingCapitalBalances(), 100.0, 50.0, drivers)


def test_schedule_nwc_identity_is_exact():
    revenue = {1: 1000.0, 2: 1100.0, 3: 1210.0}
    cogs = {p: r * 0.6 for p, r in revenue.items()}
    drivers = WorkingCapitalDrivers(other_ca=PercentOfRevenue(), other_cl=PercentOfRevenue())

    schedule = build_working_capital_schedule(
        [1, 2, 3], revenue, cogs, drivers, WorkingCapitalBalances(ar=100.0, ap=50.0)
    )

    check = verify_nwc_identity(schedule)
    assert check.passed
    assert check.error == 0.0
    assert schedule.change_in_nwc[0] == pytest.approx(schedule.nwc[0] - 50.0)
    for i in (1, 2):
        assert schedule.change_in_nwc[i] == pytest.approx(schedule.nwc[i] - schedule.nwc[i - 1])


def test_nwc_identity_detects_mismatch():
    schedule = build_working_capital_schedule(
        [1], {1: 100.0}, {1: 50.0}, WorkingCapitalDrivers()
    )
    broken = replace(schedule, nwc=(schedule.nwc[0] + 0.01,))

    assert not verify_nwc_identity(broken).passed
