# src/forecast_engine/models/assumptions.py
"""
Forecast Assumptions

Declarative driver configuration for the forecast engine. Each driver
category is a closed family of frozen dataclasses, one per method, and
each variant carries only the fields its own method uses. A variant's
method tag lives on the class (``method``) so that schedulers can
dispatch on the object and report the tag in errors.

Required fields are positional; passing ``None`` for one raises
MissingDriverParameter.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Mapping, Optional, Sequence, Tuple, Union

from ..core.exceptions import MissingDriverParameter


def _require(driver, *names: str) -> None:
    """Raise MissingDriverParameter for the first required field left as None."""
    for name in names:
        if getattr(driver, name) is None:
            raise MissingDriverParameter(driver.method.value, name)


# ============================================================================
# Method tags
# ============================================================================

class RevenueMethod(Enum):
    GROWTH_RATE = "GROWTH_RATE"
    PRICE_VOLUME = "PRICE_VOLUME"
    SEGMENT = "SEGMENT"


class CostMethod(Enum):
    PERCENT_OF_REVENUE = "PERCENT_OF_REVENUE"
    FIXED_PLUS_VARIABLE = "FIXED_PLUS_VARIABLE"
    UNIT_COST = "UNIT_COST"
    DETAILED = "DETAILED"


class WorkingCapitalMethod(Enum):
    DSO = "DSO"
    DIO = "DIO"
    DPO = "DPO"
    PERCENT_OF_REVENUE = "PERCENT_OF_REVENUE"
    PERCENT_OF_COGS = "PERCENT_OF_COGS"
    FIXED = "FIXED"


class CapexMethod(Enum):
    PERCENT_OF_REVENUE = "PERCENT_OF_REVENUE"
    FIXED = "FIXED"
    GROWTH_LINKED = "GROWTH_LINKED"


class DepreciationMethod(Enum):
    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"
    PERCENT_OF_GROSS = "PERCENT_OF_GROSS"


class SweepPriority(Enum):
    REVOLVER_FIRST = "REVOLVER_FIRST"
    TERM_FIRST = "TERM_FIRST"


class TaxMethod(Enum):
    EFFECTIVE_RATE = "EFFECTIVE_RATE"


class DividendMethod(Enum):
    PAYOUT_RATIO = "PAYOUT_RATIO"
    FIXED_DPS = "FIXED_DPS"
    NONE = "NONE"


class SharesMethod(Enum):
    FIXED = "FIXED"
    BUYBACK = "BUYBACK"
    ISSUANCE = "ISSUANCE"


class SolverMethod(Enum):
    ITERATIVE = "ITERATIVE"
    CLOSED_FORM = "CLOSED_FORM"


# ============================================================================
# Revenue drivers
# ============================================================================

@dataclass(frozen=True)
class GrowthRateRevenue:
    """
    Grow the last historical revenue by a rate.

    ``by_period`` maps a period index to a rate that overrides
    ``annual_rate`` for that period. With ``compound`` the running revenue
    is multiplied by (1 + rate) each period; otherwise the base is scaled
    by (1 + rate * periods elapsed).
    """
    annual_rate: float = 0.0
    by_period: Mapping[int, float] = field(default_factory=dict)
    compound: bool = True

    method: ClassVar[RevenueMethod] = RevenueMethod.GROWTH_RATE

    def rate_for(self, period: int) -> float:
        if period in self.by_period:
            return self.by_period[period]
        return self.annual_rate if self.annual_rate is not None else 0.0


@dataclass(frozen=True)
class PriceVolumeRevenue:
    """Revenue = price x volume, each compounding its own growth rate."""
    base_price: float
    base_volume: float
    price_growth: float = 0.0
    volume_growth: float = 0.0

    method: ClassVar[RevenueMethod] = RevenueMethod.PRICE_VOLUME

    def __post_init__(self):
        _require(self, 'base_price', 'base_volume', 'price_growth', 'volume_growth')


@dataclass(frozen=True)
class Segment:
    """One independently growing revenue segment."""
    name: str
    base_revenue: float
    growth_rate: float
    weight: Optional[float] = None


@dataclass(frozen=True)
class SegmentRevenue:
    """Sum of segments, each compounding from its own base."""
    segments: Tuple[Segment, ...]

    method: ClassVar[RevenueMethod] = RevenueMethod.SEGMENT

    def __post_init__(self):
        _require(self, 'segments')
        object.__setattr__(self, 'segments', tuple(self.segments))
        if not self.segments:
            raise MissingDriverParameter(self.method.value, 'segments')


RevenueDrivers = Union[GrowthRateRevenue, PriceVolumeRevenue, SegmentRevenue]


# ============================================================================
# Cost drivers
# ============================================================================

@dataclass(frozen=True)
class PercentOfRevenueCost:
    """Cost line = revenue x percent. Valid for both COGS and SG&A."""
    percent: float

    method: ClassVar[CostMethod] = CostMethod.PERCENT_OF_REVENUE

    def __post_init__(self):
        _require(self, 'percent')


@dataclass(frozen=True)
class FixedPlusVariableCogs:
    """
    COGS = fixed cost + variable cost per unit x volume.

    Without a volume series the variable part falls back to 50% of revenue.
    """
    fixed_cost: float
    variable_cost_per_unit: float

    method: ClassVar[CostMethod] = CostMethod.FIXED_PLUS_VARIABLE

    def __post_init__(self):
        _require(self, 'fixed_cost', 'variable_cost_per_unit')


@dataclass(frozen=True)
class UnitCostCogs:
    """COGS = variable cost per unit x volume. Needs a volume series."""
    variable_cost_per_unit: float

    method: ClassVar[CostMethod] = CostMethod.UNIT_COST

    def __post_init__(self):
        _require(self, 'variable_cost_per_unit')


@dataclass(frozen=True)
class FixedPlusVariableSga:
    """SG&A = fixed cost + revenue x variable percent."""
    fixed_cost: float
    variable_percent: float

    method: ClassVar[CostMethod] = CostMethod.FIXED_PLUS_VARIABLE

    def __post_init__(self):
        _require(self, 'fixed_cost', 'variable_percent')


@dataclass(frozen=True)
class DetailedSga:
    """SG&A as the sum of explicit sub-lines."""
    sales_and_marketing: float
    general_and_admin: float
    rd: float = 0.0

    method: ClassVar[CostMethod] = CostMethod.DETAILED

    def __post_init__(self):
        _require(self, 'sales_and_marketing', 'general_and_admin')


CogsDrivers = Union[PercentOfRevenueCost, FixedPlusVariableCogs, UnitCostCogs]
SgaDrivers = Union[PercentOfRevenueCost, FixedPlusVariableSga, DetailedSga]


@dataclass(frozen=True)
class CostDrivers:
    cogs: CogsDrivers
    sga: SgaDrivers


# ============================================================================
# Working capital drivers
# ============================================================================
# Unset values fall back to the scheduler's industry defaults.

@dataclass(frozen=True)
class DaysSalesOutstanding:
    days: Optional[float] = None

    method: ClassVar[WorkingCapitalMethod] = WorkingCapitalMethod.DSO


@dataclass(frozen=True)
class DaysInventoryOutstanding:
    days: Optional[float] = None

    method: ClassVar[WorkingCapitalMethod] = WorkingCapitalMethod.DIO


@dataclass(frozen=True)
class DaysPayableOutstanding:
    days: Optional[float] = None

    method: ClassVar[WorkingCapitalMethod] = WorkingCapitalMethod.DPO


@dataclass(frozen=True)
class PercentOfRevenue:
    percent: Optional[float] = None

    method: ClassVar[WorkingCapitalMethod] = WorkingCapitalMethod.PERCENT_OF_REVENUE


@dataclass(frozen=True)
class PercentOfCogs:
    percent: Optional[float] = None

    method: ClassVar[WorkingCapitalMethod] = WorkingCapitalMethod.PERCENT_OF_COGS


@dataclass(frozen=True)
class FixedAmount:
    amount: Optional[float] = None

    method: ClassVar[WorkingCapitalMethod] = WorkingCapitalMethod.FIXED


@dataclass(frozen=True)
class WorkingCapitalDrivers:
    """Per-line working capital drivers. Other CA/CL are optional."""
    ar: Union[DaysSalesOutstanding, PercentOfRevenue] = field(default_factory=DaysSalesOutstanding)
    inventory: Union[DaysInventoryOutstanding, PercentOfCogs] = field(default_factory=DaysInventoryOutstanding)
    ap: Union[DaysPayableOutstanding, PercentOfCogs] = field(default_factory=DaysPayableOutstanding)
    other_ca: Optional[Union[PercentOfRevenue, FixedAmount]] = None
    other_cl: Optional[Union[PercentOfRevenue, FixedAmount]] = None


# ============================================================================
# Capex & PP&E drivers
# ============================================================================

@dataclass(frozen=True)
class PercentOfRevenueCapex:
    percent: float

    method: ClassVar[CapexMethod] = CapexMethod.PERCENT_OF_REVENUE

    def __post_init__(self):
        _require(self, 'percent')


@dataclass(frozen=True)
class FixedCapex:
    amount: float

    method: ClassVar[CapexMethod] = CapexMethod.FIXED

    def __post_init__(self):
        _require(self, 'amount')


@dataclass(frozen=True)
class GrowthLinkedCapex:
    """Capex = base x (1 + revenue growth x multiplier)."""
    base: float
    growth_multiplier: float = 1.0

    method: ClassVar[CapexMethod] = CapexMethod.GROWTH_LINKED

    def __post_init__(self):
        _require(self, 'base', 'growth_multiplier')


CapexDrivers = Union[PercentOfRevenueCapex, FixedCapex, GrowthLinkedCapex]


@dataclass(frozen=True)
class StraightLineDepreciation:
    """Depreciation = beginning gross PP&E / useful life."""
    useful_life: float

    method: ClassVar[DepreciationMethod] = DepreciationMethod.STRAIGHT_LINE

    def __post_init__(self):
        _require(self, 'useful_life')
        if self.useful_life <= 0:
            raise ValueError(f"useful_life must be positive, got {self.useful_life}")


@dataclass(frozen=True)
class DecliningBalanceDepreciation:
    """Depreciation = beginning net book value x rate."""
    rate: float

    method: ClassVar[DepreciationMethod] = DepreciationMethod.DECLINING_BALANCE

    def __post_init__(self):
        _require(self, 'rate')


@dataclass(frozen=True)
class PercentOfGrossDepreciation:
    """Depreciation = beginning gross PP&E x rate."""
    rate: float

    method: ClassVar[DepreciationMethod] = DepreciationMethod.PERCENT_OF_GROSS

    def __post_init__(self):
        _require(self, 'rate')


PPEDrivers = Union[
    StraightLineDepreciation,
    DecliningBalanceDepreciation,
    PercentOfGrossDepreciation,
]


# ============================================================================
# Debt drivers
# ============================================================================

@dataclass(frozen=True)
class TermDebt:
    """
    Term loan terms.

    Args:
        interest_rate: Rate applied to the average balance of each period
        opening_balance: Balance entering the forecast (None: use baseline)
        maturity_period: 1-based forecast period in which the remaining
            balance is repaid in full (None: beyond the horizon)
        amortization_schedule: Scheduled principal repayment per forecast period
    """
    interest_rate: float
    opening_balance: Optional[float] = None
    maturity_period: Optional[int] = None
    amortization_schedule: Tuple[float, ...] = ()

    def __post_init__(self):
        if self.interest_rate is None:
            raise MissingDriverParameter('TERM_DEBT', 'interest_rate')
        object.__setattr__(self, 'amortization_schedule', tuple(self.amortization_schedule))


@dataclass(frozen=True)
class Revolver:
    """Revolving credit facility used as the cash plug."""
    capacity: float
    interest_rate: float
    minimum_cash: float = 0.0
    commitment_fee: float = 0.0

    def __post_init__(self):
        for name in ('capacity', 'interest_rate'):
            if getattr(self, name) is None:
                raise MissingDriverParameter('REVOLVER', name)
        if self.capacity < 0:
            raise ValueError(f"Revolver capacity cannot be negative, got {self.capacity}")


@dataclass(frozen=True)
class CashSweep:
    """Apply a share of cash above a threshold to debt paydown."""
    excess_cash_threshold: float
    sweep_percent: float = 1.0
    priority: SweepPriority = SweepPriority.REVOLVER_FIRST
    enabled: bool = True

    def __post_init__(self):
        if self.excess_cash_threshold is None:
            raise MissingDriverParameter('CASH_SWEEP', 'excess_cash_threshold')
        if not 0 <= self.sweep_percent <= 1:
            raise ValueError(f"sweep_percent must be between 0 and 1, got {self.sweep_percent}")


@dataclass(frozen=True)
class DebtDrivers:
    term_debt: Optional[TermDebt] = None
    revolver: Optional[Revolver] = None
    cash_sweep: Optional[CashSweep] = None

    @property
    def revolver_capacity(self) -> float:
        return self.revolver.capacity if self.revolver else 0.0

    @property
    def minimum_cash(self) -> float:
        return self.revolver.minimum_cash if self.revolver else 0.0


# ============================================================================
# Tax, dividend, shares
# ============================================================================

@dataclass(frozen=True)
class EffectiveTax:
    rate: float = 0.22

    method: ClassVar[TaxMethod] = TaxMethod.EFFECTIVE_RATE

    def __post_init__(self):
        _require(self, 'rate')


@dataclass(frozen=True)
class PayoutRatioDividend:
    """Dividends = positive net income x payout ratio."""
    payout_ratio: float

    method: ClassVar[DividendMethod] = DividendMethod.PAYOUT_RATIO

    def __post_init__(self):
        _require(self, 'payout_ratio')


@dataclass(frozen=True)
class FixedDpsDividend:
    """Dividends = dividend per share x shares outstanding."""
    dividend_per_share: float

    method: ClassVar[DividendMethod] = DividendMethod.FIXED_DPS

    def __post_init__(self):
        _require(self, 'dividend_per_share')


@dataclass(frozen=True)
class NoDividend:
    method: ClassVar[DividendMethod] = DividendMethod.NONE


DividendAssumptions = Union[PayoutRatioDividend, FixedDpsDividend, NoDividend]


@dataclass(frozen=True)
class FixedShares:
    base_shares: float

    method: ClassVar[SharesMethod] = SharesMethod.FIXED

    def __post_init__(self):
        _require(self, 'base_shares')

    def shares_at(self, position: int) -> float:
        return self.base_shares


@dataclass(frozen=True)
class BuybackShares:
    base_shares: float
    per_period: float

    method: ClassVar[SharesMethod] = SharesMethod.BUYBACK

    def __post_init__(self):
        _require(self, 'base_shares', 'per_period')

    def shares_at(self, position: int) -> float:
        return max(self.base_shares - self.per_period * position, 0.0)


@dataclass(frozen=True)
class IssuanceShares:
    base_shares: float
    per_period: float

    method: ClassVar[SharesMethod] = SharesMethod.ISSUANCE

    def __post_init__(self):
        _require(self, 'base_shares', 'per_period')

    def shares_at(self, position: int) -> float:
        return self.base_shares + self.per_period * position


SharesAssumptions = Union[FixedShares, BuybackShares, IssuanceShares]


# ============================================================================
# Circularity settings & full assumption set
# ============================================================================

@dataclass(frozen=True)
class CircularitySettings:
    method: SolverMethod = SolverMethod.ITERATIVE
    max_iterations: int = 20
    tolerance: float = 1.0

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")


@dataclass(frozen=True)
class ForecastAssumptions:
    """Complete driver tree for one forecast run."""
    revenue: RevenueDrivers
    costs: CostDrivers
    capex: CapexDrivers
    ppe: PPEDrivers
    working_capital: WorkingCapitalDrivers = field(default_factory=WorkingCapitalDrivers)
    debt: DebtDrivers = field(default_factory=DebtDrivers)
    tax: EffectiveTax = field(default_factory=EffectiveTax)
    dividend: DividendAssumptions = field(default_factory=NoDividend)
    shares: Optional[SharesAssumptions] = None
    circularity: CircularitySettings = field(default_factory=CircularitySettings)

    # Metadata
    version: str = "1.0"
    created_at: Optional[datetime] = None
    notes: str = ""


# ============================================================================
# Historical baseline
# ============================================================================

@dataclass(frozen=True)
class WorkingCapitalBalances:
    """Working capital line balances at a period end."""
    ar: float = 0.0
    inventory: float = 0.0
    other_ca: float = 0.0
    ap: float = 0.0
    other_cl: float = 0.0

    @property
    def nwc(self) -> float:
        return self.ar + self.inventory + self.other_ca - self.ap - self.other_cl


@dataclass(frozen=True)
class PPEBalances:
    """Gross PP&E and accumulated depreciation at a period end."""
    gross: float
    accumulated_depreciation: float = 0.0

    @property
    def net(self) -> float:
        return self.gross - self.accumulated_depreciation


@dataclass(frozen=True)
class HistoricalBaseline:
    """
    Closing position of the last historical period.

    Supplied by the data layer; the engine does not validate where the
    figures came from.
    """
    revenue: Sequence[float]
    cogs: Sequence[float] = ()
    working_capital: WorkingCapitalBalances = field(default_factory=WorkingCapitalBalances)
    ppe: Optional[PPEBalances] = None
    term_debt: float = 0.0
    revolver: float = 0.0
    cash: float = 0.0
    retained_earnings: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'revenue', tuple(self.revenue))
        object.__setattr__(self, 'cogs', tuple(self.cogs))

    @property
    def historical_periods(self) -> int:
        return len(self.revenue)

    @property
    def base_revenue(self) -> float:
        return self.revenue[-1] if self.revenue else 0.0
