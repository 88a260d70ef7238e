# src/forecast_engine/utils/config_loader.py
"""
Configuration Loader

Reads forecast assumptions and the historical baseline from YAML files or
plain dictionaries. Every driver block names its method tag:

    revenue:
      method: GROWTH_RATE
      annual_rate: 0.05
    costs:
      cogs: {method: PERCENT_OF_REVENUE, percent: 0.6}
      sga:  {method: FIXED_PLUS_VARIABLE, fixed_cost: 1.0e7, variable_percent: 0.1}

A single forecast file holds ``assumptions:``, ``baseline:`` and an
optional ``forecast_years:``.
"""

import logging
from dataclasses import MISSING, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from ..core.exceptions import InvalidBaseline, MissingDriverParameter, UnsupportedDriverMethod
from ..models.assumptions import (
    BuybackShares,
    CashSweep,
    CircularitySettings,
    CostDrivers,
    DaysInventoryOutstanding,
    DaysPayableOutstanding,
    DaysSalesOutstanding,
    DebtDrivers,
    DecliningBalanceDepreciation,
    DetailedSga,
    EffectiveTax,
    FixedAmount,
    FixedCapex,
    FixedDpsDividend,
    FixedPlusVariableCogs,
    FixedPlusVariableSga,
    FixedShares,
    ForecastAssumptions,
    GrowthLinkedCapex,
    GrowthRateRevenue,
    HistoricalBaseline,
    IssuanceShares,
    NoDividend,
    PayoutRatioDividend,
    PercentOfCogs,
    PercentOfGrossDepreciation,
    PercentOfRevenue,
    PercentOfRevenueCapex,
    PercentOfRevenueCost,
    PPEBalances,
    PriceVolumeRevenue,
    Revolver,
    Segment,
    SegmentRevenue,
    SolverMethod,
    StraightLineDepreciation,
    SweepPriority,
    TermDebt,
    UnitCostCogs,
    WorkingCapitalBalances,
    WorkingCapitalDrivers,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_FORECAST_YEARS = 5

# ============================================================================
# Method tag registries, per driver category
# ============================================================================

REVENUE_VARIANTS = {
    'GROWTH_RATE': GrowthRateRevenue,
    'PRICE_VOLUME': PriceVolumeRevenue,
    'SEGMENT': SegmentRevenue,
}

COGS_VARIANTS = {
    'PERCENT_OF_REVENUE': PercentOfRevenueCost,
    'FIXED_PLUS_VARIABLE': FixedPlusVariableCogs,
    'UNIT_COST': UnitCostCogs,
}

SGA_VARIANTS = {
    'PERCENT_OF_REVENUE': PercentOfRevenueCost,
    'FIXED_PLUS_VARIABLE': FixedPlusVariableSga,
    'DETAILED': DetailedSga,
}

AR_VARIANTS = {'DSO': DaysSalesOutstanding, 'PERCENT_OF_REVENUE': PercentOfRevenue}
INVENTORY_VARIANTS = {'DIO': DaysInventoryOutstanding, 'PERCENT_OF_COGS': PercentOfCogs}
AP_VARIANTS = {'DPO': DaysPayableOutstanding, 'PERCENT_OF_COGS': PercentOfCogs}
OTHER_WC_VARIANTS = {'PERCENT_OF_REVENUE': PercentOfRevenue, 'FIXED': FixedAmount}

CAPEX_VARIANTS = {
    'PERCENT_OF_REVENUE': PercentOfRevenueCapex,
    'FIXED': FixedCapex,
    'GROWTH_LINKED': GrowthLinkedCapex,
}

DEPRECIATION_VARIANTS = {
    'STRAIGHT_LINE': StraightLineDepreciation,
    'DECLINING_BALANCE': DecliningBalanceDepreciation,
    'PERCENT_OF_GROSS': PercentOfGrossDepreciation,
}

TAX_VARIANTS = {'EFFECTIVE_RATE': EffectiveTax}

DIVIDEND_VARIANTS = {
    'PAYOUT_RATIO': PayoutRatioDividend,
    'FIXED_DPS': FixedDpsDividend,
    'NONE': NoDividend,
}

SHARES_VARIANTS = {
    'FIXED': FixedShares,
    'BUYBACK': BuybackShares,
    'ISSUANCE': IssuanceShares,
}


@dataclass(frozen=True)
class ForecastConfig:
    """Everything needed for one forecast run."""
    assumptions: ForecastAssumptions
    baseline: HistoricalBaseline
    forecast_years: int = DEFAULT_FORECAST_YEARS


# ============================================================================
# Helpers
# ============================================================================

def _read_yaml(path: PathLike) -> Dict[str, Any]:
    path = Path(path)
    with path.open('r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: expected a mapping at the top level")

    logger.debug("Loaded configuration from %s", path)
    return dict(data)


def _construct(cls, label: str, values: Mapping[str, Any]):
    """
    Instantiate a driver dataclass from a mapping.

    Required fields absent from ``values`` raise MissingDriverParameter;
    keys that are not fields of ``cls`` raise ValueError.
    """
    known = {f.name: f for f in fields(cls) if f.init}
    unknown = set(values) - set(known)
    if unknown:
        raise ValueError(f"Unknown field(s) for {label}: {', '.join(sorted(unknown))}")

    for name, f in known.items():
        if f.default is MISSING and f.default_factory is MISSING and name not in values:
            raise MissingDriverParameter(label, name)

    return cls(**values)


def _variant(category: str, registry: Mapping[str, type], block: Optional[Mapping[str, Any]],
             default_method: Optional[str] = None):
    """Build the driver variant a ``{method: TAG, ...}`` block names."""
    if block is None:
        raise MissingDriverParameter(category, 'method')

    values = dict(block)
    method = values.pop('method', default_method)
    if method is None:
        raise MissingDriverParameter(category, 'method')

    tag = str(method).upper()
    if tag not in registry:
        raise UnsupportedDriverMethod(category, method)

    cls = registry[tag]

    if cls is SegmentRevenue and 'segments' in values:
        values['segments'] = tuple(
            _construct(Segment, 'segment', segment) for segment in values['segments'] or ()
        )

    return _construct(cls, tag, values)


def _optional_variant(category, registry, block):
    return None if block is None else _variant(category, registry, block)


# ============================================================================
# Assumptions
# ============================================================================

def _working_capital_from_dict(data: Optional[Mapping[str, Any]]) -> WorkingCapitalDrivers:
    if not data:
        return WorkingCapitalDrivers()

    kwargs = {}
    if 'ar' in data:
        kwargs['ar'] = _variant('accounts receivable', AR_VARIANTS, data['ar'])
    if 'inventory' in data:
        kwargs['inventory'] = _variant('inventory', INVENTORY_VARIANTS, data['inventory'])
    if 'ap' in data:
        kwargs['ap'] = _variant('accounts payable', AP_VARIANTS, data['ap'])
    kwargs['other_ca'] = _optional_variant(
        'other current assets', OTHER_WC_VARIANTS, data.get('other_ca'))
    kwargs['other_cl'] = _optional_variant(
        'other current liabilities', OTHER_WC_VARIANTS, data.get('other_cl'))

    return WorkingCapitalDrivers(**kwargs)


def _debt_from_dict(data: Optional[Mapping[str, Any]]) -> DebtDrivers:
    if not data:
        return DebtDrivers()

    term_debt = None
    if data.get('term_debt') is not None:
        term_debt = _construct(TermDebt, 'TERM_DEBT', data['term_debt'])

    revolver = None
    if data.get('revolver') is not None:
        revolver = _construct(Revolver, 'REVOLVER', data['revolver'])

    cash_sweep = None
    if data.get('cash_sweep') is not None:
        values = dict(data['cash_sweep'])
        if 'priority' in values:
            values['priority'] = SweepPriority(str(values['priority']).upper())
        cash_sweep = _construct(CashSweep, 'CASH_SWEEP', values)

    return DebtDrivers(term_debt=term_debt, revolver=revolver, cash_sweep=cash_sweep)


def _circularity_from_dict(data: Optional[Mapping[str, Any]]) -> CircularitySettings:
    if not data:
        return CircularitySettings()

    values = dict(data)
    if 'method' in values:
        try:
            values['method'] = SolverMethod(str(values['method']).upper())
        except ValueError:
            raise UnsupportedDriverMethod('circularity', data['method']) from None

    return _construct(CircularitySettings, 'circularity', values)


def assumptions_from_dict(data: Mapping[str, Any]) -> ForecastAssumptions:
    """
    Build ForecastAssumptions from a plain mapping.

    Args:
        data: Mapping with the driver blocks ``revenue``, ``costs``
            (``cogs`` and ``sga``), ``capex`` and ``ppe``, and optionally
            ``working_capital``, ``debt``, ``tax``, ``dividend``,
            ``shares``, ``circularity``, ``version``, ``notes``

    Returns:
        ForecastAssumptions

    Raises:
        UnsupportedDriverMethod: If a block names an unknown method
        MissingDriverParameter: If a block lacks a field its method needs
    """
    costs = data.get('costs') or {}

    kwargs = dict(
        revenue=_variant('revenue', REVENUE_VARIANTS, data.get('revenue')),
        costs=CostDrivers(
            cogs=_variant('COGS', COGS_VARIANTS, costs.get('cogs')),
            sga=_variant('SG&A', SGA_VARIANTS, costs.get('sga')),
        ),
        capex=_variant('capex', CAPEX_VARIANTS, data.get('capex')),
        ppe=_variant('depreciation', DEPRECIATION_VARIANTS, data.get('ppe')),
        working_capital=_working_capital_from_dict(data.get('working_capital')),
        debt=_debt_from_dict(data.get('debt')),
        circularity=_circularity_from_dict(data.get('circularity')),
        shares=_optional_variant('shares', SHARES_VARIANTS, data.get('shares')),
    )

    if data.get('tax') is not None:
        kwargs['tax'] = _variant('tax', TAX_VARIANTS, data['tax'], default_method='EFFECTIVE_RATE')
    if data.get('dividend') is not None:
        kwargs['dividend'] = _variant('dividend', DIVIDEND_VARIANTS, data['dividend'])

    for key in ('version', 'created_at', 'notes'):
        if key in data:
            kwargs[key] = data[key]

    return ForecastAssumptions(**kwargs)


def load_assumptions(path: PathLike) -> ForecastAssumptions:
    """Load ForecastAssumptions from a YAML file."""
    return assumptions_from_dict(_read_yaml(path))


# ============================================================================
# Baseline
# ============================================================================

def baseline_from_dict(data: Mapping[str, Any]) -> HistoricalBaseline:
    """
    Build a HistoricalBaseline from a plain mapping.

    ``working_capital`` and ``ppe`` are nested mappings of balances; all
    other keys are HistoricalBaseline fields.

    Raises:
        InvalidBaseline: If the mapping has no revenue history or an
            unknown key
    """
    values = dict(data)

    if not values.get('revenue'):
        raise InvalidBaseline("Baseline requires a non-empty revenue history")

    if values.get('working_capital') is not None:
        values['working_capital'] = WorkingCapitalBalances(**values['working_capital'])
    else:
        values.pop('working_capital', None)

    if values.get('ppe') is not None:
        values['ppe'] = PPEBalances(**values['ppe'])

    allowed = {f.name for f in fields(HistoricalBaseline)}
    unknown = set(values) - allowed
    if unknown:
        raise InvalidBaseline(f"Unknown baseline field(s): {', '.join(sorted(unknown))}")

    return HistoricalBaseline(**values)


def load_baseline(path: PathLike) -> HistoricalBaseline:
    """Load a HistoricalBaseline from a YAML file."""
    return baseline_from_dict(_read_yaml(path))


def load_forecast_config(path: PathLike) -> ForecastConfig:
    """
    Load assumptions and baseline from one YAML file.

    Args:
        path: File with top-level ``assumptions`` and ``baseline`` keys and
            an optional ``forecast_years``

    Returns:
        ForecastConfig
    """
    data = _read_yaml(path)

    for key in ('assumptions', 'baseline'):
        if key not in data:
            raise ValueError(f"{path}: missing top-level '{key}' section")

    return ForecastConfig(
        assumptions=assumptions_from_dict(data['assumptions']),
        baseline=baseline_from_dict(data['baseline']),
        forecast_years=int(data.get('forecast_years', DEFAULT_FORECAST_YEARS))
    )
