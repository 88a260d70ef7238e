# src/forecast_engine/utils/ratios.py
"""
Diagnostic Ratios

Working capital turnover, coverage and margin ratios computed from
forecast output. Ratios with a zero denominator return a sentinel rather
than raising: 0 for turnover days and margins, NO_DEBT_SERVICE_SENTINEL
for coverage and leverage.
"""

from typing import Dict, Optional

DAYS_IN_YEAR = 365

# Reported when a coverage or leverage ratio is unbounded
NO_DEBT_SERVICE_SENTINEL = 999.0


# ============================================================================
# Working capital
# ============================================================================

def calculate_dso(ar: float, revenue: float) -> float:
    """
    Days sales outstanding.

    Formula: DSO = AR / Revenue x 365

    Examples:
        >>> calculate_dso(100.0, 365.0)
        100.0
    """
    if revenue == 0:
        return 0.0
    return ar / revenue * DAYS_IN_YEAR


def calculate_dio(inventory: float, cogs: float) -> float:
    """Days inventory outstanding: Inventory / COGS x 365."""
    if cogs == 0:
        return 0.0
    return inventory / cogs * DAYS_IN_YEAR


def calculate_dpo(ap: float, cogs: float) -> float:
    """Days payable outstanding: AP / COGS x 365."""
    if cogs == 0:
        return 0.0
    return ap / cogs * DAYS_IN_YEAR


def calculate_cash_conversion_cycle(dso: float, dio: float, dpo: float) -> float:
    """CCC = DSO + DIO - DPO."""
    return dso + dio - dpo


# ============================================================================
# Debt
# ============================================================================

def calculate_dscr(
    ebitda: float,
    capex: float,
    taxes: float,
    interest: float,
    principal_repayment: float
) -> float:
    """
    Debt service coverage ratio.

    Formula: DSCR = (EBITDA - Capex - Taxes) / (Interest + Principal)

    Args:
        ebitda: Period EBITDA
        capex: Period capital expenditure
        taxes: Period cash taxes
        interest: Period interest expense
        principal_repayment: Period debt repayment

    Returns:
        DSCR, or NO_DEBT_SERVICE_SENTINEL when there is no debt service
    """
    debt_service = interest + principal_repayment
    if debt_service == 0:
        return NO_DEBT_SERVICE_SENTINEL
    return (ebitda - capex - taxes) / debt_service


def calculate_net_debt(total_debt: float, cash: float) -> float:
    return total_debt - cash


def calculate_net_debt_to_ebitda(net_debt: float, ebitda: float) -> float:
    """Net debt / EBITDA; NO_DEBT_SERVICE_SENTINEL when EBITDA is zero."""
    if ebitda == 0:
        return NO_DEBT_SERVICE_SENTINEL
    return net_debt / ebitda


# ============================================================================
# Margins
# ============================================================================

def calculate_operating_margin(
    revenue: Dict[int, float],
    cogs: Dict[int, float],
    sga: Dict[int, float],
    da: Optional[Dict[int, float]] = None
) -> Dict[int, float]:
    """
    Operating (EBIT) margin per period.

    Formula: (Revenue - COGS - SG&A - D&A) / Revenue

    Args:
        revenue: Mapping of period to revenue
        cogs: Mapping of period to COGS (missing periods count as 0)
        sga: Mapping of period to SG&A (missing periods count as 0)
        da: Optional mapping of period to depreciation and amortization

    Returns:
        Mapping of period to margin; 0 where revenue is 0
    """
    da = da or {}
    margins = {}
    for period, rev in revenue.items():
        ebit = rev - cogs.get(period, 0.0) - sga.get(period, 0.0) - da.get(period, 0.0)
        margins[period] = ebit / rev if rev else 0.0
    return margins


def calculate_ebitda_margin(
    revenue: Dict[int, float],
    cogs: Dict[int, float],
    sga: Dict[int, float]
) -> Dict[int, float]:
    """EBITDA margin per period; 0 where revenue is 0."""
    return calculate_operating_margin(revenue, cogs, sga)
