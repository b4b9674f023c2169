"""
Progressive federal tax brackets by filing status.
Computes tax owed, marginal and effective rates, and per-bracket breakdowns.
"""
import math
from enum import Enum
from typing import Dict, List, Tuple, Union

import pandas as pd

from errors import InvalidInputError


class FilingStatus(str, Enum):
    SINGLE = "single"
    MARRIED_FILING_JOINTLY = "married-filing-jointly"
    MARRIED_FILING_SEPARATELY = "married-filing-separately"
    HEAD_OF_HOUSEHOLD = "head-of-household"


FILING_STATUS_LABELS = {
    FilingStatus.SINGLE: "Single",
    FilingStatus.MARRIED_FILING_JOINTLY: "Married Filing Jointly",
    FilingStatus.MARRIED_FILING_SEPARATELY: "Married Filing Separately",
    FilingStatus.HEAD_OF_HOUSEHOLD: "Head of Household",
}

Bracket = Tuple[float, float, float]

# 2024 brackets (simplified): (lower_bound, upper_bound, rate)
TAX_BRACKETS: Dict[FilingStatus, Tuple[Bracket, ...]] = {
    FilingStatus.SINGLE: (
        (0, 11_600, 0.10),
        (11_600, 47_150, 0.12),
        (47_150, 100_525, 0.22),
        (100_525, 191_050, 0.24),
        (191_050, 365_600, 0.32),
        (365_600, 462_750, 0.35),
        (462_750, math.inf, 0.37),
    ),
    FilingStatus.MARRIED_FILING_JOINTLY: (
        (0, 23_200, 0.10),
        (23_200, 94_300, 0.12),
        (94_300, 201_050, 0.22),
        (201_050, 383_900, 0.24),
        (383_900, 487_450, 0.32),
        (487_450, 731_200, 0.35),
        (731_200, math.inf, 0.37),
    ),
    FilingStatus.MARRIED_FILING_SEPARATELY: (
        (0, 11_600, 0.10),
        (11_600, 47_150, 0.12),
        (47_150, 100_525, 0.22),
        (100_525, 191_950, 0.24),
        (191_950, 243_725, 0.32),
        (243_725, 609_350, 0.35),
        (609_350, math.inf, 0.37),
    ),
    FilingStatus.HEAD_OF_HOUSEHOLD: (
        (0, 16_550, 0.10),
        (16_550, 63_100, 0.12),
        (63_100, 100_500, 0.22),
        (100_500, 191_050, 0.24),
        (191_050, 365_600, 0.32),
        (365_600, 462_750, 0.35),
        (462_750, math.inf, 0.37),
    ),
}


def parse_filing_status(filing_status: Union[str, FilingStatus]) -> FilingStatus:
    """
    Resolve a filing status tag to its enum member.

    Raises:
        InvalidInputError: if the tag is not one of the four known statuses
    """
    if isinstance(filing_status, FilingStatus):
        return filing_status
    try:
        return FilingStatus(filing_status)
    except ValueError:
        valid = ", ".join(status.value for status in FilingStatus)
        raise InvalidInputError(
            f"Unknown filing status {filing_status!r}; expected one of: {valid}"
        ) from None


def get_brackets(filing_status: Union[str, FilingStatus]) -> Tuple[Bracket, ...]:
    """Get the bracket table for a filing status"""
    return TAX_BRACKETS[parse_filing_status(filing_status)]


def calculate_tax(taxable_income: float, filing_status: Union[str, FilingStatus]) -> float:
    """
    Calculate tax using progressive brackets.

    Only the slice of income inside each bracket is taxed at that bracket's rate.
    Zero or negative income owes nothing since no bracket lower bound is exceeded.

    Args:
        taxable_income: Income subject to tax
        filing_status: One of the FilingStatus tags

    Returns:
        Total tax owed
    """
    brackets = get_brackets(filing_status)

    tax = 0.0
    for lower, upper, rate in brackets:
        if taxable_income > lower:
            income_in_bracket = min(taxable_income - lower, upper - lower)
            tax += income_in_bracket * rate

    return tax


def marginal_tax_rate(taxable_income: float, filing_status: Union[str, FilingStatus]) -> float:
    """
    Calculate marginal tax rate at given income level.

    Returns:
        Rate of the bracket containing the top dollar of income
    """
    brackets = get_brackets(filing_status)

    if taxable_income <= 0:
        return 0.0

    current_rate = 0.0
    for lower, _, rate in brackets:
        if taxable_income > lower:
            current_rate = rate
        else:
            break

    return current_rate


def effective_tax_rate(taxable_income: float, filing_status: Union[str, FilingStatus]) -> float:
    """Calculate tax owed as a fraction of taxable income"""
    if taxable_income <= 0:
        # still validate the status
        get_brackets(filing_status)
        return 0.0

    return calculate_tax(taxable_income, filing_status) / taxable_income


def cumulative_tax_at_bounds(filing_status: Union[str, FilingStatus]) -> List[Tuple[float, float]]:
    """
    Tax owed at the top of every finite bracket.

    Returns:
        List of (upper_bound, tax_owed) pairs in ascending order
    """
    cumulative = []
    running = 0.0
    for lower, upper, rate in get_brackets(filing_status):
        if math.isinf(upper):
            break
        running += (upper - lower) * rate
        cumulative.append((upper, running))
    return cumulative


def bracket_breakdown(taxable_income: float, filing_status: Union[str, FilingStatus]) -> pd.DataFrame:
    """
    Per-bracket breakdown of the tax owed.

    Args:
        taxable_income: Income subject to tax
        filing_status: One of the FilingStatus tags

    Returns:
        DataFrame with lower_bound, upper_bound, rate, taxable_amount and tax columns,
        one row per bracket
    """
    rows = []
    for lower, upper, rate in get_brackets(filing_status):
        taxable_amount = max(0.0, min(taxable_income - lower, upper - lower))
        rows.append({
            'lower_bound': lower,
            'upper_bound': upper,
            'rate': rate,
            'taxable_amount': taxable_amount,
            'tax': taxable_amount * rate,
        })

    return pd.DataFrame(rows, columns=['lower_bound', 'upper_bound', 'rate', 'taxable_amount', 'tax'])
