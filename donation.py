"""
Charitable donation tax savings calculators.

estimate_savings compares tax owed with and without a donation deduction.
recommend_donation works backwards from a target savings amount using a flat
marginal-rate estimate, then verifies the estimate against the bracket engine.
solve_required_donation finds the exact donation by bisection.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from errors import DivisionByZeroError
from tax import FilingStatus, calculate_tax, get_brackets

logger = logging.getLogger(__name__)

# Recommend the heuristic donation when verified savings reach this share of the target
TARGET_ACCEPTANCE_RATIO = 0.9

# (income threshold, estimated marginal rate), checked top-down against gross income.
# Maintained separately from TAX_BRACKETS and shared by every filing status.
MARGINAL_RATE_THRESHOLDS: Tuple[Tuple[float, float], ...] = (
    (100_000, 0.24),
    (50_000, 0.22),
)
BASE_MARGINAL_RATE = 0.12

NO_SAVINGS_RECOMMENDATION = (
    "Consider consulting with a tax professional to optimize your donation strategy."
)
MULTI_YEAR_RECOMMENDATION = (
    "Your target tax savings may require a larger donation than expected. "
    "Consider spreading donations across multiple years."
)


@dataclass(frozen=True)
class SavingsRequest:
    annual_income: float
    donation_amount: float
    filing_status: Union[str, FilingStatus]
    current_tax_rate: Optional[float] = None  # informational, echoed back only


@dataclass(frozen=True)
class SavingsResult:
    """Tax savings estimate for a single donation"""
    donation_amount: float
    estimated_tax_savings: int
    effective_deduction_rate: Optional[float]  # None when the donation is zero
    net_cost_of_donation: int
    marginal_tax_rate: Optional[float]
    recommendation: str
    tax_without_donation: int
    tax_with_donation: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'donationAmount': self.donation_amount,
            'estimatedTaxSavings': self.estimated_tax_savings,
            'effectiveDeductionRate': self.effective_deduction_rate,
            'netCostOfDonation': self.net_cost_of_donation,
            'marginalTaxRate': self.marginal_tax_rate,
            'recommendation': self.recommendation,
            'taxWithoutDonation': self.tax_without_donation,
            'taxWithDonation': self.tax_with_donation,
        }


@dataclass(frozen=True)
class TargetingRequest:
    target_tax_savings: float
    annual_income: float
    filing_status: Union[str, FilingStatus]
    current_deductions: float = 0.0


@dataclass(frozen=True)
class TargetingResult:
    """
    Donation needed to reach a savings target.

    recommended_donation_amount comes from the flat-rate heuristic and
    projected_tax_savings is what that donation actually saves under the
    brackets. Comparing projected_tax_savings with target_tax_savings shows
    how far the heuristic drifted.
    """
    target_tax_savings: float
    recommended_donation_amount: int
    projected_tax_savings: int
    net_cost_to_you: int
    current_tax_liability: int
    new_tax_liability: int
    recommendation: str
    estimated_marginal_rate: float
    exact_donation_amount: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'targetTaxSavings': self.target_tax_savings,
            'recommendedDonationAmount': self.recommended_donation_amount,
            'projectedTaxSavings': self.projected_tax_savings,
            'netCostToYou': self.net_cost_to_you,
            'currentTaxLiability': self.current_tax_liability,
            'newTaxLiability': self.new_tax_liability,
            'recommendation': self.recommendation,
            'estimatedMarginalRate': self.estimated_marginal_rate,
            'exactDonationAmount': self.exact_donation_amount,
        }


def round_currency(value: float) -> int:
    """Round half-up to the nearest whole currency unit"""
    return int(math.floor(value + 0.5))


def _format_amount(value: float) -> str:
    """Format an amount with thousands separators and up to three decimals, trailing zeros dropped"""
    return f"{value:,.3f}".rstrip('0').rstrip('.')


def effective_deduction_rate(tax_savings: float, donation_amount: float) -> float:
    """
    Tax savings as a percentage of the donation, rounded to two decimals.

    Raises:
        DivisionByZeroError: if the donation amount is zero
    """
    if donation_amount == 0:
        raise DivisionByZeroError("Effective deduction rate is undefined for a zero donation")
    rate = tax_savings / donation_amount * 100
    return math.floor(rate * 100 + 0.5) / 100


def estimate_savings(request: SavingsRequest) -> SavingsResult:
    """
    Estimate the tax saved by deducting a donation.

    Taxable income after the donation is floored at zero, so a donation larger
    than income saves exactly the baseline tax.

    Args:
        request: Income, donation and filing status

    Returns:
        SavingsResult with rounded display values
    """
    income = request.annual_income
    donation = request.donation_amount

    tax_without = calculate_tax(income, request.filing_status)
    tax_with = calculate_tax(max(income - donation, 0.0), request.filing_status)
    tax_savings = tax_without - tax_with

    try:
        deduction_rate = effective_deduction_rate(tax_savings, donation)
    except DivisionByZeroError:
        logger.debug("Zero donation: effective deduction rate left undefined")
        deduction_rate = None

    if tax_savings > 0:
        recommendation = (
            f"Your donation of ${_format_amount(donation)} could save you approximately "
            f"${_format_amount(round_currency(tax_savings))} in taxes."
        )
    else:
        recommendation = NO_SAVINGS_RECOMMENDATION

    return SavingsResult(
        donation_amount=donation,
        estimated_tax_savings=round_currency(tax_savings),
        effective_deduction_rate=deduction_rate,
        net_cost_of_donation=round_currency(donation - tax_savings),
        marginal_tax_rate=request.current_tax_rate,
        recommendation=recommendation,
        tax_without_donation=round_currency(tax_without),
        tax_with_donation=round_currency(tax_with),
    )


def estimate_marginal_rate(annual_income: float) -> float:
    """Coarse marginal rate guess from gross income using MARGINAL_RATE_THRESHOLDS"""
    for threshold, rate in MARGINAL_RATE_THRESHOLDS:
        if annual_income > threshold:
            return rate
    return BASE_MARGINAL_RATE


def solve_required_donation(target_savings: float,
                            taxable_income: float,
                            filing_status: Union[str, FilingStatus],
                            tolerance: float = 0.01,
                            max_iterations: int = 100) -> Optional[float]:
    """
    Solve for donation D such that tax(income) - tax(income - D) = target_savings.

    Uses bisection, which always converges because savings grow monotonically
    and continuously with the donation.

    Args:
        target_savings: Desired tax reduction
        taxable_income: Taxable income before the donation
        filing_status: One of the FilingStatus tags
        tolerance: Convergence tolerance on the savings amount
        max_iterations: Maximum iterations

    Returns:
        Donation amount, or None if the target exceeds the full tax liability
    """
    baseline_tax = calculate_tax(taxable_income, filing_status)

    if target_savings <= 0:
        return 0.0

    if target_savings > baseline_tax + tolerance:
        return None

    def residual(donation: float) -> float:
        """Savings shortfall (negative) or excess (positive) for a donation"""
        return baseline_tax - calculate_tax(taxable_income - donation, filing_status) - target_savings

    low = 0.0
    high = max(taxable_income, 0.0)

    for _ in range(max_iterations):
        mid = (low + high) / 2
        residual_mid = residual(mid)

        if abs(residual_mid) < tolerance:
            return mid

        if residual_mid < 0:
            low = mid
        else:
            high = mid

    return (low + high) / 2


def recommend_donation(request: TargetingRequest) -> TargetingResult:
    """
    Estimate the donation needed to reach a target tax saving.

    The donation comes from one flat marginal rate, then the real tax after that
    donation is recomputed so the projected savings reflect any bracket crossing.
    The heuristic donation is never adjusted toward the target.

    Args:
        request: Target savings, income, deductions and filing status

    Returns:
        TargetingResult reporting both the heuristic donation and the verified savings
    """
    income = request.annual_income
    target = request.target_tax_savings
    taxable_income = income - request.current_deductions

    current_tax = calculate_tax(taxable_income, request.filing_status)

    marginal_rate = estimate_marginal_rate(income)
    required_donation = target / marginal_rate

    new_tax = calculate_tax(taxable_income - required_donation, request.filing_status)
    actual_savings = current_tax - new_tax

    if actual_savings >= target * TARGET_ACCEPTANCE_RATIO:
        recommendation = (
            f"To achieve approximately ${_format_amount(target)} in tax savings, "
            f"consider donating around ${_format_amount(round_currency(required_donation))}."
        )
    else:
        logger.info(
            "Heuristic donation %.2f saves %.2f against target %.2f",
            required_donation, actual_savings, target,
        )
        recommendation = MULTI_YEAR_RECOMMENDATION

    exact_donation = solve_required_donation(target, taxable_income, request.filing_status)

    return TargetingResult(
        target_tax_savings=target,
        recommended_donation_amount=round_currency(required_donation),
        projected_tax_savings=round_currency(actual_savings),
        net_cost_to_you=round_currency(required_donation - actual_savings),
        current_tax_liability=round_currency(current_tax),
        new_tax_liability=round_currency(new_tax),
        recommendation=recommendation,
        estimated_marginal_rate=marginal_rate,
        exact_donation_amount=round_currency(exact_donation) if exact_donation is not None else None,
    )


def find_threshold_discrepancies() -> Dict[FilingStatus, List[float]]:
    """
    Heuristic thresholds that do not sit on a bracket boundary, per filing status.

    MARGINAL_RATE_THRESHOLDS and TAX_BRACKETS are maintained independently;
    this reports where they disagree without changing either table.
    """
    discrepancies = {}
    for status in FilingStatus:
        boundaries = {lower for lower, _, _ in get_brackets(status)}
        mismatched = [threshold for threshold, _ in MARGINAL_RATE_THRESHOLDS
                      if threshold not in boundaries]
        if mismatched:
            discrepancies[status] = mismatched
    return discrepancies
