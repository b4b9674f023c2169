"""
Unit tests for donation savings estimates and donation targeting.
"""
from unittest.mock import patch

import pytest

import donation
from donation import (
    MULTI_YEAR_RECOMMENDATION, NO_SAVINGS_RECOMMENDATION, TARGET_ACCEPTANCE_RATIO,
    SavingsRequest, TargetingRequest, effective_deduction_rate, estimate_marginal_rate,
    estimate_savings, find_threshold_discrepancies, recommend_donation,
    round_currency, solve_required_donation
)
from errors import DivisionByZeroError, InvalidInputError
from tax import FilingStatus, calculate_tax


class TestRounding:
    """Test currency rounding helpers"""

    def test_round_half_up(self):
        assert round_currency(2.5) == 3
        assert round_currency(3.5) == 4
        assert round_currency(2.49) == 2
        assert round_currency(-2.5) == -2

    def test_effective_rate_two_decimals(self):
        assert effective_deduction_rate(1_000, 3_000) == 33.33
        assert effective_deduction_rate(2_000, 3_000) == 66.67

    def test_effective_rate_zero_donation(self):
        with pytest.raises(DivisionByZeroError):
            effective_deduction_rate(0, 0)

        # also catchable as the builtin
        with pytest.raises(ZeroDivisionError):
            effective_deduction_rate(100, 0)


class TestEstimateSavings:
    """Test savings estimate with and without a donation"""

    def test_single_100k_donating_10k(self):
        result = estimate_savings(SavingsRequest(
            annual_income=100_000, donation_amount=10_000, filing_status="single"
        ))

        assert result.tax_without_donation == 17_053
        assert result.tax_with_donation == 14_853
        assert result.estimated_tax_savings == 2_200
        assert result.net_cost_of_donation == 7_800
        assert result.effective_deduction_rate == pytest.approx(22.0)
        assert result.recommendation == (
            "Your donation of $10,000 could save you approximately $2,200 in taxes."
        )

    def test_zero_donation_rate_undefined(self):
        result = estimate_savings(SavingsRequest(
            annual_income=75_000, donation_amount=0, filing_status="single"
        ))

        assert result.effective_deduction_rate is None
        assert result.estimated_tax_savings == 0
        assert result.net_cost_of_donation == 0
        assert result.recommendation == NO_SAVINGS_RECOMMENDATION

    def test_donation_exceeding_income_clamps_to_zero(self):
        income = 50_000
        result = estimate_savings(SavingsRequest(
            annual_income=income, donation_amount=60_000, filing_status="single"
        ))

        assert result.tax_with_donation == 0
        assert result.estimated_tax_savings == round_currency(calculate_tax(income, "single"))
        assert result.estimated_tax_savings == result.tax_without_donation

    def test_net_cost_uses_unrounded_savings(self):
        # net cost rounds donation minus raw savings, not minus rounded savings
        result = estimate_savings(SavingsRequest(
            annual_income=10_000, donation_amount=1_234.5, filing_status="single"
        ))

        savings = calculate_tax(10_000, "single") - calculate_tax(10_000 - 1_234.5, "single")
        assert result.net_cost_of_donation == round_currency(1_234.5 - savings)
        assert result.estimated_tax_savings == round_currency(savings)
        assert "$1,234.5 " in result.recommendation

    def test_fractional_donation_keeps_three_decimals(self):
        result = estimate_savings(SavingsRequest(
            annual_income=100_000, donation_amount=1_234.567, filing_status="single"
        ))
        assert result.recommendation.startswith("Your donation of $1,234.567 could save")

    def test_current_tax_rate_is_echoed_only(self):
        with_rate = estimate_savings(SavingsRequest(
            annual_income=100_000, donation_amount=10_000, filing_status="single",
            current_tax_rate=35.0
        ))
        without_rate = estimate_savings(SavingsRequest(
            annual_income=100_000, donation_amount=10_000, filing_status="single"
        ))

        assert with_rate.marginal_tax_rate == 35.0
        assert without_rate.marginal_tax_rate is None
        assert with_rate.estimated_tax_savings == without_rate.estimated_tax_savings

    def test_zero_income_no_savings(self):
        result = estimate_savings(SavingsRequest(
            annual_income=0, donation_amount=5_000, filing_status="single"
        ))

        assert result.estimated_tax_savings == 0
        assert result.effective_deduction_rate == 0.0
        assert result.net_cost_of_donation == 5_000
        assert result.recommendation == NO_SAVINGS_RECOMMENDATION

    def test_idempotent(self):
        request = SavingsRequest(annual_income=123_456.78, donation_amount=9_876.54,
                                 filing_status=FilingStatus.MARRIED_FILING_JOINTLY)
        assert estimate_savings(request) == estimate_savings(request)

    def test_unknown_status(self):
        with pytest.raises(InvalidInputError):
            estimate_savings(SavingsRequest(annual_income=1, donation_amount=1, filing_status="joint"))

    def test_to_dict_wire_keys(self):
        result = estimate_savings(SavingsRequest(
            annual_income=100_000, donation_amount=10_000, filing_status="single"
        ))
        wire = result.to_dict()

        assert wire['donationAmount'] == 10_000
        assert wire['estimatedTaxSavings'] == 2_200
        assert wire['netCostOfDonation'] == 7_800
        assert set(wire) >= {
            'donationAmount', 'estimatedTaxSavings', 'effectiveDeductionRate',
            'netCostOfDonation', 'marginalTaxRate', 'recommendation'
        }


class TestMarginalRateHeuristic:
    """Test the flat marginal rate threshold table"""

    @pytest.mark.parametrize("income,rate", [
        (0, 0.12),
        (5_000, 0.12),
        (48_000, 0.12),
        (50_000, 0.12),
        (50_001, 0.22),
        (80_000, 0.22),
        (100_000, 0.22),
        (100_001, 0.24),
        (100_200, 0.24),
        (300_000, 0.24),
        (500_000, 0.24),
    ])
    def test_thresholds(self, income, rate):
        assert estimate_marginal_rate(income) == rate

    def test_discrepancies_flagged_not_fixed(self):
        discrepancies = find_threshold_discrepancies()

        # neither heuristic threshold sits on a bracket boundary for any status
        assert set(discrepancies) == set(FilingStatus)
        for thresholds in discrepancies.values():
            assert sorted(thresholds) == [50_000, 100_000]


class TestRecommendDonation:
    """Test donation targeting"""

    def test_income_80k_target_5k(self):
        request = TargetingRequest(target_tax_savings=5_000, annual_income=80_000, filing_status="single")

        with patch('donation.calculate_tax', wraps=calculate_tax) as mock_tax:
            result = recommend_donation(request)

        assert result.estimated_marginal_rate == 0.22
        assert result.recommended_donation_amount == 22_727

        # the verified savings come from the bracket engine at the reduced income
        called_incomes = [call.args[0] for call in mock_tax.call_args_list]
        assert 80_000 in called_incomes
        assert any(abs(income - (80_000 - 5_000 / 0.22)) < 1e-6 for income in called_incomes)

        expected = calculate_tax(80_000, "single") - calculate_tax(80_000 - 5_000 / 0.22, "single")
        assert result.projected_tax_savings == round_currency(expected)
        assert result.current_tax_liability == 12_653
        assert result.new_tax_liability == round_currency(calculate_tax(80_000 - 5_000 / 0.22, "single"))
        assert result.recommendation == (
            "To achieve approximately $5,000 in tax savings, consider donating around $22,727."
        )

    def test_bracket_crossing_reports_drift(self):
        result = recommend_donation(TargetingRequest(
            target_tax_savings=5_000, annual_income=60_000, filing_status="single"
        ))

        donation_amount = 5_000 / 0.22
        actual = calculate_tax(60_000, "single") - calculate_tax(60_000 - donation_amount, "single")

        # heuristic target and verified outcome are both reported
        assert result.target_tax_savings == 5_000
        assert result.recommended_donation_amount == round_currency(donation_amount)
        assert result.projected_tax_savings == round_currency(actual)
        assert result.projected_tax_savings < 5_000 * TARGET_ACCEPTANCE_RATIO
        assert result.recommendation == MULTI_YEAR_RECOMMENDATION
        assert result.net_cost_to_you == round_currency(donation_amount - actual)

    def test_exact_donation_reported_separately(self):
        result = recommend_donation(TargetingRequest(
            target_tax_savings=5_000, annual_income=60_000, filing_status="single"
        ))

        assert result.exact_donation_amount == pytest.approx(30_958, abs=1)
        assert result.recommended_donation_amount != result.exact_donation_amount

    def test_current_deductions_reduce_taxable_income(self):
        result = recommend_donation(TargetingRequest(
            target_tax_savings=2_000, annual_income=100_000, filing_status="single",
            current_deductions=20_000
        ))

        assert result.estimated_marginal_rate == 0.22
        assert result.current_tax_liability == round_currency(calculate_tax(80_000, "single"))
        assert result.projected_tax_savings == 2_000

    def test_target_above_liability(self):
        result = recommend_donation(TargetingRequest(
            target_tax_savings=100, annual_income=10_000, filing_status="single",
            current_deductions=20_000
        ))

        assert result.current_tax_liability == 0
        assert result.projected_tax_savings == 0
        assert result.exact_donation_amount is None
        assert result.recommendation == MULTI_YEAR_RECOMMENDATION

    def test_threshold_ignores_filing_status(self):
        """The heuristic table is shared by every filing status"""
        result = recommend_donation(TargetingRequest(
            target_tax_savings=1_000, annual_income=100_000, filing_status="head-of-household"
        ))
        assert result.estimated_marginal_rate == 0.22

        result = recommend_donation(TargetingRequest(
            target_tax_savings=1_000, annual_income=100_001, filing_status="married-filing-jointly"
        ))
        assert result.estimated_marginal_rate == 0.24

    def test_high_income_uses_top_heuristic_rate(self):
        result = recommend_donation(TargetingRequest(
            target_tax_savings=10_000, annual_income=300_000, filing_status="single"
        ))

        assert result.estimated_marginal_rate == 0.24
        assert result.recommended_donation_amount == 41_667


class TestSolveRequiredDonation:
    """Test bisection inverse"""

    def test_within_one_bracket(self):
        donation_amount = solve_required_donation(2_200, 100_000, "single")
        assert donation_amount == pytest.approx(10_000, abs=0.1)

    def test_across_brackets(self):
        donation_amount = solve_required_donation(5_000, 60_000, "single")
        savings = calculate_tax(60_000, "single") - calculate_tax(60_000 - donation_amount, "single")
        assert savings == pytest.approx(5_000, abs=0.01)

    def test_zero_target(self):
        assert solve_required_donation(0, 60_000, "single") == 0.0

    def test_unreachable_target(self):
        assert solve_required_donation(50_000, 60_000, "single") is None

    def test_whole_liability(self):
        baseline = calculate_tax(20_000, "single")
        assert solve_required_donation(baseline, 20_000, "single") == pytest.approx(20_000, abs=1)

    def test_module_exposes_acceptance_ratio(self):
        assert donation.TARGET_ACCEPTANCE_RATIO == 0.9
