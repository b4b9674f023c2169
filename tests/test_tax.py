"""
Unit tests for progressive bracket tax calculation.
"""
import math

import numpy as np
import pytest

from errors import InvalidInputError
from tax import (
    FilingStatus, TAX_BRACKETS, bracket_breakdown, calculate_tax,
    cumulative_tax_at_bounds, effective_tax_rate, get_brackets,
    marginal_tax_rate, parse_filing_status
)


class TestBracketTables:
    """Test the static bracket tables"""

    @pytest.mark.parametrize("status", list(FilingStatus))
    def test_tables_cover_zero_to_infinity_without_gaps(self, status):
        brackets = TAX_BRACKETS[status]
        assert brackets[0][0] == 0
        assert math.isinf(brackets[-1][1])
        for (_, upper, _), (next_lower, _, _) in zip(brackets, brackets[1:]):
            assert upper == next_lower

    @pytest.mark.parametrize("status", list(FilingStatus))
    def test_rates_non_decreasing(self, status):
        rates = [rate for _, _, rate in TAX_BRACKETS[status]]
        assert rates == sorted(rates)

    def test_status_accepts_wire_tags(self):
        assert parse_filing_status("head-of-household") is FilingStatus.HEAD_OF_HOUSEHOLD
        assert get_brackets("single") is TAX_BRACKETS[FilingStatus.SINGLE]

    def test_unknown_status_fails_fast(self):
        with pytest.raises(InvalidInputError):
            calculate_tax(50_000, "MFJ")

        with pytest.raises(InvalidInputError):
            calculate_tax(0, "widowed")


class TestCalculateTax:
    """Test progressive tax calculation"""

    @pytest.mark.parametrize("income", [0, -1, -50_000])
    def test_no_tax_on_zero_or_negative_income(self, income):
        for status in FilingStatus:
            assert calculate_tax(income, status) == 0

    def test_first_bracket_only(self):
        assert abs(calculate_tax(10_000, "single") - 1_000) < 1e-9

    def test_single_100k(self):
        """10% of 11,600 + 12% of 35,550 + 22% of 52,850"""
        expected = 1_160 + 4_266 + 11_627
        assert abs(calculate_tax(100_000, "single") - expected) < 1e-6

    def test_single_90k(self):
        expected = 1_160 + 4_266 + 9_427
        assert abs(calculate_tax(90_000, "single") - expected) < 1e-6

    def test_married_jointly_150k(self):
        expected = 23_200 * 0.10 + (94_300 - 23_200) * 0.12 + (150_000 - 94_300) * 0.22
        assert abs(calculate_tax(150_000, FilingStatus.MARRIED_FILING_JOINTLY) - expected) < 1e-6

    def test_top_bracket_income(self):
        income = 1_000_000
        brackets = TAX_BRACKETS[FilingStatus.HEAD_OF_HOUSEHOLD]
        expected = sum(
            rate * (min(income, upper) - lower) for lower, upper, rate in brackets
        )
        assert abs(calculate_tax(income, "head-of-household") - expected) < 1e-6

    @pytest.mark.parametrize("status", list(FilingStatus))
    def test_monotonic_in_income(self, status):
        incomes = np.linspace(-10_000, 1_000_000, 500)
        taxes = [calculate_tax(income, status) for income in incomes]
        assert all(a <= b for a, b in zip(taxes, taxes[1:]))

    @pytest.mark.parametrize("status", list(FilingStatus))
    def test_boundary_tax_equals_sum_of_full_brackets(self, status):
        brackets = TAX_BRACKETS[status]
        for k, (_, upper, _) in enumerate(brackets[:-1]):
            expected = sum(rate * (hi - lo) for lo, hi, rate in brackets[:k + 1])
            assert abs(calculate_tax(upper, status) - expected) < 1e-6

    @pytest.mark.parametrize("status", list(FilingStatus))
    def test_continuous_at_boundaries(self, status):
        for _, upper, rate in TAX_BRACKETS[status][:-1]:
            below = calculate_tax(upper - 0.01, status)
            above = calculate_tax(upper + 0.01, status)
            assert above - below < 0.01


class TestRates:
    """Test marginal and effective rate helpers"""

    def test_marginal_rate_by_bracket(self):
        assert marginal_tax_rate(5_000, "single") == 0.10
        assert marginal_tax_rate(80_000, "single") == 0.22
        assert marginal_tax_rate(100_525, "single") == 0.22
        assert marginal_tax_rate(100_526, "single") == 0.24
        assert marginal_tax_rate(2_000_000, "single") == 0.37

    def test_marginal_rate_zero_income(self):
        assert marginal_tax_rate(0, "single") == 0.0

    def test_effective_rate(self):
        assert abs(effective_tax_rate(100_000, "single") - 0.17053) < 1e-9
        assert effective_tax_rate(0, "single") == 0.0

    def test_effective_rate_validates_status(self):
        with pytest.raises(InvalidInputError):
            effective_tax_rate(0, "bogus")

    def test_cumulative_tax_at_bounds(self):
        bounds = cumulative_tax_at_bounds("single")
        assert len(bounds) == 6
        assert bounds[0] == (11_600, pytest.approx(1_160))
        assert bounds[1] == (47_150, pytest.approx(5_426))


class TestBracketBreakdown:
    """Test per-bracket breakdown table"""

    def test_breakdown_sums_to_tax(self):
        df = bracket_breakdown(100_000, "single")
        assert list(df.columns) == ['lower_bound', 'upper_bound', 'rate', 'taxable_amount', 'tax']
        assert len(df) == 7
        assert abs(df['tax'].sum() - calculate_tax(100_000, "single")) < 1e-6
        assert abs(df['taxable_amount'].sum() - 100_000) < 1e-6

    def test_breakdown_unused_brackets_are_zero(self):
        df = bracket_breakdown(20_000, "single")
        assert (df['taxable_amount'].iloc[2:] == 0).all()

    def test_breakdown_negative_income(self):
        df = bracket_breakdown(-500, "single")
        assert df['tax'].sum() == 0
