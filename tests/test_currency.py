"""
Test suite for currency module

Tests integer minor-unit parsing, exact splitting of principals and the
completion percentage. No floating point may leak into any amount.
"""

import pytest
from decimal import Decimal

from repayment_engine.currency import (
    to_minor_units, split_evenly, completion_percentage, sum_amounts
)


class TestToMinorUnits:
    """Test conversion of external amounts to integers"""

    def test_integers_pass_through(self):
        """Test that ints are returned unchanged"""
        assert to_minor_units(750000) == 750000
        assert to_minor_units(0) == 0

    def test_plain_numeric_strings(self):
        """Test plain digit strings"""
        assert to_minor_units("500000") == 500000
        assert to_minor_units("  42 ") == 42

    def test_formatted_strings(self):
        """Test display-formatted amounts with thousands separators"""
        assert to_minor_units("1,000,000") == 1000000
        assert to_minor_units("IDR 1.000.000") == 1000000
        assert to_minor_units("Rp 250.000") == 250000
        assert to_minor_units("1,000.00") == 1000

    def test_rupiah_decimal_comma(self):
        """Test Indonesian formatting with dot thousands and a decimal comma"""
        assert to_minor_units("Rp 100.000,00") == 100000
        assert to_minor_units("IDR 1.000.000,00") == 1000000
        with pytest.raises(ValueError, match="whole number"):
            to_minor_units("1.000.000,50")

    def test_whole_decimals(self):
        """Test that integral Decimals are accepted"""
        assert to_minor_units(Decimal("300000")) == 300000
        assert to_minor_units(Decimal("300000.00")) == 300000

    def test_fractional_amounts_rejected(self):
        """Test that fractions of a minor unit are rejected"""
        with pytest.raises(ValueError, match="whole number"):
            to_minor_units(Decimal("10.5"))
        with pytest.raises(ValueError, match="whole number"):
            to_minor_units("1.5")

    def test_floats_and_bools_rejected(self):
        """Test that float and bool inputs never become amounts"""
        with pytest.raises(ValueError):
            to_minor_units(100.0)
        with pytest.raises(ValueError):
            to_minor_units(True)

    def test_garbage_rejected(self):
        """Test unparseable strings"""
        with pytest.raises(ValueError):
            to_minor_units("abc")
        with pytest.raises(ValueError):
            to_minor_units("")
        with pytest.raises(ValueError):
            to_minor_units(Decimal("NaN"))


class TestSplitEvenly:
    """Test exact splitting with the remainder on the last part"""

    def test_divisible_total(self):
        """Test a total that divides evenly"""
        assert split_evenly(900, 3) == [300, 300, 300]

    def test_remainder_goes_to_last_part(self):
        """Test that the last part absorbs the remainder"""
        assert split_evenly(1000000, 3) == [333333, 333333, 333334]
        assert split_evenly(10, 4) == [2, 2, 2, 4]

    def test_single_part(self):
        """Test splitting into one part"""
        assert split_evenly(12345, 1) == [12345]

    def test_more_parts_than_units(self):
        """Test a total smaller than the number of parts"""
        assert split_evenly(2, 5) == [0, 0, 0, 0, 2]

    @pytest.mark.parametrize("total,parts", [
        (1, 1), (7, 3), (1000001, 12), (999999, 7), (5000000, 36), (123456789, 13)
    ])
    def test_sum_is_exact(self, total, parts):
        """Test that parts always sum to the total"""
        amounts = split_evenly(total, parts)
        assert len(amounts) == parts
        assert sum(amounts) == total
        assert all(isinstance(a, int) for a in amounts)

    def test_invalid_part_count(self):
        """Test that zero parts is rejected"""
        with pytest.raises(ValueError):
            split_evenly(100, 0)


class TestCompletionPercentage:
    """Test completion percentage rounding and bounds"""

    def test_zero_total(self):
        """Test that an empty loan reports 0%"""
        assert completion_percentage(0, 0) == 0

    def test_nothing_paid(self):
        """Test a loan with no payments"""
        assert completion_percentage(0, 500000) == 0

    def test_fully_paid(self):
        """Test a fully repaid loan"""
        assert completion_percentage(500000, 0) == 100

    def test_rounds_to_nearest(self):
        """Test rounding to the nearest whole percent"""
        assert completion_percentage(333333, 666667) == 33
        assert completion_percentage(666666, 333334) == 67
        assert completion_percentage(1, 1) == 50

    def test_half_rounds_up(self):
        """Test that exact halves round up"""
        assert completion_percentage(1, 199) == 1  # 0.5%

    def test_never_100_with_balance_outstanding(self):
        """Test that 99.5% and above is capped while a balance remains"""
        assert completion_percentage(995, 5) == 99
        assert completion_percentage(999999, 1) == 99

    @pytest.mark.parametrize("paid,remaining", [
        (0, 1), (1, 0), (5, 995), (995, 5), (123, 877), (250000, 250000)
    ])
    def test_bounds(self, paid, remaining):
        """Test that the result is in [0, 100] and 100 only when fully paid"""
        pct = completion_percentage(paid, remaining)
        assert 0 <= pct <= 100
        assert (pct == 100) == (remaining == 0 and paid > 0)


class TestSumAmounts:
    """Test strict integer summing"""

    def test_sums_ints(self):
        assert sum_amounts([1, 2, 3]) == 6
        assert sum_amounts([]) == 0

    def test_rejects_non_ints(self):
        with pytest.raises(ValueError):
            sum_amounts([1, 2.5])
        with pytest.raises(ValueError):
            sum_amounts([True])
