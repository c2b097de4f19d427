"""
Unit tests for money and quantity helpers.
"""

import pytest
from decimal import Decimal

from storefront.utils.money import to_decimal, quantize_money, to_quantity


class TestMoney:

    def test_floats_keep_their_decimal_text(self):
        assert to_decimal(0.1) == Decimal('0.1')
        assert to_decimal(None) == Decimal('0')

    def test_quantize_rounds_half_up(self):
        assert quantize_money('2.005') == Decimal('2.01')
        assert quantize_money(3) == Decimal('3.00')

    def test_non_numeric_amount(self):
        with pytest.raises(ValueError):
            to_decimal('ten')


class TestToQuantity:

    @pytest.mark.parametrize('value,expected', [(3, 3), (3.0, 3), ('4', 4), ('-2', -2), (Decimal('5'), 5)])
    def test_whole_numbers(self, value, expected):
        assert to_quantity(value) == expected

    @pytest.mark.parametrize('value', [2.7, '2.5', 'x', True, float('inf'), 'NaN'])
    def test_rejects_fractions_and_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_quantity(value)
