"""
Unit tests for per-size inventory.
"""

import pytest
from decimal import Decimal

from storefront.models import ProductSize
from storefront.services.size_inventory_service import (
    update_size_inventory,
    adjust_size_stock,
    get_low_stock_sizes,
    get_product_sizes,
    bulk_update_sizes,
    get_size_inventory_stats,
)
from storefront.exceptions import BusinessLogicError, InsufficientStockError


def _stock(session, size_id):
    return session.query(ProductSize.stock).filter(ProductSize.id == size_id).scalar()


class TestUpdateSizeInventory:

    def test_updates_editable_fields_only(self, session, make_product, make_size):
        size = make_size(make_product(), stock=5, price='2.00')
        size_id = size.id

        ok = update_size_inventory(session, size_id, {
            'stock': 12, 'price': Decimal('2.50'), 'lot_number': 'L-778', 'product_id': 999
        })

        assert ok is True
        refreshed = session.get(ProductSize, size_id)
        assert refreshed.stock == 12
        assert refreshed.price == Decimal('2.50')
        assert refreshed.lot_number == 'L-778'
        assert refreshed.product_id != 999

    @pytest.mark.parametrize('stock', [-1, 'abc', 1.5])
    def test_invalid_stock_is_rejected(self, session, make_product, make_size, stock):
        size = make_size(make_product(), stock=5)
        size_id = size.id

        with pytest.raises(BusinessLogicError):
            update_size_inventory(session, size_id, {'stock': stock})
        assert _stock(session, size_id) == 5

    def test_missing_size_returns_false(self, session):
        assert update_size_inventory(session, 404, {'stock': 1}) is False

    def test_bulk_update(self, session, make_product, make_size):
        product = make_product()
        a = make_size(product, '100', stock=1)
        b = make_size(product, '200', stock=1)
        a_id, b_id = a.id, b.id

        assert bulk_update_sizes(session, [
            {'id': a_id, 'updates': {'stock': 3}},
            {'id': b_id, 'updates': {'stock': 4}},
        ]) is True
        assert (_stock(session, a_id), _stock(session, b_id)) == (3, 4)

        assert bulk_update_sizes(session, [{'id': a_id, 'updates': {'stock': 9}}, {'id': 404}]) is False


class TestAdjustSizeStock:

    def test_increase_and_decrease(self, session, make_product, make_size):
        size = make_size(make_product(), stock=5)
        size_id = size.id

        assert adjust_size_stock(session, size_id, 'increase', 10, 'receiving') is True
        assert adjust_size_stock(session, size_id, 'decrease', 15, 'damaged', 'water damage') is True
        assert _stock(session, size_id) == 0

    def test_decrease_below_zero_fails_and_keeps_stock(self, session, make_product, make_size):
        size = make_size(make_product(), stock=2)
        size_id = size.id

        with pytest.raises(InsufficientStockError) as exc:
            adjust_size_stock(session, size_id, 'decrease', 3, 'count')

        assert exc.value.current == 2
        assert _stock(session, size_id) == 2

    def test_missing_size_returns_false(self, session):
        assert adjust_size_stock(session, 404, 'increase', 1, 'receiving') is False

    @pytest.mark.parametrize('adjustment_type,quantity', [
        ('set', 1), ('increase', 0), ('decrease', -2), ('increase', 1.5), ('increase', 'lots'),
    ])
    def test_invalid_input(self, session, adjustment_type, quantity):
        with pytest.raises(BusinessLogicError):
            adjust_size_stock(session, 1, adjustment_type, quantity, 'count')


class TestSizeQueries:

    def test_low_stock_sizes_lowest_first(self, session, make_product, make_size):
        product = make_product()
        make_size(product, '1', stock=30)
        make_size(product, '2', stock=20)
        make_size(product, '3', stock=4)

        low = get_low_stock_sizes(session, threshold=20)

        assert [s.stock for s in low] == [4, 20]

    def test_product_sizes_follow_sequence(self, session, make_product, make_size):
        product = make_product()
        make_size(product, 'large', sequence=2)
        make_size(product, 'small', sequence=0)
        make_size(product, 'medium', sequence=1)

        assert [s.size_value for s in get_product_sizes(session, product.id)] == ['small', 'medium', 'large']

    def test_stats(self, session, make_product, make_size):
        product = make_product()
        make_size(product, '1', stock=10, price='1.50')
        make_size(product, '2', stock=30, price='2.00')

        stats = get_size_inventory_stats(session, low_stock_threshold=20)

        assert stats == {
            'total_sizes': 2,
            'low_stock_sizes': 1,
            'total_value': Decimal('75.00'),
            'average_stock': 20,
        }

    def test_stats_without_sizes(self, session):
        assert get_size_inventory_stats(session)['average_stock'] == 0
