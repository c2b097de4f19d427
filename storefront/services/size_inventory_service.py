"""Size inventory service - stock and pricing per product size."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from storefront.models import ProductSize
from storefront.exceptions import BusinessLogicError, InsufficientStockError
from storefront.utils.money import quantize_money, to_quantity

logger = logging.getLogger(__name__)

ADJUSTMENT_TYPES = ('increase', 'decrease')


def update_size_inventory(session, size_id: int, updates: Dict[str, Any]) -> bool:
    """
    Update editable fields of a size.

    Unknown fields are ignored. Returns False when the size does not exist
    or the write fails.

    Raises:
        BusinessLogicError: stock is not a whole number or is negative
    """
    values = {k: v for k, v in (updates or {}).items() if k in ProductSize.EDITABLE_FIELDS}
    if 'stock' in values:
        try:
            values['stock'] = to_quantity(values['stock'])
        except ValueError:
            raise BusinessLogicError('Stock must be a whole number')
        if values['stock'] < 0:
            raise BusinessLogicError('Stock cannot be negative')
    values[ProductSize.updated_at.key] = datetime.now()

    try:
        updated = session.query(ProductSize).filter(ProductSize.id == size_id).update(
            values, synchronize_session='fetch'
        )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[INVENTORY] Error updating size {size_id}: {e}")
        return False

    if not updated:
        logger.warning(f"[INVENTORY] Size {size_id} not found for update")
    return bool(updated)


def adjust_size_stock(
    session,
    size_id: int,
    adjustment_type: str,
    quantity: int,
    reason_code: str,
    reason_description: str = None
) -> bool:
    """
    Increase or decrease one size's stock.

    The non-negative check is part of the UPDATE, as for product stock.

    Returns:
        True on success, False if the size is missing or the write fails

    Raises:
        BusinessLogicError: invalid adjustment type or quantity
        InsufficientStockError: a decrease larger than the stock on hand
    """
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise BusinessLogicError(f'Invalid adjustment type: {adjustment_type}')
    try:
        quantity = to_quantity(quantity)
    except ValueError:
        raise BusinessLogicError('Quantity must be a whole number')
    if quantity <= 0:
        raise BusinessLogicError('Quantity must be greater than 0')

    delta = quantity if adjustment_type == 'increase' else -quantity

    try:
        updated = (
            session.query(ProductSize)
            .filter(ProductSize.id == size_id, ProductSize.stock + delta >= 0)
            .update(
                {ProductSize.stock: ProductSize.stock + delta, ProductSize.updated_at: datetime.now()},
                synchronize_session='fetch'
            )
        )
        if not updated:
            current = session.query(ProductSize.stock).filter(ProductSize.id == size_id).scalar()
            session.rollback()
            if current is None:
                logger.warning(f"[INVENTORY] Size {size_id} not found for adjustment")
                return False
            raise InsufficientStockError(size_id, current, quantity)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[INVENTORY] Error adjusting size {size_id}: {e}")
        return False

    logger.info(
        f"[INVENTORY] Size {size_id} {adjustment_type} {quantity} ({reason_code}"
        + (f": {reason_description}" if reason_description else "") + ")"
    )
    return True


def get_low_stock_sizes(session, threshold: int = 20) -> List[ProductSize]:
    """Sizes at or below the threshold, lowest stock first."""
    return (
        session.query(ProductSize)
        .filter(ProductSize.stock <= threshold)
        .order_by(ProductSize.stock.asc(), ProductSize.id.asc())
        .all()
    )


def get_product_sizes(session, product_id: int) -> List[ProductSize]:
    return (
        session.query(ProductSize)
        .filter(ProductSize.product_id == product_id)
        .order_by(ProductSize.sequence.asc(), ProductSize.id.asc())
        .all()
    )


def bulk_update_sizes(session, updates: List[Dict[str, Any]]) -> bool:
    """Apply update_size_inventory to each {'id': ..., 'updates': {...}}; True if all succeed."""
    results = [update_size_inventory(session, u['id'], u.get('updates') or {}) for u in updates]
    return all(results)


def get_size_inventory_stats(session, low_stock_threshold: int = 20) -> Dict[str, Any]:
    """Counts and stock value across every size."""
    rows = session.query(ProductSize.stock, ProductSize.price).all()

    total_sizes = len(rows)
    low_stock_sizes = sum(1 for stock, _ in rows if stock <= low_stock_threshold)
    total_value = quantize_money(sum((Decimal(stock) * (price or Decimal('0')) for stock, price in rows), Decimal('0')))
    average_stock = (sum(stock for stock, _ in rows) / total_sizes) if total_sizes else 0

    return {
        'total_sizes': total_sizes,
        'low_stock_sizes': low_stock_sizes,
        'total_value': total_value,
        'average_stock': average_stock,
    }
