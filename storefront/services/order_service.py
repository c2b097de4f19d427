"""Order service - turns a cart into an order plus stock movements."""
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront.blueprints.metrics import count_checkout
from storefront.models import Product, Order, OrderLine, OrderStatus, PaymentStatus, TransactionType
from storefront.exceptions import BusinessLogicError, NotFoundError, InsufficientStockError, StoreError
from storefront.services.inventory_transaction_service import record_bulk_transactions
from storefront.utils.money import quantize_money, to_quantity

logger = logging.getLogger(__name__)


def _new_order_number() -> str:
    return f"ORD-{datetime.now():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def _validated_sizes(cart) -> Dict[int, List[dict]]:
    """
    Check every cart size before anything is written.

    Returns sizes per product id, each with an int quantity >= 1 and a
    non-negative price.
    """
    validated: Dict[int, List[dict]] = {}
    for item in cart.items:
        try:
            product_id = int(item['product_id'])
        except (KeyError, TypeError, ValueError):
            raise BusinessLogicError('Invalid product id in cart')
        sizes = validated.setdefault(product_id, [])
        for size in item.get('sizes') or []:
            try:
                quantity = to_quantity(size.get('quantity'))
                unit_price = quantize_money(size.get('price'))
            except ValueError:
                raise BusinessLogicError(f'Invalid quantity or price for product {product_id}')
            if quantity < 1:
                raise BusinessLogicError(f'Quantity for product {product_id} must be at least 1')
            if unit_price < 0:
                raise BusinessLogicError(f'Price for product {product_id} cannot be negative')
            sizes.append({'id': str(size.get('id')), 'quantity': quantity, 'unit_price': unit_price})
    return {pid: sizes for pid, sizes in validated.items() if sizes}


def place_order(session, cart, profile_id: Optional[str] = None, actor_id: Optional[str] = None) -> Order:
    """
    Create an order from the cart and take its stock.

    The order, its lines and one 'sale' movement per cart line are written in
    a single database transaction: if any product lacks stock nothing is
    kept. The cart is cleared only after the commit.

    Raises:
        BusinessLogicError: empty cart, or a size with a quantity below 1,
            a fractional quantity or a negative price
        NotFoundError: a product in the cart no longer exists
        InsufficientStockError: a line asks for more than is on hand
    """
    lines_by_product = _validated_sizes(cart)
    if not lines_by_product:
        count_checkout('empty_cart')
        raise BusinessLogicError('The cart is empty')
    product_ids = list(lines_by_product)

    found = {
        pid for (pid,) in session.query(Product.id).filter(Product.id.in_(product_ids)).all()
    }
    missing = [pid for pid in product_ids if pid not in found]
    if missing:
        raise NotFoundError(f'Products not found: {", ".join(str(m) for m in missing)}')

    total = quantize_money(sum(
        (Decimal(s['quantity']) * s['unit_price'] for sizes in lines_by_product.values() for s in sizes),
        Decimal('0')
    ))

    try:
        order = Order(
            order_number=_new_order_number(),
            profile_id=str(profile_id) if profile_id is not None else None,
            total_amount=total,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
        )
        session.add(order)
        session.flush()

        movements = []
        for product_id, sizes in lines_by_product.items():
            for size in sizes:
                session.add(OrderLine(
                    order_id=order.id,
                    product_id=product_id,
                    size_id=size['id'],
                    quantity=size['quantity'],
                    unit_price=size['unit_price'],
                    line_total=quantize_money(Decimal(size['quantity']) * size['unit_price']),
                ))
            movements.append({
                'product_id': product_id,
                'type': TransactionType.SALE,
                'quantity': sum(s['quantity'] for s in sizes),
                'reference_id': order.order_number,
                'notes': f'Order {order.order_number}',
            })
        session.flush()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("[ORDERS] Error creating order")
        raise StoreError(f'Error creating order: {e}') from e

    # Commits the order together with the movements, or rolls everything back
    try:
        record_bulk_transactions(session, movements, actor_id=actor_id, atomic=True)
    except InsufficientStockError:
        count_checkout('insufficient_stock')
        raise
    count_checkout('placed')

    logger.info(f"[ORDERS] Order {order.order_number} placed: {len(movements)} product(s), total {order.total_amount}")
    cart.clear()
    return order


def cancel_order(session, order_id: int, actor_id: Optional[str] = None) -> Order:
    """Cancel an order and put its stock back with 'restoration' movements."""
    order = session.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f'Order {order_id} not found')
    if order.is_cancelled:
        raise BusinessLogicError(f'Order {order.order_number} is already cancelled')

    per_product: Dict[int, int] = {}
    for line in order.lines:
        per_product[line.product_id] = per_product.get(line.product_id, 0) + line.quantity

    order.status = OrderStatus.CANCELLED.value
    movements = [
        {
            'product_id': product_id,
            'type': TransactionType.RESTORATION,
            'quantity': quantity,
            'reference_id': order.order_number,
            'notes': f'Order {order.order_number} cancelled',
        }
        for product_id, quantity in per_product.items()
    ]
    record_bulk_transactions(session, movements, actor_id=actor_id, atomic=True)

    logger.info(f"[ORDERS] Order {order.order_number} cancelled; {len(movements)} product(s) restored")
    return order
