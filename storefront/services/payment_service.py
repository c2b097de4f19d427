"""
Payment service - order payment reconciliation.

The payment summary is derived on demand from an order's total and its
payment transactions; it is never stored. Reading a summary never raises:
when transactions cannot be loaded the summary falls back to the order's
stored payment status.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from storefront.blueprints.metrics import count_payment_transaction
from storefront.models import Order, PaymentTransaction, PaymentStatus
from storefront.exceptions import BusinessLogicError, NotFoundError, StoreError
from storefront.utils.money import to_decimal, quantize_money, ZERO

logger = logging.getLogger(__name__)

SUCCESSFUL_STATUSES = ('approved', 'completed', 'success')
TRANSACTION_TYPES = ('payment', 'refund')
BALANCE_EPSILON = Decimal('0.01')
LEGACY_METHOD_TYPE = 'legacy_record'


def payment_summary_from_status(total_amount, payment_status: Optional[str]) -> Dict[str, Any]:
    """Summary based only on the order's stored payment status."""
    total = quantize_money(total_amount)
    is_fully_paid = (payment_status or '').lower() == PaymentStatus.PAID.value
    return {
        'paid_amount': total if is_fully_paid else ZERO,
        'balance_due': ZERO if is_fully_paid else total,
        'is_fully_paid': is_fully_paid,
        'is_partially_paid': False,
        'is_pending': not is_fully_paid,
    }


def summarize_transactions(total_amount, transactions, payment_status: Optional[str] = None) -> Dict[str, Any]:
    """
    Fold payment transactions into a payment summary.

    Args:
        total_amount: Order total
        transactions: Iterable of objects or dicts with amount, status and
            transaction_type
        payment_status: Stored order status, used for legacy orders that
            were marked paid before transactions were recorded

    Returns:
        Dict with paid_amount, balance_due, is_fully_paid, is_partially_paid
        and is_pending; exactly one of the three flags is True.
    """
    total = quantize_money(total_amount)
    paid = Decimal('0')

    for tx in transactions:
        status = _field(tx, 'status')
        if (status or '').lower() not in SUCCESSFUL_STATUSES:
            continue
        # Sign comes from transaction_type; older rows stored refunds negative
        amount = abs(to_decimal(_field(tx, 'amount')))
        if (_field(tx, 'transaction_type') or '').lower() == 'refund':
            paid -= amount
        else:
            paid += amount

    if paid == 0 and (payment_status or '').lower() == PaymentStatus.PAID.value:
        paid = total

    # Refunds can cancel payments but never leave a negative paid amount
    paid = max(quantize_money(paid), ZERO)

    raw_balance = total - paid
    balance_due = ZERO if abs(raw_balance) < BALANCE_EPSILON else max(ZERO, raw_balance)

    return {
        'paid_amount': paid,
        'balance_due': balance_due,
        'is_fully_paid': balance_due == 0 and paid > 0,
        'is_partially_paid': paid > 0 and balance_due > 0,
        'is_pending': paid == 0,
    }


def calculate_payment_summary(session, order_id: int, total_amount, payment_status: Optional[str]) -> Dict[str, Any]:
    """Payment summary for an order; falls back to payment_status on any load error."""
    try:
        transactions = (
            session.query(PaymentTransaction)
            .filter(PaymentTransaction.order_id == order_id)
            .all()
        )
        return summarize_transactions(total_amount, transactions, payment_status)
    except Exception as e:
        logger.warning(f"[PAYMENTS] Error loading transactions for order {order_id}, using stored status: {e}")
        try:
            session.rollback()
        except SQLAlchemyError:
            pass
        return payment_summary_from_status(total_amount, payment_status)


def get_order_payment_summary(session, order_id: int) -> Dict[str, Any]:
    """Load the order and compute its summary."""
    order = session.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f'Order {order_id} not found')
    return calculate_payment_summary(session, order.id, order.total_amount, order.payment_status)


def ensure_payment_transaction_exists(session, order_id: int, profile_id: Optional[str], amount, payment_status: str) -> bool:
    """
    Give a paid legacy order a matching 'legacy_record' payment row.

    Orders marked paid before transaction logging existed have no rows;
    adding one keeps later refunds and edits consistent. Returns False only
    when the check or insert fails.
    """
    try:
        count = (
            session.query(func.count(PaymentTransaction.id))
            .filter(PaymentTransaction.order_id == order_id)
            .scalar()
        )
        amount = to_decimal(amount)

        if count == 0 and (payment_status or '').lower() == PaymentStatus.PAID.value and amount > 0:
            session.add(PaymentTransaction(
                order_id=order_id,
                profile_id=profile_id,
                amount=quantize_money(amount),
                status='completed',
                transaction_type='payment',
                payment_method_type=LEGACY_METHOD_TYPE,
            ))
            session.commit()
            logger.info(f"[PAYMENTS] Created legacy payment transaction for order {order_id}")
        return True
    except (SQLAlchemyError, ValueError) as e:
        session.rollback()
        logger.error(f"[PAYMENTS] Error ensuring payment transaction for order {order_id}: {e}")
        return False


def record_payment_transaction(
    session,
    order_id: int,
    amount,
    transaction_type: str = 'payment',
    status: str = 'completed',
    payment_method_type: Optional[str] = None,
    profile_id: Optional[str] = None
) -> PaymentTransaction:
    """
    Append a payment or refund and refresh the order's stored payment status.

    Raises:
        NotFoundError: order does not exist
        BusinessLogicError: invalid type or non-positive amount
        StoreError: the database failed
    """
    transaction_type = (transaction_type or '').lower()
    if transaction_type not in TRANSACTION_TYPES:
        raise BusinessLogicError(f'Invalid transaction type: {transaction_type}')
    try:
        amount = quantize_money(amount)
    except ValueError as e:
        raise BusinessLogicError(str(e))
    if amount <= 0:
        raise BusinessLogicError('Amount must be greater than 0')

    order = session.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f'Order {order_id} not found')

    # Legacy paid orders get their implicit payment on record before a refund lands
    ensure_payment_transaction_exists(session, order.id, order.profile_id, order.total_amount, order.payment_status)

    try:
        payment = PaymentTransaction(
            order_id=order.id,
            profile_id=profile_id or order.profile_id,
            amount=amount,
            status=status,
            transaction_type=transaction_type,
            payment_method_type=payment_method_type,
        )
        session.add(payment)
        session.flush()

        transactions = session.query(PaymentTransaction).filter(PaymentTransaction.order_id == order.id).all()
        # Stored status is not passed: it is what we are recomputing
        summary = summarize_transactions(order.total_amount, transactions)
        order.payment_status = _status_for(summary)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"[PAYMENTS] Error recording {transaction_type} for order {order_id}")
        raise StoreError(f'Error recording payment: {e}') from e

    count_payment_transaction(transaction_type, status)
    logger.info(
        f"[PAYMENTS] Recorded {transaction_type} {amount} ({status}) for order {order.id}; "
        f"status now {order.payment_status}"
    )
    return payment


def get_payment_status_display(summary: Dict[str, Any]) -> Dict[str, str]:
    """Badge label and color for a payment summary."""
    if summary.get('is_fully_paid'):
        return {'label': 'Paid', 'color': 'green'}
    if summary.get('is_partially_paid'):
        return {'label': 'Partial', 'color': 'yellow'}
    return {'label': 'Unpaid', 'color': 'red'}


def _status_for(summary: Dict[str, Any]) -> str:
    if summary['is_fully_paid']:
        return PaymentStatus.PAID.value
    if summary['is_partially_paid']:
        return PaymentStatus.PARTIAL.value
    return PaymentStatus.PENDING.value


def _field(tx, name):
    if isinstance(tx, dict):
        return tx.get(name)
    return getattr(tx, name, None)
