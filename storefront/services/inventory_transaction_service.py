"""
Inventory transaction service - append-only stock ledger.

Every movement writes one InventoryTransaction row and moves the product's
current_stock counter in the same database transaction. The non-negative
check lives inside the UPDATE itself:

    UPDATE product SET current_stock = current_stock + :delta
     WHERE id = :product_id AND current_stock + :delta >= 0

so two concurrent writers can never both pass the check on a stale read.
"""
import logging
from datetime import datetime
from typing import List, Dict, Optional, Any, Iterable

from sqlalchemy.exc import SQLAlchemyError

from storefront.blueprints.metrics import count_inventory_transaction, count_insufficient_stock
from storefront.models import Product, InventoryTransaction, TransactionType
from storefront.exceptions import BusinessLogicError, NotFoundError, InsufficientStockError, StoreError
from storefront.utils.money import to_quantity

logger = logging.getLogger(__name__)


def get_current_stock(session, product_id: int) -> int:
    """Read a product's stock counter straight from the database."""
    stock = session.query(Product.current_stock).filter(Product.id == product_id).scalar()
    if stock is None:
        raise NotFoundError(f'Product {product_id} not found')
    return stock


def record_transaction(
    session,
    product_id: int,
    type,
    quantity: int,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
    actor_id: Optional[str] = None,
    commit: bool = True
) -> InventoryTransaction:
    """
    Record one stock movement and update the product's stock counter.

    Args:
        session: SQLAlchemy session
        product_id: Product ID
        type: TransactionType (or its string value)
        quantity: Units moved. Outbound kinds (sale, damage, expired, theft)
            always subtract and inbound kinds (receipt, return, restoration)
            always add, whatever sign is passed; adjustment and transfer use
            the sign as given.
        reference_id: Order number or other external reference
        notes: Free text
        actor_id: User recording the movement
        commit: Commit when done; pass False to leave the transaction open
            for the caller (e.g. checkout)

    Returns:
        The InventoryTransaction row

    Raises:
        NotFoundError: product does not exist
        InsufficientStockError: the movement would drive stock negative
        BusinessLogicError: invalid type, or a zero or fractional quantity
        StoreError: the database failed; nothing from this call is kept
    """
    try:
        kind = TransactionType.parse(type)
        delta = kind.signed(to_quantity(quantity))
    except (TypeError, ValueError) as e:
        raise BusinessLogicError(str(e))

    if delta == 0:
        raise BusinessLogicError('Quantity must be non-zero')

    try:
        updated = (
            session.query(Product)
            .filter(Product.id == product_id, Product.current_stock + delta >= 0)
            .update(
                {Product.current_stock: Product.current_stock + delta, Product.updated_at: datetime.now()},
                synchronize_session='fetch'
            )
        )

        if updated == 0:
            current = session.query(Product.current_stock).filter(Product.id == product_id).scalar()
            if commit:
                session.rollback()
            if current is None:
                raise NotFoundError(f'Product {product_id} not found')
            count_insufficient_stock(kind.value)
            raise InsufficientStockError(product_id, current, abs(delta))

        new_stock = session.query(Product.current_stock).filter(Product.id == product_id).scalar()
        entry = InventoryTransaction(
            product_id=product_id,
            type=kind,
            quantity=delta,
            previous_stock=new_stock - delta,
            new_stock=new_stock,
            reference_id=str(reference_id) if reference_id is not None else None,
            notes=notes,
            created_by=str(actor_id) if actor_id is not None else None,
        )
        session.add(entry)

        if commit:
            session.commit()
        else:
            session.flush()

    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"[INVENTORY] Error recording {kind.value} for product {product_id}")
        raise StoreError(f'Error recording inventory transaction: {e}') from e

    count_inventory_transaction(kind.value)
    logger.info(
        f"[INVENTORY] Recorded {kind.value} {delta:+d} for product {product_id} "
        f"({entry.previous_stock} -> {entry.new_stock})"
    )
    return entry


def record_bulk_transactions(
    session,
    transactions: Iterable[Dict[str, Any]],
    actor_id: Optional[str] = None,
    atomic: bool = False
) -> List[InventoryTransaction]:
    """
    Apply several movements in order.

    Each item is a dict with product_id, type, quantity and optional
    reference_id/notes.

    With atomic=False every item commits on its own, so a failure leaves the
    earlier items in place. With atomic=True the items share one database
    transaction and a failure rolls all of them back.
    """
    entries = []
    try:
        for item in transactions:
            entries.append(record_transaction(
                session,
                product_id=item['product_id'],
                type=item['type'],
                quantity=item['quantity'],
                reference_id=item.get('reference_id'),
                notes=item.get('notes'),
                actor_id=actor_id,
                commit=not atomic
            ))
        if atomic:
            session.commit()
    except Exception:
        if atomic:
            session.rollback()
        logger.error(
            f"[INVENTORY] Bulk transactions stopped after {len(entries)} item(s)"
            + (" (rolled back)" if atomic else "")
        )
        raise
    return entries


def get_product_history(session, product_id: int, limit: int = 50) -> List[InventoryTransaction]:
    """Most recent ledger rows for a product, newest first."""
    return (
        session.query(InventoryTransaction)
        .filter(InventoryTransaction.product_id == product_id)
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )


def get_transactions_by_date_range(session, start_date: datetime, end_date: datetime) -> List[InventoryTransaction]:
    """All ledger rows created within [start_date, end_date], newest first."""
    return (
        session.query(InventoryTransaction)
        .join(Product, Product.id == InventoryTransaction.product_id)
        .filter(
            InventoryTransaction.created_at >= start_date,
            InventoryTransaction.created_at <= end_date
        )
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .all()
    )


def get_transaction_summary(session, start_date: datetime, end_date: datetime) -> Dict[str, int]:
    """Units moved per transaction type (absolute values) in the window."""
    summary: Dict[str, int] = {}
    for t in get_transactions_by_date_range(session, start_date, end_date):
        summary[t.type.value] = summary.get(t.type.value, 0) + abs(t.quantity)
    return summary


def get_stock_movement_report(session, start_date: datetime, end_date: datetime) -> List[Dict[str, Any]]:
    """
    Per-product movement summary for the window.

    Returns:
        List of dicts with keys product_id, product_name, sold, received,
        adjusted (signed), returned and net_change (signed sum of all rows).
    """
    report: Dict[int, Dict[str, Any]] = {}

    for t in get_transactions_by_date_range(session, start_date, end_date):
        row = report.get(t.product_id)
        if row is None:
            row = report[t.product_id] = {
                'product_id': t.product_id,
                'product_name': t.product.name,
                'sold': 0,
                'received': 0,
                'adjusted': 0,
                'returned': 0,
                'net_change': 0,
            }

        if t.type == TransactionType.SALE:
            row['sold'] += abs(t.quantity)
        elif t.type == TransactionType.RECEIPT:
            row['received'] += abs(t.quantity)
        elif t.type == TransactionType.ADJUSTMENT:
            row['adjusted'] += t.quantity
        elif t.type == TransactionType.RETURN:
            row['returned'] += abs(t.quantity)

        row['net_change'] += t.quantity

    return list(report.values())
