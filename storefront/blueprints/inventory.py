"""Inventory blueprint - stock movements, history and reports."""
from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify, current_app
from storefront.database import get_session
from storefront.middleware import current_actor
from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.utils.money import to_quantity
from storefront.services import inventory_transaction_service as ledger
from storefront.services import size_inventory_service

inventory_bp = Blueprint('inventory', __name__, url_prefix='/inventory')


def _parse_range():
    """Read ?start=YYYY-MM-DD&end=YYYY-MM-DD (default: last 30 days, end inclusive)."""
    start_str = request.args.get('start', '').strip()
    end_str = request.args.get('end', '').strip()
    try:
        end = datetime.strptime(end_str, '%Y-%m-%d') if end_str else datetime.now()
        start = datetime.strptime(start_str, '%Y-%m-%d') if start_str else end - timedelta(days=30)
    except ValueError:
        raise BusinessLogicError('Dates must use the YYYY-MM-DD format')
    if end_str:
        end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
    if start > end:
        raise BusinessLogicError('start must be before end')
    return start, end


@inventory_bp.route('/products/<int:product_id>/stock', methods=['GET'])
def product_stock(product_id):
    db_session = get_session()
    return jsonify({'product_id': product_id, 'current_stock': ledger.get_current_stock(db_session, product_id)})


@inventory_bp.route('/products/<int:product_id>/transactions', methods=['POST'])
def record_transaction(product_id):
    """Record a stock movement for a product."""
    payload = request.get_json(silent=True) or {}
    if 'type' not in payload or 'quantity' not in payload:
        raise BusinessLogicError('type and quantity are required')

    entry = ledger.record_transaction(
        get_session(),
        product_id=product_id,
        type=payload['type'],
        quantity=payload['quantity'],
        reference_id=payload.get('reference_id'),
        notes=payload.get('notes'),
        actor_id=current_actor(),
    )
    return jsonify(entry.to_dict()), 201


@inventory_bp.route('/products/<int:product_id>/history', methods=['GET'])
def product_history(product_id):
    default_limit = current_app.config.get('PRODUCT_HISTORY_LIMIT', 50)
    limit = request.args.get('limit', default_limit, type=int)
    entries = ledger.get_product_history(get_session(), product_id, limit=max(1, limit))
    return jsonify([e.to_dict() for e in entries])


@inventory_bp.route('/report', methods=['GET'])
def movement_report():
    start, end = _parse_range()
    return jsonify(ledger.get_stock_movement_report(get_session(), start, end))


@inventory_bp.route('/summary', methods=['GET'])
def transaction_summary():
    start, end = _parse_range()
    return jsonify(ledger.get_transaction_summary(get_session(), start, end))


@inventory_bp.route('/low-stock', methods=['GET'])
def low_stock():
    default_threshold = current_app.config.get('LOW_STOCK_THRESHOLD', 20)
    threshold = request.args.get('threshold', default_threshold, type=int)
    sizes = size_inventory_service.get_low_stock_sizes(get_session(), threshold)
    return jsonify([
        {
            'id': s.id,
            'product_id': s.product_id,
            'product_name': s.product.name,
            'size': s.label,
            'stock': s.stock,
        }
        for s in sizes
    ])


@inventory_bp.route('/sizes/<int:size_id>/adjust', methods=['POST'])
def adjust_size(size_id):
    """Increase or decrease the stock of one size."""
    payload = request.get_json(silent=True) or {}
    try:
        quantity = to_quantity(payload.get('quantity', 0))
    except ValueError:
        raise BusinessLogicError('Quantity must be a whole number')

    ok = size_inventory_service.adjust_size_stock(
        get_session(),
        size_id,
        adjustment_type=payload.get('adjustment_type', ''),
        quantity=quantity,
        reason_code=payload.get('reason_code') or 'manual',
        reason_description=payload.get('reason_description'),
    )
    if not ok:
        raise NotFoundError(f'Size {size_id} could not be adjusted')
    return jsonify({'status': 'ok', 'size_id': size_id})
