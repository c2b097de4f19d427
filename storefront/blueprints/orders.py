"""Orders blueprint - checkout, cancellation and payments."""
from flask import Blueprint, request, jsonify
from storefront.database import get_session
from storefront.middleware import current_actor
from storefront.exceptions import BusinessLogicError
from storefront.services import order_service, payment_service
from storefront.blueprints.cart import load_session_cart

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def _order_json(order):
    return {
        'id': order.id,
        'order_number': order.order_number,
        'profile_id': order.profile_id,
        'total_amount': order.total_amount,
        'status': order.status,
        'payment_status': order.payment_status,
    }


@orders_bp.route('/checkout', methods=['POST'])
def checkout():
    """Place an order from the session cart."""
    payload = request.get_json(silent=True) or {}
    order = order_service.place_order(
        get_session(),
        load_session_cart(),
        profile_id=payload.get('profile_id') or current_actor(),
        actor_id=current_actor(),
    )
    return jsonify(_order_json(order)), 201


@orders_bp.route('/<int:order_id>/cancel', methods=['POST'])
def cancel(order_id):
    order = order_service.cancel_order(get_session(), order_id, actor_id=current_actor())
    return jsonify(_order_json(order))


@orders_bp.route('/<int:order_id>/payment-summary', methods=['GET'])
def payment_summary(order_id):
    summary = payment_service.get_order_payment_summary(get_session(), order_id)
    return jsonify({**summary, 'display': payment_service.get_payment_status_display(summary)})


@orders_bp.route('/<int:order_id>/payments', methods=['POST'])
def record_payment(order_id):
    """Record a payment or refund against an order."""
    payload = request.get_json(silent=True) or {}
    if 'amount' not in payload:
        raise BusinessLogicError('amount is required')

    db_session = get_session()
    payment = payment_service.record_payment_transaction(
        db_session,
        order_id,
        amount=payload['amount'],
        transaction_type=payload.get('transaction_type', 'payment'),
        status=payload.get('status', 'completed'),
        payment_method_type=payload.get('payment_method_type'),
    )
    summary = payment_service.get_order_payment_summary(db_session, order_id)
    return jsonify({'payment_id': payment.id, **summary}), 201
