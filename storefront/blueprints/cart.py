"""Cart blueprint - JSON API over the session cart."""
from flask import Blueprint, request, jsonify, current_app
from storefront.services.cart_service import Cart
from storefront.services.client_storage import get_client_storage
from storefront.middleware import get_cart_id
from storefront.exceptions import BusinessLogicError
from storefront.utils.money import to_quantity

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')


def load_session_cart() -> Cart:
    ttl = current_app.config.get('CART_STORAGE_TTL') or None
    return Cart.load(get_cart_id(), storage=get_client_storage(), ttl=ttl)


@cart_bp.route('', methods=['GET'])
def view_cart():
    """Current cart with totals."""
    return jsonify(load_session_cart().to_dict())


@cart_bp.route('/items', methods=['POST'])
def add_item():
    """Add a product (with its sizes) to the cart."""
    payload = request.get_json(silent=True) or {}
    cart = load_session_cart()
    cart.add_item(payload)
    return jsonify(cart.to_dict()), 201


@cart_bp.route('/items/<product_id>/sizes/<size_id>', methods=['PATCH'])
def update_size(product_id, size_id):
    """Change quantity and/or unit price of one size."""
    payload = request.get_json(silent=True) or {}
    if 'quantity' not in payload and 'price' not in payload:
        raise BusinessLogicError('Nothing to update: send quantity and/or price')

    cart = load_session_cart()
    if 'quantity' in payload:
        try:
            quantity = to_quantity(payload['quantity'])
        except ValueError:
            raise BusinessLogicError('Quantity must be a whole number')
        if quantity < 1:
            raise BusinessLogicError('Quantity must be at least 1')
        cart.update_quantity(product_id, size_id, quantity)
    if 'price' in payload:
        try:
            cart.update_price(product_id, size_id, payload['price'])
        except ValueError as e:
            raise BusinessLogicError(str(e))
    return jsonify(cart.to_dict())


@cart_bp.route('/items/<product_id>/description', methods=['PUT'])
def update_description(product_id):
    payload = request.get_json(silent=True) or {}
    cart = load_session_cart()
    cart.update_description(product_id, payload.get('description') or '')
    return jsonify(cart.to_dict())


@cart_bp.route('/items/<product_id>', methods=['DELETE'])
def remove_item(product_id):
    cart = load_session_cart()
    cart.remove_item(product_id)
    return jsonify(cart.to_dict())


@cart_bp.route('', methods=['DELETE'])
def clear_cart():
    cart = load_session_cart()
    cart.clear()
    return jsonify(cart.to_dict())
