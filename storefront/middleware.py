"""Request context: acting user and session cart."""
import uuid
from flask import session, g, request


def load_actor():
    """
    Load the acting user id into g.

    API clients send X-User-Id; browser sessions carry user_id in the
    Flask session. Anonymous requests leave g.user_id as None.
    """
    g.user_id = request.headers.get('X-User-Id') or session.get('user_id')


def current_actor():
    return g.get('user_id')


def get_cart_id() -> str:
    """Cart id for this session, created on first use."""
    cart_id = session.get('cart_id')
    if not cart_id:
        cart_id = uuid.uuid4().hex
        session['cart_id'] = cart_id
    return cart_id
