"""
Cart service - session cart with per-size line items.

A cart is a list of line items, one per product. Each line holds one entry
per size variant; the line's `quantity` and `price` are always recomputed
from its sizes. The whole cart is written to client storage after every
mutation. Storage failures never fail a cart operation: the in-memory cart
stays authoritative and `last_save_ok` reports whether the write landed.
"""
import copy
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.blueprints.metrics import count_cart_save
from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.utils.money import to_decimal, to_quantity, quantize_money

logger = logging.getLogger(__name__)

CART_NAMESPACE = 'cart'
DEFAULT_SIZE_TYPE = 'unit'


def _items_key(cart_id: str) -> str:
    return f"{cart_id}:items"


def _activity_key(cart_id: str) -> str:
    return f"{cart_id}:last_action_at"


def _same_id(a, b) -> bool:
    return str(a) == str(b)


def _normalize_size(size: Dict[str, Any]) -> Dict[str, Any]:
    if size.get('id') is None:
        raise BusinessLogicError('Each size needs an id')
    normalized = dict(size)
    normalized['id'] = str(size['id'])
    normalized['type'] = size.get('type') or DEFAULT_SIZE_TYPE
    normalized['quantity'] = _checked_quantity(size.get('quantity'), size['id'])
    normalized['price'] = _checked_price(size.get('price'), size['id'])
    return normalized


def _checked_quantity(value, size_id) -> int:
    try:
        quantity = to_quantity(value)
    except ValueError:
        raise BusinessLogicError(f'Quantity for size {size_id} must be a whole number')
    if quantity < 1:
        raise BusinessLogicError(f'Quantity for size {size_id} must be at least 1')
    return quantity


def _checked_price(value, size_id) -> Decimal:
    try:
        price = quantize_money(value)
    except ValueError:
        raise BusinessLogicError(f'Invalid price for size {size_id}')
    if price < 0:
        raise BusinessLogicError(f'Price for size {size_id} cannot be negative')
    return price


def recompute_line(line: Dict[str, Any]) -> Dict[str, Any]:
    """Derive a line's quantity and price from its sizes."""
    sizes = line.get('sizes') or []
    line['quantity'] = sum(s.get('quantity') or 0 for s in sizes)
    line['price'] = quantize_money(sum(
        (Decimal(s.get('quantity') or 0) * to_decimal(s.get('price')) for s in sizes),
        Decimal('0')
    ))
    return line


def migrate_legacy_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Bring stored items to the per-size shape.

    Older carts stored a single size on the item itself (size_id/size_value).
    Those become a one-entry `sizes` list; items that end up with no sizes
    are dropped.
    """
    migrated = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if isinstance(item.get('sizes'), list) and item['sizes']:
            migrated.append(item)
            continue
        if item.get('size_id') or item.get('size_value'):
            legacy = dict(item)
            try:
                legacy['sizes'] = [_normalize_size({
                    'id': item.get('size_id') or f"{item.get('product_id')}-legacy",
                    'size_value': item.get('size_value') or '',
                    'size_unit': item.get('size_unit') or '',
                    'price': item.get('price') or 0,
                    'quantity': item.get('quantity') or 1,
                    'type': item.get('type') or DEFAULT_SIZE_TYPE,
                })]
            except BusinessLogicError as e:
                logger.warning(f"[CART] Dropping unreadable legacy item {item.get('product_id')}: {e.message}")
                continue
            for field in ('size_id', 'size_value', 'size_unit', 'type'):
                legacy.pop(field, None)
            migrated.append(recompute_line(legacy))
    return migrated


class Cart:
    """A single session's cart."""

    def __init__(self, cart_id: str, storage=None, items: Optional[List[Dict[str, Any]]] = None,
                 last_action_at: Optional[str] = None, ttl: Optional[int] = None):
        self.cart_id = str(cart_id)
        self.storage = storage
        self.ttl = ttl
        self.items: List[Dict[str, Any]] = items or []
        self.last_action_at = last_action_at
        self.last_save_ok: Optional[bool] = None

    @classmethod
    def load(cls, cart_id: str, storage=None, ttl: Optional[int] = None) -> 'Cart':
        """Rehydrate a cart from client storage (empty when nothing is stored)."""
        stored = None
        last_action_at = None
        if storage is not None:
            stored = storage.get_json(CART_NAMESPACE, _items_key(cart_id))
            last_action_at = storage.get_json(CART_NAMESPACE, _activity_key(cart_id))

        if not isinstance(stored, list):
            return cls(cart_id, storage=storage, last_action_at=last_action_at, ttl=ttl)

        items = migrate_legacy_items(stored)
        cart = cls(cart_id, storage=storage, items=items, last_action_at=last_action_at, ttl=ttl)
        if items != stored:
            logger.info(f"[CART] Migrated legacy cart {cart_id} ({len(stored)} -> {len(items)} items)")
            cart._persist()
        if items and not last_action_at:
            # Items without a timestamp count as fresh activity
            cart._mark_activity()
        return cart

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_item(self, product_id) -> Optional[Dict[str, Any]]:
        for item in self.items:
            if _same_id(item.get('product_id'), product_id):
                return item
        return None

    def _require_item(self, product_id) -> Dict[str, Any]:
        item = self.find_item(product_id)
        if item is None:
            raise NotFoundError(f'Product {product_id} is not in the cart')
        return item

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add a product, merging sizes into an existing line for the same product.

        Sizes with the same (id, type) have their quantities summed; new sizes
        are appended in order.
        """
        if not item or item.get('product_id') is None:
            raise BusinessLogicError('product_id is required')

        incoming = [_normalize_size(s) for s in (item.get('sizes') or [])]
        existing = self.find_item(item['product_id'])

        if existing:
            existing.setdefault('sizes', [])
            for new_size in incoming:
                found = next(
                    (s for s in existing['sizes']
                     if _same_id(s['id'], new_size['id']) and s.get('type') == new_size['type']),
                    None
                )
                if found:
                    found['quantity'] += new_size['quantity']
                else:
                    existing['sizes'].append(new_size)
            line = recompute_line(existing)
        else:
            line = copy.deepcopy(item)
            line['sizes'] = incoming
            line = recompute_line(line)
            self.items.append(line)

        self._after_mutation()
        return line

    def update_quantity(self, product_id, size_id, quantity: int) -> Dict[str, Any]:
        """Set one size's quantity (a whole number, at least 1)."""
        line = self._require_item(product_id)
        size = self._find_size(line, size_id)
        if size is not None:
            size['quantity'] = _checked_quantity(quantity, size_id)
        recompute_line(line)
        self._after_mutation()
        return line

    def update_price(self, product_id, size_id, price) -> Dict[str, Any]:
        """Set one size's unit price."""
        line = self._require_item(product_id)
        size = self._find_size(line, size_id)
        if size is not None:
            size['price'] = _checked_price(price, size_id)
        recompute_line(line)
        self._after_mutation()
        return line

    def update_description(self, product_id, description: str) -> Dict[str, Any]:
        line = self._require_item(product_id)
        line['description'] = description
        self._after_mutation()
        return line

    def remove_item(self, product_id) -> None:
        self.items = [i for i in self.items if not _same_id(i.get('product_id'), product_id)]
        self._after_mutation()

    def clear(self) -> None:
        """Empty the cart and drop its persisted copy."""
        self.items = []
        if self.storage is not None:
            self.last_save_ok = self.storage.remove(CART_NAMESPACE, _items_key(self.cart_id))
        else:
            self.last_save_ok = False
        self._mark_activity()

    # ------------------------------------------------------------------
    # Derived values (recomputed on every read)
    # ------------------------------------------------------------------

    def total(self) -> Decimal:
        return quantize_money(sum(
            (Decimal(s.get('quantity') or 0) * to_decimal(s.get('price'))
             for item in self.items for s in item.get('sizes') or []),
            Decimal('0')
        ))

    def item_count(self) -> int:
        return sum(s.get('quantity') or 0 for item in self.items for s in item.get('sizes') or [])

    def is_empty(self) -> bool:
        return self.item_count() == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cart_id': self.cart_id,
            'items': self.items,
            'total': self.total(),
            'item_count': self.item_count(),
            'last_action_at': self.last_action_at,
            'persisted': bool(self.last_save_ok),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def _find_size(line, size_id):
        return next((s for s in line.get('sizes') or [] if _same_id(s['id'], size_id)), None)

    def _after_mutation(self) -> None:
        self._persist()
        self._mark_activity()

    def _persist(self) -> bool:
        if self.storage is None:
            self.last_save_ok = False
            return False
        self.last_save_ok = self.storage.set_json(
            CART_NAMESPACE, _items_key(self.cart_id), self.items, ttl=self.ttl
        )
        count_cart_save(self.last_save_ok)
        if not self.last_save_ok:
            logger.warning(f"[CART] Could not persist cart {self.cart_id}; keeping it in memory")
        return self.last_save_ok

    def _mark_activity(self) -> None:
        self.last_action_at = datetime.now().isoformat()
        if self.storage is not None:
            self.storage.set_json(CART_NAMESPACE, _activity_key(self.cart_id), self.last_action_at, ttl=self.ttl)
