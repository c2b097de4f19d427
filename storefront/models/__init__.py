"""Models package - exports all SQLAlchemy models."""
from storefront.models.product import Product
from storefront.models.product_size import ProductSize
from storefront.models.inventory_transaction import InventoryTransaction, TransactionType
from storefront.models.order import Order, OrderLine, OrderStatus, PaymentStatus
from storefront.models.payment_transaction import PaymentTransaction

__all__ = [
    'Product', 'ProductSize',
    'InventoryTransaction', 'TransactionType',
    'Order', 'OrderLine', 'OrderStatus', 'PaymentStatus',
    'PaymentTransaction',
]
