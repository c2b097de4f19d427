"""Order and Order Line models."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from storefront.database import Base, BigIntPK
import enum


class OrderStatus(str, enum.Enum):
    """Order lifecycle status."""
    PENDING = 'pending'
    CANCELLED = 'cancelled'


class PaymentStatus(str, enum.Enum):
    """Stored payment status (kept in sync with the payment summary)."""
    PENDING = 'pending'
    PARTIAL = 'partial'
    PAID = 'paid'


class Order(Base):
    """Order placed from a cart."""

    __tablename__ = 'orders'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    profile_id = Column(String(64), nullable=True, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)

    # Relationships
    lines = relationship('OrderLine', back_populates='order', cascade='all, delete-orphan')
    payment_transactions = relationship('PaymentTransaction', back_populates='order')

    @property
    def is_cancelled(self):
        return self.status == OrderStatus.CANCELLED.value

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', total={self.total_amount})>"


class OrderLine(Base):
    """Order Line (one product size within an order)."""

    __tablename__ = 'order_line'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    size_id = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship('Order', back_populates='lines')
    product = relationship('Product')

    def __repr__(self):
        return f"<OrderLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
