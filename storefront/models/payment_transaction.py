"""Payment Transaction model."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from storefront.database import Base, BigIntPK


class PaymentTransaction(Base):
    """
    Payment Transaction - one payment or refund event against an order.

    Amounts are stored unsigned; transaction_type decides whether the row
    adds to ('payment') or subtracts from ('refund') the paid amount.
    """

    __tablename__ = 'payment_transaction'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    profile_id = Column(String(64), nullable=True)
    invoice_id = Column(String(64), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default='pending')
    transaction_type = Column(String(20), nullable=False, default='payment')
    payment_method_type = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)

    # Relationships
    order = relationship('Order', back_populates='payment_transactions')

    def __repr__(self):
        return (f"<PaymentTransaction(id={self.id}, order_id={self.order_id}, "
                f"type={self.transaction_type}, amount={self.amount}, status={self.status})>")
