"""Product model."""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, BigIntPK


class Product(Base):
    """Product model."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('current_stock >= 0', name='ck_product_current_stock_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    sku = Column(String, nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0, server_default='0.00')
    # Authoritative stock counter, written in the same transaction as each ledger row
    current_stock = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    sizes = relationship('ProductSize', back_populates='product', cascade='all, delete-orphan',
                         order_by='ProductSize.sequence')
    transactions = relationship('InventoryTransaction', back_populates='product')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', current_stock={self.current_stock})>"
