"""Product Size model (per-size variant with its own stock and pricing)."""
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, BigIntPK


class ProductSize(Base):
    """Product Size - N:1 with Product."""

    __tablename__ = 'product_size'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_size_stock_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(BigInteger, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    size_value = Column(String(50), nullable=False, default='')
    size_unit = Column(String(20), nullable=False, default='')
    sku = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0, server_default='0.00')
    price_per_case = Column(Numeric(10, 2), nullable=True)
    quantity_per_case = Column(Integer, nullable=True)
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    ndc_code = Column(String(30), nullable=True)
    upc_code = Column(String(30), nullable=True)
    lot_number = Column(String(50), nullable=True)
    expiry = Column(Date, nullable=True)
    sequence = Column(Integer, nullable=False, default=0, server_default='0')
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship('Product', back_populates='sizes')

    # Fields callers may change through update_size_inventory
    EDITABLE_FIELDS = (
        'stock', 'price', 'price_per_case', 'sku', 'ndc_code', 'upc_code',
        'lot_number', 'expiry', 'quantity_per_case', 'size_value', 'size_unit', 'sequence',
    )

    @property
    def label(self):
        return f"{self.size_value} {self.size_unit}".strip()

    def __repr__(self):
        return f"<ProductSize(id={self.id}, product_id={self.product_id}, label='{self.label}', stock={self.stock})>"
