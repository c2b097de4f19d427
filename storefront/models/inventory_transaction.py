"""Inventory Transaction model (append-only stock ledger)."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from storefront.database import Base, BigIntPK
import enum


class TransactionType(enum.Enum):
    """
    Stock movement kind.

    Each kind carries its direction: outbound kinds always remove stock,
    inbound kinds always add it, and ADJUSTMENT/TRANSFER take the sign
    the caller gives them.
    """
    SALE = "sale"                # Order placed
    RECEIPT = "receipt"          # Stock received
    ADJUSTMENT = "adjustment"    # Manual adjustment
    RETURN = "return"            # Customer return
    TRANSFER = "transfer"        # Location transfer
    RESTORATION = "restoration"  # Order cancelled
    DAMAGE = "damage"            # Damaged goods
    EXPIRED = "expired"          # Expired products
    THEFT = "theft"              # Theft/loss

    @property
    def direction(self) -> int:
        """-1 outbound, +1 inbound, 0 when the caller's sign is kept."""
        return _DIRECTIONS[self]

    def signed(self, quantity: int) -> int:
        """Apply this kind's direction to a quantity."""
        if self.direction == 0:
            return quantity
        return self.direction * abs(quantity)

    @classmethod
    def parse(cls, value):
        """Accept a TransactionType, its value or its name (any case)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        raise ValueError(f"Invalid transaction type: {value}")


_DIRECTIONS = {
    TransactionType.SALE: -1,
    TransactionType.DAMAGE: -1,
    TransactionType.EXPIRED: -1,
    TransactionType.THEFT: -1,
    TransactionType.RECEIPT: 1,
    TransactionType.RETURN: 1,
    TransactionType.RESTORATION: 1,
    TransactionType.ADJUSTMENT: 0,
    TransactionType.TRANSFER: 0,
}


class InventoryTransaction(Base):
    """Inventory Transaction (one signed stock movement)."""

    __tablename__ = 'inventory_transaction'
    __table_args__ = (
        CheckConstraint('new_stock = previous_stock + quantity', name='ck_inventory_transaction_balance'),
        CheckConstraint('new_stock >= 0', name='ck_inventory_transaction_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False, index=True)
    type = Column(
        Enum(TransactionType, name='inventory_transaction_type',
             values_callable=lambda kinds: [k.value for k in kinds]),
        nullable=False
    )
    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    reference_id = Column(String(64), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, index=True)

    # Relationships
    product = relationship('Product', back_populates='transactions')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'type': self.type.value,
            'quantity': self.quantity,
            'previous_stock': self.previous_stock,
            'new_stock': self.new_stock,
            'reference_id': self.reference_id,
            'notes': self.notes,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return (f"<InventoryTransaction(id={self.id}, product_id={self.product_id}, "
                f"type={self.type.value}, quantity={self.quantity})>")
