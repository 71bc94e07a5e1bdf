# app/models/transaction.py

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Table, Text, func
from sqlalchemy.orm import relationship

from app.db.session import Base

TYPE_PURCHASE = "purchase"
TYPE_REDEMPTION = "redemption"
TYPE_TRANSFER = "transfer"
TYPE_ADJUSTMENT = "adjustment"
TYPE_EVENT = "event"

TRANSACTION_TYPES = (TYPE_PURCHASE, TYPE_REDEMPTION, TYPE_TRANSFER, TYPE_ADJUSTMENT, TYPE_EVENT)

transaction_promotions = Table(
    "transaction_promotions",
    Base.metadata,
    Column("transaction_id", Integer, ForeignKey("transactions.id", ondelete="CASCADE"), primary_key=True),
    Column("promotion_id", Integer, ForeignKey("promotions.id", ondelete="CASCADE"), primary_key=True),
)


class Transaction(Base):
    """
    One table for every transaction type; type-specific columns are nullable.
    `amount` is the signed points delta for the owner: negative for redemptions
    and outgoing transfers, and for purchases the earned value even while suspicious.
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(20), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    remark = Column(Text, nullable=False, default="", server_default="")

    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    creator_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # purchase
    spent = Column(Numeric(10, 2), nullable=True)
    suspicious = Column(Boolean, default=False, nullable=False, server_default='false')
    # redemption, set when processed
    redeemed = Column(Integer, nullable=True)
    processor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    # transfer counterpart
    related_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    # adjustment reference
    related_transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True)
    # event award
    event_id = Column(Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now())

    owner = relationship("User", foreign_keys=[owner_user_id])
    creator = relationship("User", foreign_keys=[creator_user_id])
    processor = relationship("User", foreign_keys=[processor_user_id])
    related_user = relationship("User", foreign_keys=[related_user_id])
    promotions = relationship("Promotion", secondary=transaction_promotions, lazy="selectin", order_by="Promotion.id")

    @property
    def related_id(self) -> int | None:
        """The type-specific reference exposed to clients."""
        if self.type == TYPE_ADJUSTMENT:
            return self.related_transaction_id
        if self.type == TYPE_TRANSFER:
            return self.related_user_id
        if self.type == TYPE_REDEMPTION:
            return self.processor_user_id
        if self.type == TYPE_EVENT:
            return self.event_id
        return None

    @property
    def promotion_ids(self) -> list[int]:
        return [promotion.id for promotion in self.promotions]
