# app/schemas/transaction.py
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from app.models.transaction import Transaction as TransactionModel, TYPE_PURCHASE
from app.schemas.pagination import PaginatedResponse


# --- Requests ---

class TransactionCreate(BaseModel):
    """Body of POST /transactions: purchases (cashier+) and adjustments (manager+)."""
    utorid: str = Field(..., min_length=1)
    type: Literal["purchase", "adjustment"]
    spent: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    amount: Optional[int] = None
    related_id: Optional[int] = None
    promotion_ids: List[int] = Field(default_factory=list)
    remark: str = ""

    @model_validator(mode="after")
    def check_type_fields(self):
        if self.type == "purchase" and self.spent is None:
            raise ValueError("spent is required for purchase transactions")
        if self.type == "adjustment":
            if self.amount is None:
                raise ValueError("amount is required for adjustment transactions")
            if self.related_id is None:
                raise ValueError("related_id is required for adjustment transactions")
        return self


class RedemptionCreate(BaseModel):
    type: Literal["redemption"]
    amount: int = Field(..., gt=0)
    remark: str = ""


class TransferCreate(BaseModel):
    type: Literal["transfer"]
    amount: int = Field(..., gt=0)
    remark: str = ""


class EventAwardCreate(BaseModel):
    """Without `utorid` every guest of the event gets `amount`."""
    type: Literal["event"]
    utorid: Optional[str] = Field(None, min_length=1)
    amount: int = Field(..., gt=0)
    remark: str = ""


class SuspiciousUpdate(BaseModel):
    suspicious: bool


class ProcessedUpdate(BaseModel):
    processed: Literal[True]


# --- Responses ---

class TransactionOut(BaseModel):
    id: int
    utorid: str
    type: str
    amount: int
    # Points that actually reached the owner (0 for a suspicious purchase)
    earned: Optional[int] = None
    spent: Optional[Decimal] = None
    redeemed: Optional[int] = None
    suspicious: bool
    remark: str
    promotion_ids: List[int]
    related_id: Optional[int] = None
    processed_by: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, transaction: TransactionModel) -> "TransactionOut":
        is_purchase = transaction.type == TYPE_PURCHASE
        return cls(
            id=transaction.id,
            utorid=transaction.owner.utorid,
            type=transaction.type,
            amount=transaction.amount,
            earned=(0 if transaction.suspicious else transaction.amount) if is_purchase else None,
            spent=transaction.spent,
            redeemed=transaction.redeemed,
            suspicious=transaction.suspicious,
            remark=transaction.remark or "",
            promotion_ids=transaction.promotion_ids,
            related_id=transaction.related_id,
            processed_by=transaction.processor.utorid if transaction.processor else None,
            created_by=transaction.creator.utorid,
            created_at=transaction.created_at,
        )


class TransferOut(BaseModel):
    id: int
    sender: str
    recipient: str
    type: str = "transfer"
    sent: int
    remark: str
    created_by: str


class PaginatedTransactions(PaginatedResponse[TransactionOut]):
    pass
