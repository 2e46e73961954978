# app/models/borrow_transaction.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import BorrowStatus, BorrowerType
from app.core.utils import utc_now, as_utc


class BorrowRequestLine(BaseModel):
    item_id: str = Field(..., description="String ObjectId of the inventory item")
    quantity: int = Field(..., gt=0, description="Number of units to borrow (must be > 0)")


class BorrowTransaction(Document):
    """One borrow event for one item. Stock is reserved only once an admin approves it."""
    transaction_code: str
    item_id: PydanticObjectId
    item_name: str
    borrower_id: PydanticObjectId
    borrower_name: str
    borrower_type: BorrowerType = BorrowerType.USER
    quantity: int = Field(..., gt=0, description="Number of units borrowed")

    borrow_date: datetime
    expected_return_date: datetime
    purpose: str
    location: Optional[str] = None
    notes: Optional[str] = None

    status: BorrowStatus = BorrowStatus.PENDING
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    returned_at: Optional[datetime] = None
    is_overdue: bool = False

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "borrow_transactions"
        indexes = [
            IndexModel([("transaction_code", ASCENDING)], name="transaction_code_unique_index", unique=True),
            IndexModel([("status", ASCENDING), ("created_at", DESCENDING)], name="borrow_status_created_index"),
            IndexModel([("borrower_id", ASCENDING)], name="borrow_borrower_index"),
            IndexModel([("item_id", ASCENDING)], name="borrow_item_index"),
            IndexModel([("expected_return_date", ASCENDING)], name="borrow_due_index"),
        ]

    # --- Pydantic Schemas ---
    class CreateRequest(BaseModel):
        items: List[BorrowRequestLine] = Field(..., min_length=1)
        borrow_date: datetime
        expected_return_date: datetime
        purpose: str = Field(..., min_length=1, max_length=255)
        location: Optional[str] = Field(None, max_length=255)
        notes: Optional[str] = None
        borrower_id: Optional[str] = Field(None, description="Staff/admin only: file the request for this user")

        @model_validator(mode="after")
        def _check_request(self):
            if as_utc(self.expected_return_date) <= as_utc(self.borrow_date):
                raise ValueError("expected_return_date must be after borrow_date")
            # ObjectId hex is case-insensitive
            item_ids = [line.item_id.lower() for line in self.items]
            if len(set(item_ids)) != len(item_ids):
                raise ValueError("each item may appear only once per request")
            return self

    class Reject(BaseModel):
        reason: Optional[str] = Field(None, max_length=500)

    class Extend(BaseModel):
        new_return_date: datetime
        reason: Optional[str] = Field(None, max_length=500)

    class Response(BaseModel):
        id: str
        transaction_code: str
        item_id: str
        item_name: str
        borrower_id: str
        borrower_name: str
        borrower_type: BorrowerType
        quantity: int
        borrow_date: datetime
        expected_return_date: datetime
        purpose: str
        location: Optional[str] = None
        notes: Optional[str] = None
        status: BorrowStatus
        approved_by: Optional[str] = None
        approved_at: Optional[datetime] = None
        rejected_by: Optional[str] = None
        rejected_at: Optional[datetime] = None
        rejection_reason: Optional[str] = None
        returned_at: Optional[datetime] = None
        is_overdue: bool
        created_at: datetime
        updated_at: datetime
        class Config: from_attributes=True; use_enum_values = True
