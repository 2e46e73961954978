# app/models/return_verification.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import VerificationStatus
from app.core.utils import utc_now


class ReturnVerification(Document):
    """A borrower's claim that an item is back, waiting for an admin to confirm receipt."""
    verification_code: str
    borrow_transaction_id: PydanticObjectId
    item_id: PydanticObjectId
    item_name: str
    borrower_id: PydanticObjectId
    borrower_name: str
    quantity_returned: int = Field(..., gt=0)
    return_date: datetime
    return_notes: Optional[str] = None

    verification_status: VerificationStatus = VerificationStatus.PENDING_VERIFICATION
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    rejection_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "return_verifications"
        indexes = [
            IndexModel([("verification_code", ASCENDING)], name="verification_code_unique_index", unique=True),
            IndexModel([("verification_status", ASCENDING), ("created_at", DESCENDING)], name="verification_status_index"),
            IndexModel([("borrow_transaction_id", ASCENDING)], name="verification_borrow_index"),
            IndexModel([("borrower_id", ASCENDING)], name="verification_borrower_index"),
        ]

    # --- Pydantic Schemas ---
    class Submit(BaseModel):
        transaction_ids: List[str] = Field(..., min_length=1, description="Borrow transactions being handed back")
        return_notes: Optional[str] = None

    class Verify(BaseModel):
        verification_notes: Optional[str] = None

    class Reject(BaseModel):
        rejection_reason: str = Field(..., min_length=1, max_length=500)

    class Response(BaseModel):
        id: str
        verification_code: str
        borrow_transaction_id: str
        item_id: str
        item_name: str
        borrower_id: str
        borrower_name: str
        quantity_returned: int
        return_date: datetime
        return_notes: Optional[str] = None
        verification_status: VerificationStatus
        verified_by: Optional[str] = None
        verified_at: Optional[datetime] = None
        verification_notes: Optional[str] = None
        rejection_reason: Optional[str] = None
        created_at: datetime
        updated_at: datetime
        class Config: from_attributes=True; use_enum_values = True
