# app/models/return_transaction.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import InspectionStatus, ItemCondition, INSPECTION_CONDITIONS
from app.core.utils import utc_now


class InspectionEntry(BaseModel):
    """One inspection (or re-inspection) of a returned item."""
    inspection_status: InspectionStatus
    condition: ItemCondition
    inspected_by: str
    inspected_at: datetime
    notes: Optional[str] = None
    damage_fee: float = 0
    restored_quantity: int = 0
    written_off_quantity: int = 0
    reinstated_quantity: int = 0


class ReturnTransaction(Document):
    """A verified return. Created in pending_inspection; only inspection can put stock back."""
    borrow_transaction_id: PydanticObjectId
    return_verification_id: PydanticObjectId
    item_id: PydanticObjectId
    item_name: str
    quantity: int = Field(..., gt=0)
    return_date: datetime
    return_notes: Optional[str] = None
    received_by: str

    inspection_status: InspectionStatus = InspectionStatus.PENDING_INSPECTION
    condition: Optional[ItemCondition] = None
    inspection_notes: Optional[str] = None
    inspected_by: Optional[str] = None
    inspected_at: Optional[datetime] = None
    damage_fee: float = Field(default=0, ge=0)

    # Ledger bookkeeping: each flips at most once per direction
    quantity_restored: bool = False
    written_off: bool = False
    inspection_history: List[InspectionEntry] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "return_transactions"
        indexes = [
            IndexModel([("return_verification_id", ASCENDING)], name="return_verification_unique_index", unique=True),
            IndexModel([("inspection_status", ASCENDING), ("return_date", DESCENDING)], name="return_inspection_index"),
            IndexModel([("borrow_transaction_id", ASCENDING)], name="return_borrow_index"),
        ]

    # --- Pydantic Schemas ---
    class Inspect(BaseModel):
        inspection_status: InspectionStatus
        condition: Optional[ItemCondition] = Field(None, description="Defaults from inspection_status when omitted")
        inspection_notes: Optional[str] = None
        damage_fee: float = Field(default=0, ge=0)

        @model_validator(mode="after")
        def _check_outcome(self):
            if self.inspection_status == InspectionStatus.PENDING_INSPECTION:
                raise ValueError("inspection_status must be a final outcome, not pending_inspection")
            if self.condition is not None and self.condition not in INSPECTION_CONDITIONS[self.inspection_status]:
                raise ValueError(
                    f"condition '{self.condition.value}' does not match inspection status '{self.inspection_status.value}'"
                )
            return self

    class Response(BaseModel):
        id: str
        borrow_transaction_id: str
        return_verification_id: str
        item_id: str
        item_name: str
        quantity: int
        return_date: datetime
        return_notes: Optional[str] = None
        received_by: str
        inspection_status: InspectionStatus
        condition: Optional[ItemCondition] = None
        inspection_notes: Optional[str] = None
        inspected_by: Optional[str] = None
        inspected_at: Optional[datetime] = None
        damage_fee: float
        quantity_restored: bool
        written_off: bool
        inspection_history: List[InspectionEntry] = Field(default_factory=list)
        created_at: datetime
        updated_at: datetime
        class Config: from_attributes=True; use_enum_values = True
