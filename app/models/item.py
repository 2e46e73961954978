# app/models/item.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field, field_validator, model_validator
from pymongo import IndexModel, ASCENDING
from datetime import datetime

from .enum import StockStatus
from app.core.utils import utc_now


class InventoryItem(Document):
    """Beanie document for one inventory line and its stock ledger."""
    name: str = Field(..., max_length=200)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    unit: Optional[str] = Field(None, max_length=50, description="Unit of measure, e.g. pcs, set")
    location: Optional[str] = Field(None, max_length=200)

    # --- Ledger ---
    total_quantity: int = Field(default=0, ge=0)
    available_quantity: int = Field(default=0, ge=0)
    status: StockStatus = Field(default=StockStatus.OUT_OF_STOCK)

    is_active: bool = Field(default=True, description="False once the item is archived (soft delete)")

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _available_within_total(self):
        if self.available_quantity > self.total_quantity:
            raise ValueError("available_quantity cannot exceed total_quantity")
        return self

    class Settings:
        name = "inventory_items"
        indexes = [
            IndexModel([("name", ASCENDING)], name="item_name_index"),
            IndexModel([("category", ASCENDING)], name="item_category_index", sparse=True),
            IndexModel([("status", ASCENDING)], name="item_status_index"),
            IndexModel([("is_active", ASCENDING)], name="item_is_active_index"),
        ]

    # --- Pydantic Schemas for API ---
    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=200)
        category: Optional[str] = Field(None, max_length=100)
        description: Optional[str] = None
        unit: Optional[str] = Field(None, max_length=50)
        location: Optional[str] = Field(None, max_length=200)
        total_quantity: int = Field(default=0, ge=0)

    class Update(BaseModel):
        # No quantity fields: stock only moves through the ledger
        name: Optional[str] = Field(None, min_length=1, max_length=200)
        category: Optional[str] = Field(None, max_length=100)
        description: Optional[str] = None
        unit: Optional[str] = Field(None, max_length=50)
        location: Optional[str] = Field(None, max_length=200)
        is_active: Optional[bool] = None

    class StockAdjustment(BaseModel):
        delta: int = Field(..., description="Signed change to total_quantity (restock > 0, retire < 0)")
        reason: Optional[str] = Field(None, max_length=500)

        @field_validator("delta")
        @classmethod
        def _non_zero(cls, value: int) -> int:
            if value == 0:
                raise ValueError("delta must be non-zero")
            return value

    class Response(BaseModel):
        id: str
        name: str
        category: Optional[str] = None
        description: Optional[str] = None
        unit: Optional[str] = None
        location: Optional[str] = None
        total_quantity: int
        available_quantity: int
        status: StockStatus
        is_active: bool
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True
