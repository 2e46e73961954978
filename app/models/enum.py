# app/models/enum.py
from enum import Enum

class BorrowStatus(str, Enum):
    PENDING = "pending"                                          # Submitted, waiting for an admin
    BORROWED = "borrowed"                                        # Approved, stock reserved
    PENDING_RETURN_VERIFICATION = "pending_return_verification"  # Borrower says it is back
    RETURNED = "returned"                                        # Receipt verified by an admin
    REJECTED = "rejected"

class VerificationStatus(str, Enum):
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"

class InspectionStatus(str, Enum):
    PENDING_INSPECTION = "pending_inspection"
    GOOD_CONDITION = "good_condition"
    MINOR_DAMAGE = "minor_damage"
    MAJOR_DAMAGE = "major_damage"
    LOST = "lost"
    UNUSABLE = "unusable"

class ItemCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    DAMAGED = "damaged"
    LOST = "lost"

class StockStatus(str, Enum):
    AVAILABLE = "available"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

class BorrowerType(str, Enum):
    STUDENT = "student"
    EMPLOYEE = "employee"
    USER = "user"

# Conditions an inspection outcome may be recorded with; the first one is the default
INSPECTION_CONDITIONS = {
    InspectionStatus.GOOD_CONDITION: (ItemCondition.GOOD, ItemCondition.EXCELLENT, ItemCondition.FAIR),
    InspectionStatus.MINOR_DAMAGE: (ItemCondition.FAIR, ItemCondition.DAMAGED),
    InspectionStatus.MAJOR_DAMAGE: (ItemCondition.DAMAGED,),
    InspectionStatus.UNUSABLE: (ItemCondition.DAMAGED,),
    InspectionStatus.LOST: (ItemCondition.LOST,),
}
