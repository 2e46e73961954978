# tests/test_schemas.py
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from app.models.borrow_transaction import BorrowTransaction
from app.models.return_transaction import ReturnTransaction
from app.models.return_verification import ReturnVerification
from app.models.item import InventoryItem
from app.models.user import User
from app.models.enum import InspectionStatus, ItemCondition

START = datetime(2025, 3, 10, tzinfo=timezone.utc)


def borrow_payload(**overrides):
    payload = {
        "items": [{"item_id": str(ObjectId()), "quantity": 2}],
        "borrow_date": START.isoformat(),
        "expected_return_date": (START + timedelta(days=7)).isoformat(),
        "purpose": "Thesis measurements",
    }
    payload.update(overrides)
    return payload


class TestBorrowRequest:
    def test_valid(self):
        request = BorrowTransaction.CreateRequest.model_validate(borrow_payload())
        assert request.items[0].quantity == 2
        assert request.borrower_id is None

    def test_needs_at_least_one_line(self):
        with pytest.raises(ValidationError):
            BorrowTransaction.CreateRequest.model_validate(borrow_payload(items=[]))

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValidationError):
            BorrowTransaction.CreateRequest.model_validate(
                borrow_payload(items=[{"item_id": str(ObjectId()), "quantity": quantity}])
            )

    def test_return_date_after_borrow_date(self):
        with pytest.raises(ValidationError, match="expected_return_date"):
            BorrowTransaction.CreateRequest.model_validate(
                borrow_payload(expected_return_date=START.isoformat())
            )

    def test_mixed_naive_and_aware_dates(self):
        request = BorrowTransaction.CreateRequest.model_validate(
            borrow_payload(borrow_date="2025-03-10T00:00:00", expected_return_date="2025-03-11T00:00:00Z")
        )
        assert request.expected_return_date.tzinfo is not None

    def test_duplicate_items_rejected(self):
        item_id = str(ObjectId())
        with pytest.raises(ValidationError, match="only once"):
            BorrowTransaction.CreateRequest.model_validate(
                borrow_payload(items=[{"item_id": item_id, "quantity": 1}, {"item_id": item_id, "quantity": 2}])
            )

    def test_duplicate_items_differing_only_in_case_rejected(self):
        item_id = str(ObjectId())
        with pytest.raises(ValidationError, match="only once"):
            BorrowTransaction.CreateRequest.model_validate(
                borrow_payload(items=[
                    {"item_id": item_id.lower(), "quantity": 3},
                    {"item_id": item_id.upper(), "quantity": 3},
                ])
            )

    def test_reject_reason_length(self):
        BorrowTransaction.Reject(reason=None)
        with pytest.raises(ValidationError):
            BorrowTransaction.Reject(reason="x" * 501)


class TestInspectSchema:
    def test_condition_optional(self):
        inspect = ReturnTransaction.Inspect(inspection_status=InspectionStatus.LOST)
        assert inspect.condition is None
        assert inspect.damage_fee == 0

    def test_pending_is_rejected(self):
        with pytest.raises(ValidationError, match="final outcome"):
            ReturnTransaction.Inspect(inspection_status=InspectionStatus.PENDING_INSPECTION)

    @pytest.mark.parametrize(
        "inspection_status,condition",
        [("good_condition", "damaged"), ("lost", "good"), ("major_damage", "fair")],
    )
    def test_mismatch_rejected(self, inspection_status, condition):
        with pytest.raises(ValidationError, match="does not match"):
            ReturnTransaction.Inspect(inspection_status=inspection_status, condition=condition)

    def test_match_accepted(self):
        inspect = ReturnTransaction.Inspect(inspection_status="good_condition", condition="excellent")
        assert inspect.condition == ItemCondition.EXCELLENT

    def test_negative_fee_rejected(self):
        with pytest.raises(ValidationError):
            ReturnTransaction.Inspect(inspection_status="major_damage", damage_fee=-1)


class TestOtherSchemas:
    def test_submit_needs_transactions(self):
        with pytest.raises(ValidationError):
            ReturnVerification.Submit(transaction_ids=[])

    def test_reject_return_needs_reason(self):
        with pytest.raises(ValidationError):
            ReturnVerification.Reject(rejection_reason="")

    def test_stock_adjustment_non_zero(self):
        assert InventoryItem.StockAdjustment(delta=-2).delta == -2
        with pytest.raises(ValidationError, match="non-zero"):
            InventoryItem.StockAdjustment(delta=0)

    def test_item_create_rejects_negative_stock(self):
        with pytest.raises(ValidationError):
            InventoryItem.Create(name="Multimeter", total_quantity=-1)

    def test_item_update_has_no_quantities(self):
        assert "total_quantity" not in InventoryItem.Update.model_fields
        assert "available_quantity" not in InventoryItem.Update.model_fields

    def test_admin_create_password_length(self):
        with pytest.raises(ValidationError):
            User.AdminCreate(username="lab-admin", password="short")
