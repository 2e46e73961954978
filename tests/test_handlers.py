# tests/test_handlers.py
"""
Endpoint handlers run end to end against the in-memory store: what gets
written, and what a failed request leaves behind.
"""
from datetime import timedelta

import pytest
from bson import ObjectId

from app.core import ledger
from app.models.borrow_transaction import BorrowTransaction
from app.models.enum import BorrowStatus, InspectionStatus, VerificationStatus
from app.models.item import InventoryItem
from app.models.return_transaction import ReturnTransaction
from app.models.return_verification import ReturnVerification
from app.models.user import UserRole

from conftest import NOW, auth_headers


def seed_item(store, total=5, available=None, name="Oscilloscope"):
    item = InventoryItem(name=name, total_quantity=total, available_quantity=total if available is None else available)
    ledger.refresh_status(item)
    return store.put(item)


def seed_txn(store, item, borrower, quantity=1, status=BorrowStatus.BORROWED):
    txn = BorrowTransaction(
        transaction_code=f"BT-2025-{len(store.all(BorrowTransaction)) + 1:04d}",
        item_id=item.id,
        item_name=item.name,
        borrower_id=borrower.id,
        borrower_name=borrower.display_name,
        quantity=quantity,
        borrow_date=NOW,
        expected_return_date=NOW + timedelta(days=7),
        purpose="Lab practicum",
        status=status,
    )
    return store.put(txn)


def borrow_body(*lines):
    return {
        "items": [{"item_id": str(item.id), "quantity": quantity} for item, quantity in lines],
        "borrow_date": NOW.isoformat(),
        "expected_return_date": (NOW + timedelta(days=3)).isoformat(),
        "purpose": "Lab practicum",
    }


class TestBorrowRequestHandler:
    def test_short_line_creates_nothing(self, client, login_as, store):
        login_as()
        plenty = seed_item(store, total=5, name="Multimeter")
        scarce = seed_item(store, total=1, name="Projector")

        response = client.post("/api/v1/transactions/", json=borrow_body((plenty, 2), (scarce, 3)),
                               headers=auth_headers())

        assert response.status_code == 409
        assert "Projector" in response.json()["detail"]
        assert store.all(BorrowTransaction) == []
        assert store.fetch(InventoryItem, plenty.id).available_quantity == 5

    def test_one_pending_transaction_per_line(self, client, login_as, store):
        user = login_as()
        first = seed_item(store, total=5, name="Multimeter")
        second = seed_item(store, total=2, name="Projector")

        response = client.post("/api/v1/transactions/", json=borrow_body((first, 2), (second, 2)),
                               headers=auth_headers())

        assert response.status_code == 201
        created = response.json()
        assert [t["status"] for t in created] == ["pending", "pending"]
        assert {t["borrower_id"] for t in created} == {str(user.id)}
        assert len(store.all(BorrowTransaction)) == 2
        # nothing is reserved before approval
        assert store.fetch(InventoryItem, first.id).available_quantity == 5
        assert store.fetch(InventoryItem, second.id).available_quantity == 2

    def test_unknown_item_is_404(self, client, login_as, store):
        login_as()
        missing = str(ObjectId())
        body = borrow_body()
        body["items"] = [{"item_id": missing, "quantity": 1}]

        response = client.post("/api/v1/transactions/", json=body, headers=auth_headers())

        assert response.status_code == 404
        assert response.json()["detail"] == f"Inventory item with ID '{missing}' not found."


class TestApproveHandler:
    def test_approval_reserves_stock(self, client, login_as, store):
        borrower = login_as()
        item = seed_item(store, total=5)
        txn = seed_txn(store, item, borrower, quantity=2, status=BorrowStatus.PENDING)
        login_as(UserRole.STAFF, "staff1")

        response = client.patch(f"/api/v1/transactions/{txn.id}/approve", headers=auth_headers("staff1"))

        assert response.status_code == 200
        assert response.json()["approved_by"] == "staff1"
        assert store.fetch(InventoryItem, item.id).available_quantity == 3
        assert store.fetch(BorrowTransaction, txn.id).status == BorrowStatus.BORROWED

    def test_insufficient_stock_leaves_request_pending(self, client, login_as, store):
        borrower = login_as()
        item = seed_item(store, total=5, available=1)
        txn = seed_txn(store, item, borrower, quantity=2, status=BorrowStatus.PENDING)
        login_as(UserRole.STAFF, "staff1")

        response = client.patch(f"/api/v1/transactions/{txn.id}/approve", headers=auth_headers("staff1"))

        assert response.status_code == 409
        assert store.fetch(BorrowTransaction, txn.id).status == BorrowStatus.PENDING
        assert store.fetch(InventoryItem, item.id).available_quantity == 1


class TestReturnSubmissionHandler:
    def test_all_listed_loans_move_together(self, client, login_as, store):
        borrower = login_as()
        item = seed_item(store, total=5, available=3)
        loans = [seed_txn(store, item, borrower), seed_txn(store, item, borrower)]

        response = client.post("/api/v1/return-verifications/",
                               json={"transaction_ids": [str(t.id) for t in loans]}, headers=auth_headers())

        assert response.status_code == 201
        assert len(response.json()) == 2
        for txn in loans:
            assert store.fetch(BorrowTransaction, txn.id).status == BorrowStatus.PENDING_RETURN_VERIFICATION
        assert store.fetch(InventoryItem, item.id).available_quantity == 3

    def test_one_bad_loan_rolls_back_the_rest(self, client, login_as, store):
        borrower = login_as()
        item = seed_item(store, total=5, available=4)
        borrowed = seed_txn(store, item, borrower)
        still_pending = seed_txn(store, item, borrower, status=BorrowStatus.PENDING)

        response = client.post("/api/v1/return-verifications/",
                               json={"transaction_ids": [str(borrowed.id), str(still_pending.id)]},
                               headers=auth_headers())

        assert response.status_code == 400
        assert store.fetch(BorrowTransaction, borrowed.id).status == BorrowStatus.BORROWED
        assert store.all(ReturnVerification) == []

    def test_cannot_return_someone_elses_loan(self, client, login_as, store):
        owner = login_as(username="owner")
        item = seed_item(store, total=5, available=4)
        txn = seed_txn(store, item, owner)
        login_as(username="dana")

        response = client.post("/api/v1/return-verifications/", json={"transaction_ids": [str(txn.id)]},
                               headers=auth_headers())

        assert response.status_code == 403
        assert store.fetch(BorrowTransaction, txn.id).status == BorrowStatus.BORROWED
        assert store.all(ReturnVerification) == []


@pytest.fixture
def awaiting_verification(store, login_as):
    borrower = login_as()
    item = seed_item(store, total=5, available=3)
    txn = seed_txn(store, item, borrower, quantity=2, status=BorrowStatus.PENDING_RETURN_VERIFICATION)
    verification = store.put(ReturnVerification(
        verification_code="RV-2025-001",
        borrow_transaction_id=txn.id,
        item_id=item.id,
        item_name=item.name,
        borrower_id=borrower.id,
        borrower_name=borrower.display_name,
        quantity_returned=2,
        return_date=NOW,
    ))
    login_as(UserRole.STAFF, "staff1")
    return item, txn, verification


class TestVerifyHandler:
    def test_opens_one_return_awaiting_inspection(self, client, store, awaiting_verification):
        item, txn, verification = awaiting_verification

        response = client.patch(f"/api/v1/return-verifications/{verification.id}/verify", json={},
                                headers=auth_headers("staff1"))

        assert response.status_code == 200
        assert response.json()["verification_status"] == "verified"
        returns = store.all(ReturnTransaction)
        assert len(returns) == 1
        assert returns[0].inspection_status == InspectionStatus.PENDING_INSPECTION
        assert returns[0].quantity == 2
        assert returns[0].received_by == "staff1"
        assert store.fetch(BorrowTransaction, txn.id).status == BorrowStatus.RETURNED
        assert store.saved(InventoryItem) == []
        assert store.fetch(InventoryItem, item.id).available_quantity == 3

    def test_second_verification_is_refused(self, client, store, awaiting_verification):
        _, _, verification = awaiting_verification
        client.patch(f"/api/v1/return-verifications/{verification.id}/verify", json={},
                     headers=auth_headers("staff1"))

        response = client.patch(f"/api/v1/return-verifications/{verification.id}/verify", json={},
                                headers=auth_headers("staff1"))

        assert response.status_code == 400
        assert len(store.all(ReturnTransaction)) == 1
        assert store.fetch(ReturnVerification, verification.id).verification_status == VerificationStatus.VERIFIED


@pytest.fixture
def awaiting_inspection(store, login_as):
    login_as(UserRole.STAFF, "staff1")
    item = seed_item(store, total=5, available=3)
    ret = store.put(ReturnTransaction(
        borrow_transaction_id=ObjectId(),
        return_verification_id=ObjectId(),
        item_id=item.id,
        item_name=item.name,
        quantity=2,
        return_date=NOW,
        received_by="staff1",
    ))
    return item, ret


class TestInspectHandler:
    def test_major_damage_leaves_item_unsaved(self, client, store, awaiting_inspection):
        item, ret = awaiting_inspection

        response = client.patch(f"/api/v1/returns/{ret.id}/inspect", json={"inspection_status": "major_damage"},
                                headers=auth_headers("staff1"))

        assert response.status_code == 200
        assert response.json()["condition"] == "damaged"
        assert store.saved(InventoryItem) == []
        assert store.fetch(InventoryItem, item.id).available_quantity == 3

    def test_good_condition_restores_units(self, client, store, awaiting_inspection):
        item, ret = awaiting_inspection

        response = client.patch(f"/api/v1/returns/{ret.id}/inspect", json={"inspection_status": "good_condition"},
                                headers=auth_headers("staff1"))

        assert response.status_code == 200
        assert store.saved(InventoryItem) == [item.id]
        stored = store.fetch(InventoryItem, item.id)
        assert (stored.available_quantity, stored.total_quantity) == (5, 5)

    def test_lost_writes_units_off(self, client, store, awaiting_inspection):
        item, ret = awaiting_inspection

        response = client.patch(f"/api/v1/returns/{ret.id}/inspect", json={"inspection_status": "lost"},
                                headers=auth_headers("staff1"))

        assert response.status_code == 200
        stored = store.fetch(InventoryItem, item.id)
        assert (stored.available_quantity, stored.total_quantity) == (3, 3)
        assert store.fetch(ReturnTransaction, ret.id).written_off is True


class TestArchiveHandlers:
    def test_delete_refused_while_units_out(self, client, login_as, store):
        login_as(UserRole.STAFF, "staff1")
        item = seed_item(store, total=5, available=4)

        response = client.delete(f"/api/v1/items/{item.id}", headers=auth_headers("staff1"))

        assert response.status_code == 409
        assert store.fetch(InventoryItem, item.id).is_active is True
        assert store.saved(InventoryItem) == []

    def test_delete_archives_when_all_units_in(self, client, login_as, store):
        login_as(UserRole.STAFF, "staff1")
        item = seed_item(store, total=5)

        response = client.delete(f"/api/v1/items/{item.id}", headers=auth_headers("staff1"))

        assert response.status_code == 204
        assert store.fetch(InventoryItem, item.id).is_active is False

    def test_update_cannot_archive_while_units_out(self, client, login_as, store):
        login_as(UserRole.STAFF, "staff1")
        item = seed_item(store, total=5, available=2)

        response = client.put(f"/api/v1/items/{item.id}", json={"is_active": False, "name": "Scope"},
                              headers=auth_headers("staff1"))

        assert response.status_code == 409
        stored = store.fetch(InventoryItem, item.id)
        assert (stored.is_active, stored.name) == (True, "Oscilloscope")

    def test_update_metadata(self, client, login_as, store):
        login_as(UserRole.STAFF, "staff1")
        item = seed_item(store, total=5, available=2)

        response = client.put(f"/api/v1/items/{item.id}", json={"location": "Lab B"},
                              headers=auth_headers("staff1"))

        assert response.status_code == 200
        assert response.json()["location"] == "Lab B"
        assert store.fetch(InventoryItem, item.id).location == "Lab B"
