# tests/conftest.py
"""
Shared fixtures. The environment is set before any ``app`` module is
imported, since config fails fast without SECRET_KEY/MONGODB_URL.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017/borrow_return_test?replicaSet=rs0")
os.environ["LOG_TO_FILE"] = "False"
os.environ["SCHEDULER_ENABLED"] = "False"
os.environ["RATE_LIMIT_ENABLED"] = "False"

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from beanie import Document, PydanticObjectId
from bson import ObjectId
from fastapi.testclient import TestClient

from app.api.v1.endpoints import items, return_verifications, returns, transactions
from app.core import ledger
from app.core.security import create_access_token, get_current_active_user
from app.main import app
from app.models.enum import BorrowStatus, BorrowerType, VerificationStatus, InspectionStatus
from app.models.user import UserRole

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_item(total=10, available=None, name="Oscilloscope", is_active=True):
    item = SimpleNamespace(
        id=ObjectId(),
        name=name,
        total_quantity=total,
        available_quantity=total if available is None else available,
        status=None,
        is_active=is_active,
        updated_at=None,
    )
    ledger.refresh_status(item)
    return item


def make_txn(quantity=1, status=BorrowStatus.PENDING, due=None, borrower_id=None, is_overdue=False):
    return SimpleNamespace(
        id=ObjectId(),
        transaction_code="BT-2025-0001",
        item_id=ObjectId(),
        item_name="Oscilloscope",
        borrower_id=borrower_id or ObjectId(),
        borrower_name="Dana",
        quantity=quantity,
        expected_return_date=due or NOW + timedelta(days=7),
        status=status,
        notes=None,
        approved_by=None,
        approved_at=None,
        rejected_by=None,
        rejected_at=None,
        rejection_reason=None,
        returned_at=None,
        is_overdue=is_overdue,
        updated_at=None,
    )


def make_verification(status=VerificationStatus.PENDING_VERIFICATION):
    return SimpleNamespace(
        id=ObjectId(),
        verification_code="RV-2025-001",
        verification_status=status,
        verified_by=None,
        verified_at=None,
        verification_notes=None,
        rejection_reason=None,
        updated_at=None,
    )


def make_return(quantity=1):
    return SimpleNamespace(
        id=ObjectId(),
        quantity=quantity,
        inspection_status=InspectionStatus.PENDING_INSPECTION,
        condition=None,
        inspection_notes=None,
        inspected_by=None,
        inspected_at=None,
        damage_fee=0,
        quantity_restored=False,
        written_off=False,
        inspection_history=[],
        updated_at=None,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def item():
    return make_item()


def auth_headers(username="dana"):
    return {"Authorization": f"Bearer {create_access_token({'sub': username})}"}


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    def _login(role=UserRole.USER, username="dana"):
        user = SimpleNamespace(
            id=PydanticObjectId(), username=username, display_name=username.title(),
            role=role, borrower_type=BorrowerType.USER, disabled=False,
        )
        app.dependency_overrides[get_current_active_user] = lambda: user
        return user
    return _login


class MemoryStore:
    """
    Stands in for MongoDB behind the endpoint handlers. Documents are kept
    as copies so a handler only sees what it saved, and a failed
    transaction restores the snapshot taken when it started.
    """

    def __init__(self):
        self.docs = {}
        self.writes = []
        self.sequence = 0

    def put(self, doc):
        if doc.id is None:
            doc.id = PydanticObjectId()
        self.docs[(type(doc).__name__, doc.id)] = doc.model_copy(deep=True)
        return doc

    def fetch(self, cls, doc_id):
        doc = self.docs.get((cls.__name__, doc_id))
        return doc.model_copy(deep=True) if doc is not None else None

    def all(self, cls):
        return [doc for (name, _), doc in self.docs.items() if name == cls.__name__]

    def saved(self, cls):
        return [doc_id for kind, name, doc_id in self.writes if name == cls.__name__ and kind == "save"]

    async def run_in_transaction(self, callback):
        snapshot, write_count = dict(self.docs), len(self.writes)
        try:
            return await callback(None)
        except Exception:
            self.docs = snapshot
            del self.writes[write_count:]
            raise

    async def next_code(self, prefix, width=3, now=None, session=None):
        self.sequence += 1
        return f"{prefix}-{NOW.year}-{str(self.sequence).zfill(width)}"


@pytest.fixture
def store(monkeypatch):
    memory = MemoryStore()

    async def get(cls, document_id, session=None, **kwargs):
        return memory.fetch(cls, document_id)

    async def insert(self, session=None, **kwargs):
        memory.put(self)
        memory.writes.append(("insert", type(self).__name__, self.id))
        return self

    async def save(self, session=None, **kwargs):
        memory.put(self)
        memory.writes.append(("save", type(self).__name__, self.id))
        return self

    monkeypatch.setattr(Document, "get_motor_collection", classmethod(lambda cls: None))
    monkeypatch.setattr(Document, "get", classmethod(get))
    monkeypatch.setattr(Document, "insert", insert)
    monkeypatch.setattr(Document, "save", save)
    for module in (items, transactions, return_verifications, returns):
        monkeypatch.setattr(module, "run_in_transaction", memory.run_in_transaction)
    for module in (transactions, return_verifications):
        monkeypatch.setattr(module, "next_code", memory.next_code)
    return memory
