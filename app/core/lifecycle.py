# app/core/lifecycle.py
"""
Borrow -> approve -> return -> verify -> inspect state machine.

The functions below only mutate the documents they are handed; endpoints
load those documents inside a MongoDB transaction, call one of these, and
save everything back in the same session. Stock moves in exactly two
places: ``approve_borrow`` takes units out, ``inspect_return`` puts them
back the first time a return is classified as usable.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from loguru import logger

from app.core import ledger
from app.core.exceptions import InvalidInspectionError, InvalidTransitionError, LifecycleError
from app.core.utils import as_utc, utc_now
from app.models.enum import (
    BorrowStatus, VerificationStatus, InspectionStatus, ItemCondition, INSPECTION_CONDITIONS,
)
from app.models.return_transaction import InspectionEntry


BORROW_FLOW: Dict[BorrowStatus, FrozenSet[BorrowStatus]] = {
    BorrowStatus.PENDING: frozenset({BorrowStatus.BORROWED, BorrowStatus.REJECTED}),
    BorrowStatus.BORROWED: frozenset({BorrowStatus.PENDING_RETURN_VERIFICATION}),
    # A rejected return hands the loan back to the borrower
    BorrowStatus.PENDING_RETURN_VERIFICATION: frozenset({BorrowStatus.RETURNED, BorrowStatus.BORROWED}),
    BorrowStatus.RETURNED: frozenset(),
    BorrowStatus.REJECTED: frozenset(),
}

VERIFICATION_FLOW: Dict[VerificationStatus, FrozenSet[VerificationStatus]] = {
    VerificationStatus.PENDING_VERIFICATION: frozenset({VerificationStatus.VERIFIED, VerificationStatus.REJECTED}),
    VerificationStatus.VERIFIED: frozenset(),
    VerificationStatus.REJECTED: frozenset(),
}

# Loans whose units are out of the building
OPEN_LOAN_STATUSES = frozenset({BorrowStatus.BORROWED, BorrowStatus.PENDING_RETURN_VERIFICATION})

RESTORABLE_CONDITIONS = frozenset({ItemCondition.EXCELLENT, ItemCondition.GOOD, ItemCondition.FAIR})
WRITE_OFF_STATUSES = frozenset({InspectionStatus.LOST, InspectionStatus.UNUSABLE})


@dataclass
class InspectionOutcome:
    inspection_status: InspectionStatus
    condition: ItemCondition
    restored: int = 0
    written_off: int = 0
    reinstated: int = 0

    @property
    def ledger_changed(self) -> bool:
        return bool(self.restored or self.written_off or self.reinstated)


def can_transition(flow: dict, current, target) -> bool:
    return target in flow.get(current, frozenset())


def ensure_transition(flow: dict, current, target, entity: str) -> None:
    if not can_transition(flow, current, target):
        raise InvalidTransitionError(entity, current, target)


def _move(txn, target: BorrowStatus, now: datetime) -> None:
    ensure_transition(BORROW_FLOW, BorrowStatus(txn.status), target, "borrow transaction")
    previous = txn.status
    txn.status = target
    txn.updated_at = now
    logger.info(f"Borrow transaction {getattr(txn, 'transaction_code', '?')}: {getattr(previous, 'value', previous)} -> {target.value}")


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n\n{note}" if existing else note


def is_overdue(txn, now: Optional[datetime] = None) -> bool:
    now = as_utc(now or utc_now())
    return BorrowStatus(txn.status) in OPEN_LOAN_STATUSES and as_utc(txn.expected_return_date) < now


# --- Borrow requests ---

def approve_borrow(txn, item, approver: str, now: Optional[datetime] = None) -> int:
    """pending -> borrowed. Reserves the requested quantity; returns the item's new available quantity."""
    now = now or utc_now()
    ensure_transition(BORROW_FLOW, BorrowStatus(txn.status), BorrowStatus.BORROWED, "borrow transaction")
    if not getattr(item, "is_active", True):
        raise LifecycleError(f"Item '{item.name}' is archived and cannot be lent out.")

    remaining = ledger.reserve(item, txn.quantity)
    item.updated_at = now
    _move(txn, BorrowStatus.BORROWED, now)
    txn.approved_by = approver
    txn.approved_at = now
    return remaining


def reject_borrow(txn, actor: str, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
    now = now or utc_now()
    _move(txn, BorrowStatus.REJECTED, now)
    txn.rejected_by = actor
    txn.rejected_at = now
    txn.rejection_reason = reason
    txn.notes = _append_note(txn.notes, f"Rejection reason: {reason or 'Not specified'}")


def extend_due_date(txn, new_return_date: datetime, actor: str, reason: Optional[str] = None,
                    now: Optional[datetime] = None) -> None:
    now = now or utc_now()
    if BorrowStatus(txn.status) != BorrowStatus.BORROWED:
        raise LifecycleError("Item is not currently borrowed.", status=getattr(txn.status, "value", txn.status))
    if as_utc(new_return_date) <= as_utc(now):
        raise LifecycleError("The new return date must be in the future.")

    note = f"[{now:%Y-%m-%d %H:%M:%S}] Return date extended to {new_return_date:%Y-%m-%d} by {actor}"
    if reason:
        note += f". Reason: {reason}"
    txn.notes = f"{txn.notes}\n{note}" if txn.notes else note
    txn.expected_return_date = new_return_date
    txn.is_overdue = False
    txn.updated_at = now


# --- Returns ---

def submit_return(txn, now: Optional[datetime] = None) -> None:
    """borrowed -> pending_return_verification. Stock is untouched until inspection."""
    _move(txn, BorrowStatus.PENDING_RETURN_VERIFICATION, now or utc_now())


def verify_return(txn, verification, actor: str, notes: Optional[str] = None,
                  now: Optional[datetime] = None) -> None:
    """Admin confirms receipt: verification -> verified, transaction -> returned."""
    now = now or utc_now()
    ensure_transition(
        VERIFICATION_FLOW, VerificationStatus(verification.verification_status),
        VerificationStatus.VERIFIED, "return verification",
    )
    _move(txn, BorrowStatus.RETURNED, now)
    txn.returned_at = now
    txn.is_overdue = False
    verification.verification_status = VerificationStatus.VERIFIED
    verification.verified_by = actor
    verification.verified_at = now
    verification.verification_notes = notes
    verification.updated_at = now


def reject_return(txn, verification, actor: str, reason: str, now: Optional[datetime] = None) -> None:
    """Admin did not receive the item: verification -> rejected, transaction back to borrowed."""
    now = now or utc_now()
    ensure_transition(
        VERIFICATION_FLOW, VerificationStatus(verification.verification_status),
        VerificationStatus.REJECTED, "return verification",
    )
    _move(txn, BorrowStatus.BORROWED, now)
    verification.verification_status = VerificationStatus.REJECTED
    verification.verified_by = actor
    verification.verified_at = now
    verification.rejection_reason = reason
    verification.updated_at = now


# --- Inspection ---

def default_condition(inspection_status: InspectionStatus) -> ItemCondition:
    return INSPECTION_CONDITIONS[inspection_status][0]


def resolve_condition(inspection_status: InspectionStatus, condition: Optional[ItemCondition]) -> ItemCondition:
    if inspection_status not in INSPECTION_CONDITIONS:
        raise InvalidInspectionError(f"'{inspection_status.value}' is not a final inspection outcome.")
    if condition is None:
        return default_condition(inspection_status)
    if condition not in INSPECTION_CONDITIONS[inspection_status]:
        raise InvalidInspectionError(
            f"Condition '{condition.value}' does not match inspection status '{inspection_status.value}'."
        )
    return condition


def inspect_return(ret, item, inspection_status: InspectionStatus, actor: str,
                   condition: Optional[ItemCondition] = None, notes: Optional[str] = None,
                   damage_fee: float = 0, now: Optional[datetime] = None) -> InspectionOutcome:
    """
    Classify a returned item and apply its ledger effect.

    Re-inspection is allowed. Units are restored the first time the return
    reaches a restorable condition and never again; lost/unusable units are
    written off once, and reinstated if a later inspection finds them.
    """
    now = now or utc_now()
    inspection_status = InspectionStatus(inspection_status)
    condition = resolve_condition(inspection_status, ItemCondition(condition) if condition is not None else None)
    outcome = InspectionOutcome(inspection_status=inspection_status, condition=condition)
    quantity = ret.quantity

    if condition in RESTORABLE_CONDITIONS:
        if not ret.quantity_restored:
            if ret.written_off:
                ledger.reinstate(item, quantity)
                ret.written_off = False
                outcome.reinstated = quantity
            ledger.release(item, quantity)
            ret.quantity_restored = True
            outcome.restored = quantity
    elif inspection_status in WRITE_OFF_STATUSES:
        if ret.quantity_restored:
            logger.warning(
                f"Return {getattr(ret, 'id', '?')} already restored {quantity} unit(s) to stock; "
                f"'{inspection_status.value}' is recorded without touching the ledger."
            )
        elif not ret.written_off:
            ledger.write_off(item, quantity)
            ret.written_off = True
            outcome.written_off = quantity
    elif ret.written_off:
        # Found again but not usable: back on the books, still out of stock
        ledger.reinstate(item, quantity)
        ret.written_off = False
        outcome.reinstated = quantity

    ret.inspection_status = inspection_status
    ret.condition = condition
    ret.inspection_notes = notes
    ret.inspected_by = actor
    ret.inspected_at = now
    ret.damage_fee = damage_fee
    ret.updated_at = now
    ret.inspection_history.append(InspectionEntry(
        inspection_status=inspection_status, condition=condition, inspected_by=actor,
        inspected_at=now, notes=notes, damage_fee=damage_fee,
        restored_quantity=outcome.restored, written_off_quantity=outcome.written_off,
        reinstated_quantity=outcome.reinstated,
    ))
    if outcome.ledger_changed:
        item.updated_at = now

    logger.info(
        f"Inspection of return {getattr(ret, 'id', '?')}: {inspection_status.value}/{condition.value} "
        f"(restored={outcome.restored}, written_off={outcome.written_off}, reinstated={outcome.reinstated})"
    )
    return outcome
