# app/api/v1/endpoints/transactions.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from loguru import logger

from app.core import ledger, lifecycle
from app.core.security import get_current_active_user, require_staff_or_admin, is_staff, User
from app.core.utils import utc_now, next_code
from app.core.exceptions import NotFoundError
from app.core.rate_limiter import limiter
from app.db.database import run_in_transaction
from app.models.borrow_transaction import BorrowTransaction
from app.models.enum import BorrowStatus
from app.api.v1.helpers import parse_object_id, to_response
from app.api.v1.endpoints.items import get_item_or_404

router = APIRouter(
    tags=["Borrow Transactions"]
)

TRANSACTION_CODE_WIDTH = 4


async def get_transaction_or_404(transaction_id, session=None) -> BorrowTransaction:
    oid = parse_object_id(transaction_id, "transaction ID") if isinstance(transaction_id, str) else transaction_id
    txn = await BorrowTransaction.get(oid, session=session)
    if not txn:
        raise NotFoundError("Borrow transaction", str(transaction_id))
    return txn


def ensure_owner_or_staff(txn, current_user: User) -> None:
    if not is_staff(current_user) and txn.borrower_id != current_user.id:
        logger.warning(f"User '{current_user.username}' tried to access transaction {txn.id} of another borrower.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only access your own transactions.")


async def resolve_borrower(borrower_id: Optional[str], current_user: User) -> User:
    """Borrowers file for themselves; staff/admin may file on behalf of another user."""
    if not borrower_id or borrower_id == str(current_user.id):
        return current_user
    if not is_staff(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only staff can file a request for another borrower.")
    borrower = await User.get(parse_object_id(borrower_id, "borrower ID"))
    if not borrower or borrower.disabled:
        raise NotFoundError("Borrower", borrower_id)
    return borrower


# --- POST / --- (Borrow request)
@router.post(
    "/",
    response_model=List[BorrowTransaction.Response],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
async def create_borrow_request(
    request: Request,
    request_in: BorrowTransaction.CreateRequest = Body(...),
    current_user: User = Depends(get_current_active_user)
):
    """
    Submit a borrow request. One pending transaction is created per item line.
    Availability is checked up front but no stock is reserved until approval.
    """
    borrower = await resolve_borrower(request_in.borrower_id, current_user)
    item_ids = [parse_object_id(line.item_id, "item ID") for line in request_in.items]

    async def _create(session):
        created = []
        for line, item_id in zip(request_in.items, item_ids):
            item = await get_item_or_404(item_id, session=session)
            ledger.ensure_reservable(item, line.quantity)
            txn = BorrowTransaction(
                transaction_code=await next_code("BT", width=TRANSACTION_CODE_WIDTH, session=session),
                item_id=item.id,
                item_name=item.name,
                borrower_id=borrower.id,
                borrower_name=borrower.display_name,
                borrower_type=borrower.borrower_type,
                quantity=line.quantity,
                borrow_date=request_in.borrow_date,
                expected_return_date=request_in.expected_return_date,
                purpose=request_in.purpose,
                location=request_in.location,
                notes=request_in.notes,
            )
            await txn.insert(session=session)
            created.append(txn)
        return created

    created = await run_in_transaction(_create)
    logger.info(
        f"Borrow request by '{current_user.username}' for '{borrower.username}': "
        f"{[txn.transaction_code for txn in created]}"
    )
    return [to_response(txn, BorrowTransaction.Response) for txn in created]


# --- GET / --- (List, scoped to the caller unless staff)
@router.get("/", response_model=List[BorrowTransaction.Response])
@limiter.limit("60/minute")
async def read_transactions(
    request: Request,
    status_filter: Optional[BorrowStatus] = Query(None, alias="status"),
    borrower_id: Optional[str] = Query(None, description="Staff only"),
    item_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_active_user)
):
    query_filters = {}
    if status_filter: query_filters["status"] = status_filter.value
    if item_id: query_filters["item_id"] = parse_object_id(item_id, "item ID")
    if not is_staff(current_user):
        query_filters["borrower_id"] = current_user.id
    elif borrower_id:
        query_filters["borrower_id"] = parse_object_id(borrower_id, "borrower ID")

    txns = await BorrowTransaction.find(query_filters, skip=skip, limit=limit).sort("-created_at").to_list()
    return [to_response(txn, BorrowTransaction.Response) for txn in txns]


@router.get("/history", response_model=List[BorrowTransaction.Response])
@limiter.limit("60/minute")
async def read_my_history(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_active_user)
):
    """Every transaction the caller has borrowed under, newest first."""
    txns = await BorrowTransaction.find(
        {"borrower_id": current_user.id}, skip=skip, limit=limit
    ).sort("-created_at").to_list()
    return [to_response(txn, BorrowTransaction.Response) for txn in txns]


@router.get(
    "/overdue",
    response_model=List[BorrowTransaction.Response],
    dependencies=[Depends(require_staff_or_admin)]
)
@limiter.limit("30/minute")
async def read_overdue(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    txns = await BorrowTransaction.find(
        {
            "status": {"$in": [s.value for s in lifecycle.OPEN_LOAN_STATUSES]},
            "expected_return_date": {"$lt": utc_now()},
        },
        skip=skip, limit=limit,
    ).sort("+expected_return_date").to_list()
    return [to_response(txn, BorrowTransaction.Response) for txn in txns]


@router.get("/{transaction_id}", response_model=BorrowTransaction.Response)
@limiter.limit("60/minute")
async def read_transaction(
    request: Request,
    transaction_id: str = Path(...),
    current_user: User = Depends(get_current_active_user)
):
    txn = await get_transaction_or_404(transaction_id)
    ensure_owner_or_staff(txn, current_user)
    return to_response(txn, BorrowTransaction.Response)


# --- Admin actions ---
@router.patch("/{transaction_id}/approve", response_model=BorrowTransaction.Response)
@limiter.limit("30/minute")
async def approve_transaction(
    request: Request,
    transaction_id: str = Path(...),
    current_user: User = Depends(require_staff_or_admin)
):
    """pending -> borrowed. This is where the units leave available stock."""
    oid = parse_object_id(transaction_id, "transaction ID")

    async def _approve(session):
        txn = await get_transaction_or_404(oid, session=session)
        item = await get_item_or_404(txn.item_id, session=session, active_only=False)
        lifecycle.approve_borrow(txn, item, approver=current_user.username)
        ledger.check_invariants(item)
        await item.save(session=session)
        await txn.save(session=session)
        return txn

    txn = await run_in_transaction(_approve)
    logger.info(f"Transaction {txn.transaction_code} approved by '{current_user.username}'.")
    return to_response(txn, BorrowTransaction.Response)


@router.patch("/{transaction_id}/reject", response_model=BorrowTransaction.Response)
@limiter.limit("30/minute")
async def reject_transaction(
    request: Request,
    transaction_id: str = Path(...),
    reject_in: BorrowTransaction.Reject = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    oid = parse_object_id(transaction_id, "transaction ID")

    async def _reject(session):
        txn = await get_transaction_or_404(oid, session=session)
        lifecycle.reject_borrow(txn, actor=current_user.username, reason=reject_in.reason)
        await txn.save(session=session)
        return txn

    txn = await run_in_transaction(_reject)
    logger.info(f"Transaction {txn.transaction_code} rejected by '{current_user.username}'.")
    return to_response(txn, BorrowTransaction.Response)


@router.patch("/{transaction_id}/extend", response_model=BorrowTransaction.Response)
@limiter.limit("30/minute")
async def extend_transaction(
    request: Request,
    transaction_id: str = Path(...),
    extend_in: BorrowTransaction.Extend = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    oid = parse_object_id(transaction_id, "transaction ID")

    async def _extend(session):
        txn = await get_transaction_or_404(oid, session=session)
        lifecycle.extend_due_date(
            txn, extend_in.new_return_date, actor=current_user.username, reason=extend_in.reason
        )
        await txn.save(session=session)
        return txn

    txn = await run_in_transaction(_extend)
    logger.info(f"Transaction {txn.transaction_code} due date moved to {txn.expected_return_date:%Y-%m-%d}.")
    return to_response(txn, BorrowTransaction.Response)
