# app/api/v1/endpoints/return_verifications.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from loguru import logger

from app.core import lifecycle
from app.core.security import get_current_active_user, require_staff_or_admin, User
from app.core.utils import utc_now, next_code
from app.core.exceptions import NotFoundError
from app.core.rate_limiter import limiter
from app.db.database import run_in_transaction
from app.models.return_verification import ReturnVerification
from app.models.return_transaction import ReturnTransaction
from app.models.enum import VerificationStatus
from app.api.v1.helpers import parse_object_id, to_response
from app.api.v1.endpoints.transactions import get_transaction_or_404, ensure_owner_or_staff

router = APIRouter(
    tags=["Return Verifications"]
)


async def get_verification_or_404(verification_id, session=None) -> ReturnVerification:
    oid = parse_object_id(verification_id, "verification ID") if isinstance(verification_id, str) else verification_id
    verification = await ReturnVerification.get(oid, session=session)
    if not verification:
        raise NotFoundError("Return verification", str(verification_id))
    return verification


# --- POST / --- (Borrower hands items back)
@router.post(
    "/",
    response_model=List[ReturnVerification.Response],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
async def submit_returns(
    request: Request,
    submit_in: ReturnVerification.Submit = Body(...),
    current_user: User = Depends(get_current_active_user)
):
    """
    Submit one or more borrowed transactions for return. Either every listed
    transaction moves to pending_return_verification or none does.
    """
    if len(set(submit_in.transaction_ids)) != len(submit_in.transaction_ids):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Each transaction may be listed only once.")
    oids = [parse_object_id(tid, "transaction ID") for tid in submit_in.transaction_ids]

    async def _submit(session):
        now = utc_now()
        created = []
        for oid in oids:
            txn = await get_transaction_or_404(oid, session=session)
            ensure_owner_or_staff(txn, current_user)
            lifecycle.submit_return(txn, now=now)
            verification = ReturnVerification(
                verification_code=await next_code("RV", now=now, session=session),
                borrow_transaction_id=txn.id,
                item_id=txn.item_id,
                item_name=txn.item_name,
                borrower_id=txn.borrower_id,
                borrower_name=txn.borrower_name,
                quantity_returned=txn.quantity,
                return_date=now,
                return_notes=submit_in.return_notes,
            )
            await verification.insert(session=session)
            await txn.save(session=session)
            created.append(verification)
        return created

    created = await run_in_transaction(_submit)
    logger.info(f"'{current_user.username}' submitted returns {[v.verification_code for v in created]}.")
    return [to_response(v, ReturnVerification.Response) for v in created]


@router.get(
    "/",
    response_model=List[ReturnVerification.Response],
    dependencies=[Depends(require_staff_or_admin)]
)
@limiter.limit("60/minute")
async def read_verifications(
    request: Request,
    status_filter: VerificationStatus = Query(VerificationStatus.PENDING_VERIFICATION, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    verifications = await ReturnVerification.find(
        {"verification_status": status_filter.value}, skip=skip, limit=limit
    ).sort("+created_at").to_list()
    return [to_response(v, ReturnVerification.Response) for v in verifications]


@router.get("/mine", response_model=List[ReturnVerification.Response])
@limiter.limit("60/minute")
async def read_my_verifications(
    request: Request,
    status_filter: Optional[VerificationStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user)
):
    """Lets a borrower poll whether their returns were confirmed."""
    query_filters = {"borrower_id": current_user.id}
    if status_filter: query_filters["verification_status"] = status_filter.value
    verifications = await ReturnVerification.find(query_filters).sort("-created_at").to_list()
    return [to_response(v, ReturnVerification.Response) for v in verifications]


@router.patch("/{verification_id}/verify", response_model=ReturnVerification.Response)
@limiter.limit("30/minute")
async def verify_return(
    request: Request,
    verification_id: str = Path(...),
    verify_in: ReturnVerification.Verify = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    """Confirm the item is back. Opens a return record awaiting inspection; stock is untouched."""
    oid = parse_object_id(verification_id, "verification ID")

    async def _verify(session):
        verification = await get_verification_or_404(oid, session=session)
        txn = await get_transaction_or_404(verification.borrow_transaction_id, session=session)
        lifecycle.verify_return(txn, verification, actor=current_user.username, notes=verify_in.verification_notes)
        ret = ReturnTransaction(
            borrow_transaction_id=txn.id,
            return_verification_id=verification.id,
            item_id=txn.item_id,
            item_name=txn.item_name,
            quantity=verification.quantity_returned,
            return_date=verification.return_date,
            return_notes=verification.return_notes,
            received_by=current_user.username,
        )
        await verification.save(session=session)
        await txn.save(session=session)
        await ret.insert(session=session)
        return verification, ret

    verification, ret = await run_in_transaction(_verify)
    logger.info(
        f"Return {verification.verification_code} verified by '{current_user.username}'; "
        f"return record {ret.id} awaits inspection."
    )
    return to_response(verification, ReturnVerification.Response)


@router.patch("/{verification_id}/reject", response_model=ReturnVerification.Response)
@limiter.limit("30/minute")
async def reject_return(
    request: Request,
    verification_id: str = Path(...),
    reject_in: ReturnVerification.Reject = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    """The item never arrived: the loan goes back to borrowed."""
    oid = parse_object_id(verification_id, "verification ID")

    async def _reject(session):
        verification = await get_verification_or_404(oid, session=session)
        txn = await get_transaction_or_404(verification.borrow_transaction_id, session=session)
        lifecycle.reject_return(txn, verification, actor=current_user.username, reason=reject_in.rejection_reason)
        await verification.save(session=session)
        await txn.save(session=session)
        return verification

    verification = await run_in_transaction(_reject)
    logger.info(f"Return {verification.verification_code} rejected by '{current_user.username}'.")
    return to_response(verification, ReturnVerification.Response)
