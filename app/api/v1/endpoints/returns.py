# app/api/v1/endpoints/returns.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from loguru import logger

from app.core import ledger, lifecycle
from app.core.security import require_staff_or_admin, User
from app.core.exceptions import NotFoundError
from app.core.rate_limiter import limiter
from app.db.database import run_in_transaction
from app.models.return_transaction import ReturnTransaction
from app.models.enum import InspectionStatus
from app.api.v1.helpers import parse_object_id, to_response
from app.api.v1.endpoints.items import get_item_or_404

router = APIRouter(
    tags=["Returns - Inspection"],
    dependencies=[Depends(require_staff_or_admin)]
)


async def get_return_or_404(return_id, session=None) -> ReturnTransaction:
    oid = parse_object_id(return_id, "return ID") if isinstance(return_id, str) else return_id
    ret = await ReturnTransaction.get(oid, session=session)
    if not ret:
        raise NotFoundError("Return", str(return_id))
    return ret


@router.get("/", response_model=List[ReturnTransaction.Response])
@limiter.limit("60/minute")
async def read_returns(
    request: Request,
    inspection_status: InspectionStatus = Query(InspectionStatus.PENDING_INSPECTION),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    returns = await ReturnTransaction.find(
        {"inspection_status": inspection_status.value}, skip=skip, limit=limit
    ).sort("-return_date").to_list()
    return [to_response(ret, ReturnTransaction.Response) for ret in returns]


@router.get("/{return_id}", response_model=ReturnTransaction.Response)
@limiter.limit("60/minute")
async def read_return(request: Request, return_id: str = Path(...)):
    ret = await get_return_or_404(return_id)
    return to_response(ret, ReturnTransaction.Response)


@router.patch("/{return_id}/inspect", response_model=ReturnTransaction.Response)
@limiter.limit("30/minute")
async def inspect_return(
    request: Request,
    return_id: str = Path(...),
    inspect_in: ReturnTransaction.Inspect = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    """
    Record the condition of a returned item. The first usable verdict puts the
    units back on the shelf; lost or unusable units are written off the ledger.
    May be repeated to correct an earlier verdict.
    """
    oid = parse_object_id(return_id, "return ID")

    async def _inspect(session):
        ret = await get_return_or_404(oid, session=session)
        item = await get_item_or_404(ret.item_id, session=session, active_only=False)
        outcome = lifecycle.inspect_return(
            ret, item, inspect_in.inspection_status, actor=current_user.username,
            condition=inspect_in.condition, notes=inspect_in.inspection_notes,
            damage_fee=inspect_in.damage_fee,
        )
        if outcome.ledger_changed:
            ledger.check_invariants(item)
            await item.save(session=session)
        await ret.save(session=session)
        return ret

    ret = await run_in_transaction(_inspect)
    logger.info(f"Return {ret.id} inspected by '{current_user.username}' as {ret.inspection_status.value}.")
    return to_response(ret, ReturnTransaction.Response)
