# app/api/v1/endpoints/items.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from loguru import logger

from app.core import ledger
from app.core.security import require_staff_or_admin, get_current_active_user, User
from app.core.utils import utc_now
from app.db.database import run_in_transaction
from app.models.item import InventoryItem
from app.models.enum import StockStatus
from app.core.exceptions import NotFoundError
from app.core.rate_limiter import limiter
from app.api.v1.helpers import parse_object_id, to_response

router = APIRouter(
    tags=["Inventory Items"]
)

async def get_item_or_404(item_id, session=None, active_only: bool = True) -> InventoryItem:
    """
    Retrieves an item by its ObjectId (str or ObjectId).
    Raises 400 on a malformed ID, 404 if missing or (with active_only) archived.
    """
    oid = parse_object_id(item_id, "item ID") if isinstance(item_id, str) else item_id
    item = await InventoryItem.get(oid, session=session)
    if not item or (active_only and not item.is_active):
        logger.info(f"Item lookup failed for ID '{item_id}' (active_only={active_only}).")
        raise NotFoundError("Inventory item", str(item_id))
    return item


@router.post(
    "/",
    response_model=InventoryItem.Response,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
async def create_item(
    request: Request,
    item_in: InventoryItem.Create = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    """Create an item. The whole initial stock is available."""
    item_obj = InventoryItem(
        **item_in.model_dump(),
        available_quantity=item_in.total_quantity,
    )
    ledger.refresh_status(item_obj)
    await item_obj.insert()
    logger.info(f"Item '{item_obj.name}' ({item_obj.id}) created by '{current_user.username}' with {item_obj.total_quantity} unit(s).")
    return to_response(item_obj, InventoryItem.Response)


@router.get(
    "/",
    response_model=List[InventoryItem.Response],
    dependencies=[Depends(get_current_active_user)]
)
@limiter.limit("60/minute")
async def read_items(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    name: Optional[str] = Query(None, description="Case-insensitive partial match on the item name"),
    category: Optional[str] = Query(None),
    stock_status: Optional[StockStatus] = Query(None),
    include_inactive: bool = Query(False, description="Set to true to include archived items"),
):
    query_filters = {}
    if not include_inactive: query_filters["is_active"] = True
    if name: query_filters["name"] = {"$regex": name, "$options": "i"}
    if category: query_filters["category"] = category
    if stock_status: query_filters["status"] = stock_status.value

    items = await InventoryItem.find(query_filters, skip=skip, limit=limit).sort("+name").to_list()
    return [to_response(item, InventoryItem.Response) for item in items]


@router.get(
    "/{item_id}",
    response_model=InventoryItem.Response,
    dependencies=[Depends(get_current_active_user)]
)
@limiter.limit("60/minute")
async def read_item(request: Request, item_id: str = Path(..., description="The ID of the item to retrieve")):
    item = await get_item_or_404(item_id, active_only=False)
    return to_response(item, InventoryItem.Response)


@router.put(
    "/{item_id}",
    response_model=InventoryItem.Response,
)
@limiter.limit("30/minute")
async def update_item(
    request: Request,
    item_id: str = Path(...),
    item_in: InventoryItem.Update = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    """Update item metadata. Quantities only move through the ledger endpoints."""
    update_data = item_in.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No update data provided.")
    oid = parse_object_id(item_id, "item ID")

    async def _update(session):
        item = await get_item_or_404(oid, session=session, active_only=False)
        if update_data.get("is_active") is False and item.available_quantity != item.total_quantity:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Cannot archive '{item.name}' while units are lent out.")
        for field, value in update_data.items():
            setattr(item, field, value)
        item.updated_at = utc_now()
        await item.save(session=session)
        return item

    item = await run_in_transaction(_update)
    logger.info(f"Item '{item.name}' ({item_id}) updated by '{current_user.username}'. Fields: {list(update_data.keys())}")
    return to_response(item, InventoryItem.Response)


@router.patch(
    "/{item_id}/stock",
    response_model=InventoryItem.Response,
)
@limiter.limit("30/minute")
async def adjust_item_stock(
    request: Request,
    item_id: str = Path(...),
    adjustment: InventoryItem.StockAdjustment = Body(...),
    current_user: User = Depends(require_staff_or_admin)
):
    """Restock (positive delta) or retire shelf units (negative delta)."""
    oid = parse_object_id(item_id, "item ID")

    async def _adjust(session):
        item = await get_item_or_404(oid, session=session)
        ledger.adjust_total(item, adjustment.delta)
        item.updated_at = utc_now()
        ledger.check_invariants(item)
        await item.save(session=session)
        return item

    item = await run_in_transaction(_adjust)
    logger.info(
        f"Stock of '{item.name}' adjusted by {adjustment.delta:+d} by '{current_user.username}'"
        f"{f' ({adjustment.reason})' if adjustment.reason else ''}."
    )
    return to_response(item, InventoryItem.Response)


@router.delete(
    "/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
@limiter.limit("10/minute")
async def delete_item(
    request: Request,
    item_id: str = Path(..., description="The ID of the item to archive"),
    current_user: User = Depends(require_staff_or_admin)
):
    """Archive an item (soft delete). Idempotent; refused while units are lent out."""
    oid = parse_object_id(item_id, "item ID")

    async def _archive(session):
        item = await get_item_or_404(oid, session=session, active_only=False)
        if not item.is_active:
            return None
        if item.available_quantity != item.total_quantity:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Cannot archive '{item.name}': {item.total_quantity - item.available_quantity} unit(s) are still out.",
            )
        item.is_active = False
        item.updated_at = utc_now()
        await item.save(session=session)
        return item

    item = await run_in_transaction(_archive)
    if item is None:
        logger.info(f"Item '{item_id}' is already inactive. No action taken.")
    else:
        logger.info(f"Item '{item.name}' ({item_id}) marked as inactive by '{current_user.username}'.")
    return None
