# app/api/v1/endpoints/users.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from loguru import logger

from app.core.security import get_password_hash, require_admin
from app.core.exceptions import NotFoundError
from app.core.rate_limiter import limiter
from app.models.user import User, UserRole
from app.api.v1.helpers import parse_object_id, to_response

router = APIRouter(
    tags=["Users - Admin"],
    dependencies=[Depends(require_admin)]
)


async def get_user_or_404(user_id: str) -> User:
    user = await User.get(parse_object_id(user_id, "user ID"))
    if not user:
        raise NotFoundError("User", user_id)
    return user


@router.get("/", response_model=List[User.Response])
@limiter.limit("30/minute")
async def read_users(
    request: Request,
    role: Optional[UserRole] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """Retrieve a list of all users. Requires Admin role."""
    query_filters = {"role": role.value} if role else {}
    users = await User.find(query_filters, skip=skip, limit=limit).sort("+username").to_list()
    return [to_response(user, User.Response) for user in users]


@router.post("/", response_model=User.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/hour")
async def create_user_by_admin(
    request: Request,
    user_in: User.AdminCreate = Body(...),
):
    """Create a borrower, staff member or admin account. Requires Admin role."""
    if await User.find_one(User.username == user_in.username):
        raise HTTPException(status_code=400, detail="Username already registered.")
    if user_in.email and await User.find_one(User.email == user_in.email):
        raise HTTPException(status_code=400, detail="Email already registered.")

    user_obj = User(**user_in.model_dump(exclude={"password"}), hashed_password=get_password_hash(user_in.password))
    await user_obj.insert()
    logger.info(f"User '{user_obj.username}' created with role '{user_obj.role.value}'.")
    return to_response(user_obj, User.Response)


@router.get("/{user_id}", response_model=User.Response)
@limiter.limit("60/minute")
async def read_user(
    request: Request,
    user_id: str = Path(..., description="The ID of the user to retrieve")
):
    user = await get_user_or_404(user_id)
    return to_response(user, User.Response)
