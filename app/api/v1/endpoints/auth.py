# app/api/v1/endpoints/auth.py
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger

from app.core.security import (
    create_access_token,
    verify_password,
    get_current_active_user,
)
from app.core.config import ACCESS_TOKEN_EXPIRE_MINUTES
from app.core.rate_limiter import limiter
from app.models.token import Token
from app.models.user import User
from app.api.v1.helpers import to_response

router = APIRouter(
    tags=["Authentication"]
)

# Path will become /api/v1/auth/token
@router.post("/token", response_model=Token)
@limiter.limit("10/minute")
async def login_for_access_token(request: Request, form_data: OAuth2PasswordRequestForm = Depends()):
    user = await User.find_one(User.username == form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login attempt for '{form_data.username}'.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")

    access_token = create_access_token(
        data={"sub": user.username},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    logger.info(f"User '{user.username}' logged in.")
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=User.Response)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return to_response(current_user, User.Response)
