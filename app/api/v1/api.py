# app/api/v1/api.py
from fastapi import APIRouter

from app.api.v1.endpoints import auth, users, items, transactions, return_verifications, returns

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(auth.router, prefix="/auth")
api_router_v1.include_router(users.router, prefix="/users")
api_router_v1.include_router(items.router, prefix="/items")
api_router_v1.include_router(transactions.router, prefix="/transactions")
api_router_v1.include_router(return_verifications.router, prefix="/return-verifications")
api_router_v1.include_router(returns.router, prefix="/returns")
