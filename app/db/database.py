# app/db/database.py
from typing import Awaitable, Callable, TypeVar

import motor.motor_asyncio
from beanie import init_beanie
from app.core.config import MONGODB_URL, DATABASE_NAME
from app.models.user import User
from app.models.item import InventoryItem
from app.models.borrow_transaction import BorrowTransaction
from app.models.return_verification import ReturnVerification
from app.models.return_transaction import ReturnTransaction
from app.models.counter import SequenceCounter
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

DOCUMENT_MODELS = [
    User,
    InventoryItem,
    BorrowTransaction,
    ReturnVerification,
    ReturnTransaction,
    SequenceCounter,
]

_client = None

def get_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    global _client
    if _client is None:
        _client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL, tz_aware=True)
    return _client

async def init_db():
    """Connect to MongoDB and initialise Beanie for every document model."""
    logger.info("Connecting to MongoDB...")
    database = get_client()[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info("Beanie initialization complete for all models.")

def close_db():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed.")

async def run_in_transaction(callback: Callable[..., Awaitable[T]]) -> T:
    """
    Run ``callback(session)`` inside a multi-document transaction.

    with_transaction retries the whole callback on TransientTransactionError,
    so concurrent admin actions on the same item serialize instead of
    clobbering each other. Any other exception aborts and propagates.
    Requires MongoDB running as a replica set.
    """
    async with await get_client().start_session() as session:
        return await session.with_transaction(callback)
