# app/core/utils.py
import logging
from datetime import datetime, timezone
from typing import Optional
from pymongo import ReturnDocument

from app.models.counter import SequenceCounter

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as stored by MongoDB) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_code(prefix: str, year: int, sequence: int, width: int = 3) -> str:
    """Human readable document code, e.g. RV-2025-001. Wider sequences are never truncated."""
    return f"{prefix}-{year}-{str(sequence).zfill(width)}"


async def get_next_sequence_value(sequence_name: str, session=None) -> int:
    """
    Gets the next value for a named sequence, incrementing it atomically.
    Uses _id field of SequenceCounter as the sequence name.
    """
    logger.debug(f"Attempting to get next sequence value for: {sequence_name}")
    collection = SequenceCounter.get_motor_collection()

    try:
        updated_doc = await collection.find_one_and_update(
            {"_id": sequence_name},
            {"$inc": {"value": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
    except Exception as e:
        logger.error(f"Error in get_next_sequence_value for '{sequence_name}': {e}", exc_info=True)
        raise RuntimeError(f"Database error accessing sequence counter '{sequence_name}'") from e

    if not updated_doc or "value" not in updated_doc:
        logger.error(f"CRITICAL: Failed to get or create sequence counter '{sequence_name}' after upsert.")
        raise RuntimeError(f"Failed to get or create sequence counter: {sequence_name}")

    logger.debug(f"Next sequence value for '{sequence_name}': {updated_doc['value']}")
    return updated_doc["value"]


async def next_code(prefix: str, width: int = 3, now: Optional[datetime] = None, session=None) -> str:
    """Next yearly code for ``prefix``; each year restarts at 1 (RV-2025-001, BT-2025-0001, ...)."""
    year = (now or utc_now()).year
    value = await get_next_sequence_value(f"{prefix.lower()}_{year}", session=session)
    return format_code(prefix, year, value, width)
