# app/core/ledger.py
"""
Inventory ledger bookkeeping.

Every function here works on any object exposing ``name``,
``total_quantity``, ``available_quantity`` and ``status`` (an
``InventoryItem`` document in the app). The caller is responsible for
persisting the item inside the same DB transaction as the status change
that triggered the movement.
"""
import logging

from app.core.exceptions import InsufficientStockError, LedgerInvariantError
from app.models.enum import StockStatus

logger = logging.getLogger(__name__)

# Below this share of total_quantity an item is reported as low stock
LOW_STOCK_PERCENT = 30


def derive_stock_status(available: int, total: int) -> StockStatus:
    """Stock status from the available/total ratio (integer math, strict < for low stock)."""
    if available <= 0:
        return StockStatus.OUT_OF_STOCK
    if total > 0 and available * 100 < total * LOW_STOCK_PERCENT:
        return StockStatus.LOW_STOCK
    return StockStatus.AVAILABLE


def refresh_status(item) -> StockStatus:
    item.status = derive_stock_status(item.available_quantity, item.total_quantity)
    return item.status


def check_invariants(item) -> None:
    if item.total_quantity < 0:
        raise LedgerInvariantError(f"Item '{item.name}' has negative total quantity ({item.total_quantity}).")
    if not 0 <= item.available_quantity <= item.total_quantity:
        raise LedgerInvariantError(
            f"Item '{item.name}' ledger out of bounds: available={item.available_quantity}, total={item.total_quantity}."
        )


def _require_positive(quantity: int) -> None:
    if quantity <= 0:
        raise LedgerInvariantError(f"Ledger quantity must be positive, got {quantity}.")


def ensure_reservable(item, quantity: int) -> None:
    _require_positive(quantity)
    if item.available_quantity < quantity:
        raise InsufficientStockError(item.name, item.available_quantity, quantity)


def reserve(item, quantity: int) -> int:
    """Take ``quantity`` units out of available stock. Returns the new available quantity."""
    ensure_reservable(item, quantity)
    item.available_quantity -= quantity
    refresh_status(item)
    logger.info(f"Ledger: reserved {quantity} of '{item.name}', available now {item.available_quantity}/{item.total_quantity}.")
    return item.available_quantity


def release(item, quantity: int) -> int:
    """Put ``quantity`` units back into available stock."""
    _require_positive(quantity)
    if item.available_quantity + quantity > item.total_quantity:
        raise LedgerInvariantError(
            f"Restoring {quantity} of '{item.name}' would exceed total quantity "
            f"(available={item.available_quantity}, total={item.total_quantity})."
        )
    item.available_quantity += quantity
    refresh_status(item)
    logger.info(f"Ledger: released {quantity} of '{item.name}', available now {item.available_quantity}/{item.total_quantity}.")
    return item.available_quantity


def write_off(item, quantity: int) -> int:
    """Remove lent-out units that will never come back (lost/unusable). Returns the new total."""
    _require_positive(quantity)
    new_total = item.total_quantity - quantity
    if new_total < item.available_quantity:
        raise LedgerInvariantError(
            f"Writing off {quantity} of '{item.name}' would drop total below available "
            f"(available={item.available_quantity}, total={item.total_quantity})."
        )
    item.total_quantity = new_total
    refresh_status(item)
    logger.info(f"Ledger: wrote off {quantity} of '{item.name}', total now {item.total_quantity}.")
    return item.total_quantity


def reinstate(item, quantity: int) -> int:
    """Undo a write-off: the units are back on the books but still out of stock."""
    _require_positive(quantity)
    item.total_quantity += quantity
    refresh_status(item)
    logger.info(f"Ledger: reinstated {quantity} of '{item.name}', total now {item.total_quantity}.")
    return item.total_quantity


def adjust_total(item, delta: int) -> int:
    """
    Restock (delta > 0) or retire (delta < 0) units. Retiring only touches
    units currently on the shelf; lent-out units cannot be removed this way.
    """
    if delta == 0:
        raise LedgerInvariantError("Stock adjustment must be non-zero.")
    if delta < 0 and item.available_quantity + delta < 0:
        raise InsufficientStockError(item.name, item.available_quantity, -delta)
    item.total_quantity += delta
    item.available_quantity += delta
    refresh_status(item)
    logger.info(f"Ledger: adjusted '{item.name}' by {delta:+d}, now {item.available_quantity}/{item.total_quantity}.")
    return item.total_quantity
