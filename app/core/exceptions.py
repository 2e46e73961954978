# app/core/exceptions.py
from typing import Any, Optional


class LifecycleError(Exception):
    """Base class for borrow/return lifecycle failures. Carries the HTTP status it maps to."""
    status_code: int = 400

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context


class InvalidTransitionError(LifecycleError):
    """A document was asked to move to a status its current status cannot reach."""
    status_code = 400

    def __init__(self, entity: str, current: Any, target: Any):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            f"Cannot move {entity} from '{current_value}' to '{target_value}'.",
            entity=entity, current=current_value, target=target_value,
        )
        self.current = current
        self.target = target


class InsufficientStockError(LifecycleError):
    status_code = 409

    def __init__(self, item_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient quantity for '{item_name}'. Available: {available}, Requested: {requested}",
            item_name=item_name, available=available, requested=requested,
        )
        self.available = available
        self.requested = requested


class LedgerInvariantError(LifecycleError):
    """A ledger movement would break 0 <= available <= total."""
    status_code = 409


class InvalidInspectionError(LifecycleError):
    status_code = 422


class NotFoundError(LifecycleError):
    status_code = 404

    def __init__(self, entity: str, identifier: Optional[str] = None):
        detail = f"{entity} not found." if identifier is None else f"{entity} with ID '{identifier}' not found."
        super().__init__(detail, entity=entity, identifier=identifier)
