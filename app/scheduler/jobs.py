import logging
from typing import Iterable, Tuple
from datetime import datetime

from app.core import lifecycle
from app.core.utils import utc_now
from app.models.borrow_transaction import BorrowTransaction

logger = logging.getLogger("scheduler_jobs")


def partition_overdue(transactions: Iterable, now: datetime) -> Tuple[list, list]:
    """Split open loans into (to_flag, to_clear) based on their current ``is_overdue`` flag."""
    to_flag, to_clear = [], []
    for txn in transactions:
        overdue = lifecycle.is_overdue(txn, now)
        if overdue and not txn.is_overdue:
            to_flag.append(txn)
        elif not overdue and txn.is_overdue:
            to_clear.append(txn)
    return to_flag, to_clear


def overdue_update(txn, overdue: bool, now: datetime) -> Tuple[dict, dict]:
    """
    (filter, update) for one overdue flag change. The filter re-checks the
    conditions the sweep decided on, so a loan verified or extended since it
    was read is left alone.
    """
    query = {"_id": txn.id}
    if overdue:
        query["status"] = {"$in": [s.value for s in lifecycle.OPEN_LOAN_STATUSES]}
        query["expected_return_date"] = {"$lt": now}
    else:
        query["expected_return_date"] = {"$gte": now}
    return query, {"$set": {"is_overdue": overdue, "updated_at": now}}


async def flag_overdue_transactions():
    """Interval job: keep ``is_overdue`` in sync with expected_return_date on open loans."""
    now_utc = utc_now()
    logger.info(f"Running flag_overdue_transactions job at {now_utc}")

    open_loans = await BorrowTransaction.find(
        {"status": {"$in": [s.value for s in lifecycle.OPEN_LOAN_STATUSES]}}
    ).to_list()
    to_flag, to_clear = partition_overdue(open_loans, now_utc)
    collection = BorrowTransaction.get_motor_collection()

    errors = skipped = 0
    for txn, overdue in [(t, True) for t in to_flag] + [(t, False) for t in to_clear]:
        query, update = overdue_update(txn, overdue, now_utc)
        try:
            result = await collection.update_one(query, update)
        except Exception:
            # One bad document must not stop the sweep; it is retried next run
            logger.error(f"Failed to update overdue flag on transaction {txn.transaction_code}.", exc_info=True)
            errors += 1
            continue
        if result.matched_count == 0:
            logger.info(f"Transaction {txn.transaction_code} changed since it was read; overdue flag left as is.")
            skipped += 1
        elif overdue:
            logger.warning(
                f"Transaction {txn.transaction_code} ({txn.item_name} x{txn.quantity}, "
                f"borrower '{txn.borrower_name}') is overdue since {txn.expected_return_date:%Y-%m-%d}."
            )

    logger.info(
        f"Job finished. Open loans: {len(open_loans)}, Flagged: {len(to_flag)}, "
        f"Cleared: {len(to_clear)}, Skipped: {skipped}, Errors: {errors}"
    )
