"""
Order status transitions.

Every change to Order.status goes through apply_transition so that the
lifecycle pending -> processing -> dispatched -> delivered is enforced in
one place.
"""
from fastapi import status
from models import Order
from utils.errors import AppError
import logging

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
DISPATCHED = "dispatched"
DELIVERED = "delivered"

# transition name -> (allowed source statuses, target status)
TRANSITIONS = {
    "confirm_payment": ({PENDING, PROCESSING}, PROCESSING),
    "complete": ({PENDING, PROCESSING}, PROCESSING),
    "dispatch": ({PROCESSING, DISPATCHED}, DISPATCHED),
    "deliver": ({DISPATCHED}, DELIVERED),
}


def can_transition(current_status: str, transition: str) -> bool:
    sources, _ = TRANSITIONS[transition]
    return current_status in sources


def apply_transition(order: Order, transition: str) -> str:
    """Move the order along the named transition and return its new status"""
    if transition not in TRANSITIONS:
        raise ValueError(f"Unknown order transition: {transition}")

    if not can_transition(order.status, transition):
        raise AppError(
            f"Cannot {transition.replace('_', ' ')} an order that is {order.status}",
            status.HTTP_409_CONFLICT
        )

    _, target = TRANSITIONS[transition]
    if order.status != target:
        logger.info(f"Order {order.id}: {order.status} -> {target} ({transition})")
    order.status = target
    return target


def is_reviewable(order: Order) -> bool:
    return order.status == DELIVERED


# Transaction statuses; completed and rejected are terminal
TX_PENDING = "pending"
TX_COMPLETED = "completed"
TX_REJECTED = "rejected"


def complete_transaction(transaction, amount=None, method=None, currency=None, details=None) -> bool:
    """
    Mark a pending transaction completed. Returns False when it already was,
    so repeated confirmations are no-ops.
    """
    if transaction.status == TX_COMPLETED:
        return False
    if transaction.status != TX_PENDING:
        raise AppError(
            f"Cannot complete a transaction that is {transaction.status}",
            status.HTTP_409_CONFLICT
        )

    if amount is not None:
        transaction.amount = float(amount)
    if method:
        transaction.tx_method = method
    if currency:
        transaction.currency = currency
    if details is not None:
        transaction.tx_details = details
    transaction.status = TX_COMPLETED
    logger.info(f"Transaction {transaction.id} for order {transaction.order_id} completed")
    return True
