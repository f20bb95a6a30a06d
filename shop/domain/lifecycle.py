# shop/domain/lifecycle.py
"""
Order lifecycle state machine.

Pure transition table, no database or gateway access. OrderService resolves
the target status here and then performs the side effects and the versioned
write.
"""
import enum
from typing import Dict, FrozenSet, Tuple

from shop.domain.errors import InvalidTransition


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    REFUNDED = "refunded"
    CANCELLATION_REQUESTED = "cancellation_requested"


class OrderEvent(str, enum.Enum):
    # gateway (webhook / confirm)
    GATEWAY_SUCCEEDED = "gateway_succeeded"
    GATEWAY_FAILED = "gateway_failed"
    GATEWAY_CANCELED = "gateway_canceled"
    # user
    USER_CANCEL = "user_cancel"
    REQUEST_CANCELLATION = "request_cancellation"
    # admin
    APPROVE_CANCELLATION = "approve_cancellation"
    REJECT_CANCELLATION = "reject_cancellation"
    REFUND = "refund"
    FULL_REFUND = "full_refund"


S = OrderStatus
E = OrderEvent

TRANSITIONS: Dict[Tuple[OrderStatus, OrderEvent], OrderStatus] = {
    (S.PENDING, E.GATEWAY_SUCCEEDED): S.SUCCEEDED,
    (S.PENDING, E.GATEWAY_FAILED): S.FAILED,
    (S.PENDING, E.GATEWAY_CANCELED): S.FAILED,
    (S.PENDING, E.USER_CANCEL): S.CANCELED,
    (S.SUCCEEDED, E.REQUEST_CANCELLATION): S.CANCELLATION_REQUESTED,
    (S.CANCELLATION_REQUESTED, E.APPROVE_CANCELLATION): S.CANCELED,
    (S.CANCELLATION_REQUESTED, E.REJECT_CANCELLATION): S.SUCCEEDED,
    #czesciowy zwrot nie zmienia statusu, pelny konczy na refunded
    (S.SUCCEEDED, E.REFUND): S.SUCCEEDED,
    (S.SUCCEEDED, E.FULL_REFUND): S.REFUNDED,
}

# provider events re-delivered after they were already applied
IDEMPOTENT: FrozenSet[Tuple[OrderStatus, OrderEvent]] = frozenset({
    (S.SUCCEEDED, E.GATEWAY_SUCCEEDED),
    (S.FAILED, E.GATEWAY_FAILED),
    (S.FAILED, E.GATEWAY_CANCELED),
    # intent canceled by us when the user canceled the pending order
    (S.CANCELED, E.GATEWAY_CANCELED),
    (S.CANCELED, E.GATEWAY_FAILED),
})

# late "succeeded" for an order that was paid and has moved on; only when paid_at is set
IDEMPOTENT_AFTER_PAYMENT: FrozenSet[Tuple[OrderStatus, OrderEvent]] = frozenset({
    (S.CANCELLATION_REQUESTED, E.GATEWAY_SUCCEEDED),
    (S.REFUNDED, E.GATEWAY_SUCCEEDED),
    (S.CANCELED, E.GATEWAY_SUCCEEDED),
})

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset({S.CANCELED, S.REFUNDED, S.FAILED})

GATEWAY_EVENTS = {
    "payment_intent.succeeded": E.GATEWAY_SUCCEEDED,
    "payment_intent.payment_failed": E.GATEWAY_FAILED,
    "payment_intent.canceled": E.GATEWAY_CANCELED,
}

# remote intent status (retrieve) -> event, statuses not listed leave the order pending
INTENT_STATUS_EVENTS = {
    "succeeded": E.GATEWAY_SUCCEEDED,
    "canceled": E.GATEWAY_CANCELED,
    "failed": E.GATEWAY_FAILED,
}


def next_status(status: str, event: OrderEvent, paid: bool = False) -> Tuple[OrderStatus, bool]:
    """
    Resolve the status an event leads to.

    Returns ``(target, changed)``. ``changed`` is False when the event is a
    re-delivery of something already applied; the caller must then leave the
    order untouched. ``paid`` tells whether the order has recorded a payment
    (``paid_at``). Raises InvalidTransition for anything not in the table.
    """
    current = OrderStatus(status)

    if (current, event) in IDEMPOTENT:
        return current, False
    if paid and (current, event) in IDEMPOTENT_AFTER_PAYMENT:
        return current, False

    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransition(current.value, event.value)

    return target, True


def allowed_events(status: str) -> list[OrderEvent]:
    current = OrderStatus(status)
    return [event for (state, event) in TRANSITIONS if state == current]
