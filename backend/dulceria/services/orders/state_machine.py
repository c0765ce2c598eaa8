"""Order status transition rules.

The monotonic lifecycle is::

    pending -> paid | cancelled
    paid    -> ready | cancelled
    ready   -> completed | cancelled

``completed`` and ``cancelled`` are terminal. System-triggered transitions
(payment completion, processor webhooks) must follow this table. Admin
status changes are an explicit override and may set any status.
"""

from typing import Any, Dict, Set

from dulceria.core.logging import get_logger
from dulceria.database.models.order import OrderStatus

logger = get_logger(__name__)


ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

STATUS_DISPLAY_NAMES: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.PAID: "Paid",
    OrderStatus.READY: "Ready for pickup",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
}


class StateTransitionError(Exception):
    """Raised when a system-triggered transition leaves the monotonic path."""

    def __init__(
        self,
        message: str,
        current_state: OrderStatus,
        target_state: OrderStatus,
        **context: Any,
    ):
        super().__init__(message)
        self.current_state = current_state
        self.target_state = target_state
        self.context = context


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether ``current -> target`` is on the monotonic path."""
    return target in ORDER_STATUS_TRANSITIONS.get(current, set())


def allowed_transitions(current: OrderStatus) -> Set[OrderStatus]:
    return ORDER_STATUS_TRANSITIONS.get(current, set()).copy()


def validate_system_transition(current: OrderStatus, target: OrderStatus) -> None:
    """
    Enforce the monotonic path for transitions not made by an admin.

    Raises:
        StateTransitionError: If the transition is not allowed
    """
    if not can_transition(current, target):
        logger.info(
            "Status transition outside lifecycle",
            current_status=current.value,
            target_status=target.value,
        )
        raise StateTransitionError(
            f"Cannot transition order from {current.value} to {target.value}",
            current_state=current,
            target_state=target,
        )


def display_name(status: OrderStatus) -> str:
    return STATUS_DISPLAY_NAMES.get(status, status.value.title())
