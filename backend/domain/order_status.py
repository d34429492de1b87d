"""
Order status policy — the lifecycle rules every status mutation goes through.

    States:    pending, processing, shipped, delivered, cancelled
    Initial:   pending
    Terminal:  delivered, cancelled

    pending|processing|shipped -> any valid status   (update_status)
    delivered|cancelled        -> nothing
    pending|processing         -> cancelled          (cancel)
    shipped                    -> cancelled          forbidden via cancel

Pure functions, no state and no I/O. Callers read the current status, ask
the policy, and persist the result themselves (see order_service, which does
the write as a compare-and-swap on the status it checked).
"""
from domain.enums import OrderStatus
from domain.errors import IllegalTransitionError, InvalidStatusValueError
from domain.status_labels import status_label

_ALL_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
)

CANCELLABLE_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
FINAL_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

_TOKENS: frozenset[str] = frozenset(s.value for s in _ALL_STATUSES)


def _coerce(value) -> OrderStatus | None:
    # Exact token match only: "Pending" and " pending" are not statuses.
    if isinstance(value, OrderStatus):
        return value
    if isinstance(value, str) and value in _TOKENS:
        return OrderStatus(value)
    return None


def all_statuses() -> list[OrderStatus]:
    """All statuses in canonical order (validation allow-lists, dropdowns)."""
    return list(_ALL_STATUSES)


def all_status_values() -> list[str]:
    return [s.value for s in _ALL_STATUSES]


def is_valid_status(value) -> bool:
    return _coerce(value) is not None


def is_cancellable(status) -> bool:
    return _coerce(status) in CANCELLABLE_STATUSES


def is_final(status) -> bool:
    return _coerce(status) in FINAL_STATUSES


def label(status, locale=None) -> str:
    """Display label; never raises, unknown statuses get the "unknown" label."""
    return status_label(status, locale)


def can_transition(current, requested) -> bool:
    """
    Whether an order in `current` may move to `requested`.

    Terminal states are locked, including "transitions" to the same state.
    Any non-terminal state may move to any valid status.
    """
    cur = _coerce(current)
    req = _coerce(requested)
    if cur is None or req is None:
        return False
    if cur in FINAL_STATUSES:
        return False
    return True


def parse_status(value) -> OrderStatus:
    """
    Parse an incoming status token.

    Raises:
        InvalidStatusValueError if `value` is not one of the canonical tokens
    """
    status = _coerce(value)
    if status is None:
        raise InvalidStatusValueError(value, all_status_values())
    return status


def ensure_transition(current, requested, locale=None) -> OrderStatus:
    """
    Validate a general status update and return the parsed target status.

    Raises:
        InvalidStatusValueError if `requested` is not a canonical token
        IllegalTransitionError if `current` is terminal or unrecognized
    """
    target = parse_status(requested)
    if not can_transition(current, target):
        current_value = current.value if isinstance(current, OrderStatus) else str(current)
        raise IllegalTransitionError(
            f"Cannot change status of an order that is {label(current, locale)}",
            current_status=current_value,
            requested_status=target.value,
            details={"current_label": label(current, locale)},
        )
    return target


def cancel(current, locale=None) -> OrderStatus:
    """
    Cancellation transition.

    Returns OrderStatus.CANCELLED when `current` is cancellable.

    Raises:
        IllegalTransitionError for shipped, delivered, cancelled or unrecognized statuses
    """
    if not is_cancellable(current):
        current_value = current.value if isinstance(current, OrderStatus) else str(current)
        raise IllegalTransitionError(
            f"Order cannot be cancelled in its current status: {label(current, locale)}",
            current_status=current_value,
            requested_status=OrderStatus.CANCELLED.value,
            details={"current_label": label(current, locale)},
        )
    return OrderStatus.CANCELLED
