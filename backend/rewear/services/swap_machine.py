"""
Swap request state machine.

Pure decision logic: every ``plan_*`` function takes immutable snapshots of
the swap request (and, where needed, the items involved) and returns a
``Transition`` describing the new status, the field changes to persist and
the side-effect commands (ledger transfers and credits, item status changes, stat
counters) the settlement orchestrator must execute inside one unit of work.
Nothing here touches the database, so the machine is testable on its own.

States::

    pending  -> accepted | rejected | cancelled
    accepted -> completed | cancelled
    rejected, completed, cancelled are terminal
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from ..errors import (
    DuplicateRequestError,
    InsufficientFundsError,
    InvalidSwapRequestError,
    InvalidTransitionError,
    NotAuthorizedError,
    SelfSwapNotAllowedError,
)
from ..models.enums import ItemStatus, LedgerSource, SwapStatus, SwapType

DEFAULT_EXPIRY = timedelta(days=7)

TRANSITIONS: dict[SwapStatus, frozenset[SwapStatus]] = {
    SwapStatus.PENDING: frozenset({SwapStatus.ACCEPTED, SwapStatus.REJECTED, SwapStatus.CANCELLED}),
    SwapStatus.ACCEPTED: frozenset({SwapStatus.COMPLETED, SwapStatus.CANCELLED}),
}
TERMINAL = frozenset({SwapStatus.REJECTED, SwapStatus.COMPLETED, SwapStatus.CANCELLED})


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ==================== Snapshots ====================

@dataclass(frozen=True)
class ItemView:
    id: int
    owner_id: int
    status: ItemStatus
    points: int = 0

    @classmethod
    def from_model(cls, item) -> "ItemView":
        return cls(
            id=int(item.id),
            owner_id=int(item.uploader_user_id),
            status=ItemStatus(item.status),
            points=int(item.points or 0),
        )


@dataclass(frozen=True)
class SwapSnapshot:
    item_id: int
    requester_id: int
    item_owner_id: int
    swap_type: SwapType
    status: SwapStatus = SwapStatus.PENDING
    offered_item_id: Optional[int] = None
    offered_points: Optional[int] = None
    points_transferred: bool = False
    transfer_amount: Optional[int] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def from_model(cls, swap) -> "SwapSnapshot":
        return cls(
            id=int(swap.id) if swap.id is not None else None,
            item_id=int(swap.item_id),
            requester_id=int(swap.requester_user_id),
            item_owner_id=int(swap.item_owner_user_id),
            swap_type=SwapType(swap.swap_type),
            status=SwapStatus(swap.status),
            offered_item_id=int(swap.offered_item_id) if swap.offered_item_id is not None else None,
            offered_points=swap.offered_points,
            points_transferred=bool(swap.points_transferred),
            transfer_amount=swap.transfer_amount,
            created_at=as_utc(swap.created_at),
        )

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.requester_id, self.item_owner_id)


# ==================== Commands ====================

@dataclass(frozen=True)
class Transfer:
    """Move points between the parties; fails as a whole on a short balance."""
    from_user_id: int
    to_user_id: int
    amount: int
    source: LedgerSource
    description: str = ""


@dataclass(frozen=True)
class Credit:
    user_id: int
    amount: int
    source: LedgerSource
    description: str = ""


@dataclass(frozen=True)
class MarkItemSwapped:
    item_id: int
    # Already-swapped items are accepted silently (completion after accept)
    idempotent: bool = False


@dataclass(frozen=True)
class IncrementStat:
    user_id: int
    stat: str


Command = Union[Transfer, Credit, MarkItemSwapped, IncrementStat]


@dataclass(frozen=True)
class Transition:
    operation: str
    from_status: SwapStatus
    to_status: SwapStatus
    changes: dict = field(default_factory=dict)
    commands: tuple = ()


# ==================== Derived flags ====================

def is_expired(snap: SwapSnapshot, now: datetime, expiry: timedelta = DEFAULT_EXPIRY) -> bool:
    if snap.status != SwapStatus.PENDING or snap.created_at is None:
        return False
    return as_utc(snap.created_at) < as_utc(now) - expiry


def can_be_cancelled(snap: SwapSnapshot, now: datetime, expiry: timedelta = DEFAULT_EXPIRY) -> bool:
    return snap.status == SwapStatus.PENDING and not is_expired(snap, now, expiry)


# ==================== Invariants ====================

def validate_offer(swap_type: SwapType, offered_item_id: Optional[int], offered_points: Optional[int]) -> None:
    if swap_type == SwapType.DIRECT and offered_item_id is None:
        raise InvalidSwapRequestError("Direct swap requires an offered item")
    if swap_type == SwapType.POINTS and (offered_points is None or offered_points < 1):
        raise InvalidSwapRequestError("Points swap requires offered points")
    if offered_points is not None and offered_points < 0:
        raise InvalidSwapRequestError("Offered points cannot be negative")
    if offered_item_id is None and not offered_points:
        raise InvalidSwapRequestError("Either an offered item or points must be provided")


def validate_parties(requester_id: int, item_owner_id: int) -> None:
    if int(requester_id) == int(item_owner_id):
        raise SelfSwapNotAllowedError()


def validate(snap: SwapSnapshot) -> None:
    """Structural invariants re-checked before every mutation."""
    validate_parties(snap.requester_id, snap.item_owner_id)
    validate_offer(snap.swap_type, snap.offered_item_id, snap.offered_points)


def _require(snap: SwapSnapshot, target: SwapStatus, operation: str) -> None:
    if target not in TRANSITIONS.get(snap.status, frozenset()):
        raise InvalidTransitionError("swap request", snap.status.value, operation)
    validate(snap)


# ==================== Authorization ====================

def authorize(snap: SwapSnapshot, caller_id: int, operation: str) -> None:
    """Owner accepts/rejects, requester cancels, either party completes or reads."""
    if operation in ("accept", "reject"):
        allowed = caller_id == snap.item_owner_id
    elif operation == "cancel":
        allowed = caller_id == snap.requester_id
    else:
        allowed = snap.is_party(caller_id)
    if not allowed:
        raise NotAuthorizedError(f"Not authorized to {operation} this swap request")


# ==================== Transitions ====================

def check_create(
    requester_id: int,
    item: ItemView,
    swap_type: SwapType,
    offered_item: Optional[ItemView],
    offered_points: Optional[int],
    requester_balance: int,
    has_pending_duplicate: bool,
) -> SwapSnapshot:
    """Validate a new proposal and return the snapshot of the record to create.

    No escrow happens here: balance and availability are checked, not reserved.
    """
    if item.status != ItemStatus.AVAILABLE:
        raise InvalidSwapRequestError("Item is not available for swapping", "ITEM_NOT_AVAILABLE")
    validate_parties(requester_id, item.owner_id)
    validate_offer(swap_type, offered_item.id if offered_item else None, offered_points)

    if swap_type == SwapType.POINTS and requester_balance < offered_points:
        raise InsufficientFundsError(requester_id, offered_points, requester_balance)

    if offered_item is not None:
        if offered_item.owner_id != requester_id:
            raise InvalidSwapRequestError("You can only offer your own items", "OFFERED_ITEM_NOT_OWNED")
        if offered_item.status != ItemStatus.AVAILABLE:
            raise InvalidSwapRequestError("Offered item is not available", "OFFERED_ITEM_NOT_AVAILABLE")
        if offered_item.id == item.id:
            raise InvalidSwapRequestError("An item cannot be offered for itself")

    if has_pending_duplicate:
        raise DuplicateRequestError()

    return SwapSnapshot(
        item_id=item.id,
        requester_id=requester_id,
        item_owner_id=item.owner_id,
        swap_type=swap_type,
        offered_item_id=offered_item.id if offered_item else None,
        offered_points=offered_points,
    )


def plan_accept(snap: SwapSnapshot, item: ItemView, response_message: Optional[str] = None) -> Transition:
    _require(snap, SwapStatus.ACCEPTED, "accept")
    commands: list[Command] = []
    changes: dict = {"response_message": response_message}

    # Points move first so an insufficient balance fails before anything else
    if snap.swap_type == SwapType.POINTS and snap.offered_points and snap.offered_points > 0:
        amount = int(snap.offered_points)
        commands.append(
            Transfer(snap.requester_id, snap.item_owner_id, amount, LedgerSource.SWAP_TRANSFER, f"Points swap for item {snap.item_id}")
        )
        changes["points_transferred"] = True
        changes["transfer_amount"] = amount

    commands.append(MarkItemSwapped(snap.item_id))
    commands.append(IncrementStat(item.owner_id, "items_swapped"))

    # Listing-completion bonus: the uploader earns the item's own valuation on
    # every accepted swap, independent of any points transfer above.
    if item.points > 0:
        commands.append(Credit(item.owner_id, item.points, LedgerSource.LISTING_BONUS, f"Listing bonus for item {item.id}"))

    if snap.offered_item_id is not None:
        commands.append(MarkItemSwapped(snap.offered_item_id))
        commands.append(IncrementStat(snap.requester_id, "items_swapped"))

    return Transition("accept", snap.status, SwapStatus.ACCEPTED, changes, tuple(commands))


def plan_reject(snap: SwapSnapshot, response_message: Optional[str] = None) -> Transition:
    _require(snap, SwapStatus.REJECTED, "reject")
    return Transition("reject", snap.status, SwapStatus.REJECTED, {"response_message": response_message})


def plan_complete(snap: SwapSnapshot, now: datetime) -> Transition:
    _require(snap, SwapStatus.COMPLETED, "complete")
    commands: list[Command] = [
        IncrementStat(snap.requester_id, "swaps_completed"),
        IncrementStat(snap.item_owner_id, "swaps_completed"),
        MarkItemSwapped(snap.item_id, idempotent=True),
    ]
    if snap.offered_item_id is not None:
        commands.append(MarkItemSwapped(snap.offered_item_id, idempotent=True))
    return Transition("complete", snap.status, SwapStatus.COMPLETED, {"completed_at": now}, tuple(commands))


def plan_cancel(snap: SwapSnapshot, actor_id: int, reason: Optional[str] = None) -> Transition:
    """Cancel, reversing any points transfer by its recorded amount.

    The public cancel operation only reaches this from ``pending`` (see
    ``can_be_cancelled``); the reversal applies to the ``accepted`` edge.
    """
    _require(snap, SwapStatus.CANCELLED, "cancel")
    commands: list[Command] = []
    changes: dict = {"cancelled_by_user_id": actor_id, "cancelled_reason": reason}
    if snap.points_transferred and snap.transfer_amount and snap.transfer_amount > 0:
        amount = int(snap.transfer_amount)
        commands.append(
            Transfer(snap.item_owner_id, snap.requester_id, amount, LedgerSource.SWAP_REVERSAL, f"Reversal of points swap {snap.id}")
        )
        changes["points_transferred"] = False
    return Transition("cancel", snap.status, SwapStatus.CANCELLED, changes, tuple(commands))


def plan_mark_read(snap: SwapSnapshot, now: datetime) -> Transition:
    # Orthogonal to status: valid in every state, including terminal ones
    return Transition("read", snap.status, snap.status, {"is_read": True, "read_at": now})
