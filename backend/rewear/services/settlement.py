"""
Swap settlement orchestrator.

Each public operation is one unit of work: load the swap request and items,
authorize the caller, ask the state machine for a ``Transition``, flush the
new status (the version check fails a stale writer here), execute its
commands against the ledger and the item tracker, write an audit row and
commit. Any failure rolls the whole thing back, so a
swap is never left half-settled.

Usage:
    service = SettlementService()
    swap = service.create(requester_id, item_id, SwapType.POINTS, offered_points=30)
    service.accept(swap.id, owner_id, response_message="Deal")
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from flask import current_app, has_app_context
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import (
    DuplicateRequestError,
    InvalidTransitionError,
    NotFoundError,
    ReWearError,
    StorageError,
)
from ..extensions import db
from ..models import audit_log
from ..models.enums import SwapStatus, SwapType
from ..models.item import Item
from ..models.swap_request import SwapRequest
from ..models.user import User
from . import swap_machine as machine
from .inventory import ItemTracker
from .ledger import PointsLedger

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SettlementService:
    def __init__(
        self,
        session=None,
        ledger: Optional[PointsLedger] = None,
        items: Optional[ItemTracker] = None,
        expiry: Optional[timedelta] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session = session or db.session
        self.ledger = ledger or PointsLedger(self.session)
        self.items = items or ItemTracker(self.session)
        if expiry is None:
            days = 7
            if has_app_context():
                days = int(current_app.config.get("SWAP_REQUEST_EXPIRY_DAYS", days))
            expiry = timedelta(days=days)
        self.expiry = expiry
        self.clock = clock

    # ==================== Derived flags ====================

    def is_expired(self, swap: SwapRequest) -> bool:
        return machine.is_expired(machine.SwapSnapshot.from_model(swap), self.clock(), self.expiry)

    def can_be_cancelled(self, swap: SwapRequest) -> bool:
        return machine.can_be_cancelled(machine.SwapSnapshot.from_model(swap), self.clock(), self.expiry)

    # ==================== Queries ====================

    def get_for_party(self, swap_id: int, caller_id: int) -> SwapRequest:
        swap = self._load(swap_id)
        machine.authorize(machine.SwapSnapshot.from_model(swap), caller_id, "view")
        return swap

    def list_for_user(
        self,
        user_id: int,
        direction: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[SwapRequest], int]:
        """Received (as item owner) or sent (as requester) swaps, newest first."""
        column = SwapRequest.item_owner_user_id if direction == "received" else SwapRequest.requester_user_id
        stmt = select(SwapRequest).where(column == user_id)
        if status:
            stmt = stmt.where(SwapRequest.status == SwapStatus(status).value)
        total = self.session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = self.session.execute(
            stmt.order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).scalars()
        return list(rows), int(total)

    # ==================== Operations ====================

    def create(
        self,
        requester_id: int,
        item_id: int,
        swap_type: SwapType,
        offered_item_id: Optional[int] = None,
        offered_points: Optional[int] = None,
        message: Optional[str] = None,
    ) -> SwapRequest:
        swap_type = SwapType(swap_type)
        with self._unit_of_work("create", item_id):
            requester = self.session.get(User, requester_id)
            if requester is None or not requester.is_active:
                raise NotFoundError("User", requester_id)
            item = self.session.get(Item, item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            offered = None
            if offered_item_id is not None:
                offered_model = self.session.get(Item, offered_item_id)
                if offered_model is None:
                    raise NotFoundError("Offered item", offered_item_id)
                offered = machine.ItemView.from_model(offered_model)

            snap = machine.check_create(
                requester_id=requester_id,
                item=machine.ItemView.from_model(item),
                swap_type=swap_type,
                offered_item=offered,
                offered_points=offered_points,
                requester_balance=self.ledger.balance(requester_id),
                has_pending_duplicate=self._has_pending_duplicate(item.id, requester_id),
            )

            swap = SwapRequest(
                item_id=snap.item_id,
                requester_user_id=snap.requester_id,
                item_owner_user_id=snap.item_owner_id,
                swap_type=snap.swap_type.value,
                status=snap.status.value,
                offered_item_id=snap.offered_item_id,
                offered_points=snap.offered_points,
                message=message,
            )
            self.session.add(swap)
            try:
                self.session.flush()
            except IntegrityError as exc:
                # A concurrent create won the pending-request unique index
                raise DuplicateRequestError() from exc
            audit_log.record(
                "swap.create", "swap_request", swap.id, actor_user_id=requester_id,
                swap_type=swap_type.value, item_id=item.id,
            )
        logger.info("Swap %s created by user %s for item %s (%s)", swap.id, requester_id, item_id, swap_type.value)
        return swap

    def accept(self, swap_id: int, caller_id: int, response_message: Optional[str] = None) -> SwapRequest:
        with self._unit_of_work("accept", swap_id):
            swap = self._load(swap_id)
            snap = machine.SwapSnapshot.from_model(swap)
            machine.authorize(snap, caller_id, "accept")
            item = self.session.get(Item, snap.item_id)
            if item is None:
                raise NotFoundError("Item", snap.item_id)
            transition = machine.plan_accept(snap, machine.ItemView.from_model(item), response_message)
            self._execute(swap, transition, caller_id)
        return swap

    def reject(self, swap_id: int, caller_id: int, response_message: Optional[str] = None) -> SwapRequest:
        with self._unit_of_work("reject", swap_id):
            swap = self._load(swap_id)
            snap = machine.SwapSnapshot.from_model(swap)
            machine.authorize(snap, caller_id, "reject")
            self._execute(swap, machine.plan_reject(snap, response_message), caller_id)
        return swap

    def complete(self, swap_id: int, caller_id: int) -> SwapRequest:
        with self._unit_of_work("complete", swap_id):
            swap = self._load(swap_id)
            snap = machine.SwapSnapshot.from_model(swap)
            machine.authorize(snap, caller_id, "complete")
            self._execute(swap, machine.plan_complete(snap, self.clock()), caller_id)
        return swap

    def cancel(self, swap_id: int, caller_id: int, reason: Optional[str] = None) -> SwapRequest:
        with self._unit_of_work("cancel", swap_id):
            swap = self._load(swap_id)
            snap = machine.SwapSnapshot.from_model(swap)
            machine.authorize(snap, caller_id, "cancel")
            now = self.clock()
            if not machine.can_be_cancelled(snap, now, self.expiry):
                message = None
                if machine.is_expired(snap, now, self.expiry):
                    message = "Swap request has expired and can no longer be cancelled"
                raise InvalidTransitionError("swap request", snap.status.value, "cancel", message)
            self._execute(swap, machine.plan_cancel(snap, caller_id, reason), caller_id)
        return swap

    def mark_read(self, swap_id: int, caller_id: int) -> SwapRequest:
        with self._unit_of_work("read", swap_id):
            swap = self._load(swap_id)
            snap = machine.SwapSnapshot.from_model(swap)
            machine.authorize(snap, caller_id, "read")
            self._execute(swap, machine.plan_mark_read(snap, self.clock()), caller_id, audit=False)
        return swap

    # ==================== Execution ====================

    def execute(self, swap: SwapRequest, transition: machine.Transition, actor_id: int) -> SwapRequest:
        """Run a planned transition as its own unit of work."""
        with self._unit_of_work(transition.operation, swap.id):
            self._execute(swap, transition, actor_id)
        return swap

    def _execute(self, swap: SwapRequest, transition: machine.Transition, actor_id: int, audit: bool = True) -> None:
        # Claim the row first so a stale version fails here, before any points move

        for key, value in transition.changes.items():
            setattr(swap, key, value)
        swap.status = transition.to_status.value
        self.session.flush()

        for command in transition.commands:
            if isinstance(command, machine.Transfer):
                self.ledger.transfer(
                    command.from_user_id, command.to_user_id, command.amount,
                    command.source, swap.id, command.description,
                )
            elif isinstance(command, machine.Credit):
                self.ledger.credit(command.user_id, command.amount, command.source, swap.id, command.description)
            elif isinstance(command, machine.MarkItemSwapped):
                self.items.mark_swapped(command.item_id, idempotent=command.idempotent)
            elif isinstance(command, machine.IncrementStat):
                self.items.increment_stat(command.user_id, command.stat)
            else:
                raise TypeError(f"Unknown command: {command!r}")

        if audit:
            audit_log.record(
                f"swap.{transition.operation}", "swap_request", swap.id, actor_user_id=actor_id,
                from_status=transition.from_status.value, to_status=transition.to_status.value,
            )
        logger.info(
            "Swap %s %s by user %s (%s -> %s)",
            swap.id, transition.operation, actor_id, transition.from_status.value, transition.to_status.value,
        )

    def _has_pending_duplicate(self, item_id: int, requester_id: int) -> bool:
        row = self.session.execute(
            select(SwapRequest.id).where(
                SwapRequest.item_id == item_id,
                SwapRequest.requester_user_id == requester_id,
                SwapRequest.status == SwapStatus.PENDING.value,
            )
        ).first()
        return row is not None

    def _load(self, swap_id: int) -> SwapRequest:
        swap = self.session.get(SwapRequest, swap_id)
        if swap is None:
            raise NotFoundError("Swap request", swap_id)
        return swap

    @contextmanager
    def _unit_of_work(self, operation: str, ref):
        try:
            yield
            self.session.commit()
        except ReWearError:
            self.session.rollback()
            raise
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning("Concurrent modification during %s of swap %s", operation, ref)
            raise InvalidTransitionError(
                "swap request", "stale", operation, "Swap request was modified concurrently, please retry"
            ) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Storage failure during %s of swap %s", operation, ref)
            raise StorageError() from exc
        except Exception:
            self.session.rollback()
            raise
