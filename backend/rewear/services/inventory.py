"""
Item status tracking.

Item status changes are conditional UPDATEs keyed on the expected source
status, so two swaps racing to consume the same item cannot both succeed:
the loser sees zero affected rows and gets ``InvalidItemStateError``.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm.util import identity_key

from ..errors import InvalidItemStateError, NotFoundError
from ..extensions import db
from ..models.enums import ItemStatus
from ..models.item import Item
from ..models.user import User

logger = logging.getLogger(__name__)

USER_STATS = ("items_listed", "items_swapped", "swaps_completed")


class ItemTracker:
    def __init__(self, session=None):
        self.session = session or db.session

    def status_of(self, item_id: int) -> ItemStatus:
        value = self.session.execute(select(Item.status).where(Item.id == item_id)).scalar_one_or_none()
        if value is None:
            raise NotFoundError("Item", item_id)
        return ItemStatus(value)

    def _move(self, item_id: int, from_statuses: Iterable[ItemStatus], to_status: ItemStatus, **values) -> None:
        allowed = [s.value for s in from_statuses]
        result = self.session.execute(
            update(Item)
            .where(Item.id == item_id, Item.status.in_(allowed))
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self.status_of(item_id)
            raise InvalidItemStateError(item_id, current.value, "|".join(allowed))
        item = self.session.identity_map.get(identity_key(Item, item_id))
        if item is not None:
            self.session.expire(item)
        logger.info("Item %s -> %s", item_id, to_status.value)

    def mark_swapped(self, item_id: int, idempotent: bool = False) -> bool:
        """Move an available item to swapped.

        With ``idempotent`` an already-swapped item is left alone and False is
        returned; any other status is an error.
        """
        if idempotent and self.status_of(item_id) == ItemStatus.SWAPPED:
            return False
        self._move(item_id, [ItemStatus.AVAILABLE], ItemStatus.SWAPPED)
        return True

    def approve(self, item_id: int, moderator_id: int, notes: Optional[str] = None) -> None:
        self._move(
            item_id,
            [ItemStatus.PENDING],
            ItemStatus.AVAILABLE,
            approved_by_user_id=moderator_id,
            approved_at=datetime.now(timezone.utc),
            admin_notes=notes,
            rejected_reason=None,
        )

    def reject(self, item_id: int, reason: str) -> None:
        # Rejected listings are taken out of circulation rather than deleted
        self._move(item_id, [ItemStatus.PENDING, ItemStatus.AVAILABLE], ItemStatus.REMOVED, rejected_reason=reason)

    def remove(self, item_id: int) -> None:
        self._move(item_id, [ItemStatus.PENDING, ItemStatus.AVAILABLE], ItemStatus.REMOVED)

    def increment_stat(self, user_id: int, stat: str, by: int = 1) -> None:
        if stat not in USER_STATS:
            raise ValueError(f"Unknown stat: {stat}")
        column = getattr(User, stat)
        self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values({column: column + by})
            .execution_options(synchronize_session=False)
        )
        user = self.session.identity_map.get(identity_key(User, user_id))
        if user is not None:
            self.session.expire(user, [stat])
