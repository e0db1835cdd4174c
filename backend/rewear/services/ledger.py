"""
Points ledger.

``User.points`` is the balance of record. Every mutation goes through a single
conditional UPDATE so two concurrent debits can never both succeed against the
same balance, and every mutation appends a ``PointsTransaction`` row.

None of these methods commit; callers own the unit of work.
"""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm.util import identity_key

from ..errors import InsufficientFundsError, InvalidSwapRequestError, NotFoundError
from ..extensions import db
from ..models.enums import LedgerSource
from ..models.points_transaction import PointsTransaction
from ..models.user import User

logger = logging.getLogger(__name__)


class PointsLedger:
    """
    Credit, debit and transfer points between users.

    Usage:
        ledger = PointsLedger()
        ledger.debit(requester_id, 30, LedgerSource.SWAP_TRANSFER, swap_request_id=swap.id)
        ledger.credit(owner_id, 30, LedgerSource.SWAP_TRANSFER, swap_request_id=swap.id)
    """

    def __init__(self, session=None):
        self.session = session or db.session

    # ==================== Queries ====================

    def balance(self, user_id: int) -> int:
        value = self.session.execute(select(User.points).where(User.id == user_id)).scalar_one_or_none()
        if value is None:
            raise NotFoundError("User", user_id)
        return int(value)

    def history(self, user_id: int, limit: int = 50, offset: int = 0) -> list[PointsTransaction]:
        stmt = (
            select(PointsTransaction)
            .where(PointsTransaction.user_id == user_id)
            .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.execute(stmt).scalars())

    # ==================== Mutations ====================

    def credit(
        self,
        user_id: int,
        amount: int,
        source: LedgerSource,
        swap_request_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> int:
        """Add ``amount`` to the user's balance. Returns the balance after.

        A reversal credit gives back points the user spent, so it unwinds
        ``total_points_spent`` instead of growing ``total_points_earned``.
        """
        amount = self._check_amount(amount)
        if LedgerSource(source) == LedgerSource.SWAP_REVERSAL:
            counters = {"total_points_spent": User.total_points_spent - amount}
        else:
            counters = {"total_points_earned": User.total_points_earned + amount}
        result = self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + amount, **counters)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("User", user_id)
        return self._record(user_id, amount, "credit", source, swap_request_id, description)

    def debit(
        self,
        user_id: int,
        amount: int,
        source: LedgerSource,
        swap_request_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> int:
        """Subtract ``amount`` if the balance covers it. Returns the balance after.

        Raises InsufficientFundsError without touching the balance otherwise.
        A reversal debit takes back earned points and unwinds
        ``total_points_earned``.
        """
        amount = self._check_amount(amount)
        if LedgerSource(source) == LedgerSource.SWAP_REVERSAL:
            counters = {"total_points_earned": User.total_points_earned - amount}
        else:
            counters = {"total_points_spent": User.total_points_spent + amount}
        result = self.session.execute(
            update(User)
            .where(User.id == user_id, User.points >= amount)
            .values(points=User.points - amount, **counters)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Distinguish a missing user from a short balance
            current = self.balance(user_id)
            raise InsufficientFundsError(user_id, amount, current)
        return self._record(user_id, -amount, "debit", source, swap_request_id, description)

    def transfer(
        self,
        from_user_id: int,
        to_user_id: int,
        amount: int,
        source: LedgerSource,
        swap_request_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> tuple[int, int]:
        """Debit then credit; both or neither, within the caller's transaction."""
        from_balance = self.debit(from_user_id, amount, source, swap_request_id, description)
        to_balance = self.credit(to_user_id, amount, source, swap_request_id, description)
        return from_balance, to_balance

    # ==================== Internals ====================

    @staticmethod
    def _check_amount(amount) -> int:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise InvalidSwapRequestError("Points amount must be a positive integer", "INVALID_AMOUNT")
        return amount

    def _record(self, user_id, signed_points, transaction_type, source, swap_request_id, description) -> int:
        balance_after = self.balance(user_id)
        self.session.add(
            PointsTransaction(
                user_id=user_id,
                points=signed_points,
                balance_after=balance_after,
                transaction_type=transaction_type,
                source=LedgerSource(source).value,
                swap_request_id=swap_request_id,
                description=description,
            )
        )
        # Keep any loaded User instance consistent with the row just updated
        user = self.session.identity_map.get(identity_key(User, user_id))
        if user is not None:
            self.session.expire(user, ["points", "total_points_earned", "total_points_spent"])
        logger.info(
            "Ledger %s user=%s points=%s balance_after=%s source=%s swap=%s",
            transaction_type, user_id, signed_points, balance_after, LedgerSource(source).value, swap_request_id,
        )
        return balance_after
