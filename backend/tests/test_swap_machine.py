"""
Tests for the pure swap request state machine.

No database: snapshots in, transitions and commands out.
"""
from datetime import datetime, timedelta, timezone

import pytest

from rewear.errors import (
    DuplicateRequestError,
    InsufficientFundsError,
    InvalidSwapRequestError,
    InvalidTransitionError,
    NotAuthorizedError,
    SelfSwapNotAllowedError,
)
from rewear.models.enums import ItemStatus, LedgerSource, SwapStatus, SwapType
from rewear.services import swap_machine as machine
from rewear.services.swap_machine import (
    Credit,
    IncrementStat,
    ItemView,
    MarkItemSwapped,
    SwapSnapshot,
    Transfer,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
REQUESTER, OWNER, STRANGER = 1, 2, 3


def points_swap(**overrides) -> SwapSnapshot:
    values = dict(
        id=10,
        item_id=100,
        requester_id=REQUESTER,
        item_owner_id=OWNER,
        swap_type=SwapType.POINTS,
        offered_points=20,
        created_at=NOW - timedelta(days=1),
    )
    values.update(overrides)
    return SwapSnapshot(**values)


def direct_swap(**overrides) -> SwapSnapshot:
    values = dict(
        id=11,
        item_id=100,
        requester_id=REQUESTER,
        item_owner_id=OWNER,
        swap_type=SwapType.DIRECT,
        offered_item_id=200,
        created_at=NOW - timedelta(days=1),
    )
    values.update(overrides)
    return SwapSnapshot(**values)


def item(item_id=100, owner=OWNER, status=ItemStatus.AVAILABLE, points=20) -> ItemView:
    return ItemView(id=item_id, owner_id=owner, status=status, points=points)


class TestTransitionTable:
    def test_terminal_states_have_no_outgoing_edges(self):
        for status in machine.TERMINAL:
            assert status not in machine.TRANSITIONS

    @pytest.mark.parametrize("status", [SwapStatus.REJECTED, SwapStatus.COMPLETED, SwapStatus.CANCELLED])
    def test_every_operation_fails_from_terminal_state(self, status):
        snap = points_swap(status=status)
        with pytest.raises(InvalidTransitionError):
            machine.plan_accept(snap, item())
        with pytest.raises(InvalidTransitionError):
            machine.plan_reject(snap)
        with pytest.raises(InvalidTransitionError):
            machine.plan_complete(snap, NOW)
        with pytest.raises(InvalidTransitionError):
            machine.plan_cancel(snap, REQUESTER)

    def test_complete_requires_accepted(self):
        with pytest.raises(InvalidTransitionError) as exc:
            machine.plan_complete(points_swap(), NOW)
        assert exc.value.from_status == "pending"
        assert exc.value.operation == "complete"

    def test_accept_twice_fails(self):
        with pytest.raises(InvalidTransitionError):
            machine.plan_accept(points_swap(status=SwapStatus.ACCEPTED), item())


class TestAcceptPlan:
    def test_points_swap_transfers_and_pays_listing_bonus(self):
        t = machine.plan_accept(points_swap(), item(points=20), "Deal")

        assert t.to_status == SwapStatus.ACCEPTED
        assert t.changes == {"response_message": "Deal", "points_transferred": True, "transfer_amount": 20}
        assert t.commands == (
            Transfer(REQUESTER, OWNER, 20, LedgerSource.SWAP_TRANSFER, "Points swap for item 100"),
            MarkItemSwapped(100),
            IncrementStat(OWNER, "items_swapped"),
            Credit(OWNER, 20, LedgerSource.LISTING_BONUS, "Listing bonus for item 100"),
        )

    def test_transfer_is_first_command(self):
        t = machine.plan_accept(points_swap(offered_points=35), item(points=5))
        assert t.commands[0] == Transfer(REQUESTER, OWNER, 35, LedgerSource.SWAP_TRANSFER, "Points swap for item 100")

    def test_direct_swap_marks_both_items_without_transfer(self):
        t = machine.plan_accept(direct_swap(), item(points=15))

        assert "points_transferred" not in t.changes
        assert not any(isinstance(c, Transfer) for c in t.commands)
        assert MarkItemSwapped(100) in t.commands
        assert MarkItemSwapped(200) in t.commands
        assert IncrementStat(REQUESTER, "items_swapped") in t.commands
        # The listing bonus is paid even on a pure item-for-item swap
        bonus = [c for c in t.commands if isinstance(c, Credit)]
        assert bonus == [Credit(OWNER, 15, LedgerSource.LISTING_BONUS, "Listing bonus for item 100")]


class TestCompleteAndRejectPlans:
    def test_complete_increments_both_parties(self):
        t = machine.plan_complete(direct_swap(status=SwapStatus.ACCEPTED), NOW)

        assert t.to_status == SwapStatus.COMPLETED
        assert t.changes == {"completed_at": NOW}
        assert IncrementStat(REQUESTER, "swaps_completed") in t.commands
        assert IncrementStat(OWNER, "swaps_completed") in t.commands
        assert MarkItemSwapped(100, idempotent=True) in t.commands
        assert MarkItemSwapped(200, idempotent=True) in t.commands

    def test_reject_has_no_side_effects(self):
        t = machine.plan_reject(points_swap(), "No thanks")
        assert t.to_status == SwapStatus.REJECTED
        assert t.commands == ()
        assert t.changes == {"response_message": "No thanks"}


class TestCancelPlan:
    def test_pending_cancel_has_no_ledger_commands(self):
        t = machine.plan_cancel(points_swap(), REQUESTER, "Changed my mind")
        assert t.to_status == SwapStatus.CANCELLED
        assert t.commands == ()
        assert t.changes == {"cancelled_by_user_id": REQUESTER, "cancelled_reason": "Changed my mind"}

    def test_cancel_after_transfer_reverses_exact_amount(self):
        snap = points_swap(status=SwapStatus.ACCEPTED, points_transferred=True, transfer_amount=20)
        t = machine.plan_cancel(snap, REQUESTER)

        # Owner pays the requester back; nothing else moves
        assert t.commands == (Transfer(OWNER, REQUESTER, 20, LedgerSource.SWAP_REVERSAL, "Reversal of points swap 10"),)
        assert t.changes["points_transferred"] is False


class TestMarkRead:
    @pytest.mark.parametrize("status", list(SwapStatus))
    def test_valid_in_every_status(self, status):
        t = machine.plan_mark_read(points_swap(status=status), NOW)
        assert t.from_status == t.to_status == status
        assert t.changes == {"is_read": True, "read_at": NOW}
        assert t.commands == ()


class TestExpiry:
    def test_fresh_pending_request_can_be_cancelled(self):
        snap = points_swap(created_at=NOW - timedelta(days=6))
        assert not machine.is_expired(snap, NOW)
        assert machine.can_be_cancelled(snap, NOW)

    def test_old_pending_request_is_expired(self):
        snap = points_swap(created_at=NOW - timedelta(days=8))
        assert machine.is_expired(snap, NOW)
        assert not machine.can_be_cancelled(snap, NOW)

    def test_expiry_window_is_configurable(self):
        snap = points_swap(created_at=NOW - timedelta(days=2))
        assert machine.is_expired(snap, NOW, timedelta(days=1))

    def test_non_pending_requests_are_never_expired(self):
        snap = points_swap(status=SwapStatus.ACCEPTED, created_at=NOW - timedelta(days=30))
        assert not machine.is_expired(snap, NOW)
        assert not machine.can_be_cancelled(snap, NOW)

    def test_naive_timestamps_are_treated_as_utc(self):
        naive = (NOW - timedelta(days=8)).replace(tzinfo=None)
        assert machine.is_expired(points_swap(created_at=naive), NOW)


class TestAuthorization:
    def test_only_owner_accepts_or_rejects(self):
        snap = points_swap()
        machine.authorize(snap, OWNER, "accept")
        for caller in (REQUESTER, STRANGER):
            with pytest.raises(NotAuthorizedError):
                machine.authorize(snap, caller, "accept")
            with pytest.raises(NotAuthorizedError):
                machine.authorize(snap, caller, "reject")

    def test_only_requester_cancels(self):
        snap = points_swap()
        machine.authorize(snap, REQUESTER, "cancel")
        with pytest.raises(NotAuthorizedError):
            machine.authorize(snap, OWNER, "cancel")

    def test_either_party_completes_or_reads(self):
        snap = points_swap(status=SwapStatus.ACCEPTED)
        for caller in (REQUESTER, OWNER):
            machine.authorize(snap, caller, "complete")
            machine.authorize(snap, caller, "read")
        with pytest.raises(NotAuthorizedError):
            machine.authorize(snap, STRANGER, "complete")


class TestCheckCreate:
    def _check(self, **overrides):
        values = dict(
            requester_id=REQUESTER,
            item=item(),
            swap_type=SwapType.POINTS,
            offered_item=None,
            offered_points=20,
            requester_balance=50,
            has_pending_duplicate=False,
        )
        values.update(overrides)
        return machine.check_create(**values)

    def test_valid_points_request(self):
        snap = self._check()
        assert snap.status == SwapStatus.PENDING
        assert snap.item_owner_id == OWNER
        assert snap.offered_points == 20

    def test_self_swap_rejected(self):
        with pytest.raises(SelfSwapNotAllowedError):
            self._check(requester_id=OWNER)

    def test_self_swap_is_an_invalid_swap_request(self):
        assert issubclass(SelfSwapNotAllowedError, InvalidSwapRequestError)

    @pytest.mark.parametrize("status", [ItemStatus.PENDING, ItemStatus.SWAPPED, ItemStatus.REMOVED])
    def test_item_must_be_available(self, status):
        with pytest.raises(InvalidSwapRequestError):
            self._check(item=item(status=status))

    def test_balance_checked_at_creation(self):
        with pytest.raises(InsufficientFundsError):
            self._check(requester_balance=19)

    def test_points_swap_requires_positive_points(self):
        with pytest.raises(InvalidSwapRequestError):
            self._check(offered_points=0)
        with pytest.raises(InvalidSwapRequestError):
            self._check(offered_points=None)

    def test_direct_swap_requires_offered_item(self):
        with pytest.raises(InvalidSwapRequestError):
            self._check(swap_type=SwapType.DIRECT, offered_points=None)

    def test_offered_item_must_belong_to_requester(self):
        with pytest.raises(InvalidSwapRequestError):
            self._check(
                swap_type=SwapType.DIRECT,
                offered_points=None,
                offered_item=item(item_id=200, owner=STRANGER),
            )

    def test_offered_item_must_be_available(self):
        with pytest.raises(InvalidSwapRequestError):
            self._check(
                swap_type=SwapType.DIRECT,
                offered_points=None,
                offered_item=item(item_id=200, owner=REQUESTER, status=ItemStatus.SWAPPED),
            )

    def test_duplicate_pending_request_rejected(self):
        with pytest.raises(DuplicateRequestError):
            self._check(has_pending_duplicate=True)
