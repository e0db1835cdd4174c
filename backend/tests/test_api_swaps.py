"""End-to-end tests for the swap request endpoints."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from rewear.extensions import db
from rewear.models.swap_request import SwapRequest


@pytest.fixture
def market(make_user, make_item):
    x = make_user(name="Xavier", points=50)
    y = make_user(name="Yasmin", points=0)
    item = make_item(y, points=20)
    return x, y, item


def _create(client, headers, **body):
    return client.post("/api/v1/swaps", json=body, headers=headers)


class TestCreateSwapEndpoint:
    def test_create_points_swap(self, client, market, auth_header):
        x, y, item = market
        resp = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=20, message="Hi")
        assert resp.status_code == 201
        swap = resp.get_json()["swap"]
        assert swap["status"] == "pending"
        assert swap["itemOwner"]["id"] == y.id
        assert swap["isExpired"] is False
        assert swap["canBeCancelled"] is True

    def test_points_swap_requires_points(self, client, market, auth_header):
        x, _, item = market
        resp = _create(client, auth_header(x), itemId=item.id, swapType="points")
        assert resp.status_code == 400
        assert "offeredPoints" in resp.get_json()["errors"]

    def test_message_length_limit(self, client, market, auth_header):
        x, _, item = market
        resp = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5, message="m" * 501)
        assert resp.status_code == 400

    def test_self_swap(self, client, market, auth_header):
        _, y, item = market
        resp = _create(client, auth_header(y), itemId=item.id, swapType="points", offeredPoints=5)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "SELF_SWAP_NOT_ALLOWED"

    def test_insufficient_points(self, client, market, auth_header):
        x, _, item = market
        resp = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=500)
        assert resp.status_code == 422
        assert resp.get_json()["code"] == "INSUFFICIENT_FUNDS"

    def test_duplicate(self, client, market, auth_header):
        x, _, item = market
        _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5)
        resp = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_REQUEST"

    def test_unknown_item(self, client, market, auth_header):
        x, _, _ = market
        resp = _create(client, auth_header(x), itemId=999, swapType="points", offeredPoints=5)
        assert resp.status_code == 404


class TestSwapLifecycleEndpoints:
    def test_accept_then_complete(self, client, market, auth_header):
        x, y, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=20).get_json()["swap"]["id"]

        resp = client.put(f"/api/v1/swaps/{swap_id}/accept", json={"responseMessage": "Sure"}, headers=auth_header(y))
        assert resp.status_code == 200
        swap = resp.get_json()["swap"]
        assert swap["status"] == "accepted"
        assert swap["pointsTransferred"] is True
        assert swap["transferAmount"] == 20
        assert swap["canBeCancelled"] is False

        resp = client.put(f"/api/v1/swaps/{swap_id}/complete", headers=auth_header(x))
        assert resp.status_code == 200
        assert resp.get_json()["swap"]["status"] == "completed"

        me = client.get("/api/v1/users/me/points", headers=auth_header(y)).get_json()
        assert me["balance"] == 40

    def test_requester_cannot_accept(self, client, market, auth_header):
        x, _, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=20).get_json()["swap"]["id"]
        resp = client.put(f"/api/v1/swaps/{swap_id}/accept", headers=auth_header(x))
        assert resp.status_code == 403

    def test_reject_twice_is_a_conflict(self, client, market, auth_header):
        x, y, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5).get_json()["swap"]["id"]
        assert client.put(f"/api/v1/swaps/{swap_id}/reject", headers=auth_header(y)).status_code == 200
        resp = client.put(f"/api/v1/swaps/{swap_id}/reject", headers=auth_header(y))
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "INVALID_TRANSITION"

    def test_cancel_with_reason(self, client, market, auth_header):
        x, _, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5).get_json()["swap"]["id"]
        resp = client.put(f"/api/v1/swaps/{swap_id}/cancel", json={"reason": "Changed my mind"}, headers=auth_header(x))
        assert resp.status_code == 200
        swap = resp.get_json()["swap"]
        assert swap["status"] == "cancelled"
        assert swap["cancelledReason"] == "Changed my mind"
        assert swap["cancelledBy"] == x.id

    def test_cancel_reason_length_limit(self, client, market, auth_header):
        x, _, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5).get_json()["swap"]["id"]
        resp = client.put(f"/api/v1/swaps/{swap_id}/cancel", json={"reason": "r" * 201}, headers=auth_header(x))
        assert resp.status_code == 400

    def test_expired_request_cannot_be_cancelled(self, client, market, auth_header):
        x, _, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5).get_json()["swap"]["id"]
        db.session.execute(
            update(SwapRequest)
            .where(SwapRequest.id == swap_id)
            .values(created_at=datetime.now(timezone.utc) - timedelta(days=8))
        )
        db.session.commit()

        swap = client.get(f"/api/v1/swaps/{swap_id}", headers=auth_header(x)).get_json()["swap"]
        assert swap["isExpired"] is True
        assert swap["canBeCancelled"] is False
        assert client.put(f"/api/v1/swaps/{swap_id}/cancel", headers=auth_header(x)).status_code == 409

    def test_mark_read(self, client, market, auth_header):
        x, y, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5).get_json()["swap"]["id"]
        resp = client.put(f"/api/v1/swaps/{swap_id}/read", headers=auth_header(y))
        assert resp.status_code == 200
        assert resp.get_json()["swap"]["isRead"] is True

    def test_stranger_cannot_view(self, client, market, make_user, auth_header):
        x, _, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5).get_json()["swap"]["id"]
        assert client.get(f"/api/v1/swaps/{swap_id}", headers=auth_header(make_user())).status_code == 403


class TestSwapListing:
    def test_received_and_sent_with_pagination(self, client, market, make_item, auth_header):
        x, y, item = market
        other = make_item(y, points=5)
        _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5)
        _create(client, auth_header(x), itemId=other.id, swapType="points", offeredPoints=5)

        received = client.get("/api/v1/swaps/received?limit=1", headers=auth_header(y)).get_json()
        assert len(received["swaps"]) == 1
        assert received["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalItems": 2,
            "hasNextPage": True,
            "hasPrevPage": False,
        }

        sent = client.get("/api/v1/swaps/sent", headers=auth_header(x)).get_json()
        assert sent["pagination"]["totalItems"] == 2
        assert client.get("/api/v1/swaps/sent", headers=auth_header(y)).get_json()["swaps"] == []

    def test_status_filter(self, client, market, auth_header):
        x, y, item = market
        swap_id = _create(client, auth_header(x), itemId=item.id, swapType="points", offeredPoints=5).get_json()["swap"]["id"]
        client.put(f"/api/v1/swaps/{swap_id}/reject", headers=auth_header(y))

        pending = client.get("/api/v1/swaps/sent?status=pending", headers=auth_header(x)).get_json()
        rejected = client.get("/api/v1/swaps/sent?status=rejected", headers=auth_header(x)).get_json()
        assert pending["swaps"] == []
        assert [s["id"] for s in rejected["swaps"]] == [swap_id]
