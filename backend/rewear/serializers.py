"""JSON shapes returned by the v1 API (camelCase keys)."""
from __future__ import annotations

from datetime import datetime


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def user_summary(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def user_to_dict(user, include_private: bool = False) -> dict:
    data = {
        "id": user.id,
        "name": user.name,
        "role": user.role,
        "bio": user.bio,
        "location": user.location,
        "stats": user.stats(),
    }
    if include_private:
        data.update(
            {
                "email": user.email,
                "points": user.points,
                "isActive": bool(user.is_active),
                "lastLoginAt": _iso(user.last_login_at),
            }
        )
    return data


def item_to_dict(item) -> dict:
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "category": item.category,
        "size": item.size,
        "condition": item.condition,
        "points": item.points,
        "imageUrl": item.image_url,
        "brand": item.brand,
        "color": item.color,
        "location": item.location,
        "status": item.status,
        "uploader": user_summary(item.uploader),
        "approvedAt": _iso(item.approved_at),
        "rejectedReason": item.rejected_reason,
        "adminNotes": item.admin_notes,
        "createdAt": _iso(item.created_at),
        "updatedAt": _iso(item.updated_at),
    }


def _item_summary(item) -> dict | None:
    if item is None:
        return None
    return {
        "id": item.id,
        "title": item.title,
        "imageUrl": item.image_url,
        "points": item.points,
        "status": item.status,
    }


def swap_to_dict(swap, service) -> dict:
    """Serialize a swap request; ``service`` supplies the clock-derived flags."""
    return {
        "id": swap.id,
        "swapType": swap.swap_type,
        "status": swap.status,
        "item": _item_summary(swap.item),
        "offeredItem": _item_summary(swap.offered_item),
        "offeredPoints": swap.offered_points,
        "requester": user_summary(swap.requester),
        "itemOwner": user_summary(swap.item_owner),
        "message": swap.message,
        "responseMessage": swap.response_message,
        "cancelledBy": swap.cancelled_by_user_id,
        "cancelledReason": swap.cancelled_reason,
        "pointsTransferred": bool(swap.points_transferred),
        "transferAmount": swap.transfer_amount,
        "isRead": bool(swap.is_read),
        "readAt": _iso(swap.read_at),
        "completedAt": _iso(swap.completed_at),
        "isExpired": service.is_expired(swap),
        "canBeCancelled": service.can_be_cancelled(swap),
        "createdAt": _iso(swap.created_at),
        "updatedAt": _iso(swap.updated_at),
    }


def transaction_to_dict(tx) -> dict:
    return {
        "id": tx.id,
        "points": tx.points,
        "balanceAfter": tx.balance_after,
        "type": tx.transaction_type,
        "source": tx.source,
        "swapRequestId": tx.swap_request_id,
        "description": tx.description,
        "createdAt": _iso(tx.created_at),
    }
