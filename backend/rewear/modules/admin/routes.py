from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request, g
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ...errors import NotAuthorizedError, NotFoundError, ReWearError, StorageError
from ...extensions import db
from ...models import audit_log
from ...models.enums import LedgerSource
from ...models.item import Item
from ...models.user import User
from ...schemas.item import AdminItemQuerySchema, ItemApproveSchema, ItemRejectSchema
from ...schemas.user import PointsAdjustmentSchema
from ...serializers import item_to_dict, user_to_dict
from ...services.inventory import ItemTracker
from ...services.ledger import PointsLedger
from ..auth import require_admin

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/admin")


@bp.before_request
def _require_admin():
    g.admin_user = require_admin()


def _commit():
    try:
        db.session.commit()
    except ReWearError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Admin action failed to commit")
        raise StorageError() from exc


def _get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item", item_id)
    return item


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


# ==================== Moderation ====================

@bp.get("/items")
def list_items():
    """Items by status for the moderation queue (default: pending)."""
    args = AdminItemQuerySchema().load(request.args)
    items = (
        Item.query.filter(Item.status == args["status"])
        .order_by(Item.created_at.asc(), Item.id.asc())
        .limit(args["limit"])
        .all()
    )
    return jsonify({"items": [item_to_dict(i) for i in items]})


@bp.put("/items/<int:item_id>/approve")
def approve_item(item_id: int):
    data = ItemApproveSchema().load(request.get_json(silent=True) or {})
    item = _get_item(item_id)
    try:
        ItemTracker().approve(item.id, g.admin_user.id, data["admin_notes"])
        audit_log.record("item.approve", "item", item.id, actor_user_id=g.admin_user.id)
    except ReWearError:
        db.session.rollback()
        raise
    _commit()
    logger.info("Item %s approved by admin %s", item.id, g.admin_user.id)
    return jsonify({"item": item_to_dict(item)})


@bp.put("/items/<int:item_id>/reject")
def reject_item(item_id: int):
    data = ItemRejectSchema().load(request.get_json(silent=True) or {})
    item = _get_item(item_id)
    try:
        ItemTracker().reject(item.id, data["reason"])
        audit_log.record("item.reject", "item", item.id, actor_user_id=g.admin_user.id, reason=data["reason"])
    except ReWearError:
        db.session.rollback()
        raise
    _commit()
    logger.info("Item %s rejected by admin %s", item.id, g.admin_user.id)
    return jsonify({"item": item_to_dict(item)})


# ==================== Accounts ====================

def _set_active(user_id: int, active: bool):
    user = _get_user(user_id)
    if user.id == g.admin_user.id and not active:
        raise NotAuthorizedError("Admins cannot deactivate themselves")
    db.session.execute(
        update(User).where(User.id == user.id).values(is_active=active).execution_options(synchronize_session=False)
    )
    db.session.expire(user, ["is_active"])
    audit_log.record("user.activate" if active else "user.deactivate", "user", user.id, actor_user_id=g.admin_user.id)
    _commit()
    return jsonify({"user": user_to_dict(user, include_private=True)})


@bp.put("/users/<int:user_id>/deactivate")
def deactivate_user(user_id: int):
    return _set_active(user_id, False)


@bp.put("/users/<int:user_id>/activate")
def activate_user(user_id: int):
    return _set_active(user_id, True)


# ==================== Points adjustments ====================

def _adjust(direction: str):
    data = PointsAdjustmentSchema().load(request.get_json(silent=True) or {})
    user = _get_user(data["user_id"])
    ledger = PointsLedger()
    description = data["reason"] or f"Admin {direction}"
    try:
        if direction == "add":
            balance = ledger.credit(user.id, data["points"], LedgerSource.ADMIN_ADJUSTMENT, description=description)
        else:
            balance = ledger.debit(user.id, data["points"], LedgerSource.ADMIN_ADJUSTMENT, description=description)
        audit_log.record(
            f"points.{direction}", "user", user.id, actor_user_id=g.admin_user.id,
            points=data["points"], reason=data["reason"],
        )
    except ReWearError:
        db.session.rollback()
        raise
    _commit()
    logger.info("Admin %s: %s %s points for user %s", g.admin_user.id, direction, data["points"], user.id)
    return jsonify({"userId": user.id, "balance": balance})


@bp.post("/points/add")
def add_points():
    return _adjust("add")


@bp.post("/points/deduct")
def deduct_points():
    return _adjust("deduct")
