import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import update

from ...errors import InvalidItemStateError, NotAuthorizedError, NotFoundError, ReWearError
from ...extensions import db
from ...models import audit_log
from ...models.enums import ItemStatus
from ...models.item import Item
from ...models.user import User
from ...schemas.item import ItemCreateSchema, ItemListQuerySchema, ItemUpdateSchema
from ...serializers import item_to_dict
from ...services.inventory import ItemTracker
from ..auth import current_user, require_user

logger = logging.getLogger(__name__)

bp = Blueprint("items", __name__, url_prefix="/items")


@bp.post("")
def create_item():
    """List a new item. It starts ``pending`` until an admin approves it."""
    user = require_user()
    data = ItemCreateSchema().load(request.get_json(silent=True) or {})

    item = Item(uploader_user_id=user.id, status=ItemStatus.PENDING.value, **data)
    db.session.add(item)
    db.session.execute(
        update(User)
        .where(User.id == user.id)
        .values(items_listed=User.items_listed + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.flush()
    audit_log.record("item.create", "item", item.id, actor_user_id=user.id)
    db.session.commit()
    logger.info("Item %s listed by user %s", item.id, user.id)

    return jsonify({"item": item_to_dict(item)}), 201


@bp.get("")
def list_items():
    """Browse available items.

    Query params:
      - category: optional category filter
      - limit: page size (default 20, max 100)
      - offset: default 0
    """
    args = ItemListQuerySchema().load(request.args)
    q = Item.query.filter(Item.status == ItemStatus.AVAILABLE.value)
    if args["category"]:
        q = q.filter(Item.category == args["category"])
    total = q.count()
    items = q.order_by(Item.created_at.desc(), Item.id.desc()).limit(args["limit"]).offset(args["offset"]).all()
    return jsonify({"items": [item_to_dict(i) for i in items], "total": total})


@bp.get("/mine")
def my_items():
    user = require_user()
    items = Item.query.filter(Item.uploader_user_id == user.id).order_by(Item.created_at.desc(), Item.id.desc()).all()
    return jsonify({"items": [item_to_dict(i) for i in items]})


@bp.get("/<int:item_id>")
def get_item(item_id: int):
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item", item_id)
    # Listings outside the catalog are visible only to their uploader and admins
    if item.status != ItemStatus.AVAILABLE.value:
        user = current_user()
        if user is None or not (user.is_admin or item.is_owned_by(user.id)):
            raise NotFoundError("Item", item_id)
    return jsonify({"item": item_to_dict(item)})


def _owned_item(item_id: int, user, action: str) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item", item_id)
    if not item.is_owned_by(user.id):
        raise NotAuthorizedError(f"Not authorized to {action} this item")
    return item


@bp.put("/<int:item_id>")
def update_item(item_id: int):
    """Edit one of your own listings. Swapped items are frozen."""
    user = require_user()
    item = _owned_item(item_id, user, "update")
    if item.status == ItemStatus.SWAPPED.value:
        raise InvalidItemStateError(item.id, item.status, "pending|available|removed")
    data = ItemUpdateSchema().load(request.get_json(silent=True) or {})

    for key, value in data.items():
        setattr(item, key, value)
    audit_log.record("item.update", "item", item.id, actor_user_id=user.id, fields=sorted(data))
    db.session.commit()
    logger.info("Item %s updated by user %s", item.id, user.id)

    return jsonify({"item": item_to_dict(item)})


@bp.delete("/<int:item_id>")
def delete_item(item_id: int):
    """Take your listing out of circulation; the row stays for swap history."""
    user = require_user()
    item = _owned_item(item_id, user, "delete")
    try:
        ItemTracker().remove(item.id)
        audit_log.record("item.remove", "item", item.id, actor_user_id=user.id)
    except ReWearError:
        db.session.rollback()
        raise
    db.session.commit()
    logger.info("Item %s removed by user %s", item.id, user.id)

    return jsonify({"item": item_to_dict(item)})
