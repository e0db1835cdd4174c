from flask import Blueprint, jsonify, request

from ...errors import NotAuthorizedError, NotFoundError
from ...extensions import db
from ...models.enums import ItemStatus
from ...models.item import Item
from ...models.user import User
from ...schemas.item import UserItemsQuerySchema
from ...schemas.user import PointsHistoryQuerySchema, ProfileUpdateSchema
from ...serializers import item_to_dict, transaction_to_dict, user_to_dict
from ...services.ledger import PointsLedger
from ..auth import current_user, require_user

bp = Blueprint("users", __name__, url_prefix="/users")


@bp.get("/me/points")
def my_points():
    """Current balance plus the most recent ledger entries."""
    user = require_user()
    args = PointsHistoryQuerySchema().load(request.args)
    ledger = PointsLedger()
    history = ledger.history(user.id, limit=args["limit"], offset=args["offset"])
    return jsonify(
        {
            "balance": ledger.balance(user.id),
            "stats": user.stats(),
            "transactions": [transaction_to_dict(t) for t in history],
        }
    )


@bp.patch("/me")
def update_me():
    user = require_user()
    data = ProfileUpdateSchema().load(request.get_json(silent=True) or {})
    for key, value in data.items():
        if isinstance(value, str):
            value = value.strip() or None
        if key == "name" and not value:
            continue
        setattr(user, key, value)
    db.session.commit()
    return jsonify({"user": user_to_dict(user, include_private=True)})


@bp.get("/<int:user_id>")
def get_user(user_id: int):
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User", user_id)
    return jsonify({"user": user_to_dict(user)})


@bp.get("/<int:user_id>/items")
def user_items(user_id: int):
    """A user's listings, newest first.

    Query params:
      - status: item status or "all" (default available); anything other
        than available is limited to the owner and admins
      - page: default 1
      - limit: default 12
    """
    owner = db.session.get(User, user_id)
    if owner is None or not owner.is_active:
        raise NotFoundError("User", user_id)
    args = UserItemsQuerySchema().load(request.args)
    if args["status"] != ItemStatus.AVAILABLE.value:
        viewer = current_user()
        if viewer is None or not (viewer.is_admin or viewer.id == owner.id):
            raise NotAuthorizedError("Only the owner can list items that are not available")

    q = Item.query.filter(Item.uploader_user_id == owner.id)
    if args["status"] != "all":
        q = q.filter(Item.status == args["status"])
    total = q.count()
    page, limit = args["page"], args["limit"]
    items = q.order_by(Item.created_at.desc(), Item.id.desc()).limit(limit).offset((page - 1) * limit).all()
    total_pages = (total + limit - 1) // limit
    return jsonify(
        {
            "items": [item_to_dict(i) for i in items],
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalItems": total,
                "hasNextPage": page < total_pages,
                "hasPrevPage": page > 1,
            },
        }
    )
