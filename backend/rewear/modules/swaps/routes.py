from flask import Blueprint, jsonify, request

from ...schemas.swap import SwapCancelSchema, SwapCreateSchema, SwapListQuerySchema, SwapRespondSchema
from ...serializers import swap_to_dict
from ...services.settlement import SettlementService
from ..auth import require_user

bp = Blueprint("swaps", __name__, url_prefix="/swaps")


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _respond(service: SettlementService, swap, status: int = 200):
    return jsonify({"swap": swap_to_dict(swap, service)}), status


@bp.post("")
def create_swap():
    user = require_user()
    data = SwapCreateSchema().load(_body())
    service = SettlementService()
    swap = service.create(
        requester_id=user.id,
        item_id=data["item_id"],
        swap_type=data["swap_type"],
        offered_item_id=data["offered_item_id"],
        offered_points=data["offered_points"],
        message=data["message"],
    )
    return _respond(service, swap, 201)


def _list(direction: str):
    user = require_user()
    args = SwapListQuerySchema().load(request.args)
    service = SettlementService()
    swaps, total = service.list_for_user(user.id, direction, args["status"], args["page"], args["limit"])
    page, limit = args["page"], args["limit"]
    total_pages = (total + limit - 1) // limit
    return jsonify(
        {
            "swaps": [swap_to_dict(s, service) for s in swaps],
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalItems": total,
                "hasNextPage": page < total_pages,
                "hasPrevPage": page > 1,
            },
        }
    )


@bp.get("/received")
def received_swaps():
    """Swap requests for items the caller owns."""
    return _list("received")


@bp.get("/sent")
def sent_swaps():
    """Swap requests the caller made."""
    return _list("sent")


@bp.get("/<int:swap_id>")
def get_swap(swap_id: int):
    user = require_user()
    service = SettlementService()
    return _respond(service, service.get_for_party(swap_id, user.id))


@bp.put("/<int:swap_id>/accept")
def accept_swap(swap_id: int):
    user = require_user()
    data = SwapRespondSchema().load(_body())
    service = SettlementService()
    return _respond(service, service.accept(swap_id, user.id, data["response_message"]))


@bp.put("/<int:swap_id>/reject")
def reject_swap(swap_id: int):
    user = require_user()
    data = SwapRespondSchema().load(_body())
    service = SettlementService()
    return _respond(service, service.reject(swap_id, user.id, data["response_message"]))


@bp.put("/<int:swap_id>/complete")
def complete_swap(swap_id: int):
    user = require_user()
    service = SettlementService()
    return _respond(service, service.complete(swap_id, user.id))


@bp.put("/<int:swap_id>/cancel")
def cancel_swap(swap_id: int):
    user = require_user()
    data = SwapCancelSchema().load(_body())
    service = SettlementService()
    return _respond(service, service.cancel(swap_id, user.id, data["reason"]))


@bp.put("/<int:swap_id>/read")
def mark_swap_read(swap_id: int):
    user = require_user()
    service = SettlementService()
    return _respond(service, service.mark_read(swap_id, user.id))
