import logging
from datetime import datetime, timezone

from flask import current_app, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from ...errors import AuthenticationRequiredError, ReWearError
from ...extensions import db
from ...models.enums import LedgerSource
from ...models.user import User
from ...schemas.user import LoginSchema, RegisterSchema
from ...security import issue_token
from ...serializers import user_to_dict
from ...services.ledger import PointsLedger
from . import bp, require_user

logger = logging.getLogger(__name__)


class EmailTakenError(ReWearError):
    status_code = 409

    def __init__(self):
        super().__init__("User already exists with this email", "EMAIL_TAKEN")


def _auth_payload(user: User) -> dict:
    return {"token": issue_token(user.id, user.role), "user": user_to_dict(user, include_private=True)}


@bp.post("/register")
def register():
    data = RegisterSchema().load(request.get_json(silent=True) or {})

    if User.query.filter(func.lower(User.email) == data["email"]).first():
        raise EmailTakenError()

    user = User(
        email=data["email"],
        name=data["name"],
        role="user",
        password_hash=generate_password_hash(data["password"]),
    )
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise EmailTakenError()

    bonus = int(current_app.config.get("SIGNUP_BONUS_POINTS", 0) or 0)
    if bonus > 0:
        PointsLedger().credit(user.id, bonus, LedgerSource.SIGNUP_BONUS, description="Welcome bonus")
    db.session.commit()
    logger.info("Registered user %s", user.id)

    return jsonify(_auth_payload(user)), 201


@bp.post("/login")
def login():
    data = LoginSchema().load(request.get_json(silent=True) or {})
    email = data["email"].strip().lower()

    user = User.query.filter(func.lower(User.email) == email).first()
    if not user or not user.password_hash or not check_password_hash(user.password_hash, data["password"]):
        raise AuthenticationRequiredError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationRequiredError("Account is deactivated")

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()

    return jsonify(_auth_payload(user))


@bp.get("/me")
def me():
    user = require_user()
    return jsonify({"user": user_to_dict(user, include_private=True)})
