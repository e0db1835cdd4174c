from flask import Blueprint, Flask, g, request

from ...modules.admin.routes import bp as admin_bp
from ...modules.auth import bp as auth_bp
from ...modules.items.routes import bp as items_bp
from ...modules.swaps.routes import bp as swaps_bp
from ...modules.users.routes import bp as users_bp


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # Principal loader. Only signed bearer tokens issued by this app are
    # accepted; the role always comes from the stored user, never the token.
    @api_v1.before_request  # type: ignore
    def _load_current_user():
        from ...extensions import db
        from ...models.user import User  # local import to avoid circulars
        from ...security import verify_token

        uid: int | None = None
        auth = request.headers.get("Authorization") or ""
        if auth.lower().startswith("bearer "):
            uid, _role = verify_token(auth[7:].strip())

        user_obj = db.session.get(User, uid) if uid is not None else None
        # Deactivated accounts behave as anonymous
        if user_obj is not None and not user_obj.is_active:
            user_obj = None
        g.current_user = user_obj  # type: ignore[attr-defined]
        g.current_user_id = user_obj.id if user_obj else None  # type: ignore[attr-defined]

    # Mount feature blueprints
    api_v1.register_blueprint(auth_bp)
    api_v1.register_blueprint(items_bp)
    api_v1.register_blueprint(swaps_bp)
    api_v1.register_blueprint(users_bp)
    api_v1.register_blueprint(admin_bp)

    app.register_blueprint(api_v1)
