import os

from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Flask extension singletons, bound to an app in create_app()

db = SQLAlchemy()
migrate = Migrate()


def _cors_origins() -> list[str]:
	"""Comma-separated CORS_ALLOW_ORIGINS; the React dev server outside production."""
	raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
	origins = [o.strip() for o in raw.split(",") if o.strip()]
	if not origins and os.getenv("FLASK_ENV", "development").lower() != "production":
		origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
	return origins


# Browser clients send the bearer token in Authorization; swap actions use PUT/PATCH
cors = CORS(
	resources={r"/api/*": {"origins": _cors_origins()}},
	allow_headers=["Authorization", "Content-Type"],
	methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
)
