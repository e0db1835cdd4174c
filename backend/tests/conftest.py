"""
Shared pytest fixtures for the ReWear backend.

Every test gets a fresh in-memory SQLite schema inside an active app context.
"""
import itertools

import pytest
from werkzeug.security import generate_password_hash

from rewear import create_app
from rewear.extensions import db
from rewear.models.item import Item
from rewear.models.user import User
from rewear.security import issue_token
from rewear.services.settlement import SettlementService

_seq = itertools.count(1)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(name=None, points=0, role="user", is_active=True, password="secret123"):
        n = next(_seq)
        user = User(
            name=name or f"User {n}",
            email=f"user{n}@example.com",
            role=role,
            points=points,
            is_active=is_active,
            password_hash=generate_password_hash(password),
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_item(app):
    def _make(owner, points=10, status="available", title=None, category="Tops"):
        item = Item(
            uploader_user_id=owner.id,
            title=title or f"Item {next(_seq)}",
            description="Gently worn",
            category=category,
            size="M",
            condition="Good",
            points=points,
            status=status,
        )
        db.session.add(item)
        db.session.commit()
        return item
    return _make


@pytest.fixture
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {issue_token(user.id, user.role)}"}
    return _header


@pytest.fixture
def service(app):
    return SettlementService()


@pytest.fixture
def balance(app):
    def _balance(user):
        return db.session.get(User, user.id).points
    return _balance
