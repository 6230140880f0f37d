import itertools
from datetime import date, timedelta

import pytest
from werkzeug.security import generate_password_hash

from lostfound import create_app
from lostfound.extensions import db
from lostfound.models import Claim, Item, User
from lostfound.security import issue_token
from lostfound.utils import utcnow


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
    seq = itertools.count(1)

    def _make(role="user", branch=None, name=None, is_active=True, password=None, email=None):
        n = next(seq)
        user = User(
            name=name or f"User {n}",
            email=email or f"user{n}@example.com",
            phone="0771234567",
            role=role,
            branch=branch,
            is_active=is_active,
            password_hash=generate_password_hash(password) if password else None,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_item(app, make_user):
    def _make(reporter=None, **overrides):
        reporter = reporter or make_user()
        fields = dict(
            type="found",
            category="electronics",
            title="Black iPhone 13",
            description="Found near the reading room, cracked screen protector",
            location="Central Library",
            district="Colombo",
            date=date.today(),
            images=[],
            contact_name="Front Desk",
            contact_email="desk@example.com",
            contact_phone="0112345678",
            expiry_date=utcnow() + timedelta(days=30),
        )
        fields.update(overrides)
        item = Item(reporter_user_id=reporter.id, **fields)
        db.session.add(item)
        db.session.commit()
        return item

    return _make


@pytest.fixture
def make_claim(app):
    def _make(item, claimant, status="pending", notes="", **overrides):
        claim = Claim(claimant_user_id=claimant.id, status=status, notes=notes, verification_documents=[], **overrides)
        item.claims.append(claim)
        db.session.commit()
        return claim

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(user.id, user.role)}"}

    return _headers


@pytest.fixture
def item_payload():
    return {
        "title": "Blue backpack",
        "description": "Navy blue backpack with a laptop sleeve",
        "category": "bags",
        "type": "lost",
        "location": "Central Station",
        "district": "Colombo",
        "date": date.today().isoformat(),
        "images": ["https://img.example.com/bag.jpg"],
        "contactInfo": {"name": "Nimal", "email": "nimal@example.com", "phone": "0771112223"},
        "additionalDetails": {"color": "blue", "brand": "Targus"},
    }
