from flask import request
from werkzeug.security import generate_password_hash, check_password_hash

from ...access import login_required, require_user
from ...errors import AuthenticationError, ValidationError
from ...extensions import db
from ...models.user import User
from ...schemas.user import LoginSchema, ProfileUpdateSchema, RegisterSchema, UserSchema
from ...security import issue_token
from ...utils import ok, utcnow
from . import bp

user_schema = UserSchema()


def _session_payload(user: User) -> dict:
    data = user_schema.dump(user)
    data["token"] = issue_token(int(user.id), user.role or "user")
    return data


@bp.post("/register")
def register():
    data = RegisterSchema().load(request.get_json(silent=True) or {})
    email = data["email"].strip().lower()

    # Check duplicates
    if User.query.filter_by(email=email).first():
        raise ValidationError("User already exists")

    user = User(
        name=data["name"].strip(),
        email=email,
        phone=data["phone"].strip(),
        role="user",
        password_hash=generate_password_hash(data["password"]),
    )
    db.session.add(user)
    db.session.commit()
    return ok(_session_payload(user), status=201)


@bp.post("/login")
def login():
    data = LoginSchema().load(request.get_json(silent=True) or {})
    email = data["email"].strip().lower()

    user = User.query.filter_by(email=email).first()
    if not user or not user.password_hash or not check_password_hash(user.password_hash, data["password"]):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    # Update last login timestamp
    user.last_login_at = utcnow()
    db.session.commit()
    return ok(_session_payload(user))


@bp.get("/profile")
@login_required
def get_profile():
    return ok(user_schema.dump(require_user()))


@bp.put("/profile")
@login_required
def update_profile():
    user = require_user()
    data = ProfileUpdateSchema().load(request.get_json(silent=True) or {})
    if "name" in data:
        user.name = data["name"].strip()
    if "phone" in data:
        user.phone = data["phone"].strip()
    if data.get("password"):
        user.password_hash = generate_password_hash(data["password"])
    db.session.commit()
    return ok(user_schema.dump(user), message="Profile updated successfully")
