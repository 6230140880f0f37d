from flask import Blueprint, Flask, g, request, current_app

from ...modules.items.routes import bp as items_bp
from ...modules.claims.routes import bp as claims_bp
from ...modules.auth import bp as auth_bp
from ...modules.notifications.routes import bp as notifications_bp
from ...modules.dashboard.routes import bp as dashboard_bp
from ...modules.staff.routes import bp as staff_bp
from ...modules.analytics.routes import bp as analytics_bp
from ...modules.admin.routes import bp as admin_bp


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # Lightweight auth context loader.
    # A signed bearer token issued by /auth/login is always accepted. In
    # development and tests an `X-User-Id` header is accepted as well.
    @api_v1.before_request  # type: ignore
    def _load_current_user():
        from ...models.user import User  # local import to avoid circulars
        from ...security import verify_token
        from ...extensions import db

        uid: int | None = None
        header_login = bool(current_app.config.get("DEBUG") or current_app.config.get("TESTING"))

        # Bearer token takes precedence
        auth = request.headers.get("Authorization") or ""
        if auth.lower().startswith("bearer "):
            uid, _ = verify_token(auth[7:].strip())
        elif header_login:
            raw = (request.headers.get("X-User-Id") or "").strip()
            if raw.isdigit() and int(raw) > 0:
                uid = int(raw)

        user_obj = db.session.get(User, uid) if uid is not None else None
        # Deactivated accounts are treated as anonymous
        if user_obj is not None and not user_obj.is_active:
            user_obj = None
        g.current_user = user_obj  # type: ignore[attr-defined]
        g.current_user_id = user_obj.id if user_obj else None  # type: ignore[attr-defined]

    # Mount feature blueprints
    api_v1.register_blueprint(items_bp)
    api_v1.register_blueprint(auth_bp)
    api_v1.register_blueprint(claims_bp)
    api_v1.register_blueprint(notifications_bp)
    api_v1.register_blueprint(dashboard_bp)
    api_v1.register_blueprint(staff_bp)
    api_v1.register_blueprint(analytics_bp)
    api_v1.register_blueprint(admin_bp)

    app.register_blueprint(api_v1)
