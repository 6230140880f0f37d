from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Flask extensions singletons

db = SQLAlchemy()
migrate = Migrate()
cors = CORS()


def init_extensions(app: Flask) -> None:
    # Only the API is cross-origin; origins come from CORS_ALLOW_ORIGINS
    origins = list(app.config.get("CORS_ALLOW_ORIGINS") or ())
    cors.init_app(app, resources={r"/api/*": {"origins": origins, "supports_credentials": True}})
    db.init_app(app)
    migrate.init_app(app, db)
