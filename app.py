"""Flask application factory for the TerraUrb JSON API."""
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy.engine.url import make_url
from werkzeug.exceptions import HTTPException

from extensions import cors, db, login_manager, migrate
from utils.errors import ServiceError
from utils.logger import init_logging


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def service_error(error: ServiceError):
        level = app.logger.error if error.status_code >= 500 else app.logger.info
        level(
            "Request rejected",
            extra={"status": error.status_code, "reason": error.message, "path": request.path},
        )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(401)
    def unauthorized_error(error):
        return jsonify({"error": "Token de acesso é obrigatório"}), 401

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Acesso negado"}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Recurso não encontrado"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Método não permitido"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        db.session.rollback()
        return jsonify({"error": "Erro interno do servidor"}), 500

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return jsonify({"error": error.description}), error.code


def init_auth(app: Flask) -> None:
    from models import User  # Local import to avoid circular dependency
    from utils.sessions import load_user_from_request

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        if not user_id:
            return None
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_bearer(req):
        return load_user_from_request(req)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Token de acesso é obrigatório"}), 401


def ensure_sqlite_directory(database_uri: str) -> None:
    url = make_url(database_uri)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    ensure_sqlite_directory(app.config["SQLALCHEMY_DATABASE_URI"])

    # Optional instance-specific overrides
    app.config.from_pyfile("config.py", silent=True)
    os.makedirs(app.instance_path, exist_ok=True)

    init_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS") or "*"}})
    init_auth(app)

    from routes import register_blueprints

    register_blueprints(app)
    register_error_handlers(app)

    from utils.accounts import ensure_default_admin
    from utils.scheduler import init_scheduler

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        ensure_default_admin(app)

    init_scheduler(app)

    app.logger.info("Application ready", extra={"config": config_class.__name__})
    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, use_reloader=False)
