"""Blueprint registration and public platform statistics."""
from flask import Blueprint, current_app, jsonify
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import COMPLAINT_STATUSES, STATUS_RESOLVED, Comment, Complaint, User
from .admin import admin_bp
from .auth import auth_bp
from .comments import comments_bp
from .complaints import complaints_bp
from .docs import docs_bp
from .reports import reports_bp
from .tags import tags_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/stats", methods=["GET"])
def stats():
    try:
        per_status = dict(
            db.session.query(Complaint.status, func.count(Complaint.id)).group_by(Complaint.status).all()
        )
        payload = {
            "totalUsers": User.query.count(),
            "totalComplaints": Complaint.query.count(),
            "resolvedComplaints": per_status.get(STATUS_RESOLVED, 0),
            "totalComments": Comment.query.count(),
            "byStatus": {status: per_status.get(status, 0) for status in COMPLAINT_STATUSES},
        }
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to compute platform stats")
        return jsonify({"error": "Erro ao buscar estatísticas"}), 500
    return jsonify(payload)


@main_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


def register_blueprints(app) -> None:
    app.register_blueprint(main_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(complaints_bp, url_prefix="/api/complaints")
    app.register_blueprint(comments_bp, url_prefix="/api/comments")
    app.register_blueprint(tags_bp, url_prefix="/api/tags")
    app.register_blueprint(reports_bp, url_prefix="/api/reports")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(docs_bp, url_prefix="/api/docs")
