"""Administration blueprint: users, roles, activity trail and moderation deletes."""
from flask import Blueprint, current_app, jsonify
from flask_login import current_user
from wtforms import StringField
from wtforms.validators import DataRequired

from models import Complaint, Comment
from utils import accounts, moderation
from utils.activity import log_activity, recent_activity
from utils.decorators import admin_required
from utils.forms import JSONForm

admin_bp = Blueprint("admin", __name__)


class RoleForm(JSONForm):
    role = StringField("Papel", validators=[DataRequired()])


def _user_row(user) -> dict:
    payload = user.private_payload()
    payload["complaintCount"] = Complaint.query.filter_by(user_id=user.id).count()
    payload["commentCount"] = Comment.query.filter_by(user_id=user.id).count()
    return payload


@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    return jsonify([_user_row(user) for user in accounts.list_users()])


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id: int):
    accounts.delete_user(current_user, user_id)
    log_activity(current_user.id, "user_deleted", {"userId": user_id})
    return "", 204


@admin_bp.route("/users/<int:user_id>/role", methods=["PATCH"])
@admin_required
def change_role(user_id: int):
    form = RoleForm.from_request().validate_or_raise()
    user = accounts.change_role(current_user, user_id, form.role.data)
    log_activity(current_user.id, "role_changed", {"userId": user.id, "role": user.role.value})
    return jsonify(user.private_payload())


@admin_bp.route("/activity-logs", methods=["GET"])
@admin_required
def activity_logs():
    entries = recent_activity(
        window_days=int(current_app.config.get("ACTIVITY_LOG_WINDOW_DAYS", 30)),
        limit=int(current_app.config.get("ACTIVITY_LOG_LIMIT", 100)),
    )
    return jsonify([entry.public_payload() for entry in entries])


@admin_bp.route("/complaints/<int:complaint_id>", methods=["DELETE"])
@admin_required
def delete_complaint(complaint_id: int):
    moderation.delete_by_moderation(current_user, "complaint", complaint_id)
    log_activity(current_user.id, "moderation_delete", {"type": "complaint", "targetId": complaint_id})
    return "", 204


@admin_bp.route("/comments/<int:comment_id>", methods=["DELETE"])
@admin_required
def delete_comment(comment_id: int):
    moderation.delete_by_moderation(current_user, "comment", comment_id)
    log_activity(current_user.id, "moderation_delete", {"type": "comment", "targetId": comment_id})
    return "", 204
