"""Comment threads blueprint."""
from flask import Blueprint, jsonify
from flask_login import current_user, login_required
from wtforms import IntegerField, TextAreaField
from wtforms.validators import DataRequired, Length

from utils import comments
from utils.activity import log_activity
from utils.forms import JSONForm

comments_bp = Blueprint("comments", __name__)


class CommentForm(JSONForm):
    complaintId = IntegerField("Denúncia", validators=[DataRequired()])
    content = TextAreaField("Comentário", validators=[DataRequired(), Length(max=2000)])


class CommentEditForm(JSONForm):
    content = TextAreaField("Comentário", validators=[DataRequired(), Length(max=2000)])


@comments_bp.route("", methods=["POST"])
@login_required
def add_comment():
    form = CommentForm.from_request().validate_or_raise()
    comment = comments.add_comment(current_user, form.complaintId.data, form.content.data)
    log_activity(current_user.id, "comment_created", {"commentId": comment.id, "complaintId": comment.complaint_id})
    return jsonify(comment.public_payload()), 201


@comments_bp.route("/complaint/<int:complaint_id>", methods=["GET"])
@login_required
def complaint_comments(complaint_id: int):
    return jsonify([c.public_payload() for c in comments.list_comments(complaint_id)])


@comments_bp.route("/<int:comment_id>", methods=["PUT"])
@login_required
def edit_comment(comment_id: int):
    form = CommentEditForm.from_request().validate_or_raise()
    comment = comments.edit_comment(current_user, comment_id, form.content.data)
    return jsonify(comment.public_payload())


@comments_bp.route("/<int:comment_id>", methods=["DELETE"])
@login_required
def delete_comment(comment_id: int):
    comments.delete_comment(current_user, comment_id)
    log_activity(current_user.id, "comment_deleted", {"commentId": comment_id})
    return "", 204
