"""Complaint intake, owner edits, status changes and tag links."""
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from models import COMPLAINT_STATUSES
from utils import complaint_lifecycle, tags
from utils.activity import log_activity
from utils.decorators import staff_required
from utils.errors import ValidationError
from utils.forms import JSONForm, json_body

complaints_bp = Blueprint("complaints", __name__)


class ComplaintForm(JSONForm):
    title = StringField("Título", validators=[DataRequired(), Length(max=200)])
    description = TextAreaField("Descrição", validators=[DataRequired(), Length(max=5000)])
    location = StringField("Localização", validators=[DataRequired(), Length(max=255)])


class ComplaintEditForm(JSONForm):
    title = StringField("Título", validators=[Optional(), Length(max=200)])
    description = TextAreaField("Descrição", validators=[Optional(), Length(max=5000)])
    location = StringField("Localização", validators=[Optional(), Length(max=255)])


class StatusForm(JSONForm):
    status = StringField("Status", validators=[DataRequired()])


def _tag_ids(payload: dict, required: bool = True):
    if "tagIds" not in payload:
        if required:
            raise ValidationError("tagIds deve ser um array")
        return None
    if not isinstance(payload["tagIds"], list):
        raise ValidationError("tagIds deve ser um array")
    return payload["tagIds"]


@complaints_bp.route("", methods=["POST"])
@login_required
def create_complaint():
    payload = json_body()
    form = ComplaintForm.from_request(payload).validate_or_raise()
    complaint = complaint_lifecycle.create_complaint(
        current_user,
        title=form.title.data,
        description=form.description.data,
        location=form.location.data,
        polygon=payload.get("polygonCoordinates"),
        tag_ids=_tag_ids(payload, required=False),
        images=payload.get("images"),
    )
    log_activity(current_user.id, "complaint_created", {"complaintId": complaint.id})
    return jsonify(complaint.public_payload(include_history=True)), 201


@complaints_bp.route("", methods=["GET"])
@login_required
def list_complaints():
    complaints = complaint_lifecycle.list_complaints(
        status=request.args.get("status") or None,
        tag=request.args.get("tag") or None,
    )
    return jsonify([c.public_payload(include_history=True) for c in complaints])


@complaints_bp.route("/my", methods=["GET"])
@login_required
def my_complaints():
    complaints = complaint_lifecycle.list_complaints(
        status=request.args.get("status") or None,
        user_id=current_user.id,
    )
    return jsonify([c.public_payload(include_history=True) for c in complaints])


@complaints_bp.route("/statuses", methods=["GET"])
def statuses():
    return jsonify(list(COMPLAINT_STATUSES))


@complaints_bp.route("/<int:complaint_id>", methods=["GET"])
@login_required
def complaint_detail(complaint_id: int):
    complaint = complaint_lifecycle.get_complaint(complaint_id)
    return jsonify(complaint.public_payload(include_history=True))


@complaints_bp.route("/<int:complaint_id>", methods=["PUT"])
@login_required
def edit_complaint(complaint_id: int):
    payload = json_body()
    form = ComplaintEditForm.from_request(payload).validate_or_raise()
    fields = {name: getattr(form, name).data for name in ("title", "description", "location") if name in payload}
    if "polygonCoordinates" in payload:
        fields["polygon"] = payload["polygonCoordinates"]
    if "images" in payload:
        fields["images"] = payload["images"]
    complaint = complaint_lifecycle.update_complaint(current_user, complaint_id, **fields)
    return jsonify(complaint.public_payload(include_history=True))


@complaints_bp.route("/<int:complaint_id>/status", methods=["PATCH"])
@staff_required
def change_status(complaint_id: int):
    form = StatusForm.from_request().validate_or_raise()
    complaint = complaint_lifecycle.change_status(current_user, complaint_id, form.status.data)
    log_activity(
        current_user.id,
        "complaint_status_changed",
        {"complaintId": complaint.id, "status": complaint.status},
    )
    return jsonify(complaint.public_payload(include_history=True))


@complaints_bp.route("/<int:complaint_id>/history", methods=["GET"])
@login_required
def history(complaint_id: int):
    return jsonify([log.public_payload() for log in complaint_lifecycle.get_history(complaint_id)])


@complaints_bp.route("/<int:complaint_id>/tags", methods=["POST"])
@login_required
def set_complaint_tags(complaint_id: int):
    complaint = tags.set_tags(complaint_id, _tag_ids(json_body()), actor=current_user)
    return jsonify(complaint.public_payload())


@complaints_bp.route("/<int:complaint_id>/tags", methods=["DELETE"])
@login_required
def remove_complaint_tags(complaint_id: int):
    complaint = tags.remove_tags(complaint_id, _tag_ids(json_body()), actor=current_user)
    return jsonify(complaint.public_payload())
