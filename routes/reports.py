"""Abuse-report intake and admin triage blueprint."""
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from utils import moderation
from utils.activity import log_activity
from utils.decorators import admin_required
from utils.forms import JSONForm, json_body

reports_bp = Blueprint("reports", __name__)


class ReportForm(JSONForm):
    reason = TextAreaField("Motivo", validators=[DataRequired(), Length(max=1000)])


class ResolutionForm(JSONForm):
    status = StringField("Status", validators=[DataRequired()])
    adminNote = TextAreaField("Observação", validators=[Optional(), Length(max=1000)])


@reports_bp.route("", methods=["POST"])
@login_required
def submit_report():
    payload = json_body()
    form = ReportForm.from_request(payload).validate_or_raise()
    report = moderation.submit_report(current_user, payload.get("type"), payload.get("targetId"), form.reason.data)
    log_activity(
        current_user.id,
        "report_submitted",
        {"reportId": report.id, "type": report.target_type, "targetId": report.target_id},
    )
    return jsonify(report.public_payload()), 201


@reports_bp.route("", methods=["GET"])
@admin_required
def list_reports():
    return jsonify(moderation.list_reports(current_user, status=request.args.get("status") or None))


@reports_bp.route("/<int:report_id>", methods=["PUT", "PATCH"])
@admin_required
def resolve_report(report_id: int):
    form = ResolutionForm.from_request().validate_or_raise()
    report = moderation.resolve_report(current_user, report_id, form.status.data, form.adminNote.data)
    log_activity(current_user.id, "report_resolved", {"reportId": report.id, "status": report.status})
    return jsonify(moderation.report_payload(report))


@reports_bp.route("/<int:report_id>", methods=["DELETE"])
@admin_required
def delete_report(report_id: int):
    moderation.delete_report(current_user, report_id)
    log_activity(current_user.id, "report_deleted", {"reportId": report_id})
    return "", 204


@reports_bp.route("/<int:report_id>/content", methods=["DELETE"])
@admin_required
def delete_reported_content(report_id: int):
    report = moderation.get_report(report_id)
    target = moderation.delete_by_moderation(current_user, report.target_type, report.target_id)
    log_activity(current_user.id, "moderation_delete", {"type": target.kind, "targetId": target.id, "reportId": report_id})
    return "", 204
