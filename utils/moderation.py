"""Abuse-report intake, admin triage and moderation deletion.

A report points at either a complaint or a comment by ``(type, target_id)``
with no foreign key behind it. :class:`ReportTarget` carries that pair and
resolves it through an explicit lookup per kind, so a target that has since
been deleted simply resolves to ``None``.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import (
    REPORT_DISMISSED,
    REPORT_PENDING,
    REPORT_RESOLVED,
    REPORT_TYPES,
    Comment,
    Complaint,
    Report,
    User,
)
from utils.errors import ConflictError, NotFoundError, PermissionDenied, PersistenceError, ValidationError
from utils.security import clean_text

REPORT_DECISIONS = (REPORT_RESOLVED, REPORT_DISMISSED)

_TARGET_LABELS = {"complaint": "Denúncia", "comment": "Comentário"}
_NOT_FOUND = {"complaint": "Denúncia não encontrada", "comment": "Comentário não encontrado"}


def _complaint_snapshot(complaint: Complaint) -> dict:
    return {
        "id": complaint.id,
        "title": complaint.title,
        "description": complaint.description,
        "status": complaint.status,
        "author": complaint.author.nickname if complaint.author else None,
        "authorId": complaint.user_id,
    }


def _comment_snapshot(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "complaintId": comment.complaint_id,
        "author": comment.author.nickname if comment.author else None,
        "authorId": comment.user_id,
    }


_LOOKUPS: dict[str, tuple[type, Callable]] = {
    "complaint": (Complaint, _complaint_snapshot),
    "comment": (Comment, _comment_snapshot),
}


@dataclass(frozen=True)
class ReportTarget:
    kind: str
    id: int

    @classmethod
    def parse(cls, kind, target_id) -> "ReportTarget":
        if kind not in REPORT_TYPES:
            raise ValidationError("Tipo de denúncia inválido")
        if isinstance(target_id, bool) or (isinstance(target_id, float) and not target_id.is_integer()):
            raise ValidationError("ID do alvo inválido")
        try:
            return cls(kind, int(target_id))
        except (TypeError, ValueError):
            raise ValidationError("ID do alvo inválido") from None

    @property
    def label(self) -> str:
        return _TARGET_LABELS[self.kind]

    def resolve(self):
        model, _ = _LOOKUPS[self.kind]
        return db.session.get(model, self.id)

    def require(self):
        row = self.resolve()
        if row is None:
            raise NotFoundError(_NOT_FOUND[self.kind])
        return row

    def snapshot(self) -> Optional[dict]:
        row = self.resolve()
        if row is None:
            return None
        _, build = _LOOKUPS[self.kind]
        return build(row)


def target_of(report: Report) -> ReportTarget:
    return ReportTarget(report.target_type, report.target_id)


def _require_admin(actor: Optional[User]) -> None:
    if actor is None or not actor.is_admin:
        raise PermissionDenied("Acesso negado. Apenas administradores.")


def submit_report(actor: User, report_type, target_id, reason) -> Report:
    """File a pending report from ``actor`` against someone else's complaint or comment."""
    target = ReportTarget.parse(report_type, target_id)
    cleaned_reason = clean_text(reason)
    if not cleaned_reason:
        raise ValidationError("Tipo, razão e ID do alvo são obrigatórios")

    content = target.require()
    if content.user_id == actor.id:
        raise ValidationError("Você não pode denunciar o seu próprio conteúdo")

    duplicate = Report.query.filter_by(target_type=target.kind, target_id=target.id, user_id=actor.id).first()
    if duplicate is not None:
        raise ConflictError("Você já denunciou este conteúdo")

    report = Report(
        target_type=target.kind,
        target_id=target.id,
        reason=cleaned_reason,
        status=REPORT_PENDING,
        user_id=actor.id,
    )
    db.session.add(report)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Lost a race against the same reporter's concurrent submission.
        db.session.rollback()
        raise ConflictError("Você já denunciou este conteúdo") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store report", extra={"user_id": actor.id})
        raise PersistenceError("Erro ao criar denúncia") from exc

    current_app.logger.info(
        "Report submitted",
        extra={"report_id": report.id, "target_kind": target.kind, "target_id": target.id, "user_id": actor.id},
    )
    return report


def report_payload(report: Report) -> dict:
    payload = report.public_payload()
    snapshot = target_of(report).snapshot()
    payload["target"] = snapshot
    payload["targetDeleted"] = snapshot is None
    return payload


def list_reports(actor: User, status: Optional[str] = None) -> list[dict]:
    """Every report, newest first, each with a read-time snapshot of its target."""
    _require_admin(actor)
    query = Report.query
    if status:
        query = query.filter(Report.status == status)
    reports = query.order_by(Report.created_at.desc(), Report.id.desc()).all()
    return [report_payload(report) for report in reports]


def get_report(report_id: int) -> Report:
    report = db.session.get(Report, report_id)
    if report is None:
        raise NotFoundError("Denúncia não encontrada")
    return report


def resolve_report(actor: User, report_id: int, decision, note=None) -> Report:
    """Close a pending report. Content removal is a separate :func:`delete_by_moderation` call."""
    _require_admin(actor)
    if decision not in REPORT_DECISIONS:
        raise ValidationError("Status inválido")

    report = (
        db.session.query(Report)
        .filter(Report.id == report_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if report is None:
        db.session.rollback()
        raise NotFoundError("Denúncia não encontrada")
    if not report.is_open:
        db.session.rollback()
        raise ConflictError("Esta denúncia já foi analisada")

    report.status = decision
    report.admin_note = clean_text(note) or None
    report.resolved_at = datetime.utcnow()
    report.resolved_by_id = actor.id
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to resolve report", extra={"report_id": report_id})
        raise PersistenceError("Erro ao revisar denúncia") from exc

    current_app.logger.info(
        "Report closed", extra={"report_id": report_id, "decision": decision, "user_id": actor.id}
    )
    return report


def delete_by_moderation(actor: User, report_type, target_id) -> ReportTarget:
    """Remove a complaint or comment outright; a complaint takes its logs, comments and tag links with it."""
    _require_admin(actor)
    target = ReportTarget.parse(report_type, target_id)
    content = target.require()
    try:
        db.session.delete(content)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Moderation delete failed", extra={"target_kind": target.kind, "target_id": target.id}
        )
        raise PersistenceError(f"Erro ao excluir {target.label.lower()}") from exc

    current_app.logger.info(
        "Content removed by moderation",
        extra={"target_kind": target.kind, "target_id": target.id, "user_id": actor.id},
    )
    return target


def delete_report(actor: User, report_id: int) -> None:
    _require_admin(actor)
    report = get_report(report_id)
    try:
        db.session.delete(report)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete report", extra={"report_id": report_id})
        raise PersistenceError("Erro ao excluir denúncia") from exc
