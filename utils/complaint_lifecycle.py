"""Complaint creation, owner edits and the staff-driven status state machine.

Every status write goes through :func:`change_status`, which locks the complaint
row, re-reads its current status and appends the matching audit row in the same
transaction, so the log sequence always ends on the complaint's actual status.
"""
from numbers import Real
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import (
    COMPLAINT_STATUSES,
    STATUS_ANALYSIS,
    Complaint,
    ComplaintLog,
    Tag,
    User,
)
from utils.errors import NotFoundError, PermissionDenied, PersistenceError, ValidationError
from utils.security import clean_text
from utils.tags import apply_tags

# Permitted moves; every status may currently follow every other.
STATUS_TRANSITIONS: dict[str, frozenset] = {status: frozenset(COMPLAINT_STATUSES) for status in COMPLAINT_STATUSES}

MIN_POLYGON_POINTS = 3
EDITABLE_FIELDS = ("title", "description", "location", "polygon", "images")


def _require_text(value, label: str, max_length: int | None = None) -> str:
    cleaned = clean_text(value)
    if not cleaned:
        raise ValidationError(f"{label} é obrigatório")
    if max_length and len(cleaned) > max_length:
        raise ValidationError(f"{label} deve ter no máximo {max_length} caracteres")
    return cleaned


def _coordinate(value, low: float, high: float) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("Coordenadas do polígono inválidas")
    number = float(value)
    if not low <= number <= high:
        raise ValidationError("Coordenadas do polígono fora do intervalo permitido")
    return number


def validate_polygon(polygon) -> list[dict]:
    """Normalise a polygon to a list of ``{"lat", "lng"}`` points, at least three of them."""
    if not isinstance(polygon, (list, tuple)) or len(polygon) < MIN_POLYGON_POINTS:
        raise ValidationError("É necessário desenhar uma área com pelo menos 3 pontos no mapa")
    points = []
    for point in polygon:
        if isinstance(point, dict):
            lat, lng = point.get("lat"), point.get("lng")
        elif isinstance(point, (list, tuple)) and len(point) == 2:
            lat, lng = point
        else:
            raise ValidationError("Coordenadas do polígono inválidas")
        points.append({"lat": _coordinate(lat, -90, 90), "lng": _coordinate(lng, -180, 180)})
    return points


def validate_images(images) -> list[str]:
    if images is None:
        return []
    if not isinstance(images, (list, tuple)) or not all(isinstance(url, str) and url.strip() for url in images):
        raise ValidationError("images deve ser uma lista de URLs")
    return [url.strip() for url in images]


def get_complaint(complaint_id: int) -> Complaint:
    complaint = db.session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFoundError("Denúncia não encontrada")
    return complaint


def _commit(message: str, **context) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(message, extra=context)
        raise PersistenceError("Erro ao salvar alterações da denúncia") from exc


def create_complaint(
    actor: User,
    title,
    description,
    location,
    polygon,
    tag_ids: Optional[Iterable[int]] = None,
    images=None,
) -> Complaint:
    """Persist a new complaint in ``Em Análise`` together with its creation log entry."""
    complaint = Complaint(
        user_id=actor.id,
        title=_require_text(title, "Título", max_length=200),
        description=_require_text(description, "Descrição"),
        location=_require_text(location, "Localização", max_length=255),
        polygon_coordinates=validate_polygon(polygon),
        images=validate_images(images),
        status=STATUS_ANALYSIS,
    )
    try:
        db.session.add(complaint)
        if tag_ids is not None:
            apply_tags(complaint, tag_ids)
        db.session.add(
            ComplaintLog(
                complaint=complaint,
                old_status=None,
                new_status=STATUS_ANALYSIS,
                changed_by_id=actor.id,
            )
        )
    except ValidationError:
        db.session.rollback()
        raise
    _commit("Failed to create complaint", user_id=actor.id)
    current_app.logger.info("Complaint created", extra={"complaint_id": complaint.id, "user_id": actor.id})
    return complaint


def update_complaint(actor: User, complaint_id: int, **fields) -> Complaint:
    """Apply an owner's content edit; status and ownership are never editable here."""
    complaint = get_complaint(complaint_id)
    if complaint.user_id != actor.id:
        raise PermissionDenied("Apenas o autor pode editar esta denúncia")

    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Campos não editáveis: {', '.join(sorted(unknown))}")

    changes = {}
    if "title" in fields:
        changes["title"] = _require_text(fields["title"], "Título", max_length=200)
    if "description" in fields:
        changes["description"] = _require_text(fields["description"], "Descrição")
    if "location" in fields:
        changes["location"] = _require_text(fields["location"], "Localização", max_length=255)
    if "polygon" in fields:
        changes["polygon_coordinates"] = validate_polygon(fields["polygon"])
    if "images" in fields:
        changes["images"] = validate_images(fields["images"])

    for attribute, value in changes.items():
        setattr(complaint, attribute, value)

    _commit("Failed to update complaint", complaint_id=complaint_id, user_id=actor.id)
    return complaint


def change_status(actor: User, complaint_id: int, new_status: str) -> Complaint:
    """Move a complaint to ``new_status`` and append the audit row atomically."""
    if actor is None or not actor.is_staff:
        raise PermissionDenied("Apenas administradores e funcionários da prefeitura podem alterar o status.")

    complaint = (
        db.session.query(Complaint)
        .filter(Complaint.id == complaint_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if complaint is None:
        db.session.rollback()
        raise NotFoundError("Denúncia não encontrada")
    if new_status not in COMPLAINT_STATUSES:
        db.session.rollback()
        raise ValidationError("Status inválido")

    old_status = complaint.status
    if new_status not in STATUS_TRANSITIONS.get(old_status, frozenset()):
        db.session.rollback()
        raise ValidationError(f"Transição de status não permitida: {old_status} -> {new_status}")

    complaint.status = new_status
    db.session.add(
        ComplaintLog(
            complaint_id=complaint.id,
            old_status=old_status,
            new_status=new_status,
            changed_by_id=actor.id,
        )
    )
    _commit("Failed to change complaint status", complaint_id=complaint_id, user_id=actor.id)
    current_app.logger.info(
        "Complaint status changed",
        extra={"complaint_id": complaint_id, "old_status": old_status, "new_status": new_status, "user_id": actor.id},
    )
    return complaint


def get_history(complaint_id: int) -> list[ComplaintLog]:
    get_complaint(complaint_id)
    return (
        ComplaintLog.query.filter_by(complaint_id=complaint_id)
        .order_by(ComplaintLog.created_at.asc(), ComplaintLog.id.asc())
        .all()
    )


def list_complaints(status: Optional[str] = None, tag: Optional[str] = None, user_id: Optional[int] = None) -> list[Complaint]:
    query = Complaint.query
    if status:
        if status not in COMPLAINT_STATUSES:
            raise ValidationError("Status inválido")
        query = query.filter(Complaint.status == status)
    if tag:
        query = query.filter(Complaint.tags.any(Tag.name == tag.strip().lower()))
    if user_id is not None:
        query = query.filter(Complaint.user_id == user_id)
    return query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()
