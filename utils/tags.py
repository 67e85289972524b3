"""Tag catalogue administration and complaint-tag set reconciliation."""
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import Complaint, Tag, User
from utils.errors import ConflictError, NotFoundError, PermissionDenied, PersistenceError, ValidationError

MAX_TAG_NAME_LENGTH = 50


def normalize_tag_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Nome da tag é obrigatório")
    normalized = " ".join(name.split()).lower()
    if len(normalized) > MAX_TAG_NAME_LENGTH:
        raise ValidationError(f"Nome da tag deve ter no máximo {MAX_TAG_NAME_LENGTH} caracteres")
    return normalized


def _require_admin(actor: Optional[User]) -> None:
    if actor is None or not actor.is_admin:
        raise PermissionDenied("Acesso negado. Apenas administradores.")


def _dedupe_ids(tag_ids) -> list[int]:
    if tag_ids is None or isinstance(tag_ids, (str, bytes, dict)):
        raise ValidationError("tagIds deve ser um array")
    seen: list[int] = []
    for raw in tag_ids:
        if isinstance(raw, bool):
            raise ValidationError("tagIds deve conter apenas números inteiros")
        try:
            tag_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError("tagIds deve conter apenas números inteiros") from None
        if tag_id not in seen:
            seen.append(tag_id)
    return seen


def resolve_tags(tag_ids: Iterable[int]) -> list[Tag]:
    """Load the tags for ``tag_ids``; any id without a row is rejected."""
    ids = _dedupe_ids(tag_ids)
    if not ids:
        return []
    found = {tag.id: tag for tag in Tag.query.filter(Tag.id.in_(ids)).all()}
    missing = [tag_id for tag_id in ids if tag_id not in found]
    if missing:
        raise ValidationError(f"Tags inexistentes: {', '.join(str(m) for m in missing)}")
    return [found[tag_id] for tag_id in ids]


def apply_tags(complaint: Complaint, tag_ids: Iterable[int]) -> None:
    """Replace the complaint's tag set in the current transaction without committing."""
    complaint.tags = resolve_tags(tag_ids)


def can_edit_tags(actor: Optional[User], complaint: Complaint) -> bool:
    return actor is not None and (actor.is_staff or complaint.user_id == actor.id)


def _load_for_tagging(complaint_id: int, actor: Optional[User]) -> Complaint:
    complaint = db.session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFoundError("Denúncia não encontrada")
    if actor is not None and not can_edit_tags(actor, complaint):
        raise PermissionDenied("Sem permissão para alterar as tags desta denúncia")
    return complaint


def _commit(message: str, **context) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning(message, extra=context)
        raise ConflictError("Tag já existe") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(message, extra=context)
        raise PersistenceError("Erro ao salvar tags") from exc


def set_tags(complaint_id: int, tag_ids: Iterable[int], actor: Optional[User] = None) -> Complaint:
    """Make the complaint's tags exactly ``tag_ids`` (duplicates ignored)."""
    complaint = _load_for_tagging(complaint_id, actor)
    apply_tags(complaint, tag_ids)
    _commit("Failed to set complaint tags", complaint_id=complaint_id)
    return complaint


def remove_tags(complaint_id: int, tag_ids: Iterable[int], actor: Optional[User] = None) -> Complaint:
    complaint = _load_for_tagging(complaint_id, actor)
    removing = {tag.id for tag in resolve_tags(tag_ids)}
    complaint.tags = [tag for tag in complaint.tags if tag.id not in removing]
    _commit("Failed to remove complaint tags", complaint_id=complaint_id)
    return complaint


def list_tags() -> list[Tag]:
    return Tag.query.order_by(Tag.name.asc()).all()


def _name_taken(name: str, exclude_id: Optional[int] = None) -> bool:
    query = Tag.query.filter(func.lower(Tag.name) == name)
    if exclude_id is not None:
        query = query.filter(Tag.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _get_tag(tag_id: int) -> Tag:
    tag = db.session.get(Tag, tag_id)
    if tag is None:
        raise NotFoundError("Tag não encontrada")
    return tag


def create_tag(actor: User, name) -> Tag:
    _require_admin(actor)
    normalized = normalize_tag_name(name)
    if _name_taken(normalized):
        raise ConflictError("Tag já existe")
    tag = Tag(name=normalized)
    db.session.add(tag)
    _commit("Failed to create tag", tag_name=normalized)
    current_app.logger.info("Tag created", extra={"tag_id": tag.id, "user_id": actor.id})
    return tag


def rename_tag(actor: User, tag_id: int, name) -> Tag:
    _require_admin(actor)
    tag = _get_tag(tag_id)
    normalized = normalize_tag_name(name)
    if _name_taken(normalized, exclude_id=tag.id):
        raise ConflictError("Tag já existe")
    tag.name = normalized
    _commit("Failed to rename tag", tag_id=tag_id)
    return tag


def delete_tag(actor: User, tag_id: int) -> None:
    """Remove the tag and its complaint links; the complaints themselves stay."""
    _require_admin(actor)
    tag = _get_tag(tag_id)
    tag.complaints = []
    db.session.delete(tag)
    _commit("Failed to delete tag", tag_id=tag_id)
    current_app.logger.info("Tag deleted", extra={"tag_id": tag_id, "user_id": actor.id})
