"""Comment threads on complaints."""
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Comment, User
from utils.complaint_lifecycle import get_complaint
from utils.errors import NotFoundError, PermissionDenied, PersistenceError, ValidationError
from utils.security import clean_text

MAX_COMMENT_LENGTH = 2000


def _clean_content(content) -> str:
    cleaned = clean_text(content)
    if not cleaned:
        raise ValidationError("O comentário não pode estar vazio")
    if len(cleaned) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"O comentário deve ter no máximo {MAX_COMMENT_LENGTH} caracteres")
    return cleaned


def _commit(message: str, **context) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(message, extra=context)
        raise PersistenceError("Erro ao salvar comentário") from exc


def get_comment(comment_id: int) -> Comment:
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError("Comentário não encontrado")
    return comment


def _require_author_or_admin(actor: User, comment: Comment) -> None:
    if comment.user_id != actor.id and not actor.is_admin:
        raise PermissionDenied("Você não tem permissão para alterar este comentário")


def add_comment(actor: User, complaint_id: int, content) -> Comment:
    complaint = get_complaint(complaint_id)
    comment = Comment(content=_clean_content(content), user_id=actor.id, complaint_id=complaint.id)
    db.session.add(comment)
    _commit("Failed to add comment", complaint_id=complaint_id, user_id=actor.id)
    return comment


def list_comments(complaint_id: int) -> list[Comment]:
    get_complaint(complaint_id)
    return (
        Comment.query.filter_by(complaint_id=complaint_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .all()
    )


def edit_comment(actor: User, comment_id: int, content) -> Comment:
    comment = get_comment(comment_id)
    _require_author_or_admin(actor, comment)
    comment.content = _clean_content(content)
    _commit("Failed to edit comment", comment_id=comment_id)
    return comment


def delete_comment(actor: User, comment_id: int) -> None:
    comment = get_comment(comment_id)
    _require_author_or_admin(actor, comment)
    db.session.delete(comment)
    _commit("Failed to delete comment", comment_id=comment_id)
