"""Email verification codes: issue, check, consume and expire."""
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import VerificationCode
from utils.errors import PersistenceError, ValidationError
from utils.security import generate_otp


def issue_code(email: str) -> str:
    """Replace any outstanding code for ``email`` with a fresh one and return it in clear."""
    ttl = int(current_app.config.get("VERIFICATION_CODE_TTL_MINUTES", 10))
    code = generate_otp(6)
    try:
        VerificationCode.query.filter_by(email=email, consumed_at=None).delete(synchronize_session=False)
        VerificationCode.create_for(email, code, ttl_minutes=ttl)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store verification code", extra={"email": email})
        raise PersistenceError("Erro ao gerar código de verificação") from exc
    return code


def discard_codes(email: str) -> None:
    VerificationCode.query.filter_by(email=email, consumed_at=None).delete(synchronize_session=False)
    db.session.commit()


def find_valid_code(email: str, code: str):
    candidates = (
        VerificationCode.query.filter(
            VerificationCode.email == email,
            VerificationCode.consumed_at.is_(None),
            VerificationCode.expires_at > datetime.utcnow(),
        )
        .order_by(VerificationCode.created_at.desc())
        .all()
    )
    for record in candidates:
        if record.verify(code):
            return record
    return None


def check_code(email: str, code: str) -> None:
    if not code or find_valid_code(email, code) is None:
        raise ValidationError("Código inválido ou expirado")


def consume_code(email: str, code: str) -> None:
    """Mark the code used; the caller commits together with the work it authorises."""
    record = find_valid_code(email, code) if code else None
    if record is None:
        raise ValidationError("Código inválido ou expirado")
    record.consumed_at = datetime.utcnow()


def purge_expired_verification_codes() -> int:
    try:
        removed = (
            VerificationCode.query.filter(
                db.or_(VerificationCode.expires_at < datetime.utcnow(), VerificationCode.consumed_at.isnot(None))
            ).delete(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Verification code sweep failed")
        raise
    return removed
