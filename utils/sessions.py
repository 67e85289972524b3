"""Bearer-token sessions: JWT issuance, per-device session rows and revocation."""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask import current_app, g
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import User, UserSession
from utils.errors import NotFoundError, PersistenceError
from utils.security import hash_value

JWT_ALGORITHM = "HS256"

# Refreshing last_activity on every hit would write on every request.
_ACTIVITY_REFRESH_SECONDS = 60


def _detect_os(user_agent: str) -> str:
    ua = user_agent.lower()
    if "iphone" in ua or "ipad" in ua or "ios" in ua:
        return "iOS"
    if "android" in ua:
        return "Android"
    if "mac os x" in ua or "macintosh" in ua:
        return "macOS"
    if "windows" in ua:
        return "Windows"
    if "cros" in ua:
        return "Chrome OS"
    if "linux" in ua:
        return "Linux"
    return "Sistema desconhecido"


def _detect_browser(user_agent: str) -> str:
    ua = user_agent.lower()
    if "edg" in ua:
        return "Edge"
    if "opr/" in ua or "opera" in ua:
        return "Opera"
    if "firefox" in ua:
        return "Firefox"
    if "chrome" in ua or "crios" in ua:
        return "Chrome"
    if "safari" in ua:
        return "Safari"
    return "Navegador desconhecido"


def _detect_device_type(user_agent: str) -> str:
    ua = user_agent.lower()
    if "ipad" in ua or "tablet" in ua:
        return "tablet"
    if "mobile" in ua or "iphone" in ua or "android" in ua:
        return "mobile"
    return "desktop"


def parse_device_info(user_agent: Optional[str], ip: Optional[str]) -> dict:
    """Summarise a User-Agent header into the device descriptor stored on a session."""
    ua = user_agent or ""
    return {
        "browser": {"name": _detect_browser(ua)},
        "os": {"name": _detect_os(ua)},
        "device": {"type": _detect_device_type(ua)},
        "ip": ip or "Desconhecido",
    }


def _encode(user: User, session_id: int) -> str:
    now = datetime.now(timezone.utc)
    hours = int(current_app.config.get("JWT_EXPIRES_HOURS", 24))
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "sid": session_id,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET_KEY"], algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, current_app.config["JWT_SECRET_KEY"], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Rejected expired bearer token")
    except jwt.InvalidTokenError:
        current_app.logger.warning("Rejected malformed bearer token")
    return None


def issue_session(user: User, user_agent: Optional[str], ip: Optional[str]) -> tuple[str, UserSession]:
    """Create a session row for the user's device and return its signed token."""
    session = UserSession(
        user_id=user.id,
        device_info=parse_device_info(user_agent, ip),
        ip_address=ip,
        last_activity=datetime.utcnow(),
        is_active=True,
    )
    try:
        db.session.add(session)
        db.session.flush()
        token = _encode(user, session.id)
        session.token_hash = hash_value(token)
        user.last_login_at = datetime.utcnow()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to open session", extra={"user_id": user.id})
        raise PersistenceError("Erro ao criar sessão") from exc
    return token, session


def _bearer_token(request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def load_user_from_request(request) -> Optional[User]:
    """Resolve the acting user from a bearer token whose session row is still active."""
    token = _bearer_token(request)
    if not token:
        return None
    claims = decode_token(token)
    if not claims or "sid" not in claims:
        return None

    session = db.session.get(UserSession, claims["sid"])
    if session is None or not session.is_active or session.token_hash != hash_value(token):
        return None
    user = session.user
    if user is None or not user.is_active or str(user.id) != str(claims.get("sub")):
        return None

    now = datetime.utcnow()
    if (now - session.last_activity).total_seconds() > _ACTIVITY_REFRESH_SECONDS:
        session.last_activity = now
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.warning("Could not refresh session activity", extra={"session_id": session.id})

    g.current_session_id = session.id
    return user


def current_session_id() -> Optional[int]:
    return g.get("current_session_id")


def list_devices(user: User) -> list[dict]:
    sessions = (
        UserSession.query.filter_by(user_id=user.id, is_active=True)
        .order_by(UserSession.last_activity.desc(), UserSession.id.desc())
        .all()
    )
    current = current_session_id()
    return [s.public_payload(current_session_id=current) for s in sessions]


def revoke_session(user: User, session_id: int) -> UserSession:
    """Deactivate one of the user's own sessions."""
    session = UserSession.query.filter_by(id=session_id, user_id=user.id, is_active=True).first()
    if session is None:
        raise NotFoundError("Sessão não encontrada")
    session.is_active = False
    session.revoked_at = datetime.utcnow()
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to revoke session", extra={"session_id": session_id})
        raise PersistenceError("Erro ao encerrar sessão") from exc
    return session


def purge_stale_sessions(max_idle_days: int = 30) -> int:
    """Delete sessions, revoked or not, with no activity for ``max_idle_days``."""
    cutoff = datetime.utcnow() - timedelta(days=max_idle_days)
    try:
        removed = UserSession.query.filter(UserSession.last_activity < cutoff).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Stale session sweep failed")
        raise
    return removed
