"""Account lifecycle: registration, credentials, profile edits and admin user management."""
import re
from typing import Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import User, UserRole
from utils.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    PersistenceError,
    ValidationError,
)
from utils.security import password_meets_policy
from utils.verification import consume_code

NICKNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,30}$")


def normalize_email(email) -> str:
    return (email or "").strip().lower()


def validate_nickname(nickname) -> str:
    nickname = (nickname or "").strip()
    if not NICKNAME_PATTERN.match(nickname):
        raise ValidationError("O apelido deve ter entre 3 e 30 caracteres (letras, números, _ . -)")
    return nickname


def nickname_available(nickname: str, exclude_id: Optional[int] = None) -> bool:
    query = User.query.filter(func.lower(User.nickname) == nickname.strip().lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return not db.session.query(query.exists()).scalar()


def email_available(email: str, exclude_id: Optional[int] = None) -> bool:
    query = User.query.filter(User.email == normalize_email(email))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return not db.session.query(query.exists()).scalar()


def _commit(message: str, **context) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning(message, extra=context)
        raise ConflictError("E-mail ou apelido já cadastrado") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(message, extra=context)
        raise PersistenceError("Erro ao salvar usuário") from exc


def register_user(nickname, email, password, verification_code: Optional[str] = None) -> User:
    nickname = validate_nickname(nickname)
    email = normalize_email(email)
    ok, reason = password_meets_policy(password)
    if not ok:
        raise ValidationError(reason)
    if not email_available(email):
        raise ConflictError("E-mail já cadastrado")
    if not nickname_available(nickname):
        raise ConflictError("Apelido já está em uso")

    if current_app.config.get("EMAIL_VERIFICATION_REQUIRED"):
        consume_code(email, (verification_code or "").strip())

    user = User(nickname=nickname, email=email, role=UserRole.USER)
    user.set_password(password)
    db.session.add(user)
    _commit("Failed to register user", email=email)
    current_app.logger.info("User registered", extra={"user_id": user.id})
    return user


def authenticate(email, password) -> User:
    user = User.query.filter_by(email=normalize_email(email)).first()
    if user is None or not user.check_password(password or ""):
        current_app.logger.info("Failed login attempt", extra={"email": normalize_email(email)})
        raise AuthenticationError("E-mail ou senha inválidos")
    if not user.is_active:
        raise PermissionDenied("Conta desativada")
    return user


def update_profile(user: User, nickname=None, email=None, current_password=None, new_password=None) -> User:
    if nickname is not None:
        nickname = validate_nickname(nickname)
        if not nickname_available(nickname, exclude_id=user.id):
            raise ConflictError("Apelido já está em uso")
    if email is not None:
        email = normalize_email(email)
        if not email_available(email, exclude_id=user.id):
            raise ConflictError("E-mail já cadastrado")
    if new_password:
        if not current_password or not user.check_password(current_password):
            raise ValidationError("Senha atual incorreta")
        ok, reason = password_meets_policy(new_password)
        if not ok:
            raise ValidationError(reason)

    if nickname is not None:
        user.nickname = nickname
    if email is not None:
        user.email = email
    if new_password:
        user.set_password(new_password)
    _commit("Failed to update profile", user_id=user.id)
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("Usuário não encontrado")
    return user


def list_users() -> list[User]:
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def delete_user(actor: User, user_id: int) -> None:
    """Remove a non-admin account together with everything it owns."""
    user = get_user(user_id)
    if user.role == UserRole.ADMIN:
        raise PermissionDenied("Não é possível excluir outro administrador")
    if user.id == actor.id:
        raise PermissionDenied("Você não pode excluir a própria conta por aqui")
    db.session.delete(user)
    _commit("Failed to delete user", user_id=user_id)
    current_app.logger.info("User deleted", extra={"user_id": user_id, "admin_id": actor.id})


def change_role(actor: User, user_id: int, role) -> User:
    try:
        new_role = UserRole(role)
    except ValueError:
        raise ValidationError("Papel inválido") from None
    user = get_user(user_id)
    if user.id == actor.id:
        raise PermissionDenied("Você não pode alterar o seu próprio papel")
    user.role = new_role
    _commit("Failed to change role", user_id=user_id)
    current_app.logger.info(
        "User role changed", extra={"user_id": user_id, "role": new_role.value, "admin_id": actor.id}
    )
    return user


def ensure_default_admin(app) -> None:
    """Make sure a default admin exists so the platform can be administered on first run."""
    admin_email = normalize_email(app.config.get("DEFAULT_ADMIN_EMAIL"))
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_user = User.query.filter_by(email=admin_email).first()
    if admin_user:
        if admin_user.role != UserRole.ADMIN or not admin_user.is_active:
            admin_user.role = UserRole.ADMIN
            admin_user.is_active = True
            db.session.commit()
        return

    nickname = app.config.get("DEFAULT_ADMIN_NICKNAME") or "admin"
    if not nickname_available(nickname):
        nickname = f"{nickname}_{admin_email.split('@')[0]}"[:30]
    admin_user = User(nickname=nickname, email=admin_email, role=UserRole.ADMIN, is_active=True)
    admin_user.set_password(admin_password)
    db.session.add(admin_user)
    db.session.commit()
    app.logger.info("Default admin created", extra={"email": admin_email})
