"""Authentication, verification, profile and device-session blueprint."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from wtforms import IntegerField, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional

from extensions import db
from models import Complaint, User
from utils import accounts, sessions, verification
from utils.activity import log_activity
from utils.email_service import EmailDeliveryError, send_verification_email
from utils.errors import NotFoundError
from utils.forms import JSONForm
from utils.security import client_ip

auth_bp = Blueprint("auth", __name__)


class RegistrationForm(JSONForm):
    nickname = StringField("Apelido", validators=[DataRequired(), Length(min=3, max=30)])
    email = StringField("E-mail", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Senha", validators=[DataRequired(), Length(min=6, max=128)])
    verificationCode = StringField("Código de verificação", validators=[Optional(), Length(min=6, max=6)])


class LoginForm(JSONForm):
    email = StringField("E-mail", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Senha", validators=[DataRequired()])


class EmailForm(JSONForm):
    email = StringField("E-mail", validators=[DataRequired(), Email(), Length(max=255)])


class VerifyCodeForm(JSONForm):
    email = StringField("E-mail", validators=[DataRequired(), Email(), Length(max=255)])
    code = StringField("Código", validators=[DataRequired(), Length(min=6, max=6)])


class ProfileForm(JSONForm):
    nickname = StringField("Apelido", validators=[Optional(), Length(min=3, max=30)])
    email = StringField("E-mail", validators=[Optional(), Email(), Length(max=255)])
    currentPassword = PasswordField("Senha atual", validators=[Optional()])
    newPassword = PasswordField("Nova senha", validators=[Optional(), Length(min=6, max=128)])


class RevokeDeviceForm(JSONForm):
    sessionId = IntegerField("Sessão", validators=[DataRequired()])


@auth_bp.route("/send-verification-code", methods=["POST"])
def send_verification_code():
    form = EmailForm.from_request().validate_or_raise()
    email = accounts.normalize_email(form.email.data)
    if not accounts.email_available(email):
        return jsonify({"error": "E-mail já cadastrado"}), 409

    code = verification.issue_code(email)
    ttl = int(current_app.config.get("VERIFICATION_CODE_TTL_MINUTES", 10))
    try:
        send_verification_email(email, code, ttl)
    except EmailDeliveryError:
        verification.discard_codes(email)
        current_app.logger.warning("Verification email not delivered", extra={"email": email})
        return jsonify({"error": "Erro ao enviar código de verificação"}), 502
    return jsonify({"message": "Código de verificação enviado"})


@auth_bp.route("/verify-code", methods=["POST"])
def verify_code():
    form = VerifyCodeForm.from_request().validate_or_raise()
    verification.check_code(accounts.normalize_email(form.email.data), form.code.data.strip())
    return jsonify({"message": "Código verificado com sucesso", "valid": True})


@auth_bp.route("/register", methods=["POST"])
def register():
    form = RegistrationForm.from_request().validate_or_raise()
    user = accounts.register_user(
        form.nickname.data,
        form.email.data,
        form.password.data,
        verification_code=form.verificationCode.data,
    )
    log_activity(user.id, "register", {"nickname": user.nickname})
    return jsonify({"message": "Usuário registrado com sucesso", "user": user.private_payload()}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    form = LoginForm.from_request().validate_or_raise()
    user = accounts.authenticate(form.email.data, form.password.data)
    token, session = sessions.issue_session(user, request.headers.get("User-Agent"), client_ip())
    log_activity(user.id, "login", {"sessionId": session.id, "device": session.device_info})
    return jsonify({"token": token, "role": user.role.value, "user": user.private_payload()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    session_id = sessions.current_session_id()
    if session_id is not None:
        sessions.revoke_session(current_user, session_id)
    log_activity(current_user.id, "logout", {"sessionId": session_id})
    return jsonify({"message": "Logout realizado com sucesso"})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.private_payload())


@auth_bp.route("/me", methods=["PUT"])
@login_required
def update_me():
    form = ProfileForm.from_request().validate_or_raise()
    user = accounts.update_profile(
        current_user,
        nickname=form.nickname.data or None,
        email=form.email.data or None,
        current_password=form.currentPassword.data or None,
        new_password=form.newPassword.data or None,
    )
    log_activity(user.id, "profile_update", {})
    return jsonify(user.private_payload())


@auth_bp.route("/check-nickname/<nickname>", methods=["GET"])
def check_nickname(nickname: str):
    exclude = current_user.id if current_user.is_authenticated else None
    return jsonify({"available": accounts.nickname_available(nickname, exclude_id=exclude)})


@auth_bp.route("/profile/<nickname>", methods=["GET"])
def public_profile(nickname: str):
    user = User.query.filter(db.func.lower(User.nickname) == nickname.strip().lower()).first()
    if user is None:
        raise NotFoundError("Usuário não encontrado")
    payload = user.public_payload()
    payload["complaintCount"] = Complaint.query.filter_by(user_id=user.id).count()
    return jsonify(payload)


@auth_bp.route("/check-session", methods=["GET"])
@login_required
def check_session():
    return jsonify({"valid": True, "sessionId": sessions.current_session_id(), "user": current_user.private_payload()})


@auth_bp.route("/devices", methods=["GET"])
@login_required
def devices():
    return jsonify(sessions.list_devices(current_user))


@auth_bp.route("/devices/revoke", methods=["POST"])
@login_required
def revoke_device():
    form = RevokeDeviceForm.from_request().validate_or_raise()
    revoked = sessions.revoke_session(current_user, form.sessionId.data)
    log_activity(current_user.id, "device_revoked", {"sessionId": revoked.id})
    return jsonify({"message": "Dispositivo desconectado com sucesso", "sessionId": revoked.id})
