# tests/test_auth_api.py
"""
Testes das rotas de autenticação, perfil e dispositivos
"""
import jwt
import pytest

from extensions import db
from models import ActivityLog, User, UserSession, VerificationCode
from tests.conftest import PASSWORD, auth_headers, login

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
)


def _register(client, **overrides):
    body = {"nickname": "novato", "email": "novato@terraurb.com.br", "password": PASSWORD}
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


class TestRegister:

    def test_register_success(self, app, client):
        resp = _register(client)
        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == "user"
        with app.app_context():
            user = User.query.filter_by(nickname="novato").one()
            assert user.password_hash != PASSWORD
            assert ActivityLog.query.filter_by(user_id=user.id, action="register").count() == 1

    def test_email_is_lowercased(self, app, client):
        assert _register(client, email="Novato@TerraUrb.com.br").status_code == 201
        with app.app_context():
            assert User.query.one().email == "novato@terraurb.com.br"

    def test_duplicate_email(self, client):
        _register(client)
        resp = _register(client, nickname="outro")
        assert resp.status_code == 409

    def test_duplicate_nickname(self, client):
        _register(client)
        resp = _register(client, email="outro@terraurb.com.br")
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "overrides",
        [{"email": "nao-e-email"}, {"password": "123"}, {"nickname": "ab"}, {"nickname": ""}],
    )
    def test_invalid_payload(self, client, overrides):
        assert _register(client, **overrides).status_code == 400

    @pytest.mark.parametrize("field", ["nickname", "email", "password"])
    def test_non_text_fields(self, client, field):
        assert _register(client, **{field: ["lista"]}).status_code == 400

    def test_verification_code_required_when_enabled(self, app, client, monkeypatch):
        app.config["EMAIL_VERIFICATION_REQUIRED"] = True
        sent = {}

        def fake_send(email, code, ttl):
            sent["code"] = code

        monkeypatch.setattr("routes.auth.send_verification_email", fake_send)

        assert _register(client).status_code == 400

        resp = client.post("/api/auth/send-verification-code", json={"email": "novato@terraurb.com.br"})
        assert resp.status_code == 200
        code = sent["code"]
        assert len(code) == 6 and code.isdigit()

        resp = client.post("/api/auth/verify-code", json={"email": "novato@terraurb.com.br", "code": code})
        assert resp.status_code == 200

        assert _register(client, verificationCode=code).status_code == 201
        with app.app_context():
            record = VerificationCode.query.one()
            assert record.consumed_at is not None
            assert record.code_hash != code

    def test_wrong_verification_code(self, app, client, monkeypatch):
        monkeypatch.setattr("routes.auth.send_verification_email", lambda email, code, ttl: None)
        client.post("/api/auth/send-verification-code", json={"email": "novato@terraurb.com.br"})
        resp = client.post("/api/auth/verify-code", json={"email": "novato@terraurb.com.br", "code": "abcdef"})
        assert resp.status_code == 400
        with app.app_context():
            record = VerificationCode.query.one()
            assert record.consumed_at is None

    def test_mail_failure_discards_code(self, app, client):
        resp = client.post("/api/auth/send-verification-code", json={"email": "novato@terraurb.com.br"})
        assert resp.status_code == 502
        with app.app_context():
            assert VerificationCode.query.count() == 0


class TestLogin:

    def test_login_returns_signed_token(self, app, client, account_ids):
        resp = login(client, "cidada")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["role"] == "user"

        claims = jwt.decode(body["token"], app.config["JWT_SECRET_KEY"], algorithms=["HS256"])
        assert claims["sub"] == str(account_ids["user"])
        assert claims["role"] == "user"
        assert claims["exp"] - claims["iat"] == 24 * 3600

    def test_login_creates_session_with_device_info(self, app, client, account_ids):
        login(client, "cidada", user_agent=CHROME_WINDOWS)
        with app.app_context():
            session = UserSession.query.filter_by(user_id=account_ids["user"]).one()
            assert session.is_active
            assert session.device_info["browser"]["name"] == "Chrome"
            assert session.device_info["os"]["name"] == "Windows"
            assert session.device_info["device"]["type"] == "desktop"

    def test_wrong_password(self, client, account_ids):
        resp = login(client, "cidada", password="senha-errada")
        assert resp.status_code == 401
        assert "error" in resp.get_json()

    def test_unknown_email(self, client):
        assert login(client, "ninguem").status_code == 401

    def test_non_text_email(self, client, account_ids):
        resp = client.post("/api/auth/login", json={"email": 5, "password": "qualquer"})
        assert resp.status_code == 400
        assert resp.get_json()["error"].startswith("E-mail")


class TestBearerAuth:

    def test_missing_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["error"]

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nao-e-um-jwt"})
        assert resp.status_code == 401

    def test_token_signed_with_other_key(self, client, account_ids):
        forged = jwt.encode({"sub": str(account_ids["admin"]), "sid": 1}, "outra-chave", algorithm="HS256")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})
        assert resp.status_code == 401

    def test_me(self, client, account_ids):
        headers = auth_headers(client, "cidada")
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["nickname"] == "cidada"
        assert resp.get_json()["email"] == "cidada@terraurb.com.br"

    def test_each_request_resolves_its_own_user(self, client, account_ids):
        first = auth_headers(client, "cidada")
        second = auth_headers(client, "vizinho")
        assert client.get("/api/auth/me", headers=first).get_json()["nickname"] == "cidada"
        assert client.get("/api/auth/me", headers=second).get_json()["nickname"] == "vizinho"

    def test_logout_revokes_token(self, client, account_ids):
        headers = auth_headers(client, "cidada")
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_check_session(self, client, account_ids):
        headers = auth_headers(client, "cidada")
        body = client.get("/api/auth/check-session", headers=headers).get_json()
        assert body["valid"] is True
        assert body["sessionId"]


class TestProfile:

    def test_update_nickname(self, client, account_ids):
        headers = auth_headers(client, "cidada")
        resp = client.put("/api/auth/me", json={"nickname": "cidada2"}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["nickname"] == "cidada2"

    def test_nickname_taken(self, client, account_ids):
        headers = auth_headers(client, "cidada")
        resp = client.put("/api/auth/me", json={"nickname": "vizinho"}, headers=headers)
        assert resp.status_code == 409

    def test_password_change_needs_current_password(self, client, account_ids):
        headers = auth_headers(client, "cidada")
        resp = client.put(
            "/api/auth/me",
            json={"currentPassword": "errada", "newPassword": "nova-senha-456"},
            headers=headers,
        )
        assert resp.status_code == 400

        resp = client.put(
            "/api/auth/me",
            json={"currentPassword": PASSWORD, "newPassword": "nova-senha-456"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert login(client, "cidada", password="nova-senha-456").status_code == 200

    def test_check_nickname(self, client, account_ids):
        assert client.get("/api/auth/check-nickname/cidada").get_json() == {"available": False}
        assert client.get("/api/auth/check-nickname/livre").get_json() == {"available": True}

    def test_public_profile(self, client, account_ids):
        resp = client.get("/api/auth/profile/cidada")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["nickname"] == "cidada"
        assert body["complaintCount"] == 0
        assert "email" not in body

    def test_public_profile_missing(self, client):
        assert client.get("/api/auth/profile/ninguem").status_code == 404


class TestDevices:

    def test_lists_active_sessions_and_flags_current(self, client, account_ids):
        login(client, "cidada", user_agent=SAFARI_IPHONE)
        headers = auth_headers(client, "cidada")

        devices = client.get("/api/auth/devices", headers=headers).get_json()
        assert len(devices) == 2
        assert sum(1 for d in devices if d["isCurrent"]) == 1
        assert any(d["deviceInfo"]["os"]["name"] == "iOS" for d in devices)

    def test_revoke_other_device(self, app, client, account_ids):
        phone_token = login(client, "cidada", user_agent=SAFARI_IPHONE).get_json()["token"]
        headers = auth_headers(client, "cidada")
        phone = next(
            d for d in client.get("/api/auth/devices", headers=headers).get_json() if not d["isCurrent"]
        )

        resp = client.post("/api/auth/devices/revoke", json={"sessionId": phone["id"]}, headers=headers)
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {phone_token}"}).status_code == 401
        assert client.get("/api/auth/me", headers=headers).status_code == 200

    def test_cannot_revoke_someone_elses_session(self, app, client, account_ids):
        login(client, "vizinho")
        with app.app_context():
            other_session = UserSession.query.filter_by(user_id=account_ids["other"]).one().id
        headers = auth_headers(client, "cidada")
        resp = client.post("/api/auth/devices/revoke", json={"sessionId": other_session}, headers=headers)
        assert resp.status_code == 404
        with app.app_context():
            assert db.session.get(UserSession, other_session).is_active
