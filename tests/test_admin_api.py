# tests/test_admin_api.py
"""
Testes HTTP de denúncias de abuso, administração de usuários e estatísticas
"""
from extensions import db
from models import ActivityLog, Complaint, Report, User, UserRole, UserSession
from tests.conftest import auth_headers, create_complaint


def _report(client, headers, target_type, target_id, reason="Conteúdo impróprio"):
    return client.post(
        "/api/reports",
        json={"type": target_type, "targetId": target_id, "reason": reason},
        headers=headers,
    )


class TestReportEndpoints:

    def test_submit_and_duplicate(self, client, account_ids):
        complaint = create_complaint(client, auth_headers(client, "cidada"))
        neighbour = auth_headers(client, "vizinho")

        resp = _report(client, neighbour, "complaint", complaint["id"])
        assert resp.status_code == 201
        assert resp.get_json()["status"] == "Pendente"
        assert _report(client, neighbour, "complaint", complaint["id"]).status_code == 409

    def test_reason_required(self, client, account_ids):
        complaint = create_complaint(client, auth_headers(client, "cidada"))
        neighbour = auth_headers(client, "vizinho")
        assert _report(client, neighbour, "complaint", complaint["id"], reason="").status_code == 400
        assert _report(client, neighbour, "complaint", complaint["id"], reason=5).status_code == 400

    def test_fractional_target_id_rejected(self, app, client, account_ids):
        complaint = create_complaint(client, auth_headers(client, "cidada"))
        neighbour = auth_headers(client, "vizinho")
        assert _report(client, neighbour, "complaint", complaint["id"] + 0.9).status_code == 400
        with app.app_context():
            assert Report.query.count() == 0

    def test_unknown_type_and_missing_target(self, client, account_ids):
        neighbour = auth_headers(client, "vizinho")
        assert _report(client, neighbour, "user", 1).status_code == 400
        assert _report(client, neighbour, "comment", 999).status_code == 404

    def test_listing_is_admin_only(self, client, account_ids):
        for nickname in ("cidada", "prefeitura"):
            assert client.get("/api/reports", headers=auth_headers(client, nickname)).status_code == 403

    def test_admin_triage_flow(self, app, client, account_ids):
        complaint = create_complaint(client, auth_headers(client, "cidada"))
        report_id = _report(client, auth_headers(client, "vizinho"), "complaint", complaint["id"]).get_json()["id"]
        admin = auth_headers(client, "admin_geral")

        [listed] = client.get("/api/reports?status=Pendente", headers=admin).get_json()
        assert listed["target"]["title"] == complaint["title"]
        assert listed["targetDeleted"] is False

        resp = client.patch(
            f"/api/reports/{report_id}", json={"status": "resolved", "adminNote": "Removida"}, headers=admin
        )
        assert resp.status_code == 200
        assert resp.get_json()["resolvedBy"]["nickname"] == "admin_geral"
        assert client.get("/api/reports?status=Pendente", headers=admin).get_json() == []

        resp = client.put(f"/api/reports/{report_id}", json={"status": "dismissed"}, headers=admin)
        assert resp.status_code == 409

    def test_delete_reported_content(self, app, client, account_ids):
        complaint = create_complaint(client, auth_headers(client, "cidada"))
        report_id = _report(client, auth_headers(client, "vizinho"), "complaint", complaint["id"]).get_json()["id"]
        admin = auth_headers(client, "admin_geral")

        assert client.delete(f"/api/reports/{report_id}/content", headers=admin).status_code == 204
        with app.app_context():
            assert db.session.get(Complaint, complaint["id"]) is None
            assert db.session.get(Report, report_id) is not None

        [listed] = client.get("/api/reports", headers=admin).get_json()
        assert listed["targetDeleted"] is True

        assert client.delete(f"/api/reports/{report_id}", headers=admin).status_code == 204
        assert client.get("/api/reports", headers=admin).get_json() == []


class TestUserAdministration:

    def test_list_users_with_counts(self, client, account_ids):
        create_complaint(client, auth_headers(client, "cidada"))
        admin = auth_headers(client, "admin_geral")
        users = {u["nickname"]: u for u in client.get("/api/admin/users", headers=admin).get_json()}
        assert set(users) == {"cidada", "vizinho", "admin_geral", "prefeitura"}
        assert users["cidada"]["complaintCount"] == 1
        assert users["vizinho"]["complaintCount"] == 0

    def test_non_admin_gets_403_and_attempt_is_logged(self, app, client, account_ids):
        citizen = auth_headers(client, "cidada")
        assert client.get("/api/admin/users", headers=citizen).status_code == 403
        with app.app_context():
            assert ActivityLog.query.filter_by(user_id=account_ids["user"], action="unauthorized_access").count() == 1

    def test_change_role(self, app, client, account_ids):
        admin = auth_headers(client, "admin_geral")
        resp = client.patch(f"/api/admin/users/{account_ids['user']}/role", json={"role": "city_hall"}, headers=admin)
        assert resp.status_code == 200
        assert resp.get_json()["role"] == "city_hall"
        with app.app_context():
            assert db.session.get(User, account_ids["user"]).role == UserRole.CITY_HALL

    def test_change_role_rejects_unknown_role_and_self(self, client, account_ids):
        admin = auth_headers(client, "admin_geral")
        resp = client.patch(f"/api/admin/users/{account_ids['user']}/role", json={"role": "rei"}, headers=admin)
        assert resp.status_code == 400
        resp = client.patch(f"/api/admin/users/{account_ids['admin']}/role", json={"role": "user"}, headers=admin)
        assert resp.status_code == 403

    def test_delete_user_cascades(self, app, client, account_ids):
        citizen = auth_headers(client, "cidada")
        complaint = create_complaint(client, citizen)
        admin = auth_headers(client, "admin_geral")

        assert client.delete(f"/api/admin/users/{account_ids['user']}", headers=admin).status_code == 204
        with app.app_context():
            assert db.session.get(User, account_ids["user"]) is None
            assert db.session.get(Complaint, complaint["id"]) is None
            assert UserSession.query.filter_by(user_id=account_ids["user"]).count() == 0
        assert client.get("/api/auth/me", headers=citizen).status_code == 401

    def test_admin_accounts_cannot_be_deleted(self, client, account_ids):
        admin = auth_headers(client, "admin_geral")
        assert client.delete(f"/api/admin/users/{account_ids['admin']}", headers=admin).status_code == 403

    def test_moderation_delete_of_comment(self, client, account_ids):
        complaint = create_complaint(client, auth_headers(client, "cidada"))
        comment = client.post(
            "/api/comments",
            json={"complaintId": complaint["id"], "content": "Spam"},
            headers=auth_headers(client, "vizinho"),
        ).get_json()
        admin = auth_headers(client, "admin_geral")
        assert client.delete(f"/api/admin/comments/{comment['id']}", headers=admin).status_code == 204
        assert client.delete(f"/api/admin/comments/{comment['id']}", headers=admin).status_code == 404

    def test_activity_log_feed(self, client, account_ids):
        create_complaint(client, auth_headers(client, "cidada"))
        admin = auth_headers(client, "admin_geral")
        actions = [entry["action"] for entry in client.get("/api/admin/activity-logs", headers=admin).get_json()]
        assert actions[0] == "login"
        assert "complaint_created" in actions


class TestStats:

    def test_counts(self, client, account_ids):
        first = create_complaint(client, auth_headers(client, "cidada"))
        create_complaint(client, auth_headers(client, "vizinho"))
        admin = auth_headers(client, "admin_geral")
        client.patch(f"/api/complaints/{first['id']}/status", json={"status": "Resolvido"}, headers=admin)

        body = client.get("/api/stats").get_json()
        assert body["totalUsers"] == 4
        assert body["totalComplaints"] == 2
        assert body["resolvedComplaints"] == 1
        assert body["totalComments"] == 0
        assert body["byStatus"]["Em Análise"] == 1
        assert body["byStatus"]["Cancelado"] == 0

    def test_health(self, client):
        assert client.get("/api/health").get_json() == {"status": "ok"}


class TestApiDocs:

    def test_openapi_document_lists_routes(self, client):
        resp = client.get("/api/docs/openapi.json")
        assert resp.status_code == 200
        doc = resp.get_json()
        assert doc["openapi"].startswith("3.")
        assert doc["components"]["securitySchemes"]["bearerAuth"]["scheme"] == "bearer"

        status_route = doc["paths"]["/api/complaints/{complaint_id}/status"]
        assert "patch" in status_route
        assert status_route["patch"]["parameters"][0] == {
            "name": "complaint_id",
            "in": "path",
            "required": True,
            "schema": {"type": "integer"},
        }
        assert set(doc["paths"]["/api/reports/{report_id}"]) == {"put", "patch", "delete"}
        assert "/api/docs/openapi.json" in doc["paths"]
