"""
API route tests through the FastAPI test client
"""

import time

import jwt
import pytest

from config import settings
from utils import dates

JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


def _create_case(client, **overrides):
    body = {
        "name": "Vụ cướp tài sản",
        "charges": "Điều 168",
        "investigationDeadline": dates.add_days(dates.today(), 10),
        "prosecutor": "KSV A",
        "defendants": [{"name": "Đỗ Văn F", "preventiveMeasure": "Tạm giam"}],
    }
    body.update(overrides)
    response = client.post("/api/cases", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _create_report(client, **overrides):
    body = {
        "name": "A",
        "charges": "Điều 1",
        "resolutionDeadline": dates.add_days(dates.today(), 5),
        "prosecutor": "X",
    }
    body.update(overrides)
    response = client.post("/api/reports", json=body)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:

    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["cache_ready"] is True
        assert data["backup_configured"] is True
        assert "X-Trace-ID" in response.headers


class TestCaseRoutes:

    def test_create_and_get(self, client):
        created = _create_case(client)
        assert created["stage"] == "Điều tra"
        assert created["createdAt"] == dates.today()
        assert created["defendants"][0]["detentionDeadline"] == dates.add_days(dates.today(), 30)

        fetched = client.get(f"/api/cases/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Vụ cướp tài sản"

    def test_snake_case_input_accepted(self, client):
        response = client.post("/api/cases", json={
            "name": "Vụ đánh bạc",
            "charges": "Điều 321",
            "investigation_deadline": "2030-06-01",
            "prosecutor": "KSV A",
        })
        assert response.status_code == 201
        assert response.json()["investigationDeadline"] == "01/06/2030"

    def test_unknown_case(self, client):
        response = client.get("/api/cases/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "RESOURCE_NOT_FOUND"

    def test_missing_required_field(self, client):
        response = client.post("/api/cases", json={"name": "x", "investigationDeadline": "01/01/2030", "prosecutor": "A"})
        assert response.status_code == 422

    def test_malformed_date(self, client):
        response = client.post("/api/cases", json={
            "name": "x", "charges": "y", "investigationDeadline": "32/01/2030", "prosecutor": "A",
        })
        assert response.status_code == 422

    def test_stage_transfer(self, client):
        case = _create_case(client)
        response = client.post(f"/api/cases/{case['id']}/stage", json={"stage": "Truy tố", "commandDate": "10/03/2024"})
        assert response.status_code == 200
        assert response.json()["prosecutionTransferDate"] == "10/03/2024"

        listed = client.get("/api/cases", params={"stage": "Truy tố"}).json()
        assert [c["id"] for c in listed] == [case["id"]]

    def test_invalid_transition_conflict(self, client):
        case = _create_case(client)
        response = client.post(f"/api/cases/{case['id']}/stage", json={"stage": "Xét xử"})
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_TRANSITION"
        assert client.get(f"/api/cases/{case['id']}").json()["stage"] == "Điều tra"

    def test_important_toggle(self, client):
        case = _create_case(client)
        assert client.post(f"/api/cases/{case['id']}/important", json={}).json()["isImportant"] is True
        assert client.post(f"/api/cases/{case['id']}/important", json={"isImportant": True}).json()["isImportant"] is True

    def test_extension_bounds(self, client):
        case = _create_case(client, investigationDeadline="31/01/2030")
        ok = client.post(f"/api/cases/{case['id']}/extensions", json={"target": "investigation", "amount": 1})
        assert ok.json()["investigationDeadline"] == "28/02/2030"

        too_long = client.post(
            f"/api/cases/{case['id']}/extensions",
            json={"target": "investigation", "amount": 13, "unit": "months"},
        )
        assert too_long.status_code == 400
        assert too_long.json()["error"] == "VALIDATION_ERROR"

    def test_defendant_routes(self, client):
        case = _create_case(client, defendants=[])
        added = client.post(f"/api/cases/{case['id']}/defendants", json={"name": "Vũ Thị G"})
        assert added.status_code == 201
        defendant_id = added.json()["defendants"][0]["id"]

        held = client.put(
            f"/api/cases/{case['id']}/defendants/{defendant_id}/preventive-measure",
            json={"preventiveMeasure": "Tạm giam"},
        ).json()
        assert held["defendants"][0]["detentionDeadline"] == dates.add_days(dates.today(), 30)

        released = client.put(
            f"/api/cases/{case['id']}/defendants/{defendant_id}/preventive-measure",
            json={"preventiveMeasure": "Tại ngoại"},
        ).json()
        assert "detentionDeadline" not in released["defendants"][0] or released["defendants"][0]["detentionDeadline"] is None

        removed = client.delete(f"/api/cases/{case['id']}/defendants/{defendant_id}")
        assert removed.json()["defendants"] == []

    def test_expiring_list(self, client):
        soon = _create_case(client)
        _create_case(client, investigationDeadline=dates.add_days(dates.today(), 20), defendants=[])
        expiring = client.get("/api/cases/expiring").json()
        assert [c["id"] for c in expiring] == [soon["id"]]

    def test_search(self, client):
        _create_case(client)
        _create_case(client, name="Vụ đánh bạc", charges="Điều 321", defendants=[])
        assert len(client.get("/api/cases", params={"search": "đánh bạc"}).json()) == 1
        assert len(client.get("/api/cases", params={"search": "đỗ văn"}).json()) == 1

    def test_qr_and_scan(self, client):
        case = _create_case(client)
        qr = client.get(f"/api/cases/{case['id']}/qr").json()
        assert qr["png_base64"]

        scanned = client.post("/api/cases/scan", json={"qrData": qr["qr_data"]})
        assert scanned.status_code == 200
        assert scanned.json()["id"] == case["id"]

        bad = client.post("/api/cases/scan", json={"qrData": "{broken"})
        assert bad.status_code == 422
        assert bad.json()["error"] == "DECODE_ERROR"

    def test_update_and_delete(self, client):
        case = _create_case(client)
        updated = client.put(f"/api/cases/{case['id']}", json={"notes": "Đã khám nghiệm hiện trường"})
        assert updated.json()["notes"] == "Đã khám nghiệm hiện trường"

        assert client.delete(f"/api/cases/{case['id']}").status_code == 200
        assert client.get(f"/api/cases/{case['id']}").status_code == 404


class TestReportRoutes:

    def test_prosecute_creates_case(self, client):
        report = _create_report(client)
        draft = client.get(f"/api/reports/{report['id']}/case-draft").json()
        assert draft["investigationDeadline"] == dates.today()
        assert draft["defendants"] == []
        assert client.get("/api/cases").json() == []

        result = client.post(f"/api/reports/{report['id']}/stage", json={"stage": "Khởi tố"}).json()
        assert result["report"]["stage"] == "Khởi tố"
        assert result["report"]["prosecutionDate"] == dates.today()
        assert result["case"]["name"] == "A"
        assert result["case"]["stage"] == "Điều tra"
        assert [c["id"] for c in client.get("/api/cases").json()] == [result["case"]["id"]]

    def test_resolved_report_cannot_move_again(self, client):
        report = _create_report(client)
        client.post(f"/api/reports/{report['id']}/stage", json={"stage": "Không khởi tố"})
        response = client.post(f"/api/reports/{report['id']}/stage", json={"stage": "Khởi tố"})
        assert response.status_code == 409
        assert client.get("/api/cases").json() == []

    def test_expiring_reports(self, client):
        report = _create_report(client)
        _create_report(client, resolutionDeadline=dates.add_days(dates.today(), 40))
        assert [r["id"] for r in client.get("/api/reports/expiring").json()] == [report["id"]]


class TestDirectoryRoutes:

    def test_prosecutor_crud_and_rename(self, client):
        created = client.post("/api/prosecutors", json={"name": "KSV A", "title": "Kiểm sát viên"})
        assert created.status_code == 201
        prosecutor = created.json()
        case = _create_case(client, prosecutor=None, prosecutorId=prosecutor["id"])
        assert case["prosecutor"] == "KSV A"

        client.put(f"/api/prosecutors/{prosecutor['id']}", json={"name": "KSV B"})
        assert client.get(f"/api/cases/{case['id']}").json()["prosecutor"] == "KSV B"
        assert [p["name"] for p in client.get("/api/prosecutors", params={"q": "ksv"}).json()] == ["KSV B"]

        assert client.delete(f"/api/prosecutors/{prosecutor['id']}").status_code == 200
        assert "prosecutorId" not in client.get(f"/api/cases/{case['id']}").json() or \
            client.get(f"/api/cases/{case['id']}").json()["prosecutorId"] is None

    def test_unknown_prosecutor_id(self, client):
        response = client.post("/api/cases", json={
            "name": "x", "charges": "y", "investigationDeadline": "01/01/2030", "prosecutorId": "missing",
        })
        assert response.status_code == 400

    def test_criminal_code_search(self, client):
        results = client.get("/api/reference/criminal-code", params={"q": "trộm cắp"}).json()
        assert [r["article"] for r in results] == ["173"]


class TestStatisticsAndExport:

    def test_statistics(self, client):
        _create_case(client)
        _create_report(client)
        cases = client.get("/api/statistics/cases").json()
        assert cases["newCases"] == 1
        assert cases["newDefendants"] == 1
        reports = client.get("/api/statistics/reports", params={"from": "01/01/2020", "to": dates.today()}).json()
        assert reports["total"] == 1

    def test_reversed_range(self, client):
        response = client.get("/api/statistics/cases", params={"from": "02/01/2024", "to": "01/01/2024"})
        assert response.status_code == 400

    def test_excel_export(self, client):
        _create_case(client)
        response = client.get("/api/export/cases")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert response.content[:2] == b"PK"

    def test_empty_export(self, client):
        assert client.get("/api/export/reports").status_code == 400

    def test_statistics_export(self, client):
        response = client.get("/api/export/report-statistics")
        assert response.status_code == 200
        assert "thong-ke-tin-bao" in response.headers["content-disposition"]


class TestBackupRoutes:

    def test_backup_and_restore_as_local_user(self, client, backup_server):
        case = _create_case(client)
        response = client.post("/api/backup")
        assert response.status_code == 200
        assert response.json()["cases"] == 1
        assert "local-user" in backup_server.rows

        client.delete(f"/api/cases/{case['id']}")
        restored = client.post("/api/backup/restore")
        assert restored.status_code == 200
        assert client.get(f"/api/cases/{case['id']}").status_code == 200

    def test_restore_without_backup(self, client):
        assert client.post("/api/backup/restore").status_code == 404

    def test_remote_failure(self, client, backup_server):
        backup_server.fail_with = 503
        response = client.post("/api/backup")
        assert response.status_code == 502
        assert response.json()["error"] == "REMOTE_ERROR"


class TestLocalDataRoutes:

    def test_export_and_import(self, client):
        case = _create_case(client)
        document = client.get("/api/data/export").json()
        assert [c["id"] for c in document["cases"]] == [case["id"]]

        client.delete(f"/api/cases/{case['id']}")
        imported = client.post("/api/data/import", json=document)
        assert imported.status_code == 200
        assert imported.json()["cases"] == 1
        assert client.get(f"/api/cases/{case['id']}").status_code == 200

    def test_import_malformed(self, client):
        response = client.post("/api/data/import", json={"cases": [{"id": "x"}]})
        assert response.status_code == 422


class TestAuthentication:

    @pytest.fixture
    def auth_enabled(self, monkeypatch):
        monkeypatch.setattr(settings, "ENABLE_AUTH", True)
        monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", JWT_SECRET)

    def _token(self, sub="user-9", **overrides):
        claims = {"sub": sub, "aud": "authenticated", "exp": int(time.time()) + 3600}
        claims.update(overrides)
        return jwt.encode(claims, JWT_SECRET, algorithm="HS256")

    def test_missing_token(self, client, auth_enabled):
        assert client.get("/api/cases").status_code == 401

    def test_valid_token(self, client, auth_enabled, backup_server):
        headers = {"Authorization": f"Bearer {self._token()}"}
        assert client.get("/api/cases", headers=headers).status_code == 200

        assert client.post("/api/backup", headers=headers).status_code == 200
        assert "user-9" in backup_server.rows
        assert backup_server.requests[-1].headers["Authorization"] == headers["Authorization"]

    @pytest.mark.parametrize("overrides", [
        {"aud": "anon"},
        {"exp": int(time.time()) - 10},
    ])
    def test_rejected_tokens(self, client, auth_enabled, overrides):
        headers = {"Authorization": f"Bearer {self._token(**overrides)}"}
        assert client.get("/api/cases", headers=headers).status_code == 401

    def test_wrong_secret(self, client, auth_enabled):
        token = jwt.encode(
            {"sub": "user-9", "aud": "authenticated", "exp": int(time.time()) + 60},
            "another-secret-that-is-also-long-enough-123",
            algorithm="HS256",
        )
        assert client.get("/api/cases", headers={"Authorization": f"Bearer {token}"}).status_code == 401
