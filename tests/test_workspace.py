"""
Workspace lifecycle, backup/restore and local data tests
"""

import asyncio
import json

import httpx
import pytest

from conftest import build_workspace, case_form, report_form
from database.cache_store import JsonFileCacheStore
from models.enums import CaseStage, ReportStage
from models.prosecutor import ProsecutorCreateRequest, ProsecutorUpdateRequest
from utils import dates
from utils.errors import DecodeError, InvalidTransitionError, NotFoundError, PersistenceError, RemoteError


def _case_record(case_id="c1", name="Vụ khôi phục"):
    return {
        "id": case_id,
        "name": name,
        "charges": "Điều 174",
        "investigationDeadline": "01/06/2030",
        "prosecutor": "KSV X",
        "stage": CaseStage.INVESTIGATION.value,
        "defendants": [],
        "createdAt": "2024-01-15",
    }


def _report_record(report_id="r1", prosecutor="KSV X", prosecutor_id=None):
    record = {
        "id": report_id,
        "name": "Tin báo khôi phục",
        "charges": "Điều 173",
        "resolutionDeadline": "01/06/2030",
        "prosecutor": prosecutor,
        "stage": ReportStage.PENDING.value,
        "createdAt": "15/01/2024",
    }
    if prosecutor_id:
        record["prosecutorId"] = prosecutor_id
    return record


class FailingOverwriteStore(JsonFileCacheStore):
    fail_overwrite = False

    async def _overwrite_many(self, staged):
        if self.fail_overwrite:
            raise OSError("disk full")
        await super()._overwrite_many(staged)


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_seeds_reference_table(self, workspace):
        assert workspace.criminal_code.count() > 0
        assert workspace.health()["cache_ready"] is True

    @pytest.mark.asyncio
    async def test_changes_persist_across_restart(self, data_path, backup_server):
        ws = build_workspace(data_path, backup_server)
        await ws.start()
        case = ws.cases.create_case(case_form())
        ws.reports.create_report(report_form())
        await ws.stop()

        reopened = build_workspace(data_path, backup_server)
        await reopened.start()
        assert reopened.cases.get_case(case.id) == case
        assert reopened.reports.count() == 1
        await reopened.stop()

    @pytest.mark.asyncio
    async def test_autosave_writes_after_debounce(self, workspace):
        workspace.cases.create_case(case_form())
        await asyncio.sleep(0.1)
        await workspace.autosave.quiesce()
        assert len(await workspace.store.get_all("cases")) == 1

    @pytest.mark.asyncio
    async def test_legacy_prosecutor_names_linked_on_start(self, data_path, backup_server):
        ws = build_workspace(data_path, backup_server)
        await ws.start()
        ksv = ws.prosecutors.create_prosecutor(ProsecutorCreateRequest(name="KSV X", title="Kiểm sát viên"))
        await ws.stop()

        store = JsonFileCacheStore(data_path)
        await store.init()
        await store.overwrite_all("cases", [_case_record()])
        await store.close()

        reopened = build_workspace(data_path, backup_server)
        await reopened.start()
        assert reopened.cases.get_case("c1").prosecutor_id == ksv.id
        await reopened.stop()

    @pytest.mark.asyncio
    async def test_malformed_stored_record_fails_start(self, data_path, backup_server):
        store = JsonFileCacheStore(data_path)
        await store.init()
        bad = _case_record()
        bad["investigationDeadline"] = "31/02/2024"
        await store.overwrite_all("cases", [bad])
        await store.close()

        ws = build_workspace(data_path, backup_server)
        with pytest.raises(DecodeError):
            await ws.start()


class TestReportProsecution:

    @pytest.mark.asyncio
    async def test_prosecuting_creates_independent_case(self, workspace):
        report = workspace.reports.create_report(report_form(name="A", charges="Điều 1", prosecutor="X"))
        result = workspace.transfer_report(report.id, ReportStage.PROSECUTED)

        case = result["case"]
        assert result["report"].stage == ReportStage.PROSECUTED
        assert case.name == "A"
        assert case.charges == "Điều 1"
        assert case.prosecutor == "X"
        assert case.stage == CaseStage.INVESTIGATION
        assert case.investigation_deadline == dates.today()
        assert case.defendants == []
        assert case.id != report.id
        assert workspace.cases.count() == 1

    @pytest.mark.asyncio
    async def test_other_outcomes_create_no_case(self, workspace):
        report = workspace.reports.create_report(report_form())
        result = workspace.transfer_report(report.id, ReportStage.TRANSFERRED)
        assert result["case"] is None
        assert workspace.cases.count() == 0

    @pytest.mark.asyncio
    async def test_rejected_transition_creates_no_case(self, workspace):
        report = workspace.reports.create_report(report_form())
        workspace.transfer_report(report.id, ReportStage.SUSPENDED)
        with pytest.raises(InvalidTransitionError):
            workspace.transfer_report(report.id, ReportStage.PROSECUTED)
        assert workspace.cases.count() == 0

    @pytest.mark.asyncio
    async def test_invalid_decision_date_creates_no_case(self, workspace):
        report = workspace.reports.create_report(report_form())
        with pytest.raises(DecodeError):
            workspace.transfer_report(report.id, ReportStage.PROSECUTED, "31/02/2025")
        assert workspace.cases.count() == 0
        assert workspace.reports.get(report.id).stage == ReportStage.PENDING

    @pytest.mark.asyncio
    async def test_failed_report_update_removes_created_case(self, workspace, monkeypatch):
        report = workspace.reports.create_report(report_form())

        def fail(*args, **kwargs):
            raise PersistenceError("write failed")

        monkeypatch.setattr(workspace.reports, "transfer_report_stage", fail)
        with pytest.raises(PersistenceError):
            workspace.transfer_report(report.id, ReportStage.PROSECUTED)
        assert workspace.cases.count() == 0

    @pytest.mark.asyncio
    async def test_unknown_stage_name_creates_no_case(self, workspace):
        report = workspace.reports.create_report(report_form())
        with pytest.raises(InvalidTransitionError):
            workspace.transfer_report(report.id, "Nonsense")
        assert workspace.cases.count() == 0


class TestProsecutorPropagation:

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, workspace):
        ksv = workspace.prosecutors.create_prosecutor(ProsecutorCreateRequest(name="KSV X", title="Kiểm sát viên"))
        case = workspace.cases.create_case(case_form(prosecutor=None, prosecutor_id=ksv.id))
        report = workspace.reports.create_report(report_form(prosecutor="KSV X"))

        workspace.update_prosecutor(ksv.id, ProsecutorUpdateRequest(name="KSV Y"))
        assert workspace.cases.get_case(case.id).prosecutor == "KSV Y"
        assert workspace.reports.get(report.id).prosecutor == "KSV Y"

        workspace.delete_prosecutor(ksv.id)
        assert workspace.cases.get_case(case.id).prosecutor_id is None
        assert workspace.reports.get(report.id).prosecutor == "KSV Y"


class TestBackupRestore:

    @pytest.mark.asyncio
    async def test_backup_uploads_cases_and_reports(self, workspace, backup_server):
        workspace.cases.create_case(case_form())
        counts = await workspace.backup("user-1", "user-token")

        assert counts == {"cases": 1, "reports": 0}
        request = backup_server.requests[-1]
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["Authorization"] == "Bearer user-token"
        assert "merge-duplicates" in request.headers["Prefer"]
        assert request.url.params["on_conflict"] == "user_id"
        assert len(backup_server.rows["user-1"]["cases"]) == 1

    @pytest.mark.asyncio
    async def test_restore_replaces_non_empty_cache(self, workspace, backup_server):
        workspace.cases.create_case(case_form(name="local 1"))
        workspace.cases.create_case(case_form(name="local 2"))
        workspace.reports.create_report(report_form())
        backup_server.rows["user-1"] = {"cases": [_case_record("c1")], "reports": []}

        await workspace.restore("user-1")

        stored = await workspace.store.get_all("cases")
        assert [r["id"] for r in stored] == ["c1"]
        assert await workspace.store.get_all("reports") == []
        assert [c.id for c in workspace.cases.list()] == ["c1"]
        assert workspace.reports.list() == []
        assert workspace.cases.get_case("c1").created_at == "15/01/2024"

    @pytest.mark.asyncio
    async def test_restored_prosecutor_ids_from_another_install(self, workspace, backup_server):
        backup_server.rows["user-1"] = {
            "cases": [dict(_case_record("c1"), prosecutorId="foreign-id")],
            "reports": [_report_record("r1", prosecutor_id="foreign-id")],
        }

        await workspace.restore("user-1")
        assert workspace.prosecutors.count() == 0
        assert workspace.cases.get_case("c1").prosecutor_id is None
        assert workspace.reports.get("r1").prosecutor_id is None

        result = workspace.transfer_report("r1", ReportStage.PROSECUTED)
        assert result["report"].stage == ReportStage.PROSECUTED
        assert result["case"].prosecutor == "KSV X"
        assert workspace.cases.count() == 2

    @pytest.mark.asyncio
    async def test_restored_prosecutor_id_relinked_by_name(self, workspace, backup_server):
        ksv = workspace.prosecutors.create_prosecutor(ProsecutorCreateRequest(name="KSV X", title="Kiểm sát viên"))
        backup_server.rows["user-1"] = {"cases": [], "reports": [_report_record("r1", prosecutor_id="foreign-id")]}

        await workspace.restore("user-1")
        assert workspace.reports.get("r1").prosecutor_id == ksv.id
        assert workspace.case_draft("r1").prosecutor_id == ksv.id

    @pytest.mark.asyncio
    async def test_backup_then_restore(self, workspace):
        case = workspace.cases.create_case(case_form())
        await workspace.backup("user-1")
        workspace.cases.delete_case(case.id)

        await workspace.restore("user-1")
        assert workspace.cases.get_case(case.id) == case

    @pytest.mark.asyncio
    async def test_missing_backup(self, workspace):
        with pytest.raises(NotFoundError):
            await workspace.restore("nobody")

    @pytest.mark.asyncio
    async def test_malformed_backup_changes_nothing(self, workspace, backup_server):
        local = workspace.cases.create_case(case_form())
        backup_server.rows["user-1"] = {"cases": [_case_record("c1"), {"id": "broken"}], "reports": []}

        with pytest.raises(DecodeError):
            await workspace.restore("user-1")
        assert [c.id for c in workspace.cases.list()] == [local.id]

    @pytest.mark.asyncio
    async def test_remote_failures(self, workspace, backup_server):
        backup_server.fail_with = 401
        with pytest.raises(RemoteError):
            await workspace.backup("user-1")

        backup_server.fail_with = 500
        with pytest.raises(RemoteError):
            await workspace.restore("user-1")

        backup_server.fail_with = httpx.ReadTimeout("timed out")
        with pytest.raises(RemoteError):
            await workspace.restore("user-1")

    @pytest.mark.asyncio
    async def test_unconfigured_backup(self, data_path, backup_server):
        ws = build_workspace(data_path, backup_server)
        ws.backup_client.base_url = ""
        await ws.start()
        with pytest.raises(RemoteError):
            await ws.backup("user-1")
        await ws.stop()

    @pytest.mark.asyncio
    async def test_failed_local_write_rolls_back(self, data_path, backup_server):
        store = FailingOverwriteStore(data_path)
        ws = build_workspace(data_path, backup_server, store=store)
        await ws.start()
        local = ws.cases.create_case(case_form())
        await ws.autosave.flush()

        backup_server.rows["user-1"] = {"cases": [_case_record("c1")], "reports": []}
        store.fail_overwrite = True
        with pytest.raises(PersistenceError):
            await ws.restore("user-1")

        assert [c.id for c in ws.cases.list()] == [local.id]
        assert [r["id"] for r in await store.get_all("cases")] == [local.id]
        store.fail_overwrite = False
        await ws.stop()


class TestLocalData:

    @pytest.mark.asyncio
    async def test_export_then_import(self, workspace):
        case = workspace.cases.create_case(case_form())
        workspace.prosecutors.create_prosecutor(ProsecutorCreateRequest(name="KSV X", title="Kiểm sát viên"))
        document = json.loads(json.dumps(workspace.export_local_data()))

        workspace.cases.delete_case(case.id)
        counts = await workspace.import_local_data(document)

        assert counts["cases"] == 1
        assert counts["prosecutors"] == 1
        assert workspace.cases.get_case(case.id) == case
        assert len(await workspace.store.get_all("prosecutors")) == 1

    @pytest.mark.asyncio
    async def test_import_rejects_non_object(self, workspace):
        with pytest.raises(DecodeError):
            await workspace.import_local_data(["not", "a", "document"])
