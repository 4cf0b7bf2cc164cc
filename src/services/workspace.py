"""
Workspace - the explicitly constructed set of engines, cache store,
autosave scheduler and backup client for one running application
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from config import settings
from database.cache_store import CacheStore, build_cache_store
from models.backup import BackupPayload, LocalDataDocument
from models.case import Case, CaseCreateRequest
from models.enums import ReportStage
from models.prosecutor import Prosecutor, ProsecutorUpdateRequest
from services.autosave import AutosaveScheduler
from services.backup_service import SupabaseBackupClient
from services.cases_service import CasesService
from services.prosecutors_service import ProsecutorsService
from services.qr_service import decode_case_id
from services.reference_service import CriminalCodeService
from services.reports_service import ReportsService, prosecute
from utils import dates
from utils.errors import DecodeError

logger = logging.getLogger(__name__)


class Workspace:
    """
    Lifecycle: start() -> serve requests -> stop().

    The engines hold the in-memory collections; the autosave scheduler
    writes them back to the cache store after each burst of mutations.
    """

    def __init__(
        self,
        store: CacheStore,
        backup_client: SupabaseBackupClient,
        autosave_debounce: float = 0.5,
        expiring_soon_days: int = 15,
        default_detention_days: int = 30,
    ):
        self.store = store
        self.backup_client = backup_client
        self.autosave = AutosaveScheduler(store, autosave_debounce)
        self.prosecutors = ProsecutorsService(self.autosave)
        self.criminal_code = CriminalCodeService(self.autosave)
        self.cases = CasesService(
            self.autosave,
            prosecutors=self.prosecutors,
            expiring_soon_days=expiring_soon_days,
            default_detention_days=default_detention_days,
        )
        self.reports = ReportsService(
            self.autosave,
            prosecutors=self.prosecutors,
            expiring_soon_days=expiring_soon_days,
        )
        self.started = False

    @classmethod
    def from_settings(cls) -> "Workspace":
        store = build_cache_store(settings.CACHE_BACKEND, settings.DATA_PATH, settings.DATABASE_URL)
        backup_client = SupabaseBackupClient(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            table=settings.BACKUP_TABLE,
            timeout=settings.REMOTE_TIMEOUT_SECONDS,
        )
        return cls(
            store,
            backup_client,
            autosave_debounce=settings.AUTOSAVE_DEBOUNCE_SECONDS,
            expiring_soon_days=settings.EXPIRING_SOON_DAYS,
            default_detention_days=settings.DEFAULT_DETENTION_DAYS,
        )

    @property
    def _engines(self):
        return {
            "prosecutors": self.prosecutors,
            "criminalCodeReference": self.criminal_code,
            "cases": self.cases,
            "reports": self.reports,
        }

    async def start(self) -> None:
        """Open the store and load every collection into memory"""
        await self.store.init()
        await self.store.ready()
        for name, engine in self._engines.items():
            count = engine.load(await self.store.get_all(name))
            logger.info(f"Loaded {count} records from '{name}'")

        linked = self.cases.link_legacy_prosecutors() + self.reports.link_legacy_prosecutors()
        if linked:
            logger.info(f"Linked {linked} records to prosecutors by name")
        self.criminal_code.seed_defaults()
        self.started = True

    async def stop(self) -> None:
        try:
            if self.started and not await self.autosave.flush():
                logger.error(f"Unsaved changes at shutdown: {self.autosave.pending}")
        finally:
            self.started = False
            await self.store.close()
            await self.backup_client.close()

    # Reports -> cases

    def transfer_report(
        self,
        report_id: str,
        stage: ReportStage,
        decision_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Resolve a report. Prosecuting it also opens a new case built from
        the report; the two records are independent afterwards.
        """
        self.reports.ensure_transition(report_id, stage)
        stage = ReportStage(stage)
        if decision_date:
            decision_date = dates.normalize(decision_date)

        created_case: Optional[Case] = None
        if stage == ReportStage.PROSECUTED:
            created_case = self.cases.create_case(self.case_draft(report_id))
            logger.info(f"Report {report_id} prosecuted as case {created_case.id}")
        try:
            updated = self.reports.transfer_report_stage(report_id, stage, decision_date)
        except Exception:
            if created_case:
                self.cases.delete_case(created_case.id)
            raise
        return {"report": updated, "case": created_case}

    def case_draft(self, report_id: str) -> CaseCreateRequest:
        """Case form for prosecuting a report, without a reference to a prosecutor missing locally"""
        draft = prosecute(self.reports.get(report_id))
        if draft.prosecutor_id and not self.prosecutors.exists(draft.prosecutor_id):
            draft = draft.model_copy(update={"prosecutor_id": None})
        return draft

    # Prosecutors

    def update_prosecutor(self, prosecutor_id: str, request: ProsecutorUpdateRequest) -> Prosecutor:
        prosecutor = self.prosecutors.update_prosecutor(prosecutor_id, request)
        changed = self.cases.relink_prosecutor(prosecutor) + self.reports.relink_prosecutor(prosecutor)
        if changed:
            logger.info(f"Renamed prosecutor {prosecutor_id} on {changed} records")
        return prosecutor

    def delete_prosecutor(self, prosecutor_id: str) -> Prosecutor:
        prosecutor = self.prosecutors.delete_prosecutor(prosecutor_id)
        self.cases.unlink_prosecutor(prosecutor_id)
        self.reports.unlink_prosecutor(prosecutor_id)
        return prosecutor

    # QR

    def scan(self, qr_data: str) -> Case:
        return self.cases.get(decode_case_id(qr_data))

    # Remote backup

    async def backup(self, user_id: str, access_token: Optional[str] = None) -> Dict[str, int]:
        payload = {"cases": self.cases.snapshot(), "reports": self.reports.snapshot()}
        await self.backup_client.upload(user_id, payload, access_token)
        return {"cases": len(payload["cases"]), "reports": len(payload["reports"])}

    async def restore(self, user_id: str, access_token: Optional[str] = None) -> Dict[str, int]:
        """
        Replace local cases and reports with the user's cloud backup.

        The backup is validated in full and written to the cache store in
        one step before the in-memory collections are swapped; any failure
        leaves both untouched.
        """
        data = await self.backup_client.download(user_id, access_token)
        payload = _validate(BackupPayload, data, "backup")
        await self._replace_collections({"cases": payload.cases, "reports": payload.reports})
        self.cases.link_legacy_prosecutors()
        self.reports.link_legacy_prosecutors()
        logger.info(f"Restored {len(payload.cases)} cases and {len(payload.reports)} reports for user {user_id}")
        return {"cases": len(payload.cases), "reports": len(payload.reports)}

    # Local JSON export/import

    def export_local_data(self) -> Dict[str, Any]:
        return {
            "cases": self.cases.snapshot(),
            "reports": self.reports.snapshot(),
            "prosecutors": self.prosecutors.snapshot(),
            "criminalCodeReference": self.criminal_code.snapshot(),
        }

    async def import_local_data(self, data: Any) -> Dict[str, int]:
        document = _validate(LocalDataDocument, data, "data file")
        collections = {
            "cases": document.cases,
            "reports": document.reports,
            "prosecutors": document.prosecutors,
            "criminalCodeReference": document.criminal_code_reference,
        }
        await self._replace_collections(collections)
        self.cases.link_legacy_prosecutors()
        self.reports.link_legacy_prosecutors()
        self.criminal_code.seed_defaults()
        return {name: len(items) for name, items in collections.items()}

    async def _replace_collections(self, collections: Dict[str, List[BaseModel]]) -> None:
        names = list(collections)
        await self.autosave.quiesce(names)
        try:
            await self.store.overwrite_many(
                {name: [item.to_record() for item in items] for name, items in collections.items()}
            )
        except Exception:
            self.autosave.resume(names)
            raise
        for name, items in collections.items():
            self._engines[name].replace_all(items)
        self.autosave.clear(names)

    # Status

    def health(self) -> Dict[str, Any]:
        return {
            "cache_ready": self.store.is_ready,
            "cache_backend": type(self.store).__name__,
            "pending_saves": self.autosave.pending,
            "last_save_error": self.autosave.last_error,
            "last_saved_at": self.autosave.last_saved_at,
            "backup_configured": self.backup_client.configured,
            "counts": {name: engine.count() for name, engine in self._engines.items()},
        }


def _validate(model, data: Any, what: str):
    if not isinstance(data, dict):
        raise DecodeError(f"Malformed {what}: expected a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise DecodeError(f"Malformed {what}", {"errors": e.errors(include_url=False, include_context=False, include_input=False)}) from e
