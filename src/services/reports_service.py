"""
Reports service - incident report lifecycle engine
"""

import logging
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional

from models.case import CaseCreateRequest
from models.enums import ReportStage
from models.report import Report, ReportCreateRequest, ReportSearchQuery, ReportUpdateRequest
from services.autosave import AutosaveScheduler
from services.base_service import ProsecutorLinkedService, new_id
from services.prosecutors_service import ProsecutorsService
from utils import dates
from utils.errors import InvalidTransitionError, ValidationError

logger = logging.getLogger(__name__)

REPORT_TRANSITIONS: Dict[ReportStage, FrozenSet[ReportStage]] = {
    ReportStage.PENDING: frozenset({
        ReportStage.PROSECUTED,
        ReportStage.NOT_PROSECUTED,
        ReportStage.SUSPENDED,
        ReportStage.TRANSFERRED,
    }),
    ReportStage.PROSECUTED: frozenset(),
    ReportStage.NOT_PROSECUTED: frozenset(),
    ReportStage.SUSPENDED: frozenset(),
    ReportStage.TRANSFERRED: frozenset(),
}


def prosecute(report: Report) -> CaseCreateRequest:
    """
    Build the case form for prosecuting a report.

    Name, charges, prosecutor and notes carry over; the investigation
    deadline starts at today and there are no defendants yet. Nothing is
    stored.
    """
    return CaseCreateRequest(
        name=report.name,
        charges=report.charges,
        investigation_deadline=dates.today(),
        prosecutor=report.prosecutor,
        prosecutor_id=report.prosecutor_id,
        notes=report.notes,
        defendants=[],
    )


class ReportsService(ProsecutorLinkedService[Report]):
    """Service for incident report operations"""

    collection = "reports"
    model = Report
    label = "report"

    def __init__(
        self,
        autosave: Optional[AutosaveScheduler] = None,
        prosecutors: Optional[ProsecutorsService] = None,
        expiring_soon_days: int = dates.EXPIRING_SOON_DAYS,
    ):
        super().__init__(autosave, prosecutors)
        self.expiring_soon_days = expiring_soon_days

    def create_report(self, form: ReportCreateRequest) -> Report:
        prosecutor, prosecutor_id = self._resolve_prosecutor(form.prosecutor, form.prosecutor_id)
        report = Report(
            id=new_id(),
            name=form.name,
            charges=form.charges,
            resolution_deadline=form.resolution_deadline,
            prosecutor=prosecutor,
            prosecutor_id=prosecutor_id,
            notes=form.notes,
            stage=ReportStage.PENDING,
            created_at=dates.today(),
        )
        logger.info(f"Creating report {report.id}: {report.name}")
        return self._store(report)

    def update_report(self, report_id: str, patch: ReportUpdateRequest) -> Report:
        current = self.get(report_id)
        updates = patch.model_dump(exclude_unset=True)
        if not updates:
            raise ValidationError("No fields provided for update")
        for required in ("name", "charges", "resolution_deadline"):
            if required in updates and updates[required] is None:
                raise ValidationError(f"Field '{required}' cannot be cleared")

        if "prosecutor" in updates or "prosecutor_id" in updates:
            name, prosecutor_id = self._resolve_prosecutor(
                updates.get("prosecutor", current.prosecutor),
                updates.get("prosecutor_id"),
            )
            updates["prosecutor"] = name
            updates["prosecutor_id"] = prosecutor_id

        updated = current.model_copy(update=updates)
        if updated.stage == ReportStage.PROSECUTED and not updated.prosecution_date:
            raise ValidationError("prosecutionDate is required for a prosecuted report")
        logger.info(f"Updated report {report_id}")
        return self._store(updated)

    def delete_report(self, report_id: str) -> Report:
        report = self._remove(report_id)
        logger.info(f"Deleted report {report_id} ({report.name})")
        return report

    # Stage workflow

    def ensure_transition(self, report_id: str, new_stage: ReportStage) -> Report:
        """Return the report if it may move to new_stage, else raise InvalidTransitionError"""
        current = self.get(report_id)
        try:
            new_stage = ReportStage(new_stage)
        except ValueError:
            raise InvalidTransitionError(current.stage.value, str(new_stage), entity="report")
        if new_stage not in REPORT_TRANSITIONS[current.stage]:
            raise InvalidTransitionError(current.stage.value, new_stage.value, entity="report")
        return current

    def transfer_report_stage(
        self,
        report_id: str,
        new_stage: ReportStage,
        decision_date: Optional[str] = None,
    ) -> Report:
        """
        Resolve a pending report.

        Prosecuted records prosecutionDate; every other outcome records
        resolutionDate. Dates already present are kept.
        """
        current = self.ensure_transition(report_id, new_stage)
        new_stage = ReportStage(new_stage)
        decided = dates.normalize(decision_date) if decision_date else dates.today()

        updates = {"stage": new_stage}
        if new_stage == ReportStage.PROSECUTED:
            if not current.prosecution_date:
                updates["prosecution_date"] = decided
        elif not current.resolution_date:
            updates["resolution_date"] = decided

        logger.info(f"Report {report_id} moved from '{current.stage.value}' to '{new_stage.value}'")
        return self._store(current.model_copy(update=updates))

    # Listing

    def is_report_expiring(self, report: Report, reference: Optional[date] = None) -> bool:
        return (
            report.stage == ReportStage.PENDING
            and dates.is_expiring_soon(report.resolution_deadline, self.expiring_soon_days, reference)
        )

    def get_expiring_soon_reports(self) -> List[Report]:
        return self.sort_reports(r for r in self.list() if self.is_report_expiring(r))

    def search_reports(self, query: Optional[ReportSearchQuery] = None) -> List[Report]:
        query = query or ReportSearchQuery()
        reports = self.list()
        if query.stage:
            reports = [r for r in reports if r.stage == query.stage]
        if query.prosecutor:
            reports = [r for r in reports if r.prosecutor == query.prosecutor]
        if query.search and query.search.strip():
            term = query.search.strip().lower()
            reports = [r for r in reports if term in r.name.lower() or term in r.charges.lower()]
        if query.expiring_soon:
            reports = [r for r in reports if self.is_report_expiring(r)]
        return self.sort_reports(reports)

    @staticmethod
    def sort_reports(reports: Iterable[Report]) -> List[Report]:
        """Pending reports by closest resolution deadline; others keep their order"""
        def key(report: Report):
            if report.stage != ReportStage.PENDING:
                return (1, 0)
            return (0, dates.days_remaining(report.resolution_deadline))
        return sorted(reports, key=key)
