"""
Cases service - case lifecycle engine

Owns the Case entity, its stage transitions, deadline extensions and the
defendants' preventive-measure sub-lifecycle.
"""

import logging
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional

from models.case import Case, CaseCreateRequest, CaseSearchQuery, CaseUpdateRequest, Defendant, DefendantInput
from models.enums import CaseStage, DeadlineTarget, ExtensionUnit, PreventiveMeasure
from services.autosave import AutosaveScheduler
from services.base_service import ProsecutorLinkedService, new_id
from services.prosecutors_service import ProsecutorsService
from utils import dates
from utils.errors import InvalidTransitionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_EXIT_STAGES = frozenset({CaseStage.TRANSFERRED, CaseStage.SUSPENDED, CaseStage.DISCONTINUED})

# Allowed next stages; terminal stages have none
CASE_TRANSITIONS: Dict[CaseStage, FrozenSet[CaseStage]] = {
    CaseStage.INVESTIGATION: frozenset({CaseStage.PROSECUTION}) | _EXIT_STAGES,
    CaseStage.PROSECUTION: frozenset({CaseStage.TRIAL}) | _EXIT_STAGES,
    CaseStage.TRIAL: frozenset({CaseStage.COMPLETED}) | _EXIT_STAGES,
    CaseStage.COMPLETED: frozenset(),
    CaseStage.TRANSFERRED: frozenset(),
    CaseStage.SUSPENDED: frozenset(),
    CaseStage.DISCONTINUED: frozenset(),
}

TERMINAL_CASE_STAGES = frozenset(stage for stage, nxt in CASE_TRANSITIONS.items() if not nxt)

EXTENSION_LIMITS = {
    ExtensionUnit.DAYS: 365,
    ExtensionUnit.MONTHS: 12,
}


class CasesService(ProsecutorLinkedService[Case]):
    """Service for case management operations"""

    collection = "cases"
    model = Case
    label = "case"

    def __init__(
        self,
        autosave: Optional[AutosaveScheduler] = None,
        prosecutors: Optional[ProsecutorsService] = None,
        expiring_soon_days: int = dates.EXPIRING_SOON_DAYS,
        default_detention_days: int = 30,
    ):
        super().__init__(autosave, prosecutors)
        self.expiring_soon_days = expiring_soon_days
        self.default_detention_days = default_detention_days

    # CRUD

    def create_case(self, form: CaseCreateRequest) -> Case:
        """
        Create a new case in the investigation stage

        Args:
            form: Case form data; required fields are checked by the model

        Returns:
            The stored case with fresh case and defendant ids
        """
        prosecutor, prosecutor_id = self._resolve_prosecutor(form.prosecutor, form.prosecutor_id)
        case = Case(
            id=new_id(),
            name=form.name,
            charges=form.charges,
            investigation_deadline=form.investigation_deadline,
            prosecutor=prosecutor,
            prosecutor_id=prosecutor_id,
            supporting_prosecutors=list(form.supporting_prosecutors),
            notes=form.notes,
            stage=CaseStage.INVESTIGATION,
            defendants=[self._new_defendant(d, keep_id=False) for d in form.defendants],
            created_at=dates.today(),
            is_important=False,
        )
        logger.info(f"Creating case {case.id}: {case.name}")
        return self._store(case)

    def get_case(self, case_id: str) -> Case:
        return self.get(case_id)

    def update_case(self, case_id: str, patch: CaseUpdateRequest) -> Case:
        """
        Apply submitted form fields to an existing case

        Stage, creation date and importance are not editable here.

        Raises:
            NotFoundError: unknown case id
            ValidationError: empty patch or a patch that breaks a stage invariant
        """
        current = self.get(case_id)
        updates = patch.model_dump(exclude_unset=True)
        if not updates:
            raise ValidationError("No fields provided for update")

        for required in ("name", "charges"):
            if required in updates and updates[required] is None:
                raise ValidationError(f"Field '{required}' cannot be cleared")

        if "prosecutor" in updates or "prosecutor_id" in updates:
            name, prosecutor_id = self._resolve_prosecutor(
                updates.get("prosecutor", current.prosecutor),
                updates.get("prosecutor_id") if "prosecutor_id" in updates else None,
            )
            updates["prosecutor"] = name
            updates["prosecutor_id"] = prosecutor_id

        if "supporting_prosecutors" in updates:
            updates["supporting_prosecutors"] = list(updates["supporting_prosecutors"] or [])

        if "defendants" in updates:
            updates["defendants"] = self._merge_defendants(current, patch.defendants or [])

        updated = current.model_copy(update=updates)
        self._check_invariants(updated)
        logger.info(f"Updated case {case_id}")
        return self._store(updated)

    def delete_case(self, case_id: str) -> Case:
        case = self._remove(case_id)
        logger.info(f"Deleted case {case_id} ({case.name})")
        return case

    # Stage workflow

    def allowed_transitions(self, case_id: str) -> List[CaseStage]:
        stage = self.get(case_id).stage
        return sorted(CASE_TRANSITIONS[stage], key=list(CaseStage).index)

    def transfer_stage(
        self,
        case_id: str,
        new_stage: CaseStage,
        command_date: Optional[str] = None,
        resolution_form: Optional[str] = None,
    ) -> Case:
        """
        Move a case along the transition table

        The first entry into Prosecution or Trial records the transfer
        date (command_date, default today) unless it is already set.

        Raises:
            NotFoundError: unknown case id
            InvalidTransitionError: same stage or a pair outside the table
        """
        current = self.get(case_id)
        try:
            new_stage = CaseStage(new_stage)
        except ValueError:
            raise InvalidTransitionError(current.stage.value, str(new_stage))
        if new_stage not in CASE_TRANSITIONS[current.stage]:
            raise InvalidTransitionError(current.stage.value, new_stage.value)

        decision_date = dates.normalize(command_date) if command_date else dates.today()
        updates = {"stage": new_stage}
        if new_stage == CaseStage.PROSECUTION and not current.prosecution_transfer_date:
            updates["prosecution_transfer_date"] = decision_date
        elif new_stage == CaseStage.TRIAL and not current.trial_transfer_date:
            updates["trial_transfer_date"] = decision_date
        if resolution_form:
            updates["resolution_form"] = resolution_form

        updated = current.model_copy(update=updates)
        logger.info(f"Case {case_id} moved from '{current.stage.value}' to '{new_stage.value}'")
        return self._store(updated)

    def discontinue(self, case_id: str, resolution_form: Optional[str] = None, command_date: Optional[str] = None) -> Case:
        """Confirmation path for discontinuation; same as a direct transfer"""
        return self.transfer_stage(case_id, CaseStage.DISCONTINUED, command_date, resolution_form)

    def toggle_important(self, case_id: str, flag: Optional[bool] = None) -> Case:
        current = self.get(case_id)
        value = (not current.is_important) if flag is None else bool(flag)
        return self._store(current.model_copy(update={"is_important": value}))

    # Deadlines

    def extend_deadline(
        self,
        case_id: str,
        target: DeadlineTarget,
        amount: int,
        unit: Optional[ExtensionUnit] = None,
        defendant_id: Optional[str] = None,
    ) -> Case:
        """
        Push the investigation deadline, or one defendant's detention
        deadline, forward by a number of days or calendar months

        Raises:
            ValidationError: amount outside [1, 365] days or [1, 12] months,
                or the deadline to extend is not set
            NotFoundError: unknown case or defendant
        """
        current = self.get(case_id)
        target = DeadlineTarget(target)
        if unit is None:
            unit = ExtensionUnit.MONTHS if target == DeadlineTarget.INVESTIGATION else ExtensionUnit.DAYS
        unit = ExtensionUnit(unit)

        limit = EXTENSION_LIMITS[unit]
        if isinstance(amount, bool) or not isinstance(amount, int) or not 1 <= amount <= limit:
            raise ValidationError(
                f"Extension must be between 1 and {limit} {unit.value}",
                {"amount": amount, "unit": unit.value},
            )

        if target == DeadlineTarget.INVESTIGATION:
            if not current.investigation_deadline:
                raise ValidationError("Case has no investigation deadline to extend")
            new_deadline = self._shift(current.investigation_deadline, amount, unit)
            updated = current.model_copy(update={"investigation_deadline": new_deadline})
            logger.info(f"Extended investigation deadline of case {case_id} to {new_deadline}")
            return self._store(updated)

        if not defendant_id:
            raise ValidationError("defendantId is required for a detention extension")
        defendant = self._find_defendant(current, defendant_id)
        if defendant.preventive_measure != PreventiveMeasure.DETAINED or not defendant.detention_deadline:
            raise ValidationError(f"Defendant {defendant_id} has no detention deadline to extend")
        new_deadline = self._shift(defendant.detention_deadline, amount, unit)
        updated = self._replace_defendant(
            current, defendant.model_copy(update={"detention_deadline": new_deadline})
        )
        logger.info(f"Extended detention of defendant {defendant_id} in case {case_id} to {new_deadline}")
        return self._store(updated)

    def expiring_soon(self, deadline: str, reference: Optional[date] = None) -> bool:
        return dates.is_expiring_soon(deadline, self.expiring_soon_days, reference)

    def shortest_detention(self, case: Case, reference: Optional[date] = None) -> Optional[int]:
        """Fewest days remaining over detained defendants; None when nobody is detained"""
        remaining = [
            dates.days_remaining(d.detention_deadline, reference)
            for d in case.defendants
            if d.preventive_measure == PreventiveMeasure.DETAINED and d.detention_deadline
        ]
        return min(remaining) if remaining else None

    def is_case_expiring(self, case: Case, reference: Optional[date] = None) -> bool:
        """Investigation-stage case whose investigation or any detention deadline is close"""
        if case.stage != CaseStage.INVESTIGATION:
            return False
        if case.investigation_deadline and self.expiring_soon(case.investigation_deadline, reference):
            return True
        shortest = self.shortest_detention(case, reference)
        return shortest is not None and shortest <= self.expiring_soon_days

    def get_expiring_soon_cases(self) -> List[Case]:
        return self.sort_cases(c for c in self.list() if self.is_case_expiring(c))

    # Defendants

    def add_defendant(self, case_id: str, defendant: DefendantInput) -> Case:
        current = self.get(case_id)
        added = self._new_defendant(defendant, keep_id=False)
        updated = current.model_copy(update={"defendants": [*current.defendants, added]})
        logger.info(f"Added defendant {added.id} to case {case_id}")
        return self._store(updated)

    def remove_defendant(self, case_id: str, defendant_id: str) -> Case:
        current = self.get(case_id)
        self._find_defendant(current, defendant_id)
        remaining = [d for d in current.defendants if d.id != defendant_id]
        return self._store(current.model_copy(update={"defendants": remaining}))

    def set_preventive_measure(
        self,
        case_id: str,
        defendant_id: str,
        measure: PreventiveMeasure,
        detention_deadline: Optional[str] = None,
    ) -> Case:
        """
        Change a defendant's custody status.

        Releasing clears the detention deadline; detaining keeps an existing
        deadline, else uses the given one, else today + default_detention_days.
        """
        current = self.get(case_id)
        defendant = self._find_defendant(current, defendant_id)
        changed = self._apply_measure(defendant, PreventiveMeasure(measure), detention_deadline)
        return self._store(self._replace_defendant(current, changed))

    # Listing

    def search_cases(self, query: Optional[CaseSearchQuery] = None) -> List[Case]:
        query = query or CaseSearchQuery()
        cases = self.list()
        if query.stage:
            cases = [c for c in cases if c.stage == query.stage]
        if query.prosecutor:
            cases = [c for c in cases if c.prosecutor == query.prosecutor]
        if query.search and query.search.strip():
            term = query.search.strip().lower()
            cases = [c for c in cases if self._matches(c, term)]
        if query.expiring_soon:
            cases = [c for c in cases if self.is_case_expiring(c)]
        return self.sort_cases(cases)

    def sort_cases(self, cases: Iterable[Case]) -> List[Case]:
        """
        Display order: important cases first; between two investigation-stage
        cases the shorter detention, then the closer investigation deadline.
        Other pairs keep their relative order.
        """
        ordered = list(cases)
        # Stable sorts, least significant key first
        ordered.sort(key=self._investigation_key)
        ordered.sort(key=lambda c: not c.is_important)
        return ordered

    # Internals

    def _investigation_key(self, case: Case):
        if case.stage != CaseStage.INVESTIGATION:
            return (1, 0, 0)
        shortest = self.shortest_detention(case)
        investigation = (
            dates.days_remaining(case.investigation_deadline)
            if case.investigation_deadline else float("inf")
        )
        return (0, float("inf") if shortest is None else shortest, investigation)

    @staticmethod
    def _matches(case: Case, term: str) -> bool:
        if term in case.name.lower() or term in case.charges.lower():
            return True
        return any(term in d.name.lower() or term in d.charges.lower() for d in case.defendants)

    def _new_defendant(self, data: DefendantInput, keep_id: bool) -> Defendant:
        defendant = Defendant(
            id=data.id if keep_id and data.id else new_id(),
            name=data.name,
            charges=data.charges,
            preventive_measure=PreventiveMeasure.AT_LARGE,
            detention_deadline=data.detention_deadline,
        )
        return self._apply_measure(defendant, data.preventive_measure, data.detention_deadline)

    def _apply_measure(
        self,
        defendant: Defendant,
        measure: PreventiveMeasure,
        detention_deadline: Optional[str] = None,
    ) -> Defendant:
        if measure == PreventiveMeasure.AT_LARGE:
            return defendant.model_copy(update={"preventive_measure": measure, "detention_deadline": None})
        deadline = (
            defendant.detention_deadline
            or (dates.normalize(detention_deadline) if detention_deadline else None)
            or dates.add_days(dates.today(), self.default_detention_days)
        )
        return defendant.model_copy(update={"preventive_measure": measure, "detention_deadline": deadline})

    def _merge_defendants(self, current: Case, submitted: List[DefendantInput]) -> List[Defendant]:
        """
        Keep ids of defendants already on the case; anything else, including
        a repeat of an id earlier in the list, gets a fresh id
        """
        known = {d.id: d for d in current.defendants}
        used = set()
        merged = []
        for data in submitted:
            previous = known.get(data.id) if data.id and data.id not in used else None
            if previous:
                used.add(previous.id)
            if previous and previous.detention_deadline and not data.detention_deadline:
                data = data.model_copy(update={"detention_deadline": previous.detention_deadline})
            merged.append(self._new_defendant(data, keep_id=previous is not None))
        return merged

    @staticmethod
    def _find_defendant(case: Case, defendant_id: str) -> Defendant:
        for defendant in case.defendants:
            if defendant.id == defendant_id:
                return defendant
        raise NotFoundError(
            f"Defendant not found with ID: {defendant_id}",
            {"case_id": case.id, "defendant_id": defendant_id},
        )

    @staticmethod
    def _replace_defendant(case: Case, defendant: Defendant) -> Case:
        defendants = [defendant if d.id == defendant.id else d for d in case.defendants]
        return case.model_copy(update={"defendants": defendants})

    @staticmethod
    def _shift(deadline: str, amount: int, unit: ExtensionUnit) -> str:
        if unit == ExtensionUnit.MONTHS:
            return dates.add_months(deadline, amount)
        return dates.add_days(deadline, amount)

    @staticmethod
    def _check_invariants(case: Case) -> None:
        if case.stage == CaseStage.INVESTIGATION and not case.investigation_deadline:
            raise ValidationError("investigationDeadline is required while the case is under investigation")
        if case.stage in (CaseStage.PROSECUTION, CaseStage.TRIAL) and not case.prosecution_transfer_date:
            raise ValidationError("prosecutionTransferDate is required once the case is in prosecution")
        if case.stage == CaseStage.TRIAL and not case.trial_transfer_date:
            raise ValidationError("trialTransferDate is required once the case is at trial")
