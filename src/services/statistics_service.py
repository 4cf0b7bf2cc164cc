"""
Statistics over cases and reports created within a date range
"""

from typing import Iterable, List, Optional, Tuple

from models.case import Case
from models.enums import CaseStage, ReportStage
from models.report import Report
from models.statistics import CaseStatistics, ReportStatistics, StageTally
from utils import dates
from utils.errors import ValidationError

PROCESSED_CASE_STAGES = [
    CaseStage.COMPLETED,
    CaseStage.SUSPENDED,
    CaseStage.DISCONTINUED,
    CaseStage.TRANSFERRED,
]

PROCESSED_REPORT_STAGES = [
    ReportStage.PROSECUTED,
    ReportStage.NOT_PROSECUTED,
    ReportStage.SUSPENDED,
    ReportStage.TRANSFERRED,
]


def _date_range(from_date: Optional[str], to_date: Optional[str]) -> Tuple[str, str]:
    start = dates.normalize(from_date) if from_date else dates.today()
    end = dates.normalize(to_date) if to_date else dates.today()
    if dates.parse(start) > dates.parse(end):
        raise ValidationError(
            "Start date must not be after end date",
            {"from": start, "to": end},
        )
    return start, end


def filter_by_created(items: Iterable, start: str, end: str) -> List:
    """Items whose createdAt falls in [start, end]"""
    return [item for item in items if dates.in_range(item.created_at, start, end)]


def _tally(cases: List[Case]) -> StageTally:
    return StageTally(cases=len(cases), defendants=sum(len(c.defendants) for c in cases))


def case_statistics(
    cases: Iterable[Case],
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> CaseStatistics:
    start, end = _date_range(from_date, to_date)
    in_range = filter_by_created(cases, start, end)

    processed = [c for c in in_range if c.stage in PROCESSED_CASE_STAGES]
    return CaseStatistics(
        from_date=start,
        to_date=end,
        new_cases=len(in_range),
        new_defendants=sum(len(c.defendants) for c in in_range),
        processed=_tally(processed),
        processed_by_stage={
            stage.value: _tally([c for c in processed if c.stage == stage])
            for stage in PROCESSED_CASE_STAGES
        },
        by_stage={stage.value: sum(1 for c in in_range if c.stage == stage) for stage in CaseStage},
    )


def report_statistics(
    reports: Iterable[Report],
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> ReportStatistics:
    start, end = _date_range(from_date, to_date)
    in_range = filter_by_created(reports, start, end)

    processed = [r for r in in_range if r.stage in PROCESSED_REPORT_STAGES]
    return ReportStatistics(
        from_date=start,
        to_date=end,
        total=len(in_range),
        processed=len(processed),
        processed_by_stage={
            stage.value: sum(1 for r in processed if r.stage == stage)
            for stage in PROCESSED_REPORT_STAGES
        },
        by_stage={stage.value: sum(1 for r in in_range if r.stage == stage) for stage in ReportStage},
    )
