"""
Excel export of case and report listings and statistics
"""

import io
import logging
from typing import Any, Callable, Dict, List, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from models.case import Case
from models.enums import PreventiveMeasure
from models.report import Report
from models.statistics import CaseStatistics, ReportStatistics
from utils import dates
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

SHEET_TITLE = "Báo cáo"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

Column = Tuple[str, str]  # (row key, header label)

CASE_COLUMNS: List[Column] = [
    ("name", "Tên Vụ án"),
    ("charges", "Tội danh (VA)"),
    ("investigationDeadline", "Thời hạn ĐT"),
    ("totalDefendants", "Tổng Bị can"),
    ("shortestDetention", "BP Ngăn chặn ngắn nhất"),
    ("prosecutor", "KSV"),
    ("notes", "Ghi chú"),
    ("stage", "Giai đoạn"),
    ("prosecutionTransferDate", "Ngày chuyển TT"),
    ("trialTransferDate", "Ngày chuyển XX"),
]

REPORT_COLUMNS: List[Column] = [
    ("name", "Tên Tin báo"),
    ("charges", "Tội danh"),
    ("resolutionDeadline", "Hạn giải quyết"),
    ("prosecutor", "KSV"),
    ("notes", "Ghi chú"),
    ("stage", "Trạng thái"),
]

CASE_STATISTICS_COLUMNS: List[Column] = [
    ("item", "Chỉ tiêu"),
    ("cases", "Số vụ án"),
    ("defendants", "Số bị can"),
]

REPORT_STATISTICS_COLUMNS: List[Column] = [
    ("item", "Chỉ tiêu"),
    ("reports", "Số tin báo"),
]


def build_workbook(rows: Sequence[Dict[str, Any]], columns: Sequence[Column]) -> bytes:
    """
    Write rows to a single-sheet workbook and return the .xlsx bytes

    Raises:
        ValidationError: if there are no rows to export
    """
    if not rows:
        raise ValidationError("No data to export")

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    for col, (_, label) in enumerate(columns, start=1):
        ws.cell(row=1, column=col, value=label).font = Font(bold=True)
    for row_index, row in enumerate(rows, start=2):
        for col, (key, _) in enumerate(columns, start=1):
            ws.cell(row=row_index, column=col, value=row.get(key))

    # Width of the longest value in the column, plus padding
    for col, (key, label) in enumerate(columns, start=1):
        longest = max([len(label)] + [len(str(row[key])) for row in rows if row.get(key) is not None])
        ws.column_dimensions[get_column_letter(col)].width = longest + 2

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Exported {len(rows)} rows to workbook")
    return buffer.getvalue()


def case_rows(cases: Sequence[Case], shortest_detention: Callable[[Case], Any]) -> List[Dict[str, Any]]:
    rows = []
    for case in cases:
        shortest = shortest_detention(case)
        detained = sum(1 for d in case.defendants if d.preventive_measure == PreventiveMeasure.DETAINED)
        rows.append({
            "name": case.name,
            "charges": case.charges,
            "investigationDeadline": case.investigation_deadline,
            "totalDefendants": len(case.defendants),
            "shortestDetention": f"{shortest} ngày ({detained} tạm giam)" if shortest is not None else None,
            "prosecutor": case.prosecutor,
            "notes": case.notes,
            "stage": case.stage.value,
            "prosecutionTransferDate": case.prosecution_transfer_date,
            "trialTransferDate": case.trial_transfer_date,
        })
    return rows


def report_rows(reports: Sequence[Report]) -> List[Dict[str, Any]]:
    return [
        {
            "name": r.name,
            "charges": r.charges,
            "resolutionDeadline": r.resolution_deadline,
            "prosecutor": r.prosecutor,
            "notes": r.notes,
            "stage": r.stage.value,
        }
        for r in reports
    ]


def case_statistics_rows(stats: CaseStatistics) -> List[Dict[str, Any]]:
    rows = [
        {"item": f"Từ ngày: {stats.from_date} - Đến ngày: {stats.to_date}"},
        {"item": "Mới nhận trong kỳ", "cases": stats.new_cases, "defendants": stats.new_defendants},
        {"item": "Tổng đã xử lý", "cases": stats.processed.cases, "defendants": stats.processed.defendants},
    ]
    for stage, tally in stats.processed_by_stage.items():
        rows.append({"item": f"- {stage}", "cases": tally.cases, "defendants": tally.defendants})
    for stage, count in stats.by_stage.items():
        rows.append({"item": stage, "cases": count})
    return rows


def report_statistics_rows(stats: ReportStatistics) -> List[Dict[str, Any]]:
    rows = [
        {"item": f"Từ ngày: {stats.from_date} - Đến ngày: {stats.to_date}"},
        {"item": "Mới tiếp nhận trong kỳ", "reports": stats.total},
        {"item": "Tổng đã xử lý", "reports": stats.processed},
    ]
    rows.extend({"item": f"- {stage}", "reports": count} for stage, count in stats.processed_by_stage.items())
    rows.extend({"item": stage, "reports": count} for stage, count in stats.by_stage.items())
    return rows


def export_filename(prefix: str, from_date: str = None, to_date: str = None) -> str:
    if from_date and to_date:
        return f"{prefix}-{from_date.replace('/', '-')}-{to_date.replace('/', '-')}.xlsx"
    return f"{prefix}-{dates.today().replace('/', '-')}.xlsx"
