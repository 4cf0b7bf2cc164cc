"""
Enum definitions for the Case Tracker backend

Values are the labels stored in existing records and backups.
"""

from enum import Enum


class CaseStage(str, Enum):
    """
    Lifecycle stage of a criminal case.

    - INVESTIGATION: initial stage, investigation deadline tracked
    - PROSECUTION: case transferred for prosecution
    - TRIAL: case transferred to court
    - COMPLETED, TRANSFERRED, SUSPENDED, DISCONTINUED: terminal
    """
    INVESTIGATION = "Điều tra"
    PROSECUTION = "Truy tố"
    TRIAL = "Xét xử"
    COMPLETED = "Hoàn thành"
    TRANSFERRED = "Chuyển đi"
    SUSPENDED = "Tạm đình chỉ"
    DISCONTINUED = "Đình chỉ"


class ReportStage(str, Enum):
    """Lifecycle stage of an incident report. Everything but PENDING is terminal."""
    PENDING = "Đang xử lý"
    PROSECUTED = "Khởi tố"
    NOT_PROSECUTED = "Không khởi tố"
    SUSPENDED = "Tạm đình chỉ"
    TRANSFERRED = "Chuyển đi"


class PreventiveMeasure(str, Enum):
    AT_LARGE = "Tại ngoại"
    DETAINED = "Tạm giam"


class ExtensionUnit(str, Enum):
    DAYS = "days"
    MONTHS = "months"


class DeadlineTarget(str, Enum):
    INVESTIGATION = "investigation"
    DETENTION = "detention"
