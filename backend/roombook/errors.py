"""
存储层错误定义
错误码沿用PostgreSQL约束错误码，便于前端统一处理
"""
from typing import Optional

from sqlalchemy.exc import IntegrityError


OVERLAP = "23P01"
CHECK_VIOLATION = "23514"
FOREIGN_KEY_VIOLATION = "23503"
PERMISSION_DENIED = "42501"

DEFAULT_MESSAGE = "Unable to complete the operation. Please try again or contact support."

MESSAGES = {
    OVERLAP: "This time slot is already booked. Please choose another time.",
    CHECK_VIOLATION: "Invalid booking time. Please use 30-minute intervals.",
    FOREIGN_KEY_VIOLATION: "Invalid room or course selected. Please refresh and try again.",
    PERMISSION_DENIED: "You don't have permission to perform this action.",
}

STATUS_CODES = {
    OVERLAP: 409,
    CHECK_VIOLATION: 400,
    FOREIGN_KEY_VIOLATION: 400,
    PERMISSION_DENIED: 403,
}


class StoreError(Exception):
    """存储层错误基类"""
    code: Optional[str] = None

    def __init__(self, detail: str = "", code: Optional[str] = None):
        super().__init__(detail or self.__class__.__name__)
        if code is not None:
            self.code = code
        self.detail = detail


class OverlapError(StoreError):
    """同一房间同一天的时间段重叠"""
    code = OVERLAP


class CheckViolationError(StoreError):
    """时间不在30分钟边界或结束时间不晚于开始时间"""
    code = CHECK_VIOLATION


class ForeignKeyError(StoreError):
    """房间或课程不存在"""
    code = FOREIGN_KEY_VIOLATION


class PermissionDeniedError(StoreError):
    code = PERMISSION_DENIED


def map_store_error(error: Optional[Exception]) -> str:
    """将存储层错误转换为用户可读的提示"""
    if error is None:
        return "An unexpected error occurred"
    code = getattr(error, "code", None)
    if code in MESSAGES:
        return MESSAGES[code]
    if "permission denied" in str(error).lower():
        return MESSAGES[PERMISSION_DENIED]
    return DEFAULT_MESSAGE


def status_code_for(error: StoreError) -> int:
    return STATUS_CODES.get(error.code, 500)


def from_integrity_error(exc: IntegrityError) -> StoreError:
    """把数据库完整性错误翻译为对应的StoreError"""
    text = str(exc.orig if exc.orig is not None else exc).lower()
    if "foreign key" in text:
        return ForeignKeyError(str(exc.orig))
    if "check constraint" in text or "ck_" in text:
        return CheckViolationError(str(exc.orig))
    if "exclusion" in text or "overlap" in text:
        return OverlapError(str(exc.orig))
    return StoreError(str(exc.orig))
