"""
系统设置相关的Pydantic模型
"""
from pydantic import BaseModel, Field, field_serializer, field_validator
from typing import Any, Optional
from datetime import date, datetime
from roombook.schemas.common import format_datetime_local
from roombook.scheduling.slots import parse_time_of_day


class SettingResponse(BaseModel):
    """设置响应模型"""
    id: int
    key: str
    value: Any = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime(self, dt: datetime) -> str:
        return format_datetime_local(dt)


class OperationHoursPayload(BaseModel):
    """营业时间"""
    start: str = Field(..., description="开门时间 HH:MM")
    end: str = Field(..., description="关门时间 HH:MM")

    @field_validator("start", "end")
    @classmethod
    def check_time(cls, value: str) -> str:
        parsed = parse_time_of_day(value)
        if parsed is None:
            raise ValueError("Time must be in HH:MM format")
        return parsed.strftime("%H:%M")


class TestingClockPayload(BaseModel):
    """模拟时钟"""
    __test__ = False

    enabled: bool = Field(False, description="是否启用模拟时间")
    date: Optional[str] = Field(None, description="模拟日期 YYYY-MM-DD")
    time: Optional[str] = Field(None, description="模拟时间 HH:MM")

    @field_validator("date")
    @classmethod
    def check_date(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError("Date must be in YYYY-MM-DD format")
        return value

    @field_validator("time")
    @classmethod
    def check_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parsed = parse_time_of_day(value)
        if parsed is None:
            raise ValueError("Time must be in HH:MM format")
        return parsed.strftime("%H:%M")


class NowResponse(BaseModel):
    """当前时间（可能为模拟时间）"""
    now: str
    date: str
    time: str
    simulated: bool
