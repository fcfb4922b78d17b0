"""
预约相关的Pydantic模型
"""
from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator
from typing import Literal, Optional, List, Union
from datetime import date, datetime, time
from roombook.schemas.common import format_datetime_local
from roombook.scheduling.slots import SLOT_MINUTES, is_slot_aligned
from roombook.scheduling.states import duration_minutes, soft_state

OTHER_COURSE = "other"


class BookingBase(BaseModel):
    """预约基础模型"""
    room_id: int = Field(..., description="房间ID")
    booking_day: date = Field(..., description="预约日期")
    start_time: time = Field(..., description="开始时间，30分钟边界")
    duration: int = Field(..., gt=0, description="时长（分钟），30的倍数")
    course_id: Optional[Union[int, Literal["other"]]] = Field(None, description="课程ID，或 'other' 使用自定义名称")
    course_name: Optional[str] = Field(None, max_length=100, description="自定义课程名称（course_id='other'时必填）")
    booked_by: str = Field(..., max_length=100, description="负责人")
    student_numbers: Optional[str] = Field(None, max_length=1000, description="学生名单")
    borrowed_items: List[str] = Field(default_factory=list, description="借用物品")

    @field_validator("start_time")
    @classmethod
    def check_start_aligned(cls, value: time) -> time:
        if not is_slot_aligned(value):
            raise ValueError("Start time must be on a 30-minute boundary (e.g. 09:00, 09:30)")
        return value

    @field_validator("duration")
    @classmethod
    def check_duration(cls, value: int) -> int:
        if value % SLOT_MINUTES != 0:
            raise ValueError("Duration must be a positive multiple of 30 minutes")
        return value

    @field_validator("booked_by")
    @classmethod
    def check_booked_by(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Staff name is required")
        return value

    @model_validator(mode="after")
    def check_course(self):
        if self.course_id == OTHER_COURSE:
            if not (self.course_name or "").strip():
                raise ValueError("Please enter a course name for 'Other'")
            self.course_name = self.course_name.strip()
        elif self.course_id is not None:
            self.course_name = None
        return self


class BookingCreate(BookingBase):
    """创建预约模型：立即开始（Active）或预约（Reserved）"""
    state: Literal["Active", "Reserved"] = Field("Active", description="状态")


class BookingUpdate(BookingBase):
    """编辑预约模型"""
    state: Literal["Active", "Reserved", "Overdue", "Ended"] = Field(..., description="状态")
    items_returned: bool = Field(False, description="结束时确认借用物品已归还")


class EndBookingRequest(BaseModel):
    """结束预约请求"""
    items_returned: bool = Field(False, description="确认借用物品已归还")


class ExtendBookingRequest(BaseModel):
    """延长预约请求"""
    minutes: int = Field(..., gt=0, description="延长分钟数")


class CourseInfo(BaseModel):
    id: int
    name: str
    color_hex: Optional[str] = None

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    """预约响应模型"""
    id: int
    room_id: int
    booking_day: date
    start_time: time
    end_time: time
    duration: int
    state: str
    soft_state: Optional[str] = None
    course_id: Optional[int] = None
    course_name: Optional[str] = None
    course: Optional[CourseInfo] = None
    booked_by: str
    student_numbers: Optional[str] = None
    borrowed_items: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking, now: Optional[datetime] = None, late_grace_minutes: int = 10) -> "BookingResponse":
        course = booking.course
        return cls(
            id=booking.id,
            room_id=booking.room_id,
            booking_day=booking.booking_day,
            start_time=booking.start_time,
            end_time=booking.end_time,
            duration=duration_minutes(booking),
            state=booking.state,
            soft_state=soft_state(booking, now, late_grace_minutes) if now is not None else None,
            course_id=booking.course_id,
            course_name=booking.course_name,
            course=CourseInfo.model_validate(course) if course is not None else None,
            booked_by=booking.booked_by,
            student_numbers=booking.student_numbers,
            borrowed_items=list(booking.borrowed_items or []),
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )

    @field_serializer('start_time', 'end_time')
    def serialize_time(self, value: time) -> str:
        return value.strftime("%H:%M")

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return format_datetime_local(dt)


class DurationOptionsResponse(BaseModel):
    """可选时长"""
    room_id: int
    booking_day: date
    start_time: str
    options: List[int]


class ExtensionOptionsResponse(BaseModel):
    """可延长时长"""
    booking_id: int
    end_time: str
    options: List[int]


class ReconcileResponse(BaseModel):
    """状态同步结果"""
    now: str
    overdue: List[int] = []
    reactivated: List[int] = []
    activated: List[int] = []
    failed: bool = False
