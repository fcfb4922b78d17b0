"""
课程相关的Pydantic模型
"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional
from datetime import datetime
from roombook.schemas.common import format_datetime_local

COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class CourseCreate(BaseModel):
    """创建课程模型"""
    name: str = Field(..., description="课程名称", min_length=1, max_length=100)
    color_hex: str = Field("#64748b", description="显示颜色", pattern=COLOR_PATTERN)


class CourseUpdate(BaseModel):
    """更新课程模型"""
    name: Optional[str] = Field(None, description="课程名称", min_length=1, max_length=100)
    color_hex: Optional[str] = Field(None, description="显示颜色", pattern=COLOR_PATTERN)


class CourseResponse(CourseCreate):
    """课程响应模型"""
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime(self, dt: datetime) -> str:
        return format_datetime_local(dt)
