"""
房间相关的Pydantic模型
"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional, List
from datetime import datetime
from roombook.schemas.common import format_datetime_local


class RoomBase(BaseModel):
    """房间基础模型"""
    name: str = Field(..., description="名称", min_length=1, max_length=100)
    capacity: int = Field(0, ge=0, description="容纳人数")
    is_available: bool = Field(True, description="是否可预约")
    is_open: bool = Field(True, description="是否开放")
    borrowable_items: List[str] = Field(default_factory=list, description="可借用物品")


class RoomCreate(RoomBase):
    """创建房间模型"""
    pass


class RoomUpdate(BaseModel):
    """更新房间模型"""
    name: Optional[str] = Field(None, description="名称", min_length=1, max_length=100)
    capacity: Optional[int] = Field(None, ge=0, description="容纳人数")
    is_available: Optional[bool] = Field(None, description="是否可预约")
    is_open: Optional[bool] = Field(None, description="是否开放")
    borrowable_items: Optional[List[str]] = Field(None, description="可借用物品")


class RoomLabelsUpdate(BaseModel):
    """维护标签更新"""
    dynamic_labels: List[str] = Field(default_factory=list, description="维护标签")


class RoomResponse(RoomBase):
    """房间响应模型"""
    id: int
    dynamic_labels: List[str] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime(self, dt: datetime) -> str:
        return format_datetime_local(dt)


class RoomStatusResponse(BaseModel):
    """某一时刻房间占用情况"""
    room_id: int
    name: str
    capacity: int
    busy: bool
    offered: bool
    has_overdue: bool = False
    overdue_label: Optional[str] = None
    has_reserved_late: bool = False
    reserved_late_label: Optional[str] = None
