"""
用户相关的Pydantic模型
"""
from pydantic import BaseModel, Field, EmailStr, field_serializer
from typing import Optional
from datetime import datetime
from roombook.schemas.common import format_datetime_local


class UserFlags(BaseModel):
    """用户权限标记"""
    authorisation: Optional[bool] = Field(None, description="可管理用户")
    settings: Optional[bool] = Field(None, description="可修改设置")
    analytics: Optional[bool] = Field(None, description="可查看统计")


class UserCreate(BaseModel):
    """创建用户模型"""
    email: EmailStr = Field(..., description="邮箱")
    name: Optional[str] = Field(None, description="姓名", max_length=100)
    password: Optional[str] = Field(None, description="初始密码，不提供则随机生成", min_length=6)


class UserResponse(BaseModel):
    """用户响应模型"""
    id: int
    email: str
    name: Optional[str] = None
    authorisation: bool
    settings: bool
    analytics: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime(self, dt: datetime) -> Optional[str]:
        return format_datetime_local(dt)


class UserCreatedResponse(BaseModel):
    """创建用户结果"""
    ok: bool = True
    user: UserResponse
    initial_password: Optional[str] = None
