"""
用户模型
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from sqlalchemy.sql import func
from roombook.db.database import Base


class User(Base):
    """用户表"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True, comment="邮箱")
    name = Column(String(100), nullable=True, comment="姓名")
    password_hash = Column(String(255), nullable=False, comment="密码哈希")
    authorisation = Column(Boolean, nullable=False, default=False, comment="是否可管理用户")
    settings = Column(Boolean, nullable=False, default=False, comment="是否可修改设置")
    analytics = Column(Boolean, nullable=False, default=False, comment="是否可查看统计")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False, comment="更新时间")

    __table_args__ = (
        Index("idx_users_email", "email"),
    )
