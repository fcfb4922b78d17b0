"""
房间模型
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from roombook.db.database import Base


class Room(Base):
    """房间表"""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, comment="名称，如 Room 1")
    capacity = Column(Integer, nullable=False, default=0, comment="容纳人数")
    is_available = Column(Boolean, nullable=False, default=True, comment="是否可预约（在网格中显示）")
    is_open = Column(Boolean, nullable=False, default=True, comment="是否开放")
    borrowable_items = Column(JSON, nullable=False, default=list, comment="可借用物品")
    dynamic_labels = Column(JSON, nullable=False, default=list, comment="维护标签")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False, comment="更新时间")

    # 关系
    bookings = relationship("Booking", back_populates="room")

    __table_args__ = (
        Index("idx_rooms_name", "name"),
    )
