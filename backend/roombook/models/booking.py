"""
预约模型
"""
from sqlalchemy import Column, Integer, String, Text, Date, Time, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from roombook.db.database import Base
from roombook.scheduling.states import BookingState


class Booking(Base):
    """预约表"""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True, comment="房间ID")
    booking_day = Column(Date, nullable=False, index=True, comment="预约日期")
    start_time = Column(Time, nullable=False, comment="开始时间")
    end_time = Column(Time, nullable=False, comment="结束时间（00:00表示24:00）")
    state = Column(String(20), nullable=False, default=BookingState.RESERVED.value, index=True,
                   comment="状态：Reserved / Active / Overdue / Ended")
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, comment="课程ID")
    course_name = Column(String(100), nullable=True, comment="其它课程名称")
    booked_by = Column(String(100), nullable=False, comment="负责人")
    student_numbers = Column(Text, nullable=True, comment="学生名单")
    borrowed_items = Column(JSON, nullable=False, default=list, comment="借用物品")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False, comment="更新时间")

    # 关系
    room = relationship("Room", back_populates="bookings")
    course = relationship("Course", back_populates="bookings", lazy="joined")

    __table_args__ = (
        Index("idx_bookings_room_day", "room_id", "booking_day"),
        Index("idx_bookings_day_state", "booking_day", "state"),
    )

    def to_record(self) -> dict:
        """变更通知中携带的行快照"""
        return {
            "id": self.id,
            "room_id": self.room_id,
            "booking_day": self.booking_day.isoformat() if self.booking_day else None,
            "start_time": self.start_time.strftime("%H:%M:%S") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M:%S") if self.end_time else None,
            "state": self.state,
            "course_id": self.course_id,
            "course_name": self.course_name,
            "booked_by": self.booked_by,
            "student_numbers": self.student_numbers,
            "borrowed_items": list(self.borrowed_items or []),
        }
