"""
数据库模型
"""
from roombook.models.room import Room
from roombook.models.course import Course
from roombook.models.booking import Booking
from roombook.models.setting import Setting
from roombook.models.user import User

__all__ = [
    "Room",
    "Course",
    "Booking",
    "Setting",
    "User",
]
