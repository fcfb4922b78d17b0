"""
数据库初始化脚本
创建所有表，写入缺省营业时间；设置了 ROOMBOOK_ADMIN_EMAIL 时创建管理员
"""
import logging
import os

from roombook.api.auth import get_password_hash
from roombook.db.database import SessionLocal, engine, Base
from roombook.db.store import BookingStore
from roombook.models import Room, Course, Booking, Setting, User  # noqa: F401
from roombook.scheduling.hours import OPERATION_HOURS_KEY, default_opening_hours

logger = logging.getLogger(__name__)


def init_db(admin_email=None, admin_password=None):
    """初始化数据库，创建所有表"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        store = BookingStore(db)
        if store.get_setting(OPERATION_HOURS_KEY) is None:
            store.put_setting(OPERATION_HOURS_KEY, default_opening_hours().to_value(), description="营业时间")
        if admin_email and admin_password:
            email = admin_email.strip().lower()
            if db.query(User).filter(User.email == email).first() is None:
                db.add(User(
                    email=email,
                    name="Administrator",
                    password_hash=get_password_hash(admin_password),
                    authorisation=True,
                    settings=True,
                    analytics=True,
                ))
                db.commit()
                logger.info("已创建管理员 %s", email)
    finally:
        db.close()
    logger.info("数据库表创建完成！")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db(os.getenv("ROOMBOOK_ADMIN_EMAIL"), os.getenv("ROOMBOOK_ADMIN_PASSWORD"))
