"""
课程管理API
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from roombook.api.deps import get_store
from roombook.db.store import BookingStore
from roombook.models.booking import Booking
from roombook.models.course import Course
from roombook.schemas.course import CourseCreate, CourseUpdate, CourseResponse

router = APIRouter(prefix="/api/courses", tags=["课程管理"])


def _get_course(store: BookingStore, course_id: int) -> Course:
    course = store.db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.get("", response_model=List[CourseResponse])
def get_courses(store: BookingStore = Depends(get_store)):
    """获取课程列表（按名称排序）"""
    return store.db.query(Course).order_by(Course.name).all()


@router.post("", response_model=CourseResponse)
def create_course(course: CourseCreate, store: BookingStore = Depends(get_store)):
    """创建课程"""
    db = store.db
    if db.query(Course).filter(Course.name == course.name).first():
        raise HTTPException(status_code=400, detail="A course with this name already exists")
    db_course = Course(name=course.name, color_hex=course.color_hex.lower())
    db.add(db_course)
    db.commit()
    db.refresh(db_course)
    store.publish("courses", "insert", db_course.id)
    return db_course


@router.put("/{course_id}", response_model=CourseResponse)
def update_course(course_id: int, request: CourseUpdate, store: BookingStore = Depends(get_store)):
    """更新课程（名称 / 颜色变化会刷新网格）"""
    db = store.db
    course = _get_course(store, course_id)
    if request.name and request.name != course.name:
        if db.query(Course).filter(Course.name == request.name).first():
            raise HTTPException(status_code=400, detail="A course with this name already exists")
        course.name = request.name
    if request.color_hex:
        course.color_hex = request.color_hex.lower()
    db.commit()
    db.refresh(course)
    store.publish("courses", "update", course.id)
    return course


@router.delete("/{course_id}")
def delete_course(course_id: int, store: BookingStore = Depends(get_store)):
    """删除课程，已有预约保留，课程置空"""
    db = store.db
    course = _get_course(store, course_id)
    db.query(Booking).filter(Booking.course_id == course_id).update(
        {Booking.course_id: None, Booking.course_name: course.name}, synchronize_session=False
    )
    db.delete(course)
    db.commit()
    store.publish("courses", "delete", course_id)
    return {"message": "Course deleted"}
