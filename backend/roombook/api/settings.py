"""
系统设置API
营业时间、模拟时钟
"""
from fastapi import APIRouter, Depends
from typing import List
from roombook.api.auth import require_flag
from roombook.api.deps import get_clock, get_store, invalidate_clock
from roombook.db.store import BookingStore
from roombook.models.setting import Setting
from roombook.models.user import User
from roombook.scheduling.clock import Clock, TestingClock
from roombook.scheduling.hours import (
    OPERATION_HOURS_KEY, TESTING_CLOCK_KEY, load_opening_hours, remember_opening_hours,
)
from roombook.scheduling.slots import OpeningHours
from roombook.schemas.setting import NowResponse, OperationHoursPayload, SettingResponse, TestingClockPayload

router = APIRouter(prefix="/api/settings", tags=["系统设置"])

require_settings = require_flag("settings")


@router.get("", response_model=List[SettingResponse])
def get_settings_list(store: BookingStore = Depends(get_store)):
    """获取所有设置"""
    return store.db.query(Setting).order_by(Setting.key).all()


@router.get("/operation-hours", response_model=OperationHoursPayload)
def get_operation_hours(store: BookingStore = Depends(get_store)):
    """获取营业时间（未配置时为缺省值）"""
    return OperationHoursPayload(**load_opening_hours(store).to_value())


@router.put("/operation-hours", response_model=OperationHoursPayload)
def update_operation_hours(
    payload: OperationHoursPayload,
    store: BookingStore = Depends(get_store),
    user: User = Depends(require_settings),
):
    """更新营业时间"""
    value = payload.model_dump()
    store.put_setting(OPERATION_HOURS_KEY, value, description="营业时间")
    remember_opening_hours(OpeningHours.parse(value))
    return payload


@router.get("/testing-clock", response_model=TestingClockPayload)
def get_testing_clock(store: BookingStore = Depends(get_store)):
    """获取模拟时钟配置"""
    config = TestingClock.parse(store.get_setting(TESTING_CLOCK_KEY))
    if config is None:
        return TestingClockPayload()
    return TestingClockPayload(**config.to_value())


@router.put("/testing-clock", response_model=TestingClockPayload)
def update_testing_clock(
    payload: TestingClockPayload,
    store: BookingStore = Depends(get_store),
    user: User = Depends(require_settings),
):
    """更新模拟时钟，立即生效"""
    store.put_setting(TESTING_CLOCK_KEY, payload.model_dump(), description="模拟时钟")
    invalidate_clock()
    return payload


@router.get("/now", response_model=NowResponse)
def get_now(clock: Clock = Depends(get_clock)):
    """当前时间（启用模拟时钟时为模拟时间）"""
    now = clock.now()
    return NowResponse(
        now=now.isoformat(),
        date=now.date().isoformat(),
        time=now.strftime("%H:%M"),
        simulated=bool(getattr(clock, "simulated", False)),
    )
