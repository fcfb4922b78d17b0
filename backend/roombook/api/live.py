"""
实时网格推送（WebSocket）
连接后推送一次网格，之后在相关变更或状态同步改变了预约时再推送
"""
import asyncio
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from roombook.api.deps import get_change_feed, get_clock, get_session_factory
from roombook.config import get_settings
from roombook.scheduling.clock import Clock
from roombook.scheduling.feed import ChangeFeed
from roombook.scheduling.grid_view import DayGridView
from roombook.scheduling.reconciler import StatusReconciler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["实时推送"])


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """客户端不发送数据，读取只用于发现断开"""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/ws/grid")
async def grid_socket(
    websocket: WebSocket,
    day: Optional[str] = None,
    session_factory=Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
    feed: ChangeFeed = Depends(get_change_feed),
):
    await websocket.accept()
    try:
        target_day = date.fromisoformat(day) if day else await run_in_threadpool(clock.today)
    except ValueError:
        await websocket.close(code=1003, reason="day must be YYYY-MM-DD")
        return

    settings = get_settings()
    view = DayGridView(
        session_factory,
        target_day,
        clock,
        feed=feed,
        reconciler=StatusReconciler(clock, auto_activate=settings.auto_activate),
        cooldown=settings.change_cooldown,
        late_grace_minutes=settings.late_grace_minutes,
    )
    subscription = view.subscribe()
    watcher = asyncio.ensure_future(_wait_for_disconnect(websocket))
    logger.info("网格推送连接: %s", target_day)
    try:
        await run_in_threadpool(view.load)
        await websocket.send_json(await run_in_threadpool(view.snapshot))
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + settings.reconcile_interval
        while True:
            # 持续有变更时也要按间隔同步状态
            timeout = max(0.0, next_tick - loop.time())
            getter = asyncio.ensure_future(subscription.get(timeout=timeout))
            done, _ = await asyncio.wait({getter, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if watcher in done:
                getter.cancel()
                break
            event = getter.result()
            changed = False
            if event is not None:
                changed = await run_in_threadpool(view.handle_change, event)
            if loop.time() >= next_tick:
                changed = await run_in_threadpool(view.tick) or changed
                next_tick = loop.time() + settings.reconcile_interval
            if changed:
                await websocket.send_json(await run_in_threadpool(view.snapshot))
    except WebSocketDisconnect:
        pass
    finally:
        watcher.cancel()
        view.close()
        logger.info("网格推送断开: %s", target_day)
