"""
FastAPI主应用入口
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roombook.api.deps import get_clock
from roombook.config import get_settings
from roombook.db.database import engine, Base, SessionLocal
from roombook.errors import StoreError, map_store_error, status_code_for
from roombook.middleware.request_log import RequestLogMiddleware
from roombook.scheduling.feed import get_feed
from roombook.scheduling.reconciler import StatusReconciler, run_periodically

# 导入所有模型以确保表被创建
from roombook.models import Room, Course, Booking, Setting, User  # noqa: F401

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# 创建数据库表
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动时开启后台状态同步，关闭时停止"""
    stop = asyncio.Event()
    task = None
    if settings.run_reconciler:
        reconciler = StatusReconciler(get_clock(), auto_activate=settings.auto_activate)
        task = asyncio.create_task(
            run_periodically(SessionLocal, reconciler, get_feed(), settings.reconcile_interval, stop)
        )
    yield
    stop.set()
    if task is not None:
        await task


# 创建FastAPI应用
app = FastAPI(
    title="房间预约系统API",
    description="房间预约与排课网格后端API",
    version="1.0.0",
    lifespan=lifespan,
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 开发环境允许所有来源，生产环境需要限制
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """存储层约束错误，返回统一的提示信息和错误码"""
    logger.info("存储层错误 %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": map_store_error(exc), "code": exc.code},
    )


# 全局异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理器，确保所有错误都返回CORS头"""
    logger.exception("未处理的异常: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": map_store_error(exc)},
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "*",
            "Access-Control-Allow-Headers": "*",
        }
    )


@app.get("/")
async def root():
    """根路径"""
    return {"message": "房间预约系统API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """健康检查"""
    return {"status": "ok"}


# 注册API路由
from roombook.api import auth, admin_users, bookings, rooms, courses, settings as settings_api, live  # noqa: E402
app.include_router(auth.router)
app.include_router(admin_users.router)
app.include_router(bookings.router)
app.include_router(rooms.router)
app.include_router(courses.router)
app.include_router(settings_api.router)
app.include_router(live.router)
