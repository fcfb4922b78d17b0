"""
请求日志中间件
记录API操作的模块、动作、状态码与耗时
"""
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("roombook.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    # 不需要记录日志的路径
    EXCLUDED_PATHS = [
        "/",
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/api/settings/now",  # 前端轮询
    ]

    # 模块映射：根据路径判断操作模块
    MODULE_MAP = {
        "/api/bookings": "预约管理",
        "/api/rooms": "房间管理",
        "/api/courses": "课程管理",
        "/api/settings": "系统设置",
        "/api/admin-users": "用户管理",
        "/login": "认证",
        "/logout": "认证",
        "/me": "认证",
    }

    # 操作类型映射：根据HTTP方法判断操作类型
    ACTION_MAP = {
        "GET": "查询",
        "POST": "创建",
        "PUT": "更新",
        "DELETE": "删除",
        "PATCH": "修改",
    }

    # 路径后缀对应的具体操作
    POST_ACTIONS = {
        "/activate": "开始预约",
        "/end": "结束预约",
        "/extend": "延长预约",
        "/reconcile": "状态同步",
    }

    @classmethod
    def module_for(cls, path: str) -> str:
        for path_prefix, module_name in cls.MODULE_MAP.items():
            if path.startswith(path_prefix):
                return module_name
        return "未知模块"

    @classmethod
    def action_for(cls, method: str, path: str) -> str:
        if method == "POST":
            for suffix, action in cls.POST_ACTIONS.items():
                if path.endswith(suffix):
                    return action
        if method == "PUT" and path.endswith("/labels"):
            return "更新维护标签"
        return cls.ACTION_MAP.get(method, method)

    async def dispatch(self, request: Request, call_next):
        """处理请求并记录日志"""
        # 跳过OPTIONS预检请求（CORS预检请求）
        if request.method == "OPTIONS" or request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = request.url.path
        ip_address = request.client.host if request.client else None

        response = await call_next(request)

        execution_time = int((time.time() - start_time) * 1000)
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            "%s %s [%s/%s] -> %s (%dms) from %s",
            method, path, self.module_for(path), self.action_for(method, path),
            response.status_code, execution_time, ip_address,
        )
        return response
