"""
应用配置
所有配置均从环境变量读取，进程内只解析一次
"""
import os
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class Settings:
    """运行配置"""
    database_url: str = "sqlite:///./database.db"

    # 定时器（秒）
    reconcile_interval: float = 60.0
    clock_refresh_interval: float = 10.0
    change_cooldown: float = 1.2
    run_reconciler: bool = True

    # 预约规则
    slot_minutes: int = 30
    max_increment_minutes: int = 120
    late_grace_minutes: int = 10
    auto_activate: bool = False
    track_borrowed_items: bool = True

    # 营业时间缺省值
    default_open: str = "06:00"
    default_close: str = "21:00"

    log_level: str = "INFO"


def load_settings() -> Settings:
    """从环境变量构建配置"""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./database.db"),
        reconcile_interval=_env_float("ROOMBOOK_RECONCILE_INTERVAL", 60.0),
        clock_refresh_interval=_env_float("ROOMBOOK_CLOCK_REFRESH", 10.0),
        change_cooldown=_env_float("ROOMBOOK_CHANGE_COOLDOWN", 1.2),
        run_reconciler=_env_bool("ROOMBOOK_RUN_RECONCILER", True),
        max_increment_minutes=_env_int("ROOMBOOK_MAX_INCREMENT", 120),
        late_grace_minutes=_env_int("ROOMBOOK_LATE_GRACE", 10),
        auto_activate=_env_bool("ROOMBOOK_AUTO_ACTIVATE", False),
        track_borrowed_items=_env_bool("ROOMBOOK_TRACK_BORROWED_ITEMS", True),
        default_open=os.getenv("ROOMBOOK_DEFAULT_OPEN", "06:00"),
        default_close=os.getenv("ROOMBOOK_DEFAULT_CLOSE", "21:00"),
        log_level=os.getenv("ROOMBOOK_LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """获取进程级配置（缓存）"""
    return load_settings()
