"""
公共的序列化工具
"""
from datetime import datetime, timezone
from typing import Optional


def format_datetime_local(dt: Optional[datetime]) -> Optional[str]:
    """将UTC时间转换为本地时间字符串"""
    if dt is None:
        return None
    # 如果时间没有时区信息，假设它是 UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    local_dt = dt.astimezone()
    return local_dt.strftime("%Y-%m-%d %H:%M:%S")
