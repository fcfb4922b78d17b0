"""
认证相关API
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Optional
import bcrypt
import logging
import secrets
from datetime import datetime
from roombook.db.database import get_db
from roombook.errors import PermissionDeniedError
from roombook.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["认证"])  # 不使用/api前缀，因为前端直接调用/login
security = HTTPBearer(auto_error=False)

# 简单的token存储（进程内，重启后需重新登录）
tokens = {}


def get_password_hash(password: str) -> str:
    """生成密码哈希"""
    # bcrypt限制密码长度不能超过72字节，需要截断
    if len(password.encode('utf-8')) > 72:
        password = password[:72]
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    if len(plain_password.encode('utf-8')) > 72:
        plain_password = plain_password[:72]
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


class LoginRequest(BaseModel):
    """登录请求"""
    email: str = Field(..., description="邮箱")
    password: str = Field(..., description="密码")


class LoginResponse(BaseModel):
    """登录响应"""
    accessToken: str = Field(..., description="访问令牌")
    email: str = Field(..., description="邮箱")
    name: Optional[str] = Field(None, description="姓名")


class UserInfoResponse(BaseModel):
    """当前用户信息"""
    id: int
    email: str
    name: Optional[str] = None
    permissions: list = []


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """根据Bearer token获取当前用户"""
    if credentials is None or credentials.credentials not in tokens:
        raise HTTPException(status_code=401, detail="Not signed in")
    user_id = tokens[credentials.credentials]["user_id"]
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        tokens.pop(credentials.credentials, None)
        raise HTTPException(status_code=401, detail="Not signed in")
    return user


def require_flag(flag: str):
    """要求当前用户拥有某个权限标记（authorisation / settings / analytics）"""

    def _dependency(user: User = Depends(get_current_user)) -> User:
        if not getattr(user, flag, False):
            raise PermissionDeniedError(f"user {user.id} lacks the {flag} flag")
        return user

    return _dependency


def _permissions(user: User) -> list:
    return [flag for flag in ("authorisation", "settings", "analytics") if getattr(user, flag)]


@router.post("/login", response_model=LoginResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """用户登录"""
    user = db.query(User).filter(User.email == request.email.strip().lower()).first()
    if not user or not verify_password(request.password, user.password_hash):
        logger.info("登录失败: %s", request.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    # 生成token
    token = secrets.token_urlsafe(32)
    tokens[token] = {
        "user_id": user.id,
        "created_at": datetime.now()
    }
    return LoginResponse(accessToken=token, email=user.email, name=user.name)


@router.get("/me", response_model=UserInfoResponse)
def get_user_info(user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return UserInfoResponse(id=user.id, email=user.email, name=user.name, permissions=_permissions(user))


@router.post("/logout")
def logout(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    """退出登录"""
    if credentials is not None:
        tokens.pop(credentials.credentials, None)
    return {"message": "Signed out"}
